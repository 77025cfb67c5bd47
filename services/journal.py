"""
Roll-forward commit journal for multi-table workflows.

A workflow first writes every new table version to a temp file. Only then is
a journal entry written listing the (temp, target) renames; after the renames
the entry is deleted. If the process dies in between, the entry survives and
`recover()` finishes the renames the next time someone holds the affected
tables' locks.

Each rename records the identity (inode, size, content digest) the target had when the
entry was written. If none of an entry's renames ran before the crash
and a single-table writer changed one of its targets since, the whole entry
is abandoned: every temp file is dropped and no table sees the commit.
Once any rename has run, the remaining ones are always applied, so the
tables never end up with half a commit. Temp files named by no entry are
leftovers from a crash before the entry was written and are removed.

Entries only ever reference files inside the data directory, by name.
"""

from __future__ import annotations

import hashlib
import json
import logging
import os
import uuid
from pathlib import Path
from typing import Iterable, Optional

from utils.errors import FileError

logger = logging.getLogger(__name__)


def _identity(path: Path) -> Optional[list]:
    # digest, not mtime: a same-length in-place write can land in the same mtime tick
    try:
        st = path.stat()
        digest = hashlib.sha256(path.read_bytes()).hexdigest()
    except FileNotFoundError:
        return None
    return [st.st_ino, st.st_size, digest]


class Journal:
    def __init__(self, data_dir: str | os.PathLike):
        self.data_dir = Path(data_dir)
        self.directory = self.data_dir / ".journal"
        # entries dropped by recover() in this process
        self.abandoned = 0

    def _fsync_dir(self, path: Path) -> None:
        fd = os.open(path, os.O_RDONLY)
        try:
            os.fsync(fd)
        finally:
            os.close(fd)

    def begin(self, tables: Iterable[str], renames: list[tuple[Path, Path]]) -> Path:
        entry = {
            "tables": sorted(set(tables)),
            "renames": [
                {"tmp": Path(tmp).name, "target": Path(target).name, "was": _identity(Path(target))}
                for tmp, target in renames
            ],
        }
        try:
            self.directory.mkdir(exist_ok=True)
            name = uuid.uuid4().hex
            staging = self.directory / f"{name}.partial"
            final = self.directory / f"{name}.json"
            with staging.open("w", encoding="utf-8") as fh:
                json.dump(entry, fh)
                fh.flush()
                os.fsync(fh.fileno())
            os.replace(staging, final)
            self._fsync_dir(self.directory)
        except OSError as e:
            raise FileError(f"cannot write commit journal: {e}") from e
        return final

    def finish(self, entry: Path) -> None:
        try:
            entry.unlink(missing_ok=True)
        except OSError as e:
            raise FileError(f"cannot clear journal entry {entry.name}: {e}") from e

    def pending(self) -> list[tuple[Path, dict]]:
        if not self.directory.is_dir():
            return []
        out = []
        for p in sorted(self.directory.glob("*.json")):
            try:
                out.append((p, json.loads(p.read_text(encoding="utf-8"))))
            except (OSError, ValueError) as e:
                logger.warning("journal: unreadable entry %s (%s)", p.name, e)
        return out

    def _apply(self, renames: list[dict]) -> None:
        for r in renames:
            tmp = self.data_dir / r["tmp"]
            # already renamed before the crash
            if tmp.exists():
                os.replace(tmp, self.data_dir / r["target"])
        self._fsync_dir(self.data_dir)

    def _stale_targets(self, renames: list[dict]) -> list[str]:
        """Targets changed since the entry was written, when none of its renames ran yet.

        Decided once for the whole entry: once any rename has happened the
        rest must follow, or the tables would disagree with each other.
        """
        if not all((self.data_dir / r["tmp"]).exists() for r in renames):
            return []
        return [r["target"] for r in renames if _identity(self.data_dir / r["target"]) != r.get("was")]

    def _discard(self, renames: list[dict]) -> None:
        for r in renames:
            (self.data_dir / r["tmp"]).unlink(missing_ok=True)

    def commit(self, tables: Iterable[str], renames: list[tuple[Path, Path]]) -> None:
        entry = self.begin(tables, renames)
        plan = [{"tmp": Path(t).name, "target": Path(d).name} for t, d in renames]
        try:
            self._apply(plan)
        except OSError as e:
            # entry stays behind; recover() rolls it forward
            raise FileError(f"commit interrupted, journal {entry.name} left for recovery: {e}") from e
        self.finish(entry)

    def recover(self, held_tables: Iterable[str], temp_files: Iterable[Path] = ()) -> int:
        """Resolve entries that only touch tables the caller holds exclusively.

        Each entry is either rolled forward completely or, when it went stale
        before any rename ran, abandoned completely.

        `temp_files` are the temp files currently present for those tables;
        any of them not named by a journal entry is an orphan and is removed.
        Returns the number of entries replayed.
        """
        held = set(held_tables)
        replayed = 0
        referenced: set[str] = set()
        for path, entry in self.pending():
            renames = entry.get("renames", [])
            referenced.update(r["tmp"] for r in renames)
            if not set(entry.get("tables", [])) <= held:
                continue
            try:
                stale = self._stale_targets(renames)
                if stale:
                    # nothing became visible; the commit is abandoned as a whole
                    self._discard(renames)
                    self.finish(path)
                    self.abandoned += 1
                    logger.error(
                        "journal: %s changed after interrupted commit %s; abandoned it (%s)",
                        ", ".join(stale), path.stem, ", ".join(entry["tables"]),
                    )
                    continue
                self._apply(renames)
            except OSError as e:
                raise FileError(f"cannot replay journal {path.name}: {e}") from e
            self.finish(path)
            replayed += 1
            logger.warning("journal: rolled forward interrupted commit %s (%s)", path.stem, ", ".join(entry["tables"]))

        for tmp in temp_files:
            if tmp.name in referenced or not tmp.exists():
                continue
            logger.warning("journal: removing orphaned temp file %s", tmp.name)
            tmp.unlink(missing_ok=True)

        # staging files of entries that never became visible
        if self.directory.is_dir() and held >= {"courses", "faculty", "students"}:
            for partial in self.directory.glob("*.partial"):
                partial.unlink(missing_ok=True)
        return replayed
