"""
Flat-file record store.

Every table is one CSV file, one record per line, shared by independent
processes. All access goes through a Table:

- reads (scan / find) run under a shared whole-table lock,
- anything that can change a line's length (append, delete, multi-field
  change) is a whole-table replace: the exclusive lock is held across
  read -> transform -> write temp -> rename, so a concurrent writer can never
  overwrite a newer version with a stale read,
- a single-line update is written in place only when the re-encoded line has
  exactly the same byte length as the old one; otherwise it falls back to a
  whole-table replace.

Raw byte offsets never leave this module.
"""

from __future__ import annotations

import dataclasses
import logging
import os
import uuid
from contextlib import closing, contextmanager
from pathlib import Path
from typing import Any, Callable, Iterable, Iterator, Optional

from models import Admin, Course, Faculty, Student
from utils.codec import is_header, split_line
from utils.errors import DuplicateIdError, FileError, RecordTooLongError
from utils.locking import LockMode, range_lock, table_lock

logger = logging.getLogger(__name__)

DEFAULT_MAX_LINE_LEN = 512

# Global lock acquisition order for multi-table workflows.
LOCK_ORDER = ("courses", "faculty", "students")


def _fsync_dir(directory: Path) -> None:
    fd = os.open(directory, os.O_RDONLY)
    try:
        os.fsync(fd)
    finally:
        os.close(fd)


class Table:
    def __init__(self, path: str | os.PathLike, record_cls, max_line_len: int = DEFAULT_MAX_LINE_LEN):
        self.path = Path(path)
        self.lock_path = self.path.with_name(self.path.name + ".lock")
        self.record_cls = record_cls
        self.name: str = record_cls.TABLE
        self.max_line_len = max_line_len

    def __repr__(self) -> str:
        return f"<Table {self.name} {self.path}>"

    # -----------------------------
    # Encoding
    # -----------------------------

    def encode(self, record) -> str:
        line = record.to_line() + "\n"
        size = len(line.encode("utf-8"))
        if size > self.max_line_len:
            raise RecordTooLongError(
                f"{self.name}: record {record.id} encodes to {size} bytes (max {self.max_line_len})"
            )
        return line

    def parse(self, line: str):
        """Parse one line; None for the header, blank or malformed lines."""
        if not line.strip() or is_header(line):
            return None
        try:
            return self.record_cls.from_fields(split_line(line))
        except (ValueError, IndexError) as e:
            logger.warning("%s: skipping malformed line %r (%s)", self.name, line.rstrip("\n"), e)
            return None

    # -----------------------------
    # Unlocked helpers (caller holds the table lock)
    # -----------------------------

    def _read_lines(self) -> list[str]:
        try:
            with self.path.open(encoding="utf-8", newline="") as fh:
                return fh.readlines()
        except FileNotFoundError:
            return []
        except OSError as e:
            raise FileError(f"cannot read {self.path}: {e}") from e

    def _load(self) -> tuple[list[Any], list[str]]:
        records: list[Any] = []
        unparsed: list[str] = []
        for line in self._read_lines():
            rec = self.parse(line)
            if rec is not None:
                records.append(rec)
            elif line.strip() and not is_header(line):
                unparsed.append(line if line.endswith("\n") else line + "\n")
        return records, unparsed

    def _write_temp(self, records: Iterable[Any], unparsed: Iterable[str] = ()) -> Path:
        # encode everything first so a bad record never leaves a half-written temp
        body = [self.encode(r) for r in records]
        tmp = self.path.with_name(f".{self.path.name}.{uuid.uuid4().hex}.tmp")
        try:
            with tmp.open("w", encoding="utf-8", newline="") as fh:
                fh.write(self.record_cls.HEADER + "\n")
                fh.writelines(body)
                fh.writelines(unparsed)
                fh.flush()
                os.fsync(fh.fileno())
        except OSError as e:
            tmp.unlink(missing_ok=True)
            raise FileError(f"cannot write temp file for {self.name}: {e}") from e
        return tmp

    def _install(self, tmp: Path) -> None:
        try:
            os.replace(tmp, self.path)
            _fsync_dir(self.path.parent)
        except OSError as e:
            tmp.unlink(missing_ok=True)
            raise FileError(f"cannot replace {self.path}: {e}") from e

    def _rewrite_locked(self, transform: Callable[[list[Any]], Optional[list[Any]]]) -> bool:
        records, unparsed = self._load()
        new_records = transform(list(records))
        if new_records is None:
            return False
        self._install(self._write_temp(new_records, unparsed))
        return True

    def temp_files(self) -> list[Path]:
        return sorted(self.path.parent.glob(f".{self.path.name}.*.tmp"))

    # -----------------------------
    # Reads
    # -----------------------------

    def scan(self) -> Iterator[Any]:
        """Lazily yield records under a shared lock held for the whole scan.

        Restartable (call again), not resumable: closing the generator
        releases the lock.
        """
        with table_lock(self.lock_path, LockMode.SHARED):
            try:
                fh = self.path.open(encoding="utf-8", newline="")
            except FileNotFoundError:
                return
            except OSError as e:
                raise FileError(f"cannot open {self.path}: {e}") from e
            with fh:
                for line in fh:
                    rec = self.parse(line)
                    if rec is not None:
                        yield rec

    def all(self) -> list[Any]:
        return list(self.scan())

    def find_by(self, predicate: Callable[[Any], bool]):
        with closing(self.scan()) as records:
            for rec in records:
                if predicate(rec):
                    return rec
        return None

    def find_by_id(self, record_id: int):
        record_id = int(record_id)
        return self.find_by(lambda r: r.id == record_id)

    def exists(self, record_id: int) -> bool:
        return self.find_by_id(record_id) is not None

    # -----------------------------
    # Writes
    # -----------------------------

    def append(self, record, unique: Iterable[Callable[[Any], Any]] = ()) -> None:
        """Append one record; the duplicate check runs under the same exclusive lock.

        `unique` holds extra key functions (e.g. course code) that must not
        collide with an existing record either.
        """
        line = self.encode(record)
        unique = list(unique)
        with table_lock(self.lock_path, LockMode.EXCLUSIVE):
            records, _ = self._load()
            for existing in records:
                if existing.id == record.id:
                    raise DuplicateIdError(self.name, record.id)
                for key in unique:
                    if key(existing) == key(record):
                        raise DuplicateIdError(self.name, key(record))

            try:
                with self.path.open("a+b") as fh:
                    fh.seek(0, os.SEEK_END)
                    if fh.tell() == 0:
                        fh.write((self.record_cls.HEADER + "\n").encode("utf-8"))
                    else:
                        fh.seek(-1, os.SEEK_END)
                        if fh.read(1) != b"\n":
                            fh.write(b"\n")
                    fh.write(line.encode("utf-8"))
                    fh.flush()
                    os.fsync(fh.fileno())
            except OSError as e:
                raise FileError(f"cannot append to {self.path}: {e}") from e

        logger.info("%s: appended record %s", self.name, record.id)

    def replace_all(self, records: Iterable[Any]) -> None:
        records = list(records)
        with table_lock(self.lock_path, LockMode.EXCLUSIVE):
            _, unparsed = self._load()
            self._install(self._write_temp(records, unparsed))

    def rewrite(self, transform: Callable[[list[Any]], Optional[list[Any]]]) -> bool:
        """Read-transform-write-rename with the exclusive lock held throughout.

        `transform` gets the current records and returns the new list, or
        None to leave the table untouched. Returns whether a write happened.
        """
        with table_lock(self.lock_path, LockMode.EXCLUSIVE):
            return self._rewrite_locked(transform)

    def update_in_place(self, record_id: int, unique: Iterable[Callable[[Any], Any]] = (), **changes) -> bool:
        """Change fields of one record. False when the id is absent.

        `unique` key functions (e.g. email) must not collide with another
        record after the change; checked under the same exclusive lock.

        The line is overwritten at its byte offset only when the new encoding
        has exactly the old length; anything else goes through a whole-table
        replace so the following lines are never clobbered.
        """
        record_id = int(record_id)
        with table_lock(self.lock_path, LockMode.EXCLUSIVE):
            try:
                fh = self.path.open("r+b")
            except FileNotFoundError:
                return False
            except OSError as e:
                raise FileError(f"cannot open {self.path}: {e}") from e

            with fh:
                data = fh.read()
                if unique:
                    self._check_unique(data, record_id, list(unique), changes)
                offset = 0
                for raw in data.splitlines(keepends=True):
                    rec = self.parse(raw.decode("utf-8"))
                    if rec is not None and rec.id == record_id:
                        updated = dataclasses.replace(rec, **changes)
                        new_line = self.encode(updated).encode("utf-8")
                        if not raw.endswith(b"\n"):
                            new_line = new_line[:-1]

                        if len(new_line) != len(raw):
                            break

                        with range_lock(fh, LockMode.EXCLUSIVE, offset, len(raw)):
                            try:
                                fh.seek(offset)
                                fh.write(new_line)
                                fh.flush()
                                os.fsync(fh.fileno())
                            except OSError as e:
                                raise FileError(f"cannot write {self.path}: {e}") from e
                        logger.info("%s: updated record %s in place", self.name, record_id)
                        return True
                    offset += len(raw)
                else:
                    return False

            # length changed: fall back to a full replace under the lock we hold
            def apply(records):
                return [dataclasses.replace(r, **changes) if r.id == record_id else r for r in records]

            self._rewrite_locked(apply)
            logger.info("%s: updated record %s via full rewrite", self.name, record_id)
            return True

    def _check_unique(self, data: bytes, record_id: int, unique: list, changes: dict) -> None:
        records = [r for r in (self.parse(line) for line in data.decode("utf-8").splitlines()) if r is not None]
        target = next((r for r in records if r.id == record_id), None)
        if target is None:
            return
        updated = dataclasses.replace(target, **changes)
        for other in records:
            if other.id == record_id:
                continue
            for key in unique:
                if key(other) == key(updated):
                    raise DuplicateIdError(self.name, key(updated))

    @contextmanager
    def session(self, mode: LockMode = LockMode.EXCLUSIVE) -> Iterator["TableSession"]:
        with table_lock(self.lock_path, mode):
            yield TableSession(self, mode)


class TableSession:
    """A table whose lock is held by the caller (used by multi-table workflows)."""

    def __init__(self, table: Table, mode: LockMode):
        self.table = table
        self.mode = mode
        self._records: list[Any] | None = None
        self._unparsed: list[str] = []

    @property
    def name(self) -> str:
        return self.table.name

    def records(self) -> list[Any]:
        if self._records is None:
            self._records, self._unparsed = self.table._load()
        return list(self._records)

    def find(self, predicate: Callable[[Any], bool]):
        for rec in self.records():
            if predicate(rec):
                return rec
        return None

    def get(self, record_id: int):
        record_id = int(record_id)
        return self.find(lambda r: r.id == record_id)

    def prepare(self, records: Iterable[Any]) -> Path:
        """Write the new content to a sibling temp file; nothing is visible yet."""
        if self.mode is not LockMode.EXCLUSIVE:
            raise FileError(f"{self.name}: writing needs an exclusive lock")
        self.records()
        return self.table._write_temp(records, self._unparsed)

    def install(self, tmp: Path) -> None:
        self.table._install(tmp)
        self._records = None

    def replace(self, records: Iterable[Any]) -> None:
        self.install(self.prepare(records))


class TableStore:
    """The four shared tables of one data directory.

    Usable standalone (`TableStore(data_dir)`) or bound to a Flask app with
    `init_app`, which reads DATA_DIR and friends from app.config.
    """

    def __init__(
        self,
        data_dir: str | os.PathLike | None = None,
        *,
        max_line_len: int = DEFAULT_MAX_LINE_LEN,
        journal_commits: bool = True,
        password_hashing: bool = False,
    ):
        self.data_dir: Path | None = None
        if data_dir is not None:
            self.configure(
                data_dir,
                max_line_len=max_line_len,
                journal_commits=journal_commits,
                password_hashing=password_hashing,
            )

    @classmethod
    def from_config(cls, config) -> "TableStore":
        get = config.get if isinstance(config, dict) else (lambda k, d=None: getattr(config, k, d))
        return cls(
            get("DATA_DIR"),
            max_line_len=int(get("MAX_LINE_LEN", DEFAULT_MAX_LINE_LEN)),
            journal_commits=bool(get("JOURNAL_COMMITS", True)),
            password_hashing=bool(get("PASSWORD_HASHING", False)),
        )

    def init_app(self, app) -> None:
        self.configure(
            app.config["DATA_DIR"],
            max_line_len=int(app.config.get("MAX_LINE_LEN", DEFAULT_MAX_LINE_LEN)),
            journal_commits=bool(app.config.get("JOURNAL_COMMITS", True)),
            password_hashing=bool(app.config.get("PASSWORD_HASHING", False)),
        )
        app.extensions["table_store"] = self

    def configure(self, data_dir, *, max_line_len, journal_commits, password_hashing) -> None:
        from services.journal import Journal

        self.data_dir = Path(data_dir)
        self.data_dir.mkdir(parents=True, exist_ok=True)
        self.max_line_len = max_line_len
        self.journal_commits = journal_commits
        self.password_hashing = password_hashing

        self.students = Table(self.data_dir / "students.csv", Student, max_line_len)
        self.faculty = Table(self.data_dir / "faculty.csv", Faculty, max_line_len)
        self.courses = Table(self.data_dir / "courses.csv", Course, max_line_len)
        self.admins = Table(self.data_dir / "admins.csv", Admin, max_line_len)
        self.journal = Journal(self.data_dir)

    def tables(self) -> dict[str, Table]:
        return {t.name: t for t in (self.courses, self.faculty, self.students, self.admins)}

    def ensure_tables(self) -> list[str]:
        """Create missing table files with just their header. Returns the created names."""
        created = []
        for table in self.tables().values():
            with table_lock(table.lock_path, LockMode.EXCLUSIVE):
                if table.path.exists():
                    continue
                try:
                    table.path.write_text(table.record_cls.HEADER + "\n", encoding="utf-8")
                except OSError as e:
                    raise FileError(f"cannot create {table.path}: {e}") from e
                created.append(table.name)
        return created
