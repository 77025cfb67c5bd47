from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path

import pandas as pd

from services import accounts, registration
from services.store import TableStore
from utils.errors import Outcome, StoreError

logger = logging.getLogger(__name__)

# Load order matters: courses need their faculty, enrollments need both.
ROSTER_KINDS = ("faculty", "students", "courses", "enrollments")

# Column aliases per roster kind (headers are lower-cased and stripped first)
_ALIASES = {
    "students": {"id": ("student_id",), "name": ("full_name",)},
    "faculty": {"id": ("faculty_id",), "name": ("full_name",)},
    "courses": {"id": ("course_id",), "name": ("course_name",), "capacity": ("seats",)},
    "enrollments": {},
}


@dataclass
class ImportSummary:
    inserted: dict[str, int] = field(default_factory=lambda: {k: 0 for k in ROSTER_KINDS})
    skipped: dict[str, int] = field(default_factory=lambda: {k: 0 for k in ROSTER_KINDS})
    errors: list[str] = field(default_factory=list)

    def count(self, kind: str, outcome: Outcome) -> None:
        if outcome.ok:
            self.inserted[kind] += 1
        else:
            self.skipped[kind] += 1


def find_roster_files(directory: str | Path) -> dict[str, Path]:
    """Map roster kind -> file (students.csv, faculty.xlsx, ...). xlsx wins over csv."""
    p = Path(directory)
    if not p.is_dir():
        return {}

    found: dict[str, Path] = {}
    for kind in ROSTER_KINDS:
        for ext in (".xlsx", ".csv"):
            f = p / f"{kind}{ext}"
            if f.exists():
                found[kind] = f
                break
    return found


def read_roster(f: Path, kind: str) -> pd.DataFrame:
    if f.suffix.lower() == ".xlsx":
        df = pd.read_excel(f, dtype=str)
    else:
        df = pd.read_csv(f, dtype=str, skipinitialspace=True)

    df.columns = [str(c).strip().lower() for c in df.columns]
    for canonical, aliases in _ALIASES[kind].items():
        if canonical in df.columns:
            continue
        for alias in aliases:
            if alias in df.columns:
                df = df.rename(columns={alias: canonical})
                break
    return df.fillna("")


def _text(row, col: str) -> str:
    return str(row.get(col, "") or "").strip()


def _int(row, col: str, default: int | None = None) -> int | None:
    raw = _text(row, col)
    if not raw:
        return default
    try:
        return int(float(raw))
    except ValueError:
        return default


def _active(row) -> bool:
    raw = _text(row, "active").lower()
    return raw not in ("0", "false", "no", "n")


def import_roster(store: TableStore, directory: str | Path) -> ImportSummary:
    """
    Load every roster file found in `directory` into the tables.

    Existing ids/codes are skipped and counted, bad rows are reported in
    `summary.errors` and never abort the rest of the import.
    """
    summary = ImportSummary()
    files = find_roster_files(directory)
    if not files:
        logger.warning("roster: no roster files in %s", directory)
        return summary

    for kind in ROSTER_KINDS:
        f = files.get(kind)
        if f is None:
            continue
        try:
            df = read_roster(f, kind)
        except (OSError, ValueError) as e:
            # unreadable sheet; the other kinds still load
            logger.warning("roster: skipping %s: %s", f.name, e)
            summary.errors.append(f"{f.name}: {e}")
            continue

        for i, row in df.iterrows():
            try:
                outcome = _import_row(store, kind, row)
            except (StoreError, ValueError) as e:
                summary.errors.append(f"{f.name} row {i + 2}: {e}")
                summary.skipped[kind] += 1
                continue
            summary.count(kind, outcome)

        logger.info(
            "roster: %s -> %s inserted, %s skipped", f.name, summary.inserted[kind], summary.skipped[kind]
        )

    return summary


def _import_row(store: TableStore, kind: str, row) -> Outcome:
    if kind == "students":
        return accounts.add_student(
            store, _require_id(row), _text(row, "name"), _text(row, "email"), _text(row, "password"), _active(row)
        )
    if kind == "faculty":
        return accounts.add_faculty(store, _require_id(row), _text(row, "name"), _text(row, "email"), _text(row, "password"))
    if kind == "courses":
        faculty_id = _int(row, "faculty_id")
        if faculty_id is None:
            raise ValueError("faculty_id is required")
        return registration.add_course(
            store,
            _require_id(row),
            _text(row, "code"),
            _text(row, "name"),
            _int(row, "capacity", 0),
            _int(row, "credits", 0),
            faculty_id,
        )
    # enrollments: student_id, course_id
    student_id, course_id = _int(row, "student_id"), _int(row, "course_id")
    if student_id is None or course_id is None:
        raise ValueError("student_id and course_id are required")
    return registration.enroll(store, student_id, course_id)


def _require_id(row) -> int:
    value = _int(row, "id")
    if value is None:
        raise ValueError("id is required")
    return value
