# services/integrity.py

from __future__ import annotations

import dataclasses
import logging
from typing import Dict, List

from services.registration import locked_tables
from services.store import TableStore
from utils.locking import LockMode

logger = logging.getLogger(__name__)


def _duplicates(values) -> List:
    seen, dup = set(), []
    for v in values:
        if v in seen and v not in dup:
            dup.append(v)
        seen.add(v)
    return dup


def check_tables(store: TableStore) -> List[str]:
    """
    Check the cross-table invariants on a consistent snapshot.
    Returns a list of readable problems. Empty list => tables are consistent.

    Checked:
      - unique ids per table, unique course codes
      - course.enrolled == len(course.students)
      - course.students <-> student.enrolled_courses symmetry
      - course.faculty_id exists and offers the course (and nothing else is offered)
    """
    hints: List[str] = []

    # shared locks in the global order so the snapshot cannot interleave with a commit
    with store.courses.session(LockMode.SHARED) as cs, \
            store.faculty.session(LockMode.SHARED) as fs, \
            store.students.session(LockMode.SHARED) as ss:
        courses, faculty, students = cs.records(), fs.records(), ss.records()

    for name, rows in (("courses", courses), ("faculty", faculty), ("students", students)):
        for dup in _duplicates(r.id for r in rows):
            hints.append(f"{name}: id {dup} appears more than once.")
    for dup in _duplicates(c.code for c in courses):
        hints.append(f'courses: code "{dup}" appears more than once.')

    students_by_id = {s.id: s for s in students}
    faculty_by_id = {f.id: f for f in faculty}
    codes = {c.code for c in courses}

    for c in courses:
        if c.enrolled != len(c.students):
            hints.append(f'Course "{c.code}" says {c.enrolled} enrolled but lists {len(c.students)} student(s).')

        for sid in c.students:
            s = students_by_id.get(sid)
            if s is None:
                hints.append(f'Course "{c.code}" lists unknown student {sid}.')
            elif not s.is_enrolled(c.code):
                hints.append(f'Course "{c.code}" lists student {sid}, but the student does not list the course.')

        owner = faculty_by_id.get(c.faculty_id)
        if owner is None:
            hints.append(f'Course "{c.code}" is owned by unknown faculty {c.faculty_id}.')
        elif c.code not in owner.offered_courses:
            hints.append(f'Course "{c.code}" is missing from faculty {owner.id}\'s offered courses.')

    courses_by_code = {c.code: c for c in courses}
    for s in students:
        for code in s.enrolled_courses:
            c = courses_by_code.get(code)
            if c is None:
                hints.append(f'Student {s.id} lists unknown course "{code}".')
            elif s.id not in c.students:
                hints.append(f'Student {s.id} lists course "{code}", but the course does not list the student.')

    for f in faculty:
        for code in f.offered_courses:
            if code not in codes:
                hints.append(f'Faculty {f.id} offers unknown course "{code}".')
            elif courses_by_code[code].faculty_id != f.id:
                hints.append(f'Faculty {f.id} offers "{code}", but the course is owned by {courses_by_code[code].faculty_id}.')

    return hints


def repair_tables(store: TableStore) -> Dict[str, int]:
    """
    Finish interrupted commits and fix derived counts.

    Only deterministic repairs happen here: pending journal entries are rolled
    forward or abandoned whole (by taking the locks) and `enrolled` is
    recomputed from the student list. Asymmetric references are reported by check_tables() and
    left for a human.
    """
    pending_before = len(store.journal.pending())
    abandoned_before = store.journal.abandoned
    fixed_counts = 0

    with locked_tables(store) as t:
        courses = t["courses"]
        records = courses.records()
        new_records = []
        for c in records:
            if c.enrolled != len(c.students):
                c = dataclasses.replace(c, enrolled=len(c.students))
                fixed_counts += 1
            new_records.append(c)
        if fixed_counts:
            courses.replace(new_records)

    abandoned = store.journal.abandoned - abandoned_before
    replayed = pending_before - len(store.journal.pending()) - abandoned
    if replayed or abandoned or fixed_counts:
        logger.warning(
            "repair: %s journal entr(ies) replayed, %s abandoned, %s enrolled count(s) fixed",
            replayed, abandoned, fixed_counts,
        )
    return {"journal_replayed": replayed, "journal_abandoned": abandoned, "enrolled_fixed": fixed_counts}
