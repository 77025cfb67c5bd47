"""
Cross-table workflows: enroll / unenroll, add / remove course, course transfer.

Every workflow is Validate -> Compute -> Commit:

1. take the exclusive locks of courses, faculty and students, always in that
   order, and keep them until the commit is done (no check-then-act gap and
   no deadlock between two workflows),
2. look up the referenced records and check the business rules,
3. build every new table version in memory and write it to a temp file,
4. rename the temp files over the tables, in lock order, under a journal
   entry so a crash in the middle is rolled forward later.

Business failures come back as an Outcome; file problems raise FileError.
"""

from __future__ import annotations

import dataclasses
import logging
from contextlib import ExitStack, contextmanager
from typing import Iterator

from models import Course, Faculty
from services.store import LOCK_ORDER, TableSession, TableStore
from utils.codec import check_text
from utils.errors import Outcome
from utils.locking import LockMode

logger = logging.getLogger(__name__)


@contextmanager
def locked_tables(store: TableStore) -> Iterator[dict[str, TableSession]]:
    tables = store.tables()
    with ExitStack() as stack:
        sessions = {
            name: stack.enter_context(tables[name].session(LockMode.EXCLUSIVE))
            for name in LOCK_ORDER
        }
        temps = [tmp for name in LOCK_ORDER for tmp in tables[name].temp_files()]
        store.journal.recover(LOCK_ORDER, temps)
        yield sessions


def _commit(store: TableStore, changes: dict[str, tuple[TableSession, list]]) -> None:
    """Install new content for the changed tables. Caller holds every lock."""
    tables = store.tables()
    order = [name for name in LOCK_ORDER if name in changes]
    renames = []
    try:
        for name in order:
            session, records = changes[name]
            renames.append((session.prepare(records), tables[name].path))
    except Exception:
        for tmp, _ in renames:
            tmp.unlink(missing_ok=True)
        raise

    if store.journal_commits:
        store.journal.commit(order, renames)
    else:
        for name, (tmp, _) in zip(order, renames):
            changes[name][0].install(tmp)


def _strip(codes: list[str], code: str) -> list[str]:
    return [c for c in codes if c != code]


# -----------------------------
# Enrollment
# -----------------------------

def enroll(store: TableStore, student_id: int, course_id: int) -> Outcome:
    student_id, course_id = int(student_id), int(course_id)
    with locked_tables(store) as t:
        courses, students = t["courses"], t["students"]

        course = courses.get(course_id)
        if course is None:
            return Outcome.COURSE_NOT_FOUND
        student = students.get(student_id)
        if student is None:
            return Outcome.USER_NOT_FOUND
        if student_id in course.students or student.is_enrolled(course.code):
            return Outcome.ALREADY_ENROLLED
        if course.is_full:
            return Outcome.COURSE_FULL

        new_ids = course.students + [student_id]
        new_course = dataclasses.replace(course, students=new_ids, enrolled=len(new_ids))
        new_student = dataclasses.replace(student, enrolled_courses=student.enrolled_courses + [course.code])

        _commit(store, {
            "courses": (courses, [new_course if c.id == course_id else c for c in courses.records()]),
            "students": (students, [new_student if s.id == student_id else s for s in students.records()]),
        })

    logger.info("student %s enrolled in %s (%s/%s)", student_id, course.code, new_course.enrolled, course.capacity)
    return Outcome.SUCCESS


def unenroll(store: TableStore, student_id: int, course_id: int) -> Outcome:
    student_id, course_id = int(student_id), int(course_id)
    with locked_tables(store) as t:
        courses, students = t["courses"], t["students"]

        course = courses.get(course_id)
        if course is None:
            return Outcome.COURSE_NOT_FOUND
        student = students.get(student_id)
        if student is None:
            return Outcome.USER_NOT_FOUND
        if student_id not in course.students and not student.is_enrolled(course.code):
            return Outcome.NOT_ENROLLED

        new_ids = [s for s in course.students if s != student_id]
        new_course = dataclasses.replace(course, students=new_ids, enrolled=len(new_ids))
        new_student = dataclasses.replace(student, enrolled_courses=_strip(student.enrolled_courses, course.code))

        _commit(store, {
            "courses": (courses, [new_course if c.id == course_id else c for c in courses.records()]),
            "students": (students, [new_student if s.id == student_id else s for s in students.records()]),
        })

    logger.info("student %s unenrolled from %s", student_id, course.code)
    return Outcome.SUCCESS


# -----------------------------
# Course ownership
# -----------------------------

def add_course(
    store: TableStore,
    course_id: int,
    code: str,
    name: str,
    capacity: int,
    credits: int,
    faculty_id: int,
) -> Outcome:
    """Create a course owned by `faculty_id` and add its code to the faculty's offered list."""
    code = check_text("code", code)
    name = check_text("course_name", name)
    capacity, credits = int(capacity), int(credits)
    if capacity < 0 or credits < 0:
        raise ValueError("capacity and credits must not be negative")

    course = Course(
        id=int(course_id),
        code=code,
        name=name,
        capacity=capacity,
        enrolled=0,
        credits=credits,
        faculty_id=int(faculty_id),
    )
    # reject over-long lines before taking any lock
    store.courses.encode(course)

    with locked_tables(store) as t:
        courses, faculty = t["courses"], t["faculty"]

        if any(c.id == course.id or c.code == course.code for c in courses.records()):
            return Outcome.DUPLICATE_ID
        owner = faculty.get(course.faculty_id)
        if owner is None:
            return Outcome.USER_NOT_FOUND

        new_owner = dataclasses.replace(owner, offered_courses=_strip(owner.offered_courses, code) + [code])
        _commit(store, {
            "courses": (courses, courses.records() + [course]),
            "faculty": (faculty, [new_owner if f.id == owner.id else f for f in faculty.records()]),
        })

    logger.info("faculty %s added course %s (%s)", faculty_id, code, course.id)
    return Outcome.SUCCESS


def remove_course(store: TableStore, course_id: int, faculty_id: int) -> Outcome:
    """Delete a course owned by `faculty_id`.

    Three-table commit: the code is stripped from every enrolled student,
    the course line is dropped and the owner's offered list loses the code.
    """
    course_id, faculty_id = int(course_id), int(faculty_id)
    with locked_tables(store) as t:
        courses, faculty, students = t["courses"], t["faculty"], t["students"]

        course = courses.get(course_id)
        if course is None:
            return Outcome.COURSE_NOT_FOUND
        if course.faculty_id != faculty_id:
            return Outcome.UNAUTHORIZED

        changes = {
            "courses": (courses, [c for c in courses.records() if c.id != course_id]),
        }

        owner = faculty.get(faculty_id)
        if owner is not None:
            new_owner = dataclasses.replace(owner, offered_courses=_strip(owner.offered_courses, course.code))
            changes["faculty"] = (faculty, [new_owner if f.id == faculty_id else f for f in faculty.records()])

        enrolled = set(course.students)
        new_students = []
        touched = 0
        for s in students.records():
            if s.id in enrolled or s.is_enrolled(course.code):
                s = dataclasses.replace(s, enrolled_courses=_strip(s.enrolled_courses, course.code))
                touched += 1
            new_students.append(s)
        if touched:
            changes["students"] = (students, new_students)

        _commit(store, changes)

    logger.info("faculty %s removed course %s; %s student(s) unenrolled", faculty_id, course.code, touched)
    return Outcome.SUCCESS


def transfer_course(store: TableStore, course_id: int, faculty_id: int, new_faculty_id: int) -> Outcome:
    """Move ownership of a course: the code leaves one offered list and joins another."""
    course_id, faculty_id, new_faculty_id = int(course_id), int(faculty_id), int(new_faculty_id)
    with locked_tables(store) as t:
        courses, faculty = t["courses"], t["faculty"]

        course = courses.get(course_id)
        if course is None:
            return Outcome.COURSE_NOT_FOUND
        if course.faculty_id != faculty_id:
            return Outcome.UNAUTHORIZED
        target = faculty.get(new_faculty_id)
        if target is None:
            return Outcome.USER_NOT_FOUND
        if new_faculty_id == faculty_id:
            return Outcome.SUCCESS

        new_course = dataclasses.replace(course, faculty_id=new_faculty_id)
        new_faculty: list[Faculty] = []
        for f in faculty.records():
            if f.id == faculty_id:
                f = dataclasses.replace(f, offered_courses=_strip(f.offered_courses, course.code))
            elif f.id == new_faculty_id:
                f = dataclasses.replace(f, offered_courses=_strip(f.offered_courses, course.code) + [course.code])
            new_faculty.append(f)

        _commit(store, {
            "courses": (courses, [new_course if c.id == course_id else c for c in courses.records()]),
            "faculty": (faculty, new_faculty),
        })

    logger.info("course %s moved from faculty %s to %s", course.code, faculty_id, new_faculty_id)
    return Outcome.SUCCESS
