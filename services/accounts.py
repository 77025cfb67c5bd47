# services/accounts.py
# Single-table operations behind the admin, student and faculty menus.

from __future__ import annotations

import dataclasses
import logging
from dataclasses import dataclass
from typing import Any, List, Optional

from models import Course, Faculty, Student
from models.user import Role, encode_password
from services.auth import table_for
from services.store import TableStore
from utils.codec import check_text
from utils.errors import DuplicateIdError, Outcome

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = ("name", "email", "password")


def _email(record) -> str:
    return record.email


# -----------------------------
# Admin: account creation and edits
# -----------------------------

def add_student(store: TableStore, student_id: int, name: str, email: str, password: str, active: bool = True) -> Outcome:
    student = Student(
        id=int(student_id),
        name=check_text("name", name),
        email=check_text("email", email),
        password=encode_password(check_text("password", password), store.password_hashing),
        active=bool(active),
    )
    try:
        store.students.append(student, unique=(_email,))
    except DuplicateIdError:
        return Outcome.DUPLICATE_ID
    return Outcome.SUCCESS


def add_faculty(store: TableStore, faculty_id: int, name: str, email: str, password: str) -> Outcome:
    faculty = Faculty(
        id=int(faculty_id),
        name=check_text("name", name),
        email=check_text("email", email),
        password=encode_password(check_text("password", password), store.password_hashing),
    )
    try:
        store.faculty.append(faculty, unique=(_email,))
    except DuplicateIdError:
        return Outcome.DUPLICATE_ID
    return Outcome.SUCCESS


def update_user(store: TableStore, role: Role, user_id: int, field: str, value: str) -> Outcome:
    """Change name, email or password of a student or faculty record.

    DUPLICATE_ID when the new email already belongs to another record.
    """
    if field not in UPDATABLE_FIELDS:
        raise ValueError(f"field must be one of {', '.join(UPDATABLE_FIELDS)}")
    if role is Role.ADMIN:
        raise ValueError("admin records are read-only")

    value = check_text(field, value)
    if field == "password":
        value = encode_password(value, store.password_hashing)

    # two accounts with one email: login would only ever find the first
    unique = (_email,) if field == "email" else ()
    try:
        updated = table_for(store, role).update_in_place(user_id, unique=unique, **{field: value})
    except DuplicateIdError:
        logger.warning("%s %s: email %r already in use", role.name.lower(), user_id, value)
        return Outcome.DUPLICATE_ID
    if not updated:
        return Outcome.USER_NOT_FOUND
    return Outcome.SUCCESS


def change_password(store: TableStore, role: Role, user_id: int, new_password: str) -> Outcome:
    return update_user(store, role, user_id, "password", new_password)


def set_active(store: TableStore, student_id: int, active: bool) -> Outcome:
    if not store.students.update_in_place(student_id, active=bool(active)):
        return Outcome.USER_NOT_FOUND
    logger.info("student %s %s", student_id, "activated" if active else "deactivated")
    return Outcome.SUCCESS


def toggle_active(store: TableStore, student_id: int) -> Outcome:
    student_id = int(student_id)
    flipped: dict[str, bool] = {}

    def flip(records):
        out = []
        for s in records:
            if s.id == student_id:
                flipped["active"] = not s.active
                s = dataclasses.replace(s, active=not s.active)
            out.append(s)
        return out if flipped else None

    store.students.rewrite(flip)
    if not flipped:
        return Outcome.USER_NOT_FOUND
    logger.info("student %s %s", student_id, "activated" if flipped["active"] else "deactivated")
    return Outcome.SUCCESS


# -----------------------------
# Views
# -----------------------------

def get_user(store: TableStore, role: Role, user_id: int) -> Optional[Any]:
    return table_for(store, role).find_by_id(user_id)


def list_users(store: TableStore, role: Role) -> List[Any]:
    return table_for(store, role).all()


@dataclass(frozen=True)
class AvailableCourse:
    id: int
    code: str
    name: str
    credits: int
    faculty_name: str
    seats_left: int


def available_courses(store: TableStore, student_id: int) -> Optional[List[AvailableCourse]]:
    """Courses the student is not enrolled in and that still have seats. None if no such student."""
    student = store.students.find_by_id(student_id)
    if student is None:
        return None

    names = {f.id: f.name for f in store.faculty.scan()}
    out: List[AvailableCourse] = []
    for c in store.courses.scan():
        if student.is_enrolled(c.code) or student.id in c.students or c.is_full:
            continue
        out.append(
            AvailableCourse(
                id=c.id,
                code=c.code,
                name=c.name,
                credits=c.credits,
                faculty_name=names.get(c.faculty_id, "Unknown"),
                seats_left=c.capacity - c.enrolled,
            )
        )
    return out


def student_enrollments(store: TableStore, student_id: int) -> Optional[List[Course]]:
    student = store.students.find_by_id(student_id)
    if student is None:
        return None
    by_code = {c.code: c for c in store.courses.scan()}
    # keep enrollment order; codes whose course vanished are skipped
    return [by_code[code] for code in student.enrolled_courses if code in by_code]


def offered_courses(store: TableStore, faculty_id: int) -> List[Course]:
    faculty_id = int(faculty_id)
    return [c for c in store.courses.scan() if c.faculty_id == faculty_id]


def course_roster(store: TableStore, faculty_id: int, code: str) -> Optional[List[tuple[int, str]]]:
    """(student id, name) pairs for a course the faculty owns. None if not found or not owned."""
    faculty_id = int(faculty_id)
    course = store.courses.find_by(lambda c: c.code == code and c.faculty_id == faculty_id)
    if course is None:
        return None
    names = {s.id: s.name for s in store.students.scan()}
    return [(sid, names.get(sid, "Unknown student")) for sid in course.students]
