from dataclasses import asdict

from flask import jsonify
from flask_login import current_user

from . import main_bp, outcome_response, payload, role_required
from extensions import store
from models.user import Role
from services import accounts, registration
from utils.errors import Outcome


def _course_json(c):
    return {
        "id": c.id,
        "code": c.code,
        "name": c.name,
        "credits": c.credits,
        "capacity": c.capacity,
        "enrolled": c.enrolled,
    }


@main_bp.route("/student/courses")
@role_required(Role.STUDENT)
def available_courses():
    # courses the student could still enroll in
    courses = accounts.available_courses(store, current_user.user_id)
    if courses is None:
        return outcome_response(Outcome.USER_NOT_FOUND)
    return jsonify(courses=[asdict(c) for c in courses])


@main_bp.route("/student/courses/<int:course_id>/enroll", methods=["POST"])
@role_required(Role.STUDENT)
def enroll(course_id: int):
    outcome = registration.enroll(store, current_user.user_id, course_id)
    return outcome_response(outcome, course_id=course_id)


@main_bp.route("/student/courses/<int:course_id>/unenroll", methods=["POST"])
@role_required(Role.STUDENT)
def unenroll(course_id: int):
    outcome = registration.unenroll(store, current_user.user_id, course_id)
    return outcome_response(outcome, course_id=course_id)


@main_bp.route("/student/enrollments")
@role_required(Role.STUDENT)
def enrollments():
    courses = accounts.student_enrollments(store, current_user.user_id)
    if courses is None:
        return outcome_response(Outcome.USER_NOT_FOUND)
    return jsonify(courses=[_course_json(c) for c in courses])


@main_bp.route("/student/password", methods=["POST"])
@role_required(Role.STUDENT)
def student_password():
    new_password = (payload().get("password") or "").strip()
    if not new_password:
        return jsonify(error="New password is required."), 400
    return outcome_response(accounts.change_password(store, Role.STUDENT, current_user.user_id, new_password))
