from flask import jsonify
from flask_login import current_user

from . import main_bp, outcome_response, payload, role_required
from extensions import store
from models.user import Role
from services import accounts, registration


@main_bp.route("/faculty/courses")
@role_required(Role.FACULTY)
def offered_courses():
    courses = accounts.offered_courses(store, current_user.user_id)
    return jsonify(
        courses=[
            {
                "id": c.id,
                "code": c.code,
                "name": c.name,
                "capacity": c.capacity,
                "enrolled": c.enrolled,
                "credits": c.credits,
            }
            for c in courses
        ]
    )


@main_bp.route("/faculty/courses", methods=["POST"])
@role_required(Role.FACULTY)
def add_course():
    data = payload()

    code = (data.get("code") or "").strip()
    name = (data.get("name") or "").strip()
    if not code or not name:
        return jsonify(error="Course code and name are required."), 400

    # numeric fields (must all be present before anything is written)
    values = {}
    for field in ("id", "capacity", "credits"):
        raw = str(data.get(field) or "").strip()
        if not raw:
            return jsonify(error=f"{field} is required."), 400
        try:
            values[field] = int(raw)
        except ValueError:
            return jsonify(error=f"{field} must be a whole number."), 400
        if values[field] < 0:
            return jsonify(error=f"{field} must not be negative."), 400

    outcome = registration.add_course(
        store,
        values["id"],
        code,
        name,
        values["capacity"],
        values["credits"],
        current_user.user_id,
    )
    return outcome_response(outcome, course_id=values["id"], code=code)


@main_bp.route("/faculty/courses/<int:course_id>/delete", methods=["POST"])
@role_required(Role.FACULTY)
def delete_course(course_id: int):
    outcome = registration.remove_course(store, course_id, current_user.user_id)
    return outcome_response(outcome, course_id=course_id)


@main_bp.route("/faculty/courses/<code>/roster")
@role_required(Role.FACULTY)
def course_roster(code: str):
    roster = accounts.course_roster(store, current_user.user_id, code)
    if roster is None:
        return jsonify(error="Course not found or you are not authorized to view this course."), 404
    return jsonify(code=code, students=[{"id": sid, "name": name} for sid, name in roster])


@main_bp.route("/faculty/password", methods=["POST"])
@role_required(Role.FACULTY)
def faculty_password():
    new_password = (payload().get("password") or "").strip()
    if not new_password:
        return jsonify(error="New password is required."), 400
    return outcome_response(accounts.change_password(store, Role.FACULTY, current_user.user_id, new_password))
