from flask import abort, jsonify, request

from . import main_bp, outcome_response, payload, role_required
from extensions import store
from models.user import Role
from services import accounts
from utils.errors import Outcome


def _user_json(user):
    body = {"id": user.id, "name": user.name, "email": user.email}
    if hasattr(user, "active"):
        body["active"] = user.active
        body["enrolled_courses"] = list(user.enrolled_courses)
    if hasattr(user, "offered_courses"):
        body["offered_courses"] = list(user.offered_courses)
    return body


_PATH_ROLES = {"students": Role.STUDENT, "faculty": Role.FACULTY}


def _role_from_path(role_name: str) -> Role:
    # /admin/students/<id> and /admin/faculty/<id>
    role = _PATH_ROLES.get(role_name)
    if role is None:
        abort(404)
    return role


def _create(role: Role):
    data = payload()
    raw_id = str(data.get("id") or "").strip()
    if not raw_id.isdigit():
        return jsonify(error="id must be a whole number."), 400
    name, email, password = data.get("name"), data.get("email"), data.get("password")

    if role is Role.STUDENT:
        active = str(data.get("active", "1")).strip().lower() not in ("0", "false", "no")
        outcome = accounts.add_student(store, int(raw_id), name, email, password, active)
    else:
        outcome = accounts.add_faculty(store, int(raw_id), name, email, password)

    if outcome.ok:
        body, _ = outcome_response(outcome, id=int(raw_id))
        return body, 201
    return outcome_response(outcome, id=int(raw_id))


@main_bp.route("/admin/students", methods=["GET", "POST"])
@role_required(Role.ADMIN)
def students():
    if request.method == "POST":
        return _create(Role.STUDENT)
    return jsonify(users=[_user_json(u) for u in accounts.list_users(store, Role.STUDENT)])


@main_bp.route("/admin/faculty", methods=["GET", "POST"])
@role_required(Role.ADMIN)
def faculty():
    if request.method == "POST":
        return _create(Role.FACULTY)
    return jsonify(users=[_user_json(u) for u in accounts.list_users(store, Role.FACULTY)])


@main_bp.route("/admin/<role_name>/<int:user_id>", methods=["GET", "POST"])
@role_required(Role.ADMIN)
def user_details(role_name: str, user_id: int):
    role = _role_from_path(role_name)

    if request.method == "POST":
        data = payload()
        field = (data.get("field") or "").strip()
        if field not in accounts.UPDATABLE_FIELDS:
            return jsonify(error=f"field must be one of {', '.join(accounts.UPDATABLE_FIELDS)}."), 400
        return outcome_response(accounts.update_user(store, role, user_id, field, data.get("value")))

    user = accounts.get_user(store, role, user_id)
    if user is None:
        return outcome_response(Outcome.USER_NOT_FOUND)
    return jsonify(user=_user_json(user))


@main_bp.route("/admin/students/<int:student_id>/toggle", methods=["POST"])
@role_required(Role.ADMIN)
def toggle_student(student_id: int):
    outcome = accounts.toggle_active(store, student_id)
    if not outcome.ok:
        return outcome_response(outcome)
    student = accounts.get_user(store, Role.STUDENT, student_id)
    return outcome_response(outcome, active=student.active if student else None)
