from flask import Blueprint, jsonify, request
from flask_login import current_user, login_required, login_user, logout_user

from extensions import login_manager, store
from models.user import Role, SessionUser
from services.auth import authenticate, table_for

auth_bp = Blueprint("auth", __name__, url_prefix="/auth")


@login_manager.user_loader
def load_user(user_id: str):
    # session id is "<role>:<record id>"
    role_raw, _, rid = user_id.partition(":")
    role = Role.parse(role_raw)
    if role is None or not rid.isdigit():
        return None

    record = table_for(store, role).find_by_id(int(rid))
    if record is None:
        return None
    # a student deactivated after login loses the session
    if role is Role.STUDENT and not record.active:
        return None
    return SessionUser(role, record.id, record.name)


@login_manager.unauthorized_handler
def unauthorized():
    return jsonify(error="login required"), 401


@auth_bp.route("/login", methods=["POST"])
def login():
    data = request.get_json(silent=True) or request.form
    role = data.get("role")
    email = (data.get("email") or "").strip()
    password = data.get("password") or ""

    result = authenticate(store, role, email, password)
    if not result.ok:
        return jsonify(status=int(result.status), error=result.status.name.lower()), 401

    login_user(SessionUser(result.role, result.user.id, result.user.name))
    return jsonify(
        status=int(result.status),
        user_id=result.user.id,
        role=result.role.name.lower(),
        message=result.welcome.strip(),
    )


@auth_bp.route("/logout")
@login_required
def logout():
    who = current_user.get_id()
    logout_user()
    return jsonify(message="Logged out.", user=who)
