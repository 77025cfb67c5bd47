from functools import wraps

from flask import Blueprint, abort, jsonify, request
from flask_login import current_user, login_required

from utils.errors import Outcome

# single main blueprint for everything except auth (has its own)
main_bp = Blueprint("main", __name__)

_HTTP_STATUS = {
    Outcome.SUCCESS: 200,
    Outcome.USER_NOT_FOUND: 404,
    Outcome.COURSE_NOT_FOUND: 404,
    Outcome.UNAUTHORIZED: 403,
    Outcome.DUPLICATE_ID: 409,
    Outcome.ALREADY_ENROLLED: 409,
    Outcome.NOT_ENROLLED: 409,
    Outcome.COURSE_FULL: 409,
}


def role_required(role):
    """login_required plus a role check (403 for the wrong kind of user)."""
    def decorator(view):
        @wraps(view)
        @login_required
        def wrapper(*args, **kwargs):
            if current_user.role is not role:
                abort(403)
            return view(*args, **kwargs)
        return wrapper
    return decorator


def payload():
    return request.get_json(silent=True) or request.form


def outcome_response(outcome: Outcome, **extra):
    body = {"outcome": outcome.value, **extra}
    return jsonify(body), _HTTP_STATUS[outcome]


#  import route modules (they attach to main_bp, hence the # noqa: F401)
from . import enrollments   # noqa: F401
from . import courses       # noqa: F401
from . import admin         # noqa: F401
