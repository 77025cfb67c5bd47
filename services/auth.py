from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import IntEnum
from typing import Any, Optional

from models.user import Role, check_password
from services.store import Table, TableStore

logger = logging.getLogger(__name__)


class LoginStatus(IntEnum):
    # wire values of the gateway's 4-byte status
    LOGIN_SUCCESS = 1
    WRONG_PASS = -1
    WRONG_USER = -2
    DEACTIVATED = -3
    INCORRECT_ROLE = -4


@dataclass(frozen=True)
class AuthResult:
    status: LoginStatus
    role: Optional[Role] = None
    user: Any = None

    @property
    def ok(self) -> bool:
        return self.status is LoginStatus.LOGIN_SUCCESS

    @property
    def welcome(self) -> str:
        if not self.ok:
            return ""
        return f" Welcome {self.user.name}! You are logged in as {self.role.label}.\n"


def table_for(store: TableStore, role: Role) -> Table:
    return {Role.ADMIN: store.admins, Role.STUDENT: store.students, Role.FACULTY: store.faculty}[role]


def authenticate(store: TableStore, role, email: str, password: str) -> AuthResult:
    """Check credentials against the role's table (shared-lock scan, first email match wins)."""
    parsed = Role.parse(role)
    if parsed is None:
        return AuthResult(LoginStatus.INCORRECT_ROLE)

    email = (email or "").strip()
    user = table_for(store, parsed).find_by(lambda r: r.email == email)
    if user is None:
        logger.warning("login: unknown %s email %r", parsed.name.lower(), email)
        return AuthResult(LoginStatus.WRONG_USER, parsed)

    if not check_password(user.password, password or ""):
        logger.warning("login: wrong password for %s %s", parsed.name.lower(), user.id)
        return AuthResult(LoginStatus.WRONG_PASS, parsed)

    if parsed is Role.STUDENT and not user.active:
        return AuthResult(LoginStatus.DEACTIVATED, parsed)

    logger.info("login: %s %s authenticated", parsed.name.lower(), user.id)
    return AuthResult(LoginStatus.LOGIN_SUCCESS, parsed, user)
