from __future__ import annotations

import hmac
from enum import IntEnum

from flask_login import UserMixin
from werkzeug.security import check_password_hash, generate_password_hash

# werkzeug hash strings start with the method name
_HASH_PREFIXES = ("pbkdf2:", "scrypt:")


class Role(IntEnum):
    ADMIN = 1
    STUDENT = 2
    FACULTY = 3

    @property
    def label(self) -> str:
        return {Role.ADMIN: "Administrator", Role.STUDENT: "Student", Role.FACULTY: "Faculty"}[self]

    @classmethod
    def parse(cls, value) -> "Role | None":
        try:
            return cls(int(value))
        except (TypeError, ValueError):
            pass
        if isinstance(value, str):
            return cls.__members__.get(value.strip().upper())
        return None


def encode_password(password: str, hashing: bool) -> str:
    if not hashing:
        return password
    # use PBKDF2 instead of the default scrypt
    return generate_password_hash(password, method="pbkdf2:sha256", salt_length=16)


def check_password(stored: str, candidate: str) -> bool:
    """Accepts both werkzeug hashes and the legacy plain-text column."""
    if stored.startswith(_HASH_PREFIXES):
        return check_password_hash(stored, candidate)
    return hmac.compare_digest(stored.encode("utf-8"), candidate.encode("utf-8"))


class SessionUser(UserMixin):
    """Logged-in principal for the web client; the record itself stays in its table."""

    def __init__(self, role: Role, user_id: int, name: str = ""):
        self.role = Role(role)
        self.user_id = int(user_id)
        self.name = name

    def get_id(self) -> str:
        return f"{int(self.role)}:{self.user_id}"

    def __repr__(self) -> str:
        return f"<SessionUser {self.role.name.lower()} {self.user_id}>"
