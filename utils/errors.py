from __future__ import annotations

from enum import Enum


class StoreError(Exception):
    """Base class for failures raised by the table store."""


class FileError(StoreError):
    """A table could not be opened, locked or written. Never retried."""


class DuplicateIdError(StoreError):
    def __init__(self, table: str, key):
        super().__init__(f"{table}: duplicate key {key!r}")
        self.table = table
        self.key = key


class InvalidFieldError(StoreError):
    """A text value would break the comma-delimited line format."""


class RecordTooLongError(StoreError):
    """Encoded line exceeds the table's maximum width (rejected, never truncated)."""


class Outcome(Enum):
    # Business results of account and registration workflows.
    # These are returned, not raised.
    SUCCESS = "success"
    USER_NOT_FOUND = "user_not_found"
    COURSE_NOT_FOUND = "course_not_found"
    DUPLICATE_ID = "duplicate_id"
    ALREADY_ENROLLED = "already_enrolled"
    NOT_ENROLLED = "not_enrolled"
    COURSE_FULL = "course_full"
    UNAUTHORIZED = "unauthorized"

    @property
    def ok(self) -> bool:
        return self is Outcome.SUCCESS
