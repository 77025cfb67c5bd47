"""
Advisory locking for the shared tables.

Two kinds of lock exist:

- whole-table locks, taken with flock() on a sidecar "<table>.lock" file.
  The sidecar is never renamed, so a writer that replaces the data file
  with os.replace() still excludes everyone who opens the table afterwards.
  flock() locks belong to the open file description, so two handles in the
  same process (threads) also exclude each other.
- byte-range locks, taken with lockf() on the data file itself. They are used
  only for the fixed-length in-place rewrite of a single line.

Both block until granted (no timeout) and are released when the context
exits, including on error. A crashed holder releases them on teardown.
"""

from __future__ import annotations

import fcntl
import os
from contextlib import contextmanager
from enum import Enum
from typing import IO, Iterator

from utils.errors import FileError


class LockMode(Enum):
    SHARED = "shared"
    EXCLUSIVE = "exclusive"


def _flag(mode: LockMode) -> int:
    return fcntl.LOCK_SH if mode is LockMode.SHARED else fcntl.LOCK_EX


@contextmanager
def table_lock(lock_path: str | os.PathLike, mode: LockMode) -> Iterator[None]:
    try:
        fh = open(lock_path, "a+b")
    except OSError as e:
        raise FileError(f"cannot open lock file {lock_path}: {e}") from e

    try:
        try:
            fcntl.flock(fh.fileno(), _flag(mode))
        except OSError as e:
            raise FileError(f"cannot acquire {mode.value} lock on {lock_path}: {e}") from e
        try:
            yield
        finally:
            fcntl.flock(fh.fileno(), fcntl.LOCK_UN)
    finally:
        fh.close()


@contextmanager
def range_lock(fh: IO[bytes], mode: LockMode, start: int, length: int) -> Iterator[None]:
    # length == 0 would mean "to end of file" for lockf; a line is never empty
    if length <= 0:
        raise ValueError("range lock needs a positive length")
    try:
        fcntl.lockf(fh.fileno(), _flag(mode), length, start, os.SEEK_SET)
    except OSError as e:
        raise FileError(f"cannot lock bytes {start}+{length}: {e}") from e
    try:
        yield
    finally:
        fcntl.lockf(fh.fileno(), fcntl.LOCK_UN, length, start, os.SEEK_SET)
