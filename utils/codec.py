from __future__ import annotations

import csv
from typing import Iterable

from utils.errors import InvalidFieldError

# Characters that would change how a line splits back into fields.
_FORBIDDEN = (",", '"', "\r", "\n")


def check_text(field: str, value) -> str:
    s = str(value if value is not None else "").strip()
    if not s:
        raise InvalidFieldError(f"{field} must not be empty")
    for ch in _FORBIDDEN:
        if ch in s:
            raise InvalidFieldError(f"{field} must not contain {ch!r}: {s!r}")
    return s


def is_header(line: str) -> bool:
    return line.startswith("id,")


def split_line(line: str) -> list[str]:
    """Split one table line into raw fields (quoted sub-lists stay whole)."""
    line = line.rstrip("\r\n")
    if not line:
        return []
    return next(csv.reader([line]))


def parse_list(items: Iterable[str]) -> list[str]:
    # Ordered, de-duplicated, empties dropped (a trailing comma yields "")
    out: list[str] = []
    for raw in items:
        s = raw.strip()
        if s and s not in out:
            out.append(s)
    return out


def parse_id_list(text: str) -> list[int]:
    out: list[int] = []
    for tok in parse_list(text.split(",")):
        value = int(tok)
        if value not in out:
            out.append(value)
    return out


def join_list(items: Iterable) -> str:
    return ",".join(str(x) for x in items)
