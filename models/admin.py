from __future__ import annotations

from dataclasses import dataclass
from typing import ClassVar

from utils.codec import check_text


# Read-only for the running system; only init_tables.py seeds admins.csv.
@dataclass(frozen=True)
class Admin:
    HEADER: ClassVar[str] = "id,name,email,password"
    TABLE: ClassVar[str] = "admins"

    id: int
    name: str
    email: str
    password: str

    @classmethod
    def from_fields(cls, fields: list[str]) -> "Admin":
        if len(fields) < 4:
            raise ValueError(f"admin line needs 4 fields, got {len(fields)}")
        return cls(
            id=int(fields[0]),
            name=fields[1].strip(),
            email=fields[2].strip(),
            password=fields[3].strip(),
        )

    def to_line(self) -> str:
        for name in ("name", "email", "password"):
            check_text(name, getattr(self, name))
        return f"{int(self.id)},{self.name},{self.email},{self.password}"
