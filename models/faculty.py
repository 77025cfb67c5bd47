from __future__ import annotations

from dataclasses import dataclass, field
from typing import ClassVar

from utils.codec import check_text, join_list, parse_list


@dataclass
class Faculty:
    HEADER: ClassVar[str] = "id,name,email,password,offered_courses"
    TABLE: ClassVar[str] = "faculty"

    id: int
    name: str
    email: str
    password: str
    offered_courses: list[str] = field(default_factory=list)

    @classmethod
    def from_fields(cls, fields: list[str]) -> "Faculty":
        if len(fields) < 4:
            raise ValueError(f"faculty line needs 4+ fields, got {len(fields)}")
        return cls(
            id=int(fields[0]),
            name=fields[1].strip(),
            email=fields[2].strip(),
            password=fields[3].strip(),
            offered_courses=parse_list(fields[4:]),
        )

    def to_line(self) -> str:
        for name in ("name", "email", "password"):
            check_text(name, getattr(self, name))
        for code in self.offered_courses:
            check_text("course code", code)
        return f"{int(self.id)},{self.name},{self.email},{self.password},{join_list(self.offered_courses)}"

    def __repr__(self) -> str:
        return f"<Faculty {self.id} {self.email}>"
