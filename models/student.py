from __future__ import annotations

from dataclasses import dataclass, field
from typing import ClassVar

from utils.codec import check_text, join_list, parse_list


@dataclass
class Student:
    HEADER: ClassVar[str] = "id,name,email,password,active,enrolled_courses"
    TABLE: ClassVar[str] = "students"

    id: int
    name: str
    email: str
    password: str
    active: bool = True
    # course codes, in enrollment order
    enrolled_courses: list[str] = field(default_factory=list)

    @classmethod
    def from_fields(cls, fields: list[str]) -> "Student":
        if len(fields) < 5:
            raise ValueError(f"student line needs 5+ fields, got {len(fields)}")
        return cls(
            id=int(fields[0]),
            name=fields[1].strip(),
            email=fields[2].strip(),
            password=fields[3].strip(),
            active=int(fields[4]) == 1,
            enrolled_courses=parse_list(fields[5:]),
        )

    def to_line(self) -> str:
        for name in ("name", "email", "password"):
            check_text(name, getattr(self, name))
        for code in self.enrolled_courses:
            check_text("course code", code)
        # trailing comma keeps the course column present when the list is empty
        courses = join_list(self.enrolled_courses)
        return f"{int(self.id)},{self.name},{self.email},{self.password},{int(bool(self.active))},{courses}"

    def is_enrolled(self, code: str) -> bool:
        return code in self.enrolled_courses

    def __repr__(self) -> str:
        return f"<Student {self.id} {self.email}>"
