from __future__ import annotations

from dataclasses import dataclass, field
from typing import ClassVar

from utils.codec import check_text, join_list, parse_id_list


@dataclass
class Course:
    HEADER: ClassVar[str] = "id,code,course_name,capacity,enrolled,credits,faculty_id,students"
    TABLE: ClassVar[str] = "courses"

    id: int
    code: str
    name: str
    capacity: int
    enrolled: int = 0
    credits: int = 0
    faculty_id: int = 0
    # ids of enrolled students; `enrolled` mirrors len(students)
    students: list[int] = field(default_factory=list)

    @classmethod
    def from_fields(cls, fields: list[str]) -> "Course":
        if len(fields) < 7:
            raise ValueError(f"course line needs 7+ fields, got {len(fields)}")
        students = parse_id_list(fields[7]) if len(fields) > 7 else []
        return cls(
            id=int(fields[0]),
            code=fields[1].strip(),
            name=fields[2].strip(),
            capacity=int(fields[3]),
            enrolled=int(fields[4]),
            credits=int(fields[5]),
            faculty_id=int(fields[6]),
            students=students,
        )

    def to_line(self) -> str:
        check_text("code", self.code)
        check_text("course_name", self.name)
        # the student list is always quoted, "" when nobody is enrolled
        return (
            f"{int(self.id)},{self.code},{self.name},{int(self.capacity)},"
            f"{int(self.enrolled)},{int(self.credits)},{int(self.faculty_id)},"
            f'"{join_list(self.students)}"'
        )

    @property
    def is_full(self) -> bool:
        return self.enrolled >= self.capacity

    def __repr__(self) -> str:
        return f"<Course {self.id} {self.code}>"
