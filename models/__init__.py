from models.admin import Admin
from models.course import Course
from models.faculty import Faculty
from models.student import Student

__all__ = ["Admin", "Course", "Faculty", "Student"]
