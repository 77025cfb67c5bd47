import pytest

from models import Course, Faculty, Student
from utils.codec import check_text, is_header, parse_id_list, parse_list, split_line
from utils.errors import InvalidFieldError


@pytest.mark.parametrize("bad", ["a,b", 'say "hi"', "two\nlines", "c\rr", "", "   "])
def test_check_text_rejects_delimiters_and_empty(bad):
    with pytest.raises(InvalidFieldError):
        check_text("name", bad)


def test_check_text_strips():
    assert check_text("name", "  Ann  ") == "Ann"


def test_header_detection():
    assert is_header(Student.HEADER + "\n")
    assert not is_header("7,Amy,amy@x.com,pw,1,\n")


def test_parse_list_keeps_order_and_drops_duplicates():
    assert parse_list(["CS101", " MA201", "", "CS101"]) == ["CS101", "MA201"]
    assert parse_id_list("3,1,3,,2") == [3, 1, 2]


def test_student_line_with_and_without_courses():
    s = Student.from_fields(split_line("7,Amy,amy@x.com,longerpassword,1,CS101\n"))
    assert s.enrolled_courses == ["CS101"]
    assert s.active

    empty = Student.from_fields(split_line("8,Ben,ben@x.com,pw,0,\n"))
    assert empty.enrolled_courses == []
    assert not empty.active
    assert empty.to_line() == "8,Ben,ben@x.com,pw,0,"


def test_course_student_list_is_quoted():
    c = Course.from_fields(split_line('100,CS101,Intro,30,2,3,10,"4,5"\n'))
    assert c.students == [4, 5]
    assert c.to_line() == '100,CS101,Intro,30,2,3,10,"4,5"'
    assert Course(id=1, code="X1", name="X", capacity=1).to_line().endswith(',""')


def test_faculty_offered_courses():
    f = Faculty.from_fields(split_line("10,Dr Smith,smith@x.com,pw,CS101,MA201\n"))
    assert f.offered_courses == ["CS101", "MA201"]


def test_malformed_line_raises():
    with pytest.raises(ValueError):
        Student.from_fields(split_line("x,Amy,amy@x.com,pw,1\n"))
