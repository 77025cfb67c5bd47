from services.integrity import check_tables
from utils.roster_import import find_roster_files, import_roster


def _write(directory, name, text):
    (directory / name).write_text(text, encoding="utf-8")


def _roster(tmp_path):
    d = tmp_path / "roster"
    d.mkdir()
    _write(d, "faculty.csv", "id,name,email,password\n10,Dr Smith,smith@x.com,fpw\n")
    _write(d, "students.csv", "student_id,Name,email,password,active\n1,Ann,ann@x.com,pw,1\n2,Bob,bob@x.com,pw,0\n")
    _write(d, "courses.csv", "id,code,course_name,seats,credits,faculty_id\n100,CS101,Intro,30,3,10\n101,CS102,Orphan,5,3,99\n")
    _write(d, "enrollments.csv", "student_id,course_id\n1,100\n")
    return d


def test_find_roster_files(tmp_path):
    d = _roster(tmp_path)
    assert set(find_roster_files(d)) == {"faculty", "students", "courses", "enrollments"}
    assert find_roster_files(tmp_path / "missing") == {}


def test_import_roster(store, tmp_path):
    summary = import_roster(store, _roster(tmp_path))

    assert summary.inserted == {"faculty": 1, "students": 2, "courses": 1, "enrollments": 1}
    # course owned by an unknown faculty id
    assert summary.skipped["courses"] == 1
    assert store.students.find_by_id(2).active is False
    assert store.courses.find_by_id(100).students == [1]
    assert store.faculty.find_by_id(10).offered_courses == ["CS101"]
    assert check_tables(store) == []


def test_import_is_repeatable(store, tmp_path):
    d = _roster(tmp_path)
    import_roster(store, d)
    again = import_roster(store, d)

    assert sum(again.inserted.values()) == 0
    assert again.skipped == {"faculty": 1, "students": 2, "courses": 2, "enrollments": 1}
    assert len(store.students.all()) == 2


def test_bad_rows_are_reported(store, tmp_path):
    d = tmp_path / "roster"
    d.mkdir()
    _write(d, "students.csv", "id,name,email,password\n,NoId,n@x.com,pw\n3,Cy,cy@x.com,pw\n")

    summary = import_roster(store, d)

    assert summary.inserted["students"] == 1
    assert len(summary.errors) == 1
    assert "id is required" in summary.errors[0]
