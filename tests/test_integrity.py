import dataclasses

from models import Course
from services import registration
from services.integrity import check_tables, repair_tables
from services.registration import locked_tables


def test_consistent_tables_have_no_problems(seeded):
    registration.enroll(seeded, 1, 100)
    assert check_tables(seeded) == []


def test_check_reports_broken_references(seeded):
    seeded.courses.replace_all([
        Course(id=100, code="CS101", name="Intro", capacity=2, enrolled=1, credits=3, faculty_id=10, students=[1, 42]),
        Course(id=200, code="MA201", name="Algebra", capacity=30, enrolled=0, credits=4, faculty_id=77),
    ])
    problems = check_tables(seeded)

    assert any("says 1 enrolled but lists 2" in p for p in problems)
    assert any("unknown student 42" in p for p in problems)
    assert any("student 1, but the student does not list" in p for p in problems)
    assert any("unknown faculty 77" in p for p in problems)


def test_repair_recomputes_enrolled(seeded):
    registration.enroll(seeded, 1, 100)
    course = seeded.courses.find_by_id(100)
    seeded.courses.replace_all([
        dataclasses.replace(course, enrolled=5) if c.id == 100 else c for c in seeded.courses.all()
    ])

    result = repair_tables(seeded)

    assert result == {"journal_replayed": 0, "journal_abandoned": 0, "enrolled_fixed": 1}
    assert seeded.courses.find_by_id(100).enrolled == 1
    assert check_tables(seeded) == []


def _interrupted_enroll(store, student_id, course_id):
    """Prepare temps and write the journal entry, then stop before any rename."""
    with locked_tables(store) as t:
        courses, students = t["courses"], t["students"]
        course, student = courses.get(course_id), students.get(student_id)
        new_course = dataclasses.replace(course, students=[student_id], enrolled=1)
        new_student = dataclasses.replace(student, enrolled_courses=[course.code])
        renames = [
            (courses.prepare([new_course if c.id == course_id else c for c in courses.records()]),
             store.courses.path),
            (students.prepare([new_student if s.id == student_id else s for s in students.records()]),
             store.students.path),
        ]
        store.journal.begin(["courses", "students"], renames)


def test_interrupted_commit_is_rolled_forward(seeded):
    _interrupted_enroll(seeded, 1, 100)
    assert len(seeded.journal.pending()) == 1
    assert seeded.courses.find_by_id(100).students == []

    result = repair_tables(seeded)

    assert result["journal_replayed"] == 1
    assert seeded.journal.pending() == []
    assert seeded.courses.find_by_id(100).students == [1]
    assert seeded.students.find_by_id(1).enrolled_courses == ["CS101"]
    assert check_tables(seeded) == []


def test_next_workflow_recovers_first(seeded):
    _interrupted_enroll(seeded, 1, 100)

    # any coordinator operation takes all three locks and replays the entry
    assert registration.enroll(seeded, 1, 100).value == "already_enrolled"
    assert seeded.journal.pending() == []


def test_commit_is_abandoned_whole_when_a_target_changed(seeded):
    _interrupted_enroll(seeded, 1, 100)
    # a single-table writer touched students.csv after the crash
    seeded.students.update_in_place(2, password="qq")

    result = repair_tables(seeded)

    assert result["journal_replayed"] == 0
    assert result["journal_abandoned"] == 1
    assert seeded.journal.pending() == []
    assert seeded.students.find_by_id(2).password == "qq"
    assert seeded.students.find_by_id(1).enrolled_courses == []
    assert seeded.courses.find_by_id(100).students == []
    assert seeded.students.temp_files() == []
    assert seeded.courses.temp_files() == []
    assert check_tables(seeded) == []


def test_length_changing_write_also_abandons_the_commit(seeded):
    _interrupted_enroll(seeded, 1, 100)
    seeded.students.update_in_place(2, name="Robert")

    repair_tables(seeded)

    assert seeded.students.find_by_id(2).name == "Robert"
    assert seeded.courses.find_by_id(100).students == []
    assert check_tables(seeded) == []


def test_partly_applied_commit_is_always_finished(seeded):
    _interrupted_enroll(seeded, 1, 100)
    # crash after the courses rename: the students rename must follow
    _, entry = seeded.journal.pending()[0]
    first = entry["renames"][0]
    assert first["target"] == "courses.csv"
    (seeded.data_dir / first["tmp"]).replace(seeded.courses.path)

    result = repair_tables(seeded)

    assert result["journal_replayed"] == 1
    assert seeded.courses.find_by_id(100).students == [1]
    assert seeded.students.find_by_id(1).enrolled_courses == ["CS101"]
    assert check_tables(seeded) == []


def test_orphan_temp_files_are_removed(seeded):
    orphan = seeded.courses.path.with_name(f".{seeded.courses.path.name}.deadbeef.tmp")
    orphan.write_text("garbage\n", encoding="utf-8")

    repair_tables(seeded)

    assert not orphan.exists()
    assert len(seeded.courses.all()) == 2
