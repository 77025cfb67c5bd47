import threading

import pytest

from services import registration
from services.integrity import check_tables
from utils.errors import Outcome


def _course(store, course_id):
    return store.courses.find_by_id(course_id)


def test_enroll_updates_both_sides(seeded):
    assert registration.enroll(seeded, 1, 100) is Outcome.SUCCESS

    course = _course(seeded, 100)
    assert course.students == [1]
    assert course.enrolled == 1
    assert seeded.students.find_by_id(1).enrolled_courses == ["CS101"]
    assert check_tables(seeded) == []


def test_enroll_twice_is_reported_not_repeated(seeded):
    registration.enroll(seeded, 1, 100)
    assert registration.enroll(seeded, 1, 100) is Outcome.ALREADY_ENROLLED
    assert _course(seeded, 100).students == [1]
    assert seeded.students.find_by_id(1).enrolled_courses == ["CS101"]


def test_enroll_unknown_ids(seeded):
    assert registration.enroll(seeded, 1, 999) is Outcome.COURSE_NOT_FOUND
    assert registration.enroll(seeded, 42, 100) is Outcome.USER_NOT_FOUND


def test_course_full(seeded):
    assert registration.enroll(seeded, 1, 100) is Outcome.SUCCESS
    assert registration.enroll(seeded, 2, 100) is Outcome.SUCCESS
    before = (seeded.courses.path.read_bytes(), seeded.students.path.read_bytes())

    assert registration.enroll(seeded, 3, 100) is Outcome.COURSE_FULL

    # rejected workflows leave every table byte-for-byte untouched
    assert (seeded.courses.path.read_bytes(), seeded.students.path.read_bytes()) == before
    assert _course(seeded, 100).enrolled == 2


def test_concurrent_enrolls_respect_capacity(seeded):
    results = []
    barrier = threading.Barrier(3)

    def worker(sid):
        barrier.wait()
        results.append(registration.enroll(seeded, sid, 100))

    threads = [threading.Thread(target=worker, args=(sid,)) for sid in (1, 2, 3)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert results.count(Outcome.SUCCESS) == 2
    assert results.count(Outcome.COURSE_FULL) == 1
    assert _course(seeded, 100).enrolled == 2
    assert check_tables(seeded) == []


def test_unenroll(seeded):
    assert registration.unenroll(seeded, 1, 100) is Outcome.NOT_ENROLLED
    registration.enroll(seeded, 1, 100)
    registration.enroll(seeded, 1, 200)

    assert registration.unenroll(seeded, 1, 100) is Outcome.SUCCESS
    assert _course(seeded, 100).students == []
    assert seeded.students.find_by_id(1).enrolled_courses == ["MA201"]
    assert check_tables(seeded) == []


def test_add_course_sets_owner(seeded):
    assert registration.add_course(seeded, 300, "PH301", "Physics", 10, 2, 10) is Outcome.SUCCESS
    assert seeded.faculty.find_by_id(10).offered_courses == ["CS101", "PH301"]
    assert _course(seeded, 300).faculty_id == 10


def test_add_course_rejects_duplicates_and_unknown_owner(seeded):
    assert registration.add_course(seeded, 100, "NEW1", "Dup id", 10, 2, 10) is Outcome.DUPLICATE_ID
    assert registration.add_course(seeded, 301, "CS101", "Dup code", 10, 2, 10) is Outcome.DUPLICATE_ID
    assert registration.add_course(seeded, 302, "NEW2", "Orphan", 10, 2, 99) is Outcome.USER_NOT_FOUND
    assert seeded.courses.find_by_id(302) is None


def test_add_course_rejects_negative_numbers(seeded):
    with pytest.raises(ValueError):
        registration.add_course(seeded, 303, "NEG1", "Negative", -1, 2, 10)


def test_remove_course_cascades(seeded):
    registration.enroll(seeded, 1, 100)
    registration.enroll(seeded, 2, 100)
    registration.enroll(seeded, 1, 200)

    assert registration.remove_course(seeded, 100, 10) is Outcome.SUCCESS

    assert _course(seeded, 100) is None
    assert seeded.students.find_by_id(1).enrolled_courses == ["MA201"]
    assert seeded.students.find_by_id(2).enrolled_courses == []
    assert seeded.faculty.find_by_id(10).offered_courses == []
    assert check_tables(seeded) == []


def test_remove_course_by_other_faculty(seeded):
    registration.enroll(seeded, 1, 100)
    assert registration.remove_course(seeded, 100, 11) is Outcome.UNAUTHORIZED
    assert registration.remove_course(seeded, 999, 10) is Outcome.COURSE_NOT_FOUND
    assert _course(seeded, 100).students == [1]


def test_transfer_course(seeded):
    assert registration.transfer_course(seeded, 100, 11, 10) is Outcome.UNAUTHORIZED
    assert registration.transfer_course(seeded, 100, 10, 99) is Outcome.USER_NOT_FOUND
    assert registration.transfer_course(seeded, 100, 10, 11) is Outcome.SUCCESS

    assert _course(seeded, 100).faculty_id == 11
    assert seeded.faculty.find_by_id(10).offered_courses == []
    assert seeded.faculty.find_by_id(11).offered_courses == ["MA201", "CS101"]
    assert check_tables(seeded) == []


def test_without_journal_commits(seeded):
    seeded.journal_commits = False
    assert registration.enroll(seeded, 1, 100) is Outcome.SUCCESS
    assert check_tables(seeded) == []
    assert not (seeded.data_dir / ".journal").exists() or seeded.journal.pending() == []


def test_no_temp_files_left_behind(seeded):
    registration.enroll(seeded, 1, 100)
    registration.remove_course(seeded, 100, 10)
    for table in seeded.tables().values():
        assert table.temp_files() == []
