import pytest

from app import create_app
from extensions import store as app_store
from models import Admin, Course, Faculty, Student
from services.store import TableStore


@pytest.fixture
def store(tmp_path):
    s = TableStore(tmp_path / "data")
    s.ensure_tables()
    return s


@pytest.fixture
def seeded(store):
    # one admin, two faculty, three students, two courses (nobody enrolled)
    store.admins.append(Admin(id=1, name="Root", email="root@x.com", password="rootpw"))
    store.faculty.append(Faculty(id=10, name="Dr Smith", email="smith@x.com", password="fpw"))
    store.faculty.append(Faculty(id=11, name="Dr Jones", email="jones@x.com", password="fpw"))
    store.students.append(Student(id=1, name="Ann", email="ann@x.com", password="pw"))
    store.students.append(Student(id=2, name="Bob", email="bob@x.com", password="pw"))
    store.students.append(Student(id=3, name="Cy", email="cy@x.com", password="pw", active=False))

    from services.registration import add_course
    add_course(store, 100, "CS101", "Intro", 2, 3, 10)
    add_course(store, 200, "MA201", "Algebra", 30, 4, 11)
    return store


@pytest.fixture
def app(tmp_path):
    app = create_app(DATA_DIR=str(tmp_path / "web"), TESTING=True, SECRET_KEY="test")
    app_store.ensure_tables()
    yield app


@pytest.fixture
def web_store(app):
    return app_store


@pytest.fixture
def client(app):
    return app.test_client()


def login(client, role, email, password):
    return client.post("/auth/login", json={"role": role, "email": email, "password": password})
