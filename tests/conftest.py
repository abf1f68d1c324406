import os
import tempfile

_TEST_DIR = tempfile.mkdtemp(prefix="courseload-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_TEST_DIR, 'test.db')}"
os.environ["AUDIT_LOG_DIR"] = os.path.join(_TEST_DIR, "logs")
os.environ["JWT_SECRET"] = "test-secret"

from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

import auth
import models
from database import Base, SessionLocal, engine
from main import app

PASSWORD = "s3cret-pass"
_password_hash = None


def password_hash():
    # bcrypt is slow on purpose; hash the shared password once.
    global _password_hash
    if _password_hash is None:
        _password_hash = auth.get_password_hash(PASSWORD)
    return _password_hash


def make_token(role, teacher_id, department_id=None, email=None):
    principal = auth.Principal(
        role=role,
        teacher_id=teacher_id,
        email=email or f"{teacher_id.lower()}@uni.edu",
        department_id=department_id,
    )
    return auth.create_access_token(principal)


def bearer(token):
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture(autouse=True)
def _fresh_database():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield


@pytest.fixture()
def db():
    session = SessionLocal()
    yield session
    session.rollback()
    session.close()


@pytest.fixture()
def client():
    return TestClient(app)


@pytest.fixture()
def school(db):
    """Two departments, their heads, a few teachers and two courses.

    Course 5 belongs to Mathematics (taught by T1, 60 students / 30 units).
    Course 6 belongs to Physics (taught by T3, 40 students / 20 units).
    """
    db.add_all([
        models.Department(department_id=1, department_name="Mathematics"),
        models.Department(department_id=2, department_name="Physics"),
        models.Skill(skill_id=1, skill_name="Theory"),
    ])
    db.flush()

    db.add_all([
        models.Teacher(
            teacher_id="HM",
            teacher_name="Hanh Mai",
            teacher_email="head.math@uni.edu",
            password=password_hash(),
            department_id=1,
        ),
        models.Teacher(
            teacher_id="HP",
            teacher_name="Huy Pham",
            teacher_email="head.physics@uni.edu",
            password=password_hash(),
            department_id=2,
        ),
        models.Teacher(
            teacher_id="T1",
            teacher_name="An Nguyen",
            teacher_email="t1@uni.edu",
            password=password_hash(),
            department_id=1,
        ),
        models.Teacher(
            teacher_id="T2",
            teacher_name="Binh Tran",
            teacher_email="t2@uni.edu",
            password=password_hash(),
            department_id=1,
        ),
        models.Teacher(
            teacher_id="T3",
            teacher_name="Chi Le",
            teacher_email="t3@uni.edu",
            department_id=2,
        ),
        models.Teacher(
            teacher_id="A1",
            teacher_name="Dung Vo",
            teacher_email="admin@uni.edu",
            password=password_hash(),
        ),
    ])
    db.flush()

    db.query(models.Department).filter(
        models.Department.department_id == 1
    ).update({"head_id": "HM"})
    db.query(models.Department).filter(
        models.Department.department_id == 2
    ).update({"head_id": "HP"})

    db.add_all([
        models.Subject(subject_id=10, subject_name="Linear Algebra", subject_code="MATH201", department_id=1),
        models.Subject(subject_id=20, subject_name="Mechanics", subject_code="PHYS101", department_id=2),
    ])
    db.flush()

    db.add_all([
        models.Course(
            course_id=5,
            course_year="2025-2026",
            semester_name="HK1",
            register_period="Period 1",
            subject_id=10,
            department_id=1,
            teacher_id="T1",
            course_name="Linear Algebra - Group 1",
            number_student=60,
            num_group=2,
            skill_id=1,
            unit=3,
            quantity=30,
            coef=Decimal("1.20"),
            coef_cttt=Decimal("1.50"),
            coef_far=Decimal("1.00"),
            num_out_hours=4,
            standard_hours=Decimal("45.50"),
            note="Morning sessions",
        ),
        models.Course(
            course_id=6,
            course_year="2025-2026",
            semester_name="HK1",
            subject_id=20,
            department_id=2,
            teacher_id="T3",
            course_name="Mechanics - Group 1",
            number_student=40,
            quantity=20,
        ),
    ])
    db.commit()
    return db


@pytest.fixture()
def admin_headers(monkeypatch):
    monkeypatch.setenv("ADMIN_EMAILS", "admin@uni.edu")
    return bearer(make_token(auth.ROLE_ADMIN, "A1", None, "admin@uni.edu"))


@pytest.fixture()
def math_head_headers():
    return bearer(make_token(auth.ROLE_HEAD, "HM", 1, "head.math@uni.edu"))


@pytest.fixture()
def physics_head_headers():
    return bearer(make_token(auth.ROLE_HEAD, "HP", 2, "head.physics@uni.edu"))


@pytest.fixture()
def teacher_headers():
    return bearer(make_token(auth.ROLE_TEACHER, "T1", 1, "t1@uni.edu"))
