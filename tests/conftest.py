"""
Shared pytest fixtures.

The environment is pointed at a throwaway SQLite file before any carebook
module is imported, since configuration is read at import time.
"""

import os
import tempfile
from datetime import date, datetime, time, timedelta

_DB_DIR = tempfile.mkdtemp(prefix="carebook-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_DB_DIR, 'carebook-test.db')}"
os.environ["SECRET_KEY"] = "test-secret-key-not-for-production"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["DB_LOG_SLOW_QUERIES"] = "false"
os.environ.pop("ADMIN_EMAIL", None)
os.environ.pop("ADMIN_PASSWORD", None)

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from carebook import models  # noqa: E402
from carebook.database import Base, SessionLocal, engine  # noqa: E402
from carebook.domain.access import Principal  # noqa: E402
from carebook.security_utils import hash_password_bcrypt  # noqa: E402

PASSWORD = "Secret123!"


def first_monday_after(day: date) -> date:
    return day + timedelta(days=(7 - day.weekday()) % 7 or 7)


# A Monday comfortably in the future, so the real clock used by the API never
# reaches it, and a fixed clock at 08:00 that morning for domain tests.
WORKDAY = first_monday_after(date.today() + timedelta(days=7))
NOW = datetime.combine(WORKDAY, time(8, 0))
SATURDAY = WORKDAY + timedelta(days=5)


# ============================================================================
# DATABASE FIXTURES
# ============================================================================


@pytest.fixture
def db():
    """Fresh schema per test"""
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def clock():
    return lambda: NOW


# ============================================================================
# TEST DATA
# ============================================================================


def make_user(db, role: str, email: str, full_name: str, phone=None, is_active=True) -> models.User:
    user = models.User(
        email=email,
        password_hash=hash_password_bcrypt(PASSWORD),
        full_name=full_name,
        role=role,
        phone=phone,
        is_active=is_active,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def make_doctor(
    db,
    email: str = "dr.rao@example.com",
    full_name: str = "Dr. Anil Rao",
    specialization: str = "Cardiology",
    work_start: str = "09:00",
    work_end: str = "17:00",
    verified: bool = True,
) -> models.User:
    user = make_user(db, "doctor", email, full_name)
    profile = models.DoctorProfile(
        user_id=user.id,
        specialization=specialization,
        bio="Consultant cardiologist",
        experience_years=12,
        work_start=work_start,
        work_end=work_end,
        working_days=[0, 1, 2, 3, 4],
        is_verified=verified,
    )
    profile.consultation_types = [
        models.ConsultationType(type="in_person", fee=800, duration_minutes=30),
        models.ConsultationType(type="video", fee=1200, duration_minutes=25),
        models.ConsultationType(type="phone", fee=500, duration_minutes=15),
    ]
    db.add(profile)
    db.commit()
    db.refresh(user)
    return user


def as_principal(user: models.User) -> Principal:
    return Principal.from_user(user)


@pytest.fixture
def doctor(db):
    return make_doctor(db)


@pytest.fixture
def other_doctor(db):
    return make_doctor(db, email="dr.mehta@example.com", full_name="Dr. Kavya Mehta", specialization="Dermatology")


@pytest.fixture
def patient(db):
    return make_user(db, "patient", "priya.sharma@example.com", "Priya Sharma", phone="9876543210")


@pytest.fixture
def other_patient(db):
    return make_user(db, "patient", "rahul.verma@example.com", "Rahul Verma", phone="9123456780")


@pytest.fixture
def admin(db):
    return make_user(db, "admin", "admin@example.com", "System Administrator")


@pytest.fixture
def client(db):
    from carebook.main import app

    with TestClient(app) as test_client:
        yield test_client


def login(client, email: str, password: str = PASSWORD) -> dict:
    response = client.post("/auth/login", json={"email": email, "password": password})
    assert response.status_code == 200, response.text
    return {"Authorization": f"Bearer {response.json()['token']}"}
