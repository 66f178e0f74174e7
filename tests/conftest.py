from __future__ import annotations

from datetime import date

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool

from app.core.config import Settings
from app.db.session import Database
from app.domain.access import UserRole
from app.main import create_app
from app.models import Doctor, Patient, User
from app.services.storage import MockStorage

STAFF_USER_ID = "user_staff01"
DOCTOR_USER_ID = "user_drchen"
OTHER_DOCTOR_USER_ID = "user_drwilson"
PATIENT_USER_ID = "user_johndoe"
OTHER_PATIENT_USER_ID = "user_emilytan"

DOCTOR_ID = "doctor_chen01"
OTHER_DOCTOR_ID = "doctor_wilson01"
PATIENT_ID = "patient_john01"
OTHER_PATIENT_ID = "patient_emily01"


def auth_headers(user_id: str, role: UserRole) -> dict[str, str]:
    return {"X-User-ID": user_id, "X-User-Role": role.value}


@pytest.fixture
def settings() -> Settings:
    return Settings(
        _env_file=None,
        database_url="sqlite://",
        sms_mock_mode=True,
        timezone="Asia/Singapore",
        enforce_operating_hours=False,
        reminders_enabled=False,
        storage_mock_base_url="http://testserver",
        rate_limit_requests=1000,
    )


@pytest.fixture
def database():
    db = Database(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    db.create_all()
    yield db
    db.drop_all()
    db.dispose()


@pytest.fixture
def seeded(database):
    with database.session_scope() as session:
        session.add_all(
            [
                User(id=DOCTOR_USER_ID, email="dr.chen@carepulse.com", name="Dr. Sarah Chen",
                     role=UserRole.DOCTOR),
                User(id=OTHER_DOCTOR_USER_ID, email="dr.wilson@carepulse.com",
                     name="Dr. James Wilson", role=UserRole.DOCTOR),
                User(id=PATIENT_USER_ID, email="john.doe@email.com", name="John Doe",
                     role=UserRole.PATIENT),
                User(id=OTHER_PATIENT_USER_ID, email="emily.tan@gmail.com", name="Emily Tan",
                     role=UserRole.PATIENT),
            ]
        )
        session.flush()
        session.add_all(
            [
                Doctor(id=DOCTOR_ID, user_id=DOCTOR_USER_ID, first_name="Sarah",
                       last_name="Chen", email="dr.chen@carepulse.com",
                       specialization="General Physiotherapy"),
                Doctor(id=OTHER_DOCTOR_ID, user_id=OTHER_DOCTOR_USER_ID, first_name="James",
                       last_name="Wilson", email="dr.wilson@carepulse.com",
                       specialization="Sports Physiotherapy"),
                Patient(id=PATIENT_ID, user_id=PATIENT_USER_ID, first_name="John",
                        last_name="Doe", email="john.doe@email.com", phone_number="91234567",
                        date_of_birth=date(1985, 3, 15)),
                Patient(id=OTHER_PATIENT_ID, user_id=OTHER_PATIENT_USER_ID, first_name="Emily",
                        last_name="Tan", email="emily.tan@gmail.com",
                        phone_number="82345678", date_of_birth=date(1992, 7, 22)),
            ]
        )
    return database


@pytest.fixture
def storage(settings) -> MockStorage:
    return MockStorage(settings)


@pytest.fixture
def app(settings, seeded, storage):
    return create_app(settings, seeded, storage=storage)


@pytest.fixture
def client(app) -> TestClient:
    return TestClient(app)


@pytest.fixture
def staff_headers() -> dict[str, str]:
    return auth_headers(STAFF_USER_ID, UserRole.STAFF)


@pytest.fixture
def doctor_headers() -> dict[str, str]:
    return auth_headers(DOCTOR_USER_ID, UserRole.DOCTOR)


@pytest.fixture
def other_doctor_headers() -> dict[str, str]:
    return auth_headers(OTHER_DOCTOR_USER_ID, UserRole.DOCTOR)


@pytest.fixture
def patient_headers() -> dict[str, str]:
    return auth_headers(PATIENT_USER_ID, UserRole.PATIENT)


@pytest.fixture
def other_patient_headers() -> dict[str, str]:
    return auth_headers(OTHER_PATIENT_USER_ID, UserRole.PATIENT)
