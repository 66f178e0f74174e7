from __future__ import annotations

import logging
from datetime import date, datetime, time, timezone
from zoneinfo import ZoneInfo

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.core.config import Settings, get_settings
from app.db.session import Database
from app.domain.access import UserRole
from app.domain.appointments import INITIAL_STATUS, AppointmentType
from app.domain.value_objects import AppointmentDuration, PhoneNumber
from app.logging_utils import configure_logging
from app.models import Appointment, Doctor, Patient, User
from app.services.appointments import clinic_timezone

logger = logging.getLogger(__name__)

STAFF_USERS: list[tuple[str, str, str]] = [
    ("user_seed_front_desk", "frontdesk@carepulse.com", "Front Desk"),
]

DOCTORS: list[tuple[str, str, str, str]] = [
    ("user_seed_sarah_chen", "Sarah", "Chen", "General Physiotherapy"),
    ("user_seed_james_wilson", "James", "Wilson", "Sports Physiotherapy"),
    ("user_seed_maria_rodriguez", "Maria", "Rodriguez", "Pediatric Physiotherapy"),
]

PATIENTS: list[tuple[str, str, str, str, str, date, str]] = [
    (
        "user_seed_john_doe",
        "John",
        "Doe",
        "john.doe@email.com",
        "+65 9123 4567",
        date(1985, 3, 15),
        "123 Orchard Road, Singapore 238863",
    ),
    (
        "user_seed_emily_tan",
        "Emily",
        "Tan",
        "emily.tan@gmail.com",
        "+65 8234 5678",
        date(1992, 7, 22),
        "456 Marina Bay, Singapore 018956",
    ),
    (
        "user_seed_michael_lee",
        "Michael",
        "Lee",
        "michael.lee@hotmail.com",
        "+65 9345 6789",
        date(1978, 11, 8),
        "789 Sentosa Cove, Singapore 098234",
    ),
]

# (patient index, doctor index, type, local start, reason)
TODAY_APPOINTMENTS: list[tuple[int, int, AppointmentType, time, str]] = [
    (0, 0, AppointmentType.CHECK_UP, time(10, 0), "Regular session for lower back pain"),
    (1, 1, AppointmentType.FIRST_CONSULT, time(11, 0), "Knee pain after running"),
    (2, 0, AppointmentType.FOLLOW_UP, time(14, 30), "Shoulder rehabilitation follow-up"),
]


def ensure_user(
    session: Session, user_id: str, email: str, name: str, role: UserRole, phone: str | None = None
) -> User:
    user = session.get(User, user_id)
    if user:
        return user
    user = User(id=user_id, email=email, name=name, role=role, phone_number=phone)
    session.add(user)
    session.flush()
    return user


def ensure_staff(session: Session) -> None:
    for user_id, email, name in STAFF_USERS:
        ensure_user(session, user_id, email, name, UserRole.STAFF)
    logger.info("ensured staff users", extra={"total": len(STAFF_USERS)})


def ensure_doctors(session: Session) -> list[Doctor]:
    created = 0
    doctors: list[Doctor] = []
    for user_id, first_name, last_name, specialization in DOCTORS:
        email = f"dr.{first_name}.{last_name}@carepulse.com".lower()
        doctor = session.execute(
            select(Doctor).where(Doctor.email == email)
        ).scalar_one_or_none()
        if not doctor:
            user = ensure_user(
                session, user_id, email, f"Dr. {first_name} {last_name}", UserRole.DOCTOR
            )
            doctor = Doctor(
                user_id=user.id,
                first_name=first_name,
                last_name=last_name,
                email=email,
                specialization=specialization,
                is_active=True,
            )
            session.add(doctor)
            session.flush()
            created += 1
        doctors.append(doctor)

    logger.info("ensured doctors", extra={"created": created, "total": len(doctors)})
    return doctors


def ensure_patients(session: Session) -> list[Patient]:
    created = 0
    patients: list[Patient] = []
    for user_id, first_name, last_name, email, phone, born, address in PATIENTS:
        patient = session.execute(
            select(Patient).where(Patient.email == email)
        ).scalar_one_or_none()
        if not patient:
            digits = PhoneNumber(phone).value
            user = ensure_user(
                session, user_id, email, f"{first_name} {last_name}", UserRole.PATIENT, digits
            )
            patient = Patient(
                user_id=user.id,
                first_name=first_name,
                last_name=last_name,
                email=email,
                phone_number=digits,
                date_of_birth=born,
                address=address,
            )
            session.add(patient)
            session.flush()
            created += 1
        patients.append(patient)

    logger.info("ensured patients", extra={"created": created, "total": len(patients)})
    return patients


def ensure_today_appointments(
    session: Session, tz: ZoneInfo, patients: list[Patient], doctors: list[Doctor]
) -> None:
    today = datetime.now(tz).date()
    created = 0
    for patient_index, doctor_index, appointment_type, start, reason in TODAY_APPOINTMENTS:
        doctor = doctors[doctor_index]
        scheduled_at = datetime.combine(today, start, tzinfo=tz).astimezone(timezone.utc)
        existing = session.execute(
            select(Appointment).where(
                Appointment.doctor_id == doctor.id,
                Appointment.scheduled_at == scheduled_at,
            )
        ).scalar_one_or_none()
        if existing:
            continue
        session.add(
            Appointment(
                patient_id=patients[patient_index].id,
                doctor_id=doctor.id,
                type=appointment_type,
                status=INITIAL_STATUS,
                scheduled_at=scheduled_at,
                duration_minutes=AppointmentDuration.for_appointment_type(appointment_type).minutes,
                reason=reason,
            )
        )
        created += 1

    logger.info("ensured today's appointments", extra={"created": created, "day": today})


def seed(settings: Settings | None = None, database: Database | None = None) -> None:
    settings = settings or get_settings()
    configure_logging(settings.log_level)
    logger.info("starting seed process")

    database = database or Database(settings.database_url)
    database.create_all()
    with database.session_scope() as session:
        ensure_staff(session)
        doctors = ensure_doctors(session)
        patients = ensure_patients(session)
        ensure_today_appointments(session, clinic_timezone(settings), patients, doctors)
    logger.info("seed complete")


if __name__ == "__main__":  # pragma: no cover - script entrypoint
    seed()
