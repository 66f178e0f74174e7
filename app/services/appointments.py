"""Appointment booking, status changes and check-in."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from sqlalchemy.orm import Session

from app.core.config import Settings
from app.core.errors import ConflictError, InvalidTransitionError, RangeError
from app.domain.appointments import (
    ALLOWED_TRANSITIONS,
    INITIAL_STATUS,
    AppointmentStatus,
    AppointmentType,
    can_transition_to,
    format_time_slot,
    is_appointment_today,
)
from app.domain.identifiers import create_appointment_id, create_doctor_id, create_patient_id
from app.domain.value_objects import CLOSING_HOUR, OPENING_HOUR, AppointmentDuration
from app.models import Appointment, QueueStatus, QueueTicket
from app.models.base import ensure_utc
from app.repositories import (
    AppointmentRepository,
    DoctorRepository,
    PatientRepository,
    QueueRepository,
)

logger = logging.getLogger(__name__)

MINUTES_PER_PATIENT_AHEAD = 15

_TICKET_STATUS_FOR = {
    AppointmentStatus.IN_PROGRESS: QueueStatus.CALLED,
    AppointmentStatus.COMPLETED: QueueStatus.DONE,
    AppointmentStatus.CANCELLED: QueueStatus.CANCELLED,
}


def clinic_timezone(settings: Settings) -> ZoneInfo:
    """Return the clinic timezone, falling back to UTC."""

    try:
        return ZoneInfo(settings.timezone)
    except ZoneInfoNotFoundError:  # pragma: no cover - misconfiguration
        logger.warning("unknown timezone %s, using UTC", settings.timezone)
        return ZoneInfo("UTC")


def to_utc(value: datetime, tz: ZoneInfo) -> datetime:
    """Convert to UTC, reading naive values as clinic-local time."""

    if value.tzinfo is None:
        value = value.replace(tzinfo=tz)
    return value.astimezone(timezone.utc)


def local_day_bounds(target_date: date, tz: ZoneInfo) -> tuple[datetime, datetime]:
    start = datetime.combine(target_date, time.min, tzinfo=tz)
    end = start + timedelta(days=1)
    return start.astimezone(timezone.utc), end.astimezone(timezone.utc)


def _check_operating_hours(
    settings: Settings, duration: AppointmentDuration, start_utc: datetime, tz: ZoneInfo
) -> None:
    if not settings.enforce_operating_hours:
        return
    if not duration.fits_in_operating_hours(start_utc.astimezone(tz)):
        raise RangeError(
            f"Appointment must fall within operating hours "
            f"({OPENING_HOUR}:00-{CLOSING_HOUR}:00).",
            details={"scheduled_at": start_utc.isoformat(), "minutes": duration.minutes},
        )


def _check_schedule(
    repo: AppointmentRepository,
    *,
    doctor_id: str,
    start_utc: datetime,
    duration: AppointmentDuration,
    exclude_id: str | None = None,
) -> None:
    if repo.has_schedule_conflict(
        doctor_id=doctor_id,
        start=start_utc,
        duration_minutes=duration.minutes,
        exclude_id=exclude_id,
    ):
        raise ConflictError(
            "Doctor already has an appointment at this time",
            details={"doctor_id": doctor_id, "scheduled_at": start_utc.isoformat()},
        )


def book_appointment(
    db: Session,
    settings: Settings,
    *,
    patient_id: str,
    doctor_id: str,
    appointment_type: AppointmentType,
    scheduled_at: datetime,
    duration_minutes: int | None = None,
    reason: str | None = None,
    notes: str | None = None,
) -> Appointment:
    """Create an appointment in the initial ``SCHEDULED`` status."""

    patient = PatientRepository(db).get(create_patient_id(patient_id))
    doctor = DoctorRepository(db).get(create_doctor_id(doctor_id))
    if not doctor.is_active:
        raise ConflictError(
            "Doctor is not accepting appointments", details={"doctor_id": doctor.id}
        )

    duration = (
        AppointmentDuration(duration_minutes)
        if duration_minutes is not None
        else AppointmentDuration.for_appointment_type(appointment_type)
    )
    tz = clinic_timezone(settings)
    start_utc = to_utc(scheduled_at, tz)
    _check_operating_hours(settings, duration, start_utc, tz)

    repo = AppointmentRepository(db)
    _check_schedule(repo, doctor_id=doctor.id, start_utc=start_utc, duration=duration)

    appointment = Appointment(
        id=create_appointment_id(),
        patient_id=patient.id,
        doctor_id=doctor.id,
        type=appointment_type,
        status=INITIAL_STATUS,
        scheduled_at=start_utc,
        duration_minutes=duration.minutes,
        reason=reason,
        notes=notes,
    )
    repo.add(appointment, conflict_message="Appointment could not be booked")
    logger.info(
        "appointment booked",
        extra={
            "appointment_id": appointment.id,
            "doctor_id": doctor.id,
            "patient_id": patient.id,
            "minutes": duration.minutes,
        },
    )
    return appointment


def change_status(
    db: Session,
    appointment_id: str,
    target: AppointmentStatus | str,
    *,
    notes: str | None = None,
) -> Appointment:
    """The only code path that writes ``Appointment.status``.

    The row is locked before the transition table is consulted, so two
    concurrent requests cannot both move the same appointment.
    """

    repo = AppointmentRepository(db)
    appointment = repo.lock(appointment_id)
    current = appointment.status
    target_value = str(getattr(target, "value", target))

    if not can_transition_to(current, target):
        raise InvalidTransitionError(
            f"Cannot change appointment status from {current.value} to {target_value}",
            details={
                "from": current.value,
                "to": target_value,
                "allowed": sorted(s.value for s in ALLOWED_TRANSITIONS[current]),
            },
        )

    new_status = AppointmentStatus(target)
    changes: dict[str, Any] = {"status": new_status}
    if notes is not None:
        changes["notes"] = notes
    repo.update(appointment, **changes)

    ticket = QueueRepository(db).find_by_appointment(appointment.id)
    if ticket is not None and new_status in _TICKET_STATUS_FOR:
        ticket.status = _TICKET_STATUS_FOR[new_status]
        db.flush()

    logger.info(
        "appointment status changed",
        extra={
            "appointment_id": appointment.id,
            "from_status": current.value,
            "to_status": new_status.value,
        },
    )
    return appointment


def update_appointment(
    db: Session,
    settings: Settings,
    appointment_id: str,
    *,
    appointment_type: AppointmentType | None = None,
    scheduled_at: datetime | None = None,
    duration_minutes: int | None = None,
    reason: str | None = None,
    notes: str | None = None,
    status: AppointmentStatus | None = None,
) -> Appointment:
    repo = AppointmentRepository(db)
    appointment = repo.get(appointment_id)

    reschedule = any(
        value is not None for value in (appointment_type, scheduled_at, duration_minutes)
    )
    if reschedule:
        if appointment.status is not AppointmentStatus.SCHEDULED:
            raise ConflictError(
                "Only scheduled appointments can be rescheduled",
                details={"status": appointment.status.value},
            )
        tz = clinic_timezone(settings)
        duration = AppointmentDuration(
            duration_minutes if duration_minutes is not None else appointment.duration_minutes
        )
        start_utc = (
            to_utc(scheduled_at, tz)
            if scheduled_at is not None
            else ensure_utc(appointment.scheduled_at)
        )
        if scheduled_at is not None or duration_minutes is not None:
            _check_operating_hours(settings, duration, start_utc, tz)
            _check_schedule(
                repo,
                doctor_id=appointment.doctor_id,
                start_utc=start_utc,
                duration=duration,
                exclude_id=appointment.id,
            )
        changes: dict[str, Any] = {
            "scheduled_at": start_utc,
            "duration_minutes": duration.minutes,
        }
        if appointment_type is not None:
            changes["type"] = appointment_type
        repo.update(appointment, **changes)

    details: dict[str, Any] = {}
    if reason is not None:
        details["reason"] = reason
    if notes is not None:
        details["notes"] = notes
    if details:
        repo.update(appointment, **details)

    if status is not None and status is not appointment.status:
        appointment = change_status(db, appointment.id, status)
    return appointment


def delete_appointment(db: Session, appointment_id: str) -> None:
    repo = AppointmentRepository(db)
    appointment = repo.lock(appointment_id)
    if appointment.status is not AppointmentStatus.SCHEDULED:
        raise ConflictError(
            "Only scheduled appointments can be deleted; cancel it instead",
            details={"status": appointment.status.value},
        )
    repo.delete(appointment)
    logger.info("appointment deleted", extra={"appointment_id": appointment_id})


@dataclass(frozen=True)
class CheckInResult:
    appointment: Appointment
    ticket: QueueTicket
    patients_ahead: int

    @property
    def estimated_wait_minutes(self) -> int:
        return self.patients_ahead * MINUTES_PER_PATIENT_AHEAD


def _ordinal(number: int) -> str:
    if 10 <= number % 100 <= 20:
        suffix = "th"
    else:
        suffix = {1: "st", 2: "nd", 3: "rd"}.get(number % 10, "th")
    return f"{number}{suffix}"


def check_in(
    db: Session,
    settings: Settings,
    appointment_id: str,
    *,
    now: datetime | None = None,
) -> CheckInResult:
    """Issue a waiting-room ticket for a scheduled appointment happening today."""

    tz = clinic_timezone(settings)
    current_time = now or datetime.now(timezone.utc)

    appointment = AppointmentRepository(db).lock(appointment_id)
    if appointment.status is not AppointmentStatus.SCHEDULED:
        raise ConflictError(
            "Only scheduled appointments can be checked in",
            details={"status": appointment.status.value},
        )
    if not is_appointment_today(ensure_utc(appointment.scheduled_at), tz, current_time):
        raise ConflictError(
            "Appointment is not scheduled for today",
            details={"scheduled_at": ensure_utc(appointment.scheduled_at).isoformat()},
        )

    queue = QueueRepository(db)
    if queue.find_by_appointment(appointment.id) is not None:
        raise ConflictError(
            "Appointment is already checked in", details={"appointment_id": appointment.id}
        )

    queue_date = current_time.astimezone(tz).date()
    ticket = QueueTicket(
        appointment_id=appointment.id,
        patient_id=appointment.patient_id,
        doctor_id=appointment.doctor_id,
        queue_date=queue_date,
        queue_number=queue.next_number(queue_date),
        status=QueueStatus.CHECKED_IN,
        checked_in_at=current_time,
    )
    queue.add(ticket, conflict_message="Check-in collided with another check-in, retry")
    patients_ahead = queue.patients_ahead(ticket)
    logger.info(
        "patient checked in",
        extra={
            "appointment_id": appointment.id,
            "queue_number": ticket.queue_number,
            "patients_ahead": patients_ahead,
        },
    )
    return CheckInResult(appointment=appointment, ticket=ticket, patients_ahead=patients_ahead)


def serialize_appointment(appointment: Appointment, *, tz: ZoneInfo) -> dict[str, Any]:
    """Return a JSON-friendly representation of an appointment."""

    start = ensure_utc(appointment.scheduled_at)
    duration = AppointmentDuration(appointment.duration_minutes)
    end = duration.calculate_end_time(start)
    return {
        "id": appointment.id,
        "patient_id": appointment.patient_id,
        "doctor_id": appointment.doctor_id,
        "patient_name": appointment.patient.full_name if appointment.patient else None,
        "doctor_name": appointment.doctor.full_name if appointment.doctor else None,
        "type": appointment.type.value,
        "status": appointment.status.value,
        "allowed_transitions": sorted(s.value for s in ALLOWED_TRANSITIONS[appointment.status]),
        "scheduled_at": start.isoformat(),
        "scheduled_at_local": start.astimezone(tz).isoformat(),
        "ends_at": end.isoformat(),
        "time_slot": format_time_slot(start, duration.minutes, tz),
        "duration_minutes": duration.minutes,
        "duration_display": duration.format_for_display(),
        "duration_iso": duration.format_for_api(),
        "reason": appointment.reason,
        "notes": appointment.notes,
        "created_at": ensure_utc(appointment.created_at).isoformat(),
        "updated_at": ensure_utc(appointment.updated_at).isoformat(),
    }


def serialize_check_in(result: CheckInResult, *, tz: ZoneInfo) -> dict[str, Any]:
    ticket = result.ticket
    return {
        "appointment": serialize_appointment(result.appointment, tz=tz),
        "queue": {
            "id": ticket.id,
            "queue_number": ticket.queue_number,
            "queue_date": ticket.queue_date.isoformat(),
            "status": ticket.status.value,
            "checked_in_at": ensure_utc(ticket.checked_in_at).isoformat(),
            "patients_ahead": result.patients_ahead,
            "position": f"{_ordinal(result.patients_ahead + 1)} in queue",
            "estimated_wait_minutes": result.estimated_wait_minutes,
        },
    }


__all__ = [
    "CheckInResult",
    "book_appointment",
    "change_status",
    "check_in",
    "clinic_timezone",
    "delete_appointment",
    "local_day_bounds",
    "serialize_appointment",
    "serialize_check_in",
    "to_utc",
    "update_appointment",
]
