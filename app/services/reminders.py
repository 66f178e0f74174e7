"""Appointment notifications: confirmation, cancellation and timed reminders."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Protocol

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.core.config import Settings
from app.core.errors import NotificationError
from app.domain.appointments import AppointmentStatus
from app.domain.value_objects import PhoneNumber
from app.models import Appointment
from app.models.base import ensure_utc
from app.repositories import AppointmentRepository
from app.services.appointments import clinic_timezone
from app.services.sms_client import SMSClient, SMSResult, deliver_sms
from app.services.sms_templates import (
    format_appointment_date,
    render_cancellation,
    render_confirmation,
    render_reminder,
)

logger = logging.getLogger(__name__)

REMINDER_WINDOWS: dict[str, timedelta] = {
    "D-1": timedelta(days=1),
    "H-2": timedelta(hours=2),
}
REMINDER_TASKS: dict[str, str] = {
    "D-1": "jobs.send_reminder_d1",
    "H-2": "jobs.send_reminder_h2",
}


class TaskSender(Protocol):
    def send_task(self, name: str, args: Any = None, **options: Any) -> Any: ...


def _message_fields(settings: Settings, appointment: Appointment) -> dict[str, str]:
    tz = clinic_timezone(settings)
    return {
        "patient_name": appointment.patient.full_name,
        "appointment_date": format_appointment_date(ensure_utc(appointment.scheduled_at), tz),
        "clinic_name": settings.clinic_name,
    }


def send_confirmation(
    db: Session, settings: Settings, client: SMSClient, appointment: Appointment
) -> SMSResult:
    body = render_confirmation(
        doctor_name=appointment.doctor.full_name, **_message_fields(settings, appointment)
    )
    return deliver_sms(
        db,
        client,
        to=PhoneNumber(appointment.patient.phone_number),
        body=body,
        template="confirmation",
        appointment_id=appointment.id,
    )


def send_cancellation(
    db: Session,
    settings: Settings,
    client: SMSClient,
    appointment: Appointment,
    *,
    reason: str | None = None,
) -> SMSResult:
    body = render_cancellation(reason=reason, **_message_fields(settings, appointment))
    return deliver_sms(
        db,
        client,
        to=PhoneNumber(appointment.patient.phone_number),
        body=body,
        template="cancellation",
        appointment_id=appointment.id,
    )


def send_reminder(
    db: Session,
    settings: Settings,
    client: SMSClient,
    appointment_id: str,
    *,
    window: str,
) -> dict[str, Any]:
    """Send a timed reminder unless the appointment has moved on from SCHEDULED.

    Delivery failures are recorded in ``message_logs`` and reported in the
    result instead of raised, so the worker commits the failed attempt.
    """

    appointment = AppointmentRepository(db).get(appointment_id)
    outcome: dict[str, Any] = {"appointment_id": appointment_id, "reminder_window": window}
    if appointment.status is not AppointmentStatus.SCHEDULED:
        logger.info(
            "skipping reminder",
            extra={"appointment_id": appointment_id, "status": appointment.status.value},
        )
        outcome["status"] = "skipped"
        return outcome

    body = render_reminder(
        doctor_name=appointment.doctor.full_name, **_message_fields(settings, appointment)
    )
    try:
        result = deliver_sms(
            db,
            client,
            to=PhoneNumber(appointment.patient.phone_number),
            body=body,
            template="reminder",
            appointment_id=appointment.id,
            metadata={"window": window},
        )
    except NotificationError as exc:
        logger.warning(
            "reminder delivery failed",
            extra={"appointment_id": appointment_id, "window": window, "error": exc.message},
        )
        outcome.update(status="failed", error=exc.message)
        return outcome

    outcome.update(status="sent", message_sid=result.message_id)
    return outcome


def schedule_reminders(
    sender: TaskSender, appointment: Appointment, *, now: datetime | None = None
) -> list[dict[str, str]]:
    """Enqueue the D-1 and H-2 reminders that are still in the future."""

    current_time = now or datetime.now(timezone.utc)
    start = ensure_utc(appointment.scheduled_at)
    scheduled: list[dict[str, str]] = []
    for window, delta in REMINDER_WINDOWS.items():
        eta = start - delta
        if eta <= current_time:
            continue
        sender.send_task(REMINDER_TASKS[window], args=[appointment.id], eta=eta)
        scheduled.append({"window": window, "eta": eta.isoformat()})
    logger.info(
        "reminders scheduled",
        extra={"appointment_id": appointment.id, "count": len(scheduled)},
    )
    return scheduled


def find_overdue_scheduled(db: Session, *, now: datetime | None = None) -> list[Appointment]:
    """Appointments still SCHEDULED after their end time."""

    current_time = ensure_utc(now) if now else datetime.now(timezone.utc)
    stmt = (
        select(Appointment)
        .where(
            Appointment.status == AppointmentStatus.SCHEDULED,
            Appointment.scheduled_at < current_time,
        )
        .order_by(Appointment.scheduled_at)
    )
    overdue = []
    for appointment in db.execute(stmt).scalars().unique():
        end = ensure_utc(appointment.scheduled_at) + timedelta(
            minutes=appointment.duration_minutes
        )
        if end <= current_time:
            overdue.append(appointment)
    return overdue


__all__ = [
    "REMINDER_WINDOWS",
    "find_overdue_scheduled",
    "schedule_reminders",
    "send_cancellation",
    "send_confirmation",
    "send_reminder",
]
