"""SMS message bodies for appointment notifications."""

from __future__ import annotations

from datetime import datetime
from typing import Dict
from zoneinfo import ZoneInfo

MAX_SMS_LENGTH = 1600
DEFAULT_CANCELLATION_REASON = "unforeseen circumstances"

SMS_TEMPLATES: Dict[str, str] = {
    "reminder": (
        "Hi {patient_name}, this is a reminder for your appointment at {clinic_name} "
        "on {appointment_date} with {doctor_name}. Please arrive 15 minutes early. "
        "Reply STOP to opt out."
    ),
    "confirmation": (
        "Hi {patient_name}, your appointment at {clinic_name} has been confirmed for "
        "{appointment_date} with {doctor_name}. We look forward to seeing you! "
        "Reply STOP to opt out."
    ),
    "cancellation": (
        "Hi {patient_name}, we regret to inform you that your appointment at "
        "{clinic_name} on {appointment_date} has been cancelled due to {reason}. "
        "Please call us to reschedule. Reply STOP to opt out."
    ),
    "test": (
        "Hello from CarePulse! This is a test message to verify SMS functionality. "
        "Time: {sent_at}"
    ),
}


def format_appointment_date(value: datetime, tz: ZoneInfo) -> str:
    """Render e.g. ``Monday, 20 October 2026 at 02:30 PM`` in clinic time."""

    local = value.replace(tzinfo=tz) if value.tzinfo is None else value.astimezone(tz)
    return f"{local:%A}, {local.day} {local:%B %Y} at {local:%I:%M %p}"


def render_reminder(
    *, patient_name: str, doctor_name: str, appointment_date: str, clinic_name: str
) -> str:
    return SMS_TEMPLATES["reminder"].format(
        patient_name=patient_name,
        doctor_name=doctor_name,
        appointment_date=appointment_date,
        clinic_name=clinic_name,
    )


def render_confirmation(
    *, patient_name: str, doctor_name: str, appointment_date: str, clinic_name: str
) -> str:
    return SMS_TEMPLATES["confirmation"].format(
        patient_name=patient_name,
        doctor_name=doctor_name,
        appointment_date=appointment_date,
        clinic_name=clinic_name,
    )


def render_cancellation(
    *,
    patient_name: str,
    appointment_date: str,
    clinic_name: str,
    reason: str | None = None,
) -> str:
    return SMS_TEMPLATES["cancellation"].format(
        patient_name=patient_name,
        appointment_date=appointment_date,
        clinic_name=clinic_name,
        reason=reason or DEFAULT_CANCELLATION_REASON,
    )


def render_test(sent_at: datetime, tz: ZoneInfo) -> str:
    local = sent_at.astimezone(tz)
    return SMS_TEMPLATES["test"].format(sent_at=f"{local:%d/%m/%Y, %I:%M:%S %p}")


__all__ = [
    "DEFAULT_CANCELLATION_REASON",
    "MAX_SMS_LENGTH",
    "SMS_TEMPLATES",
    "format_appointment_date",
    "render_cancellation",
    "render_confirmation",
    "render_reminder",
    "render_test",
]
