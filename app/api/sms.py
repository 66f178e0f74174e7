"""Outbound SMS endpoints for clinic staff and doctors."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any
from zoneinfo import ZoneInfo

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.api.deps import get_clinic_timezone, get_db, get_settings, get_sms_client, require_roles
from app.core.config import Settings
from app.domain.access import UserRole
from app.domain.value_objects import PhoneNumber
from app.schemas import (
    AppointmentCancellationRequest,
    AppointmentConfirmationRequest,
    AppointmentReminderRequest,
    CustomMessageRequest,
    SendSMSRequest,
    SMSTestRequest,
)
from app.services.sms_client import SMSClient, deliver_sms
from app.services.sms_templates import (
    format_appointment_date,
    render_cancellation,
    render_confirmation,
    render_reminder,
    render_test,
)

router = APIRouter(
    prefix="/sms",
    tags=["SMS"],
    dependencies=[Depends(require_roles(UserRole.STAFF, UserRole.DOCTOR))],
)


def _send(
    db: Session,
    client: SMSClient,
    phone_number: str,
    body: str,
    template: str,
    metadata: dict[str, Any] | None = None,
) -> dict[str, Any]:
    result = deliver_sms(
        db, client, to=PhoneNumber(phone_number), body=body, template=template, metadata=metadata
    )
    db.commit()
    return result.as_dict()


@router.post("/send")
def send_sms(
    payload: SendSMSRequest,
    db: Session = Depends(get_db),
    client: SMSClient = Depends(get_sms_client),
) -> dict[str, Any]:
    metadata = {"patient_name": payload.patient_name} if payload.patient_name else None
    return _send(db, client, payload.to, payload.body, "custom", metadata)


@router.post("/appointment/reminder")
def send_appointment_reminder(
    payload: AppointmentReminderRequest,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    tz: ZoneInfo = Depends(get_clinic_timezone),
    client: SMSClient = Depends(get_sms_client),
) -> dict[str, Any]:
    body = render_reminder(
        patient_name=payload.patient_name,
        doctor_name=payload.doctor_name,
        appointment_date=format_appointment_date(payload.appointment_date, tz),
        clinic_name=payload.clinic_name or settings.clinic_name,
    )
    return _send(db, client, payload.phone_number, body, "reminder")


@router.post("/appointment/confirmation")
def send_appointment_confirmation(
    payload: AppointmentConfirmationRequest,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    tz: ZoneInfo = Depends(get_clinic_timezone),
    client: SMSClient = Depends(get_sms_client),
) -> dict[str, Any]:
    body = render_confirmation(
        patient_name=payload.patient_name,
        doctor_name=payload.doctor_name,
        appointment_date=format_appointment_date(payload.appointment_date, tz),
        clinic_name=payload.clinic_name or settings.clinic_name,
    )
    return _send(db, client, payload.phone_number, body, "confirmation")


@router.post("/appointment/cancellation")
def send_appointment_cancellation(
    payload: AppointmentCancellationRequest,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    tz: ZoneInfo = Depends(get_clinic_timezone),
    client: SMSClient = Depends(get_sms_client),
) -> dict[str, Any]:
    body = render_cancellation(
        patient_name=payload.patient_name,
        appointment_date=format_appointment_date(payload.appointment_date, tz),
        clinic_name=payload.clinic_name or settings.clinic_name,
        reason=payload.reason,
    )
    return _send(db, client, payload.phone_number, body, "cancellation")


@router.post("/custom")
def send_custom_message(
    payload: CustomMessageRequest,
    db: Session = Depends(get_db),
    client: SMSClient = Depends(get_sms_client),
) -> dict[str, Any]:
    metadata = {"patient_name": payload.patient_name} if payload.patient_name else None
    return _send(db, client, payload.phone_number, payload.message, "custom", metadata)


@router.post("/test")
def send_test_message(
    payload: SMSTestRequest,
    db: Session = Depends(get_db),
    tz: ZoneInfo = Depends(get_clinic_timezone),
    client: SMSClient = Depends(get_sms_client),
) -> dict[str, Any]:
    body = render_test(datetime.now(timezone.utc), tz)
    return _send(db, client, payload.phone_number, body, "test")
