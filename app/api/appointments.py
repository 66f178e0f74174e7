"""Appointment booking, status and check-in endpoints."""

from __future__ import annotations

import logging
from datetime import date
from typing import Any
from zoneinfo import ZoneInfo

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.orm import Session

from app.api.deps import (
    get_clinic_timezone,
    get_current_principal,
    get_db,
    get_settings,
    get_sms_client,
    get_task_sender,
    require_roles,
)
from app.core.config import Settings
from app.core.errors import AccessDeniedError, NotificationError
from app.domain.access import Principal, UserRole
from app.domain.appointments import AppointmentStatus, AppointmentType
from app.domain.identifiers import create_appointment_id, create_doctor_id, create_patient_id
from app.models import Appointment
from app.repositories import AppointmentRepository, PatientRepository
from app.schemas import AppointmentCreate, AppointmentStatusUpdate, AppointmentUpdate
from app.services.appointments import (
    book_appointment,
    change_status,
    check_in,
    delete_appointment,
    local_day_bounds,
    serialize_appointment,
    serialize_check_in,
    update_appointment,
)
from app.services.reminders import (
    TaskSender,
    schedule_reminders,
    send_cancellation,
    send_confirmation,
)
from app.services.sms_client import SMSClient

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/appointments", tags=["Appointments"])


def _own_patient_id(db: Session, principal: Principal) -> str | None:
    patient = PatientRepository(db).find_by_user_id(principal.id)
    return patient.id if patient else None


def _ensure_visible(db: Session, principal: Principal, appointment: Appointment) -> None:
    if principal.role is UserRole.PATIENT and appointment.patient_id != _own_patient_id(
        db, principal
    ):
        raise AccessDeniedError("Patients can only access their own appointments")


def _notify(db: Session, send: Any, *args: Any, **kwargs: Any) -> dict[str, Any]:
    """Send a notification after the appointment change has been committed."""

    try:
        result = send(db, *args, **kwargs)
    except NotificationError as exc:
        db.commit()
        return {"status": "failed", "error": exc.message}
    db.commit()
    return {"status": "sent", "message_sid": result.message_id}


@router.get("")
def list_appointments(
    patient_id: str | None = None,
    doctor_id: str | None = None,
    appointment_status: AppointmentStatus | None = Query(None, alias="status"),
    appointment_type: AppointmentType | None = Query(None, alias="type"),
    date_from: date | None = None,
    date_to: date | None = None,
    on_date: date | None = Query(None, alias="date"),
    db: Session = Depends(get_db),
    tz: ZoneInfo = Depends(get_clinic_timezone),
    principal: Principal = Depends(get_current_principal),
) -> dict[str, Any]:
    """List appointments; dates are interpreted as clinic-local days."""

    if principal.role is UserRole.PATIENT:
        own_id = _own_patient_id(db, principal)
        if own_id is None:
            return {"appointments": [], "total_count": 0}
        patient_id = own_id
    elif patient_id:
        patient_id = create_patient_id(patient_id)

    if on_date is not None:
        date_from = date_to = on_date
    starts_from = local_day_bounds(date_from, tz)[0] if date_from else None
    starts_before = local_day_bounds(date_to, tz)[1] if date_to else None

    appointments = AppointmentRepository(db).find(
        patient_id=patient_id,
        doctor_id=create_doctor_id(doctor_id) if doctor_id else None,
        status=appointment_status,
        appointment_type=appointment_type,
        starts_from=starts_from,
        starts_before=starts_before,
    )
    return {
        "appointments": [serialize_appointment(appt, tz=tz) for appt in appointments],
        "total_count": len(appointments),
    }


@router.get("/{appointment_id}")
def get_appointment(
    appointment_id: str,
    db: Session = Depends(get_db),
    tz: ZoneInfo = Depends(get_clinic_timezone),
    principal: Principal = Depends(get_current_principal),
) -> dict[str, Any]:
    appointment = AppointmentRepository(db).get(create_appointment_id(appointment_id))
    _ensure_visible(db, principal, appointment)
    return {"appointment": serialize_appointment(appointment, tz=tz)}


@router.post("", status_code=status.HTTP_201_CREATED)
def create_appointment(
    payload: AppointmentCreate,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    tz: ZoneInfo = Depends(get_clinic_timezone),
    sms_client: SMSClient = Depends(get_sms_client),
    task_sender: TaskSender | None = Depends(get_task_sender),
    principal: Principal = Depends(get_current_principal),
) -> dict[str, Any]:
    """Book an appointment in the SCHEDULED status."""

    patient_id = create_patient_id(payload.patient_id)
    if principal.role is UserRole.PATIENT and patient_id != _own_patient_id(db, principal):
        raise AccessDeniedError("Patients can only book appointments for themselves")

    appointment = book_appointment(
        db,
        settings,
        patient_id=patient_id,
        doctor_id=payload.doctor_id,
        appointment_type=payload.type,
        scheduled_at=payload.scheduled_at,
        duration_minutes=payload.duration_minutes,
        reason=payload.reason,
        notes=payload.notes,
    )
    db.commit()

    response: dict[str, Any] = {"appointment": serialize_appointment(appointment, tz=tz)}
    if payload.notify_patient:
        response["notification"] = _notify(db, send_confirmation, settings, sms_client, appointment)
    if settings.reminders_enabled and task_sender is not None:
        response["reminders"] = schedule_reminders(task_sender, appointment)
    return response


@router.put("/{appointment_id}")
def edit_appointment(
    appointment_id: str,
    payload: AppointmentUpdate,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    tz: ZoneInfo = Depends(get_clinic_timezone),
    _principal: Principal = Depends(require_roles(UserRole.STAFF, UserRole.DOCTOR)),
) -> dict[str, Any]:
    appointment = update_appointment(
        db,
        settings,
        create_appointment_id(appointment_id),
        appointment_type=payload.type,
        scheduled_at=payload.scheduled_at,
        duration_minutes=payload.duration_minutes,
        reason=payload.reason,
        notes=payload.notes,
        status=payload.status,
    )
    db.commit()
    return {"appointment": serialize_appointment(appointment, tz=tz)}


@router.patch("/{appointment_id}/status")
def update_appointment_status(
    appointment_id: str,
    payload: AppointmentStatusUpdate,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    tz: ZoneInfo = Depends(get_clinic_timezone),
    sms_client: SMSClient = Depends(get_sms_client),
    _principal: Principal = Depends(require_roles(UserRole.STAFF, UserRole.DOCTOR)),
) -> dict[str, Any]:
    """Move an appointment along its lifecycle."""

    appointment = change_status(
        db, create_appointment_id(appointment_id), payload.status, notes=payload.notes
    )
    db.commit()

    response: dict[str, Any] = {"appointment": serialize_appointment(appointment, tz=tz)}
    if payload.notify_patient and appointment.status is AppointmentStatus.CANCELLED:
        response["notification"] = _notify(
            db,
            send_cancellation,
            settings,
            sms_client,
            appointment,
            reason=payload.cancellation_reason,
        )
    return response


@router.post("/{appointment_id}/check-in")
def check_in_appointment(
    appointment_id: str,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    tz: ZoneInfo = Depends(get_clinic_timezone),
    principal: Principal = Depends(get_current_principal),
) -> dict[str, Any]:
    """Check the patient in and issue a queue ticket."""

    appointment_id = create_appointment_id(appointment_id)
    if principal.role is UserRole.DOCTOR:
        raise AccessDeniedError("Doctors cannot check patients in")
    if principal.role is UserRole.PATIENT:
        _ensure_visible(db, principal, AppointmentRepository(db).get(appointment_id))

    result = check_in(db, settings, appointment_id)
    db.commit()
    return serialize_check_in(result, tz=tz)


@router.delete("/{appointment_id}", status_code=status.HTTP_204_NO_CONTENT)
def remove_appointment(
    appointment_id: str,
    db: Session = Depends(get_db),
    _principal: Principal = Depends(require_roles(UserRole.STAFF)),
) -> Response:
    delete_appointment(db, create_appointment_id(appointment_id))
    db.commit()
    return Response(status_code=status.HTTP_204_NO_CONTENT)
