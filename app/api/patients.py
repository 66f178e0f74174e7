"""Patient registry endpoints."""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.orm import Session

from app.api.deps import get_current_principal, get_db, require_roles
from app.core.errors import AccessDeniedError, ConflictError
from app.domain.access import Principal, UserRole
from app.domain.identifiers import create_patient_id, create_user_id
from app.domain.value_objects import EmailAddress, PhoneNumber
from app.models import Patient, User
from app.models.base import ensure_utc
from app.repositories import PatientRepository
from app.schemas import PatientCreate, PatientUpdate

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/patients", tags=["Patients"])

_DUPLICATE_MESSAGE = "Patient with this email or phone number already exists"


def serialize_patient(patient: Patient) -> dict[str, Any]:
    return {
        "id": patient.id,
        "user_id": patient.user_id,
        "first_name": patient.first_name,
        "last_name": patient.last_name,
        "full_name": patient.full_name,
        "email": patient.email,
        "phone_number": patient.phone_number,
        "phone_display": PhoneNumber(patient.phone_number).format_for_display(),
        "date_of_birth": patient.date_of_birth.isoformat(),
        "address": patient.address,
        "created_at": ensure_utc(patient.created_at).isoformat(),
        "updated_at": ensure_utc(patient.updated_at).isoformat(),
    }


def _load_visible_patient(db: Session, principal: Principal, patient_id: str) -> Patient:
    patient = PatientRepository(db).get(create_patient_id(patient_id))
    if principal.role is UserRole.PATIENT and patient.user_id != principal.id:
        raise AccessDeniedError("Patients can only access their own record")
    return patient


@router.get("")
def list_patients(
    email: str | None = None,
    phone: str | None = None,
    first_name: str | None = None,
    last_name: str | None = None,
    limit: int = Query(10, ge=1, le=100),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
    _principal: Principal = Depends(require_roles(UserRole.STAFF, UserRole.DOCTOR)),
) -> dict[str, Any]:
    """List patients with optional filters."""

    filters = {
        "email": EmailAddress(email).value if email else None,
        "phone": PhoneNumber(phone).value if phone else None,
        "first_name": first_name,
        "last_name": last_name,
    }
    repo = PatientRepository(db)
    patients = repo.find(limit=limit, offset=offset, **filters)
    total = repo.count(**filters)
    return {
        "patients": [serialize_patient(patient) for patient in patients],
        "total_count": total,
        "pagination": {
            "limit": limit,
            "offset": offset,
            "has_more": offset + len(patients) < total,
        },
    }


@router.get("/{patient_id}")
def get_patient(
    patient_id: str,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
) -> dict[str, Any]:
    return {"patient": serialize_patient(_load_visible_patient(db, principal, patient_id))}


@router.post("", status_code=status.HTTP_201_CREATED)
def create_patient(
    payload: PatientCreate,
    db: Session = Depends(get_db),
    _principal: Principal = Depends(require_roles(UserRole.STAFF)),
) -> dict[str, Any]:
    """Register a patient, creating the owning user account when needed."""

    email = EmailAddress(payload.email)
    phone = PhoneNumber(payload.phone_number)
    repo = PatientRepository(db)
    if repo.email_exists(email.value) or repo.phone_exists(phone.value):
        raise ConflictError(_DUPLICATE_MESSAGE)

    if payload.user_id:
        user_id = create_user_id(payload.user_id)
    else:
        user = User(
            id=create_user_id(),
            email=email.value,
            name=f"{payload.first_name} {payload.last_name}",
            role=UserRole.PATIENT,
            phone_number=phone.value,
        )
        db.add(user)
        repo.flush(_DUPLICATE_MESSAGE)
        user_id = user.id

    patient = Patient(
        id=create_patient_id(),
        user_id=user_id,
        first_name=payload.first_name,
        last_name=payload.last_name,
        email=email.value,
        phone_number=phone.value,
        date_of_birth=payload.date_of_birth,
        address=payload.address,
    )
    repo.add(patient, conflict_message=_DUPLICATE_MESSAGE)
    db.commit()
    logger.info("patient registered", extra={"patient_id": patient.id})
    return {"patient": serialize_patient(patient)}


@router.put("/{patient_id}")
def update_patient(
    patient_id: str,
    payload: PatientUpdate,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
) -> dict[str, Any]:
    patient = _load_visible_patient(db, principal, patient_id)
    repo = PatientRepository(db)

    changes = payload.model_dump(exclude_unset=True, exclude_none=True)
    if "email" in changes:
        changes["email"] = EmailAddress(changes["email"]).value
        if repo.email_exists(changes["email"], exclude_id=patient.id):
            raise ConflictError(_DUPLICATE_MESSAGE)
    if "phone_number" in changes:
        changes["phone_number"] = PhoneNumber(changes["phone_number"]).value
        if repo.phone_exists(changes["phone_number"], exclude_id=patient.id):
            raise ConflictError(_DUPLICATE_MESSAGE)

    for key, value in changes.items():
        setattr(patient, key, value)
    repo.flush(_DUPLICATE_MESSAGE)
    db.commit()
    return {"patient": serialize_patient(patient)}


@router.delete("/{patient_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_patient(
    patient_id: str,
    db: Session = Depends(get_db),
    _principal: Principal = Depends(require_roles(UserRole.STAFF)),
) -> Response:
    repo = PatientRepository(db)
    patient = repo.get(create_patient_id(patient_id))
    repo.delete(patient)
    db.commit()
    logger.info("patient deleted", extra={"patient_id": patient_id})
    return Response(status_code=status.HTTP_204_NO_CONTENT)
