"""Doctor directory endpoints."""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.orm import Session

from app.api.deps import get_current_principal, get_db, require_roles
from app.core.errors import ConflictError
from app.domain.access import Principal, UserRole
from app.domain.identifiers import create_doctor_id, create_user_id
from app.domain.value_objects import EmailAddress
from app.models import Doctor, User
from app.models.base import ensure_utc
from app.repositories import DoctorRepository
from app.schemas import DoctorCreate, DoctorUpdate

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/doctors", tags=["Doctors"])

_DUPLICATE_MESSAGE = "Doctor with this email already exists"


def serialize_doctor(doctor: Doctor) -> dict[str, Any]:
    return {
        "id": doctor.id,
        "user_id": doctor.user_id,
        "first_name": doctor.first_name,
        "last_name": doctor.last_name,
        "full_name": doctor.full_name,
        "email": doctor.email,
        "specialization": doctor.specialization,
        "is_active": doctor.is_active,
        "created_at": ensure_utc(doctor.created_at).isoformat(),
        "updated_at": ensure_utc(doctor.updated_at).isoformat(),
    }


@router.get("")
def list_doctors(
    is_active: bool | None = None,
    specialization: str | None = None,
    search: str | None = None,
    db: Session = Depends(get_db),
    _principal: Principal = Depends(get_current_principal),
) -> dict[str, Any]:
    doctors = DoctorRepository(db).find(
        is_active=is_active, specialization=specialization, search=search
    )
    return {
        "doctors": [serialize_doctor(doctor) for doctor in doctors],
        "total_count": len(doctors),
    }


@router.get("/{doctor_id}")
def get_doctor(
    doctor_id: str,
    db: Session = Depends(get_db),
    _principal: Principal = Depends(get_current_principal),
) -> dict[str, Any]:
    doctor = DoctorRepository(db).get(create_doctor_id(doctor_id))
    return {"doctor": serialize_doctor(doctor)}


@router.post("", status_code=status.HTTP_201_CREATED)
def create_doctor(
    payload: DoctorCreate,
    db: Session = Depends(get_db),
    _principal: Principal = Depends(require_roles(UserRole.STAFF)),
) -> dict[str, Any]:
    email = EmailAddress(payload.email)
    repo = DoctorRepository(db)
    if repo.find_by_email(email.value) is not None:
        raise ConflictError(_DUPLICATE_MESSAGE)

    if payload.user_id:
        user_id = create_user_id(payload.user_id)
    else:
        user = User(
            id=create_user_id(),
            email=email.value,
            name=f"Dr. {payload.first_name} {payload.last_name}",
            role=UserRole.DOCTOR,
        )
        db.add(user)
        repo.flush(_DUPLICATE_MESSAGE)
        user_id = user.id

    doctor = Doctor(
        id=create_doctor_id(),
        user_id=user_id,
        first_name=payload.first_name,
        last_name=payload.last_name,
        email=email.value,
        specialization=payload.specialization,
        is_active=payload.is_active,
    )
    repo.add(doctor, conflict_message=_DUPLICATE_MESSAGE)
    db.commit()
    logger.info("doctor created", extra={"doctor_id": doctor.id})
    return {"doctor": serialize_doctor(doctor)}


@router.put("/{doctor_id}")
def update_doctor(
    doctor_id: str,
    payload: DoctorUpdate,
    db: Session = Depends(get_db),
    _principal: Principal = Depends(require_roles(UserRole.STAFF)),
) -> dict[str, Any]:
    repo = DoctorRepository(db)
    doctor = repo.get(create_doctor_id(doctor_id))

    changes = payload.model_dump(exclude_unset=True, exclude_none=True)
    if "email" in changes:
        changes["email"] = EmailAddress(changes["email"]).value
        existing = repo.find_by_email(changes["email"])
        if existing is not None and existing.id != doctor.id:
            raise ConflictError(_DUPLICATE_MESSAGE)

    for key, value in changes.items():
        setattr(doctor, key, value)
    repo.flush(_DUPLICATE_MESSAGE)
    db.commit()
    return {"doctor": serialize_doctor(doctor)}


@router.delete("/{doctor_id}", response_model=None)
def delete_doctor(
    doctor_id: str,
    db: Session = Depends(get_db),
    _principal: Principal = Depends(require_roles(UserRole.STAFF)),
) -> Response | dict[str, Any]:
    """Delete a doctor, or deactivate one that appointments still reference."""

    repo = DoctorRepository(db)
    doctor = repo.get(create_doctor_id(doctor_id))
    if repo.has_appointments(doctor.id):
        repo.update(doctor, is_active=False)
        db.commit()
        logger.info("doctor deactivated", extra={"doctor_id": doctor.id})
        return {"doctor": serialize_doctor(doctor), "deactivated": True}

    repo.delete(doctor)
    db.commit()
    logger.info("doctor deleted", extra={"doctor_id": doctor_id})
    return Response(status_code=status.HTTP_204_NO_CONTENT)
