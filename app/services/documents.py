"""Two-phase document upload and document serialization."""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any

from botocore.exceptions import BotoCoreError, ClientError
from sqlalchemy.orm import Session

from app.core.config import Settings
from app.core.errors import (
    AccessDeniedError,
    ConflictError,
    FormatError,
    NotFoundError,
    RangeError,
    UploadExpiredError,
)
from app.domain.access import DocumentAccessContext, Principal, UserRole
from app.domain.documents import (
    ALLOWED_FILE_TYPES,
    DocumentCategory,
    build_storage_key,
    format_file_size,
    is_allowed_file_type,
)
from app.domain.identifiers import (
    create_appointment_id,
    create_document_id,
    create_patient_id,
)
from app.models import Document, PendingUpload
from app.models.base import ensure_utc
from app.repositories import (
    AppointmentRepository,
    DoctorRepository,
    DocumentRepository,
    PatientRepository,
    PendingUploadRepository,
)
from app.services.storage import DocumentStorage

logger = logging.getLogger(__name__)


def access_context(document: Document) -> DocumentAccessContext:
    return DocumentAccessContext(
        uploaded_by=document.uploaded_by,
        patient_user_id=document.patient.user_id if document.patient else None,
        doctor_user_id=document.doctor.user_id if document.doctor else None,
        is_shared_with_patient=document.is_shared_with_patient,
    )


def _ensure_patient_scope(db: Session, principal: Principal, patient_id: str) -> None:
    patient = PatientRepository(db).get(patient_id)
    if principal.role is UserRole.PATIENT and patient.user_id != principal.id:
        raise AccessDeniedError("Patients can only upload their own documents")


def _ensure_appointment_matches(db: Session, appointment_id: str | None, patient_id: str) -> None:
    if not appointment_id:
        return
    appointment = AppointmentRepository(db).get(create_appointment_id(appointment_id))
    if appointment.patient_id != patient_id:
        raise ConflictError(
            "Appointment belongs to another patient",
            details={"appointment_id": appointment_id},
        )


def request_upload(
    db: Session,
    settings: Settings,
    storage: DocumentStorage,
    principal: Principal,
    *,
    patient_id: str,
    file_name: str,
    file_type: str,
    file_size: int,
    category: DocumentCategory,
    appointment_id: str | None = None,
    now: datetime | None = None,
) -> dict[str, Any]:
    """Validate the file, record a pending upload and return a presigned PUT URL."""

    if not is_allowed_file_type(file_type):
        raise FormatError(
            f"File type {file_type} is not allowed",
            details={"allowed_types": sorted(ALLOWED_FILE_TYPES)},
        )
    if file_size <= 0:
        raise RangeError(
            f"File size must be a positive number of bytes, got {file_size}",
            details={"file_size": file_size},
        )
    if file_size > settings.max_upload_size_bytes:
        raise RangeError(
            f"File size {file_size} exceeds maximum allowed size of "
            f"{settings.max_upload_size_bytes} bytes",
            details={"max_bytes": settings.max_upload_size_bytes},
        )

    patient_id = create_patient_id(patient_id)
    _ensure_patient_scope(db, principal, patient_id)
    _ensure_appointment_matches(db, appointment_id, patient_id)

    issued_at = now or datetime.now(timezone.utc)
    file_id = uuid.uuid4().hex
    storage_key = build_storage_key(patient_id, file_id, file_name, issued_at.date())
    upload_url = storage.generate_upload_url(
        storage_key, content_type=file_type, size=file_size
    )
    expires_at = issued_at + timedelta(seconds=settings.upload_url_expiration_seconds)

    PendingUploadRepository(db).add(
        PendingUpload(
            file_id=file_id,
            storage_key=storage_key,
            patient_id=patient_id,
            appointment_id=appointment_id,
            requested_by=principal.id,
            file_name=file_name,
            file_type=file_type,
            file_size=file_size,
            category=category,
            expires_at=expires_at,
        )
    )
    logger.info(
        "upload url issued",
        extra={"file_id": file_id, "patient_id": patient_id, "storage_key": storage_key},
    )
    return {
        "upload_url": upload_url,
        "storage_key": storage_key,
        "file_id": file_id,
        "expires_at": expires_at.isoformat(),
    }


def confirm_upload(
    db: Session,
    storage: DocumentStorage,
    principal: Principal,
    *,
    file_id: str,
    storage_key: str,
    patient_id: str,
    category: DocumentCategory | None = None,
    appointment_id: str | None = None,
    description: str | None = None,
    is_shared_with_patient: bool = False,
    now: datetime | None = None,
) -> Document:
    """Turn a pending upload into a document record."""

    pending_repo = PendingUploadRepository(db)
    pending = pending_repo.find_by_id(file_id)
    if pending is None:
        raise NotFoundError("Upload handle not found", details={"file_id": file_id})
    if pending.requested_by != principal.id:
        raise AccessDeniedError(
            "Only the user who requested the upload can confirm it",
            details={"file_id": file_id},
        )
    if pending.storage_key != storage_key or pending.patient_id != patient_id:
        raise ConflictError(
            "Upload confirmation does not match the issued upload",
            details={"file_id": file_id},
        )
    current_time = now or datetime.now(timezone.utc)
    if ensure_utc(pending.expires_at) <= current_time:
        raise UploadExpiredError(
            "Upload handle has expired, request a new upload URL",
            details={"file_id": file_id},
        )
    _ensure_patient_scope(db, principal, patient_id)
    _ensure_appointment_matches(db, appointment_id, patient_id)
    if not storage.object_exists(storage_key):
        raise ConflictError("File has not been uploaded yet", details={"file_id": file_id})

    doctor_id = None
    if principal.role is UserRole.DOCTOR:
        doctor = DoctorRepository(db).find_by_user_id(principal.id)
        doctor_id = doctor.id if doctor else None

    document = Document(
        id=create_document_id(),
        file_name=pending.file_name,
        file_type=pending.file_type,
        file_size=pending.file_size,
        storage_key=pending.storage_key,
        uploaded_by=principal.id,
        patient_id=pending.patient_id,
        doctor_id=doctor_id,
        appointment_id=appointment_id or pending.appointment_id,
        category=category or pending.category,
        description=description,
        # A patient's own upload must stay visible to them.
        is_shared_with_patient=is_shared_with_patient or principal.role is UserRole.PATIENT,
    )
    DocumentRepository(db).add(document, conflict_message="Document already confirmed")
    pending_repo.delete(pending)
    logger.info(
        "upload confirmed",
        extra={"document_id": document.id, "file_id": file_id, "patient_id": patient_id},
    )
    return document


def reap_expired_uploads(
    db: Session,
    storage: DocumentStorage,
    *,
    now: datetime | None = None,
    limit: int = 500,
) -> int:
    """Delete expired pending uploads and whatever object they left behind."""

    current_time = now or datetime.now(timezone.utc)
    repo = PendingUploadRepository(db)
    reaped = 0
    for pending in repo.expired(current_time, limit=limit):
        try:
            storage.delete_object(pending.storage_key)
        except (BotoCoreError, ClientError):
            logger.warning(
                "could not delete expired upload object, will retry",
                extra={"file_id": pending.file_id, "storage_key": pending.storage_key},
                exc_info=True,
            )
            continue
        repo.delete(pending)
        reaped += 1
    if reaped:
        logger.info("reaped expired uploads", extra={"count": reaped})
    return reaped


def serialize_document(document: Document) -> dict[str, Any]:
    uploader = document.uploader
    return {
        "id": document.id,
        "file_name": document.file_name,
        "file_type": document.file_type,
        "file_size": document.file_size,
        "file_size_display": format_file_size(document.file_size),
        "storage_key": document.storage_key,
        "uploaded_by": document.uploaded_by,
        "uploader_name": uploader.name if uploader else None,
        "uploader_role": uploader.role.value if uploader else None,
        "patient_id": document.patient_id,
        "doctor_id": document.doctor_id,
        "appointment_id": document.appointment_id,
        "category": document.category.value,
        "category_label": document.category.label,
        "description": document.description,
        "is_shared_with_patient": document.is_shared_with_patient,
        "created_at": ensure_utc(document.created_at).isoformat(),
        "updated_at": ensure_utc(document.updated_at).isoformat(),
    }


__all__ = [
    "access_context",
    "confirm_upload",
    "reap_expired_uploads",
    "request_upload",
    "serialize_document",
]
