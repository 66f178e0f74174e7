"""Medical document endpoints built around a two-phase upload."""

from __future__ import annotations

import logging
from typing import Any

from botocore.exceptions import BotoCoreError, ClientError
from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.orm import Session

from app.api.deps import get_current_principal, get_db, get_settings, get_storage
from app.core.config import Settings
from app.core.errors import AccessDeniedError, FormatError
from app.domain.access import (
    DocumentAction,
    Principal,
    authorize_document,
    can_view_patient_stats,
)
from app.domain.documents import SORTABLE_FIELDS, DocumentCategory
from app.domain.identifiers import (
    create_appointment_id,
    create_doctor_id,
    create_patient_id,
    create_user_id,
    ensure_valid_document_id,
)
from app.models import Document
from app.repositories import DocumentRepository, PatientRepository
from app.schemas import (
    ConfirmUploadRequest,
    DocumentUpdate,
    ToggleSharingRequest,
    UploadUrlRequest,
)
from app.services.documents import (
    access_context,
    confirm_upload,
    request_upload,
    serialize_document,
)
from app.services.storage import DocumentStorage

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/documents", tags=["Documents"])


def _load_document(
    db: Session, principal: Principal, document_id: str, action: DocumentAction
) -> Document:
    document = DocumentRepository(db).get(ensure_valid_document_id(document_id))
    authorize_document(principal, action, access_context(document))
    return document


@router.post("/upload-url")
def create_upload_url(
    payload: UploadUrlRequest,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    storage: DocumentStorage = Depends(get_storage),
    principal: Principal = Depends(get_current_principal),
) -> dict[str, Any]:
    """Issue a presigned upload URL and remember the pending upload."""

    upload = request_upload(
        db,
        settings,
        storage,
        principal,
        patient_id=payload.patient_id,
        file_name=payload.file_name,
        file_type=payload.file_type,
        file_size=payload.file_size,
        category=payload.category,
        appointment_id=payload.appointment_id,
    )
    db.commit()
    return upload


@router.post("/confirm", status_code=status.HTTP_201_CREATED)
def confirm_document_upload(
    payload: ConfirmUploadRequest,
    db: Session = Depends(get_db),
    storage: DocumentStorage = Depends(get_storage),
    principal: Principal = Depends(get_current_principal),
) -> dict[str, Any]:
    document = confirm_upload(
        db,
        storage,
        principal,
        file_id=payload.file_id,
        storage_key=payload.storage_key,
        patient_id=create_patient_id(payload.patient_id),
        category=payload.category,
        appointment_id=payload.appointment_id,
        description=payload.description,
        is_shared_with_patient=payload.is_shared_with_patient,
    )
    db.commit()
    return {"document": serialize_document(document)}


@router.get("")
def list_documents(
    patient_id: str | None = None,
    doctor_id: str | None = None,
    appointment_id: str | None = None,
    category: DocumentCategory | None = None,
    is_shared_with_patient: bool | None = None,
    uploaded_by: str | None = None,
    sort_by: str = "created_at",
    sort_order: str = Query("desc", pattern="^(asc|desc)$"),
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
) -> dict[str, Any]:
    """List the documents the caller is allowed to see."""

    if sort_by not in SORTABLE_FIELDS:
        raise FormatError(
            f"Cannot sort documents by {sort_by}",
            details={"sortable_fields": sorted(SORTABLE_FIELDS)},
        )
    filters: dict[str, Any] = {
        "principal": principal,
        "patient_id": create_patient_id(patient_id) if patient_id else None,
        "doctor_id": create_doctor_id(doctor_id) if doctor_id else None,
        "appointment_id": create_appointment_id(appointment_id) if appointment_id else None,
        "category": category,
        "is_shared_with_patient": is_shared_with_patient,
        "uploaded_by": create_user_id(uploaded_by) if uploaded_by else None,
    }
    repo = DocumentRepository(db)
    documents = repo.list_with_uploader(
        sort_field=sort_by, sort_order=sort_order, limit=limit, offset=offset, **filters
    )
    total = repo.count(**filters)
    return {
        "documents": [serialize_document(document) for document in documents],
        "total_count": total,
        "pagination": {
            "limit": limit,
            "offset": offset,
            "has_more": offset + len(documents) < total,
        },
    }


@router.get("/patient/{patient_id}/stats")
def patient_document_stats(
    patient_id: str,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
) -> dict[str, Any]:
    patient = PatientRepository(db).get(create_patient_id(patient_id))
    if not can_view_patient_stats(principal, patient.user_id):
        raise AccessDeniedError("Patients can only view their own document statistics")

    stats = DocumentRepository(db).patient_stats(patient.id, principal)
    stats["recent_documents"] = [
        serialize_document(document) for document in stats["recent_documents"]
    ]
    return {"patient_id": patient.id, "stats": stats}


@router.get("/{document_id}")
def get_document(
    document_id: str,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
) -> dict[str, Any]:
    document = _load_document(db, principal, document_id, DocumentAction.VIEW)
    return {"document": serialize_document(document)}


@router.patch("/{document_id}")
def update_document(
    document_id: str,
    payload: DocumentUpdate,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
) -> dict[str, Any]:
    document = _load_document(db, principal, document_id, DocumentAction.MODIFY)
    changes = payload.model_dump(exclude_unset=True, exclude_none=True)
    if "is_shared_with_patient" in changes:
        authorize_document(principal, DocumentAction.SHARE, access_context(document))

    DocumentRepository(db).update(document, **changes)
    db.commit()
    return {"document": serialize_document(document)}


@router.patch("/{document_id}/share")
def toggle_document_sharing(
    document_id: str,
    payload: ToggleSharingRequest,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
) -> dict[str, Any]:
    document = _load_document(db, principal, document_id, DocumentAction.SHARE)
    DocumentRepository(db).update(document, is_shared_with_patient=payload.is_shared_with_patient)
    db.commit()
    logger.info(
        "document sharing changed",
        extra={"document_id": document.id, "shared": payload.is_shared_with_patient},
    )
    return {"document": serialize_document(document)}


@router.get("/{document_id}/download-url")
def create_download_url(
    document_id: str,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    storage: DocumentStorage = Depends(get_storage),
    principal: Principal = Depends(get_current_principal),
) -> dict[str, Any]:
    document = _load_document(db, principal, document_id, DocumentAction.VIEW)
    return {
        "download_url": storage.generate_download_url(
            document.storage_key, file_name=document.file_name
        ),
        "file_name": document.file_name,
        "expires_in": settings.download_url_expiration_seconds,
    }


@router.delete("/{document_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_document(
    document_id: str,
    db: Session = Depends(get_db),
    storage: DocumentStorage = Depends(get_storage),
    principal: Principal = Depends(get_current_principal),
) -> Response:
    """Delete the record, then the stored object."""

    document = _load_document(db, principal, document_id, DocumentAction.DELETE)
    storage_key = document.storage_key
    DocumentRepository(db).delete(document)
    db.commit()
    try:
        storage.delete_object(storage_key)
    except (BotoCoreError, ClientError):
        logger.warning(
            "document object left in storage",
            extra={"document_id": document_id, "storage_key": storage_key},
            exc_info=True,
        )
    return Response(status_code=status.HTTP_204_NO_CONTENT)
