"""Prefixed, format-validated identifiers for every entity type."""

from __future__ import annotations

import re
import secrets
import string
from typing import Callable, Final, NewType, TypeVar

from app.core.errors import FormatError

UserId = NewType("UserId", str)
PatientId = NewType("PatientId", str)
DoctorId = NewType("DoctorId", str)
AppointmentId = NewType("AppointmentId", str)
DocumentId = NewType("DocumentId", str)
QueueId = NewType("QueueId", str)

_ID_ALPHABET: Final[str] = string.digits + string.ascii_uppercase + string.ascii_lowercase
_SUFFIX_LENGTH: Final[int] = 8

_T = TypeVar("_T", bound=str)


def _random_suffix() -> str:
    return "".join(secrets.choice(_ID_ALPHABET) for _ in range(_SUFFIX_LENGTH))


def _id_factory(prefix: str, label: str, brand: Callable[[str], _T]) -> Callable[..., _T]:
    pattern = re.compile(rf"^{prefix}_[a-zA-Z0-9_]+$")

    def create(raw: str | None = None) -> _T:
        if raw:
            if pattern.fullmatch(raw):
                return brand(raw)
            raise FormatError(
                f"Invalid {label} format (expected: {prefix}_<alphanumeric>)",
                details={"value": raw},
            )
        return brand(f"{prefix}_{_random_suffix()}")

    create.__name__ = f"create_{prefix}_id"
    create.__doc__ = (
        f"Validate ``raw`` as a {label}, or generate a new one when omitted."
    )
    return create


create_user_id = _id_factory("user", "UserId", UserId)
create_patient_id = _id_factory("patient", "PatientId", PatientId)
create_doctor_id = _id_factory("doctor", "DoctorId", DoctorId)
create_appointment_id = _id_factory("appt", "AppointmentId", AppointmentId)
create_document_id = _id_factory("doc", "DocumentId", DocumentId)
create_queue_id = _id_factory("queue", "QueueId", QueueId)

_DOCUMENT_ID_PATTERN = re.compile(r"^doc_[a-zA-Z0-9_]+$")


def ensure_valid_document_id(raw: str) -> DocumentId:
    """Return ``raw`` as a DocumentId, adding the ``doc_`` prefix if missing."""

    if _DOCUMENT_ID_PATTERN.fullmatch(raw):
        return DocumentId(raw)
    return create_document_id(f"doc_{raw}")


__all__ = [
    "AppointmentId",
    "DoctorId",
    "DocumentId",
    "PatientId",
    "QueueId",
    "UserId",
    "create_appointment_id",
    "create_doctor_id",
    "create_document_id",
    "create_patient_id",
    "create_queue_id",
    "create_user_id",
    "ensure_valid_document_id",
]
