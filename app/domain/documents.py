"""Document categories, upload constraints and small file helpers."""

from __future__ import annotations

import enum
from datetime import date
from typing import Final


class DocumentCategory(str, enum.Enum):
    MEDICAL_HISTORY = "MEDICAL_HISTORY"
    LAB_RESULTS = "LAB_RESULTS"
    PRESCRIPTION = "PRESCRIPTION"
    IMAGING = "IMAGING"
    CLINICAL_NOTES = "CLINICAL_NOTES"
    CONSENT_FORM = "CONSENT_FORM"
    INSURANCE = "INSURANCE"
    OTHER = "OTHER"

    @property
    def label(self) -> str:
        return CATEGORY_LABELS[self]


CATEGORY_LABELS: Final[dict[DocumentCategory, str]] = {
    DocumentCategory.MEDICAL_HISTORY: "Medical History",
    DocumentCategory.LAB_RESULTS: "Lab Results",
    DocumentCategory.PRESCRIPTION: "Prescription",
    DocumentCategory.IMAGING: "Medical Imaging",
    DocumentCategory.CLINICAL_NOTES: "Clinical Notes",
    DocumentCategory.CONSENT_FORM: "Consent Form",
    DocumentCategory.INSURANCE: "Insurance",
    DocumentCategory.OTHER: "Other",
}

ALLOWED_FILE_TYPES: Final[frozenset[str]] = frozenset(
    {
        "image/jpeg",
        "image/png",
        "image/gif",
        "application/pdf",
        "application/msword",
        "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
        "text/plain",
    }
)

MAX_FILE_SIZE_BYTES: Final[int] = 10 * 1024 * 1024

SORTABLE_FIELDS: Final[frozenset[str]] = frozenset(
    {"created_at", "file_name", "category", "file_size"}
)

_SIZE_UNITS: Final = ("Bytes", "KB", "MB", "GB")


def is_allowed_file_type(mime_type: str) -> bool:
    return mime_type in ALLOWED_FILE_TYPES


def is_valid_category(value: str) -> bool:
    return value in DocumentCategory._value2member_map_


def is_image(mime_type: str) -> bool:
    return mime_type.startswith("image/")


def is_pdf(mime_type: str) -> bool:
    return mime_type == "application/pdf"


def file_extension(file_name: str) -> str:
    """Return the extension including the dot, or an empty string."""

    index = file_name.rfind(".")
    if index == -1:
        return ""
    return file_name[index:]


def format_file_size(size: int) -> str:
    """Human readable size, e.g. ``1.5 MB``."""

    if size <= 0:
        return "0 Bytes"
    exponent = 0
    scaled = float(size)
    while scaled >= 1024 and exponent < len(_SIZE_UNITS) - 1:
        scaled /= 1024
        exponent += 1
    scaled = round(scaled, 2)
    if scaled == int(scaled):
        scaled = int(scaled)
    return f"{scaled} {_SIZE_UNITS[exponent]}"


def build_storage_key(patient_id: str, file_id: str, file_name: str, on: date) -> str:
    """Object key laid out as ``documents/<patient>/<YYYY-MM-DD>/<file id><ext>``."""

    return f"documents/{patient_id}/{on.isoformat()}/{file_id}{file_extension(file_name)}"


__all__ = [
    "ALLOWED_FILE_TYPES",
    "CATEGORY_LABELS",
    "DocumentCategory",
    "MAX_FILE_SIZE_BYTES",
    "SORTABLE_FIELDS",
    "build_storage_key",
    "file_extension",
    "format_file_size",
    "is_allowed_file_type",
    "is_image",
    "is_pdf",
    "is_valid_category",
]
