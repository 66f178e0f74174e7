"""Role-based access rules.

Each rule is a plain predicate over a principal and the facts about a
document it needs. Handlers do not evaluate predicates directly; they call
:func:`authorize_document` with the action they are about to perform.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Callable, Final, Mapping

from app.core.errors import AccessDeniedError


class UserRole(str, enum.Enum):
    PATIENT = "PATIENT"
    DOCTOR = "DOCTOR"
    STAFF = "STAFF"


class DocumentAction(str, enum.Enum):
    VIEW = "view"
    MODIFY = "modify"
    DELETE = "delete"
    SHARE = "share"


@dataclass(frozen=True)
class Principal:
    """The authenticated caller as resolved by the upstream auth layer."""

    id: str
    role: UserRole
    email: str | None = None
    phone_number: str | None = None


@dataclass(frozen=True)
class DocumentAccessContext:
    uploaded_by: str
    patient_user_id: str | None
    doctor_user_id: str | None
    is_shared_with_patient: bool


def can_view_document(principal: Principal, ctx: DocumentAccessContext) -> bool:
    if principal.role is UserRole.STAFF:
        return True
    if principal.role is UserRole.PATIENT:
        return ctx.patient_user_id == principal.id and ctx.is_shared_with_patient
    if principal.role is UserRole.DOCTOR:
        return ctx.uploaded_by == principal.id or ctx.doctor_user_id == principal.id
    return False


def can_modify_document(principal: Principal, ctx: DocumentAccessContext) -> bool:
    # Patients may read shared documents but never edit or remove them.
    if principal.role is UserRole.PATIENT:
        return False
    return can_view_document(principal, ctx)


def can_toggle_sharing(principal: Principal, ctx: DocumentAccessContext) -> bool:
    return principal.role is not UserRole.PATIENT and can_view_document(principal, ctx)


def can_view_patient_stats(principal: Principal, patient_user_id: str | None) -> bool:
    if principal.role is UserRole.PATIENT:
        return patient_user_id is not None and patient_user_id == principal.id
    return True


_DOCUMENT_RULES: Final[
    Mapping[DocumentAction, Callable[[Principal, DocumentAccessContext], bool]]
] = {
    DocumentAction.VIEW: can_view_document,
    DocumentAction.MODIFY: can_modify_document,
    DocumentAction.DELETE: can_modify_document,
    DocumentAction.SHARE: can_toggle_sharing,
}


def authorize_document(
    principal: Principal, action: DocumentAction, ctx: DocumentAccessContext
) -> None:
    """Raise :class:`AccessDeniedError` unless ``principal`` may perform ``action``."""

    rule = _DOCUMENT_RULES[action]
    if not rule(principal, ctx):
        raise AccessDeniedError(
            "Access denied",
            details={"action": action.value, "role": principal.role.value},
        )


__all__ = [
    "DocumentAccessContext",
    "DocumentAction",
    "Principal",
    "UserRole",
    "authorize_document",
    "can_modify_document",
    "can_toggle_sharing",
    "can_view_document",
    "can_view_patient_stats",
]
