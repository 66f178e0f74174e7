from __future__ import annotations

from typing import Any

from sqlalchemy import ColumnElement, and_, false, func, or_, select
from sqlalchemy.sql import Select

from app.domain.access import Principal, UserRole
from app.domain.documents import DocumentCategory
from app.models import Doctor, Document, Patient
from app.repositories.base import Repository

_SORT_COLUMNS = {
    "created_at": Document.created_at,
    "file_name": Document.file_name,
    "category": Document.category,
    "file_size": Document.file_size,
}

RECENT_DOCUMENTS_LIMIT = 5


def visible_to(principal: Principal) -> ColumnElement[bool]:
    """SQL form of the document view rule for list queries."""

    if principal.role is UserRole.STAFF:
        return Document.id.is_not(None)
    if principal.role is UserRole.PATIENT:
        return and_(
            Document.patient.has(Patient.user_id == principal.id),
            Document.is_shared_with_patient.is_(True),
        )
    if principal.role is UserRole.DOCTOR:
        return or_(
            Document.uploaded_by == principal.id,
            Document.doctor.has(Doctor.user_id == principal.id),
        )
    return false()


class DocumentRepository(Repository[Document]):
    model = Document
    label = "Document"

    def _filtered(
        self,
        stmt: Select,
        *,
        principal: Principal | None = None,
        patient_id: str | None = None,
        doctor_id: str | None = None,
        appointment_id: str | None = None,
        category: DocumentCategory | None = None,
        is_shared_with_patient: bool | None = None,
        uploaded_by: str | None = None,
    ) -> Select:
        if principal is not None:
            stmt = stmt.where(visible_to(principal))
        if patient_id:
            stmt = stmt.where(Document.patient_id == patient_id)
        if doctor_id:
            stmt = stmt.where(Document.doctor_id == doctor_id)
        if appointment_id:
            stmt = stmt.where(Document.appointment_id == appointment_id)
        if category:
            stmt = stmt.where(Document.category == category)
        if is_shared_with_patient is not None:
            stmt = stmt.where(Document.is_shared_with_patient.is_(is_shared_with_patient))
        if uploaded_by:
            stmt = stmt.where(Document.uploaded_by == uploaded_by)
        return stmt

    def list_with_uploader(
        self,
        *,
        sort_field: str = "created_at",
        sort_order: str = "desc",
        limit: int = 20,
        offset: int = 0,
        **filters: Any,
    ) -> list[Document]:
        column = _SORT_COLUMNS.get(sort_field, Document.created_at)
        ordering = column.asc() if sort_order == "asc" else column.desc()
        stmt = self._filtered(select(Document), **filters)
        stmt = stmt.order_by(ordering, Document.id).limit(limit).offset(offset)
        return list(self.db.execute(stmt).scalars().unique())

    def count(self, **filters: Any) -> int:
        stmt = self._filtered(select(func.count(Document.id)), **filters)
        return int(self.db.execute(stmt).scalar_one())

    def patient_stats(self, patient_id: str, principal: Principal) -> dict[str, Any]:
        """Document totals for one patient, limited to what ``principal`` may view."""

        scope = {"principal": principal, "patient_id": patient_id}
        totals = self.db.execute(
            self._filtered(
                select(func.count(Document.id), func.coalesce(func.sum(Document.file_size), 0)),
                **scope,
            )
        ).one()
        by_category = {category.value: 0 for category in DocumentCategory}
        rows = self.db.execute(
            self._filtered(select(Document.category, func.count(Document.id)), **scope)
            .group_by(Document.category)
        ).all()
        for category, count in rows:
            by_category[DocumentCategory(category).value] = int(count)

        recent = self.list_with_uploader(limit=RECENT_DOCUMENTS_LIMIT, offset=0, **scope)
        return {
            "total_documents": int(totals[0]),
            "documents_by_category": by_category,
            "total_file_size": int(totals[1]),
            "recent_documents": recent,
        }
