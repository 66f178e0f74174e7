from __future__ import annotations

from datetime import datetime

from sqlalchemy import BigInteger, DateTime, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column

from app.domain.documents import DocumentCategory
from app.models.base import Base, TimestampMixin
from app.models.document import document_category_type


class PendingUpload(Base, TimestampMixin):
    """Upload handle issued with a presigned URL and awaiting confirmation.

    Rows past ``expires_at`` are removed, together with any stored object,
    by the ``jobs.reap_expired_uploads`` task.
    """

    __tablename__ = "pending_uploads"

    file_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    storage_key: Mapped[str] = mapped_column(String(512), unique=True, nullable=False)
    patient_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("patients.id", ondelete="CASCADE"), nullable=False
    )
    appointment_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    requested_by: Mapped[str] = mapped_column(String(64), nullable=False)
    file_name: Mapped[str] = mapped_column(String(255), nullable=False)
    file_type: Mapped[str] = mapped_column(String(128), nullable=False)
    file_size: Mapped[int] = mapped_column(BigInteger, nullable=False)
    category: Mapped[DocumentCategory] = mapped_column(document_category_type, nullable=False)
    expires_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), index=True, nullable=False
    )
