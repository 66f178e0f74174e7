from __future__ import annotations

from sqlalchemy import BigInteger, Boolean, Enum, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.domain.documents import DocumentCategory
from app.domain.identifiers import create_document_id
from app.models.base import Base, TimestampMixin
from app.models.doctor import Doctor
from app.models.patient import Patient
from app.models.user import User


document_category_type = Enum(DocumentCategory, name="document_category", metadata=Base.metadata)


class Document(Base, TimestampMixin):
    """Metadata for a file held in object storage."""

    __tablename__ = "documents"

    id: Mapped[str] = mapped_column(
        String(64), primary_key=True, default=lambda: create_document_id()
    )
    file_name: Mapped[str] = mapped_column(String(255), nullable=False)
    file_type: Mapped[str] = mapped_column(String(128), nullable=False)
    file_size: Mapped[int] = mapped_column(BigInteger, nullable=False)
    storage_key: Mapped[str] = mapped_column(String(512), unique=True, nullable=False)
    # Staff accounts live only in the auth service, so this is not a foreign key.
    uploaded_by: Mapped[str] = mapped_column(String(64), index=True, nullable=False)
    patient_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("patients.id", ondelete="CASCADE"), index=True, nullable=False
    )
    doctor_id: Mapped[str | None] = mapped_column(
        String(64), ForeignKey("doctors.id", ondelete="SET NULL"), nullable=True
    )
    appointment_id: Mapped[str | None] = mapped_column(
        String(64), ForeignKey("appointments.id", ondelete="SET NULL"), nullable=True
    )
    category: Mapped[DocumentCategory] = mapped_column(document_category_type, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_shared_with_patient: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    patient: Mapped[Patient] = relationship(lazy="joined")
    doctor: Mapped[Doctor | None] = relationship(lazy="joined")
    uploader: Mapped[User | None] = relationship(
        primaryjoin="foreign(Document.uploaded_by) == User.id", viewonly=True, lazy="joined"
    )
