from __future__ import annotations

from datetime import date

from sqlalchemy import Date, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.domain.identifiers import create_patient_id
from app.models.base import Base, TimestampMixin
from app.models.user import User


class Patient(Base, TimestampMixin):
    """Patient profile; exactly one per patient user account."""

    __tablename__ = "patients"

    id: Mapped[str] = mapped_column(
        String(64), primary_key=True, default=lambda: create_patient_id()
    )
    user_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False
    )
    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    # Normalized 8-digit local number, see PhoneNumber.value.
    phone_number: Mapped[str] = mapped_column(String(16), unique=True, nullable=False)
    date_of_birth: Mapped[date] = mapped_column(Date, nullable=False)
    address: Mapped[str | None] = mapped_column(Text, nullable=True)

    user: Mapped[User] = relationship(lazy="joined")

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"
