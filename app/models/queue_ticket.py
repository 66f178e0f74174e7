from __future__ import annotations

import enum
from datetime import date, datetime

from sqlalchemy import Date, DateTime, Enum, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from app.domain.identifiers import create_queue_id
from app.models.base import Base, TimestampMixin, utcnow


class QueueStatus(str, enum.Enum):
    CHECKED_IN = "CHECKED_IN"
    CALLED = "CALLED"
    DONE = "DONE"
    CANCELLED = "CANCELLED"


class QueueTicket(Base, TimestampMixin):
    """Waiting-room ticket issued when a patient checks in."""

    __tablename__ = "queue_tickets"
    __table_args__ = (UniqueConstraint("queue_date", "queue_number"),)

    id: Mapped[str] = mapped_column(
        String(64), primary_key=True, default=lambda: create_queue_id()
    )
    appointment_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("appointments.id", ondelete="CASCADE"), unique=True, nullable=False
    )
    patient_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("patients.id", ondelete="CASCADE"), nullable=False
    )
    doctor_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("doctors.id", ondelete="CASCADE"), index=True, nullable=False
    )
    queue_date: Mapped[date] = mapped_column(Date, nullable=False)
    queue_number: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[QueueStatus] = mapped_column(
        Enum(QueueStatus, name="queue_status"), default=QueueStatus.CHECKED_IN, nullable=False
    )
    checked_in_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )
