from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, Enum, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.domain.appointments import INITIAL_STATUS, AppointmentStatus, AppointmentType
from app.domain.identifiers import create_appointment_id
from app.models.base import Base, TimestampMixin
from app.models.doctor import Doctor
from app.models.patient import Patient


class Appointment(Base, TimestampMixin):
    """Appointment between a patient and a doctor.

    ``status`` is only written through ``app.services.appointments.change_status``.
    """

    __tablename__ = "appointments"
    __table_args__ = (Index("ix_appointments_doctor_schedule", "doctor_id", "scheduled_at"),)

    id: Mapped[str] = mapped_column(
        String(64), primary_key=True, default=lambda: create_appointment_id()
    )
    patient_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("patients.id", ondelete="RESTRICT"), index=True, nullable=False
    )
    doctor_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("doctors.id", ondelete="RESTRICT"), index=True, nullable=False
    )
    type: Mapped[AppointmentType] = mapped_column(
        Enum(AppointmentType, name="appointment_type"), nullable=False
    )
    status: Mapped[AppointmentStatus] = mapped_column(
        Enum(AppointmentStatus, name="appointment_status"),
        default=INITIAL_STATUS,
        nullable=False,
    )
    scheduled_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    duration_minutes: Mapped[int] = mapped_column(Integer, nullable=False)
    reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    patient: Mapped[Patient] = relationship(lazy="joined")
    doctor: Mapped[Doctor] = relationship(lazy="joined")
