from __future__ import annotations

from datetime import datetime, timedelta

from sqlalchemy import select
from sqlalchemy.sql import Select

from app.core.errors import NotFoundError
from app.domain.appointments import AppointmentStatus, AppointmentType
from app.domain.value_objects import MAX_DURATION_MINUTES
from app.models import Appointment
from app.models.base import ensure_utc
from app.repositories.base import Repository

# Statuses that no longer hold a doctor's time.
_RELEASED_STATUSES = (AppointmentStatus.CANCELLED, AppointmentStatus.NO_SHOW)


class AppointmentRepository(Repository[Appointment]):
    model = Appointment
    label = "Appointment"

    def lock(self, appointment_id: str) -> Appointment:
        """Load an appointment with ``SELECT ... FOR UPDATE``."""

        stmt = (
            select(Appointment)
            .where(Appointment.id == appointment_id)
            .with_for_update(of=Appointment)
        )
        appointment = self.db.execute(stmt).scalars().first()
        if appointment is None:
            raise NotFoundError("Appointment not found", details={"id": appointment_id})
        return appointment

    def _filtered(
        self,
        stmt: Select,
        *,
        patient_id: str | None = None,
        doctor_id: str | None = None,
        status: AppointmentStatus | None = None,
        appointment_type: AppointmentType | None = None,
        starts_from: datetime | None = None,
        starts_before: datetime | None = None,
    ) -> Select:
        if patient_id:
            stmt = stmt.where(Appointment.patient_id == patient_id)
        if doctor_id:
            stmt = stmt.where(Appointment.doctor_id == doctor_id)
        if status:
            stmt = stmt.where(Appointment.status == status)
        if appointment_type:
            stmt = stmt.where(Appointment.type == appointment_type)
        if starts_from:
            stmt = stmt.where(Appointment.scheduled_at >= ensure_utc(starts_from))
        if starts_before:
            stmt = stmt.where(Appointment.scheduled_at < ensure_utc(starts_before))
        return stmt

    def find(self, **filters) -> list[Appointment]:
        stmt = self._filtered(select(Appointment), **filters)
        stmt = stmt.order_by(Appointment.scheduled_at, Appointment.id)
        return list(self.db.execute(stmt).scalars().unique())

    def has_schedule_conflict(
        self,
        *,
        doctor_id: str,
        start: datetime,
        duration_minutes: int,
        exclude_id: str | None = None,
    ) -> bool:
        """Whether the doctor already has an active appointment overlapping the slot."""

        start = ensure_utc(start)
        end = start + timedelta(minutes=duration_minutes)
        # Nothing that starts before this bound can still be running at ``start``.
        earliest = start - timedelta(minutes=MAX_DURATION_MINUTES)

        stmt = select(Appointment).where(
            Appointment.doctor_id == doctor_id,
            Appointment.status.not_in(_RELEASED_STATUSES),
            Appointment.scheduled_at > earliest,
            Appointment.scheduled_at < end,
        )
        if exclude_id:
            stmt = stmt.where(Appointment.id != exclude_id)

        for other in self.db.execute(stmt).scalars().unique():
            other_start = ensure_utc(other.scheduled_at)
            other_end = other_start + timedelta(minutes=other.duration_minutes)
            if other_start < end and other_end > start:
                return True
        return False
