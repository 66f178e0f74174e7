from __future__ import annotations

from sqlalchemy import exists, or_, select

from app.models import Appointment, Doctor
from app.repositories.base import Repository


class DoctorRepository(Repository[Doctor]):
    model = Doctor
    label = "Doctor"

    def find(
        self,
        *,
        is_active: bool | None = None,
        specialization: str | None = None,
        search: str | None = None,
    ) -> list[Doctor]:
        stmt = select(Doctor)
        if is_active is not None:
            stmt = stmt.where(Doctor.is_active.is_(is_active))
        if specialization:
            stmt = stmt.where(Doctor.specialization.ilike(f"%{specialization}%"))
        if search:
            pattern = f"%{search}%"
            stmt = stmt.where(
                or_(Doctor.first_name.ilike(pattern), Doctor.last_name.ilike(pattern))
            )
        stmt = stmt.order_by(Doctor.last_name, Doctor.first_name, Doctor.id)
        return list(self.db.execute(stmt).scalars().unique())

    def find_by_user_id(self, user_id: str) -> Doctor | None:
        stmt = select(Doctor).where(Doctor.user_id == user_id)
        return self.db.execute(stmt).scalars().first()

    def find_by_email(self, email: str) -> Doctor | None:
        return self.db.execute(select(Doctor).where(Doctor.email == email)).scalars().first()

    def has_appointments(self, doctor_id: str) -> bool:
        stmt = select(exists().where(Appointment.doctor_id == doctor_id))
        return bool(self.db.execute(stmt).scalar())
