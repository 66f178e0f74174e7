from __future__ import annotations

from sqlalchemy import exists, func, select
from sqlalchemy.sql import Select

from app.core.errors import ConflictError
from app.models import Appointment, Patient
from app.repositories.base import Repository


class PatientRepository(Repository[Patient]):
    model = Patient
    label = "Patient"

    def _filtered(
        self,
        stmt: Select,
        *,
        email: str | None = None,
        phone: str | None = None,
        first_name: str | None = None,
        last_name: str | None = None,
    ) -> Select:
        if email:
            stmt = stmt.where(Patient.email == email)
        if phone:
            stmt = stmt.where(Patient.phone_number == phone)
        if first_name:
            stmt = stmt.where(Patient.first_name.ilike(f"%{first_name}%"))
        if last_name:
            stmt = stmt.where(Patient.last_name.ilike(f"%{last_name}%"))
        return stmt

    def find(
        self,
        *,
        email: str | None = None,
        phone: str | None = None,
        first_name: str | None = None,
        last_name: str | None = None,
        limit: int = 10,
        offset: int = 0,
    ) -> list[Patient]:
        stmt = self._filtered(
            select(Patient),
            email=email,
            phone=phone,
            first_name=first_name,
            last_name=last_name,
        )
        stmt = stmt.order_by(Patient.last_name, Patient.first_name, Patient.id)
        return list(self.db.execute(stmt.limit(limit).offset(offset)).scalars().unique())

    def count(
        self,
        *,
        email: str | None = None,
        phone: str | None = None,
        first_name: str | None = None,
        last_name: str | None = None,
    ) -> int:
        stmt = self._filtered(
            select(func.count(Patient.id)),
            email=email,
            phone=phone,
            first_name=first_name,
            last_name=last_name,
        )
        return int(self.db.execute(stmt).scalar_one())

    def find_by_user_id(self, user_id: str) -> Patient | None:
        stmt = select(Patient).where(Patient.user_id == user_id)
        return self.db.execute(stmt).scalars().first()

    def email_exists(self, email: str, *, exclude_id: str | None = None) -> bool:
        condition = Patient.email == email
        if exclude_id:
            condition = condition & (Patient.id != exclude_id)
        return bool(self.db.execute(select(exists().where(condition))).scalar())

    def phone_exists(self, phone: str, *, exclude_id: str | None = None) -> bool:
        condition = Patient.phone_number == phone
        if exclude_id:
            condition = condition & (Patient.id != exclude_id)
        return bool(self.db.execute(select(exists().where(condition))).scalar())

    def has_appointments(self, patient_id: str) -> bool:
        stmt = select(exists().where(Appointment.patient_id == patient_id))
        return bool(self.db.execute(stmt).scalar())

    def delete(self, instance: Patient, *, conflict_message: str | None = None) -> None:
        message = conflict_message or "Cannot delete patient with existing appointments"
        if self.has_appointments(instance.id):
            raise ConflictError(message, details={"patient_id": instance.id})
        super().delete(instance, conflict_message=message)
