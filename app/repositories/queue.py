from __future__ import annotations

from datetime import date

from sqlalchemy import func, select

from app.models import QueueStatus, QueueTicket
from app.repositories.base import Repository


class QueueRepository(Repository[QueueTicket]):
    model = QueueTicket
    label = "Queue ticket"

    def find_by_appointment(self, appointment_id: str) -> QueueTicket | None:
        stmt = select(QueueTicket).where(QueueTicket.appointment_id == appointment_id)
        return self.db.execute(stmt).scalars().first()

    def next_number(self, queue_date: date) -> int:
        stmt = select(func.max(QueueTicket.queue_number)).where(
            QueueTicket.queue_date == queue_date
        )
        current = self.db.execute(stmt).scalar()
        return int(current or 0) + 1

    def patients_ahead(self, ticket: QueueTicket) -> int:
        """Checked-in tickets for the same doctor and day issued before ``ticket``."""

        stmt = select(func.count(QueueTicket.id)).where(
            QueueTicket.doctor_id == ticket.doctor_id,
            QueueTicket.queue_date == ticket.queue_date,
            QueueTicket.status == QueueStatus.CHECKED_IN,
            QueueTicket.queue_number < ticket.queue_number,
        )
        return int(self.db.execute(stmt).scalar_one())
