"""SQLAlchemy models for the CarePulse API."""

from app.domain.appointments import AppointmentStatus, AppointmentType
from app.models.appointment import Appointment
from app.models.doctor import Doctor
from app.models.document import Document
from app.models.message_log import MessageLog
from app.models.patient import Patient
from app.models.pending_upload import PendingUpload
from app.models.queue_ticket import QueueStatus, QueueTicket
from app.models.user import User

__all__ = [
    "Appointment",
    "AppointmentStatus",
    "AppointmentType",
    "Doctor",
    "Document",
    "MessageLog",
    "Patient",
    "PendingUpload",
    "QueueStatus",
    "QueueTicket",
    "User",
]
