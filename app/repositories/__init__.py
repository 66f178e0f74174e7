"""Persistence access, one repository per entity."""

from app.repositories.appointments import AppointmentRepository
from app.repositories.doctors import DoctorRepository
from app.repositories.documents import DocumentRepository
from app.repositories.patients import PatientRepository
from app.repositories.pending_uploads import PendingUploadRepository
from app.repositories.queue import QueueRepository

__all__ = [
    "AppointmentRepository",
    "DoctorRepository",
    "DocumentRepository",
    "PatientRepository",
    "PendingUploadRepository",
    "QueueRepository",
]
