"""Import every model so ``Base.metadata`` knows all tables."""

from app.models.base import Base
from app.models import (  # noqa: F401
    Appointment,
    Doctor,
    Document,
    MessageLog,
    Patient,
    PendingUpload,
    QueueTicket,
    User,
)

__all__ = [
    "Base",
    "Appointment",
    "Doctor",
    "Document",
    "MessageLog",
    "Patient",
    "PendingUpload",
    "QueueTicket",
    "User",
]
