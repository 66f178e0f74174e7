"""Service layer utilities for the CarePulse API."""

from app.services.sms_client import SMSClient, SMSResult, deliver_sms
from app.services.storage import DocumentStorage, MockStorage, S3Storage, get_storage

__all__ = [
    "DocumentStorage",
    "MockStorage",
    "S3Storage",
    "SMSClient",
    "SMSResult",
    "deliver_sms",
    "get_storage",
]
