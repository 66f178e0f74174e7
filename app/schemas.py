"""Request bodies accepted by the API.

Phone numbers, emails and identifiers stay plain strings here; handlers
parse them through the domain value objects so that malformed values are
reported as ``FormatError`` rather than schema errors.
"""

from __future__ import annotations

from datetime import date, datetime

from pydantic import BaseModel, Field

from app.domain.appointments import AppointmentStatus, AppointmentType
from app.domain.documents import DocumentCategory
from app.services.sms_templates import MAX_SMS_LENGTH


class PatientCreate(BaseModel):
    first_name: str = Field(min_length=1, max_length=100)
    last_name: str = Field(min_length=1, max_length=100)
    email: str
    phone_number: str
    date_of_birth: date
    address: str | None = None
    user_id: str | None = None


class PatientUpdate(BaseModel):
    first_name: str | None = Field(default=None, min_length=1, max_length=100)
    last_name: str | None = Field(default=None, min_length=1, max_length=100)
    email: str | None = None
    phone_number: str | None = None
    date_of_birth: date | None = None
    address: str | None = None


class DoctorCreate(BaseModel):
    first_name: str = Field(min_length=1, max_length=100)
    last_name: str = Field(min_length=1, max_length=100)
    email: str
    specialization: str | None = None
    is_active: bool = True
    user_id: str | None = None


class DoctorUpdate(BaseModel):
    first_name: str | None = Field(default=None, min_length=1, max_length=100)
    last_name: str | None = Field(default=None, min_length=1, max_length=100)
    email: str | None = None
    specialization: str | None = None
    is_active: bool | None = None


class AppointmentCreate(BaseModel):
    patient_id: str
    doctor_id: str
    type: AppointmentType
    scheduled_at: datetime
    duration_minutes: int | None = None
    reason: str | None = None
    notes: str | None = None
    notify_patient: bool = False


class AppointmentUpdate(BaseModel):
    type: AppointmentType | None = None
    scheduled_at: datetime | None = None
    duration_minutes: int | None = None
    reason: str | None = None
    notes: str | None = None
    status: AppointmentStatus | None = None


class AppointmentStatusUpdate(BaseModel):
    status: AppointmentStatus
    notes: str | None = None
    notify_patient: bool = False
    cancellation_reason: str | None = None


class UploadUrlRequest(BaseModel):
    file_name: str = Field(min_length=1, max_length=255)
    file_type: str
    file_size: int
    patient_id: str
    category: DocumentCategory
    appointment_id: str | None = None


class ConfirmUploadRequest(BaseModel):
    file_id: str
    storage_key: str
    patient_id: str
    category: DocumentCategory | None = None
    appointment_id: str | None = None
    description: str | None = Field(default=None, max_length=1000)
    is_shared_with_patient: bool = False


class DocumentUpdate(BaseModel):
    description: str | None = Field(default=None, max_length=1000)
    category: DocumentCategory | None = None
    is_shared_with_patient: bool | None = None


class ToggleSharingRequest(BaseModel):
    is_shared_with_patient: bool


class SendSMSRequest(BaseModel):
    to: str = Field(min_length=8)
    body: str = Field(min_length=1, max_length=MAX_SMS_LENGTH)
    patient_name: str | None = None


class AppointmentReminderRequest(BaseModel):
    phone_number: str = Field(min_length=8)
    patient_name: str = Field(min_length=1)
    appointment_date: datetime
    doctor_name: str = Field(min_length=1)
    clinic_name: str | None = None


class AppointmentConfirmationRequest(AppointmentReminderRequest):
    pass


class AppointmentCancellationRequest(BaseModel):
    phone_number: str = Field(min_length=8)
    patient_name: str = Field(min_length=1)
    appointment_date: datetime
    reason: str | None = None
    clinic_name: str | None = None


class CustomMessageRequest(BaseModel):
    phone_number: str = Field(min_length=8)
    message: str = Field(min_length=1, max_length=MAX_SMS_LENGTH)
    patient_name: str | None = None


class SMSTestRequest(BaseModel):
    phone_number: str = Field(min_length=8)
