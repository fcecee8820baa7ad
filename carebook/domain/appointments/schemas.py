"""Appointment domain schemas - Pydantic models for validation"""

from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from ...shared.validators import validate_hhmm

MAX_PROVIDER_NOTES_LENGTH = 2000


class TransitionRequest(BaseModel):
    """Body for confirm/complete requests"""

    providerNotes: Optional[str] = Field(default=None, max_length=MAX_PROVIDER_NOTES_LENGTH)


class CancelRequest(BaseModel):
    """Body for cancellation"""

    reason: Optional[str] = Field(default=None, max_length=500)
    providerNotes: Optional[str] = Field(default=None, max_length=MAX_PROVIDER_NOTES_LENGTH)


class HoldRequest(BaseModel):
    """Schema for a provider-initiated hold"""

    patientId: str
    doctorId: str
    appointmentDate: date
    appointmentTime: str
    consultationType: str
    reason: str = Field(min_length=1, max_length=500)
    notes: Optional[str] = Field(default=None, max_length=1000)

    @field_validator("appointmentTime")
    @classmethod
    def validate_time(cls, v):
        return validate_hhmm(v)


class PaymentResponse(BaseModel):
    amount: float
    status: str


class CancellationResponse(BaseModel):
    cancelledBy: Optional[str] = None
    reason: Optional[str] = None
    cancelledAt: Optional[datetime] = None


class AppointmentResponse(BaseModel):
    """Schema for appointment response"""

    id: str
    patientId: str
    doctorId: str
    appointmentDate: date
    appointmentTime: str
    durationMinutes: int
    type: str
    reason: str
    symptoms: list[str]
    status: str
    payment: PaymentResponse
    notes: Optional[str] = None
    providerNotes: Optional[str] = None
    patientName: Optional[str] = None
    patientEmail: Optional[str] = None
    patientPhone: Optional[str] = None
    cancellation: Optional[CancellationResponse] = None
    createdAt: Optional[datetime] = None
    updatedAt: Optional[datetime] = None

    @classmethod
    def from_model(cls, appt) -> "AppointmentResponse":
        cancellation = None
        if appt.cancelled_at:
            cancellation = CancellationResponse(
                cancelledBy=appt.cancelled_by,
                reason=appt.cancellation_reason,
                cancelledAt=appt.cancelled_at,
            )
        return cls(
            id=appt.id,
            patientId=appt.patient_id,
            doctorId=appt.doctor_id,
            appointmentDate=appt.appointment_date,
            appointmentTime=appt.start_time,
            durationMinutes=appt.duration_minutes,
            type=appt.consultation_type,
            reason=appt.reason,
            symptoms=list(appt.symptoms or []),
            status=appt.status,
            payment=PaymentResponse(amount=appt.payment_amount, status=appt.payment_status),
            notes=appt.notes,
            providerNotes=appt.provider_notes,
            patientName=appt.patient_name,
            patientEmail=appt.patient_email,
            patientPhone=appt.patient_phone,
            cancellation=cancellation,
            createdAt=appt.created_at,
            updatedAt=appt.updated_at,
        )
