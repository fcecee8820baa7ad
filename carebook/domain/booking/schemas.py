"""Booking domain schemas - Pydantic models for validation"""

from datetime import date
from typing import Optional

from pydantic import BaseModel, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from ...shared.validators import validate_email, validate_hhmm, validate_phone

MAX_NAME_LENGTH = 100
MAX_REASON_LENGTH = 500
MAX_NOTES_LENGTH = 1000
MAX_SYMPTOMS = 20
MAX_SYMPTOM_LENGTH = 50

# Model field -> field name reported to the caller
FIELD_NAMES = {
    "patient_name": "patientName",
    "email": "email",
    "phone": "phone",
    "reason": "reason",
    "notes": "notes",
    "symptoms": "symptoms",
    "consultation_type": "consultationType",
}


class PatientDetails(BaseModel):
    """Details entered on the last booking step. Bounds are enforced, never truncated."""

    patient_name: str
    email: str
    phone: str
    reason: str
    consultation_type: str
    symptoms: list[str] = Field(default_factory=list)
    notes: Optional[str] = None

    @field_validator("patient_name")
    @classmethod
    def validate_patient_name(cls, v):
        if not v or not v.strip():
            raise ValueError("Patient name is required")
        if len(v) > MAX_NAME_LENGTH:
            raise ValueError(f"Patient name must be at most {MAX_NAME_LENGTH} characters")
        return v.strip()

    @field_validator("email")
    @classmethod
    def validate_email_address(cls, v):
        if not v or not v.strip():
            raise ValueError("Email is required")
        return validate_email(v)

    @field_validator("phone")
    @classmethod
    def validate_phone_number(cls, v):
        return validate_phone(v)

    @field_validator("reason")
    @classmethod
    def validate_reason(cls, v):
        if not v or not v.strip():
            raise ValueError("Reason for visit is required")
        if len(v) > MAX_REASON_LENGTH:
            raise ValueError(f"Reason must be at most {MAX_REASON_LENGTH} characters")
        return v.strip()

    @field_validator("symptoms")
    @classmethod
    def validate_symptoms(cls, v):
        if len(v) > MAX_SYMPTOMS:
            raise ValueError(f"Maximum of {MAX_SYMPTOMS} symptoms allowed")
        for symptom in v:
            if len(symptom) > MAX_SYMPTOM_LENGTH:
                raise ValueError(f"Each symptom must be at most {MAX_SYMPTOM_LENGTH} characters")
        return v

    @field_validator("notes")
    @classmethod
    def validate_notes(cls, v):
        if v and len(v) > MAX_NOTES_LENGTH:
            raise ValueError(f"Notes must be at most {MAX_NOTES_LENGTH} characters")
        return v or None


def field_errors(exc: PydanticValidationError) -> dict[str, str]:
    """Flatten a pydantic error into {field: message} using caller-facing names"""
    errors: dict[str, str] = {}
    for error in exc.errors():
        field = str(error["loc"][0]) if error.get("loc") else "__root__"
        message = error.get("msg", "Invalid value")
        if message.startswith("Value error, "):
            message = message[len("Value error, ") :]
        errors.setdefault(FIELD_NAMES.get(field, field), message)
    return errors


class BookingRequest(BaseModel):
    """Schema for booking an appointment in one request"""

    doctorId: str
    appointmentDate: date
    appointmentTime: str
    consultationType: str
    patientName: str
    email: str
    phone: str
    reason: str
    symptoms: list[str] = Field(default_factory=list)
    notes: Optional[str] = None

    @field_validator("appointmentTime")
    @classmethod
    def validate_time(cls, v):
        return validate_hhmm(v)
