import secrets
import time
import uuid

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    text,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .config import DEFAULT_WORK_END, DEFAULT_WORK_START
from .database import Base


def generate_public_id():
    """Generate a unique public ID for secure public access"""
    return str(uuid.uuid4())


def generate_appointment_id():
    """Opaque appointment id: prefix + millisecond timestamp + random suffix"""
    return f"APT-{int(time.time() * 1000)}-{secrets.token_hex(4)}"


def default_working_days():
    # Monday..Friday, as date.weekday() numbers
    return [0, 1, 2, 3, 4]


class User(Base):
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=generate_public_id)
    email = Column(String(255), unique=True, index=True, nullable=False)
    password_hash = Column(String(255), nullable=False)
    full_name = Column(String(255), nullable=False)
    role = Column(String(20), nullable=False, default="patient")  # patient, doctor, admin
    phone = Column(String(20), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    last_login = Column(DateTime, nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    doctor_profile = relationship(
        "DoctorProfile", back_populates="user", uselist=False, cascade="all, delete-orphan"
    )


class DoctorProfile(Base):
    __tablename__ = "doctor_profiles"

    user_id = Column(String(36), ForeignKey("users.id"), primary_key=True)
    specialization = Column(String(255), nullable=False)
    bio = Column(Text, nullable=True)
    experience_years = Column(Integer, default=0, nullable=False)
    work_start = Column(String(5), default=DEFAULT_WORK_START, nullable=False)  # HH:MM
    work_end = Column(String(5), default=DEFAULT_WORK_END, nullable=False)  # HH:MM
    working_days = Column(JSON, default=default_working_days, nullable=False)
    is_verified = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    user = relationship("User", back_populates="doctor_profile")
    consultation_types = relationship(
        "ConsultationType",
        back_populates="doctor",
        cascade="all, delete-orphan",
        order_by="ConsultationType.id",
    )
    holidays = relationship(
        "DoctorHoliday",
        back_populates="doctor",
        cascade="all, delete-orphan",
        order_by="DoctorHoliday.holiday_date",
    )


class ConsultationType(Base):
    __tablename__ = "consultation_types"
    __table_args__ = (UniqueConstraint("doctor_id", "type", name="uq_consultation_type"),)

    id = Column(Integer, primary_key=True, index=True)
    doctor_id = Column(String(36), ForeignKey("doctor_profiles.user_id"), nullable=False)
    type = Column(String(20), nullable=False)  # in_person, video, phone
    fee = Column(Float, nullable=False)
    duration_minutes = Column(Integer, default=30, nullable=False)

    doctor = relationship("DoctorProfile", back_populates="consultation_types")


class DoctorHoliday(Base):
    __tablename__ = "doctor_holidays"

    id = Column(Integer, primary_key=True, index=True)
    doctor_id = Column(String(36), ForeignKey("doctor_profiles.user_id"), nullable=False, index=True)
    holiday_date = Column(Date, nullable=False)
    reason = Column(String(255), nullable=True)
    # Recurring holidays repeat every year on the same month and day
    is_recurring = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, server_default=func.now())

    doctor = relationship("DoctorProfile", back_populates="holidays")


class Appointment(Base):
    __tablename__ = "appointments"
    __table_args__ = (
        Index("ix_appointments_patient_date", "patient_id", "appointment_date"),
        Index("ix_appointments_doctor_date", "doctor_id", "appointment_date"),
        # One live booking per provider start time; cancelled rows free the slot again
        Index(
            "uq_appointments_live_slot",
            "doctor_id",
            "appointment_date",
            "start_time",
            unique=True,
            sqlite_where=text("status != 'cancelled'"),
            postgresql_where=text("status != 'cancelled'"),
        ),
    )

    id = Column(String(40), primary_key=True, default=generate_appointment_id)
    patient_id = Column(String(36), ForeignKey("users.id"), nullable=False)
    doctor_id = Column(String(36), ForeignKey("users.id"), nullable=False)
    appointment_date = Column(Date, nullable=False)
    start_time = Column(String(5), nullable=False)  # HH:MM
    duration_minutes = Column(Integer, default=30, nullable=False)
    consultation_type = Column(String(20), nullable=False)
    reason = Column(Text, nullable=False)
    symptoms = Column(JSON, default=list, nullable=False)
    status = Column(String(20), default="scheduled", nullable=False, index=True)
    payment_amount = Column(Float, nullable=False, default=0)
    payment_status = Column(String(20), default="pending", nullable=False)  # pending, paid, refunded
    notes = Column(Text, nullable=True)
    provider_notes = Column(Text, nullable=True)
    # Contact details captured by the booking form
    patient_name = Column(String(100), nullable=True)
    patient_email = Column(String(255), nullable=True)
    patient_phone = Column(String(10), nullable=True)
    # Cancellation record
    cancelled_by = Column(String(20), nullable=True)  # patient, doctor, admin
    cancellation_reason = Column(Text, nullable=True)
    cancelled_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, nullable=False)
    updated_at = Column(DateTime, nullable=False)

    patient = relationship("User", foreign_keys=[patient_id])
    doctor = relationship("User", foreign_keys=[doctor_id])
