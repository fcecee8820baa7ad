"""Booking service - wires the workflow to the database"""

import logging
from collections.abc import Callable
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from ...models import Appointment
from ..access.principal import Principal
from ..appointments.lifecycle import AppointmentLifecycle
from ..appointments.repository import AppointmentRepository
from ..providers.repository import ProviderDirectory
from .schemas import BookingRequest
from .workflow import BookingWorkflow

logger = logging.getLogger(__name__)


class BookingService:
    """Service layer for booking"""

    def __init__(self, db: Session, clock: Optional[Callable[[], datetime]] = None):
        self.db = db
        self.clock = clock or datetime.now

    def appointment_source(self, provider_id, day):
        return AppointmentRepository.booked_for(self.db, provider_id, day)

    def start(self, principal: Optional[Principal]) -> BookingWorkflow:
        """Begin a booking attempt; only patients get past the guard"""
        return BookingWorkflow(
            principal,
            directory=ProviderDirectory(self.db),
            appointment_source=self.appointment_source,
            lifecycle=AppointmentLifecycle(self.db, clock=self.clock),
            clock=self.clock,
        )

    def book(self, principal: Optional[Principal], data: BookingRequest) -> Appointment:
        """Drive every workflow stage from a single request"""
        logger.info(f"📅 Booking request from {getattr(principal, 'id', 'anonymous')} for doctor {data.doctorId}")
        workflow = self.start(principal)
        workflow.select_provider(data.doctorId)
        workflow.select_slot(data.appointmentDate, data.appointmentTime)
        workflow.enter_details(
            patient_name=data.patientName,
            email=data.email,
            phone=data.phone,
            reason=data.reason,
            consultation_type=data.consultationType,
            notes=data.notes,
            symptoms=data.symptoms,
        )
        return workflow.confirm()
