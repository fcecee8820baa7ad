"""Booking router - patient self-service booking"""

import logging

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from ...auth import require_roles
from ...database import get_db
from ..access.principal import Principal, Role
from ..appointments.schemas import AppointmentResponse
from .schemas import BookingRequest
from .service import BookingService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/appointments", tags=["Booking"])


def get_booking_service(db: Session = Depends(get_db)) -> BookingService:
    """Dependency injection for BookingService"""
    return BookingService(db)


@router.post("/book", response_model=AppointmentResponse, status_code=status.HTTP_201_CREATED)
def book_appointment(
    data: BookingRequest,
    principal: Principal = Depends(require_roles(Role.PATIENT)),
    service: BookingService = Depends(get_booking_service),
):
    """Book an appointment with a verified doctor"""
    appointment = service.book(principal, data)
    return AppointmentResponse.from_model(appointment)
