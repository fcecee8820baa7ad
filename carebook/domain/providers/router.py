"""Provider router - public doctor directory, availability and doctor holidays"""

import logging
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...auth import require_roles
from ...database import get_db
from ..access.principal import Principal, Role
from .schemas import HolidayRequest, HolidayResponse, ProviderResponse
from .service import ProviderService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/doctors", tags=["Doctors"])


def get_provider_service(db: Session = Depends(get_db)) -> ProviderService:
    """Dependency injection for ProviderService"""
    return ProviderService(db)


@router.get("", response_model=list[ProviderResponse])
def list_doctors(
    specialization: Optional[str] = Query(None, max_length=100),
    service: ProviderService = Depends(get_provider_service),
):
    """List verified doctors, optionally filtered by specialization"""
    return [ProviderResponse.from_provider(p) for p in service.list_providers(specialization)]


@router.get("/me/holidays", response_model=list[HolidayResponse])
def list_my_holidays(
    principal: Principal = Depends(require_roles(Role.DOCTOR)),
    service: ProviderService = Depends(get_provider_service),
):
    return [HolidayResponse.from_holiday(h) for h in service.holidays(principal)]


@router.post("/me/holidays", response_model=list[HolidayResponse])
def add_my_holiday(
    data: HolidayRequest,
    principal: Principal = Depends(require_roles(Role.DOCTOR)),
    service: ProviderService = Depends(get_provider_service),
):
    """Mark a day off; recurring holidays repeat every year on the same date"""
    holidays = service.add_holiday(principal, data.day, data.reason, data.isRecurring)
    return [HolidayResponse.from_holiday(h) for h in holidays]


@router.get("/{doctor_id}", response_model=ProviderResponse)
def get_doctor(doctor_id: str, service: ProviderService = Depends(get_provider_service)):
    """Get a single doctor"""
    return ProviderResponse.from_provider(service.get_provider(doctor_id))


@router.get("/{doctor_id}/slots")
def get_doctor_slots(
    doctor_id: str,
    day: date = Query(..., alias="date"),
    service: ProviderService = Depends(get_provider_service),
):
    """Bookable slots for one day; empty for past dates, days off and holidays"""
    slots = [slot.to_dict() for slot in service.slots(doctor_id, day)]
    return {
        "doctorId": doctor_id,
        "date": day.isoformat(),
        "slots": slots,
        "availableCount": sum(1 for s in slots if s["available"]),
    }
