"""Appointment router - holds, queries and lifecycle transitions"""

import logging
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from ...auth import get_current_principal, require_roles
from ...database import get_db
from ...errors import ValidationError
from ...shared.validators import parse_hhmm
from ..access.principal import Principal, Role
from .lifecycle import AppointmentLifecycle
from .schemas import AppointmentResponse, CancelRequest, HoldRequest, TransitionRequest
from .transitions import AppointmentStatus

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/appointments", tags=["Appointments"])


def get_lifecycle(db: Session = Depends(get_db)) -> AppointmentLifecycle:
    """Dependency injection for AppointmentLifecycle"""
    return AppointmentLifecycle(db)


@router.post("/hold", response_model=AppointmentResponse, status_code=status.HTTP_201_CREATED)
def place_hold(
    data: HoldRequest,
    principal: Principal = Depends(require_roles(Role.DOCTOR, Role.ADMIN)),
    lifecycle: AppointmentLifecycle = Depends(get_lifecycle),
):
    """Place a pending appointment on a doctor's calendar on behalf of a patient"""
    appointment = lifecycle.create_hold(
        principal,
        patient_id=data.patientId,
        provider_id=data.doctorId,
        day=data.appointmentDate,
        start_time=parse_hhmm(data.appointmentTime),
        consultation_type=data.consultationType,
        reason=data.reason,
        notes=data.notes,
    )
    return AppointmentResponse.from_model(appointment)


@router.get("", response_model=list[AppointmentResponse])
def list_appointments(
    status_filter: Optional[list[str]] = Query(None, alias="status"),
    date_from: Optional[date] = Query(None, alias="from"),
    date_to: Optional[date] = Query(None, alias="to"),
    principal: Principal = Depends(get_current_principal),
    lifecycle: AppointmentLifecycle = Depends(get_lifecycle),
):
    """List appointments visible to the caller"""
    if status_filter:
        unknown = [s for s in status_filter if s not in {st.value for st in AppointmentStatus}]
        if unknown:
            raise ValidationError({"status": f"Unknown status: {', '.join(unknown)}"})
    appointments = lifecycle.list_for(principal, statuses=status_filter, date_from=date_from, date_to=date_to)
    return [AppointmentResponse.from_model(a) for a in appointments]


@router.get("/{appointment_id}", response_model=AppointmentResponse)
def get_appointment(
    appointment_id: str,
    principal: Principal = Depends(get_current_principal),
    lifecycle: AppointmentLifecycle = Depends(get_lifecycle),
):
    """Get a single appointment"""
    return AppointmentResponse.from_model(lifecycle.get(principal, appointment_id))


@router.post("/{appointment_id}/confirm", response_model=AppointmentResponse)
def confirm_appointment(
    appointment_id: str,
    data: Optional[TransitionRequest] = None,
    principal: Principal = Depends(require_roles(Role.DOCTOR, Role.ADMIN)),
    lifecycle: AppointmentLifecycle = Depends(get_lifecycle),
):
    """Confirm a pending or scheduled appointment"""
    data = data or TransitionRequest()
    appointment = lifecycle.confirm(principal, appointment_id, provider_notes=data.providerNotes)
    return AppointmentResponse.from_model(appointment)


@router.post("/{appointment_id}/cancel", response_model=AppointmentResponse)
def cancel_appointment(
    appointment_id: str,
    data: Optional[CancelRequest] = None,
    principal: Principal = Depends(get_current_principal),
    lifecycle: AppointmentLifecycle = Depends(get_lifecycle),
):
    """Cancel an appointment; the transition table decides who may"""
    data = data or CancelRequest()
    appointment = lifecycle.cancel(
        principal, appointment_id, reason=data.reason, provider_notes=data.providerNotes
    )
    return AppointmentResponse.from_model(appointment)


@router.post("/{appointment_id}/complete", response_model=AppointmentResponse)
def complete_appointment(
    appointment_id: str,
    data: Optional[TransitionRequest] = None,
    principal: Principal = Depends(require_roles(Role.DOCTOR, Role.ADMIN)),
    lifecycle: AppointmentLifecycle = Depends(get_lifecycle),
):
    """Mark a confirmed appointment as completed"""
    data = data or TransitionRequest()
    appointment = lifecycle.complete(principal, appointment_id, provider_notes=data.providerNotes)
    return AppointmentResponse.from_model(appointment)
