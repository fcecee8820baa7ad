"""
Appointment lifecycle manager.

Owns every appointment after creation. A transition request is handled as
one read-check-write cycle under the appointment's lock, so a second
concurrent request re-checks the table against the state the first one
left behind instead of a stale read.
"""

import logging
from collections.abc import Callable
from datetime import date, datetime, time
from typing import Optional

from sqlalchemy.orm import Session

from ...errors import Conflict, Forbidden, InvalidTransition, NotFound, ValidationError
from ...models import Appointment, User
from ...shared.locks import appointment_key, appointment_locks
from ..access.guard import can_view_appointment, ensure_role
from ..access.principal import Principal, Role
from ..providers.repository import ProviderDirectory
from ..scheduling.slots import compute_slots, interval_is_free
from .repository import AppointmentFilter, AppointmentRepository, AppointmentStore
from .transitions import AppointmentStatus, allowed_roles, roles_reaching

logger = logging.getLogger(__name__)


class AppointmentLifecycle:
    """Service layer for appointment state changes"""

    def __init__(self, db: Session, clock: Optional[Callable[[], datetime]] = None):
        self.db = db
        self.repo: AppointmentStore = AppointmentRepository()
        self.clock = clock or datetime.now

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    def create_booking(self, candidate: Appointment) -> Appointment:
        """Persist a candidate assembled by the booking workflow (status 'scheduled')"""
        if candidate.status != AppointmentStatus.SCHEDULED.value:
            raise InvalidTransition("new", candidate.status, "Direct bookings start as 'scheduled'")
        self.repo.create(self.db, candidate)
        return candidate

    def create_hold(
        self,
        principal: Optional[Principal],
        patient_id: str,
        provider_id: str,
        day: date,
        start_time: time,
        consultation_type: str,
        reason: str,
        notes: Optional[str] = None,
    ) -> Appointment:
        """Provider-initiated hold: a 'pending' appointment placed by a doctor or admin"""
        principal = ensure_role(principal, {Role.DOCTOR, Role.ADMIN}, "place an appointment hold")
        if principal.role is Role.DOCTOR and principal.id != provider_id:
            raise Forbidden("Doctors may only place holds on their own calendar")

        patient = self.db.query(User).filter(User.id == patient_id, User.role == Role.PATIENT.value).first()
        if not patient:
            raise NotFound("Patient not found", resource="patient", id=patient_id)

        provider = ProviderDirectory(self.db).get(provider_id)
        option = provider.consultation(consultation_type)
        if option is None:
            raise ValidationError({"consultationType": "Consultation type not offered by this doctor"})
        if not reason or not reason.strip():
            raise ValidationError({"reason": "Reason is required"})

        booked = self.repo.booked_for(self.db, provider_id, day)
        if compute_slots(provider, day, lambda _pid, _day: booked, now=self.clock()).find(start_time) is None:
            raise ValidationError({"slot": "No bookable slot at this date and time"})
        if not interval_is_free(provider, day, start_time, option.duration_minutes, booked, now=self.clock()):
            raise Conflict(date=day.isoformat(), time=start_time.strftime("%H:%M"))

        hold = Appointment(
            patient_id=patient.id,
            doctor_id=provider.id,
            appointment_date=day,
            start_time=start_time.strftime("%H:%M"),
            duration_minutes=option.duration_minutes,
            consultation_type=option.type.value,
            reason=reason.strip(),
            symptoms=[],
            status=AppointmentStatus.PENDING.value,
            payment_amount=option.fee,
            payment_status="pending",
            notes=notes,
            patient_name=patient.full_name,
            patient_email=patient.email,
            patient_phone=patient.phone,
        )
        self.repo.create(self.db, hold)
        logger.info(f"📌 Hold {hold.id} placed by {principal.role.value} {principal.id}")
        return hold

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get(self, principal: Optional[Principal], appointment_id: str) -> Appointment:
        principal = ensure_role(principal, (), "view appointments")
        appointment = self.repo.get(self.db, appointment_id)
        if not appointment:
            raise NotFound("Appointment not found", resource="appointment", id=appointment_id)
        if not can_view_appointment(principal, appointment):
            raise Forbidden("Access denied")
        return appointment

    def list_for(
        self,
        principal: Optional[Principal],
        statuses: Optional[list[str]] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
    ) -> list[Appointment]:
        """Appointments visible to the principal: own bookings, own schedule, or everything for admins"""
        principal = ensure_role(principal, (), "list appointments")
        criteria = AppointmentFilter(statuses=statuses, date_from=date_from, date_to=date_to)
        if principal.role is Role.PATIENT:
            criteria.patient_id = principal.id
        elif principal.role is Role.DOCTOR:
            criteria.doctor_id = principal.id
        elif principal.role is not Role.ADMIN:
            raise ValueError(f"Unhandled role: {principal.role}")
        return self.repo.query(self.db, criteria)

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def _check_ownership(self, principal: Principal, appointment: Appointment) -> None:
        if principal.role is Role.PATIENT and appointment.patient_id != principal.id:
            raise Forbidden("Patients may only act on their own appointments")
        if principal.role is Role.DOCTOR and appointment.doctor_id != principal.id:
            raise Forbidden("Doctors may only act on their own appointments")

    def transition(
        self,
        principal: Optional[Principal],
        appointment_id: str,
        target: str,
        provider_notes: Optional[str] = None,
        reason: Optional[str] = None,
    ) -> Appointment:
        target = AppointmentStatus(target).value
        # Anonymous callers learn nothing about which ids exist
        ensure_role(principal, (), f"move appointments to '{target}'")

        with appointment_locks.hold(appointment_key(appointment_id)):
            appointment = self.repo.get(self.db, appointment_id)
            if not appointment:
                raise NotFound("Appointment not found", resource="appointment", id=appointment_id)
            # Re-read inside the lock: another writer may have just committed
            self.db.refresh(appointment)

            principal = ensure_role(principal, roles_reaching(target), f"move appointments to '{target}'")
            self._check_ownership(principal, appointment)

            current = appointment.status
            permitted = allowed_roles(current, target)
            if permitted is None:
                logger.warning(f"⛔ Rejected {appointment_id}: {current} → {target}")
                raise InvalidTransition(current, target)
            if principal.role not in permitted:
                raise Forbidden(f"Role '{principal.role.value}' may not move '{current}' to '{target}'")

            return self.repo.transition(
                self.db,
                appointment_id,
                current,
                target,
                principal,
                provider_notes=provider_notes,
                reason=reason,
            )

    def confirm(self, principal, appointment_id: str, provider_notes: Optional[str] = None) -> Appointment:
        return self.transition(principal, appointment_id, AppointmentStatus.CONFIRMED, provider_notes=provider_notes)

    def cancel(
        self,
        principal,
        appointment_id: str,
        reason: Optional[str] = None,
        provider_notes: Optional[str] = None,
    ) -> Appointment:
        return self.transition(
            principal, appointment_id, AppointmentStatus.CANCELLED, provider_notes=provider_notes, reason=reason
        )

    def complete(self, principal, appointment_id: str, provider_notes: Optional[str] = None) -> Appointment:
        return self.transition(principal, appointment_id, AppointmentStatus.COMPLETED, provider_notes=provider_notes)
