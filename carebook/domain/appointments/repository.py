"""Appointment repository - the persistence boundary for appointments"""

import logging
from dataclasses import dataclass
from datetime import date
from typing import Optional, Protocol

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ...errors import Conflict, Forbidden, InvalidTransition, NotFound, StaleState
from ...models import Appointment
from ...shared.locks import appointment_locks, slot_key
from ...shared.timeutils import utcnow
from ...shared.validators import parse_hhmm
from ..access.principal import Principal
from ..scheduling.slots import booked_intervals, overlaps, to_minutes
from .transitions import AppointmentStatus, allowed_roles

logger = logging.getLogger(__name__)


@dataclass
class AppointmentFilter:
    patient_id: Optional[str] = None
    doctor_id: Optional[str] = None
    statuses: Optional[list[str]] = None
    date_from: Optional[date] = None
    date_to: Optional[date] = None
    on_date: Optional[date] = None


class AppointmentStore(Protocol):
    """Persistence boundary for appointments"""

    def get(self, db: Session, appointment_id: str) -> Optional[Appointment]: ...

    def query(self, db: Session, criteria: AppointmentFilter) -> list[Appointment]: ...

    def booked_for(self, db: Session, doctor_id: str, day: date) -> list[Appointment]: ...

    def create(self, db: Session, appointment: Appointment) -> str: ...

    def transition(
        self,
        db: Session,
        appointment_id: str,
        from_status: str,
        to_status: str,
        actor: Principal,
        provider_notes: Optional[str] = None,
        reason: Optional[str] = None,
    ) -> Appointment: ...


class AppointmentRepository:
    """Repository for appointment database operations"""

    @staticmethod
    def get(db: Session, appointment_id: str) -> Optional[Appointment]:
        return db.query(Appointment).filter(Appointment.id == appointment_id).first()

    @staticmethod
    def query(db: Session, criteria: AppointmentFilter) -> list[Appointment]:
        """Appointments matching every set criterion, soonest first"""
        query = db.query(Appointment)

        if criteria.patient_id:
            query = query.filter(Appointment.patient_id == criteria.patient_id)
        if criteria.doctor_id:
            query = query.filter(Appointment.doctor_id == criteria.doctor_id)
        if criteria.statuses:
            query = query.filter(Appointment.status.in_(criteria.statuses))
        if criteria.on_date:
            query = query.filter(Appointment.appointment_date == criteria.on_date)
        if criteria.date_from:
            query = query.filter(Appointment.appointment_date >= criteria.date_from)
        if criteria.date_to:
            query = query.filter(Appointment.appointment_date <= criteria.date_to)

        return query.order_by(Appointment.appointment_date.asc(), Appointment.start_time.asc()).all()

    @staticmethod
    def booked_for(db: Session, doctor_id: str, day: date) -> list[Appointment]:
        """Appointments still occupying a provider's calendar on a date"""
        return (
            db.query(Appointment)
            .filter(
                Appointment.doctor_id == doctor_id,
                Appointment.appointment_date == day,
                Appointment.status != AppointmentStatus.CANCELLED.value,
            )
            .all()
        )

    @staticmethod
    def create(db: Session, appointment: Appointment) -> str:
        """
        Persist a new appointment and return its id.

        Raises Conflict when the interval overlaps a live booking of the same
        provider. The overlap check and the insert run under the provider/date
        lock so two submissions for one slot cannot both pass the check.
        """
        with appointment_locks.hold(slot_key(appointment.doctor_id, appointment.appointment_date)):
            start = to_minutes(parse_hhmm(appointment.start_time))
            end = start + int(appointment.duration_minutes)
            existing = AppointmentRepository.booked_for(db, appointment.doctor_id, appointment.appointment_date)
            for b_start, b_end in booked_intervals(existing):
                if overlaps(start, end, b_start, b_end):
                    logger.info(
                        f"⚠️ Booking conflict for provider {appointment.doctor_id} on "
                        f"{appointment.appointment_date} at {appointment.start_time}"
                    )
                    raise Conflict(
                        date=appointment.appointment_date.isoformat(),
                        time=appointment.start_time,
                    )

            now = utcnow()
            appointment.created_at = appointment.created_at or now
            appointment.updated_at = now
            db.add(appointment)
            try:
                db.commit()
            except IntegrityError as e:
                db.rollback()
                # Another process took the same start time between our check and insert
                logger.warning(f"⚠️ Unique slot constraint hit on insert: {e.orig}")
                raise Conflict(
                    date=appointment.appointment_date.isoformat(),
                    time=appointment.start_time,
                ) from e
            db.refresh(appointment)

        logger.info(
            f"✅ Appointment {appointment.id} created ({appointment.status}) for patient "
            f"{appointment.patient_id} with provider {appointment.doctor_id}"
        )
        return appointment.id

    @staticmethod
    def transition(
        db: Session,
        appointment_id: str,
        from_status: str,
        to_status: str,
        actor: Principal,
        provider_notes: Optional[str] = None,
        reason: Optional[str] = None,
    ) -> Appointment:
        """
        Move an appointment from ``from_status`` to ``to_status``.

        The write only lands if the stored status still equals
        ``from_status``; otherwise StaleState is raised and nothing changes.
        """
        appointment = AppointmentRepository.get(db, appointment_id)
        if not appointment:
            raise NotFound("Appointment not found", resource="appointment", id=appointment_id)
        if appointment.status != from_status:
            raise StaleState(
                "Appointment changed since it was read",
                expected=from_status,
                actual=appointment.status,
            )

        permitted = allowed_roles(from_status, to_status)
        if permitted is None:
            raise InvalidTransition(from_status, to_status)
        if actor.role not in permitted:
            raise Forbidden(f"Role '{actor.role.value}' may not move '{from_status}' to '{to_status}'")

        now = utcnow()
        updates = {Appointment.status: to_status, Appointment.updated_at: now}
        if provider_notes is not None:
            updates[Appointment.provider_notes] = provider_notes
        if to_status == AppointmentStatus.CANCELLED.value:
            updates[Appointment.cancelled_by] = actor.role.value
            updates[Appointment.cancellation_reason] = reason or f"Cancelled by {actor.role.value}"
            updates[Appointment.cancelled_at] = now

        changed = (
            db.query(Appointment)
            .filter(Appointment.id == appointment_id, Appointment.status == from_status)
            .update(updates, synchronize_session=False)
        )
        if changed == 0:
            db.rollback()
            raise StaleState("Appointment changed since it was read", expected=from_status)

        db.commit()
        db.refresh(appointment)
        logger.info(f"✅ Appointment {appointment_id} transitioned: {from_status} → {to_status} by {actor.role.value}")
        return appointment
