"""
Booking workflow engine.

A booking attempt walks four stages:

    SELECTING_PROVIDER -> SELECTING_SLOT -> ENTERING_DETAILS -> CONFIRMED

Each forward step validates its own input and never advances on failure.
``back()`` steps one stage backwards and keeps whatever was entered for the
stages that are not being redone. Slot availability is checked when the
slot is picked and again right before the appointment is written, since
the user may have spent any amount of time on the details form.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Optional

from pydantic import ValidationError as PydanticValidationError

from ...errors import Conflict, InvalidTransition, ValidationError
from ...models import Appointment
from ...shared.validators import parse_hhmm
from ..access.guard import ensure_role
from ..access.principal import Principal, Role
from ..appointments.lifecycle import AppointmentLifecycle
from ..appointments.transitions import AppointmentStatus
from ..providers.repository import ProviderDirectory
from ..providers.schemas import Provider
from ..scheduling.slots import AppointmentSource, SlotSequence, TimeSlot, compute_slots, interval_is_free
from .schemas import MAX_SYMPTOM_LENGTH, MAX_SYMPTOMS, PatientDetails, field_errors

logger = logging.getLogger(__name__)


class BookingStage(str, Enum):
    SELECTING_PROVIDER = "selecting_provider"
    SELECTING_SLOT = "selecting_slot"
    ENTERING_DETAILS = "entering_details"
    CONFIRMED = "confirmed"


STAGE_ORDER = [
    BookingStage.SELECTING_PROVIDER,
    BookingStage.SELECTING_SLOT,
    BookingStage.ENTERING_DETAILS,
    BookingStage.CONFIRMED,
]


@dataclass
class BookingDraft:
    """Everything collected during one booking attempt"""

    provider: Optional[Provider] = None
    selected_date: Optional[date] = None
    slot: Optional[TimeSlot] = None
    patient_name: str = ""
    email: str = ""
    phone: str = ""
    reason: str = ""
    consultation_type: Optional[str] = None
    symptoms: list[str] = field(default_factory=list)
    notes: Optional[str] = None
    errors: dict[str, str] = field(default_factory=dict)

    def details(self) -> dict:
        return {
            "patient_name": self.patient_name,
            "email": self.email,
            "phone": self.phone,
            "reason": self.reason,
            "consultation_type": self.consultation_type or "",
            "symptoms": list(self.symptoms),
            "notes": self.notes,
        }


class BookingWorkflow:
    """One patient's booking attempt"""

    def __init__(
        self,
        principal: Optional[Principal],
        directory: ProviderDirectory,
        appointment_source: AppointmentSource,
        lifecycle: AppointmentLifecycle,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.principal = ensure_role(principal, {Role.PATIENT}, "book appointments")
        self.directory = directory
        self.appointment_source = appointment_source
        self.lifecycle = lifecycle
        self.clock = clock or datetime.now
        self.stage = BookingStage.SELECTING_PROVIDER
        self.draft: Optional[BookingDraft] = BookingDraft()
        self.appointment: Optional[Appointment] = None

    def _require(self, stage: BookingStage, action: str) -> None:
        if self.stage is not stage:
            raise InvalidTransition(self.stage.value, action, f"Cannot {action} while {self.stage.value}")

    # ------------------------------------------------------------------
    # Stage 1: provider
    # ------------------------------------------------------------------

    def select_provider(self, provider_id: str) -> Provider:
        self._require(BookingStage.SELECTING_PROVIDER, "select a provider")
        provider = self.directory.get(provider_id)

        previous = self.draft.provider
        if previous is not None and previous.id != provider.id:
            # Slot and consultation type belong to the old provider
            self.draft.selected_date = None
            self.draft.slot = None
            self.draft.consultation_type = None

        self.draft.provider = provider
        self.stage = BookingStage.SELECTING_SLOT
        return provider

    # ------------------------------------------------------------------
    # Stage 2: slot
    # ------------------------------------------------------------------

    def slots(self, day: date) -> SlotSequence:
        """Slots for the chosen provider; recomputed on every iteration"""
        if self.draft is None or self.draft.provider is None:
            raise InvalidTransition(self.stage.value, "list slots", "Select a provider first")
        return compute_slots(self.draft.provider, day, self.appointment_source, now=self.clock())

    def select_slot(self, day: date, start_time) -> TimeSlot:
        self._require(BookingStage.SELECTING_SLOT, "select a slot")
        if isinstance(start_time, str):
            try:
                start_time = parse_hhmm(start_time)
            except ValueError as e:
                raise ValidationError({"slot": str(e)}) from e

        slot = self.slots(day).find(start_time)
        if slot is None:
            raise ValidationError({"slot": "No bookable slot at this date and time"})
        if not slot.available:
            raise Conflict("Selected slot is not available", date=day.isoformat(), time=slot.label)

        self.draft.selected_date = day
        self.draft.slot = slot
        self.stage = BookingStage.ENTERING_DETAILS
        return slot

    # ------------------------------------------------------------------
    # Stage 3: details
    # ------------------------------------------------------------------

    def add_symptom(self, symptom: str) -> list[str]:
        self._require(BookingStage.ENTERING_DETAILS, "add symptoms")
        symptom = (symptom or "").strip()
        if not symptom:
            raise ValidationError({"symptoms": "Symptom cannot be empty"})
        if symptom in self.draft.symptoms:
            return list(self.draft.symptoms)
        if len(symptom) > MAX_SYMPTOM_LENGTH:
            raise ValidationError({"symptoms": f"Each symptom must be at most {MAX_SYMPTOM_LENGTH} characters"})
        if len(self.draft.symptoms) >= MAX_SYMPTOMS:
            raise ValidationError({"symptoms": f"Maximum of {MAX_SYMPTOMS} symptoms allowed"})
        self.draft.symptoms.append(symptom)
        return list(self.draft.symptoms)

    def remove_symptom(self, index: int) -> list[str]:
        self._require(BookingStage.ENTERING_DETAILS, "remove symptoms")
        if not 0 <= index < len(self.draft.symptoms):
            raise ValidationError({"symptoms": "No symptom at that position"})
        del self.draft.symptoms[index]
        return list(self.draft.symptoms)

    def enter_details(
        self,
        patient_name: Optional[str] = None,
        email: Optional[str] = None,
        phone: Optional[str] = None,
        reason: Optional[str] = None,
        consultation_type: Optional[str] = None,
        notes: Optional[str] = None,
        symptoms: Optional[list[str]] = None,
    ) -> PatientDetails:
        """Record details (only the fields given) and validate the whole form"""
        self._require(BookingStage.ENTERING_DETAILS, "enter details")
        if symptoms is not None:
            # Same normalisation as add_symptom: trimmed, blanks dropped, first occurrence wins
            cleaned = [s.strip() for s in symptoms if s and s.strip()]
            self.draft.symptoms = list(dict.fromkeys(cleaned))
        updates = {
            "patient_name": patient_name,
            "email": email,
            "phone": phone,
            "reason": reason,
            "consultation_type": consultation_type,
            "notes": notes,
        }
        for name, value in updates.items():
            if value is not None:
                setattr(self.draft, name, value)
        return self._validate_details()

    def _validate_details(self) -> PatientDetails:
        errors: dict[str, str] = {}
        details = None
        try:
            details = PatientDetails(**self.draft.details())
        except PydanticValidationError as e:
            errors.update(field_errors(e))

        kind = self.draft.consultation_type
        if not kind:
            errors["consultationType"] = "Consultation type is required"
        elif not self.draft.provider.offers(kind):
            errors["consultationType"] = "Consultation type not offered by this doctor"

        self.draft.errors = errors
        if errors:
            raise ValidationError(errors)
        return details

    # ------------------------------------------------------------------
    # Navigation
    # ------------------------------------------------------------------

    def back(self) -> BookingStage:
        if self.stage in (BookingStage.SELECTING_PROVIDER, BookingStage.CONFIRMED):
            raise InvalidTransition(self.stage.value, "back", f"Cannot go back from {self.stage.value}")
        self.stage = STAGE_ORDER[STAGE_ORDER.index(self.stage) - 1]
        return self.stage

    # ------------------------------------------------------------------
    # Stage 4: confirm
    # ------------------------------------------------------------------

    def _release_slot(self) -> None:
        self.draft.slot = None
        self.stage = BookingStage.SELECTING_SLOT

    def confirm(self) -> Appointment:
        """
        Re-validate everything and hand the candidate to the lifecycle.

        Conflict sends the workflow back to slot selection with details kept;
        any other failure leaves it on the details stage.
        """
        self._require(BookingStage.ENTERING_DETAILS, "confirm")
        details = self._validate_details()

        draft = self.draft
        provider = draft.provider
        option = provider.consultation(details.consultation_type)
        day = draft.selected_date
        now = self.clock()

        fresh = compute_slots(provider, day, self.appointment_source, now=now).find(draft.slot.start_time)
        still_free = (
            fresh is not None
            and fresh.available
            and interval_is_free(
                provider,
                day,
                draft.slot.start_time,
                option.duration_minutes,
                self.appointment_source(provider.id, day),
                now=now,
            )
        )
        if not still_free:
            slot_label = draft.slot.label
            logger.info(f"⚠️ Slot {day} {slot_label} with {provider.id} was taken before confirmation")
            self._release_slot()
            raise Conflict(date=day.isoformat(), time=slot_label)

        candidate = Appointment(
            patient_id=self.principal.id,
            doctor_id=provider.id,
            appointment_date=day,
            start_time=draft.slot.label,
            duration_minutes=option.duration_minutes,
            consultation_type=option.type.value,
            reason=details.reason,
            symptoms=list(details.symptoms),
            status=AppointmentStatus.SCHEDULED.value,
            payment_amount=option.fee,
            payment_status="pending",
            notes=details.notes,
            patient_name=details.patient_name,
            patient_email=details.email,
            patient_phone=details.phone,
        )

        try:
            self.appointment = self.lifecycle.create_booking(candidate)
        except Conflict:
            self._release_slot()
            raise

        self.stage = BookingStage.CONFIRMED
        self.draft = None
        logger.info(f"✅ Booking confirmed: {self.appointment.id} for patient {self.principal.id}")
        return self.appointment
