"""Provider service - directory lookups, slot listings and doctor holidays"""

import logging
from collections.abc import Callable
from datetime import date, datetime
from typing import Optional

from sqlalchemy.orm import Session

from ..access.guard import ensure_role
from ..access.principal import Principal, Role
from ..appointments.repository import AppointmentRepository
from ..scheduling.slots import SlotSequence, compute_slots
from .repository import HolidayRepository, ProviderDirectory, to_holiday
from .schemas import Holiday, Provider

logger = logging.getLogger(__name__)


class ProviderService:
    """Service layer for the public doctor directory"""

    def __init__(self, db: Session, clock: Optional[Callable[[], datetime]] = None):
        self.db = db
        self.directory = ProviderDirectory(db)
        self.clock = clock or datetime.now

    def list_providers(self, specialization: Optional[str] = None) -> list[Provider]:
        return self.directory.list(specialization)

    def get_provider(self, provider_id: str) -> Provider:
        return self.directory.get(provider_id)

    def slots(self, provider_id: str, day: date) -> SlotSequence:
        provider = self.directory.get(provider_id)
        return compute_slots(
            provider,
            day,
            lambda pid, d: AppointmentRepository.booked_for(self.db, pid, d),
            now=self.clock(),
        )

    def holidays(self, principal: Optional[Principal]) -> list[Holiday]:
        principal = ensure_role(principal, {Role.DOCTOR}, "view holidays")
        return [to_holiday(row) for row in HolidayRepository.for_doctor(self.db, principal.id)]

    def add_holiday(
        self,
        principal: Optional[Principal],
        day: date,
        reason: Optional[str] = None,
        recurring: bool = False,
    ) -> list[Holiday]:
        """Mark a day off on the doctor's own calendar; returns the updated holiday list"""
        principal = ensure_role(principal, {Role.DOCTOR}, "add holidays")
        reason = reason.strip() if reason else None
        HolidayRepository.add(self.db, principal.id, day, reason or None, recurring)
        return self.holidays(principal)
