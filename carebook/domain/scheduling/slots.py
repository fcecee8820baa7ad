"""
Slot availability calculator.

Slots are derived, never stored: every iteration of a SlotSequence re-reads
the provider's bookings, so a sequence held across user think-time always
reflects the latest state when it is walked again.
"""

import logging
from collections.abc import Callable, Iterable, Iterator
from dataclasses import dataclass
from datetime import date, datetime, time
from typing import Optional

from ...config import SLOT_MINUTES
from ...shared.validators import parse_hhmm
from ..providers.schemas import Provider

logger = logging.getLogger(__name__)

# Statuses that no longer occupy the calendar
NON_BLOCKING_STATUSES = frozenset({"cancelled"})

AppointmentSource = Callable[[str, date], Iterable]


@dataclass(frozen=True)
class TimeSlot:
    date: date
    start_time: time
    duration_minutes: int
    available: bool

    @property
    def start_minute(self) -> int:
        return to_minutes(self.start_time)

    @property
    def end_minute(self) -> int:
        return self.start_minute + self.duration_minutes

    @property
    def label(self) -> str:
        return self.start_time.strftime("%H:%M")

    def to_dict(self) -> dict:
        return {
            "date": self.date.isoformat(),
            "time": self.label,
            "durationMinutes": self.duration_minutes,
            "available": self.available,
        }


def to_minutes(value: time) -> int:
    return value.hour * 60 + value.minute


def from_minutes(value: int) -> time:
    return time(value // 60, value % 60)


def overlaps(start_a: int, end_a: int, start_b: int, end_b: int) -> bool:
    """Half-open interval overlap: touching boundaries do not overlap"""
    return start_a < end_b and start_b < end_a


def booked_intervals(appointments: Iterable) -> list[tuple[int, int]]:
    """Minute intervals occupied by appointments that still block the calendar"""
    intervals = []
    for appt in appointments:
        if appt.status in NON_BLOCKING_STATUSES:
            continue
        start = to_minutes(parse_hhmm(appt.start_time))
        intervals.append((start, start + int(appt.duration_minutes)))
    return intervals


def _offered_on(provider: Provider, day: date, now: datetime) -> bool:
    if day < now.date():
        return False
    if provider.is_holiday(day):
        return False
    return day.weekday() in provider.working_days


class SlotSequence:
    """Finite, restartable sequence of slots for one provider on one date"""

    def __init__(
        self,
        provider: Provider,
        day: date,
        appointment_source: AppointmentSource,
        now: Optional[datetime] = None,
        slot_minutes: int = SLOT_MINUTES,
    ):
        self.provider = provider
        self.day = day
        self.appointment_source = appointment_source
        self.now = now
        self.slot_minutes = slot_minutes

    def __iter__(self) -> Iterator[TimeSlot]:
        now = self.now or datetime.now()
        if not _offered_on(self.provider, self.day, now):
            return

        busy = booked_intervals(self.appointment_source(self.provider.id, self.day))
        is_today = self.day == now.date()
        now_minute = to_minutes(now.time())

        start = to_minutes(self.provider.working_hours.start)
        end = to_minutes(self.provider.working_hours.end)
        cursor = start
        while cursor + self.slot_minutes <= end:
            slot_end = cursor + self.slot_minutes
            taken = any(overlaps(cursor, slot_end, b_start, b_end) for b_start, b_end in busy)
            started = is_today and cursor <= now_minute
            yield TimeSlot(
                date=self.day,
                start_time=from_minutes(cursor),
                duration_minutes=self.slot_minutes,
                available=not (taken or started),
            )
            cursor = slot_end

    def find(self, start_time: time) -> Optional[TimeSlot]:
        return find_slot(self, start_time)

    def available(self) -> list[TimeSlot]:
        return [slot for slot in self if slot.available]


def find_slot(slots: Iterable[TimeSlot], start_time: time) -> Optional[TimeSlot]:
    for slot in slots:
        if slot.start_time == start_time:
            return slot
    return None


def compute_slots(
    provider: Provider,
    day: date,
    appointment_source: AppointmentSource,
    now: Optional[datetime] = None,
) -> SlotSequence:
    """Bookable slots for a provider on a date; empty for past dates, days off and holidays"""
    return SlotSequence(provider, day, appointment_source, now=now)


def interval_is_free(
    provider: Provider,
    day: date,
    start_time: time,
    duration_minutes: int,
    appointments: Iterable,
    now: Optional[datetime] = None,
) -> bool:
    """
    Re-check a concrete appointment interval right before it is written.

    The interval must sit inside working hours on a working day, start in the
    future and not overlap any blocking appointment.
    """
    now = now or datetime.now()
    if not _offered_on(provider, day, now):
        return False

    start = to_minutes(start_time)
    end = start + duration_minutes
    if start < to_minutes(provider.working_hours.start) or end > to_minutes(provider.working_hours.end):
        return False
    if datetime.combine(day, start_time) <= now:
        return False

    for b_start, b_end in booked_intervals(appointments):
        if overlaps(start, end, b_start, b_end):
            logger.info(
                f"⛔ Interval {from_minutes(start):%H:%M}-{from_minutes(end):%H:%M} on {day} "
                f"overlaps an existing booking for provider {provider.id}"
            )
            return False
    return True
