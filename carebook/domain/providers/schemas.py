"""Provider domain types and API schemas"""

from dataclasses import dataclass, field
from datetime import date, time
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class ConsultationKind(str, Enum):
    IN_PERSON = "in_person"
    VIDEO = "video"
    PHONE = "phone"


@dataclass(frozen=True)
class ConsultationOption:
    type: ConsultationKind
    fee: float
    duration_minutes: int


@dataclass(frozen=True)
class WorkingHours:
    start: time
    end: time


@dataclass(frozen=True)
class Holiday:
    date: date
    reason: Optional[str] = None
    recurring: bool = False

    def covers(self, day: date) -> bool:
        if self.recurring:
            return (self.date.month, self.date.day) == (day.month, day.day)
        return self.date == day


@dataclass(frozen=True)
class Provider:
    """Read-only view of a doctor, as the booking core sees it"""

    id: str
    display_name: str
    specialization: str
    consultation_types: tuple[ConsultationOption, ...]
    working_hours: WorkingHours
    working_days: frozenset[int] = field(default_factory=lambda: frozenset(range(5)))
    bio: Optional[str] = None
    experience_years: int = 0
    holidays: tuple[Holiday, ...] = ()

    def consultation(self, kind) -> Optional[ConsultationOption]:
        for option in self.consultation_types:
            if option.type.value == getattr(kind, "value", kind):
                return option
        return None

    def offers(self, kind) -> bool:
        return self.consultation(kind) is not None

    def is_holiday(self, day: date) -> bool:
        return any(h.covers(day) for h in self.holidays)


class ConsultationOptionResponse(BaseModel):
    type: str
    fee: float
    durationMinutes: int


class ProviderResponse(BaseModel):
    """Schema for provider response"""

    id: str
    name: str
    specialization: str
    bio: Optional[str] = None
    experienceYears: int
    workingHours: dict
    workingDays: list[int]
    consultationTypes: list[ConsultationOptionResponse]

    @classmethod
    def from_provider(cls, provider: Provider) -> "ProviderResponse":
        return cls(
            id=provider.id,
            name=provider.display_name,
            specialization=provider.specialization,
            bio=provider.bio,
            experienceYears=provider.experience_years,
            workingHours={
                "start": provider.working_hours.start.strftime("%H:%M"),
                "end": provider.working_hours.end.strftime("%H:%M"),
            },
            workingDays=sorted(provider.working_days),
            consultationTypes=[
                ConsultationOptionResponse(type=o.type.value, fee=o.fee, durationMinutes=o.duration_minutes)
                for o in provider.consultation_types
            ],
        )


class HolidayRequest(BaseModel):
    """Schema for a doctor marking a day off"""

    day: date = Field(..., alias="date")
    reason: Optional[str] = Field(None, max_length=255)
    isRecurring: bool = False


class HolidayResponse(BaseModel):
    date: str
    reason: Optional[str] = None
    isRecurring: bool

    @classmethod
    def from_holiday(cls, holiday: Holiday) -> "HolidayResponse":
        return cls(date=holiday.date.isoformat(), reason=holiday.reason, isRecurring=holiday.recurring)
