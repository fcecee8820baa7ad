from .repository import HolidayRepository, ProviderDirectory
from .schemas import ConsultationKind, ConsultationOption, Holiday, Provider, WorkingHours

__all__ = [
    "ConsultationKind",
    "ConsultationOption",
    "Holiday",
    "HolidayRepository",
    "Provider",
    "ProviderDirectory",
    "WorkingHours",
]
