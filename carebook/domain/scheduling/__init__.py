from .slots import (
    NON_BLOCKING_STATUSES,
    SlotSequence,
    TimeSlot,
    booked_intervals,
    compute_slots,
    find_slot,
    interval_is_free,
    overlaps,
)

__all__ = [
    "NON_BLOCKING_STATUSES",
    "SlotSequence",
    "TimeSlot",
    "booked_intervals",
    "compute_slots",
    "find_slot",
    "interval_is_free",
    "overlaps",
]
