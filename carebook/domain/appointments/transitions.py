"""
Appointment state machine.

pending/scheduled are initial (provider hold vs. direct booking);
cancelled/completed are terminal. Patients may only act on their own
appointments, which the lifecycle enforces before consulting this table.
"""

from enum import Enum
from typing import Optional

from ..access.principal import Role


class AppointmentStatus(str, Enum):
    PENDING = "pending"
    SCHEDULED = "scheduled"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    COMPLETED = "completed"


INITIAL_STATUSES = frozenset({AppointmentStatus.PENDING, AppointmentStatus.SCHEDULED})
TERMINAL_STATUSES = frozenset({AppointmentStatus.CANCELLED, AppointmentStatus.COMPLETED})

_STAFF = frozenset({Role.DOCTOR, Role.ADMIN})
_STAFF_AND_PATIENT = frozenset({Role.DOCTOR, Role.ADMIN, Role.PATIENT})

TRANSITIONS: dict[tuple[AppointmentStatus, AppointmentStatus], frozenset[Role]] = {
    (AppointmentStatus.PENDING, AppointmentStatus.CONFIRMED): _STAFF,
    (AppointmentStatus.PENDING, AppointmentStatus.CANCELLED): _STAFF_AND_PATIENT,
    (AppointmentStatus.SCHEDULED, AppointmentStatus.CONFIRMED): _STAFF,
    (AppointmentStatus.SCHEDULED, AppointmentStatus.CANCELLED): _STAFF_AND_PATIENT,
    (AppointmentStatus.CONFIRMED, AppointmentStatus.COMPLETED): _STAFF,
    (AppointmentStatus.CONFIRMED, AppointmentStatus.CANCELLED): _STAFF,
}


def allowed_roles(from_status, to_status) -> Optional[frozenset[Role]]:
    """Roles permitted for a transition, or None when the table has no such edge"""
    return TRANSITIONS.get((AppointmentStatus(from_status), AppointmentStatus(to_status)))


def roles_reaching(target) -> frozenset[Role]:
    """Every role that may move some appointment into ``target``"""
    target = AppointmentStatus(target)
    roles: set[Role] = set()
    for (_, to_status), permitted in TRANSITIONS.items():
        if to_status is target:
            roles |= permitted
    return frozenset(roles)


def next_statuses(from_status, role: Role) -> list[AppointmentStatus]:
    """Statuses a role could move an appointment to from ``from_status``"""
    from_status = AppointmentStatus(from_status)
    return [
        to_status
        for (origin, to_status), permitted in TRANSITIONS.items()
        if origin is from_status and role in permitted
    ]


def is_terminal(status) -> bool:
    return AppointmentStatus(status) in TERMINAL_STATUSES
