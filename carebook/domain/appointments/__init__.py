from .lifecycle import AppointmentLifecycle
from .repository import AppointmentFilter, AppointmentRepository, AppointmentStore
from .transitions import TERMINAL_STATUSES, TRANSITIONS, AppointmentStatus, allowed_roles, roles_reaching

__all__ = [
    "TERMINAL_STATUSES",
    "TRANSITIONS",
    "AppointmentFilter",
    "AppointmentLifecycle",
    "AppointmentRepository",
    "AppointmentStore",
    "AppointmentStatus",
    "allowed_roles",
    "roles_reaching",
]
