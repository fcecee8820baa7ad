from .guard import DENIAL_SIGNALS, Decision, authorize, can_view_appointment, ensure_role
from .principal import Principal, Role

__all__ = [
    "DENIAL_SIGNALS",
    "Decision",
    "Principal",
    "Role",
    "authorize",
    "can_view_appointment",
    "ensure_role",
]
