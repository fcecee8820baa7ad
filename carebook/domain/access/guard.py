"""Access control guard - role-based allow/deny decisions"""

import logging
from collections.abc import Iterable
from enum import Enum
from typing import Optional

from ...config import LOGIN_REDIRECT, UNAUTHORIZED_REDIRECT
from ...errors import Forbidden, NotAuthenticated
from .principal import Principal, Role

logger = logging.getLogger(__name__)


class Decision(str, Enum):
    ALLOW = "allow"
    DENY_UNAUTHENTICATED = "deny_unauthenticated"
    DENY_FORBIDDEN = "deny_forbidden"


# Stable external signal per denial: (HTTP status, code, redirect target)
DENIAL_SIGNALS = {
    Decision.DENY_UNAUTHENTICATED: (401, "AUTH_REQUIRED", LOGIN_REDIRECT),
    Decision.DENY_FORBIDDEN: (403, "INSUFFICIENT_PERMISSIONS", UNAUTHORIZED_REDIRECT),
}


def authorize(principal: Optional[Principal], required_roles: Iterable[Role] = ()) -> Decision:
    """
    Decide whether a principal may proceed.

    No principal -> DENY_UNAUTHENTICATED. An empty role set admits any
    authenticated principal. Otherwise the principal's role must be in the set.
    """
    if principal is None:
        return Decision.DENY_UNAUTHENTICATED

    roles = {Role.parse(r) for r in required_roles}
    if not roles or principal.role in roles:
        return Decision.ALLOW
    return Decision.DENY_FORBIDDEN


def ensure_role(principal: Optional[Principal], required_roles: Iterable[Role], action: str) -> Principal:
    """Raise Forbidden unless the guard allows; used inside domain services"""
    decision = authorize(principal, required_roles)
    if decision is Decision.ALLOW:
        return principal
    _, code, redirect = DENIAL_SIGNALS[decision]
    logger.debug(f"🚫 Guard denied '{action}': {decision.value}")
    if decision is Decision.DENY_UNAUTHENTICATED:
        raise NotAuthenticated(f"Authentication required to {action}", redirect=redirect)
    error = Forbidden(
        f"Role '{principal.role.value}' may not {action}",
        redirect=redirect,
        current=principal.role.value,
    )
    error.code = code
    raise error


def can_view_appointment(principal: Principal, appointment) -> bool:
    """Admins see everything, doctors their own schedule, patients their own bookings"""
    if principal.role is Role.ADMIN:
        return True
    if principal.role is Role.DOCTOR:
        return appointment.doctor_id == principal.id
    if principal.role is Role.PATIENT:
        return appointment.patient_id == principal.id
    raise ValueError(f"Unhandled role: {principal.role}")
