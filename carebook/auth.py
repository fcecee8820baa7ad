import logging
from typing import Optional

from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from .database import get_db
from .domain.access import DENIAL_SIGNALS, Decision, Principal, Role, authorize
from .models import User
from .security_utils import verify_jwt_token

logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)


def resolve_principal(db: Session, token: Optional[str]) -> Optional[Principal]:
    """
    Turn a bearer token into a principal.

    Both halves must be present: a token that verifies AND an active user
    record behind it. Missing either one means unauthenticated.
    """
    if not token:
        return None

    if len(token.split(".")) != 3:
        logger.warning(f"⚠️ Malformed token received, length: {len(token)}")
        return None

    payload = verify_jwt_token(token)
    if not payload or not payload.get("sub"):
        return None

    user = db.query(User).filter(User.id == payload["sub"]).first()
    if not user:
        logger.warning(f"⚠️ Token for unknown user {payload['sub']}")
        return None
    if not user.is_active:
        logger.info(f"ℹ️ Token for deactivated user {user.email}")
        return None

    try:
        return Principal.from_user(user)
    except ValueError:
        logger.error(f"❌ User {user.id} has unknown role '{user.role}'")
        return None


async def get_optional_principal(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Session = Depends(get_db),
) -> Optional[Principal]:
    """Principal for the request, or None when not authenticated"""
    token = credentials.credentials if credentials else None
    return resolve_principal(db, token)


def denial_exception(decision: Decision, principal: Optional[Principal], required: set) -> HTTPException:
    status_code, code, redirect = DENIAL_SIGNALS[decision]
    if decision is Decision.DENY_UNAUTHENTICATED:
        return HTTPException(
            status_code=status_code,
            detail={"code": code, "message": "Authentication required", "redirect": redirect},
            headers={"WWW-Authenticate": "Bearer", "X-Redirect-To": redirect},
        )
    return HTTPException(
        status_code=status_code,
        detail={
            "code": code,
            "message": "Insufficient permissions",
            "redirect": redirect,
            "required": sorted(r.value for r in required),
            "current": principal.role.value,
        },
        headers={"X-Redirect-To": redirect},
    )


def require_roles(*roles: Role):
    """
    FastAPI dependency gating a route on the caller's role.

    Evaluated on every request; an empty role list admits any authenticated
    principal.
    """
    required = {Role.parse(r) for r in roles}

    async def dependency(principal: Optional[Principal] = Depends(get_optional_principal)) -> Principal:
        decision = authorize(principal, required)
        if decision is Decision.ALLOW:
            return principal
        logger.info(f"🔒 Access {decision.value} for {getattr(principal, 'id', 'anonymous')}")
        raise denial_exception(decision, principal, required)

    return dependency


get_current_principal = require_roles()
