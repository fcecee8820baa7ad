"""
Authentication backends for the session store.

A backend exchanges credentials for a token plus the principal it belongs
to. ``DatabaseAuthBackend`` checks the local user table directly;
``HttpAuthBackend`` talks to a running CareBook API.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Optional, Protocol

import httpx
from sqlalchemy.orm import Session

from ...errors import CareBookError, InvalidCredentials, ValidationError
from ...models import User
from ...security_utils import create_access_token, verify_password_bcrypt
from ...shared.timeutils import utcnow
from ...shared.validators import validate_email
from ..access.principal import Principal

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Credentials:
    email: str
    password: str


@dataclass(frozen=True)
class AuthResult:
    token: str
    principal: Principal


class AuthBackend(Protocol):
    def login(self, credentials: Credentials) -> AuthResult: ...


def check_credentials(credentials: Credentials) -> str:
    """Validate credential shape; returns the normalised email"""
    errors = {}
    email = None
    if not credentials.email or not credentials.email.strip():
        errors["email"] = "Email is required"
    else:
        try:
            email = validate_email(credentials.email)
        except ValueError as e:
            errors["email"] = str(e)
    if not credentials.password:
        errors["password"] = "Password is required"
    if errors:
        raise ValidationError(errors)
    return email


class DatabaseAuthBackend:
    """Authenticate against the users table"""

    def __init__(self, session_factory: Callable[[], Session]):
        self.session_factory = session_factory

    def login(self, credentials: Credentials) -> AuthResult:
        email = check_credentials(credentials)
        db = self.session_factory()
        try:
            user = db.query(User).filter(User.email == email).first()
            if not user or not verify_password_bcrypt(credentials.password, user.password_hash):
                logger.info(f"🔑 Failed login for {email}")
                raise InvalidCredentials("Invalid email or password")
            if not user.is_active:
                logger.info(f"🔑 Login refused for deactivated account {email}")
                raise InvalidCredentials("Account is deactivated", reason="deactivated")

            user.last_login = utcnow()
            db.commit()
            db.refresh(user)

            token = create_access_token(user.id, user.role)
            logger.info(f"✅ Login successful for {email} ({user.role})")
            return AuthResult(token=token, principal=Principal.from_user(user))
        finally:
            db.close()


class HttpAuthBackend:
    """Authenticate through the API's /auth/login endpoint"""

    def __init__(self, base_url: str, client: Optional[httpx.Client] = None, timeout: float = 10.0):
        self.base_url = base_url.rstrip("/")
        self.client = client or httpx.Client(timeout=timeout)

    def login(self, credentials: Credentials) -> AuthResult:
        email = check_credentials(credentials)
        try:
            response = self.client.post(
                f"{self.base_url}/auth/login",
                json={"email": email, "password": credentials.password},
            )
        except httpx.HTTPError as e:
            logger.error(f"❌ Auth service unreachable: {e}")
            raise CareBookError("Authentication service unavailable") from e

        if response.status_code == 401:
            raise InvalidCredentials("Invalid email or password")
        if response.status_code == 422:
            raise ValidationError(self._field_errors(response))
        if response.status_code >= 400:
            logger.error(f"❌ Auth service returned {response.status_code}: {response.text[:200]}")
            raise CareBookError(f"Authentication failed with status {response.status_code}")

        try:
            body = response.json()
            principal = Principal.from_dict(body["user"])
            token = body["token"]
        except (KeyError, ValueError, TypeError) as e:
            logger.error(f"❌ Unexpected auth payload: {response.text[:200]}")
            raise CareBookError("Authentication service returned an unexpected payload") from e
        if not isinstance(token, str) or not token:
            raise CareBookError("Authentication service returned an empty token")
        return AuthResult(token=token, principal=principal)

    @staticmethod
    def _field_errors(response: httpx.Response) -> dict[str, str]:
        # JSONDecodeError is a ValueError
        try:
            errors = response.json().get("errors")
        except (ValueError, AttributeError):
            errors = None
        return errors if isinstance(errors, dict) else {"__root__": "Invalid login request"}
