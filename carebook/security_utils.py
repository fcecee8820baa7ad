"""
Password hashing and signed access tokens.

Tokens are HS256 JWTs carrying the user id (`sub`) and role. They are
stateless: a token stays valid until `exp`, and the auth dependency
re-checks that the account still exists and is active on every request.
"""

import logging
import secrets
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from jose import JWTError, jwt
from passlib.context import CryptContext

from .config import ACCESS_TOKEN_EXPIRE_MINUTES, BCRYPT_ROUNDS, SECRET_KEY

logger = logging.getLogger(__name__)

ALGORITHM = "HS256"

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=BCRYPT_ROUNDS)


def hash_password_bcrypt(password: str) -> str:
    return pwd_context.hash(password)


def verify_password_bcrypt(plain_password: str, hashed_password: str) -> bool:
    """False for a mismatch and for a stored hash passlib cannot read"""
    try:
        return pwd_context.verify(plain_password, hashed_password)
    except (ValueError, TypeError) as e:
        logger.error(f"Password verification error: {e}")
        return False


def create_access_token(user_id: str, role: str, lifetime: Optional[timedelta] = None) -> str:
    issued_at = datetime.now(timezone.utc)
    claims = {
        "sub": user_id,
        "role": role,
        "iat": issued_at,
        "exp": issued_at + (lifetime or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES)),
        "jti": secrets.token_urlsafe(8),
    }
    return jwt.encode(claims, SECRET_KEY, algorithm=ALGORITHM)


def verify_jwt_token(token: str) -> Optional[dict[str, Any]]:
    """Decoded claims, or None when the signature is bad or the token expired"""
    try:
        return jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError as e:
        logger.warning(f"JWT verification failed: {e}")
        return None
