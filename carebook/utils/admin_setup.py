"""Bootstrap of the administrator account from environment settings"""

import logging
from typing import Optional

from sqlalchemy.orm import Session

from ..config import ADMIN_EMAIL, ADMIN_NAME, ADMIN_PASSWORD
from ..models import User
from ..security_utils import hash_password_bcrypt

logger = logging.getLogger(__name__)


def ensure_admin(
    db: Session,
    email: Optional[str] = ADMIN_EMAIL,
    password: Optional[str] = ADMIN_PASSWORD,
    full_name: str = ADMIN_NAME,
) -> Optional[User]:
    """
    Make sure an admin account exists for ``email``.

    Does nothing unless both email and password are configured. An existing
    account keeps its password; only its role and active flag are restored.
    """
    if not email or not password:
        logger.info("ℹ️ ADMIN_EMAIL/ADMIN_PASSWORD not set, skipping admin bootstrap")
        return None

    email = email.strip().lower()
    user = db.query(User).filter(User.email == email).first()
    if user:
        if user.role != "admin" or not user.is_active:
            user.role = "admin"
            user.is_active = True
            db.commit()
            logger.info(f"🛡️ Restored admin role for {email}")
        return user

    user = User(
        email=email,
        password_hash=hash_password_bcrypt(password),
        full_name=full_name,
        role="admin",
        is_active=True,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    logger.info(f"🛡️ Created admin account {email}")
    return user
