import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./carebook.db")

# Security - CRITICAL: No default secret key in production
SECRET_KEY = os.getenv("SECRET_KEY")
if not SECRET_KEY:
    import warnings

    warnings.warn(
        "SECRET_KEY not set! Using insecure default - DO NOT USE IN PRODUCTION", RuntimeWarning, stacklevel=2
    )
    SECRET_KEY = "INSECURE-DEV-KEY-CHANGE-IN-PRODUCTION"  # noqa: S105 - Dev fallback only

ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "720"))
BCRYPT_ROUNDS = int(os.getenv("BCRYPT_ROUNDS", "12"))

# Scheduling
SLOT_MINUTES = int(os.getenv("SLOT_MINUTES", "30"))
DEFAULT_WORK_START = os.getenv("DEFAULT_WORK_START", "09:00")
DEFAULT_WORK_END = os.getenv("DEFAULT_WORK_END", "17:00")

# Login throttling (5 attempts per 15 minutes per IP + email)
RATE_LIMIT_ENABLED = os.getenv("RATE_LIMIT_ENABLED", "true").lower() == "true"
LOGIN_RATE_LIMIT = int(os.getenv("LOGIN_RATE_LIMIT", "5"))
LOGIN_RATE_WINDOW_SECONDS = int(os.getenv("LOGIN_RATE_WINDOW_SECONDS", "900"))

# Admin bootstrap - both must be set for an admin account to be ensured on startup
ADMIN_EMAIL = os.getenv("ADMIN_EMAIL")
ADMIN_PASSWORD = os.getenv("ADMIN_PASSWORD")
ADMIN_NAME = os.getenv("ADMIN_NAME", "System Administrator")

# Client-side session persistence
SESSION_FILE = os.getenv("SESSION_FILE", str(Path.home() / ".carebook" / "session.json"))

# Frontend routes the access guard points callers at
LOGIN_REDIRECT = os.getenv("LOGIN_REDIRECT", "/login")
UNAUTHORIZED_REDIRECT = os.getenv("UNAUTHORIZED_REDIRECT", "/unauthorized")
