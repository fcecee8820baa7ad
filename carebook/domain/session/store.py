"""
Client-side session store.

Holds the current token and principal for one client (CLI, desktop shell,
scripted integration). A principal counts as authenticated only while both
halves are present, and both halves are always written and cleared together.
"""

import logging
from threading import RLock
from typing import Optional

from ...config import SESSION_FILE
from ...errors import CareBookError
from ..access.principal import Principal
from .backends import AuthBackend, AuthResult, Credentials
from .storage import FileSessionStorage, MemorySessionStorage, SessionStorage

logger = logging.getLogger(__name__)

TOKEN_KEY = "token"
USER_KEY = "user"


class SessionStore:
    def __init__(self, backend: AuthBackend, storage: Optional[SessionStorage] = None):
        self.backend = backend
        self.storage = storage if storage is not None else MemorySessionStorage()
        self._lock = RLock()
        self._token: Optional[str] = None
        self._principal: Optional[Principal] = None
        self.hydrate()

    def hydrate(self) -> Optional[Principal]:
        """
        Restore the session from storage.

        Anything that does not parse into a non-empty token plus a valid
        principal is purged, leaving the session unauthenticated.
        """
        with self._lock:
            self._token = None
            self._principal = None
            try:
                record = self.storage.load()
            except (OSError, ValueError) as e:
                logger.warning(f"⚠️ Discarding unreadable session: {e}")
                self.storage.clear()
                return None

            if record is None:
                return None

            try:
                token = record[TOKEN_KEY]
                principal = Principal.from_dict(record[USER_KEY])
                if not isinstance(token, str) or not token:
                    raise ValueError("empty token")
            except (KeyError, ValueError, TypeError) as e:
                logger.warning(f"⚠️ Discarding malformed session record: {e!r}")
                self.storage.clear()
                return None

            self._token = token
            self._principal = principal
            logger.debug(f"🔄 Session restored for {principal.id} ({principal.role.value})")
            return principal

    def login(self, credentials: Credentials) -> Principal:
        result: AuthResult = self.backend.login(credentials)
        if not result.token:
            raise CareBookError("Authentication backend returned an empty token")
        with self._lock:
            self.storage.save({TOKEN_KEY: result.token, USER_KEY: result.principal.to_dict()})
            self._token = result.token
            self._principal = result.principal
        logger.info(f"🔐 Logged in as {result.principal.email or result.principal.id}")
        return result.principal

    def logout(self) -> None:
        with self._lock:
            self.storage.clear()
            self._token = None
            self._principal = None
        logger.info("👋 Logged out")

    def refresh_token(self, token: str) -> None:
        """Swap in a renewed token for the current principal"""
        if not token:
            raise ValueError("token must be non-empty")
        with self._lock:
            if self._principal is None:
                raise CareBookError("No active session to refresh")
            self.storage.save({TOKEN_KEY: token, USER_KEY: self._principal.to_dict()})
            self._token = token

    def current_principal(self) -> Optional[Principal]:
        with self._lock:
            if self._token and self._principal is not None:
                return self._principal
            return None

    @property
    def token(self) -> Optional[str]:
        with self._lock:
            return self._token if self._principal is not None else None

    @property
    def is_authenticated(self) -> bool:
        return self.current_principal() is not None

    def auth_headers(self) -> dict:
        token = self.token
        return {"Authorization": f"Bearer {token}"} if token else {}


def file_session_store(backend: AuthBackend, path: Optional[str] = None) -> SessionStore:
    """Session store persisted to SESSION_FILE (or the given path)"""
    return SessionStore(backend, FileSessionStorage(path or SESSION_FILE))
