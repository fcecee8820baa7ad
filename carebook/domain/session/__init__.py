from .backends import AuthBackend, AuthResult, Credentials, DatabaseAuthBackend, HttpAuthBackend
from .storage import FileSessionStorage, MemorySessionStorage, SessionStorage
from .store import SessionStore, file_session_store

__all__ = [
    "AuthBackend",
    "AuthResult",
    "Credentials",
    "DatabaseAuthBackend",
    "FileSessionStorage",
    "HttpAuthBackend",
    "MemorySessionStorage",
    "SessionStorage",
    "SessionStore",
    "file_session_store",
]
