"""Durable storage for the client-side session record"""

import json
import logging
import os
import tempfile
from pathlib import Path
from threading import Lock
from typing import Optional, Protocol

logger = logging.getLogger(__name__)


class SessionStorage(Protocol):
    """Where a session record ({token, user}) survives restarts"""

    def load(self) -> Optional[dict]: ...

    def save(self, record: dict) -> None: ...

    def clear(self) -> None: ...


class MemorySessionStorage:
    """Process-local storage, used by tests and short-lived tools"""

    def __init__(self, record: Optional[dict] = None):
        self._record = dict(record) if record is not None else None
        self._lock = Lock()

    def load(self) -> Optional[dict]:
        with self._lock:
            return dict(self._record) if self._record is not None else None

    def save(self, record: dict) -> None:
        with self._lock:
            self._record = dict(record)

    def clear(self) -> None:
        with self._lock:
            self._record = None


class FileSessionStorage:
    """
    JSON file storage.

    Writes go to a temp file in the same directory and are swapped in with
    ``os.replace`` so a reader never sees half a record. ``load`` raises
    ``ValueError`` for content that is not a JSON object; the caller decides
    what to do with a corrupt record.
    """

    def __init__(self, path):
        self.path = Path(path).expanduser()

    def load(self) -> Optional[dict]:
        if not self.path.exists():
            return None
        raw = self.path.read_text(encoding="utf-8")
        if not raw.strip():
            return None
        try:
            record = json.loads(raw)
        except json.JSONDecodeError as e:
            raise ValueError(f"Session file {self.path} is not valid JSON") from e
        if not isinstance(record, dict):
            raise ValueError(f"Session file {self.path} does not hold an object")
        return record

    def save(self, record: dict) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=self.path.parent, prefix=".session-", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(record, f)
            os.replace(tmp_path, self.path)
        except OSError:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise
        logger.debug(f"💾 Session saved to {self.path}")

    def clear(self) -> None:
        try:
            self.path.unlink()
        except FileNotFoundError:
            pass
