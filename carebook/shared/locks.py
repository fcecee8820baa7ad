"""Per-key locks for read-check-write sequences on the appointment collection"""

from contextlib import contextmanager
from threading import Lock


class KeyedLocks:
    """
    One lock per key, created on first use and dropped when no holder or
    waiter remains. Different keys never block each other.
    """

    def __init__(self):
        self._guard = Lock()
        self._locks: dict[str, list] = {}  # key -> [lock, users]

    @contextmanager
    def hold(self, key: str):
        with self._guard:
            entry = self._locks.setdefault(key, [Lock(), 0])
            entry[1] += 1

        lock = entry[0]
        lock.acquire()
        try:
            yield
        finally:
            lock.release()
            with self._guard:
                entry[1] -= 1
                if entry[1] == 0:
                    del self._locks[key]

    def active_keys(self) -> list[str]:
        with self._guard:
            return list(self._locks)


# Process-wide registry for the appointment collection
appointment_locks = KeyedLocks()


def appointment_key(appointment_id: str) -> str:
    return f"appointment:{appointment_id}"


def slot_key(provider_id: str, day) -> str:
    return f"slot:{provider_id}:{day.isoformat()}"
