"""Session-scoped key-value store.

Holds the current user and the "just logged in" flag for the lifetime of
one process. Nothing here survives a restart.
"""

import threading
from typing import Dict, Optional

CURRENT_USER_KEY = "docArchiveCurrentUser"
JUST_LOGGED_IN_KEY = "docArchiveJustLoggedIn"


class SessionStore:
    """Synchronous in-memory get/set/remove."""

    def __init__(self) -> None:
        self._values: Dict[str, str] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            return self._values.get(key)

    def set(self, key: str, value: str) -> None:
        with self._lock:
            self._values[key] = value

    def remove(self, key: str) -> None:
        with self._lock:
            self._values.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._values.clear()
