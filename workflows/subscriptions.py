"""Registry of live remote listeners, at most one per kind."""

import threading
from typing import Callable, Dict, Optional

CancelFn = Callable[[], None]

DOCUMENTS = "documents"
FOLDER_MEMBERS = "folder-members"
SHARED_FOLDER_DOCS = "shared-folder-docs"
PENDING_INVITES = "pending-invites"


def cancel_once(cancel: CancelFn) -> CancelFn:
    """Wrap a cancel function so calling it twice is harmless."""
    lock = threading.Lock()
    done = [False]

    def wrapper() -> None:
        with lock:
            if done[0]:
                return
            done[0] = True
        cancel()

    return wrapper


class Subscriptions:
    """Tracks the active CancelFn for each listener kind.

    Registering a kind that is already active cancels the old listener
    first. A kind may hold several cancel functions registered together
    (e.g. the owned and shared document queries).
    """

    def __init__(self) -> None:
        self._active: Dict[str, CancelFn] = {}
        self._lock = threading.Lock()

    def replace(self, kind: str, *cancels: CancelFn) -> None:
        wrapped = [cancel_once(c) for c in cancels]

        def cancel_all() -> None:
            for c in wrapped:
                c()

        self.cancel(kind)
        with self._lock:
            self._active[kind] = cancel_all

    def cancel(self, kind: str) -> None:
        with self._lock:
            cancel: Optional[CancelFn] = self._active.pop(kind, None)
        if cancel:
            cancel()

    def cancel_all(self) -> None:
        with self._lock:
            active = list(self._active.values())
            self._active.clear()
        for cancel in active:
            cancel()

    def is_active(self, kind: str) -> bool:
        with self._lock:
            return kind in self._active
