"""Placeholder store used when no remote backend is configured."""

from typing import Any, Callable, Dict, List, Optional

from .base import Backend, CancelFn, Query, RemoteUnavailable


class OfflineBackend(Backend):
    """Never available. Every call raises RemoteUnavailable."""

    @property
    def display_name(self) -> str:
        return "offline"

    def is_online(self) -> bool:
        return False

    def _unavailable(self, *args, **kwargs):
        raise RemoteUnavailable("No remote store configured")

    def get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        return self._unavailable()

    def set(self, collection: str, doc_id: str, data: Dict[str, Any],
            merge: bool = False) -> None:
        self._unavailable()

    def add(self, collection: str, data: Dict[str, Any]) -> str:
        return self._unavailable()

    def update(self, collection: str, doc_id: str, data: Dict[str, Any]) -> None:
        self._unavailable()

    def delete(self, collection: str, doc_id: str) -> None:
        self._unavailable()

    def array_union(self, collection: str, doc_id: str, field_path: str,
                    *values: Any) -> None:
        self._unavailable()

    def fetch(self, query: Query) -> List[Dict[str, Any]]:
        return self._unavailable()

    def subscribe(self, query: Query,
                  on_change: Callable[[List[Dict[str, Any]]], None],
                  on_error: Optional[Callable[[Exception], None]] = None) -> CancelFn:
        return self._unavailable()

    def subscribe_document(self, collection: str, doc_id: str,
                           on_change: Callable[[Optional[Dict[str, Any]]], None],
                           on_error: Optional[Callable[[Exception], None]] = None) -> CancelFn:
        return self._unavailable()
