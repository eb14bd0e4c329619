"""In-process remote store.

Keeps collections in memory and calls listeners synchronously after every
write. Several repositories in one process can share an instance, which
makes it usable as a fully local deployment and as the test double for the
sync and sharing workflows.
"""

import copy
import itertools
import threading
import uuid
from typing import Any, Callable, Dict, List, Optional, Tuple

from .base import Backend, CancelFn, Query, RemoteError, RemoteUnavailable, DELETE_FIELD


def _deep_merge(target: Dict[str, Any], updates: Dict[str, Any]) -> None:
    for key, value in updates.items():
        if isinstance(value, dict) and isinstance(target.get(key), dict):
            _deep_merge(target[key], value)
        else:
            target[key] = copy.deepcopy(value)


def _set_path(data: Dict[str, Any], path: str, value: Any) -> None:
    parts = path.split(".")
    current = data
    for part in parts[:-1]:
        if not isinstance(current.get(part), dict):
            current[part] = {}
        current = current[part]
    if value is DELETE_FIELD:
        current.pop(parts[-1], None)
    else:
        current[parts[-1]] = copy.deepcopy(value)


class MemoryBackend(Backend):
    """Dict-of-dicts store with live listeners."""

    def __init__(self, name: str = "memory") -> None:
        self.name = name
        self.online = True
        self._collections: Dict[str, Dict[str, Dict[str, Any]]] = {}
        self._listeners: Dict[int, Tuple[str, Any, Callable]] = {}
        self._ids = itertools.count(1)
        self._lock = threading.RLock()

    @property
    def display_name(self) -> str:
        return f"{self.name} (in-memory)"

    def is_online(self) -> bool:
        return self.online

    def _check_online(self) -> None:
        if not self.online:
            raise RemoteUnavailable(f"{self.display_name} is offline")

    def _collection(self, name: str) -> Dict[str, Dict[str, Any]]:
        return self._collections.setdefault(name, {})

    # =========================================================================
    # Records
    # =========================================================================

    def get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        self._check_online()
        with self._lock:
            record = self._collection(collection).get(doc_id)
            return copy.deepcopy(record) if record is not None else None

    def set(self, collection: str, doc_id: str, data: Dict[str, Any],
            merge: bool = False) -> None:
        self._check_online()
        with self._lock:
            records = self._collection(collection)
            if merge and doc_id in records:
                _deep_merge(records[doc_id], data)
            else:
                records[doc_id] = copy.deepcopy(data)
        self._changed(collection, doc_id)

    def add(self, collection: str, data: Dict[str, Any]) -> str:
        self._check_online()
        doc_id = uuid.uuid4().hex[:20]
        with self._lock:
            self._collection(collection)[doc_id] = copy.deepcopy(data)
        self._changed(collection, doc_id)
        return doc_id

    def update(self, collection: str, doc_id: str, data: Dict[str, Any]) -> None:
        self._check_online()
        with self._lock:
            record = self._collection(collection).get(doc_id)
            if record is None:
                raise RemoteError(f"No record {collection}/{doc_id}")
            for path, value in data.items():
                _set_path(record, path, value)
        self._changed(collection, doc_id)

    def delete(self, collection: str, doc_id: str) -> None:
        self._check_online()
        with self._lock:
            self._collection(collection).pop(doc_id, None)
        self._changed(collection, doc_id)

    def array_union(self, collection: str, doc_id: str, field_path: str,
                    *values: Any) -> None:
        self._check_online()
        with self._lock:
            record = self._collection(collection).setdefault(doc_id, {})
            parts = field_path.split(".")
            current = record
            for part in parts[:-1]:
                if not isinstance(current.get(part), dict):
                    current[part] = {}
                current = current[part]
            existing = current.get(parts[-1])
            if not isinstance(existing, list):
                existing = []
            for value in values:
                if value not in existing:
                    existing.append(value)
            current[parts[-1]] = existing
        self._changed(collection, doc_id)

    # =========================================================================
    # Queries and listeners
    # =========================================================================

    def _run(self, query: Query) -> List[Dict[str, Any]]:
        with self._lock:
            return [
                {**copy.deepcopy(record), "id": doc_id}
                for doc_id, record in self._collection(query.collection).items()
                if query.matches(record)
            ]

    def fetch(self, query: Query) -> List[Dict[str, Any]]:
        self._check_online()
        return self._run(query)

    def subscribe(self, query: Query,
                  on_change: Callable[[List[Dict[str, Any]]], None],
                  on_error: Optional[Callable[[Exception], None]] = None) -> CancelFn:
        self._check_online()

        def deliver(changed_id: Optional[str]) -> None:
            on_change(self._run(query))

        return self._listen(query.collection, None, deliver)

    def subscribe_document(self, collection: str, doc_id: str,
                           on_change: Callable[[Optional[Dict[str, Any]]], None],
                           on_error: Optional[Callable[[Exception], None]] = None) -> CancelFn:
        self._check_online()

        def deliver(changed_id: Optional[str]) -> None:
            with self._lock:
                record = self._collection(collection).get(doc_id)
                snapshot = copy.deepcopy(record) if record is not None else None
            on_change(snapshot)

        return self._listen(collection, doc_id, deliver)

    def _listen(self, collection: str, doc_id: Optional[str],
                deliver: Callable[[Optional[str]], None]) -> CancelFn:
        with self._lock:
            token = next(self._ids)
            self._listeners[token] = (collection, doc_id, deliver)

        deliver(None)

        def cancel() -> None:
            with self._lock:
                self._listeners.pop(token, None)

        return cancel

    def _changed(self, collection: str, doc_id: str) -> None:
        with self._lock:
            targets = [
                deliver for coll, key, deliver in self._listeners.values()
                if coll == collection and (key is None or key == doc_id)
            ]
        for deliver in targets:
            deliver(doc_id)

    @property
    def listener_count(self) -> int:
        with self._lock:
            return len(self._listeners)
