"""Base classes for remote document stores.

This module defines the minimal interface the archive needs from a managed
document database: keyed records in named collections, equality and
array-contains queries, merge writes, array union and live listeners.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple

CancelFn = Callable[[], None]

EQ = "=="
ARRAY_CONTAINS = "array-contains"


class _DeleteField:
    """Value for update() that removes the field instead of setting it."""

    def __repr__(self) -> str:
        return "DELETE_FIELD"


DELETE_FIELD = _DeleteField()


class RemoteError(Exception):
    """Base exception for remote store operations."""
    pass


class RemoteUnavailable(RemoteError):
    """No remote store is configured or it cannot be reached."""
    pass


@dataclass(frozen=True)
class Where:
    """One query condition: field op value."""
    field: str
    op: str
    value: Any

    def matches(self, data: Dict[str, Any]) -> bool:
        actual = get_path(data, self.field)
        if self.op == EQ:
            return actual == self.value
        if self.op == ARRAY_CONTAINS:
            return isinstance(actual, list) and self.value in actual
        raise ValueError(f"Unsupported operator: {self.op}")


@dataclass(frozen=True)
class Query:
    """A collection plus conjunctive conditions."""
    collection: str
    where: Tuple[Where, ...] = field(default_factory=tuple)

    @classmethod
    def on(cls, collection: str, *conditions: Tuple[str, str, Any]) -> "Query":
        """Query.on("documents", ("owner", "==", me))"""
        return cls(collection, tuple(Where(f, op, v) for f, op, v in conditions))

    def matches(self, data: Dict[str, Any]) -> bool:
        return all(w.matches(data) for w in self.where)


def get_path(data: Dict[str, Any], path: str) -> Any:
    """Read a dotted field path ("sharedFolders.abc.members")."""
    current: Any = data
    for part in path.split("."):
        if not isinstance(current, dict) or part not in current:
            return None
        current = current[part]
    return current


class Backend(ABC):
    """Abstract base class for remote document stores.

    Records are plain dicts. Results returned by fetch() and delivered to
    subscribers carry the record key under "id".
    """

    @property
    @abstractmethod
    def display_name(self) -> str:
        pass

    @abstractmethod
    def is_online(self) -> bool:
        """True if the store can currently be reached."""
        pass

    @property
    def available(self) -> bool:
        return self.is_online()

    # =========================================================================
    # Records
    # =========================================================================

    @abstractmethod
    def get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        """Return one record (without "id") or None if it doesn't exist."""
        pass

    @abstractmethod
    def set(self, collection: str, doc_id: str, data: Dict[str, Any],
            merge: bool = False) -> None:
        """Write a record. With merge=True nested maps are merged field by field."""
        pass

    @abstractmethod
    def add(self, collection: str, data: Dict[str, Any]) -> str:
        """Create a record under a generated key and return the key."""
        pass

    @abstractmethod
    def update(self, collection: str, doc_id: str, data: Dict[str, Any]) -> None:
        """Change fields of an existing record. Keys may be dotted paths;
        a DELETE_FIELD value removes the field.

        Raises:
            RemoteError: If the record does not exist
        """
        pass

    @abstractmethod
    def delete(self, collection: str, doc_id: str) -> None:
        """Delete a record. Deleting a missing record is a no-op."""
        pass

    @abstractmethod
    def array_union(self, collection: str, doc_id: str, field_path: str,
                    *values: Any) -> None:
        """Add values to an array field, skipping ones already present."""
        pass

    # =========================================================================
    # Queries and listeners
    # =========================================================================

    @abstractmethod
    def fetch(self, query: Query) -> List[Dict[str, Any]]:
        pass

    @abstractmethod
    def subscribe(self, query: Query,
                  on_change: Callable[[List[Dict[str, Any]]], None],
                  on_error: Optional[Callable[[Exception], None]] = None) -> CancelFn:
        """Call on_change with the full result set now and after every change."""
        pass

    @abstractmethod
    def subscribe_document(self, collection: str, doc_id: str,
                           on_change: Callable[[Optional[Dict[str, Any]]], None],
                           on_error: Optional[Callable[[Exception], None]] = None) -> CancelFn:
        """Call on_change with one record (or None) now and after every change."""
        pass
