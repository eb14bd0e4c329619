"""Remote document store abstraction for docarchive.

Provides a uniform interface over the managed document database:
- FirestoreBackend: Cloud Firestore
- MemoryBackend: in-process store (shared local deployments, tests)
- OfflineBackend: no remote store; every call raises RemoteUnavailable

Usage:
    from remote import create_backend

    backend = create_backend("firestore:my-project")
    backend = create_backend("memory:")
    backend = create_backend("offline:")
"""

from .base import (
    Backend,
    RemoteError,
    RemoteUnavailable,
    Query,
    Where,
    CancelFn,
    EQ,
    DELETE_FIELD,
    ARRAY_CONTAINS,
    get_path,
)
from .memory import MemoryBackend
from .offline import OfflineBackend


def create_backend(uri: str) -> Backend:
    """Create a remote store from a URI.

    The choice is made once at startup; an unreachable or unconfigured
    Firestore falls back to OfflineBackend.

    Args:
        uri: One of firestore:<project_id>, memory:, offline:

    Raises:
        ValueError: If URI format is invalid
    """
    if uri.startswith("firestore:"):
        from .firestore import FirestoreBackend
        try:
            return FirestoreBackend(uri[10:] or None)
        except RemoteError as e:
            from docarchive import DocArchive
            DocArchive.log(f"[yellow]{e}; continuing offline[/yellow]")
            return OfflineBackend()
    elif uri.startswith("memory:"):
        return MemoryBackend(uri[7:] or "memory")
    elif uri.startswith("offline:") or not uri:
        return OfflineBackend()
    else:
        raise ValueError(
            f"Invalid backend URI: {uri}. "
            "Must start with 'firestore:', 'memory:', or 'offline:'"
        )


__all__ = [
    'Backend',
    'RemoteError',
    'RemoteUnavailable',
    'Query',
    'Where',
    'CancelFn',
    'EQ',
    'DELETE_FIELD',
    'ARRAY_CONTAINS',
    'get_path',
    'MemoryBackend',
    'OfflineBackend',
    'create_backend',
]
