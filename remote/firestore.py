"""Cloud Firestore remote store."""

import json
import os
import socket
import time
from functools import wraps
from typing import Any, Callable, Dict, List, Optional

from google.api_core import exceptions as google_exceptions
from google.cloud import firestore
from google.cloud.firestore_v1.base_query import FieldFilter
from google.oauth2 import service_account

from docarchive import DocArchive
from utils.retry import retry_on_transient_error, is_transient_network_error
from .base import (
    Backend, CancelFn, Query, RemoteError, RemoteUnavailable, ARRAY_CONTAINS, DELETE_FIELD,
)

SCOPES = ['https://www.googleapis.com/auth/datastore']

# Python client spells operators with underscores
_FIRESTORE_OPS = {ARRAY_CONTAINS: "array_contains"}

FIRESTORE_HOST = "firestore.googleapis.com"
ONLINE_CHECK_TTL = 30.0


# ---------------------------------------------------------------------------
# Firestore Retry Configuration
# ---------------------------------------------------------------------------

_TRANSIENT_GOOGLE_ERRORS = (
    google_exceptions.ServiceUnavailable,
    google_exceptions.DeadlineExceeded,
    google_exceptions.TooManyRequests,
    google_exceptions.InternalServerError,
)


def _is_retryable_firestore_error(exc: Exception) -> bool:
    """Determine if a Firestore error should be retried."""
    if isinstance(exc, _TRANSIENT_GOOGLE_ERRORS):
        return True
    return is_transient_network_error(exc)


def _log_retry(exc: Exception, attempt: int, delay: float) -> None:
    DocArchive.log(
        f"  [Retry] {type(exc).__name__} on attempt {attempt}, retrying in {delay:.1f}s..."
    )


def _remote_call(func):
    """Retry transient failures, then translate SDK errors to RemoteError."""
    retrying = retry_on_transient_error(
        is_retryable=_is_retryable_firestore_error,
        max_retries=3,
        base_delay=1.0,
        max_delay=20.0,
        on_retry=_log_retry,
    )(func)

    @wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return retrying(*args, **kwargs)
        except RemoteError:
            raise
        except google_exceptions.GoogleAPICallError as e:
            raise RemoteError(f"Firestore {func.__name__} failed: {e}") from e
        except OSError as e:
            raise RemoteUnavailable(f"Firestore unreachable: {e}") from e
    return wrapper


def _nested(path: str, value: Any) -> Dict[str, Any]:
    """Turn "a.b.c" and a value into {"a": {"b": {"c": value}}}."""
    result: Any = value
    for part in reversed(path.split(".")):
        result = {part: result}
    return result


def _load_credentials(service_account_file: str):
    """Service account from file or GOOGLE_SERVICE_ACCOUNT_JSON; None means ADC."""
    if os.path.exists(service_account_file):
        return service_account.Credentials.from_service_account_file(
            service_account_file, scopes=SCOPES
        )
    if os.environ.get('GOOGLE_SERVICE_ACCOUNT_JSON'):
        info = json.loads(os.environ['GOOGLE_SERVICE_ACCOUNT_JSON'])
        return service_account.Credentials.from_service_account_info(info, scopes=SCOPES)
    return None


class FirestoreBackend(Backend):
    """Remote store backed by Cloud Firestore.

    Uses service account authentication like the Google Drive blob store.
    Snapshot listeners call back on Firestore's own thread.
    """

    def __init__(self, project_id: Optional[str] = None,
                 service_account_file: str = "service_account_key.json") -> None:
        """Initialize the Firestore client.

        Args:
            project_id: Google Cloud project (None = taken from credentials)
            service_account_file: Path to service account credentials JSON

        Raises:
            RemoteError: If the client can't be created
        """
        try:
            creds = _load_credentials(service_account_file)
            project = project_id or (creds.project_id if creds else None)
            self.client = firestore.Client(project=project, credentials=creds)
        except Exception as e:
            raise RemoteError(f"Failed to initialize Firestore: {e}")

        self.project_id = self.client.project
        self._online: Optional[bool] = None
        self._online_checked = 0.0

    @property
    def display_name(self) -> str:
        return f"{self.project_id} (Firestore)"

    def is_online(self) -> bool:
        """TCP reachability check, cached for a short while."""
        now = time.monotonic()
        if self._online is None or now - self._online_checked > ONLINE_CHECK_TTL:
            try:
                with socket.create_connection((FIRESTORE_HOST, 443), timeout=2.0):
                    self._online = True
            except OSError:
                self._online = False
            self._online_checked = now
        return bool(self._online)

    def _ref(self, collection: str, doc_id: str):
        return self.client.collection(collection).document(doc_id)

    def _query(self, query: Query):
        q = self.client.collection(query.collection)
        for w in query.where:
            op = _FIRESTORE_OPS.get(w.op, w.op)
            q = q.where(filter=FieldFilter(w.field, op, w.value))
        return q

    # =========================================================================
    # Records
    # =========================================================================

    @_remote_call
    def get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        snap = self._ref(collection, doc_id).get()
        return snap.to_dict() if snap.exists else None

    @_remote_call
    def set(self, collection: str, doc_id: str, data: Dict[str, Any],
            merge: bool = False) -> None:
        self._ref(collection, doc_id).set(data, merge=merge)

    @_remote_call
    def add(self, collection: str, data: Dict[str, Any]) -> str:
        _, ref = self.client.collection(collection).add(data)
        return ref.id

    @_remote_call
    def update(self, collection: str, doc_id: str, data: Dict[str, Any]) -> None:
        try:
            self._ref(collection, doc_id).update({
                path: firestore.DELETE_FIELD if value is DELETE_FIELD else value
                for path, value in data.items()
            })
        except google_exceptions.NotFound as e:
            raise RemoteError(f"No record {collection}/{doc_id}") from e

    @_remote_call
    def delete(self, collection: str, doc_id: str) -> None:
        self._ref(collection, doc_id).delete()

    @_remote_call
    def array_union(self, collection: str, doc_id: str, field_path: str,
                    *values: Any) -> None:
        self._ref(collection, doc_id).set(
            _nested(field_path, firestore.ArrayUnion(list(values))), merge=True
        )

    # =========================================================================
    # Queries and listeners
    # =========================================================================

    @_remote_call
    def fetch(self, query: Query) -> List[Dict[str, Any]]:
        return [{**snap.to_dict(), "id": snap.id} for snap in self._query(query).stream()]

    def subscribe(self, query: Query,
                  on_change: Callable[[List[Dict[str, Any]]], None],
                  on_error: Optional[Callable[[Exception], None]] = None) -> CancelFn:
        def callback(snapshots, changes, read_time):
            try:
                on_change([{**snap.to_dict(), "id": snap.id} for snap in snapshots])
            except Exception as e:
                if on_error:
                    on_error(e)
                else:
                    DocArchive.log(f"[red]Listener error on {query.collection}: {e}[/red]")

        try:
            watch = self._query(query).on_snapshot(callback)
        except google_exceptions.GoogleAPICallError as e:
            raise RemoteError(f"Failed to subscribe to {query.collection}: {e}") from e
        return watch.unsubscribe

    def subscribe_document(self, collection: str, doc_id: str,
                           on_change: Callable[[Optional[Dict[str, Any]]], None],
                           on_error: Optional[Callable[[Exception], None]] = None) -> CancelFn:
        def callback(snapshots, changes, read_time):
            try:
                snap = snapshots[0] if snapshots else None
                on_change(snap.to_dict() if snap is not None and snap.exists else None)
            except Exception as e:
                if on_error:
                    on_error(e)
                else:
                    DocArchive.log(f"[red]Listener error on {collection}/{doc_id}: {e}[/red]")

        try:
            watch = self._ref(collection, doc_id).on_snapshot(callback)
        except google_exceptions.GoogleAPICallError as e:
            raise RemoteError(f"Failed to subscribe to {collection}/{doc_id}: {e}") from e
        return watch.unsubscribe
