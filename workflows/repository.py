"""Document repository: the current user's de-duplicated document list.

The repository owns the in-memory list and its local snapshot. Remote
mirroring happens through the on_saved / on_removed hooks, which the sync
engine installs; hook failures are logged and never propagate.
"""

import datetime
import re
import threading
from typing import Any, Callable, Dict, Iterable, List, Optional

from docarchive import DocArchive
from .document import Document
from .errors import NotAuthenticatedError
from .local_store import FileCache, UserStore
from .records import normalize_email
from .subscriptions import Subscriptions

DATE_SORT_FIELDS = ("uploadedAt", "warrantyExpiresAt", "autoDeleteAfter", "warrantyStart")
DEFAULT_SORT_FIELD = "uploadedAt"
DEFAULT_SORT_DIRECTION = "desc"


def merge_by_id(*groups: Iterable[Document]) -> List[Document]:
    """Concatenate document lists keeping the first occurrence of each id."""
    seen = set()
    merged = []
    for group in groups:
        for doc in group:
            if doc.id in seen:
                continue
            seen.add(doc.id)
            merged.append(doc)
    return merged


def _timestamp(value: Any) -> float:
    """Milliseconds since the epoch; missing or unparseable values are 0."""
    if value is None or value == "":
        return 0.0
    if isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, datetime.datetime):
        return value.timestamp() * 1000
    if isinstance(value, datetime.date):
        return datetime.datetime.combine(value, datetime.time.min).timestamp() * 1000
    text = str(value).strip()
    if text.isdigit():
        return float(text)
    try:
        return datetime.datetime.fromisoformat(text.replace("Z", "+00:00")).timestamp() * 1000
    except ValueError:
        return 0.0


def _year(value: Any) -> int:
    m = re.match(r"\s*([+-]?\d+)", str(value if value is not None else ""))
    return int(m.group(1)) if m else 0


def _text(value: Any) -> str:
    if isinstance(value, list):
        value = ", ".join(str(v) for v in value)
    return str(value or "").lower()


def sort_documents(docs: Iterable[Document], field: str = DEFAULT_SORT_FIELD,
                   direction: str = DEFAULT_SORT_DIRECTION) -> List[Document]:
    """Sort by a camelCase field name.

    Date fields compare as timestamps, "year" as an integer, everything else
    as lowercase text. Equal keys keep their original order.
    """
    if field in DATE_SORT_FIELDS:
        key = _timestamp
    elif field == "year":
        key = _year
    else:
        key = _text
    return sorted(docs, key=lambda d: key(d.to_dict().get(field)),
                  reverse=(direction == "desc"))


class DocumentRepository:
    """The current user's documents, owned and shared, keyed by id."""

    def __init__(self, user_store: UserStore, file_cache: FileCache) -> None:
        self.user_store = user_store
        self.file_cache = file_cache
        self.email: Optional[str] = None
        self.subscriptions = Subscriptions()

        # Installed by SyncEngine.attach()
        self.on_saved: Optional[Callable[[Document], None]] = None
        self.on_removed: Optional[Callable[[Document], None]] = None

        self._docs: List[Document] = []
        self._lock = threading.RLock()

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def open(self, email: str) -> List[Document]:
        """Start a session for a user from their last local snapshot."""
        email = normalize_email(email)
        if not email:
            raise NotAuthenticatedError("No user to open the repository for")
        with self._lock:
            self.subscriptions.cancel_all()
            self.email = email
            self._docs = self.user_store.get_docs(email)
            return list(self._docs)

    def close(self) -> None:
        """Stop every live listener and forget the in-memory list."""
        self.subscriptions.cancel_all()
        with self._lock:
            self._docs = []
            self.email = None

    @property
    def is_open(self) -> bool:
        return self.email is not None

    def require_user(self) -> str:
        if not self.email:
            raise NotAuthenticatedError("Not logged in")
        return self.email

    def _persist(self) -> None:
        self.user_store.set_docs(self.require_user(), self._docs)

    def _index(self, doc_id: str) -> int:
        for i, doc in enumerate(self._docs):
            if doc.id == doc_id:
                return i
        return -1

    def _notify_saved(self, doc: Document) -> None:
        if self.on_saved is None:
            return
        try:
            self.on_saved(doc)
        except Exception as e:
            DocArchive.log(f"[yellow]Remote mirror failed for {doc.id}: {e}[/yellow]")

    def _notify_removed(self, doc: Document) -> None:
        if self.on_removed is None:
            return
        try:
            self.on_removed(doc)
        except Exception as e:
            DocArchive.log(f"[yellow]Remote delete failed for {doc.id}: {e}[/yellow]")

    # =========================================================================
    # Queries
    # =========================================================================

    def all(self) -> List[Document]:
        """Every document, trashed ones included."""
        with self._lock:
            return list(self._docs)

    def documents(self) -> List[Document]:
        with self._lock:
            return [d for d in self._docs if not d.trashed]

    def trashed(self) -> List[Document]:
        with self._lock:
            return [d for d in self._docs if d.trashed]

    def in_category(self, category: str) -> List[Document]:
        return [d for d in self.documents() if d.category == category]

    def in_shared_folder(self, folder_id: str) -> List[Document]:
        return [d for d in self.documents() if d.shared_folder_id == folder_id]

    def owned(self) -> List[Document]:
        me = self.require_user()
        return [d for d in self.documents() if not d.owner or d.owner == me]

    def find(self, doc_id: str) -> Optional[Document]:
        with self._lock:
            i = self._index(doc_id)
            return self._docs[i] if i >= 0 else None

    def is_duplicate(self, file_name: str) -> bool:
        """True if a non-trashed document already has this filename."""
        name = (file_name or "").strip()
        return any(d.original_file_name == name for d in self.documents())

    # =========================================================================
    # Mutations
    # =========================================================================

    def load(self, source: Optional[Any] = None) -> List[Document]:
        """Refresh from the remote store, or fall back to the local snapshot.

        source must provide fetch_owned_and_shared() returning
        (owned, shared) lists; any exception it raises means "use local".
        """
        self.require_user()
        if source is None or not source.is_available():
            with self._lock:
                return list(self._docs)
        try:
            owned, shared = source.fetch_owned_and_shared()
        except Exception as e:
            DocArchive.log(f"[yellow]Remote load failed, using local snapshot: {e}[/yellow]")
            with self._lock:
                return list(self._docs)

        with self._lock:
            local_files = {d.id for d in self._docs if d.has_file}
            merged = merge_by_id(owned, shared)
            for doc in merged:
                if doc.id in local_files:
                    doc.has_file = True
            self._docs = merged
            self._persist()
            return list(self._docs)

    def add(self, doc: Document, mirror: bool = True) -> Document:
        """Append a document, persist locally, then mirror remotely."""
        with self._lock:
            self.require_user()
            self._docs.append(doc)
            self._persist()
        if mirror:
            self._notify_saved(doc)
        return doc

    def update(self, doc_id: str, patch: Dict[str, Any],
               mirror: bool = True) -> Optional[Document]:
        """Merge attribute changes into one document. No re-classification.

        mirror=False skips the remote hook, for changes that came from
        the remote store or are written there separately.
        """
        with self._lock:
            i = self._index(doc_id)
            if i < 0:
                return None
            updated = self._docs[i].with_changes(**patch)
            self._docs[i] = updated
            self._persist()
        if mirror:
            self._notify_saved(updated)
        return updated

    def soft_delete(self, doc_id: str) -> bool:
        """Move a document to the trash."""
        updated = self.update(doc_id, {
            "trashed": True,
            "deleted_at": int(datetime.datetime.now().timestamp() * 1000),
            "deleted_by": self.email,
        })
        return updated is not None

    def restore(self, doc_id: str) -> bool:
        """Bring a document back from the trash."""
        updated = self.update(doc_id, {
            "trashed": False,
            "deleted_at": None,
            "deleted_by": None,
        })
        return updated is not None

    def hard_delete(self, doc_id: str) -> bool:
        """Remove a document and its cached bytes for good."""
        with self._lock:
            i = self._index(doc_id)
            if i < 0:
                return False
            doc = self._docs.pop(i)
            self.file_cache.delete(doc_id)
            self._persist()
        self._notify_removed(doc)
        return True

    def purge_expired(self, now: Optional[datetime.datetime] = None) -> bool:
        """Drop warranty documents whose auto-delete date has passed.

        A document goes once `now` is past midnight at the start of its
        autoDeleteAfter day. Returns True if anything was removed.
        """
        now = now or datetime.datetime.now()
        removed = []
        with self._lock:
            self.require_user()
            kept = []
            for doc in self._docs:
                if doc.is_warranty and doc.auto_delete_after:
                    try:
                        delete_on = datetime.datetime.combine(
                            datetime.date.fromisoformat(doc.auto_delete_after),
                            datetime.time.min,
                        )
                    except ValueError:
                        kept.append(doc)
                        continue
                    if now > delete_on:
                        self.file_cache.delete(doc.id)
                        removed.append(doc)
                        continue
                kept.append(doc)
            if removed:
                self._docs = kept
                self._persist()

        for doc in removed:
            DocArchive.log(f"Purged expired warranty: {doc.display_title()}")
            self._notify_removed(doc)
        return bool(removed)

    def merge_remote(self, docs: Iterable[Document]) -> List[Document]:
        """Apply a remote snapshot. Remote wins on id collision."""
        with self._lock:
            if not self.is_open:
                return []
            by_id: Dict[str, Document] = {d.id: d for d in self._docs}
            order = [d.id for d in self._docs]
            for doc in docs:
                existing = by_id.get(doc.id)
                if existing is None:
                    order.append(doc.id)
                elif existing.has_file:
                    doc.has_file = True
                by_id[doc.id] = doc
            self._docs = [by_id[i] for i in order]
            self._persist()
            return list(self._docs)

    def sorted(self, field: str = DEFAULT_SORT_FIELD,
               direction: str = DEFAULT_SORT_DIRECTION) -> List[Document]:
        return sort_documents(self.documents(), field, direction)

    def counts_by_category(self) -> Dict[str, int]:
        counts: Dict[str, int] = {}
        for doc in self.documents():
            counts[doc.category] = counts.get(doc.category, 0) + 1
        return counts
