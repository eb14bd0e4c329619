"""Sync engine: mirrors the repository to the remote store.

Every operation checks availability first and degrades to local-only
behaviour when the remote store is absent or unreachable. Remote failures
are logged and surfaced as notifications, never as crashes.
"""

from concurrent.futures import ThreadPoolExecutor
from typing import Callable, List, Optional, Tuple

from docarchive import DocArchive
from remote import Backend, Query, RemoteError, RemoteUnavailable, EQ, ARRAY_CONTAINS
from storage import BlobStore, StorageError, blob_path
from .document import Document
from .errors import DocumentNotFoundError, PermissionDeniedError
from .local_store import to_data_url
from .records import normalize_email, now_iso, unique
from .repository import DocumentRepository, merge_by_id
from .sharing import SHARED_DOCS_COLLECTION, shared_doc_key, shared_doc_record
from .subscriptions import DOCUMENTS

DOCUMENTS_COLLECTION = "documents"
USERS_COLLECTION = "users"


class SyncEngine:
    """Keeps the remote document store in step with the repository."""

    def __init__(self, backend: Backend, repository: DocumentRepository,
                 blob_store: Optional[BlobStore] = None) -> None:
        self.backend = backend
        self.repository = repository
        self.file_cache = repository.file_cache
        self.blob_store = blob_store

    def attach(self) -> None:
        """Install the repository's remote mirroring hooks."""
        self.repository.on_saved = self.push_document
        self.repository.on_removed = self.remove_document

    def is_available(self) -> bool:
        return self.backend is not None and self.backend.available

    def _me(self) -> str:
        return self.repository.require_user()

    def _require_available(self) -> None:
        if not self.is_available():
            raise RemoteUnavailable("Remote store is not available")

    def owned_query(self, extra: Tuple = ()) -> Query:
        return Query.on(DOCUMENTS_COLLECTION, ("owner", EQ, self._me()), *extra)

    def shared_query(self, extra: Tuple = ()) -> Query:
        return Query.on(DOCUMENTS_COLLECTION, ("sharedWith", ARRAY_CONTAINS, self._me()), *extra)

    # =========================================================================
    # Upload / mirror
    # =========================================================================

    def _upload_blob(self, doc: Document) -> Document:
        """Send cached bytes to blob storage. Best effort."""
        if self.blob_store is None or doc.download_url:
            return doc
        data = self.file_cache.get_bytes(doc.id)
        if data is None:
            return doc

        owner = doc.owner or self._me()
        name = self.blob_store.sanitize_filename(doc.original_file_name or doc.file_name or "file")
        path = blob_path(owner, doc.id, name)
        try:
            ref = self.blob_store.put(path, data, doc.file_type)
            url = self.blob_store.get_download_url(ref)
        except StorageError as e:
            DocArchive.log(f"[yellow]Blob upload failed for {doc.id}: {e}[/yellow]")
            DocArchive.notify(f"File of {doc.display_title()} was not uploaded", error=True)
            return doc

        updated = self.repository.update(
            doc.id, {"download_url": url, "storage_path": path}, mirror=False
        )
        return updated or doc.with_changes(download_url=url, storage_path=path)

    def upload_document(self, doc: Document) -> Document:
        """Upload bytes (best effort) and write metadata keyed by document id.

        Raises:
            NotAuthenticatedError: No current user
            RemoteUnavailable: Remote store not available
            RemoteError: Metadata write failed
        """
        me = self._me()
        self._require_available()
        if not doc.owner:
            doc = self.repository.update(doc.id, {"owner": me}, mirror=False) or doc.with_changes(owner=me)

        doc = self._upload_blob(doc)
        self.backend.set(DOCUMENTS_COLLECTION, doc.id, doc.to_remote_dict(), merge=True)

        if doc.shared_folder_id:
            try:
                self.backend.set(
                    SHARED_DOCS_COLLECTION,
                    shared_doc_key(doc.owner, doc.id),
                    shared_doc_record(doc, doc.shared_folder_id),
                    merge=True,
                )
            except RemoteError as e:
                DocArchive.log(f"[yellow]Shared mirror failed for {doc.id}: {e}[/yellow]")
        return doc

    def push_document(self, doc: Document) -> bool:
        """Mirror one document if possible. Returns True when it reached the remote store."""
        if not self.is_available():
            return False
        if doc.owner and doc.owner != self._me():
            # Recipients keep their edits local
            return False
        try:
            self.upload_document(doc)
        except RemoteError as e:
            DocArchive.log(f"[yellow]Remote mirror failed for {doc.id}: {e}[/yellow]")
            return False
        return True

    def remove_document(self, doc: Document) -> None:
        """Delete an owned document's remote record, mirror and blob."""
        if not self.is_available():
            return
        me = self._me()
        if doc.owner and doc.owner != me:
            return
        try:
            self.backend.delete(DOCUMENTS_COLLECTION, doc.id)
            if doc.shared_folder_id:
                self.backend.delete(SHARED_DOCS_COLLECTION, shared_doc_key(doc.owner or me, doc.id))
        except RemoteError as e:
            DocArchive.log(f"[yellow]Remote delete failed for {doc.id}: {e}[/yellow]")
        if self.blob_store is not None and doc.storage_path:
            try:
                self.blob_store.delete(doc.storage_path)
            except StorageError as e:
                DocArchive.log(f"[yellow]Blob delete failed for {doc.id}: {e}[/yellow]")

    # =========================================================================
    # Fetch / live updates
    # =========================================================================

    def fetch_owned_and_shared(self, extra: Tuple = ()) -> Tuple[List[Document], List[Document]]:
        """Run the owned and shared queries in parallel.

        This is the raw source for DocumentRepository.load(), which falls
        back to the local snapshot when it raises.

        Raises:
            RemoteError: If the store is unavailable or either query fails
        """
        self._require_available()
        owned_q = self.owned_query(extra)
        shared_q = self.shared_query(extra)
        with ThreadPoolExecutor(max_workers=2) as pool:
            owned_future = pool.submit(self.backend.fetch, owned_q)
            shared_future = pool.submit(self.backend.fetch, shared_q)
            owned = [Document.from_dict(r) for r in owned_future.result()]
            shared = [Document.from_dict(r) for r in shared_future.result()]
        return owned, shared

    def fetch_documents(self) -> List[Document]:
        """Owned and shared documents merged by id, owned first.

        Falls back to the repository's documents when the remote store
        cannot be queried.
        """
        try:
            owned, shared = self.fetch_owned_and_shared()
        except RemoteError as e:
            DocArchive.log(f"[yellow]Remote fetch failed, using local documents: {e}[/yellow]")
            DocArchive.notify("Remote store unavailable, showing documents on this device", error=True)
            return self.repository.documents()
        return merge_by_id(owned, shared)

    def fetch_by_category(self, category: str) -> List[Document]:
        try:
            owned, shared = self.fetch_owned_and_shared(extra=(("category", EQ, category),))
        except RemoteError as e:
            DocArchive.log(f"[yellow]Remote fetch failed, using local documents: {e}[/yellow]")
            DocArchive.notify("Remote store unavailable, showing documents on this device", error=True)
            return self.repository.in_category(category)
        return [d for d in merge_by_id(owned, shared) if not d.trashed]

    def watch_documents(self,
                        on_change: Optional[Callable[[List[Document]], None]] = None) -> bool:
        """Subscribe to owned and shared documents.

        Each callback merges into the repository (remote wins) and then calls
        on_change with the full list. Any previous pair of listeners is
        cancelled first. Returns False when the remote store is unavailable.
        """
        self._me()
        self.repository.subscriptions.cancel(DOCUMENTS)
        if not self.is_available():
            return False

        def handle(records) -> None:
            merged = self.repository.merge_remote(Document.from_dict(r) for r in records)
            if on_change is not None:
                on_change(merged)

        cancels = []
        try:
            cancels.append(self.backend.subscribe(self.owned_query(), handle))
            cancels.append(self.backend.subscribe(self.shared_query(), handle))
        except RemoteError as e:
            for cancel in cancels:
                cancel()
            DocArchive.log(f"[yellow]Live document updates unavailable: {e}[/yellow]")
            return False

        self.repository.subscriptions.replace(DOCUMENTS, *cancels)
        return True

    def download_missing_files(self) -> int:
        """Fetch bytes for documents that are not in the local cache."""
        if self.blob_store is None:
            return 0
        fetched = failed = 0
        for doc in self.repository.all():
            if not doc.storage_path or self.file_cache.exists(doc.id):
                continue
            try:
                data = self.blob_store.read(doc.storage_path)
            except StorageError as e:
                DocArchive.log(f"[yellow]Could not download {doc.display_title()}: {e}[/yellow]")
                failed += 1
                continue
            self.file_cache.put(doc.id, to_data_url(data, doc.file_type))
            self.repository.update(doc.id, {"has_file": True}, mirror=False)
            fetched += 1
        if failed:
            DocArchive.notify(f"{failed} file(s) could not be downloaded", error=True)
        return fetched

    def boot(self, on_change: Optional[Callable[[List[Document]], None]] = None) -> List[Document]:
        """Load documents at login: remote if possible, local snapshot otherwise."""
        self._me()
        self.repository.load(self)

        if self.is_available():
            fetched = self.download_missing_files()
            if fetched:
                DocArchive.log(f"Downloaded {fetched} file(s) from storage")
        else:
            DocArchive.log("[yellow]Remote store unavailable, using local snapshot[/yellow]")

        if self.repository.purge_expired():
            DocArchive.notify("Expired warranty documents were removed")

        self.watch_documents(on_change)
        return self.repository.documents()

    # =========================================================================
    # Bulk operations
    # =========================================================================

    def sync_local_to_cloud(self) -> Tuple[int, int]:
        """Upload documents that never reached blob storage.

        Returns:
            (synced, failed) counts
        """
        self._me()
        if not self.is_available():
            DocArchive.notify("Remote store unavailable, nothing was synced", error=True)
            return (0, 0)
        if self.blob_store is None:
            DocArchive.notify("No blob storage configured", error=True)
            return (0, 0)

        synced = failed = 0
        for doc in self.repository.owned():
            if doc.download_url or not self.file_cache.exists(doc.id):
                continue
            try:
                result = self.upload_document(doc)
            except RemoteError as e:
                DocArchive.log(f"[red]Sync failed for {doc.display_title()}: {e}[/red]")
                failed += 1
                continue
            if result.download_url:
                synced += 1
            else:
                failed += 1
        return (synced, failed)

    def migrate_local_docs(self) -> int:
        """Write every local owned document's metadata to the remote store."""
        me = self._me()
        if not self.is_available():
            DocArchive.notify("Remote store unavailable, documents stay local", error=True)
            return 0
        pushed = failed = 0
        for doc in self.repository.owned():
            data = doc.to_remote_dict()
            data["owner"] = me
            try:
                self.backend.set(DOCUMENTS_COLLECTION, doc.id, data, merge=True)
            except RemoteError as e:
                DocArchive.log(f"[red]Migration failed for {doc.display_title()}: {e}[/red]")
                failed += 1
                continue
            pushed += 1
        DocArchive.log(f"Migrated {pushed} document(s)")
        if failed:
            DocArchive.notify(f"{failed} document(s) could not be migrated", error=True)
        return pushed

    def share_document(self, doc_id: str, emails: List[str]) -> List[str]:
        """Add recipients to a document's sharedWith list (owner only).

        Without the remote store nothing changes: the user is notified and
        the current local list comes back.

        Returns:
            The new sharedWith list

        Raises:
            DocumentNotFoundError: No such document
            PermissionDeniedError: Current user is not the owner
        """
        me = self._me()
        local = self.repository.find(doc_id)
        local_list = list(local.shared_with) if local else []

        if not self.is_available():
            if local is None:
                raise DocumentNotFoundError(f"Document not found: {doc_id}")
            if local.owner and local.owner != me:
                raise PermissionDeniedError("Only the owner can share this document")
            DocArchive.notify("Remote store unavailable, sharing was not changed", error=True)
            return local_list

        try:
            record = self.backend.get(DOCUMENTS_COLLECTION, doc_id)
        except RemoteError as e:
            DocArchive.notify(f"Could not share document: {e}", error=True)
            return local_list
        if record is None:
            raise DocumentNotFoundError(f"Document not found: {doc_id}")
        if normalize_email(record.get("owner")) != me:
            raise PermissionDeniedError("Only the owner can share this document")

        current = [normalize_email(e) for e in record.get("sharedWith") or []]
        shared_with = unique([
            *current,
            *(normalize_email(e) for e in emails if e and e.strip()),
        ])
        changes = {"sharedWith": shared_with, "lastModified": now_iso(), "lastModifiedBy": me}
        try:
            self.backend.update(DOCUMENTS_COLLECTION, doc_id, changes)
        except RemoteError as e:
            DocArchive.notify(f"Could not share document: {e}", error=True)
            return current
        self.repository.update(doc_id, {
            "shared_with": shared_with,
            "last_modified": changes["lastModified"],
            "last_modified_by": me,
        }, mirror=False)
        return shared_with

    # =========================================================================
    # Users
    # =========================================================================

    def ensure_remote_user(self, email: str) -> None:
        email = normalize_email(email)
        self.backend.set(USERS_COLLECTION, email, {"email": email}, merge=True)

    def sync_users(self) -> int:
        """Make sure every locally known user has a remote user record."""
        if not self.is_available():
            DocArchive.notify("Remote store unavailable, users were not synced", error=True)
            return 0
        synced = 0
        for email in self.repository.user_store.all():
            try:
                self.ensure_remote_user(email)
            except RemoteError as e:
                DocArchive.log(f"[yellow]Could not sync user {email}: {e}[/yellow]")
                continue
            synced += 1
        return synced

    def user_exists(self, email: str) -> bool:
        """Check the remote user records, falling back to local ones."""
        email = normalize_email(email)
        if self.is_available():
            try:
                if self.backend.get(USERS_COLLECTION, email) is not None:
                    return True
            except RemoteError as e:
                DocArchive.log(f"[yellow]User lookup failed, checking locally: {e}[/yellow]")
        return self.repository.user_store.get(email) is not None
