"""Shared folders and the invite workflow.

Folder membership lives on the owner's user record and is mirrored onto
each member's record. Every write goes to the remote store when it is
available and to the local user records otherwise, so an offline device
still sees a consistent view. reconcile_folder() converges the two.
"""

import uuid
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Tuple, TYPE_CHECKING

from docarchive import DocArchive
from remote import Query, RemoteError, DELETE_FIELD, EQ, get_path
from .document import Document
from .errors import ArchiveError, DocumentNotFoundError, PermissionDeniedError
from .records import (
    INVITE_ACCEPTED, INVITE_PENDING, INVITE_REJECTED,
    SharedFolder, ShareInvite, normalize_email, now_iso, unique,
)
from .repository import merge_by_id
from .subscriptions import FOLDER_MEMBERS, PENDING_INVITES, SHARED_FOLDER_DOCS

if TYPE_CHECKING:
    from .sync import SyncEngine

INVITES_COLLECTION = "shareInvites"
SHARED_DOCS_COLLECTION = "sharedDocs"
USERS_COLLECTION = "users"


class FolderNotFoundError(ArchiveError):
    """The current user has no view of the referenced shared folder."""
    pass


def shared_doc_key(owner: str, doc_id: str) -> str:
    """Key of a document's mirror record: one per owner and document."""
    return f"{normalize_email(owner)}_{doc_id}"


def shared_doc_record(doc: Document, folder_id: str) -> Dict:
    """Metadata copy readable by every member of a shared folder."""
    return {
        "folderId": folder_id,
        "ownerEmail": doc.owner,
        "id": doc.id,
        "title": doc.title,
        "fileName": doc.file_name,
        "category": doc.category,
        "uploadedAt": doc.uploaded_at,
        "warrantyStart": doc.warranty_start,
        "warrantyExpiresAt": doc.warranty_expires_at,
        "org": doc.org,
        "year": doc.year,
        "recipient": list(doc.recipient),
        "lastUpdated": now_iso(),
    }


def _mirror_doc_id(record: Dict) -> str:
    """Document id from a fetched mirror record (whose "id" is the record key)."""
    key = str(record.get("id") or "")
    prefix = f"{normalize_email(record.get('ownerEmail'))}_"
    return key[len(prefix):] if key.startswith(prefix) else key


def document_from_mirror(record: Dict) -> Document:
    data = dict(record)
    data["id"] = _mirror_doc_id(record)
    data["owner"] = data.pop("ownerEmail", None)
    data["sharedFolderId"] = data.pop("folderId", None)
    data.pop("lastUpdated", None)
    data.setdefault("originalFileName", data.get("fileName") or "")
    return Document.from_dict(data)


@dataclass
class FolderState:
    """Result of reconciling one shared folder."""
    folder: SharedFolder
    documents: List[Document] = field(default_factory=list)

    @property
    def members(self) -> List[str]:
        return self.folder.members


class ShareService:
    """Shared folders, invites and folder document mirrors for one session."""

    def __init__(self, sync: "SyncEngine") -> None:
        self.sync = sync
        self.backend = sync.backend
        self.repository = sync.repository
        self.user_store = sync.repository.user_store

    def _me(self) -> str:
        return self.repository.require_user()

    def is_available(self) -> bool:
        return self.sync.is_available()

    # =========================================================================
    # Folders
    # =========================================================================

    def list_folders(self) -> List[SharedFolder]:
        record = self.user_store.get(self._me())
        return list(record.shared_folders.values()) if record else []

    def get_folder(self, folder_id: str) -> Optional[SharedFolder]:
        record = self.user_store.get(self._me())
        return record.shared_folders.get(folder_id) if record else None

    def create_folder(self, name: str) -> SharedFolder:
        """Create a folder owned by the current user."""
        me = self._me()
        name = (name or "").strip()
        if not name:
            raise ValueError("Folder name is required")

        folder = SharedFolder(id=uuid.uuid4().hex, name=name, owner=me, members=[me])
        record = self.user_store.ensure(me)
        record.shared_folders[folder.id] = folder
        self.user_store.save(record)

        if self.is_available():
            try:
                self.backend.set(USERS_COLLECTION, me, {
                    "email": me,
                    "sharedFolders": {folder.id: folder.to_dict()},
                }, merge=True)
            except RemoteError as e:
                DocArchive.log(f"[yellow]Folder saved locally only: {e}[/yellow]")

        DocArchive.log(f"Created shared folder [bold]{name}[/bold]")
        return folder

    def rename_folder(self, folder_id: str, new_name: str) -> bool:
        """Rename a folder in every local view and in pending invites."""
        new_name = (new_name or "").strip()
        if not new_name:
            raise ValueError("Folder name is required")

        changed = False
        for record in self.user_store.all().values():
            touched = False
            folder = record.shared_folders.get(folder_id)
            if folder is not None:
                folder.name = new_name
                touched = True
            for invite in record.incoming_share_requests + record.outgoing_share_requests:
                if invite.folder_id == folder_id:
                    invite.folder_name = new_name
                    touched = True
            if touched:
                self.user_store.save(record)
                changed = True

        folder = self.get_folder(folder_id)
        if folder is not None and self.is_available():
            try:
                for email in folder.members:
                    self.backend.set(USERS_COLLECTION, email, {
                        "sharedFolders": {folder_id: {"name": new_name}},
                    }, merge=True)
            except RemoteError as e:
                DocArchive.log(f"[yellow]Remote rename failed: {e}[/yellow]")
        return changed

    def delete_folder(self, folder_id: str) -> bool:
        """Remove the folder from the current user's view and untag their documents."""
        me = self._me()
        record = self.user_store.ensure(me)
        folder = record.shared_folders.pop(folder_id, None)
        if folder is None:
            return False
        self.user_store.save(record)

        for doc in self.repository.owned():
            if doc.shared_folder_id != folder_id:
                continue
            self.repository.update(doc.id, {"shared_folder_id": None})
            if self.is_available():
                try:
                    self.backend.delete(SHARED_DOCS_COLLECTION, shared_doc_key(me, doc.id))
                except RemoteError as e:
                    DocArchive.log(f"[yellow]Could not remove mirror of {doc.id}: {e}[/yellow]")

        if self.is_available():
            try:
                self.backend.update(USERS_COLLECTION, me, {f"sharedFolders.{folder_id}": DELETE_FIELD})
            except RemoteError as e:
                DocArchive.log(f"[yellow]Remote folder delete failed: {e}[/yellow]")
        return True

    def assign_to_folder(self, doc_id: str, folder_id: Optional[str]) -> Document:
        """Tag an owned document with a folder (None removes the tag)."""
        me = self._me()
        doc = self.repository.find(doc_id)
        if doc is None:
            raise DocumentNotFoundError(f"Document not found: {doc_id}")
        if doc.owner and doc.owner != me:
            raise PermissionDeniedError("Only the owner can move this document")
        if folder_id and self.get_folder(folder_id) is None:
            raise FolderNotFoundError(f"Unknown shared folder: {folder_id}")

        previous = doc.shared_folder_id
        updated = self.repository.update(doc_id, {"shared_folder_id": folder_id})
        if previous and previous != folder_id and self.is_available():
            try:
                self.backend.delete(SHARED_DOCS_COLLECTION, shared_doc_key(me, doc_id))
            except RemoteError as e:
                DocArchive.log(f"[yellow]Could not remove old mirror: {e}[/yellow]")
        return updated

    # =========================================================================
    # Membership
    # =========================================================================

    def _join_locally(self, folder_id: str, member: str, folder_name: str, owner: str) -> None:
        for email in (owner, member):
            record = self.user_store.get(email)
            if record is None and email != member:
                continue
            record = record or self.user_store.ensure(email)
            folder = record.shared_folders.get(folder_id)
            if folder is None:
                folder = SharedFolder(id=folder_id, name=folder_name, owner=owner)
                record.shared_folders[folder_id] = folder
            folder.add_members(owner, member)
            self.user_store.save(record)

    def join_folder(self, folder_id: str, member: str, folder_name: str, owner: str) -> bool:
        """Add member to the folder on both the owner's and the member's record.

        Returns:
            False if the remote write failed (nothing is changed locally)
        """
        member = normalize_email(member)
        owner = normalize_email(owner)

        if self.is_available():
            try:
                for email in (owner, member):
                    self.backend.set(USERS_COLLECTION, email, {
                        "email": email,
                        "sharedFolders": {folder_id: {"name": folder_name, "owner": owner}},
                    }, merge=True)
                    self.backend.array_union(
                        USERS_COLLECTION, email, f"sharedFolders.{folder_id}.members",
                        owner, member,
                    )
            except RemoteError as e:
                DocArchive.notify(f"Could not join folder {folder_name}: {e}", error=True)
                return False

        self._join_locally(folder_id, member, folder_name, owner)
        return True

    def fetch_folder_members(self, owner: str, folder_id: str) -> List[str]:
        """Members from the owner's record; falls back to local views."""
        owner = normalize_email(owner)
        if self.is_available():
            try:
                record = self.backend.get(USERS_COLLECTION, owner) or {}
                members = get_path(record, f"sharedFolders.{folder_id}.members") or []
                return unique([owner, *(normalize_email(m) for m in members if m)])
            except RemoteError as e:
                DocArchive.log(f"[yellow]Member lookup failed, using local view: {e}[/yellow]")

        for email in (owner, self._me()):
            record = self.user_store.get(email)
            if record and folder_id in record.shared_folders:
                return list(record.shared_folders[folder_id].members)
        return [owner]

    def watch_folder_members(self, owner: str, folder_id: str,
                             on_change: Callable[[List[str]], None]) -> bool:
        """Follow the owner's record; replaces any previous member listener."""
        owner = normalize_email(owner)
        self.repository.subscriptions.cancel(FOLDER_MEMBERS)
        if not self.is_available():
            return False

        def handle(record) -> None:
            members = get_path(record or {}, f"sharedFolders.{folder_id}.members") or []
            members = unique([owner, *(normalize_email(m) for m in members if m)])
            self._update_local_members(folder_id, members)
            on_change(members)

        try:
            cancel = self.backend.subscribe_document(USERS_COLLECTION, owner, handle)
        except RemoteError as e:
            DocArchive.log(f"[yellow]Live member updates unavailable: {e}[/yellow]")
            return False
        self.repository.subscriptions.replace(FOLDER_MEMBERS, cancel)
        return True

    def _update_local_members(self, folder_id: str, members: List[str]) -> None:
        if not self.repository.is_open:
            return
        record = self.user_store.get(self._me())
        if record is None or folder_id not in record.shared_folders:
            return
        folder = record.shared_folders[folder_id]
        before = list(folder.members)
        folder.add_members(*members)
        if folder.members != before:
            self.user_store.save(record)

    # =========================================================================
    # Invites
    # =========================================================================

    def send_invite(self, from_email: str, to_email: str,
                    folder_id: str, folder_name: str) -> bool:
        """Invite to_email into a folder.

        Remote when available; otherwise queued on the local records of both
        users, which requires the target to be known on this device.
        """
        sender = normalize_email(from_email)
        target = normalize_email(to_email)
        if not target or target == sender:
            return False

        invite = ShareInvite(
            id="",
            folder_id=folder_id,
            folder_name=folder_name,
            from_email=sender,
            to_email=target,
            status=INVITE_PENDING,
            created_at=now_iso(),
        )

        if self.is_available():
            try:
                invite.id = self.backend.add(INVITES_COLLECTION, invite.to_dict())
                DocArchive.log(f"Invite sent to {target}")
                return True
            except RemoteError as e:
                DocArchive.log(f"[yellow]Remote invite failed, queueing locally: {e}[/yellow]")

        target_record = self.user_store.get(target)
        if target_record is None:
            return False

        invite.id = uuid.uuid4().hex
        target_record.incoming_share_requests.append(invite)
        self.user_store.save(target_record)

        sender_record = self.user_store.ensure(sender)
        sender_record.outgoing_share_requests.append(invite)
        self.user_store.save(sender_record)
        DocArchive.log(f"Invite to {target} queued on this device")
        return True

    def _pending_query(self, email: str) -> Query:
        return Query.on(INVITES_COLLECTION, ("toEmail", EQ, email), ("status", EQ, INVITE_PENDING))

    def _local_pending(self, email: str) -> List[ShareInvite]:
        record = self.user_store.get(email)
        if record is None:
            return []
        return [i for i in record.incoming_share_requests if i.is_pending]

    def list_pending_invites(self, email: Optional[str] = None) -> List[ShareInvite]:
        email = normalize_email(email or self._me())
        if self.is_available():
            try:
                records = self.backend.fetch(self._pending_query(email))
                return [ShareInvite.from_dict(r) for r in records]
            except RemoteError as e:
                DocArchive.log(f"[yellow]Invite lookup failed, using local queue: {e}[/yellow]")
        return self._local_pending(email)

    def watch_pending_invites(self, on_change: Callable[[List[ShareInvite]], None],
                              email: Optional[str] = None) -> bool:
        email = normalize_email(email or self._me())
        self.repository.subscriptions.cancel(PENDING_INVITES)
        if not self.is_available():
            return False

        def handle(records) -> None:
            on_change([ShareInvite.from_dict(r) for r in records])

        try:
            cancel = self.backend.subscribe(self._pending_query(email), handle)
        except RemoteError as e:
            DocArchive.log(f"[yellow]Live invite updates unavailable: {e}[/yellow]")
            return False
        self.repository.subscriptions.replace(PENDING_INVITES, cancel)
        return True

    def _find_invite(self, invite_id: str) -> Tuple[Optional[ShareInvite], bool]:
        """Locate an invite. Returns (invite, is_remote)."""
        if self.is_available():
            try:
                data = self.backend.get(INVITES_COLLECTION, invite_id)
                if data is not None:
                    return ShareInvite.from_dict({**data, "id": invite_id}), True
            except RemoteError as e:
                DocArchive.log(f"[yellow]Invite lookup failed, using local queue: {e}[/yellow]")

        record = self.user_store.get(self._me())
        if record is not None:
            for invite in record.incoming_share_requests:
                if invite.id == invite_id:
                    return invite, False
        return None, False

    def _set_invite_status(self, invite: ShareInvite, status: str, is_remote: bool) -> None:
        updated_at = now_iso()
        if is_remote:
            self.backend.update(INVITES_COLLECTION, invite.id,
                                {"status": status, "updatedAt": updated_at})
            return

        for email, attr in ((invite.to_email, "incoming_share_requests"),
                            (invite.from_email, "outgoing_share_requests")):
            record = self.user_store.get(email)
            if record is None:
                continue
            for queued in getattr(record, attr):
                if queued.id == invite.id:
                    queued.status = status
                    queued.updated_at = updated_at
            self.user_store.save(record)

    def respond_to_invite(self, invite_id: str, accept: bool) -> bool:
        """Accept or reject a pending invite addressed to the current user.

        Accepting joins the folder before the status changes, so a failed
        join leaves the invite pending. Invites already accepted or rejected
        are left alone.

        Returns:
            True if the invite moved out of pending
        """
        me = self._me()
        invite, is_remote = self._find_invite(invite_id)
        if invite is None:
            return False
        if invite.to_email != me:
            raise PermissionDeniedError("This invite is addressed to someone else")
        if not invite.is_pending:
            DocArchive.log(f"Invite {invite_id} is already {invite.status}")
            return False

        if accept:
            if not self.join_folder(invite.folder_id, me, invite.folder_name, invite.from_email):
                return False
            status = INVITE_ACCEPTED
        else:
            status = INVITE_REJECTED

        try:
            self._set_invite_status(invite, status, is_remote)
        except RemoteError as e:
            DocArchive.notify(f"Could not update invite: {e}", error=True)
            return False
        return True

    # =========================================================================
    # Folder documents
    # =========================================================================

    def upsert_shared_doc(self, doc: Document, folder_id: str) -> bool:
        """Write the folder-readable copy of an owned document."""
        if not self.is_available():
            return False
        owner = doc.owner or self._me()
        try:
            self.backend.set(
                SHARED_DOCS_COLLECTION,
                shared_doc_key(owner, doc.id),
                shared_doc_record(doc.with_changes(owner=owner), folder_id),
                merge=True,
            )
        except RemoteError as e:
            DocArchive.log(f"[yellow]Shared mirror failed for {doc.id}: {e}[/yellow]")
            return False
        return True

    def sync_my_shared_docs(self) -> int:
        """Refresh the mirrors of every owned document tagged with a folder."""
        count = 0
        for doc in self.repository.owned():
            if doc.shared_folder_id and self.upsert_shared_doc(doc, doc.shared_folder_id):
                count += 1
        return count

    def _local_folder_docs(self, folder_id: str) -> List[Document]:
        found = []
        for email, record in self.user_store.all().items():
            for doc in record.docs:
                if doc.shared_folder_id != folder_id or doc.trashed:
                    continue
                found.append(doc if doc.owner else doc.with_changes(owner=email))
        return merge_by_id(found)

    def fetch_shared_folder_docs(self, folder_id: str) -> List[Document]:
        """Every member's documents in a folder, from mirrors or local records."""
        if self.is_available():
            try:
                records = self.backend.fetch(
                    Query.on(SHARED_DOCS_COLLECTION, ("folderId", EQ, folder_id))
                )
                return merge_by_id(document_from_mirror(r) for r in records)
            except RemoteError as e:
                DocArchive.log(f"[yellow]Folder lookup failed, using local records: {e}[/yellow]")
        return self._local_folder_docs(folder_id)

    def watch_shared_folder_docs(self, folder_id: str,
                                 on_change: Callable[[List[Document]], None]) -> bool:
        self.repository.subscriptions.cancel(SHARED_FOLDER_DOCS)
        if not self.is_available():
            return False

        def handle(records) -> None:
            on_change(merge_by_id(document_from_mirror(r) for r in records))

        try:
            cancel = self.backend.subscribe(
                Query.on(SHARED_DOCS_COLLECTION, ("folderId", EQ, folder_id)), handle
            )
        except RemoteError as e:
            DocArchive.log(f"[yellow]Live folder updates unavailable: {e}[/yellow]")
            return False
        self.repository.subscriptions.replace(SHARED_FOLDER_DOCS, cancel)
        return True

    def leave_folder_view(self) -> None:
        """Stop the member and folder-document listeners."""
        self.repository.subscriptions.cancel(FOLDER_MEMBERS)
        self.repository.subscriptions.cancel(SHARED_FOLDER_DOCS)

    # =========================================================================
    # Reconciliation
    # =========================================================================

    def reconcile_folder(self, folder_id: str) -> FolderState:
        """Converge membership and mirrors for one folder.

        Pulls the member list from the owner's record into the local view,
        rewrites mirrors for the current user's tagged documents and deletes
        mirrors whose document is no longer tagged. Running it twice changes
        nothing the second time.
        """
        me = self._me()
        folder = self.get_folder(folder_id)
        if folder is None:
            raise FolderNotFoundError(f"Unknown shared folder: {folder_id}")

        members = self.fetch_folder_members(folder.owner, folder_id)
        self._update_local_members(folder_id, members)

        tagged = {d.id: d for d in self.repository.owned() if d.shared_folder_id == folder_id}
        if self.is_available():
            for doc in tagged.values():
                self.upsert_shared_doc(doc, folder_id)
            try:
                mirrors = self.backend.fetch(Query.on(
                    SHARED_DOCS_COLLECTION, ("folderId", EQ, folder_id), ("ownerEmail", EQ, me),
                ))
                for record in mirrors:
                    if _mirror_doc_id(record) not in tagged:
                        self.backend.delete(SHARED_DOCS_COLLECTION, record["id"])
            except RemoteError as e:
                DocArchive.log(f"[yellow]Mirror cleanup failed: {e}[/yellow]")

        return FolderState(
            folder=self.get_folder(folder_id) or folder,
            documents=self.fetch_shared_folder_docs(folder_id),
        )
