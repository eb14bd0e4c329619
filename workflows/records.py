"""Shared folder, invite and user records."""

import datetime
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from .document import Document


INVITE_PENDING = "pending"
INVITE_ACCEPTED = "accepted"
INVITE_REJECTED = "rejected"
INVITE_STATUSES = (INVITE_PENDING, INVITE_ACCEPTED, INVITE_REJECTED)


def normalize_email(email: Optional[str]) -> str:
    """Trim and lowercase. Emails are compared in this form everywhere."""
    return (email or "").strip().lower()


def unique(values: Iterable) -> list:
    """De-duplicate preserving first-seen order."""
    seen = set()
    result = []
    for value in values:
        if value not in seen:
            seen.add(value)
            result.append(value)
    return result


def now_iso() -> str:
    return datetime.datetime.now(datetime.timezone.utc).isoformat()


@dataclass
class SharedFolder:
    """A named group of users. Membership is authoritative on the owner."""

    id: str
    name: str
    owner: str
    members: List[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.owner = normalize_email(self.owner)
        self.members = unique(
            normalize_email(m) for m in [self.owner, *self.members] if m
        )

    def add_members(self, *emails: str) -> None:
        self.members = unique(
            [*self.members, *(normalize_email(e) for e in emails if e)]
        )

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "owner": self.owner, "members": list(self.members)}

    @classmethod
    def from_dict(cls, folder_id: str, data: Dict[str, Any]) -> "SharedFolder":
        return cls(
            id=folder_id,
            name=data.get("name") or "",
            owner=data.get("owner") or "",
            members=list(data.get("members") or []),
        )


@dataclass
class ShareInvite:
    """Invitation to join a shared folder.

    Status moves pending -> accepted or pending -> rejected, never back.
    """

    id: str
    folder_id: str
    folder_name: str
    from_email: str
    to_email: str
    status: str = INVITE_PENDING
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    def __post_init__(self) -> None:
        self.from_email = normalize_email(self.from_email)
        self.to_email = normalize_email(self.to_email)

    @property
    def is_pending(self) -> bool:
        return self.status == INVITE_PENDING

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "folderId": self.folder_id,
            "folderName": self.folder_name,
            "fromEmail": self.from_email,
            "toEmail": self.to_email,
            "status": self.status,
            "createdAt": self.created_at,
        }
        if self.updated_at:
            data["updatedAt"] = self.updated_at
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ShareInvite":
        created = data.get("createdAt")
        updated = data.get("updatedAt")
        return cls(
            id=str(data.get("id") or ""),
            folder_id=data.get("folderId") or "",
            folder_name=data.get("folderName") or "",
            from_email=data.get("fromEmail") or "",
            to_email=data.get("toEmail") or "",
            status=data.get("status") or INVITE_PENDING,
            created_at=str(created) if created is not None else None,
            updated_at=str(updated) if updated is not None else None,
        )


@dataclass
class UserRecord:
    """Local snapshot of one user: documents, folder views, fallback queues."""

    email: str
    docs: List["Document"] = field(default_factory=list)
    shared_folders: Dict[str, SharedFolder] = field(default_factory=dict)
    incoming_share_requests: List[ShareInvite] = field(default_factory=list)
    outgoing_share_requests: List[ShareInvite] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "email": self.email,
            "docs": [d.to_dict() for d in self.docs],
            "sharedFolders": {fid: f.to_dict() for fid, f in self.shared_folders.items()},
            "incomingShareRequests": [
                {"id": i.id, **i.to_dict()} for i in self.incoming_share_requests
            ],
            "outgoingShareRequests": [
                {"id": i.id, **i.to_dict()} for i in self.outgoing_share_requests
            ],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "UserRecord":
        from .document import Document
        return cls(
            email=normalize_email(data.get("email")),
            docs=[Document.from_dict(d) for d in data.get("docs") or []],
            shared_folders={
                fid: SharedFolder.from_dict(fid, f)
                for fid, f in (data.get("sharedFolders") or {}).items()
            },
            incoming_share_requests=[
                ShareInvite.from_dict(i) for i in data.get("incomingShareRequests") or []
            ],
            outgoing_share_requests=[
                ShareInvite.from_dict(i) for i in data.get("outgoingShareRequests") or []
            ],
        )
