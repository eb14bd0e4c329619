"""Document dataclass for archive metadata."""

import dataclasses
import datetime
import uuid
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from .classifier import OTHER_CATEGORY, WARRANTY_CATEGORY
from .records import normalize_email, unique


# Attribute name -> wire (remote / local snapshot) key
_WIRE_NAMES = {
    "id": "id",
    "title": "title",
    "original_file_name": "originalFileName",
    "category": "category",
    "org": "org",
    "year": "year",
    "recipient": "recipient",
    "shared_with": "sharedWith",
    "uploaded_at": "uploadedAt",
    "warranty_start": "warrantyStart",
    "warranty_expires_at": "warrantyExpiresAt",
    "auto_delete_after": "autoDeleteAfter",
    "owner": "owner",
    "shared_folder_id": "sharedFolderId",
    "trashed": "_trashed",
    "file_name": "fileName",
    "file_type": "fileType",
    "file_size": "fileSize",
    "download_url": "downloadURL",
    "storage_path": "storagePath",
    "has_file": "hasFile",
    "deleted_at": "deletedAt",
    "deleted_by": "deletedBy",
    "last_modified": "lastModified",
    "last_modified_by": "lastModifiedBy",
}

_ATTR_NAMES = {wire: attr for attr, wire in _WIRE_NAMES.items()}

# Fields a user may change by hand, by wire key
EDITABLE_FIELDS = (
    "title", "org", "year", "recipient", "category",
    "warrantyStart", "warrantyExpiresAt", "autoDeleteAfter", "sharedWith",
)
_LIST_FIELDS = ("recipient", "sharedWith")
_DATE_FIELDS = ("warrantyStart", "warrantyExpiresAt", "autoDeleteAfter")


def edit_patch(values: Dict[str, str]) -> Dict[str, Any]:
    """Turn edit-form text (wire key -> text) into a repository patch.

    List fields are comma separated. A blank title keeps the old one, a
    blank category means "other" and blank dates clear the date.

    Raises:
        ValueError: A key is not one of EDITABLE_FIELDS
    """
    patch: Dict[str, Any] = {}
    for key, raw in values.items():
        if key not in EDITABLE_FIELDS:
            raise ValueError(f"Field cannot be edited: {key}")
        text = (raw or "").strip()
        attr = _ATTR_NAMES[key]
        if key in _LIST_FIELDS:
            patch[attr] = [part.strip() for part in text.split(",") if part.strip()]
        elif key in _DATE_FIELDS:
            patch[attr] = text or None
        elif key == "title":
            if text:
                patch[attr] = text
        elif key == "category":
            patch[attr] = text or OTHER_CATEGORY
        else:
            patch[attr] = text
    return patch


@dataclass
class Document:
    """Metadata for one archived file. The bytes live in the file cache."""

    # Identity
    id: str

    # Descriptive
    title: str = ""
    original_file_name: str = ""
    category: str = OTHER_CATEGORY
    org: str = ""
    year: str = ""
    recipient: List[str] = field(default_factory=list)
    uploaded_at: Any = None                      # epoch ms or "YYYY-MM-DD"

    # Warranty (warranty category only)
    warranty_start: Optional[str] = None
    warranty_expires_at: Optional[str] = None
    auto_delete_after: Optional[str] = None

    # Ownership and sharing
    owner: Optional[str] = None
    shared_with: List[str] = field(default_factory=list)
    shared_folder_id: Optional[str] = None
    trashed: bool = False

    # File / storage
    file_name: Optional[str] = None
    file_type: Optional[str] = None
    file_size: Optional[int] = None
    download_url: Optional[str] = None
    storage_path: Optional[str] = None
    has_file: bool = False

    # Audit
    deleted_at: Any = None
    deleted_by: Optional[str] = None
    last_modified: Any = None
    last_modified_by: Optional[str] = None

    # Keys we don't model, written back unchanged
    extra: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        self.recipient = unique(r for r in self.recipient if r)
        self.shared_with = unique(normalize_email(e) for e in self.shared_with if e)
        if self.owner:
            self.owner = normalize_email(self.owner)

    @classmethod
    def create(cls, file_name: str, category: str = OTHER_CATEGORY,
               owner: Optional[str] = None, **kwargs) -> "Document":
        """New document with a fresh id, dated today."""
        today = datetime.date.today()
        return cls(
            id=str(uuid.uuid4()),
            title=file_name,
            original_file_name=file_name,
            file_name=file_name,
            category=category,
            uploaded_at=today.isoformat(),
            year=str(today.year),
            owner=owner,
            **kwargs,
        )

    @property
    def is_warranty(self) -> bool:
        return bool(self.category) and WARRANTY_CATEGORY in self.category

    def display_title(self) -> str:
        return self.title or self.file_name or self.original_file_name or "מסמך"

    def with_changes(self, **changes) -> "Document":
        """Copy with the given attributes replaced."""
        return dataclasses.replace(self, **changes)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the camelCase record stored locally and remotely."""
        data = dict(self.extra)
        for attr, wire in _WIRE_NAMES.items():
            value = getattr(self, attr)
            if isinstance(value, list):
                value = list(value)
            data[wire] = value
        return data

    def to_remote_dict(self) -> Dict[str, Any]:
        """Metadata for the remote store (cache flag dropped)."""
        data = self.to_dict()
        data.pop("hasFile", None)
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Document":
        """Create from a stored record. Unknown keys go to extra."""
        kwargs: Dict[str, Any] = {}
        extra: Dict[str, Any] = {}
        for key, value in data.items():
            attr = _ATTR_NAMES.get(key)
            if attr is None:
                extra[key] = value
            else:
                kwargs[attr] = value

        kwargs["id"] = str(kwargs.get("id") or "")
        for list_attr in ("recipient", "shared_with"):
            kwargs[list_attr] = list(kwargs.get(list_attr) or [])
        for text_attr in ("title", "original_file_name", "org"):
            kwargs[text_attr] = kwargs.get(text_attr) or ""
        kwargs["year"] = str(kwargs.get("year") or "")
        kwargs["category"] = kwargs.get("category") or OTHER_CATEGORY
        kwargs["trashed"] = bool(kwargs.get("trashed"))
        kwargs["has_file"] = bool(kwargs.get("has_file"))
        return cls(extra=extra, **kwargs)

    def display(self, output_fn: Callable[[str], None] = print) -> None:
        """Display a one-document summary."""
        trashed = " [red](trash)[/red]" if self.trashed else ""
        output_fn(f"[bold]{self.display_title()}[/bold]{trashed}")
        output_fn(f"  id: {self.id}")
        output_fn(f"  Category: {self.category}")
        output_fn(f"  Uploaded: {self.uploaded_at or '-'}")

        if self.owner:
            output_fn(f"  Owner: {self.owner}")
        if self.recipient:
            output_fn(f"  Recipient: {', '.join(self.recipient)}")
        if self.is_warranty:
            output_fn(f"  Purchased: {self.warranty_start or '-'}")
            output_fn(f"  Warranty until: {self.warranty_expires_at or '-'}")
            output_fn(f"  Auto-delete after: {self.auto_delete_after or '-'}")
        if self.shared_folder_id:
            output_fn(f"  Shared folder: {self.shared_folder_id}")
