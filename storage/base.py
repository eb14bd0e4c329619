"""Base classes for blob storage.

This module defines the abstract interface that all blob stores must implement.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


@dataclass
class BlobRef:
    """Reference to an uploaded blob.

    Attributes:
        path: Path within the storage root ("documents/<owner>/<id>_<name>")
        size: Blob size in bytes
        id: Backend-specific identifier (e.g., Google Drive file ID)
    """
    path: str
    size: Optional[int] = None
    id: Optional[str] = None


def blob_path(owner: str, doc_id: str, file_name: str) -> str:
    """Storage path for a document's bytes."""
    return f"documents/{owner}/{doc_id}_{file_name}"


class BlobStore(ABC):
    """Abstract base class for blob storage backends.

    All stores (local filesystem, Google Drive, Dropbox) implement this
    interface. Paths are relative to the store's root and use "/" separators.
    """

    @property
    @abstractmethod
    def display_name(self) -> str:
        """Human-readable name for this storage (e.g., 'Archive (Google Drive)')."""
        pass

    @abstractmethod
    def put(self, path: str, data: bytes,
            content_type: Optional[str] = None) -> BlobRef:
        """Store bytes at path, replacing any existing blob.

        Creates parent folders as needed.

        Raises:
            StorageError: If upload fails
        """
        pass

    @abstractmethod
    def read(self, path: str) -> bytes:
        """Return the bytes stored at path.

        Raises:
            StorageError: If blob doesn't exist or can't be read
        """
        pass

    @abstractmethod
    def get_download_url(self, ref: BlobRef) -> str:
        """Return a URL the blob can be fetched from.

        Raises:
            StorageError: If no URL can be produced
        """
        pass

    @abstractmethod
    def exists(self, path: str) -> bool:
        pass

    @abstractmethod
    def delete(self, path: str) -> None:
        """Delete a blob.

        Raises:
            StorageError: If delete fails or blob not found
        """
        pass

    def sanitize_filename(self, name: str) -> str:
        """Make a filename safe to use as the last path component."""
        return name.replace('/', '-').strip()
