"""Blob storage abstraction for docarchive.

Stores document bytes behind a uniform interface:
- LocalBlobStore: Local filesystem
- GDriveBlobStore: Google Drive
- DropboxBlobStore: Dropbox

Usage:
    from storage import create_storage

    store = create_storage("local:/path/to/folder")
    store = create_storage("gdrive:folder_id")
    store = create_storage("dropbox:/path")
"""

from .base import BlobStore, StorageError, BlobRef, blob_path
from .local import LocalBlobStore


def create_storage(uri: str) -> BlobStore:
    """Create a blob store from a URI.

    Args:
        uri: Storage URI in one of these formats:
            - local:/path/to/folder
            - gdrive:folder_id
            - dropbox:/path

    Raises:
        ValueError: If URI format is invalid
    """
    if uri.startswith("local:"):
        return LocalBlobStore(uri[6:], create=True)
    elif uri.startswith("gdrive:"):
        from .gdrive import GDriveBlobStore
        return GDriveBlobStore(uri[7:])
    elif uri.startswith("dropbox:"):
        from .dbx import DropboxBlobStore
        return DropboxBlobStore(uri[8:])
    else:
        raise ValueError(
            f"Invalid storage URI: {uri}. "
            "Must start with 'local:', 'gdrive:', or 'dropbox:'"
        )


__all__ = [
    'BlobStore',
    'StorageError',
    'BlobRef',
    'blob_path',
    'LocalBlobStore',
    'create_storage',
]
