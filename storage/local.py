"""Local filesystem blob store."""

import os
import re
import pathlib
from typing import Optional

from .base import BlobStore, StorageError, BlobRef


class LocalBlobStore(BlobStore):
    """Blob store on the local filesystem.

    All paths are relative to the root_path provided at construction.
    Download URLs are file:// URIs.
    """

    def __init__(self, root_path: str, create: bool = False) -> None:
        """Initialize local blob store.

        Args:
            root_path: Path to the root directory
            create: Create root_path if it doesn't exist

        Raises:
            StorageError: If root_path doesn't exist (and create is False)
        """
        self.root_path = os.path.abspath(root_path)
        if create:
            os.makedirs(self.root_path, exist_ok=True)
        if not os.path.exists(self.root_path):
            raise StorageError(f"Directory does not exist: {self.root_path}")
        if not os.path.isdir(self.root_path):
            raise StorageError(f"Not a directory: {self.root_path}")

    @property
    def display_name(self) -> str:
        return f"{self.root_path} (local)"

    def _full_path(self, path: str) -> str:
        """Convert relative path to absolute path, refusing to leave the root."""
        full = os.path.abspath(os.path.join(self.root_path, path))
        if full != self.root_path and not full.startswith(self.root_path + os.sep):
            raise StorageError(f"Path escapes storage root: {path}")
        return full

    def put(self, path: str, data: bytes,
            content_type: Optional[str] = None) -> BlobRef:
        """Write bytes to the storage location."""
        full_dest = self._full_path(path)

        try:
            # Create parent directories
            dest_dir = os.path.dirname(full_dest)
            if dest_dir:
                os.makedirs(dest_dir, exist_ok=True)
            with open(full_dest, 'wb') as f:
                f.write(data)
        except OSError as e:
            raise StorageError(f"Failed to write {path}: {e}")

        return BlobRef(path=path, size=len(data))

    def read(self, path: str) -> bytes:
        full_path = self._full_path(path)

        if not os.path.isfile(full_path):
            raise StorageError(f"File does not exist: {path}")

        try:
            with open(full_path, 'rb') as f:
                return f.read()
        except OSError as e:
            raise StorageError(f"Failed to read file {path}: {e}")

    def get_download_url(self, ref: BlobRef) -> str:
        full_path = self._full_path(ref.path)
        if not os.path.isfile(full_path):
            raise StorageError(f"File does not exist: {ref.path}")
        return pathlib.Path(full_path).as_uri()

    def exists(self, path: str) -> bool:
        return os.path.isfile(self._full_path(path))

    def delete(self, path: str) -> None:
        """Delete a file."""
        full_path = self._full_path(path)

        if not os.path.isfile(full_path):
            raise StorageError(f"File does not exist: {path}")

        try:
            os.remove(full_path)
        except OSError as e:
            raise StorageError(f"Failed to delete {path}: {e}")

    def sanitize_filename(self, name: str) -> str:
        """Sanitize a filename for local filesystem.

        Removes characters that are invalid on most filesystems:
        / \\ : * ? \" < > |
        """
        for bad, good in (('/', '-'), ('\\', '-'), (':', '-'), ('|', '-'), ('"', "'")):
            name = name.replace(bad, good)
        name = re.sub(r'[*?<>]', '', name)

        # Remove leading/trailing whitespace and dots
        name = name.strip().strip('.')
        name = re.sub(r'\s+', ' ', name)

        if len(name) > 100:
            base, ext = os.path.splitext(name)
            name = base[:100 - len(ext)].strip() + ext

        return name
