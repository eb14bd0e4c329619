"""Google Drive blob store."""

import io
from typing import Dict, Optional

from google.oauth2 import service_account
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError
from googleapiclient.http import MediaIoBaseUpload, MediaIoBaseDownload

from docarchive import DocArchive
from .base import BlobStore, StorageError, BlobRef
from utils.retry import (
    retry_on_transient_error,
    is_transient_network_error,
    TRANSIENT_HTTP_STATUS_CODES,
)


SCOPES = ['https://www.googleapis.com/auth/drive']

FOLDER_MIME = 'application/vnd.google-apps.folder'


# ---------------------------------------------------------------------------
# Google Drive Retry Configuration
# ---------------------------------------------------------------------------

def _is_retryable_gdrive_error(exc: Exception) -> bool:
    """Determine if a Google Drive API error should be retried."""
    if isinstance(exc, HttpError):
        return exc.resp.status in TRANSIENT_HTTP_STATUS_CODES
    return is_transient_network_error(exc)


def _log_retry(exc: Exception, attempt: int, delay: float) -> None:
    if isinstance(exc, HttpError):
        error_desc = f"HTTP {exc.resp.status}"
    else:
        error_desc = type(exc).__name__
    DocArchive.log(f"  [Retry] {error_desc} on attempt {attempt}, retrying in {delay:.1f}s...")


_gdrive_retry = retry_on_transient_error(
    is_retryable=_is_retryable_gdrive_error,
    max_retries=5,
    base_delay=1.0,
    max_delay=60.0,
    on_retry=_log_retry,
)


def _execute_with_retry(request):
    """Execute a Google Drive API request with automatic retry."""
    return _gdrive_retry(request.execute)()


def _download_with_retry(request) -> bytes:
    """Download a file's content into memory, retrying each chunk."""
    buffer = io.BytesIO()
    downloader = MediaIoBaseDownload(buffer, request)
    next_chunk = _gdrive_retry(downloader.next_chunk)
    done = False
    while not done:
        _, done = next_chunk()
    return buffer.getvalue()


def _escape_query_value(value: str) -> str:
    """Escape a value for use in Google Drive API query strings."""
    return value.replace("\\", "\\\\").replace("'", "\\'")


class GDriveBlobStore(BlobStore):
    """Blob store on Google Drive.

    Uses service account authentication. All paths are relative to
    the root_folder_id provided at construction.
    """

    def __init__(self, root_folder_id: str,
                 service_account_file: str = "service_account_key.json") -> None:
        """Initialize Google Drive blob store.

        Args:
            root_folder_id: Google Drive folder ID to use as root
            service_account_file: Path to service account credentials JSON

        Raises:
            StorageError: If authentication fails or folder can't be accessed
        """
        self.root_folder_id = root_folder_id
        self._root_folder_name: Optional[str] = None

        try:
            self.creds = service_account.Credentials.from_service_account_file(
                service_account_file, scopes=SCOPES
            )
            self.service = build('drive', 'v3', credentials=self.creds)

            result = _execute_with_retry(self.service.files().get(
                fileId=root_folder_id,
                fields="id, name",
                supportsAllDrives=True,
            ))
            self._root_folder_name = result['name']

        except Exception as e:
            raise StorageError(f"Failed to initialize Google Drive: {e}")

    @property
    def display_name(self) -> str:
        name = self._root_folder_name or self.root_folder_id
        return f"{name} (Google Drive)"

    def _find_child(self, parent_id: str, name: str,
                    folders_only: bool = False) -> Optional[Dict]:
        q = f"name='{_escape_query_value(name)}' and '{parent_id}' in parents and trashed=false"
        if folders_only:
            q += f" and mimeType='{FOLDER_MIME}'"
        results = _execute_with_retry(self.service.files().list(
            q=q,
            fields="files(id, name, mimeType, size)",
            supportsAllDrives=True,
            includeItemsFromAllDrives=True,
        ))
        items = results.get('files', [])
        return items[0] if items else None

    def _get_item_by_path(self, path: str) -> Optional[Dict]:
        """Get item metadata by path relative to root folder."""
        parts = [p for p in path.split('/') if p]
        if not parts:
            return None

        current_parent = self.root_folder_id
        item = None
        for i, part in enumerate(parts):
            is_last = (i == len(parts) - 1)
            item = self._find_child(current_parent, part, folders_only=not is_last)
            if not item:
                return None
            current_parent = item['id']
        return item

    def _ensure_folders_exist(self, folder_path: str) -> str:
        """Ensure all folders in path exist, creating if needed. Returns final folder ID."""
        current_parent = self.root_folder_id

        for part in [p for p in folder_path.split('/') if p]:
            existing = self._find_child(current_parent, part, folders_only=True)
            if existing:
                current_parent = existing['id']
            else:
                folder = _execute_with_retry(self.service.files().create(
                    body={'name': part, 'mimeType': FOLDER_MIME, 'parents': [current_parent]},
                    fields='id',
                    supportsAllDrives=True,
                ))
                current_parent = folder['id']

        return current_parent

    def put(self, path: str, data: bytes,
            content_type: Optional[str] = None) -> BlobRef:
        """Upload bytes to Google Drive, replacing an existing file of the same path."""
        parts = [p for p in path.split('/') if p]
        if not parts:
            raise StorageError("Invalid destination path")

        filename = parts[-1]
        try:
            parent_id = self._ensure_folders_exist('/'.join(parts[:-1]))
            existing = self._find_child(parent_id, filename)
            media = MediaIoBaseUpload(
                io.BytesIO(data),
                mimetype=content_type or 'application/octet-stream',
                resumable=True,
            )

            if existing:
                result = _execute_with_retry(self.service.files().update(
                    fileId=existing['id'],
                    media_body=media,
                    fields='id',
                    supportsAllDrives=True,
                ))
            else:
                result = _execute_with_retry(self.service.files().create(
                    body={'name': filename, 'parents': [parent_id]},
                    media_body=media,
                    fields='id',
                    supportsAllDrives=True,
                ))
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to upload {path}: {e}")

        return BlobRef(path=path, size=len(data), id=result['id'])

    def read(self, path: str) -> bytes:
        item = self._get_item_by_path(path)
        if not item:
            raise StorageError(f"File not found: {path}")
        try:
            return _download_with_retry(self.service.files().get_media(fileId=item['id']))
        except Exception as e:
            raise StorageError(f"Failed to download file {path}: {e}")

    def get_download_url(self, ref: BlobRef) -> str:
        file_id = ref.id
        if not file_id:
            item = self._get_item_by_path(ref.path)
            if not item:
                raise StorageError(f"File not found: {ref.path}")
            file_id = item['id']
        try:
            result = _execute_with_retry(self.service.files().get(
                fileId=file_id,
                fields="webContentLink, webViewLink",
                supportsAllDrives=True,
            ))
        except Exception as e:
            raise StorageError(f"Failed to get link for {ref.path}: {e}")
        url = result.get('webContentLink') or result.get('webViewLink')
        if not url:
            raise StorageError(f"No download link for {ref.path}")
        return url

    def exists(self, path: str) -> bool:
        return self._get_item_by_path(path) is not None

    def delete(self, path: str) -> None:
        """Move a file to Trash."""
        item = self._get_item_by_path(path)
        if not item:
            raise StorageError(f"Item not found: {path}")

        try:
            _execute_with_retry(self.service.files().update(
                fileId=item['id'],
                body={'trashed': True},
                supportsAllDrives=True,
            ))
        except Exception as e:
            raise StorageError(f"Failed to delete item: {e}")
