"""Dropbox blob store.

Supports OAuth 2.0 authentication with refresh tokens for persistent access.
"""

import json
import os
import webbrowser
from functools import wraps
from typing import Optional

import dropbox as dropbox_sdk
import requests
from dropbox.exceptions import ApiError, AuthError, DropboxException, RateLimitError
from dropbox.files import WriteMode

from docarchive import DocArchive
from .base import BlobStore, StorageError, BlobRef
from utils.retry import retry_on_transient_error, is_transient_network_error


# ---------------------------------------------------------------------------
# Dropbox Retry Configuration
# ---------------------------------------------------------------------------

def _is_retryable_dropbox_error(exc: Exception) -> bool:
    """Determine if a Dropbox API error should be retried."""
    if isinstance(exc, AuthError):
        return False
    if isinstance(exc, ApiError):
        return False
    if isinstance(exc, RateLimitError):
        return True
    return is_transient_network_error(exc)


def _log_retry(exc: Exception, attempt: int, delay: float) -> None:
    DocArchive.log(
        f"  [Retry] {type(exc).__name__} on attempt {attempt}, retrying in {delay:.1f}s..."
    )


def _with_retry(func):
    """Decorator to add retry logic to Dropbox API calls.

    Whatever the SDK still raises once retries are spent (expired tokens,
    bad input, dropped connections) comes out as StorageError.
    """
    retrying = retry_on_transient_error(
        is_retryable=_is_retryable_dropbox_error,
        max_retries=5,
        base_delay=1.0,
        max_delay=60.0,
        on_retry=_log_retry,
    )(func)

    @wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return retrying(*args, **kwargs)
        except (DropboxException, requests.exceptions.RequestException) as e:
            raise StorageError(f"Dropbox {func.__name__} failed: {e}") from e

    return wrapper


# ---------------------------------------------------------------------------
# Authentication
# ---------------------------------------------------------------------------

def authenticate_dropbox(app_key: str, app_secret: str,
                         token_file: str = "dropbox_token.json") -> bool:
    """Perform OAuth 2.0 authentication flow for Dropbox.

    Opens a browser for the user to authorize the app, then saves the
    refresh token to a file for future use.

    Returns:
        True if authentication succeeded, False otherwise
    """
    auth_flow = dropbox_sdk.DropboxOAuth2FlowNoRedirect(
        app_key,
        app_secret,
        token_access_type='offline',
        use_pkce=True,
    )

    authorize_url = auth_flow.start()

    print("\n=== Dropbox Authorization ===")
    print(f"1. Opening browser for authorization: {authorize_url}")
    webbrowser.open(authorize_url)

    print("2. After authorizing, copy the authorization code from the page.")
    auth_code = input("3. Enter the authorization code here: ").strip()

    if not auth_code:
        print("Error: No authorization code provided")
        return False

    try:
        oauth_result = auth_flow.finish(auth_code)
    except Exception as e:
        print(f"\nError during authentication: {e}")
        return False

    token_data = {
        "app_key": app_key,
        "app_secret": app_secret,
        "refresh_token": oauth_result.refresh_token,
    }
    with open(token_file, 'w') as f:
        json.dump(token_data, f, indent=2)
    os.chmod(token_file, 0o600)

    print(f"\nSuccess! Token saved to {token_file}")
    return True


def _load_token_data(token_file: str) -> dict:
    """Credentials from the token file, else DROPBOX_TOKEN_JSON."""
    if os.path.exists(token_file):
        try:
            with open(token_file, 'r') as f:
                token_data = json.load(f)
        except json.JSONDecodeError as e:
            raise StorageError(f"Invalid token file: {e}")
    elif os.environ.get('DROPBOX_TOKEN_JSON'):
        try:
            token_data = json.loads(os.environ['DROPBOX_TOKEN_JSON'])
        except json.JSONDecodeError as e:
            raise StorageError(f"Invalid DROPBOX_TOKEN_JSON env var: {e}")
    else:
        raise StorageError(
            f"No Dropbox credentials found.\n"
            f"Either create {token_file} (run 'python main.py --auth-dropbox')\n"
            "or set DROPBOX_TOKEN_JSON environment variable."
        )

    for key in ('app_key', 'app_secret', 'refresh_token'):
        if key not in token_data:
            raise StorageError(f"Dropbox credentials missing required key: {key}")
    return token_data


# ---------------------------------------------------------------------------
# Dropbox Blob Store
# ---------------------------------------------------------------------------

class DropboxBlobStore(BlobStore):
    """Blob store on Dropbox. Download URLs are direct shared links."""

    def __init__(self, root_path: str = "",
                 token_file: str = "dropbox_token.json") -> None:
        """Initialize Dropbox blob store.

        Args:
            root_path: Root path within Dropbox (e.g., "/Archive")
            token_file: Path to the token JSON file

        Raises:
            StorageError: If authentication fails
        """
        if root_path and not root_path.startswith("/"):
            root_path = "/" + root_path
        if root_path == "/":
            root_path = ""
        self.root_path = root_path
        self._account_name: Optional[str] = None

        token_data = _load_token_data(token_file)
        self.client = dropbox_sdk.Dropbox(
            app_key=token_data['app_key'],
            app_secret=token_data['app_secret'],
            oauth2_refresh_token=token_data['refresh_token'],
        )

        try:
            self._account_name = self._get_account_name()
        except StorageError as e:
            raise StorageError(
                f"Authentication failed: {e}\n"
                "Run 'python main.py --auth-dropbox' to re-authenticate."
            )

    @_with_retry
    def _get_account_name(self) -> str:
        return self.client.users_get_current_account().name.display_name

    @property
    def display_name(self) -> str:
        path_display = self.root_path or "/"
        account = self._account_name or "Dropbox"
        return f"{path_display} ({account} Dropbox)"

    def _full_path(self, path: str) -> str:
        """Convert relative path to full Dropbox path."""
        path = path.lstrip("/")
        return f"{self.root_path}/{path}"

    @_with_retry
    def put(self, path: str, data: bytes,
            content_type: Optional[str] = None) -> BlobRef:
        try:
            metadata = self.client.files_upload(
                data, self._full_path(path), mode=WriteMode.overwrite
            )
        except ApiError as e:
            raise StorageError(f"Failed to upload {path}: {e}")
        return BlobRef(path=path, size=metadata.size, id=metadata.id)

    @_with_retry
    def read(self, path: str) -> bytes:
        try:
            _, response = self.client.files_download(self._full_path(path))
        except ApiError as e:
            raise StorageError(f"Failed to download {path}: {e}")
        return response.content

    @_with_retry
    def get_download_url(self, ref: BlobRef) -> str:
        full_path = self._full_path(ref.path)
        try:
            link = self.client.sharing_create_shared_link_with_settings(full_path)
            url = link.url
        except ApiError as e:
            if not e.error.is_shared_link_already_exists():
                raise StorageError(f"Failed to share {ref.path}: {e}")
            links = self.client.sharing_list_shared_links(path=full_path, direct_only=True).links
            if not links:
                raise StorageError(f"No shared link for {ref.path}")
            url = links[0].url
        return url.replace("?dl=0", "?dl=1").replace("&dl=0", "&dl=1")

    @_with_retry
    def exists(self, path: str) -> bool:
        try:
            self.client.files_get_metadata(self._full_path(path))
            return True
        except ApiError:
            return False

    @_with_retry
    def delete(self, path: str) -> None:
        """Delete a file from Dropbox.

        Raises:
            StorageError: If delete fails or path not found
        """
        try:
            self.client.files_delete_v2(self._full_path(path))
        except ApiError as e:
            if e.error.is_path_lookup() and e.error.get_path_lookup().is_not_found():
                raise StorageError(f"File not found: {path}")
            raise StorageError(f"Failed to delete file: {e}")

    def sanitize_filename(self, name: str) -> str:
        """Sanitize a filename for Dropbox (no slashes, no trailing spaces)."""
        return name.replace('/', '-').replace('\\', '-').strip()
