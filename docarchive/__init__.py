"""DocArchive - Application state and configuration."""

import os
import re
from typing import Optional, Any, TYPE_CHECKING

from .session import SessionStore, CURRENT_USER_KEY, JUST_LOGGED_IN_KEY

if TYPE_CHECKING:
    import argparse
    from remote import Backend
    from storage import BlobStore
    from ocr import OCREngine
    from workflows import FileCache, UserStore

__version__ = "0.1.0"

DEFAULT_DATA_DIR = os.path.expanduser("~/.local/share/docarchive")


def _strip_rich_markup(text: str) -> str:
    """Remove Rich markup tags like [red], [/red], [bold], etc."""
    return re.sub(r'\[/?[a-zA-Z_]+\]', '', text)


class DocArchive:
    """Central configuration and state for DocArchive."""

    # Config (from environment / CLI)
    data_dir: str = DEFAULT_DATA_DIR
    backend_uri: str = "offline:"
    blobstore_uri: Optional[str] = None
    ocr_provider_name: Optional[str] = None
    verbose: bool = False

    # Global resources
    backend: Optional["Backend"] = None
    blob_store: Optional["BlobStore"] = None
    ocr: Optional["OCREngine"] = None
    file_cache: Optional["FileCache"] = None
    user_store: Optional["UserStore"] = None
    session: SessionStore = SessionStore()

    # Front-end reference (None = CLI mode)
    _app: Optional[Any] = None

    @classmethod
    def configure(cls, args: Optional["argparse.Namespace"] = None) -> None:
        """Initialize configuration from environment and parsed CLI args."""
        cls.data_dir = os.environ.get('DOCARCHIVE_DATA_DIR', DEFAULT_DATA_DIR)
        cls.backend_uri = os.environ.get('DOCARCHIVE_BACKEND', 'offline:')
        cls.blobstore_uri = os.environ.get('BLOBSTORE') or None
        cls.ocr_provider_name = os.environ.get('OCR_PROVIDER') or None
        cls.verbose = getattr(args, 'verbose', False)

        user = getattr(args, 'user', None) or os.environ.get('DOCARCHIVE_USER')
        if user:
            cls.login(user)

    @classmethod
    def db_path(cls) -> str:
        return os.path.join(cls.data_dir, "archive.db")

    @classmethod
    def init_resources(cls) -> None:
        """Open local stores and the configured remote collaborators."""
        from workflows import FileCache, UserStore
        from remote import create_backend

        cls.file_cache = FileCache(cls.db_path())
        cls.user_store = UserStore(cls.db_path())
        cls.backend = create_backend(cls.backend_uri)

        if cls.blobstore_uri:
            from storage import create_storage
            cls.blob_store = create_storage(cls.blobstore_uri)

        if cls.ocr_provider_name:
            from ocr import create_ocr
            cls.ocr = create_ocr(cls.ocr_provider_name)

    @classmethod
    def close(cls) -> None:
        """Cleanup resources."""
        if cls.file_cache:
            cls.file_cache.close()
            cls.file_cache = None
        if cls.user_store:
            cls.user_store.close()
            cls.user_store = None
        cls.backend = None
        cls.blob_store = None
        cls.ocr = None

    # =========================================================================
    # Session
    # =========================================================================

    @classmethod
    def login(cls, email: str) -> None:
        from workflows.records import normalize_email
        cls.session.set(CURRENT_USER_KEY, normalize_email(email))
        cls.session.set(JUST_LOGGED_IN_KEY, "1")

    @classmethod
    def logout(cls) -> None:
        cls.session.remove(CURRENT_USER_KEY)
        cls.session.remove(JUST_LOGGED_IN_KEY)

    @classmethod
    def current_user(cls) -> Optional[str]:
        return cls.session.get(CURRENT_USER_KEY)

    # =========================================================================
    # Output
    # =========================================================================

    @classmethod
    def set_app(cls, app: Any) -> None:
        """Set the front-end reference for log and notification routing.

        The app must provide add_log(message) and
        show_notification(message, error).
        """
        cls._app = app

    @classmethod
    def log(cls, message: str) -> None:
        """Add line to debug log (front end if attached, stdout in CLI)."""
        if cls._app is not None:
            cls._app.add_log(message)
        elif cls.verbose:
            print(_strip_rich_markup(message))

    @classmethod
    def notify(cls, message: str, error: bool = False) -> None:
        """Show a short user-facing notice."""
        if cls._app is not None:
            cls._app.show_notification(message, error)
        else:
            prefix = "Error: " if error else ""
            print(prefix + _strip_rich_markup(message))
