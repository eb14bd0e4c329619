"""Workflow layer for docarchive.

Contains the archive's business logic:
- Classifier / warranty: category guessing and receipt date extraction
- Local stores: cached file bytes and per-user snapshots
- Repository: the current user's document list
- Sync: mirroring to the remote document store
- Sharing: shared folders and invites
- Upload: the end-to-end add-a-file flow
"""

from .errors import (
    ArchiveError,
    NotAuthenticatedError,
    PermissionDeniedError,
    DocumentNotFoundError,
)
from .classifier import (
    CATEGORIES,
    CATEGORY_KEYWORDS,
    OTHER_CATEGORY,
    WARRANTY_CATEGORY,
    guess_category,
    score_categories,
)
from .warranty import (
    WarrantyInfo,
    extract_warranty,
    manual_warranty,
    normalize_date_guess,
)
from .document import EDITABLE_FIELDS, Document, edit_patch
from .records import SharedFolder, ShareInvite, UserRecord, normalize_email
from .local_store import FileCache, UserStore, to_data_url, from_data_url
from .repository import DocumentRepository, merge_by_id, sort_documents
from .sync import SyncEngine
from .sharing import FolderNotFoundError, FolderState, ShareService
from .upload import UploadResult, upload_file, upload_path


__all__ = [
    # Errors
    'ArchiveError',
    'NotAuthenticatedError',
    'PermissionDeniedError',
    'DocumentNotFoundError',
    'FolderNotFoundError',

    # Classification
    'CATEGORIES',
    'CATEGORY_KEYWORDS',
    'OTHER_CATEGORY',
    'WARRANTY_CATEGORY',
    'guess_category',
    'score_categories',

    # Warranty dates
    'WarrantyInfo',
    'extract_warranty',
    'manual_warranty',
    'normalize_date_guess',

    # Records
    'Document',
    'EDITABLE_FIELDS',
    'edit_patch',
    'SharedFolder',
    'ShareInvite',
    'UserRecord',
    'normalize_email',

    # Local stores
    'FileCache',
    'UserStore',
    'to_data_url',
    'from_data_url',

    # Repository / sync / sharing
    'DocumentRepository',
    'merge_by_id',
    'sort_documents',
    'SyncEngine',
    'ShareService',
    'FolderState',

    # Upload
    'UploadResult',
    'upload_file',
    'upload_path',
]
