"""Upload workflow: classify, read warranty dates, cache and record a file."""

import mimetypes
import os
from dataclasses import dataclass
from typing import Callable, List, Optional, Tuple, TYPE_CHECKING

from docarchive import DocArchive
from ocr import OCREngine, OCRError, extract_pdf_text, render_first_page
from .classifier import CATEGORIES, OTHER_CATEGORY, WARRANTY_CATEGORY, guess_category
from .document import Document
from .local_store import to_data_url
from .repository import DocumentRepository
from .warranty import WarrantyInfo, extract_warranty, manual_warranty

if TYPE_CHECKING:
    from .sync import SyncEngine

# Prompt callbacks supplied by the front end
ChooseCategoryFn = Callable[[List[str]], Optional[str]]
AskWarrantyFn = Callable[[], Tuple[Optional[str], Optional[str]]]


@dataclass
class UploadResult:
    """Outcome of one upload.

    Attributes:
        document: The new document, None if the upload was refused
        duplicate: A non-trashed document with this filename already existed
        synced: The metadata reached the remote store
    """
    document: Optional[Document]
    duplicate: bool = False
    synced: bool = False


def guess_mime_type(file_name: str) -> str:
    mime, _ = mimetypes.guess_type(file_name)
    return mime or "application/octet-stream"


def _ocr_text(ocr: OCREngine, image: bytes, mime_type: str) -> str:
    try:
        return ocr.recognize(image, mime_type).text
    except OCRError as e:
        DocArchive.log(f"[yellow]OCR failed: {e}[/yellow]")
        return ""


def read_warranty(data: bytes, mime_type: str,
                  ocr: Optional[OCREngine] = None) -> WarrantyInfo:
    """Find warranty dates in a file.

    PDFs: text layer, then OCR of page 1. Images: OCR. Anything else, or
    when those find nothing, the raw bytes decoded as text.
    """
    info = WarrantyInfo()

    if mime_type == "application/pdf":
        try:
            info = extract_warranty(extract_pdf_text(data))
        except OCRError as e:
            DocArchive.log(f"[yellow]{e}[/yellow]")
        if not info.found and ocr is not None:
            try:
                page = render_first_page(data)
            except OCRError as e:
                DocArchive.log(f"[yellow]{e}[/yellow]")
            else:
                info = extract_warranty(_ocr_text(ocr, page, "image/png"))
    elif mime_type.startswith("image/") and ocr is not None:
        info = extract_warranty(_ocr_text(ocr, data, mime_type))

    if not info.found:
        info = extract_warranty(data)
    return info


def upload_file(repository: DocumentRepository, file_name: str, data: bytes,
                mime_type: Optional[str] = None,
                ocr: Optional[OCREngine] = None,
                sync: Optional["SyncEngine"] = None,
                choose_category: Optional[ChooseCategoryFn] = None,
                ask_warranty: Optional[AskWarrantyFn] = None) -> UploadResult:
    """Add one file to the current user's archive.

    Args:
        repository: Open repository for the current user
        file_name: Original filename, used for duplicate check and category
        data: File contents
        mime_type: Guessed from the filename when omitted
        ocr: Engine for scanned receipts (optional)
        sync: Mirrors the new document when given and available
        choose_category: Asked for a category when the filename gives none
        ask_warranty: Asked for (start, expires) when no date is found

    Raises:
        NotAuthenticatedError: No current user
    """
    me = repository.require_user()
    name = (file_name or "").strip()
    mime_type = mime_type or guess_mime_type(name)

    if repository.is_duplicate(name):
        DocArchive.notify(f"{name} is already in the archive", error=True)
        return UploadResult(document=None, duplicate=True)

    category = guess_category(name)
    if category == OTHER_CATEGORY and choose_category is not None:
        chosen = choose_category(list(CATEGORIES))
        if chosen and chosen.strip():
            category = chosen.strip()

    warranty = WarrantyInfo()
    if category == WARRANTY_CATEGORY:
        warranty = read_warranty(data, mime_type, ocr)
        if not warranty.found and ask_warranty is not None:
            warranty = manual_warranty(*ask_warranty())

    doc = Document.create(
        name, category, owner=me,
        file_type=mime_type,
        file_size=len(data),
        has_file=True,
        warranty_start=warranty.warranty_start,
        warranty_expires_at=warranty.warranty_expires_at,
        auto_delete_after=warranty.auto_delete_after,
    )

    repository.file_cache.put(doc.id, to_data_url(data, mime_type))
    repository.add(doc, mirror=False)

    synced = sync.push_document(doc) if sync is not None else False
    if synced:
        DocArchive.notify(f"Uploaded {name} ({category})")
    else:
        DocArchive.notify(f"Saved {name} ({category}) on this device only")
    return UploadResult(document=repository.find(doc.id) or doc, synced=synced)


def upload_path(repository: DocumentRepository, path: str, **kwargs) -> UploadResult:
    """Upload a file from disk."""
    with open(path, "rb") as f:
        data = f.read()
    return upload_file(repository, os.path.basename(path), data, **kwargs)
