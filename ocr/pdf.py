"""PDF helpers using PyMuPDF (fitz)."""

import fitz  # PyMuPDF

from .base import OCRError

# Render scale for OCR; 2x keeps small receipt print legible
RENDER_ZOOM = 2.0


def extract_pdf_text(pdf_bytes: bytes) -> str:
    """Text layer of every page (empty for scanned PDFs)."""
    try:
        with fitz.open(stream=pdf_bytes, filetype="pdf") as doc:
            return "\n".join(page.get_text() for page in doc)
    except Exception as e:
        raise OCRError(f"Failed to read PDF: {e}")


def render_first_page(pdf_bytes: bytes, zoom: float = RENDER_ZOOM) -> bytes:
    """Render page 1 of a PDF to PNG bytes."""
    try:
        with fitz.open(stream=pdf_bytes, filetype="pdf") as doc:
            if doc.page_count == 0:
                raise OCRError("PDF has no pages")
            pixmap = doc[0].get_pixmap(matrix=fitz.Matrix(zoom, zoom))
            return pixmap.tobytes("png")
    except OCRError:
        raise
    except Exception as e:
        raise OCRError(f"Failed to render PDF: {e}")
