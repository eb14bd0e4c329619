"""OCR engine abstraction for docarchive.

Provides a uniform interface for reading text out of receipt images:
- MistralOCR: Mistral OCR endpoint
- OpenAIOCR: OpenAI vision model

PDFs are rendered to PNG (page 1) with PyMuPDF before OCR.

Usage:
    from ocr import create_ocr, render_first_page

    engine = create_ocr("mistral")
    text = engine.recognize(render_first_page(pdf_bytes)).text
"""

from .base import OCREngine, OCRError, OCRResult, DEFAULT_LANGUAGE_HINT
from .pdf import extract_pdf_text, render_first_page


def create_ocr(provider: str = "mistral") -> OCREngine:
    """Create an OCR engine for the specified provider.

    Args:
        provider: "mistral" or "openai"

    Raises:
        ValueError: If provider is not recognized
    """
    provider = provider.lower()

    if provider == "mistral":
        from .mistral import MistralOCR
        return MistralOCR()
    elif provider == "openai":
        from .openai import OpenAIOCR
        return OpenAIOCR()
    else:
        raise ValueError(
            f"Unknown OCR provider: {provider}. "
            "Must be 'mistral' or 'openai'"
        )


__all__ = [
    'OCREngine',
    'OCRError',
    'OCRResult',
    'DEFAULT_LANGUAGE_HINT',
    'extract_pdf_text',
    'render_first_page',
    'create_ocr',
]
