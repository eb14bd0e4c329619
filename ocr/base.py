"""Base classes for OCR engines.

This module defines the abstract interface that all OCR backends must implement.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass

# Receipts are mostly Hebrew with English product names
DEFAULT_LANGUAGE_HINT = "heb+eng"

# Maximum image size sent to a remote OCR service (20MB)
MAX_IMAGE_SIZE_MB = 20

OCR_PROMPT = """Transcribe all text visible in this image exactly as written.
The document is most likely a receipt, invoice or warranty card in {languages}.
Keep dates, numbers and line breaks as they appear. Output only the text."""

_LANGUAGE_NAMES = {"heb": "Hebrew", "eng": "English"}


class OCRError(Exception):
    """Base exception for OCR operations."""
    pass


@dataclass
class OCRResult:
    """Text recognized in one image.

    Attributes:
        text: Recognized text (may be empty)
        engine: Name of the engine that produced it
    """
    text: str
    engine: str


def describe_languages(language_hint: str) -> str:
    """Turn "heb+eng" into "Hebrew or English"."""
    names = [_LANGUAGE_NAMES.get(code, code) for code in language_hint.split("+") if code]
    return " or ".join(names) or "any language"


class OCREngine(ABC):
    """Abstract base class for OCR engines."""

    @property
    @abstractmethod
    def name(self) -> str:
        pass

    @abstractmethod
    def recognize(self, image: bytes, mime_type: str = "image/png",
                  language_hint: str = DEFAULT_LANGUAGE_HINT) -> OCRResult:
        """Recognize text in an image.

        Raises:
            OCRError: If the image is too large or the service call fails
        """
        pass

    def _check_size(self, image: bytes) -> None:
        size_mb = len(image) / (1024 * 1024)
        if size_mb > MAX_IMAGE_SIZE_MB:
            raise OCRError(f"Image is {size_mb:.1f}MB (limit {MAX_IMAGE_SIZE_MB}MB)")
