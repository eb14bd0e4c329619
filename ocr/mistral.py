"""Mistral AI OCR engine.

Uses the Mistral OCR endpoint with the image passed inline as a data URL.
"""

import base64
import os

from mistralai import Mistral

from .base import OCREngine, OCRError, OCRResult, DEFAULT_LANGUAGE_HINT

OCR_MODEL = "mistral-ocr-latest"


class MistralOCR(OCREngine):
    """Mistral OCR implementation."""

    def __init__(self) -> None:
        """Initialize Mistral client.

        Raises:
            KeyError: If MISTRAL_API_KEY environment variable is not set
        """
        api_key = os.environ["MISTRAL_API_KEY"]
        self.client = Mistral(api_key=api_key)

    @property
    def name(self) -> str:
        return "mistral"

    def recognize(self, image: bytes, mime_type: str = "image/png",
                  language_hint: str = DEFAULT_LANGUAGE_HINT) -> OCRResult:
        self._check_size(image)
        data_url = f"data:{mime_type};base64,{base64.b64encode(image).decode('ascii')}"

        try:
            response = self.client.ocr.process(
                model=OCR_MODEL,
                document={"type": "image_url", "image_url": data_url},
            )
        except Exception as e:
            raise OCRError(f"Mistral OCR failed: {e}")

        text = "\n\n".join(page.markdown for page in response.pages if page.markdown)
        return OCRResult(text=text, engine=self.name)
