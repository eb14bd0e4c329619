"""OpenAI vision OCR engine.

Sends the image as base64 to a vision-capable chat model and asks for a
verbatim transcription.
"""

import base64

from openai import OpenAI

from .base import (
    OCREngine, OCRError, OCRResult,
    DEFAULT_LANGUAGE_HINT,
    OCR_PROMPT,
    describe_languages,
)


class OpenAIOCR(OCREngine):
    """OpenAI implementation using gpt-4o with vision."""

    def __init__(self) -> None:
        """Initialize OpenAI client.

        Uses OPENAI_API_KEY environment variable automatically.
        """
        self.client = OpenAI()

    @property
    def name(self) -> str:
        return "openai"

    def recognize(self, image: bytes, mime_type: str = "image/png",
                  language_hint: str = DEFAULT_LANGUAGE_HINT) -> OCRResult:
        self._check_size(image)
        encoded = base64.b64encode(image).decode('ascii')
        prompt = OCR_PROMPT.format(languages=describe_languages(language_hint))

        try:
            response = self.client.chat.completions.create(
                model="gpt-4o",
                messages=[{
                    "role": "user",
                    "content": [
                        {"type": "text", "text": prompt},
                        {
                            "type": "image_url",
                            "image_url": {"url": f"data:{mime_type};base64,{encoded}"},
                        },
                    ],
                }],
            )
        except Exception as e:
            raise OCRError(f"OpenAI OCR failed: {e}")

        text = response.choices[0].message.content or ""
        return OCRResult(text=text.strip(), engine=self.name)
