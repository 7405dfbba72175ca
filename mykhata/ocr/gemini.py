"""Gemini API engine that transcribes receipt images."""

from __future__ import annotations

from . import OCREngine, RecognitionResult, guess_media_type
from .claude import _PROMPT, _parse_response


class GeminiEngine(OCREngine):
    """Recognize receipt text using Google Gemini's vision capability."""

    def __init__(self, api_key: str = "", model: str = "gemini-2.0-flash") -> None:
        self._api_key = api_key
        self._model = model

    async def recognize(self, image_bytes: bytes) -> RecognitionResult:
        if not self._api_key:
            raise ValueError(
                "Gemini API key is not set. "
                "Check the config file or the GEMINI_API_KEY environment variable."
            )

        try:
            import google.generativeai as genai
        except ImportError:
            raise ImportError(
                "google-generativeai SDK is required: pip install 'mykhata[gemini]'"
            ) from None

        genai.configure(api_key=self._api_key)
        model = genai.GenerativeModel(self._model)

        parts = [
            {"mime_type": guess_media_type(image_bytes), "data": image_bytes},
            _PROMPT,
        ]
        response = await model.generate_content_async(parts)
        return RecognitionResult(text=_parse_response(response.text))
