"""Local Tesseract OCR engine via pytesseract."""

from __future__ import annotations

import asyncio
import io
import logging

from . import OCREngine, RecognitionResult

logger = logging.getLogger(__name__)

_CHAR_WHITELIST = (
    "0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz.,/$-:&#%"
)


class TesseractEngine(OCREngine):
    """Recognize receipt text with a local Tesseract install.

    Tesseract runs as a subprocess, so each call is pushed to a thread to
    keep the event loop free.
    """

    def __init__(
        self,
        language: str = "eng",
        psm: int = 6,
        tesseract_cmd: str = "",
        char_whitelist: str = _CHAR_WHITELIST,
    ) -> None:
        self._language = language
        self._psm = psm
        self._tesseract_cmd = tesseract_cmd
        self._char_whitelist = char_whitelist
        self._terminated = False

    @property
    def tesseract_config(self) -> str:
        config = f"--oem 3 --psm {self._psm}"
        if self._char_whitelist:
            config += f" -c tessedit_char_whitelist={self._char_whitelist}"
        return config

    async def recognize(self, image_bytes: bytes) -> RecognitionResult:
        if self._terminated:
            raise RuntimeError("Tesseract engine has been terminated")
        text = await asyncio.to_thread(self._recognize_sync, image_bytes)
        return RecognitionResult(text=text)

    def _recognize_sync(self, image_bytes: bytes) -> str:
        try:
            import pytesseract
            from PIL import Image
        except ImportError:
            raise ImportError(
                "pytesseract and Pillow are required: pip install pytesseract pillow"
            ) from None

        if self._tesseract_cmd:
            pytesseract.pytesseract.tesseract_cmd = self._tesseract_cmd

        with Image.open(io.BytesIO(image_bytes)) as image:
            return pytesseract.image_to_string(
                image, lang=self._language, config=self.tesseract_config
            )

    async def terminate(self) -> None:
        self._terminated = True
        logger.debug("Tesseract engine terminated")
