"""OCR engine base class, result type, and factory."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ..config import AppConfig


@dataclass
class RecognitionResult:
    text: str  # unstructured text, line breaks preserved


class OCREngine(ABC):
    """Abstract base for turning receipt images into text.

    One engine instance is one pool worker; it is reused across images.
    """

    @abstractmethod
    async def recognize(self, image_bytes: bytes) -> RecognitionResult:
        """Recognize all text in a single receipt image."""
        ...

    async def terminate(self) -> None:
        """Release resources held by the engine."""


def guess_media_type(image_bytes: bytes) -> str:
    """Sniff the image MIME type from magic bytes, defaulting to JPEG."""
    if image_bytes.startswith(b"\x89PNG"):
        return "image/png"
    if image_bytes[:4] == b"RIFF" and image_bytes[8:12] == b"WEBP":
        return "image/webp"
    if image_bytes[:3] == b"GIF":
        return "image/gif"
    return "image/jpeg"


def create_engine(config: AppConfig) -> OCREngine:
    """Create an OCR engine based on configuration."""
    backend_name = config.ocr.backend

    match backend_name:
        case "tesseract":
            from .tesseract import TesseractEngine

            return TesseractEngine(
                language=config.ocr.language,
                psm=config.ocr.psm,
                tesseract_cmd=config.ocr.tesseract_cmd,
            )
        case "claude":
            from .claude import ClaudeEngine

            return ClaudeEngine(
                api_key=config.ocr.claude.api_key,
                model=config.ocr.claude.model,
            )
        case "gemini":
            from .gemini import GeminiEngine

            return GeminiEngine(
                api_key=config.ocr.gemini.api_key,
                model=config.ocr.gemini.model,
            )
        case _:
            raise ValueError(
                f"Unknown OCR backend: {backend_name!r} "
                f"(choose from tesseract / claude / gemini)"
            )
