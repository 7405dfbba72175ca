"""Receipt scanning pipeline: cache lookup, pooled OCR, field extraction."""

from __future__ import annotations

import asyncio
import logging
from functools import partial
from typing import Callable

from .cache import CacheService, content_hash
from .errors import InvalidImageError, RecognitionError
from .extractor import extract_receipt_data
from .models import ExtractedReceiptData
from .ocr import OCREngine
from .pool import WorkerPool
from .preprocess import preprocess_image

logger = logging.getLogger(__name__)


class ReceiptScanner:
    """Turns receipt images into :class:`ExtractedReceiptData`.

    Identical images (by SHA-256 of their bytes) are served from the OCR
    cache until the entry expires. Everything else is admitted through the
    worker pool, preprocessed, recognized and extracted.
    """

    def __init__(
        self,
        pool: WorkerPool[OCREngine],
        cache: CacheService,
        *,
        preprocessor: Callable[[bytes], bytes] | None = preprocess_image,
        extractor: Callable[[str], ExtractedReceiptData] = extract_receipt_data,
        cache_ttl: float | None = None,
    ) -> None:
        self._pool = pool
        self._cache = cache
        self._preprocessor = preprocessor
        self._extractor = extractor
        self._cache_ttl = cache_ttl

    async def scan(
        self, image_bytes: bytes, priority: str = "normal"
    ) -> ExtractedReceiptData:
        """Extract structured data from one receipt image.

        Raises:
            InvalidImageError: If ``image_bytes`` is empty.
            RecognitionError: If the OCR engine fails.
            PoolClosedError: If the pool shuts down before the scan starts.
        """
        if not image_bytes:
            raise InvalidImageError("No receipt image provided")

        image_hash = content_hash(image_bytes)
        cached = self._cache_get(image_hash)
        if cached is not None:
            logger.debug("OCR cache hit for %s", image_hash[:12])
            return cached

        result = await self._pool.schedule(
            partial(self._process, image_bytes), priority
        )
        self._cache_set(image_hash, result)
        return result

    async def _process(
        self, image_bytes: bytes, engine: OCREngine
    ) -> ExtractedReceiptData:
        prepared = await self._preprocess(image_bytes)
        try:
            recognized = await engine.recognize(prepared)
        except Exception as exc:
            raise RecognitionError(f"Text recognition failed: {exc}") from exc
        return self._extractor(recognized.text)

    async def _preprocess(self, image_bytes: bytes) -> bytes:
        if self._preprocessor is None:
            return image_bytes
        try:
            return await asyncio.to_thread(self._preprocessor, image_bytes)
        except Exception:
            logger.warning(
                "Image preprocessing failed, using original image", exc_info=True
            )
            return image_bytes

    def _cache_get(self, image_hash: str) -> ExtractedReceiptData | None:
        try:
            return self._cache.get_ocr_result(image_hash)
        except Exception:
            logger.warning("OCR cache lookup failed", exc_info=True)
            return None

    def _cache_set(self, image_hash: str, result: ExtractedReceiptData) -> None:
        try:
            self._cache.set_ocr_result(image_hash, result, self._cache_ttl)
        except Exception:
            logger.warning("OCR cache write failed", exc_info=True)
