"""Tests for the receipt scanning pipeline (mocked OCR engine)."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from mykhata.cache import CacheService, content_hash
from mykhata.errors import InvalidImageError, RecognitionError
from mykhata.ocr import OCREngine, RecognitionResult
from mykhata.pool import WorkerPool
from mykhata.scanner import ReceiptScanner

RECEIPT_TEXT = "Joe's Cafe\n01/02/2024\nLatte 4.50\nMuffin 3.25\nTOTAL 7.75\n"


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


class FakeEngine(OCREngine):
    def __init__(self, text: str) -> None:
        self.recognize = AsyncMock(return_value=RecognitionResult(text=text))

    async def recognize(self, image_bytes: bytes) -> RecognitionResult:
        raise NotImplementedError


def _engine(text: str = RECEIPT_TEXT) -> FakeEngine:
    return FakeEngine(text)


def _scanner(engine, *, clock=None, preprocessor=None, max_workers=1):
    cache = CacheService(clock=clock or FakeClock())
    pool = WorkerPool(lambda: engine, max_workers=max_workers, memory_probe=lambda: 0)
    return ReceiptScanner(pool, cache, preprocessor=preprocessor), cache, pool


class TestReceiptScanner:
    @pytest.mark.asyncio
    async def test_scan_extracts_fields(self):
        engine = _engine()
        scanner, _, pool = _scanner(engine)

        data = await scanner.scan(b"image-bytes")

        assert data.merchant == "Joe's Cafe"
        assert data.total == "7.75"
        assert data.date == "01/02/2024"
        assert data.raw_text == RECEIPT_TEXT
        engine.recognize.assert_awaited_once_with(b"image-bytes")
        await pool.shutdown()

    @pytest.mark.asyncio
    async def test_empty_image_rejected(self):
        scanner, _, pool = _scanner(_engine())
        with pytest.raises(InvalidImageError):
            await scanner.scan(b"")
        await pool.shutdown()

    @pytest.mark.asyncio
    async def test_identical_images_hit_cache(self):
        engine = _engine()
        clock = FakeClock()
        scanner, cache, pool = _scanner(engine, clock=clock)

        first = await scanner.scan(b"same")
        second = await scanner.scan(b"same")

        assert first == second
        assert engine.recognize.await_count == 1
        assert cache.get_ocr_result(content_hash(b"same")) == first
        await pool.shutdown()

    @pytest.mark.asyncio
    async def test_cache_expires_after_ttl(self):
        engine = _engine()
        clock = FakeClock()
        scanner, _, pool = _scanner(engine, clock=clock)

        await scanner.scan(b"same")
        clock.now += 1800
        await scanner.scan(b"same")

        assert engine.recognize.await_count == 2
        await pool.shutdown()

    @pytest.mark.asyncio
    async def test_different_images_not_shared(self):
        engine = _engine()
        scanner, _, pool = _scanner(engine)

        await scanner.scan(b"one")
        await scanner.scan(b"two")

        assert engine.recognize.await_count == 2
        await pool.shutdown()

    @pytest.mark.asyncio
    async def test_preprocessor_output_is_recognized(self):
        engine = _engine()
        scanner, _, pool = _scanner(engine, preprocessor=lambda b: b"clean:" + b)

        await scanner.scan(b"raw")

        engine.recognize.assert_awaited_once_with(b"clean:raw")
        await pool.shutdown()

    @pytest.mark.asyncio
    async def test_preprocessing_failure_uses_original(self):
        def broken(_):
            raise RuntimeError("decoder crashed")

        engine = _engine()
        scanner, _, pool = _scanner(engine, preprocessor=broken)

        data = await scanner.scan(b"raw")

        engine.recognize.assert_awaited_once_with(b"raw")
        assert data.merchant == "Joe's Cafe"
        await pool.shutdown()

    @pytest.mark.asyncio
    async def test_recognition_failure_is_wrapped_and_not_cached(self):
        engine = _engine()
        engine.recognize.side_effect = [
            OSError("tesseract missing"),
            RecognitionResult(text="OK SHOP"),
        ]
        scanner, _, pool = _scanner(engine)

        with pytest.raises(RecognitionError, match="tesseract missing"):
            await scanner.scan(b"img")

        data = await scanner.scan(b"img")
        assert data.merchant == "OK SHOP"
        await pool.shutdown()

    @pytest.mark.asyncio
    async def test_cache_failure_does_not_fail_scan(self):
        engine = _engine()
        scanner, cache, pool = _scanner(engine)
        cache.get_ocr_result = MagicMock(side_effect=RuntimeError("cache down"))
        cache.set_ocr_result = MagicMock(side_effect=RuntimeError("cache down"))

        data = await scanner.scan(b"img")

        assert data.total == "7.75"
        await pool.shutdown()

    @pytest.mark.asyncio
    async def test_concurrent_scans_share_pool(self):
        engine = _engine()
        scanner, _, pool = _scanner(engine, max_workers=2)

        images = [f"img-{i}".encode() for i in range(5)]
        results = await asyncio.gather(*(scanner.scan(img) for img in images))

        assert len(results) == 5
        assert pool.stats()["completed"] == 5
        await pool.shutdown()
