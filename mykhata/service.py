"""The MyKhata facade: wires scanning, categorization and the ledger together."""

from __future__ import annotations

import logging
from decimal import Decimal
from functools import partial
from typing import Any

from .cache import CacheService
from .categorize import SmartCategorizer
from .config import AppConfig
from .db import LedgerDB
from .errors import ValidationError
from .ledger import parse_amount, require_merchant, resolve_transaction_date
from .models import (
    Category,
    CategoryPrediction,
    CategorySuggestion,
    ExtractedReceiptData,
    Receipt,
    Transaction,
)
from .ocr import OCREngine, create_engine
from .pool import WorkerPool
from .preprocess import preprocess_image
from .scanner import ReceiptScanner
from .storage import GoogleDriveImageStore, ImageStore, store_receipt_image

logger = logging.getLogger(__name__)

_TRANSACTION_TYPES = ("expense", "income")


class MyKhata:
    """Receipt scanning and category inference for one process.

    Use :meth:`from_config` to build every component from an
    :class:`AppConfig`, and ``async with`` (or :meth:`shutdown`) to release
    OCR workers and the database connection.
    """

    def __init__(
        self,
        *,
        scanner: ReceiptScanner,
        categorizer: SmartCategorizer,
        ledger: LedgerDB,
        cache: CacheService,
        pool: WorkerPool[OCREngine],
        image_store: ImageStore | None = None,
        suggestion_limit: int = 5,
    ) -> None:
        self._scanner = scanner
        self._categorizer = categorizer
        self._ledger = ledger
        self._cache = cache
        self._pool = pool
        self._image_store = image_store
        self._suggestion_limit = suggestion_limit
        self._closed = False

    @classmethod
    def from_config(cls, config: AppConfig) -> MyKhata:
        cache = CacheService(
            ocr_ttl=config.cache.ocr_ttl,
            user_ttl=config.cache.user_ttl,
            receipt_ttl=config.cache.receipt_ttl,
        )
        pool: WorkerPool[OCREngine] = WorkerPool(
            partial(create_engine, config),
            max_workers=config.pool.max_workers,
            memory_threshold=config.pool.memory_threshold_mb * 1024 * 1024,
            cooldown=config.pool.cooldown_seconds,
        )
        preprocessor = partial(
            preprocess_image,
            max_dimension=config.preprocess.max_dimension,
            sharpen_sigma=config.preprocess.sharpen_sigma,
            gamma=config.preprocess.gamma,
            jpeg_quality=config.preprocess.jpeg_quality,
        )
        scanner = ReceiptScanner(pool, cache, preprocessor=preprocessor)
        ledger = LedgerDB(config.database.path)
        categorizer = SmartCategorizer(
            ledger,
            confidence_threshold=config.categorizer.confidence_threshold,
            history_limit=config.categorizer.history_limit,
            similar_limit=config.categorizer.similar_limit,
        )

        image_store: ImageStore | None = None
        if config.storage.enabled:
            image_store = GoogleDriveImageStore(
                credentials_path=config.storage.credentials_path,
                token_path=config.storage.token_path,
                folder_id=config.storage.folder_id,
            )

        return cls(
            scanner=scanner,
            categorizer=categorizer,
            ledger=ledger,
            cache=cache,
            pool=pool,
            image_store=image_store,
            suggestion_limit=config.categorizer.suggestion_limit,
        )

    async def __aenter__(self) -> MyKhata:
        return self

    async def __aexit__(self, *exc) -> None:
        await self.shutdown()

    @property
    def categorizer(self) -> SmartCategorizer:
        return self._categorizer

    @property
    def cache(self) -> CacheService:
        return self._cache

    # Scanning

    async def scan_receipt(
        self, image_bytes: bytes, priority: str = "normal"
    ) -> ExtractedReceiptData:
        return await self._scanner.scan(image_bytes, priority)

    async def save_scanned_receipt(
        self, user_id: str, image_bytes: bytes, data: ExtractedReceiptData
    ) -> Receipt:
        """Persist a scanned receipt together with a reference to its image."""
        image_ref = await store_receipt_image(self._image_store, image_bytes)
        receipt = self._ledger.add_receipt(
            user_id, image_ref, raw_text=data.raw_text, extracted=data.to_dict()
        )
        self._cache.set_receipt_data(receipt.id, receipt)
        logger.info("Saved receipt %s for user %s", receipt.id, user_id)
        return receipt

    def get_receipt(self, receipt_id: str) -> Receipt | None:
        receipt = self._cache.get_receipt_data(receipt_id)
        if receipt is None:
            receipt = self._ledger.get_receipt(receipt_id)
            if receipt is not None:
                self._cache.set_receipt_data(receipt_id, receipt)
        return receipt

    def list_receipts(self, user_id: str, status: str | None = None) -> list[Receipt]:
        """Return a user's receipts, newest first, optionally by status."""
        return self._ledger.list_receipts(user_id, status)

    # Categorization

    async def predict_category(
        self, merchant: str, user_id: str
    ) -> CategoryPrediction:
        return await self._categorizer.predict_category(merchant, user_id)

    async def get_category_suggestions(
        self, merchant: str, user_id: str, limit: int | None = None
    ) -> list[CategorySuggestion]:
        if limit is None:
            limit = self._suggestion_limit
        return await self._categorizer.get_category_suggestions(
            merchant, user_id, limit
        )

    async def learn_from_user_decision(
        self, merchant: str, category_id: str, user_id: str
    ) -> None:
        """Teach the categorizer a merchant's category and keep the decision.

        The in-memory profile is updated before the decision is stored so a
        freshly built profile does not count it twice.
        """
        merchant = require_merchant(merchant)
        if not category_id:
            raise ValidationError("Category is required")
        await self._categorizer.learn_from_user_decision(
            merchant, category_id, user_id
        )
        self._ledger.record_category_decision(user_id, merchant, category_id)

    def list_categories(self, user_id: str) -> list[Category]:
        categories = self._cache.get_user_data(user_id, "categories")
        if categories is None:
            categories = self._ledger.list_categories(user_id)
            self._cache.set_user_data(user_id, "categories", categories)
        return categories

    def initialize_default_categories(self, user_id: str) -> list[Category]:
        created = self._ledger.initialize_default_categories(user_id)
        if created:
            self._cache.delete_user_data(user_id, "categories")
            logger.info(
                "Created %d default categories for user %s", len(created), user_id
            )
        return created

    # Ledger

    async def create_transaction_from_receipt(
        self,
        user_id: str,
        merchant: str | None,
        amount: str | int | float | Decimal | None,
        *,
        date: str | None = None,
        category_id: str | None = None,
        receipt_id: str | None = None,
        type: str = "expense",
        description: str | None = None,
    ) -> Transaction:
        """Record a user-confirmed receipt as a ledger transaction.

        Without ``category_id`` the user's default category for ``type`` is
        used (created on demand). An unparseable date falls back to today.
        The chosen category is fed back to the categorizer, and the receipt,
        if given, is marked processed.

        Raises:
            ValidationError: If the merchant is missing, the amount is not a
                positive finite number, ``type`` is unknown, or the receipt
                does not exist.
        """
        merchant = require_merchant(merchant)
        value = parse_amount(amount)
        if type not in _TRANSACTION_TYPES:
            raise ValidationError(f"Transaction type must be expense or income: {type!r}")
        if receipt_id is not None:
            receipt = self.get_receipt(receipt_id)
            if receipt is None or receipt.user_id != user_id:
                raise ValidationError(f"Receipt not found: {receipt_id}")

        if not category_id:
            category_id = self._ledger.get_or_create_default_category(user_id, type).id
            self._cache.delete_user_data(user_id, "categories")

        # Load the profile first so the new row is not counted twice
        try:
            await self._categorizer.get_user_profile(user_id)
        except Exception:
            logger.warning("Could not load category profile for %s", user_id, exc_info=True)

        txn = self._ledger.add_transaction(
            user_id,
            value,
            resolve_transaction_date(date),
            category_id=category_id,
            merchant=merchant,
            type=type,
            description=description or f"Receipt from {merchant}",
            receipt_id=receipt_id,
        )
        await self._categorizer.learn_from_user_decision(merchant, category_id, user_id)

        if receipt_id is not None:
            self._ledger.mark_receipt_processed(receipt_id, txn.id, user_id=user_id)
            self._cache.delete_receipt_data(receipt_id)

        logger.info("Created transaction %s for user %s", txn.id, user_id)
        return txn

    # Housekeeping

    def get_cache_stats(self) -> dict[str, Any]:
        stats = self._cache.get_stats()
        stats["pool"] = self._pool.stats()
        stats["memory"] = self._pool.memory_info()
        return stats

    def invalidate_user(self, user_id: str) -> None:
        """Drop everything cached for a user after external history changes."""
        self._categorizer.clear_user_cache(user_id)
        self._cache.clear_user_data(user_id)

    def purge_expired_cache(self) -> int:
        return self._cache.purge_expired()

    def refresh_profiles(self) -> None:
        self._categorizer.clear_all_caches()

    async def shutdown(self) -> None:
        if self._closed:
            return
        self._closed = True
        await self._pool.shutdown()
        self._ledger.close()
