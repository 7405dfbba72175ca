"""Data models for scanned receipts, category predictions and ledger rows."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any


@dataclass(frozen=True)
class LineItem:
    """A best-effort parse of one receipt row."""

    description: str
    price: str  # unparsed, e.g. "3.99"

    def to_dict(self) -> dict[str, str]:
        return {"description": self.description, "price": self.price}


@dataclass(frozen=True)
class ExtractedReceiptData:
    """Structured fields pulled out of raw OCR text.

    Monetary fields stay strings; callers validate before persisting.
    """

    merchant: str | None
    date: str | None
    total: str | None
    subtotal: str | None
    tax: str | None
    items: tuple[LineItem, ...]
    raw_text: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "merchant": self.merchant,
            "date": self.date,
            "total": self.total,
            "subtotal": self.subtotal,
            "tax": self.tax,
            "items": [item.to_dict() for item in self.items],
            "rawText": self.raw_text,
        }


@dataclass
class CategoryScore:
    category_id: str
    confidence: float


@dataclass
class CategoryPrediction:
    category_id: str | None
    confidence: float  # 0.0-1.0
    is_confident: bool
    alternatives: list[CategoryScore] = field(default_factory=list)

    @classmethod
    def empty(cls) -> CategoryPrediction:
        """The prediction returned when nothing matched or prediction failed."""
        return cls(category_id=None, confidence=0.0, is_confident=False)

    def to_dict(self) -> dict[str, Any]:
        return {
            "categoryId": self.category_id,
            "confidence": self.confidence,
            "isConfident": self.is_confident,
            "alternatives": [
                {"categoryId": a.category_id, "confidence": a.confidence}
                for a in self.alternatives
            ],
        }


@dataclass
class CategorySuggestion:
    category_id: str
    name: str
    confidence: float
    reason: str  # "Pattern match" | "Alternative match" | "Frequently used"

    def to_dict(self) -> dict[str, Any]:
        return {
            "categoryId": self.category_id,
            "name": self.name,
            "confidence": self.confidence,
            "reason": self.reason,
        }


@dataclass
class UserProfile:
    """Per-user learned categorization state.

    A cache over the user's transaction history; counts only ever grow.
    """

    frequent_categories: Counter[str] = field(default_factory=Counter)
    merchant_categories: dict[str, Counter[str]] = field(default_factory=dict)

    def record(self, merchant: str | None, category_id: str) -> None:
        self.frequent_categories[category_id] += 1
        if merchant:
            key = merchant.lower().strip()
            self.merchant_categories.setdefault(key, Counter())[category_id] += 1


@dataclass
class Category:
    id: str
    user_id: str
    name: str
    type: str = "expense"  # "expense" | "income"
    description: str = ""
    color: str = "#6B7280"
    icon: str = "tag"
    is_default: bool = False


@dataclass
class Transaction:
    id: str
    user_id: str
    amount: Decimal
    category_id: str | None
    merchant: str = ""
    type: str = "expense"
    description: str = ""
    date: str = ""  # ISO8601 date
    receipt_id: str | None = None


@dataclass
class Receipt:
    id: str
    user_id: str
    image_ref: str  # cloud URL or data URI
    raw_text: str = ""
    extracted: dict[str, Any] = field(default_factory=dict)
    status: str = "scanned"  # "scanned" | "processed"
    transaction_id: str | None = None
