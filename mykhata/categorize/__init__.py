"""Merchant → category prediction with per-user learning."""

from .patterns import ARCHETYPE_NAMES, MERCHANT_PATTERNS, category_keywords, keyword_score
from .smart import CategoryStore, SmartCategorizer

__all__ = [
    "ARCHETYPE_NAMES",
    "CategoryStore",
    "MERCHANT_PATTERNS",
    "SmartCategorizer",
    "category_keywords",
    "keyword_score",
]
