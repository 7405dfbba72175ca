"""SQLite storage for categories, transactions and receipts."""

from .ledger import DEFAULT_CATEGORIES, LedgerDB
from .schema import ensure_schema

__all__ = [
    "DEFAULT_CATEGORIES",
    "LedgerDB",
    "ensure_schema",
]
