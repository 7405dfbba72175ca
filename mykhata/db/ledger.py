"""Category, transaction and receipt persistence."""

from __future__ import annotations

import json
import sqlite3
import uuid
from decimal import Decimal
from pathlib import Path
from typing import Any

from ..models import Category, Receipt, Transaction
from .schema import ensure_schema

# (name, type, description, color, icon)
DEFAULT_CATEGORIES: list[tuple[str, str, str, str, str]] = [
    ("Food & Dining", "expense", "Restaurants, groceries, and food delivery", "#EF4444", "utensils"),
    ("Transportation", "expense", "Gas, public transport, rideshare", "#F59E0B", "car"),
    ("Shopping", "expense", "Clothing, electronics, and general shopping", "#8B5CF6", "shopping-bag"),
    ("Bills & Utilities", "expense", "Electricity, water, internet, phone", "#06B6D4", "file-text"),
    ("Other Expenses", "expense", "Miscellaneous expenses", "#6B7280", "tag"),
    ("Salary", "income", "Regular employment income", "#10B981", "briefcase"),
    ("Freelance", "income", "Freelance and contract work", "#059669", "trending-up"),
    ("Investment", "income", "Dividends, interest, and capital gains", "#7C3AED", "trending-up"),
    ("Other Income", "income", "Miscellaneous income", "#6B7280", "tag"),
]

_FALLBACK_NAMES = {"expense": "Other Expenses", "income": "Other Income"}


def _new_id() -> str:
    return uuid.uuid4().hex


def _category(row: sqlite3.Row) -> Category:
    return Category(
        id=row["id"],
        user_id=row["user_id"],
        name=row["name"],
        type=row["type"],
        description=row["description"],
        color=row["color"],
        icon=row["icon"],
        is_default=bool(row["is_default"]),
    )


def _transaction(row: sqlite3.Row) -> Transaction:
    return Transaction(
        id=row["id"],
        user_id=row["user_id"],
        amount=Decimal(row["amount"]),
        category_id=row["category_id"],
        merchant=row["merchant"],
        type=row["type"],
        description=row["description"],
        date=row["date"],
        receipt_id=row["receipt_id"],
    )


def _receipt(row: sqlite3.Row) -> Receipt:
    try:
        extracted = json.loads(row["extracted_json"])
    except (json.JSONDecodeError, TypeError):
        extracted = {}
    return Receipt(
        id=row["id"],
        user_id=row["user_id"],
        image_ref=row["image_ref"],
        raw_text=row["raw_text"],
        extracted=extracted,
        status=row["status"],
        transaction_id=row["transaction_id"],
    )


class LedgerDB:
    """Manages the categories, transactions and receipts tables."""

    def __init__(self, db_path: str | Path = "~/.config/mykhata/ledger.db") -> None:
        self._db_path = db_path
        self._conn: sqlite3.Connection | None = None

    def _get_conn(self) -> sqlite3.Connection:
        if self._conn is None:
            self._conn = ensure_schema(self._db_path)
        return self._conn

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    # Categories

    def add_category(
        self,
        user_id: str,
        name: str,
        *,
        type: str = "expense",
        description: str = "",
        color: str = "#6B7280",
        icon: str = "tag",
        is_default: bool = False,
    ) -> Category:
        if type not in ("expense", "income"):
            raise ValueError(f"Unknown category type: {type!r}")
        category = Category(
            id=_new_id(),
            user_id=user_id,
            name=name,
            type=type,
            description=description,
            color=color,
            icon=icon,
            is_default=is_default,
        )
        conn = self._get_conn()
        conn.execute(
            """INSERT INTO categories
               (id, user_id, name, type, description, color, icon, is_default)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?)""",
            (
                category.id,
                category.user_id,
                category.name,
                category.type,
                category.description,
                category.color,
                category.icon,
                int(category.is_default),
            ),
        )
        conn.commit()
        return category

    def get_category(self, category_id: str) -> Category | None:
        conn = self._get_conn()
        row = conn.execute(
            "SELECT * FROM categories WHERE id = ?", (category_id,)
        ).fetchone()
        return _category(row) if row else None

    def list_categories(
        self, user_id: str, type: str | None = None
    ) -> list[Category]:
        """Return a user's categories, optionally filtered by type."""
        conn = self._get_conn()
        if type is None:
            rows = conn.execute(
                "SELECT * FROM categories WHERE user_id = ? ORDER BY type, name",
                (user_id,),
            ).fetchall()
        else:
            rows = conn.execute(
                """SELECT * FROM categories
                   WHERE user_id = ? AND type = ?
                   ORDER BY name""",
                (user_id, type),
            ).fetchall()
        return [_category(r) for r in rows]

    def initialize_default_categories(self, user_id: str) -> list[Category]:
        """Create the default category set for a user who has none.

        Returns:
            The newly created categories, or an empty list if the user
            already had categories.
        """
        if self.list_categories(user_id):
            return []
        return [
            self.add_category(
                user_id,
                name,
                type=type,
                description=description,
                color=color,
                icon=icon,
                is_default=True,
            )
            for name, type, description, color, icon in DEFAULT_CATEGORIES
        ]

    def get_or_create_default_category(
        self, user_id: str, type: str = "expense"
    ) -> Category:
        """Return the user's default category of ``type``, creating one if needed.

        Prefers a category flagged as default; otherwise the catch-all
        "Other Expenses" / "Other Income" category is created.
        """
        conn = self._get_conn()
        row = conn.execute(
            """SELECT * FROM categories
               WHERE user_id = ? AND type = ? AND is_default = 1
               ORDER BY (name = ?) DESC, created_at
               LIMIT 1""",
            (user_id, type, _FALLBACK_NAMES.get(type, "")),
        ).fetchone()
        if row:
            return _category(row)

        for name, cat_type, description, color, icon in DEFAULT_CATEGORIES:
            if cat_type == type and name == _FALLBACK_NAMES.get(type):
                return self.add_category(
                    user_id,
                    name,
                    type=type,
                    description=description,
                    color=color,
                    icon=icon,
                    is_default=True,
                )
        raise ValueError(f"Unknown category type: {type!r}")

    # Transactions

    def add_transaction(
        self,
        user_id: str,
        amount: Decimal,
        date: str,
        *,
        category_id: str | None = None,
        merchant: str = "",
        type: str = "expense",
        description: str = "",
        receipt_id: str | None = None,
    ) -> Transaction:
        txn = Transaction(
            id=_new_id(),
            user_id=user_id,
            amount=amount,
            category_id=category_id,
            merchant=merchant,
            type=type,
            description=description,
            date=date,
            receipt_id=receipt_id,
        )
        conn = self._get_conn()
        conn.execute(
            """INSERT INTO transactions
               (id, user_id, type, amount, category_id, merchant,
                description, date, receipt_id)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)""",
            (
                txn.id,
                txn.user_id,
                txn.type,
                str(txn.amount),
                txn.category_id,
                txn.merchant,
                txn.description,
                txn.date,
                txn.receipt_id,
            ),
        )
        conn.commit()
        return txn

    def recent_transactions(self, user_id: str, limit: int = 100) -> list[Transaction]:
        """Return a user's transactions, most recent first."""
        conn = self._get_conn()
        rows = conn.execute(
            """SELECT * FROM transactions
               WHERE user_id = ?
               ORDER BY date DESC, rowid DESC
               LIMIT ?""",
            (user_id, limit),
        ).fetchall()
        return [_transaction(r) for r in rows]

    # Receipts

    def add_receipt(
        self,
        user_id: str,
        image_ref: str,
        *,
        raw_text: str = "",
        extracted: dict[str, Any] | None = None,
    ) -> Receipt:
        receipt = Receipt(
            id=_new_id(),
            user_id=user_id,
            image_ref=image_ref,
            raw_text=raw_text,
            extracted=dict(extracted or {}),
        )
        conn = self._get_conn()
        conn.execute(
            """INSERT INTO receipts
               (id, user_id, image_ref, raw_text, extracted_json, status)
               VALUES (?, ?, ?, ?, ?, ?)""",
            (
                receipt.id,
                receipt.user_id,
                receipt.image_ref,
                receipt.raw_text,
                json.dumps(receipt.extracted, ensure_ascii=False),
                receipt.status,
            ),
        )
        conn.commit()
        return receipt

    def get_receipt(self, receipt_id: str) -> Receipt | None:
        conn = self._get_conn()
        row = conn.execute(
            "SELECT * FROM receipts WHERE id = ?", (receipt_id,)
        ).fetchone()
        return _receipt(row) if row else None

    def list_receipts(
        self, user_id: str, status: str | None = None
    ) -> list[Receipt]:
        conn = self._get_conn()
        if status is None:
            rows = conn.execute(
                "SELECT * FROM receipts WHERE user_id = ? ORDER BY rowid DESC",
                (user_id,),
            ).fetchall()
        else:
            rows = conn.execute(
                """SELECT * FROM receipts
                   WHERE user_id = ? AND status = ?
                   ORDER BY rowid DESC""",
                (user_id, status),
            ).fetchall()
        return [_receipt(r) for r in rows]

    def mark_receipt_processed(
        self, receipt_id: str, transaction_id: str, *, user_id: str
    ) -> bool:
        """Link a user's receipt to its transaction.

        Returns:
            True if the receipt existed and belongs to ``user_id``.
        """
        conn = self._get_conn()
        cur = conn.execute(
            """UPDATE receipts
               SET status = 'processed',
                   transaction_id = ?,
                   updated_at = datetime('now', 'localtime')
               WHERE id = ? AND user_id = ?""",
            (transaction_id, receipt_id, user_id),
        )
        conn.commit()
        return cur.rowcount > 0

    # Category decisions

    def record_category_decision(
        self, user_id: str, merchant: str, category_id: str
    ) -> None:
        """Remember that the user filed ``merchant`` under ``category_id``."""
        conn = self._get_conn()
        conn.execute(
            """INSERT INTO category_decisions (user_id, merchant, category_id)
               VALUES (?, ?, ?)""",
            (user_id, merchant, category_id),
        )
        conn.commit()

    def category_decisions(
        self, user_id: str, limit: int = 100
    ) -> list[tuple[str, str]]:
        """Return ``(merchant, category_id)`` pairs, most recent first."""
        conn = self._get_conn()
        rows = conn.execute(
            """SELECT merchant, category_id FROM category_decisions
               WHERE user_id = ?
               ORDER BY id DESC
               LIMIT ?""",
            (user_id, limit),
        ).fetchall()
        return [(r["merchant"], r["category_id"]) for r in rows]
