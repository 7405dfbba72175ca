"""Tests for LedgerDB and the schema."""

from decimal import Decimal

import pytest

from mykhata.db import DEFAULT_CATEGORIES, LedgerDB
from mykhata.db.schema import _SCHEMA_VERSION, ensure_schema


@pytest.fixture
def db(tmp_path):
    """Create a temporary LedgerDB."""
    ledger = LedgerDB(db_path=tmp_path / "test.db")
    yield ledger
    ledger.close()


def test_ensure_schema_creates_tables(tmp_path):
    conn = ensure_schema(tmp_path / "sub" / "ledger.db")
    tables = {
        row["name"]
        for row in conn.execute("SELECT name FROM sqlite_master WHERE type='table'")
    }
    assert {"categories", "transactions", "receipts", "schema_version"} <= tables
    version = conn.execute("SELECT version FROM schema_version").fetchone()
    assert version["version"] == _SCHEMA_VERSION
    conn.close()


def test_ensure_schema_is_idempotent(tmp_path):
    path = tmp_path / "ledger.db"
    ensure_schema(path).close()
    conn = ensure_schema(path)
    rows = conn.execute("SELECT version FROM schema_version").fetchall()
    assert len(rows) == 1
    conn.close()


def test_in_memory_database():
    ledger = LedgerDB(":memory:")
    ledger.add_category("u1", "Food")
    assert len(ledger.list_categories("u1")) == 1
    ledger.close()


class TestCategories:
    def test_add_and_get(self, db):
        cat = db.add_category("u1", "Pets", description="vet and food", icon="paw")
        loaded = db.get_category(cat.id)
        assert loaded == cat
        assert loaded.is_default is False

    def test_get_missing(self, db):
        assert db.get_category("nope") is None

    def test_invalid_type(self, db):
        with pytest.raises(ValueError):
            db.add_category("u1", "Weird", type="transfer")

    def test_list_is_per_user_and_filterable(self, db):
        db.add_category("u1", "Food")
        db.add_category("u1", "Salary", type="income")
        db.add_category("u2", "Other")

        assert {c.name for c in db.list_categories("u1")} == {"Food", "Salary"}
        assert [c.name for c in db.list_categories("u1", type="income")] == ["Salary"]

    def test_initialize_defaults(self, db):
        created = db.initialize_default_categories("u1")
        assert len(created) == len(DEFAULT_CATEGORIES) == 9
        assert all(c.is_default for c in created)
        names = {c.name for c in created}
        assert {"Food & Dining", "Other Expenses", "Salary", "Other Income"} <= names
        food = next(c for c in created if c.name == "Food & Dining")
        assert food.color == "#EF4444"
        assert food.icon == "utensils"

    def test_initialize_defaults_skips_existing_users(self, db):
        db.add_category("u1", "Mine")
        assert db.initialize_default_categories("u1") == []
        assert len(db.list_categories("u1")) == 1

    def test_default_category_created_on_demand(self, db):
        expense = db.get_or_create_default_category("u1", "expense")
        assert expense.name == "Other Expenses"
        assert expense.is_default is True

        again = db.get_or_create_default_category("u1", "expense")
        assert again.id == expense.id

        income = db.get_or_create_default_category("u1", "income")
        assert income.name == "Other Income"

    def test_default_category_prefers_catch_all(self, db):
        db.initialize_default_categories("u1")
        assert db.get_or_create_default_category("u1").name == "Other Expenses"

    def test_default_category_unknown_type(self, db):
        with pytest.raises(ValueError):
            db.get_or_create_default_category("u1", "transfer")


class TestTransactions:
    def test_add_and_recent(self, db):
        db.add_transaction("u1", Decimal("5.00"), "2024-01-01", merchant="Old")
        db.add_transaction("u1", Decimal("7.25"), "2024-03-01", merchant="New")
        db.add_transaction("u1", Decimal("1.00"), "2024-02-01", merchant="Mid")
        db.add_transaction("u2", Decimal("9.99"), "2024-04-01", merchant="Other")

        recent = db.recent_transactions("u1")
        assert [t.merchant for t in recent] == ["New", "Mid", "Old"]
        assert recent[0].amount == Decimal("7.25")
        assert isinstance(recent[0].amount, Decimal)

    def test_recent_limit(self, db):
        for day in range(1, 6):
            db.add_transaction("u1", Decimal("1"), f"2024-01-0{day}")
        assert len(db.recent_transactions("u1", limit=3)) == 3

    def test_amount_keeps_precision(self, db):
        db.add_transaction("u1", Decimal("1234.567"), "2024-01-01")
        assert db.recent_transactions("u1")[0].amount == Decimal("1234.567")


class TestReceipts:
    def test_add_and_get(self, db):
        receipt = db.add_receipt(
            "u1", "data:image/jpeg;base64,AAAA", raw_text="SHOP", extracted={"merchant": "SHOP"}
        )
        loaded = db.get_receipt(receipt.id)
        assert loaded.status == "scanned"
        assert loaded.extracted == {"merchant": "SHOP"}
        assert loaded.raw_text == "SHOP"

    def test_mark_processed(self, db):
        receipt = db.add_receipt("u1", "https://example.com/r.jpg")
        txn = db.add_transaction("u1", Decimal("3"), "2024-01-01", receipt_id=receipt.id)

        assert db.mark_receipt_processed(receipt.id, txn.id, user_id="u1") is True
        loaded = db.get_receipt(receipt.id)
        assert loaded.status == "processed"
        assert loaded.transaction_id == txn.id

        assert db.mark_receipt_processed("missing", txn.id, user_id="u1") is False

    def test_mark_processed_requires_owner(self, db):
        receipt = db.add_receipt("alice", "ref-1")

        assert db.mark_receipt_processed(receipt.id, "t1", user_id="bob") is False
        loaded = db.get_receipt(receipt.id)
        assert loaded.status == "scanned"
        assert loaded.transaction_id is None

    def test_list_receipts_by_status(self, db):
        first = db.add_receipt("u1", "ref-1")
        db.add_receipt("u1", "ref-2")
        db.add_receipt("u2", "ref-3")
        db.mark_receipt_processed(first.id, "t1", user_id="u1")

        assert len(db.list_receipts("u1")) == 2
        assert [r.id for r in db.list_receipts("u1", status="processed")] == [first.id]
        assert len(db.list_receipts("u1", status="scanned")) == 1


class TestCategoryDecisions:
    def test_record_and_list(self, db):
        db.record_category_decision("u1", "Joe's Cafe", "dining")
        db.record_category_decision("u1", "Shell", "car")
        db.record_category_decision("u2", "Shell", "fuel")

        assert db.category_decisions("u1") == [("Shell", "car"), ("Joe's Cafe", "dining")]
        assert db.category_decisions("u1", limit=1) == [("Shell", "car")]

    def test_survives_reopen(self, tmp_path):
        path = tmp_path / "ledger.db"
        first = LedgerDB(path)
        first.record_category_decision("u1", "Joe's Cafe", "dining")
        first.close()

        second = LedgerDB(path)
        assert second.category_decisions("u1") == [("Joe's Cafe", "dining")]
        second.close()
