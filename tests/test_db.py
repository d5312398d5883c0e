"""
Tests for the SQLite store.
"""
import pytest

from core.db import SQLiteStore, owner_for
from core.exceptions import CategoryConflictError, StoreError
from core.schema import TransactionInsert


def test_init_is_repeatable(tmp_path):
    path = str(tmp_path / "ledger.db")
    SQLiteStore(path)
    store = SQLiteStore(path)
    assert store.fetch_categories("Bearer token-aaaa") == []


def test_init_failure_raises_store_error(tmp_path):
    with pytest.raises(StoreError, match="Failed to initialize database"):
        SQLiteStore(str(tmp_path / "missing-dir" / "ledger.db"))


def test_insert_and_fetch_categories(store, credential):
    created = store.insert_categories(credential, [
        {"name": "Food", "type": "expense"},
        {"name": "Food", "type": "income"},
    ])

    assert len(created) == 2
    assert {row.id for row in created} == {row.id for row in store.fetch_categories(credential)}


def test_category_uniqueness_ignores_case_and_spaces(store, credential):
    store.insert_categories(credential, [{"name": "Food", "type": "expense"}])

    with pytest.raises(CategoryConflictError):
        store.insert_categories(credential, [
            {"name": "Travel", "type": "expense"},
            {"name": " food ", "type": "expense"},
        ])

    # The whole batch is rolled back
    assert [row.name for row in store.fetch_categories(credential)] == ["Food"]


def test_categories_are_scoped_to_credential(store):
    store.insert_categories("Bearer alice-token-123", [{"name": "Food", "type": "expense"}])

    assert store.fetch_categories("Bearer bob-token-4567") == []
    store.insert_categories("Bearer bob-token-4567", [{"name": "Food", "type": "expense"}])


def test_insert_transactions_returns_ids(store, credential):
    category = store.insert_categories(credential, [{"name": "Cafe", "type": "expense"}])[0]
    ids = store.insert_transactions(credential, [
        TransactionInsert(occurred_on="2024-06-01", description="Coffee", amount=3.5,
                          type="expense", category_id=category.id, source="csv"),
        TransactionInsert(occurred_on="2024-06-02", description="Tea", amount=2.0, type="expense"),
    ])

    assert len(ids) == 2
    assert len(set(ids)) == 2
    assert store.count_transactions(credential) == 2


def test_unknown_category_id_is_rejected(store, credential):
    with pytest.raises(StoreError):
        store.insert_transactions(credential, [
            TransactionInsert(occurred_on="2024-06-01", description="Coffee", amount=3.5,
                              type="expense", category_id="no-such-category"),
        ])
    assert store.count_transactions(credential) == 0


def test_owner_digest_is_stable():
    assert owner_for("Bearer x") == owner_for("Bearer x")
    assert owner_for("Bearer x") != owner_for("Bearer y")
