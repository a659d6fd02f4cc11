# tests/test_transactions_service.py
"""
Unit tests for the transaction service helpers (no HTTP).
We spin up a tiny SQLite DB, create tables, and verify behavior.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal

import pytest
from sqlmodel import Session, SQLModel, create_engine

from ledger.errors import NotFoundError, ValidationError
from ledger.models import Transaction, TransactionType
from ledger.repositories.container import build_repositories
from ledger.repositories.transactions import TransactionFilter
from ledger.services.categories import seed_default_categories
from ledger.services.payment_methods import create_payment_method
from ledger.services.transactions import (
    create_transaction,
    delete_transaction,
    list_transactions,
    parse_amount,
    restore_transaction,
    transaction_stats,
    update_transaction,
)


def _make_engine():
    return create_engine("sqlite:///:memory:", echo=False)


def _bootstrap(engine):
    SQLModel.metadata.create_all(engine)
    session = Session(engine)
    repos = build_repositories(session)
    seed_default_categories(repos)
    return repos


def test_create_expense_stores_decimal_and_default_currency():
    repos = _bootstrap(_make_engine())

    txn = create_transaction(
        repos,
        type=TransactionType.expense,
        category="food",
        amount=23.5,
        date=date(2025, 6, 15),
        note="weekly shop",
    )

    assert txn.id is not None
    assert txn.amount == Decimal("23.50")
    assert txn.currency == "CNY"
    assert txn.is_auto_generated is False
    # sanity: it exists in DB
    fetched = repos.session.get(Transaction, txn.id)
    assert fetched is not None
    assert fetched.category == "food"


def test_create_income_via_string_type():
    repos = _bootstrap(_make_engine())

    txn = create_transaction(
        repos,
        type="income",  # string accepted
        category="salary",
        amount="1000",
        currency="usd",
        date=date(2025, 1, 1),
    )
    assert txn.type == TransactionType.income
    assert txn.currency == "USD"


@pytest.mark.parametrize("amount", [0, -5, "abc"])
def test_amount_must_be_positive_number(amount):
    repos = _bootstrap(_make_engine())
    with pytest.raises(ValidationError) as exc:
        create_transaction(
            repos, type="expense", category="food", amount=amount, date=date(2025, 1, 1)
        )
    assert exc.value.details[0]["field"] == "amount"


def test_unknown_category_and_payment_method_are_rejected():
    repos = _bootstrap(_make_engine())
    with pytest.raises(ValidationError) as exc:
        create_transaction(
            repos, type="expense", category="nope", amount=1, date=date(2025, 1, 1)
        )
    assert exc.value.details[0]["field"] == "category"

    with pytest.raises(ValidationError) as exc:
        create_transaction(
            repos,
            type="expense",
            category="food",
            amount=1,
            date=date(2025, 1, 1),
            payment_method="Ghost card",
        )
    assert exc.value.details[0]["field"] == "payment_method"


def test_soft_delete_hides_and_restore_brings_back():
    repos = _bootstrap(_make_engine())
    txn = create_transaction(
        repos, type="expense", category="food", amount=10, date=date(2025, 3, 1)
    )

    delete_transaction(repos, txn.id)
    page = list_transactions(repos, TransactionFilter())
    assert page.total == 0
    with pytest.raises(NotFoundError):
        update_transaction(repos, txn.id, {"amount": 5})

    page = list_transactions(repos, TransactionFilter(include_deleted=True))
    assert page.total == 1

    restored = restore_transaction(repos, txn.id)
    assert restored.deleted_at is None
    assert list_transactions(repos, TransactionFilter()).total == 1


def test_hard_delete_removes_row():
    repos = _bootstrap(_make_engine())
    txn = create_transaction(
        repos, type="expense", category="food", amount=10, date=date(2025, 3, 1)
    )
    delete_transaction(repos, txn.id, hard=True)
    assert repos.transactions.get(txn.id, include_deleted=True) is None


def test_update_validates_and_applies_partial_changes():
    repos = _bootstrap(_make_engine())
    create_payment_method(repos, name="Visa")
    txn = create_transaction(
        repos, type="expense", category="food", amount=10, date=date(2025, 3, 1)
    )

    updated = update_transaction(
        repos, txn.id, {"amount": "12.345", "payment_method": "Visa", "unknown": 1}
    )
    assert updated.amount == Decimal("12.35")
    assert updated.payment_method == "Visa"
    assert updated.category == "food"

    with pytest.raises(ValidationError):
        update_transaction(repos, txn.id, {"category": None})


def test_list_filters_sorts_and_paginates():
    repos = _bootstrap(_make_engine())
    for day, amount, category in [(1, 30, "food"), (2, 10, "transport"), (3, 20, "food")]:
        create_transaction(
            repos, type="expense", category=category, amount=amount, date=date(2025, 4, day)
        )

    page = list_transactions(
        repos, TransactionFilter(category="food"), sort_by="amount", sort_order="asc"
    )
    assert [t.amount for t in page.items] == [Decimal("20.00"), Decimal("30.00")]

    page = list_transactions(repos, TransactionFilter(), page=2, page_size=2)
    assert page.total == 3
    assert len(page.items) == 1
    assert page.pagination()["has_prev"] is True
    assert page.pagination()["has_next"] is False

    with pytest.raises(ValidationError):
        list_transactions(repos, TransactionFilter(), page_size=500)


def test_stats_cover_filter():
    repos = _bootstrap(_make_engine())
    for amount in (10, 20, 30):
        create_transaction(
            repos, type="expense", category="food", amount=amount, date=date(2025, 5, 1)
        )
    create_transaction(
        repos, type="income", category="salary", amount=1000, date=date(2025, 5, 1)
    )

    stats = transaction_stats(repos, TransactionFilter(type=TransactionType.expense))
    assert stats["count"] == 3
    assert stats["total_amount"] == Decimal("60")
    assert stats["avg_amount"] == Decimal("20.00")
    assert stats["by_category"][0]["category"] == "food"


@pytest.mark.parametrize(
    "raw, expected",
    [("12.345", "12.35"), ("0.125", "0.13"), ("2.675", "2.68"), ("7", "7.00")],
)
def test_parse_amount_rounds_half_up(raw, expected):
    assert parse_amount(raw) == Decimal(expected)


@pytest.mark.parametrize("raw", ["0", "-3", "0.004", "abc", "NaN"])
def test_parse_amount_rejects_non_positive_and_junk(raw):
    with pytest.raises(ValidationError):
        parse_amount(raw)
