# tests/test_budgets.py
"""Budgets: status over variable spending, summary, history, prediction, suggestions."""

from __future__ import annotations

from datetime import date
from decimal import Decimal

import pytest

from ledger import cache
from ledger.errors import NotFoundError, ValidationError
from ledger.services.budgets import (
    budget_history,
    budget_status,
    budget_summary,
    delete_budget,
    list_suggestions,
    predict_month_end,
    refresh_suggestions,
    set_budget,
)
from ledger.services.recurring import create_recurring_expense, generate_due
from ledger.services.transactions import create_transaction


def _spend(repos, day, amount, category="food"):
    create_transaction(repos, type="expense", category=category, amount=amount, date=day)
    # routers do this after every write
    cache.invalidate_tags([cache.TRANSACTIONS, cache.BUDGETS])


def _by_key(rows):
    return {r["category_key"]: r for r in rows}


def test_set_budget_is_an_upsert(repos):
    first = set_budget(repos, year=2025, month=6, category_key="food", amount=500)
    again = set_budget(
        repos, year=2025, month=6, category_key="food", amount="650", alert_threshold=0.9
    )
    assert again.id == first.id
    assert again.amount == Decimal("650.00")
    assert again.alert_threshold == 0.9

    total = set_budget(repos, year=2025, month=6, category_key=None, amount=2000)
    assert total.id != first.id
    assert set_budget(repos, year=2025, month=6, category_key="", amount=2500).id == total.id


@pytest.mark.parametrize(
    "kwargs",
    [
        {"amount": 0},
        {"amount": 100, "alert_threshold": 1.5},
        {"amount": 100, "category_key": "ghost"},
        {"amount": 100, "month": 13},
    ],
)
def test_set_budget_validation(repos, kwargs):
    values = {"year": 2025, "month": 6, "category_key": "food"}
    values.update(kwargs)
    with pytest.raises(ValidationError):
        set_budget(repos, **values)


def test_status_counts_variable_spending_only(repos):
    set_budget(repos, year=2025, month=6, category_key="food", amount=500)
    set_budget(repos, year=2025, month=6, category_key="rent", amount=100)
    set_budget(repos, year=2025, month=6, category_key=None, amount=1000)
    create_recurring_expense(
        repos,
        name="Rent",
        amount=1200,
        category="rent",
        frequency="monthly",
        frequency_config={"day_of_month": 1},
        start_date=date(2025, 6, 1),
    )
    generate_due(repos, date(2025, 6, 1))
    _spend(repos, date(2025, 6, 2), 300)

    rows = _by_key(budget_status(repos, 2025, 6))

    food = rows["food"]
    assert food["spent_amount"] == Decimal("300.00")
    assert food["remaining_amount"] == Decimal("200.00")
    assert food["usage_percentage"] == 60.0
    assert food["transaction_count"] == 1
    assert not food["is_near_limit"] and not food["is_over_budget"]
    # the 1200 rent is fixed, so the rent budget is untouched
    assert rows["rent"]["spent_amount"] == Decimal("0.00")
    assert rows[None]["spent_amount"] == Decimal("300.00")


def test_near_limit_and_over_budget_flags(repos):
    set_budget(repos, year=2025, month=6, category_key="food", amount=500)
    _spend(repos, date(2025, 6, 2), 420)
    food = _by_key(budget_status(repos, 2025, 6))["food"]
    assert food["usage_percentage"] == 84.0
    assert food["is_near_limit"] and not food["is_over_budget"]

    _spend(repos, date(2025, 6, 3), 180)
    food = _by_key(budget_status(repos, 2025, 6))["food"]
    assert food["is_over_budget"] and not food["is_near_limit"]
    assert food["remaining_amount"] == Decimal("-100.00")


def test_status_is_cached_until_invalidated(repos):
    set_budget(repos, year=2025, month=6, category_key="food", amount=500)
    assert _by_key(budget_status(repos, 2025, 6))["food"]["spent_amount"] == 0

    create_transaction(repos, type="expense", category="food", amount=50, date=date(2025, 6, 2))
    assert _by_key(budget_status(repos, 2025, 6))["food"]["spent_amount"] == 0

    cache.invalidate_tags([cache.BUDGETS])
    assert _by_key(budget_status(repos, 2025, 6))["food"]["spent_amount"] == Decimal("50.00")


def test_summary_with_and_without_total_budget(repos):
    set_budget(repos, year=2025, month=6, category_key="food", amount=500)
    set_budget(repos, year=2025, month=6, category_key="transport", amount=100)
    _spend(repos, date(2025, 6, 2), 450)
    _spend(repos, date(2025, 6, 2), 150, category="transport")

    summary = budget_summary(repos, 2025, 6)
    assert summary["total_budget"] == Decimal("600.00")
    assert summary["total_spent"] == Decimal("600.00")
    assert summary["usage_percentage"] == 100.0
    assert summary["category_budgets_count"] == 2
    assert summary["over_budget_count"] == 1
    assert summary["near_limit_count"] == 1

    set_budget(repos, year=2025, month=6, category_key=None, amount=2000)
    cache.invalidate_tags([cache.BUDGETS])
    summary = budget_summary(repos, 2025, 6)
    assert summary["total_budget"] == Decimal("2000.00")
    assert summary["total_remaining"] == Decimal("1400.00")


def test_history_lists_budgeted_months_newest_first(repos):
    set_budget(repos, year=2025, month=4, category_key="food", amount=300)
    set_budget(repos, year=2025, month=6, category_key="food", amount=400)
    _spend(repos, date(2025, 4, 10), 150)

    history = budget_history(repos, "food", today=date(2025, 6, 15))
    assert [(h["year"], h["month"]) for h in history] == [(2025, 6), (2025, 4)]
    assert history[1]["usage_percentage"] == 50.0

    with pytest.raises(ValidationError):
        budget_history(repos, "food", today=date(2025, 6, 15), months=0)


def test_predict_month_end(repos):
    _spend(repos, date(2025, 6, 3), 100)

    result = predict_month_end(
        repos, year=2025, month=6, category_key="food", budget_amount=250, today=date(2025, 6, 10)
    )
    assert result["daily_rate"] == Decimal("10.00")
    assert result["predicted_total"] == Decimal("300.00")
    assert result["days_remaining"] == 20
    assert result["will_exceed_budget"] is True
    assert result["predicted_overage"] == Decimal("50.00")

    future = predict_month_end(
        repos, year=2025, month=7, category_key=None, budget_amount=250, today=date(2025, 6, 10)
    )
    assert future["days_passed"] == 0
    assert future["predicted_total"] == Decimal("0.00")
    assert future["will_exceed_budget"] is False


def test_suggestions_from_history(repos):
    for month, amount in [(1, 100), (2, 100), (3, 100), (4, 200), (5, 200)]:
        _spend(repos, date(2025, month, 15), amount)
    _spend(repos, date(2025, 5, 15), 80, category="transport")
    _spend(repos, date(2025, 6, 5), 50)
    set_budget(repos, year=2025, month=6, category_key="transport", amount=100)

    written = refresh_suggestions(repos, 2025, 6, today=date(2025, 6, 10))

    assert written == 1
    [food] = list_suggestions(repos, 2025, 6, today=date(2025, 6, 10))
    assert food["category_key"] == "food"
    # max(projected 150, average 140) * 1.1
    assert food["suggested_amount"] == Decimal("165.00")
    assert food["historical_avg"] == Decimal("140.00")
    assert food["historical_months"] == 5
    assert food["confidence_level"] == "high"
    assert food["trend_direction"] == "increasing"
    assert food["current_daily_rate"] == Decimal("5.00")
    assert food["predicted_month_total"] == Decimal("150.00")


def test_budgeting_a_category_retires_its_suggestion(repos):
    _spend(repos, date(2025, 5, 15), 100)
    assert refresh_suggestions(repos, 2025, 6, today=date(2025, 6, 1)) == 1

    set_budget(repos, year=2025, month=6, category_key="food", amount=120)
    assert refresh_suggestions(repos, 2025, 6, today=date(2025, 6, 1)) == 0
    assert list_suggestions(repos, 2025, 6, today=date(2025, 6, 1)) == []


def test_delete_budget(repos):
    budget = set_budget(repos, year=2025, month=6, category_key="food", amount=500)
    delete_budget(repos, budget.id)
    with pytest.raises(NotFoundError):
        delete_budget(repos, budget.id)
