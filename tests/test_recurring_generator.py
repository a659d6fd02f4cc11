# tests/test_recurring_generator.py
"""Recurring expenses: CRUD rules and the generator (catch-up, idempotence, holidays, failures)."""

from __future__ import annotations

from datetime import date, timedelta
from decimal import Decimal

import pytest
from sqlmodel import Session

from ledger.errors import ValidationError
from ledger.models import GenerationStatus, RecurringGenerationLog
from ledger.repositories.transactions import TransactionFilter
from ledger.services.recurring import (
    create_recurring_expense,
    delete_recurring_expense,
    generate_due,
    generation_history,
    today_stats,
    update_recurring_expense,
)


def _rent(repos, **overrides):
    fields = dict(
        name="Rent",
        amount="1200",
        category="rent",
        frequency="monthly",
        frequency_config={"day_of_month": 5},
        start_date=date(2025, 1, 5),
    )
    fields.update(overrides)
    return create_recurring_expense(repos, **fields)


def _generated(repos, expense_id):
    rows = repos.transactions.find_all(TransactionFilter())
    return sorted(t.date for t in rows if t.recurring_expense_id == expense_id)


def test_create_computes_first_due_date(repos):
    expense = _rent(repos, start_date=date(2025, 1, 6))
    assert expense.next_generate == date(2025, 2, 5)
    assert expense.frequency_config == {"day_of_month": 5}


def test_create_validation(repos):
    with pytest.raises(ValidationError):
        _rent(repos, frequency="weekly", frequency_config={})
    with pytest.raises(ValidationError):
        _rent(repos, end_date=date(2024, 12, 31))
    with pytest.raises(ValidationError):
        _rent(repos, category="does-not-exist")


def test_catch_up_generates_each_missed_month(repos):
    expense = _rent(repos)

    result = generate_due(repos, date(2025, 3, 5))

    assert result.generated == 3
    assert _generated(repos, expense.id) == [date(2025, 1, 5), date(2025, 2, 5), date(2025, 3, 5)]
    repos.refresh(expense)
    assert expense.last_generated == date(2025, 3, 5)
    assert expense.next_generate == date(2025, 4, 5)

    txn = repos.transactions.find_all(TransactionFilter())[0]
    assert txn.is_auto_generated is True
    assert txn.note == "[auto] Rent"
    assert txn.amount == Decimal("1200.00")


def test_rerun_same_day_creates_nothing(repos):
    expense = _rent(repos)
    generate_due(repos, date(2025, 3, 5))

    again = generate_due(repos, date(2025, 3, 5))

    assert again.generated == 0
    assert len(_generated(repos, expense.id)) == 3


def test_existing_success_log_is_skipped(repos):
    expense = _rent(repos, start_date=date(2025, 3, 5))
    generate_due(repos, date(2025, 3, 5))
    # simulate a run that wrote the log but never moved the schedule
    repos.recurring.update(expense, {"next_generate": date(2025, 3, 5)})
    repos.commit()

    result = generate_due(repos, date(2025, 3, 5))

    assert result.generated == 0
    assert result.skipped == 1
    assert result.items[0].reason == "already_generated"
    assert _generated(repos, expense.id) == [date(2025, 3, 5)]


def test_lost_race_on_success_log_counts_as_skipped(repos, test_engine, monkeypatch):
    expense = _rent(repos, start_date=date(2025, 3, 5))
    # another worker generated 03-05 between our check and our insert
    with Session(test_engine) as other:
        other.add(
            RecurringGenerationLog(
                recurring_expense_id=expense.id,
                generation_date=date(2025, 3, 5),
                status=GenerationStatus.success,
            )
        )
        other.commit()
    monkeypatch.setattr(repos.recurring, "has_success", lambda expense_id, on: False)

    result = generate_due(repos, date(2025, 3, 5))

    assert result.generated == 0
    assert result.skipped == 1
    assert result.items[0].reason == "already_generated"
    assert _generated(repos, expense.id) == []


def test_no_free_day_after_holidays_is_a_failed_run(repos, make_calendar):
    holidays = {date(2025, 1, 2) + timedelta(days=i) for i in range(200)}
    cal = make_calendar(holidays=holidays)
    expense = _rent(
        repos,
        frequency="daily",
        frequency_config={},
        start_date=date(2025, 1, 1),
        skip_holidays=True,
        calendar=cal,
    )

    result = generate_due(repos, date(2025, 1, 1), calendar=cal)

    assert result.generated == 0
    assert result.failed == 1
    assert "no non-holiday date" in result.items[0].reason
    # the occurrence was rolled back with the failed schedule move
    assert _generated(repos, expense.id) == []
    repos.refresh(expense)
    assert expense.next_generate == date(2025, 1, 1)


def test_skip_holidays_rolls_monthly_date(repos, make_calendar):
    cal = make_calendar(holidays={date(2025, 5, 1)})
    expense = _rent(
        repos,
        frequency_config={"day_of_month": 1},
        start_date=date(2025, 5, 1),
        skip_holidays=True,
        calendar=cal,
    )
    assert expense.next_generate == date(2025, 5, 2)

    generate_due(repos, date(2025, 5, 2), calendar=cal)
    assert _generated(repos, expense.id) == [date(2025, 5, 2)]


def test_catch_up_is_bounded(repos):
    expense = _rent(repos, frequency="daily", frequency_config={}, start_date=date(2025, 1, 1))

    result = generate_due(repos, date(2025, 1, 10), max_catch_up=3)

    assert result.generated == 3
    repos.refresh(expense)
    assert expense.next_generate == date(2025, 1, 4)


def test_end_date_stops_generation(repos):
    expense = _rent(repos, end_date=date(2025, 2, 10))
    generate_due(repos, date(2025, 6, 1))
    assert _generated(repos, expense.id) == [date(2025, 1, 5), date(2025, 2, 5)]
    repos.refresh(expense)
    assert expense.next_generate is None


def test_one_failing_expense_does_not_stop_the_batch(repos):
    good = _rent(repos)
    bad = _rent(repos, name="Gym", category="entertainment")
    # the category disappears behind the service's back
    repos.categories.delete(repos.categories.get_by_key("entertainment"))
    repos.commit()

    result = generate_due(repos, date(2025, 1, 5))

    assert result.generated == 1
    assert result.failed == 1
    failed = [i for i in result.items if i.status == GenerationStatus.failed][0]
    assert failed.recurring_expense_id == bad.id
    assert failed.date == date(2025, 1, 5)
    assert _generated(repos, good.id) == [date(2025, 1, 5)]

    logs = generation_history(repos, expense_id=bad.id)
    assert [log.status for log in logs] == [GenerationStatus.failed]


def test_schedule_change_recomputes_next_generate(repos):
    expense = _rent(repos)
    generate_due(repos, date(2025, 1, 5))

    updated = update_recurring_expense(repos, expense.id, {"frequency_config": {"day_of_month": 20}})
    assert updated.next_generate == date(2025, 1, 20)

    # same frequency re-sent: config is kept
    updated = update_recurring_expense(repos, expense.id, {"frequency": "monthly", "amount": "1300"})
    assert updated.frequency_config == {"day_of_month": 20}
    assert updated.amount == Decimal("1300.00")


def test_delete_keeps_transactions_and_drops_logs(repos):
    expense = _rent(repos)
    generate_due(repos, date(2025, 2, 5))

    result = delete_recurring_expense(repos, expense.id)

    assert result == {"detached_transactions": 2, "deleted_logs": 2}
    rows = repos.transactions.find_all(TransactionFilter())
    assert len(rows) == 2
    assert all(t.recurring_expense_id is None and t.is_auto_generated for t in rows)
    assert repos.session.get(RecurringGenerationLog, 1) is None


def test_today_stats_counts_logs(repos):
    _rent(repos, start_date=date(2025, 3, 5))
    generate_due(repos, date(2025, 3, 5))

    stats = today_stats(repos, date(2025, 3, 5))
    assert stats["active_expenses"] == 1
    assert stats["pending"] == 0
