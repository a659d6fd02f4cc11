# ledger/services/recurring.py
"""
Recurring expenses: CRUD + the generator that turns due schedules into
concrete expense transactions.

Generator rules (generate_due):
- every active expense with next_generate <= today is processed
- missed occurrences are caught up one by one (bounded by RECURRING_MAX_CATCH_UP)
- a `success` log row for (expense, date) means "already done": nothing is written
- each generated occurrence (transaction + log + schedule move) is committed on its own
- one expense failing is rolled back, logged as `failed`, and the rest keep going
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import IntegrityError

from ledger.config import get_settings
from ledger.errors import NotFoundError, ValidationError
from ledger.models import (
    Frequency,
    GenerationStatus,
    RecurringExpense,
    RecurringGenerationLog,
    TransactionType,
)
from ledger.repositories.container import Repositories
from ledger.services import schedule
from ledger.services.transactions import create_transaction, parse_amount

logger = logging.getLogger("ledger.recurring")

ANCHOR_FIELDS = ("frequency", "frequency_config", "start_date", "end_date", "skip_holidays")
UPDATABLE_FIELDS = (
    "name",
    "amount",
    "category",
    "payment_method",
    "is_active",
    *ANCHOR_FIELDS,
)


@dataclass
class GenerationItem:
    recurring_expense_id: int
    name: str
    date: Optional[date]
    status: GenerationStatus
    transaction_id: Optional[int] = None
    reason: Optional[str] = None


@dataclass
class GenerationResult:
    items: List[GenerationItem] = field(default_factory=list)

    @property
    def generated(self) -> int:
        return sum(1 for i in self.items if i.status == GenerationStatus.success)

    @property
    def skipped(self) -> int:
        return sum(1 for i in self.items if i.status == GenerationStatus.skipped)

    @property
    def failed(self) -> int:
        return sum(1 for i in self.items if i.status == GenerationStatus.failed)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "generated": self.generated,
            "skipped": self.skipped,
            "failed": self.failed,
            "items": [item.__dict__ for item in self.items],
        }


# ---------- schedule helpers ----------


def _next_due(
    expense: RecurringExpense, on_or_after: date, calendar: Optional[schedule.Calendar]
) -> Optional[date]:
    try:
        return schedule.next_occurrence(
            expense.frequency,
            expense.frequency_config or {},
            on_or_after,
            skip_holidays=expense.skip_holidays,
            calendar=calendar,
            end_date=expense.end_date,
        )
    except ValueError as ex:
        raise ValidationError.for_field("skip_holidays", str(ex))


def _anchor(expense: RecurringExpense) -> date:
    """Where the schedule resumes: the day after the last generation, else the start date."""
    if expense.last_generated is not None:
        return max(expense.start_date, expense.last_generated + timedelta(days=1))
    return expense.start_date


# ---------- CRUD ----------


def _get(repos: Repositories, expense_id: int) -> RecurringExpense:
    expense = repos.recurring.get(expense_id)
    if expense is None:
        raise NotFoundError("Recurring expense", expense_id)
    return expense


def _validate(repos: Repositories, values: Dict[str, Any]) -> Dict[str, Any]:
    """Normalizes frequency/config and checks dates + references. Returns cleaned values."""
    if not (values.get("name") or "").strip():
        raise ValidationError.for_field("name", "name is required")
    values["name"] = values["name"].strip()
    values["amount"] = parse_amount(values.get("amount"))

    try:
        values["frequency"] = Frequency(values.get("frequency"))
    except ValueError:
        raise ValidationError.for_field("frequency", "frequency must be daily, weekly or monthly")

    start = values.get("start_date")
    if start is None:
        raise ValidationError.for_field("start_date", "start_date is required")
    end = values.get("end_date")
    if end is not None and end < start:
        raise ValidationError.for_field("end_date", "end_date must be on or after start_date")

    try:
        values["frequency_config"] = schedule.normalize_config(
            values["frequency"], values.get("frequency_config"), start
        )
    except ValueError as ex:
        raise ValidationError.for_field("frequency_config", str(ex))

    category = values.get("category")
    if not category or repos.categories.get_by_key(category) is None:
        raise ValidationError.for_field("category", f'category "{category}" does not exist')
    method = (values.get("payment_method") or "").strip() or None
    if method and repos.payment_methods.get_by_name(method) is None:
        raise ValidationError.for_field(
            "payment_method", f'payment method "{method}" does not exist'
        )
    values["payment_method"] = method
    return values


def list_recurring_expenses(
    repos: Repositories, *, active_only: bool = False
) -> List[RecurringExpense]:
    return repos.recurring.list(active_only=active_only)


def get_recurring_expense(repos: Repositories, expense_id: int) -> RecurringExpense:
    return _get(repos, expense_id)


def create_recurring_expense(
    repos: Repositories,
    *,
    calendar: Optional[schedule.Calendar] = None,
    **fields: Any,
) -> RecurringExpense:
    """
    Create the template and compute its first due date (>= start_date).
    A monthly schedule without day_of_month uses the start date's day.
    """
    values = _validate(repos, {k: v for k, v in fields.items() if k in UPDATABLE_FIELDS})
    expense = RecurringExpense(
        name=values["name"],
        amount=values["amount"],
        category=values["category"],
        payment_method=values["payment_method"],
        frequency=values["frequency"],
        frequency_config=values["frequency_config"],
        start_date=values["start_date"],
        end_date=values.get("end_date"),
        skip_holidays=bool(values.get("skip_holidays", False)),
        is_active=bool(values.get("is_active", True)),
    )
    expense.next_generate = _next_due(expense, expense.start_date, calendar)
    expense = repos.recurring.add(expense)
    repos.commit()
    repos.refresh(expense)
    return expense


def update_recurring_expense(
    repos: Repositories,
    expense_id: int,
    changes: Dict[str, Any],
    *,
    calendar: Optional[schedule.Calendar] = None,
) -> RecurringExpense:
    """Partial update; touching the schedule recomputes next_generate from its anchor."""
    expense = _get(repos, expense_id)
    clean = {k: v for k, v in changes.items() if k in UPDATABLE_FIELDS}

    merged = {
        name: clean.get(name, getattr(expense, name))
        for name in UPDATABLE_FIELDS
    }
    # a new frequency starts from a fresh config unless one was sent
    if (
        "frequency" in clean
        and "frequency_config" not in clean
        and clean["frequency"] != expense.frequency
    ):
        merged["frequency_config"] = {}
    values = _validate(repos, merged)

    updates = {name: values[name] for name in UPDATABLE_FIELDS if name in values}
    schedule_changed = any(
        updates.get(name) != getattr(expense, name) for name in ANCHOR_FIELDS
    )
    expense = repos.recurring.update(expense, updates)
    if schedule_changed:
        expense = repos.recurring.update(
            expense, {"next_generate": _next_due(expense, _anchor(expense), calendar)}
        )
    repos.commit()
    repos.refresh(expense)
    return expense


def delete_recurring_expense(repos: Repositories, expense_id: int) -> Dict[str, int]:
    """
    Remove the template and its generation log.
    Transactions it generated stay (they are real spending) and keep is_auto_generated.
    """
    expense = _get(repos, expense_id)
    detached = repos.transactions.detach_recurring(expense.id)
    logs = repos.recurring.delete_logs(expense.id)
    repos.recurring.delete(expense)
    repos.commit()
    return {"detached_transactions": detached, "deleted_logs": logs}


# ---------- generator ----------


def _log(
    repos: Repositories,
    expense_id: int,
    on: date,
    status: GenerationStatus,
    *,
    transaction_id: Optional[int] = None,
    reason: Optional[str] = None,
) -> None:
    repos.recurring.add_log(
        RecurringGenerationLog(
            recurring_expense_id=expense_id,
            generation_date=on,
            transaction_id=transaction_id,
            status=status,
            reason=reason,
        )
    )


def _generate_for(
    repos: Repositories,
    expense: RecurringExpense,
    today: date,
    calendar: Optional[schedule.Calendar],
    max_catch_up: int,
    result: GenerationResult,
) -> None:
    expense_id, name = expense.id, expense.name
    due = expense.next_generate
    rounds = 0

    while due is not None and due <= today and rounds < max_catch_up:
        if expense.end_date is not None and due > expense.end_date:
            break
        rounds += 1

        if repos.recurring.has_success(expense_id, due):
            item = GenerationItem(expense_id, name, due, GenerationStatus.skipped, reason="already_generated")
        else:
            txn = create_transaction(
                repos,
                type=TransactionType.expense,
                category=expense.category,
                amount=expense.amount,
                date=due,
                note=f"[auto] {name}",
                payment_method=expense.payment_method,
                recurring_expense_id=expense_id,
                is_auto_generated=True,
                commit=False,
            )
            _log(repos, expense_id, due, GenerationStatus.success, transaction_id=txn.id)
            item = GenerationItem(expense_id, name, due, GenerationStatus.success, transaction_id=txn.id)
            expense.last_generated = due

        due = _next_due(expense, due + timedelta(days=1), calendar)
        repos.recurring.update(
            expense, {"last_generated": expense.last_generated, "next_generate": due}
        )
        repos.commit()
        # only committed rounds are reported
        result.items.append(item)
        # the commit expired the row; reload before the next round
        repos.refresh(expense)

    if rounds >= max_catch_up and due is not None and due <= today:
        logger.warning(
            "recurring %s hit the catch-up limit (%d); continuing at %s next run",
            expense_id,
            max_catch_up,
            due,
        )


def generate_due(
    repos: Repositories,
    today: date,
    *,
    calendar: Optional[schedule.Calendar] = None,
    max_catch_up: Optional[int] = None,
) -> GenerationResult:
    """
    Run the generator for every due expense.

    Plain words:
    - Safe to call many times a day: already-generated dates are skipped.
    - A failing expense doesn't stop the batch; it shows up as `failed`.
    """
    max_catch_up = max_catch_up or get_settings().recurring_max_catch_up
    result = GenerationResult()

    due_ids = [expense.id for expense in repos.recurring.list_due(today)]
    for expense_id in due_ids:
        expense = repos.recurring.get(expense_id)
        if expense is None:
            continue
        name = expense.name
        try:
            _generate_for(repos, expense, today, calendar, max_catch_up, result)
        except IntegrityError:
            # another run wrote the same (expense, date) success row first
            repos.rollback()
            current = repos.recurring.get(expense_id)
            result.items.append(
                GenerationItem(
                    expense_id,
                    name,
                    current.next_generate if current else None,
                    GenerationStatus.skipped,
                    reason="already_generated",
                )
            )
        except Exception as ex:  # isolate per-expense failures
            repos.rollback()
            # finished rounds are committed, so next_generate is the date that failed
            current = repos.recurring.get(expense_id)
            failed_on = current.next_generate if current else None
            logger.exception("recurring %s (%s) failed on %s", expense_id, name, failed_on)
            details = getattr(ex, "details", None)
            reason = details[0]["message"] if details else getattr(ex, "message", None) or str(ex)
            reason = reason[:500]
            result.items.append(
                GenerationItem(expense_id, name, failed_on, GenerationStatus.failed, reason=reason)
            )
            try:
                _log(repos, expense_id, failed_on or today, GenerationStatus.failed, reason=reason)
                repos.commit()
            except Exception:
                repos.rollback()
                logger.warning("could not write failed log for recurring %s", expense_id, exc_info=True)

    logger.info(
        "recurring run %s: generated=%d skipped=%d failed=%d",
        today,
        result.generated,
        result.skipped,
        result.failed,
    )
    return result


# ---------- log reads ----------


def generation_history(
    repos: Repositories, *, limit: int = 50, expense_id: Optional[int] = None
) -> List[RecurringGenerationLog]:
    return repos.recurring.history(limit=limit, expense_id=expense_id)


def today_stats(repos: Repositories, today: date) -> Dict[str, Any]:
    counts = repos.recurring.log_counts_on(today)
    active = repos.recurring.list(active_only=True)
    pending = [e for e in active if e.next_generate is not None and e.next_generate <= today]
    return {
        "date": today,
        "generated": counts.get(GenerationStatus.success.value, 0),
        "skipped": counts.get(GenerationStatus.skipped.value, 0),
        "failed": counts.get(GenerationStatus.failed.value, 0),
        "active_expenses": len(active),
        "pending": len(pending),
    }
