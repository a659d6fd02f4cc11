# ledger/services/budgets.py
"""
Monthly budgets: status, summary, history, month-end prediction and the
suggestion engine.

Spending against a budget counts *variable* expenses only: rows created by
recurring schedules (fixed expenses) are excluded, since they aren't
something the budget can steer. A budget with category_key=None is the
total budget and counts every category.
"""

from __future__ import annotations

import logging
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import IntegrityError

from ledger import cache
from ledger.errors import NotFoundError, ValidationError
from ledger.models import Budget, BudgetSuggestion, CategoryType, TransactionType, utcnow
from ledger.period import days_in_month, month_bounds, shift_month, validate_year_month
from ledger.repositories.container import Repositories
from ledger.repositories.transactions import TransactionFilter
from ledger.services.transactions import parse_amount

logger = logging.getLogger("ledger.budgets")

CENT = Decimal("0.01")
HISTORY_MONTHS = 6
SUGGESTION_MARGIN = Decimal("1.1")


def _q(value: Decimal) -> Decimal:
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def _usage(spent: Decimal, amount: Decimal) -> float:
    if not amount:
        return 0.0
    return float((spent * 100 / amount).quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))


def _check_period(year: int, month: int) -> None:
    try:
        validate_year_month(year, month)
    except ValueError as ex:
        raise ValidationError.for_field("month", str(ex))


def days_into_month(year: int, month: int, today: date) -> int:
    """Days of the month already lived: all for past months, 0 for future ones."""
    if (year, month) == (today.year, today.month):
        return today.day
    if (year, month) < (today.year, today.month):
        return days_in_month(year, month)
    return 0


def variable_spending(
    repos: Repositories, year: int, month: int
) -> Dict[Optional[str], Dict[str, Any]]:
    """{category: {"amount", "count"}} of variable expenses; key None holds the month total."""
    start, end = month_bounds(year, month)
    rows = repos.transactions.stats_by_category(
        TransactionFilter(type=TransactionType.expense, start_date=start, end_date=end, fixed=False)
    )
    out: Dict[Optional[str], Dict[str, Any]] = {
        row["category"]: {"amount": row["total_amount"], "count": row["count"]} for row in rows
    }
    out[None] = {
        "amount": sum((row["total_amount"] for row in rows), Decimal("0")),
        "count": sum(row["count"] for row in rows),
    }
    return out


# ---------- CRUD ----------


def set_budget(
    repos: Repositories,
    *,
    year: int,
    month: int,
    category_key: Optional[str],
    amount: Any,
    alert_threshold: float = 0.8,
) -> Budget:
    """Create or update the budget for (year, month, category_key)."""
    _check_period(year, month)
    amount = parse_amount(amount)
    if not (0 < float(alert_threshold) <= 1):
        raise ValidationError.for_field("alert_threshold", "alert_threshold must be in (0, 1]")
    category_key = category_key or None
    if category_key is not None and repos.categories.get_by_key(category_key) is None:
        raise ValidationError.for_field("category_key", f'category "{category_key}" does not exist')

    values = {"amount": amount, "alert_threshold": float(alert_threshold), "is_active": True}
    budget = repos.budgets.find(year, month, category_key)
    if budget is not None:
        budget = repos.budgets.update(budget, values)
        repos.commit()
    else:
        try:
            budget = repos.budgets.add(
                Budget(year=year, month=month, category_key=category_key, **values)
            )
            repos.commit()
        except IntegrityError:
            # someone created it between our lookup and insert: update theirs
            repos.rollback()
            budget = repos.budgets.find(year, month, category_key)
            if budget is None:
                raise
            budget = repos.budgets.update(budget, values)
            repos.commit()
    repos.refresh(budget)
    return budget


def list_budgets(repos: Repositories, year: int, month: int) -> List[Budget]:
    _check_period(year, month)
    return repos.budgets.list_for_month(year, month, active_only=True)


def delete_budget(repos: Repositories, budget_id: int) -> None:
    budget = repos.budgets.get(budget_id)
    if budget is None:
        raise NotFoundError("Budget", budget_id)
    repos.budgets.delete(budget)
    repos.commit()


# ---------- status / summary ----------


def _status_row(budget: Budget, spending: Dict[Optional[str], Dict[str, Any]]) -> Dict[str, Any]:
    spent = _q(spending.get(budget.category_key, {}).get("amount", Decimal("0")))
    amount = _q(budget.amount)
    usage = _usage(spent, amount)
    over = spent > amount
    return {
        "id": budget.id,
        "year": budget.year,
        "month": budget.month,
        "category_key": budget.category_key,
        "budget_amount": amount,
        "spent_amount": spent,
        "remaining_amount": amount - spent,
        "usage_percentage": usage,
        "alert_threshold": budget.alert_threshold,
        "is_over_budget": over,
        "is_near_limit": (not over) and usage >= budget.alert_threshold * 100,
        "transaction_count": spending.get(budget.category_key, {}).get("count", 0),
    }


def budget_status(repos: Repositories, year: int, month: int) -> List[Dict[str, Any]]:
    _check_period(year, month)

    def compute() -> List[Dict[str, Any]]:
        spending = variable_spending(repos, year, month)
        return [
            _status_row(budget, spending)
            for budget in repos.budgets.list_for_month(year, month, active_only=True)
        ]

    return cache.cache.wrap(f"budget-status:{year}-{month}", [cache.BUDGETS], compute)


def budget_summary(repos: Repositories, year: int, month: int) -> Dict[str, Any]:
    """Total budget line + counts over the category budgets."""
    _check_period(year, month)

    def compute() -> Dict[str, Any]:
        rows = budget_status(repos, year, month)
        total = next((r for r in rows if r["category_key"] is None), None)
        categories = [r for r in rows if r["category_key"] is not None]
        if total is not None:
            budget, spent = total["budget_amount"], total["spent_amount"]
        else:
            # no total budget: sum the category budgets
            budget = sum((r["budget_amount"] for r in categories), Decimal("0"))
            spent = sum((r["spent_amount"] for r in categories), Decimal("0"))
        return {
            "year": year,
            "month": month,
            "total_budget": budget,
            "total_spent": spent,
            "total_remaining": budget - spent,
            "usage_percentage": _usage(spent, budget),
            "category_budgets_count": len(categories),
            "over_budget_count": sum(1 for r in categories if r["is_over_budget"]),
            "near_limit_count": sum(1 for r in categories if r["is_near_limit"]),
        }

    return cache.cache.wrap(f"budget-summary:{year}-{month}", [cache.BUDGETS], compute)


def budget_history(
    repos: Repositories, category_key: Optional[str], *, today: date, months: int = HISTORY_MONTHS
) -> List[Dict[str, Any]]:
    """The last `months` months (current included, newest first) that had a budget for the key."""
    if months < 1 or months > 36:
        raise ValidationError.for_field("months", "months must be between 1 and 36")
    budgets = {(b.year, b.month): b for b in repos.budgets.list_for_category(category_key or None)}
    out = []
    for offset in range(months):
        year, month = shift_month(today.year, today.month, -offset)
        budget = budgets.get((year, month))
        if budget is None:
            continue
        spent = _q(variable_spending(repos, year, month).get(category_key or None, {}).get("amount", 0))
        out.append(
            {
                "year": year,
                "month": month,
                "budget_amount": _q(budget.amount),
                "spent_amount": spent,
                "usage_percentage": _usage(spent, _q(budget.amount)),
            }
        )
    return out


def predict_month_end(
    repos: Repositories,
    *,
    year: int,
    month: int,
    category_key: Optional[str],
    budget_amount: Any,
    today: date,
) -> Dict[str, Any]:
    """Linear projection: spending so far / days passed * days in month."""
    _check_period(year, month)
    budget_amount = parse_amount(budget_amount, "budget_amount")
    total_days = days_in_month(year, month)
    passed = days_into_month(year, month, today)

    spent = _q(variable_spending(repos, year, month).get(category_key or None, {}).get("amount", 0))
    daily = _q(spent / passed) if passed else Decimal("0.00")
    predicted = _q(spent / passed * total_days) if passed else spent
    exceed = predicted > budget_amount
    return {
        "category_key": category_key,
        "current_spending": spent,
        "daily_rate": daily,
        "predicted_total": predicted,
        "days_passed": passed,
        "days_remaining": total_days - passed,
        "will_exceed_budget": exceed,
        "predicted_overage": predicted - budget_amount if exceed else None,
    }


# ---------- suggestions ----------


def _trend(history: List[Decimal]) -> str:
    """history is newest first. Compare the last 3 months with the months before them."""
    recent, older = history[:3], history[3:]
    if not older:
        return "stable"
    recent_avg = sum(recent) / len(recent)
    older_avg = sum(older) / len(older)
    if recent_avg > older_avg * Decimal("1.1"):
        return "increasing"
    if recent_avg < older_avg * Decimal("0.9"):
        return "decreasing"
    return "stable"


def _confidence(months: int) -> str:
    if months >= 4:
        return "high"
    if months >= 2:
        return "medium"
    return "low"


def refresh_suggestions(repos: Repositories, year: int, month: int, *, today: date) -> int:
    """
    Recompute suggestions for every active expense category without an active budget.

    Plain words:
    - history = variable spending of the previous 6 months, months without spend ignored
    - suggested = max(projected month total, historical average) * 1.1
    - categories that got a budget meanwhile have their suggestion switched off
    Returns how many suggestions were written.
    """
    _check_period(year, month)
    budgeted = {
        b.category_key for b in repos.budgets.list_for_month(year, month) if b.category_key
    }
    past = [shift_month(year, month, -i) for i in range(1, HISTORY_MONTHS + 1)]
    spending_by_month = {period: variable_spending(repos, *period) for period in past}
    current = variable_spending(repos, year, month)
    passed = days_into_month(year, month, today)
    total_days = days_in_month(year, month)

    written = 0
    for category in repos.categories.list(type=CategoryType.expense, active_only=True):
        key = category.key
        existing = repos.budgets.find_suggestion(year, month, key)
        if key in budgeted:
            if existing is not None and existing.is_active:
                existing.is_active = False
                repos.budgets.save_suggestion(existing)
            continue

        history = [
            Decimal(spending_by_month[p].get(key, {}).get("amount", 0)) for p in past
        ]
        history = [amount for amount in history if amount > 0]
        if not history:
            continue

        avg = sum(history) / len(history)
        spent_now = Decimal(current.get(key, {}).get("amount", 0))
        predicted = spent_now / passed * total_days if passed else Decimal("0")
        suggested = _q(max(predicted, avg) * SUGGESTION_MARGIN)
        values = {
            "suggested_amount": suggested,
            "confidence_level": _confidence(len(history)),
            "reason": (
                f"Based on an average of {avg:.0f} over the last {len(history)} months; "
                f"this month is on track for {predicted:.0f}"
            ),
            "historical_avg": _q(avg),
            "historical_months": len(history),
            "trend_direction": _trend(history),
            "calculated_at": utcnow(),
            "is_active": True,
        }
        if existing is None:
            existing = BudgetSuggestion(year=year, month=month, category_key=key, **values)
        else:
            for name, value in values.items():
                setattr(existing, name, value)
        repos.budgets.save_suggestion(existing)
        written += 1

    repos.commit()
    logger.info("budget suggestions %04d-%02d: %d written", year, month, written)
    return written


def list_suggestions(
    repos: Repositories, year: int, month: int, *, today: date
) -> List[Dict[str, Any]]:
    """Active suggestions with live current-month spending and projection."""
    _check_period(year, month)
    current = variable_spending(repos, year, month)
    passed = days_into_month(year, month, today)
    total_days = days_in_month(year, month)

    out = []
    for s in repos.budgets.list_suggestions(year, month, active_only=True):
        spent = _q(current.get(s.category_key, {}).get("amount", 0))
        daily = spent / passed if passed else Decimal("0")
        out.append(
            {
                "category_key": s.category_key,
                "suggested_amount": _q(s.suggested_amount),
                "confidence_level": s.confidence_level,
                "reason": s.reason,
                "historical_avg": _q(s.historical_avg),
                "historical_months": s.historical_months,
                "trend_direction": s.trend_direction,
                "current_month_spending": spent,
                "current_daily_rate": _q(daily),
                "predicted_month_total": _q(daily * total_days),
                "days_into_month": passed,
                "calculated_at": s.calculated_at,
            }
        )
    return out
