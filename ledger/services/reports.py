# ledger/services/reports.py
"""
Weekly and monthly expense reports (stored snapshots).

Both report kinds share one aggregation over a list of expense transactions:
total, count, average, category breakdown, top merchants, payment methods.
Amounts inside the JSON breakdowns are floats rounded to cents; percentages
are rounded to one decimal and are all 0 when the total is 0.

Generation policy (same for both kinds):
- a report already stored for the period is returned as-is (created=False)
- force=True recomputes that same row in place
- a new report is inserted; losing a concurrent insert race returns the winner
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from sqlalchemy.exc import IntegrityError

from ledger.errors import NotFoundError, UpstreamError, ValidationError
from ledger.models import (
    GenerationType,
    MonthlyReport,
    Transaction,
    TransactionType,
    WeeklyReport,
    utcnow,
)
from ledger.period import (
    days_in_month,
    default_week_start,
    month_bounds,
    previous_month,
    validate_year_month,
    week_bounds,
)
from ledger.repositories.container import Repositories
from ledger.repositories.transactions import TransactionFilter

logger = logging.getLogger("ledger.reports")

CENT = Decimal("0.01")
TENTH = Decimal("0.1")
UNSPECIFIED = "unspecified"
WEEKLY_TOP_MERCHANTS = 5
MONTHLY_TOP_MERCHANTS = 10


def is_fixed(txn: Transaction) -> bool:
    """Fixed expense = came from a recurring schedule. Everything else is variable."""
    return txn.recurring_expense_id is not None or bool(txn.is_auto_generated)


def money(value: Decimal) -> float:
    return float(Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP))


def percentage(part: Decimal, total: Decimal) -> float:
    if not total:
        return 0.0
    return float((Decimal(part) * 100 / Decimal(total)).quantize(TENTH, rounding=ROUND_HALF_UP))


@dataclass
class Aggregate:
    total: Decimal = Decimal("0")
    count: int = 0
    average: Decimal = Decimal("0")
    category_breakdown: List[Dict[str, Any]] = field(default_factory=list)
    top_merchants: List[Dict[str, Any]] = field(default_factory=list)
    payment_method_stats: List[Dict[str, Any]] = field(default_factory=list)


def _group(
    transactions: Iterable[Transaction], key: Callable[[Transaction], Optional[str]]
) -> Dict[str, Tuple[Decimal, int]]:
    groups: Dict[str, Tuple[Decimal, int]] = {}
    for txn in transactions:
        name = key(txn)
        if name is None:
            continue
        amount, count = groups.get(name, (Decimal("0"), 0))
        groups[name] = (amount + Decimal(txn.amount), count + 1)
    return groups


def aggregate(transactions: List[Transaction], top_merchants: int) -> Aggregate:
    """Totals and breakdowns for a list of expense transactions."""
    total = sum((Decimal(t.amount) for t in transactions), Decimal("0"))
    count = len(transactions)
    average = (total / count).quantize(CENT, rounding=ROUND_HALF_UP) if count else Decimal("0")

    # ties broken by name so the output is stable
    def ranked(groups: Dict[str, Tuple[Decimal, int]]):
        return sorted(groups.items(), key=lambda kv: (-kv[1][0], kv[0]))

    categories = [
        {
            "category": name,
            "amount": money(amount),
            "count": n,
            "percentage": percentage(amount, total),
        }
        for name, (amount, n) in ranked(_group(transactions, lambda t: t.category))
    ]
    merchants = [
        {"merchant": name, "amount": money(amount), "count": n}
        for name, (amount, n) in ranked(_group(transactions, lambda t: t.merchant or None))
    ][:top_merchants]
    methods = [
        {
            "method": name,
            "amount": money(amount),
            "count": n,
            "percentage": percentage(amount, total),
        }
        for name, (amount, n) in ranked(
            _group(transactions, lambda t: t.payment_method or UNSPECIFIED)
        )
    ]
    return Aggregate(
        total=total.quantize(CENT),
        count=count,
        average=average,
        category_breakdown=categories,
        top_merchants=merchants,
        payment_method_stats=methods,
    )


def _period_change(total: Decimal, previous: Decimal) -> Tuple[Optional[Decimal], Optional[float]]:
    """(change, percent) vs the previous period; both None when it had no expenses."""
    if not previous:
        return None, None
    change = (total - previous).quantize(CENT)
    return change, percentage(change, previous)


def _expenses(repos: Repositories, start: date, end: date) -> List[Transaction]:
    return repos.transactions.find_all(
        TransactionFilter(type=TransactionType.expense, start_date=start, end_date=end)
    )


def _expense_total(repos: Repositories, start: date, end: date) -> Decimal:
    stats = repos.transactions.stats(
        TransactionFilter(type=TransactionType.expense, start_date=start, end_date=end)
    )
    return stats["total_amount"]


def _with_insights(kind: str, values: Dict[str, Any], ai) -> Dict[str, Any]:
    if ai is None:
        return values
    try:
        values["ai_insights"] = ai.report_insights(kind, values)
    except UpstreamError:
        # the report is still useful without the narrative
        logger.warning("AI insights failed for %s report", kind, exc_info=True)
    return values


def _find_or_create(repos: Repositories, repo, existing, build, values, lookup):
    """Shared find-or-create / overwrite step. Returns (report, created)."""
    if existing is not None:
        report = repo.update(existing, {**values, "generated_at": utcnow()})
        repos.commit()
        repos.refresh(report)
        return report, False
    try:
        report = repo.add(build(**values))
        repos.commit()
    except IntegrityError:
        # a concurrent request inserted the same period first
        repos.rollback()
        winner = lookup()
        if winner is None:
            raise
        return winner, False
    repos.refresh(report)
    return report, True


# ---------- weekly ----------


def generate_weekly(
    repos: Repositories,
    *,
    today: date,
    week_start: Optional[date] = None,
    force: bool = False,
    generation_type: GenerationType = GenerationType.manual,
    ai=None,
) -> Tuple[WeeklyReport, bool]:
    """
    Build (or return) the report for the 7 days starting at week_start.
    Default week: the last full Sunday-Saturday week before today.
    """
    start, end = week_bounds(week_start or default_week_start(today))
    existing = repos.weekly_reports.get_by_week_start(start)
    if existing is not None and not force:
        return existing, False

    agg = aggregate(_expenses(repos, start, end), WEEKLY_TOP_MERCHANTS)
    previous = _expense_total(repos, start - timedelta(days=7), start - timedelta(days=1))
    change, change_pct = _period_change(agg.total, previous)

    values: Dict[str, Any] = {
        "week_start_date": start,
        "week_end_date": end,
        "total_expenses": agg.total,
        "transaction_count": agg.count,
        "average_transaction": agg.average,
        "average_daily_expense": (agg.total / 7).quantize(CENT, rounding=ROUND_HALF_UP),
        "category_breakdown": agg.category_breakdown,
        "top_merchants": agg.top_merchants,
        "payment_method_stats": agg.payment_method_stats,
        "week_over_week_change": change,
        "week_over_week_percentage": change_pct,
        "generation_type": generation_type,
    }
    values = _with_insights("weekly", values, ai)
    report, created = _find_or_create(
        repos,
        repos.weekly_reports,
        existing,
        WeeklyReport,
        values,
        lambda: repos.weekly_reports.get_by_week_start(start),
    )
    logger.info("weekly report %s..%s (created=%s, total=%s)", start, end, created, agg.total)
    return report, created


def list_weekly_reports(repos: Repositories, *, limit: int = 20) -> List[WeeklyReport]:
    return repos.weekly_reports.list(limit=limit)


def get_weekly_report(repos: Repositories, report_id: int) -> WeeklyReport:
    report = repos.weekly_reports.get(report_id)
    if report is None:
        raise NotFoundError("Weekly report", report_id)
    return report


def latest_weekly_report(repos: Repositories) -> WeeklyReport:
    report = repos.weekly_reports.latest()
    if report is None:
        raise NotFoundError("Weekly report")
    return report


def delete_weekly_report(repos: Repositories, report_id: int) -> None:
    repos.weekly_reports.delete(get_weekly_report(repos, report_id))
    repos.commit()


# ---------- monthly ----------


def days_elapsed(year: int, month: int, today: date) -> int:
    """Days used for the daily average: all days for past months, days so far for the current one."""
    if (year, month) == (today.year, today.month):
        return today.day
    return days_in_month(year, month)


def generate_monthly(
    repos: Repositories,
    *,
    year: int,
    month: int,
    today: date,
    force: bool = False,
    generation_type: GenerationType = GenerationType.manual,
    ai=None,
) -> Tuple[MonthlyReport, bool]:
    """Build (or return) the report for a calendar month, with the fixed / variable split."""
    try:
        validate_year_month(year, month)
    except ValueError as ex:
        raise ValidationError.for_field("month", str(ex))
    existing = repos.monthly_reports.get_by_period(year, month)
    if existing is not None and not force:
        return existing, False

    start, end = month_bounds(year, month)
    transactions = _expenses(repos, start, end)
    agg = aggregate(transactions, MONTHLY_TOP_MERCHANTS)

    fixed = [t for t in transactions if is_fixed(t)]
    variable = [t for t in transactions if not is_fixed(t)]
    fixed_total = sum((Decimal(t.amount) for t in fixed), Decimal("0"))
    variable_total = sum((Decimal(t.amount) for t in variable), Decimal("0"))

    prev_year, prev_month = previous_month(year, month)
    previous = _expense_total(repos, *month_bounds(prev_year, prev_month))
    change, change_pct = _period_change(agg.total, previous)

    values: Dict[str, Any] = {
        "year": year,
        "month": month,
        "total_expenses": agg.total,
        "fixed_expenses": fixed_total.quantize(CENT),
        "variable_expenses": variable_total.quantize(CENT),
        "transaction_count": agg.count,
        "fixed_transaction_count": len(fixed),
        "variable_transaction_count": len(variable),
        "average_transaction": agg.average,
        "average_daily_expense": (agg.total / days_elapsed(year, month, today)).quantize(
            CENT, rounding=ROUND_HALF_UP
        ),
        "category_breakdown": agg.category_breakdown,
        "fixed_expenses_breakdown": [
            {
                "name": t.note or t.category,
                "category": t.category,
                "amount": money(t.amount),
                "date": t.date.isoformat(),
                "recurring_expense_id": t.recurring_expense_id,
            }
            for t in fixed
        ],
        "top_merchants": agg.top_merchants,
        "payment_method_stats": agg.payment_method_stats,
        "month_over_month_change": change,
        "month_over_month_percentage": change_pct,
        "generation_type": generation_type,
    }
    values = _with_insights("monthly", values, ai)
    report, created = _find_or_create(
        repos,
        repos.monthly_reports,
        existing,
        MonthlyReport,
        values,
        lambda: repos.monthly_reports.get_by_period(year, month),
    )
    logger.info("monthly report %04d-%02d (created=%s, total=%s)", year, month, created, agg.total)
    return report, created


def list_monthly_reports(
    repos: Repositories, *, year: Optional[int] = None, limit: int = 24
) -> List[MonthlyReport]:
    return repos.monthly_reports.list(year=year, limit=limit)


def get_monthly_report(repos: Repositories, report_id: int) -> MonthlyReport:
    report = repos.monthly_reports.get(report_id)
    if report is None:
        raise NotFoundError("Monthly report", report_id)
    return report


def get_monthly_report_by_period(repos: Repositories, year: int, month: int) -> MonthlyReport:
    report = repos.monthly_reports.get_by_period(year, month)
    if report is None:
        raise NotFoundError("Monthly report", f"{year:04d}-{month:02d}")
    return report


def latest_monthly_report(repos: Repositories) -> MonthlyReport:
    report = repos.monthly_reports.latest()
    if report is None:
        raise NotFoundError("Monthly report")
    return report


def delete_monthly_report(repos: Repositories, report_id: int) -> None:
    repos.monthly_reports.delete(get_monthly_report(repos, report_id))
    repos.commit()
