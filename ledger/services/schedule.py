# ledger/services/schedule.py
"""
Date arithmetic for recurring expenses (no database, no I/O).

Rules
- daily:   every day
- weekly:  the weekdays listed in days_of_week (0 = Sunday ... 6 = Saturday)
- monthly: day_of_month, clamped to the month's last day (31 -> Feb 28/29)

Holiday policy (skip_holidays=True), given a calendar object with
is_holiday(d) / is_working_day(d):
- monthly: a date on a holiday rolls forward day by day to the next non-holiday
- daily / weekly: a date on a holiday is skipped to the next rule date that isn't one
- weekly Mon-Fri: follows the working-day calendar (make-up workdays count)
"""

from __future__ import annotations

from datetime import date, timedelta
from typing import Any, Dict, Iterable, List, Optional, Protocol

from ledger.models import Frequency
from ledger.period import days_in_month, shift_month

# how far we scan for a non-holiday / working day before raising ValueError
MAX_SCAN_DAYS = 62
WORKWEEK = frozenset({1, 2, 3, 4, 5})


class Calendar(Protocol):
    def is_holiday(self, d: date) -> bool: ...

    def is_working_day(self, d: date) -> bool: ...


def sunday_index(d: date) -> int:
    """0 = Sunday ... 6 = Saturday (Python's weekday() starts at Monday=0)."""
    return (d.weekday() + 1) % 7


def normalize_config(
    frequency: Frequency, config: Optional[Dict[str, Any]], start_date: date
) -> Dict[str, Any]:
    """
    Validate and fill the frequency config. Raises ValueError with a readable message.

    Plain words:
    - monthly without day_of_month takes the start date's day.
    - weekly needs at least one weekday; duplicates are dropped and the list sorted.
    - daily ignores whatever was sent.
    """
    config = dict(config or {})
    if frequency == Frequency.monthly:
        day = config.get("day_of_month")
        if day is None:
            day = start_date.day
        try:
            day = int(day)
        except (TypeError, ValueError):
            raise ValueError("day_of_month must be a number between 1 and 31")
        if day < 1 or day > 31:
            raise ValueError("day_of_month must be between 1 and 31")
        return {"day_of_month": day}

    if frequency == Frequency.weekly:
        days: Iterable[Any] = config.get("days_of_week") or []
        try:
            cleaned = sorted({int(d) for d in days})
        except (TypeError, ValueError):
            raise ValueError("days_of_week must be a list of numbers 0-6")
        if not cleaned:
            raise ValueError("days_of_week must contain at least one day")
        if cleaned[0] < 0 or cleaned[-1] > 6:
            raise ValueError("days_of_week values must be between 0 (Sunday) and 6")
        return {"days_of_week": cleaned}

    return {}


def is_workweek(frequency: Frequency, config: Dict[str, Any]) -> bool:
    return frequency == Frequency.weekly and set(config.get("days_of_week") or []) == WORKWEEK


def _monthly_date(year: int, month: int, day_of_month: int) -> date:
    return date(year, month, min(day_of_month, days_in_month(year, month)))


def first_on_or_after(frequency: Frequency, config: Dict[str, Any], d: date) -> date:
    """Earliest date >= d that satisfies the frequency rule (no holiday logic)."""
    if frequency == Frequency.daily:
        return d

    if frequency == Frequency.weekly:
        days = set(config.get("days_of_week") or [])
        if not days:
            raise ValueError("days_of_week must contain at least one day")
        for offset in range(7):
            candidate = d + timedelta(days=offset)
            if sunday_index(candidate) in days:
                return candidate
        raise ValueError("days_of_week values must be between 0 (Sunday) and 6")

    day_of_month = int(config.get("day_of_month") or d.day)
    candidate = _monthly_date(d.year, d.month, day_of_month)
    if candidate >= d:
        return candidate
    year, month = shift_month(d.year, d.month, 1)
    return _monthly_date(year, month, day_of_month)


def next_occurrence(
    frequency: Frequency,
    config: Dict[str, Any],
    on_or_after: date,
    *,
    skip_holidays: bool = False,
    calendar: Optional[Calendar] = None,
    end_date: Optional[date] = None,
) -> Optional[date]:
    """
    The next due date >= on_or_after, holiday-adjusted when asked.
    Returns None when it would fall after end_date (the schedule is finished).
    """
    adjust = skip_holidays and calendar is not None

    if adjust and is_workweek(frequency, config):
        candidate = on_or_after
        for _ in range(MAX_SCAN_DAYS):
            if calendar.is_working_day(candidate):
                break
            candidate += timedelta(days=1)
        else:
            raise ValueError(f"no working day within {MAX_SCAN_DAYS} days of {on_or_after}")
    else:
        candidate = first_on_or_after(frequency, config, on_or_after)
        if adjust:
            candidate = _skip_holidays(frequency, config, candidate, calendar)

    if end_date is not None and candidate > end_date:
        return None
    return candidate


def _skip_holidays(
    frequency: Frequency, config: Dict[str, Any], candidate: date, calendar: Calendar
) -> date:
    start = candidate
    for _ in range(MAX_SCAN_DAYS):
        if not calendar.is_holiday(candidate):
            return candidate
        if frequency == Frequency.monthly:
            candidate += timedelta(days=1)
        else:
            candidate = first_on_or_after(frequency, config, candidate + timedelta(days=1))
    raise ValueError(f"no non-holiday date within {MAX_SCAN_DAYS} steps of {start}")


def occurrences_between(
    frequency: Frequency,
    config: Dict[str, Any],
    start: date,
    end: date,
    *,
    skip_holidays: bool = False,
    calendar: Optional[Calendar] = None,
) -> List[date]:
    """All due dates in [start, end]; handy for previews and tests."""
    out: List[date] = []
    current = next_occurrence(
        frequency, config, start, skip_holidays=skip_holidays, calendar=calendar, end_date=end
    )
    while current is not None:
        out.append(current)
        current = next_occurrence(
            frequency,
            config,
            current + timedelta(days=1),
            skip_holidays=skip_holidays,
            calendar=calendar,
            end_date=end,
        )
    return out
