# ledger/period.py
"""
Helpers for working with accounting periods.

Definitions
- ym: integer YYYYMM, e.g., 202501 for Jan 2025
- "YYYY-MM": month string used by the API, e.g. "2025-01"
- week: 7 consecutive days starting at week_start (reports use Sunday starts)

Public API:
- ym_from_date(date) -> int
- parse_year_month("YYYY-MM") -> (year, month)
- format_year_month(year, month) -> "YYYY-MM"
- days_in_month(year, month) -> int
- month_bounds(year, month) -> (first_day, last_day)
- shift_month(year, month, delta) -> (year, month)
- previous_month(year, month) -> (year, month)
- week_bounds(week_start) -> (week_start, week_end)
- default_week_start(today) -> date   # Sunday of the previous full week
- trailing_months(year, month, count) -> [(year, month), ...]
"""

from __future__ import annotations

import calendar
from datetime import date, timedelta
from typing import List, Tuple

__all__ = [
    "ym_from_date",
    "parse_year_month",
    "format_year_month",
    "days_in_month",
    "month_bounds",
    "shift_month",
    "previous_month",
    "week_bounds",
    "default_week_start",
    "trailing_months",
    "validate_year_month",
]


# ---------- Conversions ----------


def ym_from_date(d: date) -> int:
    """Convert a Python date to YYYYMM integer. Example: 2025-01-15 -> 202501."""
    return d.year * 100 + d.month


def validate_year_month(year: int, month: int) -> None:
    if month < 1 or month > 12:
        raise ValueError("Month must be 1–12")
    if year < 1970 or year > 2999:
        raise ValueError("Year out of range")


def parse_year_month(value: str) -> Tuple[int, int]:
    """
    Convert 'YYYY-MM' string to (year, month).
    Examples: '2025-01' -> (2025, 1).
    """
    if not value or not isinstance(value, str):
        raise ValueError("YYYY-MM string is required")
    parts = value.strip().split("-")
    if len(parts) != 2 or not parts[0].isdigit() or not parts[1].isdigit():
        raise ValueError("Invalid month format; expected 'YYYY-MM'")
    year, month = int(parts[0]), int(parts[1])
    validate_year_month(year, month)
    return year, month


def format_year_month(year: int, month: int) -> str:
    return f"{year:04d}-{month:02d}"


# ---------- Month arithmetic ----------


def days_in_month(year: int, month: int) -> int:
    return calendar.monthrange(year, month)[1]


def month_bounds(year: int, month: int) -> Tuple[date, date]:
    """First and last calendar day of the month (both inclusive)."""
    return date(year, month, 1), date(year, month, days_in_month(year, month))


def shift_month(year: int, month: int, delta: int) -> Tuple[int, int]:
    """Move (year, month) by delta months. shift_month(2025, 1, -1) -> (2024, 12)."""
    index = year * 12 + (month - 1) + delta
    return index // 12, index % 12 + 1


def previous_month(year: int, month: int) -> Tuple[int, int]:
    return shift_month(year, month, -1)


def trailing_months(year: int, month: int, count: int) -> List[Tuple[int, int]]:
    """The `count` months before (year, month), most recent first."""
    return [shift_month(year, month, -i) for i in range(1, count + 1)]


# ---------- Weeks ----------


def week_bounds(week_start: date) -> Tuple[date, date]:
    return week_start, week_start + timedelta(days=6)


def default_week_start(today: date) -> date:
    """
    Sunday that starts the previous full week.
    Python's weekday(): Monday=0 … Sunday=6, so (weekday+1) % 7 days back is this week's Sunday.
    """
    this_sunday = today - timedelta(days=(today.weekday() + 1) % 7)
    return this_sunday - timedelta(days=7)
