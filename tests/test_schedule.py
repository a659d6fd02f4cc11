# tests/test_schedule.py
"""Pure date arithmetic for recurring schedules (no DB)."""

from __future__ import annotations

from datetime import date, timedelta

import pytest

from ledger.models import Frequency
from ledger.services.schedule import (
    next_occurrence,
    normalize_config,
    occurrences_between,
    sunday_index,
)


def test_sunday_index_starts_week_on_sunday():
    assert sunday_index(date(2025, 1, 5)) == 0  # Sunday
    assert sunday_index(date(2025, 1, 6)) == 1  # Monday
    assert sunday_index(date(2025, 1, 11)) == 6  # Saturday


def test_monthly_without_day_uses_start_day():
    assert normalize_config(Frequency.monthly, {}, date(2025, 1, 5)) == {"day_of_month": 5}
    assert normalize_config(
        Frequency.monthly, {"day_of_month": None}, date(2025, 1, 5)
    ) == {"day_of_month": 5}


@pytest.mark.parametrize(
    "frequency, config",
    [
        (Frequency.monthly, {"day_of_month": 0}),
        (Frequency.monthly, {"day_of_month": 32}),
        (Frequency.weekly, {"days_of_week": []}),
        (Frequency.weekly, {"days_of_week": [7]}),
        (Frequency.weekly, {"days_of_week": ["x"]}),
    ],
)
def test_invalid_configs_raise(frequency, config):
    with pytest.raises(ValueError):
        normalize_config(frequency, config, date(2025, 1, 1))


def test_weekly_config_is_sorted_and_deduplicated():
    cfg = normalize_config(Frequency.weekly, {"days_of_week": [5, 1, 1]}, date(2025, 1, 1))
    assert cfg == {"days_of_week": [1, 5]}


def test_monthly_clamps_to_last_day_of_month():
    dates = occurrences_between(
        Frequency.monthly, {"day_of_month": 31}, date(2025, 1, 1), date(2025, 4, 30)
    )
    assert dates == [date(2025, 1, 31), date(2025, 2, 28), date(2025, 3, 31), date(2025, 4, 30)]


def test_monthly_example_three_occurrences():
    dates = occurrences_between(
        Frequency.monthly, {"day_of_month": 5}, date(2025, 1, 5), date(2025, 3, 5)
    )
    assert dates == [date(2025, 1, 5), date(2025, 2, 5), date(2025, 3, 5)]


def test_weekly_picks_listed_weekdays():
    # Mondays and Fridays of the week starting Sunday 2025-01-05
    dates = occurrences_between(
        Frequency.weekly, {"days_of_week": [1, 5]}, date(2025, 1, 5), date(2025, 1, 11)
    )
    assert dates == [date(2025, 1, 6), date(2025, 1, 10)]


def test_end_date_finishes_schedule():
    assert (
        next_occurrence(
            Frequency.monthly,
            {"day_of_month": 5},
            date(2025, 3, 6),
            end_date=date(2025, 3, 31),
        )
        is None
    )


def test_monthly_holiday_rolls_to_next_non_holiday(make_calendar):
    cal = make_calendar(holidays={date(2025, 5, 1), date(2025, 5, 2)})
    d = next_occurrence(
        Frequency.monthly,
        {"day_of_month": 1},
        date(2025, 5, 1),
        skip_holidays=True,
        calendar=cal,
    )
    assert d == date(2025, 5, 3)


def test_monthly_holiday_roll_past_end_date_ends_schedule(make_calendar):
    cal = make_calendar(holidays={date(2025, 5, 1)})
    d = next_occurrence(
        Frequency.monthly,
        {"day_of_month": 1},
        date(2025, 5, 1),
        skip_holidays=True,
        calendar=cal,
        end_date=date(2025, 5, 1),
    )
    assert d is None


def test_daily_holiday_is_skipped_not_shifted(make_calendar):
    cal = make_calendar(holidays={date(2025, 1, 2)})
    dates = occurrences_between(
        Frequency.daily,
        {},
        date(2025, 1, 1),
        date(2025, 1, 3),
        skip_holidays=True,
        calendar=cal,
    )
    assert dates == [date(2025, 1, 1), date(2025, 1, 3)]


def test_weekly_holiday_moves_to_next_rule_day(make_calendar):
    # Mondays only; 2025-01-06 is a holiday -> next Monday
    cal = make_calendar(holidays={date(2025, 1, 6)})
    d = next_occurrence(
        Frequency.weekly,
        {"days_of_week": [1]},
        date(2025, 1, 5),
        skip_holidays=True,
        calendar=cal,
    )
    assert d == date(2025, 1, 13)


def test_workweek_follows_official_working_days(make_calendar):
    # Sunday 2025-01-26 is a make-up workday; Mon 27 - Tue 28 are holidays
    cal = make_calendar(
        holidays={date(2025, 1, 27), date(2025, 1, 28)},
        workdays={date(2025, 1, 26)},
    )
    workweek = {"days_of_week": [1, 2, 3, 4, 5]}
    dates = occurrences_between(
        Frequency.weekly,
        workweek,
        date(2025, 1, 25),
        date(2025, 1, 29),
        skip_holidays=True,
        calendar=cal,
    )
    assert dates == [date(2025, 1, 26), date(2025, 1, 29)]


def test_without_calendar_holidays_are_ignored():
    d = next_occurrence(
        Frequency.daily, {}, date(2025, 1, 1), skip_holidays=True, calendar=None
    )
    assert d == date(2025, 1, 1)


def _all_holidays(start: date, days: int):
    return {start + timedelta(days=i) for i in range(days)}


@pytest.mark.parametrize(
    "frequency, config",
    [
        (Frequency.daily, {}),
        (Frequency.monthly, {"day_of_month": 1}),
        (Frequency.weekly, {"days_of_week": [1, 2, 3, 4, 5]}),  # working-day scan
    ],
)
def test_no_free_day_in_scan_window_raises(make_calendar, frequency, config):
    cal = make_calendar(holidays=_all_holidays(date(2025, 1, 1), 400))
    with pytest.raises(ValueError):
        next_occurrence(frequency, config, date(2025, 1, 1), skip_holidays=True, calendar=cal)
