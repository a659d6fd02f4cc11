# ledger/routers/holidays.py
from __future__ import annotations

from fastapi import APIRouter, BackgroundTasks, Depends, Request

from ledger.deps import after_write, get_calendar, get_repositories
from ledger.errors import ValidationError
from ledger.repositories.container import Repositories
from ledger.schemas import HolidaySync, ok
from ledger.services.holidays import HolidayCalendar

router = APIRouter(prefix="/api/holidays", tags=["holidays"])


def _check_year(year: int) -> None:
    if year < 1970 or year > 2999:
        raise ValidationError.for_field("year", "year out of range")


@router.get("/{year}")
def list_holidays(year: int, calendar: HolidayCalendar = Depends(get_calendar)):
    _check_year(year)
    year_map = calendar.year_map(year)
    return ok(
        [{"date": d, "is_holiday": flag} for d, flag in sorted(year_map.items())]
    )


@router.post("/sync")
def sync_holidays(
    body: HolidaySync,
    request: Request,
    background: BackgroundTasks,
    repos: Repositories = Depends(get_repositories),
    calendar: HolidayCalendar = Depends(get_calendar),
):
    _check_year(body.year)
    synced = calendar.sync_year(body.year)
    after_write(background, request, repos, [], "holidays.sync", {"year": body.year, "synced": synced})
    return ok({"year": body.year, "synced": synced})
