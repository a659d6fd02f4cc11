# ledger/services/holidays.py
"""
Public holiday calendar used by recurring expenses with skip_holidays.

Lookup order for a year:
1) process cache (HOLIDAY_CACHE_TTL_HOURS)
2) the `holidays` table
3) the holiday HTTP API; whatever it returns is saved to the table

A failed fetch degrades to "no holidays known" (logged, not raised) so
generation still runs. `sync_year` is the explicit refresh and does raise.
"""

from __future__ import annotations

import logging
import re
from datetime import date
from typing import Any, Dict, List, Optional

import httpx
from sqlalchemy.engine import Engine
from sqlmodel import Session

from ledger.cache import HOLIDAYS, cache
from ledger.config import Settings, get_settings
from ledger.errors import UpstreamError
from ledger.models import Holiday
from ledger.repositories.holidays import SqlHolidayRepository

logger = logging.getLogger("ledger.holidays")

_ISO_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
SOURCE = "timor.tech"


def extract_entries(payload: Any) -> List[Holiday]:
    """
    Turn the API payload into Holiday rows.

    Expected shape: {"holiday": {"MM-DD": {"date": "YYYY-MM-DD", "holiday": bool, "name": str}}}
    Entries without a valid ISO date are ignored. holiday=false marks a make-up workday.
    """
    entries: List[Holiday] = []
    if not isinstance(payload, dict):
        return entries

    for section in ("holiday", "data"):
        block = payload.get(section)
        if not isinstance(block, dict):
            continue
        for value in block.values():
            if not isinstance(value, dict):
                continue
            raw = value.get("date")
            if not isinstance(raw, str) or not _ISO_DATE.match(raw):
                continue
            is_holiday = (
                value.get("holiday") is True
                or value.get("isHoliday") is True
                or value.get("type") == "holiday"
            )
            name = value.get("name") if isinstance(value.get("name"), str) else None
            entries.append(
                Holiday(
                    date=date.fromisoformat(raw),
                    name=name,
                    is_holiday=is_holiday,
                    source=SOURCE,
                )
            )
    return entries


class HolidayCalendar:
    def __init__(
        self,
        bind: Optional[Engine] = None,
        *,
        client: Optional[httpx.Client] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        # own short sessions: holiday writes never join a caller's unit of work
        self.bind = bind
        self.client = client
        self.settings = settings or get_settings()

    # ---- lookups ----

    def year_map(self, year: int) -> Dict[date, bool]:
        return cache.wrap(
            f"holidays:{year}",
            [HOLIDAYS],
            lambda: self._load_year(year),
            ttl_seconds=self.settings.holiday_cache_ttl_hours * 3600,
        )

    def is_holiday(self, d: date) -> bool:
        return self.year_map(d.year).get(d) is True

    def is_working_day(self, d: date) -> bool:
        flag = self.year_map(d.year).get(d)
        if flag is not None:
            # listed days are either holidays or make-up workdays
            return not flag
        return d.weekday() < 5

    # ---- loading ----

    def _load_year(self, year: int) -> Dict[date, bool]:
        if self.bind is not None:
            with Session(self.bind) as session:
                stored = {
                    row.date: row.is_holiday
                    for row in SqlHolidayRepository(session).for_year(year)
                }
            if stored:
                return stored
        try:
            entries = self._fetch(year)
        except Exception:
            logger.warning("holiday fetch failed for %s; assuming no holidays", year, exc_info=True)
            return {}
        # built before storing: committed rows expire
        year_map = {entry.date: entry.is_holiday for entry in entries}
        try:
            self._store(year, entries)
        except Exception:
            # the map is still usable from memory
            logger.warning("could not persist holidays for %s", year, exc_info=True)
        return year_map

    def _fetch(self, year: int) -> List[Holiday]:
        url = f"{self.settings.holiday_api_base.rstrip('/')}/{year}"
        headers = {"User-Agent": "ledger/0.1", "Accept": "application/json"}
        if self.client is not None:
            resp = self.client.get(url, headers=headers)
        else:
            resp = httpx.get(url, headers=headers, timeout=10.0)
        resp.raise_for_status()
        return extract_entries(resp.json())

    def _store(self, year: int, entries: List[Holiday]) -> int:
        if self.bind is None or not entries:
            return 0
        with Session(self.bind) as session:
            count = SqlHolidayRepository(session).replace_year(year, entries)
            session.commit()
        return count

    def sync_year(self, year: int) -> int:
        """Force a refresh from the API. Raises UpstreamError when the API fails."""
        try:
            entries = self._fetch(year)
        except (httpx.HTTPError, ValueError) as ex:
            raise UpstreamError(f"Holiday API error: {ex}")
        year_map = {entry.date: entry.is_holiday for entry in entries}
        self._store(year, entries)
        cache.set(
            f"holidays:{year}",
            year_map,
            [HOLIDAYS],
            ttl_seconds=self.settings.holiday_cache_ttl_hours * 3600,
        )
        logger.info("synced %d holiday entries for %s", len(entries), year)
        return len(entries)
