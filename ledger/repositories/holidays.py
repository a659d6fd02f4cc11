# ledger/repositories/holidays.py
from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import date
from typing import Dict, Iterable, List

from sqlmodel import select

from ledger.models import Holiday
from ledger.repositories.base import SqlRepository


class HolidayRepository(ABC):
    @abstractmethod
    def for_year(self, year: int) -> List[Holiday]: ...

    @abstractmethod
    def replace_year(self, year: int, entries: Iterable[Holiday]) -> int: ...


class SqlHolidayRepository(SqlRepository, HolidayRepository):
    def for_year(self, year: int) -> List[Holiday]:
        return list(
            self.session.exec(
                select(Holiday)
                .where(Holiday.date >= date(year, 1, 1), Holiday.date <= date(year, 12, 31))
                .order_by(Holiday.date)
            ).all()
        )

    def replace_year(self, year: int, entries: Iterable[Holiday]) -> int:
        """Upsert by date: existing rows are updated, missing ones inserted."""
        existing: Dict[date, Holiday] = {h.date: h for h in self.for_year(year)}
        count = 0
        for entry in entries:
            row = existing.get(entry.date)
            if row is None:
                self.session.add(entry)
            else:
                row.name = entry.name
                row.is_holiday = entry.is_holiday
                row.source = entry.source
                self.session.add(row)
            count += 1
        self.session.flush()
        return count
