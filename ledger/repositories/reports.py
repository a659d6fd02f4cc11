# ledger/repositories/reports.py
from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import date
from typing import Any, Dict, List, Optional

from sqlmodel import col, select

from ledger.models import MonthlyReport, WeeklyReport
from ledger.repositories.base import SqlRepository


class WeeklyReportRepository(ABC):
    @abstractmethod
    def get(self, report_id: int) -> Optional[WeeklyReport]: ...

    @abstractmethod
    def get_by_week_start(self, week_start: date) -> Optional[WeeklyReport]: ...

    @abstractmethod
    def latest(self) -> Optional[WeeklyReport]: ...

    @abstractmethod
    def list(self, *, limit: int = 20) -> List[WeeklyReport]: ...

    @abstractmethod
    def add(self, report: WeeklyReport) -> WeeklyReport: ...

    @abstractmethod
    def update(self, report: WeeklyReport, changes: Dict[str, Any]) -> WeeklyReport: ...

    @abstractmethod
    def delete(self, report: WeeklyReport) -> None: ...


class MonthlyReportRepository(ABC):
    @abstractmethod
    def get(self, report_id: int) -> Optional[MonthlyReport]: ...

    @abstractmethod
    def get_by_period(self, year: int, month: int) -> Optional[MonthlyReport]: ...

    @abstractmethod
    def latest(self) -> Optional[MonthlyReport]: ...

    @abstractmethod
    def list(self, *, year: Optional[int] = None, limit: int = 24) -> List[MonthlyReport]: ...

    @abstractmethod
    def add(self, report: MonthlyReport) -> MonthlyReport: ...

    @abstractmethod
    def update(self, report: MonthlyReport, changes: Dict[str, Any]) -> MonthlyReport: ...

    @abstractmethod
    def delete(self, report: MonthlyReport) -> None: ...


class SqlWeeklyReportRepository(SqlRepository, WeeklyReportRepository):
    def get(self, report_id: int) -> Optional[WeeklyReport]:
        return self.session.get(WeeklyReport, report_id)

    def get_by_week_start(self, week_start: date) -> Optional[WeeklyReport]:
        return self.session.exec(
            select(WeeklyReport).where(WeeklyReport.week_start_date == week_start)
        ).first()

    def latest(self) -> Optional[WeeklyReport]:
        return self.session.exec(
            select(WeeklyReport).order_by(col(WeeklyReport.week_start_date).desc())
        ).first()

    def list(self, *, limit: int = 20) -> List[WeeklyReport]:
        return list(
            self.session.exec(
                select(WeeklyReport)
                .order_by(col(WeeklyReport.week_start_date).desc())
                .limit(limit)
            ).all()
        )

    def add(self, report: WeeklyReport) -> WeeklyReport:
        return self._save(report)

    def update(self, report: WeeklyReport, changes: Dict[str, Any]) -> WeeklyReport:
        return self._apply(report, changes)

    def delete(self, report: WeeklyReport) -> None:
        self.session.delete(report)
        self.session.flush()


class SqlMonthlyReportRepository(SqlRepository, MonthlyReportRepository):
    def get(self, report_id: int) -> Optional[MonthlyReport]:
        return self.session.get(MonthlyReport, report_id)

    def get_by_period(self, year: int, month: int) -> Optional[MonthlyReport]:
        return self.session.exec(
            select(MonthlyReport).where(
                MonthlyReport.year == year, MonthlyReport.month == month
            )
        ).first()

    def latest(self) -> Optional[MonthlyReport]:
        return self.session.exec(
            select(MonthlyReport).order_by(
                col(MonthlyReport.year).desc(), col(MonthlyReport.month).desc()
            )
        ).first()

    def list(self, *, year: Optional[int] = None, limit: int = 24) -> List[MonthlyReport]:
        stmt = select(MonthlyReport)
        if year is not None:
            stmt = stmt.where(MonthlyReport.year == year)
        stmt = stmt.order_by(
            col(MonthlyReport.year).desc(), col(MonthlyReport.month).desc()
        ).limit(limit)
        return list(self.session.exec(stmt).all())

    def add(self, report: MonthlyReport) -> MonthlyReport:
        return self._save(report)

    def update(self, report: MonthlyReport, changes: Dict[str, Any]) -> MonthlyReport:
        return self._apply(report, changes)

    def delete(self, report: MonthlyReport) -> None:
        self.session.delete(report)
        self.session.flush()
