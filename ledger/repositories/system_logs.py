# ledger/repositories/system_logs.py
from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlmodel import col, func, select

from ledger.models import LogCategory, LogLevel, SystemLog
from ledger.repositories.base import Page, SqlRepository


@dataclass
class LogFilter:
    level: Optional[LogLevel] = None
    category: Optional[LogCategory] = None
    trace_id: Optional[str] = None
    path: Optional[str] = None
    since: Optional[datetime] = None
    until: Optional[datetime] = None
    search: Optional[str] = None  # substring of message


class SystemLogRepository(ABC):
    @abstractmethod
    def add(self, log: SystemLog) -> SystemLog: ...

    @abstractmethod
    def find_many(self, flt: LogFilter, *, page: int = 1, page_size: int = 50) -> Page[SystemLog]: ...

    @abstractmethod
    def by_trace(self, trace_id: str) -> List[SystemLog]: ...

    @abstractmethod
    def stats(self, since: Optional[datetime] = None) -> Dict[str, Any]: ...

    @abstractmethod
    def delete_older_than(self, cutoff: datetime) -> int: ...


class SqlSystemLogRepository(SqlRepository, SystemLogRepository):
    def add(self, log: SystemLog) -> SystemLog:
        return self._save(log)

    def _conditions(self, flt: LogFilter) -> list:
        conds = []
        if flt.level is not None:
            conds.append(SystemLog.level == flt.level)
        if flt.category is not None:
            conds.append(SystemLog.category == flt.category)
        if flt.trace_id:
            conds.append(SystemLog.trace_id == flt.trace_id)
        if flt.path:
            conds.append(col(SystemLog.path).contains(flt.path))
        if flt.since is not None:
            conds.append(SystemLog.created_at >= flt.since)
        if flt.until is not None:
            conds.append(SystemLog.created_at <= flt.until)
        if flt.search:
            conds.append(col(SystemLog.message).contains(flt.search))
        return conds

    def find_many(self, flt: LogFilter, *, page: int = 1, page_size: int = 50) -> Page[SystemLog]:
        conds = self._conditions(flt)
        total = self.session.exec(
            select(func.count()).select_from(SystemLog).where(*conds)
        ).one()
        rows = self.session.exec(
            select(SystemLog)
            .where(*conds)
            .order_by(col(SystemLog.created_at).desc(), col(SystemLog.id).desc())
            .offset((page - 1) * page_size)
            .limit(page_size)
        ).all()
        return Page(items=list(rows), total=total, page=page, page_size=page_size)

    def by_trace(self, trace_id: str) -> List[SystemLog]:
        return list(
            self.session.exec(
                select(SystemLog)
                .where(SystemLog.trace_id == trace_id)
                .order_by(col(SystemLog.created_at).asc(), col(SystemLog.id).asc())
            ).all()
        )

    def _grouped(self, column, since: Optional[datetime]) -> Dict[str, int]:
        stmt = select(column, func.count(SystemLog.id)).group_by(column)
        if since is not None:
            stmt = stmt.where(SystemLog.created_at >= since)
        out: Dict[str, int] = {}
        for key, count in self.session.exec(stmt).all():
            out[getattr(key, "value", str(key))] = count
        return out

    def stats(self, since: Optional[datetime] = None) -> Dict[str, Any]:
        by_level = self._grouped(SystemLog.level, since)
        by_category = self._grouped(SystemLog.category, since)

        errors = select(SystemLog).where(
            col(SystemLog.level).in_([LogLevel.error, LogLevel.fatal])
        )
        if since is not None:
            errors = errors.where(SystemLog.created_at >= since)
        recent_errors = self.session.exec(
            errors.order_by(col(SystemLog.created_at).desc()).limit(10)
        ).all()
        return {
            "total": sum(by_level.values()),
            "by_level": by_level,
            "by_category": by_category,
            "recent_errors": list(recent_errors),
        }

    def delete_older_than(self, cutoff: datetime) -> int:
        rows = self.session.exec(
            select(SystemLog).where(SystemLog.created_at < cutoff)
        ).all()
        for row in rows:
            self.session.delete(row)
        self.session.flush()
        return len(rows)
