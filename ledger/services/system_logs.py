# ledger/services/system_logs.py
"""
Structured system logs stored in the database (admin-facing observability).

Writes are fire-and-forget: they run after the response (BackgroundTasks),
open their own short Session on the request's engine and never raise.
Reads back the admin endpoints.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from sqlalchemy.engine import Engine
from sqlmodel import Session

from ledger.config import get_settings
from ledger.errors import ValidationError
from ledger.models import LogCategory, LogLevel, SystemLog, utcnow
from ledger.repositories.base import Page
from ledger.repositories.container import Repositories
from ledger.repositories.system_logs import LogFilter, SqlSystemLogRepository

logger = logging.getLogger("ledger.system_logs")


def write_log(bind: Engine, **fields: Any) -> None:
    """Persist one SystemLog row in its own session; failures only produce a warning."""
    try:
        with Session(bind) as session:
            SqlSystemLogRepository(session).add(SystemLog(**fields))
            session.commit()
    except Exception:
        logger.warning("could not persist system log %r", fields.get("message"), exc_info=True)


def record_user_action(
    bind: Engine,
    action: str,
    *,
    trace_id: Optional[str] = None,
    path: Optional[str] = None,
    method: Optional[str] = None,
    meta: Optional[Dict[str, Any]] = None,
) -> None:
    """e.g. record_user_action(engine, "transaction.create", meta={"id": 7})"""
    write_log(
        bind,
        level=LogLevel.info,
        category=LogCategory.user_action,
        message=action,
        trace_id=trace_id,
        path=path,
        method=method,
        meta=meta,
    )


def list_logs(
    repos: Repositories, flt: LogFilter, *, page: int = 1, page_size: int = 50
) -> Page[SystemLog]:
    if page < 1:
        raise ValidationError.for_field("page", "page must be >= 1")
    if page_size < 1 or page_size > 500:
        raise ValidationError.for_field("page_size", "page_size must be between 1 and 500")
    return repos.system_logs.find_many(flt, page=page, page_size=page_size)


def logs_for_trace(repos: Repositories, trace_id: str) -> List[SystemLog]:
    return repos.system_logs.by_trace(trace_id)


def log_stats(repos: Repositories, *, hours: int = 24) -> Dict[str, Any]:
    since = utcnow() - timedelta(hours=hours)
    stats = repos.system_logs.stats(since)
    return {**stats, "since": since, "hours": hours}


def cleanup_logs(
    repos: Repositories, *, retention_days: Optional[int] = None, now: Optional[datetime] = None
) -> int:
    """Delete rows older than the retention window (LOG_RETENTION_DAYS by default)."""
    days = retention_days if retention_days is not None else get_settings().log_retention_days
    if days < 1:
        raise ValidationError.for_field("retention_days", "retention_days must be >= 1")
    cutoff = (now or utcnow()) - timedelta(days=days)
    deleted = repos.system_logs.delete_older_than(cutoff)
    repos.commit()
    logger.info("system log cleanup: %d rows older than %s", deleted, cutoff)
    return deleted
