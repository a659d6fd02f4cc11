# ledger/routers/admin.py
# Purpose: operator endpoints.
# - system log browsing (filters, trace lookup, stats) and retention cleanup
# - POST /cron/run: the daily jobs, for an external scheduler to call

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict, Optional

from fastapi import APIRouter, BackgroundTasks, Body, Depends, Query, Request

from ledger.deps import after_write, get_calendar, get_repositories, get_today
from ledger.errors import AppError, ValidationError
from ledger.models import GenerationType, LogCategory, LogLevel
from ledger.repositories.container import Repositories
from ledger.repositories.system_logs import LogFilter
from ledger.schemas import CronRun, ok
from ledger.services import recurring, reports, system_logs
from ledger.services.holidays import HolidayCalendar
from ledger.services.transactions import WRITE_TAGS

router = APIRouter(prefix="/api/admin", tags=["admin"])
logger = logging.getLogger("ledger.cron")

CRON_JOBS = ("recurring", "weekly_report", "log_cleanup")


@router.get("/logs")
def list_logs(
    level: Optional[LogLevel] = None,
    category: Optional[LogCategory] = None,
    trace_id: Optional[str] = None,
    path: Optional[str] = None,
    since: Optional[datetime] = None,
    until: Optional[datetime] = None,
    search: Optional[str] = None,
    page: int = 1,
    page_size: int = 50,
    repos: Repositories = Depends(get_repositories),
):
    flt = LogFilter(
        level=level,
        category=category,
        trace_id=trace_id,
        path=path,
        since=since,
        until=until,
        search=search,
    )
    result = system_logs.list_logs(repos, flt, page=page, page_size=page_size)
    return ok(result.items, pagination=result.pagination())


@router.get("/logs/stats")
def log_stats(
    hours: int = Query(24, ge=1, le=24 * 90), repos: Repositories = Depends(get_repositories)
):
    return ok(system_logs.log_stats(repos, hours=hours))


@router.get("/logs/trace/{trace_id}")
def logs_for_trace(trace_id: str, repos: Repositories = Depends(get_repositories)):
    return ok(system_logs.logs_for_trace(repos, trace_id))


@router.delete("/logs")
def cleanup_logs(
    retention_days: Optional[int] = None, repos: Repositories = Depends(get_repositories)
):
    deleted = system_logs.cleanup_logs(repos, retention_days=retention_days)
    return ok({"deleted": deleted})


@router.post("/cron/run")
def run_cron(
    request: Request,
    background: BackgroundTasks,
    body: Optional[CronRun] = Body(None),
    repos: Repositories = Depends(get_repositories),
    calendar: HolidayCalendar = Depends(get_calendar),
    today=Depends(get_today),
):
    """
    Run the daily jobs in order. One job failing does not stop the others;
    its error is reported under its name.
    """
    body = body or CronRun()
    run_date = body.today or today
    unknown = [job for job in body.jobs if job not in CRON_JOBS]
    if unknown:
        raise ValidationError.for_field("jobs", f"unknown jobs: {', '.join(unknown)}")

    results: Dict[str, Any] = {}
    for job in body.jobs:
        try:
            if job == "recurring":
                results[job] = recurring.generate_due(repos, run_date, calendar=calendar).to_dict()
            elif job == "weekly_report":
                report, created = reports.generate_weekly(
                    repos, today=run_date, generation_type=GenerationType.auto
                )
                results[job] = {"id": report.id, "week_start_date": report.week_start_date, "created": created}
            elif job == "log_cleanup":
                results[job] = {"deleted": system_logs.cleanup_logs(repos)}
        except AppError as ex:
            repos.rollback()
            logger.warning("cron job %s failed: %s", job, ex.message)
            results[job] = {"error": ex.message}
        except Exception as ex:  # e.g. a database error; the remaining jobs still run
            repos.rollback()
            logger.exception("cron job %s crashed", job)
            results[job] = {"error": f"{type(ex).__name__}: {ex}"[:500]}

    after_write(background, request, repos, WRITE_TAGS, "cron.run", {"jobs": list(body.jobs)})
    return ok({"date": run_date, "jobs": results})
