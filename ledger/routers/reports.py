# ledger/routers/reports.py
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Query, Request

from ledger import cache
from ledger.deps import after_write, get_ai_client, get_repositories, get_today
from ledger.repositories.container import Repositories
from ledger.schemas import MonthlyReportGenerate, WeeklyReportGenerate, ok
from ledger.services import reports as svc
from ledger.services.ai import AIClient

weekly_router = APIRouter(prefix="/api/weekly-reports", tags=["weekly-reports"])
monthly_router = APIRouter(prefix="/api/monthly-reports", tags=["monthly-reports"])


# ---------- weekly ----------


@weekly_router.get("")
def list_weekly_reports(
    limit: int = Query(20, ge=1, le=200), repos: Repositories = Depends(get_repositories)
):
    return ok(svc.list_weekly_reports(repos, limit=limit))


@weekly_router.get("/latest")
def latest_weekly_report(repos: Repositories = Depends(get_repositories)):
    return ok(svc.latest_weekly_report(repos))


@weekly_router.post("/generate")
def generate_weekly_report(
    body: WeeklyReportGenerate,
    request: Request,
    background: BackgroundTasks,
    repos: Repositories = Depends(get_repositories),
    ai: AIClient = Depends(get_ai_client),
    today=Depends(get_today),
):
    report, created = svc.generate_weekly(
        repos,
        today=today,
        week_start=body.week_start,
        force=body.force,
        ai=ai if body.with_ai else None,
    )
    if created or body.force:
        after_write(background, request, repos, [cache.REPORTS], "weekly_report.generate", {"id": report.id})
    return ok(report, created=created)


@weekly_router.get("/{report_id}")
def get_weekly_report(report_id: int, repos: Repositories = Depends(get_repositories)):
    return ok(svc.get_weekly_report(repos, report_id))


@weekly_router.delete("/{report_id}")
def delete_weekly_report(
    report_id: int,
    request: Request,
    background: BackgroundTasks,
    repos: Repositories = Depends(get_repositories),
):
    svc.delete_weekly_report(repos, report_id)
    after_write(background, request, repos, [cache.REPORTS], "weekly_report.delete", {"id": report_id})
    return ok({"id": report_id})


# ---------- monthly ----------


@monthly_router.get("")
def list_monthly_reports(
    year: Optional[int] = None,
    month: Optional[int] = None,
    limit: int = Query(24, ge=1, le=200),
    repos: Repositories = Depends(get_repositories),
):
    if year is not None and month is not None:
        return ok(svc.get_monthly_report_by_period(repos, year, month))
    return ok(svc.list_monthly_reports(repos, year=year, limit=limit))


@monthly_router.post("")
def generate_monthly_report(
    body: MonthlyReportGenerate,
    request: Request,
    background: BackgroundTasks,
    repos: Repositories = Depends(get_repositories),
    ai: AIClient = Depends(get_ai_client),
    today=Depends(get_today),
):
    report, created = svc.generate_monthly(
        repos,
        year=body.year,
        month=body.month,
        today=today,
        force=body.force,
        ai=ai if body.with_ai else None,
    )
    if created or body.force:
        after_write(background, request, repos, [cache.REPORTS], "monthly_report.generate", {"id": report.id})
    return ok(report, created=created)


@monthly_router.get("/latest")
def latest_monthly_report(repos: Repositories = Depends(get_repositories)):
    return ok(svc.latest_monthly_report(repos))


@monthly_router.get("/{report_id}")
def get_monthly_report(report_id: int, repos: Repositories = Depends(get_repositories)):
    return ok(svc.get_monthly_report(repos, report_id))


@monthly_router.delete("/{report_id}")
def delete_monthly_report(
    report_id: int,
    request: Request,
    background: BackgroundTasks,
    repos: Repositories = Depends(get_repositories),
):
    svc.delete_monthly_report(repos, report_id)
    after_write(background, request, repos, [cache.REPORTS], "monthly_report.delete", {"id": report_id})
    return ok({"id": report_id})
