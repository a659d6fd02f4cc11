# ledger/routers/budgets.py
# Purpose: monthly budgets (total + per category), their live status and the suggestion engine.
# - year/month query params default to the current month.
# - Writes invalidate the "budgets" cache tag after the response.

from __future__ import annotations

from decimal import Decimal
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Query, Request

from ledger import cache
from ledger.deps import after_write, get_repositories, get_today
from ledger.repositories.container import Repositories
from ledger.schemas import BudgetUpsert, SuggestionRefresh, ok
from ledger.services import budgets as svc

router = APIRouter(prefix="/api/budgets", tags=["budgets"])


def _period(year: Optional[int], month: Optional[int], today) -> tuple:
    return (year or today.year, month or today.month)


@router.get("")
def list_budgets(
    year: Optional[int] = None,
    month: Optional[int] = None,
    repos: Repositories = Depends(get_repositories),
    today=Depends(get_today),
):
    return ok(svc.list_budgets(repos, *_period(year, month, today)))


@router.post("")
def set_budget(
    body: BudgetUpsert,
    request: Request,
    background: BackgroundTasks,
    repos: Repositories = Depends(get_repositories),
):
    budget = svc.set_budget(repos, **body.model_dump())
    after_write(background, request, repos, [cache.BUDGETS], "budget.set", {"id": budget.id})
    return ok(budget)


@router.get("/status")
def budget_status(
    year: Optional[int] = None,
    month: Optional[int] = None,
    repos: Repositories = Depends(get_repositories),
    today=Depends(get_today),
):
    return ok(svc.budget_status(repos, *_period(year, month, today)))


@router.get("/summary")
def budget_summary(
    year: Optional[int] = None,
    month: Optional[int] = None,
    repos: Repositories = Depends(get_repositories),
    today=Depends(get_today),
):
    return ok(svc.budget_summary(repos, *_period(year, month, today)))


@router.get("/history")
def budget_history(
    category_key: Optional[str] = None,
    months: int = Query(svc.HISTORY_MONTHS, ge=1, le=36),
    repos: Repositories = Depends(get_repositories),
    today=Depends(get_today),
):
    return ok(svc.budget_history(repos, category_key, today=today, months=months))


@router.get("/predict")
def predict_month_end(
    budget_amount: Decimal,
    category_key: Optional[str] = None,
    year: Optional[int] = None,
    month: Optional[int] = None,
    repos: Repositories = Depends(get_repositories),
    today=Depends(get_today),
):
    year, month = _period(year, month, today)
    # "total" is how clients ask for all categories
    key = None if category_key in (None, "", "total") else category_key
    return ok(
        svc.predict_month_end(
            repos, year=year, month=month, category_key=key, budget_amount=budget_amount, today=today
        )
    )


@router.get("/suggestions")
def list_suggestions(
    year: Optional[int] = None,
    month: Optional[int] = None,
    repos: Repositories = Depends(get_repositories),
    today=Depends(get_today),
):
    return ok(svc.list_suggestions(repos, *_period(year, month, today), today=today))


@router.post("/suggestions")
def refresh_suggestions(
    body: SuggestionRefresh,
    request: Request,
    background: BackgroundTasks,
    repos: Repositories = Depends(get_repositories),
    today=Depends(get_today),
):
    written = svc.refresh_suggestions(repos, body.year, body.month, today=today)
    after_write(background, request, repos, [cache.BUDGETS], "budget.refresh_suggestions", {"written": written})
    return ok(
        {
            "updated": written,
            "suggestions": svc.list_suggestions(repos, body.year, body.month, today=today),
        }
    )


@router.delete("/{budget_id}")
def delete_budget(
    budget_id: int,
    request: Request,
    background: BackgroundTasks,
    repos: Repositories = Depends(get_repositories),
):
    svc.delete_budget(repos, budget_id)
    after_write(background, request, repos, [cache.BUDGETS], "budget.delete", {"id": budget_id})
    return ok({"id": budget_id})
