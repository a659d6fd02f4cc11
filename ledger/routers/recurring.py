# ledger/routers/recurring.py
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Body, Depends, Query, Request

from ledger.deps import after_write, get_calendar, get_repositories, get_today
from ledger.repositories.container import Repositories
from ledger.schemas import GenerateRequest, RecurringExpenseCreate, RecurringExpenseUpdate, ok
from ledger.services import recurring as svc
from ledger.services.holidays import HolidayCalendar
from ledger.services.transactions import WRITE_TAGS

router = APIRouter(prefix="/api/recurring-expenses", tags=["recurring-expenses"])


@router.get("")
def list_recurring_expenses(
    active_only: bool = False, repos: Repositories = Depends(get_repositories)
):
    return ok(svc.list_recurring_expenses(repos, active_only=active_only))


@router.post("", status_code=201)
def create_recurring_expense(
    body: RecurringExpenseCreate,
    request: Request,
    background: BackgroundTasks,
    repos: Repositories = Depends(get_repositories),
    calendar: HolidayCalendar = Depends(get_calendar),
):
    expense = svc.create_recurring_expense(repos, calendar=calendar, **body.model_dump())
    after_write(background, request, repos, [], "recurring.create", {"id": expense.id})
    return ok(expense)


@router.post("/generate")
def generate_due(
    request: Request,
    background: BackgroundTasks,
    body: Optional[GenerateRequest] = Body(None),
    repos: Repositories = Depends(get_repositories),
    calendar: HolidayCalendar = Depends(get_calendar),
    today=Depends(get_today),
):
    run_date = (body.today if body else None) or today
    result = svc.generate_due(repos, run_date, calendar=calendar)
    if result.generated:
        after_write(background, request, repos, WRITE_TAGS, "recurring.generate", {"generated": result.generated})
    return ok(result.to_dict())


@router.get("/history")
def generation_history(
    limit: int = Query(50, ge=1, le=500),
    recurring_expense_id: Optional[int] = None,
    repos: Repositories = Depends(get_repositories),
):
    return ok(svc.generation_history(repos, limit=limit, expense_id=recurring_expense_id))


@router.get("/stats")
def generation_stats(
    repos: Repositories = Depends(get_repositories), today=Depends(get_today)
):
    return ok(svc.today_stats(repos, today))


@router.get("/{expense_id}")
def get_recurring_expense(expense_id: int, repos: Repositories = Depends(get_repositories)):
    return ok(svc.get_recurring_expense(repos, expense_id))


@router.put("/{expense_id}")
def update_recurring_expense(
    expense_id: int,
    body: RecurringExpenseUpdate,
    request: Request,
    background: BackgroundTasks,
    repos: Repositories = Depends(get_repositories),
    calendar: HolidayCalendar = Depends(get_calendar),
):
    expense = svc.update_recurring_expense(
        repos, expense_id, body.model_dump(exclude_unset=True), calendar=calendar
    )
    after_write(background, request, repos, [], "recurring.update", {"id": expense_id})
    return ok(expense)


@router.delete("/{expense_id}")
def delete_recurring_expense(
    expense_id: int,
    request: Request,
    background: BackgroundTasks,
    repos: Repositories = Depends(get_repositories),
):
    result = svc.delete_recurring_expense(repos, expense_id)
    after_write(background, request, repos, WRITE_TAGS, "recurring.delete", {"id": expense_id, **result})
    return ok(result)
