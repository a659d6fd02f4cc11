# ledger/routers/transactions.py
from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Request, Response

from ledger import cache
from ledger.deps import after_write, get_repositories
from ledger.models import TransactionType
from ledger.repositories.container import Repositories
from ledger.repositories.transactions import TransactionFilter
from ledger.schemas import TransactionCreate, TransactionUpdate, ok
from ledger.services import transactions as svc

router = APIRouter(prefix="/api/transactions", tags=["transactions"])


def transaction_filter(
    type: Optional[TransactionType] = None,
    category: Optional[str] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    currency: Optional[str] = None,
    payment_method: Optional[str] = None,
    merchant: Optional[str] = None,
    subcategory: Optional[str] = None,
    min_amount: Optional[Decimal] = None,
    max_amount: Optional[Decimal] = None,
    fixed: Optional[bool] = None,
    include_deleted: bool = False,
) -> TransactionFilter:
    """Query-string filters shared by list, stats and export."""
    return TransactionFilter(
        type=type,
        category=category,
        start_date=start_date,
        end_date=end_date,
        currency=currency,
        payment_method=payment_method,
        merchant=merchant,
        subcategory=subcategory,
        min_amount=min_amount,
        max_amount=max_amount,
        fixed=fixed,
        include_deleted=include_deleted,
    )


@router.get("")
def list_transactions(
    response: Response,
    flt: TransactionFilter = Depends(transaction_filter),
    sort_by: str = "date",
    sort_order: str = "desc",
    page: int = 1,
    page_size: int = 20,
    repos: Repositories = Depends(get_repositories),
):
    result = svc.list_transactions(
        repos, flt, sort_by=sort_by, sort_order=sort_order, page=page, page_size=page_size
    )
    # lets clients tell whether their cached copy is stale
    response.headers["X-Cache-Version"] = str(cache.cache.version(cache.TRANSACTIONS))
    return ok(result.items, pagination=result.pagination())


@router.post("", status_code=201)
def create_transaction(
    body: TransactionCreate,
    request: Request,
    background: BackgroundTasks,
    repos: Repositories = Depends(get_repositories),
):
    txn = svc.create_transaction(repos, **body.model_dump())
    after_write(background, request, repos, svc.WRITE_TAGS, "transaction.create", {"id": txn.id})
    return ok(txn)


@router.get("/stats")
def transaction_stats(
    flt: TransactionFilter = Depends(transaction_filter),
    repos: Repositories = Depends(get_repositories),
):
    return ok(svc.transaction_stats(repos, flt))


@router.get("/{txn_id}")
def get_transaction(
    txn_id: int,
    include_deleted: bool = False,
    repos: Repositories = Depends(get_repositories),
):
    return ok(svc.get_transaction(repos, txn_id, include_deleted=include_deleted))


@router.put("/{txn_id}")
def update_transaction(
    txn_id: int,
    body: TransactionUpdate,
    request: Request,
    background: BackgroundTasks,
    repos: Repositories = Depends(get_repositories),
):
    txn = svc.update_transaction(repos, txn_id, body.model_dump(exclude_unset=True))
    after_write(background, request, repos, svc.WRITE_TAGS, "transaction.update", {"id": txn_id})
    return ok(txn)


@router.delete("/{txn_id}")
def delete_transaction(
    txn_id: int,
    request: Request,
    background: BackgroundTasks,
    hard: bool = False,
    repos: Repositories = Depends(get_repositories),
):
    svc.delete_transaction(repos, txn_id, hard=hard)
    action = "transaction.hard_delete" if hard else "transaction.delete"
    after_write(background, request, repos, svc.WRITE_TAGS, action, {"id": txn_id})
    return ok({"id": txn_id, "hard": hard})


@router.post("/{txn_id}/restore")
def restore_transaction(
    txn_id: int,
    request: Request,
    background: BackgroundTasks,
    repos: Repositories = Depends(get_repositories),
):
    txn = svc.restore_transaction(repos, txn_id)
    after_write(background, request, repos, svc.WRITE_TAGS, "transaction.restore", {"id": txn_id})
    return ok(txn)
