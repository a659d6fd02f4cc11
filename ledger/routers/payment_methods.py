# ledger/routers/payment_methods.py
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Request

from ledger import cache
from ledger.deps import after_write, get_repositories
from ledger.repositories.container import Repositories
from ledger.schemas import PaymentMethodCreate, PaymentMethodUpdate, ok
from ledger.services import payment_methods as svc

router = APIRouter(prefix="/api/payment-methods", tags=["payment-methods"])

# renames and migrations rewrite transactions
CASCADE_TAGS = (cache.PAYMENT_METHODS, cache.TRANSACTIONS, cache.REPORTS)


@router.get("")
def list_payment_methods(
    active_only: bool = True, repos: Repositories = Depends(get_repositories)
):
    return ok(svc.list_payment_methods(repos, active_only=active_only))


@router.post("", status_code=201)
def create_payment_method(
    body: PaymentMethodCreate,
    request: Request,
    background: BackgroundTasks,
    repos: Repositories = Depends(get_repositories),
):
    method = svc.create_payment_method(repos, **body.model_dump())
    after_write(background, request, repos, [cache.PAYMENT_METHODS], "payment_method.create", {"id": method.id})
    return ok(method)


@router.get("/{method_id}")
def get_payment_method(method_id: int, repos: Repositories = Depends(get_repositories)):
    return ok(svc.get_payment_method(repos, method_id))


@router.get("/{method_id}/usage")
def payment_method_usage(method_id: int, repos: Repositories = Depends(get_repositories)):
    return ok(svc.usage_detail(repos, method_id))


@router.put("/{method_id}")
def update_payment_method(
    method_id: int,
    body: PaymentMethodUpdate,
    request: Request,
    background: BackgroundTasks,
    repos: Repositories = Depends(get_repositories),
):
    result = svc.update_payment_method(repos, method_id, body.model_dump(exclude_unset=True))
    after_write(
        background,
        request,
        repos,
        CASCADE_TAGS,
        "payment_method.update",
        {"id": method_id, "renamed_transactions": result["renamed_transactions"]},
    )
    return ok(result["payment_method"], renamed_transactions=result["renamed_transactions"])


@router.post("/{method_id}/default")
def set_default_payment_method(
    method_id: int,
    request: Request,
    background: BackgroundTasks,
    repos: Repositories = Depends(get_repositories),
):
    method = svc.set_default(repos, method_id)
    after_write(background, request, repos, [cache.PAYMENT_METHODS], "payment_method.set_default", {"id": method_id})
    return ok(method)


@router.delete("/{method_id}")
def delete_payment_method(
    method_id: int,
    request: Request,
    background: BackgroundTasks,
    migrate_to_id: Optional[int] = None,
    reassign_default: bool = False,
    repos: Repositories = Depends(get_repositories),
):
    result = svc.delete_payment_method(
        repos, method_id, migrate_to_id, reassign_default=reassign_default
    )
    after_write(background, request, repos, CASCADE_TAGS, "payment_method.delete", result)
    return ok(result)
