# ledger/routers/categories.py
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Query, Request

from ledger import cache
from ledger.deps import after_write, get_repositories, get_today
from ledger.models import CategoryType
from ledger.repositories.container import Repositories
from ledger.schemas import CategoryCreate, CategoryUpdate, SortOrderUpdate, ok
from ledger.services import categories as svc

router = APIRouter(prefix="/api/categories", tags=["categories"])

# a delete may rewrite transactions and drop budgets
DELETE_TAGS = (cache.CATEGORIES, cache.TRANSACTIONS, cache.BUDGETS, cache.REPORTS)


@router.get("")
def list_categories(
    type: Optional[CategoryType] = None,
    active_only: bool = True,
    repos: Repositories = Depends(get_repositories),
):
    return ok(svc.list_categories(repos, type=type, active_only=active_only))


@router.post("", status_code=201)
def create_category(
    body: CategoryCreate,
    request: Request,
    background: BackgroundTasks,
    repos: Repositories = Depends(get_repositories),
):
    category = svc.create_category(repos, **body.model_dump())
    after_write(background, request, repos, [cache.CATEGORIES], "category.create", {"key": category.key})
    return ok(category)


@router.put("/sort-order")
def update_sort_order(
    body: SortOrderUpdate,
    request: Request,
    background: BackgroundTasks,
    repos: Repositories = Depends(get_repositories),
):
    updated = svc.update_sort_order(repos, [(i.id, i.sort_order) for i in body.items])
    after_write(background, request, repos, [cache.CATEGORIES], "category.sort_order", {"updated": updated})
    return ok({"updated": updated})


@router.get("/merchants")
def frequent_merchants(
    category: Optional[str] = None,
    limit: int = Query(10, ge=1, le=50),
    repos: Repositories = Depends(get_repositories),
):
    return ok(svc.frequent_merchants(repos, category, limit=limit))


@router.get("/{key}/usage")
def category_usage(
    key: str,
    repos: Repositories = Depends(get_repositories),
    today=Depends(get_today),
):
    return ok(svc.category_usage(repos, key, today))


@router.get("/{key}")
def get_category(key: str, repos: Repositories = Depends(get_repositories)):
    return ok(svc.get_category_by_key(repos, key))


@router.put("/{category_id}")
@router.patch("/{category_id}")
def update_category(
    category_id: int,
    body: CategoryUpdate,
    request: Request,
    background: BackgroundTasks,
    repos: Repositories = Depends(get_repositories),
):
    category = svc.update_category(repos, category_id, body.model_dump(exclude_unset=True))
    after_write(background, request, repos, [cache.CATEGORIES], "category.update", {"id": category_id})
    return ok(category)


@router.delete("/{category_id}")
def delete_category(
    category_id: int,
    request: Request,
    background: BackgroundTasks,
    migrate_to_key: Optional[str] = None,
    repos: Repositories = Depends(get_repositories),
):
    result = svc.delete_category(repos, category_id, migrate_to_key)
    after_write(background, request, repos, DELETE_TAGS, "category.delete", result)
    return ok(result)
