# ledger/services/categories.py
"""
Category lifecycle: list with usage stats, create/update, sort order,
seeding of the built-in categories, and delete with transaction migration.

Transactions point at categories by *key*, so the key never changes after
creation and a delete must either move every reference or be refused.
"""

from __future__ import annotations

import logging
import re
from datetime import date
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.exc import IntegrityError

from ledger.errors import ConflictError, NotFoundError, ValidationError
from ledger.models import Category, CategoryType
from ledger.period import month_bounds
from ledger.repositories.container import Repositories
from ledger.repositories.transactions import TransactionFilter

logger = logging.getLogger("ledger.categories")

KEY_PATTERN = re.compile(r"^[a-z0-9][a-z0-9_-]{0,49}$")
UPDATABLE_FIELDS = ("label", "icon", "color", "type", "is_active", "sort_order")
CENT = Decimal("0.01")

# built-in categories (is_system=True, can't be deleted)
DEFAULT_CATEGORIES: List[Dict[str, Any]] = [
    {"key": "food", "label": "Food", "color": "#F97316", "icon": "🍜"},
    {"key": "drink", "label": "Drinks", "color": "#22C55E", "icon": "🥤"},
    {"key": "transport", "label": "Transport", "color": "#06B6D4", "icon": "🚌"},
    {"key": "entertainment", "label": "Entertainment", "color": "#A855F7", "icon": "🎮"},
    {"key": "salary", "label": "Salary", "color": "#10B981", "icon": "💼", "type": CategoryType.income},
    {"key": "rent", "label": "Rent", "color": "#3B82F6", "icon": "🏠"},
    {"key": "utilities", "label": "Utilities", "color": "#0EA5E9", "icon": "💡"},
    {"key": "daily", "label": "Daily spending", "color": "#F59E0B", "icon": "🧺"},
    {"key": "subscription", "label": "Subscriptions", "color": "#EF4444", "icon": "📦"},
    {"key": "other", "label": "Other", "color": "#6B7280", "icon": "📁", "type": CategoryType.both},
]


def seed_default_categories(repos: Repositories) -> int:
    """Insert the built-in categories that are missing. Returns how many were added."""
    added = 0
    for order, item in enumerate(DEFAULT_CATEGORIES):
        if repos.categories.get_by_key(item["key"]) is not None:
            continue
        repos.categories.add(
            Category(
                key=item["key"],
                label=item["label"],
                icon=item.get("icon"),
                color=item.get("color"),
                type=item.get("type", CategoryType.expense),
                is_system=True,
                sort_order=order,
            )
        )
        added += 1
    repos.commit()
    if added:
        logger.info("seeded %d default categories", added)
    return added


def list_categories(
    repos: Repositories,
    *,
    type: Optional[CategoryType] = None,
    active_only: bool = False,
) -> List[Dict[str, Any]]:
    """Categories in display order, each with usage_count / total_amount / last_used."""
    usage = {
        row["category"]: row
        for row in repos.transactions.stats_by_category(TransactionFilter())
    }
    out = []
    for category in repos.categories.list(type=type, active_only=active_only):
        stats = usage.get(category.key, {})
        out.append(
            {
                **category.model_dump(),
                "usage_count": stats.get("count", 0),
                "total_amount": stats.get("total_amount", 0),
                "last_used": stats.get("last_used"),
            }
        )
    return out


def get_category_by_key(repos: Repositories, key: str) -> Category:
    category = repos.categories.get_by_key(key)
    if category is None:
        raise NotFoundError("Category", key)
    return category


def _get_category(repos: Repositories, category_id: int) -> Category:
    category = repos.categories.get(category_id)
    if category is None:
        raise NotFoundError("Category", category_id)
    return category


def create_category(
    repos: Repositories,
    *,
    key: str,
    label: str,
    icon: Optional[str] = None,
    color: Optional[str] = None,
    type: CategoryType = CategoryType.expense,
    sort_order: Optional[int] = None,
) -> Category:
    key = (key or "").strip().lower()
    if not KEY_PATTERN.match(key):
        raise ValidationError.for_field(
            "key", "key must be 1-50 lowercase letters, digits, '-' or '_'"
        )
    if not (label or "").strip():
        raise ValidationError.for_field("label", "label is required")
    if repos.categories.get_by_key(key) is not None:
        raise ConflictError(f'Category key "{key}" already exists')

    if sort_order is None:
        existing = repos.categories.list()
        sort_order = max((c.sort_order for c in existing), default=-1) + 1

    try:
        category = repos.categories.add(
            Category(
                key=key,
                label=label.strip(),
                icon=icon,
                color=color,
                type=CategoryType(type),
                sort_order=sort_order,
            )
        )
        repos.commit()
    except IntegrityError:
        repos.rollback()
        raise ConflictError(f'Category key "{key}" already exists')
    repos.refresh(category)
    return category


def update_category(
    repos: Repositories, category_id: int, changes: Dict[str, Any]
) -> Category:
    """Partial update. The key is immutable; unknown fields are ignored."""
    category = _get_category(repos, category_id)
    if "key" in changes and changes["key"] not in (None, category.key):
        raise ValidationError.for_field("key", "key cannot be changed")

    clean = {k: v for k, v in changes.items() if k in UPDATABLE_FIELDS and v is not None}
    if "label" in clean and not str(clean["label"]).strip():
        raise ValidationError.for_field("label", "label cannot be empty")
    if "type" in clean:
        clean["type"] = CategoryType(clean["type"])

    category = repos.categories.update(category, clean)
    repos.commit()
    repos.refresh(category)
    return category


def update_sort_order(repos: Repositories, items: List[Tuple[int, int]]) -> int:
    """Batch update [(id, sort_order), ...] in one transaction."""
    for category_id, order in items:
        category = _get_category(repos, category_id)
        repos.categories.update(category, {"sort_order": order})
    repos.commit()
    return len(items)


def category_usage(repos: Repositories, key: str, today: date) -> Dict[str, Any]:
    get_category_by_key(repos, key)
    overall = repos.transactions.stats(TransactionFilter(category=key))
    start, end = month_bounds(today.year, today.month)
    this_month = repos.transactions.stats(
        TransactionFilter(category=key, start_date=start, end_date=end)
    )
    return {
        "key": key,
        "total_transactions": overall["count"],
        "total_amount": overall["total_amount"],
        "avg_amount": overall["avg_amount"].quantize(CENT),
        "first_used": overall["first_date"],
        "last_used": overall["last_date"],
        "this_month_count": this_month["count"],
        "this_month_amount": this_month["total_amount"],
        "recurring_expenses": repos.recurring.count_by_category(key),
    }


def frequent_merchants(
    repos: Repositories, key: Optional[str] = None, *, limit: int = 10
) -> Any:
    """Most used merchants for one category, or a {key: [...]} map for all active ones."""
    if key:
        get_category_by_key(repos, key)
        return repos.categories.frequent_merchants(key, limit)
    return {
        category.key: repos.categories.frequent_merchants(category.key, limit)
        for category in repos.categories.list(active_only=True)
    }


def delete_category(
    repos: Repositories, category_id: int, migrate_to_key: Optional[str] = None
) -> Dict[str, Any]:
    """
    Delete a category, moving its references first.

    Plain words:
    - Built-in (system) categories are protected.
    - With migrate_to_key: every transaction (soft-deleted ones too) and every
      recurring expense using the old key moves to the target, then the row goes.
    - Without a target: allowed only when no transaction references the key.
    - Budgets and suggestions for the old key are removed with it.
    All of it happens in one database transaction.
    """
    category = _get_category(repos, category_id)
    if category.is_system:
        raise ConflictError(f'System category "{category.key}" cannot be deleted')

    old_key = category.key
    moved_txns = 0
    moved_recurring = 0

    if migrate_to_key:
        if migrate_to_key == old_key:
            raise ValidationError.for_field(
                "migrate_to_key", "migration target must differ from the deleted category"
            )
        if repos.categories.get_by_key(migrate_to_key) is None:
            raise ValidationError.for_field(
                "migrate_to_key", f'category "{migrate_to_key}" does not exist'
            )
        moved_txns = repos.transactions.migrate_category(old_key, migrate_to_key)
        moved_recurring = repos.recurring.migrate_category(old_key, migrate_to_key)
    else:
        in_use = repos.transactions.count_by_category(old_key, include_deleted=True)
        in_use_recurring = repos.recurring.count_by_category(old_key)
        if in_use or in_use_recurring:
            raise ConflictError(
                f'Category "{old_key}" is used by {in_use} transactions and '
                f"{in_use_recurring} recurring expenses; pass migrate_to_key to move them",
            )

    repos.budgets.delete_for_category(old_key)
    repos.categories.delete(category)
    repos.commit()

    logger.info(
        "category %s deleted; moved %d transactions, %d recurring to %s",
        old_key,
        moved_txns,
        moved_recurring,
        migrate_to_key,
    )
    return {
        "deleted_key": old_key,
        "migrated_to": migrate_to_key,
        "affected_transactions": moved_txns,
        "affected_recurring_expenses": moved_recurring,
    }
