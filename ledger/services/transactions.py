# ledger/services/transactions.py
"""
Service helpers for Transactions.

Why:
- Keep router code thin.
- Centralize validation (amount > 0, known category, known payment method).
- One place that knows which cache tags a transaction write touches.
"""

from __future__ import annotations

from datetime import date
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Dict, Optional, Union

from ledger import cache
from ledger.config import get_settings
from ledger.errors import NotFoundError, ValidationError
from ledger.models import Transaction, TransactionType
from ledger.repositories.base import Page
from ledger.repositories.container import Repositories
from ledger.repositories.transactions import TransactionFilter

# every successful transaction write invalidates these
WRITE_TAGS = (cache.TRANSACTIONS, cache.BUDGETS, cache.REPORTS)

UPDATABLE_FIELDS = (
    "type",
    "category",
    "amount",
    "note",
    "date",
    "currency",
    "payment_method",
    "merchant",
    "subcategory",
    "product",
)
MAX_AMOUNT = Decimal("9999999999.99")  # NUMERIC(12, 2)


def parse_amount(value: Any, field: str = "amount") -> Decimal:
    """Money in, Decimal with 2 places out. Rejects <= 0 and non-numbers."""
    try:
        amount = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise ValidationError.for_field(field, f"{field} must be a number")
    if not amount.is_finite():
        raise ValidationError.for_field(field, f"{field} must be a number")
    if amount > MAX_AMOUNT:
        raise ValidationError.for_field(field, f"{field} is too large")
    # half-up, the same rounding the reports use
    amount = amount.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    if amount <= 0:
        raise ValidationError.for_field(field, f"{field} must be greater than 0")
    return amount


def _check_references(
    repos: Repositories, category: Optional[str], payment_method: Optional[str]
) -> None:
    if category is not None and repos.categories.get_by_key(category) is None:
        raise ValidationError.for_field("category", f'category "{category}" does not exist')
    if payment_method and repos.payment_methods.get_by_name(payment_method) is None:
        raise ValidationError.for_field(
            "payment_method", f'payment method "{payment_method}" does not exist'
        )


def create_transaction(
    repos: Repositories,
    *,
    type: Union[TransactionType, str],
    category: str,
    amount: Any,
    date: date,
    note: Optional[str] = None,
    currency: Optional[str] = None,
    payment_method: Optional[str] = None,
    merchant: Optional[str] = None,
    subcategory: Optional[str] = None,
    product: Optional[str] = None,
    recurring_expense_id: Optional[int] = None,
    is_auto_generated: bool = False,
    commit: bool = True,
) -> Transaction:
    """
    Create a Transaction row.

    Plain words:
    - We accept either a TransactionType enum ('income'/'expense') OR a string.
    - Amount becomes a Decimal with 2 places; <= 0 is rejected.
    - Category and payment method must exist (payment method is optional).
    - commit=False lets a caller group this with other writes (recurring generator, CSV import).
    """
    try:
        type = TransactionType(type)
    except ValueError:
        raise ValidationError.for_field("type", "type must be 'income' or 'expense'")
    if not category:
        raise ValidationError.for_field("category", "category is required")
    amount = parse_amount(amount)
    payment_method = (payment_method or "").strip() or None
    _check_references(repos, category, payment_method)

    txn = repos.transactions.add(
        Transaction(
            type=type,
            category=category,
            amount=amount,
            note=note or None,
            date=date,
            currency=(currency or get_settings().default_currency).upper(),
            payment_method=payment_method,
            merchant=(merchant or "").strip() or None,
            subcategory=subcategory or None,
            product=product or None,
            recurring_expense_id=recurring_expense_id,
            is_auto_generated=is_auto_generated,
        )
    )
    if commit:
        repos.commit()
        repos.refresh(txn)
    return txn


def get_transaction(
    repos: Repositories, txn_id: int, *, include_deleted: bool = False
) -> Transaction:
    txn = repos.transactions.get(txn_id, include_deleted=include_deleted)
    if txn is None:
        raise NotFoundError("Transaction", txn_id)
    return txn


def update_transaction(
    repos: Repositories, txn_id: int, changes: Dict[str, Any]
) -> Transaction:
    """Partial update of a live (not soft-deleted) transaction."""
    txn = get_transaction(repos, txn_id)
    clean = {k: v for k, v in changes.items() if k in UPDATABLE_FIELDS}

    for required in ("type", "category", "amount", "date"):
        if required in clean and clean[required] is None:
            raise ValidationError.for_field(required, f"{required} cannot be empty")
    if "type" in clean:
        try:
            clean["type"] = TransactionType(clean["type"])
        except ValueError:
            raise ValidationError.for_field("type", "type must be 'income' or 'expense'")
    if "amount" in clean:
        clean["amount"] = parse_amount(clean["amount"])
    if "currency" in clean:
        clean["currency"] = (clean["currency"] or get_settings().default_currency).upper()
    if "payment_method" in clean:
        clean["payment_method"] = (clean["payment_method"] or "").strip() or None
    _check_references(repos, clean.get("category"), clean.get("payment_method"))

    txn = repos.transactions.update(txn, clean)
    repos.commit()
    repos.refresh(txn)
    return txn


def list_transactions(
    repos: Repositories,
    flt: TransactionFilter,
    *,
    sort_by: str = "date",
    sort_order: str = "desc",
    page: int = 1,
    page_size: int = 20,
) -> Page[Transaction]:
    if page < 1:
        raise ValidationError.for_field("page", "page must be >= 1")
    if page_size < 1 or page_size > 200:
        raise ValidationError.for_field("page_size", "page_size must be between 1 and 200")
    return repos.transactions.find_many(
        flt, sort_by=sort_by, sort_order=sort_order, page=page, page_size=page_size
    )


def delete_transaction(repos: Repositories, txn_id: int, *, hard: bool = False) -> None:
    """Soft delete by default; hard=True removes the row (works on soft-deleted rows too)."""
    txn = get_transaction(repos, txn_id, include_deleted=hard)
    if hard:
        repos.recurring.detach_transaction(txn.id)
        repos.transactions.hard_delete(txn)
    else:
        repos.transactions.soft_delete(txn)
    repos.commit()


def restore_transaction(repos: Repositories, txn_id: int) -> Transaction:
    txn = get_transaction(repos, txn_id, include_deleted=True)
    if txn.deleted_at is None:
        return txn
    repos.transactions.restore(txn)
    repos.commit()
    repos.refresh(txn)
    return txn


def transaction_stats(repos: Repositories, flt: TransactionFilter) -> Dict[str, Any]:
    stats = repos.transactions.stats(flt)
    stats["avg_amount"] = stats["avg_amount"].quantize(Decimal("0.01"))
    by_category = sorted(
        repos.transactions.stats_by_category(flt),
        key=lambda row: row["total_amount"],
        reverse=True,
    )
    return {**stats, "by_category": by_category}
