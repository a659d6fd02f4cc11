# ledger/services/payment_methods.py
"""
Payment-method lifecycle.

Transactions store the payment method *name*, so:
- a rename cascades to transactions and recurring expenses
- delete is a soft delete (is_active=False) after an optional migration
- exactly one default at a time (cleared and set in the same DB transaction)
"""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import IntegrityError

from ledger.errors import ConflictError, NotFoundError, ValidationError
from ledger.models import PaymentMethod, PaymentMethodType
from ledger.repositories.container import Repositories
from ledger.repositories.transactions import TransactionFilter

logger = logging.getLogger("ledger.payment_methods")

UPDATABLE_FIELDS = ("name", "type", "icon", "color", "last_4_digits", "sort_order")


def _get(repos: Repositories, method_id: int) -> PaymentMethod:
    method = repos.payment_methods.get(method_id)
    if method is None:
        raise NotFoundError("Payment method", method_id)
    return method


def _check_last4(value: Optional[str]) -> None:
    if value is not None and value != "" and (len(value) != 4 or not value.isdigit()):
        raise ValidationError.for_field("last_4_digits", "last_4_digits must be exactly 4 digits")


def list_payment_methods(repos: Repositories, *, active_only: bool = True) -> List[Dict[str, Any]]:
    usage = {
        row["payment_method"]: row
        for row in repos.transactions.stats_by_payment_method(TransactionFilter())
        if row["payment_method"]
    }
    out = []
    for method in repos.payment_methods.list(active_only=active_only):
        stats = usage.get(method.name, {})
        out.append(
            {
                **method.model_dump(),
                "usage_count": stats.get("count", 0),
                "last_used": stats.get("last_used"),
            }
        )
    return out


def get_payment_method(repos: Repositories, method_id: int) -> PaymentMethod:
    return _get(repos, method_id)


def create_payment_method(
    repos: Repositories,
    *,
    name: str,
    type: PaymentMethodType = PaymentMethodType.other,
    icon: Optional[str] = None,
    color: Optional[str] = None,
    last_4_digits: Optional[str] = None,
    is_default: bool = False,
    sort_order: int = 0,
) -> PaymentMethod:
    name = (name or "").strip()
    if not name:
        raise ValidationError.for_field("name", "name is required")
    _check_last4(last_4_digits)
    if repos.payment_methods.get_by_name(name) is not None:
        raise ConflictError(f'Payment method "{name}" already exists')

    try:
        if is_default:
            repos.payment_methods.clear_default()
        method = repos.payment_methods.add(
            PaymentMethod(
                name=name,
                type=PaymentMethodType(type),
                icon=icon,
                color=color,
                last_4_digits=last_4_digits or None,
                is_default=is_default,
                sort_order=sort_order,
            )
        )
        repos.commit()
    except IntegrityError:
        repos.rollback()
        raise ConflictError(f'Payment method "{name}" already exists')
    repos.refresh(method)
    return method


def update_payment_method(
    repos: Repositories, method_id: int, changes: Dict[str, Any]
) -> Dict[str, Any]:
    """Partial update; a rename moves every transaction / recurring expense to the new name."""
    method = _get(repos, method_id)
    clean = {k: v for k, v in changes.items() if k in UPDATABLE_FIELDS and v is not None}
    if "last_4_digits" in clean:
        _check_last4(clean["last_4_digits"])
    if "type" in clean:
        clean["type"] = PaymentMethodType(clean["type"])

    renamed = 0
    if "name" in clean:
        new_name = str(clean["name"]).strip()
        if not new_name:
            raise ValidationError.for_field("name", "name cannot be empty")
        clean["name"] = new_name
        if new_name != method.name:
            other = repos.payment_methods.get_by_name(new_name)
            if other is not None:
                raise ConflictError(f'Payment method "{new_name}" already exists')
            renamed = repos.transactions.migrate_payment_method(method.name, new_name)
            repos.recurring.migrate_payment_method(method.name, new_name)

    method = repos.payment_methods.update(method, clean)
    repos.commit()
    repos.refresh(method)
    return {"payment_method": method, "renamed_transactions": renamed}


def set_default(repos: Repositories, method_id: int) -> PaymentMethod:
    """Make this the only default. Inactive methods can't be default."""
    method = _get(repos, method_id)
    if not method.is_active:
        raise ConflictError("An inactive payment method cannot be the default")
    repos.payment_methods.clear_default()
    method = repos.payment_methods.update(method, {"is_default": True})
    repos.commit()
    repos.refresh(method)
    return method


def usage_detail(repos: Repositories, method_id: int) -> Dict[str, Any]:
    method = _get(repos, method_id)
    flt = TransactionFilter(payment_method=method.name)
    stats = repos.transactions.stats(flt)
    by_category = sorted(
        repos.transactions.stats_by_category(flt), key=lambda r: r["count"], reverse=True
    )
    top = by_category[0] if by_category else None
    return {
        "id": method.id,
        "name": method.name,
        "total_transactions": stats["count"],
        "total_amount": stats["total_amount"],
        "avg_amount": stats["avg_amount"].quantize(Decimal("0.01")),
        "last_used": stats["last_date"],
        "most_used_category": top["category"] if top else None,
        "most_used_category_count": top["count"] if top else 0,
    }


def delete_payment_method(
    repos: Repositories,
    method_id: int,
    migrate_to_id: Optional[int] = None,
    *,
    reassign_default: bool = False,
) -> Dict[str, Any]:
    """
    Soft delete: is_active=False, is_default=False.

    Plain words:
    - With migrate_to_id (active, different) every transaction using this name moves first.
    - Without a target, a method still referenced by transactions or recurring
      expenses can't be deleted.
    - With a target, recurring expenses move along with the transactions.
    - Deleting the default leaves no default, unless reassign_default is set
      (then the migration target becomes the default).
    """
    method = _get(repos, method_id)
    if not method.is_active:
        raise NotFoundError("Payment method", method_id)

    target: Optional[PaymentMethod] = None
    migrated = 0
    if migrate_to_id is not None:
        if migrate_to_id == method_id:
            raise ValidationError.for_field(
                "migrate_to_id", "migration target must differ from the deleted method"
            )
        target = repos.payment_methods.get(migrate_to_id)
        if target is None or not target.is_active:
            raise ValidationError.for_field(
                "migrate_to_id", "migration target must be an active payment method"
            )
        migrated = repos.transactions.migrate_payment_method(method.name, target.name)
        repos.recurring.migrate_payment_method(method.name, target.name)
    else:
        in_use = repos.transactions.count_by_payment_method(method.name, include_deleted=True)
        in_use_recurring = repos.recurring.count_by_payment_method(method.name)
        if in_use or in_use_recurring:
            raise ConflictError(
                f'Payment method "{method.name}" is used by {in_use} transactions and '
                f"{in_use_recurring} recurring expenses; pass migrate_to_id to move them"
            )

    was_default = method.is_default
    repos.payment_methods.update(method, {"is_active": False, "is_default": False})
    if was_default and reassign_default and target is not None:
        repos.payment_methods.update(target, {"is_default": True})
    repos.commit()

    logger.info("payment method %s deactivated; moved %d transactions", method.name, migrated)
    return {
        "deleted_id": method_id,
        "migrated_to": target.id if target else None,
        "affected_transactions": migrated,
        "default_reassigned": bool(was_default and reassign_default and target is not None),
    }
