# ledger/repositories/transactions.py
from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Any, Dict, List, Optional

from sqlalchemy import and_, or_
from sqlmodel import col, func, select

from ledger.models import Transaction, TransactionType, utcnow
from ledger.repositories.base import Page, SqlRepository

SORT_FIELDS = ("date", "amount", "created_at")


def _dec(value) -> Decimal:
    # SQLite hands back floats for aggregates; str() keeps the printed digits
    return Decimal(str(value)) if value is not None else Decimal("0")


@dataclass
class TransactionFilter:
    type: Optional[TransactionType] = None
    category: Optional[str] = None
    start_date: Optional[date] = None  # inclusive
    end_date: Optional[date] = None  # inclusive
    currency: Optional[str] = None
    payment_method: Optional[str] = None
    merchant: Optional[str] = None
    subcategory: Optional[str] = None
    min_amount: Optional[Decimal] = None
    max_amount: Optional[Decimal] = None
    include_deleted: bool = False
    fixed: Optional[bool] = None  # True: only recurring/auto rows, False: only variable


def fixed_expense_condition():
    """SQL side of the fixed-expense predicate (see services.reports.is_fixed)."""
    return or_(
        col(Transaction.recurring_expense_id).is_not(None),
        col(Transaction.is_auto_generated).is_(True),
    )


def variable_expense_condition():
    return and_(
        col(Transaction.recurring_expense_id).is_(None),
        col(Transaction.is_auto_generated).is_(False),
    )


class TransactionRepository(ABC):
    @abstractmethod
    def get(self, txn_id: int, *, include_deleted: bool = False) -> Optional[Transaction]: ...

    @abstractmethod
    def find_many(
        self,
        flt: TransactionFilter,
        *,
        sort_by: str = "date",
        sort_order: str = "desc",
        page: int = 1,
        page_size: int = 20,
    ) -> Page[Transaction]: ...

    @abstractmethod
    def find_all(self, flt: TransactionFilter) -> List[Transaction]: ...

    @abstractmethod
    def add(self, txn: Transaction) -> Transaction: ...

    @abstractmethod
    def update(self, txn: Transaction, changes: Dict[str, Any]) -> Transaction: ...

    @abstractmethod
    def soft_delete(self, txn: Transaction) -> None: ...

    @abstractmethod
    def restore(self, txn: Transaction) -> None: ...

    @abstractmethod
    def hard_delete(self, txn: Transaction) -> None: ...

    @abstractmethod
    def stats(self, flt: TransactionFilter) -> Dict[str, Any]: ...

    @abstractmethod
    def stats_by_category(self, flt: TransactionFilter) -> List[Dict[str, Any]]: ...

    @abstractmethod
    def stats_by_payment_method(self, flt: TransactionFilter) -> List[Dict[str, Any]]: ...

    @abstractmethod
    def count_by_category(self, key: str, *, include_deleted: bool = True) -> int: ...

    @abstractmethod
    def migrate_category(self, old_key: str, new_key: str) -> int: ...

    @abstractmethod
    def count_by_payment_method(self, name: str, *, include_deleted: bool = True) -> int: ...

    @abstractmethod
    def migrate_payment_method(self, old_name: str, new_name: str) -> int: ...

    @abstractmethod
    def detach_recurring(self, recurring_expense_id: int) -> int: ...


class SqlTransactionRepository(SqlRepository, TransactionRepository):
    def get(self, txn_id: int, *, include_deleted: bool = False) -> Optional[Transaction]:
        txn = self.session.get(Transaction, txn_id)
        if txn is None or (txn.deleted_at is not None and not include_deleted):
            return None
        return txn

    def _conditions(self, flt: TransactionFilter) -> list:
        conds = []
        if not flt.include_deleted:
            conds.append(col(Transaction.deleted_at).is_(None))
        if flt.type is not None:
            conds.append(Transaction.type == flt.type)
        if flt.category:
            conds.append(Transaction.category == flt.category)
        if flt.start_date is not None:
            conds.append(Transaction.date >= flt.start_date)
        if flt.end_date is not None:
            conds.append(Transaction.date <= flt.end_date)
        if flt.currency:
            conds.append(Transaction.currency == flt.currency)
        if flt.payment_method:
            conds.append(Transaction.payment_method == flt.payment_method)
        if flt.merchant:
            conds.append(Transaction.merchant == flt.merchant)
        if flt.subcategory:
            conds.append(Transaction.subcategory == flt.subcategory)
        if flt.min_amount is not None:
            conds.append(Transaction.amount >= flt.min_amount)
        if flt.max_amount is not None:
            conds.append(Transaction.amount <= flt.max_amount)
        if flt.fixed is True:
            conds.append(fixed_expense_condition())
        elif flt.fixed is False:
            conds.append(variable_expense_condition())
        return conds

    def find_many(
        self,
        flt: TransactionFilter,
        *,
        sort_by: str = "date",
        sort_order: str = "desc",
        page: int = 1,
        page_size: int = 20,
    ) -> Page[Transaction]:
        conds = self._conditions(flt)
        if sort_by not in SORT_FIELDS:
            sort_by = "date"
        column = getattr(Transaction, sort_by)
        order = column.asc() if sort_order == "asc" else column.desc()
        # id as tie-breaker keeps pages stable
        tie = col(Transaction.id).asc() if sort_order == "asc" else col(Transaction.id).desc()

        total = self.session.exec(
            select(func.count()).select_from(Transaction).where(*conds)
        ).one()
        rows = self.session.exec(
            select(Transaction)
            .where(*conds)
            .order_by(order, tie)
            .offset((page - 1) * page_size)
            .limit(page_size)
        ).all()
        return Page(items=list(rows), total=total, page=page, page_size=page_size)

    def find_all(self, flt: TransactionFilter) -> List[Transaction]:
        stmt = (
            select(Transaction)
            .where(*self._conditions(flt))
            .order_by(col(Transaction.date).asc(), col(Transaction.id).asc())
        )
        return list(self.session.exec(stmt).all())

    def add(self, txn: Transaction) -> Transaction:
        return self._save(txn)

    def update(self, txn: Transaction, changes: Dict[str, Any]) -> Transaction:
        return self._apply(txn, changes)

    def soft_delete(self, txn: Transaction) -> None:
        self._apply(txn, {"deleted_at": utcnow()})

    def restore(self, txn: Transaction) -> None:
        self._apply(txn, {"deleted_at": None})

    def hard_delete(self, txn: Transaction) -> None:
        self.session.delete(txn)
        self.session.flush()

    def stats(self, flt: TransactionFilter) -> Dict[str, Any]:
        count, total, avg, low, high, first, last = self.session.exec(
            select(
                func.count(Transaction.id),
                func.sum(Transaction.amount),
                func.avg(Transaction.amount),
                func.min(Transaction.amount),
                func.max(Transaction.amount),
                func.min(Transaction.date),
                func.max(Transaction.date),
            ).where(*self._conditions(flt))
        ).one()
        return {
            "count": count or 0,
            "total_amount": _dec(total),
            "avg_amount": _dec(avg),
            "min_amount": _dec(low),
            "max_amount": _dec(high),
            "first_date": first,
            "last_date": last,
        }

    def stats_by_category(self, flt: TransactionFilter) -> List[Dict[str, Any]]:
        rows = self.session.exec(
            select(
                Transaction.category,
                func.count(Transaction.id),
                func.sum(Transaction.amount),
                func.max(Transaction.date),
            )
            .where(*self._conditions(flt))
            .group_by(Transaction.category)
        ).all()
        return [
            {
                "category": category,
                "count": count,
                "total_amount": _dec(total),
                "last_used": last_used,
            }
            for category, count, total, last_used in rows
        ]

    def stats_by_payment_method(self, flt: TransactionFilter) -> List[Dict[str, Any]]:
        rows = self.session.exec(
            select(
                Transaction.payment_method,
                func.count(Transaction.id),
                func.sum(Transaction.amount),
                func.max(Transaction.date),
            )
            .where(*self._conditions(flt))
            .group_by(Transaction.payment_method)
        ).all()
        return [
            {
                "payment_method": name,
                "count": count,
                "total_amount": _dec(total),
                "last_used": last_used,
            }
            for name, count, total, last_used in rows
        ]

    def count_by_category(self, key: str, *, include_deleted: bool = True) -> int:
        stmt = select(func.count()).select_from(Transaction).where(Transaction.category == key)
        if not include_deleted:
            stmt = stmt.where(col(Transaction.deleted_at).is_(None))
        return self.session.exec(stmt).one()

    def migrate_category(self, old_key: str, new_key: str) -> int:
        # soft-deleted rows move too: a restore must not resurrect a dangling key
        rows = self.session.exec(
            select(Transaction).where(Transaction.category == old_key)
        ).all()
        now = utcnow()
        for txn in rows:
            txn.category = new_key
            txn.updated_at = now
            self.session.add(txn)
        self.session.flush()
        return len(rows)

    def count_by_payment_method(self, name: str, *, include_deleted: bool = True) -> int:
        stmt = (
            select(func.count())
            .select_from(Transaction)
            .where(Transaction.payment_method == name)
        )
        if not include_deleted:
            stmt = stmt.where(col(Transaction.deleted_at).is_(None))
        return self.session.exec(stmt).one()

    def migrate_payment_method(self, old_name: str, new_name: str) -> int:
        rows = self.session.exec(
            select(Transaction).where(Transaction.payment_method == old_name)
        ).all()
        now = utcnow()
        for txn in rows:
            txn.payment_method = new_name
            txn.updated_at = now
            self.session.add(txn)
        self.session.flush()
        return len(rows)

    def detach_recurring(self, recurring_expense_id: int) -> int:
        # generated rows stay "fixed" through is_auto_generated
        rows = self.session.exec(
            select(Transaction).where(Transaction.recurring_expense_id == recurring_expense_id)
        ).all()
        for txn in rows:
            txn.recurring_expense_id = None
            txn.is_auto_generated = True
            self.session.add(txn)
        self.session.flush()
        return len(rows)
