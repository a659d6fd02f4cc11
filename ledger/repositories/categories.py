# ledger/repositories/categories.py
from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from sqlmodel import col, func, select

from ledger.models import Category, CategoryType, Transaction, TransactionType
from ledger.repositories.base import SqlRepository


class CategoryRepository(ABC):
    @abstractmethod
    def get(self, category_id: int) -> Optional[Category]: ...

    @abstractmethod
    def get_by_key(self, key: str) -> Optional[Category]: ...

    @abstractmethod
    def list(
        self, *, type: Optional[CategoryType] = None, active_only: bool = False
    ) -> List[Category]: ...

    @abstractmethod
    def add(self, category: Category) -> Category: ...

    @abstractmethod
    def update(self, category: Category, changes: Dict[str, Any]) -> Category: ...

    @abstractmethod
    def delete(self, category: Category) -> None: ...

    @abstractmethod
    def frequent_merchants(self, category_key: str, limit: int) -> List[Dict[str, Any]]: ...


class SqlCategoryRepository(SqlRepository, CategoryRepository):
    def get(self, category_id: int) -> Optional[Category]:
        return self.session.get(Category, category_id)

    def get_by_key(self, key: str) -> Optional[Category]:
        return self.session.exec(select(Category).where(Category.key == key)).first()

    def list(
        self, *, type: Optional[CategoryType] = None, active_only: bool = False
    ) -> List[Category]:
        stmt = select(Category)
        if type is not None:
            # "both" categories show up under either side
            stmt = stmt.where(col(Category.type).in_([type, CategoryType.both]))
        if active_only:
            stmt = stmt.where(Category.is_active)
        stmt = stmt.order_by(col(Category.sort_order).asc(), col(Category.id).asc())
        return list(self.session.exec(stmt).all())

    def add(self, category: Category) -> Category:
        return self._save(category)

    def update(self, category: Category, changes: Dict[str, Any]) -> Category:
        return self._apply(category, changes)

    def delete(self, category: Category) -> None:
        self.session.delete(category)
        self.session.flush()

    def frequent_merchants(self, category_key: str, limit: int) -> List[Dict[str, Any]]:
        rows = self.session.exec(
            select(
                Transaction.merchant,
                func.count(Transaction.id),
                func.max(Transaction.date),
            )
            .where(
                Transaction.category == category_key,
                Transaction.type == TransactionType.expense,
                col(Transaction.merchant).is_not(None),
                col(Transaction.deleted_at).is_(None),
            )
            .group_by(Transaction.merchant)
            .order_by(func.count(Transaction.id).desc(), func.max(Transaction.date).desc())
            .limit(limit)
        ).all()
        return [
            {"merchant": merchant, "count": count, "last_used": last_used}
            for merchant, count, last_used in rows
        ]
