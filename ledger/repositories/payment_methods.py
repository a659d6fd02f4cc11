# ledger/repositories/payment_methods.py
from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from sqlmodel import col, select

from ledger.models import PaymentMethod, utcnow
from ledger.repositories.base import SqlRepository


class PaymentMethodRepository(ABC):
    @abstractmethod
    def get(self, method_id: int) -> Optional[PaymentMethod]: ...

    @abstractmethod
    def get_by_name(self, name: str) -> Optional[PaymentMethod]: ...

    @abstractmethod
    def list(self, *, active_only: bool = True) -> List[PaymentMethod]: ...

    @abstractmethod
    def add(self, method: PaymentMethod) -> PaymentMethod: ...

    @abstractmethod
    def update(self, method: PaymentMethod, changes: Dict[str, Any]) -> PaymentMethod: ...

    @abstractmethod
    def clear_default(self) -> int: ...


class SqlPaymentMethodRepository(SqlRepository, PaymentMethodRepository):
    def get(self, method_id: int) -> Optional[PaymentMethod]:
        return self.session.get(PaymentMethod, method_id)

    def get_by_name(self, name: str) -> Optional[PaymentMethod]:
        return self.session.exec(
            select(PaymentMethod).where(PaymentMethod.name == name)
        ).first()

    def list(self, *, active_only: bool = True) -> List[PaymentMethod]:
        stmt = select(PaymentMethod)
        if active_only:
            stmt = stmt.where(PaymentMethod.is_active)
        stmt = stmt.order_by(
            col(PaymentMethod.is_default).desc(),
            col(PaymentMethod.sort_order).asc(),
            col(PaymentMethod.id).asc(),
        )
        return list(self.session.exec(stmt).all())

    def add(self, method: PaymentMethod) -> PaymentMethod:
        return self._save(method)

    def update(self, method: PaymentMethod, changes: Dict[str, Any]) -> PaymentMethod:
        return self._apply(method, changes)

    def clear_default(self) -> int:
        rows = self.session.exec(
            select(PaymentMethod).where(PaymentMethod.is_default)
        ).all()
        for row in rows:
            row.is_default = False
            row.updated_at = utcnow()
            self.session.add(row)
        # flush before the new default is set so the partial unique index never sees two
        self.session.flush()
        return len(rows)
