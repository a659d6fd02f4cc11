# ledger/repositories/recurring.py
from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import date
from typing import Any, Dict, List, Optional

from sqlmodel import col, func, select

from ledger.models import (
    GenerationStatus,
    RecurringExpense,
    RecurringGenerationLog,
    utcnow,
)
from ledger.repositories.base import SqlRepository


class RecurringExpenseRepository(ABC):
    @abstractmethod
    def get(self, expense_id: int) -> Optional[RecurringExpense]: ...

    @abstractmethod
    def list(self, *, active_only: bool = False) -> List[RecurringExpense]: ...

    @abstractmethod
    def list_due(self, today: date) -> List[RecurringExpense]: ...

    @abstractmethod
    def add(self, expense: RecurringExpense) -> RecurringExpense: ...

    @abstractmethod
    def update(self, expense: RecurringExpense, changes: Dict[str, Any]) -> RecurringExpense: ...

    @abstractmethod
    def delete(self, expense: RecurringExpense) -> None: ...

    @abstractmethod
    def migrate_category(self, old_key: str, new_key: str) -> int: ...

    @abstractmethod
    def migrate_payment_method(self, old_name: str, new_name: str) -> int: ...

    @abstractmethod
    def count_by_category(self, key: str) -> int: ...

    @abstractmethod
    def count_by_payment_method(self, name: str) -> int: ...

    # ---- generation log ----

    @abstractmethod
    def has_success(self, expense_id: int, on: date) -> bool: ...

    @abstractmethod
    def add_log(self, log: RecurringGenerationLog) -> RecurringGenerationLog: ...

    @abstractmethod
    def history(
        self, *, limit: int = 50, expense_id: Optional[int] = None
    ) -> List[RecurringGenerationLog]: ...

    @abstractmethod
    def log_counts_on(self, on: date) -> Dict[str, int]: ...

    @abstractmethod
    def delete_logs(self, expense_id: int) -> int: ...

    @abstractmethod
    def detach_transaction(self, transaction_id: int) -> int: ...


class SqlRecurringExpenseRepository(SqlRepository, RecurringExpenseRepository):
    def get(self, expense_id: int) -> Optional[RecurringExpense]:
        return self.session.get(RecurringExpense, expense_id)

    def list(self, *, active_only: bool = False) -> List[RecurringExpense]:
        stmt = select(RecurringExpense)
        if active_only:
            stmt = stmt.where(RecurringExpense.is_active)
        stmt = stmt.order_by(
            col(RecurringExpense.next_generate).asc(), col(RecurringExpense.id).asc()
        )
        return list(self.session.exec(stmt).all())

    def list_due(self, today: date) -> List[RecurringExpense]:
        stmt = (
            select(RecurringExpense)
            .where(
                RecurringExpense.is_active,
                col(RecurringExpense.next_generate).is_not(None),
                col(RecurringExpense.next_generate) <= today,
            )
            .order_by(col(RecurringExpense.next_generate).asc(), col(RecurringExpense.id).asc())
        )
        return list(self.session.exec(stmt).all())

    def add(self, expense: RecurringExpense) -> RecurringExpense:
        return self._save(expense)

    def update(self, expense: RecurringExpense, changes: Dict[str, Any]) -> RecurringExpense:
        return self._apply(expense, changes)

    def delete(self, expense: RecurringExpense) -> None:
        self.session.delete(expense)
        self.session.flush()

    def _migrate(self, column: str, old: str, new: str) -> int:
        rows = self.session.exec(
            select(RecurringExpense).where(getattr(RecurringExpense, column) == old)
        ).all()
        now = utcnow()
        for row in rows:
            setattr(row, column, new)
            row.updated_at = now
            self.session.add(row)
        self.session.flush()
        return len(rows)

    def migrate_category(self, old_key: str, new_key: str) -> int:
        return self._migrate("category", old_key, new_key)

    def migrate_payment_method(self, old_name: str, new_name: str) -> int:
        return self._migrate("payment_method", old_name, new_name)

    def count_by_category(self, key: str) -> int:
        return self.session.exec(
            select(func.count())
            .select_from(RecurringExpense)
            .where(RecurringExpense.category == key)
        ).one()

    def count_by_payment_method(self, name: str) -> int:
        return self.session.exec(
            select(func.count())
            .select_from(RecurringExpense)
            .where(RecurringExpense.payment_method == name)
        ).one()

    def has_success(self, expense_id: int, on: date) -> bool:
        count = self.session.exec(
            select(func.count())
            .select_from(RecurringGenerationLog)
            .where(
                RecurringGenerationLog.recurring_expense_id == expense_id,
                RecurringGenerationLog.generation_date == on,
                RecurringGenerationLog.status == GenerationStatus.success,
            )
        ).one()
        return count > 0

    def add_log(self, log: RecurringGenerationLog) -> RecurringGenerationLog:
        return self._save(log)

    def history(
        self, *, limit: int = 50, expense_id: Optional[int] = None
    ) -> List[RecurringGenerationLog]:
        stmt = select(RecurringGenerationLog)
        if expense_id is not None:
            stmt = stmt.where(RecurringGenerationLog.recurring_expense_id == expense_id)
        stmt = stmt.order_by(
            col(RecurringGenerationLog.created_at).desc(),
            col(RecurringGenerationLog.id).desc(),
        ).limit(limit)
        return list(self.session.exec(stmt).all())

    def log_counts_on(self, on: date) -> Dict[str, int]:
        rows = self.session.exec(
            select(RecurringGenerationLog.status, func.count(RecurringGenerationLog.id))
            .where(RecurringGenerationLog.generation_date == on)
            .group_by(RecurringGenerationLog.status)
        ).all()
        counts = {status.value: 0 for status in GenerationStatus}
        for status, count in rows:
            key = status.value if isinstance(status, GenerationStatus) else str(status)
            counts[key] = count
        return counts

    def delete_logs(self, expense_id: int) -> int:
        rows = self.session.exec(
            select(RecurringGenerationLog).where(
                RecurringGenerationLog.recurring_expense_id == expense_id
            )
        ).all()
        for row in rows:
            self.session.delete(row)
        self.session.flush()
        return len(rows)

    def detach_transaction(self, transaction_id: int) -> int:
        rows = self.session.exec(
            select(RecurringGenerationLog).where(
                RecurringGenerationLog.transaction_id == transaction_id
            )
        ).all()
        for row in rows:
            row.transaction_id = None
            self.session.add(row)
        self.session.flush()
        return len(rows)
