# ledger/repositories/budgets.py
from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from sqlmodel import col, select

from ledger.models import Budget, BudgetSuggestion
from ledger.repositories.base import SqlRepository


class BudgetRepository(ABC):
    @abstractmethod
    def get(self, budget_id: int) -> Optional[Budget]: ...

    @abstractmethod
    def find(self, year: int, month: int, category_key: Optional[str]) -> Optional[Budget]: ...

    @abstractmethod
    def list_for_month(self, year: int, month: int, *, active_only: bool = True) -> List[Budget]: ...

    @abstractmethod
    def list_for_category(self, category_key: Optional[str]) -> List[Budget]: ...

    @abstractmethod
    def add(self, budget: Budget) -> Budget: ...

    @abstractmethod
    def update(self, budget: Budget, changes: Dict[str, Any]) -> Budget: ...

    @abstractmethod
    def delete(self, budget: Budget) -> None: ...

    @abstractmethod
    def delete_for_category(self, category_key: str) -> int: ...

    # ---- suggestions ----

    @abstractmethod
    def find_suggestion(
        self, year: int, month: int, category_key: str
    ) -> Optional[BudgetSuggestion]: ...

    @abstractmethod
    def list_suggestions(
        self, year: int, month: int, *, active_only: bool = True
    ) -> List[BudgetSuggestion]: ...

    @abstractmethod
    def save_suggestion(self, suggestion: BudgetSuggestion) -> BudgetSuggestion: ...


class SqlBudgetRepository(SqlRepository, BudgetRepository):
    def get(self, budget_id: int) -> Optional[Budget]:
        return self.session.get(Budget, budget_id)

    def find(self, year: int, month: int, category_key: Optional[str]) -> Optional[Budget]:
        stmt = select(Budget).where(Budget.year == year, Budget.month == month)
        if category_key is None:
            stmt = stmt.where(col(Budget.category_key).is_(None))
        else:
            stmt = stmt.where(Budget.category_key == category_key)
        return self.session.exec(stmt).first()

    def list_for_month(self, year: int, month: int, *, active_only: bool = True) -> List[Budget]:
        stmt = select(Budget).where(Budget.year == year, Budget.month == month)
        if active_only:
            stmt = stmt.where(Budget.is_active)
        # total budget (NULL key) first, then categories alphabetically
        stmt = stmt.order_by(
            col(Budget.category_key).is_not(None), col(Budget.category_key).asc()
        )
        return list(self.session.exec(stmt).all())

    def list_for_category(self, category_key: Optional[str]) -> List[Budget]:
        stmt = select(Budget)
        if category_key is None:
            stmt = stmt.where(col(Budget.category_key).is_(None))
        else:
            stmt = stmt.where(Budget.category_key == category_key)
        stmt = stmt.order_by(col(Budget.year).desc(), col(Budget.month).desc())
        return list(self.session.exec(stmt).all())

    def add(self, budget: Budget) -> Budget:
        return self._save(budget)

    def update(self, budget: Budget, changes: Dict[str, Any]) -> Budget:
        return self._apply(budget, changes)

    def delete(self, budget: Budget) -> None:
        self.session.delete(budget)
        self.session.flush()

    def delete_for_category(self, category_key: str) -> int:
        budgets = self.session.exec(
            select(Budget).where(Budget.category_key == category_key)
        ).all()
        suggestions = self.session.exec(
            select(BudgetSuggestion).where(BudgetSuggestion.category_key == category_key)
        ).all()
        for row in [*budgets, *suggestions]:
            self.session.delete(row)
        self.session.flush()
        return len(budgets)

    def find_suggestion(
        self, year: int, month: int, category_key: str
    ) -> Optional[BudgetSuggestion]:
        return self.session.exec(
            select(BudgetSuggestion).where(
                BudgetSuggestion.year == year,
                BudgetSuggestion.month == month,
                BudgetSuggestion.category_key == category_key,
            )
        ).first()

    def list_suggestions(
        self, year: int, month: int, *, active_only: bool = True
    ) -> List[BudgetSuggestion]:
        stmt = select(BudgetSuggestion).where(
            BudgetSuggestion.year == year, BudgetSuggestion.month == month
        )
        if active_only:
            stmt = stmt.where(BudgetSuggestion.is_active)
        stmt = stmt.order_by(col(BudgetSuggestion.suggested_amount).desc())
        return list(self.session.exec(stmt).all())

    def save_suggestion(self, suggestion: BudgetSuggestion) -> BudgetSuggestion:
        return self._save(suggestion)
