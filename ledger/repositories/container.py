# ledger/repositories/container.py
"""
One object holding every repository for a unit of work.

Services receive this instead of a raw Session so they only talk to the
repository interfaces; `commit()` / `rollback()` close the unit of work.
"""

from __future__ import annotations

from dataclasses import dataclass

from sqlmodel import Session

from ledger.repositories.budgets import BudgetRepository, SqlBudgetRepository
from ledger.repositories.categories import CategoryRepository, SqlCategoryRepository
from ledger.repositories.payment_methods import (
    PaymentMethodRepository,
    SqlPaymentMethodRepository,
)
from ledger.repositories.recurring import (
    RecurringExpenseRepository,
    SqlRecurringExpenseRepository,
)
from ledger.repositories.reports import (
    MonthlyReportRepository,
    SqlMonthlyReportRepository,
    SqlWeeklyReportRepository,
    WeeklyReportRepository,
)
from ledger.repositories.system_logs import SqlSystemLogRepository, SystemLogRepository
from ledger.repositories.transactions import (
    SqlTransactionRepository,
    TransactionRepository,
)


@dataclass
class Repositories:
    session: Session
    transactions: TransactionRepository
    categories: CategoryRepository
    payment_methods: PaymentMethodRepository
    recurring: RecurringExpenseRepository
    budgets: BudgetRepository
    weekly_reports: WeeklyReportRepository
    monthly_reports: MonthlyReportRepository
    system_logs: SystemLogRepository

    def commit(self) -> None:
        self.session.commit()

    def rollback(self) -> None:
        self.session.rollback()

    def refresh(self, row) -> None:
        self.session.refresh(row)


def build_repositories(session: Session) -> Repositories:
    """SQL implementations around one session (SQLite or PostgreSQL, per DATABASE_URL)."""
    return Repositories(
        session=session,
        transactions=SqlTransactionRepository(session),
        categories=SqlCategoryRepository(session),
        payment_methods=SqlPaymentMethodRepository(session),
        recurring=SqlRecurringExpenseRepository(session),
        budgets=SqlBudgetRepository(session),
        weekly_reports=SqlWeeklyReportRepository(session),
        monthly_reports=SqlMonthlyReportRepository(session),
        system_logs=SqlSystemLogRepository(session),
    )
