# ledger/models.py
import datetime as dt
from decimal import Decimal
from enum import Enum  # small enums for clarity
from typing import Any, Dict, List, Optional  # nullable fields

from sqlalchemy import JSON, Column, Index, text
from sqlmodel import (  # SQLModel base + columns
    Field,
    SQLModel,
    UniqueConstraint,
)


def utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


class TransactionType(str, Enum):
    expense = "expense"  # stored as TEXT
    income = "income"


class CategoryType(str, Enum):
    expense = "expense"
    income = "income"
    both = "both"


class PaymentMethodType(str, Enum):
    credit_card = "credit_card"
    debit_card = "debit_card"
    alipay = "alipay"
    wechat = "wechat"
    cash = "cash"
    other = "other"


class Frequency(str, Enum):
    daily = "daily"
    weekly = "weekly"
    monthly = "monthly"


class GenerationStatus(str, Enum):
    success = "success"
    failed = "failed"
    skipped = "skipped"


class GenerationType(str, Enum):
    manual = "manual"
    auto = "auto"


class LogLevel(str, Enum):
    debug = "debug"
    info = "info"
    warn = "warn"
    error = "error"
    fatal = "fatal"


class LogCategory(str, Enum):
    api_request = "api_request"
    user_action = "user_action"
    system = "system"
    error = "error"
    performance = "performance"
    security = "security"
    data_sync = "data_sync"


class Transaction(SQLModel, table=True):
    """
    A single real-life entry of money moving in/out.
    Rows are soft-deleted (deleted_at set) and stay restorable until hard-deleted.
    """

    __tablename__ = "transactions"

    id: Optional[int] = Field(default=None, primary_key=True)
    type: TransactionType = Field(index=True)  # income | expense
    category: str = Field(index=True)  # Category.key
    amount: Decimal = Field(max_digits=12, decimal_places=2)  # always > 0
    note: Optional[str] = None
    date: dt.date = Field(index=True)
    currency: str = Field(default="CNY")

    payment_method: Optional[str] = Field(default=None, index=True)  # PaymentMethod.name
    merchant: Optional[str] = Field(default=None, index=True)
    subcategory: Optional[str] = None
    product: Optional[str] = None

    # fixed expenses: created by the recurring generator
    recurring_expense_id: Optional[int] = Field(
        default=None, foreign_key="recurring_expenses.id", index=True
    )
    is_auto_generated: bool = Field(default=False)

    deleted_at: Optional[dt.datetime] = Field(default=None, index=True)
    created_at: dt.datetime = Field(default_factory=utcnow)
    updated_at: dt.datetime = Field(default_factory=utcnow)


class Category(SQLModel, table=True):
    __tablename__ = "categories"
    __table_args__ = (UniqueConstraint("key", name="uq_categories_key"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    key: str = Field(index=True)  # stable identifier referenced by transactions
    label: str
    icon: Optional[str] = None
    color: Optional[str] = None
    type: CategoryType = Field(default=CategoryType.expense)
    is_system: bool = Field(default=False)  # seeded categories can't be deleted
    is_active: bool = Field(default=True)
    sort_order: int = Field(default=0)
    created_at: dt.datetime = Field(default_factory=utcnow)
    updated_at: dt.datetime = Field(default_factory=utcnow)


class PaymentMethod(SQLModel, table=True):
    __tablename__ = "payment_methods"
    __table_args__ = (
        UniqueConstraint("name", name="uq_payment_methods_name"),
        # at most one default at a time
        Index(
            "uq_payment_methods_single_default",
            "is_default",
            unique=True,
            sqlite_where=text("is_default = 1"),
            postgresql_where=text("is_default"),
        ),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str
    type: PaymentMethodType = Field(default=PaymentMethodType.other)
    icon: Optional[str] = None
    color: Optional[str] = None
    last_4_digits: Optional[str] = Field(default=None, max_length=4)
    is_default: bool = Field(default=False)
    is_active: bool = Field(default=True)  # delete = deactivate
    sort_order: int = Field(default=0)
    created_at: dt.datetime = Field(default_factory=utcnow)
    updated_at: dt.datetime = Field(default_factory=utcnow)


class RecurringExpense(SQLModel, table=True):
    """
    Template that periodically produces concrete expense transactions.

    frequency_config:
    - monthly: {"day_of_month": 1..31}  (clamped to the month's last day)
    - weekly:  {"days_of_week": [0..6]} (0 = Sunday)
    - daily:   {}
    """

    __tablename__ = "recurring_expenses"

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str
    amount: Decimal = Field(max_digits=12, decimal_places=2)
    category: str = Field(index=True)
    payment_method: Optional[str] = None
    frequency: Frequency = Field(index=True)
    frequency_config: Dict[str, Any] = Field(
        default_factory=dict, sa_column=Column(JSON, nullable=False)
    )
    start_date: dt.date
    end_date: Optional[dt.date] = None  # null = open-ended
    skip_holidays: bool = Field(default=False)
    is_active: bool = Field(default=True, index=True)
    last_generated: Optional[dt.date] = None
    next_generate: Optional[dt.date] = Field(default=None, index=True)  # null = finished
    created_at: dt.datetime = Field(default_factory=utcnow)
    updated_at: dt.datetime = Field(default_factory=utcnow)


class RecurringGenerationLog(SQLModel, table=True):
    """Append-only audit row, one per generation attempt."""

    __tablename__ = "recurring_generation_logs"
    __table_args__ = (
        # one generated transaction per recurring expense per day
        Index(
            "uq_generation_success_per_day",
            "recurring_expense_id",
            "generation_date",
            unique=True,
            sqlite_where=text("status = 'success'"),
            postgresql_where=text("status = 'success'"),
        ),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    recurring_expense_id: int = Field(foreign_key="recurring_expenses.id", index=True)
    generation_date: dt.date = Field(index=True)
    transaction_id: Optional[int] = Field(default=None, foreign_key="transactions.id")
    status: GenerationStatus
    reason: Optional[str] = None
    created_at: dt.datetime = Field(default_factory=utcnow)


class Holiday(SQLModel, table=True):
    """Local copy of the public holiday calendar (is_holiday=False: make-up workday)."""

    __tablename__ = "holidays"
    __table_args__ = (UniqueConstraint("date", name="uq_holidays_date"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    date: dt.date = Field(index=True)
    name: Optional[str] = None
    is_holiday: bool = Field(default=True)
    source: str = Field(default="timor.tech")


class WeeklyReport(SQLModel, table=True):
    __tablename__ = "weekly_reports"
    __table_args__ = (
        UniqueConstraint("week_start_date", name="uq_weekly_reports_week_start"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    week_start_date: dt.date = Field(index=True)  # period key
    week_end_date: dt.date
    total_expenses: Decimal = Field(default=Decimal("0"), max_digits=12, decimal_places=2)
    transaction_count: int = 0
    average_transaction: Decimal = Field(default=Decimal("0"), max_digits=12, decimal_places=2)
    average_daily_expense: Decimal = Field(default=Decimal("0"), max_digits=12, decimal_places=2)
    category_breakdown: List[Dict[str, Any]] = Field(
        default_factory=list, sa_column=Column(JSON, nullable=False)
    )
    top_merchants: List[Dict[str, Any]] = Field(
        default_factory=list, sa_column=Column(JSON, nullable=False)
    )
    payment_method_stats: List[Dict[str, Any]] = Field(
        default_factory=list, sa_column=Column(JSON, nullable=False)
    )
    week_over_week_change: Optional[Decimal] = Field(
        default=None, max_digits=12, decimal_places=2
    )
    week_over_week_percentage: Optional[float] = None
    ai_insights: Optional[str] = None
    generation_type: GenerationType = Field(default=GenerationType.manual)
    generated_at: dt.datetime = Field(default_factory=utcnow)
    created_at: dt.datetime = Field(default_factory=utcnow)
    updated_at: dt.datetime = Field(default_factory=utcnow)


class MonthlyReport(SQLModel, table=True):
    __tablename__ = "monthly_reports"
    __table_args__ = (
        UniqueConstraint("year", "month", name="uq_monthly_reports_year_month"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    year: int = Field(index=True)  # period key (year, month)
    month: int
    total_expenses: Decimal = Field(default=Decimal("0"), max_digits=12, decimal_places=2)
    fixed_expenses: Decimal = Field(default=Decimal("0"), max_digits=12, decimal_places=2)
    variable_expenses: Decimal = Field(default=Decimal("0"), max_digits=12, decimal_places=2)
    transaction_count: int = 0
    fixed_transaction_count: int = 0
    variable_transaction_count: int = 0
    average_transaction: Decimal = Field(default=Decimal("0"), max_digits=12, decimal_places=2)
    average_daily_expense: Decimal = Field(default=Decimal("0"), max_digits=12, decimal_places=2)
    category_breakdown: List[Dict[str, Any]] = Field(
        default_factory=list, sa_column=Column(JSON, nullable=False)
    )
    fixed_expenses_breakdown: List[Dict[str, Any]] = Field(
        default_factory=list, sa_column=Column(JSON, nullable=False)
    )
    top_merchants: List[Dict[str, Any]] = Field(
        default_factory=list, sa_column=Column(JSON, nullable=False)
    )
    payment_method_stats: List[Dict[str, Any]] = Field(
        default_factory=list, sa_column=Column(JSON, nullable=False)
    )
    month_over_month_change: Optional[Decimal] = Field(
        default=None, max_digits=12, decimal_places=2
    )
    month_over_month_percentage: Optional[float] = None
    ai_insights: Optional[str] = None
    generation_type: GenerationType = Field(default=GenerationType.manual)
    generated_at: dt.datetime = Field(default_factory=utcnow)
    created_at: dt.datetime = Field(default_factory=utcnow)
    updated_at: dt.datetime = Field(default_factory=utcnow)


class Budget(SQLModel, table=True):
    __tablename__ = "budgets"
    __table_args__ = (
        UniqueConstraint("year", "month", "category_key", name="uq_budgets_period_category"),
        # NULLs are distinct in unique constraints; the total budget needs its own index
        Index(
            "uq_budgets_period_total",
            "year",
            "month",
            unique=True,
            sqlite_where=text("category_key IS NULL"),
            postgresql_where=text("category_key IS NULL"),
        ),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    year: int = Field(index=True)
    month: int = Field(index=True)
    category_key: Optional[str] = Field(default=None, index=True)  # null = total budget
    amount: Decimal = Field(max_digits=12, decimal_places=2)
    alert_threshold: float = Field(default=0.8)  # 0.8 -> warn at 80%
    is_active: bool = Field(default=True)
    created_at: dt.datetime = Field(default_factory=utcnow)
    updated_at: dt.datetime = Field(default_factory=utcnow)


class BudgetSuggestion(SQLModel, table=True):
    __tablename__ = "budget_suggestions"
    __table_args__ = (
        UniqueConstraint(
            "year", "month", "category_key", name="uq_budget_suggestions_period_category"
        ),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    year: int = Field(index=True)
    month: int = Field(index=True)
    category_key: str
    suggested_amount: Decimal = Field(max_digits=12, decimal_places=2)
    confidence_level: str  # high | medium | low
    reason: str
    historical_avg: Decimal = Field(default=Decimal("0"), max_digits=12, decimal_places=2)
    historical_months: int = 0
    trend_direction: str = Field(default="stable")
    calculated_at: dt.datetime = Field(default_factory=utcnow)
    is_active: bool = Field(default=True)


class SystemLog(SQLModel, table=True):
    """Append-only structured log row (observability only, no business logic)."""

    __tablename__ = "system_logs"

    id: Optional[int] = Field(default=None, primary_key=True)
    created_at: dt.datetime = Field(default_factory=utcnow, index=True)
    level: LogLevel = Field(index=True)
    category: LogCategory = Field(index=True)
    trace_id: Optional[str] = Field(default=None, index=True)
    method: Optional[str] = None
    path: Optional[str] = None
    status_code: Optional[int] = None
    message: str
    error_code: Optional[str] = None
    error_stack: Optional[str] = None
    # "metadata" is reserved on SQLModel classes, so the attribute is "meta"
    meta: Optional[Dict[str, Any]] = Field(
        default=None, sa_column=Column("metadata", JSON, nullable=True)
    )
    duration_ms: Optional[int] = None
