"""initial schema

Revision ID: 0001_initial
Revises:
Create Date: 2025-01-01 00:00:00

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql
import sqlmodel  # noqa: F401

# revision identifiers, used by Alembic.
revision: str = "0001_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

MONEY = sa.Numeric(12, 2)

transaction_type = sa.Enum("expense", "income", name="transactiontype")
category_type = sa.Enum("expense", "income", "both", name="categorytype")
payment_method_type = sa.Enum(
    "credit_card", "debit_card", "alipay", "wechat", "cash", "other", name="paymentmethodtype"
)
frequency = sa.Enum("daily", "weekly", "monthly", name="frequency")
generation_status = sa.Enum("success", "failed", "skipped", name="generationstatus")
log_level = sa.Enum("debug", "info", "warn", "error", "fatal", name="loglevel")
log_category = sa.Enum(
    "api_request",
    "user_action",
    "system",
    "error",
    "performance",
    "security",
    "data_sync",
    name="logcategory",
)


def _generation_type(create: bool = True):
    # shared by both report tables; PostgreSQL must create the type only once
    return postgresql.ENUM("manual", "auto", name="generationtype", create_type=create)


def _timestamps():
    return [
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    ]


def upgrade() -> None:
    op.create_table(
        "categories",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("key", sa.String(), nullable=False),
        sa.Column("label", sa.String(), nullable=False),
        sa.Column("icon", sa.String(), nullable=True),
        sa.Column("color", sa.String(), nullable=True),
        sa.Column("type", category_type, nullable=False),
        sa.Column("is_system", sa.Boolean(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("sort_order", sa.Integer(), nullable=False),
        *_timestamps(),
        sa.UniqueConstraint("key", name="uq_categories_key"),
    )
    op.create_index("ix_categories_key", "categories", ["key"])

    op.create_table(
        "payment_methods",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("type", payment_method_type, nullable=False),
        sa.Column("icon", sa.String(), nullable=True),
        sa.Column("color", sa.String(), nullable=True),
        sa.Column("last_4_digits", sa.String(length=4), nullable=True),
        sa.Column("is_default", sa.Boolean(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("sort_order", sa.Integer(), nullable=False),
        *_timestamps(),
        sa.UniqueConstraint("name", name="uq_payment_methods_name"),
    )
    op.create_index(
        "uq_payment_methods_single_default",
        "payment_methods",
        ["is_default"],
        unique=True,
        sqlite_where=sa.text("is_default = 1"),
        postgresql_where=sa.text("is_default"),
    )

    op.create_table(
        "recurring_expenses",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("amount", MONEY, nullable=False),
        sa.Column("category", sa.String(), nullable=False),
        sa.Column("payment_method", sa.String(), nullable=True),
        sa.Column("frequency", frequency, nullable=False),
        sa.Column("frequency_config", sa.JSON(), nullable=False),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=True),
        sa.Column("skip_holidays", sa.Boolean(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("last_generated", sa.Date(), nullable=True),
        sa.Column("next_generate", sa.Date(), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_recurring_expenses_category", "recurring_expenses", ["category"])
    op.create_index("ix_recurring_expenses_frequency", "recurring_expenses", ["frequency"])
    op.create_index("ix_recurring_expenses_is_active", "recurring_expenses", ["is_active"])
    op.create_index("ix_recurring_expenses_next_generate", "recurring_expenses", ["next_generate"])

    op.create_table(
        "transactions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("type", transaction_type, nullable=False),
        sa.Column("category", sa.String(), nullable=False),
        sa.Column("amount", MONEY, nullable=False),
        sa.Column("note", sa.String(), nullable=True),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("currency", sa.String(), nullable=False),
        sa.Column("payment_method", sa.String(), nullable=True),
        sa.Column("merchant", sa.String(), nullable=True),
        sa.Column("subcategory", sa.String(), nullable=True),
        sa.Column("product", sa.String(), nullable=True),
        sa.Column(
            "recurring_expense_id",
            sa.Integer(),
            sa.ForeignKey("recurring_expenses.id"),
            nullable=True,
        ),
        sa.Column("is_auto_generated", sa.Boolean(), nullable=False),
        sa.Column("deleted_at", sa.DateTime(), nullable=True),
        *_timestamps(),
    )
    for column in (
        "type",
        "category",
        "date",
        "payment_method",
        "merchant",
        "recurring_expense_id",
        "deleted_at",
    ):
        op.create_index(f"ix_transactions_{column}", "transactions", [column])

    op.create_table(
        "recurring_generation_logs",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "recurring_expense_id",
            sa.Integer(),
            sa.ForeignKey("recurring_expenses.id"),
            nullable=False,
        ),
        sa.Column("generation_date", sa.Date(), nullable=False),
        sa.Column("transaction_id", sa.Integer(), sa.ForeignKey("transactions.id"), nullable=True),
        sa.Column("status", generation_status, nullable=False),
        sa.Column("reason", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index(
        "ix_recurring_generation_logs_recurring_expense_id",
        "recurring_generation_logs",
        ["recurring_expense_id"],
    )
    op.create_index(
        "ix_recurring_generation_logs_generation_date",
        "recurring_generation_logs",
        ["generation_date"],
    )
    op.create_index(
        "uq_generation_success_per_day",
        "recurring_generation_logs",
        ["recurring_expense_id", "generation_date"],
        unique=True,
        sqlite_where=sa.text("status = 'success'"),
        postgresql_where=sa.text("status = 'success'"),
    )

    op.create_table(
        "holidays",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("name", sa.String(), nullable=True),
        sa.Column("is_holiday", sa.Boolean(), nullable=False),
        sa.Column("source", sa.String(), nullable=False),
        sa.UniqueConstraint("date", name="uq_holidays_date"),
    )
    op.create_index("ix_holidays_date", "holidays", ["date"])

    op.create_table(
        "weekly_reports",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("week_start_date", sa.Date(), nullable=False),
        sa.Column("week_end_date", sa.Date(), nullable=False),
        sa.Column("total_expenses", MONEY, nullable=False),
        sa.Column("transaction_count", sa.Integer(), nullable=False),
        sa.Column("average_transaction", MONEY, nullable=False),
        sa.Column("average_daily_expense", MONEY, nullable=False),
        sa.Column("category_breakdown", sa.JSON(), nullable=False),
        sa.Column("top_merchants", sa.JSON(), nullable=False),
        sa.Column("payment_method_stats", sa.JSON(), nullable=False),
        sa.Column("week_over_week_change", MONEY, nullable=True),
        sa.Column("week_over_week_percentage", sa.Float(), nullable=True),
        sa.Column("ai_insights", sa.String(), nullable=True),
        sa.Column("generation_type", _generation_type(), nullable=False),
        sa.Column("generated_at", sa.DateTime(), nullable=False),
        *_timestamps(),
        sa.UniqueConstraint("week_start_date", name="uq_weekly_reports_week_start"),
    )
    op.create_index("ix_weekly_reports_week_start_date", "weekly_reports", ["week_start_date"])

    op.create_table(
        "monthly_reports",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("year", sa.Integer(), nullable=False),
        sa.Column("month", sa.Integer(), nullable=False),
        sa.Column("total_expenses", MONEY, nullable=False),
        sa.Column("fixed_expenses", MONEY, nullable=False),
        sa.Column("variable_expenses", MONEY, nullable=False),
        sa.Column("transaction_count", sa.Integer(), nullable=False),
        sa.Column("fixed_transaction_count", sa.Integer(), nullable=False),
        sa.Column("variable_transaction_count", sa.Integer(), nullable=False),
        sa.Column("average_transaction", MONEY, nullable=False),
        sa.Column("average_daily_expense", MONEY, nullable=False),
        sa.Column("category_breakdown", sa.JSON(), nullable=False),
        sa.Column("fixed_expenses_breakdown", sa.JSON(), nullable=False),
        sa.Column("top_merchants", sa.JSON(), nullable=False),
        sa.Column("payment_method_stats", sa.JSON(), nullable=False),
        sa.Column("month_over_month_change", MONEY, nullable=True),
        sa.Column("month_over_month_percentage", sa.Float(), nullable=True),
        sa.Column("ai_insights", sa.String(), nullable=True),
        sa.Column("generation_type", _generation_type(create=False), nullable=False),
        sa.Column("generated_at", sa.DateTime(), nullable=False),
        *_timestamps(),
        sa.UniqueConstraint("year", "month", name="uq_monthly_reports_year_month"),
    )
    op.create_index("ix_monthly_reports_year", "monthly_reports", ["year"])

    op.create_table(
        "budgets",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("year", sa.Integer(), nullable=False),
        sa.Column("month", sa.Integer(), nullable=False),
        sa.Column("category_key", sa.String(), nullable=True),
        sa.Column("amount", MONEY, nullable=False),
        sa.Column("alert_threshold", sa.Float(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        *_timestamps(),
        sa.UniqueConstraint("year", "month", "category_key", name="uq_budgets_period_category"),
    )
    op.create_index("ix_budgets_year", "budgets", ["year"])
    op.create_index("ix_budgets_month", "budgets", ["month"])
    op.create_index("ix_budgets_category_key", "budgets", ["category_key"])
    op.create_index(
        "uq_budgets_period_total",
        "budgets",
        ["year", "month"],
        unique=True,
        sqlite_where=sa.text("category_key IS NULL"),
        postgresql_where=sa.text("category_key IS NULL"),
    )

    op.create_table(
        "budget_suggestions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("year", sa.Integer(), nullable=False),
        sa.Column("month", sa.Integer(), nullable=False),
        sa.Column("category_key", sa.String(), nullable=False),
        sa.Column("suggested_amount", MONEY, nullable=False),
        sa.Column("confidence_level", sa.String(), nullable=False),
        sa.Column("reason", sa.String(), nullable=False),
        sa.Column("historical_avg", MONEY, nullable=False),
        sa.Column("historical_months", sa.Integer(), nullable=False),
        sa.Column("trend_direction", sa.String(), nullable=False),
        sa.Column("calculated_at", sa.DateTime(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.UniqueConstraint(
            "year", "month", "category_key", name="uq_budget_suggestions_period_category"
        ),
    )
    op.create_index("ix_budget_suggestions_year", "budget_suggestions", ["year"])
    op.create_index("ix_budget_suggestions_month", "budget_suggestions", ["month"])

    op.create_table(
        "system_logs",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("level", log_level, nullable=False),
        sa.Column("category", log_category, nullable=False),
        sa.Column("trace_id", sa.String(), nullable=True),
        sa.Column("method", sa.String(), nullable=True),
        sa.Column("path", sa.String(), nullable=True),
        sa.Column("status_code", sa.Integer(), nullable=True),
        sa.Column("message", sa.String(), nullable=False),
        sa.Column("error_code", sa.String(), nullable=True),
        sa.Column("error_stack", sa.String(), nullable=True),
        sa.Column("metadata", sa.JSON(), nullable=True),
        sa.Column("duration_ms", sa.Integer(), nullable=True),
    )
    op.create_index("ix_system_logs_created_at", "system_logs", ["created_at"])
    op.create_index("ix_system_logs_level", "system_logs", ["level"])
    op.create_index("ix_system_logs_category", "system_logs", ["category"])
    op.create_index("ix_system_logs_trace_id", "system_logs", ["trace_id"])


def downgrade() -> None:
    for table in (
        "system_logs",
        "budget_suggestions",
        "budgets",
        "monthly_reports",
        "weekly_reports",
        "holidays",
        "recurring_generation_logs",
        "transactions",
        "recurring_expenses",
        "payment_methods",
        "categories",
    ):
        op.drop_table(table)

    bind = op.get_bind()
    if bind.dialect.name == "postgresql":
        for enum in (
            transaction_type,
            category_type,
            payment_method_type,
            frequency,
            generation_status,
            log_level,
            log_category,
            _generation_type(),
        ):
            enum.drop(bind, checkfirst=True)
