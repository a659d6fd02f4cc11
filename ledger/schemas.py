# ledger/schemas.py
"""
Request bodies for the JSON API.

Shape checks only (types, required fields); business rules such as
"amount > 0" or "category must exist" live in the services so they apply
to every caller, not just HTTP.
"""

from __future__ import annotations

import datetime as dt
from decimal import Decimal
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from ledger.models import CategoryType, Frequency, PaymentMethodType, TransactionType


def ok(data: Any = None, **extra: Any) -> Dict[str, Any]:
    """Success envelope: {"success": true, "data": ...} plus optional top-level keys."""
    return {"success": True, "data": data, **extra}


# ---------- transactions ----------


class TransactionCreate(BaseModel):
    type: TransactionType
    category: str
    amount: Decimal
    date: dt.date
    note: Optional[str] = None
    currency: Optional[str] = None
    payment_method: Optional[str] = None
    merchant: Optional[str] = None
    subcategory: Optional[str] = None
    product: Optional[str] = None


class TransactionUpdate(BaseModel):
    type: Optional[TransactionType] = None
    category: Optional[str] = None
    amount: Optional[Decimal] = None
    date: Optional[dt.date] = None
    note: Optional[str] = None
    currency: Optional[str] = None
    payment_method: Optional[str] = None
    merchant: Optional[str] = None
    subcategory: Optional[str] = None
    product: Optional[str] = None


# ---------- categories ----------


class CategoryCreate(BaseModel):
    key: str
    label: str
    icon: Optional[str] = None
    color: Optional[str] = None
    type: CategoryType = CategoryType.expense
    sort_order: Optional[int] = None


class CategoryUpdate(BaseModel):
    key: Optional[str] = None  # accepted only when unchanged
    label: Optional[str] = None
    icon: Optional[str] = None
    color: Optional[str] = None
    type: Optional[CategoryType] = None
    is_active: Optional[bool] = None
    sort_order: Optional[int] = None


class SortOrderItem(BaseModel):
    id: int
    sort_order: int


class SortOrderUpdate(BaseModel):
    items: List[SortOrderItem] = Field(min_length=1)


# ---------- payment methods ----------


class PaymentMethodCreate(BaseModel):
    name: str
    type: PaymentMethodType = PaymentMethodType.other
    icon: Optional[str] = None
    color: Optional[str] = None
    last_4_digits: Optional[str] = None
    is_default: bool = False
    sort_order: int = 0


class PaymentMethodUpdate(BaseModel):
    name: Optional[str] = None
    type: Optional[PaymentMethodType] = None
    icon: Optional[str] = None
    color: Optional[str] = None
    last_4_digits: Optional[str] = None
    sort_order: Optional[int] = None


# ---------- recurring expenses ----------


class RecurringExpenseCreate(BaseModel):
    name: str
    amount: Decimal
    category: str
    payment_method: Optional[str] = None
    frequency: Frequency
    frequency_config: Dict[str, Any] = Field(default_factory=dict)
    start_date: dt.date
    end_date: Optional[dt.date] = None
    skip_holidays: bool = False
    is_active: bool = True


class RecurringExpenseUpdate(BaseModel):
    name: Optional[str] = None
    amount: Optional[Decimal] = None
    category: Optional[str] = None
    payment_method: Optional[str] = None
    frequency: Optional[Frequency] = None
    frequency_config: Optional[Dict[str, Any]] = None
    start_date: Optional[dt.date] = None
    end_date: Optional[dt.date] = None
    skip_holidays: Optional[bool] = None
    is_active: Optional[bool] = None


class GenerateRequest(BaseModel):
    today: Optional[dt.date] = None  # defaults to the server's date


# ---------- budgets ----------


class BudgetUpsert(BaseModel):
    year: int
    month: int
    category_key: Optional[str] = None  # null = total budget
    amount: Decimal
    alert_threshold: float = 0.8


class SuggestionRefresh(BaseModel):
    year: int
    month: int


# ---------- reports ----------


class WeeklyReportGenerate(BaseModel):
    week_start: Optional[dt.date] = None
    force: bool = False
    with_ai: bool = False


class MonthlyReportGenerate(BaseModel):
    year: int
    month: int
    force: bool = False
    with_ai: bool = False


# ---------- misc ----------


class AnalyzeRequest(BaseModel):
    month: str  # "YYYY-MM"
    transactions: Optional[List[Dict[str, Any]]] = None


class HolidaySync(BaseModel):
    year: int


class CronRun(BaseModel):
    today: Optional[dt.date] = None
    jobs: List[str] = Field(default_factory=lambda: ["recurring", "weekly_report", "log_cleanup"])
