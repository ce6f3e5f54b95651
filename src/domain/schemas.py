from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Any, List, Literal, Optional

from pydantic import BaseModel, Field, field_validator

from domain.models import Budget, Category, Transaction

PERIOD_PATTERN = r"^\d{4}-(0[1-9]|1[0-2])$"


class CategoryCreate(BaseModel):
    name: str = Field(min_length=1)
    description: str = ""
    parent_id: Optional[str] = None


class CategoryOut(BaseModel):
    id: str
    name: str
    description: str
    parent_id: Optional[str] = None
    child_ids: List[str] = Field(default_factory=list)
    full_path: str

    @classmethod
    def from_domain(cls, category: Category, full_path: str) -> "CategoryOut":
        return cls(
            id=category.id,
            name=category.name,
            description=category.description,
            parent_id=category.parent_id,
            child_ids=sorted(category.child_ids),
            full_path=full_path,
        )


class TransactionCreate(BaseModel):
    kind: Literal["income", "expense", "investment"]
    amount: Decimal = Field(gt=0, decimal_places=2)
    description: str = Field(min_length=1)
    category_id: str = Field(min_length=1)
    currency: Optional[str] = None
    timestamp: Optional[datetime] = Field(
        default=None,
        description="Booking time; defaults to now. Accepts YYYY-MM-DD or full ISO datetimes.",
    )

    @field_validator("timestamp", mode="before")
    @classmethod
    def coerce_timestamp(cls, value: Any) -> Any:
        if isinstance(value, datetime) or not isinstance(value, (str, date)):
            return value
        if isinstance(value, date):
            return datetime(value.year, value.month, value.day)

        text = value.strip()
        if not text:
            return None
        for fmt in ("%Y-%m-%d", "%Y/%m/%d", "%d/%m/%Y"):
            try:
                return datetime.strptime(text, fmt)
            except ValueError:
                continue
        return value


class TransactionOut(BaseModel):
    id: str
    kind: str
    amount: Decimal
    balance_impact: Decimal
    description: str
    category_id: str
    currency: str
    timestamp: datetime

    @classmethod
    def from_domain(cls, txn: Transaction) -> "TransactionOut":
        return cls(
            id=txn.id,
            kind=txn.kind.value,
            amount=txn.amount,
            balance_impact=txn.balance_impact(),
            description=txn.description,
            category_id=txn.category_id,
            currency=txn.currency,
            timestamp=txn.timestamp,
        )


class BudgetCreate(BaseModel):
    category_id: str = Field(min_length=1)
    amount: Decimal = Field(gt=0, decimal_places=2)
    period: str = Field(pattern=PERIOD_PATTERN, description="Calendar month, e.g. 2026-01.")
    currency: Optional[str] = None


class BudgetOut(BaseModel):
    id: str
    category_id: str
    period: str
    currency: str
    amount: Decimal
    spent: Decimal
    remaining: Decimal
    usage_percentage: Decimal
    exceeded: bool
    near_limit: bool

    @classmethod
    def from_domain(cls, budget: Budget) -> "BudgetOut":
        return cls(
            id=budget.id,
            category_id=budget.category_id,
            period=str(budget.period),
            currency=budget.currency,
            amount=budget.amount,
            spent=budget.spent,
            remaining=budget.remaining(),
            usage_percentage=budget.usage_percentage(),
            exceeded=budget.is_exceeded(),
            near_limit=budget.is_near_limit(),
        )


class BudgetStatus(BudgetOut):
    category_path: str
    status: Literal["ok", "near_limit", "exceeded"]


class MonthlyBalance(BaseModel):
    period: str
    income: Decimal = Decimal("0.00")
    expenses: Decimal = Decimal("0.00")
    investments: Decimal = Decimal("0.00")
    balance: Decimal = Decimal("0.00")


class CategoryTotal(BaseModel):
    category_id: str
    category_path: str
    total: Decimal
    txn_count: int = 0


class TrendPoint(BaseModel):
    period: str
    balance: Decimal
