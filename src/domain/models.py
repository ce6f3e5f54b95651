from __future__ import annotations

import uuid
from calendar import monthrange
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation, localcontext
from enum import Enum
from typing import Any, Callable

from domain.errors import ValidationError

CENTS = Decimal("0.01")
RATIO_PLACES = Decimal("0.0001")
NEAR_LIMIT_PERCENTAGE = Decimal("90")
MAX_AMOUNT = Decimal("1000000000000000")


def new_id() -> str:
    return uuid.uuid4().hex


def to_money(value: Any, field_name: str = "amount", limit: Decimal | None = MAX_AMOUNT) -> Decimal:
    """Coerce ``value`` to a Decimal quantized to cents.

    Magnitudes above ``limit`` are rejected; pass ``None`` for running totals.

    Floats go through ``str`` so that ``0.1`` becomes ``Decimal("0.10")`` and not
    its binary expansion.
    """
    if value is None:
        raise ValidationError(f"{field_name} cannot be None")
    if isinstance(value, bool):
        raise ValidationError(f"{field_name} must be a number, got bool")
    try:
        if isinstance(value, float):
            value = str(value)
        amount = Decimal(value)
    except (InvalidOperation, TypeError, ValueError) as exc:
        raise ValidationError(f"{field_name} is not a valid decimal: {value!r}") from exc
    if not amount.is_finite():
        raise ValidationError(f"{field_name} must be finite, got {value!r}")
    if limit is not None and abs(amount) > limit:
        raise ValidationError(f"{field_name} is out of range: {value!r}")
    try:
        return amount.quantize(CENTS, rounding=ROUND_HALF_UP)
    except InvalidOperation as exc:
        raise ValidationError(f"{field_name} is out of range: {value!r}") from exc


def _require_text(value: Any, field_name: str) -> str:
    if value is None:
        raise ValidationError(f"{field_name} cannot be None")
    text = str(value).strip()
    if not text:
        raise ValidationError(f"{field_name} cannot be blank")
    return text


@dataclass(frozen=True, order=True)
class Period:
    """A calendar month, e.g. ``Period(2026, 1)`` prints as ``2026-01``."""

    year: int
    month: int

    def __post_init__(self) -> None:
        if not 1 <= int(self.month) <= 12:
            raise ValidationError(f"month must be in 1..12, got {self.month}")
        if not 1 <= int(self.year) <= 9999:
            raise ValidationError(f"year must be in 1..9999, got {self.year}")

    @classmethod
    def of(cls, value: date | datetime) -> "Period":
        return cls(value.year, value.month)

    @classmethod
    def current(cls) -> "Period":
        return cls.of(date.today())

    @classmethod
    def parse(cls, value: "str | Period | date") -> "Period":
        if isinstance(value, Period):
            return value
        if isinstance(value, date):
            return cls.of(value)
        text = str(value or "").strip()
        try:
            year_text, month_text = text.split("-", 1)
            return cls(int(year_text), int(month_text))
        except ValueError as exc:
            raise ValidationError(f"period must look like YYYY-MM, got {value!r}") from exc

    def shift(self, months: int) -> "Period":
        index = self.year * 12 + (self.month - 1) + months
        return Period(index // 12, index % 12 + 1)

    def start(self) -> date:
        return date(self.year, self.month, 1)

    def end(self) -> date:
        return date(self.year, self.month, monthrange(self.year, self.month)[1])

    def contains(self, moment: date | datetime) -> bool:
        return moment.year == self.year and moment.month == self.month

    def __str__(self) -> str:
        return f"{self.year:04d}-{self.month:02d}"


@dataclass(eq=False)
class Category:
    """A node of the category hierarchy.

    ``parent_id`` and ``child_ids`` are id links maintained by
    :class:`domain.categories.CategoryTree`; identity is the ``id`` alone.
    """

    name: str
    description: str = ""
    id: str = field(default_factory=new_id)
    parent_id: str | None = None
    child_ids: set[str] = field(default_factory=set)

    def __post_init__(self) -> None:
        self.name = _require_text(self.name, "name")
        self.description = (self.description or "").strip()
        self.id = _require_text(self.id, "id")

    @property
    def is_root(self) -> bool:
        return self.parent_id is None

    @property
    def is_leaf(self) -> bool:
        return not self.child_ids

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Category):
            return NotImplemented
        return self.id == other.id

    def __hash__(self) -> int:
        return hash(self.id)

    def __repr__(self) -> str:
        return f"Category(id={self.id!r}, name={self.name!r}, parent_id={self.parent_id!r})"


class TransactionType(str, Enum):
    INCOME = "income"
    EXPENSE = "expense"
    INVESTMENT = "investment"

    @property
    def display_name(self) -> str:
        return self.value.capitalize()


def _positive_amount(label: str) -> Callable[[Decimal], None]:
    def check(amount: Decimal) -> None:
        if amount <= 0:
            raise ValidationError(f"{label} amount must be positive, got {amount}")

    return check


@dataclass(frozen=True)
class _KindRules:
    validate_amount: Callable[[Decimal], None]
    sign: int


# Kept per kind so the rules can diverge without touching Transaction.
KIND_RULES: dict[TransactionType, _KindRules] = {
    TransactionType.INCOME: _KindRules(_positive_amount("Income"), 1),
    TransactionType.EXPENSE: _KindRules(_positive_amount("Expense"), -1),
    TransactionType.INVESTMENT: _KindRules(_positive_amount("Investment"), -1),
}


@dataclass(frozen=True)
class Transaction:
    id: str
    kind: TransactionType
    amount: Decimal
    description: str
    category_id: str
    currency: str
    timestamp: datetime

    def __post_init__(self) -> None:
        try:
            kind = TransactionType(self.kind)
        except ValueError as exc:
            raise ValidationError(f"Unsupported transaction type: {self.kind!r}") from exc
        amount = to_money(self.amount)
        KIND_RULES[kind].validate_amount(amount)
        if not isinstance(self.timestamp, datetime):
            raise ValidationError("timestamp must be a datetime")

        object.__setattr__(self, "kind", kind)
        object.__setattr__(self, "amount", amount)
        object.__setattr__(self, "id", _require_text(self.id, "id"))
        object.__setattr__(self, "description", _require_text(self.description, "description"))
        object.__setattr__(self, "category_id", _require_text(self.category_id, "category"))
        object.__setattr__(self, "currency", _require_text(self.currency, "currency").upper())

    def type(self) -> TransactionType:
        return self.kind

    def balance_impact(self) -> Decimal:
        return self.amount * KIND_RULES[self.kind].sign

    @property
    def period(self) -> Period:
        return Period.of(self.timestamp)

    @property
    def posted_on(self) -> date:
        return self.timestamp.date()

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Transaction):
            return NotImplemented
        return self.id == other.id

    def __hash__(self) -> int:
        return hash(self.id)


@dataclass(eq=False)
class Budget:
    """Spending limit for one category in one calendar month.

    ``spent`` is the only mutable field; every derived value is recomputed on
    access.
    """

    category_id: str
    amount: Decimal
    period: Period
    currency: str = "EUR"
    id: str = field(default_factory=new_id)
    spent: Decimal = Decimal("0.00")
    created_at: date = field(default_factory=date.today)

    def __post_init__(self) -> None:
        self.category_id = _require_text(self.category_id, "category")
        self.amount = to_money(self.amount)
        if self.amount <= 0:
            raise ValidationError("Budget amount must be positive")
        if self.period is None:
            raise ValidationError("period cannot be None")
        self.period = Period.parse(self.period)
        self.currency = _require_text(self.currency, "currency").upper()
        self.id = _require_text(self.id, "id")
        self.spent = to_money(self.spent, "spent", limit=None)
        if self.spent < 0:
            raise ValidationError("spent cannot be negative")

    def add_expense(self, expense_amount: Any) -> None:
        expense = to_money(expense_amount)
        if expense < 0:
            raise ValidationError("Expense amount cannot be negative")
        self.spent += expense

    def remove_expense(self, expense_amount: Any) -> None:
        expense = to_money(expense_amount)
        if expense < 0:
            raise ValidationError("Expense amount cannot be negative")
        self.spent = max(Decimal("0.00"), self.spent - expense)

    def reset_spent(self) -> None:
        self.spent = Decimal("0.00")

    def remaining(self) -> Decimal:
        return self.amount - self.spent

    def overspent(self) -> Decimal:
        return max(Decimal("0.00"), self.spent - self.amount)

    def usage_percentage(self) -> Decimal:
        # spent grows without bound; widen precision so the quantize cannot overflow.
        with localcontext() as ctx:
            ctx.prec = max(ctx.prec, len(self.spent.as_tuple().digits) + 8)
            ratio = (self.spent / self.amount).quantize(RATIO_PLACES, rounding=ROUND_HALF_UP)
            return ratio * 100

    def is_exceeded(self) -> bool:
        return self.spent > self.amount

    def is_near_limit(self) -> bool:
        return self.usage_percentage() >= NEAR_LIMIT_PERCENTAGE

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Budget):
            return NotImplemented
        return self.id == other.id

    def __hash__(self) -> int:
        return hash(self.id)

    def __repr__(self) -> str:
        return (
            f"Budget(category_id={self.category_id!r}, amount={self.amount}, spent={self.spent}, "
            f"period={self.period}, remaining={self.remaining()})"
        )


class BudgetEventType(str, Enum):
    EXPENSE_ADDED = "expense_added"
    NEAR_LIMIT = "near_limit"
    EXCEEDED = "exceeded"


@dataclass(frozen=True)
class BudgetEvent:
    """A notification emitted while processing an expense.

    ``amount`` is the expense for EXPENSE_ADDED, the remaining amount for
    NEAR_LIMIT and the overspent amount for EXCEEDED.
    """

    type: BudgetEventType
    budget_id: str
    amount: Decimal
