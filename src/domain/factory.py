from __future__ import annotations

from datetime import datetime
from typing import Any

from domain.errors import ValidationError
from domain.models import Category, Transaction, TransactionType, new_id


def _category_id(category: Category | str | None) -> str:
    if category is None:
        raise ValidationError("Category cannot be None")
    return category.id if isinstance(category, Category) else str(category)


def create_transaction(
    kind: TransactionType | str,
    amount: Any,
    description: str,
    category: Category | str,
    currency: str,
    timestamp: datetime | None = None,
    transaction_id: str | None = None,
) -> Transaction:
    try:
        kind = TransactionType(kind)
    except ValueError as exc:
        raise ValidationError(f"Unsupported transaction type: {kind!r}") from exc
    return Transaction(
        id=transaction_id or new_id(),
        kind=kind,
        amount=amount,
        description=description,
        category_id=_category_id(category),
        currency=currency,
        timestamp=timestamp or datetime.now(),
    )


def create_income(amount: Any, description: str, category: Category | str, currency: str, **kwargs: Any) -> Transaction:
    return create_transaction(TransactionType.INCOME, amount, description, category, currency, **kwargs)


def create_expense(amount: Any, description: str, category: Category | str, currency: str, **kwargs: Any) -> Transaction:
    return create_transaction(TransactionType.EXPENSE, amount, description, category, currency, **kwargs)


def create_investment(amount: Any, description: str, category: Category | str, currency: str, **kwargs: Any) -> Transaction:
    return create_transaction(TransactionType.INVESTMENT, amount, description, category, currency, **kwargs)
