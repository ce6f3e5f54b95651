from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from typing import Callable, Iterable

from domain.models import CENTS, Budget, Period, Transaction, TransactionType

BudgetingStrategy = Callable[[str, Decimal, Iterable[Transaction], Period, str], Budget]


class StrategyRegistry:
    def __init__(self):
        self._strategies: dict[str, BudgetingStrategy] = {}

    def register(self, name: str, strategy: BudgetingStrategy) -> None:
        self._strategies[name.lower()] = strategy

    def get_strategy(self, name: str) -> BudgetingStrategy:
        key = (name or "").lower()
        if key not in self._strategies:
            raise KeyError(f"Budgeting strategy not registered: {name}")
        return self._strategies[key]

    def names(self) -> list[str]:
        return sorted(self._strategies)


registry = StrategyRegistry()


def register_strategy(name: str) -> Callable[[BudgetingStrategy], BudgetingStrategy]:
    def decorator(strategy: BudgetingStrategy) -> BudgetingStrategy:
        registry.register(name, strategy)
        return strategy

    return decorator


def get_strategy(name: str) -> BudgetingStrategy:
    return registry.get_strategy(name)


def list_strategies() -> list[str]:
    return registry.names()


def average_expense(history: Iterable[Transaction]) -> Decimal:
    amounts = [t.amount for t in history if t.kind == TransactionType.EXPENSE]
    if not amounts:
        return Decimal("0.00")
    return (sum(amounts, Decimal("0")) / len(amounts)).quantize(CENTS, rounding=ROUND_HALF_UP)


def _suggest(
    category_id: str,
    income: Decimal,
    history: Iterable[Transaction],
    period: Period,
    currency: str,
    *,
    history_factor: Decimal,
    income_cap: Decimal,
    fallback_share: Decimal,
    floor: Decimal,
    minimum: Decimal,
) -> Budget:
    income = Decimal(income)
    amount = min(average_expense(history) * history_factor, income * income_cap)
    if amount <= 0:
        # No history: fall back to a share of the income.
        amount = income * fallback_share
    if amount < floor:
        amount = minimum
    return Budget(
        category_id=category_id,
        amount=amount.quantize(CENTS, rounding=ROUND_HALF_UP),
        period=period,
        currency=currency,
    )


@register_strategy("conservative")
def conservative(category_id: str, income: Decimal, history: Iterable[Transaction], period: Period, currency: str) -> Budget:
    """85% of the average expense capped at 25% of the period income; 50 when that is under 10."""
    return _suggest(
        category_id, income, history, period, currency,
        history_factor=Decimal("0.85"),
        income_cap=Decimal("0.25"),
        fallback_share=Decimal("0.05"),
        floor=Decimal("10"),
        minimum=Decimal("50"),
    )


@register_strategy("aggressive")
def aggressive(category_id: str, income: Decimal, history: Iterable[Transaction], period: Period, currency: str) -> Budget:
    """115% of the average expense capped at 40% of the period income; 100 when that is under 20."""
    return _suggest(
        category_id, income, history, period, currency,
        history_factor=Decimal("1.15"),
        income_cap=Decimal("0.40"),
        fallback_share=Decimal("0.10"),
        floor=Decimal("20"),
        minimum=Decimal("100"),
    )
