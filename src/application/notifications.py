from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from decimal import Decimal
from typing import Any, Callable

from domain.errors import ValidationError
from domain.models import Budget, BudgetEvent, BudgetEventType, to_money

logger = logging.getLogger(__name__)


class BudgetObserver(ABC):
    """Receives budget notifications synchronously, on the caller's stack."""

    @abstractmethod
    def on_expense_added(self, budget: Budget, amount: Decimal) -> None:
        raise NotImplementedError

    @abstractmethod
    def on_budget_near_limit(self, budget: Budget, remaining: Decimal) -> None:
        raise NotImplementedError

    @abstractmethod
    def on_budget_exceeded(self, budget: Budget, overspent: Decimal) -> None:
        raise NotImplementedError


class LoggingBudgetObserver(BudgetObserver):
    def __init__(self, log: logging.Logger | None = None) -> None:
        self._log = log or logger

    def on_expense_added(self, budget: Budget, amount: Decimal) -> None:
        self._log.info(
            "Expense recorded budget_id=%s period=%s amount=%s usage=%s%%",
            budget.id, budget.period, amount, budget.usage_percentage(),
        )

    def on_budget_near_limit(self, budget: Budget, remaining: Decimal) -> None:
        self._log.warning(
            "Budget near limit budget_id=%s period=%s remaining=%s %s",
            budget.id, budget.period, remaining, budget.currency,
        )

    def on_budget_exceeded(self, budget: Budget, overspent: Decimal) -> None:
        self._log.warning(
            "Budget exceeded budget_id=%s period=%s overspent=%s %s",
            budget.id, budget.period, overspent, budget.currency,
        )


class BudgetNotificationSubject:
    """
    Registry of budget observers.

    process_expense() is edge triggered: EXCEEDED fires only on the transition
    into the exceeded state and NEAR_LIMIT only on the transition into the
    near-limit state. EXCEEDED wins when both happen in the same call.
    """

    def __init__(self) -> None:
        self._observers: list[BudgetObserver] = []

    def add_observer(self, observer: BudgetObserver) -> None:
        if observer is None:
            raise ValidationError("Observer cannot be None")
        if not any(o is observer for o in self._observers):
            self._observers.append(observer)

    def remove_observer(self, observer: BudgetObserver) -> None:
        self._observers = [o for o in self._observers if o is not observer]

    def clear_observers(self) -> None:
        self._observers.clear()

    @property
    def observer_count(self) -> int:
        return len(self._observers)

    def process_expense(self, budget: Budget, expense_amount: Any) -> list[BudgetEvent]:
        amount = to_money(expense_amount)
        was_near_limit = budget.is_near_limit()
        was_exceeded = budget.is_exceeded()

        budget.add_expense(amount)

        events = [self.notify_expense_added(budget, amount)]
        if not was_exceeded and budget.is_exceeded():
            events.append(self.notify_budget_exceeded(budget))
        elif not was_near_limit and budget.is_near_limit():
            events.append(self.notify_budget_near_limit(budget))
        return events

    def notify_expense_added(self, budget: Budget, amount: Decimal) -> BudgetEvent:
        self._dispatch("on_expense_added", budget, amount)
        return BudgetEvent(BudgetEventType.EXPENSE_ADDED, budget.id, amount)

    def notify_budget_near_limit(self, budget: Budget) -> BudgetEvent:
        remaining = budget.remaining()
        self._dispatch("on_budget_near_limit", budget, remaining)
        return BudgetEvent(BudgetEventType.NEAR_LIMIT, budget.id, remaining)

    def notify_budget_exceeded(self, budget: Budget) -> BudgetEvent:
        overspent = budget.spent - budget.amount
        self._dispatch("on_budget_exceeded", budget, overspent)
        return BudgetEvent(BudgetEventType.EXCEEDED, budget.id, overspent)

    def _dispatch(self, callback: str, budget: Budget, amount: Decimal) -> None:
        for observer in list(self._observers):
            try:
                handler: Callable[[Budget, Decimal], None] = getattr(observer, callback)
                handler(budget, amount)
            except Exception:
                logger.exception(
                    "Budget observer failed observer=%s callback=%s budget_id=%s",
                    type(observer).__name__, callback, budget.id,
                )
