from __future__ import annotations

import sys
from datetime import datetime
from decimal import Decimal
from typing import TextIO

from application.notifications import BudgetObserver
from domain.categories import CategoryTree
from domain.models import Budget


class ConsoleBudgetObserver(BudgetObserver):
    """Prints budget notifications for the interactive console."""

    def __init__(self, categories: CategoryTree, stream: TextIO | None = None) -> None:
        self._categories = categories
        self._stream = stream or sys.stdout

    def _label(self, budget: Budget) -> str:
        if budget.category_id in self._categories:
            return self._categories.full_path(budget.category_id)
        return budget.category_id

    def _write(self, *lines: str) -> None:
        print("\n".join(lines), file=self._stream)

    def on_budget_exceeded(self, budget: Budget, overspent: Decimal) -> None:
        rule = "=" * 60
        self._write(
            rule,
            "BUDGET EXCEEDED",
            rule,
            f"Time:      {datetime.now():%Y-%m-%d %H:%M:%S}",
            f"Category:  {self._label(budget)}",
            f"Budget:    {budget.amount} {budget.currency}",
            f"Spent:     {budget.spent} {budget.currency}",
            f"Overspent: {overspent} {budget.currency}",
            f"Period:    {budget.period}",
            rule,
        )

    def on_budget_near_limit(self, budget: Budget, remaining: Decimal) -> None:
        rule = "-" * 50
        self._write(
            "WARNING: budget close to its limit",
            rule,
            f"Category:  {self._label(budget)}",
            f"Budget:    {budget.amount} {budget.currency}",
            f"Spent:     {budget.spent} {budget.currency}",
            f"Remaining: {remaining} {budget.currency}",
            f"Usage:     {budget.usage_percentage()}%",
            f"Period:    {budget.period}",
            rule,
        )

    def on_expense_added(self, budget: Budget, amount: Decimal) -> None:
        self._write(
            f"Expense recorded against {self._label(budget)}: {amount} {budget.currency} "
            f"(used {budget.usage_percentage()}%, remaining {budget.remaining()} {budget.currency})"
        )
