from __future__ import annotations

import logging
from collections import defaultdict
from datetime import date
from decimal import Decimal

from application.ledger import LedgerService
from domain.errors import ValidationError
from domain.models import Period, TransactionType
from domain.schemas import BudgetOut, BudgetStatus, CategoryTotal, MonthlyBalance, TrendPoint

logger = logging.getLogger(__name__)

ZERO = Decimal("0.00")


class ReportService:
    """Read-only aggregates folded over the ledger's stored transactions and budgets."""

    def __init__(self, ledger: LedgerService):
        self._ledger = ledger

    def monthly_balance(self, period: Period | str) -> MonthlyBalance:
        period = Period.parse(period)
        totals = {kind: ZERO for kind in TransactionType}
        for txn in self._ledger.transactions_by_period(period):
            totals[txn.kind] += txn.amount

        income = totals[TransactionType.INCOME]
        expenses = totals[TransactionType.EXPENSE]
        investments = totals[TransactionType.INVESTMENT]
        return MonthlyBalance(
            period=str(period),
            income=income,
            expenses=expenses,
            investments=investments,
            balance=income - expenses - investments,
        )

    def expenses_by_category(self, period: Period | str | None = None) -> list[CategoryTotal]:
        if period is None:
            transactions = self._ledger.transactions_by_type(TransactionType.EXPENSE)
        else:
            transactions = [
                t for t in self._ledger.transactions_by_period(period) if t.kind == TransactionType.EXPENSE
            ]

        totals: dict[str, Decimal] = defaultdict(lambda: ZERO)
        counts: dict[str, int] = defaultdict(int)
        for txn in transactions:
            totals[txn.category_id] += txn.amount
            counts[txn.category_id] += 1

        rows = [
            CategoryTotal(
                category_id=category_id,
                category_path=self._path(category_id),
                total=total,
                txn_count=counts[category_id],
            )
            for category_id, total in totals.items()
        ]
        return sorted(rows, key=lambda r: (-r.total, r.category_path))

    def monthly_trend(self, months: int, today: date | None = None) -> list[TrendPoint]:
        """Balance per month for the last ``months`` months, oldest first, ending this month."""
        if months < 1:
            raise ValidationError("months must be >= 1")
        current = Period.of(today or date.today())
        start = current.shift(-(months - 1))
        trend = []
        for offset in range(months):
            period = start.shift(offset)
            trend.append(TrendPoint(period=str(period), balance=self.monthly_balance(period).balance))
        logger.info("Monthly trend computed months=%d start=%s end=%s", months, start, current)
        return trend

    def total_balance(self) -> Decimal:
        return sum((t.balance_impact() for t in self._ledger.list_transactions()), ZERO)

    def budget_status(self, period: Period | str | None = None) -> list[BudgetStatus]:
        budgets = self._ledger.list_budgets() if period is None else self._ledger.budgets_by_period(period)
        rows = []
        for budget in budgets:
            if budget.is_exceeded():
                status = "exceeded"
            elif budget.is_near_limit():
                status = "near_limit"
            else:
                status = "ok"
            rows.append(BudgetStatus(
                category_path=self._path(budget.category_id),
                status=status,
                **BudgetOut.from_domain(budget).model_dump(),
            ))
        return rows

    def _path(self, category_id: str) -> str:
        if self._ledger.get_category(category_id) is None:
            return category_id
        return self._ledger.category_path(category_id)
