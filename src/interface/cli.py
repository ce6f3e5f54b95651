from __future__ import annotations

import json
import logging
import os
import shlex
import sys
from datetime import datetime
from typing import Callable, Iterable, TextIO

from pydantic import BaseModel
from pydantic import ValidationError as SchemaValidationError

from application.ledger import LedgerService
from application.notifications import LoggingBudgetObserver
from application.reports import ReportService
from application.strategies import list_strategies
from domain.default_categories import build_default_categories
from domain.errors import FinanceError, NotFoundError, ValidationError
from domain.models import Category, Period
from domain.schemas import BudgetOut, CategoryOut, TransactionOut
from infrastructure.persistence.memory_store import (
    InMemoryBudgetStore,
    InMemoryCategoryStore,
    InMemoryTransactionStore,
)
from infrastructure.persistence.sql_store import SqlBudgetStore, SqlCategoryStore, SqlDatabase, SqlTransactionStore
from interface.console_observer import ConsoleBudgetObserver

logger = logging.getLogger(__name__)


def _env_flag(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def build_service() -> LedgerService:
    database_url = os.getenv("FINANCE_DATABASE_URL", "").strip()
    if database_url:
        database = SqlDatabase(database_url)
        stores = (SqlCategoryStore(database), SqlTransactionStore(database), SqlBudgetStore(database))
    else:
        stores = (InMemoryCategoryStore(), InMemoryTransactionStore(), InMemoryBudgetStore())

    service = LedgerService(
        *stores,
        strategy=os.getenv("FINANCE_BUDGET_STRATEGY", "conservative"),
        default_currency=os.getenv("FINANCE_DEFAULT_CURRENCY", "EUR"),
    )
    if _env_flag("FINANCE_SEED_CATEGORIES", True) and not service.list_categories():
        for category in build_default_categories():
            service.add_category(category)
        logger.info("Seeded default categories count=%d", len(service.list_categories()))
    service.add_budget_observer(LoggingBudgetObserver())
    return service


HELP = """\
Commands:
  categories                                  show the category tree
  add-category NAME [PARENT]                  create a category, optionally under PARENT
  income|expense|invest AMOUNT CATEGORY DESC [YYYY-MM-DD]
                                              record a transaction
  remove-tx ID                                delete a transaction
  history [reverse]                           list transactions chronologically
  budget CATEGORY AMOUNT [YYYY-MM]            set the budget of a category for a month
  budgets [YYYY-MM]                           show budget status
  suggest CATEGORY [YYYY-MM]                  suggest a budget with the current strategy
  strategy [NAME]                             show or change the budgeting strategy
  balance [YYYY-MM]                           income, expenses and balance of a month
  expenses [YYYY-MM]                          expenses grouped by category
  trend [MONTHS]                              balance of the last MONTHS months
  quit                                        leave
"""


class FinanceConsole:
    def __init__(self, service: LedgerService, stream: TextIO | None = None):
        self._service = service
        self._reports = ReportService(service)
        self._stream = stream or sys.stdout
        self._commands: dict[str, Callable[[list[str]], None]] = {
            "help": self._help,
            "categories": self._categories,
            "add-category": self._add_category,
            "income": lambda args: self._record("income", args),
            "expense": lambda args: self._record("expense", args),
            "invest": lambda args: self._record("investment", args),
            "remove-tx": self._remove_transaction,
            "history": self._history,
            "budget": self._budget,
            "budgets": self._budgets,
            "suggest": self._suggest,
            "strategy": self._strategy,
            "balance": self._balance,
            "expenses": self._expenses,
            "trend": self._trend,
        }

    def run(self, lines: Iterable[str] | None = None) -> None:
        source = iter(lines) if lines is not None else None
        while True:
            try:
                line = next(source) if source is not None else input("finance > ")
            except (StopIteration, EOFError, KeyboardInterrupt):
                break
            if not self.execute(line):
                break

    def execute(self, line: str) -> bool:
        try:
            parts = shlex.split(line)
        except ValueError as exc:
            self._print(f"error: {exc}")
            return True
        if not parts:
            return True
        name, args = parts[0].lower(), parts[1:]
        if name in ("quit", "exit"):
            return False

        command = self._commands.get(name)
        if command is None:
            self._print(f"unknown command {name!r}; type 'help'")
            return True
        try:
            command(args)
        except (FinanceError, SchemaValidationError, KeyError) as exc:
            logger.info("Console command failed command=%s error=%s", name, exc)
            self._print(f"error: {exc}")
        return True

    # ---- output ----
    def _print(self, text: str) -> None:
        print(text, file=self._stream)

    def _dump(self, payload: BaseModel | list[BaseModel] | dict) -> None:
        if isinstance(payload, BaseModel):
            self._print(payload.model_dump_json(indent=2))
            return
        if isinstance(payload, list):
            payload = [item.model_dump(mode="json") for item in payload]
        self._print(json.dumps(payload, indent=2, default=str))

    # ---- helpers ----
    def _category(self, ref: str) -> Category:
        category = self._service.find_category_by_name(ref) or self._service.get_category(ref)
        if category is None:
            raise NotFoundError(f"Category not found: {ref}")
        return category

    @staticmethod
    def _period(args: list[str], index: int) -> Period:
        return Period.parse(args[index]) if len(args) > index else Period.current()

    @staticmethod
    def _need(args: list[str], count: int, usage: str) -> None:
        if len(args) < count:
            raise ValidationError(f"usage: {usage}")

    # ---- commands ----
    def _help(self, args: list[str]) -> None:
        self._print(HELP)

    def _categories(self, args: list[str]) -> None:
        tree = self._service.categories

        def walk(category: Category, depth: int) -> None:
            self._print(f"{'  ' * depth}- {category.name}  [{category.id}]")
            for child in sorted(tree.children(category), key=lambda c: c.name.lower()):
                walk(child, depth + 1)

        for root in sorted(tree.roots(), key=lambda c: c.name.lower()):
            walk(root, 0)

    def _add_category(self, args: list[str]) -> None:
        self._need(args, 1, "add-category NAME [PARENT]")
        parent = self._category(args[1]) if len(args) > 1 else None
        category = self._service.add_category(Category(name=args[0]), parent=parent)
        self._dump(CategoryOut.from_domain(category, self._service.category_path(category)))

    def _record(self, kind: str, args: list[str]) -> None:
        self._need(args, 3, f"{kind} AMOUNT CATEGORY DESCRIPTION [YYYY-MM-DD]")
        timestamp = None
        if len(args) > 3:
            try:
                timestamp = datetime.strptime(args[3], "%Y-%m-%d")
            except ValueError as exc:
                raise ValidationError(f"date must look like YYYY-MM-DD, got {args[3]!r}") from exc
        txn, events = self._service.record_transaction(
            kind, args[0], args[2], self._category(args[1]), timestamp=timestamp,
        )
        self._dump(TransactionOut.from_domain(txn))
        if events:
            self._print(f"budget events: {', '.join(e.type.value for e in events)}")

    def _remove_transaction(self, args: list[str]) -> None:
        self._need(args, 1, "remove-tx ID")
        txn = self._service.remove_transaction(args[0])
        self._print(f"removed {txn.kind.value} {txn.amount} {txn.currency} ({txn.description})")

    def _history(self, args: list[str]) -> None:
        reverse = bool(args) and args[0].lower() == "reverse"
        self._dump([TransactionOut.from_domain(t) for t in self._service.iter_history(reverse=reverse)])

    def _budget(self, args: list[str]) -> None:
        self._need(args, 2, "budget CATEGORY AMOUNT [YYYY-MM]")
        budget = self._service.create_budget(self._category(args[0]), args[1], self._period(args, 2))
        self._dump(BudgetOut.from_domain(budget))

    def _budgets(self, args: list[str]) -> None:
        period = Period.parse(args[0]) if args else None
        self._dump(self._reports.budget_status(period))

    def _suggest(self, args: list[str]) -> None:
        self._need(args, 1, "suggest CATEGORY [YYYY-MM]")
        budget = self._service.suggest_budget(self._category(args[0]), self._period(args, 1))
        self._dump(BudgetOut.from_domain(budget))

    def _strategy(self, args: list[str]) -> None:
        if args:
            self._service.set_strategy(args[0])
        self._print(f"strategy: {self._service.strategy_name} (available: {', '.join(list_strategies())})")

    def _balance(self, args: list[str]) -> None:
        self._dump(self._reports.monthly_balance(self._period(args, 0)))

    def _expenses(self, args: list[str]) -> None:
        period = Period.parse(args[0]) if args else None
        self._dump(self._reports.expenses_by_category(period))

    def _trend(self, args: list[str]) -> None:
        months = int(args[0]) if args and args[0].isdigit() else 6
        self._dump(self._reports.monthly_trend(months))


def main() -> None:
    service = build_service()
    service.add_budget_observer(ConsoleBudgetObserver(service.categories))
    console = FinanceConsole(service)
    print("Personal finance tracker. Type 'help' for commands.")
    console.run()


if __name__ == "__main__":
    main()
