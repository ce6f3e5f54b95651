from __future__ import annotations

import io
import json
import unittest
from decimal import Decimal
from unittest.mock import patch

from application.ledger import LedgerService
from domain.models import Category, Period
from infrastructure.persistence.memory_store import (
    InMemoryBudgetStore,
    InMemoryCategoryStore,
    InMemoryTransactionStore,
)
from interface.cli import FinanceConsole, build_service
from interface.console_observer import ConsoleBudgetObserver


class FinanceConsoleTests(unittest.TestCase):
    def setUp(self) -> None:
        self.service = LedgerService(InMemoryCategoryStore(), InMemoryTransactionStore(), InMemoryBudgetStore())
        self.food = self.service.add_category(Category("Food"))
        self.out = io.StringIO()
        self.console = FinanceConsole(self.service, stream=self.out)

    def _run(self, line: str) -> str:
        self.out.seek(0)
        self.out.truncate()
        self.console.execute(line)
        return self.out.getvalue()

    def test_add_category_under_parent(self) -> None:
        output = self._run("add-category Groceries Food")

        payload = json.loads(output)
        self.assertEqual(payload["full_path"], "Food > Groceries")
        self.assertEqual(payload["parent_id"], self.food.id)

    def test_expense_over_budget_reports_events(self) -> None:
        self._run("budget Food 100 2026-01")
        output = self._run('expense 120 food "Big shop" 2026-01-05')

        self.assertIn('"description": "Big shop"', output)
        self.assertIn("budget events: expense_added, exceeded", output)
        self.assertEqual(self.service.budget_for(self.food, Period(2026, 1)).spent, Decimal("120.00"))

    def test_errors_are_printed_not_raised(self) -> None:
        self.assertIn("error: Category not found: Travel", self._run("expense 10 Travel taxi"))
        self.assertIn("error: usage:", self._run("income 10"))
        self.assertIn("error:", self._run("expense -5 Food refund"))
        self.assertIn("error:", self._run("expense 5 Food x 2026-99-01"))
        self.assertIn("error:", self._run("strategy reckless"))
        self.assertIn("unknown command", self._run("frobnicate"))
        self.assertEqual(self.service.list_transactions(), [])

    def test_history_and_remove(self) -> None:
        self._run("income 2000 Food salary 2026-01-01")
        self._run("expense 15 Food lunch 2026-01-02")

        history = json.loads(self._run("history reverse"))
        self.assertEqual([t["description"] for t in history], ["lunch", "salary"])

        output = self._run(f"remove-tx {history[0]['id']}")
        self.assertIn("removed expense 15.00 EUR (lunch)", output)
        self.assertEqual(len(self.service.list_transactions()), 1)

    def test_balance_and_expenses(self) -> None:
        self._run("income 1000 Food salary 2026-03-01")
        self._run("expense 250.50 Food dinner 2026-03-02")

        balance = json.loads(self._run("balance 2026-03"))
        self.assertEqual(Decimal(balance["balance"]), Decimal("749.50"))

        expenses = json.loads(self._run("expenses 2026-03"))
        self.assertEqual(expenses[0]["category_path"], "Food")

    def test_strategy_and_suggest(self) -> None:
        self.assertIn("strategy: aggressive", self._run("strategy aggressive"))
        suggestion = json.loads(self._run("suggest Food 2026-05"))
        self.assertEqual(Decimal(suggestion["amount"]), Decimal("100.00"))
        self.assertEqual(self.service.list_budgets(), [])

    def test_categories_tree(self) -> None:
        self._run("add-category Groceries Food")
        output = self._run("categories")
        self.assertIn("- Food", output)
        self.assertIn("  - Groceries", output)

    def test_run_stops_on_quit(self) -> None:
        self.console.run(["add-category Home", "quit", "add-category Never"])

        self.assertIsNotNone(self.service.find_category_by_name("home"))
        self.assertIsNone(self.service.find_category_by_name("never"))

    def test_console_observer_prints_exceeded_banner(self) -> None:
        banner = io.StringIO()
        self.service.add_budget_observer(ConsoleBudgetObserver(self.service.categories, stream=banner))
        self._run("budget Food 10 2026-01")
        self._run("expense 12 Food snack 2026-01-03")

        text = banner.getvalue()
        self.assertIn("BUDGET EXCEEDED", text)
        self.assertIn("Overspent: 2.00 EUR", text)


class BuildServiceTests(unittest.TestCase):
    def test_seeds_default_categories_in_memory(self) -> None:
        with patch.dict("os.environ", {"FINANCE_DATABASE_URL": "", "FINANCE_DEFAULT_CURRENCY": "usd"}):
            service = build_service()

        self.assertEqual(service.default_currency, "USD")
        self.assertEqual(service.category_path(service.find_category_by_name("Groceries")), "Food > Groceries")
        self.assertEqual(service.notifications.observer_count, 1)

    def test_seeding_can_be_disabled(self) -> None:
        with patch.dict("os.environ", {"FINANCE_DATABASE_URL": "sqlite://", "FINANCE_SEED_CATEGORIES": "false"}):
            service = build_service()

        self.assertEqual(service.list_categories(), [])


if __name__ == "__main__":
    unittest.main()
