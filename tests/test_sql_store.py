from __future__ import annotations

import os
import tempfile
import unittest
from datetime import date, datetime
from decimal import Decimal

from application.ledger import LedgerService
from domain.factory import create_expense, create_income
from domain.models import Budget, Category, Period, TransactionType
from infrastructure.persistence.sql_store import SqlBudgetStore, SqlCategoryStore, SqlDatabase, SqlTransactionStore


class SqlStoreTests(unittest.TestCase):
    def setUp(self) -> None:
        self.db = SqlDatabase("sqlite://")
        self.categories = SqlCategoryStore(self.db)
        self.transactions = SqlTransactionStore(self.db)
        self.budgets = SqlBudgetStore(self.db)

    def tearDown(self) -> None:
        self.db.dispose()

    def test_category_round_trip_keeps_parent_links(self) -> None:
        food = Category("Food", "Everything edible")
        groceries = Category("Groceries", parent_id=food.id)
        self.categories.save(food)
        self.categories.save(groceries)

        loaded = self.categories.find_by_id(groceries.id)
        self.assertEqual(loaded.name, "Groceries")
        self.assertEqual(loaded.parent_id, food.id)
        self.assertEqual(self.categories.find_roots(), [food])
        self.assertEqual(self.categories.find_by_parent(food.id), [groceries])
        self.assertEqual(self.categories.count(), 2)

        self.categories.delete_by_id(groceries.id)
        self.assertFalse(self.categories.exists_by_id(groceries.id))

    def test_transactions_keep_exact_amounts(self) -> None:
        txn = create_expense("19.99", "Lunch", "food", "EUR", timestamp=datetime(2026, 1, 31, 23, 30))
        self.transactions.save(txn)

        loaded = self.transactions.find_by_id(txn.id)
        self.assertEqual(loaded.amount, Decimal("19.99"))
        self.assertEqual(loaded.kind, TransactionType.EXPENSE)
        self.assertEqual(loaded.timestamp, datetime(2026, 1, 31, 23, 30))

    def test_transaction_queries(self) -> None:
        jan = create_expense("10", "A", "food", "EUR", timestamp=datetime(2026, 1, 31, 23, 59))
        feb = create_income("20", "B", "salary", "EUR", timestamp=datetime(2026, 2, 1, 0, 0))
        for txn in (feb, jan):
            self.transactions.save(txn)

        self.assertEqual(self.transactions.find_by_date_range(date(2026, 1, 1), date(2026, 1, 31)), [jan])
        self.assertEqual(self.transactions.find_by_category("salary"), [feb])
        self.assertEqual(self.transactions.find_by_type(TransactionType.INCOME), [feb])
        self.assertEqual(self.transactions.find_all(), [jan, feb])

    def test_budget_spent_is_persisted_on_save(self) -> None:
        budget = Budget(category_id="food", amount="300", period=Period(2026, 1))
        self.budgets.save(budget)
        budget.add_expense("12.34")
        self.budgets.save(budget)

        loaded = self.budgets.find_by_id(budget.id)
        self.assertEqual(loaded.spent, Decimal("12.34"))
        self.assertEqual(loaded.period, Period(2026, 1))
        self.assertEqual(self.budgets.find_by_period(Period(2026, 1)), [budget])
        self.assertEqual(self.budgets.find_by_category("food"), [budget])

    def test_find_active_budgets(self) -> None:
        old = Budget(category_id="food", amount="1", period=Period(2025, 12))
        now = Budget(category_id="food", amount="1", period=Period(2026, 1))
        later = Budget(category_id="food", amount="1", period=Period(2026, 11))
        for budget in (later, old, now):
            self.budgets.save(budget)

        self.assertEqual(self.budgets.find_active(Period(2026, 1)), [now, later])


class SqlLedgerTests(unittest.TestCase):
    def test_ledger_state_survives_reopening_the_database(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            url = f"sqlite:///{os.path.join(tmp, 'ledger.db')}"

            db = SqlDatabase(url)
            ledger = LedgerService(SqlCategoryStore(db), SqlTransactionStore(db), SqlBudgetStore(db))
            food = ledger.add_category(Category("Food"))
            groceries = ledger.add_category(Category("Groceries"), parent=food)
            budget = ledger.create_budget(food, "100", "2026-01")
            ledger.record_transaction("expense", "95", "Shop", groceries, timestamp=datetime(2026, 1, 4))
            db.dispose()

            db = SqlDatabase(url)
            reopened = LedgerService(SqlCategoryStore(db), SqlTransactionStore(db), SqlBudgetStore(db))
            try:
                self.assertEqual(reopened.category_path(groceries.id), "Food > Groceries")
                self.assertEqual(reopened.get_budget(budget.id).spent, Decimal("95.00"))
                self.assertTrue(reopened.get_budget(budget.id).is_near_limit())
                self.assertEqual(len(reopened.list_transactions()), 1)
            finally:
                db.dispose()

    def test_adopted_children_are_saved(self) -> None:
        db = SqlDatabase("sqlite://")
        try:
            ledger = LedgerService(SqlCategoryStore(db), SqlTransactionStore(db), SqlBudgetStore(db))
            home = ledger.add_category(Category("Home"))
            rent = ledger.add_category(Category("Rent"), parent=home)
            housing = ledger.add_category(Category("Housing", child_ids={rent.id}))

            reopened = LedgerService(SqlCategoryStore(db), SqlTransactionStore(db), SqlBudgetStore(db))

            self.assertEqual(reopened.category_path(rent.id), "Housing > Rent")
            self.assertEqual(reopened.subcategories(home.id), [])
            self.assertEqual(reopened.subcategories(housing.id), [rent])
        finally:
            db.dispose()


if __name__ == "__main__":
    unittest.main()
