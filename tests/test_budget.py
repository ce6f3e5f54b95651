from __future__ import annotations

import unittest
from decimal import Decimal

from domain.errors import ValidationError
from domain.models import Budget, Period


class BudgetTests(unittest.TestCase):
    def _budget(self, amount: str = "300") -> Budget:
        return Budget(category_id="food", amount=Decimal(amount), period=Period(2026, 1), currency="EUR")

    def test_limit_must_be_positive(self) -> None:
        for amount in ("0", "-1"):
            with self.subTest(amount=amount):
                with self.assertRaises(ValidationError):
                    self._budget(amount)

    def test_add_expense_updates_remaining(self) -> None:
        budget = self._budget()
        budget.add_expense(Decimal("120.50"))

        self.assertEqual(budget.spent, Decimal("120.50"))
        self.assertEqual(budget.remaining(), Decimal("179.50"))

    def test_add_then_remove_restores_spent(self) -> None:
        budget = self._budget()
        budget.add_expense("40")
        before = budget.spent

        budget.add_expense("25.25")
        budget.remove_expense("25.25")

        self.assertEqual(budget.spent, before)

    def test_remove_expense_never_goes_below_zero(self) -> None:
        budget = self._budget()
        budget.add_expense("10")
        budget.remove_expense("500")

        self.assertEqual(budget.spent, Decimal("0.00"))

    def test_negative_deltas_are_rejected(self) -> None:
        budget = self._budget()
        with self.assertRaises(ValidationError):
            budget.add_expense("-1")
        with self.assertRaises(ValidationError):
            budget.remove_expense("-1")

    def test_near_limit_without_exceeding(self) -> None:
        budget = self._budget()
        budget.add_expense("285")

        self.assertEqual(budget.usage_percentage(), Decimal("95.00"))
        self.assertTrue(budget.is_near_limit())
        self.assertFalse(budget.is_exceeded())

    def test_exactly_at_limit_is_not_exceeded(self) -> None:
        budget = self._budget()
        budget.add_expense("300")

        self.assertFalse(budget.is_exceeded())
        self.assertTrue(budget.is_near_limit())
        self.assertEqual(budget.remaining(), Decimal("0.00"))

    def test_over_limit(self) -> None:
        budget = self._budget()
        budget.add_expense("350")

        self.assertTrue(budget.is_exceeded())
        self.assertEqual(budget.remaining(), Decimal("-50.00"))
        self.assertEqual(budget.overspent(), Decimal("50.00"))

    def test_usage_ratio_is_rounded_half_up_to_four_places(self) -> None:
        budget = self._budget("3")
        budget.add_expense("2")  # 0.66666... -> 0.6667

        self.assertEqual(budget.usage_percentage(), Decimal("66.67"))
        self.assertFalse(budget.is_near_limit())

    def test_just_under_ninety_percent_is_not_near_limit(self) -> None:
        budget = self._budget("100")
        budget.add_expense("89.99")
        self.assertFalse(budget.is_near_limit())
        budget.add_expense("0.01")
        self.assertTrue(budget.is_near_limit())

    def test_period_strings_are_parsed(self) -> None:
        budget = Budget(category_id="food", amount="50", period="2026-02", currency="usd")
        self.assertEqual(budget.period, Period(2026, 2))
        self.assertEqual(budget.currency, "USD")

    def test_oversized_limit_is_rejected(self) -> None:
        with self.assertRaises(ValidationError):
            self._budget("1e30")

    def test_usage_of_a_huge_overrun_is_still_computed(self) -> None:
        budget = Budget(category_id="food", amount="0.01", period=Period(2026, 1), spent="1e25")

        self.assertEqual(budget.usage_percentage(), Decimal("1e29"))
        self.assertTrue(budget.is_exceeded())
        self.assertTrue(budget.is_near_limit())

    def test_reset_spent(self) -> None:
        budget = self._budget()
        budget.add_expense("99")
        budget.reset_spent()
        self.assertEqual(budget.spent, Decimal("0.00"))


if __name__ == "__main__":
    unittest.main()
