from __future__ import annotations

import unittest
from decimal import Decimal

from application.notifications import BudgetNotificationSubject, BudgetObserver, LoggingBudgetObserver
from domain.errors import ValidationError
from domain.models import Budget, BudgetEventType, Period


class RecordingObserver(BudgetObserver):
    def __init__(self) -> None:
        self.calls: list[tuple[str, Decimal]] = []

    def on_expense_added(self, budget, amount):
        self.calls.append(("expense_added", amount))

    def on_budget_near_limit(self, budget, remaining):
        self.calls.append(("near_limit", remaining))

    def on_budget_exceeded(self, budget, overspent):
        self.calls.append(("exceeded", overspent))


class BrokenObserver(BudgetObserver):
    def on_expense_added(self, budget, amount):
        raise RuntimeError("boom")

    def on_budget_near_limit(self, budget, remaining):
        raise RuntimeError("boom")

    def on_budget_exceeded(self, budget, overspent):
        raise RuntimeError("boom")


class BudgetNotificationSubjectTests(unittest.TestCase):
    def setUp(self) -> None:
        self.subject = BudgetNotificationSubject()
        self.observer = RecordingObserver()
        self.subject.add_observer(self.observer)
        self.budget = Budget(category_id="food", amount=Decimal("300"), period=Period(2026, 1))

    def test_small_expense_only_reports_the_expense(self) -> None:
        events = self.subject.process_expense(self.budget, "50")

        self.assertEqual([e.type for e in events], [BudgetEventType.EXPENSE_ADDED])
        self.assertEqual(self.observer.calls, [("expense_added", Decimal("50.00"))])

    def test_jump_past_limit_fires_exceeded_but_not_near_limit(self) -> None:
        events = self.subject.process_expense(self.budget, "350")

        self.assertEqual([e.type for e in events], [BudgetEventType.EXPENSE_ADDED, BudgetEventType.EXCEEDED])
        self.assertEqual(events[1].amount, Decimal("50.00"))
        self.assertEqual(
            self.observer.calls,
            [("expense_added", Decimal("350.00")), ("exceeded", Decimal("50.00"))],
        )

    def test_exceeded_is_edge_triggered(self) -> None:
        self.subject.process_expense(self.budget, "350")
        self.observer.calls.clear()

        events = self.subject.process_expense(self.budget, "10")

        self.assertEqual([e.type for e in events], [BudgetEventType.EXPENSE_ADDED])
        self.assertEqual(self.observer.calls, [("expense_added", Decimal("10.00"))])

    def test_near_limit_fires_once_on_crossing(self) -> None:
        self.subject.process_expense(self.budget, "200")
        events = self.subject.process_expense(self.budget, "85")

        self.assertEqual([e.type for e in events], [BudgetEventType.EXPENSE_ADDED, BudgetEventType.NEAR_LIMIT])
        self.assertEqual(events[1].amount, Decimal("15.00"))

        again = self.subject.process_expense(self.budget, "5")
        self.assertEqual([e.type for e in again], [BudgetEventType.EXPENSE_ADDED])

    def test_exceeding_from_near_limit_fires_exceeded(self) -> None:
        self.subject.process_expense(self.budget, "285")
        events = self.subject.process_expense(self.budget, "30")

        self.assertEqual(events[-1].type, BudgetEventType.EXCEEDED)
        self.assertEqual(events[-1].amount, Decimal("15.00"))

    def test_failing_observer_does_not_block_others(self) -> None:
        subject = BudgetNotificationSubject()
        recorder = RecordingObserver()
        subject.add_observer(BrokenObserver())
        subject.add_observer(recorder)

        with self.assertLogs("application.notifications", level="ERROR"):
            events = subject.process_expense(self.budget, "400")

        self.assertEqual(len(events), 2)
        self.assertEqual([name for name, _ in recorder.calls], ["expense_added", "exceeded"])
        self.assertEqual(self.budget.spent, Decimal("400.00"))

    def test_add_observer_is_idempotent(self) -> None:
        self.subject.add_observer(self.observer)
        self.assertEqual(self.subject.observer_count, 1)

        self.subject.process_expense(self.budget, "1")
        self.assertEqual(len(self.observer.calls), 1)

    def test_remove_and_clear_observers(self) -> None:
        other = RecordingObserver()
        self.subject.add_observer(other)
        self.subject.remove_observer(self.observer)
        self.assertEqual(self.subject.observer_count, 1)

        self.subject.remove_observer(self.observer)
        self.assertEqual(self.subject.observer_count, 1)

        self.subject.clear_observers()
        self.assertEqual(self.subject.observer_count, 0)
        self.assertEqual(len(self.subject.process_expense(self.budget, "1")), 1)

    def test_none_observer_is_rejected(self) -> None:
        with self.assertRaises(ValidationError):
            self.subject.add_observer(None)

    def test_logging_observer_logs_warnings(self) -> None:
        subject = BudgetNotificationSubject()
        subject.add_observer(LoggingBudgetObserver())

        with self.assertLogs("application.notifications", level="WARNING") as captured:
            subject.process_expense(self.budget, "301")

        self.assertTrue(any("Budget exceeded" in line for line in captured.output))


if __name__ == "__main__":
    unittest.main()
