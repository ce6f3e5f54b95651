from __future__ import annotations

import logging
import threading
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Iterator

from application.notifications import BudgetNotificationSubject, BudgetObserver
from application.strategies import BudgetingStrategy, get_strategy
from domain.categories import CategoryTree
from domain.errors import ConflictError, CycleError, NotFoundError, ValidationError
from domain.factory import create_transaction
from domain.models import Budget, BudgetEvent, Category, Period, Transaction, TransactionType
from infrastructure.persistence.store import BudgetStore, CategoryStore, TransactionStore

logger = logging.getLogger(__name__)


class LedgerService:
    """
    Ties transactions, budgets and notifications together.

    A budget matches a transaction when their periods are equal and the
    transaction category is the budget category or one of its descendants.
    Only expenses touch budgets. Mutations are serialized with one re-entrant
    lock; observers run on the caller's stack and must not call back in.
    """

    def __init__(
        self,
        category_store: CategoryStore,
        transaction_store: TransactionStore,
        budget_store: BudgetStore,
        notifications: BudgetNotificationSubject | None = None,
        strategy: str | BudgetingStrategy = "conservative",
        default_currency: str = "EUR",
    ):
        self._category_store = category_store
        self._transaction_store = transaction_store
        self._budget_store = budget_store
        self._notifications = notifications or BudgetNotificationSubject()
        self._lock = threading.RLock()
        self._tree = CategoryTree(category_store.find_all())
        self._strategy: BudgetingStrategy = get_strategy("conservative")
        self._strategy_name = "conservative"
        self.set_strategy(strategy)
        self.default_currency = default_currency
        logger.info("LedgerService ready categories=%d strategy=%s currency=%s", len(self._tree), self._strategy_name, self._default_currency)

    # ---- settings ----
    @property
    def default_currency(self) -> str:
        return self._default_currency

    @default_currency.setter
    def default_currency(self, currency: str) -> None:
        if not currency or not str(currency).strip():
            raise ValidationError("Currency cannot be blank")
        self._default_currency = str(currency).strip().upper()

    @property
    def strategy_name(self) -> str:
        return self._strategy_name

    def set_strategy(self, strategy: str | BudgetingStrategy) -> None:
        if strategy is None:
            raise ValidationError("Strategy cannot be None")
        if isinstance(strategy, str):
            self._strategy = get_strategy(strategy)
            self._strategy_name = strategy.lower()
        else:
            self._strategy = strategy
            self._strategy_name = getattr(strategy, "__name__", type(strategy).__name__)

    @property
    def notifications(self) -> BudgetNotificationSubject:
        return self._notifications

    def add_budget_observer(self, observer: BudgetObserver) -> None:
        self._notifications.add_observer(observer)

    def remove_budget_observer(self, observer: BudgetObserver) -> None:
        self._notifications.remove_observer(observer)

    # ---- categories ----
    @property
    def categories(self) -> CategoryTree:
        return self._tree

    def add_category(self, category: Category, parent: Category | str | None = None) -> Category:
        with self._lock:
            if category is None:
                raise ValidationError("Category cannot be None")
            parent_id = parent.id if isinstance(parent, Category) else parent
            if parent_id is not None and parent_id == category.id:
                raise CycleError("Cannot add category as subcategory of itself")
            if category.id in self._tree:
                node = self._tree.require(category.id)
                touched = self._link(parent, node) if parent is not None else []
            else:
                touched = self._tree.insert(category, parent)
                node = touched[0]
            for item in touched:
                self._category_store.save(item)
            logger.info("Category added id=%s path=%s", node.id, self._tree.full_path(node))
            return node

    def add_subcategory(self, parent: Category | str, child: Category | str) -> None:
        with self._lock:
            touched = self._link(parent, child)
            for item in touched:
                self._category_store.save(item)

    def _link(self, parent: Category | str, child: Category | str) -> list[Category]:
        child_node = self._tree.require(child)
        previous = self._tree.parent(child_node)
        self._tree.add_subcategory(parent, child_node)
        touched = [self._tree.require(parent), child_node]
        if previous is not None and previous.id != child_node.parent_id:
            touched.append(previous)
        logger.info("Category linked parent=%s child=%s", child_node.parent_id, child_node.id)
        return touched

    def remove_subcategory(self, parent: Category | str, child: Category | str) -> bool:
        with self._lock:
            if not self._tree.remove_subcategory(parent, child):
                return False
            self._category_store.save(self._tree.require(parent))
            child_node = self._tree.get(child.id if isinstance(child, Category) else child)
            if child_node is not None:
                self._category_store.save(child_node)
            return True

    def remove_category(self, category: Category | str) -> None:
        """Delete a category that nothing references; its children become roots."""
        with self._lock:
            node = self._tree.require(category)
            if self._transaction_store.find_by_category(node.id):
                raise ConflictError(f"Cannot delete category {node.name!r} with existing transactions")
            if self._budget_store.find_by_category(node.id):
                raise ConflictError(f"Cannot delete category {node.name!r} with existing budgets")
            for item in self._tree.discard(node):
                self._category_store.save(item)
            self._category_store.delete_by_id(node.id)
            logger.info("Category removed id=%s name=%s", node.id, node.name)

    def get_category(self, category_id: str) -> Category | None:
        return self._tree.get(category_id)

    def find_category_by_name(self, name: str) -> Category | None:
        return self._tree.find_by_name(name)

    def list_categories(self) -> list[Category]:
        return list(self._tree)

    def root_categories(self) -> list[Category]:
        return self._tree.roots()

    def subcategories(self, category: Category | str) -> list[Category]:
        return self._tree.children(category)

    def category_path(self, category: Category | str) -> str:
        return self._tree.full_path(category)

    def _subtree_ids(self, category_id: str) -> set[str]:
        if category_id in self._tree:
            return self._tree.subtree_ids(category_id)
        return {category_id}

    # ---- transactions ----
    def add_transaction(self, transaction: Transaction) -> list[BudgetEvent]:
        if transaction is None:
            raise ValidationError("Transaction cannot be None")
        with self._lock:
            self._tree.require(transaction.category_id)
            self._transaction_store.save(transaction)
            logger.info(
                "Transaction added id=%s kind=%s amount=%s category_id=%s period=%s",
                transaction.id, transaction.kind.value, transaction.amount, transaction.category_id, transaction.period,
            )
            if transaction.kind != TransactionType.EXPENSE:
                return []

            events: list[BudgetEvent] = []
            for budget in self._matching_budgets(transaction):
                events.extend(self._notifications.process_expense(budget, transaction.amount))
                self._budget_store.save(budget)
            return events

    def record_transaction(
        self,
        kind: TransactionType | str,
        amount: Any,
        description: str,
        category: Category | str,
        currency: str | None = None,
        timestamp: datetime | None = None,
    ) -> tuple[Transaction, list[BudgetEvent]]:
        transaction = create_transaction(
            kind, amount, description, category, currency or self._default_currency, timestamp=timestamp,
        )
        return transaction, self.add_transaction(transaction)

    def remove_transaction(self, transaction_id: str) -> Transaction:
        """Delete a transaction and reverse its budget effect. No notification is retracted."""
        with self._lock:
            transaction = self._transaction_store.find_by_id(transaction_id)
            if transaction is None:
                raise NotFoundError(f"Transaction not found: {transaction_id}")
            if transaction.kind == TransactionType.EXPENSE:
                for budget in self._matching_budgets(transaction):
                    budget.remove_expense(transaction.amount)
                    self._budget_store.save(budget)
            self._transaction_store.delete_by_id(transaction_id)
            logger.info("Transaction removed id=%s kind=%s amount=%s", transaction.id, transaction.kind.value, transaction.amount)
            return transaction

    def _matching_budgets(self, transaction: Transaction) -> list[Budget]:
        return [
            budget
            for budget in self._budget_store.find_by_period(transaction.period)
            if self._tree.in_subtree(transaction.category_id, budget.category_id)
        ]

    def get_transaction(self, transaction_id: str) -> Transaction | None:
        return self._transaction_store.find_by_id(transaction_id)

    def list_transactions(self) -> list[Transaction]:
        return sorted(self._transaction_store.find_all(), key=lambda t: t.timestamp)

    def transactions_by_type(self, kind: TransactionType | str) -> list[Transaction]:
        return sorted(self._transaction_store.find_by_type(TransactionType(kind)), key=lambda t: t.timestamp)

    def transactions_by_category(self, category: Category | str) -> list[Transaction]:
        """Transactions of the category and of every descendant."""
        category_id = category.id if isinstance(category, Category) else category
        found: list[Transaction] = []
        for cid in self._subtree_ids(category_id):
            found.extend(self._transaction_store.find_by_category(cid))
        return sorted(found, key=lambda t: t.timestamp)

    def transactions_between(self, start: date, end: date) -> list[Transaction]:
        if start > end:
            raise ValidationError("start must be <= end")
        return sorted(self._transaction_store.find_by_date_range(start, end), key=lambda t: t.timestamp)

    def transactions_by_period(self, period: Period | str) -> list[Transaction]:
        period = Period.parse(period)
        return self.transactions_between(period.start(), period.end())

    def search_transactions(self, term: str) -> list[Transaction]:
        needle = (term or "").strip().lower()
        found = []
        for txn in self.list_transactions():
            category = self._tree.get(txn.category_id)
            category_name = category.name.lower() if category is not None else ""
            if needle in txn.description.lower() or needle in category_name:
                found.append(txn)
        return found

    def iter_history(self, reverse: bool = False) -> Iterator[Transaction]:
        history = self.list_transactions()
        return reversed(history) if reverse else iter(history)

    # ---- budgets ----
    def add_budget(self, budget: Budget) -> Budget:
        """
        Store ``budget`` as the only budget of its (category, period) pair.

        ``spent`` is rebuilt from the expenses already recorded for that period
        and subtree. The catch-up does not notify observers.
        """
        if budget is None:
            raise ValidationError("Budget cannot be None")
        with self._lock:
            self._tree.require(budget.category_id)
            for existing in self._budget_store.find_by_period(budget.period):
                if existing.category_id == budget.category_id and existing.id != budget.id:
                    self._budget_store.delete_by_id(existing.id)
                    logger.info("Budget replaced id=%s by id=%s", existing.id, budget.id)

            budget.reset_spent()
            subtree = self._subtree_ids(budget.category_id)
            for txn in self._expenses_in(budget.period):
                if txn.category_id in subtree:
                    budget.add_expense(txn.amount)
            self._budget_store.save(budget)
            logger.info(
                "Budget added id=%s category_id=%s period=%s amount=%s spent=%s",
                budget.id, budget.category_id, budget.period, budget.amount, budget.spent,
            )
            return budget

    def create_budget(self, category: Category | str, amount: Any, period: Period | str, currency: str | None = None) -> Budget:
        category_id = category.id if isinstance(category, Category) else category
        budget = Budget(
            category_id=category_id,
            amount=amount,
            period=Period.parse(period),
            currency=currency or self._default_currency,
        )
        return self.add_budget(budget)

    def _expenses_in(self, period: Period) -> list[Transaction]:
        return [
            t for t in self._transaction_store.find_by_date_range(period.start(), period.end())
            if t.kind == TransactionType.EXPENSE
        ]

    def remove_budget(self, budget_id: str) -> Budget:
        with self._lock:
            budget = self._budget_store.find_by_id(budget_id)
            if budget is None:
                raise NotFoundError(f"Budget not found: {budget_id}")
            self._budget_store.delete_by_id(budget_id)
            logger.info("Budget removed id=%s", budget_id)
            return budget

    def recalculate_budgets(self) -> list[Budget]:
        """Replay every stored expense into every budget, silently."""
        with self._lock:
            budgets = self._budget_store.find_all()
            for budget in budgets:
                budget.reset_spent()
                subtree = self._subtree_ids(budget.category_id)
                for txn in self._expenses_in(budget.period):
                    if txn.category_id in subtree:
                        budget.add_expense(txn.amount)
                self._budget_store.save(budget)
            logger.info("Budgets recalculated count=%d", len(budgets))
            return budgets

    def get_budget(self, budget_id: str) -> Budget | None:
        return self._budget_store.find_by_id(budget_id)

    def list_budgets(self) -> list[Budget]:
        return sorted(self._budget_store.find_all(), key=lambda b: (b.period, b.category_id))

    def budget_for(self, category: Category | str, period: Period | str) -> Budget | None:
        category_id = category.id if isinstance(category, Category) else category
        period = Period.parse(period)
        for budget in self._budget_store.find_by_period(period):
            if budget.category_id == category_id:
                return budget
        return None

    def budgets_by_period(self, period: Period | str) -> list[Budget]:
        return self._budget_store.find_by_period(Period.parse(period))

    def budgets_by_category(self, category: Category | str) -> list[Budget]:
        category_id = category.id if isinstance(category, Category) else category
        return sorted(self._budget_store.find_by_category(category_id), key=lambda b: b.period)

    def active_budgets(self, today: date | None = None) -> list[Budget]:
        return self._budget_store.find_active(Period.of(today or date.today()))

    def exceeded_budgets(self) -> list[Budget]:
        return [b for b in self.list_budgets() if b.is_exceeded()]

    def budgets_near_limit(self) -> list[Budget]:
        return [b for b in self.list_budgets() if b.is_near_limit() and not b.is_exceeded()]

    # ---- suggestions ----
    def income_for(self, period: Period | str) -> Decimal:
        return sum(
            (t.amount for t in self.transactions_by_period(period) if t.kind == TransactionType.INCOME),
            Decimal("0.00"),
        )

    def suggest_budget(self, category: Category | str, period: Period | str, currency: str | None = None) -> Budget:
        """Ask the configured strategy for a budget; the result is not stored."""
        node = self._tree.require(category)
        period = Period.parse(period)
        history = [t for t in self.transactions_by_category(node) if t.kind == TransactionType.EXPENSE]
        budget = self._strategy(node.id, self.income_for(period), history, period, currency or self._default_currency)
        logger.info(
            "Budget suggested strategy=%s category_id=%s period=%s amount=%s",
            self._strategy_name, node.id, period, budget.amount,
        )
        return budget
