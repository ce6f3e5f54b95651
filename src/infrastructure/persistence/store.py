from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import date
from typing import Generic, TypeVar

from domain.models import Budget, Category, Period, Transaction, TransactionType

T = TypeVar("T")


class Store(ABC, Generic[T]):
    """Base persistence contract for one entity kind, keyed by entity id."""

    name: str = "store"

    @abstractmethod
    def save(self, entity: T) -> T:
        raise NotImplementedError

    @abstractmethod
    def find_by_id(self, entity_id: str) -> T | None:
        raise NotImplementedError

    @abstractmethod
    def find_all(self) -> list[T]:
        raise NotImplementedError

    @abstractmethod
    def delete_by_id(self, entity_id: str) -> None:
        raise NotImplementedError

    def exists_by_id(self, entity_id: str) -> bool:
        return self.find_by_id(entity_id) is not None

    def count(self) -> int:
        return len(self.find_all())


class CategoryStore(Store[Category]):
    name = "categories"

    @abstractmethod
    def find_by_parent(self, parent_id: str) -> list[Category]:
        raise NotImplementedError

    @abstractmethod
    def find_roots(self) -> list[Category]:
        raise NotImplementedError


class TransactionStore(Store[Transaction]):
    name = "transactions"

    @abstractmethod
    def find_by_category(self, category_id: str) -> list[Transaction]:
        raise NotImplementedError

    @abstractmethod
    def find_by_date_range(self, start: date, end: date) -> list[Transaction]:
        """Transactions booked between ``start`` and ``end``, both inclusive."""
        raise NotImplementedError

    def find_by_type(self, kind: TransactionType) -> list[Transaction]:
        return [t for t in self.find_all() if t.kind == kind]


class BudgetStore(Store[Budget]):
    name = "budgets"

    @abstractmethod
    def find_by_category(self, category_id: str) -> list[Budget]:
        raise NotImplementedError

    @abstractmethod
    def find_by_period(self, period: Period) -> list[Budget]:
        raise NotImplementedError

    def find_active(self, current: Period) -> list[Budget]:
        return sorted((b for b in self.find_all() if b.period >= current), key=lambda b: b.period)
