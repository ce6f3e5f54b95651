from __future__ import annotations

from datetime import date
from typing import Generic, TypeVar

from domain.models import Budget, Category, Period, Transaction
from infrastructure.persistence.store import BudgetStore, CategoryStore, TransactionStore

T = TypeVar("T")


class _MemoryStore(Generic[T]):
    def __init__(self) -> None:
        self._store: dict[str, T] = {}

    def save(self, entity: T) -> T:
        self._store[entity.id] = entity
        return entity

    def find_by_id(self, entity_id: str) -> T | None:
        return self._store.get(entity_id)

    def find_all(self) -> list[T]:
        return list(self._store.values())

    def delete_by_id(self, entity_id: str) -> None:
        self._store.pop(entity_id, None)

    def exists_by_id(self, entity_id: str) -> bool:
        return entity_id in self._store

    def count(self) -> int:
        return len(self._store)


class InMemoryCategoryStore(_MemoryStore[Category], CategoryStore):
    def find_by_parent(self, parent_id: str) -> list[Category]:
        return [c for c in self._store.values() if c.parent_id == parent_id]

    def find_roots(self) -> list[Category]:
        return [c for c in self._store.values() if c.parent_id is None]


class InMemoryTransactionStore(_MemoryStore[Transaction], TransactionStore):
    def find_by_category(self, category_id: str) -> list[Transaction]:
        return [t for t in self._store.values() if t.category_id == category_id]

    def find_by_date_range(self, start: date, end: date) -> list[Transaction]:
        return [t for t in self._store.values() if start <= t.posted_on <= end]


class InMemoryBudgetStore(_MemoryStore[Budget], BudgetStore):
    def find_by_category(self, category_id: str) -> list[Budget]:
        return [b for b in self._store.values() if b.category_id == category_id]

    def find_by_period(self, period: Period) -> list[Budget]:
        return [b for b in self._store.values() if b.period == period]
