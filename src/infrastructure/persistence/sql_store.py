from __future__ import annotations

import logging
from contextlib import contextmanager
from datetime import date, datetime, time
from decimal import Decimal
from typing import Iterator

from sqlalchemy import Date, DateTime, String, create_engine, select
from sqlalchemy.orm import DeclarativeBase, Mapped, Session, mapped_column, sessionmaker
from sqlalchemy.pool import StaticPool

from domain.models import Budget, Category, Period, Transaction, TransactionType
from infrastructure.persistence.store import BudgetStore, CategoryStore, TransactionStore

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    pass


# Money columns are strings so that SQLite keeps amounts exact.
class CategoryRow(Base):
    __tablename__ = "categories"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str] = mapped_column(String(200), index=True)
    description: Mapped[str] = mapped_column(String(500), default="")
    parent_id: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)


class TransactionRow(Base):
    __tablename__ = "transactions"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    kind: Mapped[str] = mapped_column(String(20), index=True)
    amount: Mapped[str] = mapped_column(String(32))
    description: Mapped[str] = mapped_column(String(500))
    category_id: Mapped[str] = mapped_column(String(64), index=True)
    currency: Mapped[str] = mapped_column(String(8))
    timestamp: Mapped[datetime] = mapped_column(DateTime, index=True)


class BudgetRow(Base):
    __tablename__ = "budgets"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    category_id: Mapped[str] = mapped_column(String(64), index=True)
    amount: Mapped[str] = mapped_column(String(32))
    period: Mapped[str] = mapped_column(String(7), index=True)
    currency: Mapped[str] = mapped_column(String(8))
    spent: Mapped[str] = mapped_column(String(32), default="0.00")
    created_at: Mapped[date] = mapped_column(Date)


class SqlDatabase:
    """Owns the engine and session factory for one database URL."""

    def __init__(self, url: str = "sqlite:///finance_tracker.db", echo: bool = False) -> None:
        self.url = url
        kwargs: dict = {"echo": echo}
        if url.startswith("sqlite"):
            kwargs["connect_args"] = {"check_same_thread": False}
            if url in ("sqlite://", "sqlite:///:memory:"):
                kwargs["poolclass"] = StaticPool
        self.engine = create_engine(url, **kwargs)
        self._session_factory = sessionmaker(bind=self.engine, autoflush=False, expire_on_commit=False)
        Base.metadata.create_all(self.engine)
        logger.info("SqlDatabase ready url=%s", self.engine.url.render_as_string(hide_password=True))

    @contextmanager
    def session(self) -> Iterator[Session]:
        session = self._session_factory()
        try:
            yield session
            session.commit()
        except Exception:
            logger.exception("SqlDatabase session rolled back")
            session.rollback()
            raise
        finally:
            session.close()

    def dispose(self) -> None:
        self.engine.dispose()


class _SqlStore:
    row_type: type[Base]

    def __init__(self, database: SqlDatabase) -> None:
        self._db = database

    def _to_row(self, entity):
        raise NotImplementedError

    def _to_entity(self, row):
        raise NotImplementedError

    def save(self, entity):
        with self._db.session() as session:
            session.merge(self._to_row(entity))
        return entity

    def find_by_id(self, entity_id: str):
        with self._db.session() as session:
            row = session.get(self.row_type, entity_id)
            return self._to_entity(row) if row is not None else None

    def find_all(self) -> list:
        return self._query()

    def delete_by_id(self, entity_id: str) -> None:
        with self._db.session() as session:
            row = session.get(self.row_type, entity_id)
            if row is not None:
                session.delete(row)

    def _query(self, *criteria, order_by=None) -> list:
        stmt = select(self.row_type)
        if criteria:
            stmt = stmt.where(*criteria)
        if order_by is not None:
            stmt = stmt.order_by(order_by)
        with self._db.session() as session:
            return [self._to_entity(row) for row in session.scalars(stmt)]


class SqlCategoryStore(_SqlStore, CategoryStore):
    row_type = CategoryRow

    def _to_row(self, category: Category) -> CategoryRow:
        return CategoryRow(
            id=category.id,
            name=category.name,
            description=category.description,
            parent_id=category.parent_id,
        )

    def _to_entity(self, row: CategoryRow) -> Category:
        # child_ids are rebuilt by CategoryTree from the parent links.
        return Category(name=row.name, description=row.description, id=row.id, parent_id=row.parent_id)

    def find_by_parent(self, parent_id: str) -> list[Category]:
        return self._query(CategoryRow.parent_id == parent_id)

    def find_roots(self) -> list[Category]:
        return self._query(CategoryRow.parent_id.is_(None))


class SqlTransactionStore(_SqlStore, TransactionStore):
    row_type = TransactionRow

    def _to_row(self, txn: Transaction) -> TransactionRow:
        return TransactionRow(
            id=txn.id,
            kind=txn.kind.value,
            amount=str(txn.amount),
            description=txn.description,
            category_id=txn.category_id,
            currency=txn.currency,
            timestamp=txn.timestamp,
        )

    def _to_entity(self, row: TransactionRow) -> Transaction:
        return Transaction(
            id=row.id,
            kind=TransactionType(row.kind),
            amount=Decimal(row.amount),
            description=row.description,
            category_id=row.category_id,
            currency=row.currency,
            timestamp=row.timestamp,
        )

    def find_all(self) -> list[Transaction]:
        return self._query(order_by=TransactionRow.timestamp)

    def find_by_category(self, category_id: str) -> list[Transaction]:
        return self._query(TransactionRow.category_id == category_id, order_by=TransactionRow.timestamp)

    def find_by_date_range(self, start: date, end: date) -> list[Transaction]:
        return self._query(
            TransactionRow.timestamp >= datetime.combine(start, time.min),
            TransactionRow.timestamp <= datetime.combine(end, time.max),
            order_by=TransactionRow.timestamp,
        )

    def find_by_type(self, kind: TransactionType) -> list[Transaction]:
        return self._query(TransactionRow.kind == TransactionType(kind).value, order_by=TransactionRow.timestamp)


class SqlBudgetStore(_SqlStore, BudgetStore):
    row_type = BudgetRow

    def _to_row(self, budget: Budget) -> BudgetRow:
        return BudgetRow(
            id=budget.id,
            category_id=budget.category_id,
            amount=str(budget.amount),
            period=str(budget.period),
            currency=budget.currency,
            spent=str(budget.spent),
            created_at=budget.created_at,
        )

    def _to_entity(self, row: BudgetRow) -> Budget:
        return Budget(
            id=row.id,
            category_id=row.category_id,
            amount=Decimal(row.amount),
            period=Period.parse(row.period),
            currency=row.currency,
            spent=Decimal(row.spent),
            created_at=row.created_at,
        )

    def find_all(self) -> list[Budget]:
        return self._query(order_by=BudgetRow.period.desc())

    def find_by_category(self, category_id: str) -> list[Budget]:
        return self._query(BudgetRow.category_id == category_id)

    def find_by_period(self, period: Period) -> list[Budget]:
        return self._query(BudgetRow.period == str(period))

    def find_active(self, current: Period) -> list[Budget]:
        # "YYYY-MM" strings sort chronologically.
        return self._query(BudgetRow.period >= str(current), order_by=BudgetRow.period)
