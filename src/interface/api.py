from __future__ import annotations

import logging
from typing import Optional

from fastapi import Depends, FastAPI, HTTPException, Query, Request
from fastapi.responses import JSONResponse

from application.ledger import LedgerService
from application.reports import ReportService
from domain.errors import ConflictError, FinanceError, NotFoundError
from domain.models import Budget, Category, Period
from domain.schemas import (
    BudgetCreate,
    BudgetOut,
    BudgetStatus,
    CategoryCreate,
    CategoryOut,
    CategoryTotal,
    MonthlyBalance,
    TransactionCreate,
    TransactionOut,
    TrendPoint,
)
from interface.cli import build_service

logger = logging.getLogger(__name__)

app = FastAPI(title="Finance Tracker API")
service = build_service()


def get_service() -> LedgerService:
    return service


def get_reports(ledger: LedgerService = Depends(get_service)) -> ReportService:
    return ReportService(ledger)


@app.exception_handler(FinanceError)
async def finance_error_handler(request: Request, exc: FinanceError) -> JSONResponse:
    if isinstance(exc, NotFoundError):
        status_code = 404
    elif isinstance(exc, ConflictError):
        status_code = 409
    else:
        status_code = 400
    logger.info("Request failed path=%s status=%d error=%s", request.url.path, status_code, exc)
    return JSONResponse(status_code=status_code, content={"error": type(exc).__name__, "detail": str(exc)})


def _category_out(ledger: LedgerService, category: Category) -> CategoryOut:
    return CategoryOut.from_domain(category, ledger.category_path(category))


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}


# ---- categories ----
@app.get("/categories", response_model=list[CategoryOut])
def list_categories(ledger: LedgerService = Depends(get_service)) -> list[CategoryOut]:
    categories = sorted(ledger.list_categories(), key=lambda c: ledger.category_path(c).lower())
    return [_category_out(ledger, c) for c in categories]


@app.post("/categories", response_model=CategoryOut, status_code=201)
def create_category(payload: CategoryCreate, ledger: LedgerService = Depends(get_service)) -> CategoryOut:
    category = ledger.add_category(
        Category(name=payload.name, description=payload.description),
        parent=payload.parent_id,
    )
    return _category_out(ledger, category)


@app.post("/categories/{parent_id}/children/{child_id}", response_model=CategoryOut)
def attach_category(parent_id: str, child_id: str, ledger: LedgerService = Depends(get_service)) -> CategoryOut:
    ledger.add_subcategory(parent_id, child_id)
    return _category_out(ledger, ledger.categories.require(child_id))


@app.delete("/categories/{parent_id}/children/{child_id}", status_code=204)
def detach_category(parent_id: str, child_id: str, ledger: LedgerService = Depends(get_service)) -> None:
    if not ledger.remove_subcategory(parent_id, child_id):
        raise HTTPException(status_code=404, detail=f"{child_id} is not a child of {parent_id}")


@app.delete("/categories/{category_id}", status_code=204)
def delete_category(category_id: str, ledger: LedgerService = Depends(get_service)) -> None:
    ledger.remove_category(category_id)


# ---- transactions ----
@app.get("/transactions", response_model=list[TransactionOut])
def list_transactions(
    period: Optional[str] = Query(default=None, description="Calendar month, e.g. 2026-01."),
    category_id: Optional[str] = None,
    ledger: LedgerService = Depends(get_service),
) -> list[TransactionOut]:
    if category_id:
        transactions = ledger.transactions_by_category(category_id)
        if period:
            wanted = Period.parse(period)
            transactions = [t for t in transactions if t.period == wanted]
    elif period:
        transactions = ledger.transactions_by_period(period)
    else:
        transactions = ledger.list_transactions()
    return [TransactionOut.from_domain(t) for t in transactions]


@app.post("/transactions", status_code=201)
def create_transaction(payload: TransactionCreate, ledger: LedgerService = Depends(get_service)) -> dict:
    txn, events = ledger.record_transaction(
        payload.kind,
        payload.amount,
        payload.description,
        payload.category_id,
        currency=payload.currency,
        timestamp=payload.timestamp,
    )
    return {
        "transaction": TransactionOut.from_domain(txn).model_dump(mode="json"),
        "events": [{"type": e.type.value, "budget_id": e.budget_id, "amount": str(e.amount)} for e in events],
    }


@app.delete("/transactions/{transaction_id}", status_code=204)
def delete_transaction(transaction_id: str, ledger: LedgerService = Depends(get_service)) -> None:
    ledger.remove_transaction(transaction_id)


# ---- budgets ----
@app.get("/budgets", response_model=list[BudgetStatus])
def list_budgets(period: Optional[str] = None, reports: ReportService = Depends(get_reports)) -> list[BudgetStatus]:
    return reports.budget_status(period)


@app.post("/budgets", response_model=BudgetOut, status_code=201)
def create_budget(payload: BudgetCreate, ledger: LedgerService = Depends(get_service)) -> BudgetOut:
    budget = ledger.add_budget(
        Budget(
            category_id=payload.category_id,
            amount=payload.amount,
            period=Period.parse(payload.period),
            currency=payload.currency or ledger.default_currency,
        )
    )
    return BudgetOut.from_domain(budget)


@app.get("/budgets/suggest", response_model=BudgetOut)
def suggest_budget(
    category_id: str,
    period: Optional[str] = None,
    ledger: LedgerService = Depends(get_service),
) -> BudgetOut:
    budget = ledger.suggest_budget(category_id, period or Period.current())
    return BudgetOut.from_domain(budget)


@app.delete("/budgets/{budget_id}", status_code=204)
def delete_budget(budget_id: str, ledger: LedgerService = Depends(get_service)) -> None:
    ledger.remove_budget(budget_id)


# ---- reports ----
@app.get("/reports/balance/{period}", response_model=MonthlyBalance)
def monthly_balance(period: str, reports: ReportService = Depends(get_reports)) -> MonthlyBalance:
    return reports.monthly_balance(period)


@app.get("/reports/expenses", response_model=list[CategoryTotal])
def expenses_by_category(period: Optional[str] = None, reports: ReportService = Depends(get_reports)) -> list[CategoryTotal]:
    return reports.expenses_by_category(period)


@app.get("/reports/trend", response_model=list[TrendPoint])
def monthly_trend(months: int = Query(default=6, ge=1, le=120), reports: ReportService = Depends(get_reports)) -> list[TrendPoint]:
    return reports.monthly_trend(months)
