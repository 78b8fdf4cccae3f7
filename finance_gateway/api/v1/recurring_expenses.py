"""/v1/recurring-expenses - recurring expense definitions and monthly generation"""

import time
import uuid
from datetime import date
from typing import List, Optional, Tuple

from fastapi import APIRouter, BackgroundTasks, Depends, Query, Request
from sqlalchemy.orm import Session

from finance_gateway.api.dependencies import (
    get_current_user_id,
    get_ledger_client,
    get_request_id,
    get_today,
    parse_id,
)
from finance_gateway.api.v1.installments import transaction_schema
from finance_gateway.api.v1.schemas import (
    GenerateAllResponse,
    GeneratedItem,
    GenerateRequest,
    GenerateResponse,
    MessageResponse,
    RecurringExpenseCreate,
    RecurringExpenseResponse,
    RecurringExpenseUpdate,
    SkippedItem,
    ToggleRequest,
)
from finance_gateway.domain import recurring as engine
from finance_gateway.domain.exceptions import AlreadyGeneratedError, NotFoundError
from finance_gateway.domain.models import GeneratedTransaction, RecurringExpense
from finance_gateway.infrastructure.clients.ledger import LedgerClient
from finance_gateway.infrastructure.database.models import LedgerTransaction, RecurringExpenseRecord
from finance_gateway.infrastructure.database.repositories import LedgerRepository, RecurringExpenseRepository
from finance_gateway.infrastructure.database.session import atomic, get_db
from finance_gateway.infrastructure.observability.logging import log_generation
from finance_gateway.infrastructure.observability.metrics import record_generation
from finance_gateway.utils.money import from_cents, to_cents

router = APIRouter()


def expense_response(record: RecurringExpenseRecord) -> RecurringExpenseResponse:
    return RecurringExpenseResponse(
        id=str(record.id),
        user_id=record.user_id,
        group_id=record.group_id,
        description=record.description,
        amount=from_cents(record.amount_cents),
        category=record.category,
        day_of_month=record.day_of_month,
        is_active=record.is_active,
        last_generated_month=record.last_generated_month,
        last_generated_year=record.last_generated_year,
        is_family=record.is_family,
        paid_by=record.paid_by,
        created_at=record.created_at,
        updated_at=record.updated_at,
    )


def _load_for_update(repo: RecurringExpenseRepository, expense_id: str, user_id: str) -> RecurringExpenseRecord:
    record = repo.get_expense(parse_id(expense_id), user_id, for_update=True)
    if not record:
        raise NotFoundError("Recurring expense not found")
    return record


def _resolve_period(request_body: Optional[GenerateRequest], today: date) -> Tuple[int, int]:
    month = request_body.month if request_body and request_body.month else today.month
    year = request_body.year if request_body and request_body.year else today.year
    return month, year


def _generate_locked(
    db: Session,
    expense_id: uuid.UUID,
    user_id: str,
    month: int,
    year: int,
) -> Tuple[GeneratedTransaction, LedgerTransaction]:
    """
    Generate one occurrence under a row lock, committing counter and ledger row together.

    The ledger is checked as well as the last generated period, so back-filling an
    older month can never produce a second transaction for it.
    """
    repo = RecurringExpenseRepository(db)
    ledger = LedgerRepository(db)

    with atomic(db):
        record = repo.get_expense(expense_id, user_id, for_update=True)
        if not record:
            raise NotFoundError("Recurring expense not found")

        expense = repo.to_domain(record)
        transaction = engine.generate(expense, month, year)
        if ledger.recurring_period_exists(expense.id, month, year):
            raise AlreadyGeneratedError(f"Transaction for {month:02d}/{year} was already generated")

        repo.apply(record, expense)
        row = ledger.add_recurring_occurrence(transaction)

    return transaction, row


def _notify_ledger(
    background_tasks: BackgroundTasks,
    ledger_client: LedgerClient,
    user_id: str,
    source_id: str,
    rows: List[LedgerTransaction],
) -> None:
    if not rows:
        return
    background_tasks.add_task(
        ledger_client.send_generation_event,
        {
            "event": "RECURRING_EXPENSES_GENERATED",
            "source_id": source_id,
            "user_id": user_id,
            "transaction_ids": [str(row.id) for row in rows],
            "amount_cents": sum(row.amount_cents for row in rows),
        },
    )


@router.get("/recurring-expenses", response_model=List[RecurringExpenseResponse])
def list_recurring_expenses(
    is_active: Optional[bool] = Query(None, alias="isActive"),
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    """List the caller's recurring expenses ordered by day of month"""
    records = RecurringExpenseRepository(db).list_expenses(user_id, is_active)
    return [expense_response(r) for r in records]


@router.post("/recurring-expenses/generate-all", response_model=GenerateAllResponse)
def generate_all_recurring_expenses(
    background_tasks: BackgroundTasks,
    request: Request,
    request_body: Optional[GenerateRequest] = None,
    user_id: str = Depends(get_current_user_id),
    today: date = Depends(get_today),
    db: Session = Depends(get_db),
    ledger_client: LedgerClient = Depends(get_ledger_client),
):
    """
    Generate the month's transaction for every active recurring expense.

    Each expense is committed on its own; expenses already generated for the
    month are reported under `skipped`.
    """
    start_time = time.time()
    month, year = _resolve_period(request_body, today)

    repo = RecurringExpenseRepository(db)
    expenses = [repo.to_domain(r) for r in repo.list_expenses(user_id, is_active=True)]
    rows_by_id = {}

    def generate_one(expense: RecurringExpense, month: int, year: int) -> GeneratedTransaction:
        transaction, row = _generate_locked(db, expense.id, user_id, month, year)
        rows_by_id[transaction.id] = row
        return transaction

    report = engine.generate_all(expenses, month, year, generate_one)
    rows = [rows_by_id[transaction.id] for _, transaction in report.generated]

    record_generation("recurring", len(rows))
    log_generation(get_request_id(request), user_id, "recurring", "*", "generate_all", len(rows), (time.time() - start_time) * 1000)
    _notify_ledger(background_tasks, ledger_client, user_id, "*", rows)

    generated = [
        GeneratedItem(
            recurring_expense_id=str(expense.id),
            description=expense.description,
            transaction_id=str(transaction.id),
        )
        for expense, transaction in report.generated
    ]
    skipped = [
        SkippedItem(recurring_expense_id=str(expense.id), description=expense.description, reason=reason)
        for expense, reason in report.skipped
    ]

    return GenerateAllResponse(
        message=f"Generated {len(generated)} transaction(s)",
        generated=generated,
        skipped=skipped,
    )


@router.get("/recurring-expenses/{expense_id}", response_model=RecurringExpenseResponse)
def get_recurring_expense(
    expense_id: str,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    record = RecurringExpenseRepository(db).get_expense(parse_id(expense_id), user_id)
    if not record:
        raise NotFoundError("Recurring expense not found")
    return expense_response(record)


@router.post("/recurring-expenses", response_model=RecurringExpenseResponse, status_code=201)
def create_recurring_expense(
    request_body: RecurringExpenseCreate,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    expense = engine.create_expense(
        user_id=user_id,
        description=request_body.description,
        category=request_body.category,
        amount_cents=to_cents(request_body.amount),
        day_of_month=request_body.day_of_month,
        group_id=request_body.group_id or None,
        is_family=request_body.is_family,
        paid_by=request_body.paid_by or None,
    )

    with atomic(db):
        record = RecurringExpenseRepository(db).create_expense(expense)

    return expense_response(record)


@router.put("/recurring-expenses/{expense_id}", response_model=RecurringExpenseResponse)
def update_recurring_expense(
    expense_id: str,
    request_body: RecurringExpenseUpdate,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    changes = request_body.model_dump(exclude_unset=True)
    if "amount" in changes:
        changes["amount_cents"] = to_cents(changes.pop("amount"))

    repo = RecurringExpenseRepository(db)
    with atomic(db):
        record = _load_for_update(repo, expense_id, user_id)
        expense = repo.to_domain(record)
        engine.update_fields(expense, changes)
        repo.apply(record, expense)

    return expense_response(record)


@router.put("/recurring-expenses/{expense_id}/toggle", response_model=RecurringExpenseResponse)
def toggle_recurring_expense(
    expense_id: str,
    request_body: ToggleRequest,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    """Switch generation on or off; past transactions are untouched"""
    repo = RecurringExpenseRepository(db)
    with atomic(db):
        record = _load_for_update(repo, expense_id, user_id)
        expense = repo.to_domain(record)
        engine.toggle(expense, request_body.is_active)
        repo.apply(record, expense)

    return expense_response(record)


@router.delete("/recurring-expenses/{expense_id}", response_model=MessageResponse)
def delete_recurring_expense(
    expense_id: str,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    repo = RecurringExpenseRepository(db)
    with atomic(db):
        record = _load_for_update(repo, expense_id, user_id)
        repo.delete_expense(record)

    return MessageResponse(message="Recurring expense deleted")


@router.post("/recurring-expenses/{expense_id}/generate", response_model=GenerateResponse, status_code=201)
def generate_recurring_expense(
    expense_id: str,
    background_tasks: BackgroundTasks,
    request: Request,
    request_body: Optional[GenerateRequest] = None,
    user_id: str = Depends(get_current_user_id),
    today: date = Depends(get_today),
    db: Session = Depends(get_db),
    ledger_client: LedgerClient = Depends(get_ledger_client),
):
    """Generate this month's (or the given month's) transaction, at most once per month"""
    start_time = time.time()
    month, year = _resolve_period(request_body, today)

    _, row = _generate_locked(db, parse_id(expense_id), user_id, month, year)

    record_generation("recurring", 1)
    log_generation(get_request_id(request), user_id, "recurring", expense_id, "generate", 1, (time.time() - start_time) * 1000)
    _notify_ledger(background_tasks, ledger_client, user_id, expense_id, [row])

    return GenerateResponse(message="Transaction generated", transaction=transaction_schema(row))
