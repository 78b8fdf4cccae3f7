"""/v1/installments - installment plan lifecycle endpoints"""

import time
import logging
from datetime import date
from typing import List, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Query, Request
from sqlalchemy.orm import Session

from finance_gateway.api.dependencies import (
    get_current_user_id,
    get_ledger_client,
    get_request_id,
    get_today,
    parse_id,
)
from finance_gateway.api.v1.schemas import (
    CreateInstallmentResponse,
    InstallmentCreate,
    InstallmentResponse,
    InstallmentUpdate,
    MarkPaidRequest,
    MarkPaidResponse,
    MessageResponse,
    PayRequest,
    PayResponse,
    PreviewRequest,
    PreviewResponse,
    ScheduledPeriodSchema,
    ScheduleResponse,
    TransactionSchema,
)
from finance_gateway.config import settings
from finance_gateway.domain import installments as engine
from finance_gateway.domain.exceptions import NotFoundError
from finance_gateway.domain.models import InstallmentPlan, PlanStatus, ScheduledPeriod
from finance_gateway.domain.periods import build_schedule, elapsed_periods, split_amount
from finance_gateway.domain.queries import parse_month, plans_due_in_month
from finance_gateway.infrastructure.clients.ledger import LedgerClient
from finance_gateway.infrastructure.database.models import InstallmentPlanRecord, LedgerTransaction
from finance_gateway.infrastructure.database.repositories import LedgerRepository, PlanRepository
from finance_gateway.infrastructure.database.session import atomic, get_db
from finance_gateway.infrastructure.observability.logging import log_generation
from finance_gateway.infrastructure.observability.metrics import record_generation, record_plan_transition
from finance_gateway.utils.date_utils import end_of_month
from finance_gateway.utils.money import from_cents, to_cents

router = APIRouter()
logger = logging.getLogger(__name__)


def plan_response(record: InstallmentPlanRecord) -> InstallmentResponse:
    """Serialize a plan with its derived progress figures"""
    plan = PlanRepository.to_domain(record)
    amounts = split_amount(plan.total_cents, plan.period_count)
    paid_cents = sum(amounts[: plan.paid_count])

    return InstallmentResponse(
        id=str(plan.id),
        user_id=plan.user_id,
        group_id=plan.group_id,
        description=plan.description,
        total_amount=from_cents(plan.total_cents),
        period_count=plan.period_count,
        category=plan.category,
        start_date=plan.start_date,
        payment_day=plan.payment_day,
        current_paid=plan.paid_count,
        status=plan.status.value,
        is_family=plan.is_family,
        paid_by=plan.paid_by,
        installment_amount=from_cents(amounts[0]),
        paid_amount=from_cents(paid_cents),
        remaining_count=plan.period_count - plan.paid_count,
        remaining_amount=from_cents(plan.total_cents - paid_cents),
        next_due_date=engine.next_due_date(plan),
        created_at=record.created_at,
        updated_at=record.updated_at,
    )


def transaction_schema(row: LedgerTransaction) -> TransactionSchema:
    return TransactionSchema(
        id=str(row.id),
        description=row.description,
        amount=from_cents(row.amount_cents),
        category=row.category,
        occurred_on=row.occurred_on,
        type=row.type,
        status=row.status,
        installment_id=str(row.installment_id) if row.installment_id else None,
        period_index=row.period_index,
        period_total=row.period_total,
        recurring_expense_id=str(row.recurring_expense_id) if row.recurring_expense_id else None,
        period_month=row.period_month,
        period_year=row.period_year,
    )


def schedule_schema(periods: List[ScheduledPeriod]) -> List[ScheduledPeriodSchema]:
    return [
        ScheduledPeriodSchema(
            index=p.index,
            due_date=p.due_date,
            amount=from_cents(p.amount_cents),
            status=p.status,
        )
        for p in periods
    ]


def _load_for_update(repo: PlanRepository, plan_id: str, user_id: str) -> InstallmentPlanRecord:
    record = repo.get_plan(parse_id(plan_id), user_id, for_update=True)
    if not record:
        raise NotFoundError("Installment plan not found")
    return record


def _notify_ledger(
    background_tasks: BackgroundTasks,
    ledger_client: LedgerClient,
    plan: InstallmentPlan,
    rows: List[LedgerTransaction],
) -> None:
    if not rows:
        return
    background_tasks.add_task(
        ledger_client.send_generation_event,
        {
            "event": "INSTALLMENTS_PAID",
            "source_id": str(plan.id),
            "user_id": plan.user_id,
            "transaction_ids": [str(row.id) for row in rows],
            "amount_cents": sum(row.amount_cents for row in rows),
        },
    )


@router.get("/installments", response_model=List[InstallmentResponse])
def list_installments(
    status: Optional[PlanStatus] = Query(None, description="Filter by lifecycle status"),
    group_id: Optional[str] = Query(None, alias="groupId"),
    month: Optional[str] = Query(None, description="YYYY-MM; plans with an unpaid installment due that month"),
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    """
    List the caller's plans, newest start date first.

    With `month`, only active/completed plans whose unpaid installment
    falls in that month are returned.
    """
    repo = PlanRepository(db)

    if month:
        month_num, year = parse_month(month)
        records = repo.list_plans(
            user_id,
            statuses=[PlanStatus.ACTIVE.value, PlanStatus.COMPLETED.value],
            group_id=group_id,
            started_on_or_before=end_of_month(year, month_num),
        )
        due_ids = {plan.id for plan in plans_due_in_month([repo.to_domain(r) for r in records], month_num, year)}
        records = [r for r in records if r.id in due_ids]
    else:
        records = repo.list_plans(
            user_id,
            statuses=[status.value] if status else None,
            group_id=group_id,
        )

    return [plan_response(r) for r in records]


@router.post("/installments/preview", response_model=PreviewResponse)
def preview_installment(
    request_body: PreviewRequest,
    user_id: str = Depends(get_current_user_id),
    today: date = Depends(get_today),
):
    """Schedule and auto-paid estimate for a plan that has not been created yet"""
    total_cents = to_cents(request_body.total_amount)
    engine.validate_plan_terms(
        total_cents,
        request_body.period_count,
        request_body.start_date,
        request_body.payment_day,
        settings.max_period_count,
    )

    draft = InstallmentPlan(
        user_id=user_id,
        description="preview",
        category="preview",
        total_cents=total_cents,
        period_count=request_body.period_count,
        start_date=request_body.start_date,
        payment_day=request_body.payment_day,
    )

    return PreviewResponse(
        elapsed_periods=elapsed_periods(draft.start_date, draft.payment_day, draft.period_count, today),
        installment_amount=from_cents(total_cents // draft.period_count),
        periods=schedule_schema(build_schedule(draft)),
    )


@router.get("/installments/{plan_id}", response_model=InstallmentResponse)
def get_installment(
    plan_id: str,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    record = PlanRepository(db).get_plan(parse_id(plan_id), user_id)
    if not record:
        raise NotFoundError("Installment plan not found")
    return plan_response(record)


@router.get("/installments/{plan_id}/schedule", response_model=ScheduleResponse)
def get_installment_schedule(
    plan_id: str,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    """Every installment with its due date, amount and paid/scheduled status"""
    repo = PlanRepository(db)
    record = repo.get_plan(parse_id(plan_id), user_id)
    if not record:
        raise NotFoundError("Installment plan not found")

    return ScheduleResponse(
        installment_id=str(record.id),
        periods=schedule_schema(build_schedule(repo.to_domain(record))),
    )


@router.post("/installments", response_model=CreateInstallmentResponse, status_code=201)
def create_installment(
    request_body: InstallmentCreate,
    background_tasks: BackgroundTasks,
    request: Request,
    user_id: str = Depends(get_current_user_id),
    today: date = Depends(get_today),
    db: Session = Depends(get_db),
    ledger_client: LedgerClient = Depends(get_ledger_client),
):
    """
    Create a plan and back-fill ledger transactions for installments already paid.

    Flow:
    1. Resolve paid count (manual `initialPaid`, else derived from today)
    2. Build one transaction per paid installment
    3. Persist plan + transactions in one database transaction
    4. Notify the ledger in the background
    """
    start_time = time.time()
    request_id = get_request_id(request)

    plan, transactions = engine.create_plan(
        user_id=user_id,
        description=request_body.description,
        category=request_body.category,
        total_cents=to_cents(request_body.total_amount),
        period_count=request_body.period_count,
        start_date=request_body.start_date,
        payment_day=request_body.payment_day,
        now=today,
        initial_paid=request_body.initial_paid,
        auto_mark_paid=request_body.auto_mark_paid,
        group_id=request_body.group_id or None,
        is_family=request_body.is_family,
        paid_by=request_body.paid_by or None,
        max_period_count=settings.max_period_count,
    )

    with atomic(db):
        record = PlanRepository(db).create_plan(plan)
        rows = LedgerRepository(db).add_transactions(transactions)

    record_plan_transition(None, plan.status.value)
    record_generation("installment", len(rows))
    log_generation(request_id, user_id, "installment", str(plan.id), "create", len(rows), (time.time() - start_time) * 1000)
    _notify_ledger(background_tasks, ledger_client, plan, rows)

    message = (
        f"{plan.paid_count} installment(s) marked as paid automatically"
        if plan.paid_count > 0
        else "Installment plan created"
    )
    return CreateInstallmentResponse(
        installment=plan_response(record),
        created_transactions=len(rows),
        message=message,
    )


@router.put("/installments/{plan_id}", response_model=InstallmentResponse)
def update_installment(
    plan_id: str,
    request_body: InstallmentUpdate,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    """Update descriptive fields; scheduling fields only before any payment"""
    changes = request_body.model_dump(exclude_unset=True)
    if "total_amount" in changes:
        changes["total_cents"] = to_cents(changes.pop("total_amount"))
    if "group_id" in changes:
        changes["group_id"] = changes["group_id"] or None

    repo = PlanRepository(db)
    with atomic(db):
        record = _load_for_update(repo, plan_id, user_id)
        plan = repo.to_domain(record)
        engine.update_fields(plan, changes, settings.max_period_count)
        repo.apply(record, plan)

    return plan_response(record)


@router.put("/installments/{plan_id}/pay", response_model=PayResponse)
def pay_installment(
    plan_id: str,
    background_tasks: BackgroundTasks,
    request: Request,
    request_body: Optional[PayRequest] = None,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
    ledger_client: LedgerClient = Depends(get_ledger_client),
):
    """Mark the next installment as paid, dated on schedule unless `paymentDate` is given"""
    start_time = time.time()
    payment_date = request_body.payment_date if request_body else None

    repo = PlanRepository(db)
    with atomic(db):
        record = _load_for_update(repo, plan_id, user_id)
        plan = repo.to_domain(record)
        previous_status = plan.status.value

        transaction = engine.advance_one(plan, payment_date)
        repo.apply(record, plan)
        rows = LedgerRepository(db).add_transactions([transaction])

    record_plan_transition(previous_status, plan.status.value)
    record_generation("installment", 1)
    log_generation(get_request_id(request), user_id, "installment", str(plan.id), "pay", 1, (time.time() - start_time) * 1000)
    _notify_ledger(background_tasks, ledger_client, plan, rows)

    return PayResponse(
        installment=plan_response(record),
        transaction=transaction_schema(rows[0]),
        message=f"Installment {transaction.period_index}/{plan.period_count} marked as paid",
    )


@router.put("/installments/{plan_id}/mark-paid", response_model=MarkPaidResponse)
def mark_installments_paid(
    plan_id: str,
    request_body: MarkPaidRequest,
    background_tasks: BackgroundTasks,
    request: Request,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
    ledger_client: LedgerClient = Depends(get_ledger_client),
):
    """Advance the paid count to `paidCount`, generating each skipped installment"""
    start_time = time.time()

    repo = PlanRepository(db)
    with atomic(db):
        record = _load_for_update(repo, plan_id, user_id)
        plan = repo.to_domain(record)
        previous_status = plan.status.value

        transactions = engine.advance_to(plan, request_body.paid_count)
        repo.apply(record, plan)
        rows = LedgerRepository(db).add_transactions(transactions)

    record_plan_transition(previous_status, plan.status.value)
    record_generation("installment", len(rows))
    log_generation(get_request_id(request), user_id, "installment", str(plan.id), "mark_paid", len(rows), (time.time() - start_time) * 1000)
    _notify_ledger(background_tasks, ledger_client, plan, rows)

    return MarkPaidResponse(
        installment=plan_response(record),
        created_transactions=len(rows),
        message=f"{len(rows)} installment(s) marked as paid",
    )


@router.put("/installments/{plan_id}/cancel", response_model=InstallmentResponse)
def cancel_installment(
    plan_id: str,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    """Cancel an active plan; recorded payments are kept"""
    repo = PlanRepository(db)
    with atomic(db):
        record = _load_for_update(repo, plan_id, user_id)
        plan = repo.to_domain(record)
        engine.cancel(plan)
        repo.apply(record, plan)

    record_plan_transition(PlanStatus.ACTIVE.value, plan.status.value)
    logger.info("Installment plan cancelled", extra={"plan_id": str(plan.id), "user_id": user_id})
    return plan_response(record)


@router.delete("/installments/{plan_id}", response_model=MessageResponse)
def delete_installment(
    plan_id: str,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    """Delete a plan. Generated ledger transactions are kept."""
    repo = PlanRepository(db)
    with atomic(db):
        record = _load_for_update(repo, plan_id, user_id)
        repo.delete_plan(record)

    return MessageResponse(message="Installment plan deleted")
