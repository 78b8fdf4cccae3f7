"""Installment plan engine: creation, payment progress and lifecycle"""

from datetime import MAXYEAR, date
from typing import Any, Dict, List, Optional, Tuple

from finance_gateway.domain.exceptions import (
    AlreadyCancelledError,
    AlreadyCompleteError,
    InvalidAmountError,
    InvalidPeriodCountError,
    InvalidTargetError,
    PlanCancelledError,
    ScheduleLockedError,
    ValidationError,
)
from finance_gateway.domain.models import GeneratedTransaction, InstallmentPlan, PlanStatus, TransactionSource
from finance_gateway.domain.periods import elapsed_periods, period_amount, period_date, validate_day_of_month
from finance_gateway.utils.date_utils import add_months

MAX_PERIOD_COUNT = 120

SCHEDULING_FIELDS = ("total_cents", "period_count", "start_date", "payment_day")
DESCRIPTIVE_FIELDS = ("description", "category", "is_family", "paid_by")


def validate_plan_terms(
    total_cents: int,
    period_count: int,
    start_date: date,
    payment_day: int,
    max_period_count: int = MAX_PERIOD_COUNT,
) -> None:
    if total_cents <= 0:
        raise InvalidAmountError()
    if period_count < 1:
        raise InvalidPeriodCountError("Number of installments must be at least 1")
    if period_count > max_period_count:
        raise InvalidPeriodCountError(f"Number of installments cannot exceed {max_period_count}")
    validate_day_of_month(payment_day)

    # Every period date must be representable
    last_year, _ = add_months(start_date.year, start_date.month, period_count - 1)
    if last_year > MAXYEAR:
        raise ValidationError("startDate", f"Schedule cannot run past the year {MAXYEAR}")


def installment_transaction(plan: InstallmentPlan, number: int, occurred_on: date) -> GeneratedTransaction:
    """Ledger transaction for the 1-based period `number` of a plan"""
    return GeneratedTransaction(
        source=TransactionSource.INSTALLMENT,
        source_id=plan.id,
        user_id=plan.user_id,
        description=f"{plan.description} (installment {number}/{plan.period_count})",
        category=plan.category,
        amount_cents=period_amount(plan.total_cents, plan.period_count, number),
        occurred_on=occurred_on,
        group_id=plan.group_id,
        is_family=plan.is_family,
        paid_by=plan.paid_by,
        period_index=number,
        period_total=plan.period_count,
    )


def _generate_range(plan: InstallmentPlan, first: int, last: int) -> List[GeneratedTransaction]:
    """Transactions for periods first..last (inclusive, 1-based) on their scheduled dates"""
    return [
        installment_transaction(plan, number, period_date(plan.start_date, plan.payment_day, number - 1))
        for number in range(first, last + 1)
    ]


def _refresh_status(plan: InstallmentPlan) -> None:
    if plan.status == PlanStatus.ACTIVE and plan.is_complete:
        plan.status = PlanStatus.COMPLETED


def _ensure_payable(plan: InstallmentPlan) -> None:
    if plan.status == PlanStatus.CANCELLED:
        raise PlanCancelledError("Installment plan is cancelled")
    if plan.is_complete:
        raise AlreadyCompleteError("Installment plan is already complete")


def create_plan(
    user_id: str,
    description: str,
    category: str,
    total_cents: int,
    period_count: int,
    start_date: date,
    payment_day: int,
    now: date,
    initial_paid: Optional[int] = None,
    auto_mark_paid: bool = True,
    group_id: Optional[str] = None,
    is_family: bool = False,
    paid_by: Optional[str] = None,
    max_period_count: int = MAX_PERIOD_COUNT,
) -> Tuple[InstallmentPlan, List[GeneratedTransaction]]:
    """
    Create a plan and back-fill transactions for periods already paid.

    Paid count modes:
    - `initial_paid` given: manual count, clamped to [0, period_count]
    - otherwise, `auto_mark_paid`: periods elapsed by `now`
    - otherwise: 0

    Returns:
        The new plan and one transaction per paid period (1..paid_count)
    """
    validate_plan_terms(total_cents, period_count, start_date, payment_day, max_period_count)

    if initial_paid is not None:
        paid_count = min(max(0, initial_paid), period_count)
    elif auto_mark_paid:
        paid_count = elapsed_periods(start_date, payment_day, period_count, now)
    else:
        paid_count = 0

    plan = InstallmentPlan(
        user_id=user_id,
        description=description,
        category=category,
        total_cents=total_cents,
        period_count=period_count,
        start_date=start_date,
        payment_day=payment_day,
        paid_count=paid_count,
        group_id=group_id,
        is_family=is_family,
        paid_by=paid_by,
    )
    _refresh_status(plan)

    return plan, _generate_range(plan, 1, paid_count)


def advance_one(plan: InstallmentPlan, payment_date: Optional[date] = None) -> GeneratedTransaction:
    """
    Record the next period as paid.

    The transaction is dated on the period's scheduled date unless an
    explicit `payment_date` is supplied.
    """
    _ensure_payable(plan)

    number = plan.paid_count + 1
    occurred_on = payment_date or period_date(plan.start_date, plan.payment_day, number - 1)
    transaction = installment_transaction(plan, number, occurred_on)

    plan.paid_count = number
    _refresh_status(plan)
    return transaction


def advance_to(plan: InstallmentPlan, target_paid_count: int) -> List[GeneratedTransaction]:
    """Record every period up to `target_paid_count` as paid. Forward only."""
    if plan.status == PlanStatus.CANCELLED:
        raise PlanCancelledError("Installment plan is cancelled")
    if target_paid_count <= plan.paid_count:
        raise InvalidTargetError(
            f"{plan.paid_count} installments are already paid; use a number greater than {plan.paid_count}"
        )
    if target_paid_count > plan.period_count:
        raise InvalidTargetError(
            f"Plan has only {plan.period_count} installments; cannot mark {target_paid_count} as paid"
        )

    transactions = _generate_range(plan, plan.paid_count + 1, target_paid_count)
    plan.paid_count = target_paid_count
    _refresh_status(plan)
    return transactions


def cancel(plan: InstallmentPlan) -> None:
    """
    Stop the plan. Paid count and past transactions stay as they are.

    Only an active plan can be cancelled. A completed plan is final and is
    rejected with `AlreadyCompleteError`, although older clients allowed
    cancelling it.
    """
    if plan.status == PlanStatus.CANCELLED:
        raise AlreadyCancelledError("Installment plan is already cancelled")
    if plan.status == PlanStatus.COMPLETED:
        raise AlreadyCompleteError("Completed installment plans cannot be cancelled")
    plan.status = PlanStatus.CANCELLED


def update_fields(
    plan: InstallmentPlan,
    changes: Dict[str, Any],
    max_period_count: int = MAX_PERIOD_COUNT,
) -> None:
    """
    Apply a partial update.

    Descriptive fields always apply. Scheduling fields may only change while
    the plan is active and nothing has been paid, so no generated history
    is rewritten. Paid count and status are never touched here.
    """
    if "group_id" in changes and changes["group_id"] != plan.group_id:
        raise ValidationError("groupId", "Group cannot be changed after creation")

    scheduling = {
        key: changes[key]
        for key in SCHEDULING_FIELDS
        if key in changes and changes[key] != getattr(plan, key)
    }
    if scheduling:
        if plan.paid_count > 0 or plan.status != PlanStatus.ACTIVE:
            raise ScheduleLockedError(
                "Amount, installments, start date and payment day cannot change after payments are recorded"
            )
        validate_plan_terms(
            scheduling.get("total_cents", plan.total_cents),
            scheduling.get("period_count", plan.period_count),
            scheduling.get("start_date", plan.start_date),
            scheduling.get("payment_day", plan.payment_day),
            max_period_count,
        )
        for key, value in scheduling.items():
            setattr(plan, key, value)

    for key in DESCRIPTIVE_FIELDS:
        if key in changes:
            setattr(plan, key, changes[key])


def next_due_date(plan: InstallmentPlan) -> Optional[date]:
    """Scheduled date of the first unpaid period, if any"""
    if plan.status == PlanStatus.CANCELLED or plan.is_complete:
        return None
    return period_date(plan.start_date, plan.payment_day, plan.paid_count)
