"""Recurring expense engine: one transaction per definition per calendar month"""

from dataclasses import dataclass, field
from datetime import date
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from finance_gateway.domain.exceptions import (
    AlreadyGeneratedError,
    ConcurrentModificationError,
    InactiveDefinitionError,
    InvalidAmountError,
    InvalidPeriodError,
    NotFoundError,
)
from finance_gateway.domain.models import GeneratedTransaction, RecurringExpense, TransactionSource
from finance_gateway.domain.periods import period_date, validate_day_of_month


def validate_period(month: int, year: int) -> None:
    if not 1 <= month <= 12:
        raise InvalidPeriodError("month", "Month must be between 1 and 12")
    if not 1 <= year <= 9999:
        raise InvalidPeriodError("year", "Year is invalid")


def validate_expense_terms(amount_cents: int, day_of_month: int) -> None:
    if amount_cents <= 0:
        raise InvalidAmountError("amount")
    validate_day_of_month(day_of_month, "dayOfMonth")


def occurrence_date(expense: RecurringExpense, month: int, year: int) -> date:
    """Date of the expense in the given month, clamped to the month length"""
    return period_date(date(year, month, 1), expense.day_of_month, 0)


def generate(expense: RecurringExpense, month: int, year: int) -> GeneratedTransaction:
    """
    Emit the occurrence of `expense` for (month, year).

    Raises:
        InactiveDefinitionError: expense is switched off
        AlreadyGeneratedError: this period was the last one generated
    """
    validate_period(month, year)

    if not expense.is_active:
        raise InactiveDefinitionError("Recurring expense is inactive")
    if expense.last_generated_period == (month, year):
        raise AlreadyGeneratedError(f"Transaction for {month:02d}/{year} was already generated")

    transaction = GeneratedTransaction(
        source=TransactionSource.RECURRING,
        source_id=expense.id,
        user_id=expense.user_id,
        description=expense.description,
        category=expense.category,
        amount_cents=expense.amount_cents,
        occurred_on=occurrence_date(expense, month, year),
        group_id=expense.group_id,
        is_family=expense.is_family,
        paid_by=expense.paid_by,
        period_month=month,
        period_year=year,
    )

    # Keep the latest calendar period; back-filling an older month must not move it backwards
    last = expense.last_generated_period
    if last is None or (year, month) > (last[1], last[0]):
        expense.last_generated_month = month
        expense.last_generated_year = year

    return transaction


@dataclass
class GenerationReport:
    """Outcome of a batch generation"""

    generated: List[Tuple[RecurringExpense, GeneratedTransaction]] = field(default_factory=list)
    skipped: List[Tuple[RecurringExpense, str]] = field(default_factory=list)


def generate_all(
    expenses: Iterable[RecurringExpense],
    month: int,
    year: int,
    generate_one: Optional[Callable[[RecurringExpense, int, int], GeneratedTransaction]] = None,
) -> GenerationReport:
    """
    Generate the (month, year) occurrence of every active expense.

    Expenses already generated for the period are skipped, not failed. So
    are expenses switched off, deleted or changed concurrently since they
    were listed. `generate_one` defaults to `generate`; callers that persist
    pass a function that commits each expense on its own so one conflict
    does not undo the others.
    """
    validate_period(month, year)
    generate_one = generate_one or generate
    report = GenerationReport()

    for expense in expenses:
        if not expense.is_active:
            continue
        try:
            transaction = generate_one(expense, month, year)
        except (AlreadyGeneratedError, InactiveDefinitionError, NotFoundError, ConcurrentModificationError) as e:
            report.skipped.append((expense, str(e)))
            continue
        report.generated.append((expense, transaction))

    return report


def toggle(expense: RecurringExpense, is_active: bool) -> None:
    """Switch the expense on or off. Past transactions are left alone."""
    expense.is_active = is_active


def create_expense(
    user_id: str,
    description: str,
    category: str,
    amount_cents: int,
    day_of_month: int,
    group_id: Optional[str] = None,
    is_family: bool = False,
    paid_by: Optional[str] = None,
) -> RecurringExpense:
    validate_expense_terms(amount_cents, day_of_month)
    return RecurringExpense(
        user_id=user_id,
        description=description,
        category=category,
        amount_cents=amount_cents,
        day_of_month=day_of_month,
        group_id=group_id,
        is_family=is_family,
        paid_by=paid_by,
    )


UPDATABLE_FIELDS = ("description", "category", "amount_cents", "day_of_month", "group_id", "is_family", "paid_by")


def update_fields(expense: RecurringExpense, changes: Dict[str, Any]) -> None:
    """Partial update; generation progress is never touched here"""
    validate_expense_terms(
        changes.get("amount_cents", expense.amount_cents),
        changes.get("day_of_month", expense.day_of_month),
    )
    for key in UPDATABLE_FIELDS:
        if key in changes:
            setattr(expense, key, changes[key])
