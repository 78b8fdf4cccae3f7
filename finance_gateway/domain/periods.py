"""Period arithmetic and amortization shared by every generation path"""

from datetime import date
from typing import List

from finance_gateway.domain.exceptions import InvalidAmountError, InvalidDayOfMonthError, InvalidPeriodCountError
from finance_gateway.domain.models import InstallmentPlan, PlanStatus, ScheduledPeriod
from finance_gateway.utils.date_utils import add_months, days_in_month, month_index


def validate_day_of_month(day_of_month: int, field: str = "paymentDay") -> None:
    if not 1 <= day_of_month <= 31:
        raise InvalidDayOfMonthError(field)


def period_date(start: date, day_of_month: int, period_index: int) -> date:
    """
    Calendar date of a period.

    Adds `period_index` whole months to the month of `start`, then sets the
    day to `day_of_month`, clamped to the last day of that month.

    Example:
        period_date(date(2024, 1, 31), 31, 1) -> date(2024, 2, 29)
    """
    validate_day_of_month(day_of_month)
    year, month = add_months(start.year, start.month, period_index)
    return date(year, month, min(day_of_month, days_in_month(year, month)))


def elapsed_periods(start: date, day_of_month: int, period_count: int, now: date) -> int:
    """
    Number of periods that have come due by `now`, capped at `period_count`.

    Whole months between `start` and `now`, plus one when `now` has reached
    this month's (clamped) payment day. Only used to seed a new plan or to
    preview one; persisted plans keep their own paid count.
    """
    if start > now:
        return 0

    months = month_index(now) - month_index(start)

    # Day 31 in a 30-day month falls due on the 30th
    due_day = min(day_of_month, days_in_month(now.year, now.month))
    if now.day >= due_day:
        months += 1

    return min(max(0, months), period_count)


def split_amount(total_cents: int, period_count: int) -> List[int]:
    """
    Divide a total into equal period amounts.

    The last period absorbs the rounding remainder so the amounts always
    sum back to the total.

    Example:
        100000 cents / 3 -> [33333, 33333, 33334]
    """
    if total_cents <= 0:
        raise InvalidAmountError()
    if period_count < 1:
        raise InvalidPeriodCountError()

    base_amount = total_cents // period_count
    remainder = total_cents % period_count
    return [base_amount] * (period_count - 1) + [base_amount + remainder]


def period_amount(total_cents: int, period_count: int, period_number: int) -> int:
    """Amount for the 1-based `period_number` of a plan"""
    base_amount = total_cents // period_count
    if period_number == period_count:
        return base_amount + total_cents % period_count
    return base_amount


def build_schedule(plan: InstallmentPlan) -> List[ScheduledPeriod]:
    """Full payment schedule of a plan with per-period status"""
    amounts = split_amount(plan.total_cents, plan.period_count)

    schedule = []
    for i, amount in enumerate(amounts):
        number = i + 1
        if number <= plan.paid_count:
            status = "paid"
        elif plan.status == PlanStatus.CANCELLED:
            status = "cancelled"
        else:
            status = "scheduled"

        schedule.append(
            ScheduledPeriod(
                index=number,
                due_date=period_date(plan.start_date, plan.payment_day, i),
                amount_cents=amount,
                status=status,
            )
        )

    return schedule
