"""Read-only plan queries for calendar and month views"""

import re
from typing import Iterable, List, Tuple

from finance_gateway.domain.exceptions import InvalidPeriodError
from finance_gateway.domain.models import InstallmentPlan, PlanStatus

MONTH_PATTERN = re.compile(r"^(\d{4})-(\d{1,2})$")


def parse_month(value: str) -> Tuple[int, int]:
    """Parse a "YYYY-MM" query value into (month, year)"""
    match = MONTH_PATTERN.match(value.strip())
    if not match:
        raise InvalidPeriodError("month", "Month must use the YYYY-MM format")

    year, month = int(match.group(1)), int(match.group(2))
    if not 1 <= month <= 12:
        raise InvalidPeriodError("month", "Month must be between 1 and 12")
    return month, year


def is_due_in_month(plan: InstallmentPlan, month: int, year: int) -> bool:
    """True when the plan has an unpaid period falling in (month, year)"""
    if plan.status not in (PlanStatus.ACTIVE, PlanStatus.COMPLETED):
        return False

    months_passed = (year * 12 + month) - (plan.start_date.year * 12 + plan.start_date.month)
    return 0 <= months_passed < plan.period_count and months_passed >= plan.paid_count


def plans_due_in_month(plans: Iterable[InstallmentPlan], month: int, year: int) -> List[InstallmentPlan]:
    """Plans with a period due in the queried month. Never mutates the plans."""
    return [plan for plan in plans if is_due_in_month(plan, month, year)]
