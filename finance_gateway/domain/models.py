"""Domain models - pure Python dataclasses representing business entities"""

import uuid
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Optional, Tuple


class PlanStatus(str, Enum):
    """Installment plan lifecycle: active -> completed | cancelled"""

    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class TransactionSource(str, Enum):
    INSTALLMENT = "installment"
    RECURRING = "recurring"


@dataclass
class InstallmentPlan:
    """Finite amortized plan: total_cents paid across period_count months"""

    user_id: str
    description: str
    category: str
    total_cents: int
    period_count: int
    start_date: date
    payment_day: int
    paid_count: int = 0
    status: PlanStatus = PlanStatus.ACTIVE
    group_id: Optional[str] = None
    is_family: bool = False
    paid_by: Optional[str] = None
    id: uuid.UUID = field(default_factory=uuid.uuid4)

    @property
    def is_complete(self) -> bool:
        return self.paid_count >= self.period_count


@dataclass
class RecurringExpense:
    """Calendar-anchored expense with one occurrence per month"""

    user_id: str
    description: str
    category: str
    amount_cents: int
    day_of_month: int
    is_active: bool = True
    last_generated_month: Optional[int] = None
    last_generated_year: Optional[int] = None
    group_id: Optional[str] = None
    is_family: bool = False
    paid_by: Optional[str] = None
    id: uuid.UUID = field(default_factory=uuid.uuid4)

    @property
    def last_generated_period(self) -> Optional[Tuple[int, int]]:
        """(month, year) of the latest generated occurrence"""
        if self.last_generated_month is None or self.last_generated_year is None:
            return None
        return self.last_generated_month, self.last_generated_year


@dataclass
class GeneratedTransaction:
    """Ledger transaction emitted for one period of a plan or recurring expense"""

    source: TransactionSource
    source_id: uuid.UUID
    user_id: str
    description: str
    category: str
    amount_cents: int
    occurred_on: date
    group_id: Optional[str] = None
    is_family: bool = False
    paid_by: Optional[str] = None
    # Installment plans: "period_index of period_total"
    period_index: Optional[int] = None
    period_total: Optional[int] = None
    # Recurring expenses: calendar period
    period_month: Optional[int] = None
    period_year: Optional[int] = None
    id: uuid.UUID = field(default_factory=uuid.uuid4)


@dataclass
class ScheduledPeriod:
    """Single period in an installment schedule"""

    index: int
    due_date: date
    amount_cents: int
    status: str  # "paid" | "scheduled" | "cancelled"
