"""Pydantic schemas for API request/response validation"""

from datetime import date, datetime
from decimal import Decimal
from typing import Annotated, List, Optional

from pydantic import BaseModel, ConfigDict, Field, StringConstraints, field_validator
from pydantic.alias_generators import to_camel

from finance_gateway.config import settings

Label = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=200)]
Category = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=50)]
Member = Annotated[str, StringConstraints(strip_whitespace=True, max_length=100)]
Money = Annotated[Decimal, Field(gt=0, max_digits=14, decimal_places=2)]
DayOfMonth = Annotated[int, Field(ge=1, le=31)]


class CamelModel(BaseModel):
    """Wire models use camelCase field names"""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def _reject_null(value):
    # Optional on update means "may be omitted", not "may be cleared"
    if value is None:
        raise ValueError("Field cannot be null")
    return value


# Installment plans


class InstallmentCreate(CamelModel):
    """Request body for POST /v1/installments"""

    description: Label
    total_amount: Money
    period_count: int = Field(..., alias="installments", ge=1, le=settings.max_period_count)
    category: Category
    start_date: date
    payment_day: DayOfMonth
    group_id: Optional[str] = None
    is_family: bool = False
    paid_by: Optional[Member] = None
    initial_paid: Optional[int] = Field(None, description="Installments already paid (manual mode)")
    auto_mark_paid: bool = Field(True, description="Derive paid installments from the start date")


class InstallmentUpdate(CamelModel):
    """Request body for PUT /v1/installments/{id}; only sent fields change"""

    description: Optional[Label] = None
    total_amount: Optional[Money] = None
    period_count: Optional[int] = Field(None, alias="installments", ge=1, le=settings.max_period_count)
    category: Optional[Category] = None
    start_date: Optional[date] = None
    payment_day: Optional[DayOfMonth] = None
    group_id: Optional[str] = None
    is_family: Optional[bool] = None
    paid_by: Optional[Member] = None

    @field_validator(
        "description",
        "total_amount",
        "period_count",
        "category",
        "start_date",
        "payment_day",
        "is_family",
        mode="before",
    )
    @classmethod
    def reject_null(cls, value):
        return _reject_null(value)


class PayRequest(CamelModel):
    """Request body for PUT /v1/installments/{id}/pay"""

    payment_date: Optional[date] = None


class MarkPaidRequest(CamelModel):
    """Request body for PUT /v1/installments/{id}/mark-paid"""

    paid_count: int = Field(..., ge=1, description="Target number of paid installments")


class PreviewRequest(CamelModel):
    """Request body for POST /v1/installments/preview"""

    total_amount: Money
    period_count: int = Field(..., alias="installments", ge=1, le=settings.max_period_count)
    start_date: date
    payment_day: DayOfMonth


class TransactionSchema(CamelModel):
    """Generated ledger transaction"""

    id: str
    description: str
    amount: float
    category: str
    occurred_on: date = Field(..., alias="date")
    type: str = "expense"
    status: str = "paid"
    installment_id: Optional[str] = None
    period_index: Optional[int] = None
    period_total: Optional[int] = None
    recurring_expense_id: Optional[str] = None
    period_month: Optional[int] = None
    period_year: Optional[int] = None


class InstallmentResponse(CamelModel):
    """Installment plan with progress"""

    id: str
    user_id: str
    group_id: Optional[str] = None
    description: str
    total_amount: float
    period_count: int = Field(..., alias="installments")
    category: str
    start_date: date
    payment_day: int
    current_paid: int
    status: str
    is_family: bool
    paid_by: Optional[str] = None
    installment_amount: float
    paid_amount: float
    remaining_count: int
    remaining_amount: float
    next_due_date: Optional[date] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class CreateInstallmentResponse(CamelModel):
    installment: InstallmentResponse
    created_transactions: int
    message: str


class PayResponse(CamelModel):
    installment: InstallmentResponse
    transaction: TransactionSchema
    message: str


class MarkPaidResponse(CamelModel):
    installment: InstallmentResponse
    created_transactions: int
    message: str


class ScheduledPeriodSchema(CamelModel):
    """Single period in a payment schedule"""

    index: int
    due_date: date
    amount: float
    status: str


class ScheduleResponse(CamelModel):
    installment_id: str
    periods: List[ScheduledPeriodSchema]


class PreviewResponse(CamelModel):
    elapsed_periods: int
    installment_amount: float
    periods: List[ScheduledPeriodSchema]


class MessageResponse(BaseModel):
    message: str


# Recurring expenses


class RecurringExpenseCreate(CamelModel):
    """Request body for POST /v1/recurring-expenses"""

    description: Label
    amount: Money
    category: Category
    day_of_month: DayOfMonth
    group_id: Optional[str] = None
    is_family: bool = False
    paid_by: Optional[Member] = None


class RecurringExpenseUpdate(CamelModel):
    """Request body for PUT /v1/recurring-expenses/{id}; only sent fields change"""

    description: Optional[Label] = None
    amount: Optional[Money] = None
    category: Optional[Category] = None
    day_of_month: Optional[DayOfMonth] = None
    group_id: Optional[str] = None
    is_family: Optional[bool] = None
    paid_by: Optional[Member] = None

    @field_validator("description", "amount", "category", "day_of_month", "is_family", mode="before")
    @classmethod
    def reject_null(cls, value):
        return _reject_null(value)


class ToggleRequest(CamelModel):
    is_active: bool


class GenerateRequest(CamelModel):
    """Calendar period to generate; defaults to the current month"""

    month: Optional[int] = Field(None, ge=1, le=12)
    year: Optional[int] = Field(None, ge=1, le=9999)


class RecurringExpenseResponse(CamelModel):
    id: str
    user_id: str
    group_id: Optional[str] = None
    description: str
    amount: float
    category: str
    day_of_month: int
    is_active: bool
    last_generated_month: Optional[int] = None
    last_generated_year: Optional[int] = None
    is_family: bool
    paid_by: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class GenerateResponse(CamelModel):
    message: str
    transaction: TransactionSchema


class GeneratedItem(CamelModel):
    recurring_expense_id: str
    description: str
    transaction_id: str


class SkippedItem(CamelModel):
    recurring_expense_id: str
    description: str
    reason: str


class GenerateAllResponse(CamelModel):
    message: str
    generated: List[GeneratedItem]
    skipped: List[SkippedItem]
