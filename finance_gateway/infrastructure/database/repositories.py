"""Data access layer for plans, recurring expenses and ledger transactions"""

import uuid
from typing import Iterable, List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from finance_gateway.domain.exceptions import AlreadyGeneratedError
from finance_gateway.domain.models import (
    GeneratedTransaction,
    InstallmentPlan,
    PlanStatus,
    RecurringExpense,
    TransactionSource,
)
from finance_gateway.infrastructure.database.models import (
    InstallmentPlanRecord,
    LedgerTransaction,
    RecurringExpenseRecord,
)

PLAN_FIELDS = (
    "user_id",
    "group_id",
    "description",
    "category",
    "total_cents",
    "period_count",
    "start_date",
    "payment_day",
    "paid_count",
    "is_family",
    "paid_by",
)

EXPENSE_FIELDS = (
    "user_id",
    "group_id",
    "description",
    "category",
    "amount_cents",
    "day_of_month",
    "is_active",
    "last_generated_month",
    "last_generated_year",
    "is_family",
    "paid_by",
)


class PlanRepository:
    """Repository for installment plans"""

    def __init__(self, db: Session):
        self.db = db

    @staticmethod
    def to_domain(record: InstallmentPlanRecord) -> InstallmentPlan:
        return InstallmentPlan(
            id=record.id,
            status=PlanStatus(record.status),
            **{name: getattr(record, name) for name in PLAN_FIELDS},
        )

    def create_plan(self, plan: InstallmentPlan) -> InstallmentPlanRecord:
        db_plan = InstallmentPlanRecord(id=plan.id, status=plan.status.value)
        self.apply(db_plan, plan)
        self.db.add(db_plan)
        self.db.flush()  # Get row without committing
        return db_plan

    def apply(self, record: InstallmentPlanRecord, plan: InstallmentPlan) -> None:
        """Copy domain state onto the row; the version check runs on flush"""
        for name in PLAN_FIELDS:
            setattr(record, name, getattr(plan, name))
        record.status = plan.status.value

    def get_plan(
        self,
        plan_id: uuid.UUID,
        user_id: str,
        for_update: bool = False,
    ) -> Optional[InstallmentPlanRecord]:
        """Fetch a plan owned by `user_id`; `for_update` locks the row until commit"""
        query = self.db.query(InstallmentPlanRecord).filter(
            InstallmentPlanRecord.id == plan_id,
            InstallmentPlanRecord.user_id == user_id,
        )
        if for_update:
            query = query.with_for_update()
        return query.first()

    def list_plans(
        self,
        user_id: str,
        statuses: Optional[Iterable[str]] = None,
        group_id: Optional[str] = None,
        started_on_or_before=None,
    ) -> List[InstallmentPlanRecord]:
        """Plans for a user, newest start date first"""
        query = self.db.query(InstallmentPlanRecord).filter(InstallmentPlanRecord.user_id == user_id)

        if statuses:
            query = query.filter(InstallmentPlanRecord.status.in_(list(statuses)))
        if group_id:
            query = query.filter(InstallmentPlanRecord.group_id == group_id)
        if started_on_or_before is not None:
            query = query.filter(InstallmentPlanRecord.start_date <= started_on_or_before)

        return query.order_by(InstallmentPlanRecord.start_date.desc()).all()

    def delete_plan(self, record: InstallmentPlanRecord) -> None:
        self.db.delete(record)
        self.db.flush()


class RecurringExpenseRepository:
    """Repository for recurring expense definitions"""

    def __init__(self, db: Session):
        self.db = db

    @staticmethod
    def to_domain(record: RecurringExpenseRecord) -> RecurringExpense:
        return RecurringExpense(id=record.id, **{name: getattr(record, name) for name in EXPENSE_FIELDS})

    def create_expense(self, expense: RecurringExpense) -> RecurringExpenseRecord:
        db_expense = RecurringExpenseRecord(id=expense.id)
        self.apply(db_expense, expense)
        self.db.add(db_expense)
        self.db.flush()
        return db_expense

    def apply(self, record: RecurringExpenseRecord, expense: RecurringExpense) -> None:
        for name in EXPENSE_FIELDS:
            setattr(record, name, getattr(expense, name))

    def get_expense(
        self,
        expense_id: uuid.UUID,
        user_id: str,
        for_update: bool = False,
    ) -> Optional[RecurringExpenseRecord]:
        query = self.db.query(RecurringExpenseRecord).filter(
            RecurringExpenseRecord.id == expense_id,
            RecurringExpenseRecord.user_id == user_id,
        )
        if for_update:
            query = query.with_for_update()
        return query.first()

    def list_expenses(self, user_id: str, is_active: Optional[bool] = None) -> List[RecurringExpenseRecord]:
        """Expenses for a user ordered by day of month"""
        query = self.db.query(RecurringExpenseRecord).filter(RecurringExpenseRecord.user_id == user_id)
        if is_active is not None:
            query = query.filter(RecurringExpenseRecord.is_active == is_active)
        return query.order_by(RecurringExpenseRecord.day_of_month, RecurringExpenseRecord.created_at).all()

    def delete_expense(self, record: RecurringExpenseRecord) -> None:
        self.db.delete(record)
        self.db.flush()


class LedgerRepository:
    """Sink for generated ledger transactions"""

    def __init__(self, db: Session):
        self.db = db

    def add_transactions(self, transactions: Iterable[GeneratedTransaction]) -> List[LedgerTransaction]:
        """Stage generated transactions in the current database transaction"""
        rows = []
        for txn in transactions:
            row = LedgerTransaction(
                id=txn.id,
                user_id=txn.user_id,
                group_id=txn.group_id,
                description=txn.description,
                amount_cents=txn.amount_cents,
                category=txn.category,
                occurred_on=txn.occurred_on,
                is_family=txn.is_family,
                paid_by=txn.paid_by,
                type="expense",
                nature="fixed",
                status="paid",
            )
            if txn.source == TransactionSource.INSTALLMENT:
                row.installment_id = txn.source_id
                row.period_index = txn.period_index
                row.period_total = txn.period_total
            else:
                row.recurring_expense_id = txn.source_id
                row.period_month = txn.period_month
                row.period_year = txn.period_year
            self.db.add(row)
            rows.append(row)

        self.db.flush()
        return rows

    def add_recurring_occurrence(self, transaction: GeneratedTransaction) -> LedgerTransaction:
        """Stage a recurring occurrence; a duplicate period is reported as already generated"""
        try:
            return self.add_transactions([transaction])[0]
        except IntegrityError as e:
            raise AlreadyGeneratedError(
                f"Transaction for {transaction.period_month:02d}/{transaction.period_year} was already generated"
            ) from e

    def recurring_period_exists(self, expense_id: uuid.UUID, month: int, year: int) -> bool:
        return (
            self.db.query(LedgerTransaction.id)
            .filter(
                LedgerTransaction.recurring_expense_id == expense_id,
                LedgerTransaction.period_month == month,
                LedgerTransaction.period_year == year,
            )
            .first()
            is not None
        )

    def get_transaction(self, transaction_id: uuid.UUID) -> Optional[LedgerTransaction]:
        return self.db.query(LedgerTransaction).filter(LedgerTransaction.id == transaction_id).first()

    def list_for_installment(self, plan_id: uuid.UUID) -> List[LedgerTransaction]:
        return (
            self.db.query(LedgerTransaction)
            .filter(LedgerTransaction.installment_id == plan_id)
            .order_by(LedgerTransaction.period_index)
            .all()
        )
