"""SQLAlchemy ORM models for plans, recurring expenses and the ledger"""

import uuid
from sqlalchemy import (
    BigInteger,
    Boolean,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import declarative_base
from sqlalchemy.sql import func

Base = declarative_base()


class InstallmentPlanRecord(Base):
    """Installment plan with its persisted payment progress"""

    __tablename__ = "installment_plan"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Text, nullable=False)
    group_id = Column(Text, nullable=True, index=True)
    description = Column(Text, nullable=False)
    category = Column(Text, nullable=False)
    total_cents = Column(BigInteger, nullable=False)
    period_count = Column(Integer, nullable=False)
    start_date = Column(Date, nullable=False, index=True)
    payment_day = Column(Integer, nullable=False)
    paid_count = Column(Integer, nullable=False, default=0)
    status = Column(Text, nullable=False, default="active")
    is_family = Column(Boolean, nullable=False, default=False)
    paid_by = Column(Text, nullable=True)
    version = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    # UPDATEs are conditional on the version read; a concurrent writer raises StaleDataError
    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (Index("ix_installment_plan_user_status", "user_id", "status"),)


class RecurringExpenseRecord(Base):
    """Recurring expense definition"""

    __tablename__ = "recurring_expense"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Text, nullable=False)
    group_id = Column(Text, nullable=True)
    description = Column(Text, nullable=False)
    category = Column(Text, nullable=False)
    amount_cents = Column(BigInteger, nullable=False)
    day_of_month = Column(Integer, nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    last_generated_month = Column(Integer, nullable=True)
    last_generated_year = Column(Integer, nullable=True)
    is_family = Column(Boolean, nullable=False, default=False)
    paid_by = Column(Text, nullable=True)
    version = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (Index("ix_recurring_expense_user_active", "user_id", "is_active"),)


class LedgerTransaction(Base):
    """Ledger entry generated for one period of a plan or recurring expense"""

    __tablename__ = "ledger_transaction"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Text, nullable=False, index=True)
    group_id = Column(Text, nullable=True)
    description = Column(Text, nullable=False)
    amount_cents = Column(BigInteger, nullable=False)
    type = Column(Text, nullable=False, default="expense")
    nature = Column(Text, nullable=False, default="fixed")
    category = Column(Text, nullable=False)
    status = Column(Text, nullable=False, default="paid")
    occurred_on = Column(Date, nullable=False)
    is_family = Column(Boolean, nullable=False, default=False)
    paid_by = Column(Text, nullable=True)

    # Deleting the source keeps its history in the ledger
    installment_id = Column(Uuid, ForeignKey("installment_plan.id", ondelete="SET NULL"), nullable=True)
    period_index = Column(Integer, nullable=True)
    period_total = Column(Integer, nullable=True)
    recurring_expense_id = Column(Uuid, ForeignKey("recurring_expense.id", ondelete="SET NULL"), nullable=True)
    period_month = Column(Integer, nullable=True)
    period_year = Column(Integer, nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    __table_args__ = (
        UniqueConstraint("installment_id", "period_index", name="uq_ledger_installment_period"),
        UniqueConstraint("recurring_expense_id", "period_year", "period_month", name="uq_ledger_recurring_period"),
    )
