"""Integration tests for concurrent writers on the same plan or expense"""

import pytest
from datetime import date
from sqlalchemy.orm import Session, sessionmaker
from finance_gateway.domain import installments, recurring
from finance_gateway.domain.exceptions import AlreadyGeneratedError, ConcurrentModificationError, PersistenceError
from finance_gateway.infrastructure.database.repositories import (
    LedgerRepository,
    PlanRepository,
    RecurringExpenseRepository,
)
from finance_gateway.infrastructure.database.session import atomic


@pytest.fixture
def other_db(db: Session):
    """A second session on the same database, standing in for a parallel request"""
    session = sessionmaker(autocommit=False, autoflush=False, bind=db.get_bind())()
    try:
        yield session
    finally:
        session.close()


def test_stale_plan_write_is_rejected(db: Session, other_db: Session, sample_plan):
    with atomic(db):
        PlanRepository(db).create_plan(sample_plan)

    first = PlanRepository(db).get_plan(sample_plan.id, sample_plan.user_id)
    second = PlanRepository(other_db).get_plan(sample_plan.id, sample_plan.user_id)

    with atomic(other_db):
        plan = PlanRepository.to_domain(second)
        installments.advance_one(plan)
        PlanRepository(other_db).apply(second, plan)

    with pytest.raises(ConcurrentModificationError):
        with atomic(db):
            plan = PlanRepository.to_domain(first)
            installments.advance_one(plan)
            PlanRepository(db).apply(first, plan)

    db.expire_all()
    assert PlanRepository(db).get_plan(sample_plan.id, sample_plan.user_id).paid_count == 1


def test_duplicate_recurring_period_is_rejected(db: Session, other_db: Session, sample_expense):
    with atomic(db):
        RecurringExpenseRepository(db).create_expense(sample_expense)

    # Both writers generate from the same snapshot, before either commits
    first = recurring.generate(RecurringExpenseRepository.to_domain(
        RecurringExpenseRepository(db).get_expense(sample_expense.id, sample_expense.user_id)
    ), 3, 2024)
    second = recurring.generate(RecurringExpenseRepository.to_domain(
        RecurringExpenseRepository(other_db).get_expense(sample_expense.id, sample_expense.user_id)
    ), 3, 2024)

    with atomic(other_db):
        LedgerRepository(other_db).add_recurring_occurrence(second)

    with pytest.raises(AlreadyGeneratedError):
        with atomic(db):
            LedgerRepository(db).add_recurring_occurrence(first)

    assert LedgerRepository(db).recurring_period_exists(sample_expense.id, 3, 2024)
    assert first.occurred_on == date(2024, 3, 31)


def test_missing_required_column_is_a_storage_failure(db: Session, sample_plan):
    sample_plan.description = None

    with pytest.raises(PersistenceError):
        with atomic(db):
            PlanRepository(db).create_plan(sample_plan)

    assert PlanRepository(db).list_plans(sample_plan.user_id) == []
