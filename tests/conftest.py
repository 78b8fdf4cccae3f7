"""Pytest fixtures for testing"""

import os

os.environ.setdefault("DATABASE_URL", "sqlite:///./test.db")

import pytest
from datetime import date
from typing import Generator
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from finance_gateway.api.main import create_app
from finance_gateway.api.dependencies import get_today
from finance_gateway.infrastructure.database.models import Base
from finance_gateway.infrastructure.database.session import get_db
from finance_gateway.domain.models import InstallmentPlan, RecurringExpense


# Test database
TEST_DATABASE_URL = "sqlite:///./test.db"
engine = create_engine(TEST_DATABASE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Pinned clock for every request
TODAY = date(2024, 4, 20)
USER_ID = "user_1"


@pytest.fixture
def db() -> Generator[Session, None, None]:
    """Create test database and session"""
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client(db: Session) -> TestClient:
    """Create FastAPI test client with test database, a fixed date and an owner header"""
    app = create_app()

    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_today] = lambda: TODAY
    return TestClient(app, headers={"X-User-ID": USER_ID})


@pytest.fixture
def plan_payload() -> dict:
    """1200.00 over 12 monthly installments starting 2024-01-15"""
    return {
        "description": "Notebook",
        "totalAmount": 1200,
        "installments": 12,
        "category": "electronics",
        "startDate": "2024-01-15",
        "paymentDay": 15,
    }


@pytest.fixture
def sample_plan() -> InstallmentPlan:
    return InstallmentPlan(
        user_id=USER_ID,
        description="Notebook",
        category="electronics",
        total_cents=120_000,
        period_count=12,
        start_date=date(2024, 1, 15),
        payment_day=15,
    )


@pytest.fixture
def sample_expense() -> RecurringExpense:
    return RecurringExpense(
        user_id=USER_ID,
        description="Rent",
        category="housing",
        amount_cents=150_000,
        day_of_month=31,
    )
