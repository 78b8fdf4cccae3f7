"""Integration tests for /v1/installments"""

import pytest
from unittest.mock import AsyncMock, patch
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session
from finance_gateway.infrastructure.database.models import LedgerTransaction


def _create(client: TestClient, payload: dict, **overrides) -> dict:
    response = client.post("/v1/installments", json={**payload, **overrides})
    assert response.status_code == 201, response.text
    return response.json()


def _ledger(db: Session):
    return db.query(LedgerTransaction).order_by(LedgerTransaction.period_index).all()


def test_create_auto_marks_elapsed(client: TestClient, db: Session, plan_payload: dict):
    """Created on 2024-04-20: Jan..Apr installments are back-filled"""
    data = _create(client, plan_payload)

    plan = data["installment"]
    assert data["createdTransactions"] == 4
    assert plan["currentPaid"] == 4
    assert plan["status"] == "active"
    assert plan["installments"] == 12
    assert plan["totalAmount"] == 1200.0
    assert plan["installmentAmount"] == 100.0
    assert plan["paidAmount"] == 400.0
    assert plan["remainingCount"] == 8
    assert plan["remainingAmount"] == 800.0
    assert plan["nextDueDate"] == "2024-05-15"

    ledger = _ledger(db)
    assert len(ledger) == 4
    assert all(row.amount_cents == 10_000 for row in ledger)
    assert [row.occurred_on.isoformat() for row in ledger] == [
        "2024-01-15",
        "2024-02-15",
        "2024-03-15",
        "2024-04-15",
    ]
    assert ledger[0].description == "Notebook (installment 1/12)"


def test_create_manual_and_disabled_modes(client: TestClient, plan_payload: dict):
    data = _create(client, plan_payload, initialPaid=20)
    assert data["installment"]["currentPaid"] == 12
    assert data["installment"]["status"] == "completed"
    assert data["installment"]["nextDueDate"] is None

    data = _create(client, plan_payload, autoMarkPaid=False)
    assert data["installment"]["currentPaid"] == 0
    assert data["createdTransactions"] == 0
    assert data["message"] == "Installment plan created"


@pytest.mark.parametrize(
    "field, value",
    [
        ("totalAmount", 0),
        ("totalAmount", -10),
        ("installments", 0),
        ("installments", 121),
        ("paymentDay", 32),
        ("paymentDay", 0),
        ("description", "   "),
    ],
)
def test_create_validation_errors(client: TestClient, plan_payload: dict, field: str, value):
    response = client.post("/v1/installments", json={**plan_payload, field: value})

    assert response.status_code == 400
    assert field in [error["field"] for error in response.json()["errors"]]


def test_get_and_owner_scoping(client: TestClient, plan_payload: dict):
    plan_id = _create(client, plan_payload)["installment"]["id"]

    assert client.get(f"/v1/installments/{plan_id}").status_code == 200
    assert client.get(f"/v1/installments/{plan_id}", headers={"X-User-ID": "intruder"}).status_code == 404
    assert client.put(f"/v1/installments/{plan_id}/pay", headers={"X-User-ID": "intruder"}).status_code == 404
    assert client.get("/v1/installments/00000000-0000-0000-0000-000000000000").status_code == 404
    assert client.get("/v1/installments/not-a-uuid").status_code == 400


def test_pay_next_installment(client: TestClient, db: Session, plan_payload: dict):
    plan_id = _create(client, plan_payload)["installment"]["id"]

    response = client.put(f"/v1/installments/{plan_id}/pay")
    assert response.status_code == 200
    data = response.json()
    assert data["installment"]["currentPaid"] == 5
    assert data["transaction"]["date"] == "2024-05-15"
    assert data["transaction"]["amount"] == 100.0
    assert data["transaction"]["periodIndex"] == 5
    assert data["message"] == "Installment 5/12 marked as paid"
    assert len(_ledger(db)) == 5


def test_pay_with_payment_date(client: TestClient, plan_payload: dict):
    plan_id = _create(client, plan_payload, autoMarkPaid=False)["installment"]["id"]

    response = client.put(f"/v1/installments/{plan_id}/pay", json={"paymentDate": "2024-01-20"})
    assert response.status_code == 200
    assert response.json()["transaction"]["date"] == "2024-01-20"


def test_pay_completed_plan_fails(client: TestClient, db: Session, plan_payload: dict):
    plan_id = _create(client, plan_payload, initialPaid=11)["installment"]["id"]

    response = client.put(f"/v1/installments/{plan_id}/pay")
    assert response.json()["installment"]["status"] == "completed"

    response = client.put(f"/v1/installments/{plan_id}/pay")
    assert response.status_code == 400
    assert response.json()["code"] == "already_complete"
    assert len(_ledger(db)) == 12


def test_mark_paid_advances_to_target(client: TestClient, db: Session, plan_payload: dict):
    plan_id = _create(client, plan_payload)["installment"]["id"]

    response = client.put(f"/v1/installments/{plan_id}/mark-paid", json={"paidCount": 12})
    assert response.status_code == 200
    data = response.json()
    assert data["createdTransactions"] == 8
    assert data["installment"]["currentPaid"] == 12
    assert data["installment"]["status"] == "completed"
    assert [row.period_index for row in _ledger(db)] == list(range(1, 13))


def test_mark_paid_rejects_regression(client: TestClient, db: Session, plan_payload: dict):
    plan_id = _create(client, plan_payload, initialPaid=5)["installment"]["id"]

    response = client.put(f"/v1/installments/{plan_id}/mark-paid", json={"paidCount": 2})
    assert response.status_code == 400
    assert response.json()["code"] == "invalid_target"

    response = client.put(f"/v1/installments/{plan_id}/mark-paid", json={"paidCount": 13})
    assert response.status_code == 400

    assert client.get(f"/v1/installments/{plan_id}").json()["currentPaid"] == 5
    assert len(_ledger(db)) == 5


def test_mark_paid_requires_count(client: TestClient, plan_payload: dict):
    plan_id = _create(client, plan_payload)["installment"]["id"]

    response = client.put(f"/v1/installments/{plan_id}/mark-paid", json={})
    assert response.status_code == 400
    assert response.json()["errors"][0]["field"] == "paidCount"


def test_cancel_is_terminal(client: TestClient, db: Session, plan_payload: dict):
    plan_id = _create(client, plan_payload)["installment"]["id"]

    response = client.put(f"/v1/installments/{plan_id}/cancel")
    assert response.status_code == 200
    assert response.json()["status"] == "cancelled"
    assert response.json()["currentPaid"] == 4
    assert response.json()["nextDueDate"] is None

    assert client.put(f"/v1/installments/{plan_id}/pay").json()["code"] == "plan_cancelled"
    assert client.put(f"/v1/installments/{plan_id}/mark-paid", json={"paidCount": 6}).status_code == 400
    assert client.put(f"/v1/installments/{plan_id}/cancel").json()["code"] == "already_cancelled"
    assert len(_ledger(db)) == 4


def test_list_filters(client: TestClient, plan_payload: dict):
    first = _create(client, plan_payload, groupId="family")["installment"]["id"]
    second = _create(client, plan_payload, startDate="2024-06-01", paymentDay=1)["installment"]["id"]
    cancelled = _create(client, plan_payload, autoMarkPaid=False)["installment"]["id"]
    client.put(f"/v1/installments/{cancelled}/cancel")

    ids = [p["id"] for p in client.get("/v1/installments").json()]
    assert ids[0] == second  # newest start date first
    assert set(ids) == {first, second, cancelled}

    assert [p["id"] for p in client.get("/v1/installments?status=cancelled").json()] == [cancelled]
    assert [p["id"] for p in client.get("/v1/installments?groupId=family").json()] == [first]
    assert client.get("/v1/installments?status=bogus").status_code == 400


def test_list_by_month(client: TestClient, plan_payload: dict):
    first = _create(client, plan_payload)["installment"]["id"]  # paid Jan..Apr
    second = _create(client, plan_payload, startDate="2024-06-01", paymentDay=1)["installment"]["id"]

    assert client.get("/v1/installments?month=2024-04").json() == []
    assert [p["id"] for p in client.get("/v1/installments?month=2024-05").json()] == [first]
    assert {p["id"] for p in client.get("/v1/installments?month=2024-06").json()} == {first, second}
    assert [p["id"] for p in client.get("/v1/installments?month=2025-01").json()] == [second]

    response = client.get("/v1/installments?month=2024-13")
    assert response.status_code == 400
    assert response.json()["errors"][0]["field"] == "month"


def test_schedule_sums_to_total(client: TestClient, plan_payload: dict):
    plan_id = _create(client, plan_payload, totalAmount=1000, installments=3, initialPaid=1)["installment"]["id"]

    response = client.get(f"/v1/installments/{plan_id}/schedule")
    assert response.status_code == 200
    periods = response.json()["periods"]
    assert [p["amount"] for p in periods] == [333.33, 333.33, 333.34]
    assert [p["status"] for p in periods] == ["paid", "scheduled", "scheduled"]
    assert [p["dueDate"] for p in periods] == ["2024-01-15", "2024-02-15", "2024-03-15"]


def test_preview(client: TestClient):
    response = client.post(
        "/v1/installments/preview",
        json={"totalAmount": 600, "installments": 6, "startDate": "2024-01-31", "paymentDay": 31},
    )
    assert response.status_code == 200
    data = response.json()
    assert data["elapsedPeriods"] == 3
    assert data["installmentAmount"] == 100.0
    assert data["periods"][1]["dueDate"] == "2024-02-29"
    assert data["periods"][3]["dueDate"] == "2024-04-30"


def test_update_descriptive_fields(client: TestClient, plan_payload: dict):
    plan_id = _create(client, plan_payload)["installment"]["id"]

    response = client.put(f"/v1/installments/{plan_id}", json={"description": "Laptop", "paidBy": "Ana"})
    assert response.status_code == 200
    data = response.json()
    assert data["description"] == "Laptop"
    assert data["paidBy"] == "Ana"
    assert data["currentPaid"] == 4


def test_update_scheduling_fields(client: TestClient, plan_payload: dict):
    paid_id = _create(client, plan_payload)["installment"]["id"]
    response = client.put(f"/v1/installments/{paid_id}", json={"totalAmount": 2400})
    assert response.status_code == 400
    assert response.json()["code"] == "schedule_locked"

    unpaid_id = _create(client, plan_payload, autoMarkPaid=False)["installment"]["id"]
    response = client.put(f"/v1/installments/{unpaid_id}", json={"totalAmount": 2400, "installments": 24})
    assert response.status_code == 200
    assert response.json()["installmentAmount"] == 100.0


def test_delete_keeps_ledger(client: TestClient, db: Session, plan_payload: dict):
    plan_id = _create(client, plan_payload)["installment"]["id"]

    response = client.delete(f"/v1/installments/{plan_id}")
    assert response.status_code == 200
    assert client.get(f"/v1/installments/{plan_id}").status_code == 404
    assert client.delete(f"/v1/installments/{plan_id}").status_code == 404
    assert db.query(LedgerTransaction).count() == 4


@patch("finance_gateway.infrastructure.clients.ledger.LedgerClient.send_generation_event", new_callable=AsyncMock)
def test_ledger_notified_after_payment(mock_ledger: AsyncMock, client: TestClient, plan_payload: dict):
    plan_id = _create(client, plan_payload, autoMarkPaid=False)["installment"]["id"]
    mock_ledger.assert_not_called()

    client.put(f"/v1/installments/{plan_id}/pay")

    mock_ledger.assert_awaited_once()
    payload = mock_ledger.await_args.args[0]
    assert payload["event"] == "INSTALLMENTS_PAID"
    assert payload["source_id"] == plan_id
    assert payload["amount_cents"] == 10_000


@pytest.mark.parametrize("field", ["description", "installments", "isFamily", "totalAmount", "startDate"])
def test_update_rejects_null(client: TestClient, plan_payload: dict, field: str):
    plan_id = _create(client, plan_payload, autoMarkPaid=False)["installment"]["id"]

    response = client.put(f"/v1/installments/{plan_id}", json={field: None})

    assert response.status_code == 400
    assert [error["field"] for error in response.json()["errors"]] == [field]
    assert client.get(f"/v1/installments/{plan_id}").json()["description"] == "Notebook"


def test_update_clears_optional_fields(client: TestClient, plan_payload: dict):
    plan_id = _create(client, plan_payload, paidBy="Ana")["installment"]["id"]

    response = client.put(f"/v1/installments/{plan_id}", json={"paidBy": None})
    assert response.status_code == 200
    assert response.json()["paidBy"] is None


def test_schedule_past_year_9999_is_rejected(client: TestClient, plan_payload: dict):
    late = {"startDate": "9999-11-01", "installments": 3, "paymentDay": 1}

    response = client.post("/v1/installments", json={**plan_payload, **late, "autoMarkPaid": False})
    assert response.status_code == 400
    assert response.json()["errors"] == [{"field": "startDate", "message": "Schedule cannot run past the year 9999"}]

    response = client.post("/v1/installments/preview", json={"totalAmount": 300, **late})
    assert response.status_code == 400
    assert response.json()["errors"][0]["field"] == "startDate"

    plan_id = _create(client, plan_payload, autoMarkPaid=False)["installment"]["id"]
    response = client.put(f"/v1/installments/{plan_id}", json={"startDate": "9999-12-01"})
    assert response.status_code == 400
    assert response.json()["errors"][0]["field"] == "startDate"
