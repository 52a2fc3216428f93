from __future__ import annotations

import uuid
from collections.abc import Generator
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from salesflow import audit, events
from salesflow.core.auth import AuthUser, get_current_user
from salesflow.core.config import get_settings
from salesflow.core.database import Base, get_db
from salesflow.main import app


@pytest.fixture()
def db_session() -> Generator[Session, None, None]:
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(autouse=True)
def clear_stubs() -> Generator[None, None, None]:
    audit.audit_entries.clear()
    events.published_events.clear()
    get_settings.cache_clear()
    yield
    audit.audit_entries.clear()
    events.published_events.clear()
    get_settings.cache_clear()


@pytest.fixture()
def client(db_session: Session) -> Generator[TestClient, None, None]:
    def override_get_db() -> Generator[Session, None, None]:
        yield db_session

    def override_get_current_user() -> AuthUser:
        return AuthUser(sub="user-1", roles=["sales"])

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_current_user] = override_get_current_user
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def _post(client: TestClient, path: str, payload: dict | None = None, expected: int = 201) -> dict:
    response = client.post(path, json=payload)
    assert response.status_code == expected, response.text
    return response.json()


def _seed_lead(client: TestClient) -> dict:
    _post(client, "/api/employees", {"name": "Dana Reyes", "email": "dana@acme-corp.com"})
    _post(client, "/api/products", {"name": "Standing Desk", "price": "100", "category": "furniture"})
    return _post(
        client,
        "/api/leads",
        {
            "requirement": "Twenty standing desks",
            "expected_revenue": "5000",
            "probability": 40,
            "source": "REFERRAL",
            "assigned_to": "Dana Reyes",
            "customer": {"name": "Acme Corp", "email": "buyer@acme-corp.com"},
        },
    )


def _quote(client: TestClient, opportunity_id: str) -> dict:
    return _post(
        client,
        "/api/quotations",
        {
            "opportunity_id": opportunity_id,
            "title": "Standing desks",
            "items": [{"product_name": "Standing Desk", "quantity": 2, "discount": "10"}],
        },
    )


def test_lead_to_invoice_over_http(client: TestClient) -> None:
    lead = _seed_lead(client)
    opportunity = _post(client, "/api/opportunities", {"lead_id": lead["id"]})
    assert client.get(f"/api/leads/{lead['id']}").json()["status"] == "ARCHIVED"

    quotation = _quote(client, opportunity["id"])
    assert Decimal(quotation["total"]) == Decimal("180")
    assert client.get(f"/api/opportunities/{opportunity['id']}").json()["quotation_id"] == quotation["id"]

    assert _post(client, f"/api/quotations/{quotation['id']}/send", expected=200)["stage"] == "SENT"
    assert _post(client, f"/api/quotations/{quotation['id']}/accept", expected=200)["stage"] == "ACCEPTED"
    invoice = _post(client, f"/api/invoices/from-quotation/{quotation['id']}")

    assert Decimal(invoice["subtotal"]) == Decimal("180")
    assert Decimal(invoice["tax_amount"]) == Decimal("15.3")
    assert Decimal(invoice["total"]) == Decimal("195.30")
    assert invoice["status"] == "PENDING"
    assert client.get(f"/api/customers/{lead['customer_id']}").json()["type"] == "EXISTING"
    assert client.get(f"/api/quotations/{quotation['id']}").json()["stage"] == "CONVERTED"

    listed = client.get("/api/invoices", params={"customer_email": "buyer@acme-corp.com"}).json()
    assert [row["invoice_number"] for row in listed] == [invoice["invoice_number"]]


def test_illegal_transition_returns_conflict_envelope(client: TestClient) -> None:
    lead = _seed_lead(client)
    opportunity = _post(client, "/api/opportunities", {"lead_id": lead["id"]})
    quotation = _quote(client, opportunity["id"])

    accept = client.post(f"/api/quotations/{quotation['id']}/accept", headers={"X-Correlation-Id": "corr-accept"})
    invoice = client.post(f"/api/invoices/from-quotation/{quotation['id']}")

    assert accept.status_code == 409
    body = accept.json()
    assert body["code"] == "illegal_stage_transition"
    assert body["details"]["current_stage"] == "DRAFT"
    assert body["correlation_id"] == "corr-accept"
    assert accept.headers["x-correlation-id"] == "corr-accept"
    assert invoice.status_code == 409
    assert client.get("/api/invoices").json() == []


def test_generated_correlation_id_in_header_and_envelope(client: TestClient) -> None:
    response = client.get(f"/api/customers/{uuid.uuid4()}")

    assert response.status_code == 404
    body = response.json()
    assert body["code"] == "not_found"
    assert body["correlation_id"]
    assert response.headers["x-correlation-id"] == body["correlation_id"]


def test_correlation_id_reaches_audit_and_events(client: TestClient) -> None:
    response = client.post(
        "/api/customers",
        json={"name": "Globex", "email": "ops@globex-corp.com"},
        headers={"X-Correlation-Id": "corr-customer"},
    )

    assert response.status_code == 201
    assert audit.audit_entries[-1]["correlation_id"] == "corr-customer"
    assert events.published_events[-1]["correlation_id"] == "corr-customer"
    assert events.published_events[-1]["actor_user_id"] == "user-1"


def test_request_validation_errors(client: TestClient) -> None:
    assert client.post("/api/customers", json={"email": "not-an-email"}).status_code == 422
    assert client.post("/api/leads", json={"requirement": "Desks"}).status_code == 422
    assert client.get("/api/customers/not-a-uuid").status_code == 422


def test_service_validation_error_envelope(client: TestClient) -> None:
    _post(client, "/api/employees", {"name": "Dana Reyes", "email": "dana@acme-corp.com"})

    response = client.post(
        "/api/leads",
        json={
            "requirement": "Desks",
            "probability": 140,
            "assigned_to": "Dana Reyes",
            "customer": {"name": "Acme Corp"},
        },
    )

    assert response.status_code == 422
    assert response.json()["code"] == "invalid_input"
    assert response.json()["details"] == {"field": "probability"}


def test_soft_delete_and_restore_customer(client: TestClient) -> None:
    customer = _post(client, "/api/customers", {"name": "Acme Corp", "email": "buyer@acme-corp.com"})

    assert client.delete(f"/api/customers/{customer['id']}").status_code == 204
    assert client.get("/api/customers").json() == []
    assert [row["id"] for row in client.get("/api/customers/deleted").json()] == [customer["id"]]
    assert client.get(f"/api/customers/{customer['id']}").json()["status"] == "DELETED"

    restored = client.put(f"/api/customers/restore/{customer['id']}")

    assert restored.status_code == 200
    assert restored.json()["status"] == "ACTIVE"
    assert restored.json()["email"] == "buyer@acme-corp.com"
    assert [row["id"] for row in client.get("/api/customers").json()] == [customer["id"]]


def test_duplicate_customer_name_conflicts(client: TestClient) -> None:
    _post(client, "/api/customers", {"name": "Acme Corp"})

    response = client.post("/api/customers", json={"name": "Acme Corp"})

    assert response.status_code == 409
    assert response.json()["code"] == "duplicate"


def test_permanent_delete_over_http(client: TestClient) -> None:
    lead = _seed_lead(client)
    opportunity = _post(client, "/api/opportunities", {"lead_id": lead["id"]})
    quotation = _quote(client, opportunity["id"])
    _post(client, f"/api/quotations/{quotation['id']}/send", expected=200)
    _post(client, f"/api/quotations/{quotation['id']}/accept", expected=200)
    _post(client, f"/api/invoices/from-quotation/{quotation['id']}")

    response = client.delete(f"/api/opportunities/delete-permanent/{opportunity['id']}")

    assert response.status_code == 204
    assert client.get(f"/api/opportunities/{opportunity['id']}").status_code == 404
    assert client.get(f"/api/quotations/{quotation['id']}").status_code == 404
    assert client.get("/api/invoices").json() == []
    assert client.get(f"/api/leads/{lead['id']}").status_code == 200


def test_ticket_flow_over_http(client: TestClient) -> None:
    employee = _post(client, "/api/employees", {"name": "Dana Reyes", "email": "dana@acme-corp.com"})
    customer = _post(client, "/api/customers", {"name": "Acme Corp", "email": "buyer@acme-corp.com"})
    ticket = _post(client, "/api/tickets", {"subject": "Desk wobbles", "customer_id": customer["id"]})

    assigned = client.put(f"/api/tickets/{ticket['id']}/assign", json={"employee_id": employee["id"]})
    assert assigned.json()["status"] == "IN_PROGRESS"
    assert client.put(f"/api/tickets/{ticket['id']}/confirm").json()["status"] == "CLOSED"

    denied = client.put(f"/api/tickets/{ticket['id']}/deny")
    assert denied.status_code == 409
    listed = client.get("/api/tickets", params={"customer_email": "buyer@acme-corp.com"}).json()
    assert [row["status"] for row in listed] == ["CLOSED"]
