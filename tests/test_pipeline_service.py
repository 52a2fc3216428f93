from __future__ import annotations

import re
from collections.abc import Generator
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Any

import pytest
from prometheus_client import REGISTRY
from sqlalchemy import create_engine, func, select
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

import salesflow.models  # noqa: F401
from salesflow import audit, events
from salesflow.business.billing.models import Invoice
from salesflow.business.catalog.models import Product
from salesflow.business.revenue.models import Quotation, QuotationItem
from salesflow.business.revenue.schemas import QuotationCreate, QuotationItemInput, QuotationUpdate
from salesflow.core.config import get_settings
from salesflow.core.context import ActorContext
from salesflow.core.database import Base
from salesflow.core.errors import (
    DependencyUnresolvedError,
    DuplicateConstraintError,
    IllegalStageTransitionError,
)
from salesflow.crm.models import Customer, Employee, Lead, Opportunity
from salesflow.crm.schemas import LeadCreate
from salesflow.crm.service import LeadService, OpportunityService
from salesflow.pipeline.service import PipelineService


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
def reset_state() -> Generator[None, None, None]:
    audit.audit_entries.clear()
    events.published_events.clear()
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@dataclass
class RecordingNotifier:
    sent: list[tuple[str, Any]] = field(default_factory=list)

    def notify_quotation_sent(self, customer, quotation) -> None:  # type: ignore[no-untyped-def]
        self.sent.append(("quotation_sent", quotation.id))

    def notify_invoice_generated(self, customer, invoice) -> None:  # type: ignore[no-untyped-def]
        self.sent.append(("invoice_generated", invoice.invoice_number))

    def notify_password_set(self, customer) -> None:  # type: ignore[no-untyped-def]
        self.sent.append(("password_set", customer.id))

    def notify_registration_confirmed(self, customer) -> None:  # type: ignore[no-untyped-def]
        self.sent.append(("registration_confirmed", customer.id))


class FailingNotifier(RecordingNotifier):
    def notify_quotation_sent(self, customer, quotation) -> None:  # type: ignore[no-untyped-def]
        raise RuntimeError("smtp relay unavailable")

    def notify_invoice_generated(self, customer, invoice) -> None:  # type: ignore[no-untyped-def]
        raise RuntimeError("smtp relay unavailable")


CTX = ActorContext(user_id="user-1", roles=["sales"], correlation_id="corr-pipeline")


def _seed(session: Session) -> dict[str, Any]:
    customer = Customer(name="Acme Corp", email="buyer@acme-corp.com", type="NEW", status="ACTIVE", has_password=False)
    employee = Employee(name="Dana Reyes", email="dana@acme-corp.com")
    desk = Product(name="Standing Desk", price=Decimal("100"), status="ACTIVE")
    arm = Product(name="Monitor Arm", price=Decimal("45.50"), status="ACTIVE")
    session.add_all([customer, employee, desk, arm])
    session.commit()

    lead = LeadService().create_lead(
        session,
        CTX,
        LeadCreate(
            requirement="Twenty standing desks for the new office",
            expected_revenue=Decimal("5000"),
            probability=40,
            source="WEBSITE",
            employee_id=employee.id,
            customer_id=customer.id,
        ),
    )
    return {"customer": customer.id, "employee": employee.id, "desk": desk.id, "arm": arm.id, "lead": lead.id}


def _desk_quotation(opportunity_id: Any, title: str = "Standing desks") -> QuotationCreate:
    return QuotationCreate(
        opportunity_id=opportunity_id,
        title=title,
        items=[QuotationItemInput(product_name="standing desk", quantity=2, discount=Decimal("10"))],
    )


def _count(session: Session, model: Any) -> int:
    return session.scalar(select(func.count()).select_from(model)) or 0


def _event_types() -> list[str]:
    return [event["event_type"] for event in events.published_events]


def test_lead_to_invoice_scenario(db_session: Session) -> None:
    ids = _seed(db_session)
    notifier = RecordingNotifier()
    pipeline = PipelineService(notifier=notifier, today=lambda: date(2026, 10, 19))

    opportunity = pipeline.create_opportunity_from_lead(db_session, CTX, ids["lead"])
    assert opportunity.stage == "NEW"
    assert opportunity.status == "ACTIVE"
    assert opportunity.customer_id == ids["customer"]
    assert opportunity.employee_id == ids["employee"]
    assert db_session.get(Lead, ids["lead"]).status == "ARCHIVED"

    quotation = pipeline.create_quotation(db_session, CTX, _desk_quotation(opportunity.id))
    assert quotation.stage == "DRAFT"
    assert quotation.valid_until == date(2026, 11, 18)
    assert Decimal(quotation.total) == Decimal("180")
    assert len(quotation.items) == 1
    assert Decimal(quotation.items[0].unit_price) == Decimal("100")

    sent = pipeline.send_quotation(db_session, CTX, quotation.id)
    assert sent.stage == "SENT"
    accepted = pipeline.accept_quotation(db_session, CTX, quotation.id)
    assert accepted.stage == "ACCEPTED"

    invoice = pipeline.generate_invoice_from_quotation(db_session, CTX, quotation.id)

    assert re.fullmatch(r"INV-\d{8}-\d{4}", invoice.invoice_number)
    assert invoice.status == "PENDING"
    assert Decimal(invoice.subtotal) == Decimal("180")
    assert Decimal(invoice.tax_rate) == Decimal("8.5")
    assert Decimal(invoice.tax_amount) == Decimal("15.3")
    assert Decimal(invoice.total) == Decimal("195.30")
    assert invoice.invoice_date == date(2026, 10, 19)
    assert invoice.due_date == date(2026, 11, 18)
    assert invoice.terms == "Net 30"
    assert invoice.title == "Standing desks"
    assert invoice.quotation_id == quotation.id
    assert invoice.opportunity_id == opportunity.id
    assert invoice.employee_id == ids["employee"]

    db_session.expire_all()
    assert db_session.get(Quotation, quotation.id).stage == "CONVERTED"
    assert db_session.get(Customer, ids["customer"]).type == "EXISTING"

    assert notifier.sent == [("quotation_sent", quotation.id), ("invoice_generated", invoice.invoice_number)]
    assert _event_types()[-5:] == [
        "pipeline.opportunity.created",
        "pipeline.quotation.created",
        "pipeline.quotation.sent",
        "pipeline.quotation.accepted",
        "pipeline.invoice.generated",
    ]
    actions = [(entry["entity_type"], entry["action"]) for entry in audit.audit_entries]
    assert ("quotation", "convert") in actions
    assert ("customer", "promote") in actions
    assert ("invoice", "create") in actions
    quotation_trail = audit.entries_for("quotation", str(quotation.id))
    assert [entry["action"] for entry in quotation_trail] == ["create", "send", "accept", "convert"]
    assert all(entry["changed"] == ["stage"] for entry in quotation_trail[1:])
    assert all(
        entry["correlation_id"] == "corr-pipeline"
        for entry in audit.audit_entries
        if entry["entity_type"] in {"quotation", "invoice"}
    )


def test_invoice_requires_accepted_quotation(db_session: Session) -> None:
    ids = _seed(db_session)
    pipeline = PipelineService(notifier=RecordingNotifier())
    opportunity = pipeline.create_opportunity_from_lead(db_session, CTX, ids["lead"])
    quotation = pipeline.create_quotation(db_session, CTX, _desk_quotation(opportunity.id))
    pipeline.send_quotation(db_session, CTX, quotation.id)

    with pytest.raises(IllegalStageTransitionError) as exc_info:
        pipeline.generate_invoice_from_quotation(db_session, CTX, quotation.id)

    assert exc_info.value.current_stage == "SENT"
    assert _count(db_session, Invoice) == 0
    assert db_session.get(Quotation, quotation.id).stage == "SENT"
    assert db_session.get(Customer, ids["customer"]).type == "NEW"


def test_converted_quotation_cannot_be_invoiced_twice(db_session: Session) -> None:
    ids = _seed(db_session)
    pipeline = PipelineService(notifier=RecordingNotifier())
    opportunity = pipeline.create_opportunity_from_lead(db_session, CTX, ids["lead"])
    quotation = pipeline.create_quotation(db_session, CTX, _desk_quotation(opportunity.id))
    pipeline.send_quotation(db_session, CTX, quotation.id)
    pipeline.accept_quotation(db_session, CTX, quotation.id)
    pipeline.generate_invoice_from_quotation(db_session, CTX, quotation.id)

    with pytest.raises(IllegalStageTransitionError):
        pipeline.generate_invoice_from_quotation(db_session, CTX, quotation.id)

    assert _count(db_session, Invoice) == 1


def test_notification_failure_does_not_undo_send(db_session: Session) -> None:
    ids = _seed(db_session)
    pipeline = PipelineService(notifier=FailingNotifier())
    opportunity = pipeline.create_opportunity_from_lead(db_session, CTX, ids["lead"])
    quotation = pipeline.create_quotation(db_session, CTX, _desk_quotation(opportunity.id))
    failures_before = REGISTRY.get_sample_value("notification_failures_total", {"kind": "quotation_sent"}) or 0.0

    sent = pipeline.send_quotation(db_session, CTX, quotation.id)

    assert sent.stage == "SENT"
    db_session.expire_all()
    assert db_session.get(Quotation, quotation.id).stage == "SENT"
    failures_after = REGISTRY.get_sample_value("notification_failures_total", {"kind": "quotation_sent"})
    assert failures_after == failures_before + 1


def test_permanent_delete_removes_dependents(db_session: Session) -> None:
    ids = _seed(db_session)
    pipeline = PipelineService(notifier=RecordingNotifier())
    opportunity = pipeline.create_opportunity_from_lead(db_session, CTX, ids["lead"])
    quotation = pipeline.create_quotation(db_session, CTX, _desk_quotation(opportunity.id))
    pipeline.send_quotation(db_session, CTX, quotation.id)
    pipeline.accept_quotation(db_session, CTX, quotation.id)
    pipeline.generate_invoice_from_quotation(db_session, CTX, quotation.id)

    pipeline.permanently_delete_opportunity(db_session, CTX, opportunity.id)

    assert _count(db_session, Invoice) == 0
    assert _count(db_session, QuotationItem) == 0
    assert _count(db_session, Quotation) == 0
    assert _count(db_session, Opportunity) == 0
    assert db_session.get(Lead, ids["lead"]) is not None
    purged = events.published_events[-1]
    assert purged["event_type"] == "pipeline.opportunity.purged"
    assert purged["payload"]["removed"] == {"invoice": 1, "quotation_item": 1, "quotation": 1, "opportunity": 1}


def test_permanent_delete_without_quotation(db_session: Session) -> None:
    ids = _seed(db_session)
    pipeline = PipelineService(notifier=RecordingNotifier())
    opportunity = pipeline.create_opportunity_from_lead(db_session, CTX, ids["lead"])

    pipeline.permanently_delete_opportunity(db_session, CTX, opportunity.id)

    assert _count(db_session, Opportunity) == 0
    assert events.published_events[-1]["payload"]["removed"]["quotation"] == 0


def test_update_replaces_items_and_total(db_session: Session) -> None:
    ids = _seed(db_session)
    pipeline = PipelineService(notifier=RecordingNotifier())
    opportunity = pipeline.create_opportunity_from_lead(db_session, CTX, ids["lead"])
    quotation = pipeline.create_quotation(db_session, CTX, _desk_quotation(opportunity.id))

    updated = pipeline.update_quotation(
        db_session,
        CTX,
        quotation.id,
        QuotationUpdate(
            description="Arms instead of desks",
            items=[QuotationItemInput(product_id=ids["arm"], quantity=3)],
        ),
    )

    assert updated.title == "Standing desks"
    assert updated.description == "Arms instead of desks"
    assert [item.product_id for item in updated.items] == [ids["arm"]]
    assert Decimal(updated.total) == Decimal("136.5")
    assert _count(db_session, QuotationItem) == 1


def test_update_without_items_keeps_existing_lines(db_session: Session) -> None:
    ids = _seed(db_session)
    pipeline = PipelineService(notifier=RecordingNotifier())
    opportunity = pipeline.create_opportunity_from_lead(db_session, CTX, ids["lead"])
    quotation = pipeline.create_quotation(db_session, CTX, _desk_quotation(opportunity.id))

    updated = pipeline.update_quotation(db_session, CTX, quotation.id, QuotationUpdate(title="Desks, revised"))

    assert updated.title == "Desks, revised"
    assert len(updated.items) == 1
    assert Decimal(updated.total) == Decimal("180")


def test_converted_quotation_edit_leaves_invoice_until_regenerated(db_session: Session) -> None:
    ids = _seed(db_session)
    pipeline = PipelineService(notifier=RecordingNotifier())
    opportunity = pipeline.create_opportunity_from_lead(db_session, CTX, ids["lead"])
    quotation = pipeline.create_quotation(db_session, CTX, _desk_quotation(opportunity.id))
    pipeline.send_quotation(db_session, CTX, quotation.id)
    pipeline.accept_quotation(db_session, CTX, quotation.id)
    invoice = pipeline.generate_invoice_from_quotation(db_session, CTX, quotation.id)

    edited = pipeline.update_quotation(
        db_session,
        CTX,
        quotation.id,
        QuotationUpdate(items=[QuotationItemInput(product_id=ids["desk"], quantity=5, discount=Decimal("10"))]),
    )

    assert edited.stage == "CONVERTED"
    assert Decimal(edited.total) == Decimal("450")
    assert Decimal(pipeline.billing.get_invoice(db_session, invoice.id).total) == Decimal("195.30")

    regenerated = pipeline.billing.regenerate_invoice_snapshot(db_session, CTX, invoice.id)

    assert Decimal(regenerated.subtotal) == Decimal("450")
    assert Decimal(regenerated.tax_amount) == Decimal("38.25")
    assert Decimal(regenerated.total) == Decimal("488.25")
    assert regenerated.invoice_number == invoice.invoice_number


def test_unknown_product_rolls_back_quotation(db_session: Session) -> None:
    ids = _seed(db_session)
    pipeline = PipelineService(notifier=RecordingNotifier())
    opportunity = pipeline.create_opportunity_from_lead(db_session, CTX, ids["lead"])

    with pytest.raises(DependencyUnresolvedError):
        pipeline.create_quotation(
            db_session,
            CTX,
            QuotationCreate(
                opportunity_id=opportunity.id,
                title="Mystery",
                items=[QuotationItemInput(product_name="hoverboard")],
            ),
        )

    assert _count(db_session, Quotation) == 0


def test_archived_lead_cannot_be_converted_again(db_session: Session) -> None:
    ids = _seed(db_session)
    pipeline = PipelineService(notifier=RecordingNotifier())
    pipeline.create_opportunity_from_lead(db_session, CTX, ids["lead"])

    with pytest.raises(IllegalStageTransitionError) as exc_info:
        pipeline.create_opportunity_from_lead(db_session, CTX, ids["lead"])

    assert exc_info.value.current_stage == "ARCHIVED"
    assert _count(db_session, Opportunity) == 1


def test_restored_lead_with_opportunity_is_a_duplicate(db_session: Session) -> None:
    ids = _seed(db_session)
    pipeline = PipelineService(notifier=RecordingNotifier())
    pipeline.create_opportunity_from_lead(db_session, CTX, ids["lead"])
    LeadService().restore_lead(db_session, CTX, ids["lead"])

    with pytest.raises(DuplicateConstraintError):
        pipeline.create_opportunity_from_lead(db_session, CTX, ids["lead"])

    assert db_session.get(Lead, ids["lead"]).status == "ACTIVE"


def test_new_quotation_detaches_previous_one(db_session: Session) -> None:
    ids = _seed(db_session)
    pipeline = PipelineService(notifier=RecordingNotifier())
    opportunity = pipeline.create_opportunity_from_lead(db_session, CTX, ids["lead"])
    first = pipeline.create_quotation(db_session, CTX, _desk_quotation(opportunity.id, "First pass"))

    second = pipeline.create_quotation(db_session, CTX, _desk_quotation(opportunity.id, "Second pass"))

    assert db_session.get(Quotation, first.id).opportunity_id is None
    assert pipeline.quotations.get_quotation_by_opportunity(db_session, opportunity.id).id == second.id
    assert events.published_events[-1]["payload"]["replaced_quotation_id"] == str(first.id)


def test_deleted_opportunity_cannot_be_quoted(db_session: Session) -> None:
    ids = _seed(db_session)
    pipeline = PipelineService(notifier=RecordingNotifier())
    opportunity = pipeline.create_opportunity_from_lead(db_session, CTX, ids["lead"])
    row = db_session.get(Opportunity, opportunity.id)
    row.status = "DELETED"
    db_session.commit()

    with pytest.raises(IllegalStageTransitionError):
        pipeline.create_quotation(db_session, CTX, _desk_quotation(opportunity.id))

    assert _count(db_session, Quotation) == 0


def test_opportunity_soft_delete_and_restore(db_session: Session) -> None:
    ids = _seed(db_session)
    pipeline = PipelineService(notifier=RecordingNotifier())
    opportunity = pipeline.create_opportunity_from_lead(db_session, CTX, ids["lead"])
    quotation = pipeline.create_quotation(db_session, CTX, _desk_quotation(opportunity.id))
    opportunities = OpportunityService()

    deleted = opportunities.delete_opportunity(db_session, CTX, opportunity.id)

    assert deleted.status == "DELETED"
    assert opportunities.list_opportunities(db_session) == []
    assert [row.id for row in opportunities.list_deleted_opportunities(db_session)] == [opportunity.id]

    restored = opportunities.restore_opportunity(db_session, CTX, opportunity.id)

    assert restored.status == "ACTIVE"
    assert restored.stage == "NEW"
    assert restored.lead_id == ids["lead"]
    assert restored.quotation_id == quotation.id
    assert [row.id for row in opportunities.list_opportunities(db_session)] == [opportunity.id]
    assert db_session.get(Lead, ids["lead"]).status == "ARCHIVED"
    assert _event_types()[-2:] == ["crm.opportunity.deleted", "crm.opportunity.restored"]
    trail = audit.entries_for("opportunity", str(opportunity.id))
    assert [(entry["before"], entry["after"]) for entry in trail[-2:]] == [
        ({"status": "ACTIVE"}, {"status": "DELETED"}),
        ({"status": "DELETED"}, {"status": "ACTIVE"}),
    ]
