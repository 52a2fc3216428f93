from __future__ import annotations

import uuid
from collections.abc import Generator
from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import create_engine, update
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

import salesflow.models  # noqa: F401
from salesflow.business.revenue.models import Quotation
from salesflow.core.database import Base
from salesflow.core.errors import IllegalStageTransitionError
from salesflow.crm.models import Customer, Ticket
from salesflow.platform.stages import QUOTATION_STAGES, TICKET_STAGES


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


def _quotation(session: Session, stage: str = "DRAFT") -> Quotation:
    quotation = Quotation(
        opportunity_id=None,
        title="Office chairs",
        total=Decimal("0"),
        valid_until=date(2026, 12, 31),
        stage=stage,
    )
    session.add(quotation)
    session.commit()
    return quotation


def _ticket(session: Session, status: str = "NEW") -> Ticket:
    customer = Customer(name=f"Customer {uuid.uuid4().hex[:6]}", type="NEW", status="ACTIVE")
    session.add(customer)
    session.flush()
    ticket = Ticket(subject="Printer jam", status=status, customer_id=customer.id)
    session.add(ticket)
    session.commit()
    return ticket


def test_quotation_happy_path(db_session: Session) -> None:
    quotation = _quotation(db_session)

    assert QUOTATION_STAGES.apply(db_session, quotation, "send") == "DRAFT"
    assert QUOTATION_STAGES.apply(db_session, quotation, "accept") == "SENT"
    assert QUOTATION_STAGES.apply(db_session, quotation, "convert") == "ACCEPTED"
    db_session.commit()

    db_session.expire_all()
    assert db_session.get(Quotation, quotation.id).stage == "CONVERTED"


@pytest.mark.parametrize(
    ("stage", "action"),
    [
        ("DRAFT", "accept"),
        ("DRAFT", "reject"),
        ("DRAFT", "convert"),
        ("SENT", "send"),
        ("SENT", "convert"),
        ("ACCEPTED", "send"),
        ("ACCEPTED", "reject"),
        ("REJECTED", "accept"),
        ("REJECTED", "convert"),
        ("CONVERTED", "send"),
        ("CONVERTED", "convert"),
    ],
)
def test_illegal_quotation_moves_leave_stage_unchanged(db_session: Session, stage: str, action: str) -> None:
    quotation = _quotation(db_session, stage)

    with pytest.raises(IllegalStageTransitionError) as exc_info:
        QUOTATION_STAGES.apply(db_session, quotation, action)

    assert exc_info.value.status_code == 409
    assert exc_info.value.current_stage == stage
    db_session.rollback()
    assert db_session.get(Quotation, quotation.id).stage == stage


def test_stale_stage_is_rejected_with_latest_stage(db_session: Session) -> None:
    quotation = _quotation(db_session)
    assert quotation.stage == "DRAFT"

    # another request moved the row after we read it
    db_session.execute(
        update(Quotation)
        .where(Quotation.id == quotation.id)
        .values(stage="SENT")
        .execution_options(synchronize_session=False)
    )

    with pytest.raises(IllegalStageTransitionError) as exc_info:
        QUOTATION_STAGES.apply(db_session, quotation, "send")

    assert exc_info.value.current_stage == "SENT"
    assert exc_info.value.target_stage == "SENT"


def test_unknown_action_is_a_programming_error() -> None:
    with pytest.raises(KeyError):
        QUOTATION_STAGES.target_for(uuid.uuid4(), "archive", "DRAFT")


def test_terminal_stages_have_no_outgoing_moves() -> None:
    for terminal in QUOTATION_STAGES.terminal:
        assert not any(QUOTATION_STAGES.can(action, terminal) for action in QUOTATION_STAGES.transitions)
    assert [action for action in TICKET_STAGES.transitions if TICKET_STAGES.can(action, "CLOSED")] == ["assign"]


def test_ticket_work_cycle(db_session: Session) -> None:
    ticket = _ticket(db_session)

    TICKET_STAGES.apply(db_session, ticket, "assign")
    assert ticket.status == "IN_PROGRESS"
    TICKET_STAGES.apply(db_session, ticket, "resolve")
    assert ticket.status == "RESOLVED"
    TICKET_STAGES.apply(db_session, ticket, "deny")
    assert ticket.status == "IN_PROGRESS"
    TICKET_STAGES.apply(db_session, ticket, "approve")
    db_session.commit()

    assert db_session.get(Ticket, ticket.id).status == "CLOSED"


@pytest.mark.parametrize("action", ["deny", "approve", "resolve"])
def test_closed_ticket_rejects_resolution_verbs(db_session: Session, action: str) -> None:
    ticket = _ticket(db_session, "CLOSED")

    with pytest.raises(IllegalStageTransitionError):
        TICKET_STAGES.apply(db_session, ticket, action)

    assert ticket.status == "CLOSED"


@pytest.mark.parametrize("status", ["NEW", "IN_PROGRESS", "RESOLVED", "CLOSED"])
def test_assign_moves_any_ticket_into_progress(db_session: Session, status: str) -> None:
    ticket = _ticket(db_session, status)

    previous = TICKET_STAGES.apply(db_session, ticket, "assign")
    db_session.commit()

    assert previous == status
    assert db_session.get(Ticket, ticket.id).status == "IN_PROGRESS"


def test_resolve_requires_work_in_progress(db_session: Session) -> None:
    ticket = _ticket(db_session)

    with pytest.raises(IllegalStageTransitionError) as exc_info:
        TICKET_STAGES.apply(db_session, ticket, "resolve")

    assert exc_info.value.details["current_stage"] == "NEW"
