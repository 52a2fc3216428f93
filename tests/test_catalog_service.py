from __future__ import annotations

import uuid
from collections.abc import Generator
from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

import salesflow.models  # noqa: F401
from salesflow import audit
from salesflow.business.catalog.schemas import ProductCreate, ProductUpdate
from salesflow.business.catalog.service import CatalogService
from salesflow.business.revenue.models import Quotation, QuotationItem
from salesflow.core.context import ActorContext
from salesflow.core.database import Base
from salesflow.core.errors import AmbiguousMatchError, DependencyUnresolvedError, DependentRecordsError, NotFoundError


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
def clear_audit() -> None:
    audit.audit_entries.clear()


CTX = ActorContext(user_id="user-1", roles=["catalog"], correlation_id="corr-catalog")


def _catalog(session: Session) -> CatalogService:
    service = CatalogService()
    for name, price, category in [
        ("Standing Desk", "499.99", "furniture"),
        ("Standing Desk Pro", "799", "furniture"),
        ("Desk Lamp", "39.5", "lighting"),
        ("Ergonomic Chair", "289", "furniture"),
    ]:
        service.create_product(session, CTX, ProductCreate(name=name, price=Decimal(price), category=category))
    return service


def test_create_quantizes_price_and_audits(db_session: Session) -> None:
    product = CatalogService().create_product(db_session, CTX, ProductCreate(name="Desk Lamp", price=Decimal("39.5")))

    assert Decimal(product.price) == Decimal("39.5")
    assert product.status == "ACTIVE"
    assert audit.audit_entries[-1]["entity_type"] == "product"
    assert audit.audit_entries[-1]["action"] == "create"


def test_list_filters_by_category(db_session: Session) -> None:
    service = _catalog(db_session)

    names = sorted(product.name for product in service.list_products(db_session, category="furniture"))

    assert names == ["Ergonomic Chair", "Standing Desk", "Standing Desk Pro"]
    assert len(service.list_products(db_session)) == 4


def test_find_is_case_insensitive_substring(db_session: Session) -> None:
    service = _catalog(db_session)

    assert [product.name for product in service.find_products(db_session, "DESK")] == [
        "Desk Lamp",
        "Standing Desk",
        "Standing Desk Pro",
    ]


def test_resolve_by_unique_fragment(db_session: Session) -> None:
    service = _catalog(db_session)

    assert service.resolve_product(db_session, name="chair").name == "Ergonomic Chair"


def test_resolve_prefers_exact_name_among_matches(db_session: Session) -> None:
    service = _catalog(db_session)

    assert service.resolve_product(db_session, name="standing desk").name == "Standing Desk"


def test_resolve_reports_ambiguity(db_session: Session) -> None:
    service = _catalog(db_session)

    with pytest.raises(AmbiguousMatchError) as exc_info:
        service.resolve_product(db_session, name="desk")

    assert exc_info.value.status_code == 422
    assert exc_info.value.candidates == ["Desk Lamp", "Standing Desk", "Standing Desk Pro"]


def test_resolve_unknown_product(db_session: Session) -> None:
    service = _catalog(db_session)

    with pytest.raises(DependencyUnresolvedError):
        service.resolve_product(db_session, name="hoverboard")
    with pytest.raises(DependencyUnresolvedError):
        service.resolve_product(db_session, product_id=uuid.uuid4())
    with pytest.raises(DependencyUnresolvedError):
        service.resolve_product(db_session, name="   ")


def test_update_price(db_session: Session) -> None:
    service = _catalog(db_session)
    lamp = service.resolve_product(db_session, name="lamp")

    updated = service.update_product(db_session, CTX, lamp.id, ProductUpdate(price=Decimal("42"), status="INACTIVE"))

    assert Decimal(updated.price) == Decimal("42")
    assert updated.status == "INACTIVE"
    assert updated.name == "Desk Lamp"


def test_delete_product_in_use_is_refused(db_session: Session) -> None:
    service = _catalog(db_session)
    chair = service.resolve_product(db_session, name="chair")
    quotation = Quotation(title="Chairs", total=Decimal("289"), valid_until=date(2026, 12, 31))
    db_session.add(quotation)
    db_session.flush()
    db_session.add(
        QuotationItem(
            quotation_id=quotation.id,
            product_id=chair.id,
            position=0,
            quantity=1,
            unit_price=Decimal("289"),
            discount=Decimal("0"),
            line_total=Decimal("289"),
        )
    )
    db_session.commit()

    with pytest.raises(DependentRecordsError):
        service.delete_product(db_session, CTX, chair.id)

    lamp = service.resolve_product(db_session, name="lamp")
    service.delete_product(db_session, CTX, lamp.id)
    with pytest.raises(NotFoundError):
        service.get_product(db_session, lamp.id)
