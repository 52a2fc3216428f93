from __future__ import annotations

import uuid
from collections.abc import Sequence
from dataclasses import dataclass, field
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from salesflow.business.catalog.service import CatalogService
from salesflow.business.revenue.models import Quotation, QuotationItem
from salesflow.business.revenue.repository import QuotationRepository
from salesflow.business.revenue.schemas import QuotationItemInput, QuotationItemRead, QuotationRead
from salesflow.core.errors import NotFoundError
from salesflow.platform.financials import LineInput, derive, line_total


def quotation_lines(quotation: Quotation) -> list[LineInput]:
    return [
        LineInput(quantity=item.quantity, unit_price=Decimal(item.unit_price), discount=Decimal(item.discount))
        for item in quotation.items
    ]


def to_quotation_read(quotation: Quotation) -> QuotationRead:
    return QuotationRead.model_validate(
        {
            "id": quotation.id,
            "opportunity_id": quotation.opportunity_id,
            "title": quotation.title,
            "description": quotation.description,
            "total": quotation.total,
            "valid_until": quotation.valid_until,
            "stage": quotation.stage,
            "created_at": quotation.created_at,
            "updated_at": quotation.updated_at,
            "items": [QuotationItemRead.model_validate(item) for item in quotation.items],
        }
    )


@dataclass(slots=True)
class QuotationService:
    repository: QuotationRepository = QuotationRepository()
    catalog: CatalogService = field(default_factory=CatalogService)

    def get_quotation(self, session: Session, quotation_id: uuid.UUID) -> QuotationRead:
        return to_quotation_read(self.load(session, quotation_id))

    def get_quotation_by_opportunity(self, session: Session, opportunity_id: uuid.UUID) -> QuotationRead:
        quotation = self.repository.find_by_opportunity(session, opportunity_id)
        if quotation is None:
            raise NotFoundError("quotation", opportunity_id)
        return to_quotation_read(quotation)

    def list_quotations(self, session: Session, *, stage: str | None = None) -> list[QuotationRead]:
        stmt = select(Quotation).options(selectinload(Quotation.items))
        if stage is not None:
            stmt = stmt.where(Quotation.stage == stage)
        rows = session.scalars(stmt.order_by(Quotation.created_at.desc(), Quotation.id)).all()
        return [to_quotation_read(row) for row in rows]

    def list_quotations_by_customer(self, session: Session, customer_id: uuid.UUID) -> list[QuotationRead]:
        return [to_quotation_read(row) for row in self.repository.list_by_customer(session, customer_id)]

    def list_quotations_by_customer_email(self, session: Session, email: str) -> list[QuotationRead]:
        return [to_quotation_read(row) for row in self.repository.list_by_customer_email(session, email)]

    def load(self, session: Session, quotation_id: uuid.UUID, *, lock: bool = False) -> Quotation:
        return self.repository.get(session, quotation_id, lock=lock)

    def replace_items(self, session: Session, quotation: Quotation, items: Sequence[QuotationItemInput]) -> None:
        """Swap the whole item collection and recompute the cached total.

        Products are resolved and every line validated before anything is
        removed, so a bad line leaves the existing items untouched.
        """
        prepared: list[QuotationItem] = []
        for position, item in enumerate(items):
            product = self.catalog.resolve_product(session, product_id=item.product_id, name=item.product_name)
            unit_price = Decimal(product.price)
            prepared.append(
                QuotationItem(
                    product_id=product.id,
                    position=position,
                    quantity=item.quantity,
                    unit_price=self._q(unit_price),
                    discount=self._q(item.discount),
                    line_total=self._q(line_total(item.quantity, unit_price, item.discount)),
                )
            )

        self.repository.delete_items(session, quotation.id)
        session.expire(quotation, ["items"])
        for row in prepared:
            row.quotation_id = quotation.id
            session.add(row)
        session.flush()
        session.expire(quotation, ["items"])
        self.recompute_total(quotation)

    def recompute_total(self, quotation: Quotation) -> None:
        # quotations carry the pre-tax amount; tax is applied when invoicing
        snapshot = derive(quotation_lines(quotation), tax_rate=Decimal("0"))
        quotation.total = self._q(snapshot.total)

    @staticmethod
    def _q(value: Decimal) -> Decimal:
        return Decimal(value).quantize(Decimal("0.000001"))


quotation_service = QuotationService()
