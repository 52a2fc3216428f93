from __future__ import annotations

import uuid
from collections.abc import Sequence

from sqlalchemy import delete, func, select
from sqlalchemy.orm import Session, selectinload

from salesflow.business.revenue.models import Quotation, QuotationItem
from salesflow.crm.models import Customer, Opportunity
from salesflow.platform.lifecycle import Repository


class QuotationRepository(Repository[Quotation]):
    model = Quotation
    entity = "quotation"

    def find_by_opportunity(self, session: Session, opportunity_id: uuid.UUID) -> Quotation | None:
        return session.scalar(
            select(Quotation).where(Quotation.opportunity_id == opportunity_id).options(selectinload(Quotation.items))
        )

    def delete_items(self, session: Session, quotation_id: uuid.UUID) -> int:
        ids = session.scalars(select(QuotationItem.id).where(QuotationItem.quotation_id == quotation_id)).all()
        if not ids:
            return 0
        session.execute(
            delete(QuotationItem).where(QuotationItem.id.in_(ids)).execution_options(synchronize_session="fetch")
        )
        return len(ids)

    def list_by_customer(self, session: Session, customer_id: uuid.UUID) -> Sequence[Quotation]:
        stmt = (
            select(Quotation)
            .join(Opportunity, Opportunity.id == Quotation.opportunity_id)
            .where(Opportunity.customer_id == customer_id)
            .options(selectinload(Quotation.items))
            .order_by(Quotation.created_at.desc(), Quotation.id)
        )
        return session.scalars(stmt).all()

    def list_by_customer_email(self, session: Session, email: str) -> Sequence[Quotation]:
        stmt = (
            select(Quotation)
            .join(Opportunity, Opportunity.id == Quotation.opportunity_id)
            .join(Customer, Customer.id == Opportunity.customer_id)
            .where(func.lower(Customer.email) == email.strip().lower())
            .options(selectinload(Quotation.items))
            .order_by(Quotation.created_at.desc(), Quotation.id)
        )
        return session.scalars(stmt).all()
