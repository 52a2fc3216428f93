from __future__ import annotations

import uuid
from collections.abc import Sequence

from sqlalchemy import exists, func, or_, select
from sqlalchemy.orm import Session

from salesflow.business.billing.models import Invoice
from salesflow.crm.models import Customer
from salesflow.platform.lifecycle import Repository


class InvoiceRepository(Repository[Invoice]):
    model = Invoice
    entity = "invoice"

    def number_exists(self, session: Session, invoice_number: str) -> bool:
        return bool(session.scalar(select(exists().where(Invoice.invoice_number == invoice_number))))

    def list_by_customer_email(self, session: Session, email: str) -> Sequence[Invoice]:
        return self.list(
            session,
            Invoice.customer_id.in_(select(Customer.id).where(func.lower(Customer.email) == email.strip().lower())),
        )

    def delete_for_opportunity(
        self,
        session: Session,
        opportunity_id: uuid.UUID,
        quotation_id: uuid.UUID | None,
    ) -> int:
        criteria = [Invoice.opportunity_id == opportunity_id]
        if quotation_id is not None:
            criteria.append(Invoice.quotation_id == quotation_id)
        return self.hard_delete(session, or_(*criteria))
