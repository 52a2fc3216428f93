from __future__ import annotations

import logging
import uuid
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import date, timedelta
from decimal import Decimal
from typing import Any

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from salesflow import audit, events
from salesflow.business.billing.models import Invoice
from salesflow.business.billing.numbering import InvoiceNumberGenerator
from salesflow.business.billing.repository import InvoiceRepository
from salesflow.business.billing.schemas import InvoiceCreate, InvoiceRead
from salesflow.business.revenue.service import QuotationService, quotation_lines
from salesflow.core.config import get_settings
from salesflow.core.context import ActorContext
from salesflow.core.database import transaction
from salesflow.core.errors import DependencyUnresolvedError
from salesflow.crm.models import Customer, Employee, Opportunity
from salesflow.crm.repositories import CustomerRepository
from salesflow.platform.financials import FinancialSnapshot, LineInput, derive
from salesflow.platform.stages import QUOTATION_STAGES

logger = logging.getLogger("salesflow.billing")


def _default_number_generator() -> InvoiceNumberGenerator:
    return InvoiceNumberGenerator(max_attempts=get_settings().invoice_number_max_attempts)


def to_invoice_read(invoice: Invoice) -> InvoiceRead:
    return InvoiceRead.model_validate(invoice)


def promote_customer(customer: Customer) -> bool:
    """Mark the customer EXISTING; the type never moves back to NEW."""
    if customer.type == "EXISTING":
        return False
    customer.type = "EXISTING"
    logger.info("customer.promoted", extra={"entity": "customer", "entity_id": str(customer.id)})
    return True


@dataclass(slots=True)
class BillingService:
    repository: InvoiceRepository = InvoiceRepository()
    customer_repository: CustomerRepository = CustomerRepository()
    quotations: QuotationService = field(default_factory=QuotationService)
    number_generator: InvoiceNumberGenerator = field(default_factory=_default_number_generator)
    today: Callable[[], date] = date.today

    def mint_invoice(self, session: Session, snapshot: FinancialSnapshot, **fields: Any) -> Invoice:
        """Insert a new invoice carrying ``snapshot`` under a fresh number.

        Runs inside the caller's transaction; nothing is committed here. Each
        insert runs in a savepoint, so a number taken by a concurrent writer
        after the existence check only costs a fresh draw.
        """
        settings = get_settings()
        invoice_date = fields.pop("invoice_date", None) or self.today()
        payload = {
            "status": fields.pop("status", None) or settings.invoice_initial_status,
            "invoice_date": invoice_date,
            "due_date": fields.pop("due_date", None) or invoice_date + timedelta(days=settings.invoice_due_days),
            "terms": fields.pop("terms", None) or settings.invoice_terms,
            **self._snapshot_columns(snapshot),
            **fields,
        }
        for number in self.number_generator.candidates(lambda candidate: self.repository.number_exists(session, candidate)):
            invoice = Invoice(invoice_number=number, **payload)
            try:
                with session.begin_nested():
                    session.add(invoice)
                    session.flush()
            except IntegrityError:
                if not self.repository.number_exists(session, number):
                    raise
                logger.info("invoice_number.insert_conflict", extra={"invoice_number": number})
                continue
            logger.info("invoice.minted", extra={"invoice_number": invoice.invoice_number, "entity_id": str(invoice.id)})
            return invoice
        raise AssertionError("invoice number candidates ended without raising")

    def create_invoice(self, session: Session, ctx: ActorContext, payload: InvoiceCreate) -> InvoiceRead:
        settings = get_settings()
        with transaction(session):
            customer = self.customer_repository.find(session, payload.customer_id)
            if customer is None:
                raise DependencyUnresolvedError("customer", payload.customer_id)
            if payload.employee_id is not None and session.get(Employee, payload.employee_id) is None:
                raise DependencyUnresolvedError("employee", payload.employee_id)
            if payload.opportunity_id is not None and session.get(Opportunity, payload.opportunity_id) is None:
                raise DependencyUnresolvedError("opportunity", payload.opportunity_id)

            lines = [LineInput(line.quantity, line.unit_price, line.discount) for line in payload.lines]
            if payload.quotation_id is not None:
                quotation = self.quotations.repository.find(session, payload.quotation_id)
                if quotation is None:
                    raise DependencyUnresolvedError("quotation", payload.quotation_id)
                quotation = self.quotations.load(session, quotation.id, lock=True)
                QUOTATION_STAGES.apply(session, quotation, "convert")
                promote_customer(customer)
                if not lines:
                    lines = quotation_lines(quotation)

            tax_rate = payload.tax_rate if payload.tax_rate is not None else settings.default_tax_rate
            snapshot = derive(lines, tax_rate=tax_rate, flat_discount=payload.discount)
            invoice = self.mint_invoice(
                session,
                snapshot,
                status=payload.status,
                title=payload.title or customer.name,
                invoice_date=payload.invoice_date,
                due_date=payload.due_date,
                terms=payload.terms,
                customer_id=customer.id,
                employee_id=payload.employee_id,
                opportunity_id=payload.opportunity_id,
                quotation_id=payload.quotation_id,
            )

        view = to_invoice_read(invoice)
        audit.record(ctx.user_id, "invoice", str(invoice.id), "create", None, view.model_dump(mode="json"))
        events.publish(
            events.envelope(
                "billing.invoice.created",
                ctx.user_id,
                {"invoice_id": str(invoice.id), "invoice_number": invoice.invoice_number, "total": str(invoice.total)},
            )
        )
        return view

    def regenerate_invoice_snapshot(self, session: Session, ctx: ActorContext, invoice_id: uuid.UUID) -> InvoiceRead:
        """Recompute the frozen figures from the linked quotation's current items.

        This is the only path that changes an existing invoice's amounts.
        """
        with transaction(session):
            invoice = self.repository.get(session, invoice_id, lock=True)
            if invoice.quotation_id is None:
                raise DependencyUnresolvedError("quotation", invoice.id)
            quotation = self.quotations.repository.find(session, invoice.quotation_id)
            if quotation is None:
                raise DependencyUnresolvedError("quotation", invoice.quotation_id)

            before = to_invoice_read(invoice).model_dump(mode="json")
            snapshot = derive(quotation_lines(quotation), tax_rate=Decimal(invoice.tax_rate), flat_discount=Decimal(invoice.discount))
            for key, value in self._snapshot_columns(snapshot).items():
                setattr(invoice, key, value)

        view = to_invoice_read(invoice)
        audit.record(ctx.user_id, "invoice", str(invoice.id), "regenerate", before, view.model_dump(mode="json"))
        events.publish(
            events.envelope(
                "billing.invoice.regenerated",
                ctx.user_id,
                {"invoice_id": str(invoice.id), "total": str(invoice.total)},
            )
        )
        return view

    def update_status(self, session: Session, ctx: ActorContext, invoice_id: uuid.UUID, status: str) -> InvoiceRead:
        with transaction(session):
            invoice = self.repository.get(session, invoice_id, lock=True)
            before = invoice.status
            invoice.status = status.strip().upper()
        session.refresh(invoice)
        audit.record(ctx.user_id, "invoice", str(invoice.id), "status", {"status": before}, {"status": invoice.status})
        return to_invoice_read(invoice)

    def delete_invoice(self, session: Session, ctx: ActorContext, invoice_id: uuid.UUID) -> None:
        with transaction(session):
            invoice = self.repository.get(session, invoice_id, lock=True)
            before = to_invoice_read(invoice).model_dump(mode="json")
            session.delete(invoice)
        audit.record(ctx.user_id, "invoice", str(invoice_id), "delete", before, None)

    def get_invoice(self, session: Session, invoice_id: uuid.UUID) -> InvoiceRead:
        return to_invoice_read(self.repository.get(session, invoice_id))

    def list_invoices(self, session: Session) -> list[InvoiceRead]:
        return [to_invoice_read(row) for row in self.repository.list(session)]

    def list_invoices_by_customer(self, session: Session, customer_id: uuid.UUID) -> list[InvoiceRead]:
        return [to_invoice_read(row) for row in self.repository.list(session, Invoice.customer_id == customer_id)]

    def list_invoices_by_customer_email(self, session: Session, email: str) -> list[InvoiceRead]:
        return [to_invoice_read(row) for row in self.repository.list_by_customer_email(session, email)]

    @classmethod
    def _snapshot_columns(cls, snapshot: FinancialSnapshot) -> dict[str, Decimal]:
        return {
            "subtotal": cls._q(snapshot.subtotal),
            "discount": cls._q(snapshot.discount),
            "tax_rate": cls._q(snapshot.tax_rate),
            "tax_amount": cls._q(snapshot.tax_amount),
            "total": cls._q(snapshot.total),
        }

    @staticmethod
    def _q(value: Decimal) -> Decimal:
        return Decimal(value).quantize(Decimal("0.000001"))


billing_service = BillingService()
