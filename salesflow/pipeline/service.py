"""Cross-entity sales workflows.

Each workflow runs as one unit of work: every row it touches commits
together or not at all. Customer notifications are sent only after the
commit and never fail the workflow.
"""

from __future__ import annotations

import logging
import time
import uuid
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Any

from opentelemetry import trace
from opentelemetry.trace import Status, StatusCode
from sqlalchemy.orm import Session

from salesflow import audit, events
from salesflow.business.billing.repository import InvoiceRepository
from salesflow.business.billing.schemas import InvoiceRead
from salesflow.business.billing.service import BillingService, promote_customer, to_invoice_read
from salesflow.business.revenue.models import Quotation
from salesflow.business.revenue.schemas import QuotationCreate, QuotationRead, QuotationUpdate
from salesflow.business.revenue.service import QuotationService, quotation_lines, to_quotation_read
from salesflow.core.config import get_settings
from salesflow.core.context import ActorContext
from salesflow.core.database import transaction
from salesflow.core.errors import DependencyUnresolvedError, DuplicateConstraintError, IllegalStageTransitionError
from salesflow.crm.models import Customer, Opportunity
from salesflow.crm.repositories import CustomerRepository, LeadRepository, OpportunityRepository
from salesflow.crm.schemas import CustomerRead, OpportunityRead
from salesflow.crm.service import to_customer_read, to_opportunity_read
from salesflow.metrics import observe_workflow
from salesflow.notifications.notifier import Notifier, dispatch, get_notifier
from salesflow.platform.financials import derive
from salesflow.platform.lifecycle import ACTIVE, ARCHIVED, DELETED
from salesflow.platform.stages import QUOTATION_STAGES

logger = logging.getLogger("salesflow.pipeline")
tracer = trace.get_tracer("salesflow.pipeline")

_PAST_TENSE = {"send": "sent", "accept": "accepted", "reject": "rejected"}


@contextmanager
def _workflow(name: str, **attributes: str) -> Iterator[None]:
    started = time.perf_counter()
    with tracer.start_as_current_span(f"pipeline.{name}") as span:
        for key, value in attributes.items():
            span.set_attribute(key, value)
        try:
            yield
        except Exception as exc:
            span.record_exception(exc)
            span.set_status(Status(StatusCode.ERROR, str(exc)))
            raise
        finally:
            observe_workflow(name, time.perf_counter() - started)


@dataclass(slots=True)
class PipelineService:
    leads: LeadRepository = LeadRepository()
    opportunities: OpportunityRepository = OpportunityRepository()
    customers: CustomerRepository = CustomerRepository()
    invoices: InvoiceRepository = InvoiceRepository()
    quotations: QuotationService = field(default_factory=QuotationService)
    billing: BillingService = field(default_factory=BillingService)
    notifier: Notifier = field(default_factory=get_notifier)
    today: Callable[[], date] = date.today

    def create_opportunity_from_lead(self, session: Session, ctx: ActorContext, lead_id: uuid.UUID) -> OpportunityRead:
        with _workflow("create_opportunity_from_lead", lead_id=str(lead_id)):
            with transaction(session):
                lead = self.leads.get(session, lead_id, lock=True)
                if lead.status != ACTIVE:
                    raise IllegalStageTransitionError("lead", lead.id, "convert", lead.status, ARCHIVED)
                if self.opportunities.find_by_lead(session, lead.id) is not None:
                    raise DuplicateConstraintError("opportunity", "lead_id", lead.id)

                opportunity = Opportunity(
                    lead_id=lead.id,
                    customer_id=lead.customer_id,
                    employee_id=lead.employee_id,
                    stage="NEW",
                    status=ACTIVE,
                )
                session.add(opportunity)
                lead.status = ARCHIVED
                session.flush()

        view = to_opportunity_read(opportunity, None)
        audit.record(ctx.user_id, "opportunity", str(opportunity.id), "create", None, view.model_dump(mode="json"), ctx.correlation_id)
        audit.record(ctx.user_id, "lead", str(lead_id), "archive", {"status": ACTIVE}, {"status": ARCHIVED}, ctx.correlation_id)
        self._publish(
            ctx,
            "pipeline.opportunity.created",
            {"opportunity_id": str(opportunity.id), "lead_id": str(lead_id), "customer_id": str(opportunity.customer_id)},
        )
        logger.info("opportunity.created", extra={"entity": "opportunity", "entity_id": str(opportunity.id)})
        return view

    def create_quotation(self, session: Session, ctx: ActorContext, payload: QuotationCreate) -> QuotationRead:
        settings = get_settings()
        with _workflow("create_quotation", opportunity_id=str(payload.opportunity_id)):
            with transaction(session):
                opportunity = self.opportunities.get(session, payload.opportunity_id, lock=True)
                if opportunity.status == DELETED:
                    raise IllegalStageTransitionError("opportunity", opportunity.id, "quote", opportunity.status)

                previous = self.quotations.repository.find_by_opportunity(session, opportunity.id)
                if previous is not None:
                    # the opportunity holds one quotation; the older one is detached
                    previous.opportunity_id = None
                    session.flush()

                quotation = Quotation(
                    opportunity_id=opportunity.id,
                    title=payload.title,
                    description=payload.description,
                    valid_until=payload.valid_until or self.today() + timedelta(days=settings.quotation_validity_days),
                    stage=QUOTATION_STAGES.initial,
                )
                session.add(quotation)
                session.flush()
                self.quotations.replace_items(session, quotation, payload.items)

        view = to_quotation_read(quotation)
        audit.record(ctx.user_id, "quotation", str(quotation.id), "create", None, view.model_dump(mode="json"), ctx.correlation_id)
        self._publish(
            ctx,
            "pipeline.quotation.created",
            {
                "quotation_id": str(quotation.id),
                "opportunity_id": str(opportunity.id),
                "replaced_quotation_id": str(previous.id) if previous is not None else None,
                "total": str(view.total),
            },
        )
        logger.info("quotation.created", extra={"entity": "quotation", "entity_id": str(quotation.id)})
        return view

    def update_quotation(self, session: Session, ctx: ActorContext, quotation_id: uuid.UUID, payload: QuotationUpdate) -> QuotationRead:
        with _workflow("update_quotation", quotation_id=str(quotation_id)):
            with transaction(session):
                quotation = self.quotations.load(session, quotation_id, lock=True)
                if quotation.opportunity_id is None:
                    raise DependencyUnresolvedError("opportunity", quotation.id)
                self.opportunities.get(session, quotation.opportunity_id)

                before = to_quotation_read(quotation).model_dump(mode="json")
                changes = payload.model_dump(mode="python", exclude_unset=True, exclude={"items"})
                for key, value in changes.items():
                    if key in {"title", "valid_until"} and value is None:
                        continue
                    setattr(quotation, key, value)
                if payload.items is not None:
                    self.quotations.replace_items(session, quotation, payload.items)

        view = to_quotation_read(quotation)
        audit.record(ctx.user_id, "quotation", str(quotation.id), "update", before, view.model_dump(mode="json"), ctx.correlation_id)
        self._publish(ctx, "pipeline.quotation.updated", {"quotation_id": str(quotation.id), "total": str(view.total)})
        return view

    def send_quotation(self, session: Session, ctx: ActorContext, quotation_id: uuid.UUID) -> QuotationRead:
        view, customer = self._move_quotation(session, ctx, quotation_id, "send")
        if customer is None:
            logger.info("notification.skipped", extra={"notification": "quotation_sent", "entity_id": str(quotation_id)})
        else:
            dispatch("quotation_sent", lambda: self.notifier.notify_quotation_sent(customer, view))
        return view

    def accept_quotation(self, session: Session, ctx: ActorContext, quotation_id: uuid.UUID) -> QuotationRead:
        return self._move_quotation(session, ctx, quotation_id, "accept")[0]

    def reject_quotation(self, session: Session, ctx: ActorContext, quotation_id: uuid.UUID) -> QuotationRead:
        return self._move_quotation(session, ctx, quotation_id, "reject")[0]

    def generate_invoice_from_quotation(self, session: Session, ctx: ActorContext, quotation_id: uuid.UUID) -> InvoiceRead:
        """Convert an accepted quotation into a new invoice.

        The stage change, the customer promotion and the invoice row are
        written in one transaction; the invoice email goes out after commit.
        """
        settings = get_settings()
        with _workflow("generate_invoice_from_quotation", quotation_id=str(quotation_id)):
            with transaction(session):
                quotation = self.quotations.load(session, quotation_id, lock=True)
                QUOTATION_STAGES.target_for(quotation.id, "convert", quotation.stage)
                if quotation.opportunity_id is None:
                    raise DependencyUnresolvedError("opportunity", quotation.id)
                opportunity = self.opportunities.get(session, quotation.opportunity_id, lock=True)
                customer = self.customers.find(session, opportunity.customer_id)
                if customer is None:
                    raise DependencyUnresolvedError("customer", opportunity.customer_id)

                QUOTATION_STAGES.apply(session, quotation, "convert")
                promoted = promote_customer(customer)
                snapshot = derive(quotation_lines(quotation), tax_rate=settings.default_tax_rate)
                invoice = self.billing.mint_invoice(
                    session,
                    snapshot,
                    title=quotation.title,
                    invoice_date=self.today(),
                    customer_id=customer.id,
                    employee_id=opportunity.employee_id,
                    opportunity_id=opportunity.id,
                    quotation_id=quotation.id,
                )

        view = to_invoice_read(invoice)
        customer_view = to_customer_read(customer)
        audit.record(ctx.user_id, "quotation", str(quotation_id), "convert", {"stage": "ACCEPTED"}, {"stage": "CONVERTED"}, ctx.correlation_id)
        if promoted:
            audit.record(ctx.user_id, "customer", str(customer.id), "promote", {"type": "NEW"}, {"type": "EXISTING"}, ctx.correlation_id)
        audit.record(ctx.user_id, "invoice", str(invoice.id), "create", None, view.model_dump(mode="json"), ctx.correlation_id)
        self._publish(
            ctx,
            "pipeline.invoice.generated",
            {
                "invoice_id": str(invoice.id),
                "invoice_number": view.invoice_number,
                "quotation_id": str(quotation_id),
                "customer_id": str(customer.id),
                "total": str(view.total),
            },
        )
        logger.info(
            "invoice.generated",
            extra={"entity": "invoice", "entity_id": str(invoice.id), "invoice_number": view.invoice_number},
        )
        dispatch("invoice_generated", lambda: self.notifier.notify_invoice_generated(customer_view, view))
        return view

    def permanently_delete_opportunity(self, session: Session, ctx: ActorContext, opportunity_id: uuid.UUID) -> None:
        with _workflow("permanently_delete_opportunity", opportunity_id=str(opportunity_id)):
            with transaction(session):
                opportunity = self.opportunities.get(session, opportunity_id, lock=True)
                before = to_opportunity_read(opportunity, None).model_dump(mode="json")
                quotation = self.quotations.repository.find_by_opportunity(session, opportunity.id)
                quotation_id = quotation.id if quotation is not None else None

                # dependents first: invoices reference the quotation, items reference the quotation
                steps: list[tuple[str, Callable[[], int]]] = [
                    ("invoice", lambda: self.invoices.delete_for_opportunity(session, opportunity_id, quotation_id)),
                    ("quotation_item", lambda: self._delete_quotation_part(session, quotation_id, items=True)),
                    ("quotation", lambda: self._delete_quotation_part(session, quotation_id, items=False)),
                    ("opportunity", lambda: self.opportunities.hard_delete(session, Opportunity.id == opportunity_id)),
                ]
                removed: dict[str, int] = {}
                for entity, step in steps:
                    removed[entity] = step()
                    logger.info(
                        "opportunity.purge_step",
                        extra={"entity": entity, "entity_id": str(opportunity_id), "removed": removed[entity]},
                    )

        audit.record(ctx.user_id, "opportunity", str(opportunity_id), "delete_permanent", before, None, ctx.correlation_id)
        self._publish(
            ctx,
            "pipeline.opportunity.purged",
            {
                "opportunity_id": str(opportunity_id),
                "quotation_id": str(quotation_id) if quotation_id is not None else None,
                "removed": removed,
            },
        )

    def _move_quotation(
        self, session: Session, ctx: ActorContext, quotation_id: uuid.UUID, action: str
    ) -> tuple[QuotationRead, CustomerRead | None]:
        past = _PAST_TENSE[action]
        with _workflow(f"{action}_quotation", quotation_id=str(quotation_id)):
            with transaction(session):
                quotation = self.quotations.load(session, quotation_id, lock=True)
                previous = QUOTATION_STAGES.apply(session, quotation, action)
                customer = self._customer_for(session, quotation)

        view = to_quotation_read(quotation)
        audit.record(ctx.user_id, "quotation", str(quotation_id), action, {"stage": previous}, {"stage": view.stage}, ctx.correlation_id)
        self._publish(
            ctx,
            f"pipeline.quotation.{past}",
            {"quotation_id": str(quotation_id), "from_stage": previous, "to_stage": view.stage},
        )
        logger.info(f"quotation.{past}", extra={"entity": "quotation", "entity_id": str(quotation_id)})
        return view, to_customer_read(customer) if customer is not None else None

    def _customer_for(self, session: Session, quotation: Quotation) -> Customer | None:
        if quotation.opportunity_id is None:
            return None
        opportunity = self.opportunities.find(session, quotation.opportunity_id)
        if opportunity is None:
            return None
        return self.customers.find(session, opportunity.customer_id)

    def _delete_quotation_part(self, session: Session, quotation_id: uuid.UUID | None, *, items: bool) -> int:
        if quotation_id is None:
            return 0
        if items:
            return self.quotations.repository.delete_items(session, quotation_id)
        return self.quotations.repository.hard_delete(session, Quotation.id == quotation_id)

    @staticmethod
    def _publish(ctx: ActorContext, event_type: str, payload: dict[str, Any]) -> None:
        events.publish(events.envelope(event_type, ctx.user_id, payload))


pipeline_service = PipelineService()
