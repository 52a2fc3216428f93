from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Literal

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from salesflow import audit, events
from salesflow.business.revenue.models import Quotation
from salesflow.core.context import ActorContext
from salesflow.core.database import transaction
from salesflow.core.errors import (
    AmbiguousMatchError,
    DependencyUnresolvedError,
    DependentRecordsError,
    DuplicateConstraintError,
    InvalidInputError,
    NotFoundError,
)
from salesflow.core.security import PasswordHasher, get_password_hasher
from salesflow.crm.models import Customer, Employee, Lead, Opportunity, Ticket
from salesflow.crm.repositories import (
    CustomerRepository,
    EmployeeRepository,
    LeadRepository,
    OpportunityRepository,
    TicketRepository,
)
from salesflow.crm.schemas import (
    CustomerCreate,
    CustomerRead,
    CustomerRegister,
    CustomerUpdate,
    EmployeeCreate,
    EmployeeRead,
    EmployeeUpdate,
    LeadCreate,
    LeadRead,
    LeadUpdate,
    OpportunityRead,
    PasswordSet,
    TicketAssign,
    TicketCreate,
    TicketRead,
    TicketUpdate,
)
from salesflow.notifications.notifier import Notifier, dispatch, get_notifier
from salesflow.platform.lifecycle import LifecycleRepository
from salesflow.platform.stages import TICKET_STAGES

logger = logging.getLogger("salesflow.crm")

ActivityAction = Literal["delete", "restore"]


def to_customer_record(payload: CustomerCreate) -> dict[str, Any]:
    data = payload.model_dump(mode="python")
    if data.get("email") is not None:
        data["email"] = str(data["email"]).lower()
    data["status"] = "ACTIVE"
    data["has_password"] = False
    return data


def to_customer_read(customer: Customer) -> CustomerRead:
    return CustomerRead.model_validate(customer)


def to_employee_read(employee: Employee) -> EmployeeRead:
    return EmployeeRead.model_validate(employee)


def to_lead_record(payload: LeadCreate, *, customer_id: uuid.UUID, employee_id: uuid.UUID) -> dict[str, Any]:
    data = payload.model_dump(mode="python", exclude={"assigned_to", "customer", "customer_id", "employee_id"})
    data["expected_revenue"] = Decimal(data["expected_revenue"]).quantize(Decimal("0.000001"))
    data["customer_id"] = customer_id
    data["employee_id"] = employee_id
    data["status"] = "ACTIVE"
    return data


def to_lead_read(lead: Lead) -> LeadRead:
    return LeadRead.model_validate(lead)


def to_opportunity_read(opportunity: Opportunity, quotation_id: uuid.UUID | None) -> OpportunityRead:
    return OpportunityRead.model_validate(
        {
            "id": opportunity.id,
            "lead_id": opportunity.lead_id,
            "customer_id": opportunity.customer_id,
            "employee_id": opportunity.employee_id,
            "quotation_id": quotation_id,
            "stage": opportunity.stage,
            "status": opportunity.status,
            "created_at": opportunity.created_at,
            "updated_at": opportunity.updated_at,
        }
    )


def to_ticket_read(ticket: Ticket) -> TicketRead:
    return TicketRead.model_validate(ticket)


def validate_lead_figures(probability: int | None, expected_revenue: Decimal | None) -> None:
    if probability is not None and not 0 <= probability <= 100:
        raise InvalidInputError("probability", "probability must be between 0 and 100")
    if expected_revenue is not None and Decimal(expected_revenue) < 0:
        raise InvalidInputError("expected_revenue", "expected revenue must not be negative")


def _publish(ctx: ActorContext, event_type: str, payload: dict[str, Any]) -> None:
    events.publish(events.envelope(event_type, ctx.user_id, payload))


def _change_activity_status(
    session: Session,
    ctx: ActorContext,
    repository: LifecycleRepository[Any],
    entity_id: uuid.UUID,
    action: ActivityAction,
) -> Any:
    with transaction(session):
        row = repository.get(session, entity_id, lock=True)
        before = row.status
        if action == "delete":
            repository.soft_delete(session, entity_id)
        else:
            repository.restore(session, entity_id)

    audit.record(
        ctx.user_id,
        repository.entity,
        str(entity_id),
        action,
        {"status": before},
        {"status": row.status},
        correlation_id=ctx.correlation_id,
    )
    past = "deleted" if action == "delete" else "restored"
    _publish(ctx, f"crm.{repository.entity}.{past}", {f"{repository.entity}_id": str(entity_id), "previous_status": before})
    logger.info(f"{repository.entity}.{past}", extra={"entity": repository.entity, "entity_id": str(entity_id)})
    return row


@dataclass(slots=True)
class CustomerService:
    repository: CustomerRepository = CustomerRepository()
    hasher: PasswordHasher = field(default_factory=get_password_hasher)
    notifier: Notifier = field(default_factory=get_notifier)

    def create_customer(self, session: Session, ctx: ActorContext, payload: CustomerCreate) -> CustomerRead:
        with transaction(session):
            if self.repository.find_by_name(session, payload.name) is not None:
                raise DuplicateConstraintError("customer", "name", payload.name)
            customer = Customer(**to_customer_record(payload))
            session.add(customer)
            self._flush(session, payload.name)
        session.refresh(customer)

        view = to_customer_read(customer)
        audit.record(ctx.user_id, "customer", str(customer.id), "create", None, view.model_dump(mode="json"))
        _publish(ctx, "crm.customer.created", {"customer_id": str(customer.id), "name": customer.name})
        return view

    def update_customer(self, session: Session, ctx: ActorContext, customer_id: uuid.UUID, payload: CustomerUpdate) -> CustomerRead:
        with transaction(session):
            customer = self.repository.get(session, customer_id, lock=True)
            before = to_customer_read(customer).model_dump(mode="json")
            changes = payload.model_dump(mode="python", exclude_unset=True)
            if changes.get("name") and changes["name"] != customer.name:
                if self.repository.find_by_name(session, changes["name"]) is not None:
                    raise DuplicateConstraintError("customer", "name", changes["name"])
            if changes.get("email") is not None:
                changes["email"] = str(changes["email"]).lower()
            for key, value in changes.items():
                if key == "name" and value is None:
                    continue
                setattr(customer, key, value)
            self._flush(session, changes.get("name"))
        session.refresh(customer)

        view = to_customer_read(customer)
        audit.record(ctx.user_id, "customer", str(customer.id), "update", before, view.model_dump(mode="json"))
        return view

    def get_customer(self, session: Session, customer_id: uuid.UUID) -> CustomerRead:
        return to_customer_read(self.repository.get(session, customer_id))

    def get_customer_by_email(self, session: Session, email: str) -> CustomerRead:
        customer = self.repository.find_by_email(session, email)
        if customer is None:
            raise NotFoundError("customer", email)
        return to_customer_read(customer)

    def list_customers(self, session: Session) -> list[CustomerRead]:
        return [to_customer_read(row) for row in self.repository.list_active(session)]

    def list_deleted_customers(self, session: Session) -> list[CustomerRead]:
        return [to_customer_read(row) for row in self.repository.list_deleted(session)]

    def list_customers_by_type(self, session: Session, customer_type: str) -> list[CustomerRead]:
        return [to_customer_read(row) for row in self.repository.list_by_type(session, customer_type)]

    def delete_customer(self, session: Session, ctx: ActorContext, customer_id: uuid.UUID) -> CustomerRead:
        return to_customer_read(_change_activity_status(session, ctx, self.repository, customer_id, "delete"))

    def restore_customer(self, session: Session, ctx: ActorContext, customer_id: uuid.UUID) -> CustomerRead:
        return to_customer_read(_change_activity_status(session, ctx, self.repository, customer_id, "restore"))

    def set_password(self, session: Session, ctx: ActorContext, customer_id: uuid.UUID, payload: PasswordSet) -> CustomerRead:
        with transaction(session):
            customer = self.repository.get(session, customer_id, lock=True)
            replacing = customer.has_password
            customer.password_hash = self.hasher.hash(payload.password)
            customer.has_password = True
        session.refresh(customer)

        view = to_customer_read(customer)
        audit.record(ctx.user_id, "customer", str(customer.id), "password_reset" if replacing else "password_set", None, None)
        if payload.send_email:
            dispatch("password_set", lambda: self.notifier.notify_password_set(view))
        return view

    def verify_password(self, session: Session, customer_id: uuid.UUID, password: str) -> bool:
        customer = self.repository.get(session, customer_id)
        if not customer.has_password or not customer.password_hash:
            return False
        return self.hasher.verify(password, customer.password_hash)

    def register_customer(self, session: Session, ctx: ActorContext, customer_id: uuid.UUID, payload: CustomerRegister) -> CustomerRead:
        with transaction(session):
            customer = self.repository.get(session, customer_id, lock=True)
            changes = payload.model_dump(mode="python", exclude={"password"}, exclude_none=True)
            if changes.get("name") and changes["name"] != customer.name:
                if self.repository.find_by_name(session, changes["name"]) is not None:
                    raise DuplicateConstraintError("customer", "name", changes["name"])
            for key, value in changes.items():
                setattr(customer, key, value)
            customer.password_hash = self.hasher.hash(payload.password)
            customer.has_password = True
            self._flush(session, changes.get("name"))
        session.refresh(customer)

        view = to_customer_read(customer)
        audit.record(ctx.user_id, "customer", str(customer.id), "register", None, view.model_dump(mode="json"))
        dispatch("registration_confirmed", lambda: self.notifier.notify_registration_confirmed(view))
        return view

    @staticmethod
    def _flush(session: Session, name: str | None) -> None:
        try:
            session.flush()
        except IntegrityError as exc:
            raise DuplicateConstraintError("customer", "name", name) from exc


@dataclass(slots=True)
class EmployeeService:
    repository: EmployeeRepository = EmployeeRepository()
    hasher: PasswordHasher = field(default_factory=get_password_hasher)

    def create_employee(self, session: Session, ctx: ActorContext, payload: EmployeeCreate) -> EmployeeRead:
        email = str(payload.email).lower()
        with transaction(session):
            if self.repository.find_by_email(session, email) is not None:
                raise DuplicateConstraintError("employee", "email", email)
            employee = Employee(
                name=payload.name.strip(),
                email=email,
                phone_number=payload.phone_number,
                password_hash=self.hasher.hash(payload.password) if payload.password else None,
            )
            session.add(employee)
            self._flush(session, email)
        session.refresh(employee)

        view = to_employee_read(employee)
        audit.record(ctx.user_id, "employee", str(employee.id), "create", None, view.model_dump(mode="json"))
        return view

    def update_employee(self, session: Session, ctx: ActorContext, employee_id: uuid.UUID, payload: EmployeeUpdate) -> EmployeeRead:
        with transaction(session):
            employee = self.repository.get(session, employee_id, lock=True)
            before = to_employee_read(employee).model_dump(mode="json")
            changes = payload.model_dump(mode="python", exclude_none=True)
            if "email" in changes:
                changes["email"] = str(changes["email"]).lower()
                existing = self.repository.find_by_email(session, changes["email"])
                if existing is not None and existing.id != employee.id:
                    raise DuplicateConstraintError("employee", "email", changes["email"])
            for key, value in changes.items():
                setattr(employee, key, value)
            self._flush(session, changes.get("email"))
        session.refresh(employee)

        view = to_employee_read(employee)
        audit.record(ctx.user_id, "employee", str(employee.id), "update", before, view.model_dump(mode="json"))
        return view

    def set_password(self, session: Session, ctx: ActorContext, employee_id: uuid.UUID, payload: PasswordSet) -> EmployeeRead:
        with transaction(session):
            employee = self.repository.get(session, employee_id, lock=True)
            employee.password_hash = self.hasher.hash(payload.password)
        session.refresh(employee)
        audit.record(ctx.user_id, "employee", str(employee.id), "password_set", None, None)
        return to_employee_read(employee)

    def get_employee(self, session: Session, employee_id: uuid.UUID) -> EmployeeRead:
        return to_employee_read(self.repository.get(session, employee_id))

    def get_employee_by_email(self, session: Session, email: str) -> EmployeeRead:
        employee = self.repository.find_by_email(session, email)
        if employee is None:
            raise NotFoundError("employee", email)
        return to_employee_read(employee)

    def list_employees(self, session: Session) -> list[EmployeeRead]:
        return [to_employee_read(row) for row in self.repository.list(session)]

    @staticmethod
    def _flush(session: Session, email: str | None) -> None:
        try:
            session.flush()
        except IntegrityError as exc:
            raise DuplicateConstraintError("employee", "email", email) from exc


@dataclass(slots=True)
class LeadService:
    repository: LeadRepository = LeadRepository()
    customer_repository: CustomerRepository = CustomerRepository()
    employee_repository: EmployeeRepository = EmployeeRepository()
    opportunity_repository: OpportunityRepository = OpportunityRepository()

    def create_lead(self, session: Session, ctx: ActorContext, payload: LeadCreate) -> LeadRead:
        validate_lead_figures(payload.probability, payload.expected_revenue)
        with transaction(session):
            employee = self._resolve_employee(session, payload.employee_id, payload.assigned_to)
            customer = self._resolve_customer(session, payload)

            lead = Lead(**to_lead_record(payload, customer_id=customer.id, employee_id=employee.id))
            session.add(lead)
            try:
                session.flush()
            except IntegrityError as exc:
                name = payload.customer.name if payload.customer else None
                raise DuplicateConstraintError("customer", "name", name) from exc
        session.refresh(lead)

        view = to_lead_read(lead)
        audit.record(ctx.user_id, "lead", str(lead.id), "create", None, view.model_dump(mode="json"))
        _publish(
            ctx,
            "crm.lead.created",
            {"lead_id": str(lead.id), "customer_id": str(customer.id), "employee_id": str(employee.id)},
        )
        return view

    def update_lead(self, session: Session, ctx: ActorContext, lead_id: uuid.UUID, payload: LeadUpdate) -> LeadRead:
        changes = payload.model_dump(mode="python", exclude_none=True)
        validate_lead_figures(changes.get("probability"), changes.get("expected_revenue"))
        if "expected_revenue" in changes:
            changes["expected_revenue"] = Decimal(changes["expected_revenue"]).quantize(Decimal("0.000001"))

        with transaction(session):
            lead = self.repository.get(session, lead_id, lock=True)
            if "employee_id" in changes:
                self._resolve_employee(session, changes["employee_id"], None)
            before = to_lead_read(lead).model_dump(mode="json")
            for key, value in changes.items():
                setattr(lead, key, value)
        session.refresh(lead)

        view = to_lead_read(lead)
        audit.record(ctx.user_id, "lead", str(lead.id), "update", before, view.model_dump(mode="json"))
        _publish(ctx, "crm.lead.updated", {"lead_id": str(lead.id), "changed_fields": sorted(changes)})
        return view

    def get_lead(self, session: Session, lead_id: uuid.UUID) -> LeadRead:
        return to_lead_read(self.repository.get(session, lead_id))

    def list_leads(self, session: Session) -> list[LeadRead]:
        return [to_lead_read(row) for row in self.repository.list_active(session)]

    def list_deleted_leads(self, session: Session) -> list[LeadRead]:
        return [to_lead_read(row) for row in self.repository.list_deleted(session)]

    def list_leads_by_employee(self, session: Session, employee_id: uuid.UUID) -> list[LeadRead]:
        return [to_lead_read(row) for row in self.repository.list_by_employee(session, employee_id)]

    def list_leads_by_customer(self, session: Session, customer_id: uuid.UUID) -> list[LeadRead]:
        return [to_lead_read(row) for row in self.repository.list_by_customer(session, customer_id)]

    def delete_lead(self, session: Session, ctx: ActorContext, lead_id: uuid.UUID) -> LeadRead:
        return to_lead_read(_change_activity_status(session, ctx, self.repository, lead_id, "delete"))

    def restore_lead(self, session: Session, ctx: ActorContext, lead_id: uuid.UUID) -> LeadRead:
        return to_lead_read(_change_activity_status(session, ctx, self.repository, lead_id, "restore"))

    def permanently_delete_lead(self, session: Session, ctx: ActorContext, lead_id: uuid.UUID) -> None:
        with transaction(session):
            lead = self.repository.get(session, lead_id, lock=True)
            if self.opportunity_repository.find_by_lead(session, lead.id) is not None:
                raise DependentRecordsError("lead", lead.id, "opportunity")
            before = to_lead_read(lead).model_dump(mode="json")
            session.delete(lead)
        audit.record(ctx.user_id, "lead", str(lead_id), "delete_permanent", before, None)
        _publish(ctx, "crm.lead.purged", {"lead_id": str(lead_id)})

    def _resolve_employee(self, session: Session, employee_id: uuid.UUID | None, name: str | None) -> Employee:
        if employee_id is not None:
            employee = self.employee_repository.find(session, employee_id)
            if employee is None:
                raise DependencyUnresolvedError("employee", employee_id)
            return employee

        reference = (name or "").strip()
        matches = self.employee_repository.find_by_name(session, reference) if reference else []
        if not matches:
            raise DependencyUnresolvedError("employee", reference)
        if len(matches) > 1:
            raise AmbiguousMatchError("employee", reference, [row.email for row in matches])
        return matches[0]

    def _resolve_customer(self, session: Session, payload: LeadCreate) -> Customer:
        if payload.customer_id is not None:
            customer = self.customer_repository.find(session, payload.customer_id)
            if customer is None:
                raise DependencyUnresolvedError("customer", payload.customer_id)
            return customer

        assert payload.customer is not None
        existing = self.customer_repository.find_by_name(session, payload.customer.name)
        if existing is not None:
            return existing
        customer = Customer(**to_customer_record(payload.customer))
        session.add(customer)
        session.flush()
        logger.info("customer.created_from_lead", extra={"entity": "customer", "entity_id": str(customer.id)})
        return customer


@dataclass(slots=True)
class OpportunityService:
    repository: OpportunityRepository = OpportunityRepository()

    def get_opportunity(self, session: Session, opportunity_id: uuid.UUID) -> OpportunityRead:
        return self._to_reads(session, [self.repository.get(session, opportunity_id)])[0]

    def list_opportunities(self, session: Session) -> list[OpportunityRead]:
        return self._to_reads(session, self.repository.list_active(session))

    def list_deleted_opportunities(self, session: Session) -> list[OpportunityRead]:
        return self._to_reads(session, self.repository.list_deleted(session))

    def list_opportunities_by_stage(self, session: Session, stage: str) -> list[OpportunityRead]:
        return self._to_reads(session, self.repository.list_by_stage(session, stage))

    def list_opportunities_by_employee(self, session: Session, employee_id: uuid.UUID) -> list[OpportunityRead]:
        return self._to_reads(session, self.repository.list_by_employee(session, employee_id))

    def list_opportunities_by_customer(self, session: Session, customer_id: uuid.UUID) -> list[OpportunityRead]:
        return self._to_reads(session, self.repository.list_by_customer(session, customer_id))

    def update_stage(self, session: Session, ctx: ActorContext, opportunity_id: uuid.UUID, stage: str) -> OpportunityRead:
        with transaction(session):
            opportunity = self.repository.get(session, opportunity_id, lock=True)
            before = opportunity.stage
            opportunity.stage = stage
        session.refresh(opportunity)

        audit.record(ctx.user_id, "opportunity", str(opportunity.id), "change_stage", {"stage": before}, {"stage": stage})
        _publish(
            ctx,
            "crm.opportunity.stage_changed",
            {"opportunity_id": str(opportunity.id), "from_stage": before, "to_stage": stage},
        )
        return self._to_reads(session, [opportunity])[0]

    def delete_opportunity(self, session: Session, ctx: ActorContext, opportunity_id: uuid.UUID) -> OpportunityRead:
        row = _change_activity_status(session, ctx, self.repository, opportunity_id, "delete")
        return self._to_reads(session, [row])[0]

    def restore_opportunity(self, session: Session, ctx: ActorContext, opportunity_id: uuid.UUID) -> OpportunityRead:
        row = _change_activity_status(session, ctx, self.repository, opportunity_id, "restore")
        return self._to_reads(session, [row])[0]

    @staticmethod
    def _to_reads(session: Session, rows: Any) -> list[OpportunityRead]:
        rows = list(rows)
        if not rows:
            return []
        quotation_ids = dict(
            session.execute(
                select(Quotation.opportunity_id, Quotation.id).where(Quotation.opportunity_id.in_([row.id for row in rows]))
            ).all()
        )
        return [to_opportunity_read(row, quotation_ids.get(row.id)) for row in rows]


@dataclass(slots=True)
class TicketService:
    repository: TicketRepository = TicketRepository()
    customer_repository: CustomerRepository = CustomerRepository()
    employee_repository: EmployeeRepository = EmployeeRepository()

    def create_ticket(self, session: Session, ctx: ActorContext, payload: TicketCreate) -> TicketRead:
        with transaction(session):
            customer = self._resolve_customer(session, payload.customer_id, payload.customer_email)
            ticket = Ticket(
                subject=payload.subject,
                description=payload.description,
                status=TICKET_STAGES.initial,
                customer_id=customer.id,
                employee_id=None,
            )
            session.add(ticket)
        session.refresh(ticket)

        view = to_ticket_read(ticket)
        audit.record(ctx.user_id, "ticket", str(ticket.id), "create", None, view.model_dump(mode="json"))
        _publish(ctx, "crm.ticket.created", {"ticket_id": str(ticket.id), "customer_id": str(customer.id)})
        return view

    def update_ticket(self, session: Session, ctx: ActorContext, ticket_id: uuid.UUID, payload: TicketUpdate) -> TicketRead:
        with transaction(session):
            ticket = self.repository.get(session, ticket_id, lock=True)
            before = to_ticket_read(ticket).model_dump(mode="json")
            for key, value in payload.model_dump(mode="python", exclude_none=True).items():
                setattr(ticket, key, value)
        session.refresh(ticket)

        view = to_ticket_read(ticket)
        audit.record(ctx.user_id, "ticket", str(ticket.id), "update", before, view.model_dump(mode="json"))
        return view

    def get_ticket(self, session: Session, ticket_id: uuid.UUID) -> TicketRead:
        return to_ticket_read(self.repository.get(session, ticket_id))

    def list_tickets(self, session: Session, *, status: str | None = None) -> list[TicketRead]:
        criteria = [] if status is None else [Ticket.status == status]
        return [to_ticket_read(row) for row in self.repository.list(session, *criteria)]

    def list_tickets_by_customer(self, session: Session, customer_id: uuid.UUID) -> list[TicketRead]:
        return [to_ticket_read(row) for row in self.repository.list(session, Ticket.customer_id == customer_id)]

    def list_tickets_by_customer_email(self, session: Session, email: str) -> list[TicketRead]:
        return [to_ticket_read(row) for row in self.repository.list_by_customer_email(session, email)]

    def list_tickets_by_employee(self, session: Session, employee_id: uuid.UUID) -> list[TicketRead]:
        return [to_ticket_read(row) for row in self.repository.list(session, Ticket.employee_id == employee_id)]

    def list_tickets_by_employee_email(self, session: Session, email: str) -> list[TicketRead]:
        return [to_ticket_read(row) for row in self.repository.list_by_employee_email(session, email)]

    def assign_ticket(self, session: Session, ctx: ActorContext, ticket_id: uuid.UUID, payload: TicketAssign) -> TicketRead:
        employee = self._resolve_employee(session, payload.employee_id, payload.employee_email)
        return self._transition(session, ctx, ticket_id, "assign", employee_id=employee.id)

    def resolve_ticket(self, session: Session, ctx: ActorContext, ticket_id: uuid.UUID) -> TicketRead:
        return self._transition(session, ctx, ticket_id, "resolve")

    def approve_ticket(self, session: Session, ctx: ActorContext, ticket_id: uuid.UUID) -> TicketRead:
        return self._transition(session, ctx, ticket_id, "approve")

    def deny_ticket(self, session: Session, ctx: ActorContext, ticket_id: uuid.UUID) -> TicketRead:
        return self._transition(session, ctx, ticket_id, "deny")

    def delete_ticket(self, session: Session, ctx: ActorContext, ticket_id: uuid.UUID) -> None:
        with transaction(session):
            ticket = self.repository.get(session, ticket_id, lock=True)
            before = to_ticket_read(ticket).model_dump(mode="json")
            session.delete(ticket)
        audit.record(ctx.user_id, "ticket", str(ticket_id), "delete", before, None)

    def _transition(self, session: Session, ctx: ActorContext, ticket_id: uuid.UUID, action: str, **values: Any) -> TicketRead:
        with transaction(session):
            ticket = self.repository.get(session, ticket_id, lock=True)
            previous = TICKET_STAGES.apply(session, ticket, action, **values)

        view = to_ticket_read(ticket)
        audit.record(ctx.user_id, "ticket", str(ticket.id), action, {"status": previous}, {"status": view.status})
        _publish(
            ctx,
            f"crm.ticket.{action}",
            {"ticket_id": str(ticket.id), "from_status": previous, "to_status": view.status},
        )
        return view

    def _resolve_customer(self, session: Session, customer_id: uuid.UUID | None, email: str | None) -> Customer:
        customer = None
        if customer_id is not None:
            customer = self.customer_repository.find(session, customer_id)
        elif email is not None:
            customer = self.customer_repository.find_by_email(session, email)
        if customer is None:
            raise DependencyUnresolvedError("customer", customer_id or email)
        return customer

    def _resolve_employee(self, session: Session, employee_id: uuid.UUID | None, email: str | None) -> Employee:
        employee = None
        if employee_id is not None:
            employee = self.employee_repository.find(session, employee_id)
        elif email is not None:
            employee = self.employee_repository.find_by_email(session, email)
        if employee is None:
            raise DependencyUnresolvedError("employee", employee_id or email)
        return employee


customer_service = CustomerService()
employee_service = EmployeeService()
lead_service = LeadService()
opportunity_service = OpportunityService()
ticket_service = TicketService()
