from __future__ import annotations

import uuid
from collections.abc import Sequence

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from salesflow.crm.models import Customer, Employee, Lead, Opportunity, Ticket
from salesflow.platform.lifecycle import LifecycleRepository, Repository


class CustomerRepository(LifecycleRepository[Customer]):
    model = Customer
    entity = "customer"

    def find_by_name(self, session: Session, name: str) -> Customer | None:
        return session.scalar(select(Customer).where(Customer.name == name))

    def find_by_email(self, session: Session, email: str) -> Customer | None:
        return session.scalar(
            select(Customer).where(func.lower(Customer.email) == email.strip().lower()).order_by(Customer.created_at)
        )

    def list_by_type(self, session: Session, customer_type: str) -> Sequence[Customer]:
        return self.list_visible(session, Customer.type == customer_type)


class EmployeeRepository(Repository[Employee]):
    model = Employee
    entity = "employee"

    def find_by_name(self, session: Session, name: str) -> Sequence[Employee]:
        return session.scalars(select(Employee).where(Employee.name == name.strip())).all()

    def find_by_email(self, session: Session, email: str) -> Employee | None:
        return session.scalar(select(Employee).where(func.lower(Employee.email) == email.strip().lower()))


class LeadRepository(LifecycleRepository[Lead]):
    model = Lead
    entity = "lead"

    def list_by_employee(self, session: Session, employee_id: uuid.UUID) -> Sequence[Lead]:
        return self.list_visible(session, Lead.employee_id == employee_id)

    def list_by_customer(self, session: Session, customer_id: uuid.UUID) -> Sequence[Lead]:
        return self.list_visible(session, Lead.customer_id == customer_id)


class OpportunityRepository(LifecycleRepository[Opportunity]):
    model = Opportunity
    entity = "opportunity"

    def find_by_lead(self, session: Session, lead_id: uuid.UUID) -> Opportunity | None:
        return session.scalar(select(Opportunity).where(Opportunity.lead_id == lead_id))

    def list_by_stage(self, session: Session, stage: str) -> Sequence[Opportunity]:
        return self.list_active(session, Opportunity.stage == stage)

    def list_by_employee(self, session: Session, employee_id: uuid.UUID) -> Sequence[Opportunity]:
        return self.list_visible(session, Opportunity.employee_id == employee_id)

    def list_by_customer(self, session: Session, customer_id: uuid.UUID) -> Sequence[Opportunity]:
        return self.list_visible(session, Opportunity.customer_id == customer_id)


class TicketRepository(Repository[Ticket]):
    model = Ticket
    entity = "ticket"

    def list_by_customer_email(self, session: Session, email: str) -> Sequence[Ticket]:
        return self.list(
            session,
            Ticket.customer_id.in_(select(Customer.id).where(func.lower(Customer.email) == email.strip().lower())),
        )

    def list_by_employee_email(self, session: Session, email: str) -> Sequence[Ticket]:
        return self.list(
            session,
            Ticket.employee_id.in_(select(Employee.id).where(func.lower(Employee.email) == email.strip().lower())),
        )
