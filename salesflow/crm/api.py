from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.orm import Session

from salesflow.core.context import ActorContext, get_actor_context
from salesflow.core.database import get_db
from salesflow.crm.schemas import (
    CustomerCreate,
    CustomerRead,
    CustomerRegister,
    CustomerType,
    CustomerUpdate,
    EmployeeCreate,
    EmployeeRead,
    EmployeeUpdate,
    LeadCreate,
    LeadRead,
    LeadUpdate,
    OpportunityCreate,
    OpportunityRead,
    OpportunityStage,
    OpportunityStageUpdate,
    PasswordSet,
    TicketAssign,
    TicketCreate,
    TicketRead,
    TicketStatus,
    TicketUpdate,
)
from salesflow.crm.service import customer_service, employee_service, lead_service, opportunity_service, ticket_service
from salesflow.pipeline.service import pipeline_service

customers_router = APIRouter(prefix="/api/customers", tags=["crm.customers"])
employees_router = APIRouter(prefix="/api/employees", tags=["crm.employees"])
leads_router = APIRouter(prefix="/api/leads", tags=["crm.leads"])
opportunities_router = APIRouter(prefix="/api/opportunities", tags=["crm.opportunities"])
tickets_router = APIRouter(prefix="/api/tickets", tags=["crm.tickets"])


@customers_router.post("", response_model=CustomerRead, status_code=status.HTTP_201_CREATED)
def create_customer(
    dto: CustomerCreate,
    db: Session = Depends(get_db),
    ctx: ActorContext = Depends(get_actor_context),
) -> CustomerRead:
    return customer_service.create_customer(db, ctx, dto)


@customers_router.get("", response_model=list[CustomerRead])
def list_customers(
    customer_type: CustomerType | None = Query(default=None, alias="type"),
    db: Session = Depends(get_db),
) -> list[CustomerRead]:
    if customer_type is not None:
        return customer_service.list_customers_by_type(db, customer_type)
    return customer_service.list_customers(db)


@customers_router.get("/deleted", response_model=list[CustomerRead])
def list_deleted_customers(db: Session = Depends(get_db)) -> list[CustomerRead]:
    return customer_service.list_deleted_customers(db)


@customers_router.get("/by-email", response_model=CustomerRead)
def get_customer_by_email(email: str = Query(min_length=3), db: Session = Depends(get_db)) -> CustomerRead:
    return customer_service.get_customer_by_email(db, email)


@customers_router.put("/restore/{customer_id}", response_model=CustomerRead)
def restore_customer(
    customer_id: uuid.UUID,
    db: Session = Depends(get_db),
    ctx: ActorContext = Depends(get_actor_context),
) -> CustomerRead:
    return customer_service.restore_customer(db, ctx, customer_id)


@customers_router.get("/{customer_id}", response_model=CustomerRead)
def get_customer(customer_id: uuid.UUID, db: Session = Depends(get_db)) -> CustomerRead:
    return customer_service.get_customer(db, customer_id)


@customers_router.put("/{customer_id}", response_model=CustomerRead)
def update_customer(
    customer_id: uuid.UUID,
    dto: CustomerUpdate,
    db: Session = Depends(get_db),
    ctx: ActorContext = Depends(get_actor_context),
) -> CustomerRead:
    return customer_service.update_customer(db, ctx, customer_id, dto)


@customers_router.put("/{customer_id}/password", response_model=CustomerRead)
def set_customer_password(
    customer_id: uuid.UUID,
    dto: PasswordSet,
    db: Session = Depends(get_db),
    ctx: ActorContext = Depends(get_actor_context),
) -> CustomerRead:
    return customer_service.set_password(db, ctx, customer_id, dto)


@customers_router.put("/{customer_id}/register", response_model=CustomerRead)
def register_customer(
    customer_id: uuid.UUID,
    dto: CustomerRegister,
    db: Session = Depends(get_db),
    ctx: ActorContext = Depends(get_actor_context),
) -> CustomerRead:
    return customer_service.register_customer(db, ctx, customer_id, dto)


@customers_router.delete("/{customer_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_customer(
    customer_id: uuid.UUID,
    db: Session = Depends(get_db),
    ctx: ActorContext = Depends(get_actor_context),
) -> Response:
    customer_service.delete_customer(db, ctx, customer_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@employees_router.post("", response_model=EmployeeRead, status_code=status.HTTP_201_CREATED)
def create_employee(
    dto: EmployeeCreate,
    db: Session = Depends(get_db),
    ctx: ActorContext = Depends(get_actor_context),
) -> EmployeeRead:
    return employee_service.create_employee(db, ctx, dto)


@employees_router.get("", response_model=list[EmployeeRead])
def list_employees(db: Session = Depends(get_db)) -> list[EmployeeRead]:
    return employee_service.list_employees(db)


@employees_router.get("/by-email", response_model=EmployeeRead)
def get_employee_by_email(email: str = Query(min_length=3), db: Session = Depends(get_db)) -> EmployeeRead:
    return employee_service.get_employee_by_email(db, email)


@employees_router.get("/{employee_id}", response_model=EmployeeRead)
def get_employee(employee_id: uuid.UUID, db: Session = Depends(get_db)) -> EmployeeRead:
    return employee_service.get_employee(db, employee_id)


@employees_router.put("/{employee_id}", response_model=EmployeeRead)
def update_employee(
    employee_id: uuid.UUID,
    dto: EmployeeUpdate,
    db: Session = Depends(get_db),
    ctx: ActorContext = Depends(get_actor_context),
) -> EmployeeRead:
    return employee_service.update_employee(db, ctx, employee_id, dto)


@employees_router.put("/{employee_id}/password", response_model=EmployeeRead)
def set_employee_password(
    employee_id: uuid.UUID,
    dto: PasswordSet,
    db: Session = Depends(get_db),
    ctx: ActorContext = Depends(get_actor_context),
) -> EmployeeRead:
    return employee_service.set_password(db, ctx, employee_id, dto)


@leads_router.post("", response_model=LeadRead, status_code=status.HTTP_201_CREATED)
def create_lead(
    dto: LeadCreate,
    db: Session = Depends(get_db),
    ctx: ActorContext = Depends(get_actor_context),
) -> LeadRead:
    return lead_service.create_lead(db, ctx, dto)


@leads_router.get("", response_model=list[LeadRead])
def list_leads(
    employee_id: uuid.UUID | None = Query(default=None),
    customer_id: uuid.UUID | None = Query(default=None),
    db: Session = Depends(get_db),
) -> list[LeadRead]:
    if employee_id is not None:
        return lead_service.list_leads_by_employee(db, employee_id)
    if customer_id is not None:
        return lead_service.list_leads_by_customer(db, customer_id)
    return lead_service.list_leads(db)


@leads_router.get("/deleted", response_model=list[LeadRead])
def list_deleted_leads(db: Session = Depends(get_db)) -> list[LeadRead]:
    return lead_service.list_deleted_leads(db)


@leads_router.put("/restore/{lead_id}", response_model=LeadRead)
def restore_lead(
    lead_id: uuid.UUID,
    db: Session = Depends(get_db),
    ctx: ActorContext = Depends(get_actor_context),
) -> LeadRead:
    return lead_service.restore_lead(db, ctx, lead_id)


@leads_router.delete("/delete-permanent/{lead_id}", status_code=status.HTTP_204_NO_CONTENT)
def permanently_delete_lead(
    lead_id: uuid.UUID,
    db: Session = Depends(get_db),
    ctx: ActorContext = Depends(get_actor_context),
) -> Response:
    lead_service.permanently_delete_lead(db, ctx, lead_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@leads_router.get("/{lead_id}", response_model=LeadRead)
def get_lead(lead_id: uuid.UUID, db: Session = Depends(get_db)) -> LeadRead:
    return lead_service.get_lead(db, lead_id)


@leads_router.put("/{lead_id}", response_model=LeadRead)
def update_lead(
    lead_id: uuid.UUID,
    dto: LeadUpdate,
    db: Session = Depends(get_db),
    ctx: ActorContext = Depends(get_actor_context),
) -> LeadRead:
    return lead_service.update_lead(db, ctx, lead_id, dto)


@leads_router.delete("/{lead_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_lead(
    lead_id: uuid.UUID,
    db: Session = Depends(get_db),
    ctx: ActorContext = Depends(get_actor_context),
) -> Response:
    lead_service.delete_lead(db, ctx, lead_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@opportunities_router.post("", response_model=OpportunityRead, status_code=status.HTTP_201_CREATED)
def create_opportunity(
    dto: OpportunityCreate,
    db: Session = Depends(get_db),
    ctx: ActorContext = Depends(get_actor_context),
) -> OpportunityRead:
    return pipeline_service.create_opportunity_from_lead(db, ctx, dto.lead_id)


@opportunities_router.get("", response_model=list[OpportunityRead])
def list_opportunities(
    stage: OpportunityStage | None = Query(default=None),
    employee_id: uuid.UUID | None = Query(default=None),
    customer_id: uuid.UUID | None = Query(default=None),
    db: Session = Depends(get_db),
) -> list[OpportunityRead]:
    if stage is not None:
        return opportunity_service.list_opportunities_by_stage(db, stage)
    if employee_id is not None:
        return opportunity_service.list_opportunities_by_employee(db, employee_id)
    if customer_id is not None:
        return opportunity_service.list_opportunities_by_customer(db, customer_id)
    return opportunity_service.list_opportunities(db)


@opportunities_router.get("/deleted", response_model=list[OpportunityRead])
def list_deleted_opportunities(db: Session = Depends(get_db)) -> list[OpportunityRead]:
    return opportunity_service.list_deleted_opportunities(db)


@opportunities_router.put("/restore/{opportunity_id}", response_model=OpportunityRead)
def restore_opportunity(
    opportunity_id: uuid.UUID,
    db: Session = Depends(get_db),
    ctx: ActorContext = Depends(get_actor_context),
) -> OpportunityRead:
    return opportunity_service.restore_opportunity(db, ctx, opportunity_id)


@opportunities_router.delete("/delete-permanent/{opportunity_id}", status_code=status.HTTP_204_NO_CONTENT)
def permanently_delete_opportunity(
    opportunity_id: uuid.UUID,
    db: Session = Depends(get_db),
    ctx: ActorContext = Depends(get_actor_context),
) -> Response:
    pipeline_service.permanently_delete_opportunity(db, ctx, opportunity_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@opportunities_router.get("/{opportunity_id}", response_model=OpportunityRead)
def get_opportunity(opportunity_id: uuid.UUID, db: Session = Depends(get_db)) -> OpportunityRead:
    return opportunity_service.get_opportunity(db, opportunity_id)


@opportunities_router.put("/{opportunity_id}/stage", response_model=OpportunityRead)
def update_opportunity_stage(
    opportunity_id: uuid.UUID,
    dto: OpportunityStageUpdate,
    db: Session = Depends(get_db),
    ctx: ActorContext = Depends(get_actor_context),
) -> OpportunityRead:
    return opportunity_service.update_stage(db, ctx, opportunity_id, dto.stage)


@opportunities_router.delete("/{opportunity_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_opportunity(
    opportunity_id: uuid.UUID,
    db: Session = Depends(get_db),
    ctx: ActorContext = Depends(get_actor_context),
) -> Response:
    opportunity_service.delete_opportunity(db, ctx, opportunity_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@tickets_router.post("", response_model=TicketRead, status_code=status.HTTP_201_CREATED)
def create_ticket(
    dto: TicketCreate,
    db: Session = Depends(get_db),
    ctx: ActorContext = Depends(get_actor_context),
) -> TicketRead:
    return ticket_service.create_ticket(db, ctx, dto)


@tickets_router.get("", response_model=list[TicketRead])
def list_tickets(
    ticket_status: TicketStatus | None = Query(default=None, alias="status"),
    customer_id: uuid.UUID | None = Query(default=None),
    customer_email: str | None = Query(default=None),
    employee_id: uuid.UUID | None = Query(default=None),
    employee_email: str | None = Query(default=None),
    db: Session = Depends(get_db),
) -> list[TicketRead]:
    if customer_id is not None:
        return ticket_service.list_tickets_by_customer(db, customer_id)
    if customer_email:
        return ticket_service.list_tickets_by_customer_email(db, customer_email)
    if employee_id is not None:
        return ticket_service.list_tickets_by_employee(db, employee_id)
    if employee_email:
        return ticket_service.list_tickets_by_employee_email(db, employee_email)
    return ticket_service.list_tickets(db, status=ticket_status)


@tickets_router.get("/{ticket_id}", response_model=TicketRead)
def get_ticket(ticket_id: uuid.UUID, db: Session = Depends(get_db)) -> TicketRead:
    return ticket_service.get_ticket(db, ticket_id)


@tickets_router.put("/{ticket_id}", response_model=TicketRead)
def update_ticket(
    ticket_id: uuid.UUID,
    dto: TicketUpdate,
    db: Session = Depends(get_db),
    ctx: ActorContext = Depends(get_actor_context),
) -> TicketRead:
    return ticket_service.update_ticket(db, ctx, ticket_id, dto)


@tickets_router.put("/{ticket_id}/assign", response_model=TicketRead)
def assign_ticket(
    ticket_id: uuid.UUID,
    dto: TicketAssign,
    db: Session = Depends(get_db),
    ctx: ActorContext = Depends(get_actor_context),
) -> TicketRead:
    return ticket_service.assign_ticket(db, ctx, ticket_id, dto)


@tickets_router.put("/{ticket_id}/resolve", response_model=TicketRead)
def resolve_ticket(
    ticket_id: uuid.UUID,
    db: Session = Depends(get_db),
    ctx: ActorContext = Depends(get_actor_context),
) -> TicketRead:
    return ticket_service.resolve_ticket(db, ctx, ticket_id)


@tickets_router.put("/{ticket_id}/confirm", response_model=TicketRead)
def confirm_ticket(
    ticket_id: uuid.UUID,
    db: Session = Depends(get_db),
    ctx: ActorContext = Depends(get_actor_context),
) -> TicketRead:
    return ticket_service.approve_ticket(db, ctx, ticket_id)


@tickets_router.put("/{ticket_id}/deny", response_model=TicketRead)
def deny_ticket(
    ticket_id: uuid.UUID,
    db: Session = Depends(get_db),
    ctx: ActorContext = Depends(get_actor_context),
) -> TicketRead:
    return ticket_service.deny_ticket(db, ctx, ticket_id)


@tickets_router.delete("/{ticket_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_ticket(
    ticket_id: uuid.UUID,
    db: Session = Depends(get_db),
    ctx: ActorContext = Depends(get_actor_context),
) -> Response:
    ticket_service.delete_ticket(db, ctx, ticket_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
