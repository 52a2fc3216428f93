from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.orm import Session

from salesflow.business.billing.schemas import InvoiceCreate, InvoiceRead, InvoiceStatusUpdate
from salesflow.business.billing.service import billing_service
from salesflow.core.context import ActorContext, get_actor_context
from salesflow.core.database import get_db
from salesflow.pipeline.service import pipeline_service

router = APIRouter(prefix="/api/invoices", tags=["billing.invoices"])


@router.post("", response_model=InvoiceRead, status_code=status.HTTP_201_CREATED)
def create_invoice(
    dto: InvoiceCreate,
    db: Session = Depends(get_db),
    ctx: ActorContext = Depends(get_actor_context),
) -> InvoiceRead:
    return billing_service.create_invoice(db, ctx, dto)


@router.post("/from-quotation/{quotation_id}", response_model=InvoiceRead, status_code=status.HTTP_201_CREATED)
def generate_invoice_from_quotation(
    quotation_id: uuid.UUID,
    db: Session = Depends(get_db),
    ctx: ActorContext = Depends(get_actor_context),
) -> InvoiceRead:
    return pipeline_service.generate_invoice_from_quotation(db, ctx, quotation_id)


@router.get("", response_model=list[InvoiceRead])
def list_invoices(
    customer_id: uuid.UUID | None = Query(default=None),
    customer_email: str | None = Query(default=None),
    db: Session = Depends(get_db),
) -> list[InvoiceRead]:
    if customer_id is not None:
        return billing_service.list_invoices_by_customer(db, customer_id)
    if customer_email:
        return billing_service.list_invoices_by_customer_email(db, customer_email)
    return billing_service.list_invoices(db)


@router.get("/{invoice_id}", response_model=InvoiceRead)
def get_invoice(invoice_id: uuid.UUID, db: Session = Depends(get_db)) -> InvoiceRead:
    return billing_service.get_invoice(db, invoice_id)


@router.put("/{invoice_id}/status", response_model=InvoiceRead)
def update_invoice_status(
    invoice_id: uuid.UUID,
    dto: InvoiceStatusUpdate,
    db: Session = Depends(get_db),
    ctx: ActorContext = Depends(get_actor_context),
) -> InvoiceRead:
    return billing_service.update_status(db, ctx, invoice_id, dto.status)


@router.post("/{invoice_id}/regenerate", response_model=InvoiceRead)
def regenerate_invoice(
    invoice_id: uuid.UUID,
    db: Session = Depends(get_db),
    ctx: ActorContext = Depends(get_actor_context),
) -> InvoiceRead:
    return billing_service.regenerate_invoice_snapshot(db, ctx, invoice_id)


@router.delete("/{invoice_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_invoice(
    invoice_id: uuid.UUID,
    db: Session = Depends(get_db),
    ctx: ActorContext = Depends(get_actor_context),
) -> Response:
    billing_service.delete_invoice(db, ctx, invoice_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
