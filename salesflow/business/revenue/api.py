from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from salesflow.business.revenue.schemas import QuotationCreate, QuotationRead, QuotationStage, QuotationUpdate
from salesflow.business.revenue.service import quotation_service
from salesflow.core.context import ActorContext, get_actor_context
from salesflow.core.database import get_db
from salesflow.pipeline.service import pipeline_service

router = APIRouter(prefix="/api/quotations", tags=["revenue.quotations"])


@router.post("", response_model=QuotationRead, status_code=status.HTTP_201_CREATED)
def create_quotation(
    dto: QuotationCreate,
    db: Session = Depends(get_db),
    ctx: ActorContext = Depends(get_actor_context),
) -> QuotationRead:
    return pipeline_service.create_quotation(db, ctx, dto)


@router.get("", response_model=list[QuotationRead])
def list_quotations(
    stage: QuotationStage | None = Query(default=None),
    customer_id: uuid.UUID | None = Query(default=None),
    customer_email: str | None = Query(default=None),
    db: Session = Depends(get_db),
) -> list[QuotationRead]:
    if customer_id is not None:
        return quotation_service.list_quotations_by_customer(db, customer_id)
    if customer_email:
        return quotation_service.list_quotations_by_customer_email(db, customer_email)
    return quotation_service.list_quotations(db, stage=stage)


@router.get("/by-opportunity/{opportunity_id}", response_model=QuotationRead)
def get_quotation_by_opportunity(opportunity_id: uuid.UUID, db: Session = Depends(get_db)) -> QuotationRead:
    return quotation_service.get_quotation_by_opportunity(db, opportunity_id)


@router.get("/{quotation_id}", response_model=QuotationRead)
def get_quotation(quotation_id: uuid.UUID, db: Session = Depends(get_db)) -> QuotationRead:
    return quotation_service.get_quotation(db, quotation_id)


@router.put("/{quotation_id}", response_model=QuotationRead)
def update_quotation(
    quotation_id: uuid.UUID,
    dto: QuotationUpdate,
    db: Session = Depends(get_db),
    ctx: ActorContext = Depends(get_actor_context),
) -> QuotationRead:
    return pipeline_service.update_quotation(db, ctx, quotation_id, dto)


@router.post("/{quotation_id}/send", response_model=QuotationRead)
def send_quotation(
    quotation_id: uuid.UUID,
    db: Session = Depends(get_db),
    ctx: ActorContext = Depends(get_actor_context),
) -> QuotationRead:
    return pipeline_service.send_quotation(db, ctx, quotation_id)


@router.post("/{quotation_id}/accept", response_model=QuotationRead)
def accept_quotation(
    quotation_id: uuid.UUID,
    db: Session = Depends(get_db),
    ctx: ActorContext = Depends(get_actor_context),
) -> QuotationRead:
    return pipeline_service.accept_quotation(db, ctx, quotation_id)


@router.post("/{quotation_id}/reject", response_model=QuotationRead)
def reject_quotation(
    quotation_id: uuid.UUID,
    db: Session = Depends(get_db),
    ctx: ActorContext = Depends(get_actor_context),
) -> QuotationRead:
    return pipeline_service.reject_quotation(db, ctx, quotation_id)
