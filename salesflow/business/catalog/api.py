from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.orm import Session

from salesflow.business.catalog.schemas import ProductCreate, ProductRead, ProductUpdate
from salesflow.business.catalog.service import catalog_service
from salesflow.core.context import ActorContext, get_actor_context
from salesflow.core.database import get_db

router = APIRouter(prefix="/api/products", tags=["catalog.products"])


@router.post("", response_model=ProductRead, status_code=status.HTTP_201_CREATED)
def create_product(
    dto: ProductCreate,
    db: Session = Depends(get_db),
    ctx: ActorContext = Depends(get_actor_context),
) -> ProductRead:
    return catalog_service.create_product(db, ctx, dto)


@router.get("", response_model=list[ProductRead])
def list_products(
    category: str | None = Query(default=None),
    name: str | None = Query(default=None, min_length=1),
    db: Session = Depends(get_db),
) -> list[ProductRead]:
    if name is not None:
        return [ProductRead.model_validate(row) for row in catalog_service.find_products(db, name)]
    return catalog_service.list_products(db, category=category)


@router.get("/{product_id}", response_model=ProductRead)
def get_product(product_id: uuid.UUID, db: Session = Depends(get_db)) -> ProductRead:
    return catalog_service.get_product(db, product_id)


@router.put("/{product_id}", response_model=ProductRead)
def update_product(
    product_id: uuid.UUID,
    dto: ProductUpdate,
    db: Session = Depends(get_db),
    ctx: ActorContext = Depends(get_actor_context),
) -> ProductRead:
    return catalog_service.update_product(db, ctx, product_id, dto)


@router.delete("/{product_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_product(
    product_id: uuid.UUID,
    db: Session = Depends(get_db),
    ctx: ActorContext = Depends(get_actor_context),
) -> Response:
    catalog_service.delete_product(db, ctx, product_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
