from __future__ import annotations

import uuid
from dataclasses import dataclass
from decimal import Decimal

from sqlalchemy import exists, select
from sqlalchemy.orm import Session

from salesflow import audit
from salesflow.business.catalog.models import Product
from salesflow.business.catalog.repository import ProductRepository
from salesflow.business.catalog.schemas import ProductCreate, ProductRead, ProductUpdate
from salesflow.business.revenue.models import QuotationItem
from salesflow.core.context import ActorContext
from salesflow.core.database import transaction
from salesflow.core.errors import AmbiguousMatchError, DependencyUnresolvedError, DependentRecordsError


@dataclass(slots=True)
class CatalogService:
    product_repository: ProductRepository = ProductRepository()

    def create_product(self, session: Session, ctx: ActorContext, payload: ProductCreate) -> ProductRead:
        data = payload.model_dump(mode="python")
        data["price"] = self._q(data["price"])
        with transaction(session):
            product = Product(**data)
            session.add(product)
        session.refresh(product)
        audit.record(ctx.user_id, "product", str(product.id), "create", None, self._to_product_read(product).model_dump(mode="json"))
        return self._to_product_read(product)

    def update_product(self, session: Session, ctx: ActorContext, product_id: uuid.UUID, payload: ProductUpdate) -> ProductRead:
        changes = payload.model_dump(mode="python", exclude_unset=True)
        if changes.get("price") is not None:
            changes["price"] = self._q(changes["price"])
        with transaction(session):
            product = self.product_repository.get(session, product_id, lock=True)
            before = self._to_product_read(product).model_dump(mode="json")
            for key, value in changes.items():
                setattr(product, key, value)
        session.refresh(product)
        after = self._to_product_read(product)
        audit.record(ctx.user_id, "product", str(product.id), "update", before, after.model_dump(mode="json"))
        return after

    def get_product(self, session: Session, product_id: uuid.UUID) -> ProductRead:
        return self._to_product_read(self.product_repository.get(session, product_id))

    def list_products(self, session: Session, *, category: str | None = None) -> list[ProductRead]:
        criteria = [] if category is None else [Product.category == category]
        return [self._to_product_read(row) for row in self.product_repository.list(session, *criteria)]

    def delete_product(self, session: Session, ctx: ActorContext, product_id: uuid.UUID) -> None:
        with transaction(session):
            product = self.product_repository.get(session, product_id, lock=True)
            in_use = session.scalar(select(exists().where(QuotationItem.product_id == product.id)))
            if in_use:
                raise DependentRecordsError("product", product.id, "quotation items")
            session.delete(product)
        audit.record(ctx.user_id, "product", str(product_id), "delete", None, None)

    def find_products(self, session: Session, name: str) -> list[Product]:
        """Every product whose name contains ``name``, case-insensitively."""
        return list(self.product_repository.search_by_name(session, name))

    def resolve_product(self, session: Session, *, product_id: uuid.UUID | None = None, name: str | None = None) -> Product:
        if product_id is not None:
            product = self.product_repository.find(session, product_id)
            if product is None:
                raise DependencyUnresolvedError("product", product_id)
            return product

        reference = (name or "").strip()
        if not reference:
            raise DependencyUnresolvedError("product", name)
        matches = self.find_products(session, reference)
        if not matches:
            raise DependencyUnresolvedError("product", reference)
        if len(matches) == 1:
            return matches[0]

        exact = [product for product in matches if product.name.lower() == reference.lower()]
        if len(exact) == 1:
            return exact[0]
        raise AmbiguousMatchError("product", reference, [product.name for product in matches])

    @staticmethod
    def _q(value: Decimal) -> Decimal:
        return Decimal(value).quantize(Decimal("0.000001"))

    @staticmethod
    def _to_product_read(product: Product) -> ProductRead:
        return ProductRead.model_validate(product)


catalog_service = CatalogService()
