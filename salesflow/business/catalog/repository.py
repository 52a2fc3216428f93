from __future__ import annotations

from collections.abc import Sequence

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from salesflow.business.catalog.models import Product
from salesflow.platform.lifecycle import Repository


class ProductRepository(Repository[Product]):
    model = Product
    entity = "product"

    def search_by_name(self, session: Session, fragment: str) -> Sequence[Product]:
        pattern = f"%{fragment.strip().lower()}%"
        stmt = select(Product).where(func.lower(Product.name).like(pattern)).order_by(Product.name, Product.id)
        return session.scalars(stmt).all()
