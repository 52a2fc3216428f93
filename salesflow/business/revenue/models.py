from __future__ import annotations

import uuid
from datetime import date, datetime, timezone
from decimal import Decimal

from sqlalchemy import Date, DateTime, ForeignKey, Index, Integer, Numeric, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from salesflow.core.database import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Quotation(Base):
    __tablename__ = "revenue_quotation"

    id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    opportunity_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("crm_opportunity.id"),
        nullable=True,
        unique=True,
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    total: Mapped[Decimal] = mapped_column(Numeric(18, 6), nullable=False, default=Decimal("0"), server_default="0")
    valid_until: Mapped[date] = mapped_column(Date(), nullable=False)
    stage: Mapped[str] = mapped_column(String(16), nullable=False, default="DRAFT", server_default="DRAFT")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    items: Mapped[list[QuotationItem]] = relationship(
        "salesflow.business.revenue.models.QuotationItem",
        back_populates="quotation",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="QuotationItem.position",
    )

    __table_args__ = (Index("ix_revenue_quotation_stage", "stage"),)


class QuotationItem(Base):
    __tablename__ = "revenue_quotation_item"

    id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    quotation_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("revenue_quotation.id", ondelete="CASCADE"),
        nullable=False,
    )
    product_id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), ForeignKey("catalog_product.id"), nullable=False)
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    unit_price: Mapped[Decimal] = mapped_column(Numeric(18, 6), nullable=False)
    discount: Mapped[Decimal] = mapped_column(Numeric(9, 6), nullable=False, default=Decimal("0"), server_default="0")
    line_total: Mapped[Decimal] = mapped_column(Numeric(18, 6), nullable=False)

    quotation: Mapped[Quotation] = relationship(
        "salesflow.business.revenue.models.Quotation",
        back_populates="items",
    )

    __table_args__ = (Index("ix_revenue_quotation_item_quotation_id", "quotation_id"),)
