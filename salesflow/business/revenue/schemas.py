from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, model_validator


QuotationStage = Literal["DRAFT", "SENT", "ACCEPTED", "REJECTED", "CONVERTED"]


class QuotationItemInput(BaseModel):
    product_id: UUID | None = None
    product_name: str | None = Field(default=None, min_length=1)
    quantity: int = 1
    discount: Decimal = Decimal("0")

    @model_validator(mode="after")
    def _require_product(self) -> QuotationItemInput:
        if self.product_id is None and self.product_name is None:
            raise ValueError("product_id or product_name is required")
        return self


class QuotationCreate(BaseModel):
    opportunity_id: UUID
    title: str = Field(min_length=1, max_length=255)
    description: str | None = None
    valid_until: date | None = None
    items: list[QuotationItemInput] = Field(default_factory=list)


class QuotationUpdate(BaseModel):
    title: str | None = Field(default=None, min_length=1, max_length=255)
    description: str | None = None
    valid_until: date | None = None
    items: list[QuotationItemInput] | None = None


class QuotationItemRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    product_id: UUID
    position: int
    quantity: int
    unit_price: Decimal | str
    discount: Decimal | str
    line_total: Decimal | str


class QuotationRead(BaseModel):
    id: UUID
    opportunity_id: UUID | None
    title: str
    description: str | None
    total: Decimal | str
    valid_until: date
    stage: QuotationStage | str
    created_at: datetime
    updated_at: datetime
    items: list[QuotationItemRead] = Field(default_factory=list)
