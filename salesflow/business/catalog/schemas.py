from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


ProductStatus = Literal["ACTIVE", "INACTIVE"]


class ProductCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    description: str | None = None
    price: Decimal = Field(ge=Decimal("0"))
    category: str | None = Field(default=None, max_length=128)
    status: ProductStatus = "ACTIVE"


class ProductUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=255)
    description: str | None = None
    price: Decimal | None = Field(default=None, ge=Decimal("0"))
    category: str | None = Field(default=None, max_length=128)
    status: ProductStatus | None = None


class ProductRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    description: str | None
    price: Decimal | str
    category: str | None
    status: ProductStatus | str
    created_at: datetime
    updated_at: datetime
