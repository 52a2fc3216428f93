from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class InvoiceLineInput(BaseModel):
    quantity: int = 1
    unit_price: Decimal
    discount: Decimal = Decimal("0")


class InvoiceCreate(BaseModel):
    customer_id: UUID
    employee_id: UUID | None = None
    opportunity_id: UUID | None = None
    quotation_id: UUID | None = None
    title: str | None = Field(default=None, max_length=255)
    invoice_date: date | None = None
    due_date: date | None = None
    terms: str | None = Field(default=None, max_length=64)
    status: str = Field(default="PENDING", min_length=1, max_length=32)
    lines: list[InvoiceLineInput] = Field(default_factory=list)
    discount: Decimal = Decimal("0")
    tax_rate: Decimal | None = None


class InvoiceStatusUpdate(BaseModel):
    status: str = Field(min_length=1, max_length=32)


class InvoiceRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    invoice_number: str
    status: str
    title: str | None
    invoice_date: date
    due_date: date
    terms: str | None
    subtotal: Decimal | str
    discount: Decimal | str
    tax_rate: Decimal | str
    tax_amount: Decimal | str
    total: Decimal | str
    customer_id: UUID
    employee_id: UUID | None
    opportunity_id: UUID | None
    quotation_id: UUID | None
    created_at: datetime
    updated_at: datetime
