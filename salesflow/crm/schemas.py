from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field, model_validator


ActivityStatus = Literal["ACTIVE", "ARCHIVED", "DELETED"]
CustomerType = Literal["NEW", "EXISTING"]
LeadSource = Literal[
    "WEBSITE",
    "INTERNET",
    "REFERRAL",
    "BROCHURE",
    "ADVERTISEMENT",
    "EMAIL",
    "PHONE",
    "EVENT",
    "OTHER",
    "UNKNOWN",
]
LeadType = Literal["INDIVIDUAL", "COMPANY"]
LeadStage = Literal["NEW", "CONTACTED", "WON", "LOST", "CANCELED"]
OpportunityStage = Literal["NEW", "WON", "LOST", "CANCELED"]
TicketStatus = Literal["NEW", "IN_PROGRESS", "RESOLVED", "CLOSED"]

PHONE_PATTERN = r"^(\+?\d{2})?[0-9]{10}$"


class CustomerCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    email: EmailStr | None = None
    phone_number: str | None = Field(default=None, pattern=PHONE_PATTERN)
    address: str | None = Field(default=None, max_length=255)
    city: str | None = Field(default=None, max_length=128)
    state: str | None = Field(default=None, max_length=128)
    zip_code: str | None = Field(default=None, max_length=32)
    country: str | None = Field(default=None, max_length=128)
    website: str | None = Field(default=None, max_length=255)
    type: CustomerType = "NEW"


class CustomerUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=255)
    email: EmailStr | None = None
    phone_number: str | None = Field(default=None, pattern=PHONE_PATTERN)
    address: str | None = Field(default=None, max_length=255)
    city: str | None = Field(default=None, max_length=128)
    state: str | None = Field(default=None, max_length=128)
    zip_code: str | None = Field(default=None, max_length=32)
    country: str | None = Field(default=None, max_length=128)
    website: str | None = Field(default=None, max_length=255)


class CustomerRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    email: str | None
    phone_number: str | None
    address: str | None
    city: str | None
    state: str | None
    zip_code: str | None
    country: str | None
    website: str | None
    has_password: bool
    type: CustomerType | str
    status: ActivityStatus | str
    created_at: datetime
    updated_at: datetime


class PasswordSet(BaseModel):
    password: str = Field(min_length=8, max_length=72)
    send_email: bool = True


class CustomerRegister(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=255)
    password: str = Field(min_length=8, max_length=72)
    phone_number: str | None = Field(default=None, pattern=PHONE_PATTERN)
    address: str | None = Field(default=None, max_length=255)
    city: str | None = Field(default=None, max_length=128)
    state: str | None = Field(default=None, max_length=128)
    zip_code: str | None = Field(default=None, max_length=32)
    country: str | None = Field(default=None, max_length=128)


class EmployeeCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    email: EmailStr
    phone_number: str | None = Field(default=None, pattern=PHONE_PATTERN)
    password: str | None = Field(default=None, min_length=8, max_length=72)


class EmployeeUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=255)
    email: EmailStr | None = None
    phone_number: str | None = Field(default=None, pattern=PHONE_PATTERN)


class EmployeeRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    email: str
    phone_number: str | None
    created_at: datetime
    updated_at: datetime


class LeadCreate(BaseModel):
    requirement: str = Field(min_length=1)
    expected_revenue: Decimal = Decimal("0")
    probability: int = 0
    source: LeadSource = "UNKNOWN"
    lead_type: LeadType = "INDIVIDUAL"
    stage: LeadStage = "NEW"
    employee_id: UUID | None = None
    assigned_to: str | None = Field(default=None, description="Employee name, used when employee_id is absent")
    customer_id: UUID | None = None
    customer: CustomerCreate | None = None

    @model_validator(mode="after")
    def _require_references(self) -> LeadCreate:
        if self.employee_id is None and not (self.assigned_to and self.assigned_to.strip()):
            raise ValueError("employee_id or assigned_to is required")
        if self.customer_id is None and self.customer is None:
            raise ValueError("customer_id or customer is required")
        return self


class LeadUpdate(BaseModel):
    requirement: str | None = Field(default=None, min_length=1)
    expected_revenue: Decimal | None = None
    probability: int | None = None
    source: LeadSource | None = None
    lead_type: LeadType | None = None
    stage: LeadStage | None = None
    employee_id: UUID | None = None


class LeadRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    requirement: str
    expected_revenue: Decimal | str
    probability: int
    source: LeadSource | str
    lead_type: LeadType | str
    stage: LeadStage | str
    status: ActivityStatus | str
    customer_id: UUID
    employee_id: UUID
    created_at: datetime
    updated_at: datetime


class OpportunityCreate(BaseModel):
    lead_id: UUID


class OpportunityStageUpdate(BaseModel):
    stage: OpportunityStage


class OpportunityRead(BaseModel):
    id: UUID
    lead_id: UUID
    customer_id: UUID
    employee_id: UUID
    quotation_id: UUID | None = None
    stage: OpportunityStage | str
    status: ActivityStatus | str
    created_at: datetime
    updated_at: datetime


class TicketCreate(BaseModel):
    subject: str = Field(min_length=1, max_length=255)
    description: str | None = Field(default=None, max_length=1000)
    customer_id: UUID | None = None
    customer_email: EmailStr | None = None

    @model_validator(mode="after")
    def _require_customer(self) -> TicketCreate:
        if self.customer_id is None and self.customer_email is None:
            raise ValueError("customer_id or customer_email is required")
        return self


class TicketUpdate(BaseModel):
    subject: str | None = Field(default=None, min_length=1, max_length=255)
    description: str | None = Field(default=None, max_length=1000)


class TicketAssign(BaseModel):
    employee_id: UUID | None = None
    employee_email: EmailStr | None = None

    @model_validator(mode="after")
    def _require_employee(self) -> TicketAssign:
        if self.employee_id is None and self.employee_email is None:
            raise ValueError("employee_id or employee_email is required")
        return self


class TicketRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    subject: str
    description: str | None
    status: TicketStatus | str
    customer_id: UUID
    employee_id: UUID | None
    created_at: datetime
    updated_at: datetime
