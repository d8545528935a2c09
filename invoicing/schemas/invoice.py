"""Invoice request schemas."""
from datetime import date, datetime
from decimal import Decimal
from typing import List, Literal, Optional

from pydantic import Field, field_validator, model_validator

from invoicing.schemas.base import RequestSchema, reject_null


class InvoiceItemIn(RequestSchema):
    description: str = Field(..., min_length=1, max_length=500)
    quantity: Decimal = Field(..., gt=0)
    unit_price: Decimal = Field(..., ge=0)


class InvoiceCreate(RequestSchema):
    customer_id: int
    invoice_number: Optional[str] = Field(None, min_length=1, max_length=50)
    issue_date: Optional[date] = None
    due_date: Optional[date] = None
    template_id: Optional[int] = None
    currency: Optional[str] = Field(None, min_length=3, max_length=3)
    notes: Optional[str] = None
    terms: Optional[str] = None
    # None applies the tenant's default tax, [] applies none
    tax_ids: Optional[List[int]] = None
    items: List[InvoiceItemIn]

    @field_validator("items")
    @classmethod
    def at_least_one_item(cls, v):
        if not v:
            raise ValueError("At least one line item is required")
        return v

    @model_validator(mode="after")
    def due_after_issue(self):
        if self.issue_date and self.due_date and self.due_date < self.issue_date:
            raise ValueError("Due date cannot be before the issue date")
        return self


class InvoiceUpdate(RequestSchema):
    customer_id: Optional[int] = None
    invoice_number: Optional[str] = Field(None, min_length=1, max_length=50)
    issue_date: Optional[date] = None
    due_date: Optional[date] = None
    template_id: Optional[int] = None
    currency: Optional[str] = Field(None, min_length=3, max_length=3)
    notes: Optional[str] = None
    terms: Optional[str] = None
    tax_ids: Optional[List[int]] = None
    items: Optional[List[InvoiceItemIn]] = None

    check_not_null = reject_null('customer_id', 'invoice_number', 'issue_date', 'currency', 'items')

    @field_validator("items")
    @classmethod
    def at_least_one_item(cls, v):
        if v is not None and not v:
            raise ValueError("At least one line item is required")
        return v


class SendInvoiceRequest(RequestSchema):
    method: Literal['email', 'sms'] = 'email'
    to: Optional[str] = Field(None, min_length=3, max_length=255)
    subject: Optional[str] = Field(None, max_length=200)
    message: Optional[str] = None


class MarkPaidRequest(RequestSchema):
    # Defaults to the full balance due
    amount: Optional[Decimal] = Field(None, gt=0)
    payment_method: str = Field('manual', min_length=1, max_length=30)
    reference: Optional[str] = Field(None, max_length=100)
    notes: Optional[str] = None
    paid_at: Optional[datetime] = None
