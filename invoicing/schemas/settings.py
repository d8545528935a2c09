"""Schemas for taxes, customers, tenant settings and tenant administration."""
from decimal import Decimal
from typing import Literal, Optional

from pydantic import EmailStr, Field, field_validator

from invoicing.schemas.base import RequestSchema, reject_null


class TaxCreate(RequestSchema):
    name: str = Field(..., min_length=2, max_length=100)
    rate: Decimal = Field(..., ge=0, le=100)
    description: Optional[str] = None
    is_default: bool = False


class TaxUpdate(RequestSchema):
    name: Optional[str] = Field(None, min_length=2, max_length=100)
    rate: Optional[Decimal] = Field(None, ge=0, le=100)
    description: Optional[str] = None
    is_default: Optional[bool] = None

    check_not_null = reject_null('name', 'rate', 'is_default')


class CustomerCreate(RequestSchema):
    name: str = Field(..., min_length=1, max_length=200)
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(None, max_length=50)
    company: Optional[str] = Field(None, max_length=200)
    address: Optional[str] = None
    city: Optional[str] = Field(None, max_length=100)
    state: Optional[str] = Field(None, max_length=100)
    country: Optional[str] = Field(None, max_length=100)
    postal_code: Optional[str] = Field(None, max_length=20)
    notes: Optional[str] = None


class CustomerUpdate(CustomerCreate):
    name: Optional[str] = Field(None, min_length=1, max_length=200)

    check_not_null = reject_null('name')


class SettingsUpdate(RequestSchema):
    company_name: Optional[str] = Field(None, min_length=2, max_length=200)
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(None, max_length=50)
    address: Optional[str] = None
    currency: Optional[str] = Field(None, min_length=3, max_length=3)

    check_not_null = reject_null('company_name', 'currency')

    @field_validator("currency")
    @classmethod
    def upper_currency(cls, v):
        return v.upper() if v else v


class TemplateSelect(RequestSchema):
    template_id: int


class TenantStatusUpdate(RequestSchema):
    status: Literal['ACTIVE', 'SUSPENDED', 'DELETED']
    reason: Optional[str] = Field(None, max_length=500)
