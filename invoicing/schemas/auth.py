"""
Account schemas.

Pydantic models for registration, login, onboarding and password reset.
"""
from typing import Optional

from flask import current_app
from pydantic import EmailStr, Field, field_validator

from invoicing.schemas.base import RequestSchema


def password_min_length() -> int:
    """The configured password floor (``PASSWORD_MIN_LENGTH``)."""
    return current_app.config.get('PASSWORD_MIN_LENGTH', 8)


def _check_password(value: str) -> str:
    min_length = password_min_length()
    if len(value) < min_length:
        raise ValueError(f"Password must be at least {min_length} characters")
    return value


class RegisterRequest(RequestSchema):
    email: EmailStr
    password: str = Field(..., max_length=128)
    full_name: str = Field(..., min_length=1, max_length=200)

    @field_validator("password")
    @classmethod
    def validate_password(cls, v):
        return _check_password(v)


class LoginRequest(RequestSchema):
    email: EmailStr
    password: str = Field(..., min_length=1)


class ForgotPasswordRequest(RequestSchema):
    """Schema for password reset request"""

    email: EmailStr = Field(..., description="Account email address")


class ResetPasswordRequest(RequestSchema):
    """Schema for confirming password reset with token"""

    token: str = Field(..., min_length=1, description="Password reset token")
    password: str = Field(..., max_length=128, description="New password")

    @field_validator("password")
    @classmethod
    def validate_password(cls, v):
        return _check_password(v)


class OnboardingRequest(RequestSchema):
    company_name: str = Field(..., min_length=2, max_length=200)
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(None, max_length=50)
    address: Optional[str] = None
    currency: Optional[str] = Field(None, min_length=3, max_length=3)

    @field_validator("currency")
    @classmethod
    def upper_currency(cls, v):
        return v.upper() if v else v
