"""Consultation type schemas - Pydantic models for validation"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, field_validator


def _check_non_negative(v, field_name):
    if v is not None and v < 0:
        raise ValueError(f"{field_name} cannot be negative")
    return v


class ConsultationTypeCreate(BaseModel):
    """Schema for creating a consultation type"""

    name: str
    slug: Optional[str] = None
    description: Optional[str] = None
    duration: int = 30
    price: float = 0
    deposit_amount: float = 0
    deposit_type: str = "fixed"
    require_deposit: bool = False
    category_id: Optional[int] = None
    buffer_before: int = 0
    buffer_after: int = 0
    status: str = "active"

    @field_validator("name")
    @classmethod
    def validate_name(cls, v):
        if not v or not v.strip():
            raise ValueError("Name is required")
        return v.strip()

    @field_validator("duration")
    @classmethod
    def validate_duration(cls, v):
        if v <= 0:
            raise ValueError("Duration must be greater than zero")
        return v

    @field_validator("price", "deposit_amount", "buffer_before", "buffer_after")
    @classmethod
    def validate_non_negative(cls, v, info):
        return _check_non_negative(v, info.field_name)

    @field_validator("deposit_type")
    @classmethod
    def validate_deposit_type(cls, v):
        if v not in ("fixed", "percentage"):
            raise ValueError("Deposit type must be fixed or percentage")
        return v

    @field_validator("status")
    @classmethod
    def validate_status(cls, v):
        if v not in ("active", "inactive"):
            raise ValueError("Status must be active or inactive")
        return v


class ConsultationTypeUpdate(BaseModel):
    """Schema for updating a consultation type. Only provided fields change."""

    name: Optional[str] = None
    slug: Optional[str] = None
    description: Optional[str] = None
    duration: Optional[int] = None
    price: Optional[float] = None
    deposit_amount: Optional[float] = None
    deposit_type: Optional[str] = None
    require_deposit: Optional[bool] = None
    category_id: Optional[int] = None
    buffer_before: Optional[int] = None
    buffer_after: Optional[int] = None
    status: Optional[str] = None

    @field_validator("duration")
    @classmethod
    def validate_duration(cls, v):
        if v is not None and v <= 0:
            raise ValueError("Duration must be greater than zero")
        return v

    @field_validator("price", "deposit_amount", "buffer_before", "buffer_after")
    @classmethod
    def validate_non_negative(cls, v, info):
        return _check_non_negative(v, info.field_name)

    @field_validator("deposit_type")
    @classmethod
    def validate_deposit_type(cls, v):
        if v is not None and v not in ("fixed", "percentage"):
            raise ValueError("Deposit type must be fixed or percentage")
        return v

    @field_validator("status")
    @classmethod
    def validate_status(cls, v):
        if v is not None and v not in ("active", "inactive"):
            raise ValueError("Status must be active or inactive")
        return v


class ConsultationTypeResponse(BaseModel):
    id: int
    name: str
    slug: str
    description: Optional[str] = None
    duration: int
    price: float
    deposit_amount: float = 0
    deposit_type: str = "fixed"
    require_deposit: bool = False
    category_id: Optional[int] = None
    buffer_before: int = 0
    buffer_after: int = 0
    status: str
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
