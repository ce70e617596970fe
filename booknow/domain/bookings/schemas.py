"""Booking domain schemas - Pydantic models for validation"""

from datetime import date, datetime, time
from typing import Any, Optional

from pydantic import BaseModel, field_validator

from ...models import BOOKING_STATUSES, PAYMENT_STATUSES


class BookingCreate(BaseModel):
    """
    Public booking request. Date, time and email arrive as plain strings so
    the service can answer with a specific error code for each.
    """

    consultation_type_id: int
    customer_name: str
    customer_email: str
    customer_phone: Optional[str] = None
    notes: Optional[str] = None
    booking_date: str
    booking_time: str
    timezone: Optional[str] = None


class BookingCancelRequest(BaseModel):
    customer_email: str


class BookingUpdate(BaseModel):
    """Admin update. Only provided fields change."""

    status: Optional[str] = None
    payment_status: Optional[str] = None
    admin_notes: Optional[str] = None

    @field_validator("status")
    @classmethod
    def validate_status(cls, v):
        if v is not None and v not in BOOKING_STATUSES:
            raise ValueError(f"Status must be one of: {', '.join(BOOKING_STATUSES)}")
        return v

    @field_validator("payment_status")
    @classmethod
    def validate_payment_status(cls, v):
        if v is not None and v not in PAYMENT_STATUSES:
            raise ValueError(f"Payment status must be one of: {', '.join(PAYMENT_STATUSES)}")
        return v


class RefundRequest(BaseModel):
    amount: Optional[float] = None

    @field_validator("amount")
    @classmethod
    def validate_amount(cls, v):
        if v is not None and v <= 0:
            raise ValueError("Refund amount must be greater than zero")
        return v


class BookingResponse(BaseModel):
    id: int
    reference_number: str
    consultation_type_id: int
    customer_name: str
    customer_email: str
    customer_phone: Optional[str] = None
    customer_notes: Optional[str] = None
    booking_date: date
    booking_time: time
    duration: int
    timezone: Optional[str] = None
    status: str
    payment_status: str
    payment_amount: float = 0
    deposit_amount: float = 0
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class AdminBookingResponse(BookingResponse):
    payment_intent_id: Optional[str] = None
    payment_date: Optional[datetime] = None
    google_event_id: Optional[str] = None
    microsoft_event_id: Optional[str] = None
    reminder_sent: bool = False
    reminder_sent_at: Optional[datetime] = None
    admin_notes: Optional[str] = None
    updated_at: Optional[datetime] = None


class PaymentIntentInfo(BaseModel):
    id: Optional[str] = None
    client_secret: Optional[str] = None
    amount: Optional[float] = None
    currency: Optional[str] = None
    error: Optional[str] = None


class BookingCreateResponse(BaseModel):
    success: bool
    booking: BookingResponse
    message: str
    needs_payment: bool = False
    payment_intent: Optional[PaymentIntentInfo] = None


class BookingListResponse(BaseModel):
    bookings: list[AdminBookingResponse]
    total: int
    limit: int
    offset: int


class BookingActionResponse(BaseModel):
    success: bool
    message: str
    details: Optional[dict[str, Any]] = None
