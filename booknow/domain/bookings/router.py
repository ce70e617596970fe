"""Booking router - FastAPI endpoints for bookings"""

import logging
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...database import get_db
from ...rate_limiter import create_rate_limiter
from ...security import get_current_admin
from .schemas import (
    AdminBookingResponse,
    BookingActionResponse,
    BookingCancelRequest,
    BookingCreate,
    BookingCreateResponse,
    BookingListResponse,
    BookingResponse,
    BookingUpdate,
    RefundRequest,
)
from .service import BookingService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/bookings", tags=["Bookings"])
admin_router = APIRouter(
    prefix="/bookings", tags=["Admin: Bookings"], dependencies=[Depends(get_current_admin)]
)


def get_booking_service(db: Session = Depends(get_db)) -> BookingService:
    """Dependency injection for BookingService"""
    return BookingService(db)


# ============================================================================
# PUBLIC
# ============================================================================


@router.post("", response_model=BookingCreateResponse, status_code=201)
async def create_booking(
    data: BookingCreate,
    service: BookingService = Depends(get_booking_service),
    _: None = Depends(create_rate_limiter("booking_create")),
):
    """
    Book a slot.

    When the consultation type takes payment up front, the response carries
    needs_payment=true and the Stripe client secret for the payment form.
    """
    return await service.create_booking(data)


@router.get("/{reference}", response_model=BookingResponse)
async def get_booking(
    reference: str,
    customer_email: Optional[str] = Query(None),
    service: BookingService = Depends(get_booking_service),
    _: None = Depends(create_rate_limiter("booking_lookup")),
):
    """Look up a booking. The customer email must match the booking."""
    return service.lookup_booking(reference, customer_email)


@router.post("/{reference}/cancel", response_model=BookingActionResponse)
async def cancel_booking(
    reference: str,
    data: BookingCancelRequest,
    service: BookingService = Depends(get_booking_service),
    _: None = Depends(create_rate_limiter("booking_lookup")),
):
    return await service.cancel_booking(reference, data.customer_email)


# ============================================================================
# ADMIN
# ============================================================================


@admin_router.get("", response_model=BookingListResponse)
async def admin_list_bookings(
    status: Optional[str] = Query(None),
    date_from: Optional[date] = Query(None),
    date_to: Optional[date] = Query(None),
    consultation_type: Optional[int] = Query(None),
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
    orderby: str = Query("booking_date"),
    order: str = Query("desc"),
    service: BookingService = Depends(get_booking_service),
):
    return service.list_bookings(
        status=status,
        date_from=date_from,
        date_to=date_to,
        consultation_type_id=consultation_type,
        limit=limit,
        offset=offset,
        order_by=orderby,
        order=order,
    )


@admin_router.get("/stats")
async def admin_booking_stats(service: BookingService = Depends(get_booking_service)):
    return service.get_stats()


@admin_router.get("/{booking_id}", response_model=AdminBookingResponse)
async def admin_get_booking(booking_id: int, service: BookingService = Depends(get_booking_service)):
    return service.get_booking(booking_id)


@admin_router.put("/{booking_id}", response_model=AdminBookingResponse)
async def admin_update_booking(
    booking_id: int,
    data: BookingUpdate,
    service: BookingService = Depends(get_booking_service),
):
    return await service.update_booking(booking_id, data)


@admin_router.delete("/{booking_id}")
async def admin_delete_booking(booking_id: int, service: BookingService = Depends(get_booking_service)):
    return await service.delete_booking(booking_id)


@admin_router.post("/{booking_id}/refund", response_model=BookingActionResponse)
async def admin_refund_booking(
    booking_id: int,
    data: Optional[RefundRequest] = None,
    service: BookingService = Depends(get_booking_service),
):
    """Refund through Stripe, in full unless an amount is given"""
    return await service.refund_booking(booking_id, data.amount if data else None)


__all__ = ["router", "admin_router"]
