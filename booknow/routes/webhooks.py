"""
Stripe Webhook Handler
Verifies Stripe-Signature, records every event and updates booking payments
"""

import logging
from typing import Optional

import stripe
from fastapi import APIRouter, Depends, Header, Request
from sqlalchemy.orm import Session

from ..database import get_db
from ..domain.bookings.repository import BookingRepository
from ..domain.bookings.service import BookingService
from ..error_logging import log_error
from ..models import Booking, WebhookLog
from ..services import stripe_service
from ..shared.errors import api_error

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhook", tags=["Webhooks"])


def _record_event(db: Session, event, payload: bytes):
    try:
        db.add(
            WebhookLog(
                provider="stripe",
                event_id=event.get("id"),
                event_type=event.get("type"),
                payload=payload.decode("utf-8", errors="replace"),
            )
        )
        db.commit()
    except Exception as e:
        db.rollback()
        logger.warning(f"⚠️ Failed to record webhook event {event.get('id')}: {e}")


def _booking_from_intent(db: Session, payment_intent) -> Optional[Booking]:
    metadata = payment_intent.get("metadata") or {}
    booking_id = metadata.get("booking_id")
    if booking_id:
        try:
            booking = db.query(Booking).filter(Booking.id == int(booking_id)).first()
        except (TypeError, ValueError):
            booking = None
        if booking:
            return booking
    if payment_intent.get("id"):
        return BookingRepository.get_by_payment_intent(db, payment_intent["id"])
    return None


@router.post("/stripe")
async def stripe_webhook(
    request: Request,
    stripe_signature: Optional[str] = Header(None, alias="Stripe-Signature"),
    db: Session = Depends(get_db),
):
    """
    Events handled:
    - payment_intent.succeeded: booking paid and confirmed, confirmation sent
    - payment_intent.payment_failed: payment marked failed
    - charge.refunded: payment marked refunded, refund email sent
    - charge.dispute.created: recorded in the error log for review
    """
    if not stripe_signature:
        raise api_error(400, "missing_signature", "Missing Stripe-Signature header.")

    payload = await request.body()
    try:
        event = stripe_service.construct_event(payload, stripe_signature)
    except ValueError as e:
        logger.error(f"❌ Invalid Stripe webhook payload: {e}")
        raise api_error(400, "invalid_payload", "Invalid webhook payload.") from e
    except stripe.SignatureVerificationError as e:
        logger.warning(f"⚠️ Stripe webhook signature verification failed: {e}")
        raise api_error(400, "invalid_signature", "Invalid webhook signature.") from e

    event_type = event.get("type")
    data_object = event.get("data", {}).get("object", {})
    logger.info(f"💳 Stripe webhook received: {event_type} ({event.get('id')})")
    _record_event(db, event, payload)

    service = BookingService(db)

    if event_type == "payment_intent.succeeded":
        booking = _booking_from_intent(db, data_object)
        if booking:
            await service.mark_paid(booking, data_object.get("id"))
        else:
            logger.warning(f"⚠️ No booking for succeeded PaymentIntent {data_object.get('id')}")

    elif event_type == "payment_intent.payment_failed":
        booking = _booking_from_intent(db, data_object)
        if booking:
            service.mark_payment_failed(booking)

    elif event_type == "charge.refunded":
        booking = None
        if data_object.get("payment_intent"):
            booking = BookingRepository.get_by_payment_intent(db, data_object["payment_intent"])
        if booking:
            amount_refunded = data_object.get("amount_refunded") or 0
            charged = data_object.get("amount")
            if charged and amount_refunded < charged:
                logger.info(
                    f"💳 Partial refund on {booking.reference_number}: "
                    f"{amount_refunded / 100:.2f} of {charged / 100:.2f}, payment stays {booking.payment_status}"
                )
            else:
                await service.mark_refunded(booking, amount_refunded / 100 if amount_refunded else None)

    elif event_type == "charge.dispute.created":
        logger.warning(f"⚠️ Stripe dispute created: {data_object.get('id')}")
        log_error(
            db,
            "WARNING",
            f"Stripe dispute created: {data_object.get('id')}",
            context={
                "dispute_id": data_object.get("id"),
                "charge": data_object.get("charge"),
                "amount": data_object.get("amount"),
                "reason": data_object.get("reason"),
            },
            source="stripe_webhook",
            request=request,
        )

    else:
        logger.info(f"ℹ️ Unhandled Stripe event type: {event_type}")

    return {"received": True, "event_type": event_type}
