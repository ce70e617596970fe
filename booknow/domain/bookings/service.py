"""Booking service - Business logic for creating and managing bookings"""

import logging
from datetime import date, datetime
from typing import Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ...config import MAX_BOOKING_ADVANCE_DAYS, MIN_BOOKING_NOTICE_HOURS, PAYMENT_REQUIRED, TIMEZONE
from ...models import TERMINAL_STATUSES, Booking, ConsultationType
from ...scheduling.slots import is_date_bookable
from ...services import calendar_sync, notification_service, stripe_service
from ...shared.errors import SlotUnavailableError, api_error
from ...shared.validators import normalize_time, parse_date, parse_time, validate_email
from ...utils.sanitization import sanitize_phone, sanitize_string, sanitize_text
from ..availability.service import AvailabilityService, business_now
from ..consultation_types.service import calculate_deposit
from .repository import BookingRepository
from .schemas import BookingCreate, BookingUpdate

logger = logging.getLogger(__name__)


def amount_due(consultation_type: ConsultationType) -> float:
    """What the customer pays up front: the deposit when one is required, else the price"""
    if consultation_type.require_deposit:
        deposit = calculate_deposit(consultation_type)
        if deposit > 0:
            return deposit
    return round(float(consultation_type.price or 0), 2)


def needs_payment(consultation_type: ConsultationType) -> bool:
    if not (consultation_type.require_deposit or PAYMENT_REQUIRED):
        return False
    return amount_due(consultation_type) > 0


class BookingService:
    """Service layer for booking business logic"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = BookingRepository()

    # ------------------------------------------------------------------
    # Public
    # ------------------------------------------------------------------

    async def create_booking(self, data: BookingCreate, now: Optional[datetime] = None) -> dict:
        consultation_type = (
            self.db.query(ConsultationType).filter(ConsultationType.id == data.consultation_type_id).first()
        )
        if not consultation_type or consultation_type.status != "active":
            raise api_error(400, "invalid_type", "Invalid consultation type.")

        try:
            email = validate_email(data.customer_email)
        except ValueError:
            email = None
        if not email:
            raise api_error(400, "invalid_email", "Invalid email address.")

        customer_name = sanitize_string(data.customer_name)
        if not customer_name:
            raise api_error(400, "invalid_name", "Customer name is required.")

        booking_date = parse_date(data.booking_date)
        now = now or business_now()
        if booking_date is None or not is_date_bookable(
            booking_date, now, MIN_BOOKING_NOTICE_HOURS, MAX_BOOKING_ADVANCE_DAYS
        ):
            raise api_error(400, "invalid_date", "This date is not available for booking.")

        booking_time = parse_time(data.booking_time)
        if booking_time is None:
            raise api_error(400, "invalid_time", "Invalid time format. Use HH:MM or HH:MM:SS.")

        # Early feedback only; the locked insert below is the authoritative check
        slots = await AvailabilityService(self.db).calculate_slots(consultation_type, booking_date, now=now)
        if normalize_time(data.booking_time) not in {slot["time"] for slot in slots}:
            raise api_error(400, "slot_unavailable", "This time slot is no longer available.")

        payment_needed = needs_payment(consultation_type)
        due = amount_due(consultation_type)

        try:
            booking = self.repo.create_with_lock(
                self.db,
                buffer_before=consultation_type.buffer_before or 0,
                buffer_after=consultation_type.buffer_after or 0,
                consultation_type_id=consultation_type.id,
                customer_name=customer_name,
                customer_email=email,
                customer_phone=sanitize_phone(data.customer_phone),
                customer_notes=sanitize_text(data.notes),
                booking_date=booking_date,
                booking_time=booking_time,
                duration=consultation_type.duration,
                timezone=data.timezone or TIMEZONE,
                status="pending",
                payment_status="pending",
                payment_amount=float(consultation_type.price or 0),
                deposit_amount=due if consultation_type.require_deposit else 0,
            )
        except SlotUnavailableError as e:
            raise api_error(e.status_code, e.code, e.message) from e

        payment_intent = None
        if payment_needed:
            payment_intent = self._create_payment_intent(booking, due)

        await self._after_created(booking, payment_needed)

        return {
            "success": True,
            "booking": booking,
            "message": "Booking created successfully.",
            "needs_payment": payment_needed,
            "payment_intent": payment_intent,
        }

    def lookup_booking(self, reference: str, customer_email: Optional[str]) -> Booking:
        booking = self.repo.get_by_reference(self.db, reference)
        if not booking:
            raise api_error(404, "not_found", "Booking not found.")
        if (booking.customer_email or "").lower() != (customer_email or "").strip().lower():
            raise api_error(403, "forbidden", "The provided email does not match the booking record.")
        return booking

    async def cancel_booking(self, reference: str, customer_email: Optional[str]) -> dict:
        booking = self.lookup_booking(reference, customer_email)
        if booking.status in TERMINAL_STATUSES:
            raise api_error(400, "cannot_cancel", "This booking cannot be cancelled.")

        self.repo.update(self.db, booking, status="cancelled")
        logger.info(f"🚫 Booking cancelled by customer: {booking.reference_number}")
        await self._after_cancelled(booking)
        return {"success": True, "message": "Booking cancelled successfully."}

    # ------------------------------------------------------------------
    # Admin
    # ------------------------------------------------------------------

    def list_bookings(
        self,
        status: Optional[str] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
        consultation_type_id: Optional[int] = None,
        limit: int = 50,
        offset: int = 0,
        order_by: str = "booking_date",
        order: str = "desc",
    ) -> dict:
        filters = {
            "status": status,
            "date_from": date_from,
            "date_to": date_to,
            "consultation_type_id": consultation_type_id,
        }
        limit = max(1, min(limit, 100))
        offset = max(0, offset)
        return {
            "bookings": self.repo.get_all(
                self.db, limit=limit, offset=offset, order_by=order_by, order=order, **filters
            ),
            "total": self.repo.count(self.db, **filters),
            "limit": limit,
            "offset": offset,
        }

    def get_booking(self, booking_id: int) -> Booking:
        booking = self.repo.get_by_id(self.db, booking_id)
        if not booking:
            raise HTTPException(status_code=404, detail="Booking not found")
        return booking

    def get_stats(self) -> dict:
        return self.repo.get_stats(self.db)

    async def update_booking(self, booking_id: int, data: BookingUpdate) -> Booking:
        booking = self.get_booking(booking_id)
        updates = data.model_dump(exclude_unset=True)
        previous_status = booking.status

        # Terminal statuses are final
        if previous_status in TERMINAL_STATUSES and updates.get("status", previous_status) != previous_status:
            raise api_error(
                400, "invalid_transition", f"A {previous_status} booking cannot be moved back to {updates['status']}."
            )

        if "admin_notes" in updates:
            updates["admin_notes"] = sanitize_text(updates["admin_notes"])
        if updates.get("payment_status") == "paid" and not booking.payment_date:
            updates["payment_date"] = datetime.utcnow()

        booking = self.repo.update(self.db, booking, **updates)
        logger.info(f"✏️ Booking {booking.reference_number} updated: {', '.join(updates) or 'no changes'}")

        new_status = booking.status
        if new_status != previous_status:
            if new_status == "cancelled":
                await self._after_cancelled(booking)
            elif new_status == "confirmed":
                await self._after_confirmed(booking)
            else:
                await self._run("calendar update", calendar_sync.on_booking_updated(booking, self.db))
        return booking

    async def delete_booking(self, booking_id: int) -> dict:
        booking = self.get_booking(booking_id)
        if booking.google_event_id or booking.microsoft_event_id:
            await self._run("calendar cleanup", calendar_sync.on_booking_cancelled(booking, self.db))

        reference = booking.reference_number
        self.repo.delete(self.db, booking)
        logger.info(f"🗑️ Booking deleted: {reference}")
        return {"message": "Booking deleted"}

    async def refund_booking(self, booking_id: int, amount: Optional[float] = None) -> dict:
        booking = self.get_booking(booking_id)

        if not booking.payment_intent_id:
            raise HTTPException(status_code=400, detail="Booking has no payment to refund")
        if booking.payment_status != "paid":
            raise HTTPException(status_code=400, detail="Only paid bookings can be refunded")

        result = stripe_service.create_refund(booking.payment_intent_id, amount)
        if not result.get("success"):
            raise HTTPException(status_code=502, detail=f"Refund failed: {result.get('error')}")

        self.repo.update(self.db, booking, payment_status="refunded")
        logger.info(f"💳 Booking {booking.reference_number} refunded ({result.get('amount')})")
        await self._run(
            "refund email", notification_service.send_refund_notification(self.db, booking, result.get("amount"))
        )
        return {"success": True, "message": "Refund processed", "details": result}

    # ------------------------------------------------------------------
    # Payments
    # ------------------------------------------------------------------

    def _create_payment_intent(self, booking: Booking, amount: float) -> dict:
        result = stripe_service.create_payment_intent(
            amount,
            metadata={"booking_id": str(booking.id), "reference_number": booking.reference_number},
            receipt_email=booking.customer_email,
        )
        if not result.get("success"):
            logger.error(f"❌ Could not create payment for booking {booking.reference_number}: {result.get('error')}")
            return {"error": "Payment could not be initialised. Please contact us to complete your booking."}

        self.repo.update(self.db, booking, payment_intent_id=result["payment_intent_id"])
        return {
            "id": result["payment_intent_id"],
            "client_secret": result["client_secret"],
            "amount": result["amount"],
            "currency": result["currency"],
        }

    async def mark_paid(self, booking: Booking, payment_intent_id: Optional[str] = None) -> Booking:
        """Payment succeeded: confirm the booking and send the confirmation"""
        if booking.payment_status == "paid" and booking.status == "confirmed":
            return booking

        updates = {"payment_status": "paid", "payment_date": datetime.utcnow()}
        if payment_intent_id:
            updates["payment_intent_id"] = payment_intent_id
        if booking.status == "pending":
            updates["status"] = "confirmed"

        booking = self.repo.update(self.db, booking, **updates)
        logger.info(f"💳 Payment received for booking {booking.reference_number}")
        if booking.status == "confirmed":
            await self._after_confirmed(booking)
        return booking

    def mark_payment_failed(self, booking: Booking) -> Booking:
        logger.warning(f"⚠️ Payment failed for booking {booking.reference_number}")
        return self.repo.update(self.db, booking, payment_status="failed")

    async def mark_refunded(self, booking: Booking, amount: Optional[float] = None) -> Booking:
        if booking.payment_status == "refunded":
            return booking
        booking = self.repo.update(self.db, booking, payment_status="refunded")
        await self._run("refund email", notification_service.send_refund_notification(self.db, booking, amount))
        return booking

    # ------------------------------------------------------------------
    # Side effects
    # ------------------------------------------------------------------

    async def _run(self, label: str, awaitable):
        """Await a notification or calendar call without letting it fail the request"""
        try:
            return await awaitable
        except Exception as e:
            logger.error(f"❌ {label} failed: {e}")
            return None

    async def _after_created(self, booking: Booking, payment_pending: bool):
        # Paid bookings are confirmed to the customer once the payment lands
        if not payment_pending:
            await self._run("confirmation email", notification_service.send_booking_confirmation(self.db, booking))
        await self._run("admin notification", notification_service.send_admin_notification(self.db, booking))
        await self._run("calendar sync", calendar_sync.on_booking_created(booking, self.db))

    async def _after_confirmed(self, booking: Booking):
        await self._run("confirmation email", notification_service.send_booking_confirmation(self.db, booking))
        await self._run("calendar sync", calendar_sync.on_booking_confirmed(booking, self.db))

    async def _after_cancelled(self, booking: Booking):
        await self._run("cancellation email", notification_service.send_cancellation_notification(self.db, booking))
        await self._run("admin alert", notification_service.send_admin_cancellation_alert(self.db, booking))
        await self._run("calendar cleanup", calendar_sync.on_booking_cancelled(booking, self.db))
