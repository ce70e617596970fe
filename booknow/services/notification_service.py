"""
Booking Notification Service
Customer and admin emails for booking lifecycle events. Every send attempt
is recorded in the email log, successful or not.
"""

import logging
from datetime import datetime, timedelta
from typing import Optional
from urllib.parse import urlencode

import pytz
from sqlalchemy.orm import Session

from ..config import ADMIN_EMAIL, BUSINESS_NAME, REMINDER_HOURS, SITE_URL, TIMEZONE
from ..email_service import EmailDeliveryError, send_email
from ..email_templates import (
    admin_cancellation_template,
    admin_new_booking_template,
    booking_cancellation_template,
    booking_confirmation_template,
    booking_reminder_template,
    refund_notification_template,
)
from ..encryption import encrypt
from ..models import Booking, EmailLog
from ..shared.formatting import format_date, format_price, format_time

logger = logging.getLogger(__name__)

EMAIL_TYPES = ("confirmation", "reminder", "cancellation", "admin_notification", "admin_cancellation", "refund")


def get_cancel_url(reference_number: str) -> str:
    return f"{SITE_URL}/?{urlencode({'booknow_action': 'cancel', 'ref': reference_number})}"


def get_admin_url(booking: Booking) -> str:
    return f"{SITE_URL}/admin/bookings/{booking.id}"


def _type_name(booking: Booking) -> str:
    return booking.consultation_type.name if booking.consultation_type else ""


def log_email(
    db: Session,
    booking_id: Optional[int],
    email_type: str,
    recipient: str,
    subject: str,
    success: bool,
    error_message: Optional[str] = None,
    body: Optional[str] = None,
) -> Optional[EmailLog]:
    """Record an email attempt. The body is stored encrypted."""
    entry = EmailLog(
        booking_id=booking_id,
        email_type=email_type,
        recipient_email=recipient,
        subject=subject[:500],
        status="sent" if success else "failed",
        error_message=error_message,
        body=encrypt(body) if body else None,
    )
    try:
        db.add(entry)
        db.commit()
        db.refresh(entry)
        return entry
    except Exception as e:
        db.rollback()
        logger.warning(f"⚠️ Failed to write email log for {recipient}: {e}")
        return None


async def _deliver(
    db: Session,
    booking: Booking,
    email_type: str,
    recipient: Optional[str],
    subject: str,
    mjml_content: str,
) -> dict:
    result = {"success": False, "email_type": email_type, "recipient": recipient, "error": None}

    if not recipient:
        result["error"] = "No recipient address"
        logger.warning(f"⚠️ No recipient for {email_type} email on booking {booking.reference_number}")
        return result

    body = None
    try:
        logger.info(f"📧 Sending {email_type} email to {recipient}")
        response = await send_email(to=recipient, subject=subject, mjml_content=mjml_content)
        body = response.get("html")
        result["success"] = True
        logger.info(f"✅ {email_type} email sent successfully to {recipient}")
    except (EmailDeliveryError, ValueError) as e:
        result["error"] = str(e)
        logger.error(f"❌ Failed to send {email_type} email to {recipient}: {e}")

    log_email(
        db,
        booking_id=booking.id,
        email_type=email_type,
        recipient=recipient,
        subject=subject,
        success=result["success"],
        error_message=result["error"],
        body=body,
    )
    return result


async def send_booking_confirmation(db: Session, booking: Booking) -> dict:
    subject = f"Booking Confirmation - {booking.reference_number}"
    mjml_content = booking_confirmation_template(
        customer_name=booking.customer_name,
        reference=booking.reference_number,
        consultation_type=_type_name(booking),
        booking_date=format_date(booking.booking_date),
        booking_time=format_time(booking.booking_time),
        duration=booking.duration,
        amount=format_price(booking.payment_amount),
        cancel_url=get_cancel_url(booking.reference_number),
        business_name=BUSINESS_NAME,
    )
    return await _deliver(db, booking, "confirmation", booking.customer_email, subject, mjml_content)


async def send_booking_reminder(db: Session, booking: Booking) -> dict:
    subject = f"Reminder: Upcoming Booking - {booking.reference_number}"
    mjml_content = booking_reminder_template(
        customer_name=booking.customer_name,
        reference=booking.reference_number,
        consultation_type=_type_name(booking),
        booking_date=format_date(booking.booking_date),
        booking_time=format_time(booking.booking_time),
        duration=booking.duration,
        cancel_url=get_cancel_url(booking.reference_number),
        business_name=BUSINESS_NAME,
    )
    return await _deliver(db, booking, "reminder", booking.customer_email, subject, mjml_content)


async def send_cancellation_notification(db: Session, booking: Booking) -> dict:
    subject = f"Booking Cancelled - {booking.reference_number}"
    mjml_content = booking_cancellation_template(
        customer_name=booking.customer_name,
        reference=booking.reference_number,
        consultation_type=_type_name(booking),
        booking_date=format_date(booking.booking_date),
        booking_time=format_time(booking.booking_time),
        business_name=BUSINESS_NAME,
    )
    return await _deliver(db, booking, "cancellation", booking.customer_email, subject, mjml_content)


async def send_admin_notification(db: Session, booking: Booking) -> dict:
    subject = f"New Booking: {_type_name(booking)} - {booking.reference_number}"
    mjml_content = admin_new_booking_template(
        reference=booking.reference_number,
        customer_name=booking.customer_name,
        customer_email=booking.customer_email,
        customer_phone=booking.customer_phone,
        consultation_type=_type_name(booking),
        booking_date=format_date(booking.booking_date),
        booking_time=format_time(booking.booking_time),
        duration=booking.duration,
        amount=format_price(booking.payment_amount),
        customer_notes=booking.customer_notes,
        admin_url=get_admin_url(booking),
    )
    return await _deliver(db, booking, "admin_notification", ADMIN_EMAIL, subject, mjml_content)


async def send_admin_cancellation_alert(db: Session, booking: Booking) -> dict:
    subject = f"Booking Cancelled: {_type_name(booking)} - {booking.reference_number}"
    mjml_content = admin_cancellation_template(
        reference=booking.reference_number,
        customer_name=booking.customer_name,
        customer_email=booking.customer_email,
        consultation_type=_type_name(booking),
        booking_date=format_date(booking.booking_date),
        booking_time=format_time(booking.booking_time),
        admin_url=get_admin_url(booking),
    )
    return await _deliver(db, booking, "admin_cancellation", ADMIN_EMAIL, subject, mjml_content)


async def send_refund_notification(db: Session, booking: Booking, amount: Optional[float] = None) -> dict:
    subject = f"Refund Processed - {booking.reference_number}"
    mjml_content = refund_notification_template(
        customer_name=booking.customer_name,
        reference=booking.reference_number,
        consultation_type=_type_name(booking),
        booking_date=format_date(booking.booking_date),
        amount=format_price(amount if amount is not None else booking.payment_amount),
        business_name=BUSINESS_NAME,
    )
    return await _deliver(db, booking, "refund", booking.customer_email, subject, mjml_content)


SENDERS = {
    "confirmation": send_booking_confirmation,
    "reminder": send_booking_reminder,
    "cancellation": send_cancellation_notification,
    "admin_notification": send_admin_notification,
    "admin_cancellation": send_admin_cancellation_alert,
    "refund": send_refund_notification,
}


async def resend_notification(db: Session, booking: Booking, email_type: str) -> dict:
    """Send one notification type again for a booking (admin action)"""
    sender = SENDERS.get(email_type)
    if sender is None:
        return {"success": False, "email_type": email_type, "error": f"Unknown email type: {email_type}"}
    return await sender(db, booking)


def get_bookings_due_for_reminder(db: Session, hours: int = REMINDER_HOURS, now: Optional[datetime] = None):
    """Pending/confirmed bookings starting within the next `hours` that have no reminder yet"""
    if now is None:
        now = datetime.now(pytz.timezone(TIMEZONE)).replace(tzinfo=None)
    window_end = now + timedelta(hours=hours)

    candidates = (
        db.query(Booking)
        .filter(
            Booking.status.in_(["pending", "confirmed"]),
            Booking.reminder_sent.is_(False),
            Booking.booking_date >= now.date(),
            Booking.booking_date <= window_end.date(),
        )
        .order_by(Booking.booking_date, Booking.booking_time)
        .all()
    )

    due = []
    for booking in candidates:
        start = datetime.combine(booking.booking_date, booking.booking_time)
        if now <= start <= window_end:
            due.append(booking)
    return due


async def send_reminders(db: Session, hours: int = REMINDER_HOURS, now: Optional[datetime] = None) -> dict:
    """Send reminder emails and mark each reminded booking"""
    bookings = get_bookings_due_for_reminder(db, hours=hours, now=now)
    summary = {"total": len(bookings), "sent": 0, "failed": 0}

    for booking in bookings:
        result = await send_booking_reminder(db, booking)
        if result["success"]:
            booking.reminder_sent = True
            booking.reminder_sent_at = datetime.utcnow()
            db.commit()
            summary["sent"] += 1
        else:
            summary["failed"] += 1

    if bookings:
        logger.info(f"📧 Reminders: {summary['sent']} sent, {summary['failed']} failed")
    return summary
