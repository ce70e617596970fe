"""
Shared helpers for the Google and Microsoft calendar services
"""

import logging
from datetime import date, datetime, time, timedelta
from typing import Optional

import pytz
from sqlalchemy.orm import Session

from ..config import TIMEZONE
from ..encryption import decrypt, encrypt
from ..models import Booking, CalendarIntegration

logger = logging.getLogger(__name__)

# Refresh tokens this long before they expire
TOKEN_REFRESH_MARGIN = timedelta(minutes=5)


class CalendarAPIError(Exception):
    """Raised when a calendar provider cannot be read or rejects a request"""

    pass


def get_integration(db: Session, provider: str) -> Optional[CalendarIntegration]:
    return db.query(CalendarIntegration).filter(CalendarIntegration.provider == provider).first()


def token_needs_refresh(integration: CalendarIntegration) -> bool:
    return integration.token_expires_at <= datetime.utcnow() + TOKEN_REFRESH_MARGIN


def save_tokens(
    db: Session,
    provider: str,
    access_token: str,
    refresh_token: Optional[str],
    expires_in: int,
    account_email: Optional[str] = None,
    calendar_id: Optional[str] = None,
    tenant: Optional[str] = None,
) -> CalendarIntegration:
    """Create or update the provider's integration with freshly issued tokens"""
    integration = get_integration(db, provider)
    token_expires_at = datetime.utcnow() + timedelta(seconds=expires_in)

    if integration:
        integration.access_token = encrypt(access_token)
        if refresh_token:
            integration.refresh_token = encrypt(refresh_token)
        integration.token_expires_at = token_expires_at
        if account_email:
            integration.account_email = account_email
        if calendar_id:
            integration.calendar_id = calendar_id
        if tenant:
            integration.tenant = tenant
    else:
        integration = CalendarIntegration(
            provider=provider,
            access_token=encrypt(access_token),
            refresh_token=encrypt(refresh_token or ""),
            token_expires_at=token_expires_at,
            account_email=account_email,
            calendar_id=calendar_id,
            tenant=tenant,
            auto_sync_enabled=True,
        )
        db.add(integration)

    db.commit()
    db.refresh(integration)
    return integration


def decrypted_access_token(integration: CalendarIntegration) -> Optional[str]:
    return decrypt(integration.access_token)


def decrypted_refresh_token(integration: CalendarIntegration) -> Optional[str]:
    return decrypt(integration.refresh_token)


def booking_timezone(booking: Booking) -> str:
    return booking.timezone or TIMEZONE


def booking_start_end(booking: Booking) -> tuple[datetime, datetime]:
    """Naive local start/end datetimes of a booking"""
    start = datetime.combine(booking.booking_date, booking.booking_time)
    return start, start + timedelta(minutes=booking.duration)


def event_summary(booking: Booking) -> str:
    type_name = booking.consultation_type.name if booking.consultation_type else "Consultation"
    return f"{type_name} - {booking.customer_name}"


def event_description(booking: Booking) -> str:
    lines = [
        f"Booking Reference: {booking.reference_number}",
        f"Customer: {booking.customer_name}",
        f"Email: {booking.customer_email}",
    ]
    if booking.customer_phone:
        lines.append(f"Phone: {booking.customer_phone}")
    if booking.customer_notes:
        lines.append("")
        lines.append(f"Notes: {booking.customer_notes}")
    return "\n".join(lines)


def local_day_bounds(target_date: date, tz_name: Optional[str] = None) -> tuple[datetime, datetime]:
    """Aware start and end of a local calendar day"""
    tz = pytz.timezone(tz_name or TIMEZONE)
    start = tz.localize(datetime.combine(target_date, time.min))
    end = tz.localize(datetime.combine(target_date + timedelta(days=1), time.min))
    return start, end


def parse_api_datetime(value: str, tz_name: Optional[str] = None) -> datetime:
    """
    Parse an ISO 8601 timestamp from a calendar API. Naive values are taken
    to be in tz_name (Graph returns naive times plus a separate timeZone).
    """
    value = value.replace("Z", "+00:00")
    # Graph sends 7 fractional digits; fromisoformat on 3.10 wants exactly 6
    if "." in value:
        head, _, tail = value.partition(".")
        digits = ""
        rest = ""
        for i, char in enumerate(tail):
            if not char.isdigit():
                rest = tail[i:]
                break
            digits += char
        value = f"{head}.{digits[:6].ljust(6, '0')}{rest}" if digits else head + rest

    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        try:
            tz = pytz.timezone(tz_name or "UTC")
        except pytz.UnknownTimeZoneError:
            # Windows zone names ("Pacific Standard Time") are not in the tz database
            logger.warning(f"⚠️ Unknown timezone {tz_name!r}, assuming {TIMEZONE}")
            tz = pytz.timezone(TIMEZONE)
        parsed = tz.localize(parsed)
    return parsed
