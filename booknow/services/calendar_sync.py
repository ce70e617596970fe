"""
Calendar Sync
Keeps Google and Microsoft calendar events in step with booking lifecycle
events and merges busy time from both providers
"""

import logging
from datetime import date, datetime, time, timedelta
from typing import Union

import pytz
from sqlalchemy.orm import Session

from ..config import TIMEZONE
from ..models import Booking
from ..scheduling.slots import time_to_minutes
from . import google_calendar_service, microsoft_calendar_service
from .calendar_common import CalendarAPIError, get_integration

logger = logging.getLogger(__name__)

PROVIDERS = {
    "google": (google_calendar_service, "google_event_id"),
    "microsoft": (microsoft_calendar_service, "microsoft_event_id"),
}


def _sync_enabled(db: Session, provider: str) -> bool:
    integration = get_integration(db, provider)
    return bool(integration and integration.auto_sync_enabled)


async def _push_booking(booking: Booking, db: Session) -> dict:
    """Create the event on every connected provider, or update it when one exists"""
    results = {}
    changed = False

    for provider, (service, id_field) in PROVIDERS.items():
        if not _sync_enabled(db, provider):
            continue

        event_id = getattr(booking, id_field)
        if event_id:
            ok = await service.update_calendar_event(booking, db)
            results[provider] = "updated" if ok else "error"
            continue

        new_event_id = await service.create_calendar_event(booking, db)
        if new_event_id:
            setattr(booking, id_field, new_event_id)
            changed = True
            results[provider] = "created"
        else:
            results[provider] = "error"

    if changed:
        db.commit()
        db.refresh(booking)
    return results


async def on_booking_created(booking: Booking, db: Session) -> dict:
    logger.info(f"📅 Syncing new booking {booking.reference_number} to calendars")
    return await _push_booking(booking, db)


async def on_booking_confirmed(booking: Booking, db: Session) -> dict:
    logger.info(f"📅 Syncing confirmed booking {booking.reference_number} to calendars")
    return await _push_booking(booking, db)


async def on_booking_updated(booking: Booking, db: Session) -> dict:
    results = {}
    for provider, (service, id_field) in PROVIDERS.items():
        if getattr(booking, id_field) and _sync_enabled(db, provider):
            ok = await service.update_calendar_event(booking, db)
            results[provider] = "updated" if ok else "error"
    return results


async def on_booking_cancelled(booking: Booking, db: Session) -> dict:
    """Delete the booking's events and clear the stored event ids"""
    results = {}
    for provider, (service, id_field) in PROVIDERS.items():
        event_id = getattr(booking, id_field)
        if not event_id:
            continue
        ok = await service.delete_calendar_event(event_id, db)
        results[provider] = "deleted" if ok else "error"
        if ok:
            setattr(booking, id_field, None)

    if results:
        db.commit()
        db.refresh(booking)
        logger.info(f"📅 Calendar events removed for cancelled booking {booking.reference_number}")
    return results


async def manual_sync(booking: Booking, db: Session) -> dict:
    """Admin triggered sync of one booking. Returns {"google": ..., "microsoft": ...}"""
    results = {}
    for provider, (service, id_field) in PROVIDERS.items():
        if not get_integration(db, provider):
            results[provider] = "not_connected"
            continue

        if getattr(booking, id_field):
            ok = await service.update_calendar_event(booking, db)
            results[provider] = "updated" if ok else "error"
            continue

        new_event_id = await service.create_calendar_event(booking, db)
        if new_event_id:
            setattr(booking, id_field, new_event_id)
            db.commit()
            results[provider] = "created"
        else:
            results[provider] = "error"
    return results


async def sync_all_pending(db: Session, limit: int = 50) -> dict:
    """
    Push upcoming pending/confirmed bookings that have no calendar event yet.

    Returns:
        {"total", "synced", "failed", "skipped", "details": [...]}
    """
    connected = [p for p in PROVIDERS if _sync_enabled(db, p)]
    summary = {"total": 0, "synced": 0, "failed": 0, "skipped": 0, "details": []}
    if not connected:
        logger.info("ℹ️ No calendar connected, nothing to sync")
        return summary

    bookings = (
        db.query(Booking)
        .filter(
            Booking.status.in_(["pending", "confirmed"]),
            Booking.booking_date >= date.today(),
            Booking.google_event_id.is_(None) | Booking.microsoft_event_id.is_(None),
        )
        .order_by(Booking.booking_date, Booking.booking_time)
        .limit(limit)
        .all()
    )
    summary["total"] = len(bookings)

    for booking in bookings:
        missing = [p for p in connected if not getattr(booking, PROVIDERS[p][1])]
        if not missing:
            summary["skipped"] += 1
            continue

        results = await _push_booking(booking, db)
        failed = [p for p in missing if results.get(p) != "created"]
        if failed:
            summary["failed"] += 1
        else:
            summary["synced"] += 1
        summary["details"].append({"reference_number": booking.reference_number, "results": results})

    logger.info(
        f"📅 Calendar sync finished: {summary['synced']} synced, "
        f"{summary['failed']} failed, {summary['skipped']} skipped"
    )
    return summary


async def get_busy_times(target_date: date, db: Session) -> list[dict]:
    """
    Busy time from every connected calendar, sorted by start.

    Raises:
        CalendarAPIError: when a connected calendar cannot be read
    """
    busy = []
    busy.extend(await google_calendar_service.get_busy_times(target_date, db))
    busy.extend(await microsoft_calendar_service.get_busy_times(target_date, db))
    return sorted(busy, key=lambda b: b["start"])


async def is_time_available(
    target_date: date, start_time: Union[time, str], duration: int, db: Session
) -> bool:
    """True when no connected calendar has an event overlapping the interval"""
    try:
        busy = await get_busy_times(target_date, db)
    except CalendarAPIError as e:
        logger.error(f"❌ Could not read calendar busy times: {e}")
        return False

    tz = pytz.timezone(TIMEZONE)
    minutes = time_to_minutes(start_time)
    start = tz.localize(datetime.combine(target_date, time.min)) + timedelta(minutes=minutes)
    end = start + timedelta(minutes=duration)

    return not any(start < b["end"] and end > b["start"] for b in busy)
