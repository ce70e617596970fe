"""
Google Calendar Service
Handles OAuth, event creation, updates, deletion and busy time lookups
"""

import logging
from datetime import date
from typing import Optional
from urllib.parse import urlencode

import httpx
from sqlalchemy.orm import Session

from ..config import GOOGLE_CLIENT_ID, GOOGLE_CLIENT_SECRET, GOOGLE_REDIRECT_URI
from ..models import Booking, CalendarIntegration
from .calendar_common import (
    CalendarAPIError,
    booking_start_end,
    booking_timezone,
    decrypted_access_token,
    decrypted_refresh_token,
    event_description,
    event_summary,
    get_integration,
    local_day_bounds,
    parse_api_datetime,
    save_tokens,
    token_needs_refresh,
)

logger = logging.getLogger(__name__)

PROVIDER = "google"

GOOGLE_AUTH_URL = "https://accounts.google.com/o/oauth2/v2/auth"
GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"  # noqa: S105 - OAuth endpoint URL
GOOGLE_REVOKE_URL = "https://oauth2.googleapis.com/revoke"
GOOGLE_CALENDAR_API = "https://www.googleapis.com/calendar/v3"
GOOGLE_CALENDAR_SCOPES = [
    "https://www.googleapis.com/auth/calendar",
    "https://www.googleapis.com/auth/calendar.events",
    "https://www.googleapis.com/auth/userinfo.email",
]


def is_configured() -> bool:
    return bool(GOOGLE_CLIENT_ID and GOOGLE_CLIENT_SECRET)


def get_authorization_url(state: str) -> str:
    params = {
        "client_id": GOOGLE_CLIENT_ID,
        "redirect_uri": GOOGLE_REDIRECT_URI,
        "response_type": "code",
        "scope": " ".join(GOOGLE_CALENDAR_SCOPES),
        "access_type": "offline",
        "prompt": "consent",
        "state": state,
    }
    return f"{GOOGLE_AUTH_URL}?{urlencode(params)}"


async def exchange_code(code: str, db: Session) -> CalendarIntegration:
    """
    Exchange an OAuth authorization code for tokens and store them.

    Raises:
        CalendarAPIError: if Google rejects the code
    """
    async with httpx.AsyncClient() as client:
        token_response = await client.post(
            GOOGLE_TOKEN_URL,
            data={
                "code": code,
                "client_id": GOOGLE_CLIENT_ID,
                "client_secret": GOOGLE_CLIENT_SECRET,
                "redirect_uri": GOOGLE_REDIRECT_URI,
                "grant_type": "authorization_code",
            },
        )

        if token_response.status_code != 200:
            logger.error(f"❌ Google token exchange failed: {token_response.text}")
            raise CalendarAPIError("Failed to exchange authorization code")

        tokens = token_response.json()
        access_token = tokens.get("access_token")
        refresh_token = tokens.get("refresh_token")
        if not access_token or not refresh_token:
            raise CalendarAPIError("Invalid token response")

        account_email = None
        user_info_response = await client.get(
            "https://www.googleapis.com/oauth2/v2/userinfo",
            headers={"Authorization": f"Bearer {access_token}"},
        )
        if user_info_response.status_code == 200:
            account_email = user_info_response.json().get("email")

        calendar_id = "primary"
        calendar_response = await client.get(
            f"{GOOGLE_CALENDAR_API}/users/me/calendarList/primary",
            headers={"Authorization": f"Bearer {access_token}"},
        )
        if calendar_response.status_code == 200:
            calendar_id = calendar_response.json().get("id", "primary")

    integration = save_tokens(
        db,
        PROVIDER,
        access_token=access_token,
        refresh_token=refresh_token,
        expires_in=tokens.get("expires_in", 3600),
        account_email=account_email,
        calendar_id=calendar_id,
    )
    logger.info(f"✅ Google Calendar connected: {account_email}")
    return integration


async def disconnect(db: Session) -> bool:
    integration = get_integration(db, PROVIDER)
    if not integration:
        return False

    try:
        async with httpx.AsyncClient() as client:
            await client.post(GOOGLE_REVOKE_URL, params={"token": decrypted_access_token(integration)})
    except Exception as e:
        logger.warning(f"⚠️ Failed to revoke Google tokens: {str(e)}")

    db.delete(integration)
    db.commit()
    logger.info("✅ Google Calendar disconnected")
    return True


async def get_valid_access_token(integration: CalendarIntegration, db: Session) -> Optional[str]:
    """
    Get a valid access token, refreshing if necessary
    Returns None if refresh fails
    """
    try:
        if not token_needs_refresh(integration):
            return decrypted_access_token(integration)

        logger.info("🔄 Google Calendar token expired, refreshing...")
        async with httpx.AsyncClient() as client:
            response = await client.post(
                GOOGLE_TOKEN_URL,
                data={
                    "client_id": GOOGLE_CLIENT_ID,
                    "client_secret": GOOGLE_CLIENT_SECRET,
                    "refresh_token": decrypted_refresh_token(integration),
                    "grant_type": "refresh_token",
                },
            )

        if response.status_code != 200:
            logger.error(f"❌ Token refresh failed: {response.text}")
            return None

        tokens = response.json()
        new_access_token = tokens.get("access_token")
        if not new_access_token:
            logger.error("❌ No access token in refresh response")
            return None

        save_tokens(
            db,
            PROVIDER,
            access_token=new_access_token,
            refresh_token=tokens.get("refresh_token"),
            expires_in=tokens.get("expires_in", 3600),
        )
        logger.info("✅ Google Calendar token refreshed successfully")
        return new_access_token

    except Exception as e:
        logger.error(f"❌ Error getting valid access token: {str(e)}")
        return None


def build_event_data(booking: Booking) -> dict:
    start, end = booking_start_end(booking)
    tz_name = booking_timezone(booking)

    return {
        "summary": event_summary(booking),
        "description": event_description(booking),
        "start": {"dateTime": start.isoformat(), "timeZone": tz_name},
        "end": {"dateTime": end.isoformat(), "timeZone": tz_name},
        "attendees": [{"email": booking.customer_email, "displayName": booking.customer_name}],
        "reminders": {
            "useDefault": False,
            "overrides": [
                {"method": "email", "minutes": 24 * 60},
                {"method": "popup", "minutes": 30},
            ],
        },
    }


async def _connected(db: Session, require_auto_sync: bool = True):
    integration = get_integration(db, PROVIDER)
    if not integration or (require_auto_sync and not integration.auto_sync_enabled):
        logger.info("ℹ️ Google Calendar not connected or auto-sync disabled")
        return None, None

    access_token = await get_valid_access_token(integration, db)
    if not access_token:
        logger.error("❌ Failed to get valid Google access token")
        return integration, None
    return integration, access_token


async def create_calendar_event(booking: Booking, db: Session) -> Optional[str]:
    """
    Create a Google Calendar event for a booking
    Returns the Google Calendar event ID if successful, None otherwise
    """
    try:
        integration, access_token = await _connected(db)
        if not access_token:
            return None

        calendar_id = integration.calendar_id or "primary"
        async with httpx.AsyncClient() as client:
            response = await client.post(
                f"{GOOGLE_CALENDAR_API}/calendars/{calendar_id}/events",
                headers={"Authorization": f"Bearer {access_token}"},
                json=build_event_data(booking),
            )

        if response.status_code not in [200, 201]:
            logger.error(f"❌ Failed to create calendar event: {response.text}")
            return None

        event_id = response.json().get("id")
        logger.info(f"✅ Google Calendar event created: {event_id}")
        return event_id

    except Exception as e:
        logger.error(f"❌ Error creating calendar event: {str(e)}")
        return None


async def update_calendar_event(booking: Booking, db: Session) -> bool:
    """
    Update the Google Calendar event of a booking
    Returns True if successful, False otherwise
    """
    if not booking.google_event_id:
        return False

    try:
        integration, access_token = await _connected(db)
        if not access_token:
            return False

        calendar_id = integration.calendar_id or "primary"
        async with httpx.AsyncClient() as client:
            response = await client.put(
                f"{GOOGLE_CALENDAR_API}/calendars/{calendar_id}/events/{booking.google_event_id}",
                headers={"Authorization": f"Bearer {access_token}"},
                json=build_event_data(booking),
            )

        if response.status_code != 200:
            logger.error(f"❌ Failed to update calendar event: {response.text}")
            return False

        logger.info(f"✅ Google Calendar event updated: {booking.google_event_id}")
        return True

    except Exception as e:
        logger.error(f"❌ Error updating calendar event: {str(e)}")
        return False


async def delete_calendar_event(google_event_id: str, db: Session) -> bool:
    """
    Delete a Google Calendar event
    Returns True if successful (or already gone), False otherwise
    """
    try:
        integration, access_token = await _connected(db, require_auto_sync=False)
        if not access_token:
            return False

        calendar_id = integration.calendar_id or "primary"
        async with httpx.AsyncClient() as client:
            response = await client.delete(
                f"{GOOGLE_CALENDAR_API}/calendars/{calendar_id}/events/{google_event_id}",
                headers={"Authorization": f"Bearer {access_token}"},
            )

        if response.status_code not in [200, 204, 404, 410]:
            logger.error(f"❌ Failed to delete calendar event: {response.text}")
            return False

        logger.info(f"✅ Google Calendar event deleted: {google_event_id}")
        return True

    except Exception as e:
        logger.error(f"❌ Error deleting calendar event: {str(e)}")
        return False


async def get_busy_times(target_date: date, db: Session) -> list[dict]:
    """
    Timed events on a local date as [{"start": datetime, "end": datetime}].
    All-day events are ignored. Returns [] when Google is not connected.

    Raises:
        CalendarAPIError: when the calendar cannot be read
    """
    integration = get_integration(db, PROVIDER)
    if not integration:
        return []

    access_token = await get_valid_access_token(integration, db)
    if not access_token:
        raise CalendarAPIError("Google Calendar token unavailable")

    day_start, day_end = local_day_bounds(target_date)
    calendar_id = integration.calendar_id or "primary"

    try:
        async with httpx.AsyncClient() as client:
            response = await client.get(
                f"{GOOGLE_CALENDAR_API}/calendars/{calendar_id}/events",
                headers={"Authorization": f"Bearer {access_token}"},
                params={
                    "timeMin": day_start.isoformat(),
                    "timeMax": day_end.isoformat(),
                    "singleEvents": "true",
                    "orderBy": "startTime",
                },
            )
    except httpx.HTTPError as e:
        raise CalendarAPIError(f"Google Calendar request failed: {e}") from e

    if response.status_code != 200:
        logger.error(f"❌ Failed to list Google Calendar events: {response.text}")
        raise CalendarAPIError("Failed to list Google Calendar events")

    busy = []
    for event in response.json().get("items", []):
        if event.get("status") == "cancelled" or event.get("transparency") == "transparent":
            continue
        start = event.get("start", {}).get("dateTime")
        end = event.get("end", {}).get("dateTime")
        if not start or not end:
            # All-day event
            continue
        busy.append(
            {
                "start": parse_api_datetime(start),
                "end": parse_api_datetime(end),
                "source": PROVIDER,
                "summary": event.get("summary"),
            }
        )
    return busy
