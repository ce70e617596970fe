"""
Microsoft Calendar Service
Outlook / Microsoft 365 calendar sync through the Microsoft Graph API
"""

import logging
from datetime import date
from typing import Optional
from urllib.parse import urlencode

import httpx
from sqlalchemy.orm import Session

from ..config import (
    MICROSOFT_CLIENT_ID,
    MICROSOFT_CLIENT_SECRET,
    MICROSOFT_REDIRECT_URI,
    MICROSOFT_TENANT_ID,
    TIMEZONE,
)
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

PROVIDER = "microsoft"

GRAPH_API = "https://graph.microsoft.com/v1.0"
MICROSOFT_LOGIN_URL = "https://login.microsoftonline.com"
MICROSOFT_SCOPE = "offline_access Calendars.ReadWrite"


def is_configured() -> bool:
    return bool(MICROSOFT_CLIENT_ID and MICROSOFT_CLIENT_SECRET)


def _token_url(tenant: Optional[str] = None) -> str:
    return f"{MICROSOFT_LOGIN_URL}/{tenant or MICROSOFT_TENANT_ID}/oauth2/v2.0/token"


def get_authorization_url(state: str) -> str:
    params = {
        "client_id": MICROSOFT_CLIENT_ID,
        "redirect_uri": MICROSOFT_REDIRECT_URI,
        "response_type": "code",
        "response_mode": "query",
        "scope": MICROSOFT_SCOPE,
        "state": state,
    }
    return f"{MICROSOFT_LOGIN_URL}/{MICROSOFT_TENANT_ID}/oauth2/v2.0/authorize?{urlencode(params)}"


async def exchange_code(code: str, db: Session) -> CalendarIntegration:
    """
    Exchange an OAuth authorization code for tokens and store them.

    Raises:
        CalendarAPIError: if Microsoft rejects the code
    """
    async with httpx.AsyncClient() as client:
        response = await client.post(
            _token_url(),
            data={
                "client_id": MICROSOFT_CLIENT_ID,
                "client_secret": MICROSOFT_CLIENT_SECRET,
                "code": code,
                "redirect_uri": MICROSOFT_REDIRECT_URI,
                "grant_type": "authorization_code",
                "scope": MICROSOFT_SCOPE,
            },
        )

        if response.status_code != 200:
            logger.error(f"❌ Microsoft token exchange failed: {response.text}")
            raise CalendarAPIError("Failed to exchange authorization code")

        tokens = response.json()
        access_token = tokens.get("access_token")
        if not access_token:
            raise CalendarAPIError("Invalid token response")

        account_email = None
        me_response = await client.get(
            f"{GRAPH_API}/me", headers={"Authorization": f"Bearer {access_token}"}
        )
        if me_response.status_code == 200:
            me = me_response.json()
            account_email = me.get("mail") or me.get("userPrincipalName")

    integration = save_tokens(
        db,
        PROVIDER,
        access_token=access_token,
        refresh_token=tokens.get("refresh_token"),
        expires_in=tokens.get("expires_in", 3600),
        account_email=account_email,
        tenant=MICROSOFT_TENANT_ID,
    )
    logger.info(f"✅ Microsoft Calendar connected: {account_email}")
    return integration


async def disconnect(db: Session) -> bool:
    integration = get_integration(db, PROVIDER)
    if not integration:
        return False

    db.delete(integration)
    db.commit()
    logger.info("✅ Microsoft Calendar disconnected")
    return True


async def get_valid_access_token(integration: CalendarIntegration, db: Session) -> Optional[str]:
    """
    Get a valid access token, refreshing if necessary
    Returns None if refresh fails
    """
    try:
        if not token_needs_refresh(integration):
            return decrypted_access_token(integration)

        logger.info("🔄 Microsoft Calendar token expired, refreshing...")
        async with httpx.AsyncClient() as client:
            response = await client.post(
                _token_url(integration.tenant),
                data={
                    "client_id": MICROSOFT_CLIENT_ID,
                    "client_secret": MICROSOFT_CLIENT_SECRET,
                    "refresh_token": decrypted_refresh_token(integration),
                    "grant_type": "refresh_token",
                    "scope": MICROSOFT_SCOPE,
                },
            )

        if response.status_code != 200:
            logger.error(f"❌ Microsoft token refresh failed: {response.text}")
            return None

        tokens = response.json()
        new_access_token = tokens.get("access_token")
        if not new_access_token:
            logger.error("❌ No access token in Microsoft refresh response")
            return None

        save_tokens(
            db,
            PROVIDER,
            access_token=new_access_token,
            refresh_token=tokens.get("refresh_token"),
            expires_in=tokens.get("expires_in", 3600),
        )
        logger.info("✅ Microsoft Calendar token refreshed successfully")
        return new_access_token

    except Exception as e:
        logger.error(f"❌ Error getting Microsoft access token: {str(e)}")
        return None


def build_event_data(booking: Booking) -> dict:
    start, end = booking_start_end(booking)
    tz_name = booking_timezone(booking)

    return {
        "subject": event_summary(booking),
        "body": {"contentType": "text", "content": event_description(booking)},
        "start": {"dateTime": start.isoformat(), "timeZone": tz_name},
        "end": {"dateTime": end.isoformat(), "timeZone": tz_name},
        "attendees": [
            {
                "emailAddress": {"address": booking.customer_email, "name": booking.customer_name},
                "type": "required",
            }
        ],
        "isReminderOn": True,
        "reminderMinutesBeforeStart": 30,
    }


async def _access_token(db: Session, require_auto_sync: bool = True) -> Optional[str]:
    integration = get_integration(db, PROVIDER)
    if not integration or (require_auto_sync and not integration.auto_sync_enabled):
        logger.info("ℹ️ Microsoft Calendar not connected or auto-sync disabled")
        return None

    access_token = await get_valid_access_token(integration, db)
    if not access_token:
        logger.error("❌ Failed to get valid Microsoft access token")
    return access_token


async def create_calendar_event(booking: Booking, db: Session) -> Optional[str]:
    """Returns the Graph event ID if successful, None otherwise"""
    try:
        access_token = await _access_token(db)
        if not access_token:
            return None

        async with httpx.AsyncClient() as client:
            response = await client.post(
                f"{GRAPH_API}/me/events",
                headers={"Authorization": f"Bearer {access_token}"},
                json=build_event_data(booking),
            )

        if response.status_code not in [200, 201]:
            logger.error(f"❌ Failed to create Microsoft event: {response.text}")
            return None

        event_id = response.json().get("id")
        logger.info(f"✅ Microsoft Calendar event created: {event_id}")
        return event_id

    except Exception as e:
        logger.error(f"❌ Error creating Microsoft event: {str(e)}")
        return None


async def update_calendar_event(booking: Booking, db: Session) -> bool:
    if not booking.microsoft_event_id:
        return False

    try:
        access_token = await _access_token(db)
        if not access_token:
            return False

        async with httpx.AsyncClient() as client:
            response = await client.patch(
                f"{GRAPH_API}/me/events/{booking.microsoft_event_id}",
                headers={"Authorization": f"Bearer {access_token}"},
                json=build_event_data(booking),
            )

        if response.status_code != 200:
            logger.error(f"❌ Failed to update Microsoft event: {response.text}")
            return False

        logger.info(f"✅ Microsoft Calendar event updated: {booking.microsoft_event_id}")
        return True

    except Exception as e:
        logger.error(f"❌ Error updating Microsoft event: {str(e)}")
        return False


async def delete_calendar_event(microsoft_event_id: str, db: Session) -> bool:
    try:
        access_token = await _access_token(db, require_auto_sync=False)
        if not access_token:
            return False

        async with httpx.AsyncClient() as client:
            response = await client.delete(
                f"{GRAPH_API}/me/events/{microsoft_event_id}",
                headers={"Authorization": f"Bearer {access_token}"},
            )

        if response.status_code not in [200, 204, 404]:
            logger.error(f"❌ Failed to delete Microsoft event: {response.text}")
            return False

        logger.info(f"✅ Microsoft Calendar event deleted: {microsoft_event_id}")
        return True

    except Exception as e:
        logger.error(f"❌ Error deleting Microsoft event: {str(e)}")
        return False


async def get_busy_times(target_date: date, db: Session) -> list[dict]:
    """
    Timed events on a local date from /me/calendarview.
    Returns [] when Microsoft is not connected.

    Raises:
        CalendarAPIError: when the calendar cannot be read
    """
    integration = get_integration(db, PROVIDER)
    if not integration:
        return []

    access_token = await get_valid_access_token(integration, db)
    if not access_token:
        raise CalendarAPIError("Microsoft Calendar token unavailable")

    day_start, day_end = local_day_bounds(target_date)

    try:
        async with httpx.AsyncClient() as client:
            response = await client.get(
                f"{GRAPH_API}/me/calendarview",
                headers={
                    "Authorization": f"Bearer {access_token}",
                    "Prefer": f'outlook.timezone="{TIMEZONE}"',
                },
                params={
                    "startDateTime": day_start.isoformat(),
                    "endDateTime": day_end.isoformat(),
                },
            )
    except httpx.HTTPError as e:
        raise CalendarAPIError(f"Microsoft Calendar request failed: {e}") from e

    if response.status_code != 200:
        logger.error(f"❌ Failed to read Microsoft calendar view: {response.text}")
        raise CalendarAPIError("Failed to read Microsoft calendar view")

    busy = []
    for event in response.json().get("value", []):
        if event.get("isAllDay") or event.get("isCancelled") or event.get("showAs") == "free":
            continue
        start = event.get("start", {})
        end = event.get("end", {})
        if not start.get("dateTime") or not end.get("dateTime"):
            continue
        busy.append(
            {
                "start": parse_api_datetime(start["dateTime"], start.get("timeZone") or TIMEZONE),
                "end": parse_api_datetime(end["dateTime"], end.get("timeZone") or TIMEZONE),
                "source": PROVIDER,
                "summary": event.get("subject"),
            }
        )
    return busy
