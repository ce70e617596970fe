"""
Calendar Integration Routes
OAuth connection, status and manual sync for Google and Microsoft calendars
"""

import logging
from datetime import timedelta

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel
from sqlalchemy.orm import Session

from ..database import get_db
from ..models import Booking
from ..security import create_jwt_token, get_current_admin, verify_jwt_token
from ..services import calendar_sync, google_calendar_service, microsoft_calendar_service
from ..services.calendar_common import CalendarAPIError, get_integration
from ..shared.validators import parse_date

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/calendar", tags=["Admin: Calendar"], dependencies=[Depends(get_current_admin)])

PROVIDER_SERVICES = {
    "google": google_calendar_service,
    "microsoft": microsoft_calendar_service,
}

OAUTH_STATE_TTL = timedelta(minutes=10)


class OAuthCallback(BaseModel):
    code: str
    state: str


class AutoSyncUpdate(BaseModel):
    auto_sync_enabled: bool


def _service(provider: str):
    service = PROVIDER_SERVICES.get(provider)
    if service is None:
        raise HTTPException(status_code=404, detail=f"Unknown calendar provider: {provider}")
    return service


@router.get("/status")
async def calendar_status(db: Session = Depends(get_db)):
    """Connection status of every provider"""
    status = {}
    for provider, service in PROVIDER_SERVICES.items():
        integration = get_integration(db, provider)
        status[provider] = {
            "configured": service.is_configured(),
            "connected": integration is not None,
            "account_email": integration.account_email if integration else None,
            "calendar_id": integration.calendar_id if integration else None,
            "auto_sync_enabled": integration.auto_sync_enabled if integration else None,
        }
    return status


@router.get("/{provider}/connect")
async def initiate_oauth(provider: str):
    """Authorization URL for the provider's consent screen"""
    service = _service(provider)
    if not service.is_configured():
        raise HTTPException(status_code=500, detail=f"{provider.title()} Calendar not configured")

    state = create_jwt_token({"purpose": "calendar_oauth", "provider": provider}, OAUTH_STATE_TTL)
    logger.info(f"📅 {provider.title()} Calendar OAuth initiated")
    return {"authorization_url": service.get_authorization_url(state)}


@router.post("/{provider}/callback")
async def handle_oauth_callback(provider: str, data: OAuthCallback, db: Session = Depends(get_db)):
    """Exchange the authorization code returned to the redirect URI"""
    service = _service(provider)

    state = verify_jwt_token(data.state)
    if not state or state.get("purpose") != "calendar_oauth" or state.get("provider") != provider:
        raise HTTPException(status_code=400, detail="Invalid or expired OAuth state")

    try:
        integration = await service.exchange_code(data.code, db)
    except CalendarAPIError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e

    return {
        "success": True,
        "provider": provider,
        "account_email": integration.account_email,
        "calendar_id": integration.calendar_id,
    }


@router.put("/{provider}/settings")
async def update_calendar_settings(provider: str, data: AutoSyncUpdate, db: Session = Depends(get_db)):
    _service(provider)
    integration = get_integration(db, provider)
    if not integration:
        raise HTTPException(status_code=404, detail=f"{provider.title()} Calendar not connected")

    integration.auto_sync_enabled = data.auto_sync_enabled
    db.commit()
    return {"success": True, "auto_sync_enabled": integration.auto_sync_enabled}


@router.delete("/{provider}")
async def disconnect_calendar(provider: str, db: Session = Depends(get_db)):
    service = _service(provider)
    if not await service.disconnect(db):
        raise HTTPException(status_code=404, detail=f"{provider.title()} Calendar not connected")
    return {"success": True, "message": f"{provider.title()} Calendar disconnected"}


@router.post("/sync/{booking_id}")
async def sync_booking(booking_id: int, db: Session = Depends(get_db)):
    """Push one booking to every connected calendar"""
    booking = db.query(Booking).filter(Booking.id == booking_id).first()
    if not booking:
        raise HTTPException(status_code=404, detail="Booking not found")

    results = await calendar_sync.manual_sync(booking, db)
    return {"booking_id": booking_id, "results": results}


@router.post("/sync-pending")
async def sync_pending(limit: int = Query(50, ge=1, le=200), db: Session = Depends(get_db)):
    return await calendar_sync.sync_all_pending(db, limit=limit)


@router.get("/busy-times")
async def test_busy_times(date: str = Query(...), db: Session = Depends(get_db)):
    """Busy time on a date as reported by the connected calendars"""
    target_date = parse_date(date)
    if target_date is None:
        raise HTTPException(status_code=400, detail="Invalid date format. Use YYYY-MM-DD.")

    try:
        busy = await calendar_sync.get_busy_times(target_date, db)
    except CalendarAPIError as e:
        raise HTTPException(status_code=502, detail=str(e)) from e

    return {
        "date": target_date.isoformat(),
        "busy_times": [
            {
                "start": b["start"].isoformat(),
                "end": b["end"].isoformat(),
                "source": b.get("source"),
                "summary": b.get("summary"),
            }
            for b in busy
        ],
    }
