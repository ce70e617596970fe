"""Availability router - Public slot lookup and admin rule management"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...database import get_db
from ...models import ConsultationType
from ...rate_limiter import create_rate_limiter
from ...security import get_current_admin
from ...shared.errors import api_error
from ...shared.validators import parse_date, parse_month
from .schemas import (
    AvailabilityResponse,
    AvailabilityRuleCreate,
    AvailabilityRuleResponse,
    AvailabilityRuleUpdate,
    AvailableDatesResponse,
)
from .service import AvailabilityService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/availability", tags=["Availability"])
admin_router = APIRouter(
    prefix="/availability", tags=["Admin: Availability"], dependencies=[Depends(get_current_admin)]
)


def get_availability_service(db: Session = Depends(get_db)) -> AvailabilityService:
    """Dependency injection for AvailabilityService"""
    return AvailabilityService(db)


def _get_consultation_type(db: Session, consultation_type_id: int) -> ConsultationType:
    consultation_type = db.query(ConsultationType).filter(ConsultationType.id == consultation_type_id).first()
    if not consultation_type:
        raise api_error(404, "not_found", "Consultation type not found.")
    return consultation_type


# ============================================================================
# PUBLIC
# ============================================================================


@router.get("", response_model=AvailabilityResponse)
async def get_availability(
    consultation_type_id: int = Query(...),
    date: str = Query(...),
    db: Session = Depends(get_db),
    service: AvailabilityService = Depends(get_availability_service),
    _: None = Depends(create_rate_limiter("availability_check")),
):
    """Bookable slots for a consultation type on a YYYY-MM-DD date"""
    target_date = parse_date(date)
    if target_date is None:
        raise api_error(400, "invalid_date", "Invalid date format. Use YYYY-MM-DD.")

    consultation_type = _get_consultation_type(db, consultation_type_id)
    slots = await service.calculate_slots(consultation_type, target_date)

    return {"date": target_date.isoformat(), "consultation_type_id": consultation_type_id, "slots": slots}


@router.get("/dates", response_model=AvailableDatesResponse)
async def get_available_dates(
    consultation_type_id: int = Query(...),
    month: str = Query(...),
    db: Session = Depends(get_db),
    service: AvailabilityService = Depends(get_availability_service),
    _: None = Depends(create_rate_limiter("availability_check")),
):
    """Dates in a YYYY-MM month that have bookable hours"""
    month_start = parse_month(month)
    if month_start is None:
        raise api_error(400, "invalid_date", "Invalid month format. Use YYYY-MM.")

    consultation_type = _get_consultation_type(db, consultation_type_id)
    return {
        "month": month_start.strftime("%Y-%m"),
        "consultation_type_id": consultation_type_id,
        "dates": service.get_available_dates(consultation_type, month_start),
    }


# ============================================================================
# ADMIN
# ============================================================================


@admin_router.get("", response_model=list[AvailabilityRuleResponse])
async def admin_list_rules(
    rule_type: Optional[str] = Query(None),
    consultation_type_id: Optional[int] = Query(None),
    service: AvailabilityService = Depends(get_availability_service),
):
    return service.list_rules(rule_type=rule_type, consultation_type_id=consultation_type_id)


@admin_router.get("/{rule_id}", response_model=AvailabilityRuleResponse)
async def admin_get_rule(rule_id: int, service: AvailabilityService = Depends(get_availability_service)):
    return service.get_rule(rule_id)


@admin_router.post("", response_model=AvailabilityRuleResponse, status_code=201)
async def admin_create_rule(
    data: AvailabilityRuleCreate, service: AvailabilityService = Depends(get_availability_service)
):
    return service.create_rule(data)


@admin_router.put("/{rule_id}", response_model=AvailabilityRuleResponse)
async def admin_update_rule(
    rule_id: int,
    data: AvailabilityRuleUpdate,
    service: AvailabilityService = Depends(get_availability_service),
):
    return service.update_rule(rule_id, data)


@admin_router.delete("/{rule_id}")
async def admin_delete_rule(rule_id: int, service: AvailabilityService = Depends(get_availability_service)):
    return service.delete_rule(rule_id)


__all__ = ["router", "admin_router"]
