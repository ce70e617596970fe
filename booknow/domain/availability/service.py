"""Availability service - Rule management and slot calculation"""

import calendar
import logging
from datetime import date, datetime, timedelta
from typing import Optional

import pytz
from fastapi import HTTPException
from sqlalchemy.orm import Session

from ...config import (
    MAX_BOOKING_ADVANCE_DAYS,
    MIN_BOOKING_NOTICE_HOURS,
    SLOT_INTERVAL,
    TIMEZONE,
)
from ...models import AvailabilityRule, ConsultationType
from ...scheduling import slots as slot_engine
from ...services import calendar_sync
from ...services.calendar_common import CalendarAPIError
from .repository import AvailabilityRepository
from .schemas import AvailabilityRuleCreate, AvailabilityRuleUpdate

logger = logging.getLogger(__name__)


def business_now() -> datetime:
    """Current time in the business timezone"""
    return datetime.now(pytz.timezone(TIMEZONE))


def earliest_start_minutes(target_date: date, now: datetime, min_notice_hours: int) -> Optional[int]:
    """
    First minute of target_date a slot may start at given the minimum notice,
    or None when the whole day is far enough out.
    """
    earliest = now + timedelta(hours=min_notice_hours)
    if earliest.date() < target_date:
        return None
    if earliest.date() > target_date:
        return slot_engine.MINUTES_PER_DAY
    minutes = earliest.hour * 60 + earliest.minute
    # Round partial minutes up
    if earliest.second or earliest.microsecond:
        minutes += 1
    return minutes


class AvailabilityService:
    """Service layer for availability rules and slot calculation"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = AvailabilityRepository()

    # ------------------------------------------------------------------
    # Rules
    # ------------------------------------------------------------------

    def list_rules(self, rule_type: Optional[str] = None, consultation_type_id: Optional[int] = None):
        return self.repo.get_all(self.db, rule_type=rule_type, consultation_type_id=consultation_type_id)

    def get_rule(self, rule_id: int) -> AvailabilityRule:
        rule = self.repo.get_by_id(self.db, rule_id)
        if not rule:
            raise HTTPException(status_code=404, detail="Availability rule not found")
        return rule

    def create_rule(self, data: AvailabilityRuleCreate) -> AvailabilityRule:
        values = data.model_dump()
        self._validate_rule(values)
        rule = self.repo.create(self.db, **values)
        logger.info(f"✅ Availability rule created: {rule.rule_type} #{rule.id}")
        return rule

    def update_rule(self, rule_id: int, data: AvailabilityRuleUpdate) -> AvailabilityRule:
        rule = self.get_rule(rule_id)
        updates = data.model_dump(exclude_unset=True)

        merged = {
            column: getattr(rule, column)
            for column in (
                "rule_type",
                "day_of_week",
                "specific_date",
                "start_time",
                "end_time",
                "consultation_type_id",
            )
        }
        merged.update(updates)
        self._validate_rule(merged)

        return self.repo.update(self.db, rule, **updates)

    def delete_rule(self, rule_id: int) -> dict:
        rule = self.get_rule(rule_id)
        self.repo.delete(self.db, rule)
        logger.info(f"🗑️ Availability rule deleted: {rule_id}")
        return {"message": "Availability rule deleted"}

    def _validate_rule(self, values: dict):
        rule_type = values.get("rule_type")

        if rule_type == "weekly" and values.get("day_of_week") is None:
            raise HTTPException(status_code=400, detail="Weekly rules require day_of_week")
        if rule_type == "specific_date" and values.get("specific_date") is None:
            raise HTTPException(status_code=400, detail="Specific date rules require specific_date")
        if rule_type == "block" and values.get("specific_date") is None and values.get("day_of_week") is None:
            raise HTTPException(status_code=400, detail="Blocks require specific_date or day_of_week")
        if rule_type in ("weekly", "specific_date") and (
            values.get("start_time") is None or values.get("end_time") is None
        ):
            raise HTTPException(status_code=400, detail="Start and end time are required")

        start, end = values.get("start_time"), values.get("end_time")
        if start is not None and end is not None and start >= end:
            raise HTTPException(status_code=400, detail="Start time must be before end time")

        type_id = values.get("consultation_type_id")
        if type_id is not None and not self.db.query(ConsultationType.id).filter(ConsultationType.id == type_id).first():
            raise HTTPException(status_code=400, detail="Consultation type not found")

    # ------------------------------------------------------------------
    # Slots
    # ------------------------------------------------------------------

    def get_booking_intervals(self, target_date: date):
        return [
            slot_engine.booking_interval(booking)
            for booking in self.repo.get_active_bookings(self.db, target_date)
        ]

    async def get_calendar_intervals(self, target_date: date):
        busy_times = await calendar_sync.get_busy_times(target_date, self.db)
        return slot_engine.busy_time_intervals(busy_times, target_date, TIMEZONE)

    async def calculate_slots(
        self,
        consultation_type: ConsultationType,
        target_date: date,
        now: Optional[datetime] = None,
    ) -> list[dict]:
        """
        Bookable slots for a type on a date, taking rules, existing bookings,
        connected calendars and the booking window into account.
        """
        now = now or business_now()
        if not slot_engine.is_date_bookable(target_date, now, MIN_BOOKING_NOTICE_HOURS, MAX_BOOKING_ADVANCE_DAYS):
            return []

        rules = self.repo.get_for_type(self.db, consultation_type.id)
        if not rules:
            return []

        busy = self.get_booking_intervals(target_date)
        try:
            busy.extend(await self.get_calendar_intervals(target_date))
        except CalendarAPIError as e:
            # Unknown calendar state: offer nothing rather than risk a double booking
            logger.error(f"❌ Calendar busy times unavailable for {target_date}: {e}")
            return []

        return slot_engine.calculate_slots(
            rules,
            target_date,
            consultation_type.id,
            consultation_type.duration,
            busy=busy,
            interval=SLOT_INTERVAL,
            buffer_before=consultation_type.buffer_before or 0,
            buffer_after=consultation_type.buffer_after or 0,
            earliest_start=earliest_start_minutes(target_date, now, MIN_BOOKING_NOTICE_HOURS),
        )

    def get_available_dates(
        self,
        consultation_type: ConsultationType,
        month_start: date,
        now: Optional[datetime] = None,
    ) -> list[str]:
        """Bookable dates of a month that have at least one open rule"""
        now = now or business_now()
        rules = self.repo.get_for_type(self.db, consultation_type.id)
        days_in_month = calendar.monthrange(month_start.year, month_start.month)[1]

        dates = []
        for day in range(1, days_in_month + 1):
            target_date = month_start.replace(day=day)
            if not slot_engine.is_date_bookable(
                target_date, now, MIN_BOOKING_NOTICE_HOURS, MAX_BOOKING_ADVANCE_DAYS
            ):
                continue
            resolved = slot_engine.resolve_rules(rules, target_date, consultation_type.id)
            if any(rule.is_available for rule in resolved):
                dates.append(target_date.isoformat())
        return dates
