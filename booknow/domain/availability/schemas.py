"""Availability domain schemas - Pydantic models for validation"""

from datetime import date, datetime, time
from typing import Optional

from pydantic import BaseModel, field_validator

from ...models import RULE_TYPES


class AvailabilityRuleCreate(BaseModel):
    """Schema for creating an availability rule"""

    rule_type: str
    day_of_week: Optional[int] = None
    specific_date: Optional[date] = None
    start_time: Optional[time] = None
    end_time: Optional[time] = None
    is_available: bool = True
    consultation_type_id: Optional[int] = None
    priority: int = 0

    @field_validator("rule_type")
    @classmethod
    def validate_rule_type(cls, v):
        if v not in RULE_TYPES:
            raise ValueError(f"Rule type must be one of: {', '.join(RULE_TYPES)}")
        return v

    @field_validator("day_of_week")
    @classmethod
    def validate_day_of_week(cls, v):
        if v is not None and not 0 <= v <= 6:
            raise ValueError("Day of week must be between 0 (Sunday) and 6 (Saturday)")
        return v


class AvailabilityRuleUpdate(BaseModel):
    """Schema for updating a rule. Only provided fields change."""

    rule_type: Optional[str] = None
    day_of_week: Optional[int] = None
    specific_date: Optional[date] = None
    start_time: Optional[time] = None
    end_time: Optional[time] = None
    is_available: Optional[bool] = None
    consultation_type_id: Optional[int] = None
    priority: Optional[int] = None

    @field_validator("rule_type")
    @classmethod
    def validate_rule_type(cls, v):
        if v is not None and v not in RULE_TYPES:
            raise ValueError(f"Rule type must be one of: {', '.join(RULE_TYPES)}")
        return v

    @field_validator("day_of_week")
    @classmethod
    def validate_day_of_week(cls, v):
        if v is not None and not 0 <= v <= 6:
            raise ValueError("Day of week must be between 0 (Sunday) and 6 (Saturday)")
        return v


class AvailabilityRuleResponse(BaseModel):
    id: int
    rule_type: str
    day_of_week: Optional[int] = None
    specific_date: Optional[date] = None
    start_time: Optional[time] = None
    end_time: Optional[time] = None
    is_available: bool
    consultation_type_id: Optional[int] = None
    priority: int = 0
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class SlotResponse(BaseModel):
    time: str
    end_time: str
    available: bool = True


class AvailabilityResponse(BaseModel):
    date: str
    consultation_type_id: int
    slots: list[SlotResponse]


class AvailableDatesResponse(BaseModel):
    month: str
    consultation_type_id: int
    dates: list[str]
