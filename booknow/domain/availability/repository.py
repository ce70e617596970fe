"""Availability repository - Database operations for availability rules"""

from datetime import date
from typing import Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session, joinedload

from ...models import AvailabilityRule, Booking


class AvailabilityRepository:
    """Repository for availability rule database operations"""

    @staticmethod
    def get_all(
        db: Session,
        rule_type: Optional[str] = None,
        consultation_type_id: Optional[int] = None,
    ) -> list[AvailabilityRule]:
        query = db.query(AvailabilityRule)

        if rule_type:
            query = query.filter(AvailabilityRule.rule_type == rule_type)
        if consultation_type_id:
            query = query.filter(AvailabilityRule.consultation_type_id == consultation_type_id)

        return query.order_by(
            AvailabilityRule.rule_type,
            AvailabilityRule.day_of_week,
            AvailabilityRule.specific_date,
            AvailabilityRule.start_time,
            AvailabilityRule.id,
        ).all()

    @staticmethod
    def get_for_type(db: Session, consultation_type_id: int) -> list[AvailabilityRule]:
        """Global rules plus the rules scoped to one type, in storage order"""
        return (
            db.query(AvailabilityRule)
            .filter(
                or_(
                    AvailabilityRule.consultation_type_id.is_(None),
                    AvailabilityRule.consultation_type_id == consultation_type_id,
                )
            )
            .order_by(AvailabilityRule.id)
            .all()
        )

    @staticmethod
    def get_by_id(db: Session, rule_id: int) -> Optional[AvailabilityRule]:
        return db.query(AvailabilityRule).filter(AvailabilityRule.id == rule_id).first()

    @staticmethod
    def create(db: Session, **data) -> AvailabilityRule:
        rule = AvailabilityRule(**data)
        db.add(rule)
        db.commit()
        db.refresh(rule)
        return rule

    @staticmethod
    def update(db: Session, rule: AvailabilityRule, **updates) -> AvailabilityRule:
        for key, value in updates.items():
            if hasattr(rule, key):
                setattr(rule, key, value)
        db.commit()
        db.refresh(rule)
        return rule

    @staticmethod
    def delete(db: Session, rule: AvailabilityRule) -> None:
        db.delete(rule)
        db.commit()

    @staticmethod
    def get_active_bookings(db: Session, target_date: date) -> list[Booking]:
        """Every booking on a date that still occupies time (anything but cancelled)"""
        query = (
            db.query(Booking)
            .options(joinedload(Booking.consultation_type))
            .filter(Booking.booking_date == target_date, Booking.status != "cancelled")
        )
        return query.order_by(Booking.booking_time).all()
