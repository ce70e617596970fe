"""Booking repository - Database operations for bookings"""

import logging
from datetime import date
from typing import Optional

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload

from ...models import BOOKING_STATUSES, Booking, SlotLock
from ...scheduling.slots import booking_interval, is_slot_free, time_to_minutes
from ...shared.errors import SlotUnavailableError
from ...shared.formatting import generate_reference_number

logger = logging.getLogger(__name__)

ALLOWED_ORDER_BY = ("booking_date", "booking_time", "created_at", "customer_name", "status", "payment_status", "id")


class BookingRepository:
    """Repository for booking database operations"""

    @staticmethod
    def _filtered(
        db: Session,
        status: Optional[str] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
        consultation_type_id: Optional[int] = None,
    ):
        query = db.query(Booking)
        if status:
            query = query.filter(Booking.status == status)
        if date_from:
            query = query.filter(Booking.booking_date >= date_from)
        if date_to:
            query = query.filter(Booking.booking_date <= date_to)
        if consultation_type_id:
            query = query.filter(Booking.consultation_type_id == consultation_type_id)
        return query

    @staticmethod
    def get_all(
        db: Session,
        status: Optional[str] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
        consultation_type_id: Optional[int] = None,
        limit: int = 50,
        offset: int = 0,
        order_by: str = "booking_date",
        order: str = "desc",
    ) -> list[Booking]:
        query = BookingRepository._filtered(db, status, date_from, date_to, consultation_type_id)

        column = getattr(Booking, order_by if order_by in ALLOWED_ORDER_BY else "booking_date")
        column = column.asc() if str(order).lower() == "asc" else column.desc()
        return (
            query.options(joinedload(Booking.consultation_type))
            .order_by(column, Booking.id.desc())
            .offset(offset)
            .limit(limit)
            .all()
        )

    @staticmethod
    def count(
        db: Session,
        status: Optional[str] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
        consultation_type_id: Optional[int] = None,
    ) -> int:
        return BookingRepository._filtered(db, status, date_from, date_to, consultation_type_id).count()

    @staticmethod
    def get_by_id(db: Session, booking_id: int) -> Optional[Booking]:
        return db.query(Booking).filter(Booking.id == booking_id).first()

    @staticmethod
    def get_by_reference(db: Session, reference: str) -> Optional[Booking]:
        return db.query(Booking).filter(Booking.reference_number == reference).first()

    @staticmethod
    def get_by_payment_intent(db: Session, payment_intent_id: str) -> Optional[Booking]:
        return db.query(Booking).filter(Booking.payment_intent_id == payment_intent_id).first()

    @staticmethod
    def update(db: Session, booking: Booking, **updates) -> Booking:
        for key, value in updates.items():
            if hasattr(booking, key):
                setattr(booking, key, value)
        db.commit()
        db.refresh(booking)
        return booking

    @staticmethod
    def delete(db: Session, booking: Booking) -> None:
        db.delete(booking)
        db.commit()

    @staticmethod
    def get_stats(db: Session) -> dict:
        counts = dict(db.query(Booking.status, func.count(Booking.id)).group_by(Booking.status).all())
        stats = {"total": sum(counts.values())}
        for status in BOOKING_STATUSES:
            stats[status] = counts.get(status, 0)
        stats["upcoming"] = (
            db.query(func.count(Booking.id))
            .filter(Booking.booking_date >= date.today(), Booking.status.in_(["pending", "confirmed"]))
            .scalar()
            or 0
        )
        stats["revenue"] = float(
            db.query(func.coalesce(func.sum(Booking.payment_amount), 0))
            .filter(Booking.payment_status == "paid")
            .scalar()
            or 0
        )
        return stats

    @staticmethod
    def _lock_date(db: Session, lock_date: date) -> SlotLock:
        """SELECT ... FOR UPDATE the date's lock row, creating it on first use"""
        lock = db.query(SlotLock).filter(SlotLock.lock_date == lock_date).with_for_update().first()
        if lock is not None:
            return lock

        try:
            db.add(SlotLock(lock_date=lock_date))
            db.flush()
        except IntegrityError:
            # Another request created the row first
            db.rollback()
        return db.query(SlotLock).filter(SlotLock.lock_date == lock_date).with_for_update().one()

    @staticmethod
    def create_with_lock(
        db: Session,
        buffer_before: int = 0,
        buffer_after: int = 0,
        **data,
    ) -> Booking:
        """
        Insert a booking while holding the row lock for its date. The overlap
        check is repeated under the lock, and the partial unique index on
        (booking_date, booking_time) catches anything that still slips through.

        Raises:
            SlotUnavailableError: the time was taken by a concurrent booking
        """
        booking_date = data["booking_date"]
        start = time_to_minutes(data["booking_time"])

        try:
            BookingRepository._lock_date(db, booking_date)

            existing = (
                db.query(Booking)
                .options(joinedload(Booking.consultation_type))
                .filter(Booking.booking_date == booking_date, Booking.status != "cancelled")
                .all()
            )
            busy = [booking_interval(b) for b in existing]
            if not is_slot_free(start, data["duration"], busy, buffer_before, buffer_after):
                db.rollback()
                logger.warning(f"⚠️ Slot taken during booking insert: {booking_date} {data['booking_time']}")
                raise SlotUnavailableError("This time slot is no longer available.")

            booking = Booking(reference_number=generate_reference_number(), **data)
            db.add(booking)
            db.commit()
        except IntegrityError as e:
            db.rollback()
            logger.warning(f"⚠️ Unique slot index rejected booking {booking_date} {data['booking_time']}: {e.orig}")
            raise SlotUnavailableError("This time slot is no longer available.") from e

        db.refresh(booking)
        logger.info(f"✅ Booking created: {booking.reference_number} on {booking_date} {data['booking_time']}")
        return booking
