from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    Time,
    text,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .database import Base

BOOKING_STATUSES = ("pending", "confirmed", "completed", "cancelled", "no-show")
PAYMENT_STATUSES = ("pending", "paid", "refunded", "failed")
TERMINAL_STATUSES = ("cancelled", "completed", "no-show")
RULE_TYPES = ("weekly", "specific_date", "block")


class Category(Base):
    __tablename__ = "booknow_categories"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    slug = Column(String(255), unique=True, index=True, nullable=False)
    description = Column(Text, nullable=True)
    parent_id = Column(Integer, ForeignKey("booknow_categories.id"), nullable=True, index=True)
    display_order = Column(Integer, default=0, nullable=False)
    status = Column(String(20), default="active", nullable=False)  # active, inactive
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    parent = relationship("Category", remote_side=[id], backref="children")
    consultation_types = relationship("ConsultationType", back_populates="category")


class ConsultationType(Base):
    __tablename__ = "booknow_consultation_types"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    slug = Column(String(255), unique=True, index=True, nullable=False)
    description = Column(Text, nullable=True)
    duration = Column(Integer, default=30, nullable=False)  # minutes
    price = Column(Float, default=0, nullable=False)
    deposit_amount = Column(Float, default=0, nullable=False)
    deposit_type = Column(String(20), default="fixed", nullable=False)  # fixed, percentage
    require_deposit = Column(Boolean, default=False, nullable=False)
    category_id = Column(Integer, ForeignKey("booknow_categories.id"), nullable=True, index=True)
    buffer_before = Column(Integer, default=0, nullable=False)  # minutes
    buffer_after = Column(Integer, default=0, nullable=False)  # minutes
    status = Column(String(20), default="active", nullable=False, index=True)  # active, inactive
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    category = relationship("Category", back_populates="consultation_types")
    bookings = relationship("Booking", back_populates="consultation_type")


class Booking(Base):
    __tablename__ = "booknow_bookings"
    __table_args__ = (
        # Backstop for the row lock: one live booking per start time
        Index(
            "uq_booknow_bookings_active_slot",
            "booking_date",
            "booking_time",
            unique=True,
            sqlite_where=text("status != 'cancelled'"),
            postgresql_where=text("status != 'cancelled'"),
        ),
    )

    id = Column(Integer, primary_key=True, index=True)
    reference_number = Column(String(20), unique=True, index=True, nullable=False)
    consultation_type_id = Column(
        Integer, ForeignKey("booknow_consultation_types.id"), nullable=False, index=True
    )
    customer_name = Column(String(255), nullable=False)
    customer_email = Column(String(255), nullable=False, index=True)
    customer_phone = Column(String(50), nullable=True)
    customer_notes = Column(Text, nullable=True)
    booking_date = Column(Date, nullable=False, index=True)
    booking_time = Column(Time, nullable=False)
    duration = Column(Integer, nullable=False)  # minutes, copied from the type at booking time
    timezone = Column(String(64), nullable=True)
    status = Column(String(20), default="pending", nullable=False, index=True)
    payment_status = Column(String(20), default="pending", nullable=False)
    payment_amount = Column(Float, default=0, nullable=False)
    deposit_amount = Column(Float, default=0, nullable=False)
    payment_intent_id = Column(String(255), nullable=True, index=True)
    payment_date = Column(DateTime, nullable=True)
    google_event_id = Column(String(255), nullable=True)
    microsoft_event_id = Column(String(255), nullable=True)
    reminder_sent = Column(Boolean, default=False, nullable=False)
    reminder_sent_at = Column(DateTime, nullable=True)
    admin_notes = Column(Text, nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    consultation_type = relationship("ConsultationType", back_populates="bookings")


class AvailabilityRule(Base):
    __tablename__ = "booknow_availability"

    id = Column(Integer, primary_key=True, index=True)
    rule_type = Column(String(20), nullable=False, index=True)  # weekly, specific_date, block
    day_of_week = Column(Integer, nullable=True)  # 0 = Sunday ... 6 = Saturday
    specific_date = Column(Date, nullable=True, index=True)
    start_time = Column(Time, nullable=True)
    end_time = Column(Time, nullable=True)
    is_available = Column(Boolean, default=True, nullable=False)
    consultation_type_id = Column(
        Integer, ForeignKey("booknow_consultation_types.id", ondelete="CASCADE"), nullable=True, index=True
    )  # NULL = applies to every type
    priority = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime, server_default=func.now())


class SlotLock(Base):
    """One row per booking date, locked FOR UPDATE while a booking is inserted"""

    __tablename__ = "booknow_slot_locks"

    id = Column(Integer, primary_key=True)
    lock_date = Column(Date, unique=True, nullable=False)
    created_at = Column(DateTime, server_default=func.now())


class CalendarIntegration(Base):
    __tablename__ = "booknow_calendar_integrations"

    id = Column(Integer, primary_key=True, index=True)
    provider = Column(String(20), unique=True, nullable=False)  # google, microsoft

    # OAuth tokens (encrypted)
    access_token = Column(Text, nullable=False)
    refresh_token = Column(Text, nullable=False)
    token_expires_at = Column(DateTime, nullable=False)

    account_email = Column(String(255), nullable=True)
    calendar_id = Column(String(500), nullable=True)
    tenant = Column(String(100), nullable=True)  # microsoft only
    auto_sync_enabled = Column(Boolean, default=True)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())


class EmailLog(Base):
    __tablename__ = "booknow_email_log"

    id = Column(Integer, primary_key=True, index=True)
    booking_id = Column(Integer, ForeignKey("booknow_bookings.id", ondelete="SET NULL"), nullable=True, index=True)
    email_type = Column(String(50), nullable=False, index=True)
    recipient_email = Column(String(255), nullable=False)
    subject = Column(String(500), nullable=False)
    status = Column(String(20), nullable=False, index=True)  # sent, failed
    error_message = Column(Text, nullable=True)
    body = Column(Text, nullable=True)  # encrypted
    sent_at = Column(DateTime, server_default=func.now(), index=True)


class ErrorLog(Base):
    __tablename__ = "booknow_error_log"

    id = Column(Integer, primary_key=True, index=True)
    error_level = Column(String(20), nullable=False, index=True)
    error_message = Column(Text, nullable=False)
    error_context = Column(JSON, nullable=True)
    error_source = Column(String(100), nullable=True, index=True)
    booking_id = Column(Integer, nullable=True, index=True)
    user_id = Column(String(100), nullable=True)
    ip_address = Column(String(100), nullable=True)
    user_agent = Column(String(500), nullable=True)
    request_uri = Column(String(500), nullable=True)
    created_at = Column(DateTime, server_default=func.now(), index=True)


class WebhookLog(Base):
    __tablename__ = "booknow_webhook_log"

    id = Column(Integer, primary_key=True, index=True)
    provider = Column(String(20), default="stripe", nullable=False)
    event_id = Column(String(255), nullable=True, index=True)
    event_type = Column(String(100), nullable=True)
    payload = Column(Text, nullable=True)
    created_at = Column(DateTime, server_default=func.now())
