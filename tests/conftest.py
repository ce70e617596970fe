import os

# Configure before booknow is imported: config values are read at import time
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["ERROR_LOG_TO_DB"] = "false"
os.environ["ADMIN_API_KEY"] = "test-admin-key"
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["TIMEZONE"] = "UTC"
os.environ["ADMIN_EMAIL"] = "admin@example.com"
os.environ["SITE_URL"] = "https://example.com"
os.environ["PAYMENT_REQUIRED"] = "false"
for name in (
    "REDIS_URL",
    "REDIS_HOST",
    "STRIPE_SECRET_KEY",
    "STRIPE_WEBHOOK_SECRET",
    "RESEND_API_KEY",
    "SMTP_HOST",
    "ENCRYPTION_KEY",
    "GOOGLE_CLIENT_ID",
    "MICROSOFT_CLIENT_ID",
):
    os.environ.pop(name, None)

from datetime import date, time, timedelta  # noqa: E402
from unittest.mock import AsyncMock, patch  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from booknow.database import Base, get_db  # noqa: E402
from booknow.main import app  # noqa: E402
from booknow.models import AvailabilityRule, Booking, ConsultationType  # noqa: E402
from booknow.rate_limiter import reset_rate_limits  # noqa: E402
from booknow.security import create_jwt_token  # noqa: E402

engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db():
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client(db):
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture(autouse=True)
def _reset_rate_limits():
    reset_rate_limits()
    yield
    reset_rate_limits()


@pytest.fixture(autouse=True)
def mock_send_email():
    """No email leaves the test run; every send succeeds unless a test says otherwise"""
    with patch(
        "booknow.services.notification_service.send_email",
        new=AsyncMock(return_value={"success": True, "id": "test", "html": "<p>email</p>"}),
    ) as mocked:
        yield mocked


@pytest.fixture
def admin_headers():
    token = create_jwt_token({"sub": "admin", "role": "admin"})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def future_date():
    """A date comfortably inside the booking window"""
    return date.today() + timedelta(days=7)


@pytest.fixture
def consultation_type(db):
    consultation_type = ConsultationType(
        name="Strategy Session",
        slug="strategy-session",
        duration=30,
        price=100,
        status="active",
    )
    db.add(consultation_type)
    db.commit()
    db.refresh(consultation_type)
    return consultation_type


@pytest.fixture
def weekly_rules(db):
    """09:00-12:00 every day of the week, for every consultation type"""
    rules = [
        AvailabilityRule(
            rule_type="weekly",
            day_of_week=day,
            start_time=time(9, 0),
            end_time=time(12, 0),
            is_available=True,
        )
        for day in range(7)
    ]
    db.add_all(rules)
    db.commit()
    return rules


@pytest.fixture
def make_booking(db, consultation_type):
    def _make(booking_date, booking_time=time(10, 0), **overrides):
        values = {
            "reference_number": overrides.pop("reference_number", f"BNTEST{booking_time.strftime('%H%M')}"),
            "consultation_type_id": consultation_type.id,
            "customer_name": "Jane Doe",
            "customer_email": "jane@example.com",
            "booking_date": booking_date,
            "booking_time": booking_time,
            "duration": consultation_type.duration,
            "status": "confirmed",
            "payment_status": "pending",
            "payment_amount": consultation_type.price,
        }
        values.update(overrides)
        booking = Booking(**values)
        db.add(booking)
        db.commit()
        db.refresh(booking)
        return booking

    return _make
