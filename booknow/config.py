import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./booknow.db")

# Security - CRITICAL: No default secret key in production
SECRET_KEY = os.getenv("SECRET_KEY")
if not SECRET_KEY:
    import warnings

    warnings.warn(
        "SECRET_KEY not set! Using insecure default - DO NOT USE IN PRODUCTION", RuntimeWarning, stacklevel=2
    )
    SECRET_KEY = "INSECURE-DEV-KEY-CHANGE-IN-PRODUCTION"  # noqa: S105 - Dev fallback only

# Fernet key for secrets at rest (generate with: python -c "from cryptography.fernet import Fernet; print(Fernet.generate_key().decode())")
# Falls back to a key derived from SECRET_KEY when unset
ENCRYPTION_KEY = os.getenv("ENCRYPTION_KEY")

# Admin API access - exchanged for a short lived JWT at /admin/auth/token
ADMIN_API_KEY = os.getenv("ADMIN_API_KEY")
JWT_EXPIRE_MINUTES = int(os.getenv("JWT_EXPIRE_MINUTES", "60"))

# Public site used in email links
SITE_URL = os.getenv("SITE_URL", "http://localhost:8000")
BUSINESS_NAME = os.getenv("BUSINESS_NAME", "Book Now")
ADMIN_EMAIL = os.getenv("ADMIN_EMAIL")

# General booking settings
TIMEZONE = os.getenv("TIMEZONE", "UTC")
CURRENCY = os.getenv("CURRENCY", "USD")
SLOT_INTERVAL = int(os.getenv("SLOT_INTERVAL", "30"))  # minutes
MIN_BOOKING_NOTICE_HOURS = int(os.getenv("MIN_BOOKING_NOTICE_HOURS", "24"))
MAX_BOOKING_ADVANCE_DAYS = int(os.getenv("MAX_BOOKING_ADVANCE_DAYS", "90"))
DATE_FORMAT = os.getenv("DATE_FORMAT", "%B %d, %Y")
TIME_FORMAT = os.getenv("TIME_FORMAT", "%I:%M %p")
REMINDER_HOURS = int(os.getenv("REMINDER_HOURS", "24"))

# Payment settings
PAYMENT_REQUIRED = os.getenv("PAYMENT_REQUIRED", "false").lower() == "true"
STRIPE_SECRET_KEY = os.getenv("STRIPE_SECRET_KEY")
STRIPE_PUBLISHABLE_KEY = os.getenv("STRIPE_PUBLISHABLE_KEY")
STRIPE_WEBHOOK_SECRET = os.getenv("STRIPE_WEBHOOK_SECRET")

# Resend Email Configuration (fallback)
RESEND_API_KEY = os.getenv("RESEND_API_KEY")
EMAIL_FROM_ADDRESS = os.getenv("EMAIL_FROM_ADDRESS", "Book Now <noreply@example.com>")

# Custom SMTP (preferred when SMTP_HOST is set). SMTP_PASSWORD may be stored encrypted.
SMTP_HOST = os.getenv("SMTP_HOST")
SMTP_PORT = int(os.getenv("SMTP_PORT", "587"))
SMTP_USERNAME = os.getenv("SMTP_USERNAME")
SMTP_PASSWORD = os.getenv("SMTP_PASSWORD")
SMTP_USE_TLS = os.getenv("SMTP_USE_TLS", "true").lower() == "true"

# Google Calendar OAuth Configuration
GOOGLE_CLIENT_ID = os.getenv("GOOGLE_CLIENT_ID")
GOOGLE_CLIENT_SECRET = os.getenv("GOOGLE_CLIENT_SECRET")
GOOGLE_REDIRECT_URI = os.getenv("GOOGLE_REDIRECT_URI", f"{SITE_URL}/admin/google-calendar/callback")

# Microsoft Calendar OAuth Configuration
MICROSOFT_CLIENT_ID = os.getenv("MICROSOFT_CLIENT_ID")
MICROSOFT_CLIENT_SECRET = os.getenv("MICROSOFT_CLIENT_SECRET")
MICROSOFT_TENANT_ID = os.getenv("MICROSOFT_TENANT_ID", "common")
MICROSOFT_REDIRECT_URI = os.getenv(
    "MICROSOFT_REDIRECT_URI", f"{SITE_URL}/admin/microsoft-calendar/callback"
)

# Log retention (days)
ERROR_LOG_RETENTION_DAYS = int(os.getenv("ERROR_LOG_RETENTION_DAYS", "30"))
EMAIL_LOG_RETENTION_DAYS = int(os.getenv("EMAIL_LOG_RETENTION_DAYS", "90"))

# Rate limits per action: (max requests, window seconds)
RATE_LIMITS = {
    "booking_create": (int(os.getenv("RATE_LIMIT_BOOKING_CREATE", "5")), 3600),
    "availability_check": (int(os.getenv("RATE_LIMIT_AVAILABILITY_CHECK", "60")), 60),
    "booking_lookup": (int(os.getenv("RATE_LIMIT_BOOKING_LOOKUP", "20")), 60),
    "default": (100, 60),
}

# CORS
ALLOWED_ORIGINS = [o.strip() for o in os.getenv("ALLOWED_ORIGINS", "*").split(",") if o.strip()]

# arq worker (rate limiting reads REDIS_URL / REDIS_HOST directly)
REDIS_URL = os.getenv("REDIS_URL")
