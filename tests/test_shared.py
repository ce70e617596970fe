from datetime import date, time

import pytest
from fastapi import FastAPI
from fastapi.responses import PlainTextResponse
from fastapi.testclient import TestClient

from booknow.models import Category
from booknow.security_headers import SecurityHeadersMiddleware
from booknow.shared.formatting import (
    format_date,
    format_price,
    format_time,
    generate_reference_number,
    payment_status_label,
    status_label,
)
from booknow.shared.slugs import slugify, unique_slug
from booknow.shared.validators import (
    normalize_time,
    parse_date,
    parse_month,
    validate_date,
    validate_email,
    validate_time,
)
from booknow.utils.sanitization import sanitize_phone, sanitize_string, sanitize_text


class TestValidators:
    def test_validate_email(self):
        assert validate_email("  jane@example.com ") == "jane@example.com"
        with pytest.raises(ValueError):
            validate_email("not-an-email")

    def test_validate_date_is_strict(self):
        assert validate_date("2030-01-31")
        assert not validate_date("2030-02-30")
        assert not validate_date("31/01/2030")
        assert not validate_date("2030-1-5")
        assert parse_date("2030-01-31") == date(2030, 1, 31)

    def test_parse_month(self):
        assert parse_month("2030-02") == date(2030, 2, 1)
        assert parse_month("2030-13") is None
        assert parse_month("2030-02-01") is None

    def test_validate_time_formats(self):
        assert validate_time("09:30")
        assert validate_time("09:30:15")
        assert not validate_time("9:30")
        assert not validate_time("25:00")
        assert not validate_time("")

    def test_normalize_time(self):
        assert normalize_time("09:30") == "09:30:00"
        assert normalize_time("14:05:09") == "14:05:09"
        assert normalize_time("bad") is None


class TestFormatting:
    @pytest.mark.parametrize(
        "currency,expected",
        [
            ("USD", "$1,234.50"),
            ("EUR", "€1,234.50"),
            ("GBP", "£1,234.50"),
            ("JPY", "¥1,234.50"),
            ("CAD", "C$1,234.50"),
            ("AUD", "A$1,234.50"),
            ("CHF", "CHF 1,234.50"),
        ],
    )
    def test_format_price_symbols(self, currency, expected):
        assert format_price(1234.5, currency) == expected

    def test_format_price_handles_none(self):
        assert format_price(None, "usd") == "$0.00"

    def test_format_date_and_time_use_configured_formats(self):
        assert format_date(date(2030, 1, 7)) == "January 07, 2030"
        assert format_date("2030-01-07") == "January 07, 2030"
        assert format_time(time(14, 30)) == "02:30 PM"
        assert format_time("09:05:00") == "09:05 AM"

    def test_status_labels(self):
        assert status_label("no-show") == "No Show"
        assert status_label("archived") == "Archived"
        assert payment_status_label("refunded") == "Refunded"

    def test_reference_numbers_are_unique_and_prefixed(self):
        references = {generate_reference_number() for _ in range(50)}
        assert len(references) == 50
        for reference in references:
            assert reference.startswith("BN")
            assert len(reference) == 14


class TestSanitization:
    def test_sanitize_string_escapes_html(self):
        assert sanitize_string("  <b>Jane</b> ") == "&lt;b&gt;Jane&lt;/b&gt;"
        assert sanitize_string(None) is None

    def test_sanitize_text_strips_control_characters(self):
        assert sanitize_text("line one\nline\x07 two") == "line one\nline two"

    def test_sanitize_phone(self):
        assert sanitize_phone("+1 (555) 010-9999 ext") == "+1 (555) 010-9999"


class TestSlugs:
    def test_slugify(self):
        assert slugify("  Café Consultation & More ") == "cafe-consultation-more"

    def test_unique_slug_appends_counter(self, db):
        db.add(Category(name="Coaching", slug="coaching"))
        db.add(Category(name="Coaching", slug="coaching-1"))
        db.commit()
        assert unique_slug(db, Category, "Coaching") == "coaching-2"
        assert unique_slug(db, Category, "Therapy") == "therapy"


class TestSecurityHeaders:
    def make_client(self, production=False):
        app = FastAPI()
        app.add_middleware(SecurityHeadersMiddleware, exclude_paths=["/health"], production=production)

        @app.get("/data")
        def data():
            return {"ok": True}

        @app.get("/export")
        def export():
            return PlainTextResponse("a,b", headers={"Cache-Control": "private, max-age=60"})

        @app.get("/health")
        def health():
            return {"status": "healthy"}

        return TestClient(app)

    def test_headers_applied(self):
        response = self.make_client().get("/data")
        assert response.headers["X-Frame-Options"] == "DENY"
        assert response.headers["X-Content-Type-Options"] == "nosniff"
        assert response.headers["Content-Security-Policy"].startswith("default-src 'none'")
        assert "camera=()" in response.headers["Permissions-Policy"]
        assert response.headers["Cache-Control"] == "no-store"
        assert "Strict-Transport-Security" not in response.headers

    def test_hsts_in_production(self):
        response = self.make_client(production=True).get("/data")
        assert response.headers["Strict-Transport-Security"] == "max-age=31536000; includeSubDomains"

    def test_endpoint_cache_control_kept(self):
        assert self.make_client().get("/export").headers["Cache-Control"] == "private, max-age=60"

    def test_excluded_paths_untouched(self):
        assert "X-Frame-Options" not in self.make_client().get("/health").headers
