"""
Response hardening for the JSON API.

Every response outside the excluded paths gets a fixed header set. HSTS is
only sent when ENVIRONMENT=production, and Cache-Control falls back to
no-store when the endpoint did not choose one itself.
"""

import logging
import os
from typing import Callable, Optional

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

logger = logging.getLogger(__name__)

IS_PRODUCTION = os.getenv("ENVIRONMENT", "development").lower() == "production"

# Nothing served here is a document, so nothing may load or frame it
CONTENT_SECURITY_POLICY = "; ".join(
    ["default-src 'none'", "frame-ancestors 'none'", "base-uri 'none'", "form-action 'none'"]
)

DISABLED_FEATURES = ("accelerometer", "camera", "geolocation", "microphone", "payment", "usb")

HSTS_VALUE = "max-age=31536000; includeSubDomains"


def build_security_headers(production: bool = IS_PRODUCTION) -> dict[str, str]:
    headers = {
        "X-Frame-Options": "DENY",
        "X-Content-Type-Options": "nosniff",
        "Referrer-Policy": "strict-origin-when-cross-origin",
        "Content-Security-Policy": CONTENT_SECURITY_POLICY,
        "Permissions-Policy": ", ".join(f"{feature}=()" for feature in DISABLED_FEATURES),
    }
    if production:
        headers["Strict-Transport-Security"] = HSTS_VALUE
    return headers


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    def __init__(self, app, exclude_paths: Optional[list[str]] = None, production: bool = IS_PRODUCTION):
        super().__init__(app)
        self.exclude_paths = tuple(exclude_paths or ())
        self.headers = build_security_headers(production)

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        response = await call_next(request)
        if self.exclude_paths and request.url.path.startswith(self.exclude_paths):
            return response

        response.headers.update(self.headers)
        # CSV exports choose their own caching
        response.headers.setdefault("Cache-Control", "no-store")
        return response
