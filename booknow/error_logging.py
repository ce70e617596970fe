"""
Persistent error logging

ERROR and CRITICAL records from the booknow loggers are written to the
booknow_error_log table by ErrorLogHandler so they can be reviewed from the
admin API. log_error() records an entry directly with request details.
"""

import ipaddress
import logging
import os
import threading
from typing import Any, Optional

from fastapi import Request
from sqlalchemy.orm import Session

from .models import ErrorLog

logger = logging.getLogger(__name__)

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
PERSISTED_LEVELS = ("ERROR", "CRITICAL")

ERROR_LOG_TO_DB = os.getenv("ERROR_LOG_TO_DB", "true").lower() == "true"


def normalize_level(level: Optional[str]) -> str:
    level = (level or "").upper()
    return level if level in LOG_LEVELS else "ERROR"


def anonymize_ip(ip: Optional[str]) -> Optional[str]:
    """
    IPv4: replace the last octet with xxx (203.0.113.42 -> 203.0.113.xxx)
    IPv6: keep the first three groups (2001:db8:85a3::1 -> 2001:db8:85a3:xxxx:xxxx:xxxx:xxxx:xxxx)
    """
    if not ip:
        return ip

    try:
        parsed = ipaddress.ip_address(ip.strip())
    except ValueError:
        return "unknown"

    if parsed.version == 4:
        octets = str(parsed).split(".")
        return ".".join(octets[:3] + ["xxx"])

    groups = parsed.exploded.split(":")
    prefix = ":".join(g.lstrip("0") or "0" for g in groups[:3])
    return prefix + ":xxxx:xxxx:xxxx:xxxx:xxxx"


def log_error(
    db: Session,
    level: str,
    message: str,
    context: Optional[dict[str, Any]] = None,
    source: Optional[str] = None,
    booking_id: Optional[int] = None,
    user_id: Optional[str] = None,
    request: Optional[Request] = None,
) -> Optional[ErrorLog]:
    """Record an error log entry. Returns None if the entry could not be saved."""
    from .rate_limiter import get_client_ip

    entry = ErrorLog(
        error_level=normalize_level(level),
        error_message=message,
        error_context=context or None,
        error_source=source,
        booking_id=booking_id,
        user_id=user_id,
    )

    if request is not None:
        entry.ip_address = anonymize_ip(get_client_ip(request))
        entry.user_agent = (request.headers.get("user-agent") or "")[:500] or None
        entry.request_uri = str(request.url.path)[:500]

    try:
        db.add(entry)
        db.commit()
        db.refresh(entry)
        return entry
    except Exception as e:
        db.rollback()
        # WARNING, not ERROR: ErrorLogHandler would try the same table again
        logger.warning(f"⚠️ Failed to write error log entry: {e}")
        return None


class ErrorLogHandler(logging.Handler):
    """logging.Handler that persists ERROR and CRITICAL records"""

    def __init__(self, session_factory=None, level=logging.ERROR):
        super().__init__(level=level)
        self.session_factory = session_factory
        self._local = threading.local()

    def emit(self, record: logging.LogRecord):
        if getattr(self._local, "active", False):
            return
        if record.levelname not in PERSISTED_LEVELS:
            return

        self._local.active = True
        db = None
        try:
            if self.session_factory is None:
                from .database import SessionLocal

                self.session_factory = SessionLocal

            context = {"logger": record.name, "function": record.funcName, "line": record.lineno}
            if record.exc_info:
                context["exception"] = self.format(record).splitlines()[-1]

            db = self.session_factory()
            db.add(
                ErrorLog(
                    error_level=record.levelname,
                    error_message=record.getMessage()[:5000],
                    error_context=context,
                    error_source=getattr(record, "source", None) or record.module,
                    booking_id=getattr(record, "booking_id", None),
                )
            )
            db.commit()
        except Exception:
            self.handleError(record)
        finally:
            if db is not None:
                db.close()
            self._local.active = False


def install_error_log_handler(session_factory=None) -> Optional[ErrorLogHandler]:
    """Attach ErrorLogHandler to the booknow logger once"""
    if not ERROR_LOG_TO_DB:
        return None

    package_logger = logging.getLogger("booknow")
    for handler in package_logger.handlers:
        if isinstance(handler, ErrorLogHandler):
            return handler

    handler = ErrorLogHandler(session_factory=session_factory)
    package_logger.addHandler(handler)
    return handler
