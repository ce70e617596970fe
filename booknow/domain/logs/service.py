"""Log service - Browsing, statistics, export and retention for error and email logs"""

import csv
import logging
import math
from datetime import datetime, timedelta
from io import StringIO
from typing import Optional

from fastapi import HTTPException
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session

from ...config import EMAIL_LOG_RETENTION_DAYS, ERROR_LOG_RETENTION_DAYS
from ...models import Booking, EmailLog, ErrorLog
from ...services import notification_service
from .repository import EmailLogRepository, ErrorLogRepository

logger = logging.getLogger(__name__)

MAX_PER_PAGE = 100


def _paginate(query, order_column, page: int, per_page: int) -> dict:
    per_page = max(1, min(per_page, MAX_PER_PAGE))
    page = max(1, page)
    total = query.count()
    logs = query.order_by(order_column.desc()).offset((page - 1) * per_page).limit(per_page).all()
    return {
        "logs": logs,
        "total": total,
        "page": page,
        "per_page": per_page,
        "total_pages": math.ceil(total / per_page) if total else 0,
    }


def _csv_response(header: list[str], rows: list[list], prefix: str) -> StreamingResponse:
    output = StringIO()
    writer = csv.writer(output)
    writer.writerow(header)
    writer.writerows(rows)

    output.seek(0)
    filename = f"{prefix}_{datetime.now().strftime('%Y%m%d_%H%M%S')}.csv"
    logger.info(f"✅ CSV export: {filename} ({len(rows)} rows)")

    return StreamingResponse(
        iter([output.getvalue()]),
        media_type="text/csv",
        headers={
            "Content-Disposition": f"attachment; filename={filename}",
            "Cache-Control": "no-cache",
        },
    )


def _fmt(value: Optional[datetime]) -> str:
    return value.strftime("%Y-%m-%d %H:%M:%S") if value else ""


class ErrorLogService:
    """Service layer for the error log"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = ErrorLogRepository()

    def get_logs(self, page: int = 1, per_page: int = 50, **filters) -> dict:
        return _paginate(self.repo.filtered(self.db, **filters), ErrorLog.created_at, page, per_page)

    def get_statistics(self) -> dict:
        by_level = self.repo.count_by_level(self.db)
        return {
            "total": sum(by_level.values()),
            "by_level": by_level,
            "by_source": {source: count for source, count in self.repo.top_sources(self.db, limit=10)},
            "last_24h": self.repo.count_since(self.db, datetime.utcnow() - timedelta(hours=24)),
        }

    def get_sources(self) -> list[str]:
        return self.repo.get_sources(self.db)

    def delete_old_logs(self, days: int = ERROR_LOG_RETENTION_DAYS) -> dict:
        if days < 1:
            raise HTTPException(status_code=400, detail="Retention must be at least one day")
        deleted = self.repo.delete_before(self.db, datetime.utcnow() - timedelta(days=days))
        logger.info(f"🧹 Deleted {deleted} error log entries older than {days} days")
        return {"deleted": deleted, "older_than_days": days}

    def export_csv(self, **filters) -> StreamingResponse:
        logs = self.repo.filtered(self.db, **filters).order_by(ErrorLog.created_at.desc()).all()
        rows = [
            [
                log.id,
                _fmt(log.created_at),
                log.error_level,
                log.error_source or "",
                log.error_message,
                log.booking_id or "",
                log.ip_address or "",
                log.request_uri or "",
            ]
            for log in logs
        ]
        return _csv_response(
            ["ID", "Date", "Level", "Source", "Message", "Booking ID", "IP Address", "Request URI"],
            rows,
            "booknow_error_logs",
        )


class EmailLogService:
    """Service layer for the email log"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = EmailLogRepository()

    def get_logs(self, page: int = 1, per_page: int = 50, **filters) -> dict:
        return _paginate(self.repo.filtered(self.db, **filters), EmailLog.sent_at, page, per_page)

    def get_logs_for_booking(self, booking_id: int) -> list[EmailLog]:
        return self.repo.filtered(self.db, booking_id=booking_id).order_by(EmailLog.sent_at.desc()).all()

    def get_statistics(self) -> dict:
        by_status = self.repo.count_by(self.db, EmailLog.status)
        total = sum(by_status.values())
        sent = by_status.get("sent", 0)
        return {
            "total": total,
            "sent": sent,
            "failed": by_status.get("failed", 0),
            "success_rate": round(sent / total * 100, 1) if total else 0,
            "by_type": self.repo.count_by(self.db, EmailLog.email_type),
            "last_24h": self.repo.count_since(self.db, datetime.utcnow() - timedelta(hours=24)),
        }

    def delete_old_logs(self, days: int = EMAIL_LOG_RETENTION_DAYS) -> dict:
        if days < 1:
            raise HTTPException(status_code=400, detail="Retention must be at least one day")
        deleted = self.repo.delete_before(self.db, datetime.utcnow() - timedelta(days=days))
        logger.info(f"🧹 Deleted {deleted} email log entries older than {days} days")
        return {"deleted": deleted, "older_than_days": days}

    def export_csv(self, **filters) -> StreamingResponse:
        logs = self.repo.filtered(self.db, **filters).order_by(EmailLog.sent_at.desc()).all()
        rows = [
            [
                log.id,
                _fmt(log.sent_at),
                log.email_type,
                log.recipient_email,
                log.subject,
                log.status,
                log.booking_id or "",
                log.error_message or "",
            ]
            for log in logs
        ]
        return _csv_response(
            ["ID", "Sent At", "Type", "Recipient", "Subject", "Status", "Booking ID", "Error"],
            rows,
            "booknow_email_logs",
        )

    async def resend(self, log_id: int) -> dict:
        """Send the same notification type again for the logged booking"""
        log = self.repo.get_by_id(self.db, log_id)
        if not log:
            raise HTTPException(status_code=404, detail="Email log not found")
        if not log.booking_id:
            raise HTTPException(status_code=400, detail="Email is not linked to a booking")

        booking = self.db.query(Booking).filter(Booking.id == log.booking_id).first()
        if not booking:
            raise HTTPException(status_code=404, detail="Booking not found")

        result = await notification_service.resend_notification(self.db, booking, log.email_type)
        if not result.get("success"):
            raise HTTPException(status_code=502, detail=f"Resend failed: {result.get('error')}")
        return result
