"""Log router - Admin endpoints for error and email logs"""

import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...config import EMAIL_LOG_RETENTION_DAYS, ERROR_LOG_RETENTION_DAYS
from ...database import get_db
from ...security import get_current_admin
from .schemas import EmailLogPage, EmailLogResponse, ErrorLogPage, PurgeResponse
from .service import MAX_PER_PAGE, EmailLogService, ErrorLogService

logger = logging.getLogger(__name__)

admin_router = APIRouter(tags=["Admin: Logs"], dependencies=[Depends(get_current_admin)])


def get_error_log_service(db: Session = Depends(get_db)) -> ErrorLogService:
    return ErrorLogService(db)


def get_email_log_service(db: Session = Depends(get_db)) -> EmailLogService:
    return EmailLogService(db)


def error_filters(
    level: Optional[str] = Query(None),
    source: Optional[str] = Query(None),
    date_from: Optional[datetime] = Query(None),
    date_to: Optional[datetime] = Query(None),
    search: Optional[str] = Query(None),
) -> dict:
    return {"level": level, "source": source, "date_from": date_from, "date_to": date_to, "search": search}


def email_filters(
    email_type: Optional[str] = Query(None),
    status: Optional[str] = Query(None),
    booking_id: Optional[int] = Query(None),
    date_from: Optional[datetime] = Query(None),
    date_to: Optional[datetime] = Query(None),
    search: Optional[str] = Query(None),
) -> dict:
    return {
        "email_type": email_type,
        "status": status,
        "booking_id": booking_id,
        "date_from": date_from,
        "date_to": date_to,
        "search": search,
    }


# ============================================================================
# ERROR LOGS
# ============================================================================


@admin_router.get("/error-logs", response_model=ErrorLogPage)
async def list_error_logs(
    page: int = Query(1, ge=1),
    per_page: int = Query(50, ge=1),
    filters: dict = Depends(error_filters),
    service: ErrorLogService = Depends(get_error_log_service),
):
    """Error log entries, newest first. per_page is capped at 100."""
    return service.get_logs(page=page, per_page=min(per_page, MAX_PER_PAGE), **filters)


@admin_router.get("/error-logs/stats")
async def error_log_stats(service: ErrorLogService = Depends(get_error_log_service)):
    return service.get_statistics()


@admin_router.get("/error-logs/sources", response_model=list[str])
async def error_log_sources(service: ErrorLogService = Depends(get_error_log_service)):
    return service.get_sources()


@admin_router.get("/error-logs/export")
async def export_error_logs(
    filters: dict = Depends(error_filters),
    service: ErrorLogService = Depends(get_error_log_service),
):
    return service.export_csv(**filters)


@admin_router.delete("/error-logs", response_model=PurgeResponse)
async def purge_error_logs(
    days: int = Query(ERROR_LOG_RETENTION_DAYS),
    service: ErrorLogService = Depends(get_error_log_service),
):
    return service.delete_old_logs(days)


# ============================================================================
# EMAIL LOGS
# ============================================================================


@admin_router.get("/email-logs", response_model=EmailLogPage)
async def list_email_logs(
    page: int = Query(1, ge=1),
    per_page: int = Query(50, ge=1),
    filters: dict = Depends(email_filters),
    service: EmailLogService = Depends(get_email_log_service),
):
    return service.get_logs(page=page, per_page=min(per_page, MAX_PER_PAGE), **filters)


@admin_router.get("/email-logs/stats")
async def email_log_stats(service: EmailLogService = Depends(get_email_log_service)):
    return service.get_statistics()


@admin_router.get("/email-logs/export")
async def export_email_logs(
    filters: dict = Depends(email_filters),
    service: EmailLogService = Depends(get_email_log_service),
):
    return service.export_csv(**filters)


@admin_router.get("/email-logs/booking/{booking_id}", response_model=list[EmailLogResponse])
async def email_logs_for_booking(booking_id: int, service: EmailLogService = Depends(get_email_log_service)):
    return service.get_logs_for_booking(booking_id)


@admin_router.post("/email-logs/{log_id}/resend")
async def resend_email(log_id: int, service: EmailLogService = Depends(get_email_log_service)):
    return await service.resend(log_id)


@admin_router.delete("/email-logs", response_model=PurgeResponse)
async def purge_email_logs(
    days: int = Query(EMAIL_LOG_RETENTION_DAYS),
    service: EmailLogService = Depends(get_email_log_service),
):
    return service.delete_old_logs(days)


__all__ = ["admin_router"]
