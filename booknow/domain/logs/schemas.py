"""Log domain schemas"""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel


class ErrorLogResponse(BaseModel):
    id: int
    error_level: str
    error_message: str
    error_context: Optional[dict[str, Any]] = None
    error_source: Optional[str] = None
    booking_id: Optional[int] = None
    user_id: Optional[str] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    request_uri: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class EmailLogResponse(BaseModel):
    id: int
    booking_id: Optional[int] = None
    email_type: str
    recipient_email: str
    subject: str
    status: str
    error_message: Optional[str] = None
    sent_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ErrorLogPage(BaseModel):
    logs: list[ErrorLogResponse]
    total: int
    page: int
    per_page: int
    total_pages: int


class EmailLogPage(BaseModel):
    logs: list[EmailLogResponse]
    total: int
    page: int
    per_page: int
    total_pages: int


class PurgeResponse(BaseModel):
    deleted: int
    older_than_days: int
