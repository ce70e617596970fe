"""Error helpers for the public API"""

from typing import Optional

from fastapi import HTTPException


class BookingError(Exception):
    """Base class for booking domain errors"""

    code = "booking_error"
    status_code = 400

    def __init__(self, message: str, code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        if code:
            self.code = code


class SlotUnavailableError(BookingError):
    """The requested time overlaps an existing booking, block or busy time"""

    code = "slot_unavailable"
    status_code = 409


def api_error(status_code: int, code: str, message: str, headers: Optional[dict] = None) -> HTTPException:
    """HTTPException with a machine readable code: {"detail": {"code": ..., "message": ...}}"""
    return HTTPException(status_code=status_code, detail={"code": code, "message": message}, headers=headers)
