"""Display helpers shared by email templates, API responses and exports"""

import secrets
from datetime import date, datetime, time
from typing import Optional, Union

from ..config import CURRENCY, DATE_FORMAT, TIME_FORMAT

CURRENCY_SYMBOLS = {
    "USD": "$",
    "EUR": "€",
    "GBP": "£",
    "JPY": "¥",
    "CAD": "C$",
    "AUD": "A$",
}

STATUS_LABELS = {
    "pending": "Pending",
    "confirmed": "Confirmed",
    "completed": "Completed",
    "cancelled": "Cancelled",
    "no-show": "No Show",
}

PAYMENT_STATUS_LABELS = {
    "pending": "Pending",
    "paid": "Paid",
    "refunded": "Refunded",
    "failed": "Failed",
}


def generate_reference_number() -> str:
    """BN followed by 12 uppercase hex characters"""
    return "BN" + secrets.token_hex(6).upper()


def format_price(amount: Optional[float], currency: Optional[str] = None) -> str:
    currency = (currency or CURRENCY).upper()
    symbol = CURRENCY_SYMBOLS.get(currency, f"{currency} ")
    return f"{symbol}{float(amount or 0):,.2f}"


def format_date(value: Union[date, datetime, str]) -> str:
    if isinstance(value, str):
        value = datetime.strptime(value, "%Y-%m-%d").date()
    return value.strftime(DATE_FORMAT)


def format_time(value: Union[time, str]) -> str:
    if isinstance(value, str):
        fmt = "%H:%M:%S" if value.count(":") == 2 else "%H:%M"
        value = datetime.strptime(value, fmt).time()
    return value.strftime(TIME_FORMAT)


def status_label(status: str) -> str:
    return STATUS_LABELS.get(status, status.capitalize())


def payment_status_label(status: str) -> str:
    return PAYMENT_STATUS_LABELS.get(status, status.capitalize())
