import html
import re
from typing import Optional


def sanitize_string(value: Optional[str]) -> Optional[str]:
    """
    Sanitize a string by escaping HTML special characters to prevent XSS.
    Returns None if input is None.
    """
    if value is None:
        return None
    if not isinstance(value, str):
        return value
    return html.escape(value.strip(), quote=True)


def sanitize_text(value: Optional[str], max_length: int = 5000) -> Optional[str]:
    """Escape free text (notes) and strip control characters, keeping newlines"""
    if not value:
        return value

    value = str(value).strip()[:max_length]
    value = re.sub(r"[\x00-\x08\x0B\x0C\x0E-\x1F\x7F]", "", value)
    return html.escape(value, quote=True)


def sanitize_phone(phone: Optional[str]) -> Optional[str]:
    """Keep digits and the characters + - ( ) and space"""
    if not phone:
        return phone
    return re.sub(r"[^0-9+\-() ]", "", phone).strip()
