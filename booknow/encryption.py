"""
Encryption helpers for secrets at rest (OAuth tokens, SMTP password, email bodies)

Values are Fernet tokens prefixed with ENCRYPTED_PREFIX so plaintext written
before encryption was enabled can still be read back.
"""

import base64
import hashlib
import logging
from typing import Optional

from cryptography.fernet import Fernet, InvalidToken

from .config import ENCRYPTION_KEY, SECRET_KEY

logger = logging.getLogger(__name__)

ENCRYPTED_PREFIX = "$BNENC$"

_fernet: Optional[Fernet] = None


def _derive_key(secret: str) -> bytes:
    return base64.urlsafe_b64encode(hashlib.sha256(secret.encode()).digest())


def get_fernet() -> Fernet:
    global _fernet

    if _fernet is None:
        if ENCRYPTION_KEY:
            try:
                _fernet = Fernet(ENCRYPTION_KEY.encode())
            except ValueError:
                # Not a urlsafe base64 Fernet key, treat it as a passphrase
                logger.warning("⚠️ ENCRYPTION_KEY is not a Fernet key, deriving one from it")
                _fernet = Fernet(_derive_key(ENCRYPTION_KEY))
        else:
            logger.warning("⚠️ ENCRYPTION_KEY not set, deriving encryption key from SECRET_KEY")
            _fernet = Fernet(_derive_key(SECRET_KEY))

    return _fernet


def is_using_fallback_key() -> bool:
    """True when no dedicated ENCRYPTION_KEY is configured"""
    return not ENCRYPTION_KEY


def is_encrypted(value: Optional[str]) -> bool:
    return bool(value) and isinstance(value, str) and value.startswith(ENCRYPTED_PREFIX)


def encrypt(value: Optional[str]) -> Optional[str]:
    """Encrypt a string. Empty values and already encrypted values are returned unchanged."""
    if not value or is_encrypted(value):
        return value

    token = get_fernet().encrypt(value.encode()).decode()
    return f"{ENCRYPTED_PREFIX}{token}"


def decrypt(value: Optional[str]) -> Optional[str]:
    """
    Decrypt a value produced by encrypt().

    Values without the prefix are treated as legacy plaintext and returned as-is.
    Returns None when the token cannot be decrypted (wrong key or tampered data).
    """
    if not value or not is_encrypted(value):
        return value

    try:
        return get_fernet().decrypt(value[len(ENCRYPTED_PREFIX):].encode()).decode()
    except InvalidToken:
        logger.error("❌ Failed to decrypt value: invalid token or key changed")
        return None


def mask(value: Optional[str], visible_chars: int = 4) -> str:
    """Mask a secret for display, keeping the last few characters"""
    if not value:
        return ""

    if len(value) <= visible_chars:
        return "*" * len(value)

    return "*" * (len(value) - visible_chars) + value[-visible_chars:]


def encrypt_settings(settings: dict, secret_fields: list[str]) -> dict:
    result = dict(settings)
    for field in secret_fields:
        if result.get(field):
            result[field] = encrypt(result[field])
    return result


def decrypt_settings(settings: dict, secret_fields: list[str]) -> dict:
    result = dict(settings)
    for field in secret_fields:
        if result.get(field):
            result[field] = decrypt(result[field])
    return result
