"""
Secret Encryption Module

Shared credential passwords are stored encrypted with Fernet (AES-128-CBC with an
HMAC). The key comes from ENCRYPTION_KEY; when that is unset it is derived from
SECRET_KEY so a development setup works without extra configuration.
"""
import base64
import hashlib
import logging
from typing import Optional

from cryptography.fernet import Fernet, InvalidToken

from studio_portal.core.config import settings

logger = logging.getLogger(__name__)


def _fernet() -> Fernet:
    if settings.ENCRYPTION_KEY:
        return Fernet(settings.ENCRYPTION_KEY.encode("utf-8"))
    digest = hashlib.sha256(settings.SECRET_KEY.encode("utf-8")).digest()
    return Fernet(base64.urlsafe_b64encode(digest))


def encrypt_secret(value: Optional[str]) -> str:
    """Encrypt a secret for storage. Empty values are stored as ""."""
    if not value:
        return ""
    return _fernet().encrypt(value.encode("utf-8")).decode("utf-8")


def decrypt_secret(token: Optional[str]) -> Optional[str]:
    """
    Decrypt a stored secret.

    Returns:
        The plain text, "" for an empty value, or None when the token cannot be
        decrypted (wrong key or tampered data)
    """
    if not token:
        return ""
    try:
        return _fernet().decrypt(token.encode("utf-8")).decode("utf-8")
    except InvalidToken:
        logger.warning("Stored secret could not be decrypted; check ENCRYPTION_KEY")
        return None
