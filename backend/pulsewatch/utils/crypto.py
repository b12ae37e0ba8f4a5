"""Field-level encryption for credentials stored at rest."""
import base64
import hashlib
import logging
from functools import lru_cache
from typing import Optional

from cryptography.fernet import Fernet, InvalidToken
from sqlalchemy import String
from sqlalchemy.types import TypeDecorator

from ..config import settings

logger = logging.getLogger(__name__)

# Used only when APP_KEY is not configured
_DEVELOPMENT_KEY = "pulsewatch-development-key"


@lru_cache(maxsize=1)
def get_fernet() -> Fernet:
    """Build the Fernet cipher from APP_KEY.

    Any string is accepted: it is stretched to a 32-byte key with SHA-256.
    """
    app_key = settings.app_key
    if not app_key:
        logger.warning("APP_KEY not set - using development encryption key")
        app_key = _DEVELOPMENT_KEY
    digest = hashlib.sha256(app_key.encode("utf-8")).digest()
    return Fernet(base64.urlsafe_b64encode(digest))


def encrypt_value(value: str) -> str:
    """Encrypt a string and return the Fernet token as text."""
    return get_fernet().encrypt(value.encode("utf-8")).decode("ascii")


def decrypt_value(token: str) -> Optional[str]:
    """Decrypt a Fernet token, returning None if it cannot be decrypted."""
    try:
        return get_fernet().decrypt(token.encode("ascii")).decode("utf-8")
    except InvalidToken:
        # Never include the token itself in the log line
        logger.error("Stored credential could not be decrypted (APP_KEY changed?)")
        return None


class EncryptedString(TypeDecorator):
    """String column that is transparently encrypted in the database."""

    impl = String
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None or value == "":
            return value
        return encrypt_value(value)

    def process_result_value(self, value, dialect):
        if value is None or value == "":
            return value
        return decrypt_value(value)
