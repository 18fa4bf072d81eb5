"""Identifier and message-content handling for logs.

Message bodies and user/sender identifiers never appear in logs in
clear text: identifiers are salted and hashed, bodies are fingerprinted,
and model payloads are only logged as bounded previews.
"""
import hashlib
import logging
from typing import Optional

logger = logging.getLogger(__name__)

MIN_SALT_LENGTH = 32
DEFAULT_PREVIEW_CHARS = 500

_PII_SALT: Optional[str] = None


def configure_pii_salt(salt: str) -> None:
    """Configure the salt used by hash_pii().

    Must be called during application startup before any hashing.

    Raises:
        ValueError: If salt is empty or shorter than 32 characters
    """
    global _PII_SALT
    if not salt or len(salt) < MIN_SALT_LENGTH:
        logger.critical(
            "PII_SALT_CONFIGURATION_FAILED",
            extra={"reason": "Salt too short or empty", "min_length": MIN_SALT_LENGTH}
        )
        raise ValueError(f"PII salt must be at least {MIN_SALT_LENGTH} characters")

    _PII_SALT = salt
    logger.info("PII_SALT_CONFIGURED", extra={"salt_length": len(salt)})


def hash_pii(value: str) -> str:
    """Hash a user or sender identifier for logging.

    Args:
        value: Identifier to hash

    Returns:
        64-char hex SHA-256 of salt + value

    Raises:
        RuntimeError: If the salt has not been configured
    """
    if _PII_SALT is None:
        logger.critical(
            "PII_HASH_FAILED",
            extra={"reason": "Salt not configured", "action": "call configure_pii_salt()"}
        )
        raise RuntimeError("PII salt not configured. Call configure_pii_salt() first.")

    return hashlib.sha256(f"{_PII_SALT}{value}".encode()).hexdigest()


def hash_message_text(text: str) -> str:
    """Unsalted fingerprint of a message body, for correlating log lines."""
    return hashlib.sha256(text.encode()).hexdigest()


def preview_text(text: str, limit: int = DEFAULT_PREVIEW_CHARS) -> str:
    """Truncate text to a bounded preview.

    >>> preview_text("abcdef", limit=3)
    'abc\\n... [truncated]'
    """
    if len(text) <= limit:
        return text
    return text[:limit] + "\n... [truncated]"
