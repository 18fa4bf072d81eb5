"""Shared utilities for Clearline."""
from .pii import configure_pii_salt, hash_message_text, hash_pii, preview_text

__all__ = ["configure_pii_salt", "hash_message_text", "hash_pii", "preview_text"]
