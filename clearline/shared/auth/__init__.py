"""Caller authentication for Clearline services."""
from .resolver import AuthConfig, AuthMode, AuthResolver, extract_bearer_token

__all__ = ["AuthConfig", "AuthMode", "AuthResolver", "extract_bearer_token"]
