"""Request authentication for Clearline services.

Services never verify credentials themselves. A request's user is
resolved one of two ways:
- upstream (default): the bearer token is sent to the auth service at
  AUTH_SERVICE_URL, which answers with the user record
- gateway: an API gateway in front of the services has already
  authenticated the caller and set the X-User-Id header
"""
import logging
import os
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Mapping, Optional

import aiohttp

from clearline.shared.errors import AuthorizationError, ExternalServiceError
from clearline.shared.utils import hash_pii

logger = logging.getLogger(__name__)


class AuthMode(Enum):
    UPSTREAM = "upstream"
    GATEWAY = "gateway"


@dataclass(frozen=True)
class AuthConfig:
    """Configuration for resolving the calling user."""
    mode: AuthMode = AuthMode.UPSTREAM
    service_url: Optional[str] = None
    # Sent alongside the bearer token when the auth service requires one
    api_key: Optional[str] = None
    user_header: str = "X-User-Id"
    timeout_seconds: int = 5

    @classmethod
    def from_env(cls) -> "AuthConfig":
        """Build config from AUTH_MODE, AUTH_SERVICE_URL and AUTH_SERVICE_API_KEY.

        Raises:
            ValueError: If AUTH_MODE is unknown
        """
        mode = AuthMode(os.getenv("AUTH_MODE", AuthMode.UPSTREAM.value).lower())
        service_url = os.getenv("AUTH_SERVICE_URL") or None
        if mode == AuthMode.UPSTREAM and not service_url:
            logger.critical("AUTH_SERVICE_URL_MISSING", extra={"mode": mode.value})
        return cls(
            mode=mode,
            service_url=service_url,
            api_key=os.getenv("AUTH_SERVICE_API_KEY") or None,
            timeout_seconds=int(os.getenv("AUTH_TIMEOUT_SECONDS", "5")),
        )


def extract_bearer_token(headers: Mapping[str, str]) -> str:
    """Return the bearer token from an Authorization header.

    Raises:
        AuthorizationError: If the header is missing or not a bearer token
    """
    value = headers.get("Authorization") or ""
    scheme, _, token = value.strip().partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise AuthorizationError("Missing bearer token")
    return token.strip()


class AuthResolver:
    """Resolves the authenticated user id for a request."""

    def __init__(self, config: AuthConfig):
        self.config = config

    async def resolve(self, headers: Mapping[str, str]) -> str:
        """Resolve the caller's user id from request headers.

        Raises:
            AuthorizationError: If the caller cannot be authenticated
            ExternalServiceError: If the auth service is unreachable
        """
        if self.config.mode == AuthMode.GATEWAY:
            user_id = (headers.get(self.config.user_header) or "").strip()
            if not user_id:
                logger.warning("AUTH_GATEWAY_HEADER_MISSING", extra={"header": self.config.user_header})
                raise AuthorizationError("User ID required")
            return user_id

        token = extract_bearer_token(headers)
        if not self.config.service_url:
            raise ExternalServiceError("Auth service URL not configured", service="auth")
        user = await self._fetch_user(token)

        user_id = str(user.get("id") or "").strip()
        if not user_id:
            logger.warning("AUTH_UPSTREAM_NO_USER_ID")
            raise AuthorizationError("Invalid credentials")

        logger.debug("AUTH_RESOLVED", extra={"user_id_hash": hash_pii(user_id)})
        return user_id

    async def _fetch_user(self, token: str) -> Dict[str, Any]:
        headers = {"Authorization": f"Bearer {token}"}
        if self.config.api_key:
            headers["apikey"] = self.config.api_key

        try:
            async with aiohttp.ClientSession() as session:
                async with session.get(
                    self.config.service_url,
                    headers=headers,
                    timeout=aiohttp.ClientTimeout(total=self.config.timeout_seconds),
                ) as response:
                    if response.status in (401, 403):
                        logger.warning("AUTH_UPSTREAM_REJECTED", extra={"status": response.status})
                        raise AuthorizationError("Invalid credentials")
                    response.raise_for_status()
                    payload = await response.json()
        except AuthorizationError:
            raise
        except Exception as e:
            logger.error(
                "AUTH_UPSTREAM_FAILED",
                extra={"error": str(e), "error_type": type(e).__name__}
            )
            raise ExternalServiceError(f"Auth service unavailable: {e}", service="auth") from e

        if not isinstance(payload, dict):
            raise AuthorizationError("Invalid credentials")
        return payload
