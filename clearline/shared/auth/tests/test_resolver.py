"""Tests for request authentication."""
import pytest
from unittest.mock import AsyncMock, MagicMock, patch

from clearline.shared.auth import AuthConfig, AuthMode, AuthResolver, extract_bearer_token
from clearline.shared.errors import AuthorizationError, ExternalServiceError
from clearline.shared.utils import configure_pii_salt


@pytest.fixture(autouse=True)
def setup_pii_salt():
    configure_pii_salt("test_salt_that_is_at_least_32_characters_long")


def mock_session(status=200, payload=None, error=None):
    """aiohttp.ClientSession stand-in returning one canned response."""
    response = MagicMock()
    response.status = status
    response.json = AsyncMock(return_value=payload)
    if status >= 400:
        response.raise_for_status.side_effect = Exception(f"HTTP {status}")

    session = MagicMock()
    if error is not None:
        session.get.side_effect = error
    else:
        session.get.return_value.__aenter__.return_value = response

    factory = MagicMock()
    factory.return_value.__aenter__.return_value = session
    return factory


@pytest.fixture
def upstream():
    return AuthResolver(AuthConfig(service_url="https://auth.example.com/user", api_key="anon"))


class TestExtractBearerToken:
    def test_bearer(self):
        assert extract_bearer_token({"Authorization": "Bearer abc.def"}) == "abc.def"

    def test_case_insensitive_scheme(self):
        assert extract_bearer_token({"Authorization": "bearer abc"}) == "abc"

    @pytest.mark.parametrize("value", ["", "Basic abc", "Bearer ", "abc"])
    def test_rejects_non_bearer(self, value):
        with pytest.raises(AuthorizationError):
            extract_bearer_token({"Authorization": value})

    def test_missing_header(self):
        with pytest.raises(AuthorizationError):
            extract_bearer_token({})


class TestAuthConfig:
    def test_from_env_defaults_to_upstream(self, monkeypatch):
        monkeypatch.delenv("AUTH_MODE", raising=False)
        monkeypatch.setenv("AUTH_SERVICE_URL", "https://auth.example.com/user")

        config = AuthConfig.from_env()

        assert config.mode == AuthMode.UPSTREAM
        assert config.service_url == "https://auth.example.com/user"

    def test_from_env_gateway(self, monkeypatch):
        monkeypatch.setenv("AUTH_MODE", "gateway")

        assert AuthConfig.from_env().mode == AuthMode.GATEWAY

    def test_unknown_mode(self, monkeypatch):
        monkeypatch.setenv("AUTH_MODE", "magic")

        with pytest.raises(ValueError):
            AuthConfig.from_env()


class TestGatewayMode:
    @pytest.mark.asyncio
    async def test_reads_user_header(self):
        resolver = AuthResolver(AuthConfig(mode=AuthMode.GATEWAY))

        assert await resolver.resolve({"X-User-Id": " user_1 "}) == "user_1"

    @pytest.mark.asyncio
    async def test_missing_header(self):
        resolver = AuthResolver(AuthConfig(mode=AuthMode.GATEWAY))

        with pytest.raises(AuthorizationError, match="User ID required"):
            await resolver.resolve({})


class TestUpstreamMode:
    @pytest.mark.asyncio
    async def test_resolves_user(self, upstream):
        factory = mock_session(payload={"id": "user_42", "email": "x@example.com"})
        with patch("clearline.shared.auth.resolver.aiohttp.ClientSession", factory):
            user_id = await upstream.resolve({"Authorization": "Bearer token123"})

        assert user_id == "user_42"
        session = factory.return_value.__aenter__.return_value
        headers = session.get.call_args.kwargs["headers"]
        assert headers == {"Authorization": "Bearer token123", "apikey": "anon"}

    @pytest.mark.asyncio
    async def test_missing_token(self, upstream):
        with pytest.raises(AuthorizationError):
            await upstream.resolve({})

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [401, 403])
    async def test_rejected_token(self, upstream, status):
        with patch("clearline.shared.auth.resolver.aiohttp.ClientSession", mock_session(status=status)):
            with pytest.raises(AuthorizationError, match="Invalid credentials"):
                await upstream.resolve({"Authorization": "Bearer expired"})

    @pytest.mark.asyncio
    async def test_server_error_is_unavailable(self, upstream):
        with patch("clearline.shared.auth.resolver.aiohttp.ClientSession", mock_session(status=500)):
            with pytest.raises(ExternalServiceError) as exc_info:
                await upstream.resolve({"Authorization": "Bearer token"})

        assert exc_info.value.service == "auth"

    @pytest.mark.asyncio
    async def test_connection_error_is_unavailable(self, upstream):
        factory = mock_session(error=OSError("connection refused"))
        with patch("clearline.shared.auth.resolver.aiohttp.ClientSession", factory):
            with pytest.raises(ExternalServiceError):
                await upstream.resolve({"Authorization": "Bearer token"})

    @pytest.mark.asyncio
    async def test_user_without_id(self, upstream):
        with patch("clearline.shared.auth.resolver.aiohttp.ClientSession", mock_session(payload={"email": "x"})):
            with pytest.raises(AuthorizationError):
                await upstream.resolve({"Authorization": "Bearer token"})

    @pytest.mark.asyncio
    async def test_no_service_url(self):
        resolver = AuthResolver(AuthConfig())

        with pytest.raises(ExternalServiceError, match="not configured"):
            await resolver.resolve({"Authorization": "Bearer token"})
