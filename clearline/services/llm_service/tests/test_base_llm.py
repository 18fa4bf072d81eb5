"""Tests for the LLM client and JSON response handling."""
import asyncio

import pytest
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

from clearline.shared.errors import LLMResponseParseError, LLMServiceError
from clearline.services.llm_service.base_llm import (
    LLMConfig,
    LLMProvider,
    OpenAILLM,
    create_llm,
    parse_json_response,
    strip_code_fences,
)


def completion(content, total_tokens=42):
    return SimpleNamespace(
        choices=[SimpleNamespace(message=SimpleNamespace(content=content))],
        usage=SimpleNamespace(total_tokens=total_tokens),
    )


@pytest.fixture
def config():
    return LLMConfig(
        provider=LLMProvider.OPENAI,
        model_name="gpt-test",
        api_key="sk-test",
    )


@pytest.fixture
def client():
    client = MagicMock()
    client.chat.completions.create = AsyncMock(return_value=completion('{"violations": []}'))
    return client


@pytest.fixture
def llm(config, client):
    return OpenAILLM(config, client=client)


class TestStripCodeFences:
    def test_json_fence(self):
        assert strip_code_fences('```json\n{"a": 1}\n```') == '{"a": 1}'

    def test_bare_fence(self):
        assert strip_code_fences('```\n{"a": 1}\n```') == '{"a": 1}'

    def test_no_fence(self):
        assert strip_code_fences('  {"a": 1}  ') == '{"a": 1}'


class TestParseJsonResponse:
    def test_parses_fenced_object(self):
        assert parse_json_response('```json\n{"violations": []}\n```') == {"violations": []}

    def test_malformed_payload_raises_typed_error(self):
        with pytest.raises(LLMResponseParseError) as exc_info:
            parse_json_response("not json at all")

        assert exc_info.value.preview == "not json at all"
        assert "Response preview" in str(exc_info.value)

    def test_preview_is_bounded(self):
        payload = "{" + "x" * 5000

        with pytest.raises(LLMResponseParseError) as exc_info:
            parse_json_response(payload)

        preview = exc_info.value.preview
        assert preview.startswith("{xxx")
        assert preview.endswith("[truncated]")
        assert len(preview) < 600

    def test_non_object_is_rejected(self):
        with pytest.raises(LLMResponseParseError):
            parse_json_response("[1, 2, 3]")

    def test_parse_error_is_service_error(self):
        with pytest.raises(LLMServiceError):
            parse_json_response("{")


class TestLLMConfig:
    def test_from_env_without_key(self):
        with patch.dict("os.environ", {}, clear=True):
            assert LLMConfig.from_env() is None

    def test_from_env(self):
        with patch.dict("os.environ", {
            "OPENAI_API_KEY": "sk-env",
            "LLM_MODEL": "gpt-env",
            "LLM_TIMEOUT_SECONDS": "12",
        }, clear=True):
            config = LLMConfig.from_env()

        assert config.api_key == "sk-env"
        assert config.model_name == "gpt-env"
        assert config.timeout_seconds == 12
        assert config.endpoint is None


class TestOpenAILLM:
    def test_requires_api_key(self):
        with pytest.raises(ValueError):
            OpenAILLM(LLMConfig(provider=LLMProvider.OPENAI, model_name="gpt-test"))

    def test_create_llm(self, config):
        assert isinstance(create_llm(config), OpenAILLM)

    @pytest.mark.asyncio
    async def test_generate_json_uses_json_mode(self, llm, client):
        result = await llm.generate_json("Analyze this", system_prompt="You are strict")

        assert result == {"violations": []}
        kwargs = client.chat.completions.create.call_args.kwargs
        assert kwargs["response_format"] == {"type": "json_object"}
        assert kwargs["temperature"] == 0.3
        assert kwargs["messages"][0] == {"role": "system", "content": "You are strict"}
        assert kwargs["messages"][1] == {"role": "user", "content": "Analyze this"}

    @pytest.mark.asyncio
    async def test_generate_plain(self, llm, client):
        client.chat.completions.create.return_value = completion("hello", total_tokens=7)

        response = await llm.generate("Say hi")

        assert response.text == "hello"
        assert response.tokens_used == 7
        assert "response_format" not in client.chat.completions.create.call_args.kwargs

    @pytest.mark.asyncio
    async def test_provider_error_is_wrapped(self, llm, client):
        client.chat.completions.create.side_effect = RuntimeError("401 invalid key")

        with pytest.raises(LLMServiceError, match="401 invalid key"):
            await llm.generate_json("Analyze", system_prompt="sys")

    @pytest.mark.asyncio
    async def test_empty_prompt_rejected(self, llm, client):
        with pytest.raises(ValueError):
            await llm.generate("   ")

        client.chat.completions.create.assert_not_called()

    @pytest.mark.asyncio
    async def test_fenced_json_from_model(self, llm, client):
        client.chat.completions.create.return_value = completion(
            '```json\n{"violations": [{"type": "scope_creep"}]}\n```'
        )

        result = await llm.generate_json("Analyze", system_prompt="sys")

        assert result["violations"][0]["type"] == "scope_creep"


class TestClientLifecycle:
    def test_each_event_loop_gets_its_own_client(self, config):
        opened = []

        def open_client(**kwargs):
            async def create(**request):
                client.loop = asyncio.get_running_loop()
                return completion('{"violations": []}')

            client = MagicMock()
            client.__aenter__.return_value = client
            client.chat.completions.create = AsyncMock(side_effect=create)
            opened.append(client)
            return client

        llm = OpenAILLM(config)
        with patch("clearline.services.llm_service.base_llm.AsyncOpenAI", side_effect=open_client) as factory:
            for _ in range(2):
                result = asyncio.run(llm.generate_json("Analyze", system_prompt="sys"))
                assert result == {"violations": []}

        assert factory.call_count == 2
        assert factory.call_args.kwargs["api_key"] == "sk-test"
        assert factory.call_args.kwargs["max_retries"] == 0
        assert opened[0].loop is not opened[1].loop
        assert all(client.__aexit__.await_count == 1 for client in opened)

    @pytest.mark.asyncio
    async def test_client_closed_after_provider_error(self, config):
        client = MagicMock()
        client.__aenter__.return_value = client
        client.chat.completions.create = AsyncMock(side_effect=RuntimeError("timeout"))

        with patch("clearline.services.llm_service.base_llm.AsyncOpenAI", return_value=client):
            with pytest.raises(LLMServiceError, match="timeout"):
                await OpenAILLM(config).generate("Say hi")

        client.__aexit__.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_injected_client_is_reused(self, llm, client):
        with patch("clearline.services.llm_service.base_llm.AsyncOpenAI") as factory:
            await llm.generate("one")
            await llm.generate("two")

        factory.assert_not_called()
        assert client.chat.completions.create.await_count == 2
