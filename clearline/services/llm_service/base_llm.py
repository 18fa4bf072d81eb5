"""Base LLM interface and the OpenAI implementation.

The boundary fallback detector only needs one capability: send a
system + user prompt pair and get back a JSON object. Models sometimes
wrap JSON in markdown code fences even in JSON mode, so fences are
stripped before parsing, and a failed parse raises LLMResponseParseError
with a bounded preview of what came back.
"""

import json
import logging
import os
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional

from openai import AsyncOpenAI

from clearline.shared.errors import LLMResponseParseError, LLMServiceError
from clearline.shared.utils import preview_text

logger = logging.getLogger(__name__)

PARSE_ERROR_PREVIEW_CHARS = 500
LOG_PREVIEW_CHARS = 200


class LLMProvider(Enum):
    """Supported LLM providers."""
    OPENAI = "openai"


@dataclass(frozen=True)
class LLMConfig:
    """Configuration for LLM inference."""
    provider: LLMProvider
    model_name: str
    endpoint: Optional[str] = None
    api_key: Optional[str] = None
    max_tokens: int = 1000
    temperature: float = 0.7
    json_temperature: float = 0.3
    timeout_seconds: int = 30

    @classmethod
    def from_env(cls) -> Optional["LLMConfig"]:
        """Build config from environment variables.

        Environment variables:
            OPENAI_API_KEY: API key (no key -> None, model calls disabled)
            LLM_MODEL: Model name (default gpt-4-turbo-preview)
            LLM_ENDPOINT: Base URL override for compatible gateways
            LLM_TIMEOUT_SECONDS: Request timeout (default 30)
        """
        api_key = os.getenv("OPENAI_API_KEY")
        if not api_key:
            return None
        return cls(
            provider=LLMProvider.OPENAI,
            model_name=os.getenv("LLM_MODEL", "gpt-4-turbo-preview"),
            endpoint=os.getenv("LLM_ENDPOINT") or None,
            api_key=api_key,
            timeout_seconds=int(os.getenv("LLM_TIMEOUT_SECONDS", "30")),
        )


@dataclass
class LLMResponse:
    """Response from LLM inference."""
    text: str
    model: str
    provider: str
    tokens_used: Optional[int] = None
    latency_ms: Optional[float] = None
    metadata: Optional[Dict] = None


def strip_code_fences(text: str) -> str:
    """Remove a leading ```json / ``` marker and a trailing ``` marker.

    >>> strip_code_fences('```json\\n{"a": 1}\\n```')
    '{"a": 1}'
    """
    cleaned = text.strip()
    if cleaned.startswith("```json"):
        cleaned = cleaned[len("```json"):]
    elif cleaned.startswith("```"):
        cleaned = cleaned[len("```"):]
    if cleaned.endswith("```"):
        cleaned = cleaned[:-len("```")]
    return cleaned.strip()


def parse_json_response(text: str) -> Dict[str, Any]:
    """Parse model output as a JSON object.

    Raises:
        LLMResponseParseError: If the text is not a JSON object; carries a
            preview of at most 500 characters of the cleaned payload
    """
    cleaned = strip_code_fences(text)
    try:
        parsed = json.loads(cleaned)
    except json.JSONDecodeError as e:
        preview = preview_text(cleaned, PARSE_ERROR_PREVIEW_CHARS)
        logger.error(
            "LLM_JSON_PARSE_FAILED",
            extra={"error": str(e), "payload_length": len(cleaned), "preview": preview}
        )
        raise LLMResponseParseError(
            f"Failed to parse JSON response: {e}", preview=preview, cause=e
        ) from e

    if not isinstance(parsed, dict):
        preview = preview_text(cleaned, PARSE_ERROR_PREVIEW_CHARS)
        raise LLMResponseParseError(
            f"Expected a JSON object, got {type(parsed).__name__}", preview=preview
        )
    return parsed


class BaseLLM(ABC):
    """Abstract base class for LLM implementations."""

    max_prompt_chars = 20000

    def __init__(self, config: LLMConfig):
        self.config = config
        logger.info(
            "LLM_INITIALIZED",
            extra={"provider": config.provider.value, "model": config.model_name}
        )

    @abstractmethod
    async def generate(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        json_mode: bool = False,
    ) -> LLMResponse:
        """Generate a completion.

        Raises:
            ValueError: If the prompt is invalid
            LLMServiceError: If the provider call fails
        """
        pass

    async def generate_json(self, prompt: str, system_prompt: str) -> Dict[str, Any]:
        """Generate a completion in JSON mode and parse it.

        Raises:
            LLMServiceError: If the provider call fails
            LLMResponseParseError: If the output is not a JSON object
        """
        response = await self.generate(prompt, system_prompt=system_prompt, json_mode=True)
        logger.debug(
            "LLM_JSON_RECEIVED",
            extra={"preview": preview_text(response.text, LOG_PREVIEW_CHARS)}
        )
        return parse_json_response(response.text)

    def validate_prompt(self, prompt: str) -> bool:
        if not prompt or not prompt.strip():
            logger.warning("LLM_PROMPT_EMPTY")
            return False

        if len(prompt) > self.max_prompt_chars:
            logger.warning("LLM_PROMPT_TOO_LONG", extra={"length": len(prompt)})
            return False

        return True


class OpenAILLM(BaseLLM):
    """OpenAI chat completions implementation.

    Handlers run each request on its own event loop (asyncio.run), and an
    AsyncOpenAI connection pool is bound to the loop that first used it.
    Unless a client is injected, every call opens and closes its own
    client so no pool outlives its loop.
    """

    def __init__(self, config: LLMConfig, client: Optional[AsyncOpenAI] = None):
        super().__init__(config)

        if client is None and not config.api_key:
            raise ValueError("OpenAI API key required")

        self.client = client

    def _open_client(self) -> AsyncOpenAI:
        return AsyncOpenAI(
            api_key=self.config.api_key,
            base_url=self.config.endpoint,
            timeout=self.config.timeout_seconds,
            max_retries=0,
        )

    async def _create_completion(self, request: Dict[str, Any]) -> Any:
        if self.client is not None:
            return await self.client.chat.completions.create(**request)

        async with self._open_client() as client:
            return await client.chat.completions.create(**request)

    async def generate(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        json_mode: bool = False,
    ) -> LLMResponse:
        if not self.validate_prompt(prompt):
            raise ValueError("Invalid prompt")

        messages: List[Dict[str, str]] = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": prompt})

        request: Dict[str, Any] = {
            "model": self.config.model_name,
            "messages": messages,
            "max_tokens": self.config.max_tokens,
            "temperature": self.config.json_temperature if json_mode else self.config.temperature,
        }
        if json_mode:
            request["response_format"] = {"type": "json_object"}

        start_time = time.perf_counter()

        try:
            response = await self._create_completion(request)
        except Exception as e:
            logger.error(
                "OPENAI_GENERATION_FAILED",
                extra={
                    "model": self.config.model_name,
                    "error": str(e),
                    "error_type": type(e).__name__,
                }
            )
            raise LLMServiceError(f"Failed to call OpenAI API: {e}") from e

        latency_ms = (time.perf_counter() - start_time) * 1000
        text = ""
        if response.choices:
            text = response.choices[0].message.content or ""
        tokens_used = response.usage.total_tokens if response.usage else None

        if not text:
            logger.warning("OPENAI_EMPTY_CONTENT", extra={"model": self.config.model_name})

        logger.info(
            "OPENAI_GENERATION_SUCCEEDED",
            extra={
                "model": self.config.model_name,
                "latency_ms": latency_ms,
                "tokens_used": tokens_used,
            }
        )

        return LLMResponse(
            text=text,
            model=self.config.model_name,
            provider=self.config.provider.value,
            tokens_used=tokens_used,
            latency_ms=latency_ms,
        )


def create_llm(config: LLMConfig) -> BaseLLM:
    """Factory function to create an LLM instance.

    Raises:
        ValueError: If provider not supported
    """
    if config.provider == LLMProvider.OPENAI:
        return OpenAILLM(config)
    raise ValueError(f"Unsupported provider: {config.provider}")
