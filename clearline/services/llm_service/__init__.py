"""LLM Service for Clearline.

Generative-language client used by the boundary fallback detector.
Requests strict JSON output and parses it defensively.
"""

from .base_llm import (
    BaseLLM,
    LLMConfig,
    LLMProvider,
    LLMResponse,
    OpenAILLM,
    create_llm,
    parse_json_response,
    strip_code_fences,
)

__version__ = "0.1.0"

__all__ = [
    "BaseLLM",
    "LLMConfig",
    "LLMProvider",
    "LLMResponse",
    "OpenAILLM",
    "create_llm",
    "parse_json_response",
    "strip_code_fences",
]
