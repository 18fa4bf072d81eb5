"""Exception hierarchy for Clearline services.

ValidationError (400) and AuthorizationError (401) are surfaced to
callers. An unreachable auth service surfaces as ExternalServiceError
(503). Model failures (LLMServiceError and subclasses) are advisory and
are caught and logged where they occur.
"""
from typing import Optional


class ClearlineError(Exception):
    """Base exception for Clearline errors."""
    pass


class ValidationError(ClearlineError):
    """Request failed input validation."""
    pass


class AuthorizationError(ClearlineError):
    """Caller identity could not be resolved."""
    pass


class ExternalServiceError(ClearlineError):
    """A call to an external collaborator failed."""

    def __init__(self, message: str, service: str = "unknown"):
        super().__init__(message)
        self.service = service


class LLMServiceError(ExternalServiceError):
    """The generative-language service call failed."""

    def __init__(self, message: str):
        super().__init__(message, service="llm")


class LLMResponseParseError(LLMServiceError):
    """Model output could not be parsed as JSON.

    Carries a size-bounded preview of the malformed payload.
    """

    def __init__(self, message: str, preview: str = "", cause: Optional[Exception] = None):
        super().__init__(f"{message}\nResponse preview: {preview}")
        self.preview = preview
        self.cause = cause
