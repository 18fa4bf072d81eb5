"""Model-assisted fallback for boundary detection.

Runs only when the rule engine found nothing. This is advisory: every
failure mode (provider error, unparseable output, schema mismatch)
becomes an empty FallbackOutcome with the error recorded, never an
exception. One model call per invocation, no retries.
"""
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

from clearline.shared.errors import LLMResponseParseError, LLMServiceError
from clearline.shared.models import BoundaryViolation
from clearline.services.llm_service import BaseLLM
from .prompts import BOUNDARY_ANALYSIS_SYSTEM_PROMPT, build_boundary_analysis_prompt
from .response_schema import parse_boundary_response

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FallbackOutcome:
    """Result of one fallback attempt."""
    violations: Tuple[BoundaryViolation, ...] = ()
    error: Optional[str] = None
    attempted: bool = False

    @property
    def failed(self) -> bool:
        return self.error is not None


class FallbackDetector:
    """Boundary detection through the configured LLM."""

    def __init__(self, llm: Optional[BaseLLM] = None):
        self.llm = llm

    @property
    def enabled(self) -> bool:
        return self.llm is not None

    async def detect(
        self,
        message: str,
        prior_violation_count: int = 0,
        sender_context: str = "",
        rsd_context: str = "",
    ) -> FallbackOutcome:
        """Ask the model for boundary violations in a message.

        Returns:
            FallbackOutcome with the normalized violations, or with an
            error and no violations if anything went wrong
        """
        if not self.enabled:
            return FallbackOutcome()

        prompt = build_boundary_analysis_prompt(
            message,
            prior_violation_count=prior_violation_count,
            sender_context=sender_context,
            rsd_context=rsd_context,
        )

        try:
            payload = await self.llm.generate_json(
                prompt, system_prompt=BOUNDARY_ANALYSIS_SYSTEM_PROMPT
            )
        except LLMResponseParseError as e:
            logger.warning(
                "BOUNDARY_FALLBACK_UNPARSEABLE",
                extra={"error": str(e.cause or e), "preview": e.preview}
            )
            return self._failed(f"Unparseable model response: {e.cause or e}")
        except LLMServiceError as e:
            logger.warning("BOUNDARY_FALLBACK_UNAVAILABLE", extra={"error": str(e)})
            return self._failed(str(e))
        except Exception as e:
            logger.error(
                "BOUNDARY_FALLBACK_FAILED",
                extra={"error": str(e), "error_type": type(e).__name__}
            )
            return self._failed(f"{type(e).__name__}: {e}")

        return self._normalize(payload)

    def _normalize(self, payload: Dict[str, Any]) -> FallbackOutcome:
        result = parse_boundary_response(payload)
        if not result.ok:
            logger.warning("BOUNDARY_FALLBACK_SCHEMA_REJECTED", extra={"error": result.error})
            return self._failed(f"Schema check failed: {result.error}")

        logger.info(
            "BOUNDARY_FALLBACK_COMPLETED",
            extra={
                "violation_count": len(result.violations),
                "types": [v.type.value for v in result.violations],
            }
        )
        return FallbackOutcome(violations=result.violations, attempted=True)

    def _failed(self, error: str) -> FallbackOutcome:
        return FallbackOutcome(error=error, attempted=True)
