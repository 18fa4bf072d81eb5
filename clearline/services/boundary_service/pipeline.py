"""Boundary detection pipeline.

Two explicit steps:
1. detect(): history lookup, RSD triggers, rule engine, model fallback.
   Returns a DetectionResult. Only request validation can fail it.
2. persist(): append records, bump the sender pattern, store the
   analysis. Returns a PersistenceResult listing what was written and
   what failed. Never raises, and never changes the DetectionResult.

Storage is not transactional across the two stores and a resubmitted
message is counted again.
"""
import logging
import time
import uuid
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple

from clearline.shared.errors import ValidationError
from clearline.shared.models import (
    REPEAT_OFFENDER_THRESHOLD,
    BoundaryViolation,
    MessageAnalysis,
    Trigger,
    ViolationPattern,
    ViolationRecord,
)
from clearline.shared.utils import hash_message_text, hash_pii
from clearline.services.pattern_service import AnalysisRepository, SenderPatternService
from clearline.services.trigger_service import TriggerMatcher, generate_rsd_prompt_addition
from .fallback_detector import FallbackDetector
from .rule_engine import BoundaryRuleEngine
from .violation_repository import ViolationPatternRepository, ViolationRecordRepository

logger = logging.getLogger(__name__)

SECONDS_PER_DAY = 24 * 60 * 60

# 9999-12-31T00:00:00Z, a day short of datetime.max so any UTC offset still converts
MAX_MESSAGE_TIMESTAMP = 253402214400


@dataclass(frozen=True)
class DetectionRequest:
    """A message submitted for boundary detection."""
    message_id: str
    message_body: str
    sender_id: str
    message_timestamp: int

    def __post_init__(self):
        for name in ("message_id", "message_body", "sender_id"):
            value = getattr(self, name)
            if not isinstance(value, str) or not value.strip():
                raise ValidationError(f"{name} must be a non-empty string")
        ts = self.message_timestamp
        if isinstance(ts, bool) or not isinstance(ts, int) or ts <= 0:
            raise ValidationError("message_timestamp must be a positive unix timestamp")
        if ts >= MAX_MESSAGE_TIMESTAMP:
            raise ValidationError("message_timestamp must be in seconds and before year 10000")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DetectionRequest":
        """Build from the camelCase request body.

        Raises:
            ValidationError: If a field is missing or malformed
        """
        missing = [
            key for key in ("messageId", "messageBody", "senderId", "messageTimestamp")
            if data.get(key) in (None, "")
        ]
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

        timestamp = data["messageTimestamp"]
        # JSON numbers may arrive as whole floats
        if isinstance(timestamp, float) and timestamp.is_integer():
            timestamp = int(timestamp)

        return cls(
            message_id=data["messageId"],
            message_body=data["messageBody"],
            sender_id=data["senderId"],
            message_timestamp=timestamp,
        )


@dataclass(frozen=True)
class DetectionResult:
    """Outcome of the detect step."""
    violations: Tuple[BoundaryViolation, ...]
    rsd_triggers: Tuple[Trigger, ...]
    sender_violation_history: int
    fallback_used: bool = False
    fallback_error: Optional[str] = None
    history_error: Optional[str] = None
    analysis_id: str = field(default_factory=lambda: f"an_{uuid.uuid4().hex[:16]}")

    @property
    def violation_count(self) -> int:
        return len(self.violations)

    @property
    def is_repeat_offender(self) -> bool:
        return self.sender_violation_history >= REPEAT_OFFENDER_THRESHOLD

    def to_dict(self) -> Dict[str, Any]:
        return {
            "analysisId": self.analysis_id,
            "violations": [v.to_dict() for v in self.violations],
            "violationCount": self.violation_count,
            "senderViolationHistory": self.sender_violation_history,
            "isRepeatOffender": self.is_repeat_offender,
            "rsdTriggers": [t.to_dict() for t in self.rsd_triggers],
        }


@dataclass(frozen=True)
class PersistenceResult:
    """Outcome of the persist step."""
    records_stored: int = 0
    pattern_updated: bool = False
    analysis_stored: bool = False
    pattern: Optional[ViolationPattern] = None
    errors: Tuple[str, ...] = ()

    @property
    def ok(self) -> bool:
        return not self.errors


class BoundaryDetectionPipeline:
    """Runs detection for one message and records the outcome."""

    def __init__(
        self,
        record_repository: ViolationRecordRepository,
        pattern_repository: ViolationPatternRepository,
        rule_engine: Optional[BoundaryRuleEngine] = None,
        fallback_detector: Optional[FallbackDetector] = None,
        trigger_matcher: Optional[TriggerMatcher] = None,
        analysis_repository: Optional[AnalysisRepository] = None,
        sender_patterns: Optional[SenderPatternService] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.record_repository = record_repository
        self.pattern_repository = pattern_repository
        self.rule_engine = rule_engine or BoundaryRuleEngine()
        self.fallback_detector = fallback_detector or FallbackDetector()
        self.trigger_matcher = trigger_matcher or TriggerMatcher()
        self.analysis_repository = analysis_repository
        self.sender_patterns = sender_patterns
        self._clock = clock

    async def detect(self, request: DetectionRequest, user_id: str) -> DetectionResult:
        """Detect boundary violations and RSD triggers in a message."""
        history, history_error = self._violation_history(request, user_id)
        triggers = self.trigger_matcher.detect(request.message_body)

        violations: List[BoundaryViolation] = self.rule_engine.detect(
            request.message_body,
            request.message_timestamp,
            prior_violation_count=history,
        )

        fallback_used = False
        fallback_error = None
        if not violations and self.fallback_detector.enabled:
            outcome = await self.fallback_detector.detect(
                request.message_body,
                prior_violation_count=history,
                sender_context=self._sender_context(request, user_id),
                rsd_context=generate_rsd_prompt_addition(triggers),
            )
            violations = list(outcome.violations)
            fallback_used = outcome.attempted
            fallback_error = outcome.error

        result = DetectionResult(
            violations=tuple(violations),
            rsd_triggers=tuple(triggers),
            sender_violation_history=history,
            fallback_used=fallback_used,
            fallback_error=fallback_error,
            history_error=history_error,
        )

        logger.info(
            "BOUNDARY_DETECTION_COMPLETED",
            extra={
                "message_id": request.message_id,
                "message_hash": hash_message_text(request.message_body),
                "user_id_hash": hash_pii(user_id),
                "sender_id_hash": hash_pii(request.sender_id),
                "violation_count": result.violation_count,
                "types": [v.type.value for v in result.violations],
                "rsd_trigger_count": len(result.rsd_triggers),
                "sender_violation_history": history,
                "fallback_used": fallback_used,
                "fallback_failed": fallback_error is not None,
            }
        )
        return result

    def persist(
        self,
        result: DetectionResult,
        request: DetectionRequest,
        user_id: str,
    ) -> PersistenceResult:
        """Record a detection. Failures are reported, never raised."""
        errors: List[str] = []
        records_stored = 0

        for violation in result.violations:
            record = ViolationRecord.from_violation(
                violation,
                message_id=request.message_id,
                sender_id=request.sender_id,
                user_id=user_id,
                message_timestamp=request.message_timestamp,
            )
            try:
                self.record_repository.append(record)
                records_stored += 1
            except Exception as e:
                errors.append(self._write_failed("violation_record", e, request))

        pattern = None
        if result.violations:
            try:
                pattern = self.pattern_repository.increment(
                    user_id,
                    request.sender_id,
                    result.violations[0].type,
                    request.message_timestamp,
                )
            except Exception as e:
                errors.append(self._write_failed("violation_pattern", e, request))

        analysis_stored = False
        if self.analysis_repository is not None:
            try:
                self.analysis_repository.append(MessageAnalysis(
                    analysis_id=result.analysis_id,
                    message_id=request.message_id,
                    sender_id=request.sender_id,
                    user_id=user_id,
                    rsd_triggers=tuple(t.pattern for t in result.rsd_triggers),
                    violation_types=tuple(v.type.value for v in result.violations),
                    message_timestamp=request.message_timestamp,
                ))
                analysis_stored = True
            except Exception as e:
                errors.append(self._write_failed("message_analysis", e, request))

        persistence = PersistenceResult(
            records_stored=records_stored,
            pattern_updated=pattern is not None,
            analysis_stored=analysis_stored,
            pattern=pattern,
            errors=tuple(errors),
        )

        log = logger.warning if errors else logger.info
        log(
            "BOUNDARY_DETECTION_PERSISTED",
            extra={
                "message_id": request.message_id,
                "records_stored": records_stored,
                "records_expected": result.violation_count,
                "pattern_updated": persistence.pattern_updated,
                "analysis_stored": analysis_stored,
                "error_count": len(errors),
            }
        )
        return persistence

    async def run(
        self,
        request: DetectionRequest,
        user_id: str,
    ) -> Tuple[DetectionResult, PersistenceResult]:
        result = await self.detect(request, user_id)
        return result, self.persist(result, request, user_id)

    def _violation_history(
        self,
        request: DetectionRequest,
        user_id: str,
    ) -> Tuple[int, Optional[str]]:
        window_days = self.rule_engine.config.violation_window_days
        since = int(self._clock()) - window_days * SECONDS_PER_DAY
        try:
            count = self.record_repository.count_since(user_id, request.sender_id, since)
            return count, None
        except Exception as e:
            logger.warning(
                "VIOLATION_HISTORY_UNAVAILABLE",
                extra={
                    "message_id": request.message_id,
                    "error": str(e),
                    "error_type": type(e).__name__,
                }
            )
            return 0, str(e)

    def _sender_context(self, request: DetectionRequest, user_id: str) -> str:
        if self.sender_patterns is None:
            return ""
        try:
            _, context = self.sender_patterns.get_profile_with_context(
                user_id, request.sender_id, now=int(self._clock())
            )
            return context
        except Exception as e:
            logger.warning(
                "SENDER_CONTEXT_UNAVAILABLE",
                extra={"message_id": request.message_id, "error": str(e)}
            )
            return ""

    def _write_failed(self, store: str, error: Exception, request: DetectionRequest) -> str:
        logger.error(
            "BOUNDARY_PERSISTENCE_FAILED",
            extra={
                "store": store,
                "message_id": request.message_id,
                "error": str(error),
                "error_type": type(error).__name__,
            }
        )
        return f"{store}: {error}"
