"""Boundary rule engine - deterministic boundary violation detection.

Sub-detectors, each usable on its own:
- Guilt-tripping: phrase table, falling back to !!/?? runs as weak evidence
- Overstepping: invasive question shapes plus sensitive-topic phrases
- After-hours pressure: urgency and request phrasing outside work hours
- Repeated pushing: escalation from the sender's trailing violation count

The message timestamp is always passed in and resolved to a local hour
in the configured time zone. Nothing here reads the clock or does I/O.
"""
import logging
import re
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional, Tuple
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from clearline.shared.models import BoundaryViolation, Severity, ViolationType
from .config import (
    GUILT_TRIP_PHRASES,
    OVERSTEPPING_PATTERNS,
    REPEATED_PUSHING_NOTES,
    REQUEST_PHRASES,
    SENSITIVE_TOPICS,
    URGENCY_PHRASES,
    VIOLATION_EXPLANATIONS,
    BoundaryConfig,
    templates_for,
)

logger = logging.getLogger(__name__)

_CURLY_APOSTROPHES = str.maketrans({"\u2019": "'", "\u2018": "'"})

_EXCLAMATION_RUN = re.compile(r"!{2,}")
_QUESTION_RUN = re.compile(r"\?{2,}")


def _normalize(message: str) -> str:
    return message.translate(_CURLY_APOSTROPHES)


def ordinal_suffix(n: int) -> str:
    """Render an integer as an English ordinal.

    >>> ordinal_suffix(2), ordinal_suffix(3), ordinal_suffix(11), ordinal_suffix(22)
    ('2nd', '3rd', '11th', '22nd')
    """
    if 10 <= n % 100 <= 20:
        suffix = "th"
    else:
        suffix = {1: "st", 2: "nd", 3: "rd"}.get(n % 10, "th")
    return f"{n}{suffix}"


@dataclass(frozen=True)
class SubDetection:
    """Evidence collected by one sub-detector."""
    evidence: Tuple[str, ...] = ()

    @property
    def detected(self) -> bool:
        return len(self.evidence) > 0


@dataclass(frozen=True)
class RepeatedPushingAssessment:
    detected: bool
    severity: Severity
    explanation: str


class BoundaryRuleEngine:
    """Deterministic boundary violation detector.

    All sub-detectors may fire on the same message. Violations are
    emitted in the order guilt-tripping, overstepping, after-hours
    pressure, repeated pushing.
    """

    def __init__(self, config: Optional[BoundaryConfig] = None):
        self.config = config or BoundaryConfig()
        try:
            self._zone = ZoneInfo(self.config.timezone)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ValueError(f"Unknown time zone: {self.config.timezone}") from e

        self._guilt_phrases = self._compile_phrases(GUILT_TRIP_PHRASES, boundaries=False)
        self._overstepping_patterns = [
            re.compile(pattern, re.IGNORECASE) for pattern in OVERSTEPPING_PATTERNS
        ]
        self._urgency_phrases = self._compile_phrases(URGENCY_PHRASES, boundaries=True)
        self._request_pattern = re.compile(
            r"\b(?:" + "|".join(re.escape(p) for p in REQUEST_PHRASES) + r")\b",
            re.IGNORECASE,
        )

    def _compile_phrases(
        self,
        phrases: Tuple[str, ...],
        boundaries: bool,
    ) -> List[Tuple[str, re.Pattern]]:
        compiled = []
        for phrase in phrases:
            escaped = re.escape(phrase)
            if boundaries:
                escaped = rf"\b{escaped}\b"
            compiled.append((phrase, re.compile(escaped, re.IGNORECASE)))
        return compiled

    # ------------------------------------------------------------------
    # Time handling
    # ------------------------------------------------------------------

    def local_time(self, timestamp: int) -> datetime:
        """Resolve a unix timestamp (seconds) in the configured zone."""
        return datetime.fromtimestamp(timestamp, tz=self._zone)

    def is_after_hours(self, timestamp: int) -> bool:
        hour = self.local_time(timestamp).hour
        return hour >= self.config.work_day_end_hour or hour < self.config.work_day_start_hour

    # ------------------------------------------------------------------
    # Sub-detectors
    # ------------------------------------------------------------------

    def detect_guilt_tripping(self, message: str) -> SubDetection:
        """Quote each sentence containing a guilt-trip phrase."""
        text = _normalize(message)
        evidence: List[str] = []

        for phrase, pattern in self._guilt_phrases:
            if not pattern.search(text):
                continue
            sentence = re.search(
                rf"[^.!?]*{re.escape(phrase)}[^.!?]*[.!?]?", text, re.IGNORECASE
            )
            if sentence:
                quoted = f'"{sentence.group(0).strip()}"'
                if quoted not in evidence:
                    evidence.append(quoted)

        if not evidence:
            if _EXCLAMATION_RUN.search(text):
                evidence.append("Multiple exclamation marks for emotional intensity")
            if _QUESTION_RUN.search(text):
                evidence.append("Multiple question marks suggesting desperation")

        return SubDetection(tuple(evidence))

    def detect_overstepping(self, message: str) -> SubDetection:
        text = _normalize(message)
        lower_text = text.lower()
        evidence: List[str] = []

        for pattern in self._overstepping_patterns:
            match = pattern.search(text)
            if match:
                evidence.append(f'"{match.group(0)}" - pressuring personal question')

        for topic in SENSITIVE_TOPICS:
            if topic in lower_text:
                evidence.append(f"Asking about private topic: {topic}")

        return SubDetection(tuple(evidence))

    def detect_after_hours_pressure(self, message: str, timestamp: int) -> SubDetection:
        """Urgency and request phrasing sent outside work hours.

        Returns no evidence during work hours regardless of content.
        """
        if not self.is_after_hours(timestamp):
            return SubDetection()

        text = _normalize(message)
        evidence: List[str] = [
            f'Urgent pressure: "{phrase}"'
            for phrase, pattern in self._urgency_phrases
            if pattern.search(text)
        ]

        if self._request_pattern.search(text):
            local = self.local_time(timestamp).strftime("%H:%M")
            evidence.append(f"Request sent outside work hours ({local})")

        return SubDetection(tuple(evidence))

    def detect_repeated_pushing(
        self,
        violation_count: int,
        window_days: Optional[int] = None,
    ) -> RepeatedPushingAssessment:
        """Assess escalation from the trailing-window violation count.

        0 and 1 never fire; 2 is medium; 3 or more is high.
        """
        window = window_days if window_days is not None else self.config.violation_window_days

        if violation_count <= 0:
            return RepeatedPushingAssessment(False, Severity.LOW, "")

        if violation_count == 1:
            return RepeatedPushingAssessment(
                False, Severity.LOW, "First violation from this sender"
            )

        explanation = (
            f"This is the {ordinal_suffix(violation_count)} boundary violation "
            f"from this person in the last {window} days"
        )
        if violation_count == 2:
            return RepeatedPushingAssessment(True, Severity.MEDIUM, f"{explanation}.")

        return RepeatedPushingAssessment(
            True, Severity.HIGH, f"{explanation}. This is a repeat pattern."
        )

    # ------------------------------------------------------------------
    # Composition
    # ------------------------------------------------------------------

    def detect(
        self,
        message: str,
        timestamp: int,
        prior_violation_count: int = 0,
    ) -> List[BoundaryViolation]:
        """Run every sub-detector over a message.

        Args:
            message: Raw message text
            timestamp: Message unix timestamp in seconds
            prior_violation_count: Sender's violations against this user in
                the trailing window, not counting this message

        Returns:
            Violations in sub-detector order, empty when nothing fires
        """
        violations: List[BoundaryViolation] = []

        guilt = self.detect_guilt_tripping(message)
        if guilt.detected:
            violations.append(self._violation(
                ViolationType.GUILT_TRIPPING,
                Severity.MEDIUM,
                VIOLATION_EXPLANATIONS[ViolationType.GUILT_TRIPPING],
                guilt.evidence,
            ))

        overstepping = self.detect_overstepping(message)
        if overstepping.detected:
            violations.append(self._violation(
                ViolationType.OVERSTEPPING,
                Severity.MEDIUM,
                VIOLATION_EXPLANATIONS[ViolationType.OVERSTEPPING],
                overstepping.evidence,
            ))

        after_hours = self.detect_after_hours_pressure(message, timestamp)
        if after_hours.detected:
            local = self.local_time(timestamp).strftime("%H:%M")
            violations.append(self._violation(
                ViolationType.AFTER_HOURS_PRESSURE,
                Severity.MEDIUM,
                VIOLATION_EXPLANATIONS[ViolationType.AFTER_HOURS_PRESSURE].format(
                    local_time=local
                ),
                after_hours.evidence,
            ))

        pushing = self.detect_repeated_pushing(prior_violation_count)
        if pushing.detected:
            window = self.config.violation_window_days
            violations.append(self._violation(
                ViolationType.REPEATED_PUSHING,
                pushing.severity,
                f"{pushing.explanation} {REPEATED_PUSHING_NOTES[pushing.severity.value]}",
                (
                    f"{prior_violation_count} boundary violations in the last "
                    f"{window} days from this sender",
                ),
            ))

        logger.debug(
            "BOUNDARY_RULES_EVALUATED",
            extra={
                "violation_count": len(violations),
                "types": [v.type.value for v in violations],
                "prior_violation_count": prior_violation_count,
                "rules_version": self.config.rules_version,
            }
        )
        return violations

    def _violation(
        self,
        violation_type: ViolationType,
        severity: Severity,
        explanation: str,
        evidence: Tuple[str, ...],
    ) -> BoundaryViolation:
        templates = templates_for(violation_type)
        return BoundaryViolation(
            type=violation_type,
            severity=severity,
            explanation=explanation,
            evidence=evidence,
            suggested_gentle=templates.gentle,
            suggested_moderate=templates.moderate,
            suggested_firm=templates.firm,
        )
