"""Detection domain models shared by the Clearline services.

Covers the two detection families:
- RSD triggers: brief/ambiguous phrasing that reads as rejection
- Boundary violations: pressure, guilt-tripping, overstepping

Plus the persisted records (violations, feedback) and the derived
per-sender profile built from feedback.
"""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Union
import uuid


# Trailing windows for historical lookups
VIOLATION_WINDOW_DAYS = 30
FEEDBACK_WINDOW_DAYS = 90

# Sender with this many violations in the window is a repeat offender
REPEAT_OFFENDER_THRESHOLD = 3

# Profiles built from fewer messages produce no prompt context
MIN_MESSAGES_FOR_CONTEXT = 3


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Severity(Enum):
    """Ordinal severity shared by triggers and violations."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @classmethod
    def parse(cls, value: Union[str, int, "Severity"]) -> "Severity":
        """Parse a severity from its name or a legacy 1-3 integer.

        Raises:
            ValueError: If the value is not a known severity
        """
        if isinstance(value, Severity):
            return value
        # bool is an int subclass; True/False are never severities
        if isinstance(value, int) and not isinstance(value, bool):
            for severity, ordinal in _SEVERITY_ORDINALS.items():
                if ordinal == value:
                    return severity
            raise ValueError(f"Severity ordinal must be 1-3, got {value}")
        if isinstance(value, str):
            return cls(value.strip().lower())
        raise ValueError(f"Unsupported severity value: {value!r}")


_SEVERITY_ORDINALS = {
    Severity.LOW: 1,
    Severity.MEDIUM: 2,
    Severity.HIGH: 3,
}


class ViolationType(Enum):
    """Canonical boundary violation taxonomy."""
    GUILT_TRIPPING = "guilt_tripping"
    OVERSTEPPING = "overstepping"
    AFTER_HOURS_PRESSURE = "after_hours_pressure"
    REPEATED_PUSHING = "repeated_pushing"
    SCOPE_CREEP = "scope_creep"
    TIMELINE_PRESSURE = "timeline_pressure"
    OTHER = "other"


class SeverityTrend(Enum):
    """Direction of a sender's violation pattern over time."""
    INITIAL = "initial"
    STABLE = "stable"
    ESCALATING = "escalating"


@dataclass(frozen=True)
class Trigger:
    """A phrase or message shape likely to be read as rejection."""
    pattern: str
    severity: Severity
    explanation: str
    reassurance: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "pattern": self.pattern,
            "severity": self.severity.value,
            "explanation": self.explanation,
            "reassurance": self.reassurance,
        }


@dataclass(frozen=True)
class BoundaryViolation:
    """A detected boundary violation with escalating response suggestions.

    Immutable once produced. Evidence keeps detection order.
    """
    type: ViolationType
    severity: Severity
    explanation: str
    evidence: Tuple[str, ...]
    suggested_gentle: str
    suggested_moderate: str
    suggested_firm: str

    def __post_init__(self):
        if not isinstance(self.type, ViolationType):
            raise ValueError(f"Unknown violation type: {self.type!r}")
        if not isinstance(self.severity, Severity):
            raise ValueError(f"Unknown severity: {self.severity!r}")
        if not isinstance(self.evidence, tuple):
            # Lists are accepted for convenience and frozen here
            object.__setattr__(self, "evidence", tuple(self.evidence))

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the wire shape used in API responses."""
        return {
            "type": self.type.value,
            "severity": self.severity.value,
            "explanation": self.explanation,
            "evidence": list(self.evidence),
            "suggestedGentle": self.suggested_gentle,
            "suggestedModerate": self.suggested_moderate,
            "suggestedFirm": self.suggested_firm,
        }


@dataclass(frozen=True)
class ViolationRecord:
    """Persisted form of a single violation. Append-only."""
    message_id: str
    sender_id: str
    user_id: str
    violation_type: ViolationType
    severity: Severity
    explanation: str
    evidence: Tuple[str, ...]
    suggested_gentle: str
    suggested_moderate: str
    suggested_firm: str
    message_timestamp: int
    record_id: str = field(default_factory=lambda: f"vr_{uuid.uuid4().hex[:16]}")
    created_at: datetime = field(default_factory=_utcnow)

    @property
    def is_after_hours(self) -> bool:
        return self.violation_type == ViolationType.AFTER_HOURS_PRESSURE

    @classmethod
    def from_violation(
        cls,
        violation: BoundaryViolation,
        message_id: str,
        sender_id: str,
        user_id: str,
        message_timestamp: int,
    ) -> "ViolationRecord":
        return cls(
            message_id=message_id,
            sender_id=sender_id,
            user_id=user_id,
            violation_type=violation.type,
            severity=violation.severity,
            explanation=violation.explanation,
            evidence=tuple(violation.evidence),
            suggested_gentle=violation.suggested_gentle,
            suggested_moderate=violation.suggested_moderate,
            suggested_firm=violation.suggested_firm,
            message_timestamp=message_timestamp,
        )


@dataclass(frozen=True)
class ViolationPattern:
    """Aggregate of violations keyed by (user, sender, violation type).

    occurrence_count is monotonic: it starts at 1 and only increments.
    """
    user_id: str
    sender_id: str
    violation_type: ViolationType
    occurrence_count: int
    last_violation_timestamp: int
    severity_trend: SeverityTrend = SeverityTrend.INITIAL
    updated_at: datetime = field(default_factory=_utcnow)

    def __post_init__(self):
        if self.occurrence_count < 1:
            raise ValueError(
                f"Occurrence count must be >= 1, got {self.occurrence_count}"
            )

    @property
    def is_repeat_offender(self) -> bool:
        return self.occurrence_count >= REPEAT_OFFENDER_THRESHOLD

    @property
    def key(self) -> Tuple[str, str, ViolationType]:
        return (self.user_id, self.sender_id, self.violation_type)

    def record_occurrence(self, timestamp: int) -> "ViolationPattern":
        """Return the pattern after one more occurrence."""
        count = self.occurrence_count + 1
        return ViolationPattern(
            user_id=self.user_id,
            sender_id=self.sender_id,
            violation_type=self.violation_type,
            occurrence_count=count,
            last_violation_timestamp=max(timestamp, self.last_violation_timestamp),
            severity_trend=trend_for_count(count),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "user_id": self.user_id,
            "sender_id": self.sender_id,
            "violation_type": self.violation_type.value,
            "occurrence_count": self.occurrence_count,
            "last_violation_timestamp": self.last_violation_timestamp,
            "is_repeat_offender": self.is_repeat_offender,
            "severity_trend": self.severity_trend.value,
        }


def trend_for_count(occurrence_count: int) -> SeverityTrend:
    """Severity trend after the given number of occurrences."""
    if occurrence_count <= 1:
        return SeverityTrend.INITIAL
    if occurrence_count >= REPEAT_OFFENDER_THRESHOLD:
        return SeverityTrend.ESCALATING
    return SeverityTrend.STABLE


@dataclass(frozen=True)
class MessageAnalysis:
    """Stored outcome of one detection, referenced by feedback.

    rsd_triggers holds trigger patterns in detection order.
    """
    message_id: str
    sender_id: str
    user_id: str
    rsd_triggers: Tuple[str, ...] = ()
    violation_types: Tuple[str, ...] = ()
    message_timestamp: int = 0
    analysis_id: str = field(default_factory=lambda: f"an_{uuid.uuid4().hex[:16]}")
    created_at: datetime = field(default_factory=_utcnow)

    @property
    def primary_trigger(self) -> Optional[str]:
        return self.rsd_triggers[0] if self.rsd_triggers else None


@dataclass(frozen=True)
class FeedbackRecord:
    """User feedback on an interpretation of a message. Append-only.

    trigger_pattern is not stored with the feedback; it is resolved
    from the linked analysis when feedback is read back.
    """
    analysis_id: str
    message_id: str
    sender_id: str
    user_id: str
    user_chosen_interpretation: Optional[str] = None
    was_helpful: Optional[bool] = None
    feedback_timestamp: int = 0
    feedback_id: str = field(default_factory=lambda: f"fb_{uuid.uuid4().hex[:16]}")
    trigger_pattern: Optional[str] = None

    def __post_init__(self):
        if self.user_chosen_interpretation is None and self.was_helpful is None:
            raise ValueError(
                "Feedback requires an interpretation or a helpfulness flag"
            )


@dataclass
class SenderPattern:
    """Feedback aggregated for one trigger pattern of one sender."""
    sender_id: str
    pattern: str
    occurrences: int = 0
    user_interpretations: Dict[str, int] = field(default_factory=dict)
    helpfulness_rate: float = 0.5
    confidence: float = 0.0

    def __post_init__(self):
        if not 0.0 <= self.confidence <= 1.0:
            raise ValueError(f"Confidence must be 0.0-1.0, got {self.confidence}")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "senderId": self.sender_id,
            "pattern": self.pattern,
            "occurrences": self.occurrences,
            "userInterpretations": dict(self.user_interpretations),
            "helpfulnessRate": round(self.helpfulness_rate, 3),
            "confidence": round(self.confidence, 3),
        }


@dataclass
class SenderProfile:
    """Behavioral profile of a sender derived from feedback history."""
    sender_id: str
    total_messages: int
    patterns: List[SenderPattern] = field(default_factory=list)
    average_helpfulness: float = 0.5
    activity_score: float = 0.0
    communication_style: str = "balanced"

    @property
    def has_data(self) -> bool:
        return self.total_messages >= MIN_MESSAGES_FOR_CONTEXT

    def to_dict(self) -> Dict[str, Any]:
        return {
            "senderId": self.sender_id,
            "totalMessages": self.total_messages,
            "patterns": [p.to_dict() for p in self.patterns],
            "averageHelpfulness": round(self.average_helpfulness, 3),
            "last90DaysActivityScore": round(self.activity_score, 3),
            "communicationStyle": self.communication_style,
        }
