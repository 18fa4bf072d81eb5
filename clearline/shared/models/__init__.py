"""Shared domain models for Clearline."""
from .detection import (
    FEEDBACK_WINDOW_DAYS,
    MIN_MESSAGES_FOR_CONTEXT,
    REPEAT_OFFENDER_THRESHOLD,
    VIOLATION_WINDOW_DAYS,
    BoundaryViolation,
    FeedbackRecord,
    MessageAnalysis,
    SenderPattern,
    SenderProfile,
    Severity,
    SeverityTrend,
    Trigger,
    ViolationPattern,
    ViolationRecord,
    ViolationType,
    trend_for_count,
)

__all__ = [
    "FEEDBACK_WINDOW_DAYS",
    "MIN_MESSAGES_FOR_CONTEXT",
    "REPEAT_OFFENDER_THRESHOLD",
    "VIOLATION_WINDOW_DAYS",
    "BoundaryViolation",
    "FeedbackRecord",
    "MessageAnalysis",
    "SenderPattern",
    "SenderProfile",
    "Severity",
    "SeverityTrend",
    "Trigger",
    "ViolationPattern",
    "ViolationRecord",
    "ViolationType",
    "trend_for_count",
]
