"""Strict schema check for model boundary analysis output.

parse_boundary_response never raises. It returns a SchemaResult that is
either a success carrying normalized BoundaryViolations or a failure
carrying the first problem found. A single malformed violation fails
the whole payload.
"""
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from clearline.shared.models import BoundaryViolation, Severity, ViolationType
from .config import FALLBACK_RESPONSES

DEFAULT_EVIDENCE = "AI-detected pattern"

_SUGGESTION_KEYS = (
    ("gentle", "suggested_gentle", "suggestedGentle"),
    ("moderate", "suggested_moderate", "suggestedModerate"),
    ("firm", "suggested_firm", "suggestedFirm"),
)


class SchemaViolation(Exception):
    """Raised internally when a payload field fails validation."""


@dataclass(frozen=True)
class SchemaResult:
    """Tagged result of validating a model payload."""
    ok: bool
    violations: Tuple[BoundaryViolation, ...] = ()
    error: Optional[str] = None

    @classmethod
    def success(cls, violations: List[BoundaryViolation]) -> "SchemaResult":
        return cls(ok=True, violations=tuple(violations))

    @classmethod
    def failure(cls, error: str) -> "SchemaResult":
        return cls(ok=False, error=error)


def parse_boundary_response(payload: Any) -> SchemaResult:
    """Validate a parsed model payload against the canonical schema.

    Expected shape: {"violations": [{type, severity, explanation,
    evidence?, suggested_gentle?, suggested_moderate?, suggested_firm?}]}
    """
    if not isinstance(payload, dict):
        return SchemaResult.failure(
            f"Payload must be an object, got {type(payload).__name__}"
        )

    raw_violations = payload.get("violations")
    if not isinstance(raw_violations, list):
        return SchemaResult.failure("Payload must contain a 'violations' list")

    violations = []
    for index, raw in enumerate(raw_violations):
        try:
            violations.append(_parse_violation(raw))
        except SchemaViolation as e:
            return SchemaResult.failure(f"violations[{index}]: {e}")

    return SchemaResult.success(violations)


def _parse_violation(raw: Any) -> BoundaryViolation:
    if not isinstance(raw, dict):
        raise SchemaViolation(f"must be an object, got {type(raw).__name__}")

    violation_type = _parse_type(raw.get("type"))
    severity = _parse_severity(raw.get("severity"))

    explanation = raw.get("explanation")
    if not isinstance(explanation, str) or not explanation.strip():
        raise SchemaViolation("explanation must be a non-empty string")

    suggestions = [
        _parse_suggestion(raw, keys, getattr(FALLBACK_RESPONSES, keys[0]))
        for keys in _SUGGESTION_KEYS
    ]

    return BoundaryViolation(
        type=violation_type,
        severity=severity,
        explanation=explanation.strip(),
        evidence=_parse_evidence(raw.get("evidence")),
        suggested_gentle=suggestions[0],
        suggested_moderate=suggestions[1],
        suggested_firm=suggestions[2],
    )


def _parse_type(value: Any) -> ViolationType:
    if not isinstance(value, str):
        raise SchemaViolation(f"type must be a string, got {value!r}")
    try:
        return ViolationType(value.strip().lower())
    except ValueError:
        raise SchemaViolation(f"unknown violation type {value!r}") from None


def _parse_severity(value: Any) -> Severity:
    try:
        return Severity.parse(value)
    except ValueError:
        raise SchemaViolation(f"unknown severity {value!r}") from None


def _parse_evidence(value: Any) -> Tuple[str, ...]:
    if value is None:
        return (DEFAULT_EVIDENCE,)
    if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
        raise SchemaViolation("evidence must be a list of strings")
    evidence = tuple(item.strip() for item in value if item.strip())
    return evidence or (DEFAULT_EVIDENCE,)


def _parse_suggestion(raw: Dict[str, Any], keys: Tuple[str, str, str], default: str) -> str:
    _, snake_key, camel_key = keys
    for key in (snake_key, camel_key):
        value = raw.get(key)
        if value is None:
            continue
        if not isinstance(value, str):
            raise SchemaViolation(f"{key} must be a string")
        if value.strip():
            return value.strip()
    return default
