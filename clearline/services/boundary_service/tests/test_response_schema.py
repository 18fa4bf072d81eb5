"""Tests for model output schema validation."""
from clearline.shared.models import Severity, ViolationType
from clearline.services.boundary_service.config import FALLBACK_RESPONSES
from clearline.services.boundary_service.response_schema import (
    DEFAULT_EVIDENCE,
    parse_boundary_response,
)


def violation(**overrides):
    raw = {
        "type": "scope_creep",
        "severity": "medium",
        "explanation": "Adds work outside the agreed scope.",
        "evidence": ["while you're at it"],
        "suggested_gentle": "Happy to look at that next week.",
        "suggested_moderate": "That's outside what we agreed.",
        "suggested_firm": "I can't take that on.",
    }
    raw.update(overrides)
    return raw


class TestValidPayloads:
    def test_full_violation(self):
        result = parse_boundary_response({"violations": [violation()]})

        assert result.ok
        assert result.error is None
        parsed = result.violations[0]
        assert parsed.type == ViolationType.SCOPE_CREEP
        assert parsed.severity == Severity.MEDIUM
        assert parsed.evidence == ("while you're at it",)
        assert parsed.suggested_firm == "I can't take that on."

    def test_empty_violations(self):
        result = parse_boundary_response({"violations": []})

        assert result.ok
        assert result.violations == ()

    def test_type_is_case_insensitive(self):
        result = parse_boundary_response({"violations": [violation(type=" Timeline_Pressure ")]})

        assert result.violations[0].type == ViolationType.TIMELINE_PRESSURE

    def test_legacy_integer_severity(self):
        result = parse_boundary_response({"violations": [violation(severity=3)]})

        assert result.violations[0].severity == Severity.HIGH

    def test_missing_evidence_gets_default(self):
        raw = violation()
        del raw["evidence"]

        result = parse_boundary_response({"violations": [raw]})

        assert result.violations[0].evidence == (DEFAULT_EVIDENCE,)

    def test_blank_evidence_gets_default(self):
        result = parse_boundary_response({"violations": [violation(evidence=["  "])]})

        assert result.violations[0].evidence == (DEFAULT_EVIDENCE,)

    def test_missing_suggestions_use_fallback_responses(self):
        raw = {"type": "other", "severity": "low", "explanation": "Odd pressure."}

        result = parse_boundary_response({"violations": [raw]})

        parsed = result.violations[0]
        assert parsed.suggested_gentle == FALLBACK_RESPONSES.gentle
        assert parsed.suggested_moderate == FALLBACK_RESPONSES.moderate
        assert parsed.suggested_firm == FALLBACK_RESPONSES.firm

    def test_camel_case_suggestions(self):
        raw = {
            "type": "overstepping",
            "severity": "high",
            "explanation": "Personal question.",
            "suggestedGentle": "I'd rather not say.",
        }

        result = parse_boundary_response({"violations": [raw]})

        assert result.violations[0].suggested_gentle == "I'd rather not say."


class TestRejectedPayloads:
    def test_non_object_payload(self):
        result = parse_boundary_response(["violations"])

        assert not result.ok
        assert "list" in result.error

    def test_missing_violations_key(self):
        result = parse_boundary_response({"issues": []})

        assert not result.ok
        assert result.error == "Payload must contain a 'violations' list"

    def test_unknown_type(self):
        result = parse_boundary_response({"violations": [violation(type="rudeness")]})

        assert not result.ok
        assert result.error.startswith("violations[0]:")
        assert "rudeness" in result.error

    def test_unknown_severity(self):
        result = parse_boundary_response({"violations": [violation(severity="critical")]})

        assert not result.ok

    def test_out_of_range_ordinal(self):
        result = parse_boundary_response({"violations": [violation(severity=7)]})

        assert not result.ok

    def test_empty_explanation(self):
        result = parse_boundary_response({"violations": [violation(explanation="  ")]})

        assert not result.ok

    def test_evidence_must_be_strings(self):
        result = parse_boundary_response({"violations": [violation(evidence=[1, 2])]})

        assert not result.ok

    def test_non_string_suggestion(self):
        result = parse_boundary_response({"violations": [violation(suggested_firm=42)]})

        assert not result.ok

    def test_one_bad_item_fails_whole_payload(self):
        payload = {"violations": [violation(), violation(type="unknown")]}

        result = parse_boundary_response(payload)

        assert not result.ok
        assert result.violations == ()
        assert result.error.startswith("violations[1]:")
