"""Tests for BoundaryRuleEngine - deterministic boundary detection."""
import pytest
from datetime import datetime, timezone

from clearline.shared.models import Severity, ViolationType
from clearline.services.boundary_service.config import BoundaryConfig, RESPONSE_TEMPLATES
from clearline.services.boundary_service.rule_engine import (
    BoundaryRuleEngine,
    ordinal_suffix,
)


def at_hour(hour, minute=0):
    """Unix timestamp for a fixed UTC date at the given hour."""
    return int(datetime(2026, 3, 10, hour, minute, tzinfo=timezone.utc).timestamp())


@pytest.fixture
def engine():
    return BoundaryRuleEngine()


def types(violations):
    return [v.type for v in violations]


class TestGuiltTripping:
    def test_phrase_quotes_enclosing_sentence(self, engine):
        result = engine.detect_guilt_tripping("Hi there. Only you can fix this! Thanks.")

        assert result.detected
        assert result.evidence == ('"Only you can fix this!"',)

    def test_sentence_without_terminator(self, engine):
        result = engine.detect_guilt_tripping("i really need you")

        assert result.evidence == ('"i really need you"',)

    def test_curly_apostrophe(self, engine):
        result = engine.detect_guilt_tripping("After all I\u2019ve done for you.")

        assert result.detected

    def test_exclamation_run_is_weak_evidence(self, engine):
        result = engine.detect_guilt_tripping("Answer me!!")

        assert result.evidence == ("Multiple exclamation marks for emotional intensity",)

    def test_question_run_is_weak_evidence(self, engine):
        result = engine.detect_guilt_tripping("Where are you??")

        assert result.evidence == ("Multiple question marks suggesting desperation",)

    def test_phrase_match_suppresses_weak_evidence(self, engine):
        result = engine.detect_guilt_tripping("Nobody else will help me!!")

        assert result.evidence == ('"Nobody else will help me!"',)

    def test_plain_message(self, engine):
        assert not engine.detect_guilt_tripping("Lunch tomorrow?").detected


class TestOverstepping:
    def test_invasive_question(self, engine):
        result = engine.detect_overstepping("Why are you still not married?")

        assert result.evidence == (
            '"Why are you still not married?" - pressuring personal question',
        )

    def test_sensitive_topics_accumulate(self, engine):
        result = engine.detect_overstepping(
            "Tell me about your salary? And your family situation."
        )

        assert result.evidence == (
            '"Tell me about your salary?" - pressuring personal question',
            "Asking about private topic: your family",
            "Asking about private topic: your salary",
        )

    def test_statement_is_not_overstepping(self, engine):
        assert not engine.detect_overstepping("I finished the report.").detected


class TestAfterHoursPressure:
    def test_urgency_after_hours(self, engine):
        result = engine.detect_after_hours_pressure("Need this ASAP", at_hour(21))

        assert result.evidence == ('Urgent pressure: "asap"',)

    def test_request_after_hours(self, engine):
        result = engine.detect_after_hours_pressure("Can you send the deck?", at_hour(6, 30))

        assert result.evidence == ("Request sent outside work hours (06:30)",)

    def test_urgency_and_request_combine(self, engine):
        result = engine.detect_after_hours_pressure(
            "Please do this immediately", at_hour(19)
        )

        assert result.evidence == (
            'Urgent pressure: "immediately"',
            "Request sent outside work hours (19:00)",
        )

    @pytest.mark.parametrize("hour", [8, 12, 17])
    def test_work_hours_never_fire(self, engine, hour):
        assert not engine.detect_after_hours_pressure("URGENT please help", at_hour(hour)).detected

    @pytest.mark.parametrize("hour,expected", [
        (7, True), (8, False), (17, False), (18, True), (23, True), (0, True),
    ])
    def test_work_hour_edges(self, engine, hour, expected):
        assert engine.is_after_hours(at_hour(hour)) is expected

    def test_no_urgency_or_request(self, engine):
        assert not engine.detect_after_hours_pressure("Good night", at_hour(23)).detected

    def test_urgency_phrases_match_whole_words(self, engine):
        assert not engine.detect_after_hours_pressure("I love the ASAPH choir", at_hour(22)).detected

    def test_configured_time_zone(self):
        engine = BoundaryRuleEngine(BoundaryConfig(timezone="America/New_York"))

        # 14:00 UTC in March is 10:00 in New York
        assert not engine.is_after_hours(at_hour(14))
        # 23:00 UTC is 19:00 in New York
        assert engine.is_after_hours(at_hour(23))

    def test_unknown_time_zone(self):
        with pytest.raises(ValueError, match="Unknown time zone"):
            BoundaryRuleEngine(BoundaryConfig(timezone="Mars/Olympus"))

    def test_invalid_work_hours(self):
        with pytest.raises(ValueError):
            BoundaryConfig(work_day_start_hour=18, work_day_end_hour=8)


class TestRepeatedPushing:
    def test_zero(self, engine):
        result = engine.detect_repeated_pushing(0)

        assert not result.detected
        assert result.explanation == ""

    def test_one_is_first_offense(self, engine):
        result = engine.detect_repeated_pushing(1)

        assert not result.detected
        assert result.explanation == "First violation from this sender"

    def test_two_is_medium(self, engine):
        result = engine.detect_repeated_pushing(2)

        assert result.detected
        assert result.severity == Severity.MEDIUM
        assert "2nd boundary violation" in result.explanation
        assert "last 30 days" in result.explanation

    @pytest.mark.parametrize("count", [3, 4, 7, 12])
    def test_three_or_more_is_high(self, engine, count):
        result = engine.detect_repeated_pushing(count)

        assert result.detected
        assert result.severity == Severity.HIGH
        assert str(count) in result.explanation

    def test_custom_window(self, engine):
        assert "last 7 days" in engine.detect_repeated_pushing(2, window_days=7).explanation

    def test_ordinal_suffix(self):
        assert [ordinal_suffix(n) for n in (1, 2, 3, 4, 11, 12, 13, 21, 22, 23, 101)] == [
            "1st", "2nd", "3rd", "4th", "11th", "12th", "13th", "21st", "22nd", "23rd", "101st",
        ]


class TestDetect:
    def test_end_to_end_guilt_and_after_hours(self, engine):
        message = "I really need you to respond ASAP. After all I've done, you owe me this."

        violations = engine.detect(message, at_hour(23), prior_violation_count=0)

        assert types(violations) == [
            ViolationType.GUILT_TRIPPING,
            ViolationType.AFTER_HOURS_PRESSURE,
        ]
        guilt, after_hours = violations
        assert any("really need" in e for e in guilt.evidence)
        assert any("asap" in e for e in after_hours.evidence)
        assert "23:00" in after_hours.explanation

    def test_same_message_during_work_hours(self, engine):
        message = "I really need you to respond ASAP. After all I've done, you owe me this."

        violations = engine.detect(message, at_hour(11))

        assert types(violations) == [ViolationType.GUILT_TRIPPING]

    def test_repeated_pushing_appended_last(self, engine):
        violations = engine.detect("Why are you ignoring me?", at_hour(10), prior_violation_count=3)

        assert types(violations) == [ViolationType.OVERSTEPPING, ViolationType.REPEATED_PUSHING]
        pushing = violations[-1]
        assert pushing.severity == Severity.HIGH
        assert "3rd" in pushing.explanation
        assert pushing.evidence == ("3 boundary violations in the last 30 days from this sender",)

    def test_repeated_pushing_alone(self, engine):
        violations = engine.detect("See you at the meeting.", at_hour(10), prior_violation_count=2)

        assert types(violations) == [ViolationType.REPEATED_PUSHING]
        assert violations[0].severity == Severity.MEDIUM

    def test_first_offense_emits_nothing(self, engine):
        assert engine.detect("See you at the meeting.", at_hour(10), prior_violation_count=1) == []

    def test_clean_message(self, engine):
        assert engine.detect("Thanks for the update, talk tomorrow.", at_hour(10)) == []

    def test_templates_attached(self, engine):
        violation = engine.detect("Only you can do this.", at_hour(10))[0]
        templates = RESPONSE_TEMPLATES[ViolationType.GUILT_TRIPPING]

        assert violation.suggested_gentle == templates.gentle
        assert violation.suggested_moderate == templates.moderate
        assert violation.suggested_firm == templates.firm

    def test_every_violation_has_evidence_and_responses(self, engine):
        violations = engine.detect(
            "How could you?? Tell me about your dating life? Please reply now, it's urgent.",
            at_hour(22),
            prior_violation_count=5,
        )

        assert len(violations) == 4
        for violation in violations:
            assert violation.evidence
            assert violation.suggested_gentle
            assert violation.suggested_moderate
            assert violation.suggested_firm
