"""Tests for SenderPatternService."""
import pytest

from clearline.shared.models import FeedbackRecord, MessageAnalysis
from clearline.shared.utils import configure_pii_salt
from clearline.services.pattern_service import (
    AnalysisRepository,
    FeedbackRepository,
    SenderPatternService,
)

DAY = 24 * 60 * 60
NOW = 1_780_000_000


@pytest.fixture(autouse=True)
def setup_pii_salt():
    configure_pii_salt("test_salt_that_is_at_least_32_characters_long")


@pytest.fixture
def analyses():
    return AnalysisRepository()


@pytest.fixture
def service(analyses):
    return SenderPatternService(
        FeedbackRepository(analysis_repository=analyses),
        clock=lambda: NOW,
    )


def submit(service, analysis_id, ts, interpretation="they are busy"):
    return service.submit_feedback(FeedbackRecord(
        analysis_id=analysis_id,
        message_id="msg_1",
        sender_id="sender_1",
        user_id="user_1",
        user_chosen_interpretation=interpretation,
        was_helpful=True,
        feedback_timestamp=ts,
    ))


class TestSenderPatternService:
    def test_profile_uses_ninety_day_window(self, service, analyses):
        analysis = analyses.append(MessageAnalysis(
            message_id="msg_1", sender_id="sender_1", user_id="user_1", rsd_triggers=("ok",),
        ))
        submit(service, analysis.analysis_id, NOW - DAY)
        submit(service, analysis.analysis_id, NOW - 89 * DAY)
        submit(service, analysis.analysis_id, NOW - 91 * DAY)

        profile = service.get_profile("user_1", "sender_1")

        assert profile.total_messages == 2
        assert profile.patterns[0].pattern == "ok"

    def test_profile_with_context(self, service, analyses):
        analysis = analyses.append(MessageAnalysis(
            message_id="msg_1", sender_id="sender_1", user_id="user_1", rsd_triggers=("k",),
        ))
        for offset in (1, 2, 3):
            submit(service, analysis.analysis_id, NOW - offset * DAY)

        profile, context = service.get_profile_with_context("user_1", "sender_1")

        assert profile.has_data
        assert context.startswith("**Sender Communication Pattern (3 messages):**")
        assert '  -> Usually means: "they are busy"' in context

    def test_unknown_sender_has_no_data(self, service):
        profile, context = service.get_profile_with_context("user_1", "nobody")

        assert profile.total_messages == 0
        assert context == ""

    def test_explicit_now(self, service, analyses):
        submit(service, "an_1", NOW - 200 * DAY)

        profile = service.get_profile("user_1", "sender_1", now=NOW - 150 * DAY)

        assert profile.total_messages == 1
