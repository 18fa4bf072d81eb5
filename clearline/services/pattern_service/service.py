"""Sender pattern service: feedback storage and on-demand profiles."""
import logging
import time
from typing import Callable, Optional, Tuple

from clearline.shared.models import FEEDBACK_WINDOW_DAYS, FeedbackRecord, SenderProfile
from clearline.shared.utils import hash_pii
from .feedback_repository import FeedbackRepository
from .profile_builder import build_sender_profile, generate_sender_context

logger = logging.getLogger(__name__)

SECONDS_PER_DAY = 24 * 60 * 60


class SenderPatternService:
    """Builds sender profiles from the trailing feedback window."""

    def __init__(
        self,
        feedback_repository: FeedbackRepository,
        window_days: int = FEEDBACK_WINDOW_DAYS,
        clock: Callable[[], float] = time.time,
    ):
        self.feedback_repository = feedback_repository
        self.window_days = window_days
        self._clock = clock

    def submit_feedback(self, record: FeedbackRecord) -> FeedbackRecord:
        """Store feedback. Raises RepositoryError on storage failure."""
        return self.feedback_repository.append(record)

    def get_profile(
        self,
        user_id: str,
        sender_id: str,
        now: Optional[int] = None,
    ) -> SenderProfile:
        """Build the sender's profile from feedback in the trailing window.

        Raises:
            RepositoryError: If feedback cannot be read
        """
        now = int(self._clock()) if now is None else now
        since = now - self.window_days * SECONDS_PER_DAY
        rows = self.feedback_repository.find_recent(user_id, sender_id, since)
        profile = build_sender_profile(sender_id, rows)

        logger.info(
            "SENDER_PROFILE_REQUESTED",
            extra={
                "user_id_hash": hash_pii(user_id),
                "sender_id_hash": hash_pii(sender_id),
                "total_messages": profile.total_messages,
                "has_data": profile.has_data,
            }
        )
        return profile

    def get_profile_with_context(
        self,
        user_id: str,
        sender_id: str,
        now: Optional[int] = None,
    ) -> Tuple[SenderProfile, str]:
        profile = self.get_profile(user_id, sender_id, now)
        return profile, generate_sender_context(profile)
