"""Pattern Service: interpretation feedback and sender profiles.

Components:
- feedback_repository.py: Append-only feedback and analysis stores
- profile_builder.py: Confidence-weighted sender profiles and prompt context
- service.py: SenderPatternService wiring the two together
- handler.py: HTTP endpoints (sender pattern query, feedback submission)
"""

from .feedback_repository import AnalysisRepository, FeedbackRepository
from .profile_builder import (
    build_sender_profile,
    calculate_confidence,
    calculate_confidence_boost,
    determine_communication_style,
    generate_sender_context,
    get_most_likely_interpretation,
)
from .service import SenderPatternService

__all__ = [
    "AnalysisRepository",
    "FeedbackRepository",
    "SenderPatternService",
    "build_sender_profile",
    "calculate_confidence",
    "calculate_confidence_boost",
    "determine_communication_style",
    "generate_sender_context",
    "get_most_likely_interpretation",
]
