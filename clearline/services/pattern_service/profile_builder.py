"""Sender pattern profile builder.

Aggregates a user's feedback about one sender into a profile: which
RSD trigger patterns the sender's messages tend to hit, what the user
decided those messages actually meant, and how helpful the analysis
was. The profile is rendered into prompt context so later analyses of
the same sender can lean on that history.

Confidence saturates: one sample adds 0.1, ten or more give 1.0.
"""
import logging
from typing import Dict, List, Optional, Sequence

from clearline.shared.models import (
    MIN_MESSAGES_FOR_CONTEXT,
    FeedbackRecord,
    SenderPattern,
    SenderProfile,
)

logger = logging.getLogger(__name__)

UNKNOWN_PATTERN = "unknown"
SHORT_RESPONSE_PATTERN = "short_response"

CONFIDENCE_SATURATION = 10
ACTIVITY_SATURATION = 100
MAX_CONFIDENCE_BOOST = 20
TOP_PATTERNS_IN_CONTEXT = 3

BRIEF_STYLE_THRESHOLD = 0.6
VERBOSE_STYLE_THRESHOLD = 0.2


def _round_half_up(value: float) -> int:
    return int(value + 0.5)


def calculate_confidence(occurrences: int) -> float:
    """Saturating confidence for a sample count.

    >>> calculate_confidence(0), calculate_confidence(5), calculate_confidence(25)
    (0.0, 0.5, 1.0)
    """
    if occurrences <= 0:
        return 0.0
    return min(occurrences / CONFIDENCE_SATURATION, 1.0)


def determine_communication_style(
    patterns: Sequence[SenderPattern],
    total_messages: int,
) -> str:
    """Classify a sender by the share of short responses."""
    if total_messages <= 0:
        return "balanced"

    short = next((p for p in patterns if p.pattern == SHORT_RESPONSE_PATTERN), None)
    short_rate = short.occurrences / total_messages if short else 0.0

    if short_rate > BRIEF_STYLE_THRESHOLD:
        return "brief_and_direct"
    if short_rate < VERBOSE_STYLE_THRESHOLD:
        return "warm_and_verbose"
    return "balanced"


def build_sender_profile(
    sender_id: str,
    feedback_rows: Sequence[FeedbackRecord],
) -> SenderProfile:
    """Build a sender profile from feedback rows.

    Rows without a resolved trigger pattern are grouped under "unknown".
    Helpfulness only counts rows where the user answered the question.
    """
    patterns: Dict[str, SenderPattern] = {}
    helpful_counts: Dict[str, List[int]] = {}
    helpful_total = 0
    answered_total = 0

    for row in feedback_rows:
        key = row.trigger_pattern or UNKNOWN_PATTERN
        pattern = patterns.get(key)
        if pattern is None:
            pattern = patterns[key] = SenderPattern(sender_id=sender_id, pattern=key)
            helpful_counts[key] = [0, 0]

        pattern.occurrences += 1

        interpretation = row.user_chosen_interpretation
        if interpretation:
            pattern.user_interpretations[interpretation] = (
                pattern.user_interpretations.get(interpretation, 0) + 1
            )

        if row.was_helpful is not None:
            answered_total += 1
            helpful_counts[key][1] += 1
            if row.was_helpful:
                helpful_total += 1
                helpful_counts[key][0] += 1

    for key, pattern in patterns.items():
        pattern.confidence = calculate_confidence(pattern.occurrences)
        helpful, answered = helpful_counts[key]
        pattern.helpfulness_rate = helpful / answered if answered else 0.5

    total_messages = len(feedback_rows)
    pattern_list = list(patterns.values())

    profile = SenderProfile(
        sender_id=sender_id,
        total_messages=total_messages,
        patterns=pattern_list,
        average_helpfulness=helpful_total / answered_total if answered_total else 0.5,
        activity_score=min(total_messages / ACTIVITY_SATURATION, 1.0),
        communication_style=determine_communication_style(pattern_list, total_messages),
    )

    logger.debug(
        "SENDER_PROFILE_BUILT",
        extra={
            "total_messages": total_messages,
            "pattern_count": len(pattern_list),
            "communication_style": profile.communication_style,
        }
    )
    return profile


def get_most_likely_interpretation(pattern: SenderPattern) -> Optional[str]:
    """Interpretation the user chose most often; earliest seen wins ties."""
    if not pattern.user_interpretations:
        return None
    return max(pattern.user_interpretations.items(), key=lambda item: item[1])[0]


def calculate_confidence_boost(pattern: SenderPattern, interpretation: str) -> int:
    """Percentage points (0-20) to add when history supports an interpretation."""
    count = pattern.user_interpretations.get(interpretation, 0)
    if not count:
        return 0
    total = sum(pattern.user_interpretations.values())
    return _round_half_up(count / total * MAX_CONFIDENCE_BOOST)


def generate_sender_context(profile: SenderProfile) -> str:
    """Render a profile as prompt context.

    Empty until the sender has at least three feedback rows.
    """
    if profile.total_messages < MIN_MESSAGES_FOR_CONTEXT:
        return ""

    lines = [f"**Sender Communication Pattern ({profile.total_messages} messages):**"]

    top_patterns = sorted(profile.patterns, key=lambda p: p.occurrences, reverse=True)
    for pattern in top_patterns[:TOP_PATTERNS_IN_CONTEXT]:
        confidence = _round_half_up(pattern.confidence * 100)
        lines.append(
            f"- {pattern.pattern}: appears in {pattern.occurrences} messages "
            f"({confidence}% confidence)"
        )
        interpretation = get_most_likely_interpretation(pattern)
        if interpretation:
            lines.append(f'  -> Usually means: "{interpretation}"')

    lines.append(f"**Overall Style:** {profile.communication_style}")
    helpfulness = _round_half_up(profile.average_helpfulness * 100)
    lines.append(f"**Analysis Helpfulness:** {helpfulness}%")
    return "\n".join(lines)
