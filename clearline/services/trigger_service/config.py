"""Trigger Service configuration and the RSD trigger phrase table.

Phrases are scanned in table order; the order of the output list follows
this table, with the synthetic short_response trigger always last.
"""
from dataclasses import dataclass
from enum import Enum
from typing import FrozenSet, Mapping, Tuple

from clearline.shared.models import Severity, Trigger


class ToneIndicatorPolicy(Enum):
    """What an explicit tone indicator (/j, /srs, ...) does to detection."""
    IGNORE = "ignore"
    SUPPRESS_SHORT_RESPONSE = "suppress_short_response"
    SUPPRESS_ALL = "suppress_all"


@dataclass(frozen=True)
class TriggerConfig:
    """Configuration for trigger matching behavior."""

    # Messages with at most this many words may be flagged as short_response
    short_response_max_words: int = 3

    tone_indicator_policy: ToneIndicatorPolicy = ToneIndicatorPolicy.SUPPRESS_SHORT_RESPONSE

    # Version tracking for audit trail
    pattern_version: str = "2026.10.01"


RSD_TRIGGER_PATTERNS: Tuple[Trigger, ...] = (
    Trigger(
        pattern="ok",
        severity=Severity.HIGH,
        explanation='Single-word responses like "ok" can trigger RSD as they feel dismissive',
        reassurance="This is likely just a quick acknowledgment, not disappointment",
    ),
    Trigger(
        pattern="fine",
        severity=Severity.HIGH,
        explanation='"Fine" often feels passive-aggressive or dismissive',
        reassurance='They might genuinely mean "that works for me" without hidden meaning',
    ),
    Trigger(
        pattern="we need to talk",
        severity=Severity.HIGH,
        explanation="This phrase strongly triggers anxiety about impending criticism",
        reassurance="This doesn't always mean bad news - they may just want to discuss something",
    ),
    Trigger(
        pattern="k",
        severity=Severity.HIGH,
        explanation='Even shorter than "ok", feels very dismissive',
        reassurance="Some people just text quickly - not necessarily upset",
    ),
    Trigger(
        pattern="whatever",
        severity=Severity.MEDIUM,
        explanation="Can feel like giving up or being annoyed",
        reassurance='Could mean "I\'m flexible" rather than "I don\'t care"',
    ),
    Trigger(
        pattern="sure",
        severity=Severity.MEDIUM,
        explanation="Can sound sarcastic or unenthusiastic",
        reassurance="Often means genuine agreement, just casual phrasing",
    ),
    Trigger(
        pattern="no worries",
        severity=Severity.LOW,
        explanation="Meant to be reassuring but can feel dismissive",
        reassurance="They're trying to make you feel better, not minimize your concern",
    ),
)

SHORT_RESPONSE_TRIGGER = Trigger(
    pattern="short_response",
    severity=Severity.MEDIUM,
    explanation="Very short responses without warmth indicators can feel cold",
    reassurance="Brief doesn't always mean upset - they might be busy or texting quickly",
)

# Presence of any of these marks a message as warm
WARMTH_INDICATORS: FrozenSet[str] = frozenset({
    "!",
    "\U0001F60A",          # smiling face with smiling eyes
    "\u2764\ufe0f",      # red heart
    "\u2764",            # red heart, no variation selector
    "\U0001F604",          # grinning face with smiling eyes
    "\U0001F495",          # two hearts
    "\U0001F44D",          # thumbs up
})

# Explicit tone indicators and the tone each one declares
TONE_INDICATORS: Mapping[str, str] = {
    "/j": "playful",
    "/joking": "playful",
    "/srs": "serious",
    "/serious": "serious",
    "/s": "sarcastic",
    "/sarcasm": "sarcastic",
    "/nm": "neutral",
    "/notmad": "neutral",
    "/lh": "friendly",
    "/lighthearted": "friendly",
    "/gen": "inquisitive",
}
