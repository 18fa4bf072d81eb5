"""Trigger Service: RSD trigger detection.

Flags brief or ambiguous phrasing that a rejection-sensitive reader may
take as dismissal ("ok", "we need to talk", very short replies).

Components:
- config.py: Trigger phrase table, warmth/tone indicators, TriggerConfig
- matcher.py: TriggerMatcher and prompt rendering

Usage:
    from clearline.services.trigger_service import detect_rsd_triggers
    triggers = detect_rsd_triggers("ok")
"""

from .config import (
    RSD_TRIGGER_PATTERNS,
    SHORT_RESPONSE_TRIGGER,
    ToneIndicatorPolicy,
    TriggerConfig,
)
from .matcher import (
    TriggerMatcher,
    detect_rsd_triggers,
    extract_tone_indicators,
    generate_rsd_prompt_addition,
)

__all__ = [
    "RSD_TRIGGER_PATTERNS",
    "SHORT_RESPONSE_TRIGGER",
    "ToneIndicatorPolicy",
    "TriggerConfig",
    "TriggerMatcher",
    "detect_rsd_triggers",
    "extract_tone_indicators",
    "generate_rsd_prompt_addition",
]
