"""RSD trigger matcher.

Deterministic scan for phrasing that a rejection-sensitive reader may
take as dismissal or criticism:
- Phrase table scan (whole-message or whole-word match, table order)
- Short-response heuristic (few words, no warmth indicators)
- Tone-indicator handling per TriggerConfig.tone_indicator_policy

Pure: no I/O, no clock.
"""
import logging
import re
from typing import List, Optional, Sequence, Tuple

from clearline.shared.models import Trigger
from .config import (
    RSD_TRIGGER_PATTERNS,
    SHORT_RESPONSE_TRIGGER,
    TONE_INDICATORS,
    WARMTH_INDICATORS,
    ToneIndicatorPolicy,
    TriggerConfig,
)

logger = logging.getLogger(__name__)

# Longest indicators first so "/sarcasm" is not read as "/s"
_TONE_INDICATOR_PATTERN = re.compile(
    r"(?<![\w/])("
    + "|".join(re.escape(t) for t in sorted(TONE_INDICATORS, key=len, reverse=True))
    + r")(?![\w/])",
    re.IGNORECASE,
)


def extract_tone_indicators(message: str) -> List[str]:
    """Return the known tone indicators in a message, in order of appearance.

    >>> extract_tone_indicators("I'm serious about this /srs and not mad /nm")
    ['/srs', '/nm']
    """
    return [m.group(1).lower() for m in _TONE_INDICATOR_PATTERN.finditer(message)]


def has_warmth_indicator(message: str) -> bool:
    return any(indicator in message for indicator in WARMTH_INDICATORS)


class TriggerMatcher:
    """Scans message text for RSD triggers."""

    def __init__(
        self,
        config: Optional[TriggerConfig] = None,
        patterns: Sequence[Trigger] = RSD_TRIGGER_PATTERNS,
    ):
        self.config = config or TriggerConfig()
        self._patterns = self._compile_patterns(patterns)

    def _compile_patterns(
        self,
        triggers: Sequence[Trigger],
    ) -> List[Tuple[Trigger, re.Pattern]]:
        """Compile trigger phrases with word boundaries.

        Word boundaries keep "k" from matching inside "ok" or "know".
        """
        return [
            (trigger, re.compile(rf"\b{re.escape(trigger.pattern)}\b"))
            for trigger in triggers
        ]

    def detect(self, message: str) -> List[Trigger]:
        """Detect RSD triggers in a message.

        Args:
            message: Raw message text

        Returns:
            Matched triggers in table order, followed by short_response
            when the short-message heuristic fires. Empty for blank input.
        """
        lower_message = message.lower().strip()
        if not lower_message:
            return []

        tone_indicators = extract_tone_indicators(message)
        policy = self.config.tone_indicator_policy
        if tone_indicators and policy == ToneIndicatorPolicy.SUPPRESS_ALL:
            logger.debug(
                "RSD_TRIGGERS_SUPPRESSED",
                extra={"tone_indicators": tone_indicators, "policy": policy.value}
            )
            return []

        detected = [
            trigger
            for trigger, pattern in self._patterns
            if lower_message == trigger.pattern or pattern.search(lower_message)
        ]

        if self._is_short_response(message, tone_indicators):
            detected.append(SHORT_RESPONSE_TRIGGER)

        logger.debug(
            "RSD_TRIGGERS_DETECTED",
            extra={
                "trigger_count": len(detected),
                "patterns": [t.pattern for t in detected],
                "tone_indicators": tone_indicators,
                "pattern_version": self.config.pattern_version,
            }
        )
        return detected

    def _is_short_response(self, message: str, tone_indicators: List[str]) -> bool:
        if len(message.split()) > self.config.short_response_max_words:
            return False
        if has_warmth_indicator(message):
            return False
        if tone_indicators and (
            self.config.tone_indicator_policy == ToneIndicatorPolicy.SUPPRESS_SHORT_RESPONSE
        ):
            return False
        return True


_default_matcher = TriggerMatcher()


def detect_rsd_triggers(message: str) -> List[Trigger]:
    """Detect RSD triggers with the default configuration."""
    return _default_matcher.detect(message)


def generate_rsd_prompt_addition(triggers: Sequence[Trigger]) -> str:
    """Render detected triggers as a prompt block for model analysis.

    Returns an empty string when there are no triggers.
    """
    if not triggers:
        return ""

    lines = "\n".join(
        f'- "{t.pattern}" ({t.severity.value} severity): {t.explanation}'
        for t in triggers
    )
    return (
        "\n**RSD ALERT:** This message contains potential RSD triggers:\n"
        f"{lines}\n\n"
        "When analyzing, consider:\n"
        "1. Is the message genuinely negative or just brief/casual?\n"
        "2. Are there hidden cues suggesting actual criticism?\n"
        "3. What evidence supports a negative vs neutral interpretation?\n\n"
        "Provide reassurance if this is likely not rejection/criticism.\n"
    )
