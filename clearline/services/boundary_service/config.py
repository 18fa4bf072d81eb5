"""Boundary Service configuration, phrase tables and response templates.

Phrase tables are matched case-insensitively. Response templates escalate
from gentle to firm; every category carries all three.
"""
from dataclasses import dataclass
from typing import Dict, NamedTuple, Tuple

from clearline.shared.models import VIOLATION_WINDOW_DAYS, ViolationType


@dataclass(frozen=True)
class BoundaryConfig:
    """Configuration for boundary detection behavior."""

    # IANA zone used to resolve message timestamps to a local hour
    timezone: str = "UTC"

    # Work hours are [work_day_start_hour, work_day_end_hour)
    work_day_start_hour: int = 8
    work_day_end_hour: int = 18

    violation_window_days: int = VIOLATION_WINDOW_DAYS

    # Whether the model fallback runs when rules find nothing
    fallback_enabled: bool = True

    # Version tracking for audit trail
    rules_version: str = "2026.10.01"

    def __post_init__(self):
        if not 0 <= self.work_day_start_hour < self.work_day_end_hour <= 24:
            raise ValueError(
                "Work hours must satisfy 0 <= start < end <= 24, got "
                f"{self.work_day_start_hour}-{self.work_day_end_hour}"
            )


class ResponseTemplates(NamedTuple):
    gentle: str
    moderate: str
    firm: str


GUILT_TRIP_PHRASES: Tuple[str, ...] = (
    "only you can",
    "really need you",
    "nobody else",
    "i depend on you",
    "you always help me",
    "don't abandon me",
    "you're the only one",
    "if you really cared",
    "how could you",
    "after all i've done",
    "i'll be so hurt",
    "nobody understands me like you",
    "you don't care about me",
    "you never help when i need you",
)

# Invasive question shapes
OVERSTEPPING_PATTERNS: Tuple[str, ...] = (
    r"why are you.*?\?",
    r"what were you.*?\?",
    r"have you.*?yet\?",
    r"tell me about your.*?\?",
    r"how much do you.*?\?",
    r"aren't you.*?\?",
    r"shouldn't you.*?\?",
    r"when are you going to.*?\?",
    r"don't you think.*?\?",
)

SENSITIVE_TOPICS: Tuple[str, ...] = (
    "your family",
    "your relationship",
    "your salary",
    "your weight",
    "your dating",
    "your personal life",
    "why you're single",
    "why you don't have kids",
)

URGENCY_PHRASES: Tuple[str, ...] = (
    "asap",
    "urgent",
    "immediately",
    "right now",
    "need it now",
    "cannot wait",
    "don't have time",
    "hurry",
    "quickly",
    "emergency",
    "critical",
    "important",
)

REQUEST_PHRASES: Tuple[str, ...] = (
    "can you",
    "could you",
    "will you",
    "please",
    "help",
)

VIOLATION_EXPLANATIONS: Dict[ViolationType, str] = {
    ViolationType.GUILT_TRIPPING: (
        "This message uses emotional manipulation or guilt-tripping to get compliance. "
        "It's okay to set boundaries even if someone \"really needs\" you."
    ),
    ViolationType.OVERSTEPPING: (
        "This message asks invasive personal questions or makes assumptions about your life. "
        "You don't owe anyone explanations about your private matters."
    ),
    ViolationType.AFTER_HOURS_PRESSURE: (
        "This request came after work hours ({local_time}). It's healthy to have boundaries "
        "around work time. You don't have to respond immediately."
    ),
}

REPEATED_PUSHING_NOTES = {
    "medium": "This is part of a pattern. This person regularly violates your boundaries.",
    "high": (
        "WARNING: This person is a repeat boundary violator. "
        "Consider having a direct conversation about expectations."
    ),
}

RESPONSE_TEMPLATES: Dict[ViolationType, ResponseTemplates] = {
    ViolationType.GUILT_TRIPPING: ResponseTemplates(
        gentle=(
            "I care about you, and I'm here to help when I can. "
            "Right now, I need to focus on my own needs too."
        ),
        moderate=(
            "I understand you're going through a lot. I can help, "
            "but I need to do it in a way that works for me too."
        ),
        firm=(
            "I need you to know that I'm not responsible for your emotions. I'm happy to help "
            "if I can, but not if it means sacrificing my wellbeing."
        ),
    ),
    ViolationType.OVERSTEPPING: ResponseTemplates(
        gentle="That's pretty personal. I'd prefer to keep that private.",
        moderate="I appreciate the interest, but that's not something I'm comfortable discussing.",
        firm=(
            "That's not something I discuss. If you have work-related questions, "
            "I'm happy to help with those."
        ),
    ),
    ViolationType.AFTER_HOURS_PRESSURE: ResponseTemplates(
        gentle="I'll get to this during work hours tomorrow. Thanks for understanding!",
        moderate=(
            "I appreciate the urgency, but I only respond to work requests during "
            "business hours to maintain balance."
        ),
        firm=(
            "I don't respond to work requests after 6 PM or before 8 AM. "
            "I'll get back to you during business hours."
        ),
    ),
    ViolationType.REPEATED_PUSHING: ResponseTemplates(
        gentle="I've noticed this is a pattern. Can we talk about how we work together?",
        moderate=(
            "This keeps happening, and I've already pushed back on it. "
            "I need you to respect my limits."
        ),
        firm=(
            "I've told you multiple times what my boundaries are. If you can't respect "
            "them, I need to reconsider this relationship."
        ),
    ),
    ViolationType.SCOPE_CREEP: ResponseTemplates(
        gentle="Happy to look at this, but it's outside what we agreed. Can we talk about priorities?",
        moderate=(
            "This adds to the original scope. If we take it on, something else needs to "
            "move or the timeline needs to change."
        ),
        firm="This is outside the agreed scope. I won't take it on without renegotiating the plan.",
    ),
    ViolationType.TIMELINE_PRESSURE: ResponseTemplates(
        gentle="I understand there's pressure on this. Let me look at what's realistic and get back to you.",
        moderate=(
            "Moving the deadline up means something has to give. "
            "Which parts can we drop or defer?"
        ),
        firm="The original timeline stands unless we reduce the scope. I can't compress it further.",
    ),
}

# Used when the model omits suggestions or for categories without templates
FALLBACK_RESPONSES = ResponseTemplates(
    gentle="I appreciate you reaching out, but I need to maintain my boundaries here.",
    moderate="I need to be clear about my boundaries. This doesn't work for me.",
    firm="This crosses my boundaries. I need you to respect my limits.",
)


def templates_for(violation_type: ViolationType) -> ResponseTemplates:
    return RESPONSE_TEMPLATES.get(violation_type, FALLBACK_RESPONSES)
