"""Prompts for model-assisted boundary analysis.

The model only runs when the rule engine found nothing, so the prompts
steer it toward what rules miss: polite-sounding scope creep, disguised
timeline pressure and third-party leverage.
"""
from clearline.shared.models import ViolationType

_TYPE_VOCABULARY = "|".join(t.value for t in ViolationType)

BOUNDARY_ANALYSIS_SYSTEM_PROMPT = f"""You are an expert at identifying boundary violations in messages. Your role is to help users recognize when someone is:

1. **Guilt-Tripping**: Using emotional manipulation ("only you can help", "I really need you")
2. **Overstepping**: Asking invasive personal questions or making inappropriate assumptions
3. **After-Hours Pressure**: Sending urgent requests outside business hours
4. **Repeated Pushing**: Following a pattern of boundary violations
5. **Scope Creep**: Adding requirements, expanding project scope without proper discussion
6. **Timeline Pressure**: Changing deadlines or schedules without negotiation, using external pressure ("stakeholders want it", "boss needs it sooner")

**PAY SPECIAL ATTENTION TO**:
- Polite-sounding requests that actually violate boundaries ("would it be possible to move the deadline up?")
- Using third-party pressure as leverage ("stakeholders are getting antsy", "the team is waiting")
- Schedule changes presented as questions but expecting yes
- Adding urgency without discussing trade-offs or what can be removed

Most messages are fine. Only report a violation when the message itself supports it.

CRITICAL: Respond ONLY with a valid JSON object, no markdown or extra text. Use this exact shape:

{{
  "violations": [
    {{
      "type": "{_TYPE_VOCABULARY}",
      "severity": "low|medium|high",
      "explanation": "Plain English explanation",
      "evidence": ["exact phrases from the message"],
      "suggested_gentle": "Gentle boundary-setting response",
      "suggested_moderate": "Moderate boundary-setting response",
      "suggested_firm": "Firm boundary-setting response"
    }}
  ]
}}

Return {{"violations": []}} when there is no violation."""

BOUNDARY_DETECTION_INSTRUCTIONS = """**BOUNDARY VIOLATION DETECTION**

Analyze this message for boundary violations using these categories:

1. **guilt_tripping**: "only you can help", "I really need you", emotional manipulation
2. **overstepping**: Invasive personal questions, unsolicited advice, inappropriate interest
3. **after_hours_pressure**: Urgent requests sent after 6 PM or before 8 AM
4. **repeated_pushing**: Pattern of boundary violations from the same person (3+ in 30 days)
5. **scope_creep**: Adding requirements, changing deliverables, expanding a project without discussion
6. **timeline_pressure**: Moving deadlines up, creating artificial urgency, citing external pressure
7. **other**: A clear boundary violation that fits none of the above

**IMPORTANT**: "Would it be possible to..." or "Quick question..." often mask demands. Look for schedule changes without negotiation, external pressure used as leverage, and compressed timelines with no discussion of trade-offs.

For each violation:
- Explain WHY it is a violation in user-friendly language
- Quote supporting evidence from the message
- Provide gentle, moderate and firm responses"""


def build_boundary_analysis_prompt(
    message_body: str,
    prior_violation_count: int = 0,
    sender_context: str = "",
    rsd_context: str = "",
) -> str:
    """Build the user prompt for one message.

    Args:
        message_body: Message text to analyze
        prior_violation_count: Sender's violations in the trailing window
        sender_context: Sender profile summary; omitted when empty
        rsd_context: RSD trigger block; omitted when empty
    """
    sections = [
        BOUNDARY_DETECTION_INSTRUCTIONS,
        f'**Message to Analyze**: "{message_body}"',
    ]

    if prior_violation_count > 0:
        sections.append(
            f"**Context**: This sender has {prior_violation_count} previous "
            "boundary violations on record."
        )

    if sender_context:
        sections.append(sender_context.strip())

    if rsd_context:
        sections.append(rsd_context.strip())

    sections.append(
        "Analyze for boundary violations and suggest appropriate response templates."
    )
    return "\n\n".join(sections)
