"""
Handoff rule: decides when a conversation is escalated to a human agent.
"""

from typing import List

from echo_agent.core.analyzer import MessageAnalysis, NEGATIVE_THRESHOLD

LOW_CONFIDENCE_THRESHOLD = 0.4

DEFAULT_HANDOFF_REASON = "Low confidence or negative sentiment"


def handoff_triggers(analysis: MessageAnalysis) -> List[str]:
    """Names of the handoff clauses that fired, in evaluation order."""
    triggers = []
    if analysis.requests_human:
        triggers.append("requested_human")
    if analysis.sentiment < NEGATIVE_THRESHOLD:
        triggers.append("negative_sentiment")
    if analysis.confidence < LOW_CONFIDENCE_THRESHOLD:
        triggers.append("low_confidence")
    if analysis.is_urgent:
        triggers.append("urgent")
    return triggers


def should_handoff(analysis: MessageAnalysis) -> bool:
    return (
        analysis.requests_human
        or analysis.sentiment < NEGATIVE_THRESHOLD
        or analysis.confidence < LOW_CONFIDENCE_THRESHOLD
        or analysis.is_urgent
    )


def handoff_reason(analysis: MessageAnalysis) -> str:
    """
    Reason stored on the handoff row.

    This is the analyzer's reason, which only knows about human requests and
    sentiment; urgent or low-confidence escalations get the generic reason.
    """
    return analysis.handoff_reason or DEFAULT_HANDOFF_REASON
