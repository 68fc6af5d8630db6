"""
Rule-based message analysis.
Maps raw user text to an intent, a confidence, a sentiment score and handoff signals.
"""

import re
from dataclasses import dataclass
from typing import Optional, List, Tuple, Pattern, Sequence, Dict, Any

from echo_agent.core.models import Message

MATCH_CONFIDENCE = 0.85
FALLBACK_CONFIDENCE = 0.5
FALLBACK_INTENT = "general_inquiry"

NEGATIVE_SENTIMENT = 0.2
NEUTRAL_SENTIMENT = 0.5
POSITIVE_SENTIMENT = 0.8

# Sentiment below this counts as negative for replies and handoffs
NEGATIVE_THRESHOLD = 0.3

HUMAN_REQUESTED_REASON = "User requested human agent"
NEGATIVE_SENTIMENT_REASON = "Negative sentiment detected"


def _compile(pattern: str) -> Pattern:
    return re.compile(pattern, re.IGNORECASE)


# Evaluated in order, first match wins
INTENT_PATTERNS: List[Tuple[str, Pattern]] = [
    ("greeting", _compile(r"^(hi|hello|hey|good morning|good afternoon)")),
    ("help", _compile(r"(help|support|assist|need|problem|issue)")),
    ("refund", _compile(r"(refund|money back|return|reimburse)")),
    ("billing", _compile(r"(bill|invoice|charge|payment|cost|price)")),
    ("account", _compile(r"(account|login|password|access|profile)")),
    ("technical", _compile(r"(not working|broken|error|bug|crash|fix)")),
    ("feedback", _compile(r"(feedback|complaint|suggestion|review)")),
    ("farewell", _compile(r"(bye|goodbye|thanks|thank you|that's all)")),
]

POSITIVE_WORDS = _compile(r"(great|good|thanks|thank|excellent|happy|love|appreciate)")
NEGATIVE_WORDS = _compile(r"(bad|terrible|awful|hate|angry|frustrated|disappointed|poor|worst)")
URGENT_WORDS = _compile(r"(urgent|immediately|asap|emergency|critical|now)")
HUMAN_REQUEST = _compile(r"(speak to|talk to|human|agent|person|representative)")


@dataclass(frozen=True)
class MessageAnalysis:
    """Result of analyzing a single user message."""
    intent: str
    confidence: float
    sentiment: float
    is_urgent: bool
    requests_human: bool
    handoff_reason: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "intent": self.intent,
            "confidence": self.confidence,
            "sentiment": self.sentiment,
            "is_urgent": self.is_urgent,
            "requests_human": self.requests_human,
            "handoff_reason": self.handoff_reason
        }


def detect_intent(text: str) -> Tuple[str, float]:
    """Return the first matching intent and its confidence."""
    for intent, pattern in INTENT_PATTERNS:
        if pattern.search(text):
            return intent, MATCH_CONFIDENCE
    return FALLBACK_INTENT, FALLBACK_CONFIDENCE


def score_sentiment(text: str) -> float:
    """Ternary sentiment. Negative words win over positive ones."""
    if NEGATIVE_WORDS.search(text):
        return NEGATIVE_SENTIMENT
    if POSITIVE_WORDS.search(text):
        return POSITIVE_SENTIMENT
    return NEUTRAL_SENTIMENT


def analyze_message(message: str, history: Sequence[Message] = ()) -> MessageAnalysis:
    """
    Analyze a user message.

    Args:
        message: Raw user text
        history: Prior turns of the conversation (currently unused by the rules)

    Returns:
        MessageAnalysis; unmatched text yields general_inquiry with confidence 0.5
    """
    text = (message or "").lower()

    intent, confidence = detect_intent(text)
    sentiment = score_sentiment(text)
    is_urgent = bool(URGENT_WORDS.search(text))
    requests_human = bool(HUMAN_REQUEST.search(text))

    if requests_human:
        handoff_reason = HUMAN_REQUESTED_REASON
    elif sentiment < NEGATIVE_THRESHOLD:
        handoff_reason = NEGATIVE_SENTIMENT_REASON
    else:
        handoff_reason = None

    return MessageAnalysis(
        intent=intent,
        confidence=confidence,
        sentiment=sentiment,
        is_urgent=is_urgent,
        requests_human=requests_human,
        handoff_reason=handoff_reason
    )
