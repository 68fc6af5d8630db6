"""Unit tests for rule-based message analysis."""

import pytest

from echo_agent.config import INTENTS
from echo_agent.core.analyzer import (
    INTENT_PATTERNS,
    analyze_message,
    detect_intent,
    score_sentiment,
    HUMAN_REQUESTED_REASON,
    NEGATIVE_SENTIMENT_REASON
)


class TestIntentDetection:
    """Ordered, first-match-wins intent table."""

    @pytest.mark.parametrize("text,intent", [
        ("hello", "greeting"),
        ("Good morning!", "greeting"),
        ("I have a problem", "help"),
        ("I want my money back", "refund"),
        ("Why is the invoice so high?", "billing"),
        ("I forgot my password", "account"),
        ("The app keeps crashing", "technical"),
        ("I have a suggestion", "feedback"),
        ("Here is a review of the app", "feedback"),
        ("goodbye", "farewell"),
    ])
    def test_known_intents(self, text, intent):
        analysis = analyze_message(text)
        assert analysis.intent == intent
        assert analysis.confidence == 0.85

    def test_unmatched_text_is_general_inquiry(self):
        analysis = analyze_message("What are your opening hours?")
        assert analysis.intent == "general_inquiry"
        assert analysis.confidence == 0.5

    def test_first_match_wins(self):
        """'help' is checked before 'refund', so a message matching both is help."""
        assert detect_intent("i need a refund") == ("help", 0.85)
        assert detect_intent("i want a refund") == ("refund", 0.85)

    def test_greeting_is_anchored_at_start(self):
        assert analyze_message("well, hello").intent != "greeting"

    def test_matching_is_case_insensitive(self):
        assert analyze_message("HELLO THERE").intent == "greeting"
        assert analyze_message("My PASSWORD expired").intent == "account"

    def test_intents_are_closed_set(self):
        labels = [label for label, _ in INTENT_PATTERNS]
        assert labels == INTENTS[:-1]
        assert analyze_message("").intent in INTENTS


class TestSentiment:
    """Ternary sentiment scoring."""

    def test_neutral(self):
        assert score_sentiment("where is my parcel") == 0.5

    def test_positive(self):
        assert score_sentiment("this is excellent") == 0.8

    def test_negative(self):
        assert score_sentiment("this is awful") == 0.2

    def test_negative_wins_over_positive(self):
        assert analyze_message("Thanks, but the service was terrible").sentiment == 0.2


class TestHandoffSignals:
    """Urgency, human requests and the stored handoff reason."""

    def test_human_request(self):
        analysis = analyze_message("let me speak to a human")
        assert analysis.requests_human is True
        assert analysis.handoff_reason == HUMAN_REQUESTED_REASON

    def test_negative_sentiment_reason(self):
        analysis = analyze_message("I want a refund, this is terrible")
        assert analysis.requests_human is False
        assert analysis.handoff_reason == NEGATIVE_SENTIMENT_REASON

    def test_human_request_reason_takes_precedence(self):
        analysis = analyze_message("this is terrible, get me a representative")
        assert analysis.handoff_reason == HUMAN_REQUESTED_REASON

    def test_urgency(self):
        analysis = analyze_message("This is urgent")
        assert analysis.is_urgent is True
        assert analysis.handoff_reason is None

    def test_plain_message_has_no_signals(self):
        analysis = analyze_message("hello")
        assert analysis.is_urgent is False
        assert analysis.requests_human is False
        assert analysis.handoff_reason is None

    def test_to_dict(self):
        data = analyze_message("hello").to_dict()
        assert data["intent"] == "greeting"
        assert data["sentiment"] == 0.5
        assert data["requests_human"] is False
