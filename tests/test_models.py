"""Unit tests for conversation models and the analytics summary."""

from datetime import datetime

from echo_agent.core.models import (
    AnalyticsSummary,
    Handoff,
    Message,
    build_metrics,
    summarize
)


class TestMessage:
    """Message rows."""

    def test_to_row_leaves_id_and_timestamp_to_store(self):
        row = Message(role="user", content="hello", intent="greeting", confidence=0.85, sentiment=0.5).to_row("s1")
        assert row == {
            "session_id": "s1",
            "role": "user",
            "content": "hello",
            "intent": "greeting",
            "confidence": 0.85,
            "sentiment": 0.5
        }

    def test_audio_url_only_when_set(self):
        row = Message(role="assistant", content="hi", audio_url="https://x/a.mp3").to_row("s1")
        assert row["audio_url"] == "https://x/a.mp3"

    def test_from_row_parses_timestamp(self):
        message = Message.from_row({
            "id": 7,
            "role": "assistant",
            "content": "hi",
            "created_at": "2024-05-01T10:00:00.000Z"
        })
        assert message.id == "7"
        assert message.timestamp == datetime.fromisoformat("2024-05-01T10:00:00+00:00")

    def test_from_row_tolerates_bad_timestamp(self):
        message = Message.from_row({"role": "user", "content": "x", "timestamp": "yesterday"})
        assert isinstance(message.timestamp, datetime)


class TestBuildMetrics:
    """Analytics rows from a name -> value mapping."""

    def test_numeric_and_non_numeric_values(self):
        metrics = {m.metric_name: m for m in build_metrics("s1", {
            "response_time": 12.5,
            "intent_detected": "refund",
            "confidence_score": 0.85
        })}

        assert metrics["response_time"].metric_value == 12.5
        assert metrics["response_time"].metadata == {}
        assert metrics["intent_detected"].metric_value == 0.0
        assert metrics["intent_detected"].metadata == {"value": "refund"}
        assert metrics["confidence_score"].to_row()["session_id"] == "s1"

    def test_booleans_are_not_numbers(self):
        metric = build_metrics("s1", {"handoff": True})[0]
        assert metric.metric_value == 0.0
        assert metric.metadata == {"value": True}


class TestSummarize:
    """Aggregates over stored rows."""

    def test_empty(self):
        assert summarize([], 0, []) == AnalyticsSummary()

    def test_aggregates(self):
        rows = [
            {"session_id": "a", "confidence": 0.85, "sentiment": 0.2},
            {"session_id": "a", "confidence": 1.0, "sentiment": 0.5},
            {"session_id": "b", "confidence": 0.5, "sentiment": 0.8},
            {"session_id": "b", "confidence": None, "sentiment": None},
        ]
        summary = summarize(rows, 1, [10.0, 21.0])

        assert summary.total_conversations == 2
        assert summary.total_messages == 4
        assert summary.avg_confidence == 0.78
        assert summary.avg_sentiment == 0.5
        assert summary.handoff_rate == 0.5
        assert summary.response_time == 16

    def test_to_dict_uses_client_keys(self):
        data = summarize([{"session_id": "a", "confidence": 1.0, "sentiment": 0.5}], 0, []).to_dict()
        assert set(data) == {
            "totalConversations",
            "totalMessages",
            "avgConfidence",
            "avgSentiment",
            "handoffRate",
            "responseTime"
        }


def test_handoff_row():
    row = Handoff("s1", "User requested human agent", "New conversation.", 0.5).to_row()
    assert row["reason"] == "User requested human agent"
    assert row["sentiment_score"] == 0.5
