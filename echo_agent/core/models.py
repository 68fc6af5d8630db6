"""
Conversation domain models.
Messages, handoffs and analytics rows exchanged between the relay and the store.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional, Dict, Any, List, Mapping
from uuid import uuid4


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _parse_timestamp(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value
    if isinstance(value, str) and value:
        try:
            return datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            pass
    return _utcnow()


@dataclass(frozen=True)
class Message:
    """Single conversation message. Immutable once stored."""
    role: str  # "user" or "assistant"
    content: str
    intent: Optional[str] = None
    confidence: Optional[float] = None
    sentiment: Optional[float] = None
    audio_url: Optional[str] = None
    id: str = field(default_factory=lambda: str(uuid4()))
    timestamp: datetime = field(default_factory=_utcnow)

    def to_row(self, session_id: str) -> Dict[str, Any]:
        """Row for the messages table. Id and timestamp are assigned by the store."""
        row = {
            "session_id": session_id,
            "role": self.role,
            "content": self.content,
            "intent": self.intent,
            "confidence": self.confidence,
            "sentiment": self.sentiment
        }
        if self.audio_url is not None:
            row["audio_url"] = self.audio_url
        return row

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "Message":
        """Build a message from a stored row or a client history entry."""
        kwargs = {
            "role": row.get("role") or "user",
            "content": row.get("content") or "",
            "intent": row.get("intent"),
            "confidence": row.get("confidence"),
            "sentiment": row.get("sentiment"),
            "audio_url": row.get("audio_url"),
            "timestamp": _parse_timestamp(row.get("created_at") or row.get("timestamp"))
        }
        if row.get("id"):
            kwargs["id"] = str(row["id"])
        return cls(**kwargs)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "role": self.role,
            "content": self.content,
            "intent": self.intent,
            "confidence": self.confidence,
            "sentiment": self.sentiment,
            "audio_url": self.audio_url,
            "timestamp": self.timestamp.isoformat()
        }


@dataclass(frozen=True)
class Handoff:
    """Escalation record asking a human agent to take over a session."""
    session_id: str
    reason: str
    context_summary: str
    sentiment_score: float

    def to_row(self) -> Dict[str, Any]:
        return {
            "session_id": self.session_id,
            "reason": self.reason,
            "context_summary": self.context_summary,
            "sentiment_score": self.sentiment_score
        }


@dataclass(frozen=True)
class AnalyticsMetric:
    """Append-only analytics fact."""
    session_id: str
    metric_name: str
    metric_value: float
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_row(self) -> Dict[str, Any]:
        return {
            "session_id": self.session_id,
            "metric_name": self.metric_name,
            "metric_value": self.metric_value,
            "metadata": self.metadata
        }


def build_metrics(session_id: str, metrics: Mapping[str, Any]) -> List[AnalyticsMetric]:
    """
    Turn a name -> value mapping into analytics rows.
    Non-numeric values are stored as 0 with the value kept in metadata.
    """
    rows = []
    for name, value in metrics.items():
        is_number = isinstance(value, (int, float)) and not isinstance(value, bool)
        rows.append(AnalyticsMetric(
            session_id=session_id,
            metric_name=name,
            metric_value=float(value) if is_number else 0.0,
            metadata={} if is_number else {"value": value}
        ))
    return rows


@dataclass
class AnalyticsSummary:
    """Aggregate view over stored conversation data."""
    total_conversations: int = 0
    total_messages: int = 0
    avg_confidence: float = 0.0
    avg_sentiment: float = 0.0
    handoff_rate: float = 0.0
    response_time: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "totalConversations": self.total_conversations,
            "totalMessages": self.total_messages,
            "avgConfidence": self.avg_confidence,
            "avgSentiment": self.avg_sentiment,
            "handoffRate": self.handoff_rate,
            "responseTime": self.response_time
        }


def summarize(
    message_rows: List[Mapping[str, Any]],
    handoff_count: int,
    response_times: List[float]
) -> AnalyticsSummary:
    """Compute the analytics summary from raw rows."""
    conversations = {row.get("session_id") for row in message_rows if row.get("session_id")}
    scored = [
        row for row in message_rows
        if row.get("confidence") is not None and row.get("sentiment") is not None
    ]

    avg_confidence = 0.0
    avg_sentiment = 0.0
    if scored:
        avg_confidence = sum(row["confidence"] for row in scored) / len(scored)
        avg_sentiment = sum(row["sentiment"] for row in scored) / len(scored)

    handoff_rate = handoff_count / len(conversations) if conversations else 0.0
    response_time = sum(response_times) / len(response_times) if response_times else 0.0

    return AnalyticsSummary(
        total_conversations=len(conversations),
        total_messages=len(message_rows),
        avg_confidence=round(avg_confidence, 2),
        avg_sentiment=round(avg_sentiment, 2),
        handoff_rate=round(handoff_rate, 2),
        response_time=int(round(response_time))
    )
