"""
SQLAlchemy Database Models.
Mirrors the hosted tables: messages, analytics and handoffs.
"""

from datetime import datetime, timezone
from uuid import uuid4
from sqlalchemy import Column, String, Float, DateTime, Text, JSON

from echo_agent.db.database import Base


def _new_id() -> str:
    return str(uuid4())


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class MessageRecord(Base):
    """Stored conversation message."""
    __tablename__ = "messages"

    id = Column(String(36), primary_key=True, default=_new_id)
    session_id = Column(String(100), nullable=False, index=True)
    role = Column(String(20), nullable=False)
    content = Column(Text, nullable=False)

    intent = Column(String(50))
    confidence = Column(Float)
    sentiment = Column(Float)
    audio_url = Column(String(500))

    created_at = Column(DateTime(timezone=True), default=_utcnow, index=True)

    def to_row(self) -> dict:
        return {
            "id": self.id,
            "session_id": self.session_id,
            "role": self.role,
            "content": self.content,
            "intent": self.intent,
            "confidence": self.confidence,
            "sentiment": self.sentiment,
            "audio_url": self.audio_url,
            "created_at": self.created_at
        }

    def __repr__(self):
        return f"<MessageRecord {self.id}: {self.role}/{self.intent}>"


class AnalyticsRecord(Base):
    """Append-only analytics fact."""
    __tablename__ = "analytics"

    id = Column(String(36), primary_key=True, default=_new_id)
    session_id = Column(String(100), nullable=False, index=True)
    metric_name = Column(String(100), nullable=False, index=True)
    metric_value = Column(Float, default=0.0)
    # "metadata" is reserved on declarative classes
    metric_metadata = Column("metadata", JSON, default=dict)

    created_at = Column(DateTime(timezone=True), default=_utcnow)

    def __repr__(self):
        return f"<AnalyticsRecord {self.metric_name}={self.metric_value}>"


class HandoffRecord(Base):
    """Request for a human agent to take over a session."""
    __tablename__ = "handoffs"

    id = Column(String(36), primary_key=True, default=_new_id)
    session_id = Column(String(100), nullable=False, index=True)
    reason = Column(Text)
    context_summary = Column(Text)
    sentiment_score = Column(Float)

    created_at = Column(DateTime(timezone=True), default=_utcnow)

    def __repr__(self):
        return f"<HandoffRecord {self.session_id}: {self.reason}>"
