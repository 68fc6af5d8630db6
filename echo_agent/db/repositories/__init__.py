"""Database repositories initialization."""

from echo_agent.db.repositories.messages import MessageRepository
from echo_agent.db.repositories.analytics import AnalyticsRepository
from echo_agent.db.repositories.handoffs import HandoffRepository

__all__ = [
    "MessageRepository",
    "AnalyticsRepository",
    "HandoffRepository"
]
