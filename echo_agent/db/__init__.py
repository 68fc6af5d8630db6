"""Database module initialization."""

from echo_agent.db.database import init_db, close_db, get_db
from echo_agent.db.models import MessageRecord, AnalyticsRecord, HandoffRecord

__all__ = [
    "init_db",
    "close_db",
    "get_db",
    "MessageRecord",
    "AnalyticsRecord",
    "HandoffRecord"
]
