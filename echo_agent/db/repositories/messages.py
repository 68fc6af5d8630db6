"""
Message Repository.
Data access layer for stored conversation messages.
"""

import logging
from typing import List, Optional

from sqlalchemy import select

from echo_agent.db.database import get_db
from echo_agent.db.models import MessageRecord

logger = logging.getLogger(__name__)


class MessageRepository:
    """Repository for message data operations."""

    async def create(self, data: dict) -> MessageRecord:
        """Insert a new message."""
        async with get_db() as db:
            message = MessageRecord(**data)
            db.add(message)
            await db.flush()
            return message

    async def get_by_session(
        self,
        session_id: str,
        limit: Optional[int] = None
    ) -> List[MessageRecord]:
        """Get messages of a session, oldest first."""
        async with get_db() as db:
            stmt = (
                select(MessageRecord)
                .where(MessageRecord.session_id == session_id)
                .order_by(MessageRecord.created_at.asc())
            )
            if limit is not None:
                stmt = stmt.limit(limit)
            result = await db.execute(stmt)
            return list(result.scalars().all())

    async def get_all(self) -> List[MessageRecord]:
        """Get every stored message."""
        async with get_db() as db:
            result = await db.execute(select(MessageRecord))
            return list(result.scalars().all())
