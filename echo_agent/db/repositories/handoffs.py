"""
Handoff Repository.
Data access layer for human-agent escalations.
"""

import logging

from sqlalchemy import select, func

from echo_agent.db.database import get_db
from echo_agent.db.models import HandoffRecord

logger = logging.getLogger(__name__)


class HandoffRepository:
    """Repository for handoff data operations."""

    async def create(self, data: dict) -> HandoffRecord:
        """Insert a new handoff request."""
        async with get_db() as db:
            handoff = HandoffRecord(**data)
            db.add(handoff)
            await db.flush()
            return handoff

    async def count(self) -> int:
        """Count all handoffs."""
        async with get_db() as db:
            result = await db.execute(select(func.count()).select_from(HandoffRecord))
            return result.scalar_one()
