"""
Analytics Repository.
Append-only access to analytics facts.
"""

import logging
from typing import List

from sqlalchemy import select

from echo_agent.db.database import get_db
from echo_agent.db.models import AnalyticsRecord

logger = logging.getLogger(__name__)


class AnalyticsRepository:
    """Repository for analytics data operations."""

    async def create_many(self, rows: List[dict]) -> List[AnalyticsRecord]:
        """Insert several analytics rows in one transaction."""
        async with get_db() as db:
            records = [
                AnalyticsRecord(
                    session_id=row["session_id"],
                    metric_name=row["metric_name"],
                    metric_value=row.get("metric_value", 0.0),
                    metric_metadata=row.get("metadata") or {}
                )
                for row in rows
            ]
            db.add_all(records)
            await db.flush()
            return records

    async def get_values(self, metric_name: str) -> List[float]:
        """Get all values recorded for a metric."""
        async with get_db() as db:
            stmt = select(AnalyticsRecord.metric_value).where(
                AnalyticsRecord.metric_name == metric_name
            )
            result = await db.execute(stmt)
            return [value or 0.0 for value in result.scalars().all()]

    async def get_by_session(self, session_id: str) -> List[AnalyticsRecord]:
        """Get analytics rows for a session."""
        async with get_db() as db:
            stmt = (
                select(AnalyticsRecord)
                .where(AnalyticsRecord.session_id == session_id)
                .order_by(AnalyticsRecord.created_at.asc())
            )
            result = await db.execute(stmt)
            return list(result.scalars().all())
