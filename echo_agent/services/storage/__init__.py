"""
Conversation Store.
Persists messages, analytics and handoffs either in a hosted Supabase project
(PostgREST + Storage over HTTP) or in a local SQL database.
"""

import asyncio
import logging
from pathlib import Path
from typing import Any, Awaitable, Dict, List, Optional

import httpx

from echo_agent.config import (
    Settings,
    get_settings,
    MESSAGES_TABLE,
    ANALYTICS_TABLE,
    HANDOFFS_TABLE
)
from echo_agent.core.exceptions import (
    StorageException,
    StorageConfigurationException,
    StorageWriteException
)
from echo_agent.core.models import (
    Message,
    Handoff,
    AnalyticsMetric,
    AnalyticsSummary,
    summarize
)

logger = logging.getLogger(__name__)

RESPONSE_TIME_METRIC = "response_time"


async def best_effort(operation: str, write: Awaitable[Any]) -> bool:
    """
    Await a write without letting its failure escape.

    Writes are at-most-once: a failure is logged and never retried.
    Returns True if the write completed.
    """
    try:
        await write
        return True
    except Exception as e:
        logger.error(f"Failed to {operation}: {e}")
        return False


class ConversationStore:
    """Interface shared by the storage backends."""

    name = "base"

    async def initialize(self):
        """Open connections."""

    async def cleanup(self):
        """Close connections."""

    @property
    def is_configured(self) -> bool:
        return True

    def ensure_configured(self):
        if not self.is_configured:
            raise StorageConfigurationException()

    async def insert_message(self, session_id: str, message: Message):
        raise NotImplementedError

    async def insert_analytics(self, metrics: List[AnalyticsMetric]):
        raise NotImplementedError

    async def insert_handoff(self, handoff: Handoff):
        raise NotImplementedError

    async def list_messages(self, session_id: str, limit: Optional[int] = None) -> List[Message]:
        raise NotImplementedError

    async def summary(self) -> AnalyticsSummary:
        raise NotImplementedError

    async def upload_audio(self, file_name: str, data: bytes, content_type: str) -> str:
        """Store an audio asset and return its public URL."""
        raise NotImplementedError


class SupabaseStore(ConversationStore):
    """
    Store backed by a Supabase project.

    Uses the generic REST insert interface with the service role key. The key
    never leaves the server.
    """

    name = "supabase"

    def __init__(
        self,
        settings: Optional[Settings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.settings = settings or get_settings()
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def is_configured(self) -> bool:
        return self.settings.supabase_configured

    async def initialize(self):
        if not self.is_configured:
            logger.warning("Supabase store selected but SUPABASE_URL/SUPABASE_SERVICE_ROLE_KEY are not set")
            return

        key = self.settings.SUPABASE_SERVICE_ROLE_KEY
        self._client = httpx.AsyncClient(
            base_url=self.settings.SUPABASE_URL.rstrip("/"),
            headers={
                "Authorization": f"Bearer {key}",
                "apikey": key
            },
            timeout=self.settings.STORAGE_TIMEOUT_SECONDS,
            transport=self._transport
        )
        logger.info(f"Supabase store ready: {self.settings.SUPABASE_URL}")

    async def cleanup(self):
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    @property
    def client(self) -> httpx.AsyncClient:
        self.ensure_configured()
        if self._client is None:
            raise StorageException("Supabase store not initialized")
        return self._client

    async def _insert(self, table: str, payload: Any):
        response = await self.client.post(
            f"/rest/v1/{table}",
            json=payload,
            headers={"Prefer": "return=minimal"}
        )
        if response.is_error:
            raise StorageWriteException(table, response.text)

    async def _select(self, table: str, params: Dict[str, Any]) -> List[Dict[str, Any]]:
        response = await self.client.get(f"/rest/v1/{table}", params=params)
        if response.is_error:
            raise StorageException(
                f"Failed to read {table}: {response.text}",
                details={"table": table, "api_status_code": response.status_code}
            )
        return response.json()

    async def insert_message(self, session_id: str, message: Message):
        await self._insert(MESSAGES_TABLE, message.to_row(session_id))

    async def insert_analytics(self, metrics: List[AnalyticsMetric]):
        await self._insert(ANALYTICS_TABLE, [metric.to_row() for metric in metrics])

    async def insert_handoff(self, handoff: Handoff):
        await self._insert(HANDOFFS_TABLE, handoff.to_row())

    async def list_messages(self, session_id: str, limit: Optional[int] = None) -> List[Message]:
        params = {
            "select": "*",
            "session_id": f"eq.{session_id}",
            "order": "created_at.asc"
        }
        if limit is not None:
            params["limit"] = limit
        rows = await self._select(MESSAGES_TABLE, params)
        return [Message.from_row(row) for row in rows]

    async def summary(self) -> AnalyticsSummary:
        messages = await self._select(MESSAGES_TABLE, {"select": "session_id,confidence,sentiment"})
        handoffs = await self._select(HANDOFFS_TABLE, {"select": "id"})
        response_times = await self._select(ANALYTICS_TABLE, {
            "select": "metric_value",
            "metric_name": f"eq.{RESPONSE_TIME_METRIC}"
        })
        return summarize(
            messages,
            len(handoffs),
            [row.get("metric_value") or 0.0 for row in response_times]
        )

    def public_url(self, file_name: str) -> str:
        base = self.settings.SUPABASE_URL.rstrip("/")
        return f"{base}/storage/v1/object/public/{self.settings.AUDIO_BUCKET}/{file_name}"

    async def upload_audio(self, file_name: str, data: bytes, content_type: str) -> str:
        response = await self.client.post(
            f"/storage/v1/object/{self.settings.AUDIO_BUCKET}/{file_name}",
            content=data,
            headers={"Content-Type": content_type, "x-upsert": "false"}
        )
        if response.is_error:
            raise StorageWriteException(self.settings.AUDIO_BUCKET, response.text)
        return self.public_url(file_name)


class SQLStore(ConversationStore):
    """
    Store backed by a SQL database through SQLAlchemy (SQLite by default).

    The SQLite engine shares one connection, so operations are serialized.
    """

    name = "sql"

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()
        self._lock = asyncio.Lock()

        from echo_agent.db.repositories import (
            MessageRepository,
            AnalyticsRepository,
            HandoffRepository
        )
        self.messages = MessageRepository()
        self.analytics = AnalyticsRepository()
        self.handoffs = HandoffRepository()

    async def initialize(self):
        from echo_agent.db.database import init_db

        await init_db(self.settings)
        Path(self.settings.AUDIO_DIR).mkdir(parents=True, exist_ok=True)

    async def cleanup(self):
        from echo_agent.db.database import close_db

        await close_db()

    async def insert_message(self, session_id: str, message: Message):
        async with self._lock:
            await self.messages.create(message.to_row(session_id))

    async def insert_analytics(self, metrics: List[AnalyticsMetric]):
        async with self._lock:
            await self.analytics.create_many([metric.to_row() for metric in metrics])

    async def insert_handoff(self, handoff: Handoff):
        async with self._lock:
            await self.handoffs.create(handoff.to_row())

    async def list_messages(self, session_id: str, limit: Optional[int] = None) -> List[Message]:
        async with self._lock:
            records = await self.messages.get_by_session(session_id, limit)
        return [Message.from_row(record.to_row()) for record in records]

    async def summary(self) -> AnalyticsSummary:
        async with self._lock:
            records = await self.messages.get_all()
            handoff_count = await self.handoffs.count()
            response_times = await self.analytics.get_values(RESPONSE_TIME_METRIC)
        return summarize([record.to_row() for record in records], handoff_count, response_times)

    async def upload_audio(self, file_name: str, data: bytes, content_type: str) -> str:
        path = Path(self.settings.AUDIO_DIR) / file_name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)
        return f"/audio/{file_name}"


def create_store(
    settings: Optional[Settings] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None
) -> ConversationStore:
    """Create the store selected by STORAGE_BACKEND."""
    settings = settings or get_settings()
    backend = settings.storage_backend

    if backend == "supabase":
        return SupabaseStore(settings, transport=transport)
    if backend == "sql":
        return SQLStore(settings)

    raise StorageException(
        f"Unknown storage backend '{backend}'",
        details={"supported": ["supabase", "sql", "auto"]}
    )


__all__ = [
    "ConversationStore",
    "SupabaseStore",
    "SQLStore",
    "create_store",
    "best_effort"
]
