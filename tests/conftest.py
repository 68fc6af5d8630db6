"""Test configuration and fixtures for the Echo voice agent."""

import pytest

from echo_agent.config import Settings
from echo_agent.core.exceptions import StorageWriteException
from echo_agent.services.storage import ConversationStore, SQLStore
from echo_agent.core.models import summarize


@pytest.fixture
def settings(tmp_path):
    """Settings isolated from the environment: in-memory SQL store, no providers, no retry delay."""
    return Settings(
        STORAGE_BACKEND="sql",
        SUPABASE_URL=None,
        SUPABASE_SERVICE_ROLE_KEY=None,
        DATABASE_URL="sqlite+aiosqlite:///:memory:",
        AUDIO_DIR=tmp_path / "audio",
        AGENT_LOG_PATH=tmp_path / "logs" / "agent_log.md",
        DEEPGRAM_API_KEY=None,
        AZURE_SPEECH_KEY=None,
        PROVIDER_MAX_RETRIES=3,
        PROVIDER_RETRY_DELAY_SECONDS=0,
        CAPTURE_DRAIN_SECONDS=0.5
    )


@pytest.fixture
async def sql_store(settings):
    store = SQLStore(settings)
    await store.initialize()
    yield store
    await store.cleanup()


class MemoryStore(ConversationStore):
    """In-process store recording every write. Selected writes can be made to fail."""

    name = "memory"

    def __init__(self, fail_on=()):
        self.fail_on = set(fail_on)
        self.messages = []
        self.analytics = []
        self.handoffs = []
        self.uploads = {}

    def _maybe_fail(self, table):
        if table in self.fail_on:
            raise StorageWriteException(table, "simulated outage")

    async def insert_message(self, session_id, message):
        self._maybe_fail("messages")
        self.messages.append((session_id, message))

    async def insert_analytics(self, metrics):
        self._maybe_fail("analytics")
        self.analytics.extend(metrics)

    async def insert_handoff(self, handoff):
        self._maybe_fail("handoffs")
        self.handoffs.append(handoff)

    async def list_messages(self, session_id, limit=None):
        found = [message for sid, message in self.messages if sid == session_id]
        return found[:limit] if limit is not None else found

    async def summary(self):
        rows = [message.to_row(sid) for sid, message in self.messages]
        times = [m.metric_value for m in self.analytics if m.metric_name == "response_time"]
        return summarize(rows, len(self.handoffs), times)

    async def upload_audio(self, file_name, data, content_type):
        self._maybe_fail("audio")
        self.uploads[file_name] = (data, content_type)
        return f"https://cdn.example.test/{file_name}"


@pytest.fixture
def memory_store():
    return MemoryStore()
