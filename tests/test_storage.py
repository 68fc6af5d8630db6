"""Tests for the conversation store backends."""

import json

import httpx
import pytest

from echo_agent.config import Settings
from echo_agent.core.exceptions import (
    StorageConfigurationException,
    StorageException,
    StorageWriteException
)
from echo_agent.core.models import Handoff, Message, build_metrics
from echo_agent.services.storage import SQLStore, SupabaseStore, best_effort, create_store


def supabase_settings(**overrides):
    values = dict(
        STORAGE_BACKEND="supabase",
        SUPABASE_URL="https://project.supabase.co",
        SUPABASE_SERVICE_ROLE_KEY="service-role-key",
        PROVIDER_RETRY_DELAY_SECONDS=0
    )
    values.update(overrides)
    return Settings(**values)


class TestCreateStore:
    """Backend selection."""

    def test_auto_prefers_supabase_when_configured(self):
        settings = supabase_settings(STORAGE_BACKEND="auto")
        assert isinstance(create_store(settings), SupabaseStore)

    def test_auto_falls_back_to_sql(self, settings):
        settings = settings.model_copy(update={"STORAGE_BACKEND": "auto"})
        assert isinstance(create_store(settings), SQLStore)

    def test_unknown_backend(self, settings):
        settings = settings.model_copy(update={"STORAGE_BACKEND": "redis"})
        with pytest.raises(StorageException):
            create_store(settings)


class TestSQLStore:
    """SQLAlchemy backend on in-memory SQLite."""

    async def test_message_round_trip(self, sql_store):
        stored = Message(role="user", content="I want a refund", intent="refund", confidence=0.85, sentiment=0.2)
        await sql_store.insert_message("s1", stored)
        await sql_store.insert_message("s1", Message(role="assistant", content="Sure", intent="response",
                                                     confidence=1.0, sentiment=0.5))
        await sql_store.insert_message("s2", Message(role="user", content="hello"))

        messages = await sql_store.list_messages("s1")

        assert [m.role for m in messages] == ["user", "assistant"]
        first = messages[0]
        assert first.content == stored.content
        assert first.intent == stored.intent
        assert first.confidence == stored.confidence
        assert first.sentiment == stored.sentiment

    async def test_list_messages_limit(self, sql_store):
        for i in range(5):
            await sql_store.insert_message("s1", Message(role="user", content=f"message {i}"))
        assert len(await sql_store.list_messages("s1", limit=2)) == 2

    async def test_summary(self, sql_store):
        await sql_store.insert_message("a", Message(role="user", content="hi", intent="greeting",
                                                    confidence=0.85, sentiment=0.5))
        await sql_store.insert_message("b", Message(role="user", content="bad", intent="general_inquiry",
                                                    confidence=0.45, sentiment=0.2))
        await sql_store.insert_analytics(build_metrics("a", {"response_time": 4.0, "intent_detected": "greeting"}))
        await sql_store.insert_analytics(build_metrics("b", {"response_time": 8.0}))
        await sql_store.insert_handoff(Handoff("b", "Negative sentiment detected", "New conversation.", 0.2))

        summary = await sql_store.summary()

        assert summary.total_conversations == 2
        assert summary.total_messages == 2
        assert summary.avg_confidence == 0.65
        assert summary.avg_sentiment == 0.35
        assert summary.handoff_rate == 0.5
        assert summary.response_time == 6

    async def test_analytics_metadata(self, sql_store):
        await sql_store.insert_analytics(build_metrics("s1", {"intent_detected": "billing"}))
        records = await sql_store.analytics.get_by_session("s1")
        assert records[0].metric_metadata == {"value": "billing"}

    async def test_upload_audio_writes_file(self, sql_store, settings):
        url = await sql_store.upload_audio("conversation_s1_1.mp3", b"ID3", "audio/mpeg")
        assert url == "/audio/conversation_s1_1.mp3"
        assert (settings.AUDIO_DIR / "conversation_s1_1.mp3").read_bytes() == b"ID3"


class TestSupabaseStore:
    """PostgREST backend against a mock transport."""

    async def test_insert_message(self):
        requests = []

        def handler(request):
            requests.append(request)
            return httpx.Response(201)

        store = SupabaseStore(supabase_settings(), transport=httpx.MockTransport(handler))
        await store.initialize()
        await store.insert_message("s1", Message(role="user", content="hello", intent="greeting",
                                                 confidence=0.85, sentiment=0.5))
        await store.cleanup()

        request = requests[0]
        assert request.method == "POST"
        assert request.url.path == "/rest/v1/messages"
        assert request.headers["apikey"] == "service-role-key"
        assert request.headers["Authorization"] == "Bearer service-role-key"
        assert request.headers["Prefer"] == "return=minimal"
        assert json.loads(request.content) == {
            "session_id": "s1",
            "role": "user",
            "content": "hello",
            "intent": "greeting",
            "confidence": 0.85,
            "sentiment": 0.5
        }

    async def test_insert_analytics_is_one_bulk_request(self):
        bodies = []

        def handler(request):
            bodies.append(json.loads(request.content))
            return httpx.Response(201)

        store = SupabaseStore(supabase_settings(), transport=httpx.MockTransport(handler))
        await store.initialize()
        await store.insert_analytics(build_metrics("s1", {"response_time": 3.0, "intent_detected": "help"}))
        await store.cleanup()

        assert len(bodies) == 1
        assert [row["metric_name"] for row in bodies[0]] == ["response_time", "intent_detected"]

    async def test_rejected_write_raises(self):
        store = SupabaseStore(
            supabase_settings(),
            transport=httpx.MockTransport(lambda request: httpx.Response(400, text="bad column"))
        )
        await store.initialize()
        with pytest.raises(StorageWriteException):
            await store.insert_handoff(Handoff("s1", "reason", "summary", 0.2))
        await store.cleanup()

    async def test_unconfigured_store(self):
        store = SupabaseStore(supabase_settings(SUPABASE_URL=None))
        await store.initialize()
        assert store.is_configured is False
        with pytest.raises(StorageConfigurationException):
            store.ensure_configured()

    async def test_list_messages_query(self):
        seen = {}

        def handler(request):
            seen["params"] = dict(request.url.params)
            return httpx.Response(200, json=[
                {"id": "m1", "session_id": "s1", "role": "user", "content": "hello",
                 "intent": "greeting", "confidence": 0.85, "sentiment": 0.5,
                 "created_at": "2024-05-01T10:00:00+00:00"}
            ])

        store = SupabaseStore(supabase_settings(), transport=httpx.MockTransport(handler))
        await store.initialize()
        messages = await store.list_messages("s1", limit=10)
        await store.cleanup()

        assert seen["params"]["session_id"] == "eq.s1"
        assert seen["params"]["order"] == "created_at.asc"
        assert seen["params"]["limit"] == "10"
        assert messages[0].id == "m1"
        assert messages[0].intent == "greeting"

    async def test_summary(self):
        def handler(request):
            table = request.url.path.rsplit("/", 1)[-1]
            if table == "messages":
                return httpx.Response(200, json=[
                    {"session_id": "a", "confidence": 1.0, "sentiment": 0.5},
                    {"session_id": "b", "confidence": 0.5, "sentiment": 0.5},
                ])
            if table == "handoffs":
                return httpx.Response(200, json=[{"id": "h1"}])
            assert request.url.params["metric_name"] == "eq.response_time"
            return httpx.Response(200, json=[{"metric_value": 2.0}, {"metric_value": 4.0}])

        store = SupabaseStore(supabase_settings(), transport=httpx.MockTransport(handler))
        await store.initialize()
        summary = await store.summary()
        await store.cleanup()

        assert summary.to_dict() == {
            "totalConversations": 2,
            "totalMessages": 2,
            "avgConfidence": 0.75,
            "avgSentiment": 0.5,
            "handoffRate": 0.5,
            "responseTime": 3
        }

    async def test_upload_audio(self):
        seen = {}

        def handler(request):
            seen["path"] = request.url.path
            seen["headers"] = request.headers
            return httpx.Response(200, json={"Key": "audio-recordings/a.mp3"})

        store = SupabaseStore(supabase_settings(), transport=httpx.MockTransport(handler))
        await store.initialize()
        url = await store.upload_audio("a.mp3", b"ID3", "audio/mpeg")
        await store.cleanup()

        assert seen["path"] == "/storage/v1/object/audio-recordings/a.mp3"
        assert seen["headers"]["content-type"] == "audio/mpeg"
        assert url == "https://project.supabase.co/storage/v1/object/public/audio-recordings/a.mp3"


class TestBestEffort:
    """At-most-once writes never raise."""

    async def test_success(self):
        async def write():
            return None

        assert await best_effort("write", write()) is True

    async def test_failure_is_swallowed(self, caplog):
        async def write():
            raise StorageWriteException("messages", "down")

        assert await best_effort("store user message", write()) is False
        assert "Failed to store user message" in caplog.text
