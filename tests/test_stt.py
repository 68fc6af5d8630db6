"""Tests for ephemeral Deepgram credentials."""

import json

import httpx
import pytest

from echo_agent.core.exceptions import (
    CredentialProvisioningException,
    ProviderConfigurationException
)
from echo_agent.services.stt import DeepgramCredentialService

MASTER_KEY = "dg-master-secret"


def deepgram_handler(calls, key_payload=None, projects_payload=None, fail_projects=0):
    """Fake Deepgram management API."""
    state = {"project_failures": fail_projects}

    def handler(request):
        calls.append(request)
        if request.url.path.endswith("/projects"):
            if state["project_failures"]:
                state["project_failures"] -= 1
                return httpx.Response(503, text="unavailable")
            return httpx.Response(200, json=projects_payload or {"projects": [{"project_id": "proj-1"}]})
        if request.url.path.endswith("/projects/proj-1/keys"):
            return httpx.Response(200, json=key_payload or {
                "key": "temp-key-123",
                "expires_at": "2024-05-01T10:01:00Z"
            })
        return httpx.Response(404)

    return handler


@pytest.fixture
def deepgram_settings(settings):
    return settings.model_copy(update={"DEEPGRAM_API_KEY": MASTER_KEY})


class TestCreateCredentials:
    """Temporary key issuance."""

    async def test_issues_temporary_key(self, deepgram_settings):
        calls = []
        service = DeepgramCredentialService(deepgram_settings, transport=httpx.MockTransport(deepgram_handler(calls)))

        credentials = await service.create_credentials()
        await service.cleanup()

        assert credentials.token == "temp-key-123"
        assert credentials.expires_at == "2024-05-01T10:01:00Z"
        assert credentials.ws_url.startswith("wss://api.deepgram.com/v1/listen?")
        for option in ("model=nova-2", "punctuate=true", "smart_format=true", "interim_results=true",
                       "encoding=linear16", "sample_rate=16000", "channels=1"):
            assert option in credentials.ws_url

        key_request = calls[1]
        assert key_request.headers["Authorization"] == f"Token {MASTER_KEY}"
        body = json.loads(key_request.content)
        assert body["type"] == "temporary"
        assert body["ttl"] == 60
        assert body["scopes"] == ["usage:write"]

    async def test_master_key_is_never_returned(self, deepgram_settings):
        service = DeepgramCredentialService(deepgram_settings, transport=httpx.MockTransport(deepgram_handler([])))
        credentials = await service.create_credentials()
        await service.cleanup()

        assert MASTER_KEY not in json.dumps(credentials.to_dict())
        assert credentials.to_dict()["success"] is True

    async def test_alternate_payload_shapes(self, deepgram_settings):
        handler = deepgram_handler(
            [],
            projects_payload={"projects": [{"id": "proj-1"}]},
            key_payload={"api_key": {"key": "nested-key"}, "expiration": "soon"}
        )
        service = DeepgramCredentialService(deepgram_settings, transport=httpx.MockTransport(handler))
        credentials = await service.create_credentials()
        await service.cleanup()

        assert credentials.token == "nested-key"
        assert credentials.expires_at == "soon"

    async def test_missing_master_key(self, settings):
        service = DeepgramCredentialService(settings)
        with pytest.raises(ProviderConfigurationException) as exc_info:
            await service.create_credentials()
        assert exc_info.value.message == "DEEPGRAM_API_KEY environment variable not configured"

    async def test_missing_project_id(self, deepgram_settings):
        handler = deepgram_handler([], projects_payload={"projects": []})
        service = DeepgramCredentialService(deepgram_settings, transport=httpx.MockTransport(handler))
        with pytest.raises(CredentialProvisioningException) as exc_info:
            await service.create_credentials()
        await service.cleanup()
        assert exc_info.value.message == "Deepgram project metadata missing project_id"

    async def test_key_without_secret(self, deepgram_settings):
        handler = deepgram_handler([], key_payload={"comment": "no key here"})
        service = DeepgramCredentialService(deepgram_settings, transport=httpx.MockTransport(handler))
        with pytest.raises(CredentialProvisioningException) as exc_info:
            await service.create_credentials()
        await service.cleanup()
        assert exc_info.value.message == "Deepgram token generation returned no key"

    @pytest.mark.parametrize("html_path, message", [
        ("/projects", "Invalid Deepgram project metadata"),
        ("/keys", "Invalid Deepgram token response"),
    ])
    async def test_non_json_reply(self, deepgram_settings, html_path, message):
        fallback = deepgram_handler([])

        def handler(request):
            if request.url.path.endswith(html_path):
                return httpx.Response(200, text="<html>gateway</html>", headers={"Content-Type": "text/html"})
            return fallback(request)

        service = DeepgramCredentialService(deepgram_settings, transport=httpx.MockTransport(handler))
        with pytest.raises(CredentialProvisioningException) as exc_info:
            await service.create_credentials()
        await service.cleanup()

        assert exc_info.value.message == message
        assert exc_info.value.details == {"details": "<html>gateway</html>"}


class TestRetries:
    """Server errors are retried a bounded number of times."""

    async def test_recovers_after_server_errors(self, deepgram_settings):
        calls = []
        service = DeepgramCredentialService(
            deepgram_settings,
            transport=httpx.MockTransport(deepgram_handler(calls, fail_projects=2))
        )
        credentials = await service.create_credentials()
        await service.cleanup()

        assert credentials.token == "temp-key-123"
        assert len(calls) == 4

    async def test_gives_up_after_max_retries(self, deepgram_settings):
        calls = []
        service = DeepgramCredentialService(
            deepgram_settings,
            transport=httpx.MockTransport(deepgram_handler(calls, fail_projects=10))
        )
        with pytest.raises(CredentialProvisioningException):
            await service.create_credentials()
        await service.cleanup()

        assert len(calls) == deepgram_settings.PROVIDER_MAX_RETRIES + 1

    async def test_client_errors_are_not_retried(self, deepgram_settings):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(401, text="invalid credentials")

        service = DeepgramCredentialService(deepgram_settings, transport=httpx.MockTransport(handler))
        with pytest.raises(CredentialProvisioningException) as exc_info:
            await service.create_credentials()
        await service.cleanup()

        assert len(calls) == 1
        assert exc_info.value.message == "Failed to fetch Deepgram project metadata"
        assert exc_info.value.details == {"details": "invalid credentials"}
