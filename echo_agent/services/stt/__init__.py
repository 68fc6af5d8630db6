"""
Speech-to-Text credential service for Deepgram.
Issues short-lived keys so the master API key never reaches the capture client.
"""

import logging
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional
from urllib.parse import urlencode

import httpx

from echo_agent.config import Settings, get_settings
from echo_agent.core.exceptions import (
    CredentialProvisioningException,
    ProviderConfigurationException,
    ProviderUnavailableException
)
from echo_agent.core.retry import provider_retrying

logger = logging.getLogger(__name__)

PROVIDER = "Deepgram"
KEY_COMMENT = "Echo browser session"
KEY_SCOPES = ["usage:write"]


@dataclass
class StreamCredentials:
    """Ephemeral credential for one listening session."""
    ws_url: str
    token: str
    expires_at: Optional[str] = None
    processing_time_ms: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "wsUrl": self.ws_url,
            "token": self.token,
            "expiresAt": self.expires_at,
            "success": True
        }


def _json_payload(response: httpx.Response, message: str) -> Any:
    """Decode a provider reply, treating a non-JSON body as a provisioning failure."""
    try:
        return response.json()
    except ValueError:
        logger.error(f"{message}: non-JSON response body")
        raise CredentialProvisioningException(message, details=response.text)


def _first(payload: Dict[str, Any], *paths: str) -> Optional[Any]:
    """Return the first non-empty value among dotted paths."""
    for path in paths:
        value: Any = payload
        for part in path.split("."):
            # Lists are read through their first element
            if isinstance(value, list):
                value = value[0] if value else None
            value = value.get(part) if isinstance(value, dict) else None
            if value is None:
                break
        if value is not None and not isinstance(value, (dict, list)):
            return value
    return None


class DeepgramCredentialService:
    """
    Issues Deepgram streaming credentials.

    Flow:
    1. Look up the project owning the master key
    2. Create a temporary key scoped to streaming usage
    3. Return the listen URL and the temporary key
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.settings = settings or get_settings()
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None
        self._is_initialized = False

    async def initialize(self):
        """Create the HTTP client."""
        self._client = httpx.AsyncClient(
            base_url=self.settings.DEEPGRAM_API_URL.rstrip("/"),
            timeout=self.settings.PROVIDER_TIMEOUT_SECONDS,
            transport=self._transport
        )
        self._is_initialized = True

        if not self.settings.DEEPGRAM_API_KEY:
            logger.warning("DEEPGRAM_API_KEY not set, stream credentials are unavailable")
        else:
            logger.info("Deepgram credential service initialized")

    @property
    def is_configured(self) -> bool:
        return bool(self.settings.DEEPGRAM_API_KEY)

    def build_listen_url(self) -> str:
        """Streaming endpoint with the recognition options used by the capture client."""
        params = {
            "model": self.settings.DEEPGRAM_MODEL,
            "punctuate": "true",
            "smart_format": "true",
            "interim_results": "true",
            "encoding": "linear16",
            "sample_rate": str(self.settings.AUDIO_SAMPLE_RATE),
            "channels": str(self.settings.AUDIO_CHANNELS)
        }
        return f"{self.settings.DEEPGRAM_LISTEN_URL}?{urlencode(params)}"

    async def _request(self, method: str, url: str, **kwargs) -> httpx.Response:
        """Send a request, retrying transport errors and 5xx answers."""
        headers = {"Authorization": f"Token {self.settings.DEEPGRAM_API_KEY}"}

        async for attempt in provider_retrying(self.settings):
            with attempt:
                response = await self._client.request(method, url, headers=headers, **kwargs)
                if response.status_code >= 500:
                    raise ProviderUnavailableException(PROVIDER, response.status_code, response.text)
        return response

    async def _project_id(self) -> str:
        response = await self._request("GET", "/projects")
        if response.is_error:
            logger.error(f"Deepgram project lookup failed: {response.status_code} {response.text}")
            raise CredentialProvisioningException(
                "Failed to fetch Deepgram project metadata",
                details=response.text
            )

        payload = _json_payload(response, "Invalid Deepgram project metadata")
        project_id = _first(
            payload,
            "projects.project_id",
            "projects.id",
            "project_id",
            "id"
        )
        if not project_id:
            logger.error(f"Unable to determine Deepgram project ID from response: {payload}")
            raise CredentialProvisioningException(
                "Deepgram project metadata missing project_id",
                details=str(payload)
            )
        return str(project_id)

    async def create_credentials(self) -> StreamCredentials:
        """
        Create an ephemeral streaming credential.

        Raises:
            ProviderConfigurationException: master key not configured
            CredentialProvisioningException: Deepgram refused or returned no key
        """
        if not self.is_configured:
            raise ProviderConfigurationException("DEEPGRAM_API_KEY")
        if not self._is_initialized:
            await self.initialize()

        start_time = time.time()

        try:
            project_id = await self._project_id()

            response = await self._request(
                "POST",
                f"/projects/{project_id}/keys",
                json={
                    "comment": KEY_COMMENT,
                    "type": "temporary",
                    "ttl": self.settings.DEEPGRAM_TOKEN_TTL_SECONDS,
                    "scopes": KEY_SCOPES
                }
            )
        except (httpx.HTTPError, ProviderUnavailableException) as e:
            logger.error(f"Deepgram request failed after retries: {e}")
            raise CredentialProvisioningException(f"Deepgram request failed: {e}")

        if response.is_error:
            logger.error(f"Deepgram token request failed: {response.status_code} {response.text}")
            raise CredentialProvisioningException(
                "Failed to generate Deepgram token",
                details=response.text
            )

        payload = _json_payload(response, "Invalid Deepgram token response")
        token = _first(payload, "key", "api_key", "api_key.key", "secret")
        expires_at = _first(payload, "expires_at", "expiresAt", "expiration")

        if not token:
            logger.error("Deepgram response missing ephemeral key")
            raise CredentialProvisioningException("Deepgram token generation returned no key")

        return StreamCredentials(
            ws_url=self.build_listen_url(),
            token=str(token),
            expires_at=str(expires_at) if expires_at is not None else None,
            processing_time_ms=(time.time() - start_time) * 1000
        )

    async def cleanup(self):
        """Cleanup resources."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

        self._is_initialized = False
        logger.info("Deepgram credential service cleaned up")
