"""
Text-to-Speech Service using Azure Cognitive Services.
Falls back to on-device synthesis in the client whenever the provider fails.
"""

import logging
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional, Union
from xml.sax.saxutils import escape, quoteattr

import httpx

from echo_agent.config import (
    Settings,
    get_settings,
    ASSISTANT_INTENT,
    ASSISTANT_CONFIDENCE,
    ASSISTANT_SENTIMENT
)
from echo_agent.core.exceptions import (
    ProviderConfigurationException,
    ProviderUnavailableException,
    SpeechSynthesisException
)
from echo_agent.core.models import Message
from echo_agent.core.retry import provider_retrying
from echo_agent.services.storage import ConversationStore, best_effort

logger = logging.getLogger(__name__)

PROVIDER = "Azure TTS"
AUDIO_CONTENT_TYPE = "audio/mpeg"


@dataclass
class TTSResult:
    """Synthesized speech ready to be returned to the client."""
    audio_data: bytes
    content_type: str
    voice: str
    audio_url: Optional[str] = None
    processing_time_ms: Optional[float] = None


@dataclass
class ClientTTSFallback:
    """Instructs the client to speak the text with its own synthesizer."""
    text: str
    voice_id: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": True,
            "text": self.text,
            "useClientTTS": True,
            "voiceId": self.voice_id
        }


class TTSService:
    """
    Text-to-Speech service using Azure neural voices.

    Supports:
    - SSML synthesis with a configurable voice and speaking rate
    - Upload of the generated audio to the conversation store
    - Graceful fallback to client-side synthesis
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        store: Optional[ConversationStore] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.settings = settings or get_settings()
        self.store = store
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None
        self._is_initialized = False

    async def initialize(self):
        """Create the HTTP client."""
        self._client = httpx.AsyncClient(
            timeout=self.settings.PROVIDER_TIMEOUT_SECONDS,
            transport=self._transport
        )
        self._is_initialized = True

        if not self.is_configured:
            logger.warning("AZURE_SPEECH_KEY not set, replies will use client-side synthesis")
        else:
            logger.info(f"TTS service initialized (region: {self.settings.AZURE_SPEECH_REGION})")

    @property
    def is_configured(self) -> bool:
        return bool(self.settings.AZURE_SPEECH_KEY)

    @property
    def endpoint(self) -> str:
        return f"https://{self.settings.AZURE_SPEECH_REGION}.tts.speech.microsoft.com/cognitiveservices/v1"

    def build_ssml(self, text: str, voice: str) -> str:
        """Wrap text in SSML for the selected voice."""
        return (
            '<speak version="1.0" xmlns="http://www.w3.org/2001/10/synthesis" xml:lang="en-US">'
            f"<voice name={quoteattr(voice)}>"
            f'<prosody rate={quoteattr(self.settings.SPEECH_RATE)} pitch="0%">'
            f"{escape(text)}"
            "</prosody></voice></speak>"
        )

    async def synthesize(self, text: str, voice: Optional[str] = None) -> bytes:
        """
        Synthesize speech from text.

        Args:
            text: Text to synthesize
            voice: Azure voice name, defaults to DEFAULT_VOICE

        Returns:
            MP3 audio bytes
        """
        if not self.is_configured:
            raise ProviderConfigurationException("AZURE_SPEECH_KEY")
        if not self._is_initialized:
            await self.initialize()

        voice = voice or self.settings.DEFAULT_VOICE
        headers = {
            "Ocp-Apim-Subscription-Key": self.settings.AZURE_SPEECH_KEY,
            "Content-Type": "application/ssml+xml",
            "X-Microsoft-OutputFormat": self.settings.AZURE_OUTPUT_FORMAT
        }
        ssml = self.build_ssml(text, voice)

        try:
            async for attempt in provider_retrying(self.settings):
                with attempt:
                    response = await self._client.post(
                        self.endpoint,
                        content=ssml.encode("utf-8"),
                        headers=headers
                    )
                    if response.status_code >= 500:
                        raise ProviderUnavailableException(PROVIDER, response.status_code, response.text)
        except (httpx.HTTPError, ProviderUnavailableException) as e:
            raise SpeechSynthesisException(f"TTS request failed: {e}")

        if response.is_error:
            raise SpeechSynthesisException(
                f"TTS API error: {response.status_code}",
                details={"api_status_code": response.status_code, "body": response.text}
            )

        return response.content

    async def speak(
        self,
        text: str,
        conversation_id: Optional[str] = None,
        voice_id: Optional[str] = None
    ) -> Union[TTSResult, ClientTTSFallback]:
        """
        Produce the spoken reply for a message.

        Synthesis failures never surface: the caller gets a ClientTTSFallback
        instead. Upload and message storage are best-effort.
        """
        voice_id = voice_id or self.settings.DEFAULT_VOICE
        start_time = time.time()

        try:
            audio_data = await self.synthesize(text, voice_id)
        except (SpeechSynthesisException, ProviderConfigurationException) as e:
            logger.error(f"TTS generation error: {e.message}")
            return ClientTTSFallback(text=text, voice_id=voice_id)

        audio_url = None
        if self.store is not None:
            file_name = f"conversation_{conversation_id or 'anonymous'}_{int(time.time() * 1000)}.mp3"
            try:
                audio_url = await self.store.upload_audio(file_name, audio_data, AUDIO_CONTENT_TYPE)
            except Exception as e:
                logger.error(f"Error uploading audio: {e}")

            if conversation_id:
                await best_effort("store spoken reply", self.store.insert_message(
                    conversation_id,
                    Message(
                        role="assistant",
                        content=text,
                        intent=ASSISTANT_INTENT,
                        confidence=ASSISTANT_CONFIDENCE,
                        sentiment=ASSISTANT_SENTIMENT,
                        audio_url=audio_url
                    )
                ))

        return TTSResult(
            audio_data=audio_data,
            content_type=AUDIO_CONTENT_TYPE,
            voice=voice_id,
            audio_url=audio_url,
            processing_time_ms=(time.time() - start_time) * 1000
        )

    async def cleanup(self):
        """Cleanup resources."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

        self._is_initialized = False
        logger.info("TTS service cleaned up")
