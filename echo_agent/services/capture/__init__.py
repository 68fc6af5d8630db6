"""
Audio Capture Client.
Streams fixed-size audio frames to Deepgram over a WebSocket using an
ephemeral credential issued by the relay.

A CaptureSession owns its audio source and socket and moves through
open → streaming → closed. Frames produced while the socket is not open
are dropped; nothing is buffered.
"""

import asyncio
import json
import logging
import os
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import AsyncIterator, Awaitable, Callable, List, Optional, Union

import httpx
import numpy as np
import soundfile as sf
from websockets.asyncio.client import connect as ws_connect
from websockets.exceptions import ConnectionClosed, InvalidHandshake
from websockets.protocol import State

from echo_agent.config import Settings, get_settings
from echo_agent.core.exceptions import (
    CaptureException,
    CaptureStateException,
    CredentialProvisioningException,
    InsecureContextException,
    MicrophonePermissionException,
    NoAudioInputException,
    ProviderUnavailableException
)
from echo_agent.core.retry import provider_retrying
from echo_agent.services.stt import StreamCredentials

logger = logging.getLogger(__name__)

CLOSE_STREAM_MESSAGE = json.dumps({"type": "CloseStream"})

# Failures worth another connection attempt
CONNECT_ERRORS = (
    httpx.HTTPError,
    ProviderUnavailableException,
    CredentialProvisioningException,
    InvalidHandshake,
    OSError,
    asyncio.TimeoutError
)


class CaptureState(str, Enum):
    OPEN = "open"
    STREAMING = "streaming"
    CLOSED = "closed"


@dataclass
class TranscriptEvent:
    """Transcript update received from the recognizer."""
    text: str
    is_final: bool = False
    confidence: Optional[float] = None


# =========================
# Audio helpers
# =========================

def float_to_pcm16(frame: np.ndarray) -> bytes:
    """Convert float samples in [-1, 1] to little-endian 16-bit PCM."""
    samples = np.clip(np.asarray(frame, dtype=np.float32), -1.0, 1.0)
    scaled = np.where(samples < 0, samples * 0x8000, samples * 0x7FFF)
    return scaled.astype("<i2").tobytes()


def resample(samples: np.ndarray, from_rate: int, to_rate: int) -> np.ndarray:
    """Linear resampling, good enough for speech recognition input."""
    if from_rate == to_rate or len(samples) == 0:
        return samples.astype(np.float32)

    duration = len(samples) / from_rate
    target_length = int(round(duration * to_rate))
    old_times = np.linspace(0.0, duration, num=len(samples), endpoint=False)
    new_times = np.linspace(0.0, duration, num=target_length, endpoint=False)
    return np.interp(new_times, old_times, samples).astype(np.float32)


def parse_transcript_event(raw: Union[str, bytes]) -> Optional[TranscriptEvent]:
    """Extract the top transcript from a Deepgram result message."""
    try:
        data = json.loads(raw)
    except (TypeError, ValueError):
        logger.debug("Ignoring non-JSON recognizer message")
        return None

    if not isinstance(data, dict):
        return None

    channel = data.get("channel")
    alternatives = channel.get("alternatives") if isinstance(channel, dict) else None
    if not isinstance(alternatives, list) or not alternatives:
        return None

    best = alternatives[0]
    if not isinstance(best, dict) or not isinstance(best.get("transcript"), str):
        return None

    text = best["transcript"].strip()
    if not text:
        return None

    return TranscriptEvent(
        text=text,
        is_final=bool(data.get("is_final", False)),
        confidence=best.get("confidence")
    )


# =========================
# Audio sources
# =========================

class AudioSource:
    """Produces float32 mono frames at the configured sample rate."""

    async def open(self):
        """Acquire the underlying device or file."""

    def frames(self) -> AsyncIterator[np.ndarray]:
        raise NotImplementedError

    async def close(self):
        """Release the underlying device or file."""


class ArrayAudioSource(AudioSource):
    """
    Serves frames from an in-memory buffer.

    With realtime=True frames are paced at the rate a microphone would
    produce them.
    """

    def __init__(
        self,
        samples: Optional[np.ndarray] = None,
        sample_rate: int = 16000,
        frame_size: int = 4096,
        realtime: bool = False
    ):
        self.samples = np.zeros(0, dtype=np.float32) if samples is None else np.asarray(samples, dtype=np.float32)
        self.sample_rate = sample_rate
        self.frame_size = frame_size
        self.realtime = realtime
        self._closed = False

    @property
    def frame_interval(self) -> float:
        return self.frame_size / self.sample_rate

    async def frames(self) -> AsyncIterator[np.ndarray]:
        for start in range(0, len(self.samples), self.frame_size):
            if self._closed:
                break
            yield self.samples[start:start + self.frame_size]
            await asyncio.sleep(self.frame_interval if self.realtime else 0)

    async def close(self):
        self._closed = True


class FileAudioSource(ArrayAudioSource):
    """Plays back an audio file as if it were captured live."""

    def __init__(
        self,
        path: Union[str, Path],
        sample_rate: int = 16000,
        frame_size: int = 4096,
        realtime: bool = True
    ):
        super().__init__(None, sample_rate=sample_rate, frame_size=frame_size, realtime=realtime)
        self.path = Path(path)

    async def open(self):
        if not self.path.exists():
            raise NoAudioInputException(str(self.path))
        if not os.access(self.path, os.R_OK):
            raise MicrophonePermissionException(str(self.path))

        try:
            data, file_rate = sf.read(str(self.path), dtype="float32", always_2d=True)
        except RuntimeError as e:
            raise CaptureException(
                f"Could not read audio from {self.path.name}",
                details={"source": str(self.path), "error": str(e)}
            )

        # Mix down to mono
        mono = data.mean(axis=1)
        self.samples = resample(mono, file_rate, self.sample_rate)
        logger.info(f"Opened audio source {self.path} ({len(self.samples) / self.sample_rate:.1f}s)")


# =========================
# Transport
# =========================

class StreamSocket:
    """Bidirectional socket to the recognizer."""

    @property
    def is_open(self) -> bool:
        raise NotImplementedError

    async def send(self, data: Union[bytes, str]) -> bool:
        raise NotImplementedError

    def messages(self) -> AsyncIterator[Union[str, bytes]]:
        raise NotImplementedError

    async def close(self):
        raise NotImplementedError


class WebSocketStream(StreamSocket):
    """StreamSocket over a websockets client connection."""

    def __init__(self, connection):
        self._connection = connection

    @property
    def is_open(self) -> bool:
        return self._connection.state is State.OPEN

    async def send(self, data: Union[bytes, str]) -> bool:
        try:
            await self._connection.send(data)
            return True
        except ConnectionClosed:
            return False

    async def messages(self) -> AsyncIterator[Union[str, bytes]]:
        try:
            async for message in self._connection:
                yield message
        except ConnectionClosed as e:
            logger.info(f"Recognizer socket closed: {e}")

    async def close(self):
        await self._connection.close()


async def connect_websocket(credentials: StreamCredentials) -> StreamSocket:
    """Open the recognizer socket, authenticating with the token subprotocol."""
    connection = await ws_connect(credentials.ws_url, subprotocols=["token", credentials.token])
    return WebSocketStream(connection)


CredentialProvider = Callable[[], Awaitable[StreamCredentials]]
Connector = Callable[[StreamCredentials], Awaitable[StreamSocket]]
TranscriptCallback = Callable[[TranscriptEvent], Optional[Awaitable[None]]]


class RelayCredentialProvider:
    """Fetches stream credentials from the relay's credential endpoint."""

    def __init__(
        self,
        base_url: str,
        settings: Optional[Settings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        path: str = "/api/v1/voice/stream-url"
    ):
        self.base_url = base_url.rstrip("/")
        self.settings = settings or get_settings()
        self.path = path
        self._transport = transport

    async def __call__(self) -> StreamCredentials:
        async with httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.settings.PROVIDER_TIMEOUT_SECONDS,
            transport=self._transport
        ) as client:
            response = await client.post(self.path)

        if response.status_code >= 500:
            raise ProviderUnavailableException("Echo relay", response.status_code, response.text)

        try:
            data = response.json()
        except ValueError:
            raise CredentialProvisioningException(
                "Invalid credentials response from server",
                details=response.text
            )

        if not isinstance(data, dict):
            data = {}
        if not data.get("wsUrl") or not data.get("token"):
            raise CredentialProvisioningException(
                "No WebSocket credentials received from server",
                details=str(data.get("error")) if data.get("error") else None
            )

        return StreamCredentials(
            ws_url=data["wsUrl"],
            token=data["token"],
            expires_at=data.get("expiresAt")
        )


async def establish_stream(
    credential_provider: CredentialProvider,
    connector: Connector,
    settings: Settings
) -> StreamSocket:
    """
    Fetch a credential and connect, retrying with linear backoff.

    Refuses to send the credential over an unencrypted socket unless
    ALLOW_INSECURE_STREAM is set.
    """
    socket = None
    async for attempt in provider_retrying(settings, retry_on=CONNECT_ERRORS):
        with attempt:
            credentials = await credential_provider()
            if not credentials.ws_url.startswith("wss://") and not settings.ALLOW_INSECURE_STREAM:
                raise InsecureContextException(credentials.ws_url)
            socket = await asyncio.wait_for(
                connector(credentials),
                timeout=settings.PROVIDER_TIMEOUT_SECONDS
            )
    logger.info("Recognizer socket connected")
    return socket


class CaptureSession:
    """
    One listening session: an audio source streaming into a recognizer socket.

    Usage:
        session = await CaptureSession.open(source, provider)
        transcript = await session.stream()
    """

    def __init__(
        self,
        source: AudioSource,
        socket: StreamSocket,
        settings: Optional[Settings] = None,
        on_transcript: Optional[TranscriptCallback] = None
    ):
        self.source = source
        self.socket = socket
        self.settings = settings or get_settings()
        self.on_transcript = on_transcript

        self.state = CaptureState.OPEN
        self.frames_sent = 0
        self.frames_dropped = 0

        self._final_segments: List[str] = []
        self._stop_requested = asyncio.Event()
        self._receiver: Optional[asyncio.Task] = None

    @classmethod
    async def open(
        cls,
        source: AudioSource,
        credential_provider: CredentialProvider,
        settings: Optional[Settings] = None,
        connector: Connector = connect_websocket,
        on_transcript: Optional[TranscriptCallback] = None
    ) -> "CaptureSession":
        """Acquire the audio source and connect to the recognizer."""
        settings = settings or get_settings()

        await source.open()
        try:
            socket = await establish_stream(credential_provider, connector, settings)
        except BaseException:
            await source.close()
            raise

        session = cls(source, socket, settings, on_transcript)
        session._receiver = asyncio.create_task(session._receive_loop())
        return session

    @property
    def transcript(self) -> str:
        """Final transcript segments joined in arrival order."""
        return " ".join(self._final_segments)

    async def send_frame(self, frame: np.ndarray) -> bool:
        """Forward one frame if the socket is open, otherwise drop it."""
        if self.socket.is_open and await self.socket.send(float_to_pcm16(frame)):
            self.frames_sent += 1
            return True

        self.frames_dropped += 1
        return False

    async def stream(self) -> str:
        """
        Forward frames until the source is exhausted or stop() is called,
        then close the session.

        Returns:
            The final transcript
        """
        if self.state is not CaptureState.OPEN:
            raise CaptureStateException("stream", self.state.value)

        self.state = CaptureState.STREAMING
        try:
            async for frame in self.source.frames():
                if self._stop_requested.is_set():
                    break
                await self.send_frame(frame)
        finally:
            await self.close()

        if self.frames_dropped:
            logger.warning(f"Dropped {self.frames_dropped} frames while the socket was not open")
        return self.transcript

    def stop(self):
        """Ask a running stream() to finish after the current frame."""
        self._stop_requested.set()

    async def close(self):
        """Tear down the source, signal end of stream, drain results and close the socket."""
        if self.state is CaptureState.CLOSED:
            return
        self.state = CaptureState.CLOSED

        await self.source.close()

        if self.socket.is_open:
            await self.socket.send(CLOSE_STREAM_MESSAGE)

        try:
            if self._receiver is not None:
                await asyncio.wait_for(self._receiver, timeout=self.settings.CAPTURE_DRAIN_SECONDS)
        except asyncio.TimeoutError:
            logger.info("Recognizer did not finish before the drain timeout")
        except Exception as e:
            logger.error(f"Transcript receiver failed: {e}")
        finally:
            if self.socket.is_open:
                await self.socket.close()

        logger.info(f"Capture session closed ({self.frames_sent} frames sent)")

    async def _receive_loop(self):
        async for raw in self.socket.messages():
            event = parse_transcript_event(raw)
            if event is None:
                continue

            if event.is_final:
                self._final_segments.append(event.text)

            if self.on_transcript is not None:
                try:
                    result = self.on_transcript(event)
                    if asyncio.iscoroutine(result):
                        await result
                except Exception as e:
                    logger.error(f"Transcript callback failed: {e}")


__all__ = [
    "CaptureState",
    "CaptureSession",
    "TranscriptEvent",
    "AudioSource",
    "ArrayAudioSource",
    "FileAudioSource",
    "StreamSocket",
    "WebSocketStream",
    "RelayCredentialProvider",
    "connect_websocket",
    "establish_stream",
    "float_to_pcm16",
    "parse_transcript_event",
    "resample"
]
