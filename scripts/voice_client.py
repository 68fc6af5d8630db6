"""
Voice Client.
Streams an audio file to the recognizer through the relay's credentials, sends
the final transcript as a conversation turn and saves the spoken reply.

Usage:
    python scripts/voice_client.py question.wav [http://localhost:8000]
"""

import asyncio
import sys
import uuid
from pathlib import Path

import httpx

# Add parent to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from echo_agent.config import get_settings
from echo_agent.core.exceptions import EchoAgentException
from echo_agent.services.capture import (
    CaptureSession,
    FileAudioSource,
    RelayCredentialProvider,
    TranscriptEvent
)


def print_transcript(event: TranscriptEvent):
    marker = "✅" if event.is_final else "…"
    print(f"   {marker} {event.text}")


async def main(audio_path: str, base_url: str):
    settings = get_settings()
    session_id = f"session-{uuid.uuid4()}"

    print("=" * 60)
    print("🎙️  Echo Voice Client")
    print("=" * 60)
    print(f"Relay: {base_url}")
    print(f"Audio: {audio_path}")

    source = FileAudioSource(
        audio_path,
        sample_rate=settings.AUDIO_SAMPLE_RATE,
        frame_size=settings.AUDIO_FRAME_SIZE
    )

    try:
        capture = await CaptureSession.open(
            source,
            RelayCredentialProvider(base_url, settings),
            settings,
            on_transcript=print_transcript
        )
        print("\n🎧 Listening...")
        transcript = await capture.stream()
    except EchoAgentException as e:
        print(f"\n❌ {e.message}")
        return

    if not transcript:
        print("\n🤷 Nothing was recognized")
        return

    async with httpx.AsyncClient(base_url=base_url, timeout=30.0) as client:
        response = await client.post(
            "/api/v1/conversation/message",
            json={"message": transcript, "sessionId": session_id, "conversationHistory": []}
        )
        response.raise_for_status()
        data = response.json()["data"]

        print(f"\n📤 User: {transcript}")
        print(f"🤖 Agent: {data['response']}")
        print(f"🏷️  {data['intent']} (sentiment {data['sentiment']})")
        if data["handoffNeeded"]:
            print("🙋 A human agent has been requested")

        response = await client.post(
            "/api/v1/voice/tts",
            json={"text": data["response"], "conversationId": session_id}
        )
        if response.headers.get("content-type", "").startswith("audio/"):
            out_path = Path(f"{session_id}.mp3")
            out_path.write_bytes(response.content)
            print(f"🔊 Reply audio saved to {out_path}")
        else:
            print("🗣️  No provider audio, speak the reply with a local synthesizer")


if __name__ == "__main__":
    if len(sys.argv) < 2:
        print(__doc__)
        sys.exit(1)

    asyncio.run(main(sys.argv[1], sys.argv[2] if len(sys.argv) > 2 else "http://localhost:8000"))
