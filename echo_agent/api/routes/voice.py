"""
Voice REST Endpoints.
Streaming credentials for speech recognition and speech synthesis of replies.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel, Field

from echo_agent.core.exceptions import EchoAgentException, InvalidRequestException
from echo_agent.services.tts import ClientTTSFallback

logger = logging.getLogger(__name__)

router = APIRouter()


class SpeechRequest(BaseModel):
    """Request model for speech synthesis."""
    text: Optional[str] = None
    conversation_id: Optional[str] = Field(default=None, alias="conversationId")
    voice_id: Optional[str] = Field(default=None, alias="voiceId")

    class Config:
        populate_by_name = True


@router.post("/stream-url")
async def stream_url(request: Request):
    """
    Issue an ephemeral Deepgram credential and the listen URL to use it with.
    The master API key is never part of the response.
    """
    stt_service = request.app.state.stt_service

    try:
        credentials = await stt_service.create_credentials()
    except EchoAgentException as e:
        logger.error(f"Error generating Deepgram WebSocket URL: {e.message}")
        content = {"error": e.message, "wsUrl": None, "success": False}
        if e.details.get("details"):
            content["details"] = e.details["details"]
        return JSONResponse(status_code=500, content=content)

    logger.info(f"Issued streaming credential in {credentials.processing_time_ms:.0f}ms")
    return credentials.to_dict()


@router.post("/tts")
async def text_to_speech(request: Request, speech: SpeechRequest):
    """
    Synthesize a reply.

    Returns MP3 audio with an `X-Audio-URL` header, or a JSON payload telling
    the client to use its own synthesizer when the provider is unavailable.
    """
    if not speech.text:
        raise InvalidRequestException("Text is required")

    tts_service = request.app.state.tts_service
    result = await tts_service.speak(speech.text, speech.conversation_id, speech.voice_id)

    if isinstance(result, ClientTTSFallback):
        return result.to_dict()

    return Response(
        content=result.audio_data,
        media_type=result.content_type,
        headers={
            "X-Audio-URL": result.audio_url or "",
            "Cache-Control": "no-cache"
        }
    )
