"""
Conversation REST Endpoints.
Text turn handling: classify the user message, reply and record the turn.
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Request
from pydantic import BaseModel, Field

from echo_agent.core.exceptions import InvalidRequestException, TurnFailedException
from echo_agent.core.models import Message

logger = logging.getLogger(__name__)

router = APIRouter()


class HistoryEntry(BaseModel):
    """A prior message as held by the client. Unknown fields are ignored."""
    role: Optional[str] = None
    content: Optional[str] = None
    intent: Optional[str] = None
    confidence: Optional[float] = None
    sentiment: Optional[float] = None


class TurnRequest(BaseModel):
    """Request model for a conversation turn."""
    message: Optional[str] = None
    session_id: Optional[str] = Field(default=None, alias="sessionId")
    conversation_history: List[HistoryEntry] = Field(default_factory=list, alias="conversationHistory")

    class Config:
        populate_by_name = True


@router.post("/message")
async def send_message(request: Request, turn: TurnRequest):
    """
    Send a user message and get the assistant reply.

    Returns `{data: {response, intent, confidence, sentiment, handoffNeeded, suggestions}}`.
    """
    pipeline = request.app.state.pipeline

    history = [
        Message.from_row(entry.model_dump())
        for entry in turn.conversation_history
    ]

    try:
        result = await pipeline.handle_turn(turn.message, turn.session_id, history)
    except InvalidRequestException:
        raise
    except Exception as e:
        message = getattr(e, "message", None) or str(e)
        logger.error(f"Chat response error: {message}")
        raise TurnFailedException(message)

    return {"data": result.to_response()}
