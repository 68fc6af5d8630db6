"""
Analytics Endpoints.
Aggregates over stored conversations and per-session message history.
"""

from fastapi import APIRouter, Request, Query

router = APIRouter()


@router.get("/summary")
async def get_summary(request: Request):
    """Totals and averages over all stored messages, handoffs and response times."""
    store = request.app.state.store
    store.ensure_configured()

    summary = await store.summary()
    return summary.to_dict()


@router.get("/sessions/{session_id}/messages")
async def get_session_messages(
    request: Request,
    session_id: str,
    limit: int = Query(default=100, ge=1, le=1000)
):
    """Stored messages of a session, oldest first."""
    store = request.app.state.store
    store.ensure_configured()

    messages = await store.list_messages(session_id, limit)
    return {
        "session_id": session_id,
        "messages": [message.to_dict() for message in messages],
        "count": len(messages)
    }
