"""
Turn Pipeline for the Echo Voice Agent.
Coordinates Analyzer → Response Selector → Handoff rule, then records the turn.
"""

import asyncio
import time
from dataclasses import dataclass, field
from typing import Optional, Dict, Any, List, Sequence
import logging

from echo_agent.config import ASSISTANT_INTENT, ASSISTANT_CONFIDENCE, ASSISTANT_SENTIMENT
from echo_agent.core.analyzer import analyze_message, MessageAnalysis
from echo_agent.core.exceptions import InvalidRequestException
from echo_agent.core.handoff import should_handoff, handoff_reason, handoff_triggers
from echo_agent.core.models import Message, Handoff, build_metrics
from echo_agent.core.responder import generate_response, AgentReply
from echo_agent.logging.agent_logger import AgentLogger
from echo_agent.services.storage import ConversationStore, best_effort

logger = logging.getLogger(__name__)


@dataclass
class TurnMetrics:
    """Timing for a single turn."""
    start_time: float = field(default_factory=time.time)
    analysis_end: Optional[float] = None
    persist_start: Optional[float] = None
    persist_end: Optional[float] = None

    @property
    def analysis_latency_ms(self) -> Optional[float]:
        if self.analysis_end:
            return (self.analysis_end - self.start_time) * 1000
        return None

    @property
    def persist_latency_ms(self) -> Optional[float]:
        if self.persist_start and self.persist_end:
            return (self.persist_end - self.persist_start) * 1000
        return None

    @property
    def total_latency_ms(self) -> float:
        return (time.time() - self.start_time) * 1000

    def to_dict(self) -> Dict[str, Any]:
        return {
            "analysis_latency_ms": self.analysis_latency_ms,
            "persist_latency_ms": self.persist_latency_ms,
            "total_latency_ms": self.total_latency_ms
        }


@dataclass
class TurnResult:
    """Outcome of one conversation turn."""
    session_id: str
    response: str
    intent: str
    confidence: float
    sentiment: float
    handoff_needed: bool
    suggestions: List[str] = field(default_factory=list)
    context_summary: str = ""
    metrics: TurnMetrics = field(default_factory=TurnMetrics)
    writes_failed: int = 0

    def to_response(self) -> Dict[str, Any]:
        """Payload returned by the turn endpoint."""
        return {
            "response": self.response,
            "intent": self.intent,
            "confidence": self.confidence,
            "sentiment": self.sentiment,
            "handoffNeeded": self.handoff_needed,
            "suggestions": list(self.suggestions)
        }


class TurnPipeline:
    """
    Handles one turn: classify the message, pick a reply, decide on handoff,
    then record everything in the conversation store.

    Persistence is best-effort and at-most-once: each write is attempted once,
    concurrently with the others, and a failed write is logged without failing
    the turn.
    """

    def __init__(
        self,
        store: ConversationStore,
        agent_logger: Optional[AgentLogger] = None
    ):
        self.store = store
        self.agent_logger = agent_logger

    async def handle_turn(
        self,
        message: str,
        session_id: str,
        history: Sequence[Message] = ()
    ) -> TurnResult:
        """
        Produce the assistant reply for a user message.

        Args:
            message: User text (usually a final transcript)
            session_id: Client-generated session token
            history: Prior messages of the session as held by the client

        Returns:
            TurnResult with the reply and classification signals
        """
        if not message or not session_id:
            raise InvalidRequestException("Message and sessionId are required")

        self.store.ensure_configured()

        metrics = TurnMetrics()

        analysis = analyze_message(message, history)
        reply = generate_response(analysis, message, history)
        handoff_needed = should_handoff(analysis)
        metrics.analysis_end = time.time()

        logger.info(
            f"Turn {session_id}: intent={analysis.intent} confidence={analysis.confidence} "
            f"sentiment={analysis.sentiment} handoff={handoff_needed}"
        )

        metrics.persist_start = time.time()
        writes_failed = await self.record_turn(session_id, message, analysis, reply, handoff_needed, metrics)
        metrics.persist_end = time.time()
        logger.debug(f"Turn {session_id} timings: {metrics.to_dict()}")

        if self.agent_logger:
            await self.agent_logger.log_turn(
                session_id,
                message,
                reply.content,
                analysis.to_dict(),
                handoff_needed,
                metrics.total_latency_ms
            )

        return TurnResult(
            session_id=session_id,
            response=reply.content,
            intent=analysis.intent,
            confidence=analysis.confidence,
            sentiment=analysis.sentiment,
            handoff_needed=handoff_needed,
            suggestions=reply.suggestions,
            context_summary=reply.context_summary,
            metrics=metrics,
            writes_failed=writes_failed
        )

    async def record_turn(
        self,
        session_id: str,
        message: str,
        analysis: MessageAnalysis,
        reply: AgentReply,
        handoff_needed: bool,
        metrics: TurnMetrics
    ) -> int:
        """
        Issue the writes of a turn concurrently.

        Returns the number of writes that failed.
        """
        user_message = Message(
            role="user",
            content=message,
            intent=analysis.intent,
            confidence=analysis.confidence,
            sentiment=analysis.sentiment
        )
        assistant_message = Message(
            role="assistant",
            content=reply.content,
            intent=ASSISTANT_INTENT,
            confidence=ASSISTANT_CONFIDENCE,
            sentiment=ASSISTANT_SENTIMENT
        )
        analytics = build_metrics(session_id, {
            "response_time": metrics.analysis_latency_ms or 0.0,
            "intent_detected": analysis.intent,
            "confidence_score": analysis.confidence,
            "sentiment_score": analysis.sentiment
        })

        writes = [
            best_effort("store user message", self.store.insert_message(session_id, user_message)),
            best_effort("store assistant message", self.store.insert_message(session_id, assistant_message)),
            best_effort("store analytics", self.store.insert_analytics(analytics))
        ]

        if handoff_needed:
            handoff = Handoff(
                session_id=session_id,
                reason=handoff_reason(analysis),
                context_summary=reply.context_summary,
                sentiment_score=analysis.sentiment
            )
            writes.append(best_effort("create handoff", self.store.insert_handoff(handoff)))

            if self.agent_logger:
                await self.agent_logger.log_handoff(
                    session_id,
                    handoff.reason,
                    handoff_triggers(analysis),
                    handoff.context_summary
                )

        results = await asyncio.gather(*writes)
        failed = results.count(False)

        if failed:
            logger.warning(f"Turn {session_id}: {failed} of {len(results)} writes failed")
            if self.agent_logger:
                await self.agent_logger.log_error(
                    session_id,
                    "StorageWriteFailed",
                    f"{failed} of {len(results)} writes were not persisted"
                )

        return failed
