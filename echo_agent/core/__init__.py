"""Core module initialization."""

from echo_agent.core.exceptions import (
    EchoAgentException,
    InvalidRequestException,
    TurnFailedException,
    CaptureException,
    ProviderException,
    StorageException
)
from echo_agent.core.analyzer import analyze_message, MessageAnalysis
from echo_agent.core.responder import generate_response, AgentReply
from echo_agent.core.handoff import should_handoff

__all__ = [
    "EchoAgentException",
    "InvalidRequestException",
    "TurnFailedException",
    "CaptureException",
    "ProviderException",
    "StorageException",
    "analyze_message",
    "MessageAnalysis",
    "generate_response",
    "AgentReply",
    "should_handoff"
]
