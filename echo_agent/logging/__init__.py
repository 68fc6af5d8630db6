"""Agent execution logging."""

from echo_agent.logging.agent_logger import AgentLogger

__all__ = ["AgentLogger"]
