"""Services module initialization."""

from echo_agent.services.storage import ConversationStore, create_store
from echo_agent.services.stt import DeepgramCredentialService
from echo_agent.services.tts import TTSService

__all__ = [
    "ConversationStore",
    "create_store",
    "DeepgramCredentialService",
    "TTSService"
]
