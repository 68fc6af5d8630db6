"""
Echo Voice Customer Support Agent
=================================
Relay backend for a voice support assistant.

Features:
- Rule-based intent and sentiment classification
- Templated replies with context-aware suggestions
- Human handoff detection
- Ephemeral speech-recognition credentials and neural speech synthesis

Tech Stack:
- FastAPI (async backend)
- Deepgram (STT)
- Azure Cognitive Services (TTS)
- Supabase or SQLite (conversation store)
"""

__version__ = "1.0.0"
