"""
Configuration management for the Echo Voice Agent.
Loads settings from environment variables with sensible defaults.
"""

from pathlib import Path
from typing import Optional, List
from pydantic_settings import BaseSettings
from pydantic import Field
from functools import lru_cache


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # =========================
    # Application Settings
    # =========================
    APP_NAME: str = "Echo Voice Agent"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = Field(default=False, description="Enable debug mode")
    ENVIRONMENT: str = Field(default="development", description="Environment name")

    # =========================
    # Server Settings
    # =========================
    HOST: str = Field(default="0.0.0.0", description="Server host")
    PORT: int = Field(default=8000, description="Server port")
    CORS_ORIGINS: List[str] = Field(default=["*"], description="Allowed CORS origins")

    # =========================
    # Storage Settings
    # =========================
    STORAGE_BACKEND: str = Field(
        default="auto",
        description="Conversation store: 'supabase', 'sql' or 'auto'"
    )
    SUPABASE_URL: Optional[str] = Field(default=None, description="Supabase project URL")
    SUPABASE_SERVICE_ROLE_KEY: Optional[str] = Field(
        default=None,
        description="Supabase service role key (server side only)"
    )
    AUDIO_BUCKET: str = Field(default="audio-recordings", description="Storage bucket for TTS audio")
    DATABASE_URL: str = Field(
        default="sqlite+aiosqlite:///./data/echo_agent.db",
        description="Database connection URL for the SQL backend"
    )
    DATABASE_ECHO: bool = Field(default=False, description="Echo SQL queries")
    AUDIO_DIR: Path = Field(
        default=Path("./data/audio"),
        description="Local directory for synthesized audio (SQL backend)"
    )
    STORAGE_TIMEOUT_SECONDS: float = Field(default=5.0, description="Datastore request timeout")

    # =========================
    # Speech-to-Text (Deepgram)
    # =========================
    DEEPGRAM_API_KEY: Optional[str] = Field(default=None, description="Deepgram master API key")
    DEEPGRAM_API_URL: str = Field(default="https://api.deepgram.com/v1", description="Deepgram REST base URL")
    DEEPGRAM_LISTEN_URL: str = Field(
        default="wss://api.deepgram.com/v1/listen",
        description="Deepgram streaming endpoint"
    )
    DEEPGRAM_MODEL: str = Field(default="nova-2", description="Deepgram recognition model")
    DEEPGRAM_TOKEN_TTL_SECONDS: int = Field(default=60, description="Ephemeral key lifetime")

    # =========================
    # Text-to-Speech (Azure)
    # =========================
    AZURE_SPEECH_KEY: Optional[str] = Field(default=None, description="Azure speech subscription key")
    AZURE_SPEECH_REGION: str = Field(default="eastus", description="Azure speech region")
    AZURE_OUTPUT_FORMAT: str = Field(
        default="audio-24khz-48kbitrate-mono-mp3",
        description="Azure TTS output format"
    )
    DEFAULT_VOICE: str = Field(default="en-US-AriaNeural", description="Default synthesis voice")
    SPEECH_RATE: str = Field(default="0.9", description="SSML prosody rate")

    # =========================
    # Provider Settings
    # =========================
    PROVIDER_TIMEOUT_SECONDS: float = Field(default=10.0, description="Third-party API timeout")
    PROVIDER_MAX_RETRIES: int = Field(default=3, description="Retries after the first attempt")
    PROVIDER_RETRY_DELAY_SECONDS: float = Field(
        default=1.0,
        description="Linear backoff step between retries"
    )

    # =========================
    # Audio Capture Settings
    # =========================
    AUDIO_SAMPLE_RATE: int = Field(default=16000, description="Audio sample rate in Hz")
    AUDIO_CHANNELS: int = Field(default=1, description="Number of audio channels")
    AUDIO_FRAME_SIZE: int = Field(default=4096, description="Samples per captured frame")
    CAPTURE_DRAIN_SECONDS: float = Field(
        default=3.0,
        description="Time to wait for final transcripts after CloseStream"
    )
    ALLOW_INSECURE_STREAM: bool = Field(
        default=False,
        description="Allow sending credentials over ws:// (local testing only)"
    )

    # =========================
    # Logging Settings
    # =========================
    LOG_LEVEL: str = Field(default="INFO", description="Logging level")
    AGENT_LOG_PATH: Path = Field(
        default=Path("./logs/agent_log.md"),
        description="Path to agent markdown log"
    )

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True
        extra = "ignore"

    @property
    def supabase_configured(self) -> bool:
        return bool(self.SUPABASE_URL and self.SUPABASE_SERVICE_ROLE_KEY)

    @property
    def storage_backend(self) -> str:
        """Resolve the 'auto' backend to a concrete one."""
        if self.STORAGE_BACKEND != "auto":
            return self.STORAGE_BACKEND
        return "supabase" if self.supabase_configured else "sql"


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# Closed set of intents the analyzer may emit
INTENTS = [
    "greeting",
    "help",
    "refund",
    "billing",
    "account",
    "technical",
    "feedback",
    "farewell",
    "general_inquiry"
]

# Intent marker stored on assistant rows
ASSISTANT_INTENT = "response"

# Fixed scores stored on assistant rows
ASSISTANT_CONFIDENCE = 1.0
ASSISTANT_SENTIMENT = 0.5

# Persisted tables
MESSAGES_TABLE = "messages"
ANALYTICS_TABLE = "analytics"
HANDOFFS_TABLE = "handoffs"
