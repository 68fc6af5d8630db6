"""
Core exceptions for the Echo Voice Agent.
Custom exception classes for structured error handling.
"""

from typing import Optional, Dict, Any


class EchoAgentException(Exception):
    """Base exception for Echo Voice Agent errors."""

    def __init__(
        self,
        message: str,
        error_code: str = "ECHO_AGENT_ERROR",
        status_code: int = 500,
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)


# =========================
# Request Exceptions
# =========================

class InvalidRequestException(EchoAgentException):
    """Raised when a request body is missing required fields."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            error_code="INVALID_REQUEST",
            status_code=400,
            details=details
        )


class TurnFailedException(EchoAgentException):
    """Raised when a conversation turn cannot be produced."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            error_code="CHAT_RESPONSE_FAILED",
            status_code=500,
            details=details
        )


# =========================
# Capture Exceptions
# =========================

class CaptureException(EchoAgentException):
    """Base exception for audio capture errors."""

    def __init__(
        self,
        message: str,
        error_code: str = "CAPTURE_ERROR",
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            message=message,
            error_code=error_code,
            status_code=400,
            details=details
        )


class NoAudioInputException(CaptureException):
    """Raised when no microphone or audio source is available."""

    def __init__(self, source: Optional[str] = None):
        super().__init__(
            message="No microphone found. Please check your microphone connection and permissions.",
            error_code="NO_AUDIO_INPUT",
            details={"source": source}
        )


class MicrophonePermissionException(CaptureException):
    """Raised when access to the audio source is denied."""

    def __init__(self, source: Optional[str] = None):
        super().__init__(
            message="Microphone access denied. Please grant permission to the audio source and try again.",
            error_code="MICROPHONE_PERMISSION_DENIED",
            details={"source": source}
        )


class InsecureContextException(CaptureException):
    """Raised when streaming credentials would travel over an insecure socket."""

    def __init__(self, url: str):
        super().__init__(
            message="Voice recognition requires a secure connection (wss://). Please use a secure URL.",
            error_code="INSECURE_CONTEXT",
            details={"url": url}
        )


class CaptureStateException(CaptureException):
    """Raised when a capture session operation is invalid in its current state."""

    def __init__(self, operation: str, state: str):
        super().__init__(
            message=f"Cannot {operation} a capture session that is {state}",
            error_code="CAPTURE_STATE_ERROR",
            details={"operation": operation, "state": state}
        )


# =========================
# Provider Exceptions
# =========================

class ProviderException(EchoAgentException):
    """Base exception for third-party provider errors."""

    def __init__(
        self,
        message: str,
        error_code: str = "PROVIDER_ERROR",
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            message=message,
            error_code=error_code,
            status_code=500,
            details=details
        )


class ProviderUnavailableException(ProviderException):
    """Raised when a provider answers with a server error. Retried."""

    def __init__(self, provider: str, status_code: int, body: str = ""):
        super().__init__(
            message=f"{provider} unavailable (HTTP {status_code})",
            error_code="PROVIDER_UNAVAILABLE",
            details={"provider": provider, "api_status_code": status_code, "body": body}
        )


class ProviderConfigurationException(ProviderException):
    """Raised when a provider credential is not configured."""

    def __init__(self, setting: str):
        super().__init__(
            message=f"{setting} environment variable not configured",
            error_code="PROVIDER_NOT_CONFIGURED",
            details={"setting": setting}
        )


class CredentialProvisioningException(ProviderException):
    """Raised when an ephemeral speech-recognition credential cannot be issued."""

    def __init__(self, message: str, details: Optional[str] = None):
        super().__init__(
            message=message,
            error_code="CREDENTIAL_PROVISIONING_FAILED",
            details={"details": details} if details else None
        )


class SpeechSynthesisException(ProviderException):
    """Raised when the speech synthesis provider fails."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            error_code="TTS_ERROR",
            details=details
        )


# =========================
# Storage Exceptions
# =========================

class StorageException(EchoAgentException):
    """Base exception for datastore errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            error_code="STORAGE_ERROR",
            status_code=500,
            details=details
        )


class StorageConfigurationException(StorageException):
    """Raised when the hosted datastore is selected but not configured."""

    def __init__(self):
        super().__init__(
            message="Supabase configuration missing",
            details={"error_type": "not_configured"}
        )


class StorageWriteException(StorageException):
    """Raised when a datastore insert is rejected."""

    def __init__(self, table: str, error: str):
        super().__init__(
            message=f"Failed to store {table} row: {error}",
            details={"table": table, "error": error}
        )
