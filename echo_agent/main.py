"""
FastAPI Application Entry Point
===============================
Main application with lifecycle management, middleware, and route mounting.
"""

from contextlib import asynccontextmanager
from datetime import datetime
from typing import Optional
import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from echo_agent.config import Settings, get_settings
from echo_agent.core.exceptions import EchoAgentException
from echo_agent.core.pipeline import TurnPipeline
from echo_agent.api.routes import conversation, voice, analytics, health
from echo_agent.services.storage import create_store
from echo_agent.services.stt import DeepgramCredentialService
from echo_agent.services.tts import TTSService
from echo_agent.logging.agent_logger import AgentLogger

# Configure logging
logging.basicConfig(
    level=get_settings().LOG_LEVEL,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


def error_response(status_code: int, code: str, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"error": {"code": code, "message": message}}
    )


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """Build the relay application."""
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """
        Application lifespan manager.
        Handles startup and shutdown events.
        """
        logger.info("=" * 60)
        logger.info("Starting Echo Voice Agent")
        logger.info("=" * 60)

        # ==================
        # STARTUP
        # ==================

        app.state.settings = settings

        logger.info("Initializing agent logger...")
        app.state.agent_logger = AgentLogger(str(settings.AGENT_LOG_PATH))
        await app.state.agent_logger.log_system_event("Application starting", {
            "version": settings.APP_VERSION,
            "environment": settings.ENVIRONMENT,
            "storage_backend": settings.storage_backend
        })

        logger.info("Initializing conversation store...")
        app.state.store = create_store(settings)
        await app.state.store.initialize()

        logger.info("Initializing STT credential service...")
        app.state.stt_service = DeepgramCredentialService(settings)
        await app.state.stt_service.initialize()

        logger.info("Initializing TTS service...")
        app.state.tts_service = TTSService(settings, store=app.state.store)
        await app.state.tts_service.initialize()

        app.state.pipeline = TurnPipeline(app.state.store, app.state.agent_logger)

        logger.info("=" * 60)
        logger.info("Echo Voice Agent Ready!")
        logger.info(f"Server: http://{settings.HOST}:{settings.PORT}")
        logger.info(f"Docs: http://{settings.HOST}:{settings.PORT}/docs")
        logger.info("=" * 60)

        await app.state.agent_logger.log_system_event("Application started successfully", {
            "host": settings.HOST,
            "port": settings.PORT
        })

        yield  # Application runs here

        # ==================
        # SHUTDOWN
        # ==================

        logger.info("Shutting down Echo Voice Agent...")

        await app.state.agent_logger.log_system_event("Application shutting down", {})

        await app.state.stt_service.cleanup()
        await app.state.tts_service.cleanup()
        await app.state.store.cleanup()
        await app.state.agent_logger.close()

        logger.info("Shutdown complete.")

    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        description="""
        ## Echo Voice Customer Support Agent

        Relay for a voice support assistant: rule-based intent and sentiment
        classification, templated replies and human handoff detection.

        ### Pipeline:
        ```
        Audio → Deepgram STT → Intent/Sentiment Rules → Azure TTS → Audio
        ```
        """,
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json"
    )

    # ==================
    # MIDDLEWARE
    # ==================

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Audio-URL", "X-Process-Time-Ms"]
    )

    @app.middleware("http")
    async def add_timing_header(request: Request, call_next):
        """Add request timing information to response headers."""
        start_time = datetime.now()
        response = await call_next(request)
        process_time = (datetime.now() - start_time).total_seconds() * 1000
        response.headers["X-Process-Time-Ms"] = f"{process_time:.2f}"
        logger.debug(f"{request.method} {request.url.path} {response.status_code} {process_time:.0f}ms")
        return response

    # ==================
    # EXCEPTION HANDLERS
    # ==================

    @app.exception_handler(EchoAgentException)
    async def echo_agent_exception_handler(request: Request, exc: EchoAgentException):
        """Handle custom Echo Agent exceptions."""
        logger.error(f"{exc.error_code}: {exc.message}")
        return error_response(exc.status_code, exc.error_code, exc.message)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        """Malformed request bodies are client errors."""
        errors = exc.errors()
        message = errors[0].get("msg", "Invalid request") if errors else "Invalid request"
        return error_response(400, "INVALID_REQUEST", message)

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        """Handle unexpected exceptions."""
        logger.exception(f"Unexpected error: {exc}")
        message = str(exc) if settings.DEBUG else "An unexpected error occurred"
        return error_response(500, "INTERNAL_ERROR", message)

    # ==================
    # ROUTES
    # ==================

    app.include_router(health.router, tags=["Health"])
    app.include_router(conversation.router, prefix="/api/v1/conversation", tags=["Conversation"])
    app.include_router(voice.router, prefix="/api/v1/voice", tags=["Voice"])
    app.include_router(analytics.router, prefix="/api/v1/analytics", tags=["Analytics"])

    # Locally stored synthesized audio (SQL backend)
    app.mount("/audio", StaticFiles(directory=str(settings.AUDIO_DIR), check_dir=False), name="audio")

    @app.get("/")
    async def root():
        """Root endpoint with API information."""
        return {
            "name": settings.APP_NAME,
            "version": settings.APP_VERSION,
            "status": "running",
            "docs": "/docs",
            "health": "/health"
        }

    return app


app = create_app()
