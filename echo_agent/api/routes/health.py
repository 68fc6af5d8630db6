"""
Health Check Endpoints.
System health and readiness checks.
"""

from datetime import datetime
from fastapi import APIRouter, Request

router = APIRouter()


@router.get("/health")
async def health_check(request: Request):
    """Basic health check endpoint."""
    return {
        "status": "healthy",
        "timestamp": datetime.utcnow().isoformat(),
        "version": request.app.state.settings.APP_VERSION
    }


@router.get("/health/ready")
async def readiness_check(request: Request):
    """
    Readiness check - verifies services are initialized and configured.

    Only the store is required; missing speech providers degrade to
    client-side recognition and synthesis.
    """
    state = request.app.state

    store = getattr(state, "store", None)
    stt_service = getattr(state, "stt_service", None)
    tts_service = getattr(state, "tts_service", None)

    checks = {
        "store": store is not None and store.is_configured,
        "pipeline": hasattr(state, "pipeline"),
        "stt_configured": stt_service is not None and stt_service.is_configured,
        "tts_configured": tts_service is not None and tts_service.is_configured
    }

    ready = checks["store"] and checks["pipeline"]

    return {
        "status": "ready" if ready else "not_ready",
        "storage_backend": store.name if store is not None else None,
        "checks": checks,
        "timestamp": datetime.utcnow().isoformat()
    }


@router.get("/health/live")
async def liveness_check():
    """
    Liveness check - just verifies the server is responding.
    """
    return {
        "status": "alive",
        "timestamp": datetime.utcnow().isoformat()
    }
