"""Health check endpoints.

Provides:
- Basic health check (GET /health)
- Detailed health check with configuration and capacity status (GET /health/detailed)
"""

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from timbra import __version__
from timbra.api.dependencies import get_registry
from timbra.api.websocket.media_stream import CallSessionRegistry
from timbra.config import Settings, get_settings

router = APIRouter()


class HealthResponse(BaseModel):
    """Basic health check response."""

    status: str


class DetailedHealthResponse(BaseModel):
    """Detailed health check response."""

    status: str
    checks: dict[str, str]
    active_calls: int
    max_concurrent_calls: int
    version: str


@router.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """Basic health check endpoint.

    Returns:
        Simple status indicating the API is running.
    """
    return HealthResponse(status="healthy")


@router.get("/health/detailed", response_model=DetailedHealthResponse)
async def detailed_health_check(
    settings: Settings = Depends(get_settings),
    registry: CallSessionRegistry = Depends(get_registry),
) -> DetailedHealthResponse:
    """Detailed health check.

    Backends are only checked for configuration; no API is called.
    The bridge reports ``degraded`` when a backend is unconfigured or no
    call slot is free.
    """
    checks = {
        "groq": "configured" if settings.groq_api_key.get_secret_value() else "missing",
        "deepgram": (
            "configured" if settings.deepgram_api_key.get_secret_value() else "missing"
        ),
        "elevenlabs": (
            "configured"
            if settings.elevenlabs_api_key and settings.elevenlabs_api_key.get_secret_value()
            else "missing"
        ),
        "capacity": "ok" if registry.has_capacity else "full",
        "barge_in": settings.barge_in_mode,
    }

    degraded = any(value in ("missing", "full") for value in checks.values())

    return DetailedHealthResponse(
        status="degraded" if degraded else "healthy",
        checks=checks,
        active_calls=registry.active_count,
        max_concurrent_calls=registry.max_concurrent_calls,
        version=__version__,
    )
