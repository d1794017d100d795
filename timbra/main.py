"""FastAPI application entry point.

Timbra - real-time voice bridge for phone calls.

Run with:
    uvicorn timbra.main:create_app --factory
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, WebSocket
from fastapi.middleware.cors import CORSMiddleware

from timbra import __version__
from timbra.api.routes import health, metrics, twilio_webhook
from timbra.api.websocket.media_stream import CallSessionRegistry, media_stream_endpoint
from timbra.config import Settings, get_settings
from timbra.core.session import SessionBackends
from timbra.logging_config import get_logger, setup_logging
from timbra.services.llm.groq import GroqResponder
from timbra.services.stt.deepgram import DeepgramTranscriber
from timbra.services.telephony.twilio import MEDIA_STREAM_PATH
from timbra.services.tts.elevenlabs import ElevenLabsSynthesizer

logger: Any = get_logger(__name__)


def build_backends(settings: Settings) -> SessionBackends:
    """Create the shared backend clients used by every call."""
    synthesizer = ElevenLabsSynthesizer(settings=settings)
    return SessionBackends(
        transcriber=DeepgramTranscriber(settings=settings),
        responder=GroqResponder(settings=settings),
        synthesizer=synthesizer,
        voice=synthesizer.default_voice(),
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler.

    Startup:
    - Initialize logging
    - Create backend clients (unless injected)

    Shutdown:
    - Close active call sessions
    - Close backend clients
    """
    settings: Settings = app.state.settings

    # Startup
    setup_logging(
        level=settings.log_level,
        enable_file=settings.is_production,
    )
    if app.state.backends is None:
        app.state.backends = build_backends(settings)
    logger.info(
        f"Timbra {__version__} ready ({settings.environment}, "
        f"max {settings.max_concurrent_calls} calls, barge-in {settings.barge_in_mode})"
    )

    yield

    # Shutdown
    await app.state.registry.close_all()

    backends: SessionBackends = app.state.backends
    for client in (backends.transcriber, backends.responder, backends.synthesizer):
        try:
            await client.close()
        except Exception as e:
            logger.error(f"Error closing {type(client).__name__}: {e}")


def create_app(
    settings: Settings | None = None,
    backends: SessionBackends | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        settings: Settings to use instead of the environment
        backends: Pre-built backend clients (tests inject fakes here)
    """
    settings = settings or get_settings()

    app = FastAPI(
        title="Timbra API",
        description="Real-time voice bridge for phone calls",
        version=__version__,
        docs_url="/docs" if not settings.is_production else None,
        redoc_url="/redoc" if not settings.is_production else None,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.backends = backends
    app.state.registry = CallSessionRegistry(
        max_concurrent_calls=settings.max_concurrent_calls
    )
    app.dependency_overrides[get_settings] = lambda: settings

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if settings.debug else [],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Health check routes
    app.include_router(health.router, tags=["Health"])

    # Twilio voice webhook
    app.include_router(twilio_webhook.router)

    # Metrics endpoint for Prometheus scraping
    app.include_router(metrics.router, tags=["Observability"])

    # WebSocket endpoint for the media stream
    @app.websocket(MEDIA_STREAM_PATH)
    async def media_stream_ws(websocket: WebSocket):
        """WebSocket endpoint for Twilio Media Streams."""
        if app.state.backends is None:
            app.state.backends = build_backends(settings)
        await media_stream_endpoint(
            websocket,
            registry=app.state.registry,
            backends=app.state.backends,
            settings=settings,
        )

    return app
