"""PISIGHT relay entrypoint.

Bootstraps the relay: loads config, builds the vendor pipeline, mounts the
Socket.IO gateway over a FastAPI status app, and serves it with uvicorn.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, AsyncIterator

import socketio
import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from pisight.config import Settings, get_settings
from pisight.gateway import Gateway, create_server
from pisight.logging import get_logger, setup_logging
from pisight.pipeline.factory import build_pipeline
from pisight.pipeline.relay import RelayPipeline
from pisight.session_manager import SessionManager

SERVICE_NAME = "PISIGHT Backend"
APP_FACTORY = "pisight.main:create_app"

logger = get_logger("main")


def create_api(
    sessions: SessionManager,
    settings: Settings,
    pipeline: RelayPipeline | None = None,
) -> FastAPI:
    """FastAPI app carrying the liveness and readiness endpoints."""

    @asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncIterator[None]:
        yield
        logger.info("Shutting down relay", extra={"event": "shutdown"})
        sessions.close_all()
        if pipeline is not None:
            await pipeline.close()

    api = FastAPI(title=SERVICE_NAME, version="0.1.0", lifespan=lifespan)
    api.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["GET", "OPTIONS"],
        allow_headers=["*"],
    )

    @api.get("/")
    async def root() -> dict[str, Any]:
        return {
            "status": "online",
            "service": SERVICE_NAME,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

    @api.get("/health")
    async def health() -> dict[str, Any]:
        return {"status": "healthy", "connections": sessions.active_count}

    return api


def create_app(
    settings: Settings | None = None,
    pipeline: RelayPipeline | None = None,
) -> socketio.ASGIApp:
    """Compose the ASGI application: Socket.IO gateway over the status API."""
    settings = settings or get_settings()
    setup_logging(settings.log_level)

    pipeline = pipeline or build_pipeline(settings)
    sessions = SessionManager(pipeline, metrics_enabled=settings.metrics_enabled)
    sio = create_server(settings)
    Gateway(sio, sessions)

    api = create_api(sessions, settings, pipeline)
    logger.info(
        "Relay ready on %s:%d (max frame %d bytes)",
        settings.host,
        settings.port,
        settings.max_http_buffer_size,
        extra={"event": "relay_ready"},
    )
    return socketio.ASGIApp(sio, other_asgi_app=api)


def main() -> None:
    """Run the relay under uvicorn (equivalent to ``uvicorn pisight.main:create_app --factory``)."""
    settings = get_settings()
    uvicorn.run(
        APP_FACTORY,
        factory=True,
        host=settings.host,
        port=settings.port,
        log_config=None,
    )


if __name__ == "__main__":
    main()
