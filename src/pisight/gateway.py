"""Connection gateway: binds Socket.IO events to per-connection sessions.

Inbound events:  audio_full, image_chunk, text_message, clear_image
Outbound events: ai_response, error, image_received, image_cleared
"""

from __future__ import annotations

from typing import Any

import socketio

from pisight.config import Settings
from pisight.logging import get_logger
from pisight.schemas import OutboundEvent
from pisight.session import Emitter, Session
from pisight.session_manager import SessionManager

logger = get_logger("gateway")


def create_server(settings: Settings) -> socketio.AsyncServer:
    """Build the ASGI Socket.IO server sized for large audio/image frames."""
    origins: str | list[str] = (
        "*" if "*" in settings.cors_origins else list(settings.cors_origins)
    )
    return socketio.AsyncServer(
        async_mode="asgi",
        cors_allowed_origins=origins,
        max_http_buffer_size=settings.max_http_buffer_size,
    )


class Gateway:
    """Dispatches one connection's events to the Session it owns.

    The server runs each event handler as its own task, so an
    ``image_chunk`` is serviced while a pipeline for the same sid is
    suspended on a remote call.
    """

    def __init__(self, sio: socketio.AsyncServer, sessions: SessionManager) -> None:
        self.sio = sio
        self.sessions = sessions
        sio.on("connect", self.on_connect)
        sio.on("disconnect", self.on_disconnect)
        sio.on("audio_full", self.on_audio_full)
        sio.on("image_chunk", self.on_image_chunk)
        sio.on("text_message", self.on_text_message)
        sio.on("clear_image", self.on_clear_image)

    def _emitter(self, sid: str) -> Emitter:
        async def emit(event: OutboundEvent) -> None:
            await self.sio.emit(event.event, event.to_payload(), to=sid)

        return emit

    def _session(self, sid: str, event: str) -> Session | None:
        session = self.sessions.get(sid)
        if session is None:
            logger.warning(
                "Event %s for unknown sid", event,
                extra={"sid": sid, "event": event},
            )
        return session

    # ── Transport lifecycle ───────────────────────────────

    async def on_connect(self, sid: str, environ: dict[str, Any], auth: Any = None) -> None:
        logger.info("Device connected: %s", sid, extra={"sid": sid, "event": "connect"})
        self.sessions.create(sid, self._emitter(sid))

    async def on_disconnect(self, sid: str, reason: Any = None) -> None:
        logger.info(
            "Device disconnected: %s (%s)", sid, reason,
            extra={"sid": sid, "event": "disconnect"},
        )
        self.sessions.remove(sid)

    # ── Application events ────────────────────────────────

    async def on_audio_full(self, sid: str, data: Any = None) -> None:
        session = self._session(sid, "audio_full")
        if session:
            await session.handle_audio_full(data)

    async def on_image_chunk(self, sid: str, data: Any = None) -> None:
        session = self._session(sid, "image_chunk")
        if session:
            await session.handle_image_chunk(data)

    async def on_text_message(self, sid: str, message: Any = None) -> None:
        session = self._session(sid, "text_message")
        if session:
            await session.handle_text_message(message)

    async def on_clear_image(self, sid: str, *args: Any) -> None:
        session = self._session(sid, "clear_image")
        if session:
            await session.handle_clear_image()
