"""Per-connection Session: held image, chunk reassembly, single-flight admission."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Any, Awaitable, Callable

from pydantic import ValidationError

from pisight.errors import BusyRejection
from pisight.logging import ContextLogger, bind, get_logger
from pisight.metrics import MetricsCollector, TurnMetrics
from pisight.pipeline.relay import RelayPipeline, RelayResult
from pisight.schemas import (
    AIResponse,
    ErrorEvent,
    ErrorType,
    ImageChunk,
    ImageCleared,
    ImageReceived,
    OutboundEvent,
)

logger = get_logger("session")

Emitter = Callable[[OutboundEvent], Awaitable[None]]
TurnRunner = Callable[[bytes | None, TurnMetrics], Awaitable[RelayResult]]


class SessionState(Enum):
    IDLE = auto()
    PROCESSING = auto()
    CLOSED = auto()


@dataclass
class Session:
    """State owned by exactly one duplex connection.

    ``busy`` admits at most one pipeline at a time; a second trigger while
    busy is rejected, never queued.  Image chunks bypass admission, so an
    upload can complete while a pipeline is awaiting a remote call.  Each
    pipeline captures ``image`` when admitted and keeps that reference even
    if a newer image replaces it mid-flight.
    """

    pipeline: RelayPipeline
    emit: Emitter
    sid: str = ""
    session_id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])

    image: bytes | None = None
    image_chunks: list[bytes] = field(default_factory=list)
    busy: bool = False
    closed: bool = False
    turn_id: str = ""

    metrics: MetricsCollector = field(default=None)  # type: ignore[assignment]
    _log: ContextLogger = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        if self.metrics is None:
            self.metrics = MetricsCollector(session_id=self.session_id)
        self._log = bind(logger, session_id=self.session_id, sid=self.sid)

    @property
    def state(self) -> SessionState:
        if self.closed:
            return SessionState.CLOSED
        return SessionState.PROCESSING if self.busy else SessionState.IDLE

    # ── Inbound handlers ──────────────────────────────────

    async def handle_audio_full(self, data: Any) -> None:
        """Complete utterance: transcribe, answer, voice."""

        async def run(image: bytes | None, turn: TurnMetrics) -> RelayResult:
            if not isinstance(data, (bytes, bytearray, memoryview)):
                raise TypeError(
                    f"audio_full expects binary data, got {type(data).__name__}"
                )
            audio = bytes(data)
            self._log.info(
                "Received full audio: %d bytes", len(audio),
                extra={"event": "audio_full", "turn_id": turn.turn_id},
            )
            return await self.pipeline.run_audio(audio, image, turn)

        await self._run_turn("full_audio", run)

    async def handle_text_message(self, message: Any) -> None:
        """Text-only user turn: answer and voice."""

        async def run(image: bytes | None, turn: TurnMetrics) -> RelayResult:
            if not isinstance(message, str):
                raise TypeError(
                    f"text_message expects a string, got {type(message).__name__}"
                )
            return await self.pipeline.run_text(message, image, turn)

        await self._run_turn("text_processing", run)

    async def handle_image_chunk(self, data: Any) -> None:
        """Append one image fragment; promote the buffer on the last one."""
        try:
            chunk = ImageChunk.model_validate(data)
        except ValidationError as exc:
            message = "; ".join(
                f"{'.'.join(str(p) for p in err['loc']) or 'payload'}: {err['msg']}"
                for err in exc.errors()
            )
            self._log.warning(
                "Invalid image chunk: %s", message,
                extra={"event": "image_chunk", "error_type": "image_upload"},
            )
            await self._send(ErrorEvent(type="image_upload", message=f"Invalid image chunk: {message}"))
            return

        self.image_chunks.append(chunk.chunk)
        if not chunk.is_last:
            return

        # Drain and replace in one step; no await in between
        image = b"".join(self.image_chunks)
        self.image = image
        self.image_chunks = []
        self._log.info(
            "Image received: %d bytes", len(image),
            extra={"event": "image_received"},
        )
        await self._send(ImageReceived(size=len(image)))

    async def handle_clear_image(self) -> None:
        self.image = None
        self._log.info("Image cleared", extra={"event": "image_cleared"})
        await self._send(ImageCleared())

    def close(self) -> None:
        """Discard all session state.  In-flight results are dropped."""
        self.image = None
        self.image_chunks = []
        self.closed = True
        self._log.info("Session closed", extra={"event": "session_closed"})

    # ── Single-flight turn execution ──────────────────────

    async def _run_turn(self, error_type: ErrorType, run: TurnRunner) -> None:
        # Check-and-set with no await in between
        if self.busy:
            rejection = BusyRejection()
            self._log.info(
                "Rejected %s turn: pipeline in flight", error_type,
                extra={"event": "busy_rejected", "turn_id": self.turn_id},
            )
            await self._send(ErrorEvent(type="busy", message=str(rejection)))
            return
        self.busy = True

        image = self.image
        self.turn_id = uuid.uuid4().hex[:8]
        turn = self.metrics.new_turn(self.turn_id, trigger=error_type)
        succeeded = False
        try:
            result = await run(image, turn)
            succeeded = True
            await self._send(AIResponse(text=result.text, audio=result.audio))
        except Exception as exc:
            self._log.error(
                "Error processing %s: %s", error_type, exc,
                exc_info=True,
                extra={"event": "turn_failed", "turn_id": turn.turn_id, "error_type": error_type},
            )
            if not succeeded:
                await self._send(
                    ErrorEvent(type=error_type, message=str(exc) or type(exc).__name__)
                )
        finally:
            self.busy = False
            self.metrics.finish(turn, succeeded)

    async def _send(self, event: OutboundEvent) -> None:
        if self.closed:
            self._log.debug(
                "Dropping %s for closed session", event.event,
                extra={"event": "event_dropped"},
            )
            return
        await self.emit(event)
