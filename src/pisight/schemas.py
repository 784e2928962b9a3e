"""Wire schemas for Socket.IO events exchanged with the device."""

from __future__ import annotations

import base64
import time
from typing import ClassVar, Literal

from pydantic import BaseModel, ConfigDict, Field, field_serializer

ErrorType = Literal["busy", "full_audio", "image_upload", "text_processing"]


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


# ── Inbound ──────────────────────────────────────────────


class ImageChunk(BaseModel):
    """``image_chunk`` payload: one fragment of a chunked image upload."""

    model_config = ConfigDict(populate_by_name=True)

    chunk: bytes
    is_last: bool = Field(default=False, alias="isLast")


# ── Outbound ─────────────────────────────────────────────


class OutboundEvent(BaseModel):
    """Base for events the server emits; ``event`` is the Socket.IO name."""

    event: ClassVar[str]

    def to_payload(self) -> dict | None:
        return self.model_dump()


class AIResponse(OutboundEvent):
    event: ClassVar[str] = "ai_response"

    text: str
    audio: bytes  # framed WAV
    timestamp: int = Field(default_factory=now_ms)

    @field_serializer("audio")
    def _audio_base64(self, audio: bytes) -> str:
        return base64.b64encode(audio).decode("ascii")


class ErrorEvent(OutboundEvent):
    event: ClassVar[str] = "error"

    type: ErrorType
    message: str


class ImageReceived(OutboundEvent):
    event: ClassVar[str] = "image_received"

    size: int
    timestamp: int = Field(default_factory=now_ms)


class ImageCleared(OutboundEvent):
    event: ClassVar[str] = "image_cleared"

    def to_payload(self) -> dict | None:
        return None
