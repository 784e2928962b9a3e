"""STT adapter protocol: defines the interface all transcription backends implement."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Protocol, runtime_checkable


class JobStatus(str, Enum):
    """Lifecycle states of a remote transcription job."""

    QUEUED = "queued"
    PROCESSING = "processing"
    COMPLETED = "completed"
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.COMPLETED, JobStatus.ERROR)


@dataclass
class TranscriptJob:
    """Snapshot of a remote transcription job.  Never persisted."""

    id: str
    status: JobStatus
    text: str | None = None
    error: str | None = None


@runtime_checkable
class STTAdapter(Protocol):
    """Protocol for batch speech-to-text adapters."""

    async def transcribe(self, audio: bytes) -> str:
        """Transcribe a complete utterance and return its text.

        An empty string is a valid transcript.  Raises ``UploadError``,
        ``TranscriptionError`` or ``TranscriptionTimeout``.
        """
        ...

    async def close(self) -> None:
        """Close the client and release resources."""
        ...
