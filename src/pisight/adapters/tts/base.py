"""TTS adapter protocol: defines the interface all synthesis backends implement."""

from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class TTSAdapter(Protocol):
    """Protocol for text-to-speech adapters.

    Implementations return framed (self-describing) audio, never headerless
    samples.
    """

    async def synthesize(self, text: str) -> bytes:
        """Synthesize ``text`` and return a complete WAV blob.

        Raises ``SynthesisError`` when no audio comes back and
        ``EncodingError`` when the samples cannot be framed.
        """
        ...

    async def close(self) -> None:
        """Close the connection and release resources."""
        ...
