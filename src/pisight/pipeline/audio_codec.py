"""Audio codec helpers: frame headerless PCM into a playable WAV container.

Speech models hand back raw little-endian PCM with the format known only
out of band.  Playback clients need a self-describing blob, so the outbound
path wraps the samples in a RIFF/WAVE header entirely in memory.
"""

from __future__ import annotations

import io
import wave
from dataclasses import dataclass

from pisight.errors import EncodingError
from pisight.logging import get_logger

logger = get_logger("audio_codec")


@dataclass(frozen=True)
class AudioFormat:
    """Out-of-band description of a headerless PCM buffer."""

    channels: int
    sample_rate: int
    bit_depth: int

    @property
    def sample_width(self) -> int:
        """Bytes per sample per channel."""
        return self.bit_depth // 8

    @property
    def frame_size(self) -> int:
        """Bytes per frame (one sample for every channel)."""
        return self.channels * self.sample_width


# Gemini TTS emits mono 24kHz PCM16
GEMINI_TTS_FORMAT = AudioFormat(channels=1, sample_rate=24000, bit_depth=16)


def frame_wav(pcm: bytes, fmt: AudioFormat) -> bytes:
    """Wrap headerless PCM with a standard WAV header.

    Args:
        pcm: Raw interleaved little-endian samples.
        fmt: Channel count, sample rate and bit depth of ``pcm``.

    Returns:
        The complete WAV file as bytes.  Only returned once the writer has
        been closed and the header finalised.

    Raises:
        EncodingError: The format is invalid or ``pcm`` is not a whole
            number of frames.
    """
    if fmt.bit_depth <= 0 or fmt.bit_depth % 8:
        raise EncodingError(f"Unsupported bit depth: {fmt.bit_depth}")
    if fmt.channels <= 0:
        raise EncodingError(f"Unsupported channel count: {fmt.channels}")
    if len(pcm) % fmt.frame_size:
        raise EncodingError(
            f"Sample buffer of {len(pcm)} bytes is not a whole number of "
            f"{fmt.frame_size}-byte frames"
        )

    buf = io.BytesIO()
    try:
        with wave.open(buf, "wb") as wf:
            wf.setnchannels(fmt.channels)
            wf.setsampwidth(fmt.sample_width)
            wf.setframerate(fmt.sample_rate)
            wf.writeframes(pcm)
    except (wave.Error, ValueError) as exc:
        raise EncodingError(f"WAV framing failed: {exc}") from exc

    framed = buf.getvalue()
    logger.debug(
        "Framed %d PCM bytes into %d-byte WAV (%d ch, %d Hz, %d bit)",
        len(pcm),
        len(framed),
        fmt.channels,
        fmt.sample_rate,
        fmt.bit_depth,
    )
    return framed
