"""Relay pipeline: transcribe (audio turns only) → infer → synthesize.

Stages run strictly in sequence; every stage is a network-bound await.
Failures propagate as ``RelayError`` subclasses to the caller, which owns
admission control and error reporting.
"""

from __future__ import annotations

from dataclasses import dataclass

from pisight.adapters.llm.base import LLMAdapter
from pisight.adapters.stt.base import STTAdapter
from pisight.adapters.tts.base import TTSAdapter
from pisight.logging import get_logger
from pisight.metrics import MetricsCollector, TurnMetrics

logger = get_logger("pipeline.relay")


@dataclass(frozen=True)
class RelayResult:
    """Reply text plus its framed WAV rendering."""

    text: str
    audio: bytes


class RelayPipeline:
    """Sequences the three vendor adapters for one user turn."""

    def __init__(
        self,
        stt: STTAdapter,
        llm: LLMAdapter,
        tts: TTSAdapter,
        *,
        log_transcripts: bool = False,
    ) -> None:
        self.stt = stt
        self.llm = llm
        self.tts = tts
        self._log_transcripts = log_transcripts

    async def run_audio(
        self,
        audio: bytes,
        image: bytes | None,
        metrics: TurnMetrics | None = None,
    ) -> RelayResult:
        """Transcribe ``audio`` then answer it."""
        transcript = await self.stt.transcribe(audio)
        if metrics is not None:
            metrics.transcribe_done_at = MetricsCollector.now()
        if self._log_transcripts:
            logger.info("Transcription: %s", transcript)
        return await self.run_text(transcript, image, metrics)

    async def run_text(
        self,
        text: str,
        image: bytes | None,
        metrics: TurnMetrics | None = None,
    ) -> RelayResult:
        """Answer ``text`` (with ``image`` if held) and voice the reply."""
        if metrics is not None:
            metrics.infer_started_at = MetricsCollector.now()
        reply = await self.llm.infer(image, text)
        if metrics is not None:
            metrics.infer_done_at = MetricsCollector.now()
        if self._log_transcripts:
            logger.info("AI response: %s", reply)

        audio = await self.tts.synthesize(reply)
        if metrics is not None:
            metrics.synthesize_done_at = MetricsCollector.now()
        return RelayResult(text=reply, audio=audio)

    async def close(self) -> None:
        """Close every adapter client."""
        for adapter in (self.stt, self.llm, self.tts):
            await adapter.close()
