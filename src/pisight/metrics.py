"""Latency metrics collection for relay pipeline stages."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any

from pisight.logging import get_logger

logger = get_logger("metrics")


@dataclass
class TurnMetrics:
    """Stage latencies for a single pipeline run."""

    turn_id: str = ""
    session_id: str = ""
    trigger: str = ""

    # Timestamps (monotonic, seconds)
    started_at: float = 0.0
    transcribe_done_at: float = 0.0
    infer_started_at: float = 0.0
    infer_done_at: float = 0.0
    synthesize_done_at: float = 0.0
    finished_at: float = 0.0
    succeeded: bool = False

    @property
    def transcribe_ms(self) -> float:
        """Upload + job creation + polling, in milliseconds."""
        if self.started_at and self.transcribe_done_at:
            return (self.transcribe_done_at - self.started_at) * 1000
        return 0.0

    @property
    def infer_ms(self) -> float:
        if self.infer_started_at and self.infer_done_at:
            return (self.infer_done_at - self.infer_started_at) * 1000
        return 0.0

    @property
    def synthesize_ms(self) -> float:
        if self.infer_done_at and self.synthesize_done_at:
            return (self.synthesize_done_at - self.infer_done_at) * 1000
        return 0.0

    @property
    def total_ms(self) -> float:
        if self.started_at and self.finished_at:
            return (self.finished_at - self.started_at) * 1000
        return 0.0

    def summary(self) -> dict[str, Any]:
        return {
            "turn_id": self.turn_id,
            "trigger": self.trigger,
            "succeeded": self.succeeded,
            "transcribe_ms": round(self.transcribe_ms, 1),
            "infer_ms": round(self.infer_ms, 1),
            "synthesize_ms": round(self.synthesize_ms, 1),
            "total_ms": round(self.total_ms, 1),
        }

    def emit(self) -> None:
        """Log the turn metrics summary."""
        logger.info(
            "Turn metrics: %s",
            self.summary(),
            extra={"session_id": self.session_id, "turn_id": self.turn_id, "event": "turn_metrics"},
        )


@dataclass
class MetricsCollector:
    """Accumulates per-session turn metrics."""

    session_id: str = ""
    enabled: bool = True
    turns: list[TurnMetrics] = field(default_factory=list)

    def new_turn(self, turn_id: str, trigger: str) -> TurnMetrics:
        m = TurnMetrics(
            turn_id=turn_id,
            session_id=self.session_id,
            trigger=trigger,
            started_at=self.now(),
        )
        if self.enabled:
            self.turns.append(m)
        return m

    def finish(self, metrics: TurnMetrics, succeeded: bool) -> None:
        metrics.finished_at = self.now()
        metrics.succeeded = succeeded
        if self.enabled:
            metrics.emit()

    @staticmethod
    def now() -> float:
        """Return monotonic timestamp for latency measurement."""
        return time.monotonic()
