"""JSON logging for the relay, plus per-connection context binding.

Every record may carry connection and turn context (``session_id``, ``sid``,
``turn_id``) and a machine-readable ``event`` name.  Sessions bind their
identifiers once through ``bind`` instead of repeating them on every call.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, MutableMapping

CONTEXT_FIELDS = ("session_id", "sid", "turn_id", "event", "error_type")

NOISY_LIBRARIES = ("httpcore", "httpx", "aiohttp", "openai", "engineio", "socketio")


class StructuredFormatter(logging.Formatter):
    """One JSON object per record, stamped with the record's own creation time."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        entry.update(
            (name, getattr(record, name))
            for name in CONTEXT_FIELDS
            if getattr(record, name, None) not in (None, "")
        )
        if record.exc_info and record.exc_info[1]:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


class ContextLogger(logging.LoggerAdapter):
    """Logger adapter that merges bound context under per-call ``extra``.

    Per-call values win, so a turn can add ``turn_id`` or ``event`` without
    rebinding.
    """

    def process(
        self, msg: Any, kwargs: MutableMapping[str, Any]
    ) -> tuple[Any, MutableMapping[str, Any]]:
        kwargs["extra"] = {**self.extra, **(kwargs.get("extra") or {})}
        return msg, kwargs


def setup_logging(level: str = "INFO") -> None:
    """Route the root logger to stderr as JSON lines."""
    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    for handler in root.handlers[:]:
        root.removeHandler(handler)

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(StructuredFormatter())
    root.addHandler(handler)

    for lib in NOISY_LIBRARIES:
        logging.getLogger(lib).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(f"pisight.{name}")


def bind(logger: logging.Logger, **context: Any) -> ContextLogger:
    """Attach fixed context fields to every record ``logger`` emits."""
    return ContextLogger(logger, context)
