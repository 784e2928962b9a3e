"""Session manager: one Session per live Socket.IO connection, keyed by sid."""

from __future__ import annotations

from typing import Optional

from pisight.logging import get_logger
from pisight.metrics import MetricsCollector
from pisight.pipeline.relay import RelayPipeline
from pisight.session import Emitter, Session

logger = get_logger("session_manager")


class SessionManager:
    """Tracks the sessions of currently connected devices.

    A session is created on connect and discarded on disconnect.  Nothing
    is shared between sids and nothing outlives its connection.
    """

    def __init__(self, pipeline: RelayPipeline, metrics_enabled: bool = True) -> None:
        self._pipeline = pipeline
        self._metrics_enabled = metrics_enabled
        self._sessions: dict[str, Session] = {}

    @property
    def active_count(self) -> int:
        return len(self._sessions)

    def create(self, sid: str, emit: Emitter) -> Session:
        """Create and register a fresh session for ``sid``."""
        old = self._sessions.pop(sid, None)
        if old is not None:
            logger.warning(
                "Replacing existing session %s for sid %s",
                old.session_id,
                sid,
                extra={"session_id": old.session_id, "sid": sid},
            )
            old.close()

        session = Session(pipeline=self._pipeline, emit=emit, sid=sid)
        session.metrics = MetricsCollector(
            session_id=session.session_id, enabled=self._metrics_enabled
        )
        self._sessions[sid] = session
        logger.info(
            "Session created: %s (sid %s)",
            session.session_id,
            sid,
            extra={"session_id": session.session_id, "sid": sid, "event": "session_created"},
        )
        return session

    def get(self, sid: str) -> Optional[Session]:
        """Return the session for ``sid``, or None."""
        return self._sessions.get(sid)

    def remove(self, sid: str) -> None:
        """Close and deregister the session."""
        session = self._sessions.pop(sid, None)
        if session:
            session.close()
            logger.info(
                "Session removed: %s (sid %s)",
                session.session_id,
                sid,
                extra={"session_id": session.session_id, "sid": sid, "event": "session_removed"},
            )

    def close_all(self) -> None:
        """Discard all sessions (for graceful process exit)."""
        sessions = list(self._sessions.values())
        self._sessions.clear()
        for s in sessions:
            s.close()
        logger.info("All sessions closed", extra={"event": "all_sessions_closed"})
