"""
Thread-safe registry of active form sessions.

Form sessions hold image bytes, so they live server-side; the browser only
keeps the session id in its Flask session cookie.

Idle expiry:
    Every lookup stamps the session's last access time. Sessions untouched
    for longer than idle_seconds are evicted on the next get_or_create(),
    except while a submission is in flight.

Thread Safety:
    - Uses threading.Lock for all registry operations
    - Sessions themselves guard their own state
"""

from __future__ import annotations

import threading
from datetime import datetime, timedelta
from typing import Callable, Dict, Optional

from logging_config import get_logger
from models.session import InspectionSession


# Module logger
logger = get_logger(__name__)

DEFAULT_IDLE_SECONDS = 4 * 60 * 60


class SessionRegistry:
    """
    Maps session ids to InspectionSession objects.

    Usage:
        session = registry.get_or_create(flask_session.get("form_session_id"))
        flask_session["form_session_id"] = session.session_id

        # Teardown
        registry.discard(session_id)
    """

    def __init__(
        self,
        clock: Callable[[], datetime] = datetime.now,
        idle_seconds: Optional[float] = DEFAULT_IDLE_SECONDS
    ):
        self._sessions: Dict[str, InspectionSession] = {}
        self._last_access: Dict[str, datetime] = {}
        self._lock = threading.Lock()
        self._clock = clock
        # None or 0 disables expiry
        self._idle_window = timedelta(seconds=idle_seconds) if idle_seconds else None

    def get(self, session_id: Optional[str]) -> Optional[InspectionSession]:
        if not session_id:
            return None
        with self._lock:
            session = self._sessions.get(session_id)
            if session is not None:
                self._last_access[session_id] = self._clock()
            return session

    def get_or_create(self, session_id: Optional[str]) -> InspectionSession:
        """Return the session for session_id, creating a fresh one if unknown."""
        with self._lock:
            now = self._clock()
            self._evict_idle_locked(now, keep=session_id)

            session = self._sessions.get(session_id) if session_id else None
            if session is None:
                session = InspectionSession(clock=self._clock)
                self._sessions[session.session_id] = session
                logger.info(f"Created form session {session.session_id[:8]}")

            self._last_access[session.session_id] = now
            return session

    def evict_idle(self) -> int:
        """
        Drop sessions idle longer than the window.

        Returns:
            Number of sessions evicted
        """
        with self._lock:
            return self._evict_idle_locked(self._clock())

    def discard(self, session_id: str) -> bool:
        """
        Tear down a session, cancelling its in-flight attempt.

        Returns:
            True if the session existed
        """
        with self._lock:
            session = self._sessions.pop(session_id, None)
            self._last_access.pop(session_id, None)

        if session is None:
            return False

        session.cancel()
        logger.info(f"Discarded form session {session_id[:8]}")
        return True

    def close_all(self) -> int:
        """
        Cancel and remove every session.

        Returns:
            Number of sessions removed
        """
        with self._lock:
            sessions = list(self._sessions.values())
            self._sessions.clear()
            self._last_access.clear()

        for session in sessions:
            session.cancel()

        logger.info(f"Closed {len(sessions)} form session(s)")
        return len(sessions)

    def _evict_idle_locked(self, now: datetime, keep: Optional[str] = None) -> int:
        if self._idle_window is None:
            return 0

        cutoff = now - self._idle_window
        expired = [
            session_id
            for session_id, last_access in self._last_access.items()
            if last_access < cutoff
            and session_id != keep
            and not self._sessions[session_id].in_flight
        ]
        for session_id in expired:
            del self._sessions[session_id]
            del self._last_access[session_id]

        if expired:
            logger.info(f"Evicted {len(expired)} idle form session(s)")
        return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)
