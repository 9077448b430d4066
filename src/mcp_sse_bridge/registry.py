"""Shared session registry for mcp-sse-bridge.

The single source of truth for which SSE sessions are open. One
instance is shared by reference between the primary and proxy entry
points, so both listeners address one namespace of session ids.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterator
from contextlib import contextmanager

from mcp_sse_bridge.errors import DuplicateSessionError
from mcp_sse_bridge.models import Session

logger = logging.getLogger(__name__)


class SessionRegistry:
    """Thread-safe mapping of session id to open session.

    All operations take one lock and never perform I/O while holding it,
    so the registry is safe whether requests run on an event loop or on
    worker threads.

    Example:
        >>> registry = SessionRegistry()
        >>> with registry.track(session):
        ...     assert registry.lookup(session.id) is session
        >>> registry.lookup(session.id) is None
        True
    """

    def __init__(self) -> None:
        self._sessions: dict[str, Session] = {}
        self._lock = threading.Lock()

    def register(self, session: Session) -> None:
        """Insert a session under its id.

        Args:
            session: The session to register.

        Raises:
            DuplicateSessionError: If the id is already registered.
        """
        with self._lock:
            if session.id in self._sessions:
                raise DuplicateSessionError(session.id)
            self._sessions[session.id] = session
        logger.debug("Registered session %s via %s", session.id, session.created_via)

    def lookup(self, session_id: str) -> Session | None:
        """Return the open session with this id, or None."""
        with self._lock:
            return self._sessions.get(session_id)

    def remove(self, session_id: str) -> None:
        """Remove a session. Removing an absent id is a no-op."""
        with self._lock:
            removed = self._sessions.pop(session_id, None)
        if removed is not None:
            logger.debug("Removed session %s", session_id)

    @contextmanager
    def track(self, session: Session) -> Iterator[Session]:
        """Keep a session registered for the duration of a ``with`` block.

        The session is removed on every exit path: normal return, an
        exception, or task cancellation.

        Args:
            session: The session to register.

        Yields:
            The registered session.
        """
        self.register(session)
        try:
            yield session
        finally:
            self.remove(session.id)

    def __contains__(self, session_id: object) -> bool:
        with self._lock:
            return session_id in self._sessions

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)
