"""In-memory triage session store.

Sessions are addressed by a caller-supplied (or generated) id. Nothing is
persisted: a process restart drops every session. The store also hands out
one asyncio.Lock per session so callers can keep a single turn in flight per
session.
"""

import asyncio
import logging
from collections.abc import Callable

from services.careflow.src.careflow.core.pipeline import build_default_extractor
from services.careflow.src.careflow.triage.base import EntityExtractor
from services.careflow.src.careflow.triage.session import TriageSession

logger = logging.getLogger(__name__)


class SessionNotFoundError(Exception):
    """Raised when a session id is not in the store."""

    pass


class SessionExistsError(Exception):
    """Raised when creating a session under an id that is already taken."""

    pass


class SessionStore:
    """Owns the live TriageSession objects of one process.

    Usage:
        store = SessionStore()
        session = store.create()
        session = store.get(session.session_id)
        store.destroy(session.session_id)
    """

    def __init__(self, extractor_factory: Callable[[], EntityExtractor] | None = None):
        self._extractor_factory = extractor_factory or build_default_extractor
        self._sessions: dict[str, TriageSession] = {}
        self._locks: dict[str, asyncio.Lock] = {}

    def create(self, session_id: str | None = None) -> TriageSession:
        """Create a new session in GREETING state.

        Raises:
            SessionExistsError: If session_id is already in use
        """
        if session_id is not None and session_id in self._sessions:
            raise SessionExistsError(f"Session '{session_id}' already exists")

        session = TriageSession(extractor=self._extractor_factory(), session_id=session_id)
        self._sessions[session.session_id] = session
        self._locks[session.session_id] = asyncio.Lock()
        logger.info("session_created", extra={"session_id": session.session_id})
        return session

    def get(self, session_id: str) -> TriageSession:
        """Get a session by id.

        Raises:
            SessionNotFoundError: If the id is unknown
        """
        if session_id not in self._sessions:
            raise SessionNotFoundError(f"Session '{session_id}' not found")
        return self._sessions[session_id]

    def reset(self, session_id: str) -> TriageSession:
        """Return an existing session to a fresh GREETING state."""
        session = self.get(session_id)
        session.reset()
        logger.info("session_reset", extra={"session_id": session_id})
        return session

    def destroy(self, session_id: str) -> None:
        """Remove a session and its lock."""
        self.get(session_id)
        del self._sessions[session_id]
        self._locks.pop(session_id, None)
        logger.info("session_destroyed", extra={"session_id": session_id})

    def lock_for(self, session_id: str) -> asyncio.Lock:
        """Lock serializing turns on one session."""
        self.get(session_id)
        return self._locks[session_id]

    def list_ids(self) -> list[str]:
        return list(self._sessions.keys())

    def __contains__(self, session_id: str) -> bool:
        return session_id in self._sessions

    def __len__(self) -> int:
        return len(self._sessions)

    def clear(self) -> None:
        """Drop every session."""
        self._sessions.clear()
        self._locks.clear()


# Default store for the HTTP API
session_store = SessionStore()
