"""Process-local registry of live session coordinators."""

from __future__ import annotations

import asyncio
import logging
from typing import Dict

from app.services.session_coordinator import SessionCoordinator

logger = logging.getLogger(__name__)

MAX_LIVE_SESSIONS = 1000


class SessionNotFoundError(LookupError):
    """No live session with that id is owned by the caller."""


class SessionRegistry:
    """Hold coordinators between HTTP requests, keyed by session id.

    Each entry carries its own lock so answer submissions for one session are
    serialised while other sessions proceed independently.
    """

    def __init__(self, max_sessions: int = MAX_LIVE_SESSIONS) -> None:
        self._entries: Dict[str, SessionCoordinator] = {}
        self._locks: Dict[str, asyncio.Lock] = {}
        self._max_sessions = max_sessions

    def __len__(self) -> int:
        return len(self._entries)

    def register(self, coordinator: SessionCoordinator) -> str:
        session_id = coordinator.session_id
        if session_id is None:
            raise ValueError("Coordinator has no session yet")
        self._entries[session_id] = coordinator
        self._locks.setdefault(session_id, asyncio.Lock())
        self._evict()
        return session_id

    def get(self, session_id: str, user_id: str) -> SessionCoordinator:
        coordinator = self._entries.get(session_id)
        # Another user's session is reported exactly like a missing one.
        if coordinator is None or coordinator.user_id != user_id:
            raise SessionNotFoundError(session_id)
        return coordinator

    def lock(self, session_id: str) -> asyncio.Lock:
        return self._locks.setdefault(session_id, asyncio.Lock())

    def discard(self, session_id: str) -> None:
        coordinator = self._entries.pop(session_id, None)
        self._locks.pop(session_id, None)
        if coordinator is not None:
            coordinator.teardown()

    def clear(self) -> None:
        for session_id in list(self._entries):
            self.discard(session_id)

    def _evict(self) -> None:
        # Finished sessions go first, then the oldest live ones.
        overflow = len(self._entries) - self._max_sessions
        if overflow <= 0:
            return
        finished = [sid for sid, c in self._entries.items() if c.is_finished]
        live = [sid for sid, c in self._entries.items() if not c.is_finished]
        for session_id in (finished + live)[:overflow]:
            logger.info("Evicting session=%s from registry", session_id)
            self.discard(session_id)


_REGISTRY = SessionRegistry()


def get_session_registry() -> SessionRegistry:
    return _REGISTRY


__all__ = [
    "SessionNotFoundError",
    "SessionRegistry",
    "get_session_registry",
]
