"""Run-session storage.

The engine only depends on the `SessionStore` protocol. The default store is
in-memory with time-based eviction; runs are volatile and are not recovered
after a restart.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from triage_orchestrator.engine.results import RunSession

logger = logging.getLogger(__name__)


class SessionStore(Protocol):
    def put(self, session_id: str, session: RunSession) -> None: ...

    def get(self, session_id: str) -> RunSession | None: ...

    def delete(self, session_id: str) -> bool: ...

    def list(self) -> list[RunSession]: ...

    def purge_older_than(self, seconds: float) -> int: ...


@dataclass
class InMemorySessionStore:
    """Process-wide session table keyed by session id.

    Entries older than `ttl_seconds` are evicted lazily on access and by
    `purge_older_than`. Age counts from when a session object was first
    stored; storing a new object under an existing id (a re-run) restarts it.
    """

    ttl_seconds: float | None = 24 * 3600
    clock: Callable[[], float] = field(default=time.monotonic)

    def __post_init__(self) -> None:
        self._lock = threading.Lock()
        self._sessions: dict[str, tuple[float, RunSession]] = {}

    def _expired_unlocked(self, stored_at: float, max_age: float | None) -> bool:
        return max_age is not None and self.clock() - stored_at > max_age

    def put(self, session_id: str, session: RunSession) -> None:
        with self._lock:
            existing = self._sessions.get(session_id)
            if existing is not None and existing[1] is session:
                stored_at = existing[0]
            else:
                stored_at = self.clock()
            self._sessions[session_id] = (stored_at, session)

    def get(self, session_id: str) -> RunSession | None:
        with self._lock:
            entry = self._sessions.get(session_id)
            if entry is None:
                return None
            stored_at, session = entry
            if self._expired_unlocked(stored_at, self.ttl_seconds):
                del self._sessions[session_id]
                logger.debug("Session expired", extra={"session_id": session_id})
                return None
            return session

    def delete(self, session_id: str) -> bool:
        with self._lock:
            return self._sessions.pop(session_id, None) is not None

    def list(self) -> list[RunSession]:
        with self._lock:
            return [
                session
                for stored_at, session in self._sessions.values()
                if not self._expired_unlocked(stored_at, self.ttl_seconds)
            ]

    def purge_older_than(self, seconds: float) -> int:
        with self._lock:
            stale = [
                session_id
                for session_id, (stored_at, _session) in self._sessions.items()
                if self._expired_unlocked(stored_at, seconds)
            ]
            for session_id in stale:
                del self._sessions[session_id]
        if stale:
            logger.info("Purged sessions", extra={"count": len(stale)})
        return len(stale)

    def purge_expired(self) -> int:
        if self.ttl_seconds is None:
            return 0
        return self.purge_older_than(self.ttl_seconds)
