"""In-process session store with TTL expiry."""

import asyncio
import time
from datetime import datetime, timezone
from typing import Any, Callable

import structlog

from dinequery.config import get_settings
from dinequery.models.state import SessionState

logger = structlog.get_logger()
settings = get_settings()


class SessionStore:
    """Keep per-thread conversation state for a bounded inactivity window.

    Expired entries are removed lazily on ``get``; ``sweep`` removes them
    eagerly. Each thread id has its own lock so turns on one thread run
    in order while unrelated threads proceed concurrently.

    Args:
        ttl_seconds: Inactivity window; defaults to the configured session TTL
        clock: Monotonic time source, injectable for tests
    """

    def __init__(
        self,
        ttl_seconds: float | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.ttl_seconds = ttl_seconds if ttl_seconds is not None else settings.session_ttl_seconds
        self._clock = clock
        self._entries: dict[str, tuple[float, SessionState]] = {}
        self._locks: dict[str, asyncio.Lock] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, thread_id: str) -> bool:
        return self.get(thread_id) is not None

    def _is_expired(self, touched_at: float) -> bool:
        return self._clock() - touched_at >= self.ttl_seconds

    def get(self, thread_id: str) -> SessionState | None:
        """Get a session.

        Args:
            thread_id: Conversation identifier

        Returns:
            SessionState if present and fresh, None otherwise
        """
        entry = self._entries.get(thread_id)
        if entry is None:
            return None

        touched_at, session = entry
        if self._is_expired(touched_at):
            self._evict(thread_id)
            logger.info("session_expired", thread_id=thread_id)
            return None
        return session

    def set(self, session: SessionState) -> None:
        """Store a session and restart its inactivity window."""
        session.updated_at = datetime.now(timezone.utc)
        self._entries[session.thread_id] = (self._clock(), session)
        logger.debug("session_saved", thread_id=session.thread_id)

    def get_or_create(self, thread_id: str) -> SessionState:
        session = self.get(thread_id)
        if session is None:
            session = SessionState(thread_id=thread_id)
            logger.info("session_created", thread_id=thread_id)
        return session

    def update(self, thread_id: str, **changes: Any) -> SessionState:
        """Apply field changes to a session, creating it if needed.

        Args:
            thread_id: Conversation identifier
            **changes: SessionState fields to overwrite

        Returns:
            The stored SessionState
        """
        current = self.get_or_create(thread_id)
        updated = current.model_copy(update=changes)
        self.set(updated)
        return updated

    def delete(self, thread_id: str) -> bool:
        """Delete a session.

        Returns:
            True if deleted, False if not found
        """
        deleted = self._entries.pop(thread_id, None) is not None
        self._drop_lock(thread_id)
        if deleted:
            logger.info("session_deleted", thread_id=thread_id)
        return deleted

    def lock(self, thread_id: str) -> asyncio.Lock:
        """Lock that serializes turns on one thread."""
        lock = self._locks.get(thread_id)
        if lock is None:
            lock = self._locks[thread_id] = asyncio.Lock()
        return lock

    def _drop_lock(self, thread_id: str) -> None:
        lock = self._locks.get(thread_id)
        if lock is not None and not lock.locked():
            del self._locks[thread_id]

    def _evict(self, thread_id: str) -> None:
        self._entries.pop(thread_id, None)
        self._drop_lock(thread_id)

    def sweep(self) -> int:
        """Remove every expired session. Returns the number removed."""
        expired = [tid for tid, (touched_at, _) in self._entries.items() if self._is_expired(touched_at)]
        for thread_id in expired:
            self._evict(thread_id)
        if expired:
            logger.info("session_sweep", removed=len(expired), active=len(self._entries))
        return len(expired)

    async def run_sweeper(self, interval_seconds: float | None = None) -> None:
        """Sweep periodically until cancelled."""
        interval = interval_seconds or settings.session_sweep_interval_seconds
        while True:
            await asyncio.sleep(interval)
            self.sweep()
