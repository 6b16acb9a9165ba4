"""In-memory session store for conversational booking."""

import asyncio
import contextlib
import logging
from collections import OrderedDict
from datetime import datetime, timezone
from typing import Callable, Optional

from app.config import settings
from .models import DialogueSession

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def _utcnow() -> datetime:
    """Get current UTC time as timezone-aware datetime."""
    return datetime.now(timezone.utc)


class SessionStore:
    """
    Process-local store of active dialogue sessions.

    Sessions are keyed by id, with a secondary index per doctor ordered by
    last activity (most recent last) for callers that do not echo back a
    session id. A periodic sweep evicts sessions idle longer than the
    timeout; sessions with a turn in flight are skipped.

    Sessions do not survive a process restart.
    """

    def __init__(
        self,
        idle_timeout_seconds: Optional[int] = None,
        clock: Optional[Clock] = None,
    ):
        """Initialize session store.

        Args:
            idle_timeout_seconds: Idle time before a session is swept
            clock: Source of "now" (tests pass a fake)
        """
        self._ttl = idle_timeout_seconds or settings.session_idle_timeout_seconds
        self._clock = clock or _utcnow
        self._sessions: dict[str, DialogueSession] = {}
        self._by_doctor: dict[str, OrderedDict[str, None]] = {}
        self._lock = asyncio.Lock()
        self._sweeper: Optional[asyncio.Task] = None

    def now(self) -> datetime:
        return self._clock()

    async def create(
        self,
        doctor_id: str,
        doctor_name: str,
        doctor_specialization: Optional[str] = None,
    ) -> DialogueSession:
        """
        Create a new session at the first step.

        Args:
            doctor_id: Doctor being booked
            doctor_name: Doctor display name
            doctor_specialization: Doctor specialization

        Returns:
            Created DialogueSession
        """
        now = self.now()
        session = DialogueSession(
            doctor_id=doctor_id,
            doctor_name=doctor_name,
            doctor_specialization=doctor_specialization,
            created_at=now,
            last_activity=now,
        )

        async with self._lock:
            self._sessions[session.session_id] = session
            self._by_doctor.setdefault(doctor_id, OrderedDict())[session.session_id] = None

        logger.info(f"Session created: {session.session_id} (active: {len(self._sessions)})")
        return session

    async def get(self, session_id: str) -> Optional[DialogueSession]:
        """
        Get session by ID.

        Returns:
            DialogueSession or None if not found
        """
        async with self._lock:
            return self._sessions.get(session_id)

    async def find_recent_for_doctor(
        self,
        doctor_id: str,
        within_seconds: int,
    ) -> Optional[DialogueSession]:
        """
        Most recently active session for a doctor, if it was active recently.

        Args:
            doctor_id: Doctor identifier
            within_seconds: Maximum idle time to still reuse the session

        Returns:
            DialogueSession or None
        """
        async with self._lock:
            index = self._by_doctor.get(doctor_id)
            if not index:
                return None

            session_id = next(reversed(index))
            session = self._sessions.get(session_id)
            if session and session.idle_seconds(self.now()) < within_seconds:
                return session
            return None

    async def touch(self, session: DialogueSession) -> None:
        """Record activity on a session."""
        async with self._lock:
            session.last_activity = self.now()
            index = self._by_doctor.get(session.doctor_id or "")
            if index is not None and session.session_id in index:
                index.move_to_end(session.session_id)

    async def delete(self, session_id: str) -> bool:
        """
        Delete a session.

        Returns:
            True if deleted
        """
        async with self._lock:
            deleted = self._remove(session_id)

        if deleted:
            logger.debug(f"Session deleted: {session_id}")
        return deleted

    async def sweep(self, now: Optional[datetime] = None) -> int:
        """
        Evict sessions idle longer than the timeout.

        Returns:
            Number of sessions evicted
        """
        now = now or self.now()

        async with self._lock:
            expired = [
                session_id
                for session_id, session in self._sessions.items()
                if session.idle_seconds(now) > self._ttl and not session.is_busy
            ]
            for session_id in expired:
                self._remove(session_id)

        if expired:
            logger.info(f"Expired {len(expired)} sessions (active: {len(self._sessions)})")
        return len(expired)

    def count(self) -> int:
        """Number of active sessions."""
        return len(self._sessions)

    def _remove(self, session_id: str) -> bool:
        """Drop a session and its index entry. Caller holds the lock."""
        session = self._sessions.pop(session_id, None)
        if session is None:
            return False

        index = self._by_doctor.get(session.doctor_id or "")
        if index is not None:
            index.pop(session_id, None)
            if not index:
                del self._by_doctor[session.doctor_id]
        return True

    # === Expiry sweeper ===

    @property
    def sweeper_running(self) -> bool:
        return self._sweeper is not None and not self._sweeper.done()

    def start_sweeper(self, interval_seconds: Optional[int] = None) -> None:
        """Start the periodic expiry sweep on the running loop."""
        if self.sweeper_running:
            return

        interval = interval_seconds or settings.session_sweep_interval_seconds
        self._sweeper = asyncio.create_task(self._sweep_loop(interval))
        logger.info(f"Session sweeper started (every {interval}s, ttl {self._ttl}s)")

    async def stop_sweeper(self) -> None:
        """Stop the periodic sweep."""
        if self._sweeper is None:
            return

        self._sweeper.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._sweeper
        self._sweeper = None
        logger.info("Session sweeper stopped")

    async def _sweep_loop(self, interval: int) -> None:
        while True:
            await asyncio.sleep(interval)
            try:
                await self.sweep()
            except Exception:
                logger.exception("Session sweep failed")


# Singleton
_store: Optional[SessionStore] = None


def get_session_store() -> SessionStore:
    """Get singleton SessionStore."""
    global _store
    if _store is None:
        _store = SessionStore()
    return _store
