"""Session Registry.

In-memory record of which principals have been active recently, used for
presence display ("who is online"). It is advisory only: authority lives in
the session token, and nothing here is persisted.

Entries are keyed by principal id and never removed. An entry whose
``last_seen`` is older than the activity window simply drops out of
``list_active()``.

Writers never wait. Each entry has its own lock, acquired without blocking;
if another request is updating the same entry at that moment, ``touch``
gives up and reports ``TouchResult.WOULD_BLOCK`` instead of stalling the
request.
"""

import threading
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Callable

from forum.core.logging import get_logger

logger = get_logger(__name__)

ACTIVITY_WINDOW = timedelta(minutes=5)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class TouchResult(str, Enum):
    """Outcome of SessionRegistry.touch."""
    UPDATED = "updated"
    ABSENT_KEY = "absent_key"
    WOULD_BLOCK = "would_block"


@dataclass
class ActiveSession:
    """Presence record for one principal."""
    user_id: str
    username: str
    login_time: datetime
    last_seen: datetime
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    def to_dict(self) -> dict:
        return {
            "user_id": self.user_id,
            "username": self.username,
            "login_time": self.login_time.isoformat(),
            "last_seen": self.last_seen.isoformat(),
        }


class SessionRegistry:
    """Concurrent map of principal id -> ActiveSession.

    One instance is created per process at application startup and handed
    to request handlers through dependency injection.
    """

    def __init__(
        self,
        clock: Callable[[], datetime] = utc_now,
        window: timedelta = ACTIVITY_WINDOW,
    ):
        self._clock = clock
        self.window = window
        self._entries: dict[str, ActiveSession] = {}
        # Guards insertion of new keys only; updates use per-entry locks.
        self._map_lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, user_id: object) -> bool:
        return str(user_id) in self._entries

    def get(self, user_id: str) -> ActiveSession | None:
        return self._entries.get(str(user_id))

    def register(self, user_id: str, username: str) -> ActiveSession:
        """Create the entry for a principal, or refresh it if present.

        Called when a principal logs in (password, email verification or
        OAuth). ``login_time`` is reset on every call.
        """
        key = str(user_id)
        now = self._clock()
        with self._map_lock:
            entry = self._entries.get(key)
            if entry is None:
                entry = ActiveSession(user_id=key, username=username, login_time=now, last_seen=now)
                self._entries[key] = entry
                return entry

        if entry._lock.acquire(blocking=False):
            try:
                entry.username = username
                entry.login_time = now
                entry.last_seen = now
            finally:
                entry._lock.release()
        else:
            logger.warning("Session entry locked, skipping refresh", user_id=key)
        return entry

    def touch(self, user_id: str) -> TouchResult:
        """Mark a principal as seen now, without ever blocking.

        Returns:
            UPDATED if last_seen was refreshed, ABSENT_KEY if the principal
            has no entry, WOULD_BLOCK if the entry was locked by a concurrent
            writer. The last two are soft failures: callers log and continue.
        """
        key = str(user_id)
        entry = self._entries.get(key)
        if entry is None:
            logger.warning("No active session to touch", user_id=key)
            return TouchResult.ABSENT_KEY

        if not entry._lock.acquire(blocking=False):
            logger.warning("Session entry locked, touch skipped", user_id=key)
            return TouchResult.WOULD_BLOCK
        try:
            entry.last_seen = self._clock()
        finally:
            entry._lock.release()
        return TouchResult.UPDATED

    def list_active(self) -> list[ActiveSession]:
        """Entries seen within the activity window, most recent first."""
        now = self._clock()
        # list() takes a snapshot so concurrent inserts do not break iteration
        snapshot = list(self._entries.values())
        active = [e for e in snapshot if now - e.last_seen < self.window]
        active.sort(key=lambda e: e.last_seen, reverse=True)
        return active
