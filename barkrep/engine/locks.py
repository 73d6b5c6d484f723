"""
barkrep.engine.locks — Per-user lock registry
==============================================

Every mutation of a user's reputation state (ledger append, spend, unlock,
tier update) runs while holding that user's lock, so two requests landing
for the same user at once serialize instead of overwriting each other.
Different users get different locks and never wait on one another.

The services also re-read rows ``FOR UPDATE`` inside their transaction;
the registry covers the in-process case and SQLite, the row lock covers
multiple worker processes on PostgreSQL.
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from threading import Lock, RLock


class UserLockRegistry:
    """Hands out one re-entrant lock per user id.

    Re-entrant because an achievement unlock (holding the lock) pays its
    reward through the ledger, which takes the same lock again.  Thread-safe.
    """

    def __init__(self) -> None:
        self._guard = Lock()
        self._locks: dict[str, RLock] = {}

    def lock_for(self, user_id: str) -> RLock:
        """Return the lock for *user_id*, creating it on first use."""
        with self._guard:
            lock = self._locks.get(user_id)
            if lock is None:
                lock = RLock()
                self._locks[user_id] = lock
            return lock

    @contextmanager
    def hold(self, user_id: str) -> Iterator[None]:
        """Context manager holding *user_id*'s lock for the block."""
        lock = self.lock_for(user_id)
        with lock:
            yield

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)


# Module-level default instance (tests can inject their own)
_default_registry = UserLockRegistry()


def get_default_registry() -> UserLockRegistry:
    """Return the module-level default registry for production use."""
    return _default_registry
