# confessional/user_locks.py
"""
Per-user serialization of read-modify-write sequences.

The KV store has no compare-and-swap, so every sequence that reads a
user's profile and writes it back (completion, deletion, bulk deletion,
donations, profile edits) runs under that user's lock. Locks are
re-entrant so a locked lifecycle step may call into the profile store,
which takes the same lock.

Scope is one process. Running several gunicorn workers against the same
store needs a distributed lock instead.
"""

from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Dict, Iterator


class _Entry:
    __slots__ = ("lock", "refs")

    def __init__(self):
        self.lock = threading.RLock()
        self.refs = 0


class UserLockRegistry:
    """
    Hands out one RLock per user id.

    An entry lives only while some thread holds or waits for it, so the
    registry stays as small as the number of users with work in flight.
    """

    def __init__(self):
        self._locks: Dict[str, _Entry] = {}
        self._guard = threading.Lock()

    @contextmanager
    def hold(self, user_id: str) -> Iterator[None]:
        with self._guard:
            entry = self._locks.get(user_id)
            if entry is None:
                entry = self._locks[user_id] = _Entry()
            entry.refs += 1
        try:
            with entry.lock:
                yield
        finally:
            with self._guard:
                entry.refs -= 1
                if entry.refs == 0:
                    del self._locks[user_id]

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)


__all__ = ["UserLockRegistry"]
