"""Per-identity locking."""

from __future__ import annotations

import threading
from collections.abc import Iterator
from contextlib import contextmanager


class IdentityLockTable:
    """Hands out one lock per map identity.

    Locks are created on first use and kept for the lifetime of the table;
    the number of distinct maps a user exports is small.
    """

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[str, threading.Lock] = {}

    def lock_for(self, identity: str) -> threading.Lock:
        """Return the lock guarding ``identity``."""
        with self._guard:
            lock = self._locks.get(identity)
            if lock is None:
                lock = threading.Lock()
                self._locks[identity] = lock
            return lock

    @contextmanager
    def hold(self, identity: str) -> Iterator[None]:
        """Hold the lock for ``identity`` for the duration of the block."""
        lock = self.lock_for(identity)
        with lock:
            yield

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)
