"""Keyed mutual exclusion.

Protean commits each ``repo.add`` as its own unit of work and offers no
compare-and-swap, so read-modify-write sequences on one key (a product's
stock, a user's cart, an order's status and lines) are serialised in-process.
"""

import threading
from collections.abc import Iterator
from contextlib import contextmanager


class KeyedLocks:
    """A registry of re-entrant locks created on first use of each key."""

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[str, threading.RLock] = {}

    def lock_for(self, key: str) -> threading.RLock:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = threading.RLock()
                self._locks[key] = lock
            return lock

    @contextmanager
    def hold(self, key: str) -> Iterator[None]:
        lock = self.lock_for(str(key))
        with lock:
            yield
