"""Per-session mutual exclusion.

A :class:`KeyedLocks` registry hands out one ``threading.Lock`` per session
token.  Distinct sessions never share a lock, so they proceed in parallel;
every operation on one session's ledger (or log) is serialized.

Locks are created lazily and kept for the process lifetime.  Sessions are
never destroyed, and a lock is a few hundred bytes.
"""
import threading
from contextlib import contextmanager
from typing import Dict, Iterator


class KeyedLocks:
    """Registry of locks keyed by an arbitrary string."""

    def __init__(self) -> None:
        self._locks: Dict[str, threading.Lock] = {}
        self._registry_lock = threading.Lock()

    def get(self, key: str) -> threading.Lock:
        with self._registry_lock:
            lock = self._locks.get(key)
            if lock is None:
                lock = threading.Lock()
                self._locks[key] = lock
            return lock

    @contextmanager
    def hold(self, key: str) -> Iterator[None]:
        """Context manager holding the lock for *key*."""
        lock = self.get(key)
        with lock:
            yield
