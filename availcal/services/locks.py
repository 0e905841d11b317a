import threading
from contextlib import contextmanager
from typing import Dict


class EventLockRegistry:
    """
    Serializes mutations per event id.

    Every write to an event or its exceptions happens inside hold(event_id),
    so a single-day delete and a full delete of the same series cannot
    interleave. Reads never take these locks.
    """

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: Dict[str, threading.Lock] = {}

    def _lock_for(self, event_id: str) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(event_id)
            if lock is None:
                lock = threading.Lock()
                self._locks[event_id] = lock
            return lock

    @contextmanager
    def hold(self, event_id: str):
        lock = self._lock_for(event_id)
        with lock:
            yield

    def forget(self, event_id: str):
        """Drop the lock of a deleted event"""
        with self._guard:
            self._locks.pop(event_id, None)
