"""
Per-series critical sections.

Every read-modify-write of a series (generation walk, scoped edit, scoped delete)
runs inside `series_locks.hold(series_id)`. Distinct series never contend.
Across processes the store adds a row lock (SELECT ... FOR UPDATE) on top.
"""
import threading
from contextlib import contextmanager
from typing import Iterator


class SeriesLockRegistry:
    """Process-wide registry of one re-entrant lock per series id."""

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[int, threading.RLock] = {}

    def _lock_for(self, series_id: int) -> threading.RLock:
        with self._guard:
            lock = self._locks.get(series_id)
            if lock is None:
                lock = threading.RLock()
                self._locks[series_id] = lock
            return lock

    @contextmanager
    def hold(self, series_id: int) -> Iterator[None]:
        lock = self._lock_for(series_id)
        lock.acquire()
        try:
            yield
        finally:
            lock.release()

    def forget(self, series_id: int) -> None:
        """Drop the lock of a deleted series."""
        with self._guard:
            self._locks.pop(series_id, None)

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)


series_locks = SeriesLockRegistry()
