"""Per-drawing mutual exclusion for the draw, lock, edit, and cancel paths."""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from typing import Hashable, Iterator, Optional

from ..errors import StateConflictError

logger = logging.getLogger(__name__)


class KeyedLock:
    """In-process mutex keyed by drawing id.

    Suitable when a single scheduler process owns the drawings; multi-process
    deployments additionally rely on the row lock taken by
    :meth:`Drawing.get_for_update`.
    """

    def __init__(self, timeout: Optional[float] = 30.0) -> None:
        self._timeout = timeout
        self._guard = threading.Lock()
        self._locks: dict[Hashable, threading.Lock] = {}
        self._waiters: dict[Hashable, int] = {}

    def _checkout(self, key: Hashable) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = threading.Lock()
                self._locks[key] = lock
            self._waiters[key] = self._waiters.get(key, 0) + 1
            return lock

    def _release(self, key: Hashable) -> None:
        with self._guard:
            remaining = self._waiters.get(key, 1) - 1
            if remaining <= 0:
                self._waiters.pop(key, None)
                self._locks.pop(key, None)
            else:
                self._waiters[key] = remaining

    @contextmanager
    def hold(self, key: Hashable, timeout: Optional[float] = None) -> Iterator[None]:
        """Hold the lock for ``key``.

        Raises
        ------
        StateConflictError
            If the lock cannot be acquired within the timeout.
        """
        wait = self._timeout if timeout is None else timeout
        lock = self._checkout(key)
        acquired = lock.acquire(timeout=-1 if wait is None else wait)
        if not acquired:
            self._release(key)
            logger.warning(f"Timed out waiting for lock on drawing {key}")
            raise StateConflictError(
                f"drawing {key} is busy",
                drawing_id=key if isinstance(key, int) else None,
            )
        try:
            yield
        finally:
            lock.release()
            self._release(key)

    def is_held(self, key: Hashable) -> bool:
        with self._guard:
            lock = self._locks.get(key)
        return lock is not None and lock.locked()


DEFAULT_DRAWING_LOCKS = KeyedLock()

__all__ = ["KeyedLock", "DEFAULT_DRAWING_LOCKS"]
