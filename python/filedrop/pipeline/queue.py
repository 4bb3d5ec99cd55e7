"""
Thread-safe ingestion queue.

This module provides the IngestionQueue class that decouples notification
delivery (watchdog's observer thread) from processing (the worker thread).
"""

import logging
import threading
from collections import deque
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class IngestionQueue:
    """
    Unbounded FIFO of pending file paths with a wake signal.

    Behavior:
    ---------
    - enqueue() appends under the lock and wakes a parked consumer
    - try_dequeue() pops the oldest path, or returns None without blocking
    - No deduplication: the same path enqueued twice is processed twice

    The underlying Condition is exposed as `lock` so the worker can make
    its lifecycle transitions under the same mutual exclusion as the queue.
    The lock is re-entrant, so queue methods may be called while holding it.
    """

    def __init__(self) -> None:
        self._items: deque[str] = deque()
        self._cond = threading.Condition(threading.RLock())

    @property
    def lock(self) -> threading.Condition:
        """Condition guarding the queue (and the worker lifecycle)."""
        return self._cond

    def enqueue(self, path: str) -> None:
        """Append path and signal any parked consumer."""
        with self._cond:
            self._items.append(path)
            self._cond.notify_all()
        logger.debug(f"Enqueued {path}")

    def try_dequeue(self) -> Optional[str]:
        """Remove and return the oldest path, or None if empty."""
        with self._cond:
            if not self._items:
                return None
            return self._items.popleft()

    def wait_for_item(
        self, should_stop: Callable[[], bool], timeout: Optional[float] = None
    ) -> bool:
        """
        Block until an item is available or should_stop() becomes true.

        Args:
        -----
        should_stop: Predicate checked under the lock on every wake-up
        timeout: Optional upper bound in seconds

        Returns:
        --------
        True if an item is available (even when stopping), False otherwise
        """
        with self._cond:
            self._cond.wait_for(lambda: bool(self._items) or should_stop(), timeout)
            return bool(self._items)

    def wake(self) -> None:
        """Wake parked consumers without adding work (used on stop)."""
        with self._cond:
            self._cond.notify_all()

    def is_empty(self) -> bool:
        with self._cond:
            return not self._items

    def snapshot(self) -> list[str]:
        """Copy of pending paths, oldest first."""
        with self._cond:
            return list(self._items)

    def __len__(self) -> int:
        with self._cond:
            return len(self._items)
