"""A thread-safe FIFO queue with an optional capacity limit."""

import threading
from collections import deque
from typing import Any


class Fifo:
    """Queue whose ``enq`` blocks when full and ``deq`` blocks when empty.

    A limit of 0 means unbounded.
    """

    def __init__(self, limit: int = 0):
        self._q: deque = deque()
        self._max = limit
        self._lock = threading.Lock()
        self._non_empty = threading.Condition(self._lock)
        self._has_space = threading.Condition(self._lock)

    def __len__(self) -> int:
        with self._lock:
            return len(self._q)

    def enq(self, item: Any, blocking: bool = True) -> bool:
        """Append ``item``; when full, wait or return False if not blocking."""
        with self._lock:
            while self._max and len(self._q) >= self._max:
                if not blocking:
                    return False
                self._has_space.wait()
            self._q.append(item)
            self._non_empty.notify()
            return True

    def deq(self) -> Any:
        """Remove and return the oldest item, waiting until there is one."""
        with self._lock:
            while not self._q:
                self._non_empty.wait()
            item = self._q.popleft()
            if self._max and len(self._q) < self._max:
                self._has_space.notify()
            return item