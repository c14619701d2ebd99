"""A fixed-size pool of worker threads fed from a bounded job queue."""

import logging
import threading
from typing import Any, Callable

from .fifo import Fifo

_log = logging.getLogger(__name__)


class ThreadPool:
    """Runs jobs on ``size`` worker threads.

    The job queue holds at most ``100 * size`` jobs. With ``blocking`` true,
    ``add_job`` waits for space; otherwise it returns False when full.
    """

    def __init__(self, size: int, blocking: bool = True):
        self._blocking = blocking
        self._jobs = Fifo(100 * size)
        self._closed = False
        self._close_lock = threading.Lock()
        self._threads = [
            threading.Thread(target=self._worker, name=f"pool-worker-{i}", daemon=True)
            for i in range(size)
        ]
        for t in self._threads:
            t.start()

    def _worker(self) -> None:
        while (job := self.take_job()) is not None:
            fn, args = job
            try:
                fn(*args)
            except Exception:
                _log.exception("pool job %r failed", fn)

    def add_job(self, fn: Callable[..., Any], *args: Any) -> bool:
        """Queue ``fn(*args)``; returns False if the queue is full and not blocking."""
        if self._closed:
            raise RuntimeError("thread pool is closed")
        return self._jobs.enq((fn, args), self._blocking)

    def take_job(self):
        """Wait for the next job; None tells a worker to stop."""
        return self._jobs.deq()

    def close(self) -> None:
        """Stop every worker once the queued jobs are done and wait for them."""
        with self._close_lock:
            if self._closed:
                return
            self._closed = True
        for _ in self._threads:
            self._jobs.enq(None)
        for t in self._threads:
            t.join()

    def __enter__(self) -> "ThreadPool":
        return self

    def __exit__(self, *args) -> None:
        self.close()