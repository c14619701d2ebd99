"""Readiness polling of file descriptors on one background thread.

A :class:`PollMgr` watches file descriptors with a :class:`SelectAIO` and
calls ``read_cb(fd)`` / ``write_cb(fd)`` on the callback object registered
for each descriptor that becomes ready.
"""

from __future__ import annotations

import logging
import os
import select
import socket
import threading
from enum import IntFlag
from typing import Protocol

from .debuglog import DebugLevel, log

_log = logging.getLogger(__name__)

MAX_POLL_FDS = 128


class PollFlag(IntFlag):
    NONE = 0x0
    RDONLY = 0x1
    WRONLY = 0x10
    RDWR = 0x11


class _AioCallback(Protocol):
    def read_cb(self, fd: int) -> None: ...

    def write_cb(self, fd: int) -> None: ...


class SelectAIO:
    """Sets of watched descriptors waited on with ``select``.

    Changing the sets wakes a pending :meth:`wait_ready` through an internal
    socket pair so that the change takes effect at once.
    """

    def __init__(self):
        self._rfds: set[int] = set()
        self._wfds: set[int] = set()
        self._lock = threading.Lock()
        self._wake_r, self._wake_w = socket.socketpair()
        self._wake_r.setblocking(False)
        self._wake_w.setblocking(False)

    def _wake(self) -> None:
        try:
            self._wake_w.send(b"\x01")
        except BlockingIOError:
            pass  # a wake-up is already pending

    def watch_fd(self, fd: int, flag: PollFlag) -> None:
        """Start watching ``fd`` for reading, writing or both."""
        with self._lock:
            if flag == PollFlag.RDONLY:
                self._rfds.add(fd)
            elif flag == PollFlag.WRONLY:
                self._wfds.add(fd)
            else:
                self._rfds.add(fd)
                self._wfds.add(fd)
        self._wake()

    def is_watched(self, fd: int, flag: PollFlag) -> bool:
        with self._lock:
            if flag == PollFlag.RDONLY:
                return fd in self._rfds
            if flag == PollFlag.WRONLY:
                return fd in self._wfds
            return fd in self._rfds and fd in self._wfds

    def unwatch_fd(self, fd: int, flag: PollFlag) -> bool:
        """Stop watching ``fd`` for ``flag``; True if it is no longer watched at all."""
        with self._lock:
            if flag == PollFlag.RDONLY:
                self._rfds.discard(fd)
            elif flag == PollFlag.WRONLY:
                self._wfds.discard(fd)
            elif flag == PollFlag.RDWR:
                self._rfds.discard(fd)
                self._wfds.discard(fd)
            else:
                raise ValueError(f"cannot unwatch with flag {flag!r}")
            gone = fd not in self._rfds and fd not in self._wfds
        if flag == PollFlag.RDWR:
            self._wake()
        return gone

    def _prune_closed(self) -> None:
        with self._lock:
            for fd in list(self._rfds | self._wfds):
                try:
                    os.fstat(fd)
                except OSError:
                    self._rfds.discard(fd)
                    self._wfds.discard(fd)

    def wait_ready(self) -> tuple[list[int], list[int]]:
        """Block until some watched descriptor is ready or the sets change.

        Returns the readable and the writable descriptors, each ascending.
        """
        with self._lock:
            rl = list(self._rfds)
            wl = list(self._wfds)
        wake_fd = self._wake_r.fileno()
        try:
            readable, writable, _ = select.select(rl + [wake_fd], wl, [])
        except (OSError, ValueError) as exc:
            log(DebugLevel.OFF, f"PollMgr::select_loop failure {exc}")
            self._prune_closed()
            return [], []
        if wake_fd in readable:
            try:
                while self._wake_r.recv(4096):
                    pass
            except BlockingIOError:
                pass
        readable = sorted(fd for fd in readable if fd != wake_fd)
        return readable, sorted(writable)


class PollMgr:
    """Dispatches readiness events to registered callbacks on one thread."""

    _instance: PollMgr | None = None
    _instance_lock = threading.Lock()

    def __init__(self):
        self._lock = threading.Lock()
        self._changedone = threading.Condition(self._lock)
        self._callbacks: dict[int, _AioCallback] = {}
        self._aio = SelectAIO()
        self._pending_change = False
        self._generation = 0
        self._thread = threading.Thread(
            target=self.wait_loop, name="pollmgr", daemon=True
        )
        self._thread.start()

    @classmethod
    def instance(cls) -> PollMgr:
        """The process-wide poll manager, created on first use."""
        with cls._instance_lock:
            if cls._instance is None:
                cls._instance = cls()
            return cls._instance

    def add_callback(self, fd: int, flag: PollFlag, callback: _AioCallback) -> None:
        """Watch ``fd`` for ``flag`` and report its readiness to ``callback``."""
        with self._lock:
            existing = self._callbacks.get(fd)
            if existing is not None and existing is not callback:
                raise ValueError(f"fd {fd} already has another callback")
            self._aio.watch_fd(fd, flag)
            self._callbacks[fd] = callback

    def del_callback(self, fd: int, flag: PollFlag) -> None:
        """Stop watching ``fd`` for ``flag``; drop its callback once unwatched."""
        with self._lock:
            if self._aio.unwatch_fd(fd, flag):
                self._callbacks.pop(fd, None)

    def has_callback(self, fd: int, flag: PollFlag, callback: _AioCallback) -> bool:
        with self._lock:
            if self._callbacks.get(fd) is not callback:
                return False
            return self._aio.is_watched(fd, flag)

    def block_remove_fd(self, fd: int) -> None:
        """Remove every watch on ``fd``.

        On return no callback for ``fd`` will be called again.
        """
        with self._lock:
            self._aio.unwatch_fd(fd, PollFlag.RDWR)
            if threading.current_thread() is not self._thread:
                self._pending_change = True
                generation = self._generation
                while self._generation == generation:
                    self._changedone.wait()
            self._callbacks.pop(fd, None)

    def wait_loop(self) -> None:
        """Wait for readiness and dispatch callbacks, forever."""
        while True:
            with self._lock:
                if self._pending_change:
                    self._pending_change = False
                    self._generation += 1
                    self._changedone.notify_all()
            readable, writable = self._aio.wait_ready()
            for fd in readable:
                cb = self._callbacks.get(fd)
                if cb is not None:
                    try:
                        cb.read_cb(fd)
                    except Exception:
                        _log.exception("read callback for fd %d failed", fd)
            for fd in writable:
                cb = self._callbacks.get(fd)
                if cb is not None:
                    try:
                        cb.write_cb(fd)
                    except Exception:
                        _log.exception("write callback for fd %d failed", fd)