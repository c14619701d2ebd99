"""Coherence checks for a file system shared between two mount points.

Files are created, appended to, read and deleted through one directory and
checked through another that shows the same underlying directory. A
failed check raises :class:`CheckFailed`.
"""

from __future__ import annotations

import argparse
import os
import struct
import sys
import threading
import time
from typing import Any, Callable

_INT = struct.Struct("=i")


class CheckFailed(Exception):
    """A file system operation or check did not give the expected result."""


def _path(d: str | os.PathLike, name: str) -> str:
    return os.path.join(os.fspath(d), name)


def _as_bytes(content: str | bytes) -> bytes:
    return content.encode() if isinstance(content, str) else bytes(content)


def _nth(prefix: str, i: int) -> str:
    return f"{prefix}-{i}"


def _pause(delay: float) -> None:
    if delay > 0:
        time.sleep(delay)


def _write_new(n: str, data: bytes) -> None:
    try:
        with open(n, "wb") as f:
            written = f.write(data)
    except OSError as exc:
        raise CheckFailed(f"create({n}): {exc.strerror or exc}") from exc
    if written != len(data):
        raise CheckFailed(f"write({n}): short write")


def create1(d, name: str, content: str | bytes, delay: float = 1.0) -> None:
    """Create ``d/name`` holding ``content``, after waiting ``delay`` seconds."""
    # Some clients only invalidate their caches when mtime moves a whole second.
    _pause(delay)
    _write_new(_path(d, name), _as_bytes(content))


def check1(d, name: str, content: str | bytes) -> bytes:
    """Check that ``d/name`` holds exactly ``content``; returns what was read."""
    n = _path(d, name)
    expected = _as_bytes(content)
    try:
        with open(n, "rb") as f:
            data = f.read()
    except OSError as exc:
        raise CheckFailed(f"open({n}): {exc.strerror or exc}") from exc
    if len(data) != len(expected):
        raise CheckFailed(f"read({n}) returned too little {len(data)}")
    if data != expected:
        raise CheckFailed(f'read({n}) got "{data!r}", not "{expected!r}"')
    return data


def unlink1(d, name: str, delay: float = 1.0) -> None:
    """Remove ``d/name`` after waiting ``delay`` seconds."""
    _pause(delay)
    n = _path(d, name)
    try:
        os.unlink(n)
    except OSError as exc:
        raise CheckFailed(f"unlink({n}): {exc.strerror or exc}") from exc


def checknot(d, name: str) -> None:
    """Check that ``d/name`` cannot be opened."""
    n = _path(d, name)
    try:
        with open(n, "rb"):
            pass
    except OSError:
        return
    raise CheckFailed(f"open({n}) succeeded for deleted file")


def append1(d, name: str, content: str | bytes, delay: float = 1.0) -> None:
    """Append ``content`` to the existing file ``d/name``."""
    _pause(delay)
    n = _path(d, name)
    data = _as_bytes(content)
    try:
        fd = os.open(n, os.O_WRONLY | os.O_APPEND)
    except OSError as exc:
        raise CheckFailed(f"append open({n}): {exc.strerror or exc}") from exc
    try:
        written = os.write(fd, data)
    except OSError as exc:
        raise CheckFailed(f"append write({n}): {exc.strerror or exc}") from exc
    finally:
        os.close(fd)
    if written != len(data):
        raise CheckFailed(f"append write({n}): short write")


def createn(d, prefix: str, n: int, delay: float = 1.0) -> None:
    """Create ``prefix-0`` .. ``prefix-(n-1)``, each holding its index as an int."""
    _pause(delay)
    for i in range(n):
        _write_new(_path(d, _nth(prefix, i)), _INT.pack(i))


def checkn(d, prefix: str, n: int) -> None:
    """Check that each ``prefix-i`` for i below ``n`` holds the int ``i``."""
    for i in range(n):
        p = _path(d, _nth(prefix, i))
        try:
            with open(p, "rb") as f:
                data = f.read(_INT.size)
        except OSError as exc:
            raise CheckFailed(f"open({p}): {exc.strerror or exc}") from exc
        if len(data) != _INT.size:
            raise CheckFailed(f"read({p}) returned too little {len(data)}")
        (j,) = _INT.unpack(data)
        if j != i:
            raise CheckFailed(f"checkn {p} contained {j} not {i}")


def unlinkn(d, prefix: str, n: int, delay: float = 1.0) -> None:
    """Remove ``prefix-0`` .. ``prefix-(n-1)``."""
    _pause(delay)
    for i in range(n):
        unlink1(d, _nth(prefix, i), 0)


def dircheck(d, n: int) -> list[str]:
    """Check that ``d`` has ``n`` distinct entries not starting with a dot.

    Returns the entry names, sorted.
    """
    try:
        names = sorted(e for e in os.listdir(d) if not e.startswith("."))
    except OSError as exc:
        raise CheckFailed(f"opendir({d}): {exc.strerror or exc}") from exc
    if len(names) != n:
        raise CheckFailed(f"wanted {n} dir entries, got {len(names)}")
    for a, b in zip(names, names[1:]):
        if a == b:
            raise CheckFailed(f"duplicate directory entry for {a}")
    return names


class _Worker:
    """Runs a sequence of steps on another thread and reports its failure."""

    def __init__(self, steps: list[tuple[Callable[..., Any], tuple]]):
        self._error: BaseException | None = None
        self._thread = threading.Thread(target=self._run, args=(steps,), daemon=True)
        self._thread.start()

    def _run(self, steps) -> None:
        try:
            for fn, args in steps:
                fn(*args)
        except BaseException as exc:
            self._error = exc

    def reap(self) -> None:
        self._thread.join()
        if self._error is not None:
            raise CheckFailed("child exited unhappily") from self._error


def _make_dir(path: str) -> None:
    try:
        os.mkdir(path, 0o777)
    except OSError as exc:
        raise CheckFailed(f"failed: mkdir({path}): {exc.strerror or exc}") from exc


def _require(path: str, made: str) -> None:
    if not os.path.exists(path):
        raise CheckFailed(f"failed: access({path}) after mkdir {made}")


def _section(title: str, done: list[str]) -> None:
    print(f"{title}: ", end="", flush=True)
    done.append(title)


def run_coherence(dir1, dir2, delay: float = 1.0) -> list[str]:
    """Run the coherence checks through two views of one directory.

    Returns the titles of the sections that passed.
    """
    pid = os.getpid()
    d1 = _path(dir1, f"d{pid}")
    _make_dir(d1)
    d2 = _path(dir2, f"d{pid}")
    _require(d2, d1)
    big = "x" * 20000
    passed: list[str] = []

    _section("Create then read", passed)
    create1(d1, "f1", "aaa", delay)
    check1(d2, "f1", "aaa")
    check1(d1, "f1", "aaa")
    print("OK")

    _section("Unlink", passed)
    unlink1(d2, "f1", delay)
    create1(d1, "fx1", "fxx", delay)
    unlink1(d1, "fx1", delay)
    checknot(d1, "f1")
    checknot(d2, "f1")
    create1(d1, "f2", "222", delay)
    unlink1(d2, "f2", delay)
    checknot(d1, "f2")
    checknot(d2, "f2")
    create1(d1, "f3", "333", delay)
    check1(d2, "f3", "333")
    check1(d1, "f3", "333")
    unlink1(d1, "f3", delay)
    create1(d2, "fx2", "22", delay)
    unlink1(d2, "fx2", delay)
    checknot(d2, "f3")
    checknot(d1, "f3")
    print("OK")

    _section("Append", passed)
    create1(d2, "f1", "aaa", delay)
    append1(d1, "f1", "bbb", delay)
    append1(d2, "f1", "ccc", delay)
    check1(d1, "f1", "aaabbbccc")
    check1(d2, "f1", "aaabbbccc")
    print("OK")

    _section("Readdir", passed)
    dircheck(d1, 1)
    dircheck(d2, 1)
    unlink1(d1, "f1", delay)
    dircheck(d1, 0)
    dircheck(d2, 0)
    create1(d2, "f2", "aaa", delay)
    create1(d1, "f3", "aaa", delay)
    dircheck(d1, 2)
    dircheck(d2, 2)
    unlink1(d2, "f2", delay)
    dircheck(d2, 1)
    dircheck(d1, 1)
    unlink1(d2, "f3", delay)
    dircheck(d1, 0)
    dircheck(d2, 0)
    print("OK")

    _section("Many sequential creates", passed)
    createn(d1, "aa", 10, delay)
    createn(d2, "bb", 10, delay)
    dircheck(d2, 20)
    checkn(d2, "bb", 10)
    checkn(d2, "aa", 10)
    checkn(d1, "aa", 10)
    checkn(d1, "bb", 10)
    unlinkn(d1, "aa", 10, delay)
    unlinkn(d2, "bb", 10, delay)
    print("OK")

    _section("Write 20000 bytes", passed)
    create1(d1, "bf", big, delay)
    check1(d1, "bf", big)
    check1(d2, "bf", big)
    unlink1(d1, "bf", delay)
    print("OK")

    _section("Concurrent creates", passed)
    child = _Worker([(createn, (d2, "xx", 20, delay))])
    createn(d1, "yy", 20, delay)
    _pause(10 * delay)
    child.reap()
    dircheck(d1, 40)
    checkn(d1, "xx", 20)
    checkn(d2, "yy", 20)
    unlinkn(d1, "xx", 20, delay)
    unlinkn(d1, "yy", 20, delay)
    print("OK")

    _section("Concurrent creates of the same file", passed)
    child = _Worker([(createn, (d2, "zz", 20, delay))])
    createn(d1, "zz", 20, delay)
    _pause(4 * delay)
    dircheck(d1, 20)
    child.reap()
    checkn(d1, "zz", 20)
    checkn(d2, "zz", 20)
    unlinkn(d1, "zz", 20, delay)
    print("OK")

    _section("Concurrent create/delete", passed)
    createn(d1, "x1", 20, delay)
    createn(d2, "x2", 20, delay)
    child = _Worker([(unlinkn, (d2, "x1", 20, delay)),
                     (createn, (d1, "x3", 20, delay))])
    createn(d1, "x4", 20, delay)
    child.reap()
    unlinkn(d2, "x2", 20, delay)
    unlinkn(d2, "x4", 20, delay)
    unlinkn(d2, "x3", 20, delay)
    dircheck(d1, 0)
    print("OK")

    _section("Concurrent creates, same file, same server", passed)
    child = _Worker([(createn, (d1, "zz", 20, delay))])
    createn(d1, "zz", 20, delay)
    _pause(2 * delay)
    dircheck(d1, 20)
    child.reap()
    checkn(d1, "zz", 20)
    unlinkn(d1, "zz", 20, delay)
    print("OK")

    print("Passed all tests.")
    return passed


def run_separate_dirs(dir1, dir2, delay: float = 1.0) -> tuple[str, str]:
    """Create and delete many files in two separate directories at once.

    Each directory is left with one file. Returns the two directories used.
    """
    pid = os.getpid()
    d1 = _path(dir1, f"da{pid}")
    _make_dir(d1)
    d2 = _path(dir2, f"db{pid}")
    _make_dir(d2)
    _require(_path(dir2, f"da{pid}"), d1)

    print("Create/delete in separate directories: ", end="", flush=True)
    child = _Worker([(createn, (d2, "xx", 100, delay)),
                     (unlinkn, (d2, "xx", 99, delay))])
    createn(d1, "yy", 100, delay)
    unlinkn(d1, "yy", 99, delay)
    _pause(4 * delay)
    child.reap()
    dircheck(d1, 1)
    dircheck(d2, 1)
    print("tests completed OK")
    return d1, d2


def main(argv=None) -> int:
    """Run the coherence checks, or with ``--separate`` the separate-directory check."""
    if argv is None:
        argv = sys.argv[1:]
    parser = argparse.ArgumentParser(prog="fscheck", add_help=False)
    parser.add_argument("--separate", action="store_true")
    parser.add_argument("--delay", type=float, default=1.0)
    parser.add_argument("dirs", nargs="*")
    try:
        args = parser.parse_args(list(argv))
    except SystemExit:
        args = None
    if args is None or len(args.dirs) != 2:
        print("Usage: fscheck [--separate] [--delay SECONDS] dir1 dir2", file=sys.stderr)
        return 1
    sys.stdout.flush()
    try:
        if args.separate:
            run_separate_dirs(args.dirs[0], args.dirs[1], args.delay)
        else:
            run_coherence(args.dirs[0], args.dirs[1], args.delay)
    except CheckFailed as exc:
        print(f"\nfscheck: {exc}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())