"""Address parsing and millisecond arithmetic on (seconds, nanoseconds) pairs."""

import socket

_LOCALHOST = "127.0.0.1"
_NSEC_PER_SEC = 1_000_000_000


def _atoi(text: str) -> int:
    """Parse leading decimal digits like C's atoi; 0 if there are none."""
    text = text.lstrip()
    sign = 1
    if text[:1] in ("+", "-"):
        sign = -1 if text[0] == "-" else 1
        text = text[1:]
    digits = ""
    for ch in text:
        if not ch.isdigit():
            break
        digits += ch
    return sign * int(digits) if digits else 0


def resolve_host(host: str, port: str) -> tuple[str, int]:
    """Resolve ``host`` to a dotted IPv4 address and parse ``port``."""
    try:
        addr = socket.inet_ntoa(socket.inet_aton(host))
    except OSError:
        try:
            addr = socket.gethostbyname(host)
        except OSError as exc:
            raise ValueError(f"cannot find host name {host}") from exc
    return addr, _atoi(str(port)) & 0xFFFF


def make_sockaddr(hostandport: str) -> tuple[str, int]:
    """Turn ``[host:]port`` into an address tuple; the host defaults to localhost."""
    host, sep, port = hostandport.partition(":")
    if not sep:
        return resolve_host(_LOCALHOST, hostandport)
    return resolve_host(host, port)


def cmp_timespec(a: tuple[int, int], b: tuple[int, int]) -> int:
    """Compare two (sec, nsec) pairs: -1, 0 or 1."""
    a, b = tuple(a), tuple(b)
    return (a > b) - (a < b)


def _trunc_divmod(n: int, d: int) -> tuple[int, int]:
    q = abs(n) // d
    if n < 0:
        q = -q
    return q, n - q * d


def add_timespec(a: tuple[int, int], ms: int) -> tuple[int, int]:
    """Add ``ms`` milliseconds to a (sec, nsec) pair."""
    q, r = _trunc_divmod(ms, 1000)
    sec = a[0] + q
    nsec = a[1] + r * 1_000_000
    if nsec < 0:
        raise ValueError("timespec nanoseconds went negative")
    while nsec > _NSEC_PER_SEC:
        sec += 1
        nsec -= _NSEC_PER_SEC
    return sec, nsec


def diff_timespec(end: tuple[int, int], start: tuple[int, int]) -> int:
    """Milliseconds from ``start`` to ``end``; ``end`` may not be in an earlier second."""
    if end[0] < start[0]:
        raise ValueError("end lies before start")
    diff = (end[0] - start[0]) * 1000
    if end[1] > start[1]:
        diff += (end[1] - start[1]) // 1_000_000
    else:
        diff -= (start[1] - end[1]) // 1_000_000
    return diff