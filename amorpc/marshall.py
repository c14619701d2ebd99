"""Wire encoding for RPC requests and replies.

Every value is written in network (big-endian) order. A buffer produced by
:class:`Marshall` starts with ``RPC_HEADER_SZ`` bytes reserved for the PDU
size and the request or reply header; the content follows.
"""

from __future__ import annotations

import struct
from dataclasses import dataclass
from enum import Enum
from typing import Any, Union

DEFAULT_RPC_SZ = 1024
_SIZE_FIELD = 4
_REQ_HEADER_SZ = 20
_REPLY_HEADER_SZ = 8
RPC_HEADER_SZ = max(_REQ_HEADER_SZ, _REPLY_HEADER_SZ) + _SIZE_FIELD


class Kind(Enum):
    """Scalar wire types."""

    UCHAR = "uchar"
    CHAR = "char"
    USHORT = "ushort"
    SHORT = "short"
    UINT = "uint"
    INT = "int"
    ULL = "ull"
    STRING = "string"
    BYTES = "bytes"


@dataclass(frozen=True)
class ListOf:
    """A length-prefixed sequence of items of one wire type."""

    item: "WireType"


@dataclass(frozen=True)
class MapOf:
    """A length-prefixed mapping, written in ascending key order."""

    key: "WireType"
    value: "WireType"


WireType = Union[Kind, ListOf, MapOf]

_INTEGERS = {
    Kind.UCHAR: (1, False),
    Kind.CHAR: (1, True),
    Kind.USHORT: (2, False),
    Kind.SHORT: (2, True),
    Kind.UINT: (4, False),
    Kind.INT: (4, True),
    Kind.ULL: (8, False),
}


@dataclass
class ReqHeader:
    xid: int = 0
    proc: int = 0
    clt_nonce: int = 0
    srv_nonce: int = 0
    xid_rep: int = 0


@dataclass
class ReplyHeader:
    xid: int = 0
    ret: int = 0


def _to_bytes(value: Any) -> bytes:
    if isinstance(value, str):
        return value.encode("utf-8", "surrogateescape")
    return bytes(value)


class Marshall:
    """Builds an outgoing PDU: reserved header space followed by content."""

    def __init__(self):
        self._buf = bytearray(RPC_HEADER_SZ)

    def size(self) -> int:
        return len(self._buf)

    def put_byte(self, x: int) -> None:
        self._buf.append(x & 0xFF)

    def put_bytes(self, data: bytes) -> None:
        self._buf += data

    def pack(self, x: int) -> None:
        """Append a 32-bit integer."""
        self._buf += (x & 0xFFFFFFFF).to_bytes(4, "big")

    def put(self, value: Any, kind: WireType) -> "Marshall":
        """Append ``value`` encoded as ``kind``; returns self for chaining."""
        if isinstance(kind, ListOf):
            items = list(value)
            self.put(len(items), Kind.UINT)
            for item in items:
                self.put(item, kind.item)
        elif isinstance(kind, MapOf):
            self.put(len(value), Kind.UINT)
            for key in sorted(value):
                self.put(key, kind.key)
                self.put(value[key], kind.value)
        elif kind in (Kind.STRING, Kind.BYTES):
            data = _to_bytes(value)
            self.put(len(data), Kind.UINT)
            self.put_bytes(data)
        elif kind in _INTEGERS:
            width, _ = _INTEGERS[kind]
            mask = (1 << (8 * width)) - 1
            self.put_bytes((int(value) & mask).to_bytes(width, "big"))
        else:
            raise TypeError(f"unknown wire type {kind!r}")
        return self

    def content(self) -> bytes:
        """The content written so far, without the header."""
        return bytes(self._buf[RPC_HEADER_SZ:])

    def _write_at(self, offset: int, values) -> None:
        data = struct.pack(f">{len(values)}I", *(v & 0xFFFFFFFF for v in values))
        self._buf[offset:offset + len(data)] = data

    def pack_req_header(self, h: ReqHeader) -> None:
        self._write_at(
            _SIZE_FIELD, (h.xid, h.proc, h.clt_nonce, h.srv_nonce, h.xid_rep)
        )

    def pack_reply_header(self, h: ReplyHeader) -> None:
        self._write_at(_SIZE_FIELD, (h.xid, h.ret))

    def take_buf(self) -> bytes:
        """Hand over the whole buffer, header included, and empty this one."""
        buf = bytes(self._buf)
        self._buf = bytearray()
        return buf


class Unmarshall:
    """Reads values from an incoming PDU.

    With ``header`` true, ``data`` is a whole PDU and reading starts at its
    first byte. Otherwise ``data`` is bare content and reading starts right
    after an empty header. With no data the reader is not ok.
    """

    def __init__(self, data: bytes | None = None, header: bool = False):
        if data is None:
            self._buf = b""
            self._ind = 0
            self.ok = False
        elif header:
            self._buf = bytes(data)
            self._ind = 0
            self.ok = True
        else:
            self._buf = bytes(RPC_HEADER_SZ) + bytes(data)
            self._ind = RPC_HEADER_SZ
            self.ok = True

    def get_byte(self) -> int:
        if self._ind >= len(self._buf):
            self.ok = False
            return 0
        b = self._buf[self._ind]
        self._ind += 1
        return b

    def get_bytes(self, n: int) -> bytes:
        if self._ind + n > len(self._buf):
            self.ok = False
            return b""
        data = self._buf[self._ind:self._ind + n]
        self._ind += n
        return data

    def unpack(self) -> int:
        """Read a signed 32-bit integer."""
        raw = bytes(self.get_byte() for _ in range(4))
        return int.from_bytes(raw, "big", signed=True)

    def get(self, kind: WireType) -> Any:
        """Read one value of the given wire type."""
        if isinstance(kind, ListOf):
            n = self.get(Kind.UINT)
            items = []
            for _ in range(n):
                if not self.ok:
                    break
                items.append(self.get(kind.item))
            return items
        if isinstance(kind, MapOf):
            n = self.get(Kind.UINT)
            result = {}
            for _ in range(n):
                if not self.ok:
                    break
                key = self.get(kind.key)
                result[key] = self.get(kind.value)
            return result
        if kind in (Kind.STRING, Kind.BYTES):
            n = self.get(Kind.UINT)
            data = self.get_bytes(n) if self.ok else b""
            if kind is Kind.STRING:
                return data.decode("utf-8", "surrogateescape")
            return data
        if kind in _INTEGERS:
            width, signed = _INTEGERS[kind]
            raw = bytes(self.get_byte() for _ in range(width))
            return int.from_bytes(raw, "big", signed=signed)
        raise TypeError(f"unknown wire type {kind!r}")

    def okdone(self) -> bool:
        """True if everything read fine and nothing is left over."""
        return self.ok and self._ind == len(self._buf)

    def take_in(self, other: "Unmarshall") -> None:
        """Take over another reader's buffer and read its content."""
        self._buf = other._buf
        other._buf = b""
        other._ind = 0
        self._ind = RPC_HEADER_SZ
        self.ok = len(self._buf) >= RPC_HEADER_SZ

    def unpack_req_header(self) -> ReqHeader:
        self._ind = _SIZE_FIELD
        xid = self.unpack()
        proc = self.unpack()
        clt_nonce = self.unpack() & 0xFFFFFFFF
        srv_nonce = self.unpack() & 0xFFFFFFFF
        xid_rep = self.unpack()
        self._ind = RPC_HEADER_SZ
        return ReqHeader(xid, proc, clt_nonce, srv_nonce, xid_rep)

    def unpack_reply_header(self) -> ReplyHeader:
        self._ind = _SIZE_FIELD
        xid = self.unpack()
        ret = self.unpack()
        self._ind = RPC_HEADER_SZ
        return ReplyHeader(xid, ret)