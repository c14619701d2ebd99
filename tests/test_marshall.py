from amorpc.marshall import (
    RPC_HEADER_SZ,
    Kind,
    ListOf,
    MapOf,
    Marshall,
    ReplyHeader,
    ReqHeader,
    Unmarshall,
)


def test_request_round_trip_like_selftest():
    m = Marshall()
    rh = ReqHeader(1, 2, 3, 4, 5)
    m.pack_req_header(rh)
    assert m.size() == RPC_HEADER_SZ
    s = "hallo...."
    m.put(12345, Kind.INT)
    m.put(1223344455, Kind.ULL)
    m.put(s, Kind.STRING)
    buf = m.take_buf()
    assert len(buf) == RPC_HEADER_SZ + 4 + 8 + len(s) + 4

    un = Unmarshall(buf, header=True)
    assert un.unpack_req_header() == rh
    assert un.get(Kind.INT) == 12345
    assert un.get(Kind.ULL) == 1223344455
    assert un.get(Kind.STRING) == s
    assert un.okdone()


def test_reply_header_round_trip_leaves_size_slot_empty():
    m = Marshall()
    m.pack_reply_header(ReplyHeader(7, -3))
    buf = m.take_buf()
    assert len(buf) == RPC_HEADER_SZ
    assert buf[:4] == bytes(4)
    assert Unmarshall(buf, header=True).unpack_reply_header() == ReplyHeader(7, -3)


def test_take_buf_empties_marshall():
    m = Marshall()
    m.put(1, Kind.UINT)
    m.take_buf()
    assert m.size() == 0


def test_uint_is_big_endian():
    m = Marshall()
    m.put(0x01020304, Kind.UINT)
    assert m.content() == b"\x01\x02\x03\x04"


def test_string_is_length_prefixed():
    m = Marshall()
    m.put("ab", Kind.STRING)
    assert m.content() == b"\x00\x00\x00\x02ab"


def test_negative_int_round_trip():
    m = Marshall()
    m.put(-42, Kind.INT)
    m.pack(-7)
    u = Unmarshall(m.content())
    assert u.get(Kind.INT) == -42
    assert u.unpack() == -7
    assert u.okdone()


def test_short_and_char_sign_handling():
    m = Marshall()
    m.put(-2, Kind.SHORT)
    m.put(-1, Kind.CHAR)
    data = m.content()
    signed = Unmarshall(data)
    assert signed.get(Kind.SHORT) == -2
    assert signed.get(Kind.CHAR) == -1
    unsigned = Unmarshall(data)
    assert unsigned.get(Kind.USHORT) == 0xFFFE
    assert unsigned.get(Kind.UCHAR) == 0xFF


def test_bytes_round_trip():
    payload = bytes(range(256))
    m = Marshall()
    m.put(payload, Kind.BYTES)
    u = Unmarshall(m.content())
    assert u.get(Kind.BYTES) == payload
    assert u.okdone()


def test_list_round_trip():
    names = ["alpha", "", "gamma"]
    m = Marshall()
    m.put(names, ListOf(Kind.STRING))
    u = Unmarshall(m.content())
    assert u.get(ListOf(Kind.STRING)) == names
    assert u.okdone()


def test_map_round_trip_and_sorted_encoding():
    kind = MapOf(Kind.STRING, Kind.ULL)
    a = Marshall().put({"b": 2, "a": 1}, kind).content()
    b = Marshall().put({"a": 1, "b": 2}, kind).content()
    assert a == b
    u = Unmarshall(a)
    assert u.get(kind) == {"a": 1, "b": 2}
    assert u.okdone()


def test_truncated_string_is_not_ok():
    u = Unmarshall(b"\x00\x00\x00\x09ab")
    assert u.get(Kind.STRING) == ""
    assert not u.ok
    assert not u.okdone()


def test_leftover_bytes_fail_okdone():
    m = Marshall()
    m.put(1, Kind.INT)
    m.put(2, Kind.INT)
    u = Unmarshall(m.content())
    u.get(Kind.INT)
    assert u.ok
    assert not u.okdone()


def test_reading_past_end_marks_not_ok():
    u = Unmarshall(b"")
    assert u.get_byte() == 0
    assert not u.ok


def test_default_reader_is_not_ok():
    assert Unmarshall().ok is False


def test_take_in_moves_buffer():
    m = Marshall()
    m.pack_reply_header(ReplyHeader(9, 0))
    m.put("reply", Kind.STRING)
    src = Unmarshall(m.take_buf(), header=True)
    dst = Unmarshall()
    dst.take_in(src)
    assert dst.ok
    assert dst.get(Kind.STRING) == "reply"
    assert dst.okdone()
    assert src.get_bytes(1) == b""


def test_take_in_short_buffer_not_ok():
    dst = Unmarshall()
    dst.take_in(Unmarshall(b"\x00", header=True))
    assert dst.ok is False