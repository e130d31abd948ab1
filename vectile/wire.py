"""
Protobuf wire-format helpers (no external dependency).

Only the handful of wire types used by vector tiles are supported. Readers
work on ``memoryview`` objects so length-delimited fields are handed out as
zero-copy slices of the caller's buffer.
"""

from .errors import FormatError

WIRE_VARINT = 0
WIRE_FIXED64 = 1
WIRE_LENGTH_DELIMITED = 2
WIRE_FIXED32 = 5

_MAX_VARINT_BYTES = 10
_UINT32_MAX = 0xFFFFFFFF


def as_view(data):
    """Return a read-only byte ``memoryview`` over ``data`` without copying."""
    if isinstance(data, memoryview):
        view = data
    else:
        view = memoryview(data)
    if view.format != "B" or view.ndim != 1:
        view = view.cast("B")
    return view.toreadonly()


# ── Reading ──────────────────────────────────────────────────────────────

def read_varint(buf, pos):
    result = 0
    shift = 0
    end = len(buf)
    for _ in range(_MAX_VARINT_BYTES):
        if pos >= end:
            raise FormatError("truncated varint")
        b = buf[pos]
        pos += 1
        result |= (b & 0x7F) << shift
        if (b & 0x80) == 0:
            return result, pos
        shift += 7
    raise FormatError("varint too long")


def decode_zigzag(value):
    return (value >> 1) ^ -(value & 1)


def encode_zigzag(value):
    return (value << 1) ^ (value >> 63)


def to_signed64(value):
    """Reinterpret a varint as a two's complement int64."""
    value &= 0xFFFFFFFFFFFFFFFF
    if value >= 1 << 63:
        value -= 1 << 64
    return value


def iter_fields(buf, start=0, end=None):
    """
    Yield ``(field_number, wire_type, value)`` tuples.

    ``value`` is an int for varints and a ``memoryview`` slice for every other
    wire type (length-delimited payloads and the raw 4/8 bytes of fixed
    fields). Anything that is not one of the four supported wire types, or
    that runs past ``end``, raises ``FormatError``.
    """
    if end is None:
        end = len(buf)
    pos = start
    while pos < end:
        tag, pos = read_varint(buf, pos)
        field = tag >> 3
        wtype = tag & 0x07
        if field == 0:
            raise FormatError("invalid field number 0")
        if wtype == WIRE_VARINT:
            val, pos = read_varint(buf, pos)
            if pos > end:
                raise FormatError("truncated varint")
            yield field, wtype, val
            continue
        if wtype == WIRE_LENGTH_DELIMITED:
            length, pos = read_varint(buf, pos)
        elif wtype == WIRE_FIXED32:
            length = 4
        elif wtype == WIRE_FIXED64:
            length = 8
        else:
            raise FormatError(f"unsupported wire type {wtype} (field {field})")
        if pos + length > end:
            raise FormatError(f"field {field} extends past end of message")
        yield field, wtype, buf[pos : pos + length]
        pos += length


class PackedUint32Cursor:
    """Forward cursor over a packed repeated uint32 field.

    Varints are decoded one at a time as the geometry decoder asks for them,
    so a malformed tail is only reported once it is reached.
    """

    __slots__ = ("_buf", "_pos", "_end")

    def __init__(self, buf):
        self._buf = buf
        self._pos = 0
        self._end = len(buf)

    def done(self):
        return self._pos >= self._end

    def take(self):
        value, self._pos = read_varint(self._buf, self._pos)
        if value > _UINT32_MAX:
            raise FormatError("packed value does not fit in uint32")
        return value


def decode_packed_uint32(buf):
    """Decode a packed repeated uint32 field."""
    cursor = PackedUint32Cursor(buf)
    values = []
    while not cursor.done():
        values.append(cursor.take())
    return values


# ── Writing ──────────────────────────────────────────────────────────────

def write_varint(out, value):
    if value < 0:
        value &= 0xFFFFFFFFFFFFFFFF
    while value > 0x7F:
        out.append((value & 0x7F) | 0x80)
        value >>= 7
    out.append(value)


def write_tag(out, field, wtype):
    write_varint(out, (field << 3) | wtype)


def write_varint_field(out, field, value):
    write_tag(out, field, WIRE_VARINT)
    write_varint(out, value)


def write_bytes_field(out, field, payload):
    write_tag(out, field, WIRE_LENGTH_DELIMITED)
    write_varint(out, len(payload))
    out += payload


def write_packed_uint32_field(out, field, values):
    payload = bytearray()
    for value in values:
        write_varint(payload, value)
    write_bytes_field(out, field, payload)
