"""
Geometry decoding for Mapbox Vector Tiles (MVT 4.3).

A feature's geometry is a packed stream of uint32 values: command integers
(MoveTo, LineTo, ClosePath plus a repeat count) each followed by ``count``
pairs of zigzag encoded deltas. The decoders below walk that stream, check
it against the rules for the feature's geometry type and report every point
to a caller supplied handler::

    class Collect:
        def __init__(self):
            self.rings = []

        def ring_begin(self, count):
            self.rings.append([])

        def ring_point(self, point):
            self.rings[-1].append(point)

        def ring_end(self, is_exterior):
            pass

        def result(self):
            return self.rings

    rings = decode_polygon_geometry(feature.geometry, Collect())

Only the handler methods for the geometry type being decoded are called.
If the handler has a ``result()`` method its return value is returned.
"""

from enum import IntEnum
from typing import NamedTuple, Protocol

from .errors import GeometryError
from .wire import PackedUint32Cursor, decode_zigzag

CMD_MOVE_TO = 1
CMD_LINE_TO = 2
CMD_CLOSE_PATH = 7


class GeomType(IntEnum):
    UNKNOWN = 0
    POINT = 1
    LINESTRING = 2
    POLYGON = 3


class Point(NamedTuple):
    x: int
    y: int

    def __str__(self):
        return f"({self.x},{self.y})"


class Geometry(NamedTuple):
    """Geometry type plus the raw command stream, borrowed from the tile."""

    type: GeomType
    data: memoryview


# ── Command integers ─────────────────────────────────────────────────────

def command_integer(cmd_id, count):
    return (cmd_id & 0x7) | (count << 3)


def command_move_to(count):
    return command_integer(CMD_MOVE_TO, count)


def command_line_to(count):
    return command_integer(CMD_LINE_TO, count)


def command_close_path():
    return command_integer(CMD_CLOSE_PATH, 1)


def get_command_id(cmd_int):
    return cmd_int & 0x7


def get_command_count(cmd_int):
    return cmd_int >> 3


def det(a, b):
    """Cross product of two points seen as vectors from the origin."""
    return a.x * b.y - b.x * a.y


# ── Handler protocols ────────────────────────────────────────────────────

class PointHandler(Protocol):
    def points_begin(self, count: int) -> None: ...

    def points_point(self, point: Point) -> None: ...

    def points_end(self) -> None: ...


class LineStringHandler(Protocol):
    def linestring_begin(self, count: int) -> None: ...

    def linestring_point(self, point: Point) -> None: ...

    def linestring_end(self) -> None: ...


class PolygonHandler(Protocol):
    def ring_begin(self, count: int) -> None: ...

    def ring_point(self, point: Point) -> None: ...

    def ring_end(self, is_exterior: bool) -> None: ...


# ── Decoder ──────────────────────────────────────────────────────────────

class SequenceCursor:
    """Integer cursor over an already decoded sequence of command integers."""

    __slots__ = ("_values", "_pos")

    def __init__(self, values):
        self._values = values
        self._pos = 0

    def done(self):
        return self._pos >= len(self._values)

    def take(self):
        value = self._values[self._pos]
        self._pos += 1
        return value


class GeometryDecoder:
    """
    Stateful reader over a geometry command stream.

    ``cursor`` is anything with ``done()`` and ``take()``: a
    ``PackedUint32Cursor`` over tile bytes, or a ``SequenceCursor`` over a
    list of integers. The running cursor point starts at (0, 0) and carries
    over from one command to the next.
    """

    def __init__(self, cursor, strict=True):
        self._it = cursor
        self._cursor = Point(0, 0)
        self._command_id = 0
        self._count = 0
        self.strict = strict

    @classmethod
    def from_geometry(cls, geometry, strict=True):
        return cls(PackedUint32Cursor(geometry.data), strict)

    @classmethod
    def from_integers(cls, values, strict=True):
        return cls(SequenceCursor(values), strict)

    @property
    def count(self):
        return self._count

    def done(self):
        return self._it.done()

    def next_command(self, expected_command):
        assert self._count == 0, "previous command has unread points"

        if self._it.done():
            return False

        cmd_int = self._it.take()
        self._command_id = get_command_id(cmd_int)
        if self._command_id == CMD_CLOSE_PATH:
            # MVT 4.3.3.3
            if get_command_count(cmd_int) != 1:
                raise GeometryError("ClosePath command count is not 1")
        else:
            self._count = get_command_count(cmd_int)

        if self._command_id != expected_command:
            raise GeometryError(
                f"expected command {expected_command} but got {self._command_id}"
            )

        return True

    def next_point(self):
        assert self._count > 0, "no points left in current command"

        if self._it.done():
            raise GeometryError("too few points in geometry")
        dx = decode_zigzag(self._it.take())
        if self._it.done():
            raise GeometryError("too few points in geometry")
        dy = decode_zigzag(self._it.take())

        # MVT 4.3.3.2
        if self.strict and self._command_id == CMD_LINE_TO and dx == 0 and dy == 0:
            raise GeometryError(
                "found consecutive equal points (MVT 4.3.3.2) (strict mode)"
            )

        self._cursor = Point(self._cursor.x + dx, self._cursor.y + dy)
        self._count -= 1
        return self._cursor


def _result(handler):
    result = getattr(handler, "result", None)
    return result() if result is not None else None


def _decoder_for(geometry, strict):
    if isinstance(geometry, GeometryDecoder):
        return geometry
    return GeometryDecoder.from_geometry(geometry, strict)


def decode_point_geometry(geometry, handler, strict=True):
    """Decode a POINT geometry (MVT 4.3.4.2)."""
    if not isinstance(geometry, GeometryDecoder):
        assert geometry.type == GeomType.POINT, "geometry is not a point geometry"
    decoder = _decoder_for(geometry, strict)

    if not decoder.next_command(CMD_MOVE_TO):
        raise GeometryError("expected MoveTo command (MVT 4.3.4.2)")

    if decoder.count == 0:
        raise GeometryError("MoveTo command count is zero (MVT 4.3.4.2)")

    handler.points_begin(decoder.count)
    while decoder.count > 0:
        handler.points_point(decoder.next_point())

    if not decoder.done():
        raise GeometryError("additional data after end of geometry (MVT 4.3.4.2)")

    handler.points_end()
    return _result(handler)


def decode_linestring_geometry(geometry, handler, strict=True):
    """Decode a LINESTRING geometry (MVT 4.3.4.3)."""
    if not isinstance(geometry, GeometryDecoder):
        assert geometry.type == GeomType.LINESTRING, "geometry is not a linestring geometry"
    decoder = _decoder_for(geometry, strict)

    while decoder.next_command(CMD_MOVE_TO):
        if decoder.count != 1:
            raise GeometryError("MoveTo command count is not 1 (MVT 4.3.4.3)")

        first_point = decoder.next_point()

        if not decoder.next_command(CMD_LINE_TO):
            raise GeometryError("expected LineTo command (MVT 4.3.4.3)")

        if decoder.count == 0:
            raise GeometryError("LineTo command count is zero (MVT 4.3.4.3)")

        handler.linestring_begin(decoder.count + 1)
        handler.linestring_point(first_point)
        while decoder.count > 0:
            handler.linestring_point(decoder.next_point())

        handler.linestring_end()

    return _result(handler)


def decode_polygon_geometry(geometry, handler, strict=True):
    """
    Decode a POLYGON geometry (MVT 4.3.4.4).

    Every ring is reported with ``ring_end(is_exterior)``. A ring is exterior
    when the sum of cross products over its edges, the closing edge included,
    is strictly positive; degenerate rings with a zero sum are interior.
    """
    if not isinstance(geometry, GeometryDecoder):
        assert geometry.type == GeomType.POLYGON, "geometry is not a polygon geometry"
    decoder = _decoder_for(geometry, strict)

    while decoder.next_command(CMD_MOVE_TO):
        if decoder.count != 1:
            raise GeometryError("MoveTo command count is not 1 (MVT 4.3.4.4)")

        start_point = decoder.next_point()
        last_point = start_point
        area_sum = 0

        if not decoder.next_command(CMD_LINE_TO):
            raise GeometryError("expected LineTo command (MVT 4.3.4.4)")

        if decoder.count == 0 or (decoder.strict and decoder.count <= 1):
            raise GeometryError(
                "LineTo command count is not greater than 1 (MVT 4.3.4.4)"
            )

        handler.ring_begin(decoder.count + 2)
        handler.ring_point(start_point)

        while decoder.count > 0:
            point = decoder.next_point()
            area_sum += det(last_point, point)
            last_point = point
            handler.ring_point(point)

        if not decoder.next_command(CMD_CLOSE_PATH):
            raise GeometryError("expected ClosePath command (MVT 4.3.4.4)")

        area_sum += det(last_point, start_point)
        handler.ring_point(start_point)

        handler.ring_end(area_sum > 0)

    return _result(handler)


_DECODERS = {
    GeomType.POINT: decode_point_geometry,
    GeomType.LINESTRING: decode_linestring_geometry,
    GeomType.POLYGON: decode_polygon_geometry,
}


def decode_geometry(geometry, handler, strict=True):
    """Dispatch to the decoder matching ``geometry.type``."""
    try:
        decode = _DECODERS[geometry.type]
    except KeyError:
        raise GeometryError(f"can not decode geometry of type {geometry.type!r}") from None
    return decode(geometry, handler, strict)
