"""
Vector tile builder: the mirror image of the decoder.

Builds tiles with the same command/delta encoding the geometry decoders
consume. Mainly used to produce fixtures::

    tile = TileBuilder()
    layer = tile.add_layer("roads")
    feature = LineStringFeatureBuilder(layer)
    feature.set_id(7)
    feature.add_linestring([(0, 0), (10, 0), (10, 10)])
    feature.add_property("class", "primary")
    feature.commit()
    data = tile.serialize()
"""

import struct

from .errors import GeometryError
from .feature import FEATURE_GEOMETRY, FEATURE_ID, FEATURE_TAGS, FEATURE_TYPE
from .geometry import (
    GeomType,
    Point,
    command_close_path,
    command_line_to,
    command_move_to,
)
from .layer import (
    DEFAULT_EXTENT,
    LAYER_EXTENT,
    LAYER_FEATURES,
    LAYER_KEYS,
    LAYER_NAME,
    LAYER_VALUES,
    LAYER_VERSION,
)
from .properties import PropertyValue, PropertyValueType
from .tile import TILE_LAYERS
from .wire import (
    WIRE_FIXED32,
    WIRE_FIXED64,
    encode_zigzag,
    write_bytes_field,
    write_packed_uint32_field,
    write_tag,
    write_varint,
    write_varint_field,
)


# ── Geometry ─────────────────────────────────────────────────────────────

class _CommandWriter:
    def __init__(self):
        self.commands = []
        self._cursor = Point(0, 0)

    def points(self, points, line_to=False):
        for p in points:
            x, y = p
            dx = x - self._cursor.x
            dy = y - self._cursor.y
            if line_to and dx == 0 and dy == 0:
                raise GeometryError("zero-length segments are not allowed (MVT 4.3.3.2)")
            self.commands.append(encode_zigzag(dx))
            self.commands.append(encode_zigzag(dy))
            self._cursor = Point(x, y)


def encode_geometry_commands(geom_type, parts):
    """
    Encode geometry parts to a list of command integers.

    ``parts`` is a list of points for POINT, a list of linestrings for
    LINESTRING and a list of closed rings (last point equal to the first) for
    POLYGON. Ring orientation is written as given.
    """
    writer = _CommandWriter()
    cmds = writer.commands

    if geom_type == GeomType.POINT:
        if not parts:
            raise GeometryError("point geometry needs at least one point")
        cmds.append(command_move_to(len(parts)))
        writer.points(parts)
    elif geom_type == GeomType.LINESTRING:
        for line in parts:
            if len(line) < 2:
                raise GeometryError("linestring needs at least two points")
            cmds.append(command_move_to(1))
            writer.points(line[:1])
            cmds.append(command_line_to(len(line) - 1))
            writer.points(line[1:], line_to=True)
    elif geom_type == GeomType.POLYGON:
        for ring in parts:
            if len(ring) < 4:
                raise GeometryError("polygon ring needs at least four points")
            if tuple(ring[0]) != tuple(ring[-1]):
                raise GeometryError("polygon ring is not closed")
            cmds.append(command_move_to(1))
            writer.points(ring[:1])
            cmds.append(command_line_to(len(ring) - 2))
            writer.points(ring[1:-1], line_to=True)
            cmds.append(command_close_path())
    else:
        raise GeometryError(f"can not encode geometry of type {geom_type!r}")

    return cmds


# ── Properties ───────────────────────────────────────────────────────────

def to_property_value(value):
    if isinstance(value, PropertyValue):
        return value
    if isinstance(value, bool):
        return PropertyValue(PropertyValueType.BOOL, value)
    if isinstance(value, int):
        if value < 0:
            return PropertyValue(PropertyValueType.SINT, value)
        return PropertyValue(PropertyValueType.UINT, value)
    if isinstance(value, float):
        return PropertyValue(PropertyValueType.DOUBLE, value)
    if isinstance(value, str):
        return PropertyValue(PropertyValueType.STRING, value)
    raise TypeError(f"unsupported property value type {type(value).__name__}")


def encode_property_value(pv):
    out = bytearray()
    kind, value = pv
    if kind == PropertyValueType.STRING:
        write_bytes_field(out, kind, value.encode("utf-8"))
    elif kind == PropertyValueType.FLOAT:
        write_tag(out, kind, WIRE_FIXED32)
        out += struct.pack("<f", value)
    elif kind == PropertyValueType.DOUBLE:
        write_tag(out, kind, WIRE_FIXED64)
        out += struct.pack("<d", value)
    elif kind == PropertyValueType.SINT:
        write_varint_field(out, kind, encode_zigzag(value))
    elif kind == PropertyValueType.BOOL:
        write_varint_field(out, kind, int(value))
    else:
        write_varint_field(out, kind, value)
    return bytes(out)


# ── Builders ─────────────────────────────────────────────────────────────

class TileBuilder:
    def __init__(self):
        self._layers = []

    def add_layer(self, name, version=2, extent=DEFAULT_EXTENT):
        layer = LayerBuilder(name, version, extent)
        self._layers.append(layer)
        return layer

    def serialize(self):
        out = bytearray()
        for layer in self._layers:
            write_bytes_field(out, TILE_LAYERS, layer.serialize())
        return bytes(out)


class LayerBuilder:
    """
    Collects the features of one layer. Keys and values are interned, so
    repeated properties share one table entry. ``version=None`` leaves the
    version field out.
    """

    def __init__(self, name, version=2, extent=DEFAULT_EXTENT):
        self.name = name
        self.version = version
        self.extent = extent
        self._keys = {}
        self._values = {}
        self._features = []

    @property
    def num_features(self):
        return len(self._features)

    def add_key(self, key):
        return self._keys.setdefault(key, len(self._keys))

    def add_value(self, value):
        pv = to_property_value(value)
        return self._values.setdefault(pv, len(self._values))

    def add_feature_data(self, data):
        self._features.append(bytes(data))

    def serialize(self):
        out = bytearray()
        if self.version is not None:
            write_varint_field(out, LAYER_VERSION, self.version)
        write_bytes_field(out, LAYER_NAME, self.name.encode("utf-8"))
        if self.extent != DEFAULT_EXTENT:
            write_varint_field(out, LAYER_EXTENT, self.extent)
        for data in self._features:
            write_bytes_field(out, LAYER_FEATURES, data)
        for key in self._keys:
            write_bytes_field(out, LAYER_KEYS, key.encode("utf-8"))
        for pv in self._values:
            write_bytes_field(out, LAYER_VALUES, encode_property_value(pv))
        return bytes(out)


class FeatureBuilder:
    geom_type = GeomType.UNKNOWN

    def __init__(self, layer):
        self._layer = layer
        self._id = None
        self._parts = []
        self._tags = []
        self._committed = False

    def set_id(self, id):
        self._id = id

    def add_property(self, key, value):
        self._tags.append(self._layer.add_key(key))
        self._tags.append(self._layer.add_value(value))

    def encode(self):
        out = bytearray()
        if self._id is not None:
            write_varint_field(out, FEATURE_ID, self._id)
        if self._tags:
            write_packed_uint32_field(out, FEATURE_TAGS, self._tags)
        write_varint_field(out, FEATURE_TYPE, self.geom_type)
        write_packed_uint32_field(
            out, FEATURE_GEOMETRY, encode_geometry_commands(self.geom_type, self._parts)
        )
        return bytes(out)

    def commit(self):
        if self._committed:
            raise RuntimeError("feature was already committed")
        if not self._parts:
            raise GeometryError("feature has no geometry")
        self._layer.add_feature_data(self.encode())
        self._committed = True


class PointFeatureBuilder(FeatureBuilder):
    geom_type = GeomType.POINT

    def add_points(self, points):
        self._parts.extend(points)

    def add_point(self, x, y):
        self._parts.append((x, y))


class LineStringFeatureBuilder(FeatureBuilder):
    geom_type = GeomType.LINESTRING

    def add_linestring(self, points):
        self._parts.append(list(points))


class PolygonFeatureBuilder(FeatureBuilder):
    geom_type = GeomType.POLYGON

    def add_ring(self, points):
        points = list(points)
        if len(points) < 4:
            raise GeometryError("polygon ring needs at least four points")
        self._parts.append(points)
