"""
Feature accessor (MVT 4.2).

A ``Feature`` is a thin view binding a layer to one feature's bytes. The
feature message is scanned once on construction; geometry stays an opaque
slice until it is handed to one of the geometry decoders, and tag indexes
are resolved through the layer's key/value tables only when asked for.
"""

from .errors import FormatError
from .geometry import Geometry, GeomType, decode_geometry
from .wire import (
    WIRE_LENGTH_DELIMITED,
    WIRE_VARINT,
    as_view,
    decode_packed_uint32,
    iter_fields,
)

FEATURE_ID = 1
FEATURE_TAGS = 2
FEATURE_TYPE = 3
FEATURE_GEOMETRY = 4


def read_feature_id(data):
    """Return the id of a feature message, or None if it has none.

    Only the id field is decoded; tags and geometry are skipped.
    """
    for field, wtype, val in iter_fields(data):
        if field == FEATURE_ID and wtype == WIRE_VARINT:
            return val
    return None


class Feature:
    def __init__(self, layer, data):
        self._layer = layer
        self._data = as_view(data)
        self._id = 0
        self._has_id = False
        self._geometry_type = GeomType.UNKNOWN
        self._geometry = None
        self._tags = None

        for field, wtype, val in iter_fields(self._data):
            if field == FEATURE_ID and wtype == WIRE_VARINT:
                if self._has_id:
                    raise FormatError("feature has more than one id field")
                self._id = val
                self._has_id = True
            elif field == FEATURE_TAGS and wtype == WIRE_LENGTH_DELIMITED:
                if self._tags is not None:
                    raise FormatError("feature has more than one tags field")
                self._tags = decode_packed_uint32(val)
            elif field == FEATURE_TYPE and wtype == WIRE_VARINT:
                try:
                    self._geometry_type = GeomType(val)
                except ValueError:
                    raise FormatError(f"unknown geometry type {val} (MVT 4.3.4)") from None
            elif field == FEATURE_GEOMETRY and wtype == WIRE_LENGTH_DELIMITED:
                if self._geometry is not None:
                    raise FormatError("feature has more than one geometry field")
                self._geometry = val
            # anything else is skipped: unknown feature fields are tolerated

        if self._geometry is None:
            raise FormatError("missing geometry field in feature (MVT 4.3)")

        if self._tags is None:
            self._tags = []
        elif len(self._tags) % 2 != 0:
            raise FormatError("unpaired property key/value indexes (MVT 4.4)")

    def __repr__(self):
        return (
            f"<Feature id={self._id} type={self._geometry_type.name} "
            f"properties={self.num_properties}>"
        )

    @property
    def layer(self):
        return self._layer

    @property
    def data(self):
        return self._data

    @property
    def id(self):
        return self._id

    @property
    def has_id(self):
        return self._has_id

    @property
    def geometry_type(self):
        return self._geometry_type

    @property
    def geometry(self):
        return Geometry(self._geometry_type, self._geometry)

    @property
    def num_properties(self):
        return len(self._tags) // 2

    def empty(self):
        return not self._tags

    def tag_indexes(self):
        """Return the raw ``(key_index, value_index)`` pairs."""
        tags = self._tags
        return [(tags[i], tags[i + 1]) for i in range(0, len(tags), 2)]

    def properties(self):
        """Yield ``(key, PropertyValue)`` pairs resolved through the layer tables."""
        layer = self._layer
        for key_index, value_index in self.tag_indexes():
            yield layer.key(key_index), layer.value(value_index)

    def properties_dict(self):
        """Return the properties as a plain ``{key: value}`` dict."""
        return {key: value.value for key, value in self.properties()}

    def decode_geometry(self, handler, strict=True):
        return decode_geometry(self.geometry, handler, strict)
