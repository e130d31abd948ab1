"""
Property values (MVT 4.1, ``Layer.values``).

A value message holds exactly one of seven scalar kinds. Decoding picks the
first field with a known number; unknown fields are skipped so newer writers
can add fields without breaking older readers.
"""

import struct
from enum import IntEnum
from typing import Any, NamedTuple

from .errors import FormatError
from .wire import (
    WIRE_FIXED32,
    WIRE_FIXED64,
    WIRE_LENGTH_DELIMITED,
    WIRE_VARINT,
    as_view,
    decode_zigzag,
    iter_fields,
    to_signed64,
)


class PropertyValueType(IntEnum):
    STRING = 1
    FLOAT = 2
    DOUBLE = 3
    INT = 4
    UINT = 5
    SINT = 6
    BOOL = 7


_WIRE_TYPES = {
    PropertyValueType.STRING: WIRE_LENGTH_DELIMITED,
    PropertyValueType.FLOAT: WIRE_FIXED32,
    PropertyValueType.DOUBLE: WIRE_FIXED64,
    PropertyValueType.INT: WIRE_VARINT,
    PropertyValueType.UINT: WIRE_VARINT,
    PropertyValueType.SINT: WIRE_VARINT,
    PropertyValueType.BOOL: WIRE_VARINT,
}


class PropertyValue(NamedTuple):
    type: PropertyValueType
    value: Any

    def __str__(self):
        return str(self.value)


def _convert(kind, val):
    if kind == PropertyValueType.STRING:
        try:
            return bytes(val).decode("utf-8")
        except UnicodeDecodeError as e:
            raise FormatError(f"string property value is not valid UTF-8: {e}") from e
    if kind == PropertyValueType.FLOAT:
        return struct.unpack("<f", val)[0]
    if kind == PropertyValueType.DOUBLE:
        return struct.unpack("<d", val)[0]
    if kind == PropertyValueType.INT:
        return to_signed64(val)
    if kind == PropertyValueType.SINT:
        return decode_zigzag(val)
    if kind == PropertyValueType.BOOL:
        return bool(val)
    return val


def decode_property_value(data):
    """Decode a protobuf Value message into a ``PropertyValue``."""
    for field, wtype, val in iter_fields(as_view(data)):
        try:
            kind = PropertyValueType(field)
        except ValueError:
            continue
        if wtype != _WIRE_TYPES[kind]:
            raise FormatError(
                f"illegal wire type {wtype} for {kind.name.lower()} property value"
            )
        return PropertyValue(kind, _convert(kind, val))
    raise FormatError("missing tag value")
