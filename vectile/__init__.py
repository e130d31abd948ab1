"""
Minimal zero-copy decoder for Mapbox Vector Tiles.

Logging goes through loguru and is disabled by default; call
``logger.enable("vectile")`` to see it.
"""

from loguru import logger

from .errors import FormatError, GeometryError, OutOfRangeError, VectileError, VersionError
from .feature import Feature
from .geometry import (
    Geometry,
    GeometryDecoder,
    GeomType,
    Point,
    decode_geometry,
    decode_linestring_geometry,
    decode_point_geometry,
    decode_polygon_geometry,
)
from .layer import Layer
from .mvt_decoder import decode
from .properties import PropertyValue, PropertyValueType
from .tile import VectorTile

__version__ = "0.1.0"

logger.disable("vectile")

__all__ = [
    "Feature",
    "FormatError",
    "GeomType",
    "Geometry",
    "GeometryDecoder",
    "GeometryError",
    "Layer",
    "OutOfRangeError",
    "Point",
    "PropertyValue",
    "PropertyValueType",
    "VectileError",
    "VectorTile",
    "VersionError",
    "decode",
    "decode_geometry",
    "decode_linestring_geometry",
    "decode_point_geometry",
    "decode_polygon_geometry",
]
