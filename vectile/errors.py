"""
Exceptions raised while decoding vector tiles.

Every error is a deterministic function of the input bytes, so nothing in
vectile retries. Callers recover at layer or feature granularity by catching
``VectileError`` (or a subclass) and moving on to the next sibling.
"""


class VectileError(Exception):
    """Base class for all vectile errors."""

    kind = "error"


class FormatError(VectileError):
    """The container structure (tile, layer, feature, value) is malformed."""

    kind = "format"


class VersionError(FormatError):
    """The layer declares a version this decoder does not understand."""

    kind = "version"

    def __init__(self, version):
        super().__init__(f"unknown vector tile version {version}")
        self.version = version


class GeometryError(VectileError):
    """The geometry command stream violates the encoding rules."""

    kind = "geometry"


class OutOfRangeError(VectileError, IndexError):
    """A key or value index points past the end of the layer table."""

    kind = "out_of_range"

    def __init__(self, table, index, size):
        super().__init__(f"{table} index {index} out of range (table size {size})")
        self.table = table
        self.index = index
        self.size = size
