import pytest

from vectile.builder import TileBuilder
from vectile.geometry import Geometry
from vectile.wire import write_varint


class PointCollector:
    def __init__(self):
        self.points = []
        self.begin_count = None
        self.ended = False

    def points_begin(self, count):
        self.begin_count = count

    def points_point(self, point):
        self.points.append(point)

    def points_end(self):
        self.ended = True

    def result(self):
        return self.points


class LineStringCollector:
    def __init__(self):
        self.lines = []
        self.counts = []

    def linestring_begin(self, count):
        self.counts.append(count)
        self.lines.append([])

    def linestring_point(self, point):
        self.lines[-1].append(point)

    def linestring_end(self):
        pass

    def result(self):
        return self.lines


class RingCollector:
    def __init__(self):
        self.rings = []
        self.counts = []
        self.exterior = []

    def ring_begin(self, count):
        self.counts.append(count)
        self.rings.append([])

    def ring_point(self, point):
        self.rings[-1].append(point)

    def ring_end(self, is_exterior):
        self.exterior.append(is_exterior)

    def result(self):
        return self.rings


def packed(values):
    out = bytearray()
    for value in values:
        write_varint(out, value)
    return memoryview(bytes(out))


@pytest.fixture
def point_handler():
    return PointCollector()


@pytest.fixture
def linestring_handler():
    return LineStringCollector()


@pytest.fixture
def ring_handler():
    return RingCollector()


@pytest.fixture
def tile_builder():
    return TileBuilder()


@pytest.fixture
def make_geometry():
    """Build a ``Geometry`` from a list of raw command/parameter integers."""

    def make(geom_type, values):
        return Geometry(geom_type, packed(values))

    return make
