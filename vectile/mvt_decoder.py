"""
Decode a whole tile into plain Python dicts.

Compatible in shape with ``mapbox_vector_tile.decode()``:
    {
        "layer_name": {
            "extent": 4096,
            "version": 2,
            "features": [
                {
                    "id": 7,
                    "type": "Feature",
                    "geometry": {"type": "Polygon", "coordinates": [...]},
                    "properties": {"class": "park", ...},
                },
                ...
            ],
        },
        ...
    }

This is a convenience layer over ``VectorTile``/``Layer``/``Feature`` and the
geometry decoders; use those directly to avoid building the whole structure.
"""

from loguru import logger

from .errors import VectileError
from .geometry import GeomType, decode_geometry
from .tile import VectorTile

DEFAULT_OPTIONS = {
    # Keep Y pointing down, as stored in the tile.
    "y_coord_down": True,
    "strict": True,
    # Log and drop layers/features that fail to decode instead of raising.
    "skip_invalid": False,
}


# ── Geometry handler ─────────────────────────────────────────────────────

class GeoJSONHandler:
    """Collects decoded geometry and turns it into a GeoJSON-style dict."""

    def __init__(self, extent, y_coord_down=True):
        self.extent = extent
        self.y_coord_down = y_coord_down
        self.geom_type = GeomType.UNKNOWN
        self.points = []
        self.lines = []
        self.polygons = []
        self._ring = None

    def _coord(self, point):
        if self.y_coord_down:
            return (point.x, point.y)
        return (point.x, self.extent - point.y)

    def points_begin(self, count):
        self.geom_type = GeomType.POINT

    def points_point(self, point):
        self.points.append(self._coord(point))

    def points_end(self):
        pass

    def linestring_begin(self, count):
        self.geom_type = GeomType.LINESTRING
        self.lines.append([])

    def linestring_point(self, point):
        self.lines[-1].append(self._coord(point))

    def linestring_end(self):
        pass

    def ring_begin(self, count):
        self.geom_type = GeomType.POLYGON
        self._ring = []

    def ring_point(self, point):
        self._ring.append(self._coord(point))

    def ring_end(self, is_exterior):
        # An exterior ring opens a new polygon, holes attach to the last one.
        if is_exterior or not self.polygons:
            self.polygons.append([self._ring])
        else:
            self.polygons[-1].append(self._ring)
        self._ring = None

    def result(self):
        if self.geom_type == GeomType.POINT:
            if len(self.points) == 1:
                return {"type": "Point", "coordinates": self.points[0]}
            return {"type": "MultiPoint", "coordinates": self.points}

        if self.geom_type == GeomType.LINESTRING:
            if len(self.lines) == 1:
                return {"type": "LineString", "coordinates": self.lines[0]}
            return {"type": "MultiLineString", "coordinates": self.lines}

        if self.geom_type == GeomType.POLYGON:
            if len(self.polygons) == 1:
                return {"type": "Polygon", "coordinates": self.polygons[0]}
            return {"type": "MultiPolygon", "coordinates": self.polygons}

        return {"type": "Unknown", "coordinates": []}


# ── Tile decoding ────────────────────────────────────────────────────────

def _decode_feature(feature, extent, options):
    if feature.geometry_type == GeomType.UNKNOWN:
        geometry = {"type": "Unknown", "coordinates": []}
    else:
        handler = GeoJSONHandler(extent, options["y_coord_down"])
        geometry = decode_geometry(feature.geometry, handler, options["strict"])

    return {
        "id": feature.id if feature.has_id else None,
        "type": "Feature",
        "geometry": geometry,
        "properties": feature.properties_dict(),
    }


def _decode_layer(layer, options):
    features = []
    layer.reset_feature()
    while True:
        try:
            feature = layer.next_feature()
            if feature is None:
                break
            features.append(_decode_feature(feature, layer.extent, options))
        except VectileError as e:
            if not options["skip_invalid"]:
                raise
            logger.warning("layer {!r}: skipping invalid feature: {}", layer.name, e)

    return {"extent": layer.extent, "version": layer.version, "features": features}


def decode(tile_bytes, default_options=None):
    """
    Decode MVT tile bytes into a dict of layers.

    Options:
        y_coord_down (bool): If True, keep Y pointing down (default True).
        strict (bool): Reject zero-length segments and two-point rings
            (default True).
        skip_invalid (bool): Skip layers and features that fail to decode,
            logging a warning for each (default False).
    """
    options = dict(DEFAULT_OPTIONS)
    if default_options:
        options.update(default_options)

    result = {}
    tile = VectorTile(tile_bytes)
    while True:
        try:
            layer = tile.next_layer()
        except VectileError as e:
            if not options["skip_invalid"]:
                raise
            logger.warning("skipping invalid layer: {}", e)
            continue
        if layer is None:
            break
        if layer.name in result:
            logger.debug("layer {!r} appears more than once, keeping the last one", layer.name)
        try:
            result[layer.name] = _decode_layer(layer, options)
        except VectileError as e:
            if not options["skip_invalid"]:
                raise
            logger.warning("skipping invalid layer {!r}: {}", layer.name, e)

    return result
