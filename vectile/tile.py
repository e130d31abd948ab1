"""
Vector tile container (MVT 4.1, ``Tile.layers``).

A tile is just a sequence of length-delimited layer messages. ``VectorTile``
hands them out in declaration order as ``Layer`` views over the same buffer.
"""

from loguru import logger

from .errors import FormatError
from .layer import LAYER_NAME, Layer
from .wire import WIRE_LENGTH_DELIMITED, as_view, iter_fields

TILE_LAYERS = 3


def _layer_messages(data):
    for field, wtype, val in iter_fields(data):
        if field != TILE_LAYERS:
            continue
        if wtype != WIRE_LENGTH_DELIMITED:
            raise FormatError(f"layers field has wire type {wtype} (MVT 4.1)")
        yield val


def _layer_name(data):
    for field, wtype, val in iter_fields(data):
        if field == LAYER_NAME and wtype == WIRE_LENGTH_DELIMITED:
            return bytes(val)
    return None


class VectorTile:
    """
    A vector tile over a caller supplied buffer::

        tile = VectorTile(data)
        while (layer := tile.next_layer()) is not None:
            ...
    """

    def __init__(self, data):
        self._data = as_view(data)
        self._layer_iter = None

    @property
    def data(self):
        return self._data

    def empty(self):
        return next(_layer_messages(self._data), None) is None

    def count_layers(self):
        """Count the layers. Only the framing is checked, not the layers themselves."""
        return sum(1 for _ in _layer_messages(self._data))

    def __iter__(self):
        for data in _layer_messages(self._data):
            yield Layer(data)

    def next_layer(self):
        """Return the next layer, or None when there are no more layers."""
        if self._layer_iter is None:
            self._layer_iter = _layer_messages(self._data)
        data = next(self._layer_iter, None)
        if data is None:
            return None
        return Layer(data)

    def reset_layer(self):
        self._layer_iter = None

    def get_layer(self, index):
        """Return the layer at position ``index``, or None if there are fewer layers."""
        for n, data in enumerate(_layer_messages(self._data)):
            if n == index:
                return Layer(data)
        return None

    def get_layer_by_name(self, name):
        """Return the first layer called ``name``, or None.

        Layers are only fully parsed once their name matches.
        """
        if isinstance(name, str):
            name = name.encode("utf-8")
        for data in _layer_messages(self._data):
            if _layer_name(data) == name:
                logger.debug("found layer {!r}", name)
                return Layer(data)
        return None
