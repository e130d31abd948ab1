"""
Layer index (MVT 4.1).

Constructing a ``Layer`` scans the layer message once for its scalar fields
(version, name, extent) and only counts features, keys and values. The key
and value tables are built by a second scan the first time either is needed
and are kept for the lifetime of the layer object.

Most efficient way to walk the features::

    while (feature := layer.next_feature()) is not None:
        ...

or, if the id is known, ``layer.get_feature_by_id(7)``.
"""

import threading

from loguru import logger

from .errors import FormatError, OutOfRangeError, VersionError
from .feature import Feature, read_feature_id
from .properties import decode_property_value
from .wire import WIRE_LENGTH_DELIMITED, WIRE_VARINT, as_view, iter_fields

LAYER_NAME = 1
LAYER_FEATURES = 2
LAYER_KEYS = 3
LAYER_VALUES = 4
LAYER_EXTENT = 5
LAYER_VERSION = 15

DEFAULT_VERSION = 1
DEFAULT_EXTENT = 4096
SUPPORTED_VERSIONS = (1, 2)


def _decode_string(view, what):
    try:
        return bytes(view).decode("utf-8")
    except UnicodeDecodeError as e:
        raise FormatError(f"{what} is not valid UTF-8: {e}") from e


class Layer:
    """
    A single layer of a vector tile.

    The layer keeps a read-only view of ``data`` and never copies it. The key
    and value tables are memoized; building them is guarded by a lock so that
    concurrent first access from several threads scans the buffer only once.
    The ``next_feature()`` cursor is plain per-object state and is not safe to
    share between threads.

    Raises ``FormatError`` for an unknown layer field or a missing or empty
    name, and ``VersionError`` for versions other than 1 and 2.
    """

    def __init__(self, data):
        self._data = as_view(data)
        self._version = DEFAULT_VERSION
        self._extent = DEFAULT_EXTENT
        self._num_features = 0
        self._name = None

        self._key_table = []
        self._value_table = []
        # Non-zero while the tables still have to be built.
        self._key_table_size = 0
        self._value_table_size = 0
        self._tables_lock = threading.Lock()

        self._feature_iter = None

        for field, wtype, val in iter_fields(self._data):
            if field == LAYER_VERSION and wtype == WIRE_VARINT:
                self._version = val
            elif field == LAYER_NAME and wtype == WIRE_LENGTH_DELIMITED:
                self._name = val
            elif field == LAYER_FEATURES and wtype == WIRE_LENGTH_DELIMITED:
                self._num_features += 1
            elif field == LAYER_KEYS and wtype == WIRE_LENGTH_DELIMITED:
                self._key_table_size += 1
            elif field == LAYER_VALUES and wtype == WIRE_LENGTH_DELIMITED:
                self._value_table_size += 1
            elif field == LAYER_EXTENT and wtype == WIRE_VARINT:
                self._extent = val
            else:
                raise FormatError(f"unknown field in layer (tag={field}, type={wtype})")

        if self._version not in SUPPORTED_VERSIONS:
            raise VersionError(self._version)

        if self._name is None:
            raise FormatError("missing name field in layer (MVT 4.1)")
        self._name = _decode_string(self._name, "layer name")
        if not self._name:
            raise FormatError("empty name field in layer (MVT 4.1)")

        logger.debug(
            "layer {!r}: version={} extent={} features={} keys={} values={}",
            self._name,
            self._version,
            self._extent,
            self._num_features,
            self._key_table_size,
            self._value_table_size,
        )

    def __repr__(self):
        return f"<Layer {self._name!r} v{self._version} features={self._num_features}>"

    @property
    def data(self):
        return self._data

    @property
    def name(self):
        return self._name

    @property
    def version(self):
        return self._version

    @property
    def extent(self):
        return self._extent

    @property
    def num_features(self):
        return self._num_features

    def empty(self):
        return self._num_features == 0

    # ── Key/value tables ─────────────────────────────────────────────────

    def _initialize_tables(self):
        with self._tables_lock:
            if self._key_table_size == 0 and self._value_table_size == 0:
                return

            keys = []
            values = []
            for field, wtype, val in iter_fields(self._data):
                if wtype != WIRE_LENGTH_DELIMITED:
                    continue
                if field == LAYER_KEYS:
                    keys.append(_decode_string(val, "layer key"))
                elif field == LAYER_VALUES:
                    values.append(decode_property_value(val))

            self._key_table = keys
            self._value_table = values
            self._key_table_size = 0
            self._value_table_size = 0

        logger.debug(
            "layer {!r}: built key table ({}) and value table ({})",
            self._name,
            len(keys),
            len(values),
        )

    def key_table(self):
        """Return the list of keys. Built on first use, then constant time."""
        if self._key_table_size > 0:
            self._initialize_tables()
        return self._key_table

    def value_table(self):
        """Return the list of ``PropertyValue``s. Built on first use, then constant time."""
        if self._value_table_size > 0:
            self._initialize_tables()
        return self._value_table

    def key(self, index):
        table = self.key_table()
        if not 0 <= index < len(table):
            raise OutOfRangeError("key", index, len(table))
        return table[index]

    def value(self, index):
        table = self.value_table()
        if not 0 <= index < len(table):
            raise OutOfRangeError("value", index, len(table))
        return table[index]

    # ── Features ─────────────────────────────────────────────────────────

    def _iter_feature_data(self):
        for field, wtype, val in iter_fields(self._data):
            if field == LAYER_FEATURES and wtype == WIRE_LENGTH_DELIMITED:
                yield val

    def __iter__(self):
        """Iterate over all features, independently of ``next_feature()``."""
        for data in self._iter_feature_data():
            yield Feature(self, data)

    def next_feature(self):
        """Return the next feature, or None once all features were returned."""
        if self._feature_iter is None:
            self._feature_iter = self._iter_feature_data()
        data = next(self._feature_iter, None)
        if data is None:
            return None
        return Feature(self, data)

    def reset_feature(self):
        """Start ``next_feature()`` from the first feature again."""
        self._feature_iter = None

    def get_feature_by_id(self, id):
        """
        Return a feature with the given id, or None if there is none.

        Linear in the number of features. If several features share the id
        it is undefined which one is returned.
        """
        for data in self._iter_feature_data():
            if read_feature_id(data) == id:
                return Feature(self, data)
        return None
