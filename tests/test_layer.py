"""
Tests for the layer index: construction checks, lazy key/value tables and
feature lookup.
"""

from concurrent.futures import ThreadPoolExecutor

import pytest

import vectile.layer as layer_module
from vectile.builder import LayerBuilder, PointFeatureBuilder, PolygonFeatureBuilder
from vectile.errors import FormatError, OutOfRangeError, VersionError
from vectile.layer import Layer
from vectile.properties import PropertyValue, PropertyValueType
from vectile.wire import write_bytes_field, write_varint_field


def make_layer_data(features=(), **kwargs):
    """Serialize a layer with one point feature per ``(id, properties)`` pair."""
    builder = LayerBuilder("test", **kwargs)
    for n, (fid, props) in enumerate(features):
        feature = PointFeatureBuilder(builder)
        if fid is not None:
            feature.set_id(fid)
        feature.add_point(n, n)
        for key, value in props.items():
            feature.add_property(key, value)
        feature.commit()
    return builder.serialize()


@pytest.fixture
def counting_scans(monkeypatch):
    """Count every ``iter_fields`` call made by the layer module."""
    calls = []
    real_iter_fields = layer_module.iter_fields

    def iter_fields(buf, *args, **kwargs):
        calls.append(len(buf))
        return real_iter_fields(buf, *args, **kwargs)

    monkeypatch.setattr(layer_module, "iter_fields", iter_fields)
    return calls


# ── Construction ─────────────────────────────────────────────────────────

def test_scalar_fields():
    layer = Layer(make_layer_data([(1, {}), (2, {})], extent=512))

    assert layer.name == "test"
    assert layer.version == 2
    assert layer.extent == 512
    assert layer.num_features == 2
    assert not layer.empty()


def test_defaults():
    out = bytearray()
    write_bytes_field(out, layer_module.LAYER_NAME, b"roads")
    layer = Layer(bytes(out))

    assert layer.name == "roads"
    assert layer.version == 1
    assert layer.extent == 4096
    assert layer.num_features == 0
    assert layer.empty()
    assert layer.next_feature() is None


def test_version_omitted_defaults_to_one():
    layer = Layer(LayerBuilder("test", version=None).serialize())
    assert layer.version == 1


def test_version_three_is_rejected():
    with pytest.raises(VersionError) as excinfo:
        Layer(LayerBuilder("test", version=3).serialize())
    assert excinfo.value.version == 3
    assert excinfo.value.kind == "version"


def test_version_zero_is_rejected():
    with pytest.raises(VersionError) as excinfo:
        Layer(LayerBuilder("test", version=0).serialize())
    assert excinfo.value.version == 0


def test_missing_name():
    out = bytearray()
    write_varint_field(out, layer_module.LAYER_VERSION, 2)
    with pytest.raises(FormatError, match="missing name"):
        Layer(bytes(out))


def test_empty_name():
    with pytest.raises(FormatError, match="empty name"):
        Layer(LayerBuilder("").serialize())


def test_unknown_layer_field():
    out = bytearray(LayerBuilder("test").serialize())
    write_varint_field(out, 6, 1)
    with pytest.raises(FormatError, match=r"unknown field in layer \(tag=6, type=0\)"):
        Layer(bytes(out))


def test_known_field_with_wrong_wire_type():
    out = bytearray(LayerBuilder("test").serialize())
    write_varint_field(out, layer_module.LAYER_NAME, 1)
    with pytest.raises(FormatError, match="unknown field in layer"):
        Layer(bytes(out))


def test_truncated_layer():
    data = make_layer_data([(1, {"a": 1})])
    with pytest.raises(FormatError):
        Layer(data[:-1])


def test_layer_keeps_view_of_buffer():
    data = bytearray(make_layer_data([(1, {})]))
    layer = Layer(data)
    assert layer.data.readonly
    assert layer.data.obj is data


# ── Key/value tables ─────────────────────────────────────────────────────

def test_tables_in_encounter_order():
    layer = Layer(make_layer_data([
        (1, {"name": "Main St", "lanes": 2}),
        (2, {"name": "Side St", "oneway": True}),
    ]))

    assert layer.key_table() == ["name", "lanes", "oneway"]
    assert layer.value_table() == [
        PropertyValue(PropertyValueType.STRING, "Main St"),
        PropertyValue(PropertyValueType.UINT, 2),
        PropertyValue(PropertyValueType.STRING, "Side St"),
        PropertyValue(PropertyValueType.BOOL, True),
    ]
    assert layer.key(2) == "oneway"
    assert layer.value(1).value == 2


def test_tables_are_built_once(counting_scans):
    layer = Layer(make_layer_data([(1, {"a": "x"}), (2, {"b": "y"})]))
    assert counting_scans == [len(layer.data)]
    counting_scans.clear()

    keys = layer.key_table()
    values = layer.value_table()
    assert len(counting_scans) == 1

    assert layer.key_table() is keys
    assert layer.value_table() is values
    assert layer.key_table() == ["a", "b"]
    assert [v.value for v in layer.value_table()] == ["x", "y"]
    assert layer.key(0) == "a"
    assert layer.value(1).value == "y"
    assert len(counting_scans) == 1


def test_no_scan_when_layer_has_no_tables(counting_scans):
    layer = Layer(make_layer_data([(1, {})]))
    counting_scans.clear()

    assert layer.key_table() == []
    assert layer.value_table() == []
    assert counting_scans == []


def test_concurrent_first_access_builds_once(counting_scans):
    layer = Layer(make_layer_data([(n, {f"k{n}": n}) for n in range(50)]))
    counting_scans.clear()

    with ThreadPoolExecutor(max_workers=8) as pool:
        tables = list(pool.map(lambda _: layer.key_table(), range(32)))

    assert all(t is tables[0] for t in tables)
    assert len(tables[0]) == 50
    assert len(counting_scans) == 1


@pytest.mark.parametrize("index", [2, 100, -1])
def test_key_out_of_range(index):
    layer = Layer(make_layer_data([(1, {"a": 1, "b": 2})]))
    with pytest.raises(OutOfRangeError) as excinfo:
        layer.key(index)
    assert isinstance(excinfo.value, IndexError)
    assert excinfo.value.size == 2


def test_value_out_of_range():
    layer = Layer(make_layer_data([(1, {"a": 1})]))
    with pytest.raises(IndexError):
        layer.value(1)


def test_bad_value_fails_table_build_and_can_be_retried():
    out = bytearray(LayerBuilder("test").serialize())
    write_bytes_field(out, layer_module.LAYER_KEYS, b"a")
    write_bytes_field(out, layer_module.LAYER_VALUES, b"")
    layer = Layer(bytes(out))

    with pytest.raises(FormatError, match="missing tag value"):
        layer.value_table()
    with pytest.raises(FormatError, match="missing tag value"):
        layer.key_table()


# ── Features ─────────────────────────────────────────────────────────────

def test_next_feature_and_reset():
    layer = Layer(make_layer_data([(1, {}), (2, {}), (3, {})]))

    ids = []
    while (feature := layer.next_feature()) is not None:
        ids.append(feature.id)
    assert ids == [1, 2, 3]
    assert layer.next_feature() is None

    layer.reset_feature()
    assert layer.next_feature().id == 1


def test_iteration_does_not_move_cursor():
    layer = Layer(make_layer_data([(1, {}), (2, {})]))
    assert layer.next_feature().id == 1
    assert [f.id for f in layer] == [1, 2]
    assert layer.next_feature().id == 2


def test_get_feature_by_id():
    layer = Layer(make_layer_data([(5, {}), (7, {"n": 1}), (7, {"n": 2}), (None, {})]))

    feature = layer.get_feature_by_id(7)
    assert feature is not None
    assert feature.id == 7
    assert feature.properties_dict()["n"] in (1, 2)

    assert layer.get_feature_by_id(5).id == 5
    assert layer.get_feature_by_id(99) is None


def test_get_feature_by_id_ignores_features_without_id():
    layer = Layer(make_layer_data([(None, {})]))
    assert layer.get_feature_by_id(0) is None


def test_polygon_feature_in_layer(ring_handler):
    builder = LayerBuilder("test")
    feature = PolygonFeatureBuilder(builder)
    feature.set_id(3)
    feature.add_ring([(0, 0), (10, 0), (10, 10), (0, 0)])
    feature.commit()

    layer = Layer(builder.serialize())
    rings = layer.get_feature_by_id(3).decode_geometry(ring_handler)
    assert rings == [[(0, 0), (10, 0), (10, 10), (0, 0)]]
