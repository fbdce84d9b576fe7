from __future__ import annotations

import math
from collections import namedtuple

import numpy as np
import pytest

from crosslink.data_loader import field_getter, load_group, load_matrix
from crosslink.highlight_options import HighlightOptions
from crosslink.locators import Region


class _Frame:
    """Minimal frame-like object (``to_dict('records')``, ``index``, ``columns``)."""

    def __init__(self, records, index) -> None:
        self._records = records
        self.index = index
        self.columns = list(records[0]) if records else []

    def to_dict(self, orient: str):
        assert orient == "records"
        return [dict(r) for r in self._records]


def test_mapping_rows_with_key_field() -> None:
    rows = [{"city": "Paris", "pop": 2.1}, {"city": "Rome", "pop": 2.8}]
    group, index = load_group(rows, "city", group_id="cities", options=HighlightOptions(mode="persistent"))
    assert index.keys == ("Paris", "Rome")
    assert group.id == "cities"
    assert group.mode == "persistent"
    assert group.key_index is index


def test_object_rows_and_tuple_rows() -> None:
    City = namedtuple("City", "name lat")
    _, by_attr = load_group([City("Oslo", 59.9), City("Lima", -12.0)], "name", group_id="g")
    _, by_pos = load_group([("Oslo", 59.9), ("Lima", -12.0)], 0, group_id="g")
    _, by_callable = load_group(["oslo", "lima"], str.upper, group_id="g")
    assert by_attr.keys == by_pos.keys == ("Oslo", "Lima")
    assert by_callable.keys == ("OSLO", "LIMA")


def test_positions_are_the_default_keys() -> None:
    _, index = load_group([{"v": 1}, {"v": 2}], group_id="g")
    assert index.keys == (0, 1)


def test_frame_like_rows_use_index_labels() -> None:
    frame = _Frame([{"n": 1}, {"n": 2}], index=["r1", "r2"])
    _, index = load_group(frame, group_id="g")
    assert index.keys == ("r1", "r2")


def test_numpy_scalar_and_list_keys_are_normalized() -> None:
    rows = [{"k": np.int64(5), "pair": [1, 2]}, {"k": np.int64(6), "pair": [3, 4]}]
    _, by_scalar = load_group(rows, "k", group_id="g")
    _, by_list = load_group(rows, "pair", group_id="g")
    assert by_scalar.keys == (5, 6)
    assert type(by_scalar.keys[0]) is int
    assert by_list.keys == ((1, 2), (3, 4))


def test_duplicate_keys_are_rejected() -> None:
    with pytest.raises(ValueError, match="Duplicate key 2000"):
        load_group([{"year": 2000}, {"year": 2000}], "year", group_id="years")


def test_mappings_are_not_row_collections() -> None:
    with pytest.raises(TypeError, match="sequence of records"):
        load_group({"a": 1}, group_id="g")


def test_missing_field_raises_key_error() -> None:
    getter = field_getter("lat")
    with pytest.raises(KeyError, match="no field 'lat'"):
        getter(object())
    with pytest.raises(TypeError, match="Unsupported field spec"):
        field_getter(1.5)  # type: ignore[arg-type]


def test_coordinates_from_fields_and_sequences() -> None:
    rows = [{"year": 2000, "gdp": "n/a"}, {"year": 2001, "gdp": 3.5}, {"year": 2002, "gdp": None}]
    _, index = load_group(rows, "year", group_id="years", coords={"x": "year", "y": "gdp", "z": [1, 2, 3]})

    assert index.coordinate("x").tolist() == [2000.0, 2001.0, 2002.0]
    gdp = index.coordinate("y")
    assert math.isnan(gdp[0]) and gdp[1] == 3.5 and math.isnan(gdp[2])
    assert index.coordinate("z").tolist() == [1.0, 2.0, 3.0]
    assert index.resolve(Region(x=(2001, 2002))) == frozenset({2001, 2002})


def test_matrix_groups_key_cells_row_major() -> None:
    group, index, rows = load_matrix(["a", "b"], ["x", "y", "z"], group_id="pairs")
    assert index.keys[:4] == (("a", "x"), ("a", "y"), ("a", "z"), ("b", "x"))
    assert rows[4] == {"row": "b", "col": "y"}
    assert index.resolve(Region(x=(1, 1), y=(1, 2), x_field="row", y_field="col")) == frozenset(
        {("b", "y"), ("b", "z")}
    )
    assert group.id == "pairs"
