"""Flat/spatial conversion, column checks and column presets."""
import numpy as np
import pandas as pd
import pytest
from shapely.geometry import Point

from telemetry_sim.errors import ColumnMismatch
from telemetry_sim.records import (
    ColumnMap,
    as_receiver_frame,
    require_columns,
    to_flat,
    to_spatial,
)


def test_spatial_and_flat_conversion_keeps_other_columns():
    flat = pd.DataFrame({"id": [1, 2], "x": [1.0, 3.0], "y": [2.0, 4.0], "time": [0.0, 5.0]})
    spatial = to_spatial(flat)
    assert list(spatial.columns) == ["id", "geometry", "time"]
    assert spatial["geometry"].iloc[1].equals(Point(3.0, 4.0))
    pd.testing.assert_frame_equal(to_flat(spatial), flat)
    # already in the requested form
    pd.testing.assert_frame_equal(to_flat(flat), flat)


def test_require_columns_lists_all_missing():
    with pytest.raises(ColumnMismatch) as info:
        require_columns(pd.DataFrame({"x": [1]}), ("receiver_id", "x", "y"), "receiver")
    err = info.value
    assert err.missing == ["receiver_id", "y"]
    assert "receiver table" in str(err)
    assert isinstance(err, KeyError)
    # geometry stands in for x and y
    require_columns(to_spatial(pd.DataFrame({"x": [1.0], "y": [2.0]})), ("x", "y"))


def test_as_receiver_frame_from_array_and_frame():
    frame = as_receiver_frame(np.array([[0.0, 0.0], [10.0, 5.0]]))
    assert list(frame["receiver_id"]) == [1, 2]
    assert list(frame.columns) == ["receiver_id", "x", "y"]
    single = as_receiver_frame((3.0, 4.0))
    assert len(single) == 1
    named = as_receiver_frame(to_spatial(pd.DataFrame({"receiver_id": ["A"], "x": [1.0], "y": [2.0]})))
    assert named.loc[0, "receiver_id"] == "A" and named.loc[0, "y"] == 2.0
    with pytest.raises(ValueError):
        as_receiver_frame(np.zeros((2, 3)))


def test_column_map_presets():
    assert ColumnMap.for_type("glatos").timestamp == "detection_timestamp_utc"
    assert ColumnMap.for_type("OTN").transmitter == "tagname"
    with pytest.raises(ValueError, match="The type 'VEMCO' is not defined."):
        ColumnMap.for_type("VEMCO")


def test_column_map_resolve_renames_roles():
    cmap = ColumnMap(timestamp="t", transmitter="tag", receiver="rx", longitude="lon", latitude="lat")
    frame = pd.DataFrame({"t": [1], "tag": ["A"], "rx": [9], "lon": [0.0], "lat": [1.0], "extra": [0]})
    out = cmap.resolve(frame)
    assert list(out.columns) == ["timestamp", "transmitter", "receiver", "longitude", "latitude"]
    with pytest.raises(ColumnMismatch):
        cmap.resolve(frame.drop(columns=["lat"]))
