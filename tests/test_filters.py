"""Velocity plausibility filter."""
import numpy as np
import pandas as pd
import pytest

from telemetry_sim.errors import ColumnMismatch
from telemetry_sim.filters import haversine, vel_test
from telemetry_sim.records import ColumnMap


def _glatos(rows):
    frame = pd.DataFrame(rows, columns=["detection_timestamp_utc", "transmitter_id", "receiver_sn", "deploy_long", "deploy_lat"])
    frame["detection_timestamp_utc"] = pd.to_datetime(frame["detection_timestamp_utc"])
    return frame


def test_haversine_one_thousandth_degree():
    assert np.isclose(haversine(0.0, 0.0, 0.001, 0.0), 111.32, atol=0.01)


def test_velocity_between_two_detections():
    dets = _glatos(
        [
            ("2024-05-01 00:00:00", "A", 1, 0.0, 0.0),
            ("2024-05-01 00:01:40", "A", 2, 0.001, 0.0),
        ]
    )
    out = vel_test(dets, max_velocity=2.0)
    assert np.allclose(out["min_time"], 100.0)
    assert np.allclose(out["min_dist"], 111.32, atol=0.01)
    assert np.allclose(out["min_vel"], 1.1132, atol=1e-4)
    assert list(out["vel_valid"]) == [1, 1]
    assert list(vel_test(dets, max_velocity=1.0)["vel_valid"]) == [0, 0]


def test_nearest_neighbour_in_time_per_transmitter():
    dets = _glatos(
        [
            ("2024-05-01 00:00:00", "A", 1, 0.0, 0.0),
            ("2024-05-01 00:00:10", "B", 5, 1.0, 1.0),  # other fish, ignored for A
            ("2024-05-01 00:01:00", "A", 1, 0.0, 0.0),
            ("2024-05-01 00:01:10", "A", 2, 0.01, 0.0),
        ]
    )
    out = vel_test(dets, max_velocity=5.0)
    # middle A detection: 0 m from the first (60 s) vs 1.1 km to the last (10 s)
    assert np.isclose(out.loc[2, "min_time"], 10.0)
    assert np.isclose(out.loc[2, "min_dist"], 0.0)
    # lone transmitter B has no neighbours
    assert np.isnan(out.loc[1, "min_vel"]) and out.loc[1, "vel_valid"] == 1
    assert out.loc[3, "vel_valid"] == 0


def test_equal_timestamps_give_zero_velocity():
    dets = _glatos(
        [
            ("2024-05-01 00:00:00", "A", 1, 0.0, 0.0),
            ("2024-05-01 00:00:00", "A", 2, 0.5, 0.0),
        ]
    )
    out = vel_test(dets, max_velocity=1.0)
    assert (out["min_vel"] == 0.0).all()
    assert (out["vel_valid"] == 1).all()


def test_input_not_modified_and_row_order_kept():
    dets = _glatos(
        [
            ("2024-05-01 00:05:00", "A", 1, 0.0, 0.0),
            ("2024-05-01 00:00:00", "A", 1, 0.0, 0.0),
        ]
    )
    before = dets.copy()
    out = vel_test(dets, max_velocity=1.0)
    pd.testing.assert_frame_equal(dets, before)
    assert list(out["detection_timestamp_utc"]) == list(before["detection_timestamp_utc"])
    assert np.allclose(out["min_time"], 300.0)


def test_otn_preset_and_custom_map():
    otn = pd.DataFrame(
        {
            "datecollected": pd.to_datetime(["2024-01-01 00:00", "2024-01-01 01:00"]),
            "tagname": ["T1", "T1"],
            "receiver_group": ["G", "G"],
            "longitude": [-80.0, -80.0],
            "latitude": [43.0, 43.01],
        }
    )
    assert "vel_valid" in vel_test(otn, 1.0, data_type="OTN").columns
    cmap = ColumnMap(timestamp="datecollected", transmitter="tagname", receiver="receiver_group")
    assert "vel_valid" in vel_test(otn, 1.0, column_map=cmap).columns


def test_bad_inputs():
    dets = _glatos([("2024-05-01 00:00:00", "A", 1, 0.0, 0.0)])
    with pytest.raises(ColumnMismatch):
        vel_test(dets.drop(columns=["deploy_lat"]), 1.0)
    with pytest.raises(TypeError):
        vel_test(dets.assign(detection_timestamp_utc="2024-05-01"), 1.0)
    with pytest.raises(ValueError):
        vel_test(dets, np.inf)
    with pytest.raises(ValueError):
        vel_test(dets, 1.0, data_type="VEMCO")
