"""Receiver-line detection simulator."""
import numpy as np
import pandas as pd
import pytest

from telemetry_sim.design.receiver_line import receiver_line_det_sim, receiver_line_layout
from telemetry_sim.simulator.detection import ConstantRange, LogisticRange


def test_layout_from_single_spacing_and_gaps():
    receivers, (xmin, xmax) = receiver_line_layout(1000.0, outer_lim=(200, 300))
    assert list(receivers["x"]) == [200.0, 1200.0]
    assert (receivers["y"] == 0.0).all()
    assert (xmin, xmax) == (0.0, 1500.0)

    receivers, (_, xmax) = receiver_line_layout([500, 800, 800])
    assert list(receivers["x"]) == [0.0, 500.0, 1300.0, 2100.0]
    assert list(receivers["receiver_id"]) == [1, 2, 3, 4]
    assert xmax == 2100.0


@pytest.mark.parametrize("spacing, outer", [(0.0, (0, 0)), (-100.0, (0, 0)), (100.0, (-1, 0))])
def test_layout_rejects_degenerate_lines(spacing, outer):
    with pytest.raises(ValueError):
        receiver_line_layout(spacing, outer)


def test_certain_detection_detects_everyone():
    result = receiver_line_det_sim(ConstantRange(1.0), rec_spacing=[800, 800], n_sim=25, seed=1)
    per = result.per_individual
    assert len(per) == 25
    assert (per["n_detections"] == 3 * per["n_transmissions"]).all()
    assert (per["n_receivers"] == 3).all()
    assert np.allclose(result.summary["proportion"], 1.0)


def test_no_detection_possible():
    result = receiver_line_det_sim(ConstantRange(0.0), n_sim=10, seed=1)
    assert (result.per_individual["n_detections"] == 0).all()
    assert np.allclose(result.summary["proportion"], 0.0)


def test_transmission_counts_follow_crossing_time():
    # 4000 m at 1 m/s with intervals of 65..185 s
    result = receiver_line_det_sim(ConstantRange(0.0), vel=1.0, max_dist=2000, n_sim=40, seed=3)
    n = result.per_individual["n_transmissions"]
    assert n.between(21, 61).all()
    starts = result.per_individual["start_x"]
    assert starts.between(0.0, 1000.0).all()


def test_same_seed_same_result():
    fn = LogisticRange(midpoint=400, slope=0.02)
    a = receiver_line_det_sim(fn, rec_spacing=1000, n_sim=30, seed=11)
    b = receiver_line_det_sim(fn, rec_spacing=1000, n_sim=30, seed=11)
    pd.testing.assert_frame_equal(a.per_individual, b.per_individual)
    pd.testing.assert_frame_equal(a.summary, b.summary)


def test_denser_line_detects_more():
    fn = LogisticRange(midpoint=300, slope=0.03)
    wide = receiver_line_det_sim(fn, rec_spacing=[3000], outer_lim=(0, 0), n_sim=200, seed=2)
    dense = receiver_line_det_sim(fn, rec_spacing=[500] * 6, outer_lim=(0, 0), n_sim=200, seed=2)
    p_wide = wide.summary.loc[wide.summary["min_detections"] == 1, "proportion"].iloc[0]
    p_dense = dense.summary.loc[dense.summary["min_detections"] == 1, "proportion"].iloc[0]
    assert p_dense > p_wide


def test_invalid_arguments():
    with pytest.raises(ValueError):
        receiver_line_det_sim(ConstantRange(1.0), max_dist=0)
    with pytest.raises(ValueError):
        receiver_line_det_sim(ConstantRange(1.0), n_sim=0)
