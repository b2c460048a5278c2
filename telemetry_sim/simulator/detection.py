"""Detection simulation: which receivers hear which transmissions.

Every (transmission, receiver) pair is evaluated: the Euclidean distance in the
projected working coordinates is passed to the detection-range function and a
Bernoulli outcome is drawn with that probability. Receivers are processed in
layout order, each drawing one uniform number per transmission from the run's
random stream, so a fixed seed reproduces the same detections.
"""
from __future__ import annotations

import logging
from typing import Any, Callable, Mapping

import numpy as np
import pandas as pd

from ..errors import InvalidDetectionRangeFunction
from ..records import DETECTION_COLUMNS, as_receiver_frame, require_columns, to_flat, to_spatial
from .random_streams import make_rng

__all__ = [
    "ConstantRange",
    "LogisticRange",
    "range_function_from_config",
    "detection_probability",
    "detect",
]

log = logging.getLogger(__name__)

DetectionRangeFn = Callable[[np.ndarray], Any]

_CARRIED = ("individual_id", "transmission_id", "tag_id", "signal_type")


class ConstantRange:
    """Same detection probability at every distance."""

    def __init__(self, p: float):
        self.p = float(p)

    def __call__(self, distance):
        return np.full(np.shape(distance), self.p)

    def __repr__(self) -> str:
        return f"ConstantRange(p={self.p})"


class LogisticRange:
    """Logistic detection-range curve ``max_prob / (1 + exp(slope * (d - midpoint)))``.

    ``midpoint`` is the distance (m) at which probability is half of
    ``max_prob``; larger ``slope`` gives a sharper drop-off.
    """

    def __init__(self, midpoint: float, slope: float, max_prob: float = 1.0):
        if not 0.0 <= max_prob <= 1.0:
            raise ValueError("max_prob must be in [0, 1]")
        self.midpoint = float(midpoint)
        self.slope = float(slope)
        self.max_prob = float(max_prob)

    def __call__(self, distance):
        z = np.clip(self.slope * (np.asarray(distance, dtype=float) - self.midpoint), -700, 700)
        return self.max_prob / (1.0 + np.exp(z))

    def __repr__(self) -> str:
        return f"LogisticRange(midpoint={self.midpoint}, slope={self.slope}, max_prob={self.max_prob})"


def range_function_from_config(settings: Mapping[str, Any]) -> DetectionRangeFn:
    """Build a detection-range function from a config mapping (``kind`` + parameters)."""
    params = dict(settings)
    kind = str(params.pop("kind", "logistic")).lower()
    if kind == "constant":
        return ConstantRange(**params)
    if kind == "logistic":
        return LogisticRange(**params)
    raise ValueError(f"Unknown detection range kind: {kind}. Choose from ['constant', 'logistic']")


def detection_probability(fn: DetectionRangeFn, distance: np.ndarray, receiver_id=None) -> np.ndarray:
    """Evaluate ``fn`` on an array of distances and check it returns probabilities.

    Scalar results are broadcast to every distance.

    Raises
    ------
    InvalidDetectionRangeFunction
        At the first distance whose probability is outside [0, 1] or NaN.
    """
    distance = np.asarray(distance, dtype=float)
    p = np.asarray(fn(distance), dtype=float)
    if p.shape != distance.shape:
        try:
            p = np.broadcast_to(p, distance.shape)
        except ValueError as exc:
            raise ValueError(
                f"Detection range function returned shape {p.shape} for {distance.shape} distances"
            ) from exc
    bad = ~((p >= 0.0) & (p <= 1.0))
    if bad.any():
        i = int(np.argmax(bad))
        raise InvalidDetectionRangeFunction(distance[i], float(p[i]), receiver_id)
    return p


def detect(
    transmissions: pd.DataFrame,
    receivers,
    detection_range_fn: DetectionRangeFn,
    sp_out: bool = True,
    rng=None,
) -> pd.DataFrame:
    """Simulate detection of ``transmissions`` by ``receivers``.

    Parameters
    ----------
    transmissions
        Transmission rows (flat or spatial), e.g. from
        :func:`~telemetry_sim.simulator.transmission.schedule`.
    receivers
        Receiver layout: frame with ``receiver_id`` and location, or ``(n, 2)``
        coordinates (ids 1..n).
    detection_range_fn
        Vectorised ``distance (m) -> probability``.
    sp_out
        Receiver location as ``geometry`` (True) or ``x``/``y`` (False).

    Returns
    -------
    One row per detection sorted by ``time`` then ``receiver_id``: carried
    transmission columns, ``receiver_id``, ``time``, the transmitter location
    ``trns_x``/``trns_y`` and the receiver location. Detection is
    instantaneous, so ``time`` is the emission time.
    """
    rng = make_rng(rng)
    trns = to_flat(transmissions)
    require_columns(trns, ("transmission_id", "time", "x", "y"), "transmission")
    recs = as_receiver_frame(receivers)

    tx = trns["x"].to_numpy(float)
    ty = trns["y"].to_numpy(float)
    rec_ids = recs["receiver_id"].to_numpy()
    rx = recs["x"].to_numpy(float)
    ry = recs["y"].to_numpy(float)

    t_parts, r_parts = [], []
    for r in range(len(recs)):
        dist = np.hypot(tx - rx[r], ty - ry[r])
        p = detection_probability(detection_range_fn, dist, rec_ids[r])
        hit = np.flatnonzero(rng.random(dist.size) < p)
        log.debug("receiver %s: %d of %d transmissions detected", rec_ids[r], hit.size, dist.size)
        t_parts.append(hit)
        r_parts.append(np.full(hit.size, r))

    t_idx = np.concatenate(t_parts) if t_parts else np.array([], dtype=int)
    r_idx = np.concatenate(r_parts).astype(int) if r_parts else np.array([], dtype=int)

    carry = [c for c in _CARRIED if c in trns.columns]
    out = trns.iloc[t_idx][carry].reset_index(drop=True)
    out["receiver_id"] = rec_ids[r_idx]
    out["time"] = trns["time"].to_numpy(float)[t_idx]
    out["trns_x"] = tx[t_idx]
    out["trns_y"] = ty[t_idx]
    out["x"] = rx[r_idx]
    out["y"] = ry[r_idx]
    out = out[[c for c in ("individual_id",) + DETECTION_COLUMNS if c in out.columns]]
    out = out.sort_values(["time", "receiver_id"], kind="mergesort").reset_index(drop=True)

    log.debug("%d detections from %d transmissions x %d receivers", len(out), len(trns), len(recs))
    return to_spatial(out) if sp_out else out


