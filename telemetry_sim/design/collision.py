"""Closed-form estimate of transmission collisions among co-located tags.

A transmission of duration ``b`` collides with another tag's transmission when
that tag starts a burst within ``b`` seconds either side of it. Each other tag
starts bursts at an average rate of ``1 / (mean_delay + b)``, so with
``n - 1`` other tags the number of burst starts inside the ``2 b`` window is
approximately Poisson with mean ``2 b (n - 1) / (mean_delay + b)``. The
collision probability is the chance that this count is at least one.
"""
from __future__ import annotations

import math
from typing import Iterable, Sequence

import pandas as pd

__all__ = ["collision_probability", "collision_table"]


def collision_probability(
    tag_count: int,
    delay_range: Sequence[float] = (60.0, 180.0),
    burst_duration: float = 5.0,
) -> float:
    """Probability that a given transmission overlaps one from another tag.

    Parameters
    ----------
    tag_count
        Number of tags transmitting within range of the same receiver.
    delay_range
        ``(min, max)`` uniform delay between bursts, seconds.
    burst_duration
        Duration of one burst, seconds.

    Returns
    -------
    float in [0, 1]; 0 when ``burst_duration`` is 0 or fewer than two tags.
    Non-decreasing in ``tag_count`` and ``burst_duration``.
    """
    lo, hi = (float(v) for v in delay_range)
    if lo < 0 or hi < lo:
        raise ValueError(f"delay_range must satisfy 0 <= min <= max, got {tuple(delay_range)}")
    if burst_duration < 0:
        raise ValueError("burst_duration must be non-negative")
    if tag_count < 0:
        raise ValueError("tag_count must be non-negative")

    b = float(burst_duration)
    if b == 0.0 or tag_count <= 1:
        return 0.0
    mean_interval = (lo + hi) / 2.0 + b
    expected = 2.0 * b * (tag_count - 1) / mean_interval
    return min(1.0, max(0.0, -math.expm1(-expected)))


def collision_table(
    tag_counts: Iterable[int],
    delay_range: Sequence[float] = (60.0, 180.0),
    burst_duration: float = 5.0,
) -> pd.DataFrame:
    """`collision_probability` over several tag counts, plus the clear (no collision) share."""
    rows = []
    for n in tag_counts:
        p = collision_probability(n, delay_range, burst_duration)
        rows.append({"tag_count": int(n), "collision_prob": p, "clear_prob": 1.0 - p})
    return pd.DataFrame(rows, columns=["tag_count", "collision_prob", "clear_prob"])
