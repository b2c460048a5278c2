"""Plausibility filters for detection tables.

`vel_test` implements the velocity test of Steckenreuter et al. (2017): a
detection is suspicious when the animal would have had to travel faster than
``max_velocity`` to reach it from its nearest neighbour in time. The filter
is a pure transform: the input frame is never modified.
"""
from __future__ import annotations

from typing import Optional

import numpy as np
import pandas as pd

from .records import ColumnMap

__all__ = ["EARTH_RADIUS_M", "haversine", "vel_test"]

EARTH_RADIUS_M = 6378137.0


def haversine(lon1, lat1, lon2, lat2, radius: float = EARTH_RADIUS_M) -> np.ndarray:
    """Great-circle distance in metres between points given in decimal degrees."""
    lon1, lat1, lon2, lat2 = (np.radians(np.asarray(v, dtype=float)) for v in (lon1, lat1, lon2, lat2))
    a = np.sin((lat2 - lat1) / 2) ** 2 + np.cos(lat1) * np.cos(lat2) * np.sin((lon2 - lon1) / 2) ** 2
    return 2 * radius * np.arcsin(np.sqrt(np.clip(a, 0.0, 1.0)))


def vel_test(
    detections: pd.DataFrame,
    max_velocity: float,
    data_type: str = "GLATOS",
    column_map: Optional[ColumnMap] = None,
) -> pd.DataFrame:
    """Flag detections that imply an implausible swimming speed.

    Parameters
    ----------
    detections
        Detection table with timestamp, transmitter, receiver, longitude and
        latitude columns.
    max_velocity
        Maximum plausible ground speed, m/s.
    data_type
        Column naming preset (``"GLATOS"`` or ``"OTN"``), ignored when
        ``column_map`` is given.
    column_map
        Explicit column names for each role.

    Returns
    -------
    A copy of ``detections`` with four extra columns, computed per
    transmitter in timestamp order:

    ``min_dist``
        Smaller of the distances (m) to the previous and next detection.
    ``min_time``
        Smaller of the time gaps (s) to the previous and next detection.
    ``min_vel``
        ``min_dist / min_time``; 0 when ``min_time`` is 0.
    ``vel_valid``
        1 when ``min_vel < max_velocity`` (or the transmitter was detected
        only once), else 0.
    """
    cmap = column_map or ColumnMap.for_type(data_type)
    data = cmap.resolve(detections)
    if not pd.api.types.is_datetime64_any_dtype(data["timestamp"]):
        raise TypeError(f"Column '{cmap.timestamp}' in the detections table must hold datetimes.")

    if max_velocity is None or not np.isfinite(max_velocity):
        raise ValueError("max_velocity must be a finite number (m/s)")

    data = data.assign(
        _row=np.arange(len(data)),
        _secs=(data["timestamp"] - data["timestamp"].min()).dt.total_seconds(),
    )
    data = data.sort_values(["transmitter", "timestamp"], kind="mergesort")
    grp = data.groupby("transmitter", sort=False)

    lon = data["longitude"].to_numpy(float)
    lat = data["latitude"].to_numpy(float)
    secs = data["_secs"].to_numpy(float)
    dist_before = haversine(grp["longitude"].shift(1), grp["latitude"].shift(1), lon, lat)
    dist_after = haversine(lon, lat, grp["longitude"].shift(-1), grp["latitude"].shift(-1))
    time_before = secs - grp["_secs"].shift(1).to_numpy(float)
    time_after = grp["_secs"].shift(-1).to_numpy(float) - secs

    min_dist = np.fmin(dist_before, dist_after)
    min_time = np.fmin(time_before, time_after)
    with np.errstate(invalid="ignore", divide="ignore"):
        min_vel = np.where(min_time == 0, 0.0, min_dist / min_time)
    vel_valid = np.where(np.isnan(min_vel), 1, (min_vel < max_velocity).astype(int))

    back = np.argsort(data["_row"].to_numpy(), kind="mergesort")
    out = detections.copy()
    out["min_dist"] = min_dist[back]
    out["min_time"] = min_time[back]
    out["min_vel"] = min_vel[back]
    out["vel_valid"] = vel_valid[back]
    return out
