"""Boundary records exchanged with readers, writers and plotting code.

Tables are ``pandas.DataFrame`` objects in one of two representations:

* flat: location as scalar ``x`` / ``y`` columns;
* spatial: location as a ``geometry`` column of shapely ``Point`` objects.

:func:`to_flat` and :func:`to_spatial` convert between the two without touching
any other column, so both always describe the same event set. Column checks
happen here, once, before data reaches the simulator core.
"""
from __future__ import annotations

from dataclasses import dataclass, fields
from typing import Iterable, Optional

import numpy as np
import pandas as pd
import shapely

from .errors import ColumnMismatch

__all__ = [
    "PATH_COLUMNS",
    "RECEIVER_COLUMNS",
    "TAG_SPEC_COLUMNS",
    "TRANSMISSION_COLUMNS",
    "DETECTION_COLUMNS",
    "require_columns",
    "to_flat",
    "to_spatial",
    "as_receiver_frame",
    "ColumnMap",
]

PATH_COLUMNS = ("individual_id", "step_index", "x", "y", "time")
RECEIVER_COLUMNS = ("receiver_id", "x", "y")
TAG_SPEC_COLUMNS = ("delay_min", "delay_max", "burst_duration")
TRANSMISSION_COLUMNS = ("transmission_id", "tag_id", "signal_type", "time", "x", "y")
DETECTION_COLUMNS = (
    "transmission_id", "tag_id", "signal_type", "receiver_id", "time", "trns_x", "trns_y", "x", "y",
)

GEOMETRY = "geometry"


def require_columns(frame: pd.DataFrame, columns: Iterable[str], table: Optional[str] = None) -> None:
    """Raise :class:`ColumnMismatch` listing every column of ``columns`` not in ``frame``.

    A ``geometry`` column stands in for ``x`` and ``y``.
    """
    present = set(frame.columns)
    if GEOMETRY in present:
        present |= {"x", "y"}
    missing = [c for c in columns if c not in present]
    if missing:
        raise ColumnMismatch(missing, table)


def to_spatial(frame: pd.DataFrame, x: str = "x", y: str = "y") -> pd.DataFrame:
    """Replace the ``x``/``y`` columns by a ``geometry`` column of points."""
    if GEOMETRY in frame.columns:
        return frame.copy()
    require_columns(frame, (x, y))
    out = frame.copy()
    pos = out.columns.get_loc(x)
    points = shapely.points(np.column_stack([out[x].to_numpy(float), out[y].to_numpy(float)]))
    out = out.drop(columns=[x, y])
    out.insert(pos, GEOMETRY, points)
    return out


def to_flat(frame: pd.DataFrame, x: str = "x", y: str = "y") -> pd.DataFrame:
    """Replace a ``geometry`` column of points by scalar ``x``/``y`` columns."""
    if GEOMETRY not in frame.columns:
        return frame.copy()
    out = frame.copy()
    pos = out.columns.get_loc(GEOMETRY)
    geoms = out[GEOMETRY].to_numpy()
    out = out.drop(columns=[GEOMETRY])
    out.insert(pos, x, shapely.get_x(geoms))
    out.insert(pos + 1, y, shapely.get_y(geoms))
    return out


def as_receiver_frame(receivers) -> pd.DataFrame:
    """Normalise a receiver layout to flat rows ``{receiver_id, x, y}``.

    Accepts a flat or spatial frame (``receiver_id`` defaults to 1..n) or an
    ``(n, 2)`` array of coordinates.
    """
    if isinstance(receivers, pd.DataFrame):
        frame = to_flat(receivers)
        require_columns(frame, ("x", "y"), "receiver")
        if "receiver_id" not in frame:
            frame.insert(0, "receiver_id", np.arange(1, len(frame) + 1))
        return frame.reset_index(drop=True)

    xy = np.asarray(receivers, dtype=float)
    if xy.ndim == 1 and xy.size == 2:
        xy = xy[None, :]
    if xy.ndim != 2 or xy.shape[1] != 2:
        raise ValueError(f"Receiver coordinates must have shape (n, 2), got {xy.shape}")
    return pd.DataFrame({"receiver_id": np.arange(1, len(xy) + 1), "x": xy[:, 0], "y": xy[:, 1]})


@dataclass(frozen=True)
class ColumnMap:
    """Names of the columns carrying each semantic role in a detection table."""

    timestamp: str = "timestamp"
    transmitter: str = "transmitter"
    receiver: str = "receiver"
    longitude: str = "longitude"
    latitude: str = "latitude"

    @classmethod
    def glatos(cls) -> "ColumnMap":
        return cls(
            timestamp="detection_timestamp_utc",
            transmitter="transmitter_id",
            receiver="receiver_sn",
            longitude="deploy_long",
            latitude="deploy_lat",
        )

    @classmethod
    def otn(cls) -> "ColumnMap":
        return cls(
            timestamp="datecollected",
            transmitter="tagname",
            receiver="receiver_group",
            longitude="longitude",
            latitude="latitude",
        )

    @classmethod
    def for_type(cls, data_type: str) -> "ColumnMap":
        presets = {"GLATOS": cls.glatos, "OTN": cls.otn}
        try:
            return presets[data_type.upper()]()
        except KeyError as exc:
            raise ValueError(f"The type '{data_type}' is not defined.") from exc

    def roles(self) -> dict:
        """Mapping of source column name -> canonical role name."""
        return {getattr(self, f.name): f.name for f in fields(self)}

    def resolve(self, frame: pd.DataFrame) -> pd.DataFrame:
        """Return a new frame with only the role columns, renamed to the role names."""
        mapping = self.roles()
        require_columns(frame, list(mapping), "detections")
        return frame[list(mapping)].rename(columns=mapping)
