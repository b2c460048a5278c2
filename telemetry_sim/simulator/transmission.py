"""Transmission scheduling: when and where a tag emits along a movement path.

A tag transmits a burst of ``burst_duration`` seconds followed by a random
delay drawn from ``delay_range``; successive emission times are the running sum
of ``delay + burst_duration`` measured from the path start, so by default the
first emission falls one whole interval after the start. With
``random_phase=True`` the first interval is scaled by a uniform draw, i.e. the
tag was switched on at a random point of its cycle. Emissions stop once the
elapsed time passes the end of the path; one falling exactly on the end is
kept. The tag's position at each emission is linearly interpolated in time
between the path vertices.

Tags with several signal types (e.g. a pinger plus a sensor channel) run one
independent delay lane per type; the lanes are merged chronologically.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Optional, Sequence, Tuple, Union

import numpy as np
import pandas as pd

from ..records import TAG_SPEC_COLUMNS, TRANSMISSION_COLUMNS, require_columns, to_spatial
from .path import Path
from .random_streams import make_rng

__all__ = [
    "DEFAULT_SIGNAL",
    "SignalLane",
    "TagSpec",
    "schedule",
    "transmit_along_path",
]

log = logging.getLogger(__name__)

DEFAULT_SIGNAL = "pinger"

# rng, size -> array of delays (seconds)
DelayDist = Callable[[np.random.Generator, int], np.ndarray]


@dataclass(frozen=True)
class SignalLane:
    """Delay programming of one signal type."""

    signal_type: str = DEFAULT_SIGNAL
    delay_range: Tuple[float, float] = (60.0, 180.0)
    burst_duration: float = 5.0
    delay_dist: Optional[DelayDist] = None
    random_phase: bool = False

    def __post_init__(self) -> None:
        lo, hi = (float(v) for v in self.delay_range)
        object.__setattr__(self, "delay_range", (lo, hi))
        object.__setattr__(self, "burst_duration", float(self.burst_duration))
        if lo < 0 or hi < lo:
            raise ValueError(f"delay_range must satisfy 0 <= min <= max, got {self.delay_range}")
        if self.burst_duration < 0:
            raise ValueError("burst_duration must be non-negative")
        if self.delay_dist is None and (lo + hi) / 2 + self.burst_duration <= 0:
            raise ValueError("delay_range and burst_duration cannot both be zero")

    @property
    def mean_interval(self) -> float:
        lo, hi = self.delay_range
        return (lo + hi) / 2 + self.burst_duration

    def draw_delays(self, rng: np.random.Generator, size: int) -> np.ndarray:
        if self.delay_dist is None:
            return rng.uniform(self.delay_range[0], self.delay_range[1], size)
        delays = np.asarray(self.delay_dist(rng, size), dtype=float)
        if delays.shape != (size,):
            raise ValueError(f"delay_dist returned shape {delays.shape}, expected ({size},)")
        if np.any(delays < 0) or not np.all(np.isfinite(delays)):
            raise ValueError("delay_dist must return finite, non-negative delays")
        return delays

    def emission_offsets(self, duration: float, rng: np.random.Generator) -> np.ndarray:
        """Emission times relative to the path start, up to ``duration`` inclusive."""
        chunk = max(16, int(np.ceil(duration / max(self.mean_interval, 1e-9) * 1.1)) + 1)
        parts = []
        elapsed = 0.0
        while True:
            intervals = self.draw_delays(rng, chunk) + self.burst_duration
            if self.random_phase and not parts:
                intervals[0] *= rng.uniform()
            cum = elapsed + np.cumsum(intervals)
            keep = cum[cum <= duration]
            parts.append(keep)
            if keep.size < cum.size:
                break
            if cum[-1] <= elapsed:
                raise ValueError(f"Signal lane '{self.signal_type}' does not advance in time")
            elapsed = cum[-1]
        return np.concatenate(parts)


@dataclass(frozen=True)
class TagSpec:
    """Transmitter programming; ``lanes`` overrides the single-signal fields."""

    tag_id: Any = 1
    delay_range: Tuple[float, float] = (60.0, 180.0)
    burst_duration: float = 5.0
    lanes: Tuple[SignalLane, ...] = ()
    delay_dist: Optional[DelayDist] = None
    random_phase: bool = False

    def signal_lanes(self) -> Tuple[SignalLane, ...]:
        if self.lanes:
            return tuple(self.lanes)
        return (
            SignalLane(DEFAULT_SIGNAL, self.delay_range, self.burst_duration, self.delay_dist, self.random_phase),
        )

    @classmethod
    def from_rows(cls, frame: pd.DataFrame, tag_id: Any = 1) -> "TagSpec":
        """Build from tag spec rows ``{delay_min, delay_max, burst_duration, signal_type?}``.

        One row without ``signal_type`` is a single-signal tag; otherwise each row
        is one lane.
        """
        require_columns(frame, TAG_SPEC_COLUMNS, "tag spec")
        if len(frame) == 0:
            raise ValueError("Tag spec table is empty")
        rows = frame.reset_index(drop=True)
        if "signal_type" not in rows and len(rows) == 1:
            row = rows.iloc[0]
            return cls(
                tag_id=tag_id,
                delay_range=(row["delay_min"], row["delay_max"]),
                burst_duration=row["burst_duration"],
            )
        types = rows["signal_type"] if "signal_type" in rows else [f"signal_{i + 1}" for i in range(len(rows))]
        lanes = tuple(
            SignalLane(str(sig), (row["delay_min"], row["delay_max"]), row["burst_duration"])
            for sig, (_, row) in zip(types, rows.iterrows())
        )
        return cls(tag_id=tag_id, lanes=lanes)


def _resolve_lanes(signal_schedule, delay_range, burst_duration, delay_dist) -> Tuple[SignalLane, ...]:
    if signal_schedule is None:
        return (SignalLane(DEFAULT_SIGNAL, tuple(delay_range), burst_duration, delay_dist),)
    if isinstance(signal_schedule, TagSpec):
        return signal_schedule.signal_lanes()
    if isinstance(signal_schedule, SignalLane):
        return (signal_schedule,)
    lanes = tuple(signal_schedule)
    if not lanes:
        raise ValueError("signal_schedule must contain at least one SignalLane")
    return lanes


def schedule(
    path: Path,
    delay_range: Sequence[float] = (60.0, 180.0),
    burst_duration: float = 5.0,
    signal_schedule: Union[None, TagSpec, SignalLane, Sequence[SignalLane]] = None,
    tag_id: Any = 1,
    sp_out: bool = True,
    rng=None,
    delay_dist: Optional[DelayDist] = None,
) -> pd.DataFrame:
    """Simulate the transmissions of one tag moving along ``path``.

    Returns one row per emission in time order with columns
    ``transmission_id, tag_id, signal_type, time`` and the interpolated
    location as ``x``/``y`` (flat) or ``geometry`` (spatial). The random draws
    do not depend on ``sp_out``, so both representations hold the same events.
    """
    rng = make_rng(rng)
    lanes = _resolve_lanes(signal_schedule, delay_range, burst_duration, delay_dist)
    types = [lane.signal_type for lane in lanes]
    if len(set(types)) != len(types):
        raise ValueError(f"Signal types in a schedule must be distinct, got {types}")

    per_lane = [lane.emission_offsets(path.duration, rng) for lane in lanes]
    offsets = np.concatenate(per_lane)
    lane_idx = np.concatenate([np.full(t.size, i) for i, t in enumerate(per_lane)])
    order = np.lexsort((lane_idx, offsets))

    times = path.start_time + offsets[order]
    x, y = path.position_at(times)
    frame = pd.DataFrame(
        {
            "transmission_id": np.arange(1, times.size + 1),
            "tag_id": tag_id,
            "signal_type": np.asarray(types, dtype=object)[lane_idx[order]],
            "time": times,
            "x": x,
            "y": y,
        },
        columns=list(TRANSMISSION_COLUMNS),
    )
    log.debug("tag %s: %d transmissions over %.1f s", tag_id, len(frame), path.duration)
    return to_spatial(frame) if sp_out else frame


def transmit_along_path(
    path,
    tag: Optional[TagSpec] = None,
    vel: Optional[float] = None,
    sp_out: bool = True,
    rng=None,
) -> pd.DataFrame:
    """Schedule ``tag`` along a ``Path``, a path frame or an ``(n, 2)`` vertex array.

    Untimed vertices are timed with ``vel`` (m/s).
    """
    tag = tag or TagSpec()
    if isinstance(path, pd.DataFrame):
        path = Path.from_frame(path, vel=vel)
    elif not isinstance(path, Path):
        xy = np.asarray(path, dtype=float)
        if vel is None:
            raise ValueError("vel is required to time an untimed path")
        path = Path.from_coords(xy[:, 0], xy[:, 1], vel=vel)
    return schedule(path, signal_schedule=tag, tag_id=tag.tag_id, sp_out=sp_out, rng=rng)
