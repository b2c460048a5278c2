"""Movement paths: the ``Path`` record and the correlated random walk generator.

A path is generated inside a water polygon one step at a time. Each step draws
a length and a turning angle relative to the previous heading. When the
proposed step leaves the polygon a *boundary policy* decides what happens:

``resample``
    Discard the proposal and draw a new length and turning angle.
``reflect``
    Bounce the move off the boundary edge it crosses, keeping its length.

Both policies give up after ``max_attempts`` and raise
:class:`~telemetry_sim.errors.RetryExhausted`, so a path that is returned has
every vertex inside the polygon.
"""
from __future__ import annotations

import inspect
import logging
import math
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Sequence, Tuple, Type, Union

import numpy as np
import pandas as pd
from shapely.geometry import Polygon

from ..errors import RetryExhausted, UnreachableStart
from .geometry import contains, make_polygon, random_point, reflect_step, segment_inside
from .random_streams import make_rng

__all__ = [
    "Path",
    "BoundaryPolicy",
    "register_policy",
    "get_policy",
    "crw_in_polygon",
]

log = logging.getLogger(__name__)

Sampler = Callable[[np.random.Generator], float]


def _freeze(values) -> np.ndarray:
    arr = np.array(values, dtype=float)
    arr.setflags(write=False)
    return arr


@dataclass(frozen=True)
class Path:
    """Discretised movement path of one individual."""

    x: np.ndarray
    y: np.ndarray
    time: np.ndarray
    individual_id: int = 1

    def __post_init__(self) -> None:
        object.__setattr__(self, "x", _freeze(self.x))
        object.__setattr__(self, "y", _freeze(self.y))
        object.__setattr__(self, "time", _freeze(self.time))
        if not (self.x.shape == self.y.shape == self.time.shape) or self.x.ndim != 1:
            raise ValueError("x, y and time must be 1-D arrays of equal length")
        if self.x.size == 0:
            raise ValueError("A path needs at least one vertex")
        if np.any(np.diff(self.time) < 0):
            raise ValueError("Path timestamps must be non-decreasing")

    # ------------------------------------------------------------------
    # Factory
    # ------------------------------------------------------------------
    @classmethod
    def from_coords(
        cls,
        x: Sequence[float],
        y: Sequence[float],
        vel: Optional[float] = None,
        step_duration: float = 1.0,
        start_time: float = 0.0,
        individual_id: int = 1,
    ) -> "Path":
        """Build a path from vertices, timing it by speed or by a fixed step duration."""
        x = np.asarray(x, dtype=float)
        y = np.asarray(y, dtype=float)
        if vel is not None:
            if vel <= 0:
                raise ValueError("vel must be positive")
            seg = np.hypot(np.diff(x), np.diff(y))
            time = start_time + np.concatenate([[0.0], np.cumsum(seg)]) / vel
        else:
            if step_duration <= 0:
                raise ValueError("step_duration must be positive")
            time = start_time + step_duration * np.arange(x.size)
        return cls(x=x, y=y, time=time, individual_id=individual_id)

    @classmethod
    def from_frame(cls, frame: pd.DataFrame, vel: Optional[float] = None) -> "Path":
        """Build a path from the rows of one individual; ``time`` is recomputed when ``vel`` is given."""
        from ..records import require_columns, to_flat

        frame = to_flat(frame)
        require_columns(frame, ("x", "y"), "path")
        ind = 1
        if "individual_id" in frame:
            ids = frame["individual_id"].unique()
            if ids.size > 1:
                raise ValueError(
                    f"Path rows hold {ids.size} individuals; build one Path per individual"
                )
            if ids.size:
                ind = ids[0]
        if "step_index" in frame:
            frame = frame.sort_values("step_index", kind="mergesort")
        if vel is not None:
            return cls.from_coords(frame["x"], frame["y"], vel=vel, individual_id=ind)
        if "time" not in frame:
            raise ValueError("Path rows have no 'time' column; pass vel to time them")
        return cls(x=frame["x"], y=frame["y"], time=frame["time"], individual_id=ind)

    # ------------------------------------------------------------------
    # Public helpers
    # ------------------------------------------------------------------
    @property
    def n_steps(self) -> int:
        return self.x.size - 1

    @property
    def start_time(self) -> float:
        return float(self.time[0])

    @property
    def duration(self) -> float:
        return float(self.time[-1] - self.time[0])

    def cumulative_distance(self) -> np.ndarray:
        seg = np.hypot(np.diff(self.x), np.diff(self.y))
        return np.concatenate([[0.0], np.cumsum(seg)])

    @property
    def length(self) -> float:
        return float(self.cumulative_distance()[-1])

    def position_at(self, t) -> Tuple[np.ndarray, np.ndarray]:
        """Linearly interpolate (x, y) at time(s) ``t``; clipped to the path ends."""
        t = np.asarray(t, dtype=float)
        if self.x.size == 1:
            return np.full(t.shape, self.x[0]), np.full(t.shape, self.y[0])
        return np.interp(t, self.time, self.x), np.interp(t, self.time, self.y)

    def to_frame(self, sp_out: bool = False) -> pd.DataFrame:
        """Path rows ``{individual_id, step_index, x, y, time}``."""
        from ..records import PATH_COLUMNS, to_spatial

        frame = pd.DataFrame(
            {
                "individual_id": self.individual_id,
                "step_index": np.arange(self.x.size),
                "x": self.x,
                "y": self.y,
                "time": self.time,
            },
            columns=list(PATH_COLUMNS),
        )
        return to_spatial(frame) if sp_out else frame


# ------------------------------------------------------------------
# Distributions
# ------------------------------------------------------------------

def _as_sampler(value: Union[float, Sequence[float], Sampler], name: str) -> Sampler:
    """Turn a constant, a ``(mean, sd)`` pair or a callable into ``rng -> value``."""
    if callable(value):
        return value
    if np.isscalar(value):
        value = float(value)
        return lambda rng: value
    try:
        mean, sd = (float(v) for v in value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"{name} must be a number, a (mean, sd) pair or a callable") from exc
    if sd < 0:
        raise ValueError(f"{name} sd must be non-negative")
    return lambda rng: rng.normal(mean, sd)


# ------------------------------------------------------------------
# Boundary policies
# ------------------------------------------------------------------

_REGISTRY: Dict[str, Type["BoundaryPolicy"]] = {}


class BoundaryPolicy(ABC):
    """Decides how a step that would leave the polygon is handled."""

    name: str = ""

    def __init__(
        self,
        polygon: Polygon,
        max_attempts: int = 100,
        check_segment: bool = True,
        individual_id=None,
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        self.polygon = polygon
        self.max_attempts = max_attempts
        self.check_segment = check_segment
        self.individual_id = individual_id
        self.retries = 0

    def _inside(self, start, end) -> bool:
        if self.check_segment:
            return segment_inside(start, end, self.polygon)
        return contains(end, self.polygon)

    def _propose_heading(self, heading, turn_angle, rng, attempt: int) -> float:
        # after half the budget the turn is uniform so a shoreline can be escaped
        if heading is None or attempt < max(self.max_attempts // 2, 1):
            return _draw_heading(heading, turn_angle, rng)
        return (heading + rng.uniform(-180.0, 180.0)) % 360.0

    def _exhausted(self, step_index: int, position) -> RetryExhausted:
        return RetryExhausted(
            step_index=step_index,
            attempts=self.max_attempts,
            position=position,
            polygon=self.polygon,
            policy=self.name,
            individual_id=self.individual_id,
        )

    @abstractmethod
    def step(
        self,
        position: np.ndarray,
        heading: Optional[float],
        step_length: Sampler,
        turn_angle: Sampler,
        rng: np.random.Generator,
        step_index: int,
    ) -> Tuple[np.ndarray, float]:
        """Return the accepted next position and its heading (degrees)."""


def register_policy(cls: Type[BoundaryPolicy]) -> Type[BoundaryPolicy]:
    """Class decorator adding a boundary policy to the registry under ``cls.name``."""
    if not inspect.isclass(cls):
        raise TypeError("@register_policy can only decorate classes")
    if not issubclass(cls, BoundaryPolicy):
        raise TypeError("Registered class must inherit from BoundaryPolicy")
    if not cls.name:
        raise ValueError("Boundary policies need a non-empty `name`")
    if cls.name in _REGISTRY:
        raise KeyError(f"Boundary policy '{cls.name}' is already registered")
    _REGISTRY[cls.name] = cls
    return cls


def get_policy(name: str) -> Type[BoundaryPolicy]:
    try:
        return _REGISTRY[name]
    except KeyError as exc:
        raise KeyError(
            f"Boundary policy '{name}' not found in registry. Available: {list(_REGISTRY)}"
        ) from exc


def _draw_heading(heading: Optional[float], turn_angle: Sampler, rng: np.random.Generator) -> float:
    if heading is None:
        return rng.uniform(0.0, 360.0)
    return (heading + turn_angle(rng)) % 360.0


def _advance(position: np.ndarray, length: float, heading: float) -> np.ndarray:
    rad = math.radians(heading)
    return position + length * np.array([math.cos(rad), math.sin(rad)])


@register_policy
class ResamplePolicy(BoundaryPolicy):
    """Redraw length and turning angle until the step stays inside.

    Once half of the attempts are spent the turning angle is drawn uniformly
    on [-180, 180) so an individual facing a shoreline can turn away from it.
    """

    name = "resample"

    def step(self, position, heading, step_length, turn_angle, rng, step_index):
        for attempt in range(self.max_attempts):
            new_heading = self._propose_heading(heading, turn_angle, rng, attempt)
            candidate = _advance(position, step_length(rng), new_heading)
            if self._inside(position, candidate):
                return candidate, new_heading
            self.retries += 1
            log.debug("step %d: proposal %s outside, resampling (%d)", step_index, candidate, attempt + 1)
        raise self._exhausted(step_index, position)


# Legs after a reflection start this far off the shoreline so that rounding in
# the intersection point does not read as another crossing.
_SHORE_OFFSET = 1e-6


@register_policy
class ReflectPolicy(BoundaryPolicy):
    """Keep the drawn move but mirror it off every boundary edge it hits.

    The path only records the end of the bounced move, so the end point is
    accepted only when the straight step from the current position to it is
    in water too (or, with ``check_segment=False``, when it is contained).
    Otherwise a new move is drawn, up to ``max_attempts`` times.
    """

    name = "reflect"
    max_bounces = 8

    def _bounce(self, position, target, heading):
        origin = position
        for _ in range(self.max_bounces):
            if self._inside(origin, target):
                break
            hit, target, heading = reflect_step(origin, target, self.polygon)
            rest = target - hit
            norm = float(np.hypot(*rest))
            origin = hit + rest * min(_SHORE_OFFSET / norm, 0.5) if norm > 0 else hit
        return origin, target, heading

    def step(self, position, heading, step_length, turn_angle, rng, step_index):
        for attempt in range(self.max_attempts):
            new_heading = self._propose_heading(heading, turn_angle, rng, attempt)
            target = _advance(position, step_length(rng), new_heading)
            origin, target, new_heading = self._bounce(position, target, new_heading)
            if self._inside(origin, target) and self._inside(position, target):
                return target, new_heading
            self.retries += 1
            log.debug("step %d: bounced end %s not reachable in a straight line (%d)", step_index, target, attempt + 1)
        raise self._exhausted(step_index, position)


# ------------------------------------------------------------------
# Generator entry-point
# ------------------------------------------------------------------

def crw_in_polygon(
    polygon,
    n_steps: int = 30,
    step_length: Union[float, Sampler] = 100.0,
    turn_angle: Union[Sequence[float], Sampler] = (0.0, 10.0),
    init_pos: Optional[Sequence[float]] = None,
    init_heading: Optional[float] = None,
    vel: Optional[float] = None,
    step_duration: float = 1.0,
    policy: str = "resample",
    max_attempts: int = 100,
    check_segment: bool = True,
    rng=None,
    individual_id: int = 1,
    start_time: float = 0.0,
) -> Path:
    """Simulate a correlated random walk that stays inside ``polygon``.

    Parameters
    ----------
    polygon
        Water region: a shapely ``Polygon`` or an exterior ring of vertices.
    n_steps
        Number of steps; the path has ``n_steps + 1`` vertices.
    step_length
        Step length in metres, or a callable ``rng -> length``.
    turn_angle
        ``(mean, sd)`` of a normal turning angle in degrees, or a callable
        ``rng -> degrees``.
    init_pos
        Start position; a uniform random point in the polygon when omitted.
    init_heading
        Heading (degrees counter-clockwise from +x) the individual arrives
        with; the first step turns relative to it. When omitted the first
        heading is uniform on [0, 360).
    vel, step_duration
        Timestamps are cumulative distance / ``vel`` when ``vel`` is given,
        otherwise ``step_duration`` seconds per step.
    policy
        Registered boundary policy name (``"resample"`` or ``"reflect"``).
    max_attempts
        Containment retries allowed per step.
    check_segment
        Require the straight move (not just its end point) to stay in water.
    rng
        Seed or ``np.random.Generator``.

    Raises
    ------
    InvalidGeometry
        Malformed polygon.
    UnreachableStart
        ``init_pos`` outside the polygon.
    RetryExhausted
        A step could not be kept inside the polygon.
    """
    if n_steps < 0:
        raise ValueError("n_steps must be non-negative")
    polygon = make_polygon(polygon)
    rng = make_rng(rng)
    step_sampler = _as_sampler(step_length, "step_length")
    turn_sampler = _as_sampler(turn_angle, "turn_angle")

    if init_pos is None:
        position = random_point(polygon, rng)
    else:
        position = np.asarray(init_pos, dtype=float)
        if not contains(position, polygon):
            raise UnreachableStart(position, individual_id)

    boundary = get_policy(policy)(
        polygon, max_attempts=max_attempts, check_segment=check_segment, individual_id=individual_id
    )
    coords = np.empty((n_steps + 1, 2))
    coords[0] = position
    heading = None if init_heading is None else float(init_heading) % 360.0
    for i in range(1, n_steps + 1):
        position, heading = boundary.step(position, heading, step_sampler, turn_sampler, rng, i)
        coords[i] = position

    log.debug(
        "individual %s: %d steps generated with %d boundary retries (%s)",
        individual_id, n_steps, boundary.retries, policy,
    )
    return Path.from_coords(
        coords[:, 0],
        coords[:, 1],
        vel=vel,
        step_duration=step_duration,
        start_time=start_time,
        individual_id=individual_id,
    )
