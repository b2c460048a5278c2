"""Error kinds raised by the simulator core and its record boundary."""
from __future__ import annotations

from typing import Iterable, Optional

__all__ = [
    "TelemetrySimError",
    "InvalidGeometry",
    "UnreachableStart",
    "RetryExhausted",
    "InvalidDetectionRangeFunction",
    "ColumnMismatch",
]


class TelemetrySimError(Exception):
    """Base class for every error raised by `telemetry_sim`."""


class InvalidGeometry(TelemetrySimError, ValueError):
    """Polygon boundary is malformed (too few vertices, self-intersecting...)."""


class UnreachableStart(TelemetrySimError, ValueError):
    """Initial position of an individual lies outside the polygon."""

    def __init__(self, position, individual_id=None):
        self.position = tuple(float(v) for v in position)
        self.individual_id = individual_id
        who = "" if individual_id is None else f" for individual {individual_id}"
        super().__init__(f"Start position {self.position}{who} is outside the polygon.")


class RetryExhausted(TelemetrySimError, RuntimeError):
    """Containment retries ran out while generating a path step."""

    def __init__(
        self,
        step_index: int,
        attempts: int,
        position,
        polygon=None,
        policy: str = "",
        individual_id=None,
    ):
        self.step_index = step_index
        self.attempts = attempts
        self.position = tuple(float(v) for v in position)
        self.polygon = polygon
        self.policy = policy
        self.individual_id = individual_id
        bounds = None if polygon is None else tuple(round(b, 3) for b in polygon.bounds)
        msg = (
            f"Step {step_index} from {self.position} could not be kept inside the "
            f"polygon (bounds={bounds}) after {attempts} attempts (policy='{policy}')."
        )
        if individual_id is not None:
            msg = f"Individual {individual_id}: {msg}"
        msg += " Consider a larger turning-angle sd, a shorter step length or another start."
        super().__init__(msg)


class InvalidDetectionRangeFunction(TelemetrySimError, ValueError):
    """Detection-range function returned something that is not a probability."""

    def __init__(self, distance: float, probability, receiver_id=None):
        self.distance = float(distance)
        self.probability = probability
        self.receiver_id = receiver_id
        where = "" if receiver_id is None else f" (receiver {receiver_id})"
        super().__init__(
            f"Detection range function returned {probability!r} at distance "
            f"{self.distance:.3f} m{where}; expected a value in [0, 1]."
        )


class ColumnMismatch(TelemetrySimError, KeyError):
    """Input table lacks one or more required columns."""

    def __init__(self, missing: Iterable[str], table: Optional[str] = None):
        self.missing = list(missing)
        self.table = table
        name = f"{table} table" if table else "Input table"
        cols = "\n".join(f"       '{c}'" for c in self.missing)
        super().__init__(f"{name} is missing the following column(s):\n{cols}")

    def __str__(self) -> str:  # KeyError would repr() the message
        return self.args[0]
