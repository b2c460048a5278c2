"""Global configuration definitions.

All run-wide tunables and the root random seed live here so that every
component of the framework can access them in a single import.  Config objects
can be created either programmatically or loaded from YAML files to facilitate
batch experiments (e.g. sweeping receiver spacing or tag programming).
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field, asdict
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

import numpy as np
import yaml

__all__ = [
    "SimulationConfig",
]

DEFAULT_YAML_INDENT = 2

# Fields that never go to / come from YAML.
_RUNTIME_ONLY = ("det_rng_fun", "_yaml_path")


@dataclass
class SimulationConfig:
    """Container for all simulation parameters.

    Attributes
    ----------
    seed
        Root seed of the run's random stream. Individuals get independent
        sub-streams spawned from it.
    sp_out
        Return spatial frames (shapely ``geometry`` column) instead of flat
        ``x``/``y`` columns.
    vel
        Movement speed in m/s. Path timestamps are cumulative distance / vel.
    delay_rng
        ``[min, max]`` of the uniform delay between transmissions, seconds.
    burst_dur
        Duration of one transmission, seconds.
    random_phase
        Start each tag at a random point of its first interval instead of one
        whole interval after the path start.
    n_steps, step_length, turn_angle
        Correlated random walk: number of steps, step length (m) and the
        ``[mean, sd]`` of the normal turning angle in degrees.
    boundary_policy
        What to do with a step that leaves the polygon: ``"resample"`` or
        ``"reflect"``.
    max_attempts
        Containment retries per step before giving up on an individual.
    check_segment
        With ``resample``, also require the straight move to stay in water.
    n_individuals
        Number of simulated individuals.
    det_range
        Description of the detection-range function, e.g.
        ``{"kind": "logistic", "midpoint": 400, "slope": 0.02}``.
    det_rng_fun
        Callable ``distance -> probability``; overrides ``det_range`` when set.
    """

    seed: int = 0
    sp_out: bool = True
    vel: float = 0.5
    delay_rng: List[float] = field(default_factory=lambda: [60.0, 180.0])
    burst_dur: float = 5.0
    random_phase: bool = False

    n_steps: int = 30
    step_length: float = 100.0
    turn_angle: List[float] = field(default_factory=lambda: [0.0, 10.0])
    boundary_policy: str = "resample"
    max_attempts: int = 100
    check_segment: bool = True

    n_individuals: int = 1
    det_range: Dict[str, Any] = field(
        default_factory=lambda: {"kind": "logistic", "midpoint": 400.0, "slope": 0.02}
    )

    # Free-form field to store arbitrary user metadata (e.g., experiment name).
    tag: str = ""

    det_rng_fun: Optional[Callable[[np.ndarray], Any]] = field(default=None, repr=False, compare=False)

    # Automatically filled, not expected to be loaded from file.
    _yaml_path: Optional[Path] = field(default=None, repr=False, compare=False)

    # ---------------------------------------------------------------------
    # YAML helpers
    # ---------------------------------------------------------------------
    @classmethod
    def from_yaml(cls, path: os.PathLike | str) -> "SimulationConfig":
        """Load a configuration from a YAML file."""
        with open(path, "r", encoding="utf-8") as fh:
            data = yaml.safe_load(fh) or {}
        unknown = set(data) - {f for f in cls.__dataclass_fields__ if f not in _RUNTIME_ONLY}
        if unknown:
            raise ValueError(f"Unknown configuration field(s) in {path}: {sorted(unknown)}")
        cfg = cls(**data)
        cfg._yaml_path = Path(path)
        return cfg

    # ------------------------------------------------------------------
    # Detection range
    # ------------------------------------------------------------------
    def detection_range_fn(self) -> Callable[[np.ndarray], Any]:
        """Return the configured detection-range function."""
        if self.det_rng_fun is not None:
            return self.det_rng_fun
        from .simulator.detection import range_function_from_config

        return range_function_from_config(self.det_range)

    # --------------------------------------------------------------
    # Serialisation utilities
    # --------------------------------------------------------------
    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        for key in _RUNTIME_ONLY:
            data.pop(key, None)
        return data

    def to_yaml(self, path: os.PathLike | str) -> None:
        """Save the config to YAML."""
        with open(path, "w", encoding="utf-8") as fh:
            yaml.safe_dump(self.to_dict(), fh, indent=DEFAULT_YAML_INDENT, sort_keys=False)

    # Convenience str representation for logging
    def __str__(self) -> str:  # noqa: DunderStr
        return (
            f"SimulationConfig(n_individuals={self.n_individuals}, n_steps={self.n_steps}, "
            f"delay_rng={self.delay_rng}, burst_dur={self.burst_dur}, seed={self.seed})"
        )

    def __post_init__(self):
        # YAML may hand us strings or ints for the float fields
        for name in ("vel", "burst_dur", "step_length"):
            setattr(self, name, float(getattr(self, name)))
        self.delay_rng = [float(v) for v in self.delay_rng]
        self.turn_angle = [float(v) for v in self.turn_angle]
        self.n_steps = int(self.n_steps)
        self.n_individuals = int(self.n_individuals)
        self.max_attempts = int(self.max_attempts)

        if len(self.delay_rng) != 2 or self.delay_rng[0] > self.delay_rng[1]:
            raise ValueError(f"delay_rng must be [min, max] with min <= max, got {self.delay_rng}")
        if self.delay_rng[0] < 0:
            raise ValueError("delay_rng must be non-negative")
        if self.burst_dur < 0:
            raise ValueError("burst_dur must be non-negative")
        if self.vel <= 0:
            raise ValueError("vel must be positive")
        if len(self.turn_angle) != 2:
            raise ValueError("turn_angle must be [mean, sd] in degrees")
        if self.boundary_policy not in ("resample", "reflect"):
            raise ValueError(
                f"Unknown boundary_policy '{self.boundary_policy}'. Choose 'resample' or 'reflect'."
            )
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
