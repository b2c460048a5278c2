"""Execution engine: path -> transmissions -> detections for each individual."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from ..config import SimulationConfig
from ..errors import RetryExhausted, UnreachableStart
from ..records import as_receiver_frame
from .detection import detect
from .geometry import make_polygon
from .metrics import detection_efficiency, detections_per_individual
from .path import Path, crw_in_polygon
from .random_streams import make_rng, spawn_streams
from .transmission import TagSpec, schedule

__all__ = ["IndividualResult", "SimulationResult", "simulate_individual", "run_simulation"]

log = logging.getLogger(__name__)

ON_ERROR = ("raise", "skip")


@dataclass
class IndividualResult:
    """Output of one individual's simulation chain."""

    individual_id: int
    path: Path
    transmissions: pd.DataFrame
    detections: pd.DataFrame


@dataclass
class SimulationResult:
    """Container returned by `run_simulation` and `parallel.run_batch`."""

    config: SimulationConfig
    paths: pd.DataFrame
    transmissions: pd.DataFrame
    detections: pd.DataFrame
    individual_ids: List[int]
    # individual_id -> error message for individuals skipped under on_error="skip"
    failures: Dict[int, str] = field(default_factory=dict)

    def efficiency_table(self) -> pd.DataFrame:
        return detections_per_individual(self.transmissions, self.detections, self.individual_ids)

    @property
    def efficiency(self) -> float:
        return detection_efficiency(self.transmissions, self.detections)


# ------------------------------------------------------------------
# Single individual
# ------------------------------------------------------------------

def simulate_individual(
    cfg: SimulationConfig,
    polygon,
    receivers,
    individual_id: int = 1,
    rng=None,
    tag: Optional[TagSpec] = None,
    init_pos: Optional[Sequence[float]] = None,
) -> IndividualResult:
    """Run path generation, transmission scheduling and detection for one individual.

    All draws come from ``rng`` in that order.
    """
    rng = make_rng(rng)
    path = crw_in_polygon(
        polygon,
        n_steps=cfg.n_steps,
        step_length=cfg.step_length,
        turn_angle=cfg.turn_angle,
        init_pos=init_pos,
        vel=cfg.vel,
        policy=cfg.boundary_policy,
        max_attempts=cfg.max_attempts,
        check_segment=cfg.check_segment,
        rng=rng,
        individual_id=individual_id,
    )
    if tag is None:
        tag = TagSpec(
            tag_id=individual_id,
            delay_range=tuple(cfg.delay_rng),
            burst_duration=cfg.burst_dur,
            random_phase=cfg.random_phase,
        )
    transmissions = schedule(path, signal_schedule=tag, tag_id=tag.tag_id, sp_out=cfg.sp_out, rng=rng)
    transmissions.insert(0, "individual_id", individual_id)
    detections = detect(transmissions, receivers, cfg.detection_range_fn(), sp_out=cfg.sp_out, rng=rng)
    return IndividualResult(individual_id, path, transmissions, detections)


def run_individual(
    cfg: SimulationConfig,
    polygon,
    receivers,
    individual_id: int,
    rng: np.random.Generator,
    on_error: str = "raise",
    tag: Optional[TagSpec] = None,
    init_pos: Optional[Sequence[float]] = None,
) -> Tuple[Optional[IndividualResult], Optional[str]]:
    """`simulate_individual` with the caller's failure policy applied.

    Returns ``(result, None)`` on success and ``(None, message)`` for a skipped
    individual.
    """
    try:
        return simulate_individual(cfg, polygon, receivers, individual_id, rng, tag, init_pos), None
    except (RetryExhausted, UnreachableStart) as exc:
        if on_error == "raise":
            raise
        log.warning("individual %d skipped: %s", individual_id, exc)
        return None, str(exc)


def collect_results(
    cfg: SimulationConfig,
    outcomes: Sequence[Tuple[int, Optional[IndividualResult], Optional[str]]],
) -> SimulationResult:
    """Merge per-individual outcomes (ordered by individual id) into one result."""
    done = [res for _, res, _ in outcomes if res is not None]
    failures = {ind: msg for ind, res, msg in outcomes if res is None}
    if done:
        paths = pd.concat([r.path.to_frame(sp_out=cfg.sp_out) for r in done], ignore_index=True)
        transmissions = pd.concat([r.transmissions for r in done], ignore_index=True)
        detections = pd.concat([r.detections for r in done], ignore_index=True)
    else:
        paths, transmissions, detections = pd.DataFrame(), pd.DataFrame(), pd.DataFrame()

    log.info(
        "%d individuals simulated (%d failed): %d transmissions, %d detections",
        len(done), len(failures), len(transmissions), len(detections),
    )
    return SimulationResult(
        config=cfg,
        paths=paths,
        transmissions=transmissions,
        detections=detections,
        individual_ids=[r.individual_id for r in done],
        failures=failures,
    )


# ------------------------------------------------------------------
# Engine entry-point
# ------------------------------------------------------------------

def run_simulation(
    cfg: SimulationConfig,
    polygon,
    receivers,
    on_error: str = "raise",
    init_pos: Optional[Sequence[float]] = None,
) -> SimulationResult:
    """Simulate ``cfg.n_individuals`` individuals serially.

    Individual ``i`` (1-based) uses the ``i``-th sub-stream spawned from
    ``cfg.seed``; results match :func:`telemetry_sim.parallel.run_batch`.
    """
    if on_error not in ON_ERROR:
        raise ValueError(f"on_error must be one of {ON_ERROR}, got '{on_error}'")
    polygon = make_polygon(polygon)
    receivers = as_receiver_frame(receivers)
    streams = spawn_streams(cfg.seed, cfg.n_individuals)

    outcomes = []
    for ind, rng in enumerate(streams, start=1):
        res, err = run_individual(cfg, polygon, receivers, ind, rng, on_error, init_pos=init_pos)
        outcomes.append((ind, res, err))
    return collect_results(cfg, outcomes)
