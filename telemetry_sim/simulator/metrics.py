"""Detection-efficiency statistics for simulated runs."""
from __future__ import annotations

from typing import Iterable, Optional, Sequence

import numpy as np
import pandas as pd

__all__ = [
    "detections_per_individual",
    "detection_efficiency",
    "summarize_counts",
]


def _with_key(frame: pd.DataFrame, key: str) -> pd.DataFrame:
    if key in frame.columns:
        return frame
    return frame.assign(**{key: np.ones(len(frame), dtype=int)})


def detections_per_individual(
    transmissions: pd.DataFrame,
    detections: pd.DataFrame,
    individual_ids: Optional[Iterable] = None,
    key: str = "individual_id",
) -> pd.DataFrame:
    """Per-individual counts of transmissions, detections and detecting receivers.

    Frames without ``key`` are treated as a single individual ``1``. Passing
    ``individual_ids`` keeps individuals that produced no rows at all.
    """
    trns = _with_key(transmissions, key)
    dets = _with_key(detections, key)

    parts = [trns.groupby(key).size().rename("n_transmissions")]
    if len(dets):
        grouped = dets.groupby(key)
        parts += [
            grouped.size().rename("n_detections"),
            grouped["transmission_id"].nunique().rename("n_detected_transmissions"),
            grouped["receiver_id"].nunique().rename("n_receivers"),
        ]
    table = pd.concat(parts, axis=1).reindex(
        columns=["n_transmissions", "n_detections", "n_detected_transmissions", "n_receivers"]
    )
    if individual_ids is not None:
        table = table.reindex(list(individual_ids))
    table = table.fillna(0).astype(int)
    table.index.name = key

    with np.errstate(invalid="ignore", divide="ignore"):
        eff = table["n_detected_transmissions"] / table["n_transmissions"]
    table["efficiency"] = eff.fillna(0.0)
    return table.reset_index()


def detection_efficiency(transmissions: pd.DataFrame, detections: pd.DataFrame) -> float:
    """Fraction of transmissions heard by at least one receiver."""
    if len(transmissions) == 0:
        return 0.0
    cols = [c for c in ("individual_id", "transmission_id") if c in detections.columns]
    detected = len(detections[cols].drop_duplicates())
    return detected / len(transmissions)


def summarize_counts(counts: Sequence[int], thresholds: Iterable[int] = (1, 2, 3, 4, 5)) -> pd.DataFrame:
    """Proportion of individuals detected at least ``k`` times, for each ``k``."""
    counts = np.asarray(counts, dtype=int)
    rows = []
    for k in thresholds:
        n_hit = int(np.sum(counts >= k))
        rows.append(
            {
                "min_detections": int(k),
                "n_individuals": int(counts.size),
                "n_detected": n_hit,
                "proportion": n_hit / counts.size if counts.size else 0.0,
            }
        )
    return pd.DataFrame(rows, columns=["min_detections", "n_individuals", "n_detected", "proportion"])
