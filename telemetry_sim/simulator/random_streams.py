"""Seedable random streams.

Every stochastic call in the simulator takes an explicit ``np.random.Generator``.
Individuals draw from their own sub-stream, spawned from the run seed, so the
outcome of individual ``i`` does not depend on how many individuals ran before
it or on which worker process it landed.
"""
from __future__ import annotations

from typing import List, Optional, Union

import numpy as np

__all__ = ["make_rng", "spawn_streams"]

SeedLike = Union[None, int, np.random.SeedSequence, np.random.Generator]


def make_rng(seed: SeedLike = None) -> np.random.Generator:
    """Return a Generator; an existing Generator is passed through untouched."""
    if isinstance(seed, np.random.Generator):
        return seed
    return np.random.default_rng(seed)


def spawn_streams(seed: Optional[int], n: int) -> List[np.random.Generator]:
    """Return ``n`` independent generators derived from ``seed``."""
    if n < 0:
        raise ValueError("n must be non-negative")
    children = np.random.SeedSequence(seed).spawn(n)
    return [np.random.default_rng(child) for child in children]
