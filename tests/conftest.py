"""Shared fixtures: study-area polygons, paths and receiver layouts."""
import numpy as np
import pandas as pd
import pytest

from telemetry_sim.simulator.geometry import make_polygon
from telemetry_sim.simulator.path import Path


@pytest.fixture
def square():
    """1 km x 1 km open-water square."""
    return make_polygon([(0, 0), (1000, 0), (1000, 1000), (0, 1000)])


@pytest.fixture
def lake():
    """L-shaped lake with a square island."""
    shell = [(0, 0), (2000, 0), (2000, 800), (800, 800), (800, 2000), (0, 2000)]
    island = [(300, 300), (500, 300), (500, 500), (300, 500)]
    return make_polygon(shell, [island])


@pytest.fixture
def diagonal_path():
    """Straight path (0,0) -> (1000,1000) in 100-unit steps at 0.5 m/s."""
    steps = np.arange(0, 1001, 100, dtype=float)
    return Path.from_coords(steps, steps, vel=0.5)


@pytest.fixture
def two_receivers():
    return pd.DataFrame({"receiver_id": [1, 2], "x": [250.0, 750.0], "y": [250.0, 750.0]})
