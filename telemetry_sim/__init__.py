"""Acoustic telemetry network simulator."""
from __future__ import annotations

from importlib import metadata as _metadata

try:
    __version__: str = _metadata.version("telemetry-sim")
except _metadata.PackageNotFoundError:
    __version__ = "0.0.0-dev"

__all__ = ["config", "simulator", "design", "SimulationConfig"]

from . import design, simulator
from .config import SimulationConfig
