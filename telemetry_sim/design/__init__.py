"""Design aids for planning receiver networks and tag programming.

- `collision` : closed-form collision probability among co-located tags.
- `receiver_line` : detection efficiency of a receiver line, by simulation.
"""
from __future__ import annotations

from .collision import collision_probability, collision_table
from .receiver_line import ReceiverLineResult, receiver_line_det_sim, receiver_line_layout

__all__ = [
    "collision_probability",
    "collision_table",
    "ReceiverLineResult",
    "receiver_line_det_sim",
    "receiver_line_layout",
]
