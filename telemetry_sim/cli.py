"""Command-line interface entry-point.

Usage examples
--------------
Simulate individuals in a lake with a receiver grid:
    python -m telemetry_sim.cli simulate --config cfgs/default.yaml \
        --polygon lake.csv --receivers receivers.csv --out_dir results

Collision probability for 1..50 tags:
    python -m telemetry_sim.cli collision --delay_rng 60 180 --burst_dur 5 --tags 1 10 25 50

Receiver line with 800 m spacing:
    python -m telemetry_sim.cli receiver-line --spacing 800 800 800 --midpoint 400 --slope 0.02
"""
from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import List

import numpy as np
import pandas as pd

from .config import SimulationConfig
from .design.collision import collision_table
from .design.receiver_line import receiver_line_det_sim
from .errors import TelemetrySimError
from .parallel import run_batch
from .records import RECEIVER_COLUMNS, require_columns, to_flat
from .simulator.detection import ConstantRange, LogisticRange
from .simulator.engine import run_simulation
from .simulator.geometry import make_polygon

SUBCOMMANDS = {"simulate", "collision", "receiver-line"}


def _parse_args(argv: List[str] | None = None) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="telemetry-sim", description="Acoustic telemetry network simulator")
    parser.add_argument("--log_level", default="WARNING", choices=["DEBUG", "INFO", "WARNING", "ERROR"])

    subparsers = parser.add_subparsers(dest="cmd", required=True)

    # ------------------------------------------------------------------
    # simulate
    # ------------------------------------------------------------------
    p_sim = subparsers.add_parser("simulate", help="Simulate paths, transmissions and detections")
    p_sim.add_argument("--config", required=True, type=Path, help="YAML config file")
    p_sim.add_argument("--polygon", required=True, type=Path, help="CSV of polygon vertices (x, y[, ring]); ring 0 is the shoreline, 1.. are islands")
    p_sim.add_argument("--receivers", required=True, type=Path, help="CSV of receivers (receiver_id, x, y)")
    p_sim.add_argument("--out_dir", type=Path, default=Path("results"), help="Directory for output CSV files")
    p_sim.add_argument("--processes", type=int, default=1, help="Worker processes (1 = serial)")
    p_sim.add_argument("--skip_failed", action="store_true", help="Skip individuals whose path cannot be generated instead of aborting")

    # ------------------------------------------------------------------
    # collision
    # ------------------------------------------------------------------
    p_col = subparsers.add_parser("collision", help="Closed-form collision probability")
    p_col.add_argument("--delay_rng", nargs=2, type=float, default=[60.0, 180.0], metavar=("MIN", "MAX"))
    p_col.add_argument("--burst_dur", type=float, default=5.0, help="Burst duration (s)")
    p_col.add_argument("--tags", nargs="+", type=int, required=True, help="Tag counts to evaluate")

    # ------------------------------------------------------------------
    # receiver-line
    # ------------------------------------------------------------------
    p_line = subparsers.add_parser("receiver-line", help="Detection efficiency of a receiver line")
    p_line.add_argument("--spacing", nargs="+", type=float, default=[1000.0], help="Gap(s) between receivers (m)")
    p_line.add_argument("--outer_lim", nargs=2, type=float, default=[0.0, 0.0], metavar=("LEFT", "RIGHT"))
    p_line.add_argument("--max_dist", type=float, default=2000.0, help="Start/end distance from the line (m)")
    p_line.add_argument("--vel", type=float, default=1.0, help="Swimming speed (m/s)")
    p_line.add_argument("--delay_rng", nargs=2, type=float, default=[60.0, 180.0], metavar=("MIN", "MAX"))
    p_line.add_argument("--burst_dur", type=float, default=5.0, help="Burst duration (s)")
    p_line.add_argument("--n_sim", type=int, default=1000, help="Number of simulated individuals")
    p_line.add_argument("--seed", type=int, default=0, help="Random seed")
    rng_group = p_line.add_mutually_exclusive_group(required=True)
    rng_group.add_argument("--midpoint", type=float, help="Logistic range curve: distance (m) of 50%% detection")
    rng_group.add_argument("--constant_p", type=float, help="Constant detection probability")
    p_line.add_argument("--slope", type=float, default=0.02, help="Logistic range curve slope (1/m)")
    return parser


def _read_polygon(path: Path):
    frame = pd.read_csv(path)
    require_columns(frame, ("x", "y"), "polygon")
    if "ring" not in frame:
        return make_polygon(frame[["x", "y"]].to_numpy())
    rings = [grp[["x", "y"]].to_numpy() for _, grp in frame.groupby("ring", sort=True)]
    return make_polygon(rings[0], rings[1:])


def _read_receivers(path: Path) -> pd.DataFrame:
    frame = pd.read_csv(path)
    require_columns(frame, RECEIVER_COLUMNS, "receiver")
    return frame


def _write(frame: pd.DataFrame, path: Path) -> None:
    out = to_flat(frame) if len(frame.columns) else frame
    out.to_csv(path, index=False)


def main(argv: List[str] | None = None) -> None:  # noqa: D401
    """Main entry point for the command-line interface."""
    parser = _parse_args(argv)
    args = parser.parse_args(argv)
    logging.basicConfig(level=args.log_level, format="%(levelname)-7s %(name)s: %(message)s")

    if args.cmd not in SUBCOMMANDS:
        print(f"Invalid subcommand '{args.cmd}'. Must be one of {SUBCOMMANDS}")
        parser.print_help()
        sys.exit(1)

    try:
        if args.cmd == "simulate":
            cfg = SimulationConfig.from_yaml(args.config)
            polygon = _read_polygon(args.polygon)
            receivers = _read_receivers(args.receivers)
            on_error = "skip" if args.skip_failed else "raise"
            if args.processes == 1:
                result = run_simulation(cfg, polygon, receivers, on_error=on_error)
            else:
                result = run_batch(cfg, polygon, receivers, processes=args.processes, on_error=on_error)

            args.out_dir.mkdir(parents=True, exist_ok=True)
            _write(result.paths, args.out_dir / "paths.csv")
            _write(result.transmissions, args.out_dir / "transmissions.csv")
            _write(result.detections, args.out_dir / "detections.csv")
            result.efficiency_table().to_csv(args.out_dir / "efficiency.csv", index=False)
            print(
                f"{len(result.individual_ids)} individuals, {len(result.transmissions)} transmissions, "
                f"{len(result.detections)} detections (efficiency={result.efficiency:.3f})"
            )
            for ind, msg in result.failures.items():
                print(f"[WARNING] individual {ind} failed: {msg}")
            print(f"Results saved to {args.out_dir}")

        elif args.cmd == "collision":
            table = collision_table(args.tags, args.delay_rng, args.burst_dur)
            print(table.to_string(index=False))

        elif args.cmd == "receiver-line":
            if args.constant_p is not None:
                fn = ConstantRange(args.constant_p)
            else:
                fn = LogisticRange(args.midpoint, args.slope)
            spacing = args.spacing[0] if len(args.spacing) == 1 else args.spacing
            result = receiver_line_det_sim(
                fn,
                vel=args.vel,
                delay_range=args.delay_rng,
                burst_duration=args.burst_dur,
                rec_spacing=spacing,
                max_dist=args.max_dist,
                outer_lim=args.outer_lim,
                n_sim=args.n_sim,
                seed=args.seed,
            )
            print(f"{len(result.receivers)} receivers at x = {np.round(result.receivers['x'].to_numpy(), 1)}")
            print(result.summary.to_string(index=False))
        else:
            raise ValueError(f"Unknown command: {args.cmd}")
    except TelemetrySimError as exc:
        print(f"[ERROR] {exc}", file=sys.stderr)
        sys.exit(2)


if __name__ == "__main__":
    main()
