"""Command-line entry-point smoke tests."""
import pandas as pd
import pytest

from telemetry_sim.cli import main
from telemetry_sim.config import SimulationConfig


def test_collision_command(capsys):
    main(["collision", "--tags", "1", "10", "--delay_rng", "60", "180", "--burst_dur", "5"])
    out = capsys.readouterr().out
    assert "collision_prob" in out
    assert len(out.strip().splitlines()) == 3


def test_receiver_line_command(capsys):
    main(["receiver-line", "--spacing", "800", "800", "--constant_p", "1", "--n_sim", "5", "--seed", "1"])
    out = capsys.readouterr().out
    assert "3 receivers" in out
    assert "proportion" in out


def _write_inputs(tmp_path, n_individuals=3):
    cfg = SimulationConfig(seed=2, sp_out=True, n_steps=10, n_individuals=n_individuals)
    cfg.to_yaml(tmp_path / "cfg.yaml")
    pd.DataFrame(
        {
            "x": [0, 2000, 2000, 0, 300, 500, 500, 300],
            "y": [0, 0, 2000, 2000, 300, 300, 500, 500],
            "ring": [0, 0, 0, 0, 1, 1, 1, 1],
        }
    ).to_csv(tmp_path / "lake.csv", index=False)
    pd.DataFrame({"receiver_id": [1, 2], "x": [1000.0, 1500.0], "y": [1000.0, 500.0]}).to_csv(
        tmp_path / "receivers.csv", index=False
    )


def test_simulate_command_writes_tables(tmp_path, capsys):
    _write_inputs(tmp_path)
    out_dir = tmp_path / "results"
    main([
        "simulate",
        "--config", str(tmp_path / "cfg.yaml"),
        "--polygon", str(tmp_path / "lake.csv"),
        "--receivers", str(tmp_path / "receivers.csv"),
        "--out_dir", str(out_dir),
    ])
    assert "3 individuals" in capsys.readouterr().out
    paths = pd.read_csv(out_dir / "paths.csv")
    assert {"x", "y", "time", "individual_id"} <= set(paths.columns)
    assert len(pd.read_csv(out_dir / "efficiency.csv")) == 3
    assert (out_dir / "transmissions.csv").exists()
    assert (out_dir / "detections.csv").exists()


def test_simulate_command_reports_bad_receivers(tmp_path, capsys):
    _write_inputs(tmp_path)
    pd.DataFrame({"x": [1.0], "y": [1.0]}).to_csv(tmp_path / "receivers.csv", index=False)
    with pytest.raises(SystemExit) as info:
        main([
            "simulate",
            "--config", str(tmp_path / "cfg.yaml"),
            "--polygon", str(tmp_path / "lake.csv"),
            "--receivers", str(tmp_path / "receivers.csv"),
        ])
    assert info.value.code == 2
    assert "receiver_id" in capsys.readouterr().err
