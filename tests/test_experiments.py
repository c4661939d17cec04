# tests/test_experiments.py
import textwrap

import numpy as np
import pandas as pd
import pytest

import curation
import sim_runner
from experiments import (
    ScatterPoint,
    SweepPoint,
    config_for_point,
    expand_sweep_values,
    run_scatter,
    run_sweep_1d,
    run_sweep_2d,
)
from teamsim.exceptions import ConfigError, UnitSchemaError

GROUPS = {
    "po_maturity": {
        "custom": {},
        "chaotic": {"product_owner": {"error_probability": 0.9}},
        "ok": {"product_owner": {"error_probability": 0.4}},
    },
}

UNITS = {
    "team_size": {"target": "team.size", "min": 2, "max": 5, "type": "int"},
    "ask": {"target": "behavior.ask_probability", "min": 0.0, "max": 1.0},
}


@pytest.fixture
def tiny(cfg_factory):
    return cfg_factory({"simulation.num_cycles": 25, "team.size": 3})


def test_expand_sweep_values():
    assert expand_sweep_values("team.size", " 2, 4 ,", GROUPS) == ["2", "4"]
    assert expand_sweep_values("preset:po_maturity", "*", GROUPS) == ["chaotic", "ok"]
    assert expand_sweep_values("turnover.hire_mode", "*") == ["average", "specialist"]
    assert expand_sweep_values("team.size", "*") == []


def test_config_for_point(tiny):
    assert config_for_point(tiny, "askProb", "0.25").behavior.ask_probability == 0.25
    cfg = config_for_point(tiny, "preset:po_maturity", "chaotic", GROUPS)
    assert cfg.product_owner.error_probability == 0.9
    assert config_for_point(tiny, "preset:po_maturity", "ghost", GROUPS) is tiny
    with pytest.raises(ConfigError):
        config_for_point(tiny, "team.colour", 1)


def test_sweep_1d_reports_applied_values(tiny):
    points = run_sweep_1d(tiny, "team.size", ["2", "4.4"], seed=1)
    assert [p.x for p in points] == [2, 4]
    assert all(isinstance(p, SweepPoint) and "total_value" in p.stats for p in points)


def test_sweep_1d_preset_param(tiny):
    points = run_sweep_1d(tiny, "preset:po_maturity", ["chaotic", "ok"], groups=GROUPS, seed=1)
    assert [p.x for p in points] == ["chaotic", "ok"]


def test_sweep_2d_is_series_major(tiny):
    points = run_sweep_2d(tiny, "behavior.ask_probability", [0.0, 1.0],
                          "team.size", [2, 3], seed=2)
    assert [(p.series, p.x) for p in points] == [(2, 0.0), (2, 1.0), (3, 0.0), (3, 1.0)]
    assert points[0].stats["total_ask_attempts"] == 0


def test_sweep_is_reproducible_with_seed(tiny):
    a = run_sweep_1d(tiny, "team.size", [2, 3], seed=9)
    b = run_sweep_1d(tiny, "team.size", [2, 3], seed=9)
    assert [p.stats for p in a] == [p.stats for p in b]


def test_scatter_points(tiny):
    points = run_scatter(tiny, UNITS, 4, seed=3)
    assert len(points) == 4
    for p in points:
        assert isinstance(p, ScatterPoint)
        assert set(p.unit_vars) == set(UNITS)
        assert all(0.0 <= u < 1.0 for u in p.unit_vars.values())
        assert 2 <= p.cfg["team.size"] <= 5
        assert p.cfg["behavior.ask_probability"] == pytest.approx(p.unit_vars["ask"])


def test_scatter_vary_subset(tiny):
    points = run_scatter(tiny, UNITS, 2, vary=["ask"], seed=3)
    assert all(p.cfg["team.size"] == 3 for p in points)


def test_scatter_schema_errors(tiny):
    with pytest.raises(UnitSchemaError):
        run_scatter(tiny, {}, 3)
    with pytest.raises(ValueError):
        run_scatter(tiny, UNITS, 0)


# curation
def test_points_frame_and_correlations(tiny):
    df = curation.points_frame(run_scatter(tiny, UNITS, 5, seed=4))
    assert len(df) == 5
    assert {"unit:team_size", "cfg:team.size", "stats:total_value"} <= set(df.columns)
    corr = curation.correlation_table(df)
    assert set(corr.columns) == {"x", "y", "r", "n"}
    assert corr["r"].dropna().between(-1.0, 1.0).all()


def test_points_frame_sweep_pivot(tiny):
    points = run_sweep_2d(tiny, "team.size", [2, 3], "preset:po_maturity",
                          ["chaotic", "ok"], groups=GROUPS, seed=5)
    df = curation.points_frame(points)
    grid = curation.pivot_sweep(df, "total_value")
    assert grid.shape == (2, 2)
    assert list(grid.columns) == ["chaotic", "ok"]


def test_correlation_table_known_values():
    df = pd.DataFrame({
        "unit:a": [0.1, 0.2, 0.3, 0.4],
        "stats:up": [1.0, 2.0, 3.0, 4.0],
        "stats:down": [4.0, 3.0, 2.0, np.inf],
        "stats:flat": [5.0, 5.0, 5.0, 5.0],
    })
    corr = curation.correlation_table(df).set_index("y")
    assert corr.loc["stats:up", "r"] == pytest.approx(1.0)
    assert corr.loc["stats:down", "r"] == pytest.approx(-1.0)
    assert corr.loc["stats:down", "n"] == 3
    assert np.isnan(corr.loc["stats:flat", "r"])


def test_points_frame_empty_raises():
    with pytest.raises(RuntimeError):
        curation.points_frame([])


# CLI
@pytest.fixture
def cli_yaml(tmp_path):
    path = tmp_path / "cli.yaml"
    path.write_text(textwrap.dedent("""
        version: 1
        defaults:
          team: {size: 3}
          backlog: {initial_size: 5, max_size: 10}
          simulation: {num_cycles: 20, replicates: 1}
        presets:
          po_maturity:
            chaotic: {product_owner: {error_probability: 0.9}}
        scenarios:
          - id: only
            test_label: smoke
            hypothesis: runs
        unit_mappings:
          ask: {target: behavior.ask_probability, min: 0, max: 1}
    """))
    return path


def test_cli_single(cli_yaml, capsys):
    sim_runner.main(["single", "--config", str(cli_yaml), "--jobs", "1",
                     "--preset", "po_maturity=chaotic", "--set", "team.size=2"])
    out = capsys.readouterr().out
    assert "total_value" in out and "1 replicate(s)" in out


def test_cli_batch_and_sweep(cli_yaml, capsys):
    sim_runner.main(["--config", str(cli_yaml), "--jobs", "1"])
    assert "only" in capsys.readouterr().out
    sim_runner.main(["sweep1d", "--config", str(cli_yaml), "--jobs", "1",
                     "--param", "askProb", "--values", "0,1"])
    assert "stats:total_value" in capsys.readouterr().out


def test_cli_scatter(cli_yaml, capsys):
    sim_runner.main(["scatter", "--config", str(cli_yaml), "--jobs", "1", "--samples", "4"])
    assert "unit:ask" in capsys.readouterr().out


def test_cli_bad_override(cli_yaml):
    with pytest.raises(ConfigError):
        sim_runner.main(["single", "--config", str(cli_yaml), "--set", "team.size"])
    with pytest.raises(ConfigError):
        sim_runner.main(["sweep1d", "--config", str(cli_yaml), "--jobs", "1"])


def test_sweep_does_not_depend_on_jobs(tiny):
    serial = run_sweep_1d(tiny, "team.size", [2, 3, 4], seed=6, jobs=1)
    parallel = run_sweep_1d(tiny, "team.size", [2, 3, 4], seed=6, jobs=2)
    assert [(p.x, p.stats) for p in parallel] == [(p.x, p.stats) for p in serial]


def test_cli_entry_point_reports_errors_on_stderr(cli_yaml, capsys):
    with pytest.raises(SystemExit) as exc:
        sim_runner.cli(["single", "--config", str(cli_yaml), "--set", "team.size"])
    assert exc.value.code == 1
    assert "ERROR:" in capsys.readouterr().err
