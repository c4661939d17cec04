# tests/test_stats.py
import numpy as np
import pytest

from team_runner import run_simulation
from teamsim.stats import RunStats, aggregate_replicates, finalize_stats, team_expertise


def test_aggregate_is_arithmetic_mean_of_numeric_fields():
    reps = [
        {"a": 1.0, "b": 10.0, "label": "x"},
        {"a": 2.0, "b": 20.0, "label": "y"},
        {"a": 6.0, "b": 0.0, "label": "z"},
    ]
    out = aggregate_replicates(reps)
    assert out["a"] == pytest.approx(3.0)
    assert out["b"] == pytest.approx(10.0)
    assert out["replicates"] == 3
    assert "label" not in out


def test_aggregate_uses_keys_of_first_replicate():
    out = aggregate_replicates([{"a": 1.0}, {"a": 3.0, "extra": 5.0}])
    assert set(out) == {"a", "replicates"}


def test_aggregate_empty_raises():
    with pytest.raises(ValueError):
        aggregate_replicates([])


def test_finalize_guards_division_by_zero():
    out = finalize_stats(RunStats(), num_cycles=0, team_size=0, knowledge_rows=[],
                         num_topics=3, final_backlog_size=0)
    assert all(np.isfinite(v) for v in out.values())
    assert out["productivity"] == 0.0 and out["final_team_avg_expertise"] == 0.0


def test_finalize_derived_ratios():
    s = RunStats(total_value=50.0, total_tasks_completed=5, total_info_cycles=30,
                 total_impl_cycles=10, total_conversation_cycles=6,
                 total_ask_attempts=8, ask_with_helper=6,
                 cumulative_recurring_value=20.0, active_worker_cycles=40)
    out = finalize_stats(s, num_cycles=10, team_size=4, knowledge_rows=[np.ones(2)],
                         num_topics=2, final_backlog_size=3)
    assert out["productivity"] == pytest.approx(5.0)
    assert out["value_per_task"] == pytest.approx(10.0)
    assert out["info_share"] == pytest.approx(0.75)
    assert out["conversation_share"] == pytest.approx(0.2)
    assert out["ask_success_rate"] == pytest.approx(0.75)
    assert out["average_cumulative_value_per_cycle"] == pytest.approx(2.0)
    assert out["average_cumulative_value_per_cycle_per_worker"] == pytest.approx(0.5)
    assert out["avg_active_workers"] == pytest.approx(4.0)
    assert out["final_backlog_size"] == 3


def test_team_expertise():
    avg, avg_max = team_expertise([np.array([0.0, 1.0]), np.array([0.5, 0.5])], 2)
    assert avg == pytest.approx(0.5)
    assert avg_max == pytest.approx(0.75)


def test_run_simulation_mean_matches_replicates(cfg_factory):
    cfg = cfg_factory({"simulation.replicates": 4, "simulation.num_cycles": 40})
    res = run_simulation(cfg, seed=3)
    assert len(res.per_replicate_stats) == 4
    for key, value in res.per_replicate_stats[0].items():
        expected = np.mean([r[key] for r in res.per_replicate_stats])
        assert res.stats[key] == pytest.approx(expected)
    assert res.stats["replicates"] == 4
    assert res.sample.stats == res.per_replicate_stats[-1]
    assert res.config is cfg
