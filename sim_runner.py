# sim_runner.py
from __future__ import annotations

import argparse
import logging
import sys
from typing import Dict, List

import pandas as pd

import curation
from experiments import expand_sweep_values, run_scatter, run_sweep_1d, run_sweep_2d
from scenarios import (
    apply_presets,
    build_config,
    load_scenarios,
    load_yaml,
    normalize_path,
)
from team_runner import run_batch, run_simulation
from teamsim.exceptions import ConfigError
from teamsim.sim_params import SimConfig, replace_path
from teamsim.unit_mapping import parse_unit_schema

_SUMMARY_KEYS = [
    "total_value",
    "total_tasks_completed",
    "productivity",
    "average_cumulative_value_per_cycle",
    "info_share",
    "ask_success_rate",
    "eviction_rate",
    "turnover_events",
    "hires_onboarded",
    "final_team_avg_expertise",
]


# helpers
def _pairs(items: List[str] | None, what: str) -> Dict[str, str]:
    """``["a=b", "c=d"]`` → ``{"a": "b", "c": "d"}``."""
    out: Dict[str, str] = {}
    for item in items or []:
        key, sep, value = item.partition("=")
        if not sep or not key.strip():
            raise ConfigError(f"--{what} expects KEY=VALUE, got {item!r}")
        out[key.strip()] = value.strip()
    return out


def _base_config(data: dict, presets: Dict[str, str], sets: Dict[str, str]) -> SimConfig:
    raw = apply_presets(data.get("defaults", {}), presets, data.get("presets", {}))
    cfg = build_config(raw)
    for key, value in sets.items():
        cfg = replace_path(cfg, normalize_path(key), value)
    return cfg


def _print_stats(stats: Dict[str, float]) -> None:
    for key in _SUMMARY_KEYS:
        if key in stats:
            print(f"  {key:<40s} {stats[key]:>14.4f}")


def _print_sweep(df: pd.DataFrame, metric: str) -> None:
    print(curation.pivot_sweep(df, metric).to_string())


# CLI
def main(argv: List[str] | None = None) -> None:
    p = argparse.ArgumentParser(description="Run team-throughput simulations.")
    p.add_argument("mode", nargs="?", default="batch",
                   choices=["batch", "single", "sweep1d", "sweep2d", "scatter"],
                   help="What to run (default: every scenario in --config)")
    p.add_argument("--config", default="scenarios.yaml",
                   help="Path to YAML with defaults, presets, scenarios and unit mappings")
    p.add_argument("--jobs", type=int, default=-1,
                   help="Parallel workers (-1 = all cores, 1 = sequential)")
    p.add_argument("--seed", type=int, default=2025,
                   help="Global deterministic RNG seed (set another int to vary)")
    p.add_argument("--preset", action="append", metavar="GROUP=ID",
                   help="Preset selection applied to the defaults (repeatable)")
    p.add_argument("--set", action="append", metavar="PATH=VALUE", dest="sets",
                   help="Override one config field, e.g. team.size=5 (repeatable)")
    p.add_argument("--param", help="Sweep parameter (dotted path, legacy key or preset:<group>)")
    p.add_argument("--values", default="", help="Comma-separated sweep values ('*' expands)")
    p.add_argument("--series", help="Second sweep parameter for sweep2d")
    p.add_argument("--series-values", default="", help="Comma-separated series values")
    p.add_argument("--metric", default="total_value", help="Stat shown in sweep tables")
    p.add_argument("--samples", type=int, default=50, help="Scatter sample count")
    p.add_argument("--vary", default="", help="Comma-separated unit keys to vary (default: all)")
    p.add_argument("-v", "--verbose", action="store_true", help="Debug logging")

    args = p.parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO,
                        format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    if args.mode == "batch":
        scenarios = load_scenarios(args.config)
        scenarios.sort(key=lambda scn: scn.id)           # deterministic job order
        if not scenarios:
            print("[sim_runner] nothing to run; no scenarios defined.")
            return
        df = curation.batch_frame(run_batch(scenarios, jobs=args.jobs, seed_global=args.seed))
        cols = ["scenario_id"] + [k for k in _SUMMARY_KEYS if k in df.columns]
        print(df[cols].to_string(index=False))
        print(f"[sim_runner] deterministic seed = {args.seed}")
        return

    data = load_yaml(args.config)
    groups = data.get("presets", {}) or {}
    base = _base_config(data, _pairs(args.preset, "preset"), _pairs(args.sets, "set"))

    if args.mode == "single":
        result = run_simulation(base, seed=args.seed, jobs=args.jobs)
        print(f"[sim_runner] {int(result.stats['replicates'])} replicate(s)")
        _print_stats(result.stats)
        return

    if args.mode in ("sweep1d", "sweep2d"):
        if not args.param:
            raise ConfigError(f"{args.mode} needs --param")
        xs = expand_sweep_values(args.param, args.values, groups)
        if not xs:
            raise ConfigError("no sweep values given (--values)")
        if args.mode == "sweep1d":
            points = run_sweep_1d(base, args.param, xs, groups=groups,
                                  seed=args.seed, jobs=args.jobs)
        else:
            if not args.series:
                raise ConfigError("sweep2d needs --series")
            ss = expand_sweep_values(args.series, args.series_values, groups)
            if not ss:
                raise ConfigError("no series values given (--series-values)")
            points = run_sweep_2d(base, args.param, xs, args.series, ss, groups=groups,
                                  seed=args.seed, jobs=args.jobs)
        _print_sweep(curation.points_frame(points), args.metric)
        return

    # scatter
    schema = parse_unit_schema(data.get("unit_mappings") or {})
    vary = [k.strip() for k in args.vary.split(",") if k.strip()] or None
    points = run_scatter(base, schema, args.samples, vary=vary, seed=args.seed, jobs=args.jobs)
    corr = curation.correlation_table(curation.points_frame(points))
    print(corr.head(20).to_string(index=False))


def cli(argv: List[str] | None = None) -> None:
    """Console entry point: defects go to stderr with exit status 1."""
    try:
        main(argv)
    except (ValueError, RuntimeError) as err:
        print(f"ERROR: {err}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":                # entry-point
    cli()

"""
1. What the script does

python -m sim_runner                      # every scenario in scenarios.yaml
python -m sim_runner single --preset po_maturity=chaotic --set team.size=5
python -m sim_runner sweep1d --param behavior.ask_probability --values 0,0.25,0.5,1
python -m sim_runner sweep2d --param askProb --values 0,0.5,1 \
                             --series preset:po_maturity --series-values '*'
python -m sim_runner scatter --samples 200 --vary team_size,ask_probability

Only summaries are printed; nothing is written to disk.

2. Exit codes

Configuration or schema defects (ConfigError / UnitSchemaError are both
ValueErrors) and runtime failures print to stderr and exit 1.
"""
