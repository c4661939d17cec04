# experiments.py
# Parameter sweeps and unit-space scatter sampling on top of team_runner
#
# Every point is an independent `run_simulation` call (replicates included),
# so points are farmed out with joblib exactly like scenario batches.  The
# caller only ever sees completed points; tqdm reports done/total between
# points, never inside one run.
#
#   run_sweep_1d  → [SweepPoint(x, stats)]
#   run_sweep_2d  → [SweepPoint(x, stats, series)]   series-major order
#   run_scatter   → [ScatterPoint(unit_vars, cfg, stats)]
#
# A sweep parameter spelled ``preset:<group>`` takes preset ids as values
# and applies that group's patch instead of writing a single field.
# --------------------------------------------------------------------------

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Collection, Dict, List, Mapping, Optional, Sequence

import numpy as np
from joblib import Parallel, delayed
from tqdm import tqdm

from scenarios import normalize_path, patch_config
from team_runner import run_simulation
from teamsim.sim_params import HIRE_MODES, SimConfig, config_snapshot, get_path, replace_path
from teamsim.unit_mapping import apply_unit_config, parse_unit_schema, random_unit_vars

__all__ = [
    "SweepPoint",
    "ScatterPoint",
    "PRESET_PREFIX",
    "expand_sweep_values",
    "config_for_point",
    "run_sweep_1d",
    "run_sweep_2d",
    "run_scatter",
]

_LOG = logging.getLogger(__name__)

PRESET_PREFIX = "preset:"

PresetGroups = Mapping[str, Mapping[str, Any]]


@dataclass(slots=True, frozen=True)
class SweepPoint:
    x:      Any
    stats:  Dict[str, float]
    series: Any = None


@dataclass(slots=True, frozen=True)
class ScatterPoint:
    unit_vars: Dict[str, float]
    cfg:       Dict[str, float]          # numeric snapshot of the effective config
    stats:     Dict[str, float]


# point construction
def expand_sweep_values(
    param: str,
    values_text: str,
    groups: Optional[PresetGroups] = None,
) -> List[str]:
    """
    Comma-separated text → list of raw values.

    ``*`` expands to every non-empty preset of a ``preset:<group>`` param,
    or to every hire mode for ``turnover.hire_mode``.
    """
    parts = [p.strip() for p in (values_text or "").split(",") if p.strip()]
    if parts != ["*"]:
        return parts
    if param.startswith(PRESET_PREFIX):
        group = (groups or {}).get(param[len(PRESET_PREFIX):]) or {}
        return [pid for pid, patch in group.items() if patch]
    if param in ("turnover.hire_mode", "turnoverHireMode"):
        return list(HIRE_MODES)
    return []


def config_for_point(
    base: SimConfig,
    param: str,
    value: Any,
    groups: Optional[PresetGroups] = None,
) -> SimConfig:
    """Config for one sweep coordinate (field write or preset patch)."""
    if param.startswith(PRESET_PREFIX):
        group_id = param[len(PRESET_PREFIX):]
        presets = (groups or {}).get(group_id)
        if presets is None or str(value) not in presets:
            _LOG.warning("preset %r of group %r unknown – point uses the base config",
                         value, group_id)
            return base
        return patch_config(base, presets[str(value)] or {})
    return replace_path(base, normalize_path(param), value)


def _x_value(cfg: SimConfig, param: str, value: Any) -> Any:
    if param.startswith(PRESET_PREFIX):
        return str(value)
    return get_path(cfg, normalize_path(param))


def _point_seeds(seed: Optional[int], n: int) -> List[Optional[int]]:
    if seed is None:
        return [None] * n
    return [int(ss.generate_state(1)[0]) for ss in np.random.SeedSequence(seed).spawn(n)]


def _point_stats(cfg: SimConfig, seed: Optional[int]) -> Dict[str, float]:
    return run_simulation(cfg, seed=seed, jobs=1).stats


def _run_points(
    cfgs: Sequence[SimConfig],
    seeds: Sequence[Optional[int]],
    *,
    jobs: int,
    desc: str,
) -> List[Dict[str, float]]:
    pairs = list(zip(cfgs, seeds))
    if jobs == 1:
        return [_point_stats(c, s) for c, s in tqdm(pairs, desc=desc)]
    return Parallel(n_jobs=jobs, backend="loky")(
        delayed(_point_stats)(c, s) for c, s in tqdm(pairs, desc=desc)
    )


# public API
def run_sweep_1d(
    base: SimConfig,
    param: str,
    values: Sequence[Any],
    *,
    groups: Optional[PresetGroups] = None,
    seed: Optional[int] = None,
    jobs: int = 1,
) -> List[SweepPoint]:
    """One point per value of *param*; ``x`` is the value as actually applied."""
    cfgs = [config_for_point(base, param, v, groups) for v in values]
    stats = _run_points(cfgs, _point_seeds(seed, len(cfgs)), jobs=jobs, desc=f"sweep {param}")
    _LOG.info("run_sweep_1d: %s × %d points", param, len(cfgs))
    return [SweepPoint(x=_x_value(c, param, v), stats=s)
            for c, v, s in zip(cfgs, values, stats)]


def run_sweep_2d(
    base: SimConfig,
    x_param: str,
    x_values: Sequence[Any],
    series_param: str,
    series_values: Sequence[Any],
    *,
    groups: Optional[PresetGroups] = None,
    seed: Optional[int] = None,
    jobs: int = 1,
) -> List[SweepPoint]:
    """Full grid, series-major; the series value is applied before x."""
    cfgs: List[SimConfig] = []
    coords: List[tuple[Any, Any]] = []
    for s in series_values:
        cfg_series = config_for_point(base, series_param, s, groups)
        for x in x_values:
            cfg = config_for_point(cfg_series, x_param, x, groups)
            cfgs.append(cfg)
            coords.append((_x_value(cfg, x_param, x), _x_value(cfg, series_param, s)))

    stats = _run_points(cfgs, _point_seeds(seed, len(cfgs)), jobs=jobs,
                        desc=f"sweep {x_param} × {series_param}")
    _LOG.info("run_sweep_2d: %d × %d points", len(series_values), len(x_values))
    return [SweepPoint(x=x, series=s, stats=st) for (x, s), st in zip(coords, stats)]


def run_scatter(
    base: SimConfig,
    schema: Mapping[str, Any],
    n_samples: int,
    *,
    vary: Optional[Collection[str]] = None,
    seed: Optional[int] = None,
    jobs: int = 1,
) -> List[ScatterPoint]:
    """
    Sample *n_samples* unit vectors, map each onto *base* and run it.

    Raises UnitSchemaError on an empty / malformed schema before any run
    starts.
    """
    parsed = parse_unit_schema(schema)
    if n_samples <= 0:
        raise ValueError("n_samples must be positive")

    rng = np.random.default_rng(seed)
    unit_rows = [random_unit_vars(parsed, rng) for _ in range(n_samples)]
    cfgs = [apply_unit_config(base, u, parsed, vary) for u in unit_rows]
    stats = _run_points(cfgs, _point_seeds(seed, len(cfgs)), jobs=jobs, desc="scatter")
    _LOG.info("run_scatter: %d samples over %d unit vars", n_samples, len(parsed))
    return [ScatterPoint(unit_vars=u, cfg=config_snapshot(c), stats=s)
            for u, c, s in zip(unit_rows, cfgs, stats)]
