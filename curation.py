# curation.py
"""
minimal helpers used by sim_runner and notebooks: experiment records → tidy,
schema-checked DataFrames, plus Pearson correlation tables for scatter runs.

"""
from __future__ import annotations

import logging
from typing import Final, Iterable, List, Optional, Sequence

import numpy as np
import pandas as pd

import validator
from experiments import ScatterPoint, SweepPoint

_LOG = logging.getLogger(__name__)

_EXPECTED_ORDER: Final = [
    "scenario_id", "test_label", "hypothesis",
    "series", "x",
]

STATS_PREFIX: Final = "stats:"
UNIT_PREFIX: Final = "unit:"
CFG_PREFIX: Final = "cfg:"


def tidy_dataframe(df: pd.DataFrame) -> pd.DataFrame:
    """
    * Re-orders identifier columns first so output is predictable.
    * Forces every prefixed numeric column to float64.
    * NO validation – callers pick the schema.
    """
    cols = [c for c in _EXPECTED_ORDER if c in df.columns] + \
           [c for c in df.columns if c not in _EXPECTED_ORDER]
    df = df[cols].copy()
    for c in df.columns:
        if c.startswith((STATS_PREFIX, UNIT_PREFIX, CFG_PREFIX)):
            df[c] = pd.to_numeric(df[c], errors="coerce").astype("float64")
    return df


def _point_row(p: SweepPoint | ScatterPoint) -> dict:
    row: dict = {}
    if isinstance(p, SweepPoint):
        row["x"] = p.x
        if p.series is not None:
            row["series"] = p.series
    else:
        row.update({f"{UNIT_PREFIX}{k}": v for k, v in p.unit_vars.items()})
        row.update({f"{CFG_PREFIX}{k}": v for k, v in p.cfg.items()})
    row.update({f"{STATS_PREFIX}{k}": v for k, v in p.stats.items()})
    return row


def points_frame(points: Iterable[SweepPoint | ScatterPoint], *, validate: bool = True) -> pd.DataFrame:
    """One row per experiment point, validated against ``validator.SCHEMA``."""
    df = tidy_dataframe(pd.DataFrame([_point_row(p) for p in points]))
    if df.empty:
        raise RuntimeError("no experiment points to tabulate")
    if validate:
        df = validator.SCHEMA.validate(df, lazy=True)
    return df


def batch_frame(df: pd.DataFrame, *, validate: bool = True) -> pd.DataFrame:
    """Tidy + validate the scenario table returned by ``team_runner.run_batch``."""
    df = tidy_dataframe(df)
    if validate:
        df = validator.BATCH_SCHEMA.validate(df, lazy=True)
    return df


def correlation_table(
    df: pd.DataFrame,
    x_cols: Optional[Sequence[str]] = None,
    y_cols: Optional[Sequence[str]] = None,
    *,
    min_points: int = 3,
) -> pd.DataFrame:
    """
    Pearson r for every (x, y) pair, computed on rows where both are finite.

    Defaults: x = all ``unit:`` columns, y = all ``stats:`` columns.
    Pairs with fewer than *min_points* rows or zero variance get NaN.
    Sorted by |r| descending.
    """
    x_cols = list(x_cols) if x_cols is not None else \
        [c for c in df.columns if c.startswith(UNIT_PREFIX)]
    y_cols = list(y_cols) if y_cols is not None else \
        [c for c in df.columns if c.startswith(STATS_PREFIX)]

    rows: List[dict] = []
    for x in x_cols:
        for y in y_cols:
            if x == y:
                continue
            sub = df[[x, y]].apply(pd.to_numeric, errors="coerce")
            sub = sub.replace([np.inf, -np.inf], np.nan).dropna()
            n = len(sub)
            r = np.nan
            if n >= min_points and sub[x].std() > 0 and sub[y].std() > 0:
                r = float(sub[x].corr(sub[y]))
            rows.append({"x": x, "y": y, "r": r, "n": n})

    out = pd.DataFrame(rows, columns=["x", "y", "r", "n"])
    if out.empty:
        return out
    out["abs_r"] = out["r"].abs()
    out = out.sort_values("abs_r", ascending=False, na_position="last")
    _LOG.debug("correlation_table: %d pairs", len(out))
    return out.drop(columns="abs_r").reset_index(drop=True)


def pivot_sweep(df: pd.DataFrame, metric: str) -> pd.DataFrame:
    """2-D sweep table → x × series grid of one stats metric."""
    col = metric if metric.startswith(STATS_PREFIX) else f"{STATS_PREFIX}{metric}"
    if "series" not in df.columns:
        return df[["x", col]].set_index("x")
    return df.pivot_table(index="x", columns="series", values=col, aggfunc="mean")


"""
1. What the module does

points_frame() flattens SweepPoint / ScatterPoint records into one row each:
  x / series                 – sweep coordinates (as applied)
  unit:<key>                 – scatter sample coordinates in [0,1)
  cfg:<section.field>        – numeric snapshot of the effective config
  stats:<name>               – replicate-mean statistics
and validates the result with validator.SCHEMA (lazy, so every defect is
reported at once).

correlation_table() mirrors what a scatter-plot tooltip shows: Pearson r per
(unit var, metric) pair on finite rows only.

Nothing here writes files; results stay in memory.
"""
