# teamsim/unit_mapping.py
"""
Unit-space experiment mapper.

A *unit schema* maps abstract sample coordinates u ∈ [0,1) onto concrete
configuration fields:

    team_size:
      target: team.size
      min: 2
      max: 12
      scale: linear          # linear | log
      type: int              # float | int | ratio

    value = min + (max − min)·u                  (linear)
    value = exp(ln min + (ln max − ln min)·u)    (log, min/max > 0)

``type: ratio`` is special: u is mapped log-linearly to an info:impl ratio
r ∈ [min, max] (default 0.25 … 4.0) and ``environment.avg_info_time`` /
``environment.avg_impl_time`` are rewritten so that their sum is preserved
and info/impl = r.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Any, Collection, Dict, Mapping, Optional

from numpy.random import Generator

from teamsim.exceptions import UnitSchemaError
from teamsim.sampling import clamp01, round_half_up
from teamsim.sim_params import SimConfig, has_path, replace_path

__all__ = [
    "UnitVar",
    "parse_unit_schema",
    "random_unit_vars",
    "apply_unit_config",
]

_LOG = logging.getLogger(__name__)

SCALES = ("linear", "log")
KINDS = ("float", "int", "ratio")
RATIO_RANGE = (0.25, 4.0)
RATIO_INFO_PATH = "environment.avg_info_time"
RATIO_IMPL_PATH = "environment.avg_impl_time"


@dataclass(slots=True, frozen=True)
class UnitVar:
    key:    str
    target: str
    min:    float
    max:    float
    scale:  str = "linear"
    kind:   str = "float"

    def interpolate(self, u: float) -> float:
        u = clamp01(u)
        if self.scale == "log":
            lo, hi = math.log(self.min), math.log(self.max)
            return math.exp(lo + (hi - lo) * u)
        return self.min + (self.max - self.min) * u


def _number(key: str, name: str, raw: Any) -> float:
    try:
        val = float(raw)
    except (TypeError, ValueError):
        raise UnitSchemaError(f"unit '{key}': {name}={raw!r} is not numeric") from None
    if not math.isfinite(val):
        raise UnitSchemaError(f"unit '{key}': {name}={raw!r} is not finite")
    return val


def _parse_one(key: str, d: Any) -> UnitVar:
    if not isinstance(d, Mapping):
        raise UnitSchemaError(f"unit '{key}': definition must be a mapping")

    kind = str(d.get("type", "float")).lower()
    if kind not in KINDS:
        raise UnitSchemaError(f"unit '{key}': unknown type {kind!r}")

    if kind == "ratio":
        lo = _number(key, "min", d.get("min", RATIO_RANGE[0]))
        hi = _number(key, "max", d.get("max", RATIO_RANGE[1]))
        if lo <= 0 or hi <= 0:
            raise UnitSchemaError(f"unit '{key}': ratio bounds must be positive")
        return UnitVar(key=key, target=str(d.get("target", RATIO_INFO_PATH)),
                       min=lo, max=hi, scale="log", kind="ratio")

    target = d.get("target")
    if not isinstance(target, str) or not has_path(target):
        raise UnitSchemaError(f"unit '{key}': unknown target {target!r}")
    if "min" not in d or "max" not in d:
        raise UnitSchemaError(f"unit '{key}': min and max are required")
    lo = _number(key, "min", d["min"])
    hi = _number(key, "max", d["max"])

    scale = str(d.get("scale", "linear")).lower()
    if scale not in SCALES:
        raise UnitSchemaError(f"unit '{key}': unknown scale {scale!r}")
    if scale == "log" and (lo <= 0 or hi <= 0):
        raise UnitSchemaError(f"unit '{key}': log scale needs positive min/max")
    return UnitVar(key=key, target=target, min=lo, max=hi, scale=scale, kind=kind)


def parse_unit_schema(raw: Mapping[str, Any]) -> Dict[str, UnitVar]:
    """
    Validate a raw schema mapping and return ``{unit_key: UnitVar}``.

    Raises
    ------
    UnitSchemaError
        On an empty schema or any malformed entry.  Scatter experiments
        cannot run without a usable schema, so nothing is skipped silently.
    """
    if not isinstance(raw, Mapping) or not raw:
        raise UnitSchemaError("unit schema is empty")
    out: Dict[str, UnitVar] = {}
    for key, d in raw.items():
        if isinstance(d, UnitVar):
            out[str(key)] = d
        else:
            out[str(key)] = _parse_one(str(key), d)
    return out


def random_unit_vars(schema: Mapping[str, Any], rng: Generator) -> Dict[str, float]:
    """One independent U[0,1) draw per unit key, in schema order."""
    return {key: float(rng.random()) for key in schema}


def _apply_ratio(cfg: SimConfig, var: UnitVar, u: float) -> SimConfig:
    ratio = var.interpolate(u)
    total = cfg.environment.avg_info_time + cfg.environment.avg_impl_time
    if total <= 0:
        total = 1.0
    cfg = replace_path(cfg, RATIO_INFO_PATH, total * ratio / (1.0 + ratio))
    return replace_path(cfg, RATIO_IMPL_PATH, total / (1.0 + ratio))


def apply_unit_config(
    base: SimConfig,
    unit_vars: Mapping[str, float],
    schema: Mapping[str, Any],
    vary: Optional[Collection[str]] = None,
) -> SimConfig:
    """
    Return a new config with every (selected) unit value mapped in.

    Keys outside *vary*, or without a value in *unit_vars*, keep the base
    configuration's value.
    """
    parsed = parse_unit_schema(schema)
    cfg = base
    for key, var in parsed.items():
        if vary is not None and key not in vary:
            continue
        if key not in unit_vars:
            _LOG.debug("unit '%s' has no sample – keeping base value", key)
            continue
        u = clamp01(float(unit_vars[key]))

        if var.kind == "ratio":
            cfg = _apply_ratio(cfg, var, u)
            continue

        value = var.interpolate(u)
        if var.kind == "int":
            value = round_half_up(value)
        cfg = replace_path(cfg, var.target, value)
    return cfg
