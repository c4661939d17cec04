# teamsim/sim_params.py
"""
SimConfig

Central container for every scalar that governs a team-throughput run.
One frozen dataclass per configuration section; `SimConfig` nests them.

Default values replicate the `defaults:` section of *scenarios.yaml*, so a
scenario that omits a knob behaves exactly like the reference baseline.

Configs are never mutated: experiments derive new ones with
`replace_path(cfg, "behavior.ask_probability", 0.4)`.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field, fields, is_dataclass, replace
from typing import Any, Dict, Optional, Union, get_args, get_origin, get_type_hints

from teamsim.exceptions import ConfigError

_LOG = logging.getLogger(__name__)

CONFIG_VERSION = 1
HIRE_MODES = ("average", "specialist")


@dataclass(slots=True, frozen=True)
class EnvironmentParams:
    num_topics:       int   = 20      # task topics / knowledge domains
    new_task_rate:    float = 2.0     # Poisson λ of arrivals per cycle

    # effort model A: independent means
    avg_info_time:    float = 4.0
    avg_impl_time:    float = 6.0
    # effort model B: fixed total split by a jittered complexity (if set)
    total_effort:     Optional[float] = None
    base_complexity:  float = 0.5
    complexity_jitter: float = 0.1

    avg_value:        float = 10.0
    retention_min:    float = 0.3     # recurring-value share per task
    retention_max:    float = 0.7


@dataclass(slots=True, frozen=True)
class BacklogParams:
    initial_size:     int   = 50
    max_size:         int   = 100


@dataclass(slots=True, frozen=True)
class TeamParams:
    size:                  int   = 8
    initial_knowledge_max: float = 0.3   # U[0, max] per topic at t=0


@dataclass(slots=True, frozen=True)
class BehaviorParams:
    ask_probability:            float = 0.3
    ask_minimum_gain:           float = 0.0
    must_ask_threshold:         float = 0.0   # 0 ⇒ never forced
    absence_probability:        float = 0.05

    research_learning_rate:     float = 0.05
    conversation_learning_rate: float = 0.6
    completion_learning_rate:   float = 0.16
    completion_rate_cap:        float = 0.95
    knowledge_decay_rate:       float = 0.02


@dataclass(slots=True, frozen=True)
class ProductOwnerParams:
    window_size:          int   = 5
    actions_per_cycle:    int   = 1
    absence_probability:  float = 0.0
    error_probability:    float = 0.0


@dataclass(slots=True, frozen=True)
class TurnoverParams:
    probability:                 float = 0.0    # per task completion
    hire_mode:                   str   = "average"
    hire_avg_factor:             float = 0.8
    specialist_boost:            float = 0.3

    candidate_interarrival_mean: float = 10.0   # cycles; ≤0 disables arrivals
    interview_rounds:            int   = 2
    interview_noise:             float = 0.1
    interview_cost_per_cycle:    float = 1.0
    min_hire_bar:                float = 0.5
    skill_min:                   float = 0.2
    skill_max:                   float = 1.0
    skill_exponent:              float = 1.0
    hire_lag_cycles:             int   = 0

    scale_floor:                 float = 0.25
    scale_cap:                   float = 3.0


@dataclass(slots=True, frozen=True)
class SimulationParams:
    num_cycles:      int = 1000
    burn_in_cycles:  int = 0
    replicates:      int = 1
    seed:            Optional[int] = None


@dataclass(slots=True, frozen=True)
class BeliefParams:
    init_max:        float = 0.1     # U[0, max] initial belief about others


@dataclass(slots=True, frozen=True)
class SimConfig:
    environment:   EnvironmentParams  = field(default_factory=EnvironmentParams)
    backlog:       BacklogParams      = field(default_factory=BacklogParams)
    team:          TeamParams         = field(default_factory=TeamParams)
    behavior:      BehaviorParams     = field(default_factory=BehaviorParams)
    product_owner: ProductOwnerParams = field(default_factory=ProductOwnerParams)
    turnover:      TurnoverParams     = field(default_factory=TurnoverParams)
    simulation:    SimulationParams   = field(default_factory=SimulationParams)
    beliefs:       BeliefParams       = field(default_factory=BeliefParams)

    # The dataclasses purposefully contain **no behaviour**; all formulas
    # live in domain modules such as `worker_step.py` and `hiring.py`.


SECTIONS: Dict[str, type] = {f.name: f.default_factory for f in fields(SimConfig)}  # type: ignore[misc]


# coercion
def _field_kind(cls: type, name: str) -> tuple[type, bool]:
    """Return (base type, optional?) of dataclass field *name*."""
    hint = get_type_hints(cls)[name]
    origin = get_origin(hint)
    if origin is Union or (origin is not None and type(None) in get_args(hint)):
        args = [a for a in get_args(hint) if a is not type(None)]
        return args[0], True
    return hint, False


def coerce_value(cls: type, name: str, value: Any, default: Any) -> Any:
    """
    Coerce *value* to the declared type of ``cls.name``.

    Unparseable or non-finite numbers fall back to *default* with a warning;
    they never raise.
    """
    kind, optional = _field_kind(cls, name)
    if value is None:
        if optional:
            return None
        return default

    if kind is str:
        text = str(value).strip().lower()
        if name == "hire_mode" and text not in HIRE_MODES:
            _LOG.warning("%s.%s=%r unknown – falling back to %r",
                         cls.__name__, name, value, default)
            return default
        return text

    if kind is bool:
        return bool(value)

    try:
        num = float(value)
    except (TypeError, ValueError):
        _LOG.warning("%s.%s=%r is not numeric – falling back to %r",
                     cls.__name__, name, value, default)
        return default
    if not math.isfinite(num):
        _LOG.warning("%s.%s=%r is not finite – falling back to %r",
                     cls.__name__, name, value, default)
        return default
    if kind is int:
        return int(math.floor(num + 0.5))
    return num


def build_section(cls: type, raw: Dict[str, Any] | None) -> Any:
    """Instantiate section *cls* from a raw mapping, ignoring unknown keys."""
    raw = raw or {}
    if not isinstance(raw, dict):
        raise ConfigError(f"section {cls.__name__} must be a mapping, got {type(raw).__name__}")
    defaults = cls()
    kwargs = {}
    for f in fields(cls):
        if f.name in raw:
            kwargs[f.name] = coerce_value(cls, f.name, raw[f.name], getattr(defaults, f.name))
    unknown = set(raw) - {f.name for f in fields(cls)}
    if unknown:
        _LOG.warning("%s: ignoring unknown keys %s", cls.__name__, sorted(unknown))
    return cls(**kwargs)


# dotted-path access
def _split(path: str) -> tuple[str, str]:
    parts = path.split(".")
    if len(parts) != 2 or parts[0] not in SECTIONS:
        raise ConfigError(f"unknown config path '{path}'")
    section, name = parts
    if name not in {f.name for f in fields(SECTIONS[section])}:
        raise ConfigError(f"unknown config path '{path}'")
    return section, name


def has_path(path: str) -> bool:
    try:
        _split(path)
    except ConfigError:
        return False
    return True


def get_path(cfg: SimConfig, path: str) -> Any:
    section, name = _split(path)
    return getattr(getattr(cfg, section), name)


def replace_path(cfg: SimConfig, path: str, value: Any) -> SimConfig:
    """Return a copy of *cfg* with the field at *path* set to *value* (coerced)."""
    section, name = _split(path)
    sec_obj = getattr(cfg, section)
    new_val = coerce_value(type(sec_obj), name, value, getattr(sec_obj, name))
    return replace(cfg, **{section: replace(sec_obj, **{name: new_val})})


def config_snapshot(cfg: SimConfig) -> Dict[str, float]:
    """Flatten every numeric leaf into ``{"section.field": value}``."""
    snap: Dict[str, float] = {}
    for f in fields(cfg):
        sec_obj = getattr(cfg, f.name)
        if not is_dataclass(sec_obj):
            continue
        for g in fields(sec_obj):
            v = getattr(sec_obj, g.name)
            if isinstance(v, bool) or not isinstance(v, (int, float)):
                continue
            snap[f"{f.name}.{g.name}"] = float(v)
    return snap
