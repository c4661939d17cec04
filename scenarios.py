# scenarios.py
from __future__ import annotations

import copy
import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Final, List, Mapping

import yaml

from teamsim.exceptions import ConfigError
from teamsim.sim_params import (
    CONFIG_VERSION,
    SECTIONS,
    SimConfig,
    build_section,
    has_path,
    replace_path,
)
from teamsim.unit_mapping import UnitVar, parse_unit_schema

__all__ = [
    "Scenario",
    "LEGACY_KEYS",
    "normalize_path",
    "translate_legacy",
    "deep_merge",
    "apply_presets",
    "patch_config",
    "build_config",
    "load_yaml",
    "load_scenarios",
    "load_unit_mappings",
]

_LOG = logging.getLogger(__name__)

# flat camelCase keys of the legacy single-level config → canonical paths
LEGACY_KEYS: Final[Dict[str, str]] = {
    "numWorkers":               "team.size",
    "numTaskTypes":             "environment.num_topics",
    "envTaskRate":              "environment.new_task_rate",
    "avgInfoTime":              "environment.avg_info_time",
    "avgImplTime":              "environment.avg_impl_time",
    "avgTotalEffort":           "environment.total_effort",
    "avgInfoShare":             "environment.base_complexity",
    "avgValue":                 "environment.avg_value",
    "taskRetentionMin":         "environment.retention_min",
    "taskRetentionMax":         "environment.retention_max",
    "backlogSize":              "backlog.initial_size",
    "maxBacklogSize":           "backlog.max_size",
    "askProb":                  "behavior.ask_probability",
    "askMinGain":               "behavior.ask_minimum_gain",
    "absenceProb":              "behavior.absence_probability",
    "researchLearningRate":     "behavior.research_learning_rate",
    "conversationLearningRate": "behavior.conversation_learning_rate",
    "completionLearningRate":   "behavior.completion_learning_rate",
    "implLearningRate":         "behavior.completion_learning_rate",
    "knowledgeDecayRate":       "behavior.knowledge_decay_rate",
    "poWindowSize":             "product_owner.window_size",
    "poActionsPerCycle":        "product_owner.actions_per_cycle",
    "poAbsenceProb":            "product_owner.absence_probability",
    "poErrorProb":              "product_owner.error_probability",
    "turnoverProb":             "turnover.probability",
    "turnoverHireMode":         "turnover.hire_mode",
    "hireAvgFactor":            "turnover.hire_avg_factor",
    "specialistBoost":          "turnover.specialist_boost",
    "numCycles":                "simulation.num_cycles",
    "burnInCycles":             "simulation.burn_in_cycles",
    "replicates":               "simulation.replicates",
    "beliefInitMax":            "beliefs.init_max",
}

# legacy knobs the agent model no longer has
_RETIRED_KEYS: Final = {"memoryDepth", "helpStrategy", "beliefUpdateRate", "logEvery",
                        "sweep", "outputFile"}

_CAMEL = re.compile(r"(?<!^)(?=[A-Z])")


# data-class consumed by team_runner.run_batch & sim_runner
@dataclass(frozen=True, slots=True)
class Scenario:
    id:         str
    config:     SimConfig
    presets:    Dict[str, str]
    test_label: str = ""
    hypothesis: str = ""
    tags:       tuple[str, ...] = ()


# ── key translation ────────────────────────────────────────────────────
def _snake(name: str) -> str:
    return _CAMEL.sub("_", name).lower()


def normalize_path(name: str) -> str:
    """
    Map any accepted parameter spelling onto a canonical dotted path.

    Accepts ``team.size``, legacy flat keys (``numWorkers``) and nested
    camelCase (``productOwner.errorProbability``).
    """
    if has_path(name):
        return name
    if name in LEGACY_KEYS:
        return LEGACY_KEYS[name]
    if "." in name:
        snake = ".".join(_snake(part) for part in name.split("."))
        if has_path(snake):
            return snake
    raise ConfigError(f"unknown parameter '{name}'")


def translate_legacy(raw: Mapping[str, Any] | None) -> Dict[str, Dict[str, Any]]:
    """
    Return a nested ``{section: {field: value}}`` dict from a mapping that
    may mix nested sections, camelCase section/field names and flat legacy
    keys.  Unknown keys are dropped with a warning.
    """
    nested: Dict[str, Dict[str, Any]] = {}
    if not raw:
        return nested
    if not isinstance(raw, Mapping):
        raise ConfigError(f"config must be a mapping, got {type(raw).__name__}")

    ratio = None
    for key, value in raw.items():
        section = _snake(key)
        if section in SECTIONS:
            if value is None:
                continue
            if not isinstance(value, Mapping):
                raise ConfigError(f"section '{key}' must be a mapping, got {type(value).__name__}")
            dst = nested.setdefault(section, {})
            for fkey, fval in value.items():
                dst[_snake(fkey)] = fval
        elif key in LEGACY_KEYS:
            sec, name = LEGACY_KEYS[key].split(".")
            nested.setdefault(sec, {})[name] = value
        elif key == "infoToImplRatio":
            ratio = value
        elif key == "version":
            continue
        elif key in _RETIRED_KEYS:
            _LOG.debug("ignoring retired legacy key %s", key)
        else:
            _LOG.warning("ignoring unknown config key %r", key)

    if ratio is not None:
        try:
            r = float(ratio)
        except (TypeError, ValueError):
            r = float("nan")
        if r > 0:
            env = nested.setdefault("environment", {})
            total = float(env.get("avg_info_time", 4.0)) + float(env.get("avg_impl_time", 6.0))
            env["avg_info_time"] = total * r / (1.0 + r)
            env["avg_impl_time"] = total / (1.0 + r)
        else:
            _LOG.warning("infoToImplRatio=%r is not a positive number – ignored", ratio)
    return nested


def deep_merge(base: Mapping[str, Any], patch: Mapping[str, Any]) -> Dict[str, Any]:
    """Recursive dict merge; *patch* wins.  Inputs are never mutated."""
    out = copy.deepcopy(dict(base))
    for key, value in (patch or {}).items():
        if isinstance(value, Mapping) and isinstance(out.get(key), Mapping):
            out[key] = deep_merge(out[key], value)
        else:
            out[key] = copy.deepcopy(value)
    return out


# ── presets ─────────────────────────────────────────────────────────────
def apply_presets(
    raw: Mapping[str, Any],
    selections: Mapping[str, str] | None,
    groups: Mapping[str, Mapping[str, Any]] | None,
) -> Dict[str, Any]:
    """
    Merge the selected preset patches onto *raw* (nested form).

    Groups are applied in the order they are declared; an unknown group or
    preset id is skipped with a warning, an empty patch is a no-op.
    """
    out = translate_legacy(raw)
    if not selections:
        return out
    groups = groups or {}
    for group_id in selections:
        if group_id not in groups:
            _LOG.warning("unknown preset group %r – skipped", group_id)
    for group_id, presets in groups.items():
        preset_id = selections.get(group_id)
        if not preset_id:
            continue
        if preset_id not in (presets or {}):
            _LOG.warning("unknown preset %r in group %r – skipped", preset_id, group_id)
            continue
        out = deep_merge(out, translate_legacy(presets[preset_id] or {}))
    return out


def patch_config(cfg: SimConfig, patch: Mapping[str, Any]) -> SimConfig:
    """Apply a (nested or legacy) patch to an existing SimConfig."""
    for section, values in translate_legacy(patch).items():
        for name, value in values.items():
            path = f"{section}.{name}"
            if not has_path(path):
                _LOG.warning("patch: ignoring unknown field %s", path)
                continue
            cfg = replace_path(cfg, path, value)
    return cfg


# ── config assembly ────────────────────────────────────────────────────
def _check_version(data: Mapping[str, Any]) -> None:
    version = data.get("version", CONFIG_VERSION)
    if version != CONFIG_VERSION:
        raise ConfigError(f"unsupported config version {version!r} (expected {CONFIG_VERSION})")


def build_config(raw: Mapping[str, Any] | None = None) -> SimConfig:
    """Nested, flat-legacy or mixed mapping → frozen SimConfig."""
    raw = raw or {}
    if not isinstance(raw, Mapping):
        raise ConfigError(f"config must be a mapping, got {type(raw).__name__}")
    _check_version(raw)
    nested = translate_legacy(raw)
    return SimConfig(**{name: build_section(cls, nested.get(name))
                        for name, cls in SECTIONS.items()})


def load_yaml(yaml_path: str | Path = "scenarios.yaml") -> Dict[str, Any]:
    data = yaml.safe_load(Path(yaml_path).read_text()) or {}
    if not isinstance(data, dict):
        raise ConfigError(f"{yaml_path}: top level must be a mapping")
    _check_version(data)
    return data


# public API
def load_scenarios(yaml_path: str | Path = "scenarios.yaml") -> List[Scenario]:
    """
    Parse `scenarios.yaml` and return one Scenario per ``scenarios:`` row.

    Each row's effective config is  defaults ⊕ selected presets ⊕ overrides,
    merged in that order.
    """
    data = load_yaml(yaml_path)
    defaults = translate_legacy(data.get("defaults", {}))
    groups = data.get("presets", {}) or {}

    out: List[Scenario] = []
    for row in data.get("scenarios", []) or []:
        if "id" not in row:
            raise ConfigError(f"scenario row without 'id': {row!r}")
        selections = dict(row.get("presets", {}) or {})
        raw = apply_presets(defaults, selections, groups)
        raw = deep_merge(raw, translate_legacy(row.get("overrides", {})))
        out.append(Scenario(
            id=str(row["id"]),
            config=build_config(raw),
            presets=selections,
            test_label=row.get("test_label", ""),
            hypothesis=row.get("hypothesis", ""),
            tags=tuple(row.get("tags", ())),
        ))
    _LOG.info("loaded %d scenarios from %s", len(out), yaml_path)
    return out


def load_unit_mappings(yaml_path: str | Path = "scenarios.yaml") -> Dict[str, UnitVar]:
    """``unit_mappings:`` block, validated.  Raises UnitSchemaError when unusable."""
    return parse_unit_schema(load_yaml(yaml_path).get("unit_mappings") or {})


"""
1. What the file does, step-by-step

load_scenarios() opens scenarios.yaml, translates the defaults: block into
canonical nested form, merges each scenario's selected presets (groups in
declaration order) and then its overrides:, and builds a frozen SimConfig.

translate_legacy() is the only place where old flat camelCase keys such as
numWorkers / askProb / poErrorProb are understood; the engine only ever sees
SimConfig.  Retired knobs (memoryDepth, helpStrategy) are dropped quietly,
anything else unknown is dropped with a warning.

Numeric defects (strings, NaN, inf) never abort loading: build_section falls
back to the dataclass default and logs a warning.  Structural defects (a
section that is not a mapping, a wrong schema version) raise ConfigError.
"""
