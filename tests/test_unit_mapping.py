# tests/test_unit_mapping.py
import math

import numpy as np
import pytest

from teamsim.exceptions import UnitSchemaError
from teamsim.sim_params import SimConfig
from teamsim.unit_mapping import apply_unit_config, parse_unit_schema, random_unit_vars

SCHEMA = {
    "team_size": {"target": "team.size", "min": 0, "max": 10, "scale": "linear", "type": "int"},
    "po_error": {"target": "product_owner.error_probability", "min": 0.0, "max": 1.0},
    "task_rate": {"target": "environment.new_task_rate", "min": 0.5, "max": 8.0,
                  "scale": "log", "type": "float"},
}


def test_linear_int_rounds_half_up():
    cfg = apply_unit_config(SimConfig(), {"team_size": 0.55}, SCHEMA)
    assert cfg.team.size == 6
    assert isinstance(cfg.team.size, int)


def test_log_scale_endpoints_and_midpoint():
    for u, expected in ((0.0, 0.5), (1.0, 8.0), (0.5, 2.0)):
        cfg = apply_unit_config(SimConfig(), {"task_rate": u}, SCHEMA)
        assert cfg.environment.new_task_rate == pytest.approx(expected)


def test_unselected_keys_keep_base_value():
    base = SimConfig()
    units = {"team_size": 0.9, "po_error": 0.7}
    cfg = apply_unit_config(base, units, SCHEMA, vary={"po_error"})
    assert cfg.team.size == base.team.size
    assert cfg.product_owner.error_probability == pytest.approx(0.7)
    assert base.product_owner.error_probability == 0.0          # base untouched


def test_ratio_keeps_effort_sum():
    schema = {"info_to_impl": {"type": "ratio"}}
    cfg = apply_unit_config(SimConfig(), {"info_to_impl": 0.5}, schema)
    env = cfg.environment
    assert env.avg_info_time + env.avg_impl_time == pytest.approx(10.0)
    assert env.avg_info_time / env.avg_impl_time == pytest.approx(1.0)
    cfg = apply_unit_config(SimConfig(), {"info_to_impl": 1.0}, schema)
    assert cfg.environment.avg_info_time / cfg.environment.avg_impl_time == pytest.approx(4.0)


def test_out_of_range_unit_is_clamped():
    cfg = apply_unit_config(SimConfig(), {"po_error": 3.0}, SCHEMA)
    assert cfg.product_owner.error_probability == 1.0
    cfg = apply_unit_config(SimConfig(), {"po_error": math.nan}, SCHEMA)
    assert cfg.product_owner.error_probability == 0.0


def test_random_unit_vars():
    vals = random_unit_vars(SCHEMA, np.random.default_rng(0))
    assert list(vals) == list(SCHEMA)
    assert all(0.0 <= v < 1.0 for v in vals.values())


@pytest.mark.parametrize("schema", [
    {},
    None,
    {"x": "not a mapping"},
    {"x": {"target": "team.nope", "min": 0, "max": 1}},
    {"x": {"target": "team.size", "min": 0}},
    {"x": {"target": "team.size", "min": "a", "max": 1}},
    {"x": {"target": "team.size", "min": 0, "max": 1, "scale": "cubic"}},
    {"x": {"target": "team.size", "min": 0, "max": 1, "type": "complex"}},
    {"x": {"target": "environment.new_task_rate", "min": 0, "max": 1, "scale": "log"}},
    {"x": {"type": "ratio", "min": -1, "max": 2}},
])
def test_malformed_schema_raises(schema):
    with pytest.raises(UnitSchemaError):
        parse_unit_schema(schema)


def test_parse_returns_unit_vars():
    parsed = parse_unit_schema(SCHEMA)
    assert parsed["team_size"].kind == "int"
    assert parsed["po_error"].scale == "linear"
    assert parse_unit_schema(parsed) == parsed
