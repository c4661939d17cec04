# tests/conftest.py
from typing import Any, Dict

import numpy as np
import pytest

from teamsim.sim_params import SimConfig, replace_path
from teamsim.task_factory import Task

_SMALL = {
    "environment.num_topics": 5,
    "backlog.initial_size": 10,
    "backlog.max_size": 20,
    "team.size": 4,
    "simulation.num_cycles": 60,
    "simulation.replicates": 1,
}


def build_cfg(overrides: Dict[str, Any] | None = None, *, small: bool = True) -> SimConfig:
    cfg = SimConfig()
    patch = dict(_SMALL) if small else {}
    patch.update(overrides or {})
    for path, value in patch.items():
        cfg = replace_path(cfg, path, value)
    return cfg


def make_task(info: int = 2, impl: int = 3, value: float = 10.0,
              topic: int = 0, retention: float = 0.5) -> Task:
    return Task(topic=topic, info_effort=info, impl_effort=impl, value=value,
                value_retention=retention, initial_info_effort=info,
                initial_impl_effort=impl)


@pytest.fixture
def rng():
    return np.random.default_rng(12345)


@pytest.fixture
def cfg_factory():
    return build_cfg


@pytest.fixture
def task_factory():
    return make_task
