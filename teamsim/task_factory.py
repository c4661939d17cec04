# teamsim/task_factory.py
# Task record + random task generator.
#
#   topic  ~ U{0, …, num_topics-1}
#   effort ~ Poisson(avg_info_time), Poisson(avg_impl_time)            (model A)
#            or Poisson(total·c), Poisson(total·(1-c)),
#               c = clamp01(base_complexity + U(-jitter, jitter))       (model B)
#   value  ~ max(1, Poisson(avg_value))
#   retention ~ U[retention_min, retention_max]

from __future__ import annotations

from dataclasses import dataclass

from numpy.random import Generator

from teamsim.sampling import clamp01, sample_poisson, sample_uniform
from teamsim.sim_params import EnvironmentParams

__all__ = ["Task", "generate_task", "task_score"]


@dataclass(slots=True, frozen=True)
class Task:
    topic:               int
    info_effort:         int
    impl_effort:         int
    value:               float
    value_retention:     float
    initial_info_effort: int
    initial_impl_effort: int

    @property
    def total_effort(self) -> int:
        return self.initial_info_effort + self.initial_impl_effort


def task_score(task: Task) -> float:
    """Value per unit of effort; higher means 'do it first'."""
    return task.value / max(1, task.info_effort + task.impl_effort)


def _sample_efforts(env: EnvironmentParams, rng: Generator) -> tuple[int, int]:
    if env.total_effort is not None:
        total = max(0.0, env.total_effort)
        complexity = clamp01(
            env.base_complexity
            + sample_uniform(-env.complexity_jitter, env.complexity_jitter, rng)
        )
        return (sample_poisson(total * complexity, rng),
                sample_poisson(total * (1.0 - complexity), rng))
    return (sample_poisson(env.avg_info_time, rng),
            sample_poisson(env.avg_impl_time, rng))


def generate_task(env: EnvironmentParams, rng: Generator) -> Task:
    """Draw one fresh task for the backlog."""
    num_topics = max(1, env.num_topics)
    topic = int(rng.integers(0, num_topics))

    info, impl = _sample_efforts(env, rng)
    value = float(max(1, sample_poisson(env.avg_value, rng)))
    retention = clamp01(sample_uniform(env.retention_min, env.retention_max, rng))

    return Task(
        topic=topic,
        info_effort=info,
        impl_effort=impl,
        value=value,
        value_retention=retention,
        initial_info_effort=info,
        initial_impl_effort=impl,
    )
