# teamsim/worker_step.py

# Single-cycle micro-dynamics for one worker holding a task.
# Knowledge maths is delegated to knowledge_updater; the caller
# (team_runner) owns ordering, availability and roster mutation.

from __future__ import annotations

from typing import Mapping, Optional, Sequence

from numpy.random import Generator

from teamsim.knowledge_updater import completion_rate, converse, learn_toward_one
from teamsim.sampling import round_half_up
from teamsim.sim_params import SimConfig
from teamsim.stats import RunStats
from teamsim.task_factory import Task
from teamsim.worker import (
    IMPL,
    INFO,
    AttemptNoHelper,
    AttemptWithHelper,
    HelpOutcome,
    NoAttempt,
    Worker,
)

__all__ = ["decide_help", "worker_step"]


def decide_help(
    worker: Worker,
    topic: int,
    roster: Sequence[Worker],
    cfg: SimConfig,
    rng: Generator,
) -> HelpOutcome:
    """
    1) forced when own knowledge < must_ask_threshold, else ask with
       probability ask_probability;
    2) pick the believed-best available colleague;
    3) an unforced ask also needs a believed gain ≥ ask_minimum_gain.
    """
    b = cfg.behavior
    forced = worker.knowledge_of(topic) < b.must_ask_threshold
    if not forced and not (rng.random() < b.ask_probability):
        return NoAttempt()

    helper, gap = worker.choose_helper(topic, roster)
    if helper is None:
        return AttemptNoHelper(forced=forced)
    if not forced and gap < b.ask_minimum_gain:
        return NoAttempt()
    return AttemptWithHelper(helper_id=helper.id, gain=gap, forced=forced)


def _advance_info(worker: Worker, topic: int) -> None:
    k = worker.knowledge_of(topic)
    remaining = worker.remaining_info
    reduction = max(1, round_half_up(k * remaining * worker.work_scale))
    worker.remaining_info = max(0, remaining - reduction)


def _complete(
    worker: Worker,
    task: Task,
    cycle: int,
    cfg: SimConfig,
    rng: Generator,
    stats: RunStats,
) -> None:
    b = cfg.behavior
    stats.total_value += task.value
    stats.total_tasks_completed += 1

    rate = completion_rate(b.completion_learning_rate, worker.learning_scale,
                           task.total_effort, b.completion_rate_cap)
    worker.set_knowledge(task.topic, learn_toward_one(worker.knowledge_of(task.topic), rate))

    if cycle >= cfg.simulation.burn_in_cycles:
        stats.cumulative_recurring_value += task.value * task.value_retention

    if rng.random() < cfg.turnover.probability:
        worker.marked_for_removal = True
    worker.clear_task()


def _info_cycle(
    worker: Worker,
    task: Task,
    roster: Sequence[Worker],
    by_id: Mapping[int, Worker],
    cfg: SimConfig,
    rng: Generator,
    stats: RunStats,
) -> None:
    b = cfg.behavior
    topic = task.topic
    stats.total_info_cycles += 1

    outcome = decide_help(worker, topic, roster, cfg, rng)
    if isinstance(outcome, AttemptWithHelper):
        helper = by_id[outcome.helper_id]
        stats.total_ask_attempts += 1
        stats.forced_ask_attempts += int(outcome.forced)
        stats.ask_with_helper += 1
        stats.successful_conversations += 1
        stats.total_conversation_cycles += 1

        a_new, h_new = converse(
            worker.knowledge_of(topic), helper.knowledge_of(topic),
            b.conversation_learning_rate * worker.learning_scale,
            b.conversation_learning_rate * helper.learning_scale,
        )
        worker.set_knowledge(topic, a_new)
        helper.set_knowledge(topic, h_new)
        worker.set_belief(topic, helper.id, helper.knowledge_of(topic))
        helper.set_belief(topic, worker.id, worker.knowledge_of(topic))
        helper.busy = True
        helper.touched_topics.add(topic)
    elif isinstance(outcome, AttemptNoHelper):
        stats.total_ask_attempts += 1
        stats.forced_ask_attempts += int(outcome.forced)
        stats.ask_without_helper += 1
        stats.failed_conversations += 1
        stats.solo_research_cycles += 1
        worker.set_knowledge(topic, learn_toward_one(
            worker.knowledge_of(topic), b.research_learning_rate * worker.learning_scale))
    elif isinstance(outcome, NoAttempt):
        stats.solo_research_cycles += 1
        worker.set_knowledge(topic, learn_toward_one(
            worker.knowledge_of(topic), b.research_learning_rate * worker.learning_scale))
    else:                                           # pragma: no cover
        raise TypeError(f"unknown help outcome {outcome!r}")

    _advance_info(worker, topic)


def worker_step(
    *,
    cycle: int,
    worker: Worker,
    roster: Sequence[Worker],
    by_id: Mapping[int, Worker],
    cfg: SimConfig,
    rng: Generator,
    stats: RunStats,
) -> Optional[Task]:
    """
    Advance *worker* by one cycle of task work.

    Returns the task if it was completed this cycle, else None.
    """
    task = worker.current_task
    if task is None:
        stats.idle_worker_cycles += 1
        return None
    worker.touched_topics.add(task.topic)

    if worker.phase == INFO:
        _info_cycle(worker, task, roster, by_id, cfg, rng, stats)
        if worker.remaining_info > 0:
            return None
        if worker.remaining_impl > 0:
            worker.phase = IMPL
            return None
        _complete(worker, task, cycle, cfg, rng, stats)
        return task

    stats.total_impl_cycles += 1
    worker.remaining_impl = max(0, worker.remaining_impl - 1)
    if worker.remaining_impl > 0:
        return None
    _complete(worker, task, cycle, cfg, rng, stats)
    return task
