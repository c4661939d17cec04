# team_runner.py
# Discrete-cycle engine for one software team
#
# Key responsibilities
# 1.  Own one Backlog, one ProductOwner, one HiringPipeline and the worker
#     roster, and advance them cycle by cycle in a fixed phase order.
# 2.  Delegate per-worker micro-dynamics to `teamsim.worker_step` and
#     interview rounds to `teamsim.hiring`; the engine itself only decides
#     *who* acts *when* and mutates the roster at the cycle boundary.
# 3.  Run `simulation.replicates` independent runs (one numpy stream per
#     replicate, spawned from a SeedSequence) and return the replicate mean.
# 4.  Batch-run named scenarios, one seeded stream per scenario id.
#
# Roster mutation (removals, hires) happens only after every worker has been
# ticked, so no iteration ever sees a list that changes under it.
# --------------------------------------------------------------------------

from __future__ import annotations

import hashlib
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Dict, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd
from joblib import Parallel, delayed
from tqdm import tqdm

from teamsim.backlog import Backlog
from teamsim.exceptions import ConfigError
from teamsim.hiring import HiringPipeline, PendingHire, onboarding_knowledge, skill_scales
from teamsim.knowledge_updater import decay_untouched
from teamsim.product_owner import ProductOwner
from teamsim.sampling import sample_poisson
from teamsim.sim_params import SimConfig
from teamsim.stats import RunStats, aggregate_replicates, finalize_stats
from teamsim.task_factory import generate_task
from teamsim.worker import Worker, make_worker
from teamsim.worker_step import worker_step

if TYPE_CHECKING:
    from scenarios import Scenario

__all__ = [
    "SingleRun",
    "SimulationResult",
    "run_single_simulation",
    "run_simulation",
    "run_batch",
]

_LOG = logging.getLogger(__name__)


def _stable_uint32(token: str | int | None, *, global_seed: int | None) -> int:
    """
    Return a **deterministic** 32-bit integer seed.

    • If *global_seed* is given, combine it with *token* via MD5 so that
      every scenario draws an **independent** stream while staying
      reproducible across Python versions / platforms.
    • Without *global_seed* we fall back to MD5 of *token* alone.
    """
    base_str = f"{global_seed}_{token}" if global_seed is not None else str(token)
    digest = hashlib.md5(base_str.encode("utf-8")).hexdigest()
    return int(digest[:8], 16)


# 1 Run records
@dataclass(slots=True, frozen=True)
class SingleRun:
    """Outcome of one run: finalised stats, worker snapshots, optional trace."""
    stats:   Dict[str, float]
    workers: List[dict]
    history: Optional[pd.DataFrame] = None


@dataclass(slots=True, frozen=True)
class SimulationResult:
    stats:               Dict[str, float]          # replicate mean
    sample:              SingleRun                 # last replicate
    per_replicate_stats: Tuple[Dict[str, float], ...] = field(default_factory=tuple)
    config:              Optional[SimConfig] = None


# 2 Team state for one run
class _Team:
    """Mutable per-run state: roster, backlog, policy, hiring and counters."""

    def __init__(self, cfg: SimConfig, rng: np.random.Generator) -> None:
        self.cfg = cfg
        self.rng = rng
        self.num_topics = max(1, cfg.environment.num_topics)
        self.stats = RunStats()
        self.backlog = Backlog(
            generate_task(cfg.environment, rng)
            for _ in range(max(0, cfg.backlog.initial_size))
        )
        self.po = ProductOwner(cfg.product_owner, rng)
        self.hiring = HiringPipeline(cfg.turnover, rng, self.num_topics)

        size = max(0, cfg.team.size)
        self.roster: List[Worker] = [
            make_worker(i, self.num_topics, rng,
                        initial_knowledge_max=cfg.team.initial_knowledge_max)
            for i in range(size)
        ]
        for w in self.roster:
            w.init_beliefs(self.roster, rng, cfg.beliefs.init_max)
        self.next_id = size

    # roster boundary operations
    def onboard(self, hires: Sequence[PendingHire], cycle: int) -> None:
        p = self.cfg.turnover
        for h in hires:
            knowledge = onboarding_knowledge(
                h.skill, h.specialty, [w.knowledge for w in self.roster],
                self.num_topics, p,
            )
            learning, work, forget = skill_scales(h.skill, p)
            new = make_worker(
                self.next_id, self.num_topics, self.rng,
                knowledge=knowledge,
                learning_scale=learning,
                work_scale=work,
                forgetfulness_scale=forget,
                joined_cycle=cycle,
            )
            self.next_id += 1
            new.init_beliefs(self.roster, self.rng, self.cfg.beliefs.init_max)
            for w in self.roster:
                w.init_beliefs([new], self.rng, self.cfg.beliefs.init_max)
            self.roster.append(new)
            self.stats.hires_onboarded += 1
            self.stats.cycles_to_hire_sum += cycle - h.opened_cycle
            _LOG.debug("t=%d onboarded worker %d (skill=%.3f)", cycle, new.id, h.skill)

    def remove_marked(self, cycle: int) -> None:
        leaving = [w for w in self.roster if w.marked_for_removal]
        if not leaving:
            return
        for w in leaving:
            self.hiring.cancel_interview(w)
            self.hiring.open_vacancy(cycle)
            self.stats.turnover_events += 1
        self.roster = [w for w in self.roster if not w.marked_for_removal]
        for w in self.roster:
            for gone in leaving:
                w.forget_worker(gone.id)
        _LOG.debug("t=%d removed workers %s", cycle, [w.id for w in leaving])

    # one cycle
    def step(self, cycle: int) -> None:
        cfg, rng, stats = self.cfg, self.rng, self.stats

        for w in self.roster:
            w.busy = False

        self.onboard(self.hiring.pop_ready(cycle), cycle)

        # gate sees last cycle's absence; the roll for this cycle comes later
        if self.hiring.open_seats() > 0:
            self.hiring.try_candidate_arrival(self.roster, stats)

        for _ in range(sample_poisson(cfg.environment.new_task_rate, rng)):
            self.backlog.push(generate_task(cfg.environment, rng))
            stats.total_tasks_arrived += 1

        self.po.run_cycle(self.backlog, cfg.backlog.max_size, stats)

        for w in self.roster:
            w.is_absent = rng.random() < cfg.behavior.absence_probability

        for w in self.roster:
            if not w.can_pull_task():
                continue
            task = self.backlog.take_front()
            if task is None:
                break
            w.assign(task)

        by_id = {w.id: w for w in self.roster}
        for idx in rng.permutation(len(self.roster)):
            w = self.roster[int(idx)]
            if w.is_absent:
                stats.absent_worker_cycles += 1
                continue
            if w.interviewing:
                self.hiring.interview_step(w, cycle, stats)
                continue
            if w.busy:
                stats.helper_cycles_lost += 1
                continue
            worker_step(cycle=cycle, worker=w, roster=self.roster, by_id=by_id,
                        cfg=cfg, rng=rng, stats=stats)

        stats.active_worker_cycles += sum(
            1 for w in self.roster if not w.is_absent and not w.marked_for_removal
        )

        for w in self.roster:
            if not w.is_absent:
                decay_untouched(w.knowledge, w.touched_topics,
                                cfg.behavior.knowledge_decay_rate, w.forgetfulness_scale)
            w.touched_topics.clear()

        self.remove_marked(cycle)
        self.onboard(self.hiring.pop_ready(cycle), cycle)

    def history_row(self, cycle: int) -> Dict[str, float]:
        s = self.stats
        return {
            "cycle":                 cycle,
            "backlog_size":          len(self.backlog),
            "team_size":             len(self.roster),
            "total_value":           s.total_value,
            "total_tasks_completed": s.total_tasks_completed,
            "open_vacancies":        len(self.hiring.vacancies),
        }


# 3 Public entry points
def run_single_simulation(
    cfg: SimConfig,
    rng: np.random.Generator | None = None,
    *,
    record_history: bool = False,
) -> SingleRun:
    """
    Simulate one team for ``simulation.num_cycles`` cycles.

    Parameters
    ----------
    cfg : SimConfig
        Fully resolved configuration (presets and patches already applied).
    rng : numpy.random.Generator, optional
        Random stream owned by this run.  Defaults to one seeded with
        ``simulation.seed`` (fresh entropy when that is None).
    record_history : bool
        When True, attach a per-cycle DataFrame to the result.
    """
    if not isinstance(cfg, SimConfig):
        raise ConfigError(f"expected SimConfig, got {type(cfg).__name__}")
    if rng is None:
        rng = np.random.default_rng(cfg.simulation.seed)

    team = _Team(cfg, rng)
    num_cycles = max(0, cfg.simulation.num_cycles)
    rows: List[Dict[str, float]] = []

    for cycle in range(num_cycles):
        team.step(cycle)
        if record_history:
            rows.append(team.history_row(cycle))

    stats = finalize_stats(
        team.stats,
        num_cycles=num_cycles,
        team_size=max(0, cfg.team.size),
        knowledge_rows=[w.knowledge for w in team.roster],
        num_topics=team.num_topics,
        final_backlog_size=len(team.backlog),
    )
    history = pd.DataFrame(rows) if record_history else None
    return SingleRun(stats=stats, workers=[w.to_dict() for w in team.roster], history=history)


def _run_replicate(cfg: SimConfig, seed_seq: np.random.SeedSequence) -> SingleRun:
    return run_single_simulation(cfg, np.random.default_rng(seed_seq))


def run_simulation(
    cfg: SimConfig,
    *,
    seed: int | None = None,
    jobs: int = 1,
) -> SimulationResult:
    """
    Run ``simulation.replicates`` independent simulations and average them.

    Each replicate draws from its own stream spawned off one SeedSequence,
    so results do not depend on *jobs*.  Exceptions inside a replicate
    propagate to the caller.
    """
    n_reps = max(1, cfg.simulation.replicates)
    root = np.random.SeedSequence(seed if seed is not None else cfg.simulation.seed)
    children = root.spawn(n_reps)

    if jobs == 1 or n_reps == 1:
        runs = [_run_replicate(cfg, ss) for ss in children]
    else:
        runs = Parallel(n_jobs=jobs, backend="loky")(
            delayed(_run_replicate)(cfg, ss) for ss in children
        )

    per_rep = [r.stats for r in runs]
    mean_stats = aggregate_replicates(per_rep)
    _LOG.info("run_simulation: %d replicate(s), mean value=%.2f, tasks=%.1f",
              n_reps, mean_stats["total_value"], mean_stats["total_tasks_completed"])
    return SimulationResult(
        stats=mean_stats,
        sample=runs[-1],
        per_replicate_stats=tuple(per_rep),
        config=cfg,
    )


def _run_single_scenario(scn: "Scenario", *, global_seed: int | None = None) -> Dict[str, object]:
    """Run one Scenario through the engine and tag its mean stats."""
    seed = _stable_uint32(scn.id, global_seed=global_seed)
    result = run_simulation(scn.config, seed=seed, jobs=1)
    return {
        "scenario_id": scn.id,
        "test_label":  scn.test_label,
        "hypothesis":  scn.hypothesis,
        **result.stats,
    }


def run_batch(
    scenarios: Sequence["Scenario"],
    *,
    jobs: int = -1,
    seed_global: int | None = None,
) -> pd.DataFrame:
    """
    Convenience wrapper used by sim_runner.py.

    One row of replicate-mean stats per scenario.  Parallelism is across
    scenarios; replicates inside a scenario run serially.
    """
    if jobs == 1:
        rows = [
            _run_single_scenario(s, global_seed=seed_global)
            for s in tqdm(scenarios, desc="team runs")
        ]
    else:
        rows = Parallel(n_jobs=jobs, backend="loky")(
            delayed(_run_single_scenario)(s, global_seed=seed_global)
            for s in tqdm(scenarios, desc="team runs")
        )
    return pd.DataFrame(rows)
