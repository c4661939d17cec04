# teamsim/worker.py
# Per-agent mutable state for one team member plus the tagged outcome of an
# ask-for-help decision.
#
#   knowledge : ndarray[num_topics]            own expertise in [0,1]
#   beliefs   : {topic: {other_id: float}}     estimate of colleagues' expertise
#
# A worker never stores a belief about itself; `set_belief` refuses it.
# --------------------------------------------------------------------------
from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Dict, Iterable, Optional, Sequence, Set, Union

import numpy as np
from numpy.random import Generator

from teamsim.sampling import clamp01
from teamsim.task_factory import Task

if TYPE_CHECKING:
    from teamsim.hiring import Interview

__all__ = [
    "Worker",
    "NoAttempt",
    "AttemptNoHelper",
    "AttemptWithHelper",
    "HelpOutcome",
    "make_worker",
]

IDLE, INFO, IMPL = "idle", "info", "impl"


@dataclass(slots=True, frozen=True)
class NoAttempt:
    """Worker did not ask (chattiness roll failed or expected gain too small)."""


@dataclass(slots=True, frozen=True)
class AttemptNoHelper:
    """Worker asked but nobody was available; falls back to solo research."""
    forced: bool = False


@dataclass(slots=True, frozen=True)
class AttemptWithHelper:
    helper_id: int
    gain:      float
    forced:    bool = False


HelpOutcome = Union[NoAttempt, AttemptNoHelper, AttemptWithHelper]


@dataclass(slots=True)
class Worker:
    id:                  int
    knowledge:           np.ndarray
    beliefs:             Dict[int, Dict[int, float]] = field(default_factory=dict)

    phase:               str = IDLE
    current_task:        Optional[Task] = None
    remaining_info:      int = 0
    remaining_impl:      int = 0

    is_absent:           bool = False
    marked_for_removal:  bool = False
    busy:                bool = False
    current_interview:   Optional["Interview"] = None

    learning_scale:      float = 1.0
    work_scale:          float = 1.0
    forgetfulness_scale: float = 1.0
    touched_topics:      Set[int] = field(default_factory=set)
    joined_cycle:        int = 0

    # knowledge
    def knowledge_of(self, topic: int) -> float:
        return float(self.knowledge[topic])

    def set_knowledge(self, topic: int, value: float) -> None:
        self.knowledge[topic] = clamp01(value)

    # beliefs
    def belief(self, topic: int, other_id: int) -> float:
        if other_id == self.id:
            return 0.0
        return self.beliefs.get(topic, {}).get(other_id, 0.0)

    def set_belief(self, topic: int, other_id: int, value: float) -> None:
        if other_id == self.id:
            return
        self.beliefs.setdefault(topic, {})[other_id] = clamp01(value)

    def init_beliefs(self, others: Iterable["Worker"], rng: Generator, init_max: float) -> None:
        """Small random prior about every colleague on every topic."""
        num_topics = self.knowledge.shape[0]
        for other in others:
            if other.id == self.id:
                continue
            for topic in range(num_topics):
                self.beliefs.setdefault(topic, {})
                if other.id not in self.beliefs[topic]:
                    self.set_belief(topic, other.id, rng.random() * init_max)

    def forget_worker(self, other_id: int) -> None:
        for per_topic in self.beliefs.values():
            per_topic.pop(other_id, None)

    # availability
    @property
    def is_idle(self) -> bool:
        return self.current_task is None

    @property
    def interviewing(self) -> bool:
        return self.current_interview is not None

    def can_pull_task(self) -> bool:
        return (not self.is_absent and not self.marked_for_removal and not self.busy
                and not self.interviewing and self.is_idle)

    def can_help(self) -> bool:
        return (not self.is_absent and not self.marked_for_removal and not self.busy
                and not self.interviewing)

    # task handling
    def assign(self, task: Task) -> None:
        self.current_task = task
        self.remaining_info = max(0, task.info_effort)
        self.remaining_impl = max(0, task.impl_effort)
        self.phase = INFO if self.remaining_info > 0 else IMPL

    def clear_task(self) -> None:
        self.current_task = None
        self.phase = IDLE
        self.remaining_info = 0
        self.remaining_impl = 0

    def choose_helper(self, topic: int, roster: Sequence["Worker"]) -> tuple[Optional["Worker"], float]:
        """Believed-best available colleague and the believed knowledge gap."""
        own = self.knowledge_of(topic)
        best, best_gap = None, float("-inf")
        for other in roster:
            if other.id == self.id or not other.can_help():
                continue
            gap = self.belief(topic, other.id) - own
            if gap > best_gap:
                best, best_gap = other, gap
        return best, best_gap

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "joined_cycle": self.joined_cycle,
            "phase": self.phase,
            "remaining_info": self.remaining_info,
            "remaining_impl": self.remaining_impl,
            "is_absent": self.is_absent,
            "interviewing": self.interviewing,
            "knowledge": self.knowledge.tolist(),
            "beliefs": {t: dict(b) for t, b in self.beliefs.items()},
            "learning_scale": self.learning_scale,
            "work_scale": self.work_scale,
            "forgetfulness_scale": self.forgetfulness_scale,
        }


def make_worker(
    worker_id: int,
    num_topics: int,
    rng: Generator,
    *,
    initial_knowledge_max: float = 0.0,
    knowledge: Optional[np.ndarray] = None,
    learning_scale: float = 1.0,
    work_scale: float = 1.0,
    forgetfulness_scale: float = 1.0,
    joined_cycle: int = 0,
) -> Worker:
    num_topics = max(1, num_topics)
    if knowledge is None:
        knowledge = rng.random(num_topics) * clamp01(initial_knowledge_max)
    knowledge = np.clip(np.asarray(knowledge, dtype=float), 0.0, 1.0)
    return Worker(
        id=worker_id,
        knowledge=knowledge,
        learning_scale=learning_scale,
        work_scale=work_scale,
        forgetfulness_scale=forgetfulness_scale,
        joined_cycle=joined_cycle,
    )
