# teamsim/hiring.py
"""
Hiring / interview pipeline.

Candidate life-cycle
--------------------
    arrived ─► interviewing (N rounds, one interviewer-cycle each) ─► hired | rejected

* Arrival is Bernoulli per cycle with p = 1 / candidate_interarrival_mean,
  gated on an unreserved vacancy and a present, non-interviewing colleague.
* The final round observes  perceived = clamp01(skill + U(−noise, +noise))
  and hires iff perceived ≥ min_hire_bar.
* A hire fills the oldest vacancy and is onboarded ``hire_lag_cycles`` later.

Onboarding profile
------------------
With s = skill ** skill_exponent and base = s · max(0.2, hire_avg_factor · 0.5):

    average    : k[topic] = clamp01(team_mean[topic] · hire_avg_factor)
                 (base when no colleague is left to average over)
    specialist : k[topic] = base,  k[specialty] = min(1, base + specialist_boost)

    learning_scale = work_scale = clamp(0.5 + s, floor, cap)
    forgetfulness_scale         = clamp(1.5 − s, floor, cap)
"""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass
from typing import Deque, List, Optional, Sequence, Tuple

import numpy as np
from numpy.random import Generator

from teamsim.sampling import clamp, clamp01, sample_uniform
from teamsim.sim_params import TurnoverParams
from teamsim.stats import RunStats
from teamsim.worker import Worker

__all__ = [
    "Vacancy",
    "Interview",
    "PendingHire",
    "HiringPipeline",
    "skill_scales",
    "onboarding_knowledge",
]

_LOG = logging.getLogger(__name__)


@dataclass(slots=True, eq=False)
class Vacancy:
    opened_cycle: int
    reserved:     bool = False


@dataclass(slots=True)
class Interview:
    true_skill:       float
    rounds_remaining: int
    noise:            float
    bar:              float
    hire_id:          int
    vacancy:          Vacancy
    specialty:        int = 0


@dataclass(slots=True, frozen=True)
class PendingHire:
    hire_id:      int
    skill:        float
    specialty:    int
    ready_cycle:  int
    opened_cycle: int


def skill_scales(skill: float, p: TurnoverParams) -> Tuple[float, float, float]:
    """(learning_scale, work_scale, forgetfulness_scale) for a hire of *skill*."""
    s = clamp01(skill) ** p.skill_exponent
    rate = clamp(0.5 + s, p.scale_floor, p.scale_cap)
    forget = clamp(1.5 - s, p.scale_floor, p.scale_cap)
    return rate, rate, forget


def onboarding_knowledge(
    skill: float,
    specialty: int,
    team_knowledge: Sequence[np.ndarray],
    num_topics: int,
    p: TurnoverParams,
) -> np.ndarray:
    """Initial knowledge vector of a new hire (see module docstring)."""
    num_topics = max(1, num_topics)
    s = clamp01(skill) ** p.skill_exponent
    base = clamp01(s * max(0.2, p.hire_avg_factor * 0.5))

    if p.hire_mode == "specialist":
        out = np.full(num_topics, base, dtype=float)
        out[specialty % num_topics] = min(1.0, base + p.specialist_boost)
        return out

    if not team_knowledge:
        return np.full(num_topics, base, dtype=float)
    team_mean = np.vstack([row[:num_topics] for row in team_knowledge]).mean(axis=0)
    return np.clip(team_mean * p.hire_avg_factor, 0.0, 1.0)


class HiringPipeline:
    """Vacancies, in-flight interviews and hires waiting for their start date."""

    __slots__ = ("params", "rng", "num_topics", "vacancies", "pending", "_next_hire_id")

    def __init__(self, params: TurnoverParams, rng: Generator, num_topics: int) -> None:
        self.params = params
        self.rng = rng
        self.num_topics = max(1, num_topics)
        self.vacancies: Deque[Vacancy] = deque()       # oldest first
        self.pending: List[PendingHire] = []
        self._next_hire_id = 0

    # vacancies
    def open_vacancy(self, cycle: int) -> None:
        self.vacancies.append(Vacancy(opened_cycle=cycle))

    def open_seats(self) -> int:
        return sum(1 for v in self.vacancies if not v.reserved)

    def _oldest_open(self) -> Optional[Vacancy]:
        for v in self.vacancies:
            if not v.reserved:
                return v
        return None

    # arrivals
    def arrival_probability(self) -> float:
        mean = self.params.candidate_interarrival_mean
        return 1.0 / mean if mean > 0 else 0.0

    def try_candidate_arrival(self, roster: Sequence[Worker], stats: RunStats) -> Optional[Interview]:
        """Bernoulli arrival; attaches the interview to a random free colleague."""
        if self.open_seats() == 0:
            return None
        interviewers = [w for w in roster
                        if not w.is_absent and not w.marked_for_removal and not w.interviewing]
        if not interviewers:
            return None
        if not (self.rng.random() < self.arrival_probability()):
            return None

        vacancy = self._oldest_open()
        vacancy.reserved = True
        interviewer = interviewers[int(self.rng.integers(0, len(interviewers)))]
        p = self.params
        interview = Interview(
            true_skill=clamp01(sample_uniform(p.skill_min, p.skill_max, self.rng)),
            rounds_remaining=max(1, p.interview_rounds),
            noise=max(0.0, p.interview_noise),
            bar=p.min_hire_bar,
            hire_id=self._next_hire_id,
            vacancy=vacancy,
            specialty=int(self.rng.integers(0, self.num_topics)),
        )
        self._next_hire_id += 1
        interviewer.current_interview = interview
        stats.candidates_arrived += 1
        _LOG.debug("candidate %d arrived (skill=%.3f) → interviewer %d",
                   interview.hire_id, interview.true_skill, interviewer.id)
        return interview

    # interviewing
    def interview_step(self, worker: Worker, cycle: int, stats: RunStats) -> Optional[bool]:
        """
        Spend one interviewer-cycle.  Returns None while rounds remain,
        otherwise True (hired) / False (rejected).
        """
        iv = worker.current_interview
        if iv is None:
            return None
        worker.busy = True
        iv.rounds_remaining -= 1
        stats.interview_cycles += 1
        stats.interview_cost += self.params.interview_cost_per_cycle
        if iv.rounds_remaining > 0:
            return None

        worker.current_interview = None
        stats.interviews_completed += 1
        perceived = clamp01(iv.true_skill + sample_uniform(-iv.noise, iv.noise, self.rng))
        if perceived >= iv.bar:
            self.vacancies.remove(iv.vacancy)
            self.pending.append(PendingHire(
                hire_id=iv.hire_id,
                skill=iv.true_skill,
                specialty=iv.specialty,
                ready_cycle=cycle + max(0, self.params.hire_lag_cycles),
                opened_cycle=iv.vacancy.opened_cycle,
            ))
            stats.hires += 1
            _LOG.debug("t=%d hire %d accepted (perceived %.3f ≥ %.3f)",
                       cycle, iv.hire_id, perceived, iv.bar)
            return True
        iv.vacancy.reserved = False
        stats.rejections += 1
        return False

    def cancel_interview(self, worker: Worker) -> None:
        """Interviewer leaves mid-interview: candidate walks, seat reopens."""
        iv = worker.current_interview
        if iv is not None:
            iv.vacancy.reserved = False
            worker.current_interview = None

    # onboarding
    def pop_ready(self, cycle: int) -> List[PendingHire]:
        ready = [h for h in self.pending if h.ready_cycle <= cycle]
        if ready:
            self.pending = [h for h in self.pending if h.ready_cycle > cycle]
        return ready
