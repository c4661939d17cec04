# teamsim/stats.py
# Per-run statistics accumulator, end-of-run finalisation and the
# replicate-mean aggregator.
#   • RunStats             – flat counters / sums mutated during one run
#   • finalize_stats()     – counters + derived ratios → dict[str, float]
#   • team_expertise()     – final expertise summaries over the roster
#   • aggregate_replicates() – mean of every numeric field across replicates
# ─────────────────────────────────────────────────────────────────────────────
from __future__ import annotations

import math
from dataclasses import asdict, dataclass
from numbers import Real
from typing import Dict, List, Sequence

import numpy as np
import pandas as pd

__all__ = [
    "RunStats",
    "finalize_stats",
    "team_expertise",
    "aggregate_replicates",
]


@dataclass(slots=True)
class RunStats:
    # value
    total_value:                float = 0.0
    total_tasks_completed:      int   = 0
    total_tasks_arrived:        int   = 0
    cumulative_recurring_value: float = 0.0

    # work cycles
    total_info_cycles:          int = 0
    total_impl_cycles:          int = 0
    solo_research_cycles:       int = 0
    total_conversation_cycles:  int = 0
    idle_worker_cycles:         int = 0
    absent_worker_cycles:       int = 0
    helper_cycles_lost:         int = 0
    active_worker_cycles:       int = 0

    # ask-for-help
    total_ask_attempts:         int = 0
    forced_ask_attempts:        int = 0
    ask_with_helper:            int = 0
    ask_without_helper:         int = 0
    successful_conversations:   int = 0
    failed_conversations:       int = 0

    # backlog
    evicted_tasks:              int   = 0
    evicted_value:              float = 0.0
    po_absent_cycles:           int   = 0

    # staffing
    turnover_events:            int   = 0
    candidates_arrived:         int   = 0
    interviews_completed:       int   = 0
    hires:                      int   = 0
    rejections:                 int   = 0
    interview_cycles:           int   = 0
    interview_cost:             float = 0.0
    hires_onboarded:            int   = 0
    cycles_to_hire_sum:         float = 0.0


def _ratio(num: float, den: float) -> float:
    return float(num) / float(den) if den else 0.0


def team_expertise(knowledge_rows: Sequence[np.ndarray], num_topics: int) -> tuple[float, float]:
    """
    Returns (mean knowledge over every worker × topic,
             mean over topics of the best worker's knowledge).
    Both are 0 for an empty roster.
    """
    if not knowledge_rows or num_topics <= 0:
        return 0.0, 0.0
    mat = np.vstack([row[:num_topics] for row in knowledge_rows])
    return float(mat.mean()), float(mat.max(axis=0).mean())


def finalize_stats(
    stats: RunStats,
    *,
    num_cycles: int,
    team_size: int,
    knowledge_rows: Sequence[np.ndarray],
    num_topics: int,
    final_backlog_size: int,
) -> Dict[str, float]:
    """Flatten *stats* and add the derived ratios used by experiments."""
    out: Dict[str, float] = {k: float(v) for k, v in asdict(stats).items()}

    avg_expertise, avg_max_expertise = team_expertise(knowledge_rows, num_topics)
    per_cycle_recurring = _ratio(stats.cumulative_recurring_value, num_cycles)

    out.update({
        "num_cycles":                      float(num_cycles),
        "final_backlog_size":              float(final_backlog_size),
        "final_team_size":                 float(len(knowledge_rows)),
        "final_team_avg_expertise":        avg_expertise,
        "final_team_avg_max_expertise_per_topic": avg_max_expertise,

        "average_cumulative_value_per_cycle":            per_cycle_recurring,
        "average_cumulative_value_per_cycle_per_worker": _ratio(per_cycle_recurring, team_size),

        "productivity":          _ratio(stats.total_value, num_cycles),
        "value_per_task":        _ratio(stats.total_value, stats.total_tasks_completed),
        "value_per_worker_cycle": _ratio(stats.total_value, stats.active_worker_cycles),
        "info_share":            _ratio(stats.total_info_cycles,
                                        stats.total_info_cycles + stats.total_impl_cycles),
        "conversation_share":    _ratio(stats.total_conversation_cycles, stats.total_info_cycles),
        "ask_success_rate":      _ratio(stats.ask_with_helper, stats.total_ask_attempts),
        "eviction_rate":         _ratio(stats.evicted_tasks, stats.total_tasks_arrived),
        "hire_rate":             _ratio(stats.hires, stats.interviews_completed),
        "turnover_rate":         _ratio(stats.turnover_events, stats.total_tasks_completed),
        "avg_cycles_to_hire":    _ratio(stats.cycles_to_hire_sum, stats.hires_onboarded),
        "avg_active_workers":    _ratio(stats.active_worker_cycles, num_cycles),
    })
    return out


def _is_number(v: object) -> bool:
    return isinstance(v, Real) and not isinstance(v, bool) and math.isfinite(float(v))


def aggregate_replicates(per_rep: List[Dict[str, float]]) -> Dict[str, float]:
    """
    Arithmetic mean of every finite numeric field present in replicate 0.

    Adds ``replicates`` (count).  Raises ValueError on an empty list.
    """
    if not per_rep:
        raise ValueError("per_rep must be non-empty")
    keys = [k for k, v in per_rep[0].items() if _is_number(v)]
    frame = pd.DataFrame([{k: s.get(k, np.nan) for k in keys} for s in per_rep],
                         columns=keys, dtype="float64")
    means = frame.mean(axis=0, skipna=True)
    out = {k: float(means[k]) for k in keys}
    out["replicates"] = float(len(per_rep))
    return out
