# teamsim/product_owner.py
"""
Bounded-window, error-prone greedy prioritiser.

The product owner never sorts the whole backlog.  Each action inspects one
window of ``window_size`` tasks at a rolling cursor, moves the best-scored
task (score = value / max(1, effort)) to the window front and advances the
cursor.  With probability ``error_probability`` the PO misjudges and moves a
uniformly random window task instead.  Over many cycles this approximates a
full prioritisation at O(window_size) per action.

Eviction mirrors the same judgement: normally the globally worst task, with
probability ``error_probability`` a uniformly random one.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, List, Sequence

from numpy.random import Generator

from teamsim.backlog import Backlog
from teamsim.sim_params import ProductOwnerParams
from teamsim.task_factory import Task, task_score

if TYPE_CHECKING:
    from teamsim.stats import RunStats

__all__ = ["ProductOwner"]

_LOG = logging.getLogger(__name__)


class ProductOwner:
    __slots__ = ("params", "rng", "cursor")

    def __init__(self, params: ProductOwnerParams, rng: Generator) -> None:
        self.params = params
        self.rng = rng
        self.cursor = 0

    def _choose_in_window(self, window: List[Task]) -> int:
        best = max(range(len(window)), key=lambda i: task_score(window[i]))
        if self.rng.random() < self.params.error_probability:
            return int(self.rng.integers(0, len(window)))
        return best

    def act(self, backlog: Backlog) -> None:
        """One PO action on the window at the cursor."""
        if len(backlog) == 0:
            return
        size = max(1, self.params.window_size)
        if self.cursor >= len(backlog):
            self.cursor = 0

        def _front_chosen(window: List[Task]) -> List[Task]:
            chosen = self._choose_in_window(window)
            return [window[chosen]] + window[:chosen] + window[chosen + 1:]

        backlog.reorder_window(self.cursor, size, _front_chosen)

        self.cursor += size
        if self.cursor >= len(backlog):
            self.cursor = 0

    def pick_eviction_index(self, tasks: Sequence[Task]) -> int:
        if not tasks:
            return -1
        worst = min(enumerate(tasks), key=lambda pair: task_score(pair[1]))[0]
        if self.rng.random() < self.params.error_probability:
            return int(self.rng.integers(0, len(tasks)))
        return worst

    def run_cycle(self, backlog: Backlog, max_size: int, stats: "RunStats") -> bool:
        """
        Reorder (unless absent) and enforce the capacity limit.

        Returns True when the PO was present this cycle.  Eviction runs even
        on absent cycles so the backlog never overflows for long.
        """
        present = not (self.rng.random() < self.params.absence_probability)
        if present:
            for _ in range(max(0, self.params.actions_per_cycle)):
                self.act(backlog)
        else:
            stats.po_absent_cycles += 1
        backlog.evict_worst(max_size, self.pick_eviction_index, stats)
        return present
