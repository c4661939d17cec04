# teamsim/backlog.py
# ────────────────────────────────────────────────────────────────────────────
# Ordered task store shared by the engine, the product owner and the workers.
#
#   • push()           – append a freshly arrived task at the tail
#   • take_front()     – FIFO head for the next free worker
#   • reorder_window() – policy hook: permute one contiguous window
#   • evict_worst()    – drop policy-chosen tasks until size ≤ max_size
#
# The store is a collections.deque.  Every mutation is an explicit
# remove/insert on a position, so callers never hold stale slices.
# ────────────────────────────────────────────────────────────────────────────
from __future__ import annotations

import logging
from collections import deque
from typing import TYPE_CHECKING, Callable, Deque, Iterable, List, Sequence

from teamsim.task_factory import Task

if TYPE_CHECKING:
    from teamsim.stats import RunStats

__all__ = ["Backlog"]

_LOG = logging.getLogger(__name__)

PickIndex = Callable[[Sequence[Task]], int]
WindowFn = Callable[[List[Task]], List[Task]]


class Backlog:
    """Ordered pending-task queue (front = next to be worked)."""

    __slots__ = ("_tasks",)

    def __init__(self, tasks: Iterable[Task] = ()) -> None:
        self._tasks: Deque[Task] = deque(tasks)

    def __len__(self) -> int:
        return len(self._tasks)

    def __iter__(self):
        return iter(self._tasks)

    def size(self) -> int:
        return len(self._tasks)

    def push(self, task: Task) -> None:
        self._tasks.append(task)

    def take_front(self) -> Task | None:
        if not self._tasks:
            return None
        return self._tasks.popleft()

    def window(self, start: int, size: int) -> List[Task]:
        """Copy of tasks in [start, start+size), clipped to the backlog end."""
        end = min(start + max(size, 0), len(self._tasks))
        return [self._tasks[i] for i in range(max(start, 0), end)]

    def reorder_window(self, start: int, size: int, fn: WindowFn) -> None:
        """
        Replace the window [start, start+size) by ``fn(window)``.

        *fn* must return a permutation of the window it was given; the
        backlog never gains or loses tasks through this hook.
        """
        current = self.window(start, size)
        if not current:
            return
        reordered = list(fn(list(current)))
        if len(reordered) != len(current) or any(
            sum(t is u for u in reordered) != 1 for t in current
        ):
            raise ValueError("reorder_window: fn must return a permutation of the window")
        for offset, task in enumerate(reordered):
            self._tasks[start + offset] = task

    def evict_worst(
        self,
        max_size: int,
        pick_index: PickIndex,
        stats: "RunStats | None" = None,
    ) -> List[Task]:
        """
        Evict tasks chosen by *pick_index* until ``len(self) <= max_size``.

        Returns the evicted tasks in eviction order.
        """
        max_size = max(int(max_size), 0)
        evicted: List[Task] = []
        while len(self._tasks) > max_size:
            idx = pick_index(self._tasks)
            if not 0 <= idx < len(self._tasks):
                raise IndexError(f"eviction index {idx} out of range (size {len(self._tasks)})")
            task = self._tasks[idx]
            del self._tasks[idx]
            evicted.append(task)
            if stats is not None:
                stats.evicted_tasks += 1
                stats.evicted_value += task.value
        if evicted:
            _LOG.debug("evict_worst: dropped %d tasks, backlog=%d", len(evicted), len(self._tasks))
        return evicted
