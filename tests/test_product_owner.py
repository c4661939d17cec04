# tests/test_product_owner.py
from collections import Counter, deque

import numpy as np
import pytest

from teamsim.backlog import Backlog
from teamsim.product_owner import ProductOwner
from teamsim.sim_params import ProductOwnerParams
from teamsim.stats import RunStats
from teamsim.task_factory import task_score


def _tasks(task_factory, values):
    return [task_factory(info=1, impl=1, value=v, topic=i) for i, v in enumerate(values)]


def test_eviction_without_error_always_removes_lowest_score(task_factory):
    rng = np.random.default_rng(7)
    po = ProductOwner(ProductOwnerParams(error_probability=0.0), rng)
    for _ in range(200):
        values = rng.permutation(np.arange(1, 11)).astype(float)
        bl = Backlog(_tasks(task_factory, values))
        worst = min(bl, key=task_score)
        evicted = bl.evict_worst(9, po.pick_eviction_index)
        assert evicted == [worst]


def test_eviction_with_error_one_is_uniform(task_factory):
    rng = np.random.default_rng(11)
    po = ProductOwner(ProductOwnerParams(error_probability=1.0), rng)
    tasks = _tasks(task_factory, range(1, 11))
    n = 5000
    counts = Counter(po.pick_eviction_index(tasks) for _ in range(n))
    assert set(counts) == set(range(10))
    # expected 500 per bucket, sd ≈ 21
    assert all(380 <= c <= 620 for c in counts.values())


def test_pick_eviction_index_empty():
    po = ProductOwner(ProductOwnerParams(), np.random.default_rng(0))
    assert po.pick_eviction_index([]) == -1


def test_act_moves_best_of_window_to_front_and_advances(task_factory):
    po = ProductOwner(ProductOwnerParams(window_size=3), np.random.default_rng(0))
    bl = Backlog(_tasks(task_factory, [1, 9, 5, 2, 8, 3]))
    po.act(bl)
    assert [t.value for t in bl] == [9, 1, 5, 2, 8, 3]
    assert po.cursor == 3
    po.act(bl)
    assert [t.value for t in bl] == [9, 1, 5, 8, 2, 3]
    assert po.cursor == 0                        # wrapped past the end


def test_act_on_empty_backlog_is_noop():
    po = ProductOwner(ProductOwnerParams(), np.random.default_rng(0))
    bl = Backlog()
    po.act(bl)
    assert len(bl) == 0


def test_absent_po_still_evicts(task_factory):
    po = ProductOwner(ProductOwnerParams(absence_probability=1.0), np.random.default_rng(0))
    bl = Backlog(_tasks(task_factory, range(1, 8)))
    before = [t.value for t in bl]
    stats = RunStats()
    present = po.run_cycle(bl, 4, stats)
    assert present is False
    assert stats.po_absent_cycles == 1
    assert len(bl) == 4
    assert stats.evicted_tasks == 3
    assert [t.value for t in bl] == before[3:]       # no reordering, worst 3 gone


def test_present_po_runs_actions_per_cycle(task_factory):
    po = ProductOwner(ProductOwnerParams(window_size=2, actions_per_cycle=2),
                      np.random.default_rng(0))
    bl = Backlog(_tasks(task_factory, [1, 2, 3, 4]))
    assert po.run_cycle(bl, 10, RunStats()) is True
    assert [t.value for t in bl] == [2, 1, 4, 3]
    assert po.cursor == 0
    assert sum(t.value for t in bl) == pytest.approx(10)


class _IterOnly(deque):
    def __getitem__(self, i):
        raise AssertionError("positional access into the backlog deque")


def test_pick_eviction_index_scans_without_positional_access(task_factory):
    po = ProductOwner(ProductOwnerParams(error_probability=0.0), np.random.default_rng(1))
    tasks = _IterOnly(_tasks(task_factory, [5, 2, 9, 2, 7]))
    assert po.pick_eviction_index(tasks) == 1        # first of the tied lowest
