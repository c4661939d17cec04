# tests/test_hiring.py
import numpy as np
import pytest

from teamsim.hiring import HiringPipeline, onboarding_knowledge, skill_scales
from teamsim.sim_params import TurnoverParams
from teamsim.stats import RunStats
from teamsim.worker import make_worker


def _pipeline(rng, **kw):
    base = dict(candidate_interarrival_mean=1.0, interview_rounds=1,
                interview_noise=0.0, min_hire_bar=0.0)
    base.update(kw)
    return HiringPipeline(TurnoverParams(**base), rng, num_topics=3)


def test_average_onboarding_is_team_mean_times_factor():
    p = TurnoverParams(hire_mode="average", hire_avg_factor=0.5)
    team = [np.array([0.2, 0.4, 1.0]), np.array([0.6, 0.8, 1.0])]
    k = onboarding_knowledge(0.9, 0, team, 3, p)
    assert k.tolist() == pytest.approx([0.2, 0.3, 0.5])


def test_average_onboarding_empty_team_falls_back_to_base():
    p = TurnoverParams(hire_mode="average", hire_avg_factor=0.8)
    k = onboarding_knowledge(0.5, 0, [], 4, p)
    assert k.tolist() == pytest.approx([0.5 * 0.4] * 4)


def test_specialist_onboarding():
    p = TurnoverParams(hire_mode="specialist", hire_avg_factor=0.2, specialist_boost=0.3)
    k = onboarding_knowledge(1.0, 2, [np.ones(4)], 4, p)
    assert k.tolist() == pytest.approx([0.2, 0.2, 0.5, 0.2])      # base floor 0.2


def test_skill_scales():
    p = TurnoverParams()
    assert skill_scales(1.0, p) == pytest.approx((1.5, 1.5, 0.5))
    assert skill_scales(0.0, p) == pytest.approx((0.5, 0.5, 1.5))
    tight = TurnoverParams(scale_floor=0.8, scale_cap=1.2)
    assert skill_scales(0.0, tight) == pytest.approx((0.8, 0.8, 1.2))


def test_no_arrival_without_vacancy(rng):
    hp = _pipeline(rng)
    roster = [make_worker(0, 3, rng)]
    assert hp.try_candidate_arrival(roster, RunStats()) is None


def test_no_arrival_without_interviewer(rng):
    hp = _pipeline(rng)
    hp.open_vacancy(0)
    w = make_worker(0, 3, rng)
    w.is_absent = True
    assert hp.try_candidate_arrival([w], RunStats()) is None
    assert hp.open_seats() == 1


def test_arrival_reserves_seat_and_hire_fills_it(rng):
    hp = _pipeline(rng, hire_lag_cycles=2, interview_cost_per_cycle=3.0)
    hp.open_vacancy(cycle=4)
    w = make_worker(0, 3, rng)
    stats = RunStats()

    iv = hp.try_candidate_arrival([w], stats)
    assert iv is not None and w.current_interview is iv
    assert hp.open_seats() == 0
    assert hp.try_candidate_arrival([w], stats) is None
    assert stats.candidates_arrived == 1

    assert hp.interview_step(w, cycle=7, stats=stats) is True
    assert w.busy and not w.interviewing
    assert stats.hires == 1 and stats.interviews_completed == 1
    assert stats.interview_cycles == 1 and stats.interview_cost == pytest.approx(3.0)
    assert len(hp.vacancies) == 0

    assert hp.pop_ready(8) == []
    ready = hp.pop_ready(9)
    assert len(ready) == 1 and ready[0].opened_cycle == 4 and ready[0].ready_cycle == 9
    assert hp.pending == []


def test_rejection_reopens_seat(rng):
    hp = _pipeline(rng, min_hire_bar=1.0, skill_min=0.1, skill_max=0.5, interview_rounds=2)
    hp.open_vacancy(0)
    w = make_worker(0, 3, rng)
    stats = RunStats()
    hp.try_candidate_arrival([w], stats)
    assert hp.interview_step(w, 0, stats) is None              # round 1 of 2
    assert hp.interview_step(w, 1, stats) is False
    assert stats.rejections == 1 and stats.interview_cycles == 2
    assert hp.open_seats() == 1


def test_cancel_interview_reopens_seat(rng):
    hp = _pipeline(rng, interview_rounds=3)
    hp.open_vacancy(0)
    w = make_worker(0, 3, rng)
    hp.try_candidate_arrival([w], RunStats())
    hp.cancel_interview(w)
    assert not w.interviewing
    assert hp.open_seats() == 1


def test_arrival_probability():
    rng = np.random.default_rng(0)
    assert _pipeline(rng, candidate_interarrival_mean=4.0).arrival_probability() == 0.25
    assert _pipeline(rng, candidate_interarrival_mean=0.0).arrival_probability() == 0.0
