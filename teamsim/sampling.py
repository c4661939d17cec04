# teamsim/sampling.py
# Small random-draw and numeric helpers shared by the agent modules.
# Every draw takes an explicit numpy Generator so replicate runs stay
# independent under joblib / multiprocessing.

from __future__ import annotations

import math

from numpy.random import Generator

__all__ = [
    "clamp01",
    "clamp",
    "round_half_up",
    "sample_poisson",
    "sample_uniform",
]


def clamp(x: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, x))


def clamp01(x: float) -> float:
    """Clamp to [0,1]; NaN maps to 0."""
    if not math.isfinite(x):
        return 0.0 if math.isnan(x) else clamp(x, 0.0, 1.0)
    return clamp(x, 0.0, 1.0)


def round_half_up(x: float) -> int:
    """Round .5 away from zero for positives (``round()`` uses banker's rounding)."""
    return int(math.floor(x + 0.5))


def sample_poisson(lam: float, rng: Generator) -> int:
    """N ~ Poisson(λ); λ ≤ 0 or non-finite yields 0."""
    if not (lam > 0.0) or not math.isfinite(lam):
        return 0
    return int(rng.poisson(lam=lam))


def sample_uniform(a: float, b: float, rng: Generator) -> float:
    """Uniform draw on [min(a,b), max(a,b))."""
    lo, hi = (a, b) if a <= b else (b, a)
    return float(lo + (hi - lo) * rng.random())
