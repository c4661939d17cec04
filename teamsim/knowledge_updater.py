# teamsim/knowledge_updater.py

# Utility helpers for per-topic knowledge dynamics of one worker.
# All results are clamped to [0,1] so callers can write them back blindly.

import math
from typing import Tuple, Union

import numpy as np

__all__ = [
    "learn_toward_one",
    "conversation_union",
    "converse",
    "completion_rate",
    "decay_untouched",
]


def _clip01(x: float) -> float:
    return float(min(1.0, max(0.0, x)))


def learn_toward_one(k: float, rate: float) -> float:
    """
    Saturating learning step used by solo research and task completion:

        k' = k + r · (1 − k)

    A non-positive rate leaves *k* unchanged; rates above 1 are capped.
    """
    if rate <= 0.0:
        return _clip01(k)
    r = min(rate, 1.0)
    return _clip01(k + r * (1.0 - k))


def conversation_union(a: float, b: float) -> float:
    """U = 1 − (1−A)(1−B): what the pair knows together."""
    return _clip01(1.0 - (1.0 - a) * (1.0 - b))


def converse(a: float, b: float, rate_a: float, rate_b: float) -> Tuple[float, float]:
    """
    Both sides of a conversation move toward the union:

        A' = A + c_a · (U − A)
        B' = B + c_b · (U − B)

    Parameters
    ----------
    a, b : float
        Asker / helper knowledge on the topic, in [0,1].
    rate_a, rate_b : float
        Effective conversation rates (already scaled per worker).
    """
    if not (0.0 <= a <= 1.0 and 0.0 <= b <= 1.0):
        raise ValueError(f"knowledge must be in [0,1]; got a={a}, b={b}")
    u = conversation_union(a, b)
    ca = min(max(rate_a, 0.0), 1.0)
    cb = min(max(rate_b, 0.0), 1.0)
    return _clip01(a + ca * (u - a)), _clip01(b + cb * (u - b))


def completion_rate(base_rate: float, learning_scale: float, effort: int, cap: float) -> float:
    """
    Learning rate earned by finishing a task of size *effort*:

        r = min(cap, base · scale · (1 + 2·log1p(effort)))
    """
    raw = base_rate * learning_scale * (1.0 + 2.0 * math.log1p(max(effort, 0)))
    return max(0.0, min(cap, raw))


def decay_untouched(
    knowledge: np.ndarray,
    touched: Union[set, frozenset],
    decay_rate: float,
    forgetfulness_scale: float = 1.0,
) -> np.ndarray:
    """
    One-cycle forgetting, in place:  k ← k · (1 − δ · f)  for every topic
    *not* in *touched*.  Returns the same array for convenience.
    """
    d = decay_rate * forgetfulness_scale
    if d <= 0.0:
        return knowledge
    factor = max(0.0, 1.0 - d)
    mask = np.ones(knowledge.shape[0], dtype=bool)
    if touched:
        mask[list(touched)] = False
    knowledge[mask] *= factor
    np.clip(knowledge, 0.0, 1.0, out=knowledge)
    return knowledge
