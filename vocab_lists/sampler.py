"""Mastery-weighted sampling of words and stored questions.

Every candidate is weighted by ``101 - learned_point``: an untouched word
weighs 101, a fully mastered one weighs 1, so nothing ever drops out of
rotation completely.
"""
from __future__ import annotations

import random
from collections.abc import Callable, Sequence
from typing import TypeVar

from vocab_lists.models import MAX_POINT, MIN_POINT

T = TypeVar("T")

MAX_WEIGHT = MAX_POINT + 1


def mastery_weight(learned_point: int | None) -> int:
    """Sampling weight for a learned point. Never-practised (None) counts as 0."""
    point = learned_point or 0
    point = max(MIN_POINT, min(MAX_POINT, point))
    return MAX_WEIGHT - point


def weighted_sample(
    candidates: Sequence[T],
    k: int,
    point_of: Callable[[T], int | None],
    rng: random.Random | None = None,
) -> list[T]:
    """Draw *k* distinct candidates, each draw proportional to mastery weight.

    Sequential draws from a shrinking pool: pick a point in
    ``[0, total_weight)``, walk the remaining candidates subtracting weights
    until the cursor goes negative, remove the hit, repeat.
    """
    pool = list(candidates)
    if len(pool) <= k:
        return pool

    rng = rng or random
    weights = [mastery_weight(point_of(c)) for c in pool]
    total = sum(weights)
    selected: list[T] = []

    for _ in range(k):
        cursor = rng.random() * total
        hit = None
        for i, w in enumerate(weights):
            cursor -= w
            if cursor < 0:
                hit = i
                break
        if hit is None:
            # Float rounding left the cursor at the very end
            hit = len(pool) - 1
        selected.append(pool.pop(hit))
        total -= weights.pop(hit)

    return selected


def weighted_top_k(
    candidates: Sequence[T],
    k: int,
    point_of: Callable[[T], int | None],
    rng: random.Random | None = None,
) -> list[T]:
    """Set-based variant: sort by ``weight * uniform()`` and keep the top *k*.

    Statistically similar bias to :func:`weighted_sample` without sequential
    removal, which suits bulk queries over stored records.
    """
    rng = rng or random
    keyed = [
        (mastery_weight(point_of(c)) * rng.random(), i, c)
        for i, c in enumerate(candidates)
    ]
    keyed.sort(key=lambda t: (t[0], -t[1]), reverse=True)
    return [c for _, _, c in keyed[:max(k, 0)]]
