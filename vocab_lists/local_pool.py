"""Serve previously generated exercises and quizzes from storage."""
from __future__ import annotations

import logging
import random
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from vocab_lists.errors import InsufficientContentError
from vocab_lists.models import ContentItem
from vocab_lists.sampler import weighted_top_k

if TYPE_CHECKING:
    from vocab_lists.db import Database

_log = logging.getLogger("vocab_lists.pool")


@dataclass
class PoolSample:
    items: list[ContentItem] = field(default_factory=list)
    requested: int = 0

    @property
    def insufficient(self) -> bool:
        return len(self.items) < self.requested


def get_local_content(
    db: Database,
    list_id: str,
    kind: str,
    count: int,
    rng: random.Random | None = None,
) -> PoolSample:
    """Pick up to *count* stored records, favouring words with fewer points.

    Raises InsufficientContentError when the list has no usable records at
    all; a short pool is returned as-is with ``insufficient`` set.
    """
    candidates = db.get_pool_candidates(list_id, kind)
    if not candidates:
        raise InsufficientContentError(
            f"No local {kind} content found for this list.", found=0, required=count
        )

    picked = weighted_top_k(candidates, count, point_of=lambda c: c[1], rng=rng)
    sample = PoolSample(items=[item for item, _ in picked], requested=count)
    if sample.insufficient:
        _log.warning(
            "Not enough local %s content for list %s: found %d, wanted %d",
            kind, list_id, len(sample.items), count,
        )
    return sample


def require_minimum(sample: PoolSample, minimum: int) -> PoolSample:
    """Reject a sample too small to start a session with."""
    if len(sample.items) < minimum:
        raise InsufficientContentError(
            f"Not enough local content to start: found {len(sample.items)}, "
            f"need at least {minimum}.",
            found=len(sample.items),
            required=minimum,
        )
    return sample
