"""Per-list mastery points and the batch updates that move them."""
from __future__ import annotations

import logging
import sqlite3
from collections.abc import Iterable
from typing import TYPE_CHECKING

from vocab_lists.models import MAX_POINT, MIN_POINT

if TYPE_CHECKING:
    from vocab_lists.db import Database

_log = logging.getLogger("vocab_lists.progress")

CORRECT_POINTS = 10
INCORRECT_POINTS = -5


def clamp_point(value: int) -> int:
    return max(MIN_POINT, min(MAX_POINT, value))


def result_delta(correct: bool) -> int:
    return CORRECT_POINTS if correct else INCORRECT_POINTS


def aggregate_results(results: Iterable[dict]) -> dict[str, int]:
    """Sum point deltas per word id from ``{"wordId", "correct"}`` results."""
    changes: dict[str, int] = {}
    for r in results:
        word_id = r["wordId"]
        changes[word_id] = changes.get(word_id, 0) + result_delta(bool(r["correct"]))
    return changes


def aggregate_changes(updates: Iterable[dict]) -> dict[str, int]:
    """Sum arbitrary signed deltas per word id from ``{"wordId", "change"}`` updates."""
    changes: dict[str, int] = {}
    for u in updates:
        word_id = u["wordId"]
        changes[word_id] = changes.get(word_id, 0) + int(u["change"])
    return changes


def _apply_changes(db: Database, list_id: str, changes: dict[str, int]) -> dict:
    """Apply one aggregated delta per word, clamping once.

    Each word is written independently: a word with no membership in the
    list is skipped, and a storage error on one word does not stop the rest.
    """
    current = db.get_memberships(list_id, list(changes))
    updated: list[dict] = []
    skipped: list[str] = []
    failed: list[str] = []

    for word_id, delta in changes.items():
        if word_id not in current:
            _log.info("No membership for word %s in list %s, skipping", word_id, list_id)
            skipped.append(word_id)
            continue
        old = current[word_id] or 0
        new = clamp_point(old + delta)
        try:
            db.set_learned_point(word_id, list_id, new)
        except sqlite3.Error as e:
            _log.warning("Point update failed for word %s in list %s: %s", word_id, list_id, e)
            failed.append(word_id)
            continue
        _log.info("Word %s: %d -> %d (change %+d)", word_id, old, new, delta)
        updated.append({"wordId": word_id, "previous": old, "learnedPoint": new, "change": delta})

    return {"updated": updated, "skipped": skipped, "failed": failed}


def apply_batch_results(db: Database, list_id: str, results: Iterable[dict]) -> dict:
    """Apply quiz/exercise outcomes: +10 per correct, -5 per incorrect answer.

    Multiple results for the same word accumulate before the single clamp,
    so starting at 95 with two correct answers lands on 100 in one write.
    """
    return _apply_changes(db, list_id, aggregate_results(results))


def apply_point_changes(db: Database, list_id: str, updates: Iterable[dict]) -> dict:
    """Generalized batch form taking explicit signed deltas per word."""
    return _apply_changes(db, list_id, aggregate_changes(updates))


def apply_point_change(db: Database, word_id: str, list_id: str, change: int) -> int | None:
    """Apply a single delta. Returns the new point, or None if not a member."""
    result = _apply_changes(db, list_id, {word_id: change})
    if result["updated"]:
        return result["updated"][0]["learnedPoint"]
    return None
