"""Tests for mastery-weighted sampling."""
from __future__ import annotations

import random

import pytest

from vocab_lists.sampler import MAX_WEIGHT, mastery_weight, weighted_sample, weighted_top_k


class EndOfRangeRNG:
    """Always returns 1.0 so the cursor walk never goes negative."""

    def random(self) -> float:
        return 1.0


def _words(points):
    return [{"id": f"w{i}", "learned_point": p} for i, p in enumerate(points)]


def _point(w):
    return w["learned_point"]


class TestMasteryWeight:
    def test_untouched_word_weighs_most(self):
        assert mastery_weight(0) == MAX_WEIGHT == 101

    def test_mastered_word_still_has_weight(self):
        assert mastery_weight(100) == 1

    def test_none_counts_as_zero(self):
        assert mastery_weight(None) == 101

    @pytest.mark.parametrize("point,expected", [(-20, 101), (250, 1)])
    def test_out_of_range_points_are_clamped(self, point, expected):
        assert mastery_weight(point) == expected


class TestWeightedSample:
    def test_no_duplicates(self):
        words = _words([0, 10, 20, 30, 40, 50, 60, 70, 80, 90])
        rng = random.Random(7)
        for _ in range(50):
            picked = weighted_sample(words, 5, _point, rng=rng)
            assert len(picked) == 5
            assert len({w["id"] for w in picked}) == 5

    def test_returns_everything_when_k_covers_pool(self):
        words = _words([10, 20, 30])
        picked = weighted_sample(words, 5, _point)
        assert picked == words
        assert picked is not words

    def test_k_equal_to_pool_size(self):
        words = _words([10, 20])
        assert weighted_sample(words, 2, _point) == words

    def test_empty_pool(self):
        assert weighted_sample([], 3, _point) == []

    def test_biased_toward_low_points(self):
        words = _words([0, 100])
        rng = random.Random(42)
        low = sum(
            weighted_sample(words, 1, _point, rng=rng)[0]["id"] == "w0"
            for _ in range(1000)
        )
        assert low > 700

    def test_rounding_fallback_picks_last_remaining(self):
        words = _words([0, 50, 100])
        picked = weighted_sample(words, 2, _point, rng=EndOfRangeRNG())
        assert [w["id"] for w in picked] == ["w2", "w1"]

    def test_missing_points_count_as_untouched(self):
        words = [{"id": "a", "learned_point": None}, {"id": "b", "learned_point": 100}]
        rng = random.Random(3)
        hits = sum(
            weighted_sample(words, 1, _point, rng=rng)[0]["id"] == "a"
            for _ in range(500)
        )
        assert hits > 400


class TestWeightedTopK:
    def test_returns_at_most_k(self):
        words = _words([0, 10, 20, 30, 40, 50])
        picked = weighted_top_k(words, 4, _point, rng=random.Random(1))
        assert len(picked) == 4
        assert len({w["id"] for w in picked}) == 4

    def test_short_pool_returns_everything(self):
        words = _words([0, 10])
        picked = weighted_top_k(words, 5, _point, rng=random.Random(1))
        assert {w["id"] for w in picked} == {"w0", "w1"}

    def test_biased_toward_low_points(self):
        words = _words([0, 100])
        rng = random.Random(11)
        low = sum(
            weighted_top_k(words, 1, _point, rng=rng)[0]["id"] == "w0"
            for _ in range(1000)
        )
        assert low > 700

    @pytest.mark.parametrize("k", [0, -1, -5])
    def test_non_positive_k_returns_nothing(self, k):
        words = _words([0, 10, 20])
        assert weighted_top_k(words, k, _point, rng=random.Random(1)) == []
        assert weighted_sample(words, k, _point, rng=random.Random(1)) == []
