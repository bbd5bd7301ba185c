"""
Tests for candidate generation
==============================
"""

import pytest

from marksix.exceptions import InvalidCandidateError
from marksix.models import RankedNumber, ValidationRecord
from marksix.strategies import (
    STRATEGIES,
    build_candidate,
    generate_candidates,
    select_optimal_numbers,
    strategy_performance,
)


def ranking(numbers):
    """RankedNumber list with strictly decreasing scores in the given order."""
    return [RankedNumber(number=n, score=float(100 - i)) for i, n in enumerate(numbers)]


def record(predicted, actual, strategy='top6'):
    hits = len(set(predicted) & set(actual))
    return ValidationRecord(
        training_period="24/001",
        target_period="24/002",
        predicted=tuple(predicted),
        actual=tuple(actual),
        hit_count=hits,
        accuracy=hits / 6 * 100,
        coverage=hits / 6 * 100,
        strategy=strategy,
        weights=(),
    )


SPREAD_ORDER = [7, 31, 44, 12, 25, 3, 38, 19, 48, 28, 15, 41, 9, 22, 35, 1, 46, 17, 30, 5,
                40, 11, 26, 33, 20, 47, 2, 14, 37, 24, 8, 43, 29, 18, 6, 36, 21, 49, 13, 32]


class TestStrategies:
    """Test suite for individual selection strategies."""

    def setup_method(self):
        self.ranked = ranking(SPREAD_ORDER)

    def test_top6(self):
        assert build_candidate('top6', self.ranked).numbers == tuple(sorted(SPREAD_ORDER[:6]))

    def test_top5_skip1(self):
        expected = tuple(sorted(SPREAD_ORDER[:5] + [SPREAD_ORDER[6]]))
        assert build_candidate('top5skip1', self.ranked).numbers == expected

    def test_top3_plus3(self):
        expected = tuple(sorted(SPREAD_ORDER[:3] + SPREAD_ORDER[6:9]))
        assert build_candidate('top3plus3', self.ranked).numbers == expected

    def test_top4_plus2_keeps_leaders(self):
        candidate = build_candidate('top4plus2', self.ranked)
        assert set(SPREAD_ORDER[:4]) <= set(candidate.numbers)

    def test_evenly_covers_every_bin(self):
        candidate = build_candidate('evenly', self.ranked)
        bins = {(n - 1) // 8 if n < 41 else 5 for n in candidate.numbers}
        assert len(bins) == 6

    @pytest.mark.parametrize("strategy", list(STRATEGIES))
    def test_candidates_are_valid_or_flagged(self, strategy):
        try:
            candidate = build_candidate(strategy, self.ranked, [record(SPREAD_ORDER[:6], [7, 31, 2, 4, 6, 8])])
        except InvalidCandidateError as e:
            assert e.strategy == strategy
            return
        assert len(candidate.numbers) == 6
        assert len(set(candidate.numbers)) == 6
        assert all(1 <= n <= 49 for n in candidate.numbers)

    def test_history_without_records_is_short(self):
        with pytest.raises(InvalidCandidateError):
            build_candidate('history', self.ranked, [])

    def test_range6_short_when_bins_missing(self):
        """The top 15 of an ascending ranking cover only two bins."""
        with pytest.raises(InvalidCandidateError):
            build_candidate('range6', ranking(list(range(1, 41))))

    def test_history_prefers_earlier_hits(self):
        records = [record([44, 45, 46, 47, 48, 49], [44, 48, 1, 2, 3, 4])]
        candidate = build_candidate('history', self.ranked, records)
        assert {44, 48} <= set(candidate.numbers)


class TestGenerateCandidates:
    """Test suite for generate_candidates() and select_optimal_numbers()."""

    def test_distinct_and_complete(self):
        candidates = generate_candidates(ranking(SPREAD_ORDER))
        keys = [candidate.key for candidate in candidates]
        assert len(keys) == len(set(keys))
        assert all(len(set(candidate.numbers)) == 6 for candidate in candidates)
        assert candidates[0].strategy == 'top6'

    def test_deterministic(self):
        records = [record(SPREAD_ORDER[:6], [7, 31, 2, 4, 6, 8], 'diversity')]
        first = generate_candidates(ranking(SPREAD_ORDER), records)
        second = generate_candidates(ranking(SPREAD_ORDER), records)
        assert first == second

    def test_short_ranking_falls_back(self):
        """With fewer than six ranked numbers only the default remains."""
        candidates = generate_candidates(ranking([1, 2, 3]))
        assert len(candidates) == 1
        assert candidates[0].strategy == 'top6'

    def test_select_optimal_numbers(self):
        choice = select_optimal_numbers(ranking(SPREAD_ORDER))
        assert len(set(choice.numbers)) == 6
        assert choice.strategy in STRATEGIES

    def test_select_optimal_numbers_requires_ranking(self):
        with pytest.raises(InvalidCandidateError):
            select_optimal_numbers([])

    def test_strategy_performance(self):
        records = [
            record([1, 2, 3, 4, 5, 6], [1, 2, 3, 10, 11, 12], 'top6'),
            record([1, 2, 3, 4, 5, 6], [1, 20, 30, 10, 11, 12], 'top6'),
        ]
        performance = strategy_performance(records)
        assert performance['top6']['average_hits'] == pytest.approx(2.0)
        assert performance['top6']['target_rate'] == pytest.approx(0.5)
        assert performance['top6']['total'] == 2


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
