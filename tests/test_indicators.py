"""
Tests for the indicator calculators
===================================
"""

import math

import pytest

from marksix import fibonacci, indicators
from marksix.config import ALL_NUMBERS
from marksix.scoring import CompositeScorer
from tests.factories import make_history


class TestIndicatorContract:
    """Every calculator returns a full map over 1..49."""

    @pytest.mark.parametrize("name", list(CompositeScorer().calculators.keys()))
    def test_full_domain(self, name, random_history):
        scores = CompositeScorer().calculators[name](random_history)
        assert sorted(scores.keys()) == ALL_NUMBERS
        assert all(math.isfinite(value) for value in scores.values())

    @pytest.mark.parametrize("calculator, minimum", [
        (indicators.calculate_survival, 10),
        (indicators.calculate_extreme_value, 20),
        (indicators.calculate_correlation, 10),
        (indicators.calculate_clustering, 10),
        (indicators.calculate_combinatorial, 5),
        (indicators.calculate_entropy, 5),
        (indicators.calculate_range_distribution, 5),
        (indicators.calculate_trend, 3),
    ])
    def test_short_history_gives_zero_map(self, calculator, minimum):
        """Below its minimum period count a calculator reports no signal."""
        scores = calculator(make_history(minimum - 1))
        assert scores == indicators.empty_score_map()

    def test_empty_history(self):
        assert indicators.calculate_frequency([]) == indicators.empty_score_map()
        assert fibonacci.calculate_fibonacci([]) == indicators.empty_score_map()

    def test_exclusion_matches_manual_filter(self, random_history):
        excluded = {draw.period_identifier for draw in random_history[:5]}
        assert (indicators.calculate_markov(random_history, excluded)
                == indicators.calculate_markov(random_history[5:]))


class TestOccurrenceIndicators:
    """Known values on a three-period history."""

    def setup_method(self):
        # newest first: 22..27, 15..20, 8..13
        self.history = make_history(3)

    def test_frequency(self):
        scores = indicators.calculate_frequency(self.history)
        assert scores[8] == 1.0
        assert scores[22] == 1.0
        assert scores[1] == 0.0
        assert sum(scores.values()) == 18.0

    def test_weighted_frequency_latest_weighs_one(self):
        scores = indicators.calculate_weighted_frequency(self.history, decay=0.95)
        assert scores[22] == pytest.approx(1.0)
        assert scores[15] == pytest.approx(0.95)
        assert scores[8] == pytest.approx(0.9025)

    def test_pattern(self):
        scores = indicators.calculate_pattern(self.history)
        assert scores[22] == pytest.approx(1.0)
        assert scores[15] == pytest.approx(0.5)
        assert scores[8] == pytest.approx(1 / 3)

    def test_gap(self):
        scores = indicators.calculate_gap(self.history)
        assert scores[22] == pytest.approx(0.0)
        assert scores[8] == pytest.approx(math.log(3) * 10)
        assert scores[1] == pytest.approx(math.log(4) * 10)

    def test_poisson(self):
        scores = indicators.calculate_poisson(self.history)
        lam = 6 * 3 / 49
        assert scores[1] == pytest.approx(lam * 20)
        assert scores[22] == pytest.approx(50 - (1 - lam) * 10)

    def test_chi_square_favors_unseen(self):
        scores = indicators.calculate_chi_square(self.history)
        assert scores[1] > 0
        assert scores[22] == 0.0


class TestSummaries:
    """Test suite for diagnostic summaries."""

    def test_chi_square_statistic(self, random_history):
        summary = indicators.calculate_chi_square_statistic(random_history)
        assert summary['degrees_of_freedom'] == 48
        assert 0.0 <= summary['p_value'] <= 1.0
        assert summary['expected_frequency'] == pytest.approx(80 * 6 / 49)

    def test_entropy_summary_bounded(self, random_history):
        summary = indicators.calculate_entropy_summary(random_history)
        assert 0.0 < summary['overall_entropy'] <= summary['max_entropy']

    def test_describe_history_with_exclusion(self):
        history = make_history(12)
        summary = indicators.describe_history(history, {"24/012", "24/011"})
        assert summary['total_periods'] == 10
        assert summary['excluded_periods'] == 2
        assert summary['total_numbers'] == 60

    def test_clusters_partition_domain(self, random_history):
        clusters = indicators.build_clusters(indicators.appearance_matrix(random_history))
        members = sorted(col for cluster in clusters for col in cluster)
        assert members == list(range(49))

    def test_markov_rows_are_distributions(self, random_history):
        transitions = indicators.markov_transition_matrix(random_history)
        totals = transitions.sum(axis=1)
        assert all(total == pytest.approx(1.0) or total == 0.0 for total in totals)

    def test_draw_shape_short_inputs(self):
        assert indicators._draw_shape([]).tolist() == [0.0, 0.0, 0.0]
        shape = indicators._draw_shape([12])
        assert all(math.isfinite(value) for value in shape)
        assert shape[1] == 0.0

    def test_combinatorial_is_finite(self, random_history):
        scores = indicators.calculate_combinatorial(random_history)
        assert all(math.isfinite(value) for value in scores.values())


class TestFibonacci:
    """Test suite for the Fibonacci indicator."""

    def test_scores_clamped(self, random_history):
        scores = fibonacci.calculate_fibonacci(random_history)
        assert all(0.0 <= value <= 200.0 for value in scores.values())

    def test_membership_rewards_sequence_numbers(self):
        assert fibonacci.score_membership(13)[0] > fibonacci.score_membership(12)[0]


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
