"""
Tests for the backtest step evaluator
=====================================
"""

import numpy as np
import pytest

from marksix.config import ALL_NUMBERS, INDICATOR_NAMES
from marksix.evaluator import BacktestStepEvaluator, compare_prediction, compute_attribution
from marksix.exceptions import NonConsecutivePeriodError
from marksix.scoring import CompositeScorer
from marksix.simulation_engine import MonteCarloSimulator
from tests.factories import make_history


class TestComparePrediction:
    """Test suite for compare_prediction()."""

    def test_three_hits(self):
        result = compare_prediction([1, 2, 3, 4, 5, 6], [3, 4, 5, 10, 11, 12])
        assert result.hits == (3, 4, 5)
        assert result.hit_count == 3
        assert result.accuracy == pytest.approx(50.0)
        assert result.coverage == pytest.approx(50.0)
        assert result.meets_target is True
        assert result.misses == (10, 11, 12)
        assert result.predicted_but_not_actual == (1, 2, 6)

    def test_no_hits(self):
        result = compare_prediction([1, 2, 3, 4, 5, 6], [7, 8, 9, 10, 11, 12])
        assert result.hit_count == 0
        assert result.accuracy == 0.0
        assert result.meets_target is False

    def test_empty_prediction(self):
        result = compare_prediction([], [1, 2, 3, 4, 5, 6])
        assert result.accuracy == 0.0
        assert result.coverage == 0.0


class TestComputeAttribution:
    """Test suite for per-indicator attribution."""

    def setup_method(self):
        self.comparison = compare_prediction([1, 2, 3, 4, 5, 6], [1, 2, 3, 40, 41, 42])

    def test_sign_follows_ranking(self):
        # 'frequency' ranks the hits first, 'gap' ranks the missed picks first
        good = {n: 100.0 - n for n in ALL_NUMBERS}
        bad = {n: 100.0 - n for n in ALL_NUMBERS}
        bad.update({1: 0.0, 2: 0.0, 3: 0.0})
        scores = {name: {n: 0.0 for n in ALL_NUMBERS} for name in INDICATOR_NAMES}
        scores['frequency'] = good
        scores['gap'] = bad

        attribution = compute_attribution(scores, self.comparison)
        assert attribution is not None
        assert attribution.performance['frequency'] > 0
        assert attribution.performance['gap'] < 0
        assert attribution.hit_ranks['frequency'] == pytest.approx(2.0)

    def test_degenerate_without_hits(self):
        comparison = compare_prediction([1, 2, 3, 4, 5, 6], [7, 8, 9, 10, 11, 12])
        scores = {name: {n: float(n) for n in ALL_NUMBERS} for name in INDICATOR_NAMES}
        assert compute_attribution(scores, comparison) is None

    def test_degenerate_with_all_hits(self):
        comparison = compare_prediction([1, 2, 3, 4, 5, 6], [1, 2, 3, 4, 5, 6])
        scores = {name: {n: float(n) for n in ALL_NUMBERS} for name in INDICATOR_NAMES}
        assert compute_attribution(scores, comparison) is None


class TestBacktestStepEvaluator:
    """Test suite for BacktestStepEvaluator.evaluate()."""

    def setup_method(self):
        self.history = make_history(40)

    def _evaluator(self, fast_config):
        simulator = MonteCarloSimulator(fast_config.num_simulations, np.random.default_rng(0))
        return BacktestStepEvaluator(CompositeScorer(fast_config), simulator, fast_config)

    def test_exclusion_covers_target_and_newer(self):
        exclude = BacktestStepEvaluator.exclusion_for(self.history, 2)
        assert exclude == {"24/040", "24/039", "24/038"}

    def test_evaluate_step(self, fast_config):
        outcome = self._evaluator(fast_config).evaluate(self.history, 5, dict(fast_config.seed_weight_sets['default']))
        record = outcome.record
        assert record.target_period == "24/035"
        assert record.training_period == "24/034"
        assert record.actual == self.history[5].numbers
        assert len(record.predicted) == 6
        assert record.hit_count == len(set(record.predicted) & set(record.actual))
        assert outcome.score_result.stats['excluded_periods'] == 6

    def test_non_consecutive_raises(self, fast_config):
        history = self.history[:5] + self.history[6:]
        with pytest.raises(NonConsecutivePeriodError):
            self._evaluator(fast_config).evaluate(history, 4, {})


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
