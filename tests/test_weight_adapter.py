"""
Tests for weight adaptation
===========================
"""

import numpy as np
import pytest

from marksix.config import DEFAULT_WEIGHTS, INDICATOR_NAMES, EngineConfig
from marksix.evaluator import compare_prediction
from marksix.models import Attribution
from marksix.weight_adapter import (
    adapt_weights,
    bound_weights,
    complete_weights,
    learning_rate,
    normalize_weights,
    perturb_weights,
    weights_as_tuple,
)

LOW, HIGH = 0.05, 0.5


def assert_bounded(weights):
    assert sum(weights.values()) == pytest.approx(1.0, abs=1e-9)
    for value in weights.values():
        assert LOW - 1e-9 <= value <= HIGH + 1e-9


class TestBoundWeights:
    """Test suite for the bounded simplex projection."""

    def test_feasible_weights_unchanged(self):
        uniform = {name: 1.0 / len(INDICATOR_NAMES) for name in INDICATOR_NAMES}
        bounded = bound_weights(uniform)
        for name, value in uniform.items():
            assert bounded[name] == pytest.approx(value, abs=1e-9)

    def test_defaults_lifted_to_lower_bound(self):
        bounded = bound_weights(dict(DEFAULT_WEIGHTS))
        assert_bounded(bounded)
        assert bounded['chi_square'] == pytest.approx(LOW)
        assert bounded['markov'] > bounded['frequency']

    def test_one_dominant_weight(self):
        """Sixteen weights pinned at the floor leave 0.2 for the dominant one."""
        weights = {name: 0.0 for name in INDICATOR_NAMES}
        weights['gap'] = 10.0
        bounded = bound_weights(weights)
        assert_bounded(bounded)
        assert bounded['gap'] == pytest.approx(1.0 - 16 * LOW)

    def test_random_inputs(self):
        rng = np.random.default_rng(7)
        for _ in range(50):
            raw = dict(zip(INDICATOR_NAMES, rng.exponential(scale=rng.uniform(0.01, 3.0), size=len(INDICATOR_NAMES))))
            assert_bounded(bound_weights(raw))

    def test_infeasible_bounds_normalize(self):
        weights = {'a': 1.0, 'b': 3.0}
        assert bound_weights(weights, (0.6, 0.9)) == pytest.approx({'a': 0.25, 'b': 0.75})


class TestWeightHelpers:
    """Test suite for completion, normalization and snapshots."""

    def test_complete_weights(self):
        completed = complete_weights({'gap': 0.4, 'unknown': 1.0})
        assert completed['gap'] == 0.4
        assert 'unknown' not in completed
        assert set(completed) == set(DEFAULT_WEIGHTS)

    def test_normalize_all_zero(self):
        normalized = normalize_weights({'a': 0.0, 'b': 0.0})
        assert normalized == {'a': 0.5, 'b': 0.5}

    def test_weights_as_tuple_order(self):
        snapshot = weights_as_tuple(dict(DEFAULT_WEIGHTS))
        assert [name for name, _ in snapshot] == INDICATOR_NAMES

    def test_perturb_stays_bounded(self):
        rng = np.random.default_rng(1)
        perturbed = perturb_weights(dict(DEFAULT_WEIGHTS), rng, scale=0.3)
        assert_bounded(perturbed)
        assert perturbed != pytest.approx(DEFAULT_WEIGHTS)

    def test_perturb_reproducible(self):
        first = perturb_weights(dict(DEFAULT_WEIGHTS), np.random.default_rng(3))
        second = perturb_weights(dict(DEFAULT_WEIGHTS), np.random.default_rng(3))
        assert first == second


class TestAdaptWeights:
    """Test suite for adapt_weights()."""

    def setup_method(self):
        self.config = EngineConfig()
        self.weights = bound_weights(dict(DEFAULT_WEIGHTS))

    def test_zero_hits_without_attribution(self):
        comparison = compare_prediction([1, 2, 3, 4, 5, 6], [7, 8, 9, 10, 11, 12])
        adapted = adapt_weights(self.weights, comparison, None, self.config)
        assert_bounded(adapted)
        assert adapted['gap'] > self.weights['gap']
        assert adapted['frequency'] < self.weights['frequency']

    def test_below_target_follows_attribution(self):
        comparison = compare_prediction([1, 2, 3, 4, 5, 6], [1, 7, 8, 9, 10, 11])
        performance = {name: 0.0 for name in INDICATOR_NAMES}
        performance['markov'] = 0.4
        performance['distribution'] = -0.2
        attribution = Attribution(performance=performance)

        adapted = adapt_weights(self.weights, comparison, attribution, self.config)
        assert_bounded(adapted)
        assert adapted['markov'] > self.weights['markov']
        assert adapted['distribution'] < self.weights['distribution']

    def test_at_target_fine_tunes_leaders(self):
        comparison = compare_prediction([1, 2, 3, 4, 5, 6], [1, 2, 3, 4, 10, 11])
        performance = {name: 0.0 for name in INDICATOR_NAMES}
        performance['trend'] = 0.3
        performance['pattern'] = 0.2
        adapted = adapt_weights(self.weights, comparison, Attribution(performance=performance), self.config)
        assert_bounded(adapted)
        assert adapted['trend'] > self.weights['trend']

    def test_does_not_mutate_input(self):
        before = dict(self.weights)
        comparison = compare_prediction([1, 2, 3, 4, 5, 6], [7, 8, 9, 10, 11, 12])
        adapt_weights(self.weights, comparison, None, self.config)
        assert self.weights == before

    def test_extreme_inputs_stay_bounded(self):
        comparison = compare_prediction([1, 2, 3, 4, 5, 6], [1, 7, 8, 9, 10, 11])
        weights = {name: 0.0 for name in INDICATOR_NAMES}
        weights['fibonacci'] = 1000.0
        performance = {name: (1.0 if i % 2 else -1.0) for i, name in enumerate(INDICATOR_NAMES)}
        adapted = adapt_weights(weights, comparison, Attribution(performance=performance), self.config)
        assert_bounded(adapted)

    def test_learning_rate_capped(self):
        comparison = compare_prediction([1, 2, 3, 4, 5, 6], [7, 8, 9, 10, 11, 12])
        assert learning_rate(comparison, self.config) == pytest.approx(self.config.max_learning_rate)

    def test_learning_rate_grows_with_gap(self):
        near = compare_prediction([1, 2, 3, 4, 5, 6], [1, 2, 7, 8, 9, 10])
        config = EngineConfig(max_learning_rate=10.0)
        far = compare_prediction([1, 2, 3, 4, 5, 6], [7, 8, 9, 10, 11, 12])
        assert learning_rate(far, config) > learning_rate(near, config)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
