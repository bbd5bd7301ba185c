"""
Weight Adapter
==============

Pure functions that turn one backtest step's outcome into a new indicator
weight vector. Weights are never mutated in place; every function returns a
fresh dict.

After adaptation every weight lies within the configured bounds
(default [0.05, 0.5]) and the vector sums to 1.
"""

from typing import Dict, Optional, Tuple

import numpy as np
from loguru import logger
from scipy.optimize import brentq

from marksix.config import DEFAULT_WEIGHTS, INDICATOR_NAMES, EngineConfig
from marksix.models import Attribution, ComparisonResult

WeightVector = Dict[str, float]

# Heuristic nudges used when the attribution is degenerate
ZERO_HIT_NUDGE: Dict[str, float] = {
    'gap': 0.08,
    'trend': 0.05,
    'distribution': 0.05,
    'markov': 0.05,
    'fibonacci': 0.05,
    'pattern': 0.03,
    'frequency': -0.06,
    'weighted_frequency': -0.05,
}

BELOW_TARGET_MULTIPLIERS: Dict[str, float] = {
    'gap': 1.0,
    'trend': 0.9,
    'markov': 0.85,
    'distribution': 0.8,
    'fibonacci': 0.75,
    'pattern': 0.7,
    'weighted_frequency': 0.6,
    'frequency': -0.4,
}

AT_TARGET_NUDGE: Dict[str, float] = {
    'trend': 0.02,
    'distribution': 0.02,
    'markov': 0.02,
}


def complete_weights(weights: Optional[Dict[str, float]]) -> WeightVector:
    """Fills indicators missing from `weights` with their default weight."""
    completed = dict(DEFAULT_WEIGHTS)
    for name, value in (weights or {}).items():
        if name in completed:
            completed[name] = max(0.0, float(value))
        else:
            logger.warning(f"Ignoring weight for unknown indicator '{name}'")
    return completed


def normalize_weights(weights: WeightVector) -> WeightVector:
    """Scales weights to sum 1; an all-zero vector becomes uniform."""
    total = sum(weights.values())
    if total <= 0:
        return {name: 1.0 / len(weights) for name in weights}
    return {name: value / total for name, value in weights.items()}


def bound_weights(weights: WeightVector, bounds: Tuple[float, float] = (0.05, 0.5)) -> WeightVector:
    """
    Projects weights onto the bounded simplex: every weight within `bounds`
    and the sum equal to 1.

    The projection is clip(w - t, low, high) where the shift t is found with
    Brent's method so that the clipped weights sum to 1. Plain clip-then-
    normalize can push a clipped weight back out of bounds.
    """
    low, high = bounds
    names = list(weights.keys())
    values = np.array([weights[name] for name in names], dtype=float)
    count = len(values)

    if count * low > 1.0 or count * high < 1.0:
        logger.warning(f"Bounds {bounds} are infeasible for {count} weights; normalizing only")
        return normalize_weights(weights)

    def excess(shift: float) -> float:
        return float(np.clip(values - shift, low, high).sum() - 1.0)

    lower_shift = float(values.min() - high)
    upper_shift = float(values.max() - low)
    if excess(lower_shift) == 0.0:
        shift = lower_shift
    elif excess(upper_shift) == 0.0:
        shift = upper_shift
    else:
        shift = brentq(excess, lower_shift, upper_shift, xtol=1e-14, rtol=1e-12, maxiter=200)

    projected = np.clip(values - shift, low, high)
    projected = projected / projected.sum()
    return {name: float(value) for name, value in zip(names, projected)}


def perturb_weights(weights: WeightVector, rng: np.random.Generator, scale: float = 0.3,
                    bounds: Tuple[float, float] = (0.05, 0.5)) -> WeightVector:
    """Multiplies each weight by 1 + U(-scale, scale) and re-projects onto the bounds."""
    names = list(weights.keys())
    noise = rng.uniform(-scale, scale, size=len(names))
    perturbed = {name: max(0.0, weights[name] * (1.0 + delta)) for name, delta in zip(names, noise)}
    return bound_weights(normalize_weights(perturbed), bounds)


def learning_rate(comparison: ComparisonResult, config: EngineConfig) -> float:
    """
    Step size growing with the accuracy gap and, more strongly, with the
    hit-count gap.
    """
    accuracy_gap = config.target_accuracy - comparison.accuracy
    hit_gap = config.target_hit_count - comparison.hit_count

    hit_multiplier = 1.0 + hit_gap * config.hit_gap_multiplier if hit_gap > 0 else 1.0
    priority = 1.0
    if comparison.accuracy < config.target_accuracy:
        priority = max(priority, config.low_accuracy_priority)
    if hit_gap > 0:
        priority = max(priority, config.hit_gap_priority)

    rate = (config.base_learning_rate
            * (1.0 + abs(accuracy_gap) / config.accuracy_gap_scale)
            * hit_multiplier
            * priority)
    return min(config.max_learning_rate, rate)


def _heuristic_nudge(weights: WeightVector, comparison: ComparisonResult, config: EngineConfig) -> WeightVector:
    adjusted = dict(weights)
    if comparison.hit_count == 0:
        for name, delta in ZERO_HIT_NUDGE.items():
            adjusted[name] = adjusted[name] + delta
    elif comparison.hit_count < config.target_hit_count:
        hit_deficit = config.target_hit_count - comparison.hit_count
        accuracy_deficit = max(0.0, config.target_accuracy - comparison.accuracy) / 100.0
        amount = max(hit_deficit * 0.10, accuracy_deficit * 0.15)
        for name, multiplier in BELOW_TARGET_MULTIPLIERS.items():
            adjusted[name] = adjusted[name] + amount * multiplier
    else:
        for name, delta in AT_TARGET_NUDGE.items():
            adjusted[name] = adjusted[name] + delta
    return adjusted


def adapt_weights(weights: WeightVector, comparison: ComparisonResult,
                  attribution: Optional[Attribution], config: Optional[EngineConfig] = None) -> WeightVector:
    """
    Produces the weight vector for the next backtest step.

    Args:
        weights: Weights used for the step just evaluated
        comparison: Outcome of that step
        attribution: Per-indicator performance, or None when degenerate
        config: Engine configuration holding the adaptation constants

    Returns:
        WeightVector: New bounded weights summing to 1
    """
    config = config or EngineConfig()
    low = config.weight_bounds[0]
    current = complete_weights(weights)

    if attribution is None or attribution.total <= 0:
        adjusted = _heuristic_nudge(current, comparison, config)
    elif comparison.hit_count < config.target_hit_count:
        rate = learning_rate(comparison, config)
        accuracy_gap = config.target_accuracy - comparison.accuracy
        hit_gap = config.target_hit_count - comparison.hit_count
        adjustment = accuracy_gap / config.accuracy_adjustment_divisor
        if hit_gap > 0:
            adjustment += hit_gap * config.hit_adjustment_factor

        total = attribution.total
        adjusted = dict(current)
        for name, performance in attribution.performance.items():
            if name not in adjusted:
                continue
            share = abs(performance) / total
            if performance > 0:
                adjusted[name] += rate * adjustment * config.increase_factor * share
            elif performance < 0:
                adjusted[name] = max(low, adjusted[name] - rate * abs(adjustment) * config.decrease_factor * share)
    else:
        # fine-tune the best performers
        adjusted = dict(current)
        leaders = sorted(
            (name for name in attribution.performance if name in adjusted),
            key=lambda name: -attribution.performance[name],
        )
        for name, step in zip(leaders, config.fine_tune_steps):
            if attribution.performance[name] > 0:
                adjusted[name] += step

    return bound_weights(adjusted, config.weight_bounds)


def weights_as_tuple(weights: WeightVector) -> Tuple[Tuple[str, float], ...]:
    """Immutable, ordered snapshot for storing in a ValidationRecord."""
    return tuple((name, float(weights[name])) for name in INDICATOR_NAMES if name in weights)
