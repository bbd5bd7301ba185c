"""
Composite Scorer
================

Runs every indicator on a (causally filtered) history, min-max normalizes
each score map to [0, 100] and combines them with a weight vector into a
single ranking. The learned predictor is blended into the composite of the
numbers it ranks highest.
"""

from typing import Any, Callable, Dict, List, Optional, Set

from loguru import logger

from marksix import fibonacci, indicators
from marksix.config import ALL_NUMBERS, DEFAULT_WEIGHTS, EngineConfig
from marksix.exceptions import InsufficientDataError
from marksix.models import DrawRecord, RankedNumber, ScoreResult
from marksix.neural_predictor import calculate_neural
from marksix.periods import filter_history
from marksix.weight_adapter import complete_weights, normalize_weights

ScoreMap = Dict[int, float]


def normalize_scores(scores: ScoreMap) -> ScoreMap:
    """
    Min-max normalization to [0, 100].

    A map whose values are all equal has no ranking information and
    becomes all-zero.
    """
    values = list(scores.values())
    low, high = min(values), max(values)
    spread = high - low
    if spread <= 0:
        return {n: 0.0 for n in scores}
    return {n: (value - low) / spread * 100.0 for n, value in scores.items()}


class CompositeScorer:
    """
    Weighted ensemble of all indicators.
    """

    def __init__(self, config: Optional[EngineConfig] = None):
        self.config = config or EngineConfig()
        self.calculators: Dict[str, Callable[..., ScoreMap]] = {
            'frequency': indicators.calculate_frequency,
            'weighted_frequency': indicators.calculate_weighted_frequency,
            'pattern': indicators.calculate_pattern,
            'gap': indicators.calculate_gap,
            'survival': indicators.calculate_survival,
            'extreme_value': indicators.calculate_extreme_value,
            'distribution': indicators.calculate_distribution,
            'chi_square': indicators.calculate_chi_square,
            'poisson': indicators.calculate_poisson,
            'trend': indicators.calculate_trend,
            'combinatorial': indicators.calculate_combinatorial,
            'correlation': indicators.calculate_correlation,
            'markov': indicators.calculate_markov,
            'entropy': indicators.calculate_entropy,
            'clustering': indicators.calculate_clustering,
            'fibonacci': fibonacci.calculate_fibonacci,
            'range_distribution': indicators.calculate_range_distribution,
        }
        logger.debug(f"CompositeScorer initialized with {len(self.calculators)} indicators, "
                     f"neural={'on' if self.config.use_neural else 'off'}")

    def compute_indicator_scores(self, history: List[DrawRecord]) -> Dict[str, ScoreMap]:
        """Raw score map of every indicator on an already filtered history."""
        return {name: calculator(history) for name, calculator in self.calculators.items()}

    def score(self, history: List[DrawRecord], weights: Optional[Dict[str, float]] = None,
              exclude: Optional[Set[str]] = None) -> ScoreResult:
        """
        Scores every number using only the draws not listed in `exclude`.

        Args:
            history: Draws ordered most-recent-first
            weights: Indicator weights; missing indicators use the defaults
            exclude: Period identifiers the scorer must not see

        Returns:
            ScoreResult: Top numbers with raw and normalized sub-scores

        Raises:
            InsufficientDataError: If no draws remain after exclusion
        """
        if not history:
            raise InsufficientDataError("No draws available for scoring", required=1, available=0)

        filtered = filter_history(history, exclude)
        if not filtered:
            raise InsufficientDataError(
                "Every draw was excluded from scoring", required=1, available=0
            )

        final_weights = normalize_weights(complete_weights(weights or DEFAULT_WEIGHTS))

        raw_scores = self.compute_indicator_scores(filtered)
        normalized = {name: normalize_scores(scores) for name, scores in raw_scores.items()}

        composite = {
            n: sum(final_weights[name] * normalized[name][n] for name in self.calculators)
            for n in ALL_NUMBERS
        }

        neural_scores = None
        if self.config.use_neural:
            neural_scores = calculate_neural(filtered, config=self.config)
            composite = self._blend_neural(composite, neural_scores)

        ranking = sorted(ALL_NUMBERS, key=lambda n: (-composite[n], n))
        ranked = [
            RankedNumber(
                number=n,
                score=round(composite[n], 2),
                raw={name: round(raw_scores[name][n], 2) for name in raw_scores},
                normalized={name: round(normalized[name][n], 2) for name in normalized},
            )
            for n in ranking[:self.config.top_numbers_count]
        ]

        indicator_scores = dict(raw_scores)
        if neural_scores is not None:
            indicator_scores['neural'] = neural_scores

        return ScoreResult(
            ranked=ranked,
            composite=composite,
            weights=final_weights,
            indicator_scores=indicator_scores,
            stats=indicators.describe_history(history, exclude),
            diagnostics=self._diagnostics(filtered),
        )

    def _blend_neural(self, composite: Dict[int, float], neural_scores: ScoreMap) -> Dict[int, float]:
        normalized = normalize_scores(neural_scores)
        if not any(normalized.values()):
            return composite

        blend = self.config.neural_blend_weight
        leaders = sorted(ALL_NUMBERS, key=lambda n: (-neural_scores[n], n))[:self.config.neural_top_k]
        blended = dict(composite)
        for n in leaders:
            blended[n] = composite[n] * (1.0 - blend) + normalized[n] * blend
        return blended

    def _diagnostics(self, history: List[DrawRecord]) -> Dict[str, Any]:
        diagnostics: Dict[str, Any] = {}
        try:
            diagnostics['distribution_features'] = indicators.calculate_distribution_features(history)
            diagnostics['chi_square'] = indicators.calculate_chi_square_statistic(history)
            diagnostics['poisson_lambda'] = indicators.poisson_lambda(len(history))
            diagnostics['entropy'] = indicators.calculate_entropy_summary(history)
            diagnostics['fibonacci'] = fibonacci.fibonacci_summary()
        except Exception as e:
            logger.warning(f"Failed to compute scoring diagnostics: {e}")
        return diagnostics


def score(history: List[DrawRecord], weights: Optional[Dict[str, float]] = None,
          exclude: Optional[Set[str]] = None, config: Optional[EngineConfig] = None) -> ScoreResult:
    """Single-pass scoring entry point used for one-shot predictions."""
    return CompositeScorer(config).score(history, weights, exclude)
