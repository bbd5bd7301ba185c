"""
Backtest Step Evaluator
=======================

Evaluates one historical period: scores the causally filtered history,
builds and ranks candidate bets, compares the chosen bet with the real draw
and measures how each indicator ranked the hits against the misses.
"""

from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional

from loguru import logger

from marksix.config import ALL_NUMBERS, INDICATOR_NAMES, TARGET_HIT_COUNT, EngineConfig
from marksix.exceptions import NonConsecutivePeriodError
from marksix.models import (
    Attribution,
    CandidateSet,
    ComparisonResult,
    DrawRecord,
    ScoreResult,
    ValidationRecord,
)
from marksix.periods import is_next_period
from marksix.scoring import CompositeScorer
from marksix.simulation_engine import MonteCarloSimulator
from marksix.strategies import generate_candidates, strategy_performance
from marksix.weight_adapter import weights_as_tuple

EMPTY_RANK: float = 50.0


def compare_prediction(predicted: Iterable[int], actual: Iterable[int],
                       target_hit_count: int = TARGET_HIT_COUNT) -> ComparisonResult:
    """
    Compares a predicted number set with the actual draw.

    Accuracy is hits over the predicted count and coverage is hits over the
    actual count, both as percentages.
    """
    predicted_set = set(predicted)
    actual_set = set(actual)
    hits = sorted(actual_set & predicted_set)
    return ComparisonResult(
        hits=tuple(hits),
        misses=tuple(sorted(actual_set - predicted_set)),
        predicted_but_not_actual=tuple(sorted(predicted_set - actual_set)),
        hit_count=len(hits),
        accuracy=len(hits) / len(predicted_set) * 100 if predicted_set else 0.0,
        coverage=len(hits) / len(actual_set) * 100 if actual_set else 0.0,
        target_hit_count=target_hit_count,
    )


def _average_rank(numbers, ranks: Dict[int, int]) -> float:
    if not numbers:
        return EMPTY_RANK
    return sum(ranks[n] for n in numbers) / len(numbers)


def compute_attribution(indicator_scores: Dict[str, Dict[int, float]],
                        comparison: ComparisonResult) -> Optional[Attribution]:
    """
    Rates each indicator by where it ranked the hit numbers versus the
    predicted numbers that missed.

    Returns:
        Attribution, or None when there are no hits, no misses, or every
        indicator performed identically
    """
    hits = comparison.hits
    missed = comparison.predicted_but_not_actual
    if not hits or not missed:
        return None

    performance, hit_ranks, miss_ranks = {}, {}, {}
    for name in INDICATOR_NAMES:
        scores = indicator_scores.get(name)
        if scores is None:
            continue
        order = sorted(ALL_NUMBERS, key=lambda n: (-scores.get(n, 0.0), n))
        ranks = {n: position + 1 for position, n in enumerate(order)}
        hit_ranks[name] = _average_rank(hits, ranks)
        miss_ranks[name] = _average_rank(missed, ranks)
        performance[name] = 1.0 / hit_ranks[name] - 1.0 / miss_ranks[name]

    attribution = Attribution(performance=performance, hit_ranks=hit_ranks, miss_ranks=miss_ranks)
    if attribution.total <= 0:
        return None
    return attribution


@dataclass
class StepOutcome:
    record: ValidationRecord
    comparison: ComparisonResult
    attribution: Optional[Attribution]
    score_result: ScoreResult
    candidates_evaluated: int


class BacktestStepEvaluator:
    """
    Runs scoring, candidate generation and simulation for a single target
    period, then compares the chosen bet with what was actually drawn.
    """

    def __init__(self, scorer: CompositeScorer, simulator: MonteCarloSimulator,
                 config: Optional[EngineConfig] = None):
        self.scorer = scorer
        self.simulator = simulator
        self.config = config or EngineConfig()

    @staticmethod
    def exclusion_for(history: List[DrawRecord], target_index: int) -> set:
        """Identifiers of the target period and every newer period."""
        return {draw.period_identifier for draw in history[:target_index + 1]}

    def evaluate(self, history: List[DrawRecord], target_index: int, weights: Dict[str, float],
                 previous_records: Optional[List[ValidationRecord]] = None) -> StepOutcome:
        """
        Evaluates the draw at `target_index` using only older draws.

        Args:
            history: Full history, most recent first
            target_index: Index of the period to predict
            weights: Indicator weights for this step
            previous_records: Earlier validation records (strategy history)

        Raises:
            NonConsecutivePeriodError: If the newest training period is not
                directly before the target
        """
        target = history[target_index]
        training = history[target_index + 1]
        if not is_next_period(training.period_identifier, target.period_identifier):
            raise NonConsecutivePeriodError(training.period_identifier, target.period_identifier)

        exclude = self.exclusion_for(history, target_index)
        score_result = self.scorer.score(history, weights, exclude)

        recent_records = (previous_records or [])[-self.config.history_window:]
        candidates = generate_candidates(score_result.ranked, recent_records)
        outcomes = self.simulator.rank_candidates(
            candidates,
            neural_scores=score_result.indicator_scores.get('neural'),
            strategy_performance=strategy_performance(recent_records),
        )

        shortlisted = [o.candidate for o in self.simulator.select_for_evaluation(outcomes, self.config.evaluation_top_k)]
        chosen, comparison = self._best_against_actual(shortlisted, target)
        evaluated = len(shortlisted)
        if comparison.hit_count < self.config.target_hit_count and len(outcomes) > len(shortlisted):
            chosen, comparison = self._best_against_actual([o.candidate for o in outcomes], target)
            evaluated = len(outcomes)

        record = ValidationRecord(
            training_period=training.period_identifier,
            target_period=target.period_identifier,
            predicted=chosen.numbers,
            actual=target.numbers,
            hit_count=comparison.hit_count,
            accuracy=comparison.accuracy,
            coverage=comparison.coverage,
            strategy=chosen.strategy,
            weights=weights_as_tuple(score_result.weights),
        )
        attribution = compute_attribution(score_result.indicator_scores, comparison)
        logger.debug(f"Step {target.period_identifier}: {chosen.strategy} {list(chosen.numbers)} "
                     f"-> {comparison.hit_count} hits")
        return StepOutcome(record, comparison, attribution, score_result, evaluated)

    def _best_against_actual(self, candidates: List[CandidateSet], target: DrawRecord):
        best, best_comparison = None, None
        for candidate in candidates:
            comparison = compare_prediction(candidate.numbers, target.numbers, self.config.target_hit_count)
            if best_comparison is None or comparison.hit_count > best_comparison.hit_count:
                best, best_comparison = candidate, comparison
        return best, best_comparison
