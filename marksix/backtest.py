"""
Iterative Backtesting Engine
============================

Replays the scoring pipeline backwards through history, adapting the
indicator weights after every step, and retries the whole replay with
perturbed weights while the average hit count stays below the target.

States:
    SEED_SELECTION -> REPLAY -> (target met? DONE : PERTURB_RETRY -> REPLAY) -> DONE

The engine owns no shared state: every run works on the history passed in
and on weight vectors created for that run. Randomness (simulation and
perturbation) comes from one injectable numpy Generator.
"""

from concurrent.futures import ThreadPoolExecutor
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple

import numpy as np
from loguru import logger

from marksix.config import EngineConfig
from marksix.evaluator import BacktestStepEvaluator, compare_prediction
from marksix.exceptions import (
    InsufficientDataError,
    InvalidCandidateError,
    MarkSixError,
    NonConsecutivePeriodError,
)
from marksix.models import BacktestResult, BacktestRun, DrawRecord, LivePrediction, ValidationRecord
from marksix.periods import is_next_period, validate_history_order
from marksix.scoring import CompositeScorer
from marksix.simulation_engine import MonteCarloSimulator
from marksix.strategies import generate_candidates, select_optimal_numbers, strategy_performance
from marksix.weight_adapter import (
    adapt_weights,
    bound_weights,
    complete_weights,
    normalize_weights,
    perturb_weights,
    weights_as_tuple,
)

ProgressCallback = Callable[[float, str], Any]


class BacktestState(Enum):
    """Engine states"""
    SEED_SELECTION = "seed_selection"
    REPLAY = "replay"
    PERTURB_RETRY = "perturb_retry"
    DONE = "done"


class IterativeBacktestingEngine:
    """
    Adaptive historical replay with bounded perturb-and-retry search.
    """

    def __init__(self, config: Optional[EngineConfig] = None, scorer: Optional[CompositeScorer] = None,
                 on_progress: Optional[ProgressCallback] = None, rng: Optional[np.random.Generator] = None):
        self.config = config or EngineConfig()
        self.scorer = scorer or CompositeScorer(self.config)
        self.on_progress = on_progress
        self.rng = rng if rng is not None else np.random.default_rng(self.config.random_seed)
        self.simulator = MonteCarloSimulator(self.config.num_simulations, self.rng)
        self.step_evaluator = BacktestStepEvaluator(self.scorer, self.simulator, self.config)
        self.state = BacktestState.SEED_SELECTION
        self.attempts: List[Dict[str, Any]] = []

        logger.info(f"IterativeBacktestingEngine initialized: simulations={self.config.num_simulations}, "
                    f"target={self.config.target_hit_count} hits / {self.config.target_accuracy}% accuracy")

    # --- progress ---

    def _report(self, percent: float, message: str) -> None:
        if self.on_progress is None:
            return
        try:
            self.on_progress(round(min(100.0, max(0.0, percent)), 1), message)
        except Exception as e:
            logger.warning(f"Progress callback failed: {e}")

    # --- validation ---

    def _validate_history(self, history: List[DrawRecord], lookback_periods: int) -> int:
        if not history:
            raise InsufficientDataError("History is empty", required=self.config.min_history_periods, available=0)
        if len(history) < self.config.min_history_periods:
            raise InsufficientDataError(
                f"History has {len(history)} periods, at least {self.config.min_history_periods} required",
                required=self.config.min_history_periods,
                available=len(history),
            )
        if lookback_periods < 1:
            raise ValueError(f"lookback_periods must be positive, got {lookback_periods}")
        if len(history) < lookback_periods + 1:
            raise InsufficientDataError(
                f"Lookback of {lookback_periods} periods needs {lookback_periods + 1} draws, got {len(history)}",
                required=lookback_periods + 1,
                available=len(history),
            )
        if not validate_history_order(history):
            logger.warning("History is not ordered most-recent-first; consecutive checks will skip periods")
        return lookback_periods

    # --- seed selection ---

    def _evaluate_seed(self, history: List[DrawRecord], start_index: int, test_periods: int,
                       weights: Dict[str, float]) -> BacktestRun:
        """
        Fixed-weight replay over the `test_periods` oldest targets of the
        replay window, one optimal pick per period.
        """
        records: List[ValidationRecord] = []
        stride = max(1, self.config.seed_sample_stride)
        for index in range(start_index, max(0, start_index - test_periods), stride * -1):
            target, training = history[index - 1], history[index]
            if not is_next_period(training.period_identifier, target.period_identifier):
                continue
            exclude = self.step_evaluator.exclusion_for(history, index - 1)
            result = self.scorer.score(history, weights, exclude)
            try:
                candidate = select_optimal_numbers(result.ranked)
            except InvalidCandidateError:
                continue
            comparison = compare_prediction(candidate.numbers, target.numbers, self.config.target_hit_count)
            records.append(ValidationRecord(
                training_period=training.period_identifier,
                target_period=target.period_identifier,
                predicted=candidate.numbers,
                actual=target.numbers,
                hit_count=comparison.hit_count,
                accuracy=comparison.accuracy,
                coverage=comparison.coverage,
                strategy=candidate.strategy,
                weights=weights_as_tuple(result.weights),
            ))
        return BacktestRun(
            records=records,
            initial_weights=weights,
            final_weights=weights,
            target_hit_count=self.config.target_hit_count,
            target_accuracy=self.config.target_accuracy,
        )

    def select_seed_weights(self, history: List[DrawRecord], start_index: int) -> Tuple[str, Dict[str, float]]:
        """
        Tries every hand-authored seed weight set on a sub-window and keeps
        the best by the run priority order.
        """
        self.state = BacktestState.SEED_SELECTION
        test_periods = min(self.config.seed_max_periods, start_index)
        seeds = {
            name: bound_weights(normalize_weights(complete_weights(weights)), self.config.weight_bounds)
            for name, weights in self.config.seed_weight_sets.items()
        }
        if not seeds:
            return 'default', bound_weights(normalize_weights(complete_weights(None)), self.config.weight_bounds)

        logger.info(f"Seed selection: {len(seeds)} weight sets over {test_periods} periods")
        self._report(0, f"Evaluating {len(seeds)} seed weight sets")

        names = list(seeds.keys())
        if self.config.seed_workers > 1:
            with ThreadPoolExecutor(max_workers=self.config.seed_workers) as executor:
                runs = list(executor.map(
                    lambda name: self._evaluate_seed(history, start_index, test_periods, seeds[name]), names))
        else:
            runs = []
            for position, name in enumerate(names):
                runs.append(self._evaluate_seed(history, start_index, test_periods, seeds[name]))
                self._report(20.0 * (position + 1) / len(names), f"Seed '{name}' evaluated")

        best_name, best_run = names[0], runs[0]
        for name, run in zip(names, runs):
            logger.debug(f"Seed '{name}': avg hits {run.average_hits:.3f}, avg accuracy {run.average_accuracy:.2f}%")
            if run.rank_key() > best_run.rank_key():
                best_name, best_run = name, run

        logger.info(f"Selected seed weights '{best_name}' (avg hits {best_run.average_hits:.3f})")
        return best_name, dict(seeds[best_name])

    # --- replay ---

    def replay(self, history: List[DrawRecord], start_index: int, weights: Dict[str, float],
               attempt: int = 0, progress_span: Tuple[float, float] = (20.0, 90.0)) -> BacktestRun:
        """
        Walks backwards from `start_index` to the most recent period,
        evaluating each period and adapting the weights after every step.
        """
        self.state = BacktestState.REPLAY
        current = dict(weights)
        records: List[ValidationRecord] = []
        skipped = 0
        total_steps = start_index
        report_every = max(1, total_steps // 10)
        low, high = progress_span

        for step, index in enumerate(range(start_index, 0, -1), start=1):
            try:
                outcome = self.step_evaluator.evaluate(history, index - 1, current, records)
            except NonConsecutivePeriodError as e:
                logger.debug(f"Skipping period: {e}")
                skipped += 1
                continue

            records.append(outcome.record)
            current = adapt_weights(current, outcome.comparison, outcome.attribution, self.config)

            if step % report_every == 0:
                self._report(low + (high - low) * step / total_steps,
                             f"Attempt {attempt}: {step}/{total_steps} periods replayed")

        run = BacktestRun(
            records=records,
            initial_weights=dict(weights),
            final_weights=current,
            attempt=attempt,
            skipped_periods=skipped,
            target_hit_count=self.config.target_hit_count,
            target_accuracy=self.config.target_accuracy,
        )
        logger.info(f"Replay attempt {attempt}: {len(records)} periods, {skipped} skipped, "
                    f"avg hits {run.average_hits:.3f}, avg accuracy {run.average_accuracy:.2f}%")
        return run

    # --- live prediction ---

    def build_live_prediction(self, history: List[DrawRecord], run: BacktestRun) -> Optional[LivePrediction]:
        """One-shot prediction for the next period using the run's final weights."""
        try:
            result = self.scorer.score(history, run.final_weights)
            recent = run.records[-self.config.history_window:]
            candidates = generate_candidates(result.ranked, recent)
            outcomes = self.simulator.rank_candidates(
                candidates,
                neural_scores=result.indicator_scores.get('neural'),
                strategy_performance=strategy_performance(recent),
            )
            best = outcomes[0]
            return LivePrediction(
                numbers=best.candidate.numbers,
                strategy=best.candidate.strategy,
                top_numbers=tuple(result.top_numbers[:15]),
                simulation_score=best.score,
            )
        except (MarkSixError, ValueError) as e:
            logger.error(f"Error building live prediction: {e}")
            return None

    # --- driver ---

    def _record_attempt(self, run: BacktestRun, kept: bool, best: BacktestRun) -> None:
        self.attempts.append({
            'attempt': run.attempt,
            'periods': len(run.records),
            'average_hits': run.average_hits,
            'average_accuracy': run.average_accuracy,
            'meets_target': run.meets_target,
            'kept': kept,
            'best_average_hits': best.average_hits,
            'best_rank': list(best.rank_key()),
        })

    def run(self, history: List[DrawRecord], lookback_periods: int = 100, max_retries: int = 0) -> BacktestResult:
        """
        Runs seed selection, the replay and the bounded retry loop.

        Args:
            history: Draws ordered most-recent-first
            lookback_periods: How many periods back the replay starts
            max_retries: Upper bound on perturbed re-runs

        Returns:
            BacktestResult: Best run's records, statistics and final weights,
            a live prediction and whether the target was met

        Raises:
            InsufficientDataError: If the history is empty or too short
        """
        start_index = self._validate_history(history, lookback_periods)
        self.attempts = []
        logger.info("=" * 60)
        logger.info(f"Starting backtest: {len(history)} periods, lookback {start_index}, max retries {max_retries}")
        logger.info("=" * 60)

        seed_name, seed_weights = self.select_seed_weights(history, start_index)

        # each attempt owns its slice of 20..90 so progress never goes back
        span = 70.0 / (max_retries + 1)

        best = self.replay(history, start_index, seed_weights, attempt=0, progress_span=(20.0, 20.0 + span))
        self._record_attempt(best, kept=True, best=best)

        retries = 0
        while best.average_hits < self.config.target_hit_count and retries < max_retries:
            retries += 1
            self.state = BacktestState.PERTURB_RETRY
            weights = perturb_weights(best.initial_weights, self.rng, self.config.perturbation_scale,
                                      self.config.weight_bounds)
            low = 20.0 + span * retries
            self._report(low, f"Retry {retries}/{max_retries}")
            run = self.replay(history, start_index, weights, attempt=retries, progress_span=(low, low + span))

            kept = run.rank_key() > best.rank_key()
            if kept:
                best = run
            self._record_attempt(run, kept=kept, best=best)

        if not best.meets_target:
            logger.warning(f"Target of {self.config.target_hit_count} average hits not met after "
                           f"{retries} retries (best {best.average_hits:.3f})")

        self.state = BacktestState.DONE
        live_prediction = self.build_live_prediction(history, best)
        self._report(100, "Backtest completed")

        return BacktestResult(
            records=list(best.records),
            final_weights=dict(best.final_weights),
            statistics=best.statistics,
            live_prediction=live_prediction,
            meets_target=best.meets_target,
            attempts=list(self.attempts),
            best_run=best,
            seed_name=seed_name,
        )


def run_backtest(history: List[DrawRecord], lookback_periods: int = 100, max_retries: int = 0,
                 on_progress: Optional[ProgressCallback] = None, rng: Optional[np.random.Generator] = None,
                 config: Optional[EngineConfig] = None) -> BacktestResult:
    """Full iterative backtest entry point."""
    engine = IterativeBacktestingEngine(config=config, on_progress=on_progress, rng=rng)
    return engine.run(history, lookback_periods, max_retries)
