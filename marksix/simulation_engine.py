"""
Monte-Carlo refinement of candidate bets.

Simulates uniform 6-of-49 draws and ranks candidate sets by their simulated
hit statistics, blended with the learned predictor's scores and with each
strategy's record in earlier validation steps.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import numpy as np
from loguru import logger

from marksix.config import NUMBER_MAX, NUMBER_MIN, NUMBERS_PER_DRAW
from marksix.exceptions import InvalidCandidateError
from marksix.models import CandidateSet, RankedNumber


@dataclass(frozen=True)
class SimulationOutcome:
    candidate: CandidateSet
    average_hits: float
    hit_rate: float
    neural_bonus: float
    history_bonus: float
    score: float


class MonteCarloSimulator:
    def __init__(self, num_simulations: int = 500, rng: Optional[np.random.Generator] = None):
        self.num_simulations = num_simulations
        self.rng = rng if rng is not None else np.random.default_rng()
        logger.debug(f"MonteCarloSimulator initialized for {num_simulations} simulations.")

    def generate_synthetic_draws(self, count: Optional[int] = None) -> np.ndarray:
        """
        Random draws of 6 distinct numbers from 1..49.

        Returns:
            Array of shape (count, 6)
        """
        count = count or self.num_simulations
        keys = self.rng.random((count, NUMBER_MAX))
        return np.argsort(keys, axis=1)[:, :NUMBERS_PER_DRAW] + 1

    @staticmethod
    def calculate_hit_statistics(numbers, draws: np.ndarray) -> Dict[str, object]:
        """Hit counts of one number set against every simulated draw."""
        chosen = np.asarray(sorted(numbers))
        matches = np.isin(draws, chosen)
        hits_per_draw = matches.sum(axis=1)
        per_number = {int(n): int((draws == n).sum()) for n in chosen}
        total_hits = int(hits_per_draw.sum())
        draw_count = len(draws)
        return {
            'total_hits': total_hits,
            'hit_rate': total_hits / (draw_count * len(chosen)) if draw_count and len(chosen) else 0.0,
            'number_hits': per_number,
            'average_hits_per_draw': total_hits / draw_count if draw_count else 0.0,
        }

    def rank_candidates(self, candidates: List[CandidateSet],
                        neural_scores: Optional[Dict[int, float]] = None,
                        strategy_performance: Optional[Dict[str, Dict[str, float]]] = None) -> List[SimulationOutcome]:
        """
        Scores every candidate against the same batch of simulated draws.

        Score = avg hits * 10 + hit rate * 100 + neural bonus + history bonus,
        sorted best first (ties keep the input order).
        """
        if not candidates:
            return []

        draws = self.generate_synthetic_draws()
        outcomes = []
        for candidate in candidates:
            stats = self.calculate_hit_statistics(candidate.numbers, draws)

            neural_bonus = 0.0
            if neural_scores:
                neural_bonus = float(np.mean([neural_scores.get(n, 0.0) for n in candidate.numbers])) * 0.1

            history_bonus = 0.0
            performance = (strategy_performance or {}).get(candidate.strategy)
            if performance:
                history_bonus = (performance['average_hits'] * 15 + performance['target_rate'] * 60) * 0.2

            score = stats['average_hits_per_draw'] * 10 + stats['hit_rate'] * 100 + neural_bonus + history_bonus
            outcomes.append(SimulationOutcome(
                candidate=candidate,
                average_hits=stats['average_hits_per_draw'],
                hit_rate=stats['hit_rate'],
                neural_bonus=neural_bonus,
                history_bonus=history_bonus,
                score=score,
            ))

        outcomes.sort(key=lambda outcome: -outcome.score)
        logger.debug(f"Ranked {len(outcomes)} candidates; best {outcomes[0].candidate.strategy} "
                     f"({outcomes[0].score:.3f})")
        return outcomes

    @staticmethod
    def select_for_evaluation(outcomes: List[SimulationOutcome], top_k: int = 3) -> List[SimulationOutcome]:
        return outcomes[:top_k]

    def batch_simulation_test(self, candidates: List[CandidateSet], num_batches: int = 10) -> List[Dict[str, object]]:
        """Stability check: mean and spread of the simulated average hits over several batches."""
        results = []
        batches = [self.generate_synthetic_draws() for _ in range(num_batches)]
        for candidate in candidates:
            averages = [self.calculate_hit_statistics(candidate.numbers, draws)['average_hits_per_draw']
                        for draws in batches]
            results.append({
                'numbers': list(candidate.numbers),
                'strategy': candidate.strategy,
                'mean_average_hits': float(np.mean(averages)),
                'std_average_hits': float(np.std(averages)),
                'batches': num_batches,
            })
        logger.info(f"Batch simulation completed for {len(candidates)} candidates over {num_batches} batches")
        return results

    def iterative_simulation_optimization(self, ranked: List[RankedNumber],
                                          initial_numbers: Optional[List[int]] = None,
                                          max_iterations: int = 10, hit_threshold: float = 0.1,
                                          min_keep_count: int = 2,
                                          simulation_rounds: Optional[int] = None) -> Dict[str, Any]:
        """
        Keep-or-replace refinement of one bet against simulated draws.

        Each iteration simulates draws, measures every number's hit rate
        (appearances / rounds) and keeps the numbers at or above
        `hit_threshold`, never fewer than `min_keep_count`. The rest are
        replaced by the best-ranked numbers not in the current bet, then by
        random picks. Stops when every number reaches the threshold, when
        the keep count leaves nothing to replace, or after `max_iterations`.

        Args:
            ranked: Composite ranking used for refills, best first
            initial_numbers: Starting bet, defaults to the top 6 of `ranked`
            max_iterations: Upper bound on keep/replace rounds
            hit_threshold: Per-number hit rate a number needs to be kept
            min_keep_count: Numbers kept even when fewer reach the threshold
            simulation_rounds: Draws per simulation, defaults to num_simulations

        Returns:
            Dict with the initial and final numbers, iteration count,
            convergence flag and reason, final hit statistics and the
            per-iteration history

        Raises:
            InvalidCandidateError: If the starting bet is not 6 distinct numbers in 1..49
        """
        if initial_numbers is None:
            initial_numbers = [entry.number for entry in ranked[:NUMBERS_PER_DRAW]]
        current = sorted({int(n) for n in initial_numbers if NUMBER_MIN <= int(n) <= NUMBER_MAX})
        if len(current) != NUMBERS_PER_DRAW or len(initial_numbers) != NUMBERS_PER_DRAW:
            raise InvalidCandidateError('iterative', len(current))

        rounds = simulation_rounds or self.num_simulations
        initial = list(current)
        iteration_history: List[Dict[str, Any]] = []
        converged = False
        reason = None

        logger.info(f"Iterative simulation optimization from {initial}: threshold {hit_threshold}, "
                    f"keep >= {min_keep_count}, up to {max_iterations} iterations")

        for iteration in range(1, max_iterations + 1):
            stats = self.calculate_hit_statistics(current, self.generate_synthetic_draws(rounds))
            rates = {n: stats['number_hits'][n] / rounds for n in current}
            ordered = sorted(current, key=lambda n: (-rates[n], n))
            high = [n for n in ordered if rates[n] >= hit_threshold]
            low = [n for n in ordered if rates[n] < hit_threshold]

            keep_count = max(min_keep_count, len(high))
            kept = ordered[:keep_count]
            replaced = ordered[keep_count:]
            entry = {
                'iteration': iteration,
                'numbers': list(current),
                'number_hit_rates': rates,
                'average_hits_per_draw': stats['average_hits_per_draw'],
                'high_hit_numbers': high,
                'low_hit_numbers': low,
                'kept_numbers': sorted(kept),
                'replaced_numbers': [],
            }
            iteration_history.append(entry)

            if not low:
                converged, reason = True, 'all_above_threshold'
                break
            if not replaced:
                converged, reason = True, 'keep_count_limit'
                break

            refill = [e.number for e in ranked if e.number not in current][:len(replaced)]
            missing = len(replaced) - len(refill)
            if missing > 0:
                pool = [n for n in range(NUMBER_MIN, NUMBER_MAX + 1) if n not in current and n not in refill]
                refill += [int(n) for n in self.rng.choice(pool, size=missing, replace=False)]

            entry['replaced_numbers'] = sorted(replaced)
            current = sorted(kept + refill)
            logger.debug(f"Iteration {iteration}: kept {sorted(kept)}, replaced {sorted(replaced)} with {sorted(refill)}")

        final_stats = self.calculate_hit_statistics(current, self.generate_synthetic_draws(rounds))
        logger.info(f"Iterative simulation optimization finished after {len(iteration_history)} iterations: "
                    f"{current} ({reason or 'max_iterations'})")
        return {
            'initial_numbers': initial,
            'final_numbers': list(current),
            'iterations': len(iteration_history),
            'converged': converged,
            'convergence_reason': reason,
            'final_hit_statistics': final_stats,
            'iteration_history': iteration_history,
            'options': {
                'simulation_rounds': rounds,
                'max_iterations': max_iterations,
                'hit_threshold': hit_threshold,
                'min_keep_count': min_keep_count,
            },
        }
