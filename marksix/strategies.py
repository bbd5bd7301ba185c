"""
Candidate Generators
====================

Selection strategies that turn the composite ranking into concrete 6-number
bets. Every strategy is deterministic: it only looks at the ranked list and
the earlier validation records passed in.

Strategies:
    top6, diversity, balanced, evenly, top4plus2, top5plus1, hybrid,
    history, top5skip1, top3plus3, range6, historical_hits,
    historical_hits_plus
"""

from collections import Counter
from itertools import combinations
from typing import Callable, Dict, List, Optional, Sequence

import numpy as np
from loguru import logger

from marksix.config import EVEN_BINS, HYBRID_BINS, NUMBER_MAX, NUMBERS_PER_DRAW, TARGET_HIT_COUNT
from marksix.exceptions import InvalidCandidateError
from marksix.models import CandidateSet, RankedNumber, ValidationRecord

Ranked = List[RankedNumber]
MIN_DISTANCE: int = 5


def _by_score(entries: Sequence[RankedNumber]) -> Ranked:
    return sorted(entries, key=lambda entry: (-entry.score, entry.number))


def _backfill(selected: Ranked, ranked: Ranked, count: int = NUMBERS_PER_DRAW) -> Ranked:
    chosen = {entry.number for entry in selected}
    result = list(selected)
    for entry in _by_score(ranked):
        if len(result) >= count:
            break
        if entry.number not in chosen:
            result.append(entry)
            chosen.add(entry.number)
    return result[:count]


def _greedy_diverse(ranked: Ranked, seed_count: int, penalty: float, score_share: float,
                    count: int = NUMBERS_PER_DRAW) -> Ranked:
    """
    Keeps the first `seed_count` numbers, then repeatedly adds the number with
    the best blend of score and mean distance to the numbers already picked.
    Picks closer than MIN_DISTANCE to any selected number have their distance
    term multiplied by `penalty`.
    """
    selected = list(ranked[:seed_count])
    remaining = list(ranked[seed_count:])
    while len(selected) < count and remaining:
        best_index, best_value = 0, -np.inf
        for index, candidate in enumerate(remaining):
            distances = [abs(candidate.number - chosen.number) for chosen in selected]
            diversity = float(sum(distances))
            if distances and min(distances) < MIN_DISTANCE:
                diversity *= penalty
            spread = diversity / len(selected) if selected else 0.0
            value = candidate.score * score_share + spread * (1.0 - score_share)
            if value > best_value:
                best_index, best_value = index, value
        selected.append(remaining.pop(best_index))
    return selected[:count]


def _best_per_bin(entries: Ranked, bins) -> Ranked:
    picked = []
    for low, high in bins:
        in_bin = [entry for entry in entries if low <= entry.number <= high]
        if in_bin:
            picked.append(_by_score(in_bin)[0])
    return picked


def _hit_numbers(records: Optional[List[ValidationRecord]]) -> Counter:
    counter = Counter()
    for record in records or []:
        counter.update(set(record.predicted) & set(record.actual))
    return counter


# --- Strategies ---

def select_top6(ranked: Ranked, records=None) -> Ranked:
    return list(ranked[:NUMBERS_PER_DRAW])


def select_with_diversity(ranked: Ranked, records=None) -> Ranked:
    return _greedy_diverse(ranked, seed_count=3, penalty=0.3, score_share=0.7)


def select_balanced(ranked: Ranked, records=None) -> Ranked:
    return _greedy_diverse(ranked, seed_count=2, penalty=0.2, score_share=0.5)


def select_evenly_distributed(ranked: Ranked, records=None) -> Ranked:
    return _backfill(_best_per_bin(ranked, EVEN_BINS), ranked)


def _top_k_plus_spread(ranked: Ranked, k: int) -> Ranked:
    """Top k numbers plus the best-scoring numbers at least MIN_DISTANCE away from them."""
    selected = list(ranked[:k])
    for entry in _by_score(ranked[k:]):
        if len(selected) >= NUMBERS_PER_DRAW:
            break
        if all(abs(entry.number - chosen.number) >= MIN_DISTANCE for chosen in selected):
            selected.append(entry)
    return _backfill(selected, ranked)


def select_top4_plus2(ranked: Ranked, records=None) -> Ranked:
    return _top_k_plus_spread(ranked, 4)


def select_top5_plus1(ranked: Ranked, records=None) -> Ranked:
    return _top_k_plus_spread(ranked, 5)


def select_hybrid(ranked: Ranked, records=None) -> Ranked:
    selected = list(ranked[:1])
    chosen = {entry.number for entry in selected}
    rest = [entry for entry in ranked[1:] if entry.number not in chosen]
    selected.extend(_best_per_bin(rest, HYBRID_BINS))
    return _backfill(selected, ranked)


def select_based_on_history(ranked: Ranked, records: Optional[List[ValidationRecord]] = None) -> Ranked:
    """Top 3 earlier hit numbers still in the ranking (by hit count, then score), backfilled by score."""
    hits = _hit_numbers(records)
    if not hits:
        return []
    in_ranking = [entry for entry in ranked if entry.number in hits]
    in_ranking.sort(key=lambda entry: (-hits[entry.number], -entry.score, entry.number))
    return _backfill(in_ranking[:3], ranked)


def select_top5_skip1(ranked: Ranked, records=None) -> Ranked:
    if len(ranked) < 7:
        return []
    return list(ranked[:5]) + [ranked[6]]


def select_top3_plus3(ranked: Ranked, records=None) -> Ranked:
    if len(ranked) < 9:
        return []
    return list(ranked[:3]) + list(ranked[6:9])


def select_range6(ranked: Ranked, records=None) -> Ranked:
    """Best number of each of the six bins within the top 15; short unless every bin is filled."""
    return _best_per_bin(ranked[:15], EVEN_BINS)


def select_historical_hits(ranked: Ranked, records: Optional[List[ValidationRecord]] = None) -> Ranked:
    hits = _hit_numbers(records)
    in_ranking = [entry for entry in ranked if entry.number in hits]
    in_ranking.sort(key=lambda entry: (-hits[entry.number], -entry.score, entry.number))
    if not in_ranking:
        return []
    return _backfill(in_ranking[:NUMBERS_PER_DRAW], ranked)


def select_historical_hits_plus(ranked: Ranked, records: Optional[List[ValidationRecord]] = None) -> Ranked:
    """Top 3 by score mixed with the 3 most frequent earlier hit numbers."""
    hits = _hit_numbers(records)
    if not hits:
        return []
    selected = list(ranked[:3])
    chosen = {entry.number for entry in selected}
    frequent = [entry for entry in ranked if entry.number in hits and entry.number not in chosen]
    frequent.sort(key=lambda entry: (-hits[entry.number], -entry.score, entry.number))
    selected.extend(frequent[:3])
    return _backfill(selected, ranked)


STRATEGIES: Dict[str, Callable[..., Ranked]] = {
    'top6': select_top6,
    'diversity': select_with_diversity,
    'balanced': select_balanced,
    'evenly': select_evenly_distributed,
    'top4plus2': select_top4_plus2,
    'top5plus1': select_top5_plus1,
    'hybrid': select_hybrid,
    'history': select_based_on_history,
    'top5skip1': select_top5_skip1,
    'top3plus3': select_top3_plus3,
    'range6': select_range6,
    'historical_hits': select_historical_hits,
    'historical_hits_plus': select_historical_hits_plus,
}


def build_candidate(strategy: str, ranked: Ranked, records: Optional[List[ValidationRecord]] = None) -> CandidateSet:
    """
    Runs one strategy.

    Raises:
        InvalidCandidateError: If the strategy returns fewer than 6 distinct numbers
    """
    picked = STRATEGIES[strategy](ranked, records)
    candidate = CandidateSet(numbers=tuple(entry.number for entry in picked), strategy=strategy)
    if candidate.is_short or len(candidate.numbers) != CandidateSet.REQUIRED_SIZE:
        raise InvalidCandidateError(strategy, len(set(candidate.numbers)))
    return candidate


def generate_candidates(ranked: Ranked, records: Optional[List[ValidationRecord]] = None) -> List[CandidateSet]:
    """
    Runs every strategy and returns the distinct candidate sets.

    Strategies with a short result fall back to the top6 output; duplicates
    (same numbers in any order) are dropped, keeping the first strategy.
    """
    default = CandidateSet(numbers=tuple(entry.number for entry in ranked[:NUMBERS_PER_DRAW]), strategy='top6')
    candidates: List[CandidateSet] = []
    seen = set()
    for strategy in STRATEGIES:
        try:
            candidate = build_candidate(strategy, ranked, records)
        except InvalidCandidateError as e:
            logger.debug(f"{e}; using top6 instead")
            candidate = default
        if candidate.is_short or candidate.key in seen:
            continue
        seen.add(candidate.key)
        candidates.append(candidate)

    if not candidates:
        logger.warning(f"No complete candidate available from {len(ranked)} ranked numbers")
        candidates.append(default)
    return candidates


def strategy_performance(records: Optional[List[ValidationRecord]]) -> Dict[str, Dict[str, float]]:
    """Average hit count and rate of target hits per strategy in earlier records."""
    grouped: Dict[str, List[int]] = {}
    for record in records or []:
        grouped.setdefault(record.strategy, []).append(record.hit_count)
    return {
        strategy: {
            'average_hits': float(np.mean(hits)),
            'target_rate': sum(1 for h in hits if h >= TARGET_HIT_COUNT) / len(hits),
            'total': len(hits),
        }
        for strategy, hits in grouped.items()
    }


def _rate_candidate(candidate: CandidateSet, scores: Dict[int, float],
                    performance: Dict[str, Dict[str, float]]) -> float:
    numbers = candidate.numbers
    values = np.array([scores.get(n, 0.0) for n in numbers])
    pair_distances = [abs(a - b) for a, b in combinations(numbers, 2)]

    rating = values.sum() * 0.40
    rating += float(np.mean(pair_distances)) * 0.20 if pair_distances else 0.0
    rating += (100.0 / (1.0 + float(values.var()))) * 0.10
    rating += ((max(numbers) - min(numbers)) / NUMBER_MAX) * 100.0 * 0.10

    stats = performance.get(candidate.strategy)
    if stats:
        history_bonus = stats['average_hits'] * 15 + stats['target_rate'] * 60
        rating += history_bonus * 0.20
        rating += stats['target_rate'] * 150 + stats['average_hits'] * 30
    return rating


def select_optimal_numbers(ranked: Ranked, records: Optional[List[ValidationRecord]] = None) -> CandidateSet:
    """
    Picks one candidate by combining total score, spread, score variance,
    range coverage and the strategy's record in earlier validations.
    """
    if not ranked:
        raise InvalidCandidateError('optimal', 0)

    candidates = generate_candidates(ranked, records)
    scores = {entry.number: entry.score for entry in ranked}
    performance = strategy_performance(records)
    best = max(candidates, key=lambda candidate: _rate_candidate(candidate, scores, performance))
    return best
