"""
Domain Models
=============

Immutable records shared by the scoring, selection and backtesting layers.
History is always a list of DrawRecord ordered most-recent-first.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from marksix.config import NUMBER_MAX, NUMBER_MIN, NUMBERS_PER_DRAW, TARGET_HIT_COUNT


@dataclass(frozen=True)
class PeriodKey:
    """Year and sequence-in-year of a draw period."""
    year: int
    sequence: int

    def is_followed_by(self, other: "PeriodKey") -> bool:
        """True if `other` is the period right after this one."""
        if other.year == self.year:
            return other.sequence == self.sequence + 1
        return other.year == self.year + 1 and other.sequence == 1

    def __str__(self) -> str:
        return f"{self.year}/{self.sequence:03d}"


@dataclass(frozen=True)
class DrawRecord:
    """A single ingested draw. Numbers are stored sorted."""
    period_identifier: str
    date: str
    numbers: Tuple[int, ...]

    def __post_init__(self):
        numbers = tuple(sorted(int(n) for n in self.numbers))
        if len(numbers) != NUMBERS_PER_DRAW:
            raise ValueError(f"Draw {self.period_identifier} has {len(numbers)} numbers, "
                             f"expected {NUMBERS_PER_DRAW}")
        if len(set(numbers)) != len(numbers):
            raise ValueError(f"Duplicate numbers in draw {self.period_identifier}: {numbers}")
        for n in numbers:
            if n < NUMBER_MIN or n > NUMBER_MAX:
                raise ValueError(f"Number {n} out of range in draw {self.period_identifier}")
        object.__setattr__(self, 'numbers', numbers)

    @property
    def number_set(self) -> frozenset:
        return frozenset(self.numbers)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'period': self.period_identifier,
            'date': self.date,
            'numbers': list(self.numbers),
        }


@dataclass(frozen=True)
class RankedNumber:
    """One entry of the composite ranking with its per-indicator sub-scores."""
    number: int
    score: float
    raw: Dict[str, float] = field(default_factory=dict)
    normalized: Dict[str, float] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'number': self.number,
            'score': self.score,
            'raw': dict(self.raw),
            'normalized': dict(self.normalized),
        }


@dataclass
class ScoreResult:
    """Output of one scoring pass."""
    ranked: List[RankedNumber]
    composite: Dict[int, float]
    weights: Dict[str, float]
    indicator_scores: Dict[str, Dict[int, float]]
    stats: Dict[str, Any]
    diagnostics: Dict[str, Any]

    @property
    def top_numbers(self) -> List[int]:
        return [entry.number for entry in self.ranked]

    def to_dict(self) -> Dict[str, Any]:
        return {
            'ranked': [entry.to_dict() for entry in self.ranked],
            'weights': dict(self.weights),
            'stats': self.stats,
            'diagnostics': self.diagnostics,
        }


@dataclass(frozen=True)
class CandidateSet:
    """A concrete bet proposal tagged with the strategy that produced it."""
    numbers: Tuple[int, ...]
    strategy: str

    REQUIRED_SIZE = NUMBERS_PER_DRAW

    def __post_init__(self):
        object.__setattr__(self, 'numbers', tuple(sorted(int(n) for n in self.numbers)))

    @property
    def key(self) -> Tuple[int, ...]:
        return self.numbers

    @property
    def is_short(self) -> bool:
        return len(set(self.numbers)) < self.REQUIRED_SIZE


@dataclass(frozen=True)
class ComparisonResult:
    """Comparison of a predicted set against the actual draw."""
    hits: Tuple[int, ...]
    misses: Tuple[int, ...]
    predicted_but_not_actual: Tuple[int, ...]
    hit_count: int
    accuracy: float
    coverage: float
    target_hit_count: int = TARGET_HIT_COUNT

    @property
    def meets_target(self) -> bool:
        return self.hit_count >= self.target_hit_count


@dataclass(frozen=True)
class Attribution:
    """
    Per-indicator performance of one backtest step.

    performance[name] = 1/avg_hit_rank - 1/avg_miss_rank, positive when the
    indicator ranked the hit numbers ahead of the missed ones.
    """
    performance: Dict[str, float]
    hit_ranks: Dict[str, float] = field(default_factory=dict)
    miss_ranks: Dict[str, float] = field(default_factory=dict)

    @property
    def total(self) -> float:
        return sum(abs(value) for value in self.performance.values())


@dataclass(frozen=True)
class ValidationRecord:
    """Result of one backtest step."""
    training_period: str
    target_period: str
    predicted: Tuple[int, ...]
    actual: Tuple[int, ...]
    hit_count: int
    accuracy: float
    coverage: float
    strategy: str
    weights: Tuple[Tuple[str, float], ...]

    @property
    def weights_dict(self) -> Dict[str, float]:
        return dict(self.weights)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'training_period': self.training_period,
            'target_period': self.target_period,
            'predicted': list(self.predicted),
            'actual': list(self.actual),
            'hit_count': self.hit_count,
            'accuracy': round(self.accuracy, 2),
            'coverage': round(self.coverage, 2),
            'strategy': self.strategy,
            'weights': {name: round(value, 4) for name, value in self.weights},
        }


def compute_statistics(records: List[ValidationRecord],
                       target_hit_count: int = TARGET_HIT_COUNT,
                       target_accuracy: float = 50.0) -> Dict[str, Any]:
    """
    Aggregates a list of validation records.

    Returns:
        Dict with totals, averages, the hit-count distribution and a
        target summary
    """
    total_periods = len(records)
    total_hits = sum(record.hit_count for record in records)
    distribution = {count: 0 for count in range(NUMBERS_PER_DRAW + 1)}
    for record in records:
        distribution[record.hit_count] = distribution.get(record.hit_count, 0) + 1

    at_least_target = sum(1 for record in records if record.hit_count >= target_hit_count)
    average_hits = total_hits / total_periods if total_periods else 0.0
    average_accuracy = sum(r.accuracy for r in records) / total_periods if total_periods else 0.0
    average_coverage = sum(r.coverage for r in records) / total_periods if total_periods else 0.0

    return {
        'total_periods': total_periods,
        'total_hits': total_hits,
        'average_hits_per_period': average_hits,
        'average_accuracy': average_accuracy,
        'average_coverage': average_coverage,
        'periods_with_target_hits': at_least_target,
        'target_hit_rate': (at_least_target / total_periods * 100) if total_periods else 0.0,
        'hit_count_distribution': distribution,
        'target_summary': {
            'target_hit_count': target_hit_count,
            'target_accuracy': target_accuracy,
            'average_hits_met': average_hits >= target_hit_count,
            'average_accuracy_met': average_accuracy >= target_accuracy,
        },
    }


@dataclass
class BacktestRun:
    """A full backward replay and the weights it started and ended with."""
    records: List[ValidationRecord]
    initial_weights: Dict[str, float]
    final_weights: Dict[str, float]
    attempt: int = 0
    skipped_periods: int = 0
    target_hit_count: int = TARGET_HIT_COUNT
    target_accuracy: float = 50.0

    @property
    def statistics(self) -> Dict[str, Any]:
        return compute_statistics(self.records, self.target_hit_count, self.target_accuracy)

    @property
    def average_hits(self) -> float:
        if not self.records:
            return 0.0
        return sum(r.hit_count for r in self.records) / len(self.records)

    @property
    def average_accuracy(self) -> float:
        if not self.records:
            return 0.0
        return sum(r.accuracy for r in self.records) / len(self.records)

    @property
    def distance_to_target(self) -> float:
        return (max(0.0, self.target_hit_count - self.average_hits) * 10
                + max(0.0, self.target_accuracy - self.average_accuracy))

    @property
    def meets_target(self) -> bool:
        return bool(self.records) and self.average_hits >= self.target_hit_count

    def rank_key(self) -> Tuple[bool, float, float]:
        """Priority order: meets target, then smaller distance, then more hits."""
        return (self.meets_target, -self.distance_to_target, self.average_hits)


@dataclass(frozen=True)
class LivePrediction:
    """One-shot prediction built with the final weights of a backtest."""
    numbers: Tuple[int, ...]
    strategy: str
    top_numbers: Tuple[int, ...]
    simulation_score: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            'numbers': list(self.numbers),
            'strategy': self.strategy,
            'top_numbers': list(self.top_numbers),
            'simulation_score': round(self.simulation_score, 4),
        }


@dataclass
class BacktestResult:
    """Terminal output of the iterative backtesting engine."""
    records: List[ValidationRecord]
    final_weights: Dict[str, float]
    statistics: Dict[str, Any]
    live_prediction: Optional[LivePrediction]
    meets_target: bool
    attempts: List[Dict[str, Any]]
    best_run: BacktestRun
    seed_name: str = 'default'
    timestamp: str = field(default_factory=lambda: datetime.now().isoformat())

    def to_dict(self) -> Dict[str, Any]:
        return {
            'validation_records': [record.to_dict() for record in self.records],
            'final_weights': {name: round(value, 6) for name, value in self.final_weights.items()},
            'statistics': self.statistics,
            'live_prediction': self.live_prediction.to_dict() if self.live_prediction else None,
            'meets_target': self.meets_target,
            'attempts': self.attempts,
            'seed_name': self.seed_name,
            'timestamp': self.timestamp,
        }
