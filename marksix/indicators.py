"""
Indicator Calculators
=====================

Independent statistical indicators that map a draw history to a score for
every number 1..49. Each calculator takes the history (most-recent-first)
and an optional set of period identifiers to exclude.

Return convention: every calculator returns a full map with all 49 numbers.
When the history is shorter than the calculator's minimum it returns the
zero map, which callers treat as "no signal" rather than an error.
"""

import math
from typing import Any, Dict, List, Optional, Set

import numpy as np
from loguru import logger
from scipy import stats
from sklearn.metrics.pairwise import cosine_similarity

from marksix.config import (
    ALL_NUMBERS,
    CLUSTER_SIMILARITY_THRESHOLD,
    CLUSTER_WINDOW,
    DECAY_FACTOR,
    HYBRID_BINS,
    NUMBER_MAX,
    NUMBERS_PER_DRAW,
    PATTERN_WINDOW,
    RANGE_WINDOW,
    TREND_MAX_WINDOW,
)
from marksix.models import DrawRecord
from marksix.periods import filter_history

ScoreMap = Dict[int, float]

EXPECTED_GAP: float = NUMBER_MAX / NUMBERS_PER_DRAW


def empty_score_map() -> ScoreMap:
    """Zero-initialized map over the whole number domain."""
    return {n: 0.0 for n in ALL_NUMBERS}


def _prepare(history: List[DrawRecord], exclude: Optional[Set[str]], min_periods: int) -> Optional[List[DrawRecord]]:
    filtered = filter_history(history, exclude)
    if len(filtered) < min_periods:
        return None
    return filtered


def appearance_matrix(history: List[DrawRecord]) -> np.ndarray:
    """
    Binary occurrence matrix of shape (periods, 49).

    Row 0 is the most recent period; column j is number j + 1.
    """
    matrix = np.zeros((len(history), NUMBER_MAX), dtype=float)
    for row, draw in enumerate(history):
        for n in draw.numbers:
            matrix[row, n - 1] = 1.0
    return matrix


def to_score_map(values: np.ndarray) -> ScoreMap:
    return {n: float(values[n - 1]) for n in ALL_NUMBERS}


def _appearance_indices(matrix: np.ndarray) -> List[np.ndarray]:
    return [np.flatnonzero(matrix[:, col]) for col in range(NUMBER_MAX)]


def _current_gaps(matrix: np.ndarray) -> np.ndarray:
    """Periods since each number was last drawn (period count if never)."""
    periods = matrix.shape[0]
    seen = matrix.any(axis=0)
    first = np.argmax(matrix, axis=0)
    return np.where(seen, first, periods).astype(float)


# --- Occurrence-based ---

def calculate_frequency(history: List[DrawRecord], exclude: Optional[Set[str]] = None) -> ScoreMap:
    """Raw appearance count."""
    filtered = _prepare(history, exclude, 1)
    if filtered is None:
        return empty_score_map()
    return to_score_map(appearance_matrix(filtered).sum(axis=0))


def calculate_weighted_frequency(history: List[DrawRecord], exclude: Optional[Set[str]] = None,
                                 decay: float = DECAY_FACTOR) -> ScoreMap:
    """Appearance count with exponential decay: the latest period weighs 1, each older one `decay` times less."""
    filtered = _prepare(history, exclude, 1)
    if filtered is None:
        return empty_score_map()
    matrix = appearance_matrix(filtered)
    weights = decay ** np.arange(len(filtered), dtype=float)
    return to_score_map(weights @ matrix)


def calculate_pattern(history: List[DrawRecord], exclude: Optional[Set[str]] = None,
                      window: int = PATTERN_WINDOW) -> ScoreMap:
    """Short-window score, weight 1/(k+1) for an appearance k periods back."""
    filtered = _prepare(history, exclude, 1)
    if filtered is None:
        return empty_score_map()
    matrix = appearance_matrix(filtered[:window])
    weights = 1.0 / (np.arange(matrix.shape[0], dtype=float) + 1.0)
    return to_score_map(weights @ matrix)


# --- Recency / gap-based ---

def calculate_gap(history: List[DrawRecord], exclude: Optional[Set[str]] = None) -> ScoreMap:
    """Log-scaled periods since last seen."""
    filtered = _prepare(history, exclude, 1)
    if filtered is None:
        return empty_score_map()
    gaps = _current_gaps(appearance_matrix(filtered))
    return to_score_map(np.log(gaps + 1.0) * 10.0)


def calculate_survival(history: List[DrawRecord], exclude: Optional[Set[str]] = None) -> ScoreMap:
    """
    Hazard-style score: ratio of the current gap to the number's mean
    inter-appearance gap. Numbers with fewer than two appearances are
    compared with the expected gap of 49/6.
    """
    filtered = _prepare(history, exclude, 10)
    if filtered is None:
        return empty_score_map()

    matrix = appearance_matrix(filtered)
    current = _current_gaps(matrix)
    scores = np.zeros(NUMBER_MAX)
    for col, indices in enumerate(_appearance_indices(matrix)):
        mean_gap = float(np.diff(indices).mean()) if len(indices) >= 2 else EXPECTED_GAP
        ratio = current[col] / max(mean_gap, 1.0)
        scores[col] = min(100.0, ratio * 50.0)
    return to_score_map(scores)


def calculate_extreme_value(history: List[DrawRecord], exclude: Optional[Set[str]] = None) -> ScoreMap:
    """
    Compares the current gap with the longest gap seen so far.

    The exceedance probability of the current gap is approximated with a
    geometric model, P(gap >= g) = (1 - p)^g where p is the appearance rate.
    """
    filtered = _prepare(history, exclude, 20)
    if filtered is None:
        return empty_score_map()

    matrix = appearance_matrix(filtered)
    periods = len(filtered)
    current = _current_gaps(matrix)
    rates = matrix.sum(axis=0) / periods
    scores = np.zeros(NUMBER_MAX)
    for col, indices in enumerate(_appearance_indices(matrix)):
        max_gap = float(np.diff(indices).max()) if len(indices) >= 2 else float(periods)
        ratio = min(1.5, current[col] / max(max_gap, 1.0))
        exceedance = (1.0 - rates[col]) ** current[col]
        scores[col] = ratio / 1.5 * 50.0 + (1.0 - exceedance) * 50.0
    return to_score_map(scores)


# --- Distributional ---

def calculate_distribution_features(history: List[DrawRecord], exclude: Optional[Set[str]] = None) -> Dict[str, float]:
    """Mean, variance, std, skewness and excess kurtosis of every drawn number."""
    filtered = _prepare(history, exclude, 1)
    if filtered is None:
        return {'mean': 0.0, 'variance': 0.0, 'std_dev': 0.0, 'skewness': 0.0, 'kurtosis': 0.0}

    values = np.array([n for draw in filtered for n in draw.numbers], dtype=float)
    std = float(values.std())
    return {
        'mean': float(values.mean()),
        'variance': float(values.var()),
        'std_dev': std,
        'skewness': float(stats.skew(values)) if std > 0 else 0.0,
        'kurtosis': float(stats.kurtosis(values)) if std > 0 else 0.0,
    }


def calculate_distribution(history: List[DrawRecord], exclude: Optional[Set[str]] = None) -> ScoreMap:
    """Gaussian closeness to the observed centre plus an under-representation bonus."""
    filtered = _prepare(history, exclude, 2)
    if filtered is None:
        return empty_score_map()

    features = calculate_distribution_features(filtered)
    if features['std_dev'] == 0:
        return empty_score_map()

    frequency = appearance_matrix(filtered).sum(axis=0)
    expected = len(filtered) * NUMBERS_PER_DRAW / NUMBER_MAX
    numbers = np.arange(1, NUMBER_MAX + 1, dtype=float)

    z = (numbers - features['mean']) / features['std_dev']
    center = np.exp(-0.5 * z ** 2)
    deviation = (frequency - expected) / (expected + 1.0)
    frequency_score = np.where(deviation < 0, np.abs(deviation), -deviation * 0.5)
    return to_score_map(center * 50.0 + frequency_score * 50.0)


def calculate_chi_square(history: List[DrawRecord], exclude: Optional[Set[str]] = None) -> ScoreMap:
    """Scores numbers drawn less often than a uniform draw would predict."""
    filtered = _prepare(history, exclude, 1)
    if filtered is None:
        return empty_score_map()
    frequency = appearance_matrix(filtered).sum(axis=0)
    expected = len(filtered) * NUMBERS_PER_DRAW / NUMBER_MAX
    return to_score_map(np.maximum(0.0, (expected - frequency) / (expected + 1.0) * 100.0))


def calculate_chi_square_statistic(history: List[DrawRecord], exclude: Optional[Set[str]] = None) -> Dict[str, float]:
    """Goodness-of-fit of the observed frequencies against the uniform expectation."""
    filtered = _prepare(history, exclude, 1)
    degrees_of_freedom = NUMBER_MAX - 1
    if filtered is None:
        return {'chi_square': 0.0, 'degrees_of_freedom': degrees_of_freedom, 'p_value': 1.0, 'expected_frequency': 0.0}

    frequency = appearance_matrix(filtered).sum(axis=0)
    expected = len(filtered) * NUMBERS_PER_DRAW / NUMBER_MAX
    statistic = float(((frequency - expected) ** 2 / expected).sum())
    return {
        'chi_square': statistic,
        'degrees_of_freedom': degrees_of_freedom,
        'p_value': float(stats.chi2.sf(statistic, degrees_of_freedom)),
        'expected_frequency': expected,
    }


def poisson_lambda(periods: int) -> float:
    """Expected appearances of one number over `periods` draws."""
    return NUMBERS_PER_DRAW * periods / NUMBER_MAX


def calculate_poisson(history: List[DrawRecord], exclude: Optional[Set[str]] = None) -> ScoreMap:
    """Deficit score against the Poisson expectation λ = 6·periods/49."""
    filtered = _prepare(history, exclude, 1)
    if filtered is None:
        return empty_score_map()
    observed = appearance_matrix(filtered).sum(axis=0)
    lam = poisson_lambda(len(filtered))
    scores = np.where(
        observed < lam,
        np.minimum(100.0, (lam - observed) * 20.0),
        np.maximum(0.0, 50.0 - (observed - lam) * 10.0),
    )
    return to_score_map(scores)


# --- Trend ---

def calculate_trend(history: List[DrawRecord], exclude: Optional[Set[str]] = None) -> ScoreMap:
    """
    Moving average of appearance over a recent window plus the regression
    slope over that window in chronological order. Low-but-rising numbers
    score highest, high-and-falling numbers lowest.
    """
    filtered = _prepare(history, exclude, 3)
    if filtered is None:
        return empty_score_map()

    window = min(TREND_MAX_WINDOW, len(filtered) // 2)
    recent = appearance_matrix(filtered[:window])[::-1]
    moving_average = recent.mean(axis=0)

    x = np.arange(window, dtype=float)
    x_centered = x - x.mean()
    denominator = (x_centered ** 2).sum()
    if denominator > 0:
        slopes = x_centered @ (recent - recent.mean(axis=0)) / denominator
    else:
        slopes = np.zeros(NUMBER_MAX)

    scores = np.zeros(NUMBER_MAX)
    for col in range(NUMBER_MAX):
        ma, slope = moving_average[col], slopes[col]
        if ma < 0.3 and slope > 0:
            score = 70.0 + slope * 30.0
        elif ma < 0.2:
            score = 60.0
        elif ma > 0.5 and slope < 0:
            score = 30.0
        else:
            score = 50.0 + (0.3 - ma) * 50.0
        scores[col] = max(0.0, min(100.0, score))
    return to_score_map(scores)


# --- Structural / combinatorial ---

def _draw_shape(numbers: List[int]) -> np.ndarray:
    ordered = sorted(numbers)
    if not ordered:
        return np.zeros(3)
    scaled_sum = sum(ordered) * NUMBERS_PER_DRAW / len(ordered)
    if len(ordered) < 2:
        return np.array([scaled_sum, 0.0, 0.0])
    diffs = np.diff(ordered)
    return np.array([scaled_sum, float(diffs.mean()), float((diffs == 1).sum())])


def calculate_combinatorial(history: List[DrawRecord], exclude: Optional[Set[str]] = None) -> ScoreMap:
    """
    Adds each number to the latest draw and checks how typical the result
    looks: sum, mean adjacent difference and consecutive pairs are compared
    with their historical mean and spread.
    """
    filtered = _prepare(history, exclude, 5)
    if filtered is None:
        return empty_score_map()

    shapes = np.array([_draw_shape(list(draw.numbers)) for draw in filtered])
    means = shapes.mean(axis=0)
    spreads = np.where(shapes.std(axis=0) > 0, shapes.std(axis=0), 1.0)
    mix = np.array([40.0, 35.0, 25.0])

    latest = list(filtered[0].numbers)
    scores = np.zeros(NUMBER_MAX)
    for n in ALL_NUMBERS:
        candidate = latest if n in latest else latest + [n]
        z = (_draw_shape(candidate) - means) / spreads
        scores[n - 1] = float(np.exp(-0.5 * z ** 2) @ mix)
    return to_score_map(scores)


# --- Relational ---

def calculate_correlation(history: List[DrawRecord], exclude: Optional[Set[str]] = None) -> ScoreMap:
    """Average Pearson correlation of each number's appearance series with the latest draw's numbers."""
    filtered = _prepare(history, exclude, 10)
    if filtered is None:
        return empty_score_map()

    matrix = appearance_matrix(filtered)
    with np.errstate(invalid='ignore', divide='ignore'):
        correlations = np.nan_to_num(np.corrcoef(matrix, rowvar=False))

    latest = [n - 1 for n in filtered[0].numbers]
    scores = np.zeros(NUMBER_MAX)
    for col in range(NUMBER_MAX):
        partners = [other for other in latest if other != col]
        if partners:
            scores[col] = float(correlations[col, partners].mean()) * 100.0
    return to_score_map(scores)


def markov_transition_matrix(history: List[DrawRecord]) -> np.ndarray:
    """Row-normalized one-step transitions from each period's numbers to the next period's numbers."""
    matrix = appearance_matrix(history)
    # rows are newest-first, so row k + 1 precedes row k
    counts = matrix[1:].T @ matrix[:-1]
    totals = counts.sum(axis=1, keepdims=True)
    return np.divide(counts, totals, out=np.zeros_like(counts), where=totals > 0)


def calculate_markov(history: List[DrawRecord], exclude: Optional[Set[str]] = None) -> ScoreMap:
    """Mean transition probability from the latest draw's numbers to each number."""
    filtered = _prepare(history, exclude, 2)
    if filtered is None:
        return empty_score_map()
    transitions = markov_transition_matrix(filtered)
    latest = [n - 1 for n in filtered[0].numbers]
    return to_score_map(transitions[latest].mean(axis=0) * 100.0)


# --- Information-theoretic ---

def calculate_entropy(history: List[DrawRecord], exclude: Optional[Set[str]] = None) -> ScoreMap:
    """Favors numbers whose entropy contribution falls below the uniform expectation."""
    filtered = _prepare(history, exclude, 5)
    if filtered is None:
        return empty_score_map()

    frequency = appearance_matrix(filtered).sum(axis=0)
    probabilities = frequency / frequency.sum()
    expected = 1.0 / NUMBER_MAX
    contributions = np.where(probabilities > 0, -probabilities * np.log(np.where(probabilities > 0, probabilities, 1.0)), 0.0)
    expected_contribution = -expected * math.log(expected)
    return to_score_map(50.0 + 50.0 * (expected_contribution - contributions) / expected_contribution)


def calculate_entropy_summary(history: List[DrawRecord], exclude: Optional[Set[str]] = None) -> Dict[str, float]:
    """Overall Shannon entropy of the number distribution and its maximum."""
    filtered = _prepare(history, exclude, 1)
    max_entropy = math.log(NUMBER_MAX)
    if filtered is None:
        return {'overall_entropy': 0.0, 'max_entropy': max_entropy}
    frequency = appearance_matrix(filtered).sum(axis=0)
    return {'overall_entropy': float(stats.entropy(frequency)), 'max_entropy': max_entropy}


# --- Clustering ---

def build_clusters(matrix: np.ndarray, threshold: float = CLUSTER_SIMILARITY_THRESHOLD) -> List[List[int]]:
    """
    Greedy clustering over cosine similarity of appearance vectors.

    Numbers are visited by descending frequency; each unassigned number opens
    a cluster and pulls in every unassigned number at or above `threshold`.

    Returns:
        List of clusters as zero-based column indices
    """
    similarity = cosine_similarity(matrix.T)
    order = np.argsort(-matrix.sum(axis=0), kind='stable')
    assigned = np.zeros(NUMBER_MAX, dtype=bool)
    clusters = []
    for col in order:
        if assigned[col]:
            continue
        members = [int(col)]
        assigned[col] = True
        for other in order:
            if not assigned[other] and similarity[col, other] >= threshold:
                members.append(int(other))
                assigned[other] = True
        clusters.append(members)
    return clusters


def calculate_clustering(history: List[DrawRecord], exclude: Optional[Set[str]] = None) -> ScoreMap:
    """Boosts numbers whose cluster is heavily represented in the latest draw."""
    filtered = _prepare(history, exclude, 10)
    if filtered is None:
        return empty_score_map()

    matrix = appearance_matrix(filtered[:CLUSTER_WINDOW])
    latest = {n - 1 for n in filtered[0].numbers}
    scores = np.zeros(NUMBER_MAX)
    for members in build_clusters(matrix):
        heat = sum(1 for col in members if col in latest) / len(members)
        scores[members] = heat * 100.0
    return to_score_map(scores)


# --- Range distribution ---

def calculate_range_distribution(history: List[DrawRecord], exclude: Optional[Set[str]] = None) -> ScoreMap:
    """Hit rate of fixed numeric bins over a recent window; numbers in hot bins score higher."""
    filtered = _prepare(history, exclude, 5)
    if filtered is None:
        return empty_score_map()

    recent = filtered[:RANGE_WINDOW]
    rates = []
    for low, high in HYBRID_BINS:
        hits = sum(1 for draw in recent for n in draw.numbers if low <= n <= high)
        rates.append(hits / ((high - low + 1) * len(recent)))

    max_rate = max(rates)
    if max_rate == 0:
        return empty_score_map()
    mean_rate = float(np.mean(rates))

    scores = empty_score_map()
    for (low, high), rate in zip(HYBRID_BINS, rates):
        value = rate / max_rate * 80.0 + (20.0 if rate >= mean_rate else 0.0)
        for n in range(low, high + 1):
            scores[n] = value
    return scores


def describe_history(history: List[DrawRecord], exclude: Optional[Set[str]] = None) -> Dict[str, Any]:
    """Summary statistics of the (filtered) history."""
    filtered = filter_history(history, exclude)
    frequency = calculate_frequency(filtered)
    total_numbers = int(sum(frequency.values()))
    most_frequent = sorted(frequency.items(), key=lambda item: (-item[1], item[0]))[:5]

    summary = {
        'total_periods': len(filtered),
        'total_numbers': total_numbers,
        'average_frequency': total_numbers / NUMBER_MAX,
        'most_frequent': [{'number': n, 'count': int(count)} for n, count in most_frequent],
    }
    if exclude:
        summary['original_total_periods'] = len(history)
        summary['excluded_periods'] = len(history) - len(filtered)
    logger.debug(f"History summary: {summary['total_periods']} periods, {total_numbers} numbers")
    return summary
