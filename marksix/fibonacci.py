"""
Fibonacci Sequence Indicator
============================

Scores numbers by how their appearance history lines up with the Fibonacci
sequence and the golden ratio:

    - membership of the number itself in the sequence
    - inter-appearance gaps close to Fibonacci values (±20%, minimum 1)
    - golden-ratio scaled prediction of the next gap
    - Fibonacci differences to neighbours in the sorted draw
    - periodicity of the gap since last seen
    - recent appearances at Fibonacci-indexed positions

A strong-signal bonus is added when several sub-checks agree.
"""

import math
from typing import Dict, List, Optional, Set, Tuple

from marksix.config import ALL_NUMBERS
from marksix.indicators import ScoreMap, empty_score_map
from marksix.models import DrawRecord
from marksix.periods import filter_history

FIBONACCI_SEQUENCE: List[int] = [1, 1, 2, 3, 5, 8, 13, 21, 34]
FIBONACCI_SET: Set[int] = set(FIBONACCI_SEQUENCE)
GOLDEN_RATIO: float = 1.618033988749895
GOLDEN_RATIO_INVERSE: float = 0.618033988749895
MAX_SCORE: float = 200.0
RECENT_WINDOW: int = 10


def _tolerance(value: float, share: float = 0.2) -> int:
    return max(1, math.ceil(value * share))


def score_membership(number: int) -> Tuple[int, int]:
    if number in FIBONACCI_SET:
        return 30, 1
    return 0, 0


def score_gap_patterns(gaps: List[int]) -> Tuple[int, int]:
    score, strong, matches = 0, 0, 0
    for gap in gaps:
        for fib in FIBONACCI_SEQUENCE:
            diff = abs(gap - fib)
            if diff <= _tolerance(fib):
                score += round((1 - diff / (fib + 1)) * 15)
                matches += 1
                if diff == 0:
                    strong += 1
    if matches >= 2:
        score += 25
        strong += 1
    return score, strong


def score_golden_ratio(gaps: List[int], current_gap: int) -> Tuple[int, int]:
    """`gaps` are in chronological order, so gaps[-1] is the latest completed gap."""
    score, strong = 0, 0
    if not gaps:
        return score, strong

    last_gap = gaps[-1]
    for ratio, weight in ((GOLDEN_RATIO, 35), (GOLDEN_RATIO_INVERSE, 25)):
        predicted = round(last_gap * ratio)
        diff = abs(current_gap - predicted)
        if diff <= _tolerance(predicted):
            score += round((1 - diff / (predicted + 1)) * weight)
            if diff <= _tolerance(predicted, 0.05):
                strong += 1

    if len(gaps) >= 2:
        previous, latest = gaps[-2], gaps[-1]
        ratio = latest / previous if previous else 0.0
        if abs(ratio - GOLDEN_RATIO) < 0.3 or abs(ratio - GOLDEN_RATIO_INVERSE) < 0.3:
            score += 20
            strong += 1
    return score, strong


def score_position_relationships(number: int, history: List[DrawRecord]) -> Tuple[int, int]:
    score, strong, matches = 0, 0, 0
    for draw in history:
        ordered = draw.numbers
        if number not in ordered:
            continue
        index = ordered.index(number)
        if index > 0 and (number - ordered[index - 1]) in FIBONACCI_SET:
            score += 15
            matches += 1
        if index < len(ordered) - 1 and (ordered[index + 1] - number) in FIBONACCI_SET:
            score += 15
            matches += 1
        if (index + 1) in FIBONACCI_SET:
            score += 12
    if matches >= 3:
        score += 20
        strong += 1
    return score, strong


def score_periodicity(number: int, gaps: List[int], gap_since_last: Optional[int]) -> Tuple[int, int]:
    score, strong = 0, 0
    if gap_since_last is None:
        if number in FIBONACCI_SET:
            score += 20
        return score, strong

    matches = 0
    for fib in FIBONACCI_SEQUENCE:
        diff = abs(gap_since_last - fib)
        if diff <= _tolerance(fib):
            score += round((1 - diff / (fib + 1)) * 20)
            matches += 1
            if diff == 0:
                strong += 1
    if matches >= 2:
        score += 30
        strong += 1

    if gaps:
        predicted = round(sum(gaps) / len(gaps) * GOLDEN_RATIO)
        if abs(gap_since_last - predicted) <= _tolerance(predicted):
            score += 25
            strong += 1
    return score, strong


def strong_signal_bonus(strong_signals: int) -> int:
    if strong_signals >= 3:
        return 50
    if strong_signals >= 2:
        return 30
    if strong_signals >= 1:
        return 15
    return 0


def score_recent_positions(number: int, history: List[DrawRecord]) -> Tuple[int, int]:
    """Appearances at Fibonacci-indexed positions among the last 10 periods."""
    if len(history) < 5:
        return 0, 0
    matches = 0
    for index, draw in enumerate(history[:RECENT_WINDOW]):
        if number in draw.numbers:
            matches += sum(1 for fib in FIBONACCI_SEQUENCE if index == fib - 1)
    return matches * 15, (1 if matches >= 2 else 0)


def calculate_fibonacci(history: List[DrawRecord], exclude: Optional[Set[str]] = None) -> ScoreMap:
    """Fibonacci / golden-ratio indicator, clamped to [0, 200]."""
    filtered = filter_history(history, exclude)
    if not filtered:
        return empty_score_map()

    scores = empty_score_map()
    for number in ALL_NUMBERS:
        appearances = [index for index, draw in enumerate(filtered) if number in draw.numbers]
        # chronological gaps between consecutive appearances
        gaps = [older - newer for newer, older in zip(appearances, appearances[1:])][::-1]
        gap_since_last = appearances[0] if appearances else None

        total, strong = score_membership(number)
        if len(appearances) > 1:
            for part_score, part_strong in (score_gap_patterns(gaps), score_golden_ratio(gaps, gap_since_last)):
                total += part_score
                strong += part_strong

        for part_score, part_strong in (score_position_relationships(number, filtered),
                                        score_periodicity(number, gaps, gap_since_last)):
            total += part_score
            strong += part_strong

        total += strong_signal_bonus(strong)
        recent_score, _ = score_recent_positions(number, filtered)
        total += recent_score

        scores[number] = float(min(MAX_SCORE, max(0, total)))
    return scores


def fibonacci_summary() -> Dict[str, object]:
    return {
        'fibonacci_sequence': list(FIBONACCI_SEQUENCE),
        'golden_ratio': round(GOLDEN_RATIO, 6),
    }
