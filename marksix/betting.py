"""
Compound Bet Suggestions
========================

Turns the leading numbers of a ranking into compound bets. A compound bet
on n >= 7 numbers is every 6-number combination of them, C(n, 6) single
bets in total.
"""

from itertools import combinations
from math import comb
from typing import Any, Dict, List, Sequence

from loguru import logger

from marksix.config import NUMBER_MAX, NUMBER_MIN, NUMBERS_PER_DRAW
from marksix.exceptions import InsufficientDataError

BET_COST: int = 10
MAX_BETS_LISTED: int = 1000


def generate_combinations(numbers: Sequence[int], k: int) -> List[List[int]]:
    """All k-number combinations, in lexicographic order of positions."""
    if k < 0 or k > len(numbers):
        return []
    return [list(combo) for combo in combinations(numbers, k)]


def _clean(numbers: Sequence) -> List[int]:
    cleaned = []
    for item in numbers:
        value = getattr(item, 'number', item)
        try:
            value = int(value)
        except (TypeError, ValueError):
            continue
        if NUMBER_MIN <= value <= NUMBER_MAX and value not in cleaned:
            cleaned.append(value)
    return cleaned


def compound_bet_suggestions(numbers: Sequence, min_count: int = 7, max_count: int = 12,
                             bet_cost: int = BET_COST) -> List[Dict[str, Any]]:
    """
    Compound bet options on the first 7..12 numbers.

    Args:
        numbers: Ranked numbers (ints or objects with a `number` attribute)

    Raises:
        InsufficientDataError: If fewer than `min_count` valid numbers are given
    """
    ranked = _clean(numbers)
    if len(ranked) < min_count:
        raise InsufficientDataError(
            f"At least {min_count} numbers are needed for compound bets", required=min_count, available=len(ranked)
        )

    suggestions = []
    for count in range(min_count, min(max_count, len(ranked)) + 1):
        selected = ranked[:count]
        total_bets = comb(count, NUMBERS_PER_DRAW)
        bets = generate_combinations(selected, NUMBERS_PER_DRAW)[:MAX_BETS_LISTED]
        suggestions.append({
            'number_count': count,
            'numbers': selected,
            'bets': bets,
            'total_bets': total_bets,
            'total_amount': total_bets * bet_cost,
            'is_complete': total_bets <= MAX_BETS_LISTED,
            'strategy': f"{count}-number compound",
        })
    return suggestions


def compound_bet_suggestion_100(numbers: Sequence, bet_cost: int = BET_COST) -> Dict[str, Any]:
    """
    Ten bets covering the 15 leading numbers: a core of the first 8 and an
    outer group of the next 7.

    Raises:
        InsufficientDataError: If fewer than 15 valid numbers are given
    """
    ranked = _clean(numbers)[:15]
    if len(ranked) < 15:
        raise InsufficientDataError("At least 15 numbers are needed", required=15, available=len(ranked))

    core, outer = ranked[:8], ranked[8:]
    target = 10
    bets: List[List[int]] = []
    seen = set()

    def add(bet: List[int]) -> None:
        key = tuple(sorted(bet))
        if key not in seen and len(bets) < target:
            seen.add(key)
            bets.append(list(key))

    for bet in generate_combinations(core, 6)[:2]:
        add(bet)
    for index, core5 in enumerate(generate_combinations(core, 5)[:4]):
        add(core5 + [outer[index % len(outer)]])
    for core4, outer2 in zip(generate_combinations(core, 4)[:2], generate_combinations(outer, 2)[:2]):
        add(core4 + outer2)

    outer3 = generate_combinations(outer, 3)
    for core3 in generate_combinations(core, 3):
        if len(bets) >= target:
            break
        add(core3 + outer3[0])

    if len(bets) < target:
        for core2 in generate_combinations(core, 2):
            for outer4 in generate_combinations(outer, 4):
                add(core2 + outer4)
                if len(bets) >= target:
                    break
            if len(bets) >= target:
                break

    covered = sorted({n for bet in bets for n in bet})
    logger.debug(f"$100 suggestion: {len(bets)} bets covering {len(covered)} numbers")
    return {
        'numbers': ranked,
        'bets': bets,
        'total_bets': len(bets),
        'total_amount': len(bets) * bet_cost,
        'covered_numbers': covered,
        'strategy': 'core-outer selection',
    }
