"""
Tests for compound bet suggestions
==================================
"""

from math import comb

import pytest

from marksix.betting import compound_bet_suggestion_100, compound_bet_suggestions, generate_combinations
from marksix.exceptions import InsufficientDataError
from marksix.models import RankedNumber


class TestGenerateCombinations:
    """Test suite for generate_combinations()."""

    def test_counts(self):
        assert len(generate_combinations([1, 2, 3, 4, 5, 6, 7], 6)) == 7
        assert generate_combinations([1, 2, 3], 2) == [[1, 2], [1, 3], [2, 3]]

    def test_out_of_range_k(self):
        assert generate_combinations([1, 2], 3) == []


class TestCompoundBets:
    """Test suite for compound bet suggestions."""

    def test_options_for_seven_to_twelve(self):
        suggestions = compound_bet_suggestions(list(range(1, 16)))
        assert [s['number_count'] for s in suggestions] == [7, 8, 9, 10, 11, 12]
        assert suggestions[0]['total_bets'] == 7
        assert suggestions[1]['total_bets'] == 28
        assert suggestions[-1]['total_bets'] == comb(12, 6)
        assert suggestions[1]['total_amount'] == 280

    def test_accepts_ranked_numbers(self):
        ranked = [RankedNumber(number=n, score=100.0 - n) for n in range(10, 18)]
        suggestions = compound_bet_suggestions(ranked)
        assert suggestions[0]['numbers'] == list(range(10, 17))

    def test_too_few_numbers(self):
        with pytest.raises(InsufficientDataError):
            compound_bet_suggestions([1, 2, 3, 4, 5, 6])

    def test_invalid_entries_dropped(self):
        suggestions = compound_bet_suggestions([0, 1, 2, 2, 3, 4, 5, 6, 7, 50, 'x'])
        assert suggestions[0]['numbers'] == [1, 2, 3, 4, 5, 6, 7]
        assert len(suggestions) == 1


class TestHundredDollarSuggestion:
    """Test suite for the ten-bet core/outer selection."""

    def test_ten_distinct_bets(self):
        suggestion = compound_bet_suggestion_100(list(range(1, 21)))
        assert suggestion['total_bets'] == 10
        assert suggestion['total_amount'] == 100
        keys = {tuple(bet) for bet in suggestion['bets']}
        assert len(keys) == 10
        assert all(len(set(bet)) == 6 for bet in suggestion['bets'])
        assert set(suggestion['covered_numbers']) <= set(range(1, 16))

    def test_requires_fifteen_numbers(self):
        with pytest.raises(InsufficientDataError):
            compound_bet_suggestion_100(list(range(1, 15)))


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
