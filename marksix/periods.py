"""
Period Utilities
================

Parsing of draw period identifiers and the consecutive-period check that
gates which historical windows are valid training sets.

Two textual forms are supported:
    - "YY/NNN"   e.g. "24/015" (two-digit years below 50 are 20xx, others 19xx)
    - "YYYYNNN"  e.g. "2024015"
"""

import re
from typing import Iterable, List, Optional, Set

from loguru import logger

from marksix.exceptions import InvalidPeriodIdentifierError
from marksix.models import DrawRecord, PeriodKey

SHORT_FORMAT = re.compile(r"^(\d{2})/(\d+)$")
LONG_FORMAT = re.compile(r"^(\d{4})(\d{3})$")


def parse_period_identifier(identifier: str) -> PeriodKey:
    """
    Splits a period identifier into its year and sequence number.

    Args:
        identifier: Period identifier in "YY/NNN" or "YYYYNNN" form

    Returns:
        PeriodKey: Parsed year and sequence

    Raises:
        InvalidPeriodIdentifierError: If the identifier matches neither form
    """
    text = str(identifier).strip()

    match = SHORT_FORMAT.match(text)
    if match:
        short_year = int(match.group(1))
        year = 2000 + short_year if short_year < 50 else 1900 + short_year
        return PeriodKey(year=year, sequence=int(match.group(2)))

    match = LONG_FORMAT.match(text)
    if match:
        return PeriodKey(year=int(match.group(1)), sequence=int(match.group(2)))

    raise InvalidPeriodIdentifierError(f"Unrecognized period identifier: '{identifier}'")


def try_parse_period(identifier: str) -> Optional[PeriodKey]:
    """Parses an identifier, returning None instead of raising."""
    try:
        return parse_period_identifier(identifier)
    except InvalidPeriodIdentifierError:
        return None


def is_next_period(previous: str, current: str) -> bool:
    """
    Checks whether `current` is the period right after `previous`.

    Unparseable identifiers are never consecutive.
    """
    previous_key = try_parse_period(previous)
    current_key = try_parse_period(current)
    if previous_key is None or current_key is None:
        logger.debug(f"Cannot compare periods '{previous}' and '{current}'")
        return False
    return previous_key.is_followed_by(current_key)


def filter_history(history: Iterable[DrawRecord], exclude: Optional[Set[str]] = None) -> List[DrawRecord]:
    """Drops every draw whose period identifier is in `exclude`."""
    if not exclude:
        return list(history)
    return [draw for draw in history if draw.period_identifier not in exclude]


def validate_history_order(history: List[DrawRecord]) -> bool:
    """
    Verifies that history is ordered most-recent-first.

    Returns:
        bool: False when two parseable neighbours are out of order
    """
    keys = [try_parse_period(draw.period_identifier) for draw in history]
    for newer, older in zip(keys, keys[1:]):
        if newer is None or older is None:
            continue
        if (newer.year, newer.sequence) < (older.year, older.sequence):
            logger.warning(f"History out of order: {older} appears after {newer}")
            return False
    return True
