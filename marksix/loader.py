import json
import os
from typing import Any, Dict, List, Optional

import pandas as pd
from loguru import logger

from marksix.models import DrawRecord
from marksix.periods import try_parse_period

NUMBER_COLUMNS = [f"n{i}" for i in range(1, 7)]


class DrawHistoryLoader:
    """
    Loads draw history from CSV or JSON files into DrawRecords ordered
    most-recent-first.

    CSV files need a `period` column, an optional `date` column and either
    n1..n6 columns or a `numbers` column with the six numbers separated by
    spaces or commas. JSON files hold a list of objects with
    `period` (or `periodNumber`), `date` and `numbers`.
    """

    def __init__(self):
        logger.info("DrawHistoryLoader initialized.")

    def load(self, path: str) -> List[DrawRecord]:
        """
        Loads and sorts a history file.

        Returns:
            List[DrawRecord]: Valid draws, most recent first. Invalid rows are
            logged and skipped.

        Raises:
            FileNotFoundError: If the file does not exist
        """
        if not os.path.exists(path):
            raise FileNotFoundError(f"History file not found: {path}")

        if path.lower().endswith(".json"):
            rows = self._read_json(path)
        else:
            rows = self._read_csv(path)

        draws = []
        for row in rows:
            draw = self._to_draw(row)
            if draw is not None:
                draws.append(draw)

        draws = self.sort_most_recent_first(draws)
        logger.info(f"Loaded {len(draws)} draws from {path}")
        return draws

    def _read_csv(self, path: str) -> List[Dict[str, Any]]:
        df = pd.read_csv(path, dtype=str)
        df.columns = [column.strip().lower() for column in df.columns]
        if 'period' not in df.columns and 'periodnumber' in df.columns:
            df = df.rename(columns={'periodnumber': 'period'})

        rows = []
        for _, record in df.iterrows():
            if all(column in df.columns for column in NUMBER_COLUMNS):
                numbers = [record[column] for column in NUMBER_COLUMNS]
            else:
                numbers = str(record.get('numbers', '')).replace(',', ' ').split()
            rows.append({
                'period': str(record.get('period', '')).strip(),
                'date': '' if pd.isna(record.get('date')) else str(record.get('date')).strip(),
                'numbers': numbers,
            })
        return rows

    def _read_json(self, path: str) -> List[Dict[str, Any]]:
        with open(path, 'r', encoding='utf-8') as f:
            payload = json.load(f)
        if isinstance(payload, dict):
            payload = payload.get('results', payload.get('draws', []))
        return [
            {
                'period': str(item.get('period', item.get('periodNumber', ''))).strip(),
                'date': str(item.get('date', '')).strip(),
                'numbers': item.get('numbers', []),
            }
            for item in payload
        ]

    @staticmethod
    def _to_draw(row: Dict[str, Any]) -> Optional[DrawRecord]:
        try:
            numbers = [int(float(n)) for n in row['numbers']]
            return DrawRecord(period_identifier=row['period'], date=row['date'], numbers=tuple(numbers))
        except (TypeError, ValueError) as e:
            logger.warning(f"Skipping invalid draw {row.get('period')}: {e}")
            return None

    @staticmethod
    def sort_most_recent_first(draws: List[DrawRecord]) -> List[DrawRecord]:
        """Sorts by parsed period key, newest first; unparseable periods go last in file order."""
        parsed = [(try_parse_period(draw.period_identifier), position, draw) for position, draw in enumerate(draws)]
        known = sorted(
            (item for item in parsed if item[0] is not None),
            key=lambda item: (item[0].year, item[0].sequence),
            reverse=True,
        )
        unknown = [item for item in parsed if item[0] is None]
        if unknown:
            logger.warning(f"{len(unknown)} draws have unrecognized period identifiers")
        return [item[2] for item in known + unknown]


def get_history_loader() -> DrawHistoryLoader:
    """
    Factory function to get an instance of DrawHistoryLoader.
    """
    return DrawHistoryLoader()
