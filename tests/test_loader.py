"""
Tests for history loading and configuration
===========================================
"""

import json

import pytest

from marksix.config import DEFAULT_WEIGHTS, EngineConfig
from marksix.loader import DrawHistoryLoader


class TestDrawHistoryLoader:
    """Test suite for DrawHistoryLoader."""

    def test_csv_with_number_columns(self, tmp_path):
        path = tmp_path / "history.csv"
        path.write_text(
            "period,date,n1,n2,n3,n4,n5,n6\n"
            "24/001,2024-01-02,5,12,19,23,38,44\n"
            "24/002,2024-01-04,1,2,3,4,5,6\n"
        )
        draws = DrawHistoryLoader().load(str(path))
        assert [draw.period_identifier for draw in draws] == ["24/002", "24/001"]
        assert draws[1].numbers == (5, 12, 19, 23, 38, 44)

    def test_csv_with_numbers_column_skips_invalid(self, tmp_path):
        path = tmp_path / "history.csv"
        path.write_text(
            "period,numbers\n"
            "2024010,\"1 2 3 4 5 6\"\n"
            "2024011,\"1,2,3,4,5,60\"\n"
            "2024012,\"7 8 9 10 11 12\"\n"
        )
        draws = DrawHistoryLoader().load(str(path))
        assert [draw.period_identifier for draw in draws] == ["2024012", "2024010"]

    def test_csv_skips_short_rows(self, tmp_path):
        path = tmp_path / "history.csv"
        path.write_text(
            "period,numbers\n"
            "2024010,\"1 2 3 4 5 6\"\n"
            "2024011,\"1 2 3 4 5\"\n"
        )
        draws = DrawHistoryLoader().load(str(path))
        assert [draw.period_identifier for draw in draws] == ["2024010"]

    def test_json(self, tmp_path):
        path = tmp_path / "history.json"
        path.write_text(json.dumps([
            {"periodNumber": "23/150", "date": "2023-12-30", "numbers": [3, 9, 15, 21, 27, 33]},
            {"period": "24/001", "date": "2024-01-02", "numbers": [4, 10, 16, 22, 28, 34]},
        ]))
        draws = DrawHistoryLoader().load(str(path))
        assert draws[0].period_identifier == "24/001"
        assert draws[1].numbers == (3, 9, 15, 21, 27, 33)

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            DrawHistoryLoader().load(str(tmp_path / "missing.csv"))


class TestEngineConfig:
    """Test suite for EngineConfig.from_ini()."""

    def test_missing_file_gives_defaults(self, tmp_path):
        config = EngineConfig.from_ini(str(tmp_path / "missing.ini"))
        assert config == EngineConfig()

    def test_overrides(self, tmp_path):
        path = tmp_path / "config.ini"
        path.write_text(
            "[scoring]\nuse_neural = false\n\n"
            "[neural]\nhidden_layers = 8, 4\n\n"
            "[simulation]\nnum_simulations = 250\n\n"
            "[adaptation]\nmin_weight = 0.02\nmax_weight = 0.4\n"
        )
        config = EngineConfig.from_ini(str(path))
        assert config.use_neural is False
        assert config.neural_hidden_layers == (8, 4)
        assert config.num_simulations == 250
        assert config.weight_bounds == (0.02, 0.4)
        assert config.target_hit_count == 3
        assert set(config.seed_weight_sets['default']) == set(DEFAULT_WEIGHTS)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
