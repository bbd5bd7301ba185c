"""
Configuration for the MarkSix engine.

This file contains the key parameters for indicator scoring, candidate
selection, simulation and the adaptive backtest. Centralizing them makes it
easy to fine-tune the strategy without modifying the core logic. Every value
can be overridden from config/config.ini through EngineConfig.from_ini().
"""
import configparser
import os
from dataclasses import dataclass, field
from typing import Dict, List, Tuple

from loguru import logger

# --- Number Domain ---
NUMBER_MIN: int = 1
NUMBER_MAX: int = 49
NUMBERS_PER_DRAW: int = 6
ALL_NUMBERS: List[int] = list(range(NUMBER_MIN, NUMBER_MAX + 1))

# --- Targets ---
TARGET_HIT_COUNT: int = 3
TARGET_ACCURACY: float = 50.0

# --- Scoring ---
TOP_NUMBERS_COUNT: int = 40
DECAY_FACTOR: float = 0.95
PATTERN_WINDOW: int = 10
TREND_MAX_WINDOW: int = 10
CLUSTER_WINDOW: int = 50
CLUSTER_SIMILARITY_THRESHOLD: float = 0.3
RANGE_WINDOW: int = 20

# Indicator weights used when the caller supplies none
DEFAULT_WEIGHTS: Dict[str, float] = {
    'frequency': 0.06,
    'weighted_frequency': 0.08,
    'pattern': 0.05,
    'gap': 0.08,
    'survival': 0.05,
    'extreme_value': 0.04,
    'distribution': 0.08,
    'chi_square': 0.03,
    'poisson': 0.03,
    'trend': 0.07,
    'combinatorial': 0.07,
    'correlation': 0.06,
    'markov': 0.08,
    'entropy': 0.05,
    'clustering': 0.05,
    'fibonacci': 0.07,
    'range_distribution': 0.05,
}

INDICATOR_NAMES: List[str] = list(DEFAULT_WEIGHTS.keys())

# Bounds applied by the weight adapter
WEIGHT_BOUNDS: Tuple[float, float] = (0.05, 0.5)

# Hand-authored seed weight sets tried before the replay
SEED_WEIGHT_SETS: Dict[str, Dict[str, float]] = {
    'default': dict(DEFAULT_WEIGHTS),
    'frequency_focus': {
        'frequency': 0.14, 'weighted_frequency': 0.16, 'pattern': 0.10,
        'gap': 0.05, 'distribution': 0.05, 'trend': 0.05, 'markov': 0.05,
    },
    'recency_focus': {
        'gap': 0.14, 'survival': 0.12, 'extreme_value': 0.10,
        'pattern': 0.08, 'trend': 0.08,
    },
    'distribution_focus': {
        'distribution': 0.15, 'chi_square': 0.10, 'poisson': 0.10,
        'entropy': 0.10, 'range_distribution': 0.08,
    },
    'relational_focus': {
        'correlation': 0.14, 'markov': 0.16, 'clustering': 0.12,
        'combinatorial': 0.10,
    },
    'trend_focus': {
        'trend': 0.16, 'gap': 0.12, 'distribution': 0.10,
        'markov': 0.12, 'fibonacci': 0.08,
    },
    'balanced': {name: 1.0 / len(DEFAULT_WEIGHTS) for name in DEFAULT_WEIGHTS},
}

# --- Range bins ---
EVEN_BINS: List[Tuple[int, int]] = [(1, 8), (9, 16), (17, 24), (25, 32), (33, 40), (41, 49)]
HYBRID_BINS: List[Tuple[int, int]] = [(1, 10), (11, 20), (21, 30), (31, 40), (41, 49)]

# --- Paths ---
DEFAULT_CONFIG_PATH: str = "config/config.ini"
DEFAULT_LOG_FILE: str = "logs/marksix.log"


@dataclass
class EngineConfig:
    """Tunable parameters of the scoring and backtesting engine."""

    # scoring
    top_numbers_count: int = TOP_NUMBERS_COUNT
    use_neural: bool = True
    neural_blend_weight: float = 0.15
    neural_top_k: int = 10

    # neural predictor
    neural_lookback: int = 10
    neural_max_samples: int = 30
    neural_min_samples: int = 10
    neural_hidden_layers: Tuple[int, ...] = (32, 16)
    neural_epochs: int = 15
    neural_learning_rate: float = 0.01
    neural_batch_size: int = 5
    neural_random_state: int = 42

    # simulation
    num_simulations: int = 500
    evaluation_top_k: int = 3
    history_window: int = 15
    optimization_max_iterations: int = 10
    optimization_hit_threshold: float = 0.1
    optimization_min_keep: int = 2

    # backtest
    target_hit_count: int = TARGET_HIT_COUNT
    target_accuracy: float = TARGET_ACCURACY
    min_history_periods: int = 10
    seed_max_periods: int = 100
    seed_sample_stride: int = 1
    seed_workers: int = 1
    perturbation_scale: float = 0.3
    random_seed: int = 42

    # weight adaptation
    weight_bounds: Tuple[float, float] = WEIGHT_BOUNDS
    base_learning_rate: float = 0.30
    max_learning_rate: float = 0.75
    accuracy_gap_scale: float = 30.0
    hit_gap_multiplier: float = 0.6
    low_accuracy_priority: float = 1.8
    hit_gap_priority: float = 1.3
    accuracy_adjustment_divisor: float = 80.0
    hit_adjustment_factor: float = 0.3
    increase_factor: float = 1.3
    decrease_factor: float = 1.2
    fine_tune_steps: Tuple[float, float] = (0.03, 0.015)

    seed_weight_sets: Dict[str, Dict[str, float]] = field(
        default_factory=lambda: {name: dict(w) for name, w in SEED_WEIGHT_SETS.items()}
    )

    @classmethod
    def from_ini(cls, config_path: str = DEFAULT_CONFIG_PATH) -> "EngineConfig":
        """
        Builds an EngineConfig from an INI file.

        Missing files, sections or keys fall back to the module defaults.

        Args:
            config_path: Path to the INI file

        Returns:
            EngineConfig: Loaded configuration
        """
        defaults = cls()
        config = configparser.ConfigParser()

        if not os.path.exists(config_path):
            logger.warning(f"Configuration file not found: {config_path}, using defaults")
            return defaults

        config.read(config_path)
        logger.info(f"Configuration loaded from {config_path}")

        hidden_raw = config.get("neural", "hidden_layers", fallback=None)
        hidden_layers = defaults.neural_hidden_layers
        if hidden_raw:
            hidden_layers = tuple(int(part) for part in hidden_raw.split(",") if part.strip())

        lower = config.getfloat("adaptation", "min_weight", fallback=defaults.weight_bounds[0])
        upper = config.getfloat("adaptation", "max_weight", fallback=defaults.weight_bounds[1])

        return cls(
            top_numbers_count=config.getint("scoring", "top_numbers_count", fallback=defaults.top_numbers_count),
            use_neural=config.getboolean("scoring", "use_neural", fallback=defaults.use_neural),
            neural_blend_weight=config.getfloat("scoring", "neural_blend_weight", fallback=defaults.neural_blend_weight),
            neural_top_k=config.getint("scoring", "neural_top_k", fallback=defaults.neural_top_k),
            neural_lookback=config.getint("neural", "lookback", fallback=defaults.neural_lookback),
            neural_max_samples=config.getint("neural", "max_samples", fallback=defaults.neural_max_samples),
            neural_min_samples=config.getint("neural", "min_samples", fallback=defaults.neural_min_samples),
            neural_hidden_layers=hidden_layers,
            neural_epochs=config.getint("neural", "epochs", fallback=defaults.neural_epochs),
            neural_learning_rate=config.getfloat("neural", "learning_rate", fallback=defaults.neural_learning_rate),
            neural_batch_size=config.getint("neural", "batch_size", fallback=defaults.neural_batch_size),
            neural_random_state=config.getint("neural", "random_state", fallback=defaults.neural_random_state),
            num_simulations=config.getint("simulation", "num_simulations", fallback=defaults.num_simulations),
            evaluation_top_k=config.getint("simulation", "evaluation_top_k", fallback=defaults.evaluation_top_k),
            history_window=config.getint("simulation", "history_window", fallback=defaults.history_window),
            optimization_max_iterations=config.getint(
                "simulation", "optimization_max_iterations", fallback=defaults.optimization_max_iterations
            ),
            optimization_hit_threshold=config.getfloat(
                "simulation", "optimization_hit_threshold", fallback=defaults.optimization_hit_threshold
            ),
            optimization_min_keep=config.getint(
                "simulation", "optimization_min_keep", fallback=defaults.optimization_min_keep
            ),
            target_hit_count=config.getint("backtest", "target_hit_count", fallback=defaults.target_hit_count),
            target_accuracy=config.getfloat("backtest", "target_accuracy", fallback=defaults.target_accuracy),
            min_history_periods=config.getint("backtest", "min_history_periods", fallback=defaults.min_history_periods),
            seed_max_periods=config.getint("backtest", "seed_max_periods", fallback=defaults.seed_max_periods),
            seed_sample_stride=config.getint("backtest", "seed_sample_stride", fallback=defaults.seed_sample_stride),
            seed_workers=config.getint("backtest", "seed_workers", fallback=defaults.seed_workers),
            perturbation_scale=config.getfloat("backtest", "perturbation_scale", fallback=defaults.perturbation_scale),
            random_seed=config.getint("backtest", "random_seed", fallback=defaults.random_seed),
            weight_bounds=(lower, upper),
            base_learning_rate=config.getfloat("adaptation", "base_learning_rate", fallback=defaults.base_learning_rate),
            max_learning_rate=config.getfloat("adaptation", "max_learning_rate", fallback=defaults.max_learning_rate),
            accuracy_gap_scale=config.getfloat("adaptation", "accuracy_gap_scale", fallback=defaults.accuracy_gap_scale),
            hit_gap_multiplier=config.getfloat("adaptation", "hit_gap_multiplier", fallback=defaults.hit_gap_multiplier),
            low_accuracy_priority=config.getfloat("adaptation", "low_accuracy_priority", fallback=defaults.low_accuracy_priority),
            hit_gap_priority=config.getfloat("adaptation", "hit_gap_priority", fallback=defaults.hit_gap_priority),
            accuracy_adjustment_divisor=config.getfloat(
                "adaptation", "accuracy_adjustment_divisor", fallback=defaults.accuracy_adjustment_divisor
            ),
            hit_adjustment_factor=config.getfloat("adaptation", "hit_adjustment_factor", fallback=defaults.hit_adjustment_factor),
            increase_factor=config.getfloat("adaptation", "increase_factor", fallback=defaults.increase_factor),
            decrease_factor=config.getfloat("adaptation", "decrease_factor", fallback=defaults.decrease_factor),
        )
