"""
Learned predictor: a small feed-forward network trained on recent occurrence
vectors that outputs a next-period probability for each of the 49 numbers.
"""

import warnings
from typing import List, Optional, Set, Tuple

import numpy as np
from loguru import logger
from sklearn.exceptions import ConvergenceWarning
from sklearn.neural_network import MLPClassifier

from marksix.config import EngineConfig
from marksix.indicators import ScoreMap, to_score_map, appearance_matrix, empty_score_map
from marksix.models import DrawRecord
from marksix.periods import filter_history


class NeuralPredictor:
    def __init__(self, config: Optional[EngineConfig] = None):
        self.config = config or EngineConfig()
        self.lookback = self.config.neural_lookback
        self.model = None
        logger.debug(f"NeuralPredictor initialized: lookback={self.lookback}, "
                     f"hidden={self.config.neural_hidden_layers}")

    def _features(self, matrix: np.ndarray, start: int) -> np.ndarray:
        """Flattened window of `lookback` periods starting at row `start`, plus window frequencies."""
        window = matrix[start:start + self.lookback]
        return np.concatenate([window.ravel(), window.mean(axis=0)])

    def build_training_set(self, history: List[DrawRecord]) -> Tuple[np.ndarray, np.ndarray]:
        """
        Each sample predicts period t from the `lookback` periods right before it.

        Returns:
            X of shape (samples, lookback * 49 + 49) and y of shape (samples, 49)
        """
        matrix = appearance_matrix(history)
        samples = min(self.config.neural_max_samples, len(history) - self.lookback - 1)
        if samples <= 0:
            return np.empty((0, 0)), np.empty((0, 0))

        X = np.array([self._features(matrix, t + 1) for t in range(samples)])
        y = matrix[:samples].astype(int)
        return X, y

    def train(self, history: List[DrawRecord]) -> bool:
        X, y = self.build_training_set(history)
        if len(X) < self.config.neural_min_samples:
            logger.debug(f"Not enough samples to train the predictor ({len(X)})")
            self.model = None
            return False

        self.model = MLPClassifier(
            hidden_layer_sizes=tuple(self.config.neural_hidden_layers),
            activation='logistic',
            solver='sgd',
            learning_rate_init=self.config.neural_learning_rate,
            batch_size=self.config.neural_batch_size,
            max_iter=self.config.neural_epochs,
            shuffle=True,
            random_state=self.config.neural_random_state,
        )
        with warnings.catch_warnings():
            warnings.simplefilter('ignore', category=ConvergenceWarning)
            self.model.fit(X, y)
        return True

    def predict(self, history: List[DrawRecord]) -> ScoreMap:
        """
        Next-period probabilities scaled to [0, 100].

        The targets are multilabel 0/1 vectors, so the classifier trains a
        logistic output layer and predict_proba returns one sigmoid per number.
        """
        if self.model is None or len(history) < self.lookback:
            return empty_score_map()
        features = self._features(appearance_matrix(history), 0).reshape(1, -1)
        probabilities = np.asarray(self.model.predict_proba(features))[0]
        return to_score_map(probabilities * 100.0)


def calculate_neural(history: List[DrawRecord], exclude: Optional[Set[str]] = None,
                     config: Optional[EngineConfig] = None) -> ScoreMap:
    """Trains a fresh predictor on the filtered history and scores the next period."""
    filtered = filter_history(history, exclude)
    predictor = NeuralPredictor(config)
    try:
        if not predictor.train(filtered):
            return empty_score_map()
        return predictor.predict(filtered)
    except ValueError as e:
        logger.warning(f"Neural predictor unavailable: {e}")
        return empty_score_map()
