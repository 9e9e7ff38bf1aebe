"""
Evaluation utilities for demand prediction models.
Provides error metrics and time-ordered train/validation splitting.
"""

from typing import Dict, List, Optional, Sequence, Tuple, TypeVar
import logging

import numpy as np
from sklearn.metrics import mean_absolute_error, mean_squared_error, r2_score

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

T = TypeVar('T')


def chronological_split(samples: Sequence[T], validation_fraction: float = 0.2) -> Tuple[List[T], List[T]]:
    """
    Split time-ordered samples into leading training and trailing validation parts.

    Args:
        samples: Samples already ordered by time
        validation_fraction: Fraction of samples held out at the end

    Returns:
        Tuple of (train_samples, validation_samples)
    """
    if not 0 <= validation_fraction < 1:
        raise ValueError("validation_fraction must be within [0, 1)")

    split_idx = int(len(samples) * (1 - validation_fraction))
    return list(samples[:split_idx]), list(samples[split_idx:])


class ModelEvaluator:
    """
    Model evaluation with the metrics reported by every demand model.
    """

    def __init__(self):
        """Initialize the model evaluator."""
        self.metrics_registry = {
            'mae': self._mean_absolute_error,
            'mse': self._mean_squared_error,
            'rmse': self._root_mean_squared_error,
            'mape': self._mean_absolute_percentage_error,
            'r2': self._r_squared,
            'bias': self._forecast_bias
        }

    def evaluate_model(self,
                       y_true: np.ndarray,
                       y_pred: np.ndarray,
                       metrics: Optional[List[str]] = None) -> Dict[str, float]:
        """
        Evaluate predictions using multiple metrics.

        Args:
            y_true: True values
            y_pred: Predicted values
            metrics: List of metrics to compute (if None, uses all)

        Returns:
            Dictionary of metric names and values
        """
        if metrics is None:
            metrics = list(self.metrics_registry.keys())

        y_true = np.asarray(y_true, dtype=float)
        y_pred = np.asarray(y_pred, dtype=float)
        if len(y_true) != len(y_pred):
            raise ValueError("y_true and y_pred must have the same length")

        results = {}
        if len(y_true) == 0:
            logger.warning("No values to evaluate")
            return {metric: np.nan for metric in metrics}

        for metric in metrics:
            if metric in self.metrics_registry:
                results[metric] = float(self.metrics_registry[metric](y_true, y_pred))
            else:
                logger.warning(f"Unknown metric: {metric}")

        return results

    # Metric implementations
    def _mean_absolute_error(self, y_true: np.ndarray, y_pred: np.ndarray) -> float:
        return mean_absolute_error(y_true, y_pred)

    def _mean_squared_error(self, y_true: np.ndarray, y_pred: np.ndarray) -> float:
        return mean_squared_error(y_true, y_pred)

    def _root_mean_squared_error(self, y_true: np.ndarray, y_pred: np.ndarray) -> float:
        return np.sqrt(mean_squared_error(y_true, y_pred))

    def _mean_absolute_percentage_error(self, y_true: np.ndarray, y_pred: np.ndarray) -> float:
        """Mean absolute percentage error over non-zero actuals."""
        mask = y_true != 0
        if not np.any(mask):
            return 0.0

        return np.mean(np.abs((y_true[mask] - y_pred[mask]) / y_true[mask])) * 100

    def _r_squared(self, y_true: np.ndarray, y_pred: np.ndarray) -> float:
        if len(y_true) < 2:
            return np.nan
        return r2_score(y_true, y_pred)

    def _forecast_bias(self, y_true: np.ndarray, y_pred: np.ndarray) -> float:
        """Mean of prediction minus actual; positive means over-forecasting."""
        return np.mean(y_pred - y_true)
