"""
Ordinary least-squares demand model over the full feature vector.
"""

from typing import Dict, Any, List, Optional, Sequence, Tuple
import logging

import numpy as np
from sklearn.linear_model import LinearRegression

from features.feature_engineer import FEATURE_NAMES, FeatureVector, feature_vector_to_array, features_to_matrix
from features.sample_builder import TrainingSample
from utils.exceptions import DataValidationError
from .base_model import PredictionModel

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


class LinearDemandModel(PredictionModel):
    """
    Multivariate linear regression with intercept.
    Predictions are floored at zero.
    """

    def __init__(self, **kwargs):
        super().__init__("LinearRegression", "regression", **kwargs)
        self.model = None
        self.coefficients: Optional[np.ndarray] = None
        self.intercept: float = 0.0

    def train(self, samples: Sequence[TrainingSample]) -> Dict[str, float]:
        """Fit least squares on all samples and report in-sample metrics."""
        self.validate_samples(samples)

        X = features_to_matrix(s.features for s in samples)
        y = np.array([s.demand for s in samples], dtype=float)

        self.model = LinearRegression()
        self.model.fit(X, y)
        self.coefficients = np.asarray(self.model.coef_, dtype=float).copy()
        self.intercept = float(self.model.intercept_)
        self.is_fitted = True

        predictions = np.maximum(0.0, X @ self.coefficients + self.intercept)
        metrics = self._evaluate(y, predictions)
        metrics['training_samples'] = len(samples)
        metrics['testing_samples'] = 0

        self.training_metrics = metrics
        self._record_training(metrics, len(samples))
        return metrics

    def predict(self, features: FeatureVector, region: Optional[str] = None,
                days_ahead: int = 0) -> float:
        self.check_is_fitted()
        x = feature_vector_to_array(features)
        return max(0.0, float(np.dot(x, self.coefficients) + self.intercept))

    def get_feature_importance(self) -> Optional[Dict[str, float]]:
        """Absolute coefficients normalised by the largest."""
        if self.coefficients is None:
            return None
        magnitudes = np.abs(self.coefficients)
        top = magnitudes.max() if magnitudes.size and magnitudes.max() > 0 else 1.0
        return {name: float(m / top) for name, m in zip(self.feature_names, magnitudes)}

    def get_coefficients(self) -> List[Tuple[str, float]]:
        """Coefficients ordered by descending magnitude."""
        self.check_is_fitted()
        pairs = [(name, float(c)) for name, c in zip(self.feature_names, self.coefficients)]
        return sorted(pairs, key=lambda p: abs(p[1]), reverse=True)

    def serialize(self) -> Dict[str, Any]:
        """
        Coefficients in the storage format.

        Returns:
            Dictionary with coefficients, feature_names and intercept
        """
        self.check_is_fitted()
        return {
            'coefficients': [float(c) for c in self.coefficients],
            'feature_names': list(self.feature_names),
            'intercept': self.intercept
        }

    @classmethod
    def load_serialized(cls, data: Dict[str, Any]) -> 'LinearDemandModel':
        """
        Build a ready-to-predict model from stored coefficients.

        Raises:
            DataValidationError: If the stored feature layout does not match
        """
        if list(data.get('feature_names', [])) != list(FEATURE_NAMES):
            raise DataValidationError("Stored feature names do not match the current feature layout")
        if len(data.get('coefficients', [])) != len(FEATURE_NAMES):
            raise DataValidationError(
                f"Expected {len(FEATURE_NAMES)} coefficients, got {len(data.get('coefficients', []))}")

        model = cls()
        model._set_model_state(data)
        model.is_fitted = True
        logger.info(f"Loaded linear model with {len(model.coefficients)} stored coefficients")
        return model

    def _get_model_state(self) -> Dict[str, Any]:
        return self.serialize()

    def _set_model_state(self, state: Dict[str, Any]) -> None:
        self.coefficients = np.asarray(state['coefficients'], dtype=float)
        self.intercept = float(state['intercept'])
        self.model = None
