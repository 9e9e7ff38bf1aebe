"""
Base model interface for the demand forecasting engine.
Provides the common contract shared by every prediction strategy.
"""

from abc import ABC, abstractmethod
from typing import Dict, List, Any, Optional, Sequence
from datetime import datetime
import logging

import numpy as np

from features.feature_engineer import FeatureVector, get_feature_names
from features.sample_builder import TrainingSample
from utils.exceptions import InsufficientDataError, ModelTrainingError
from .validation import ModelEvaluator

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

DEFAULT_METRICS = ['r2', 'mape', 'rmse', 'mae']


class PredictionModel(ABC):
    """
    Abstract base class for all demand prediction models.
    Defines the common interface that all models must implement.
    """

    def __init__(self, model_name: str, model_type: str, **kwargs):
        """
        Initialize the base model.

        Args:
            model_name: Human-readable name for the model
            model_type: Type category (e.g., 'regression', 'hybrid', 'tree_ensemble')
            **kwargs: Additional model-specific parameters
        """
        self.model_name = model_name
        self.model_type = model_type
        self.model_id = f"{model_type}_{model_name}_{datetime.now().strftime('%Y%m%d_%H%M%S')}"
        self.parameters = kwargs
        self.is_fitted = False
        self.feature_names = get_feature_names()
        self.training_history = []
        self.model_metadata = {
            'created_at': datetime.now(),
            'model_name': model_name,
            'model_type': model_type,
            'model_id': self.model_id,
            'version': '1.0.0'
        }

        self.training_metrics = {}
        self.validation_metrics = {}
        self.evaluator = ModelEvaluator()

        logger.info(f"Initialized {self.model_type} model: {self.model_name}")

    @abstractmethod
    def train(self, samples: Sequence[TrainingSample]) -> Dict[str, float]:
        """
        Train the model on training samples.

        Args:
            samples: Training samples ordered by (timestamp, region)

        Returns:
            Dictionary of evaluation metrics (r2, mape, rmse, mae, ...)
        """
        pass

    @abstractmethod
    def predict(self, features: FeatureVector, region: Optional[str] = None,
                days_ahead: int = 0) -> float:
        """
        Predict demand for one feature vector.

        Args:
            features: Feature vector of the target hour
            region: Region code (used by region-aware models)
            days_ahead: Whole days past the end of history (used by growth-aware models)

        Returns:
            Non-negative demand prediction
        """
        pass

    def predict_samples(self, samples: Sequence[TrainingSample]) -> np.ndarray:
        """Predict every sample with its own region."""
        return np.array([self.predict(s.features, s.region) for s in samples], dtype=float)

    def get_feature_importance(self) -> Optional[Dict[str, float]]:
        """
        Get feature importance scores if available.

        Returns:
            Dictionary mapping feature names to importance scores in [0, 1], or None
        """
        return None

    def get_model_parameters(self) -> Dict[str, Any]:
        return self.parameters.copy()

    def get_training_history(self) -> List[Dict[str, Any]]:
        return self.training_history.copy()

    def get_model_info(self) -> Dict[str, Any]:
        """
        Get comprehensive model information.

        Returns:
            Dictionary with model metadata and performance
        """
        info = self.model_metadata.copy()
        info.update({
            'is_fitted': self.is_fitted,
            'feature_names': self.feature_names.copy(),
            'training_metrics': self.training_metrics.copy(),
            'validation_metrics': self.validation_metrics.copy(),
            'parameters': self.get_model_parameters()
        })
        return info

    def export_state(self) -> Dict[str, Any]:
        """
        Export the trained model as a plain dictionary for a persistence collaborator.

        Raises:
            ModelTrainingError: If the model is not trained
        """
        self.check_is_fitted()
        return {
            'model_metadata': self.model_metadata,
            'parameters': self.parameters,
            'feature_names': self.feature_names,
            'training_metrics': self.training_metrics,
            'validation_metrics': self.validation_metrics,
            'model_state': self._get_model_state()
        }

    @classmethod
    def from_state(cls, data: Dict[str, Any]) -> 'PredictionModel':
        """
        Restore a trained model from `export_state` output.

        Args:
            data: Dictionary produced by export_state

        Returns:
            Trained model instance
        """
        instance = cls.__new__(cls)
        instance.model_metadata = data['model_metadata']
        instance.parameters = data['parameters']
        instance.feature_names = list(data['feature_names'])
        instance.training_metrics = data['training_metrics']
        instance.validation_metrics = data['validation_metrics']
        instance.training_history = []
        instance.evaluator = ModelEvaluator()

        instance.model_name = instance.model_metadata['model_name']
        instance.model_type = instance.model_metadata['model_type']
        instance.model_id = instance.model_metadata['model_id']

        instance._set_model_state(data['model_state'])
        instance.is_fitted = True

        logger.info(f"Model restored: {instance.model_id}")
        return instance

    @abstractmethod
    def _get_model_state(self) -> Dict[str, Any]:
        """Get model-specific state for export."""
        pass

    @abstractmethod
    def _set_model_state(self, state: Dict[str, Any]) -> None:
        """Restore model-specific state."""
        pass

    def validate_samples(self, samples: Sequence[TrainingSample], minimum: int = 1) -> None:
        """
        Validate training samples.

        Raises:
            InsufficientDataError: If fewer than `minimum` samples are given
        """
        if len(samples) < minimum:
            raise InsufficientDataError(
                f"{self.model_name} needs at least {minimum} training samples, got {len(samples)}")

    def check_is_fitted(self) -> None:
        if not self.is_fitted:
            raise ModelTrainingError(f"{self.model_name} must be trained before making predictions")

    def _evaluate(self, y_true: np.ndarray, y_pred: np.ndarray) -> Dict[str, float]:
        return self.evaluator.evaluate_model(np.asarray(y_true, dtype=float),
                                             np.asarray(y_pred, dtype=float),
                                             DEFAULT_METRICS)

    def _record_training(self, metrics: Dict[str, Any], n_samples: int) -> None:
        self.training_history.append({
            'trained_at': datetime.now(),
            'samples': n_samples,
            'metrics': dict(metrics)
        })
        logger.info(f"{self.model_name} trained on {n_samples} samples: "
                    + ', '.join(f"{k}={v:.4f}" for k, v in metrics.items() if isinstance(v, float)))

    def __str__(self) -> str:
        return f"{self.model_type.title()}Model({self.model_name})"

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name='{self.model_name}', type='{self.model_type}', fitted={self.is_fitted})"
