"""
Prediction model selection.
Maps a configured model choice to one of the interchangeable demand models.
"""

from typing import Union
import logging

from utils.config import ForecastConfig, ModelChoice
from .base_model import PredictionModel
from .gradient_boosting import TreeEnsembleModel
from .hybrid_model import HybridInterpolationModel
from .linear_model import LinearDemandModel

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


# Registry of available demand models
MODEL_REGISTRY = {
    ModelChoice.LINEAR: {
        'class': LinearDemandModel,
        'type': 'regression',
        'description': 'Least-squares regression over the full feature vector',
        'strengths': ['Fast training', 'Interpretable coefficients', 'Storable as a coefficient list']
    },
    ModelChoice.HYBRID: {
        'class': HybridInterpolationModel,
        'type': 'hybrid',
        'description': 'Statistical demand profiles with regression-predicted position',
        'strengths': ['Bounded forecasts', 'Robust to lag drift', 'Supports daily growth']
    },
    ModelChoice.TREE_ENSEMBLE: {
        'class': TreeEnsembleModel,
        'type': 'tree_ensemble',
        'description': 'Gradient-boosted regression trees',
        'strengths': ['Non-linear patterns', 'Feature importance', 'Seeded and reproducible']
    }
}


def create_model(choice: Union[ModelChoice, str], **kwargs) -> PredictionModel:
    """
    Factory function to create demand models.

    Args:
        choice: Model choice or its name ('linear', 'hybrid', 'tree_ensemble')
        **kwargs: Model-specific parameters

    Returns:
        Untrained model instance
    """
    choice = ModelChoice.parse(choice)
    model = MODEL_REGISTRY[choice]['class'](**kwargs)
    logger.info(f"Created {choice.value} model")
    return model


def create_model_from_config(config: ForecastConfig) -> PredictionModel:
    """Create the configured model with its configuration-derived parameters."""
    if config.model_choice == ModelChoice.HYBRID:
        return create_model(config.model_choice, growth_factor=config.growth_factor)
    if config.model_choice == ModelChoice.TREE_ENSEMBLE:
        return create_model(config.model_choice, random_state=config.random_state)
    return create_model(config.model_choice)
