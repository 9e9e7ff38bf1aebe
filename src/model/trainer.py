"""
Model training orchestrator for the demand forecasting engine.
Builds samples, enforces data sufficiency and records training results.
"""

from collections import Counter
from dataclasses import replace
from typing import Dict, List, Any, Optional, Sequence, Union
from datetime import datetime
import logging

import numpy as np
import pandas as pd

from features.sample_builder import SampleBuilder, TrainingSample
from models.data_models import MergedRecord
from utils.config import ForecastConfig, ModelChoice
from utils.exceptions import InsufficientDataError
from .base_model import PredictionModel
from .forecaster import create_model_from_config

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


class ModelTrainer:
    """
    Orchestrates the model training workflow.
    Handles sample preparation, sufficiency checks, training and comparison.
    """

    def __init__(self, config: Optional[ForecastConfig] = None,
                 sample_builder: Optional[SampleBuilder] = None):
        """
        Initialize the model trainer.

        Args:
            config: Forecast configuration (defaults if None)
            sample_builder: Builder used for raw records (default SampleBuilder)
        """
        self.config = config or ForecastConfig()
        self.sample_builder = sample_builder or SampleBuilder()

        self.training_history = []
        self.trained_models: Dict[str, PredictionModel] = {}

        logger.info("ModelTrainer initialized")

    def check_sufficiency(self, samples: Sequence[TrainingSample], per_region: bool = False) -> None:
        """
        Enforce the minimum training sample count.

        Args:
            samples: Training samples
            per_region: Apply the minimum to every region instead of the total

        Raises:
            InsufficientDataError: If the minimum is not met
        """
        minimum = self.config.min_training_samples
        if per_region:
            counts = Counter(s.region for s in samples)
            short = {region: n for region, n in counts.items() if n < minimum}
            if short or not counts:
                raise InsufficientDataError(
                    f"Regions below {minimum} training samples: {short or 'no regions'}")
        elif len(samples) < minimum:
            raise InsufficientDataError(
                f"Need at least {minimum} training samples, got {len(samples)}")

    def train_model(self,
                    samples: Sequence[TrainingSample],
                    model: Optional[PredictionModel] = None,
                    per_region: bool = False) -> Dict[str, Any]:
        """
        Train a model on prepared samples.

        Args:
            samples: Training samples ordered by (timestamp, region)
            model: Model to train (configured model if None)
            per_region: Apply the minimum sample count per region

        Returns:
            Dictionary with training results
        """
        self.check_sufficiency(samples, per_region)
        model = model or create_model_from_config(self.config)

        logger.info(f"Training model: {model.model_name}")
        training_start = datetime.now()

        metrics = model.train(samples)

        training_end = datetime.now()
        training_duration = (training_end - training_start).total_seconds()

        results = {
            'model_id': model.model_id,
            'model_name': model.model_name,
            'model_type': model.model_type,
            'training_start': training_start,
            'training_end': training_end,
            'training_duration_seconds': training_duration,
            'metrics': metrics,
            'samples': len(samples),
            'regions': sorted({s.region for s in samples}),
        }

        self.trained_models[model.model_id] = model
        self.training_history.append(results)

        logger.info(f"Model training completed in {training_duration:.2f} seconds")
        return results

    def train_from_records(self,
                           records: Sequence[MergedRecord],
                           choice: Union[ModelChoice, str, None] = None,
                           include_partial_lags: bool = False,
                           per_region: bool = False) -> PredictionModel:
        """
        Build samples from merged records and train a model.

        Args:
            records: Merged historical records
            choice: Model choice (configured choice if None)
            include_partial_lags: Keep samples missing the 24h or 168h lag
            per_region: Apply the minimum sample count per region

        Returns:
            Trained model
        """
        samples = self.sample_builder.build_samples(records, include_partial_lags)
        config = self.config
        if choice is not None:
            config = replace(self.config, model_choice=ModelChoice.parse(choice))
        model = create_model_from_config(config)
        self.train_model(samples, model, per_region)
        return model

    def get_model_comparison(self, metric: str = 'mae') -> pd.DataFrame:
        """
        Compare performance of all trained models.

        Args:
            metric: Metric to compare models by

        Returns:
            DataFrame with model comparison
        """
        rows = []
        for record in self.training_history:
            row = {
                'model_id': record['model_id'],
                'model_name': record['model_name'],
                'model_type': record['model_type'],
                'samples': record['samples'],
            }
            for m, value in record['metrics'].items():
                row[m] = value
            rows.append(row)

        df = pd.DataFrame(rows)
        if metric in df.columns:
            ascending = metric in ['mae', 'mse', 'rmse', 'mape']  # Lower is better for these metrics
            df = df.sort_values(metric, ascending=ascending)
        return df

    def get_training_summary(self) -> Dict[str, Any]:
        """
        Get summary of training activities.

        Returns:
            Dictionary with training summary
        """
        summary = {
            'total_trainings': len(self.training_history),
            'trained_models': len(self.trained_models),
            'model_types': sorted(set(model.model_type for model in self.trained_models.values())),
        }

        if self.training_history:
            durations = [h['training_duration_seconds'] for h in self.training_history]
            summary['avg_training_duration'] = float(np.mean(durations))
            summary['total_training_time'] = float(np.sum(durations))

        return summary

    def get_trained_models(self) -> List[PredictionModel]:
        return list(self.trained_models.values())
