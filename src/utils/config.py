"""
Configuration for the demand forecasting engine.
Values default to the engine constants and can be overridden from the environment.
"""

import os
from dataclasses import dataclass, field
from enum import Enum
from typing import Tuple
from dotenv import load_dotenv

from .exceptions import ConfigurationError


class ModelChoice(Enum):
    """Available prediction strategies."""
    LINEAR = "linear"
    HYBRID = "hybrid"
    TREE_ENSEMBLE = "tree_ensemble"

    @classmethod
    def parse(cls, value) -> 'ModelChoice':
        if isinstance(value, cls):
            return value
        normalized = str(value).strip().lower().replace('-', '_')
        aliases = {'regression': 'linear', 'xgboost': 'tree_ensemble', 'gbt': 'tree_ensemble'}
        normalized = aliases.get(normalized, normalized)
        for choice in cls:
            if choice.value == normalized:
                return choice
        available = ', '.join(choice.value for choice in cls)
        raise ConfigurationError(f"Unknown model type: {value}. Available: {available}")


@dataclass
class ForecastConfig:
    """Run configuration for training and forecast generation."""
    model_choice: ModelChoice = ModelChoice.LINEAR
    scale_percent: float = 0.0
    growth_percent: float = 0.0  # Daily growth, hybrid model only
    lag_hours: Tuple[int, int, int] = (1, 24, 168)
    rolling_window_hours: int = 24
    similar_day_temp_tolerance: float = 5.0
    similar_day_cap: int = 7
    cold_start_blend_weight: float = 0.5
    weather_lead_hours: int = 1
    base_temperature: float = 24.0
    holiday_country: str = 'PH'
    extra_holidays: Tuple[str, ...] = field(default_factory=tuple)
    min_training_samples: int = 24
    random_state: int = 42

    @property
    def scale_factor(self) -> float:
        return 1 + self.scale_percent / 100

    @property
    def growth_factor(self) -> float:
        return self.growth_percent / 100

    @classmethod
    def from_env(cls, env_file: str = None) -> 'ForecastConfig':
        """
        Build a configuration from DEMAND_FORECAST_* environment variables.

        Args:
            env_file: Optional path to a .env file (default search if None)

        Returns:
            Validated ForecastConfig
        """
        load_dotenv(env_file)
        defaults = cls()

        extra = os.getenv('DEMAND_FORECAST_EXTRA_HOLIDAYS', '')
        try:
            config = cls(
                model_choice=ModelChoice.parse(
                    os.getenv('DEMAND_FORECAST_MODEL', defaults.model_choice.value)),
                scale_percent=float(os.getenv('DEMAND_FORECAST_SCALE_PERCENT', defaults.scale_percent)),
                growth_percent=float(os.getenv('DEMAND_FORECAST_GROWTH_PERCENT', defaults.growth_percent)),
                similar_day_temp_tolerance=float(os.getenv(
                    'DEMAND_FORECAST_SIMILAR_DAY_TOLERANCE', defaults.similar_day_temp_tolerance)),
                similar_day_cap=int(os.getenv('DEMAND_FORECAST_SIMILAR_DAY_CAP', defaults.similar_day_cap)),
                cold_start_blend_weight=float(os.getenv(
                    'DEMAND_FORECAST_BLEND_WEIGHT', defaults.cold_start_blend_weight)),
                base_temperature=float(os.getenv('DEMAND_FORECAST_BASE_TEMP', defaults.base_temperature)),
                holiday_country=os.getenv('DEMAND_FORECAST_HOLIDAY_COUNTRY', defaults.holiday_country),
                extra_holidays=tuple(d.strip() for d in extra.split(',') if d.strip()),
                min_training_samples=int(os.getenv(
                    'DEMAND_FORECAST_MIN_SAMPLES', defaults.min_training_samples)),
                random_state=int(os.getenv('DEMAND_FORECAST_RANDOM_STATE', defaults.random_state)),
            )
        except ValueError as e:
            raise ConfigurationError(f"Invalid numeric configuration value: {e}") from e

        config.validate()
        return config

    def validate(self) -> None:
        """Validate configuration values."""
        if tuple(self.lag_hours) != (1, 24, 168):
            raise ConfigurationError("lag_hours are fixed at (1, 24, 168)")
        if self.rolling_window_hours != 24:
            raise ConfigurationError("rolling_window_hours is fixed at 24")
        if self.scale_percent <= -100:
            raise ConfigurationError("scale_percent must be greater than -100")
        if self.similar_day_temp_tolerance < 0:
            raise ConfigurationError("similar_day_temp_tolerance cannot be negative")
        if self.similar_day_cap < 1:
            raise ConfigurationError("similar_day_cap must be at least 1")
        if not 0 <= self.cold_start_blend_weight <= 1:
            raise ConfigurationError("cold_start_blend_weight must be within [0, 1]")
        if self.min_training_samples < 1:
            raise ConfigurationError("min_training_samples must be at least 1")
