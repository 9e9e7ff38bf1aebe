"""
Hybrid interpolation model.
Combines per (region, hour, day type) statistical demand profiles with a
regression that predicts where within the profile range demand falls.
"""

from dataclasses import dataclass, field, replace
from datetime import date
from typing import Dict, Any, List, Optional, Sequence, Tuple
import logging

import numpy as np
from sklearn.linear_model import LinearRegression

from features.calendar import DayType
from features.feature_engineer import FeatureVector
from features.sample_builder import TrainingSample
from utils.exceptions import ForecastingError
from .base_model import PredictionModel

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

ProfileKey = Tuple[str, int, DayType]  # (region, hour, day type)

DEFAULT_RECENT_DAYS = 7
DEFAULT_REFERENCE_TEMP = 25.0
MIN_BOUND_DAYS = 3

POSITION_FEATURE_NAMES = [
    'hour_sin', 'hour_cos', 'is_weekend', 'is_holiday',
    'is_workday', 'is_saturday', 'is_sunday',
    'day_of_month_norm', 'month_norm',
    'temp', 'temp_vs_recent', 'temp_squared_norm',
    'demand_lag_1h_ratio', 'demand_lag_24h_ratio', 'demand_lag_168h_ratio', 'demand_rolling_24h_ratio',
    'temp_lag_1h_ratio', 'temp_lag_24h_ratio', 'temp_rolling_24h_ratio',
]


@dataclass(frozen=True)
class RecentDay:
    """Raw observation kept for dynamic bounds."""
    date: date
    demand: float
    temperature: float


@dataclass(frozen=True)
class StatisticalProfile:
    """Robust demand range for one (region, hour, day type)."""
    min: float
    median: float
    max: float
    count: int
    recent_days: Tuple[RecentDay, ...] = field(default_factory=tuple)

    @property
    def is_degenerate(self) -> bool:
        return self.max == self.min

    @property
    def recent_mean_temperature(self) -> Optional[float]:
        if not self.recent_days:
            return None
        return sum(d.temperature for d in self.recent_days) / len(self.recent_days)

    def scaled(self, multiplier: float) -> 'StatisticalProfile':
        return replace(self, min=self.min * multiplier, median=self.median * multiplier,
                       max=self.max * multiplier)

    def position_of(self, demand: float) -> float:
        return (demand - self.min) / (self.max - self.min)

    @classmethod
    def from_observations(cls, observations: List[Tuple[date, float, float]],
                          recent_count: int = DEFAULT_RECENT_DAYS) -> 'StatisticalProfile':
        """
        Build a profile from (date, demand, temperature) observations.
        Bounds use the 5th and 95th percentile values.
        """
        newest_first = sorted(observations, key=lambda o: o[0], reverse=True)
        recent = tuple(RecentDay(d, demand, temp) for d, demand, temp in newest_first[:recent_count])

        demands = sorted(o[1] for o in observations)
        n = len(demands)
        return cls(
            min=demands[int(n * 0.05)],
            median=demands[n // 2],
            max=demands[min(n - 1, int(n * 0.95))],
            count=n,
            recent_days=recent,
        )


def position_features(features: FeatureVector, profile: StatisticalProfile) -> List[float]:
    """
    Reduced feature set for position prediction.
    Demand inputs are ratios to the profile median and temperature lags ratios
    to the recent mean temperature, so the regression sees no absolute demand.
    """
    recent_temp = profile.recent_mean_temperature
    if recent_temp is None:
        recent_temp = features.temp

    values = [
        features.hour_sin,
        features.hour_cos,
        features.is_weekend,
        features.is_holiday,
        features.is_workday,
        features.is_saturday,
        features.is_sunday,
        features.day_of_month / 31,
        features.month / 12,
        features.temp,
        features.temp - recent_temp,
        features.temp_squared / 1000,
    ]

    if profile.median > 0:
        for lag in (features.demand_lag_1h, features.demand_lag_24h,
                    features.demand_lag_168h, features.demand_rolling_24h):
            values.append((lag if lag is not None else profile.median) / profile.median)
    else:
        values.extend([1.0, 1.0, 1.0, 1.0])

    reference = recent_temp or DEFAULT_REFERENCE_TEMP
    for lag in (features.temp_lag_1h, features.temp_lag_24h, features.temp_rolling_24h):
        values.append((lag if lag is not None else reference) / reference)

    return [float(v) for v in values]


class HybridInterpolationModel(PredictionModel):
    """
    Statistical profile and regression hybrid.

    demand = min + clamp(position, 0, 1) * (max - min), where min/max are the
    robust bounds of the matching profile and position comes from a linear
    regression on relative features.
    """

    def __init__(self, growth_factor: float = 0.0, recent_days_count: int = DEFAULT_RECENT_DAYS, **kwargs):
        """
        Initialize the hybrid model.

        Args:
            growth_factor: Daily growth rate applied to profile bounds (0.001 = 0.1% per day)
            recent_days_count: Number of recent observations kept per profile
        """
        super().__init__("HybridInterpolation", "hybrid",
                         growth_factor=growth_factor, recent_days_count=recent_days_count, **kwargs)
        self.growth_factor = growth_factor
        self.recent_days_count = recent_days_count
        self.profiles: Dict[ProfileKey, StatisticalProfile] = {}
        self.position_model: Optional[LinearRegression] = None

    def build_profiles(self, samples: Sequence[TrainingSample]) -> None:
        grouped: Dict[ProfileKey, List[Tuple[date, float, float]]] = {}
        for sample in samples:
            key = (sample.region, sample.features.hour, sample.features.day_type)
            grouped.setdefault(key, []).append(
                (sample.timestamp.date(), sample.demand, sample.features.temp))

        self.profiles = {
            key: StatisticalProfile.from_observations(observations, self.recent_days_count)
            for key, observations in grouped.items()
        }

        degenerate = sum(1 for p in self.profiles.values() if p.is_degenerate)
        if degenerate:
            logger.warning(f"{degenerate} of {len(self.profiles)} profiles have no demand range")

    def train(self, samples: Sequence[TrainingSample]) -> Dict[str, float]:
        """
        Build profiles and fit the position regression.

        Returns:
            In-sample metrics over all samples
        """
        self.validate_samples(samples)
        self.build_profiles(samples)

        X, y = [], []
        for sample in samples:
            profile = self.profiles[(sample.region, sample.features.hour, sample.features.day_type)]
            if profile.is_degenerate:
                continue
            X.append(position_features(sample.features, profile))
            y.append(profile.position_of(sample.demand))

        if X:
            self.position_model = LinearRegression()
            self.position_model.fit(np.array(X), np.array(y))
        else:
            # Every profile is flat; predictions come from the bounds alone
            self.position_model = None
            logger.warning("No profile with a demand range; position regression not fitted")

        self.is_fitted = True

        y_true = np.array([s.demand for s in samples], dtype=float)
        metrics = self._evaluate(y_true, self.predict_samples(samples))
        metrics['training_samples'] = len(samples)
        metrics['position_samples'] = len(X)
        metrics['profiles'] = len(self.profiles)

        self.training_metrics = metrics
        self._record_training(metrics, len(samples))
        return metrics

    def find_profile(self, region: Optional[str], hour: int, day_type: DayType) -> Optional[StatisticalProfile]:
        """Profile for the region, or any region's profile with the same hour and day type."""
        profile = self.profiles.get((region, hour, DayType(day_type)))
        if profile is not None:
            return profile

        for (_, p_hour, p_day_type), candidate in sorted(self.profiles.items(), key=lambda kv: kv[0][0]):
            if p_hour == hour and p_day_type == day_type:
                logger.debug(f"No profile for {region}, using another region's profile for hour {hour}")
                return candidate
        return None

    def predict(self, features: FeatureVector, region: Optional[str] = None,
                days_ahead: int = 0) -> float:
        """
        Predict by interpolating within the profile bounds.

        Raises:
            ModelTrainingError: If the model is not trained
            ForecastingError: If no profile exists for the hour and day type
        """
        self.check_is_fitted()

        profile = self.find_profile(region, features.hour, features.day_type)
        if profile is None:
            raise ForecastingError(
                f"No demand profile for hour {features.hour}, day type {features.day_type.name}")

        if self.growth_factor > 0 and days_ahead > 0:
            profile = profile.scaled(1 + self.growth_factor * days_ahead)

        return self.interpolate(features, profile)

    def predict_position(self, features: FeatureVector, profile: StatisticalProfile) -> float:
        if self.position_model is None:
            return profile.position_of(profile.median)
        x = np.array([position_features(features, profile)])
        return float(self.position_model.predict(x)[0])

    def interpolate(self, features: FeatureVector, profile: StatisticalProfile) -> float:
        if profile.is_degenerate:
            return max(0.0, profile.min)

        position = min(1.0, max(0.0, self.predict_position(features, profile)))
        return max(0.0, profile.min + position * (profile.max - profile.min))

    def get_dynamic_bounds(self, region: str, hour: int, day_type: DayType,
                           temperature: float, tolerance: float = 5.0) -> Optional[Dict[str, float]]:
        """
        Bounds from recent similar days.

        Uses recent days within the temperature tolerance when at least three
        qualify, otherwise all recent days when there are at least three,
        otherwise the full profile.
        """
        profile = self.profiles.get((region, hour, DayType(day_type)))
        if profile is None:
            return None

        candidates = [d for d in profile.recent_days if abs(d.temperature - temperature) <= tolerance]
        if len(candidates) < MIN_BOUND_DAYS:
            candidates = list(profile.recent_days)

        if len(candidates) >= MIN_BOUND_DAYS:
            demands = sorted(d.demand for d in candidates)
            return {'min': demands[0], 'median': demands[len(demands) // 2], 'max': demands[-1]}

        return {'min': profile.min, 'median': profile.median, 'max': profile.max}

    def get_profile_stats(self) -> Dict[ProfileKey, Dict[str, float]]:
        """Summary statistics of every profile."""
        return {
            key: {'min': p.min, 'median': p.median, 'max': p.max, 'count': p.count}
            for key, p in sorted(self.profiles.items())
        }

    def get_feature_importance(self) -> Optional[Dict[str, float]]:
        """Absolute position-regression coefficients normalised by the largest."""
        if self.position_model is None:
            return None
        magnitudes = np.abs(self.position_model.coef_)
        top = magnitudes.max() if magnitudes.max() > 0 else 1.0
        return {name: float(m / top) for name, m in zip(POSITION_FEATURE_NAMES, magnitudes)}

    def set_growth_factor(self, factor: float) -> None:
        self.growth_factor = factor
        self.parameters['growth_factor'] = factor

    def _get_model_state(self) -> Dict[str, Any]:
        return {
            'growth_factor': self.growth_factor,
            'recent_days_count': self.recent_days_count,
            'profiles': dict(self.profiles),
            'position_coefficients': (None if self.position_model is None
                                      else self.position_model.coef_.tolist()),
            'position_intercept': (None if self.position_model is None
                                   else float(self.position_model.intercept_)),
        }

    def _set_model_state(self, state: Dict[str, Any]) -> None:
        self.growth_factor = state['growth_factor']
        self.recent_days_count = state['recent_days_count']
        self.profiles = dict(state['profiles'])
        if state['position_coefficients'] is None:
            self.position_model = None
        else:
            # Rebuild a fitted estimator from stored parameters
            model = LinearRegression()
            model.coef_ = np.asarray(state['position_coefficients'], dtype=float)
            model.intercept_ = state['position_intercept']
            model.n_features_in_ = len(model.coef_)
            self.position_model = model
