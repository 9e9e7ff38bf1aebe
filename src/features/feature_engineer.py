"""
Feature engineering module for hourly demand forecasting.
Derives the fixed-schema feature vector used positionally by every prediction model.
"""

import math
from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass, fields, replace
from datetime import datetime
from typing import Dict, Iterable, List, Optional
import logging

import numpy as np
import pandas as pd

from models.data_models import LagContext, WeatherConditions
from .calendar import DayType, HolidayCalendar, day_of_week, day_type_for
from . import weather_derivations as wx

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

DEFAULT_BASE_TEMPERATURE = 24.0  # Tropical base for cooling-degree hours


@dataclass(frozen=True)
class FeatureVector:
    """
    Model-ready features for one (region, hour).
    Field order is the positional order used by every model.
    """
    # Basic temporal
    hour: int
    day_of_week: int
    is_weekend: int
    is_holiday: int
    day_of_month: int
    month: int

    # Cyclical hour encoding
    hour_sin: float
    hour_cos: float

    # Day type one-hot
    is_workday: int
    is_saturday: int
    is_sunday: int

    # Hour one-hot
    hour_0: int
    hour_1: int
    hour_2: int
    hour_3: int
    hour_4: int
    hour_5: int
    hour_6: int
    hour_7: int
    hour_8: int
    hour_9: int
    hour_10: int
    hour_11: int
    hour_12: int
    hour_13: int
    hour_14: int
    hour_15: int
    hour_16: int
    hour_17: int
    hour_18: int
    hour_19: int
    hour_20: int
    hour_21: int
    hour_22: int
    hour_23: int

    # Hour x day type interactions
    hour_workday: int
    hour_saturday: int
    hour_sunday: int

    # Raw weather
    temp: float
    temp_squared: float
    dew: float
    precip: float
    wind_gust: float
    wind_speed: float
    cloud_cover: float
    solar_radiation: float
    uv_index: float

    # Derived weather
    relative_humidity: float
    heat_index: float
    cooling_degree_hours: float
    effective_solar: float
    apparent_temp: float
    is_raining: int
    temp_dew_spread: float
    is_daytime: int

    # Lag features
    demand_lag_1h: Optional[float] = None
    demand_lag_24h: Optional[float] = None
    demand_lag_168h: Optional[float] = None
    temp_lag_1h: Optional[float] = None
    temp_lag_24h: Optional[float] = None

    # Rolling aggregates
    demand_rolling_24h: Optional[float] = None
    temp_rolling_24h: Optional[float] = None
    temp_max_24h: Optional[float] = None

    @property
    def day_type(self) -> DayType:
        if self.is_sunday:
            return DayType.SUNDAY
        if self.is_saturday:
            return DayType.SATURDAY
        return DayType.WORKDAY

    def to_dict(self) -> Dict[str, Optional[float]]:
        return asdict(self)

    def with_lags(self, lag_context: LagContext) -> 'FeatureVector':
        """Copy of this vector with lag and rolling fields replaced."""
        return replace(self, **asdict(lag_context))


FEATURE_NAMES = tuple(f.name for f in fields(FeatureVector))


def get_feature_names() -> List[str]:
    """Get feature names in model order."""
    return list(FEATURE_NAMES)


def feature_vector_to_array(fv: FeatureVector) -> np.ndarray:
    """Convert a feature vector to a numeric array; missing optional values become 0."""
    values = [getattr(fv, name) for name in FEATURE_NAMES]
    return np.array([0.0 if v is None else float(v) for v in values], dtype=float)


def features_to_matrix(vectors: Iterable[FeatureVector]) -> np.ndarray:
    """Stack feature vectors into an (n_samples, n_features) matrix."""
    rows = [feature_vector_to_array(fv) for fv in vectors]
    if not rows:
        return np.empty((0, len(FEATURE_NAMES)))
    return np.vstack(rows)


def features_to_frame(vectors: Iterable[FeatureVector]) -> pd.DataFrame:
    """Feature vectors as a DataFrame, keeping missing optional values as NaN."""
    return pd.DataFrame([fv.to_dict() for fv in vectors], columns=list(FEATURE_NAMES))


class FeatureEngineer(ABC):
    """Abstract base class for feature engineering."""

    @abstractmethod
    def derive_features(self, timestamp: datetime, weather: WeatherConditions,
                        lag_context: Optional[LagContext] = None) -> FeatureVector:
        """Derive a feature vector from a timestamped weather record plus lag inputs."""
        pass


class DemandFeatureEngineer(FeatureEngineer):
    """
    Feature engineer for hourly grid demand.
    Creates calendar, cyclical, one-hot, weather and lag features.
    """

    def __init__(self, holiday_calendar: Optional[HolidayCalendar] = None,
                 base_temperature: float = DEFAULT_BASE_TEMPERATURE):
        """
        Initialize the demand feature engineer.

        Args:
            holiday_calendar: Regional holiday calendar (Philippine calendar if None)
            base_temperature: Base temperature for cooling-degree hours
        """
        self.holiday_calendar = holiday_calendar if holiday_calendar is not None else HolidayCalendar()
        self.base_temperature = base_temperature

    def day_type(self, timestamp: datetime) -> DayType:
        return day_type_for(timestamp, self.holiday_calendar)

    def derive_features(self, timestamp: datetime, weather: WeatherConditions,
                        lag_context: Optional[LagContext] = None) -> FeatureVector:
        """
        Build the feature vector for one timestamp.

        Args:
            timestamp: Demand timestamp (hour ending)
            weather: Weather aligned to this timestamp, all scalars present and finite
            lag_context: Resolved lag and rolling values (all missing if None)

        Returns:
            FeatureVector
        """
        hour = timestamp.hour
        dow = day_of_week(timestamp)
        holiday = self.holiday_calendar.is_holiday(timestamp)
        day_type = self.day_type(timestamp)

        is_workday = int(day_type == DayType.WORKDAY)
        is_saturday = int(day_type == DayType.SATURDAY)
        is_sunday = int(day_type == DayType.SUNDAY)

        angle = 2 * math.pi * hour / 24
        hour_one_hot = {f'hour_{h}': int(h == hour) for h in range(24)}

        temp = weather.temperature
        rh = wx.relative_humidity(temp, weather.dew_point)
        lags = lag_context or LagContext()

        return FeatureVector(
            hour=hour,
            day_of_week=dow,
            is_weekend=int(dow in (0, 6)),
            is_holiday=int(holiday),
            day_of_month=timestamp.day,
            month=timestamp.month,
            hour_sin=math.sin(angle),
            hour_cos=math.cos(angle),
            is_workday=is_workday,
            is_saturday=is_saturday,
            is_sunday=is_sunday,
            **hour_one_hot,
            hour_workday=hour * is_workday,
            hour_saturday=hour * is_saturday,
            hour_sunday=hour * is_sunday,
            temp=temp,
            temp_squared=temp * temp,
            dew=weather.dew_point,
            precip=weather.precipitation,
            wind_gust=weather.wind_gust,
            wind_speed=weather.wind_speed,
            cloud_cover=weather.cloud_cover,
            solar_radiation=weather.solar_radiation,
            uv_index=weather.uv_index,
            relative_humidity=rh,
            heat_index=wx.heat_index(temp, rh),
            cooling_degree_hours=wx.cooling_degree_hours(temp, self.base_temperature),
            effective_solar=wx.effective_solar(weather.solar_radiation, weather.cloud_cover),
            apparent_temp=wx.apparent_temperature(temp, weather.wind_speed),
            is_raining=int(wx.is_raining(weather.precipitation)),
            temp_dew_spread=temp - weather.dew_point,
            is_daytime=int(wx.is_daytime(hour)),
            **asdict(lags),
        )
