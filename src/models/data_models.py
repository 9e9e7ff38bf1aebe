"""
Data models for the grid demand forecasting system.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional


@dataclass(frozen=True)
class WeatherConditions:
    """Hourly weather scalars (metric units, cloud cover in percent)."""
    temperature: float
    dew_point: float
    precipitation: float
    wind_gust: float
    wind_speed: float
    cloud_cover: float
    solar_radiation: float
    uv_index: float


@dataclass(frozen=True)
class MergedRecord:
    """Demand reading joined with the weather of the hour it ends."""
    timestamp: datetime
    region: str
    demand: float
    weather: WeatherConditions


@dataclass(frozen=True)
class DemandRecord:
    """Raw demand reading, independent of weather alignment."""
    timestamp: datetime
    region: str
    demand: float


@dataclass(frozen=True)
class WeatherObservation:
    """Weather sample at the start of an hour for a region or city."""
    timestamp: datetime
    location: str
    weather: WeatherConditions


@dataclass(frozen=True)
class LagContext:
    """Lag and rolling inputs; None marks a value that could not be resolved."""
    demand_lag_1h: Optional[float] = None
    demand_lag_24h: Optional[float] = None
    demand_lag_168h: Optional[float] = None
    temp_lag_1h: Optional[float] = None
    temp_lag_24h: Optional[float] = None
    demand_rolling_24h: Optional[float] = None
    temp_rolling_24h: Optional[float] = None
    temp_max_24h: Optional[float] = None


@dataclass(frozen=True)
class ForecastResult:
    """Model for one forecast value."""
    timestamp: datetime
    region: str
    predicted_demand: float
    lag_1h_tier: str = "exact"
    cold_start_blended: bool = False
