"""
Cascading fallback resolution of lag and rolling inputs.
Forecast horizons run past the window where true lag data exists, so every
lookup degrades through progressively coarser estimates instead of failing.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Dict, Optional, Tuple
import logging

from models.data_models import LagContext
from .historical_index import HistoricalIndex

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


class FallbackTier(Enum):
    """Tier of the fallback chain that produced a value."""
    EXACT = "exact"
    SIMILAR_DAYS = "similar_days"
    TYPICAL = "typical"
    LAST_KNOWN = "last_known"
    UNRESOLVED = "unresolved"

    @property
    def is_estimated(self) -> bool:
        return self is not FallbackTier.EXACT


@dataclass(frozen=True)
class Resolution:
    """Resolved value and the tier it came from."""
    value: Optional[float]
    tier: FallbackTier

    @property
    def resolved(self) -> bool:
        return self.value is not None


UNRESOLVED = Resolution(None, FallbackTier.UNRESOLVED)


class LagResolver:
    """
    Resolves lag and rolling inputs against a HistoricalIndex.

    Demand: exact match, similar-days estimate, typical (region, hour, day type)
    average, last known value. Temperature: exact match, typical average, last
    known value.
    """

    def __init__(self,
                 index: HistoricalIndex,
                 lag_hours: Tuple[int, int, int] = (1, 24, 168),
                 rolling_window_hours: int = 24,
                 temperature_tolerance: float = 5.0,
                 similar_day_cap: int = 7):
        """
        Initialize the resolver.

        Args:
            index: Historical index (grows as forecasts are written back)
            lag_hours: Demand lag offsets in hours; the first two also serve as temperature lags
            rolling_window_hours: Trailing window for rolling aggregates
            temperature_tolerance: Max temperature difference for similar days
            similar_day_cap: Max distinct dates averaged for similar days
        """
        self.index = index
        self.lag_hours = tuple(lag_hours)
        self.rolling_window_hours = rolling_window_hours
        self.temperature_tolerance = temperature_tolerance
        self.similar_day_cap = similar_day_cap

    def similar_days_estimate(self, region: str, timestamp: datetime,
                              reference_temperature: Optional[float]) -> Optional[float]:
        return self.index.similar_days_demand(
            region, timestamp, reference_temperature,
            temperature_tolerance=self.temperature_tolerance,
            max_days=self.similar_day_cap)

    def resolve_demand(self, region: str, timestamp: datetime,
                       reference_temperature: Optional[float] = None) -> Resolution:
        exact = self.index.demand_at(region, timestamp)
        if exact is not None:
            return Resolution(exact, FallbackTier.EXACT)

        similar = self.similar_days_estimate(region, timestamp, reference_temperature)
        if similar is not None:
            return Resolution(similar, FallbackTier.SIMILAR_DAYS)

        typical = self.index.typical_demand(region, timestamp.hour, self.index.day_type(timestamp))
        if typical is not None:
            return Resolution(typical, FallbackTier.TYPICAL)

        last = self.index.last_known_demand(region)
        if last is not None:
            return Resolution(last, FallbackTier.LAST_KNOWN)

        return UNRESOLVED

    def resolve_temperature(self, region: str, timestamp: datetime) -> Resolution:
        exact = self.index.temperature_at(region, timestamp)
        if exact is not None:
            return Resolution(exact, FallbackTier.EXACT)

        typical = self.index.typical_temperature(region, timestamp.hour, self.index.day_type(timestamp))
        if typical is not None:
            return Resolution(typical, FallbackTier.TYPICAL)

        last = self.index.last_known_temperature(region)
        if last is not None:
            return Resolution(last, FallbackTier.LAST_KNOWN)

        return UNRESOLVED

    def _reference_temperature(self, region: str, timestamp: datetime,
                               fallback: Optional[float]) -> Optional[float]:
        recorded = self.index.temperature_at(region, timestamp)
        return recorded if recorded is not None else fallback

    def resolve_demand_lag(self, region: str, timestamp: datetime, hours: int,
                           current_temperature: Optional[float]) -> Resolution:
        """Resolve demand `hours` before `timestamp`."""
        lag_ts = timestamp - timedelta(hours=hours)
        reference = self._reference_temperature(region, lag_ts, current_temperature)
        return self.resolve_demand(region, lag_ts, reference)

    def rolling_aggregates(self, region: str, timestamp: datetime,
                           current_temperature: Optional[float]
                           ) -> Tuple[Optional[float], Optional[float], Optional[float]]:
        """
        Rolling demand mean, temperature mean and temperature max over the trailing window.

        Each hourly offset is resolved through the fallback chains; only resolved
        values are accumulated. An aggregate with no resolved values is None.
        """
        demand_sum, demand_count = 0.0, 0
        temp_sum, temp_count = 0.0, 0
        temp_max = None

        for h in range(1, self.rolling_window_hours + 1):
            demand = self.resolve_demand_lag(region, timestamp, h, current_temperature)
            if demand.resolved:
                demand_sum += demand.value
                demand_count += 1

            temp = self.resolve_temperature(region, timestamp - timedelta(hours=h))
            if temp.resolved:
                temp_sum += temp.value
                temp_count += 1
                temp_max = temp.value if temp_max is None else max(temp_max, temp.value)

        return (
            demand_sum / demand_count if demand_count else None,
            temp_sum / temp_count if temp_count else None,
            temp_max,
        )

    def resolve_lag_context(self, region: str, timestamp: datetime,
                            current_temperature: Optional[float]
                            ) -> Tuple[LagContext, Dict[str, FallbackTier]]:
        """
        Resolve every lag and rolling input for one forecast timestep.

        Args:
            region: Region code
            timestamp: Forecast timestamp
            current_temperature: Temperature of the forecast timestep

        Returns:
            Tuple of (LagContext, tiers keyed by lag field name)
        """
        short, daily, weekly = self.lag_hours

        demand_short = self.resolve_demand_lag(region, timestamp, short, current_temperature)
        demand_daily = self.resolve_demand_lag(region, timestamp, daily, current_temperature)
        demand_weekly = self.resolve_demand_lag(region, timestamp, weekly, current_temperature)
        temp_short = self.resolve_temperature(region, timestamp - timedelta(hours=short))
        temp_daily = self.resolve_temperature(region, timestamp - timedelta(hours=daily))

        rolling_demand, rolling_temp, max_temp = self.rolling_aggregates(
            region, timestamp, current_temperature)

        context = LagContext(
            demand_lag_1h=demand_short.value,
            demand_lag_24h=demand_daily.value,
            demand_lag_168h=demand_weekly.value,
            temp_lag_1h=temp_short.value,
            temp_lag_24h=temp_daily.value,
            demand_rolling_24h=rolling_demand,
            temp_rolling_24h=rolling_temp,
            temp_max_24h=max_temp,
        )
        tiers = {
            'demand_lag_1h': demand_short.tier,
            'demand_lag_24h': demand_daily.tier,
            'demand_lag_168h': demand_weekly.tier,
            'temp_lag_1h': temp_short.tier,
            'temp_lag_24h': temp_daily.tier,
        }

        logger.debug(f"{region} {timestamp}: lag tiers "
                     + ', '.join(f"{k}={v.value}" for k, v in tiers.items()))
        return context, tiers
