"""
Training sample construction from merged historical records.
Uses exact historical lookups only; no fallback estimation is applied when training.
"""

from collections import defaultdict
from dataclasses import dataclass, fields
from datetime import datetime, timedelta
from typing import Dict, Iterable, List, Optional
import logging

import pandas as pd

from models.data_models import LagContext, MergedRecord, WeatherConditions
from utils.exceptions import DataValidationError, InsufficientDataError
from .feature_engineer import DemandFeatureEngineer, FeatureVector

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

WEATHER_COLUMNS = tuple(f.name for f in fields(WeatherConditions))
REQUIRED_COLUMNS = ('timestamp', 'region', 'demand') + WEATHER_COLUMNS


@dataclass(frozen=True)
class TrainingSample:
    """Feature vector paired with the observed demand."""
    timestamp: datetime
    region: str
    demand: float
    features: FeatureVector


def records_from_frame(df: pd.DataFrame) -> List[MergedRecord]:
    """
    Convert a merged DataFrame into MergedRecords.

    Args:
        df: DataFrame with timestamp, region, demand and one column per weather scalar

    Returns:
        List of MergedRecord

    Raises:
        DataValidationError: If required columns are missing or weather values are null
    """
    missing = [col for col in REQUIRED_COLUMNS if col not in df.columns]
    if missing:
        raise DataValidationError(f"Missing required columns: {missing}")

    if df[list(REQUIRED_COLUMNS[2:])].isnull().any().any():
        raise DataValidationError("Demand and weather columns cannot contain null values")

    timestamps = pd.to_datetime(df['timestamp'])
    records = []
    for ts, row in zip(timestamps, df.itertuples(index=False)):
        weather = WeatherConditions(**{col: float(getattr(row, col)) for col in WEATHER_COLUMNS})
        records.append(MergedRecord(
            timestamp=ts.to_pydatetime(),
            region=str(row.region),
            demand=float(row.demand),
            weather=weather,
        ))
    return records


class SampleBuilder:
    """
    Builds training samples with lag and rolling features from exact lookups.
    """

    def __init__(self, feature_engineer: Optional[DemandFeatureEngineer] = None,
                 rolling_window_hours: int = 24):
        """
        Initialize the sample builder.

        Args:
            feature_engineer: Feature engineer (default DemandFeatureEngineer)
            rolling_window_hours: Trailing window for rolling aggregates
        """
        self.feature_engineer = feature_engineer or DemandFeatureEngineer()
        self.rolling_window_hours = rolling_window_hours

    def build_samples(self, records: Iterable[MergedRecord],
                      include_partial_lags: bool = False) -> List[TrainingSample]:
        """
        Build training samples.

        Args:
            records: Merged historical records
            include_partial_lags: Keep records whose 24h or 168h demand lag is missing

        Returns:
            Samples ordered by (timestamp, region)

        Raises:
            InsufficientDataError: If no sample can be built
        """
        by_region: Dict[str, List[MergedRecord]] = defaultdict(list)
        for record in records:
            by_region[record.region].append(record)

        samples = []
        dropped = 0

        for region, region_records in by_region.items():
            region_records.sort(key=lambda r: r.timestamp)
            demand_by_time = {r.timestamp: r.demand for r in region_records}
            temp_by_time = {r.timestamp: r.weather.temperature for r in region_records}

            for record in region_records:
                lags = self._exact_lags(record.timestamp, demand_by_time, temp_by_time)

                if not include_partial_lags and (lags.demand_lag_24h is None or lags.demand_lag_168h is None):
                    dropped += 1
                    continue

                features = self.feature_engineer.derive_features(record.timestamp, record.weather, lags)
                samples.append(TrainingSample(record.timestamp, region, record.demand, features))

        if not samples:
            raise InsufficientDataError(
                f"No training samples could be built from {sum(len(r) for r in by_region.values())} records")

        samples.sort(key=lambda s: (s.timestamp, s.region))
        logger.info(f"Built {len(samples)} training samples across {len(by_region)} regions "
                    f"({dropped} dropped for missing lags)")
        return samples

    def _exact_lags(self, ts: datetime, demand_by_time: Dict[datetime, float],
                    temp_by_time: Dict[datetime, float]) -> LagContext:
        hour = timedelta(hours=1)

        demand_sum, temp_sum, count = 0.0, 0.0, 0
        temp_max = None
        for h in range(1, self.rolling_window_hours + 1):
            lag_ts = ts - h * hour
            d = demand_by_time.get(lag_ts)
            t = temp_by_time.get(lag_ts)
            if d is not None and t is not None:
                demand_sum += d
                temp_sum += t
                temp_max = t if temp_max is None else max(temp_max, t)
                count += 1

        return LagContext(
            demand_lag_1h=demand_by_time.get(ts - hour),
            demand_lag_24h=demand_by_time.get(ts - 24 * hour),
            demand_lag_168h=demand_by_time.get(ts - 168 * hour),
            temp_lag_1h=temp_by_time.get(ts - hour),
            temp_lag_24h=temp_by_time.get(ts - 24 * hour),
            demand_rolling_24h=demand_sum / count if count else None,
            temp_rolling_24h=temp_sum / count if count else None,
            temp_max_24h=temp_max,
        )
