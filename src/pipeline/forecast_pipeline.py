"""
Forecast generation across a multi-day horizon.
Each forecast value is written back into the historical index so later
timesteps can use it as lag history.
"""

from datetime import datetime
from typing import Iterable, List, Optional, Sequence
import logging

import pandas as pd

from features.calendar import HolidayCalendar
from features.feature_engineer import DemandFeatureEngineer
from features.sample_builder import SampleBuilder
from history.fallback import FallbackTier, LagResolver
from history.historical_index import HistoricalIndex
from model.base_model import PredictionModel
from model.trainer import ModelTrainer
from models.data_models import DemandRecord, ForecastResult, MergedRecord, WeatherObservation
from utils.config import ForecastConfig
from .alignment import RegionMapper, weather_to_demand_time

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

FORECAST_COLUMNS = ['timestamp', 'region', 'predicted_demand', 'lag_1h_tier', 'cold_start_blended']


def holiday_calendar_from_config(config: ForecastConfig) -> HolidayCalendar:
    return HolidayCalendar(config.holiday_country, config.extra_holidays)


def forecasts_to_frame(results: Iterable[ForecastResult]) -> pd.DataFrame:
    """Forecast results as a DataFrame for downstream writers."""
    rows = [{
        'timestamp': r.timestamp,
        'region': r.region,
        'predicted_demand': r.predicted_demand,
        'lag_1h_tier': r.lag_1h_tier,
        'cold_start_blended': r.cold_start_blended
    } for r in results]
    return pd.DataFrame(rows, columns=FORECAST_COLUMNS)


class ForecastPipeline:
    """
    Produces hourly forecasts from a trained model and a historical index.

    Weather observations for one region must arrive in increasing time order;
    the index rejects out-of-order write-back.
    """

    def __init__(self,
                 model: PredictionModel,
                 index: HistoricalIndex,
                 config: Optional[ForecastConfig] = None,
                 feature_engineer: Optional[DemandFeatureEngineer] = None,
                 region_mapper: Optional[RegionMapper] = None):
        """
        Initialize the forecast pipeline.

        Args:
            model: Trained prediction model
            index: Historical index built from the training history
            config: Forecast configuration (defaults if None)
            feature_engineer: Feature engineer (built from the index calendar if None)
            region_mapper: Weather location to region mapping
        """
        self.model = model
        self.index = index
        self.config = config or ForecastConfig()
        self.feature_engineer = feature_engineer or DemandFeatureEngineer(
            index.holiday_calendar, self.config.base_temperature)
        self.region_mapper = region_mapper or RegionMapper()
        self.resolver = LagResolver(
            index,
            lag_hours=self.config.lag_hours,
            rolling_window_hours=self.config.rolling_window_hours,
            temperature_tolerance=self.config.similar_day_temp_tolerance,
            similar_day_cap=self.config.similar_day_cap,
        )

    def days_ahead(self, region: str, timestamp: datetime) -> int:
        """Whole days between the region's last historical reading and the timestamp."""
        last = self.index.last_history_timestamp(region)
        if last is None or timestamp <= last:
            return 0
        return (timestamp - last).days

    def forecast_step(self, region: str, observation: WeatherObservation) -> ForecastResult:
        """
        Forecast one (region, hour) and write the value back into the index.

        Args:
            region: Region code
            observation: Weather observation for the hour before the target

        Returns:
            Scaled ForecastResult
        """
        timestamp = weather_to_demand_time(observation.timestamp, self.config.weather_lead_hours)
        temperature = observation.weather.temperature

        lag_context, tiers = self.resolver.resolve_lag_context(region, timestamp, temperature)
        features = self.feature_engineer.derive_features(timestamp, observation.weather, lag_context)
        prediction = self.model.predict(features, region, self.days_ahead(region, timestamp))

        blended = False
        if tiers['demand_lag_1h'] is not FallbackTier.EXACT:
            similar = self.resolver.similar_days_estimate(region, timestamp, temperature)
            if similar is not None:
                weight = self.config.cold_start_blend_weight
                prediction = (1 - weight) * prediction + weight * similar
                blended = True

        prediction = max(0.0, prediction)
        self.index.record_forecast(region, timestamp, prediction, temperature)

        return ForecastResult(
            timestamp=timestamp,
            region=region,
            predicted_demand=prediction * self.config.scale_factor,
            lag_1h_tier=tiers['demand_lag_1h'].value,
            cold_start_blended=blended,
        )

    def run(self, weather_series: Iterable[WeatherObservation]) -> List[ForecastResult]:
        """
        Generate forecasts for every weather observation.

        Observations whose location maps to no region are skipped.

        Returns:
            ForecastResults in processing order
        """
        self.model.check_is_fitted()

        results = []
        skipped = set()
        for observation in weather_series:
            region = self.region_mapper.resolve(observation.location)
            if region is None:
                if observation.location not in skipped:
                    logger.warning(f"No region match for weather location '{observation.location}', skipping")
                    skipped.add(observation.location)
                continue
            results.append(self.forecast_step(region, observation))

        blended = sum(1 for r in results if r.cold_start_blended)
        regions = sorted({r.region for r in results})
        logger.info(f"Generated {len(results)} forecasts across {len(regions)} regions "
                    f"({blended} cold-start blended, scale factor {self.config.scale_factor:.4f})")
        return results


def build_pipeline(config: ForecastConfig,
                   merged_records: Sequence[MergedRecord],
                   demand_records: Sequence[DemandRecord] = (),
                   model: Optional[PredictionModel] = None,
                   region_mapper: Optional[RegionMapper] = None) -> ForecastPipeline:
    """
    Train the configured model (unless one is given) and assemble a pipeline.

    Args:
        config: Forecast configuration
        merged_records: Historical records with aligned weather
        demand_records: Raw demand readings for lag history
        model: Already trained model to use instead of training one
        region_mapper: Weather location to region mapping

    Returns:
        Ready-to-run ForecastPipeline
    """
    config.validate()
    calendar = holiday_calendar_from_config(config)
    feature_engineer = DemandFeatureEngineer(calendar, config.base_temperature)

    if model is None:
        trainer = ModelTrainer(config, SampleBuilder(feature_engineer, config.rolling_window_hours))
        model = trainer.train_from_records(merged_records)

    index = HistoricalIndex.build(merged_records, demand_records, calendar)
    return ForecastPipeline(model, index, config, feature_engineer, region_mapper)
