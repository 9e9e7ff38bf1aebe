"""
Unit tests for training sample construction.
"""

import unittest
from datetime import timedelta
import sys
import os

import pandas as pd

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))
sys.path.insert(0, os.path.dirname(__file__))

from features.sample_builder import REQUIRED_COLUMNS, SampleBuilder, records_from_frame
from utils.exceptions import DataValidationError, InsufficientDataError
from synthetic_data import START, build_samples, feature_engineer, merged_history

HOUR = timedelta(hours=1)


def ramp_demand(ts):
    """Demand equal to the number of hours since START."""
    return (ts - START).total_seconds() / 3600


def hourly_temperature(ts):
    return 20.0 + 0.5 * ts.hour


class TestSampleBuilder(unittest.TestCase):
    """Test cases for SampleBuilder."""

    def setUp(self):
        """Set up ten days of ramped history."""
        self.records = merged_history(START, hours=240, demand_fn=ramp_demand, temp_fn=hourly_temperature)

    def test_drops_records_without_weekly_lag(self):
        samples = build_samples(self.records)
        self.assertEqual(len(samples), 240 - 168)
        self.assertEqual(samples[0].timestamp, START + 168 * HOUR)

    def test_partial_lags_kept_on_request(self):
        samples = build_samples(self.records, include_partial_lags=True)
        self.assertEqual(len(samples), 240)
        self.assertIsNone(samples[0].features.demand_lag_1h)
        self.assertIsNone(samples[0].features.demand_rolling_24h)
        self.assertEqual(samples[1].features.demand_lag_1h, 0.0)

    def test_exact_lag_values(self):
        samples = build_samples(self.records)
        sample = samples[10]
        i = ramp_demand(sample.timestamp)

        self.assertEqual(sample.demand, i)
        self.assertEqual(sample.features.demand_lag_1h, i - 1)
        self.assertEqual(sample.features.demand_lag_24h, i - 24)
        self.assertEqual(sample.features.demand_lag_168h, i - 168)
        self.assertEqual(sample.features.temp_lag_1h, hourly_temperature(sample.timestamp - HOUR))
        self.assertEqual(sample.features.temp_lag_24h, hourly_temperature(sample.timestamp))

    def test_rolling_aggregates(self):
        sample = build_samples(self.records)[0]
        i = ramp_demand(sample.timestamp)

        self.assertAlmostEqual(sample.features.demand_rolling_24h, i - 12.5)
        self.assertAlmostEqual(sample.features.temp_rolling_24h, 20.0 + 0.5 * 11.5)
        self.assertEqual(sample.features.temp_max_24h, 31.5)

    def test_gap_leaves_lag_unresolved(self):
        gap_ts = START + 200 * HOUR
        records = [r for r in self.records if r.timestamp != gap_ts]

        samples = {s.timestamp: s for s in build_samples(records)}
        after_gap = samples[gap_ts + HOUR]

        self.assertIsNone(after_gap.features.demand_lag_1h)
        self.assertIsNone(after_gap.features.temp_lag_1h)
        expected = (sum(range(177, 201)) - 200) / 23
        self.assertAlmostEqual(after_gap.features.demand_rolling_24h, expected)

    def test_ordering_across_regions(self):
        records = (merged_history(START, hours=200, region='CVIS')
                   + merged_history(START, hours=200, region='CLUZ'))
        samples = build_samples(records)

        self.assertEqual(len(samples), 2 * (200 - 168))
        keys = [(s.timestamp, s.region) for s in samples]
        self.assertEqual(keys, sorted(keys))
        self.assertEqual(samples[0].region, 'CLUZ')
        self.assertEqual(samples[1].region, 'CVIS')

    def test_regions_do_not_share_lags(self):
        records = (merged_history(START, hours=200, region='CLUZ')
                   + merged_history(START + 100 * HOUR, hours=100, region='CVIS'))
        samples = build_samples(records)
        self.assertEqual({s.region for s in samples}, {'CLUZ'})

    def test_insufficient_history(self):
        with self.assertRaises(InsufficientDataError):
            build_samples(merged_history(START, hours=100))
        with self.assertRaises(InsufficientDataError):
            SampleBuilder(feature_engineer()).build_samples([])


class TestRecordsFromFrame(unittest.TestCase):
    """Test cases for DataFrame conversion."""

    def setUp(self):
        self.df = pd.DataFrame({
            'timestamp': ['2023-01-02 10:00:00', '2023-01-02 11:00:00'],
            'region': ['CLUZ', 'CLUZ'],
            'demand': [1000, 1050.5],
            'temperature': [28.0, 29.0],
            'dew_point': [22.0, 22.5],
            'precipitation': [0.0, 0.3],
            'wind_gust': [5.0, 6.0],
            'wind_speed': [3.0, 3.5],
            'cloud_cover': [40.0, 60.0],
            'solar_radiation': [300.0, 350.0],
            'uv_index': [5.0, 6.0],
        })

    def test_conversion(self):
        records = records_from_frame(self.df)
        self.assertEqual(len(records), 2)
        self.assertEqual(records[0].timestamp.hour, 10)
        self.assertEqual(records[0].region, 'CLUZ')
        self.assertIsInstance(records[0].demand, float)
        self.assertEqual(records[1].weather.precipitation, 0.3)

    def test_missing_columns(self):
        with self.assertRaises(DataValidationError):
            records_from_frame(self.df.drop(columns=['uv_index']))
        self.assertIn('solar_radiation', REQUIRED_COLUMNS)

    def test_null_weather_rejected(self):
        self.df.loc[1, 'temperature'] = None
        with self.assertRaises(DataValidationError):
            records_from_frame(self.df)


if __name__ == '__main__':
    unittest.main(verbosity=2)
