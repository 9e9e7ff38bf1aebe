"""
Unit tests for the historical index and lag fallback resolution.
"""

import unittest
from datetime import datetime, timedelta
import sys
import os

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))
sys.path.insert(0, os.path.dirname(__file__))

from features.calendar import DayType
from history.fallback import FallbackTier, LagResolver
from history.historical_index import HistoricalIndex
from models.data_models import DemandRecord, MergedRecord
from utils.exceptions import HistoryOrderError
from synthetic_data import NO_HOLIDAYS, START, make_weather, merged_history, profile_demand

HOUR = timedelta(hours=1)


class TestHistoricalIndexFallback(unittest.TestCase):
    """Fallback chains over one year of hourly history."""

    @classmethod
    def setUpClass(cls):
        cls.records = merged_history(START, hours=365 * 24, demand_fn=profile_demand)
        cls.index = HistoricalIndex.build(cls.records, holiday_calendar=NO_HOLIDAYS)
        cls.resolver = LagResolver(cls.index)
        cls.last = cls.records[-1].timestamp

    def test_build_summary(self):
        self.assertEqual(len(self.index), 365 * 24)
        self.assertEqual(self.index.regions, ['CLUZ'])
        self.assertEqual(self.index.last_history_timestamp('CLUZ'), self.last)
        self.assertEqual(self.index.last_known_demand('CLUZ'), profile_demand(self.last))

    def test_exact_match(self):
        ts = START + 500 * HOUR
        resolution = self.resolver.resolve_demand('CLUZ', ts)
        self.assertEqual(resolution.tier, FallbackTier.EXACT)
        self.assertEqual(resolution.value, profile_demand(ts))

    def test_weekly_lag_one_year_past_history(self):
        """The 168h lag beyond history resolves to the same-slot similar-day demand."""
        target = self.last + timedelta(days=365) + HOUR
        lag_ts = target - 168 * HOUR

        resolution = self.resolver.resolve_demand_lag('CLUZ', target, 168, 28.0)

        self.assertEqual(resolution.tier, FallbackTier.SIMILAR_DAYS)
        self.assertEqual(resolution.value, profile_demand(lag_ts))

    def test_typical_average_before_history(self):
        ts = START - timedelta(days=7) + 9 * HOUR
        resolution = self.resolver.resolve_demand('CLUZ', ts, 28.0)
        self.assertEqual(resolution.tier, FallbackTier.TYPICAL)
        self.assertEqual(resolution.value, profile_demand(ts))
        self.assertEqual(self.index.typical_demand('CLUZ', ts.hour, DayType.SUNDAY), profile_demand(ts))

    def test_unknown_region_is_unresolved(self):
        resolution = self.resolver.resolve_demand('XXXX', self.last)
        self.assertEqual(resolution.tier, FallbackTier.UNRESOLVED)
        self.assertIsNone(resolution.value)
        self.assertFalse(resolution.resolved)
        self.assertEqual(self.resolver.resolve_temperature('XXXX', self.last).tier, FallbackTier.UNRESOLVED)
        self.assertEqual(self.resolver.rolling_aggregates('XXXX', self.last, 28.0), (None, None, None))

    def test_rolling_aggregates_from_exact_history(self):
        target = self.last + HOUR
        expected = sum(profile_demand(target - h * HOUR) for h in range(1, 25)) / 24

        demand_mean, temp_mean, temp_max = self.resolver.rolling_aggregates('CLUZ', target, 28.0)

        self.assertAlmostEqual(demand_mean, expected, places=9)
        self.assertAlmostEqual(temp_mean, 28.0, places=9)
        self.assertEqual(temp_max, 28.0)

    def test_lag_context_right_after_history(self):
        target = self.last + HOUR
        context, tiers = self.resolver.resolve_lag_context('CLUZ', target, 28.0)

        self.assertEqual(context.demand_lag_1h, profile_demand(self.last))
        self.assertEqual(context.demand_lag_24h, profile_demand(target - 24 * HOUR))
        self.assertEqual(context.demand_lag_168h, profile_demand(target - 168 * HOUR))
        self.assertEqual(context.temp_lag_1h, 28.0)
        self.assertEqual(context.temp_lag_24h, 28.0)
        self.assertTrue(all(tier is FallbackTier.EXACT for tier in tiers.values()))

    def test_lag_context_far_past_history(self):
        target = self.last + timedelta(days=30)
        context, tiers = self.resolver.resolve_lag_context('CLUZ', target, 28.0)

        self.assertEqual(tiers['demand_lag_1h'], FallbackTier.SIMILAR_DAYS)
        self.assertEqual(tiers['temp_lag_1h'], FallbackTier.TYPICAL)
        self.assertEqual(context.temp_lag_24h, 28.0)
        self.assertIsNotNone(context.demand_rolling_24h)


class TestSimilarDays(unittest.TestCase):
    """Similar-day search with temperature filtering."""

    def setUp(self):
        """Workdays at 10:00 with varying temperatures."""
        readings = [
            (datetime(2023, 1, 2, 10), 28.0, 100.0),
            (datetime(2023, 1, 3, 10), 35.0, 500.0),
            (datetime(2023, 1, 4, 10), 30.0, 200.0),
            (datetime(2023, 1, 5, 10), 26.0, 300.0),
        ]
        records = [MergedRecord(ts, 'CMIN', demand, make_weather(temp)) for ts, temp, demand in readings]
        self.index = HistoricalIndex.build(records, holiday_calendar=NO_HOLIDAYS)
        self.target = datetime(2023, 1, 6, 10)

    def test_temperature_filter(self):
        # 35°C reading lies outside the 5°C tolerance of 28°C
        self.assertEqual(self.index.similar_days_demand('CMIN', self.target, 28.0), 200.0)

    def test_most_recent_days_first(self):
        self.assertEqual(self.index.similar_days_demand('CMIN', self.target, 28.0, max_days=2), 250.0)

    def test_missing_reference_temperature_skips_filter(self):
        self.assertEqual(self.index.similar_days_demand('CMIN', self.target, None), 275.0)

    def test_strictly_before_target(self):
        self.assertEqual(self.index.similar_days_demand('CMIN', datetime(2023, 1, 5, 10), 28.0), 150.0)

    def test_other_day_type_has_no_similar_days(self):
        self.assertIsNone(self.index.similar_days_demand('CMIN', datetime(2023, 1, 7, 10), 28.0))

    def test_last_known_when_slot_is_empty(self):
        resolver = LagResolver(self.index)
        resolution = resolver.resolve_demand('CMIN', datetime(2023, 1, 8, 10), 28.0)
        self.assertEqual(resolution.tier, FallbackTier.LAST_KNOWN)
        self.assertEqual(resolution.value, 300.0)

    def test_temperature_chain(self):
        resolver = LagResolver(self.index)
        self.assertEqual(resolver.resolve_temperature('CMIN', datetime(2023, 1, 3, 10)).value, 35.0)

        typical = resolver.resolve_temperature('CMIN', datetime(2023, 1, 9, 10))
        self.assertEqual(typical.tier, FallbackTier.TYPICAL)
        self.assertAlmostEqual(typical.value, (28.0 + 35.0 + 30.0 + 26.0) / 4)

        last = resolver.resolve_temperature('CMIN', datetime(2023, 1, 8, 10))
        self.assertEqual(last.tier, FallbackTier.LAST_KNOWN)
        self.assertEqual(last.value, 26.0)


class TestForecastWriteBack(unittest.TestCase):
    """Forecast write-back into the index."""

    def setUp(self):
        self.records = merged_history(START, hours=48)
        self.index = HistoricalIndex.build(self.records, holiday_calendar=NO_HOLIDAYS)
        self.last = self.records[-1].timestamp

    def test_forecast_visible_to_exact_lookup(self):
        ts = self.last + HOUR
        self.index.record_forecast('CLUZ', ts, 875.0, 29.0)

        self.assertEqual(self.index.demand_at('CLUZ', ts), 875.0)
        self.assertEqual(self.index.temperature_at('CLUZ', ts), 29.0)
        self.assertEqual(self.index.forecast_count, 1)
        resolution = LagResolver(self.index).resolve_demand_lag('CLUZ', ts + HOUR, 1, 29.0)
        self.assertEqual(resolution.tier, FallbackTier.EXACT)
        self.assertEqual(resolution.value, 875.0)

    def test_out_of_order_write_rejected(self):
        ts = self.last + 2 * HOUR
        self.index.record_forecast('CLUZ', ts, 900.0)

        with self.assertRaises(HistoryOrderError):
            self.index.record_forecast('CLUZ', ts - HOUR, 900.0)
        with self.assertRaises(HistoryOrderError):
            self.index.record_forecast('CLUZ', ts, 900.0)

        # Other regions keep their own ordering
        self.index.record_forecast('CVIS', ts - HOUR, 700.0)

    def test_history_not_overwritten(self):
        self.index.record_forecast('CLUZ', self.last, 1.0, 99.0)
        self.assertEqual(self.index.demand_at('CLUZ', self.last), 1000.0)
        self.assertEqual(self.index.temperature_at('CLUZ', self.last), 28.0)

    def test_raw_demand_records_extend_history(self):
        extra_ts = self.last + HOUR
        index = HistoricalIndex.build(
            self.records,
            demand_records=[DemandRecord(extra_ts, 'CLUZ', 555.0), DemandRecord(self.last, 'CLUZ', 1.0)],
            holiday_calendar=NO_HOLIDAYS)

        self.assertEqual(index.demand_at('CLUZ', extra_ts), 555.0)
        self.assertIsNone(index.temperature_at('CLUZ', extra_ts))
        self.assertEqual(index.demand_at('CLUZ', self.last), 1000.0)
        self.assertEqual(index.last_known_demand('CLUZ'), 555.0)
        self.assertEqual(index.last_known_temperature('CLUZ'), 28.0)


if __name__ == '__main__':
    unittest.main(verbosity=2)
