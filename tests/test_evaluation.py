"""
Unit tests for model metrics and forecast accuracy evaluation.
"""

import unittest
import numpy as np
from datetime import datetime, timedelta
import sys
import os

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from model.validation import ModelEvaluator, chronological_split
from models.data_models import DemandRecord, ForecastResult
from pipeline.evaluation import ForecastEvaluator, suggest_scale_percent
from utils.exceptions import DataValidationError

BASE = datetime(2024, 1, 10, 1)


def forecasts(values, region='CLUZ'):
    return [ForecastResult(BASE + timedelta(hours=i), region, v) for i, v in enumerate(values)]


def actuals(values, region='CLUZ'):
    return [DemandRecord(BASE + timedelta(hours=i), region, v) for i, v in enumerate(values)]


class TestModelEvaluator(unittest.TestCase):
    """Test cases for ModelEvaluator."""

    def setUp(self):
        self.evaluator = ModelEvaluator()
        self.y_true = np.array([100.0, 200.0, 0.0])
        self.y_pred = np.array([110.0, 190.0, 5.0])

    def test_all_metrics(self):
        metrics = self.evaluator.evaluate_model(self.y_true, self.y_pred)

        self.assertEqual(set(metrics), {'mae', 'mse', 'rmse', 'mape', 'r2', 'bias'})
        self.assertAlmostEqual(metrics['mae'], 25.0 / 3)
        self.assertAlmostEqual(metrics['mse'], 75.0)
        self.assertAlmostEqual(metrics['rmse'], np.sqrt(75.0))
        # Zero actuals are excluded from MAPE
        self.assertAlmostEqual(metrics['mape'], 7.5)
        self.assertAlmostEqual(metrics['bias'], 5.0 / 3)

    def test_selected_metrics(self):
        metrics = self.evaluator.evaluate_model(self.y_true, self.y_pred, ['mae', 'unknown'])
        self.assertEqual(list(metrics), ['mae'])

    def test_edge_cases(self):
        self.assertEqual(self.evaluator.evaluate_model(np.zeros(3), np.ones(3), ['mape'])['mape'], 0.0)
        self.assertTrue(np.isnan(self.evaluator.evaluate_model(np.array([1.0]), np.array([2.0]), ['r2'])['r2']))

        empty = self.evaluator.evaluate_model(np.array([]), np.array([]), ['mae'])
        self.assertTrue(np.isnan(empty['mae']))

        with self.assertRaises(ValueError):
            self.evaluator.evaluate_model(np.ones(2), np.ones(3))


class TestChronologicalSplit(unittest.TestCase):
    """Test cases for chronological_split."""

    def test_split(self):
        train, validation = chronological_split(list(range(10)), 0.2)
        self.assertEqual(train, list(range(8)))
        self.assertEqual(validation, [8, 9])

    def test_no_holdout(self):
        train, validation = chronological_split(list(range(5)), 0.0)
        self.assertEqual(len(train), 5)
        self.assertEqual(validation, [])

    def test_invalid_fraction(self):
        with self.assertRaises(ValueError):
            chronological_split([1, 2], 1.0)


class TestForecastEvaluator(unittest.TestCase):
    """Test cases for ForecastEvaluator."""

    def setUp(self):
        self.evaluator = ForecastEvaluator(worst_count=2)

    def test_suggest_scale_percent(self):
        self.assertEqual(suggest_scale_percent(10.0, 10.0), -50.0)
        self.assertEqual(suggest_scale_percent(10.0, -10.0), 50.0)
        self.assertIsNone(suggest_scale_percent(10.0, 3.0))

    def test_systematic_over_forecast(self):
        report = self.evaluator.evaluate(forecasts([110.0, 210.0, 310.0]), actuals([100.0, 200.0, 300.0]))

        self.assertEqual(report.matched, 3)
        self.assertEqual(report.unmatched, 0)
        self.assertAlmostEqual(report.overall['mae'], 10.0)
        self.assertAlmostEqual(report.overall['bias'], 10.0)
        self.assertEqual(report.suggested_scale_percent, -50.0)
        self.assertIn('over-forecasting', report.recommendations[0])

    def test_balanced_errors(self):
        report = self.evaluator.evaluate(forecasts([110.0, 190.0]), actuals([100.0, 200.0]))

        self.assertAlmostEqual(report.overall['bias'], 0.0)
        self.assertIsNone(report.suggested_scale_percent)
        self.assertAlmostEqual(report.overall['mape'], 7.5)

    def test_unmatched_forecasts(self):
        report = self.evaluator.evaluate(forecasts([100.0, 200.0, 300.0]), actuals([100.0, 200.0]))
        self.assertEqual(report.matched, 2)
        self.assertEqual(report.unmatched, 1)

    def test_per_region_and_worst_hours(self):
        report = self.evaluator.evaluate(
            forecasts([105.0, 170.0, 310.0]) + forecasts([1000.0], region='CVIS'),
            actuals([100.0, 200.0, 300.0]) + actuals([1000.0], region='CVIS'))

        self.assertEqual(list(report.by_region['region']), ['CLUZ', 'CVIS'])
        cvis = report.by_region[report.by_region['region'] == 'CVIS'].iloc[0]
        self.assertEqual(cvis['mae'], 0.0)
        self.assertEqual(cvis['count'], 1)

        self.assertEqual(len(report.worst_hours), 2)
        self.assertEqual(list(report.worst_hours['error']), [-30.0, 10.0])

    def test_overall_metrics_match_model_evaluator(self):
        forecast_values = [110.0, 190.0, 5.0]
        actual_values = [100.0, 200.0, 0.0]
        report = self.evaluator.evaluate(forecasts(forecast_values), actuals(actual_values))

        expected = ModelEvaluator().evaluate_model(np.array(actual_values), np.array(forecast_values),
                                                   ['mae', 'mape', 'rmse', 'bias'])
        for name, value in expected.items():
            self.assertAlmostEqual(report.overall[name], value)
        self.assertEqual(report.overall['count'], 3)
        self.assertAlmostEqual(report.overall['mape'], 7.5)

    def test_no_matches(self):
        other_day = [DemandRecord(BASE + timedelta(days=5), 'CLUZ', 100.0)]
        with self.assertRaises(DataValidationError):
            self.evaluator.evaluate(forecasts([100.0]), other_day)
        with self.assertRaises(DataValidationError):
            self.evaluator.evaluate([], actuals([100.0]))

    def test_compare_percent_error(self):
        comparison = self.evaluator.compare(forecasts([110.0, 5.0]), actuals([100.0, 0.0]))
        self.assertAlmostEqual(comparison['percent_error'].iloc[0], 10.0)
        self.assertTrue(np.isnan(comparison['percent_error'].iloc[1]))
        self.assertTrue(comparison['matched'].all())


if __name__ == '__main__':
    unittest.main(verbosity=2)
