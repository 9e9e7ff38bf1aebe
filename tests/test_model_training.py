"""
Unit tests for the model training workflow.
"""

import unittest
import pandas as pd
import sys
import os

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))
sys.path.insert(0, os.path.dirname(__file__))

from features.sample_builder import SampleBuilder
from model.gradient_boosting import TreeEnsembleModel
from model.hybrid_model import HybridInterpolationModel
from model.linear_model import LinearDemandModel
from model.trainer import ModelTrainer
from utils.config import ForecastConfig, ModelChoice
from utils.exceptions import InsufficientDataError
from synthetic_data import START, build_samples, feature_engineer, merged_history, profile_demand


class TestModelTrainer(unittest.TestCase):
    """Test cases for ModelTrainer."""

    @classmethod
    def setUpClass(cls):
        cls.history = merged_history(START, hours=24 * 14, demand_fn=profile_demand)
        cls.samples = build_samples(cls.history)

    def setUp(self):
        self.trainer = ModelTrainer(ForecastConfig(), SampleBuilder(feature_engineer()))

    def test_minimum_sample_count(self):
        trainer = ModelTrainer(ForecastConfig(min_training_samples=200))
        with self.assertRaises(InsufficientDataError):
            trainer.train_model(self.samples)

        # Exactly the minimum is enough
        trainer = ModelTrainer(ForecastConfig(min_training_samples=len(self.samples)))
        trainer.check_sufficiency(self.samples)

    def test_minimum_per_region(self):
        records = self.history + merged_history(START, hours=24 * 8, region='CVIS')
        samples = build_samples(records)
        trainer = ModelTrainer(ForecastConfig(min_training_samples=30))

        # 168 CLUZ and 24 CVIS samples
        trainer.check_sufficiency(samples)
        with self.assertRaises(InsufficientDataError):
            trainer.check_sufficiency(samples, per_region=True)
        with self.assertRaises(InsufficientDataError):
            trainer.check_sufficiency([], per_region=True)

    def test_train_model_results(self):
        results = self.trainer.train_model(self.samples)

        self.assertEqual(results['model_type'], 'regression')
        self.assertEqual(results['samples'], len(self.samples))
        self.assertEqual(results['regions'], ['CLUZ'])
        self.assertIn('mae', results['metrics'])
        self.assertGreaterEqual(results['training_duration_seconds'], 0)
        self.assertEqual(len(self.trainer.get_trained_models()), 1)

    def test_train_from_records(self):
        model = self.trainer.train_from_records(self.history, ModelChoice.HYBRID)
        self.assertIsInstance(model, HybridInterpolationModel)
        self.assertTrue(model.is_fitted)

        default = self.trainer.train_from_records(self.history)
        self.assertIsInstance(default, LinearDemandModel)

    def test_explicit_choice_keeps_configured_parameters(self):
        config = ForecastConfig(growth_percent=0.1, random_state=3, min_training_samples=24)
        trainer = ModelTrainer(config, SampleBuilder(feature_engineer()))

        hybrid = trainer.train_from_records(self.history, 'hybrid')
        self.assertAlmostEqual(hybrid.growth_factor, 0.001)

        tree = trainer.train_from_records(self.history, ModelChoice.TREE_ENSEMBLE)
        self.assertIsInstance(tree, TreeEnsembleModel)
        self.assertEqual(tree.booster.random_state, 3)
        self.assertEqual(config.model_choice, ModelChoice.LINEAR)

    def test_comparison_and_summary(self):
        self.trainer.train_model(self.samples, LinearDemandModel())
        self.trainer.train_model(self.samples, TreeEnsembleModel(n_estimators=5))

        comparison = self.trainer.get_model_comparison('mae')
        self.assertIsInstance(comparison, pd.DataFrame)
        self.assertEqual(len(comparison), 2)
        self.assertTrue(comparison['mae'].is_monotonic_increasing)
        self.assertEqual(set(comparison['model_type']), {'regression', 'tree_ensemble'})

        summary = self.trainer.get_training_summary()
        self.assertEqual(summary['total_trainings'], 2)
        self.assertEqual(summary['model_types'], ['regression', 'tree_ensemble'])
        self.assertIn('avg_training_duration', summary)

    def test_empty_summary(self):
        summary = self.trainer.get_training_summary()
        self.assertEqual(summary['total_trainings'], 0)
        self.assertNotIn('avg_training_duration', summary)
        self.assertTrue(self.trainer.get_model_comparison().empty)


if __name__ == '__main__':
    unittest.main(verbosity=2)
