"""
Gradient-boosted regression trees implemented with numpy.
Squared-error boosting with shallow trees, per-node feature subsampling and
coarse split search over sorted feature values.
"""

from dataclasses import dataclass
from typing import Dict, Any, List, Optional, Sequence
import logging

import numpy as np

from features.feature_engineer import FeatureVector, feature_vector_to_array, features_to_matrix
from features.sample_builder import TrainingSample
from .base_model import PredictionModel
from .validation import chronological_split

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


@dataclass
class TreeNode:
    """Regression tree node; leaves carry a value, internal nodes a split."""
    value: float = 0.0
    feature_idx: Optional[int] = None
    threshold: Optional[float] = None
    left: Optional['TreeNode'] = None
    right: Optional['TreeNode'] = None

    @property
    def is_leaf(self) -> bool:
        return self.feature_idx is None

    def predict(self, x: np.ndarray) -> float:
        node = self
        while not node.is_leaf:
            node = node.left if x[node.feature_idx] <= node.threshold else node.right
        return node.value

    def to_dict(self) -> Dict[str, Any]:
        if self.is_leaf:
            return {'value': self.value}
        return {
            'feature_idx': self.feature_idx,
            'threshold': self.threshold,
            'left': self.left.to_dict(),
            'right': self.right.to_dict()
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'TreeNode':
        if 'feature_idx' not in data:
            return cls(value=data['value'])
        return cls(feature_idx=data['feature_idx'], threshold=data['threshold'],
                   left=cls.from_dict(data['left']), right=cls.from_dict(data['right']))


def _sse(values: np.ndarray) -> float:
    if values.size == 0:
        return 0.0
    return float(np.sum((values - values.mean()) ** 2))


class GradientBoostedTrees:
    """
    Gradient boosting on a numeric feature matrix.

    The ensemble starts from the target mean; each round fits one regression
    tree to the current residuals and adds it scaled by the learning rate.
    """

    def __init__(self,
                 n_estimators: int = 100,
                 max_depth: int = 6,
                 learning_rate: float = 0.1,
                 min_samples_leaf: int = 5,
                 n_candidate_splits: int = 20,
                 min_split_gain: float = 1e-9,
                 random_state: Optional[int] = 42):
        """
        Initialize the booster.

        Args:
            n_estimators: Number of boosting rounds
            max_depth: Maximum tree depth
            learning_rate: Shrinkage applied to each tree
            min_samples_leaf: Minimum samples on each side of a split
            n_candidate_splits: Approximate number of split positions tried per feature
            min_split_gain: Gains at or below this value do not split
            random_state: Seed for feature subsampling
        """
        self.n_estimators = n_estimators
        self.max_depth = max_depth
        self.learning_rate = learning_rate
        self.min_samples_leaf = min_samples_leaf
        self.n_candidate_splits = n_candidate_splits
        self.min_split_gain = min_split_gain
        self.random_state = random_state

        self.base_prediction = 0.0
        self.trees: List[TreeNode] = []
        self.feature_usage: Optional[np.ndarray] = None
        self._rng = None

    def fit(self, X: np.ndarray, y: np.ndarray) -> 'GradientBoostedTrees':
        X = np.asarray(X, dtype=float)
        y = np.asarray(y, dtype=float)
        if X.ndim != 2 or len(X) != len(y) or len(y) == 0:
            raise ValueError("X must be a non-empty 2D array with one row per target value")

        self._rng = np.random.default_rng(self.random_state)
        self.feature_usage = np.zeros(X.shape[1], dtype=int)
        self.trees = []

        self.base_prediction = float(np.mean(y))
        predictions = np.full(len(y), self.base_prediction)

        for _ in range(self.n_estimators):
            residuals = y - predictions
            tree = self._build_tree(X, residuals, depth=0)
            self.trees.append(tree)
            predictions += self.learning_rate * np.array([tree.predict(x) for x in X])

        return self

    def _n_features_to_try(self, n_features: int) -> int:
        return min(n_features, max(10, int(np.sqrt(n_features))))

    def _valid_split(self, s: int, n: int) -> bool:
        return 0 < s < n and s >= self.min_samples_leaf and n - s >= self.min_samples_leaf

    def _build_tree(self, X: np.ndarray, residuals: np.ndarray, depth: int) -> TreeNode:
        n = len(residuals)
        if n == 0:
            return TreeNode(value=0.0)

        mean = float(residuals.mean())
        if depth >= self.max_depth or n < 2 * self.min_samples_leaf:
            return TreeNode(value=mean)

        parent_sse = _sse(residuals)
        best_gain = self.min_split_gain
        best_feature, best_threshold = None, None

        n_features = X.shape[1]
        candidates = self._rng.choice(n_features, size=self._n_features_to_try(n_features), replace=False)
        step = max(1, n // self.n_candidate_splits)

        for f in candidates:
            order = np.argsort(X[:, f], kind='stable')
            column = X[order, f]
            sorted_residuals = residuals[order]

            tried = set()
            for s in range(step, n - step, step):
                if column[s - 1] == column[s]:
                    # Move to the nearer valid edge of the run of equal values
                    left = int(np.searchsorted(column, column[s], side='left'))
                    right = int(np.searchsorted(column, column[s], side='right'))
                    edges = [e for e in sorted((left, right), key=lambda e: abs(e - s))
                             if self._valid_split(e, n)]
                    if not edges:
                        continue
                    s = edges[0]
                elif not self._valid_split(s, n):
                    continue
                if s in tried:
                    continue
                tried.add(s)

                gain = parent_sse - _sse(sorted_residuals[:s]) - _sse(sorted_residuals[s:])
                if gain > best_gain:
                    best_gain = gain
                    best_feature = int(f)
                    best_threshold = float((column[s - 1] + column[s]) / 2)

        if best_feature is None:
            return TreeNode(value=mean)

        self.feature_usage[best_feature] += 1
        mask = X[:, best_feature] <= best_threshold
        return TreeNode(
            feature_idx=best_feature,
            threshold=best_threshold,
            left=self._build_tree(X[mask], residuals[mask], depth + 1),
            right=self._build_tree(X[~mask], residuals[~mask], depth + 1),
        )

    def predict_one(self, x: np.ndarray) -> float:
        total = self.base_prediction
        for tree in self.trees:
            total += self.learning_rate * tree.predict(x)
        return max(0.0, total)

    def predict(self, X: np.ndarray) -> np.ndarray:
        X = np.asarray(X, dtype=float)
        return np.array([self.predict_one(x) for x in X], dtype=float)

    def feature_importances(self) -> np.ndarray:
        """Split usage counts normalised by the most used feature."""
        if self.feature_usage is None:
            return np.array([])
        return self.feature_usage / max(int(self.feature_usage.max()), 1)


class TreeEnsembleModel(PredictionModel):
    """
    Demand model backed by GradientBoostedTrees over the full feature vector.
    Metrics are reported on a chronological hold-out split.
    """

    def __init__(self,
                 n_estimators: int = 100,
                 max_depth: int = 6,
                 learning_rate: float = 0.1,
                 validation_split: float = 0.2,
                 random_state: Optional[int] = 42,
                 **kwargs):
        super().__init__("GradientBoostedTrees", "tree_ensemble",
                         n_estimators=n_estimators, max_depth=max_depth,
                         learning_rate=learning_rate, validation_split=validation_split,
                         random_state=random_state, **kwargs)
        self.validation_split = validation_split
        self.booster = GradientBoostedTrees(
            n_estimators=n_estimators,
            max_depth=max_depth,
            learning_rate=learning_rate,
            random_state=random_state,
        )
        self.feature_importances: Dict[str, float] = {}

    def train(self, samples: Sequence[TrainingSample]) -> Dict[str, float]:
        """
        Fit on the leading samples and evaluate on the trailing hold-out.
        With no hold-out, metrics are computed on the training samples.
        """
        self.validate_samples(samples)
        train_samples, test_samples = chronological_split(samples, self.validation_split)
        if not train_samples:
            train_samples, test_samples = list(samples), []

        X_train = features_to_matrix(s.features for s in train_samples)
        y_train = np.array([s.demand for s in train_samples], dtype=float)
        self.booster.fit(X_train, y_train)
        self.is_fitted = True

        self.feature_importances = {
            name: float(v) for name, v in zip(self.feature_names, self.booster.feature_importances())
        }

        eval_samples = test_samples or train_samples
        X_eval = features_to_matrix(s.features for s in eval_samples)
        y_eval = np.array([s.demand for s in eval_samples], dtype=float)
        metrics = self._evaluate(y_eval, self.booster.predict(X_eval))
        metrics['training_samples'] = len(train_samples)
        metrics['testing_samples'] = len(test_samples)

        if test_samples:
            self.validation_metrics = metrics
        else:
            self.training_metrics = metrics
        self._record_training(metrics, len(train_samples))
        return metrics

    def predict(self, features: FeatureVector, region: Optional[str] = None,
                days_ahead: int = 0) -> float:
        self.check_is_fitted()
        return self.booster.predict_one(feature_vector_to_array(features))

    def get_feature_importance(self) -> Optional[Dict[str, float]]:
        return dict(self.feature_importances) if self.feature_importances else None

    def _get_model_state(self) -> Dict[str, Any]:
        return {
            'base_prediction': self.booster.base_prediction,
            'learning_rate': self.booster.learning_rate,
            'trees': [tree.to_dict() for tree in self.booster.trees],
            'feature_importances': dict(self.feature_importances)
        }

    def _set_model_state(self, state: Dict[str, Any]) -> None:
        params = self.parameters
        self.validation_split = params.get('validation_split', 0.2)
        self.booster = GradientBoostedTrees(
            n_estimators=params.get('n_estimators', 100),
            max_depth=params.get('max_depth', 6),
            learning_rate=state['learning_rate'],
            random_state=params.get('random_state', 42),
        )
        self.booster.base_prediction = state['base_prediction']
        self.booster.trees = [TreeNode.from_dict(t) for t in state['trees']]
        self.feature_importances = dict(state['feature_importances'])
