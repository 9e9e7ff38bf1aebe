"""
Forecast accuracy evaluation against actual demand.
Reports per-region and overall error metrics and a scale adjustment when
forecasts are systematically biased.
"""

from dataclasses import dataclass, field
from typing import Dict, Iterable, Optional
import logging

import pandas as pd

from model.validation import ModelEvaluator
from models.data_models import DemandRecord, ForecastResult
from utils.exceptions import DataValidationError

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

BIAS_SIGNIFICANCE = 0.3  # Bias counts as significant above this fraction of MAE
HIGH_MAPE_THRESHOLD = 10.0
REPORT_METRICS = ['mae', 'mape', 'rmse', 'bias']


@dataclass
class EvaluationReport:
    """Forecast versus actual comparison."""
    by_region: pd.DataFrame
    overall: Dict[str, float]
    worst_hours: pd.DataFrame
    matched: int
    unmatched: int
    suggested_scale_percent: Optional[float] = None
    recommendations: list = field(default_factory=list)


def _metrics(errors: pd.DataFrame) -> Dict[str, float]:
    metrics = ModelEvaluator().evaluate_model(errors['actual'].to_numpy(dtype=float),
                                              errors['forecast'].to_numpy(dtype=float),
                                              REPORT_METRICS)
    metrics['count'] = int(len(errors))
    return metrics


def suggest_scale_percent(mae: float, bias: float) -> Optional[float]:
    """
    Scale adjustment (percent) compensating a significant bias, or None.

    Bias is significant when its magnitude exceeds 30% of the MAE.
    """
    if abs(bias) <= mae * BIAS_SIGNIFICANCE:
        return None
    return -bias / (mae + abs(bias)) * 100


class ForecastEvaluator:
    """
    Compares forecasts with actual demand readings.
    """

    def __init__(self, worst_count: int = 10):
        """
        Initialize the evaluator.

        Args:
            worst_count: Number of largest-error hours reported
        """
        self.worst_count = worst_count

    def compare(self, forecasts: Iterable[ForecastResult], actuals: Iterable[DemandRecord]) -> pd.DataFrame:
        """
        Pair forecasts with actuals on (region, timestamp).

        Returns:
            DataFrame with timestamp, region, forecast, actual, error and percent_error
            plus a `matched` flag per forecast
        """
        forecast_df = pd.DataFrame(
            [(f.timestamp, f.region, f.predicted_demand) for f in forecasts],
            columns=['timestamp', 'region', 'forecast'])
        actual_df = pd.DataFrame(
            [(a.timestamp, a.region, a.demand) for a in actuals],
            columns=['timestamp', 'region', 'actual'])
        if forecast_df.empty or actual_df.empty:
            raise DataValidationError("Both forecasts and actual readings are required for evaluation")
        actual_df = actual_df.drop_duplicates(subset=['timestamp', 'region'], keep='first')

        merged = forecast_df.merge(actual_df, on=['timestamp', 'region'], how='left')
        merged['matched'] = merged['actual'].notna()
        merged['error'] = merged['forecast'] - merged['actual']
        merged['percent_error'] = merged['error'].abs() / merged['actual'].where(merged['actual'] != 0) * 100
        return merged

    def evaluate(self, forecasts: Iterable[ForecastResult], actuals: Iterable[DemandRecord]) -> EvaluationReport:
        """
        Evaluate forecast accuracy.

        Raises:
            DataValidationError: If no forecast matches an actual reading
        """
        comparison = self.compare(forecasts, actuals)
        matched = comparison[comparison['matched']]
        unmatched = int((~comparison['matched']).sum())

        if matched.empty:
            raise DataValidationError("No matching records found between forecast and actual data")

        rows = []
        for region, group in matched.groupby('region', sort=True):
            row = {'region': region}
            row.update(_metrics(group))
            rows.append(row)
        by_region = pd.DataFrame(rows, columns=['region', 'mae', 'mape', 'rmse', 'bias', 'count'])

        overall = _metrics(matched)
        worst = matched.reindex(matched['error'].abs().sort_values(ascending=False).index)
        worst_hours = worst.head(self.worst_count)[
            ['timestamp', 'region', 'forecast', 'actual', 'error', 'percent_error']].reset_index(drop=True)

        suggestion = suggest_scale_percent(overall['mae'], overall['bias'])
        recommendations = []
        if suggestion is not None:
            direction = 'over' if overall['bias'] >= 0 else 'under'
            recommendations.append(
                f"Significant {direction}-forecasting detected; consider a scale of {suggestion:.1f}%")
        else:
            recommendations.append("Forecast bias is within acceptable range")
        if overall['mape'] > HIGH_MAPE_THRESHOLD:
            recommendations.append("MAPE above 10% suggests more training data or features")

        logger.info(f"Evaluated {overall['count']} forecasts ({unmatched} unmatched): "
                    f"MAE={overall['mae']:.1f}, MAPE={overall['mape']:.2f}%, "
                    f"RMSE={overall['rmse']:.1f}, bias={overall['bias']:+.1f}")

        return EvaluationReport(
            by_region=by_region,
            overall=overall,
            worst_hours=worst_hours,
            matched=int(len(matched)),
            unmatched=unmatched,
            suggested_scale_percent=suggestion,
            recommendations=recommendations,
        )
