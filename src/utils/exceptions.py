"""
Custom exceptions for the grid demand forecasting system.
"""


class DemandForecastingError(Exception):
    """Base exception for the demand forecasting system."""
    pass


class ConfigurationError(DemandForecastingError):
    """Exception raised for invalid forecast configuration."""
    pass


class DataValidationError(DemandForecastingError):
    """Exception raised during input data validation."""
    pass


class ModelTrainingError(DemandForecastingError):
    """Exception raised during model training or when using an untrained model."""
    pass


class InsufficientDataError(ModelTrainingError):
    """Exception raised when too few training samples are available."""
    pass


class ForecastingError(DemandForecastingError):
    """Exception raised during forecast generation."""
    pass


class HistoryOrderError(ForecastingError):
    """Exception raised when forecasts are written out of timestamp order."""
    pass
