"""Configuration for probity.

This module provides Pydantic models and a ConfigLoader for the optional
``probity.yaml`` project file.

Example:
    from probity.config import ConfigLoader, configure_logging

    config = ConfigLoader().load()
    configure_logging(config.logging)

"""

from .loader import ConfigLoader, configure_logging
from .models import (
    BudgetConfig,
    ConfigurationError,
    CovariateConfig,
    ExpirationConfig,
    LoggingConfig,
    ProbityConfig,
    StatisticsConfig,
)

__all__ = [
    "BudgetConfig",
    "ConfigLoader",
    "ConfigurationError",
    "CovariateConfig",
    "ExpirationConfig",
    "LoggingConfig",
    "ProbityConfig",
    "StatisticsConfig",
    "configure_logging",
]
