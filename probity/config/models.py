"""Pydantic models for probity configuration.

This module defines the configuration schema shared by the verdict engine,
the expiration evaluator, covariate matching and budget tracking. Every
field has a default so an empty ``probity.yaml`` (or none at all) yields a
working configuration.
"""

from __future__ import annotations

import logging
from typing import Literal

from pydantic import BaseModel, Field, field_validator, model_validator


class ConfigurationError(Exception):
    """Raised when configuration loading or validation fails."""

    pass


# -----------------------------------------------------------------------------
# Statistics
# -----------------------------------------------------------------------------


class StatisticsConfig(BaseModel):
    """Settings for the binomial verdict engine."""

    confidence_level: float = Field(
        default=0.95,
        gt=0.0,
        lt=1.0,
        description="Two-sided confidence level for the reported Wald interval",
    )
    compliance_alpha: float = Field(
        default=0.001,
        gt=0.0,
        lt=1.0,
        description="Significance level used when checking compliance sample sizing",
    )
    verification_confidence: float = Field(
        default=0.95,
        gt=0.0,
        lt=1.0,
        description="One-sided confidence used for SMOKE feasibility hints",
    )
    small_sample_threshold: int = Field(default=30, ge=1)


# -----------------------------------------------------------------------------
# Expiration
# -----------------------------------------------------------------------------


class ExpirationConfig(BaseModel):
    """Lead-time thresholds for baseline expiration warnings.

    Thresholds are fractions of the baseline validity window. The imminent
    threshold must not exceed the soon threshold.
    """

    soon_fraction: float = Field(default=0.25, gt=0.0, le=1.0)
    imminent_fraction: float = Field(default=0.10, gt=0.0, le=1.0)

    @model_validator(mode="after")
    def check_ordering(self) -> ExpirationConfig:
        """Ensure the imminent threshold sits inside the soon threshold."""
        if self.imminent_fraction > self.soon_fraction:
            raise ValueError(
                f"imminent_fraction ({self.imminent_fraction}) must not exceed "
                f"soon_fraction ({self.soon_fraction})"
            )
        return self


# -----------------------------------------------------------------------------
# Budget and covariates
# -----------------------------------------------------------------------------


class BudgetConfig(BaseModel):
    """Default budget behaviour when a test does not declare one."""

    exhaustion_behavior: Literal["FAIL", "EVALUATE_PARTIAL"] = Field(default="FAIL")


class CovariateConfig(BaseModel):
    """Covariate matching settings."""

    case_insensitive_keys: list[str] = Field(default_factory=lambda: ["region"])


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = Field(default="INFO")
    format: str = Field(default="%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        """Validate that the level is a known logging level name."""
        level = v.strip().upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"Unknown logging level: {v}")
        return level


class ProbityConfig(BaseModel):
    """Root configuration, mapping to ``probity.yaml``."""

    statistics: StatisticsConfig = Field(default_factory=StatisticsConfig)
    expiration: ExpirationConfig = Field(default_factory=ExpirationConfig)
    budget: BudgetConfig = Field(default_factory=BudgetConfig)
    covariates: CovariateConfig = Field(default_factory=CovariateConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
