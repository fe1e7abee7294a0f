"""Use-case configuration.

A use case names the operation under test, the functional parameters
(factors) it is exercised with, and the covariates it declares. Together
these determine the footprint its baselines are filed under.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from probity.baseline.footprint import Footprint
from probity.covariates.declaration import CovariateDeclaration


class UseCaseConfig(BaseModel):
    """Configuration of one use case."""

    model_config = ConfigDict(frozen=True)

    use_case_id: str = Field(..., description="Stable identifier of the use case")
    factors: dict[str, Any] = Field(default_factory=dict)
    covariates: CovariateDeclaration = Field(default_factory=CovariateDeclaration)

    @field_validator("use_case_id")
    @classmethod
    def validate_id(cls, v: str) -> str:
        """Validate use case ID format."""
        if not v or not v.strip():
            raise ValueError("Use case ID cannot be empty")
        return v.strip()

    def footprint(self) -> Footprint:
        return Footprint.of(self.use_case_id, self.factors, self.covariates)
