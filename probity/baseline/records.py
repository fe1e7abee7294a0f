"""Baseline records and their YAML format.

A baseline is the empirical record of a use case's behaviour in one
circumstance: the footprint it belongs to, the concrete covariate values it
was measured under, and the observed counts. Records are immutable; a new
measurement in the same circumstance produces a replacement record.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from probity.config.models import ConfigurationError
from probity.covariates.profile import CovariateProfile

from .expiration import ExpirationPolicy
from .naming import BaselineFileNamer

BASELINE_SCHEMA_VERSION = "probity-baseline-1"


class BaselineFormatError(ConfigurationError):
    """Raised when serialized baseline content cannot be read."""

    pass


class BaselineIdentityError(ConfigurationError):
    """Raised when merging baselines recorded under different circumstances."""

    pass


def _parse_instant(value: Any, field_name: str) -> datetime:
    if isinstance(value, datetime):
        instant = value
    elif isinstance(value, str):
        try:
            instant = datetime.fromisoformat(value)
        except ValueError as e:
            raise BaselineFormatError(f"Invalid {field_name}: {value!r}") from e
    else:
        raise BaselineFormatError(f"Missing or invalid {field_name}: {value!r}")
    if instant.tzinfo is None:
        instant = instant.replace(tzinfo=timezone.utc)
    return instant


class BaselineRecord(BaseModel):
    """Measured behaviour of a use case under one set of covariate values."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    use_case_id: str = Field(..., min_length=1)
    footprint: str = Field(..., min_length=1)
    covariates: CovariateProfile = Field(default_factory=CovariateProfile)
    samples: int = Field(..., ge=0)
    successes: int = Field(..., ge=0)
    window_start: datetime
    window_end: datetime
    generated_at: datetime
    expires_in_days: int = Field(default=0, ge=0)
    schema_version: str = BASELINE_SCHEMA_VERSION

    @model_validator(mode="after")
    def check_counts_and_window(self) -> BaselineRecord:
        """Reject impossible counts and inverted windows."""
        if self.successes > self.samples:
            raise ValueError(
                f"successes ({self.successes}) cannot exceed samples ({self.samples})"
            )
        if self.window_start > self.window_end:
            raise ValueError("window_start must not be after window_end")
        return self

    @property
    def rate(self) -> float:
        """Observed success rate, 0.0 when no samples were taken."""
        return self.successes / self.samples if self.samples else 0.0

    @property
    def has_data(self) -> bool:
        return self.samples > 0

    def filename(self, namer: BaselineFileNamer | None = None) -> str:
        return (namer or BaselineFileNamer()).generate_filename(
            self.use_case_id, self.footprint, self.covariates
        )

    def expiration_policy(self) -> ExpirationPolicy:
        return ExpirationPolicy(
            validity_days=self.expires_in_days, baseline_end_time=self.window_end
        )

    def same_circumstance(self, other: BaselineRecord) -> bool:
        """True when both records share footprint and covariate values."""
        return (
            self.use_case_id == other.use_case_id
            and self.footprint == other.footprint
            and self.covariates == other.covariates
        )

    def updated_with(self, newer: BaselineRecord) -> BaselineRecord:
        """Replace this record with a newer measurement of the same circumstance.

        Raises:
            BaselineIdentityError: If footprint or covariate values differ

        """
        if not self.same_circumstance(newer):
            raise BaselineIdentityError(
                f"Cannot update baseline {self.filename()} with {newer.filename()}: "
                "footprint or covariate values differ"
            )
        return newer

    # -------------------------------------------------------------------------
    # Serialization
    # -------------------------------------------------------------------------

    def to_dict(self) -> dict[str, Any]:
        """Convert to the on-disk mapping."""
        return {
            "schemaVersion": self.schema_version,
            "useCaseId": self.use_case_id,
            "footprint": self.footprint,
            "covariates": self.covariates.to_dict(),
            "samples": self.samples,
            "successes": self.successes,
            "windowStart": self.window_start.isoformat(),
            "windowEnd": self.window_end.isoformat(),
            "generatedAt": self.generated_at.isoformat(),
            "expiresInDays": self.expires_in_days,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> BaselineRecord:
        """Create from the on-disk mapping.

        Raises:
            BaselineFormatError: If fields are missing or invalid

        """
        if not isinstance(data, dict):
            raise BaselineFormatError(f"Expected a mapping, got {type(data).__name__}")
        schema_version = data.get("schemaVersion")
        if schema_version != BASELINE_SCHEMA_VERSION:
            raise BaselineFormatError(f"Unsupported baseline schema version: {schema_version!r}")

        try:
            return cls(
                schema_version=schema_version,
                use_case_id=data.get("useCaseId", ""),
                footprint=data.get("footprint", ""),
                covariates=CovariateProfile.from_dict(data.get("covariates")),
                samples=data.get("samples", -1),
                successes=data.get("successes", -1),
                window_start=_parse_instant(data.get("windowStart"), "windowStart"),
                window_end=_parse_instant(data.get("windowEnd"), "windowEnd"),
                generated_at=_parse_instant(data.get("generatedAt"), "generatedAt"),
                expires_in_days=data.get("expiresInDays", 0),
            )
        except (ValidationError, ValueError) as e:
            raise BaselineFormatError(f"Invalid baseline: {e}") from e

    def to_yaml(self) -> str:
        return yaml.safe_dump(self.to_dict(), sort_keys=False)

    @classmethod
    def from_yaml(cls, text: str) -> BaselineRecord:
        """Parse YAML baseline content.

        Raises:
            BaselineFormatError: If the YAML is malformed or invalid

        """
        try:
            data = yaml.safe_load(text)
        except yaml.YAMLError as e:
            raise BaselineFormatError(f"Invalid baseline YAML: {e}") from e
        return cls.from_dict(data)
