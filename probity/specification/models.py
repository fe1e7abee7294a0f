"""Execution specifications.

An execution specification is the approved contract a probabilistic test is
run against: the minimum pass rate, where that threshold comes from, the
cost envelope per sample, and the baselines that justified it. Loading a
specification does not validate it; ``validate()`` is called explicitly
before a test relies on it, so that an unapproved draft can still be
inspected.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from probity.baseline.expiration import ExpirationPolicy
from probity.config.models import ConfigurationError


class SpecificationValidationError(ConfigurationError):
    """Raised when a specification is incomplete or inconsistent."""

    pass


class ThresholdOrigin(str, Enum):
    """Where a pass-rate threshold comes from."""

    UNSPECIFIED = "UNSPECIFIED"
    SLA = "SLA"
    SLO = "SLO"
    POLICY = "POLICY"
    EMPIRICAL = "EMPIRICAL"

    @classmethod
    def parse(cls, value: str | None) -> ThresholdOrigin:
        """Case-insensitive lookup; blank means UNSPECIFIED."""
        if value is None or not value.strip():
            return cls.UNSPECIFIED
        try:
            return cls(value.strip().upper())
        except ValueError as e:
            raise SpecificationValidationError(f"Unknown threshold origin: {value!r}") from e


class TestIntent(str, Enum):
    """How strongly a verdict should be read.

    VERIFICATION verdicts are evidential. SMOKE runs are sanity checks whose
    verdicts are worded as consistency with a target.
    """

    __test__ = False

    VERIFICATION = "VERIFICATION"
    SMOKE = "SMOKE"

    @classmethod
    def parse(cls, value: str | None) -> TestIntent:
        if value is None or not value.strip():
            return cls.VERIFICATION
        try:
            return cls(value.strip().upper())
        except ValueError as e:
            raise SpecificationValidationError(f"Unknown test intent: {value!r}") from e


@dataclass(frozen=True)
class CostEnvelope:
    """Per-sample and total resource limits. Zero means unlimited."""

    max_time_per_sample_ms: int = 0
    max_tokens_per_sample: int = 0
    total_token_budget: int = 0

    def to_dict(self) -> dict[str, int]:
        return {
            "maxTimePerSampleMs": self.max_time_per_sample_ms,
            "maxTokensPerSample": self.max_tokens_per_sample,
            "totalTokenBudget": self.total_token_budget,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> CostEnvelope:
        data = data or {}
        return cls(
            max_time_per_sample_ms=int(data.get("maxTimePerSampleMs", 0)),
            max_tokens_per_sample=int(data.get("maxTokensPerSample", 0)),
            total_token_budget=int(data.get("totalTokenBudget", 0)),
        )


@dataclass(frozen=True)
class FactorSourceMetadata:
    """Provenance of the factor values a baseline experiment consumed."""

    source_hash: str = ""
    source_name: str = ""
    samples_used: int = 0
    early_termination: bool = False

    @property
    def has_hash(self) -> bool:
        return bool(self.source_hash)

    def to_dict(self) -> dict[str, Any]:
        return {
            "sourceHash": self.source_hash,
            "sourceName": self.source_name,
            "samplesUsed": self.samples_used,
            "earlyTermination": self.early_termination,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> FactorSourceMetadata:
        return cls(
            source_hash=str(data.get("sourceHash", "")),
            source_name=str(data.get("sourceName", "")),
            samples_used=int(data.get("samplesUsed", 0)),
            early_termination=bool(data.get("earlyTermination", False)),
        )


@dataclass(frozen=True)
class ExecutionSpecification:
    """Approved contract for running a probabilistic test."""

    spec_id: str
    use_case_id: str
    version: int = 1
    generated_at: datetime | None = None
    approved_at: datetime | None = None
    approved_by: str = ""
    approval_notes: str = ""
    source_baselines: tuple[str, ...] = ()
    execution_context: Mapping[str, str] = field(default_factory=dict)
    min_pass_rate: float = 1.0
    success_criteria: str = ""
    cost_envelope: CostEnvelope = field(default_factory=CostEnvelope)
    expires_in_days: int = 0
    baseline_end_time: datetime | None = None
    factor_source: FactorSourceMetadata | None = None
    threshold_origin: ThresholdOrigin = ThresholdOrigin.UNSPECIFIED
    contract_ref: str | None = None
    intent: TestIntent = TestIntent.VERIFICATION

    @property
    def is_approved(self) -> bool:
        return self.approved_at is not None and bool(self.approved_by.strip())

    @property
    def has_compliance_context(self) -> bool:
        return self.threshold_origin in (
            ThresholdOrigin.SLA,
            ThresholdOrigin.SLO,
            ThresholdOrigin.POLICY,
        ) or bool(self.contract_ref and self.contract_ref.strip())

    def expiration_policy(self) -> ExpirationPolicy | None:
        """Expiration of the baseline behind this specification, if declared."""
        if self.expires_in_days <= 0 or self.baseline_end_time is None:
            return None
        return ExpirationPolicy(
            validity_days=self.expires_in_days, baseline_end_time=self.baseline_end_time
        )

    def validate(self) -> None:
        """Check the specification is approved and internally consistent.

        Raises:
            SpecificationValidationError: Describing every problem found

        """
        problems = []
        if not self.is_approved:
            problems.append(
                f"Specification '{self.spec_id}' lacks approval metadata. "
                "Add 'approvedAt', 'approvedBy', and 'approvalNotes' to the specification file."
            )
        if not 0.0 <= self.min_pass_rate <= 1.0:
            problems.append(
                f"Specification '{self.spec_id}' has invalid minPassRate: {self.min_pass_rate}"
            )
        envelope = self.cost_envelope
        if min(
            envelope.max_time_per_sample_ms,
            envelope.max_tokens_per_sample,
            envelope.total_token_budget,
        ) < 0:
            problems.append(f"Specification '{self.spec_id}' has a negative cost envelope limit")
        if self.expires_in_days < 0:
            problems.append(
                f"Specification '{self.spec_id}' has invalid expiresInDays: {self.expires_in_days}"
            )
        if problems:
            raise SpecificationValidationError("\n".join(problems))
