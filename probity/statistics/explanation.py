"""Statistical explanations.

A ``StatisticalExplanation`` is the full account of a verdict: the
hypotheses tested, what was observed, the baseline the threshold came from,
the inference, and the verdict with its caveats. It is built once by the
verdict engine and never modified.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from probity.specification.models import TestIntent, ThresholdOrigin

INLINE_SOURCE = "(inline configuration)"


class HypothesisStatement(BaseModel):
    model_config = ConfigDict(frozen=True)

    test_type: str
    null_hypothesis: str
    alternative_hypothesis: str


class ObservedData(BaseModel):
    model_config = ConfigDict(frozen=True)

    sample_size: int = Field(..., ge=0)
    successes: int = Field(..., ge=0)
    observed_rate: float = Field(..., ge=0.0, le=1.0)


class BaselineReference(BaseModel):
    """Where the threshold came from.

    ``inline()`` represents a threshold supplied directly by configuration
    with no empirical baseline behind it.
    """

    model_config = ConfigDict(frozen=True)

    source_file: str
    generated_at: datetime | None = None
    samples: int = Field(default=0, ge=0)
    successes: int = Field(default=0, ge=0)

    @classmethod
    def inline(cls) -> BaselineReference:
        return cls(source_file=INLINE_SOURCE)

    @property
    def has_data(self) -> bool:
        return self.samples > 0

    @property
    def rate(self) -> float:
        return self.successes / self.samples if self.samples else 0.0


class StatisticalInference(BaseModel):
    model_config = ConfigDict(frozen=True)

    standard_error: float
    ci_lower: float
    ci_upper: float
    confidence_level: float
    p_value: float


class VerdictInterpretation(BaseModel):
    model_config = ConfigDict(frozen=True)

    passed: bool
    technical_result: str
    plain_english: str
    caveats: tuple[str, ...] = ()


class StatisticalExplanation(BaseModel):
    """Complete, immutable account of one verdict."""

    model_config = ConfigDict(frozen=True)

    test_name: str
    threshold: float = Field(..., ge=0.0, le=1.0)
    threshold_origin: ThresholdOrigin = ThresholdOrigin.UNSPECIFIED
    contract_ref: str | None = None
    intent: TestIntent = TestIntent.VERIFICATION
    hypothesis: HypothesisStatement
    observed: ObservedData
    baseline: BaselineReference
    inference: StatisticalInference
    verdict: VerdictInterpretation

    @property
    def passed(self) -> bool:
        return self.verdict.passed

    @property
    def caveats(self) -> tuple[str, ...]:
        return self.verdict.caveats

    def to_dict(self) -> dict[str, Any]:
        """Plain mapping for report writers."""
        return self.model_dump(mode="json")
