"""Statistical verdict engine.

Aggregates sample outcomes, tests them against a threshold with a one-sided
binomial test, and explains the verdict with caveats.
"""

from .aggregate import AggregateStatistics, SampleOutcome, StatisticsAccumulator
from .binomial import (
    derive_threshold,
    minimum_samples_for_pass,
    one_sided_p_value,
    standard_error,
    wald_interval,
    wilson_lower_bound,
    z_score,
)
from .compliance import (
    DEFAULT_COMPLIANCE_ALPHA,
    SIZING_NOTE,
    has_compliance_context,
    is_normative,
    is_undersized,
    minimum_compliance_samples,
)
from .explanation import (
    INLINE_SOURCE,
    BaselineReference,
    HypothesisStatement,
    ObservedData,
    StatisticalExplanation,
    StatisticalInference,
    VerdictInterpretation,
)
from .verdict import VerdictEngine

__all__ = [
    "DEFAULT_COMPLIANCE_ALPHA",
    "INLINE_SOURCE",
    "SIZING_NOTE",
    "AggregateStatistics",
    "BaselineReference",
    "HypothesisStatement",
    "ObservedData",
    "SampleOutcome",
    "StatisticalExplanation",
    "StatisticalInference",
    "StatisticsAccumulator",
    "VerdictEngine",
    "VerdictInterpretation",
    "derive_threshold",
    "has_compliance_context",
    "is_normative",
    "is_undersized",
    "minimum_compliance_samples",
    "minimum_samples_for_pass",
    "one_sided_p_value",
    "standard_error",
    "wald_interval",
    "wilson_lower_bound",
    "z_score",
]
