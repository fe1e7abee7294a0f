"""Binomial verdict engine.

Tests ``H0: π ≥ p0`` against ``H1: π < p0`` for the true success rate π of
a use case, given the samples observed in a run. The verdict is PASS when
the observed rate reaches the threshold. Everything that limits how far the
verdict can be trusted (small samples, thresholds without an empirical
baseline, samples too few to support a compliance claim, runs that stopped
early) is reported as a caveat rather than raised.

Wording depends on where the threshold came from and on the test intent:
VERIFICATION verdicts speak about requirements, SMOKE verdicts against
normative thresholds only speak about consistency with the target.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

from probity.config.models import StatisticsConfig
from probity.specification.models import ExecutionSpecification, TestIntent, ThresholdOrigin

from .aggregate import AggregateStatistics
from .binomial import minimum_samples_for_pass, one_sided_p_value, standard_error, wald_interval
from .compliance import SIZING_NOTE, has_compliance_context, is_normative, is_undersized
from .explanation import (
    BaselineReference,
    HypothesisStatement,
    ObservedData,
    StatisticalExplanation,
    StatisticalInference,
    VerdictInterpretation,
)

logger = logging.getLogger(__name__)

TEST_TYPE = "One-sided binomial proportion test"

# (null, alternative) qualifiers per threshold origin
_FRAMING: dict[ThresholdOrigin, tuple[str, str]] = {
    ThresholdOrigin.SLA: ("system meets SLA requirement", "system violates SLA"),
    ThresholdOrigin.SLO: ("system meets SLO target", "system falls short of SLO target"),
    ThresholdOrigin.POLICY: ("system meets policy requirement", "system violates policy"),
    ThresholdOrigin.EMPIRICAL: ("no degradation from baseline", "degradation from baseline"),
    ThresholdOrigin.UNSPECIFIED: ("success rate meets threshold", "success rate below threshold"),
}

_SMOKE_FRAMING = ("observed rate consistent with target", "observed rate inconsistent with target")

_PASS_CONCLUSION: dict[ThresholdOrigin, str] = {
    ThresholdOrigin.SLA: "The system meets its SLA requirement.",
    ThresholdOrigin.SLO: "The system meets its SLO target.",
    ThresholdOrigin.POLICY: "The system meets the policy requirement.",
    ThresholdOrigin.EMPIRICAL: "No degradation from the baseline was detected.",
    ThresholdOrigin.UNSPECIFIED: "The success rate meets the threshold.",
}

_FAIL_CONCLUSION: dict[ThresholdOrigin, str] = {
    ThresholdOrigin.SLA: "The system violates its SLA.",
    ThresholdOrigin.SLO: "The system falls short of its SLO target.",
    ThresholdOrigin.POLICY: "The system violates the policy requirement.",
    ThresholdOrigin.EMPIRICAL: "Performance has degraded relative to the baseline.",
    ThresholdOrigin.UNSPECIFIED: "The success rate is below the threshold.",
}


class VerdictEngine:
    """Computes verdicts and their explanations.

    Example:
        engine = VerdictEngine()
        explanation = engine.evaluate(
            "checkout_flow",
            AggregateStatistics.from_counts(100, 87),
            threshold=0.85,
        )
        explanation.passed  # True

    """

    def __init__(self, config: StatisticsConfig | None = None) -> None:
        self.config = config or StatisticsConfig()

    @classmethod
    def from_config(cls, config: StatisticsConfig) -> VerdictEngine:
        return cls(config)

    def evaluate(
        self,
        test_name: str,
        statistics: AggregateStatistics,
        threshold: float,
        *,
        baseline: BaselineReference | None = None,
        threshold_origin: ThresholdOrigin = ThresholdOrigin.UNSPECIFIED,
        contract_ref: str | None = None,
        intent: TestIntent = TestIntent.VERIFICATION,
        planned_samples: int | None = None,
        early_termination: str | None = None,
        additional_caveats: Sequence[str] = (),
    ) -> StatisticalExplanation:
        """Compute the verdict for a run.

        Args:
            test_name: Name of the test being judged
            statistics: Observed aggregate statistics
            threshold: Minimum acceptable success rate p0 in [0, 1]
            baseline: Baseline the threshold came from; None for an inline threshold
            threshold_origin: Where the threshold came from
            contract_ref: Reference to the contract behind the threshold
            intent: VERIFICATION or SMOKE
            planned_samples: Samples the run intended to take
            early_termination: Why sampling stopped before ``planned_samples``
            additional_caveats: Caveats from outside the statistics, appended last

        Returns:
            The frozen StatisticalExplanation

        Raises:
            ValueError: If threshold is outside [0, 1]

        """
        if not 0.0 <= threshold <= 1.0:
            raise ValueError(f"threshold must be in [0, 1], got {threshold}")

        n = statistics.sample_count
        k = statistics.success_count
        rate = statistics.success_rate
        passed = rate >= threshold
        confidence = self.config.confidence_level

        ci_lower, ci_upper = wald_interval(k, n, confidence)
        inference = StatisticalInference(
            standard_error=standard_error(rate, n),
            ci_lower=ci_lower,
            ci_upper=ci_upper,
            confidence_level=confidence,
            p_value=one_sided_p_value(k, n, threshold),
        )

        smoke_normative = intent is TestIntent.SMOKE and is_normative(threshold_origin)
        baseline = baseline or BaselineReference.inline()

        explanation = StatisticalExplanation(
            test_name=test_name,
            threshold=threshold,
            threshold_origin=threshold_origin,
            contract_ref=contract_ref,
            intent=intent,
            hypothesis=self._hypothesis(threshold, threshold_origin, smoke_normative),
            observed=ObservedData(sample_size=n, successes=k, observed_rate=rate),
            baseline=baseline,
            inference=inference,
            verdict=VerdictInterpretation(
                passed=passed,
                technical_result="PASS" if passed else "FAIL",
                plain_english=self._plain_english(
                    statistics, threshold, threshold_origin, passed, smoke_normative
                ),
                caveats=tuple(
                    self._caveats(
                        statistics,
                        threshold,
                        baseline,
                        threshold_origin,
                        contract_ref,
                        smoke_normative,
                        planned_samples,
                        early_termination,
                    )
                )
                + tuple(additional_caveats),
            ),
        )
        logger.info(
            f"{test_name}: {explanation.verdict.technical_result} "
            f"({k}/{n} = {rate:.4f} vs threshold {threshold:.4f})"
        )
        return explanation

    def evaluate_specification(
        self,
        spec: ExecutionSpecification,
        statistics: AggregateStatistics,
        *,
        baseline: BaselineReference | None = None,
        planned_samples: int | None = None,
        early_termination: str | None = None,
        additional_caveats: Sequence[str] = (),
    ) -> StatisticalExplanation:
        """Evaluate a run against an execution specification's requirements."""
        return self.evaluate(
            spec.spec_id,
            statistics,
            spec.min_pass_rate,
            baseline=baseline,
            threshold_origin=spec.threshold_origin,
            contract_ref=spec.contract_ref,
            intent=spec.intent,
            planned_samples=planned_samples,
            early_termination=early_termination,
            additional_caveats=additional_caveats,
        )

    # -------------------------------------------------------------------------
    # Wording
    # -------------------------------------------------------------------------

    def _hypothesis(
        self, threshold: float, origin: ThresholdOrigin, smoke_normative: bool
    ) -> HypothesisStatement:
        null_label, alt_label = _SMOKE_FRAMING if smoke_normative else _FRAMING[origin]
        return HypothesisStatement(
            test_type=TEST_TYPE,
            null_hypothesis=f"True success rate π ≥ {threshold:g} ({null_label})",
            alternative_hypothesis=f"True success rate π < {threshold:g} ({alt_label})",
        )

    def _plain_english(
        self,
        statistics: AggregateStatistics,
        threshold: float,
        origin: ThresholdOrigin,
        passed: bool,
        smoke_normative: bool,
    ) -> str:
        n = statistics.sample_count
        if n == 0:
            return (
                f"No samples were evaluated, so there is no evidence about the "
                f"threshold of {threshold:.2%}."
            )

        observed = (
            f"The observed success rate of {statistics.success_rate:.2%} "
            f"({statistics.success_count}/{n})"
        )
        if smoke_normative:
            if passed:
                return (
                    f"{observed} is consistent with the target of {threshold:.2%}. "
                    f"This smoke run does not establish {origin.value} compliance."
                )
            return f"{observed} is inconsistent with the target of {threshold:.2%}."

        if passed:
            return (
                f"{observed} meets the required threshold of {threshold:.2%}. "
                f"{_PASS_CONCLUSION[origin]}"
            )
        return (
            f"{observed} falls below the required threshold of {threshold:.2%}. "
            f"{_FAIL_CONCLUSION[origin]}"
        )

    def _caveats(
        self,
        statistics: AggregateStatistics,
        threshold: float,
        baseline: BaselineReference,
        origin: ThresholdOrigin,
        contract_ref: str | None,
        smoke_normative: bool,
        planned_samples: int | None,
        early_termination: str | None,
    ) -> list[str]:
        n = statistics.sample_count
        caveats = []

        if n == 0:
            caveats.append("No samples were observed; the verdict carries no statistical evidence.")
        elif n < self.config.small_sample_threshold:
            caveats.append(
                f"Small sample size (n={n}); the confidence interval is wide and "
                "the verdict may not be reproducible."
            )

        if not baseline.has_data:
            caveats.append(
                f"The threshold {threshold:g} is an inline threshold with no empirical "
                "baseline behind it; it has not been checked against measured behaviour."
            )

        alpha = self.config.compliance_alpha
        if has_compliance_context(origin, contract_ref) and is_undersized(n, threshold, alpha):
            required = minimum_samples_for_pass(threshold, alpha)
            caveats.append(
                f"Warning: {SIZING_NOTE}. With n={n} and a target of {threshold:g}, even "
                f"zero failures cannot demonstrate compliance at α={alpha:g} "
                f"(about {required} samples needed). A PASS is not evidence of compliance; "
                "a FAIL verdict remains a reliable indication of non-compliance."
            )

        if smoke_normative and 0.0 < threshold < 1.0:
            verification_confidence = self.config.verification_confidence
            required = minimum_samples_for_pass(threshold, 1.0 - verification_confidence)
            if n < required:
                caveats.append(
                    f"Sample not sized for verification (n={n}, at least {required} needed "
                    f"at {verification_confidence:.0%} confidence). This smoke run can reveal "
                    f"gross regressions but cannot verify the {origin.value} target."
                )
            else:
                caveats.append(
                    f"Sample size (n={n}) is sufficient for verification at "
                    f"{verification_confidence:.0%} confidence. Consider setting "
                    "intent = VERIFICATION for an evidential verdict."
                )

        if early_termination:
            planned = f" of {planned_samples} planned" if planned_samples else ""
            caveats.append(
                f"Sampling stopped early ({early_termination}); the verdict is based on "
                f"{n}{planned} samples."
            )

        return caveats
