"""Tests for binomial inference and compliance sizing."""

import math

import pytest

from probity.specification.models import ThresholdOrigin
from probity.statistics.binomial import (
    derive_threshold,
    minimum_samples_for_pass,
    one_sided_p_value,
    standard_error,
    wald_interval,
    wilson_lower_bound,
    z_score,
)
from probity.statistics.compliance import (
    SIZING_NOTE,
    has_compliance_context,
    is_normative,
    is_undersized,
    minimum_compliance_samples,
)


class TestZScore:
    def test_two_sided_95(self) -> None:
        """Two-sided 95% confidence uses the familiar 1.96 critical value."""
        assert z_score(0.95) == pytest.approx(1.95996, abs=1e-4)

    def test_one_sided_95(self) -> None:
        """One-sided 95% confidence uses 1.645."""
        assert z_score(0.95, two_sided=False) == pytest.approx(1.64485, abs=1e-4)

    @pytest.mark.parametrize("confidence", [0.0, 1.0, -0.5, 1.5])
    def test_rejects_invalid_confidence(self, confidence: float) -> None:
        """Confidence outside the open unit interval is rejected."""
        with pytest.raises(ValueError, match="confidence"):
            z_score(confidence)


class TestWaldInterval:
    """Tests for the Wald interval and standard error."""

    def test_standard_error(self) -> None:
        """Standard error follows sqrt(p(1-p)/n) and is zero without samples."""
        assert standard_error(0.87, 100) == pytest.approx(math.sqrt(0.87 * 0.13 / 100))
        assert standard_error(0.5, 0) == 0.0

    def test_interval(self) -> None:
        """Wald interval for 87 of 100 at 95% confidence."""
        lower, upper = wald_interval(87, 100, 0.95)
        assert lower == pytest.approx(0.80409, abs=1e-4)
        assert upper == pytest.approx(0.93591, abs=1e-4)

    def test_clamped_to_unit_interval(self) -> None:
        """Interval bounds never leave [0, 1]."""
        lower, _ = wald_interval(1, 10, 0.95)
        assert lower == 0.0
        assert wald_interval(100, 100, 0.95) == (1.0, 1.0)

    def test_empty_sample_is_uninformative(self) -> None:
        assert wald_interval(0, 0, 0.95) == (0.0, 1.0)


class TestWilsonAndSizing:
    """Tests for the Wilson bound and sample sizing."""

    def test_perfect_observation_bound(self) -> None:
        """With no failures the Wilson bound reduces to n / (n + z^2)."""
        z = z_score(0.999, two_sided=False)
        assert wilson_lower_bound(200, 200, 0.999) == pytest.approx(200 / (200 + z * z))
        assert wilson_lower_bound(200, 200, 0.999) == pytest.approx(0.954, abs=1e-3)

    def test_empty_sample_bound(self) -> None:
        assert wilson_lower_bound(0, 0, 0.95) == 0.0

    @pytest.mark.parametrize(("target", "expected"), [(0.95, 52), (0.90, 25)])
    def test_minimum_samples_at_95(self, target: float, expected: int) -> None:
        """Perfect runs needed before the lower bound clears the target."""
        assert minimum_samples_for_pass(target, 0.05) == expected

    def test_minimum_samples_clears_target(self) -> None:
        """The sizing is tight: one sample fewer no longer clears the target."""
        n = minimum_samples_for_pass(0.95, 0.05)
        assert wilson_lower_bound(n, n, 0.95) >= 0.95
        assert wilson_lower_bound(n - 1, n - 1, 0.95) < 0.95

    def test_rejects_degenerate_target(self) -> None:
        """A target of 1.0 can never be demonstrated."""
        with pytest.raises(ValueError, match="target"):
            minimum_samples_for_pass(1.0, 0.05)

    def test_derive_threshold_below_observed_rate(self) -> None:
        """A derived threshold sits just below the baseline's observed rate."""
        threshold = derive_threshold(1000, 950, 0.95)
        assert 0.93 < threshold < 0.95


class TestPValue:
    def test_strong_evidence_against_threshold(self) -> None:
        """80 of 100 against a 0.9 threshold is strong evidence of degradation."""
        assert one_sided_p_value(80, 100, 0.9) < 0.01

    def test_no_evidence_against_threshold(self) -> None:
        assert one_sided_p_value(95, 100, 0.9) > 0.5

    def test_degenerate_inputs(self) -> None:
        """Empty samples and boundary thresholds give fixed p-values."""
        assert one_sided_p_value(0, 0, 0.9) == 1.0
        assert one_sided_p_value(5, 10, 0.0) == 1.0
        assert one_sided_p_value(10, 10, 1.0) == 1.0
        assert one_sided_p_value(9, 10, 1.0) == 0.0


# -----------------------------------------------------------------------------
# Compliance sizing
# -----------------------------------------------------------------------------


class TestCompliance:
    """Tests for compliance evidence sizing."""

    def test_sizing_note(self) -> None:
        assert SIZING_NOTE == "sample not sized for compliance verification"

    @pytest.mark.parametrize(
        ("samples", "expected"), [(200, True), (10_000, True), (100_000, False)]
    )
    def test_is_undersized_for_four_nines(self, samples: int, expected: bool) -> None:
        """Even ten thousand samples cannot support a 99.99% compliance claim."""
        assert is_undersized(samples, 0.9999) is expected

    @pytest.mark.parametrize(("samples", "target"), [(0, 0.99), (-5, 0.99), (100, 0.0), (100, 1.0)])
    def test_degenerate_inputs_are_not_undersized(self, samples: int, target: float) -> None:
        """Inputs without a meaningful target are never flagged as undersized."""
        assert not is_undersized(samples, target)

    def test_minimum_compliance_samples_for_four_nines(self) -> None:
        """Roughly 95k perfect samples are needed to evidence 99.99%."""
        assert 95_000 < minimum_compliance_samples(0.9999) < 96_000

    def test_normative_origins(self) -> None:
        """Normative origins are recognised in any case or padding."""
        assert is_normative(ThresholdOrigin.SLA)
        assert is_normative("slo")
        assert is_normative(" Policy ")
        assert not is_normative(ThresholdOrigin.EMPIRICAL)
        assert not is_normative(None)

    def test_has_compliance_context(self) -> None:
        """A normative origin or a non-blank contract reference gives compliance context."""
        assert has_compliance_context("sla", None)
        assert has_compliance_context(ThresholdOrigin.UNSPECIFIED, "CONTRACT-7")
        assert not has_compliance_context(ThresholdOrigin.EMPIRICAL, None)
        assert not has_compliance_context(ThresholdOrigin.UNSPECIFIED, "   ")
