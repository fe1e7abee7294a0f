"""Binomial proportion inference.

Provides the normal-approximation (Wald) interval reported with verdicts,
the one-sided Wilson lower bound used for sample sizing and empirical
thresholds, and an exact one-sided binomial p-value.
"""

from __future__ import annotations

import math

from scipy import stats


def z_score(confidence: float, two_sided: bool = True) -> float:
    """Standard normal quantile for a confidence level.

    Args:
        confidence: Confidence level in (0, 1)
        two_sided: Split the tail mass between both tails

    Returns:
        The critical value z

    Raises:
        ValueError: If confidence is outside (0, 1)

    """
    if not 0.0 < confidence < 1.0:
        raise ValueError(f"confidence must be in (0, 1), got {confidence}")
    tail = (1.0 - confidence) / 2.0 if two_sided else 1.0 - confidence
    return float(stats.norm.ppf(1.0 - tail))


def standard_error(rate: float, sample_count: int) -> float:
    """Standard error of a proportion, 0.0 for an empty sample."""
    if sample_count <= 0:
        return 0.0
    return math.sqrt(rate * (1.0 - rate) / sample_count)


def wald_interval(successes: int, sample_count: int, confidence: float) -> tuple[float, float]:
    """Two-sided Wald interval ``p̂ ± z·SE``, clamped to [0, 1].

    An empty sample yields the uninformative interval (0.0, 1.0).
    """
    if sample_count <= 0:
        return 0.0, 1.0
    rate = successes / sample_count
    margin = z_score(confidence) * standard_error(rate, sample_count)
    return max(0.0, rate - margin), min(1.0, rate + margin)


def wilson_lower_bound(successes: int, sample_count: int, confidence: float) -> float:
    """One-sided Wilson score lower bound for a proportion.

    For a perfect observation (successes == sample_count) this reduces to
    ``n / (n + z²)``.
    """
    if sample_count <= 0:
        return 0.0
    z = z_score(confidence, two_sided=False)
    n = sample_count
    p = successes / n
    z2 = z * z
    centre = p + z2 / (2 * n)
    spread = z * math.sqrt(p * (1 - p) / n + z2 / (4 * n * n))
    return max(0.0, (centre - spread) / (1 + z2 / n))


def one_sided_p_value(successes: int, sample_count: int, threshold: float) -> float:
    """Exact p-value for H0: π ≥ threshold against H1: π < threshold.

    Returns 1.0 when there is no evidence to weigh (empty sample or a
    threshold of 0).
    """
    if sample_count <= 0 or threshold <= 0.0:
        return 1.0
    if threshold >= 1.0:
        return 0.0 if successes < sample_count else 1.0
    return float(stats.binom.cdf(successes, sample_count, threshold))


def minimum_samples_for_pass(target: float, alpha: float) -> int:
    """Smallest n whose perfect observation clears ``target`` at level ``alpha``.

    Solves ``n / (n + z²) >= target`` with z the one-sided ``1 - alpha``
    quantile, i.e. ``n >= target·z² / (1 - target)``.

    Raises:
        ValueError: If target is not in (0, 1)

    """
    if not 0.0 < target < 1.0:
        raise ValueError(f"target must be in (0, 1), got {target}")
    z = z_score(1.0 - alpha, two_sided=False)
    return math.ceil(target * z * z / (1.0 - target))


def derive_threshold(baseline_samples: int, baseline_successes: int, confidence: float) -> float:
    """Empirical pass threshold from a baseline.

    The one-sided Wilson lower bound of the baseline rate: a run performing
    like the baseline will clear it with probability of roughly ``confidence``.
    """
    return wilson_lower_bound(baseline_successes, baseline_samples, confidence)
