"""Compliance evidence sizing.

A threshold backed by an SLA, SLO or policy is a claim about compliance.
Small samples cannot support that claim at a high target: even a run with
zero failures leaves the lower confidence bound below the target. A FAIL in
that regime is still informative; a PASS is not proof.
"""

from __future__ import annotations

from probity.specification.models import ThresholdOrigin

from .binomial import minimum_samples_for_pass, wilson_lower_bound

DEFAULT_COMPLIANCE_ALPHA = 0.001

SIZING_NOTE = "sample not sized for compliance verification"

NORMATIVE_ORIGINS = frozenset({ThresholdOrigin.SLA, ThresholdOrigin.SLO, ThresholdOrigin.POLICY})


def is_normative(origin: ThresholdOrigin | str | None) -> bool:
    """True for SLA, SLO and POLICY origins, matched case-insensitively."""
    if origin is None:
        return False
    if isinstance(origin, ThresholdOrigin):
        return origin in NORMATIVE_ORIGINS
    return origin.strip().upper() in {o.value for o in NORMATIVE_ORIGINS}


def has_compliance_context(origin: ThresholdOrigin | str | None, contract_ref: str | None) -> bool:
    """True when the threshold carries a normative origin or a contract reference."""
    return is_normative(origin) or bool(contract_ref and contract_ref.strip())


def is_undersized(samples: int, target: float, alpha: float = DEFAULT_COMPLIANCE_ALPHA) -> bool:
    """Whether a perfect run of ``samples`` would still fall short of ``target``.

    Degenerate inputs (no samples, a target outside (0, 1)) are never
    reported as undersized.
    """
    if samples <= 0 or target <= 0.0 or target >= 1.0:
        return False
    return wilson_lower_bound(samples, samples, 1.0 - alpha) < target


def minimum_compliance_samples(target: float, alpha: float = DEFAULT_COMPLIANCE_ALPHA) -> int:
    return minimum_samples_for_pass(target, alpha)
