"""Baseline expiration.

A baseline may declare a validity period. Once it has elapsed the baseline
no longer reliably represents the system, and verdicts computed against it
should say so. Before that point, warnings escalate as expiry approaches.

Lead-time thresholds are either explicit durations or fractions of the
validity period (25% for "soon" and 10% for "imminent" by default).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from probity.config.models import ExpirationConfig

logger = logging.getLogger(__name__)


class ExpirationState(str, Enum):
    """Graded expiration states, least to most severe."""

    OK = "OK"
    EXPIRING_SOON = "EXPIRING_SOON"
    EXPIRING_IMMINENTLY = "EXPIRING_IMMINENTLY"
    EXPIRED = "EXPIRED"


@dataclass(frozen=True)
class ExpirationPolicy:
    """Validity of a baseline.

    Attributes:
        validity_days: Days the baseline stays valid after its window ends;
            0 means it never expires
        baseline_end_time: End of the measurement window

    """

    validity_days: int
    baseline_end_time: datetime

    def __post_init__(self) -> None:
        if self.validity_days < 0:
            raise ValueError(f"validity_days must be non-negative, got {self.validity_days}")

    @property
    def has_expiration(self) -> bool:
        return self.validity_days > 0

    @property
    def validity(self) -> timedelta:
        return timedelta(days=self.validity_days)

    @property
    def expires_at(self) -> datetime | None:
        if not self.has_expiration:
            return None
        return self.baseline_end_time + self.validity


@dataclass(frozen=True)
class ExpirationStatus:
    """Result of evaluating an expiration policy at an instant."""

    state: ExpirationState
    expires_at: datetime | None = None
    remaining: timedelta | None = None
    elapsed: timedelta | None = None
    remaining_fraction: float | None = None

    @property
    def is_expired(self) -> bool:
        return self.state is ExpirationState.EXPIRED

    @property
    def requires_warning(self) -> bool:
        return self.state is not ExpirationState.OK

    def describe(self) -> str:
        """One-line human description of the status."""
        if self.state is ExpirationState.EXPIRED:
            return f"Baseline expired {_format_duration(self.elapsed)} ago"
        if self.state is ExpirationState.OK:
            if self.expires_at is None:
                return "Baseline has no expiration"
            return f"Baseline valid for {_format_duration(self.remaining)}"
        percent = (self.remaining_fraction or 0.0) * 100
        severity = "imminently" if self.state is ExpirationState.EXPIRING_IMMINENTLY else "soon"
        return (
            f"Baseline expiring {severity}: {_format_duration(self.remaining)} remaining "
            f"({percent:.0f}% of validity)"
        )


def _format_duration(duration: timedelta | None) -> str:
    if duration is None:
        return "unknown"
    total_hours = int(duration.total_seconds() // 3600)
    days, hours = divmod(total_hours, 24)
    if days:
        return f"{days}d {hours}h"
    minutes = int(duration.total_seconds() // 60) % 60
    if hours:
        return f"{hours}h {minutes}m"
    return f"{minutes}m"


class ExpirationEvaluator:
    """Classifies a policy as OK, expiring soon, expiring imminently, or expired.

    Example:
        evaluator = ExpirationEvaluator()
        status = evaluator.evaluate(record.expiration_policy(), now)
        if status.requires_warning:
            print(status.describe())

    """

    def __init__(
        self,
        soon_fraction: float = 0.25,
        imminent_fraction: float = 0.10,
        soon_threshold: timedelta | None = None,
        imminent_threshold: timedelta | None = None,
    ) -> None:
        """Initialize the evaluator.

        Args:
            soon_fraction: Remaining share of validity that triggers EXPIRING_SOON
            imminent_fraction: Remaining share that triggers EXPIRING_IMMINENTLY
            soon_threshold: Explicit lead time overriding ``soon_fraction``
            imminent_threshold: Explicit lead time overriding ``imminent_fraction``

        Raises:
            ValueError: If the fractions or explicit thresholds are out of
                range or out of order

        """
        if not 0 < imminent_fraction <= soon_fraction <= 1:
            raise ValueError(
                "Expected 0 < imminent_fraction <= soon_fraction <= 1, got "
                f"{imminent_fraction} and {soon_fraction}"
            )
        for name, threshold in (
            ("soon_threshold", soon_threshold),
            ("imminent_threshold", imminent_threshold),
        ):
            if threshold is not None and threshold < timedelta(0):
                raise ValueError(f"{name} must be non-negative, got {threshold}")
        if (
            soon_threshold is not None
            and imminent_threshold is not None
            and imminent_threshold > soon_threshold
        ):
            raise ValueError(
                f"imminent_threshold {imminent_threshold} exceeds soon_threshold {soon_threshold}"
            )
        self.soon_fraction = soon_fraction
        self.imminent_fraction = imminent_fraction
        self.soon_threshold = soon_threshold
        self.imminent_threshold = imminent_threshold

    @classmethod
    def from_config(cls, config: ExpirationConfig) -> ExpirationEvaluator:
        return cls(soon_fraction=config.soon_fraction, imminent_fraction=config.imminent_fraction)

    def thresholds(self, policy: ExpirationPolicy) -> tuple[timedelta, timedelta]:
        """Lead times (soon, imminent) for a policy.

        An explicit threshold, including zero, replaces its fraction. The
        imminent lead time never exceeds the soon one.
        """
        soon = self.soon_threshold
        if soon is None:
            soon = policy.validity * self.soon_fraction
        imminent = self.imminent_threshold
        if imminent is None:
            imminent = policy.validity * self.imminent_fraction
        return soon, min(imminent, soon)

    def evaluate(self, policy: ExpirationPolicy | None, now: datetime) -> ExpirationStatus:
        """Evaluate a policy at ``now``.

        Args:
            policy: Policy to evaluate; None means no expiration
            now: Evaluation instant

        Returns:
            The expiration status

        """
        if policy is None or not policy.has_expiration:
            return ExpirationStatus(state=ExpirationState.OK)

        expires_at = policy.baseline_end_time + policy.validity
        remaining = expires_at - now
        if remaining < timedelta(0):
            logger.warning(f"Baseline expired at {expires_at.isoformat()}")
            return ExpirationStatus(
                state=ExpirationState.EXPIRED,
                expires_at=expires_at,
                remaining=timedelta(0),
                elapsed=-remaining,
                remaining_fraction=0.0,
            )

        fraction = remaining / policy.validity
        soon, imminent = self.thresholds(policy)
        if remaining <= imminent:
            state = ExpirationState.EXPIRING_IMMINENTLY
        elif remaining <= soon:
            state = ExpirationState.EXPIRING_SOON
        else:
            state = ExpirationState.OK

        return ExpirationStatus(
            state=state,
            expires_at=expires_at,
            remaining=remaining,
            remaining_fraction=min(fraction, 1.0),
        )
