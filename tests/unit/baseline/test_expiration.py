"""Tests for baseline expiration evaluation."""

from datetime import datetime, timedelta, timezone

import pytest

from probity.baseline.expiration import (
    ExpirationEvaluator,
    ExpirationPolicy,
    ExpirationState,
)
from probity.config.models import ExpirationConfig

END = datetime(2026, 1, 1, tzinfo=timezone.utc)


@pytest.fixture
def policy() -> ExpirationPolicy:
    return ExpirationPolicy(validity_days=10, baseline_end_time=END)


@pytest.fixture
def evaluator() -> ExpirationEvaluator:
    return ExpirationEvaluator()


class TestExpirationPolicy:
    """Tests for ExpirationPolicy."""

    def test_expires_at(self, policy: ExpirationPolicy) -> None:
        """Expiry is the baseline end plus the validity period."""
        assert policy.expires_at == END + timedelta(days=10)

    def test_zero_validity_never_expires(self) -> None:
        """A validity of zero days means the baseline never expires."""
        policy = ExpirationPolicy(validity_days=0, baseline_end_time=END)
        assert not policy.has_expiration
        assert policy.expires_at is None

    def test_rejects_negative_validity(self) -> None:
        with pytest.raises(ValueError, match="non-negative"):
            ExpirationPolicy(validity_days=-1, baseline_end_time=END)


class TestExpirationEvaluator:
    """Tests for ExpirationEvaluator.evaluate."""

    def test_no_policy_is_ok(self, evaluator: ExpirationEvaluator) -> None:
        """Without a policy there is nothing to warn about."""
        status = evaluator.evaluate(None, END)
        assert status.state is ExpirationState.OK
        assert status.expires_at is None
        assert not status.requires_warning

    def test_zero_validity_is_ok_forever(self, evaluator: ExpirationEvaluator) -> None:
        """Zero validity stays OK however much time passes."""
        policy = ExpirationPolicy(validity_days=0, baseline_end_time=END)
        status = evaluator.evaluate(policy, END + timedelta(days=3650))
        assert status.state is ExpirationState.OK

    def test_ok(self, evaluator: ExpirationEvaluator, policy: ExpirationPolicy) -> None:
        """Plenty of remaining validity reports OK with the remaining share."""
        status = evaluator.evaluate(policy, END + timedelta(days=1))
        assert status.state is ExpirationState.OK
        assert status.remaining == timedelta(days=9)
        assert status.remaining_fraction == pytest.approx(0.9)

    def test_expiring_soon(self, evaluator: ExpirationEvaluator, policy: ExpirationPolicy) -> None:
        """Inside the soon fraction the status warns but is not expired."""
        status = evaluator.evaluate(policy, END + timedelta(days=8))
        assert status.state is ExpirationState.EXPIRING_SOON
        assert status.requires_warning
        assert not status.is_expired

    def test_expiring_imminently(
        self, evaluator: ExpirationEvaluator, policy: ExpirationPolicy
    ) -> None:
        """Inside the imminent fraction the status escalates."""
        status = evaluator.evaluate(policy, END + timedelta(days=9, hours=12))
        assert status.state is ExpirationState.EXPIRING_IMMINENTLY
        assert status.remaining == timedelta(hours=12)

    def test_exact_expiry_instant_is_not_expired(
        self, evaluator: ExpirationEvaluator, policy: ExpirationPolicy
    ) -> None:
        """The expiry instant itself still counts as valid."""
        status = evaluator.evaluate(policy, END + timedelta(days=10))
        assert status.state is ExpirationState.EXPIRING_IMMINENTLY

    def test_expired(self, evaluator: ExpirationEvaluator, policy: ExpirationPolicy) -> None:
        """Past expiry the status reports how long ago it lapsed."""
        status = evaluator.evaluate(policy, END + timedelta(days=11))
        assert status.state is ExpirationState.EXPIRED
        assert status.is_expired
        assert status.requires_warning
        assert status.elapsed == timedelta(days=1)

    def test_explicit_thresholds(self, policy: ExpirationPolicy) -> None:
        """Explicit lead times replace the fractional ones."""
        evaluator = ExpirationEvaluator(
            soon_threshold=timedelta(days=5), imminent_threshold=timedelta(days=2)
        )
        assert evaluator.evaluate(policy, END + timedelta(days=4)).state is ExpirationState.OK
        soon = evaluator.evaluate(policy, END + timedelta(days=6))
        assert soon.state is ExpirationState.EXPIRING_SOON
        imminent = evaluator.evaluate(policy, END + timedelta(days=9))
        assert imminent.state is ExpirationState.EXPIRING_IMMINENTLY

    def test_zero_soon_threshold_is_honored(self, policy: ExpirationPolicy) -> None:
        """A zero lead time disables the warning instead of falling back to a fraction."""
        evaluator = ExpirationEvaluator(
            soon_threshold=timedelta(0), imminent_threshold=timedelta(0)
        )
        assert evaluator.thresholds(policy) == (timedelta(0), timedelta(0))
        status = evaluator.evaluate(policy, END + timedelta(days=9, hours=23))
        assert status.state is ExpirationState.OK

    def test_imminent_fraction_is_capped_by_explicit_soon(
        self, policy: ExpirationPolicy
    ) -> None:
        """A fractional imminent lead time never exceeds an explicit soon one."""
        evaluator = ExpirationEvaluator(soon_threshold=timedelta(hours=12))
        assert evaluator.thresholds(policy) == (timedelta(hours=12), timedelta(hours=12))

    def test_rejects_inverted_thresholds(self) -> None:
        """An imminent lead time longer than the soon one is rejected."""
        with pytest.raises(ValueError, match="exceeds soon_threshold"):
            ExpirationEvaluator(
                soon_threshold=timedelta(days=1), imminent_threshold=timedelta(days=2)
            )

    def test_rejects_negative_threshold(self) -> None:
        with pytest.raises(ValueError, match="imminent_threshold must be non-negative"):
            ExpirationEvaluator(imminent_threshold=timedelta(hours=-1))

    def test_from_config(self, policy: ExpirationPolicy) -> None:
        """Fractions are taken from the expiration configuration."""
        evaluator = ExpirationEvaluator.from_config(
            ExpirationConfig(soon_fraction=0.5, imminent_fraction=0.2)
        )
        status = evaluator.evaluate(policy, END + timedelta(days=6))
        assert status.state is ExpirationState.EXPIRING_SOON

    def test_rejects_inverted_fractions(self) -> None:
        """The imminent fraction may not exceed the soon fraction."""
        with pytest.raises(ValueError, match="imminent_fraction"):
            ExpirationEvaluator(soon_fraction=0.1, imminent_fraction=0.2)


class TestExpirationStatusDescribe:
    """Tests for ExpirationStatus.describe."""

    def test_expired(self, evaluator: ExpirationEvaluator, policy: ExpirationPolicy) -> None:
        """Expired baselines describe how long ago they expired."""
        status = evaluator.evaluate(policy, END + timedelta(days=12, hours=3))
        assert status.describe() == "Baseline expired 2d 3h ago"

    def test_expiring(self, evaluator: ExpirationEvaluator, policy: ExpirationPolicy) -> None:
        """Expiring baselines describe the remaining time and share."""
        status = evaluator.evaluate(policy, END + timedelta(days=9, hours=12))
        assert status.describe() == (
            "Baseline expiring imminently: 12h 0m remaining (5% of validity)"
        )

    def test_no_expiration(self, evaluator: ExpirationEvaluator) -> None:
        assert evaluator.evaluate(None, END).describe() == "Baseline has no expiration"
