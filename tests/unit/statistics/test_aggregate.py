"""Tests for sample outcomes and aggregate statistics."""

import pytest
from pydantic import ValidationError

from probity.statistics.aggregate import AggregateStatistics, SampleOutcome, StatisticsAccumulator


class TestAggregateStatistics:
    """Tests for AggregateStatistics construction and consistency checks."""

    def test_from_counts(self) -> None:
        """Failure count and success rate are derived from the counts."""
        stats = AggregateStatistics.from_counts(100, 87, total_tokens=5000, mean_latency_ms=120.5)
        assert stats.sample_count == 100
        assert stats.success_count == 87
        assert stats.failure_count == 13
        assert stats.success_rate == pytest.approx(0.87)
        assert stats.total_tokens == 5000
        assert stats.mean_latency_ms == 120.5

    def test_empty(self) -> None:
        stats = AggregateStatistics.empty()
        assert stats.sample_count == 0
        assert stats.success_rate == 0.0

    @pytest.mark.parametrize(("n", "k"), [(0, 0), (1, 0), (1, 1), (7, 3), (1000, 999)])
    def test_from_counts_never_fails_for_valid_counts(self, n: int, k: int) -> None:
        """Any valid count pair produces consistent statistics."""
        stats = AggregateStatistics.from_counts(n, k)
        assert stats.success_count + stats.failure_count == stats.sample_count

    def test_rejects_negative_counts(self) -> None:
        """Negative counts fail validation."""
        with pytest.raises(ValidationError):
            AggregateStatistics(
                sample_count=-1, success_count=0, failure_count=0, success_rate=0.0
            )

    def test_rejects_inconsistent_counts(self) -> None:
        """Successes and failures must add up to the sample count."""
        with pytest.raises(ValidationError, match="must equal sample_count"):
            AggregateStatistics(
                sample_count=10, success_count=5, failure_count=4, success_rate=0.5
            )

    def test_rejects_rate_mismatch(self) -> None:
        """A success rate that disagrees with the counts is rejected."""
        with pytest.raises(ValidationError, match="does not match counts"):
            AggregateStatistics(
                sample_count=10, success_count=5, failure_count=5, success_rate=0.6
            )

    def test_rejects_rate_out_of_range(self) -> None:
        with pytest.raises(ValidationError):
            AggregateStatistics(
                sample_count=10, success_count=10, failure_count=0, success_rate=1.2
            )

    def test_rejects_negative_tokens_and_latency(self) -> None:
        """Token totals and latencies must be non-negative."""
        with pytest.raises(ValidationError):
            AggregateStatistics.from_counts(10, 5, total_tokens=-1)
        with pytest.raises(ValidationError):
            AggregateStatistics.from_counts(10, 5, mean_latency_ms=-0.5)

    def test_success_above_samples_is_rejected(self) -> None:
        """More successes than samples is impossible."""
        with pytest.raises(ValidationError):
            AggregateStatistics.from_counts(5, 6)


class TestStatisticsAccumulator:
    """Tests for StatisticsAccumulator."""

    def test_accumulates_outcomes(self) -> None:
        """Outcomes are counted and their tokens and latencies summarized."""
        accumulator = StatisticsAccumulator()
        accumulator.add(SampleOutcome(passed=True, tokens=100, latency_ms=10.0))
        accumulator.add(SampleOutcome(passed=False, tokens=50, latency_ms=30.0))
        accumulator.add(SampleOutcome(passed=True, tokens=25))
        stats = accumulator.snapshot()
        assert stats.sample_count == 3
        assert stats.success_count == 2
        assert stats.total_tokens == 175
        assert stats.mean_latency_ms == pytest.approx(20.0)

    def test_empty_snapshot(self) -> None:
        assert StatisticsAccumulator().snapshot() == AggregateStatistics.empty()

    def test_rejects_negative_tokens(self) -> None:
        """A sample cannot report negative token usage."""
        with pytest.raises(ValueError, match="negative"):
            StatisticsAccumulator().add(SampleOutcome(passed=True, tokens=-1))

    def test_from_outcomes(self) -> None:
        """Statistics can be built directly from a list of outcomes."""
        outcomes = [SampleOutcome(passed=i % 4 != 0) for i in range(20)]
        stats = AggregateStatistics.from_outcomes(outcomes)
        assert stats.success_count == 15
        assert stats.success_rate == pytest.approx(0.75)
