"""Sample outcomes and aggregate statistics.

Each sample of a probabilistic test yields a ``SampleOutcome``. Outcomes are
folded into an ``AggregateStatistics`` snapshot, which is the only input the
verdict engine and the optimization scorers see.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from pydantic import BaseModel, ConfigDict, Field, model_validator


@dataclass(frozen=True)
class SampleOutcome:
    """Result of one sample invocation."""

    passed: bool
    tokens: int = 0
    latency_ms: float | None = None


class AggregateStatistics(BaseModel):
    """Counts and rates summarizing a set of samples."""

    model_config = ConfigDict(frozen=True)

    sample_count: int = Field(..., ge=0)
    success_count: int = Field(..., ge=0)
    failure_count: int = Field(..., ge=0)
    success_rate: float = Field(..., ge=0.0, le=1.0)
    total_tokens: int = Field(default=0, ge=0)
    mean_latency_ms: float = Field(default=0.0, ge=0.0)

    @model_validator(mode="after")
    def check_consistency(self) -> AggregateStatistics:
        """Counts must add up and the rate must match them."""
        if self.success_count + self.failure_count != self.sample_count:
            raise ValueError(
                f"success_count ({self.success_count}) + failure_count "
                f"({self.failure_count}) must equal sample_count ({self.sample_count})"
            )
        expected = self.success_count / self.sample_count if self.sample_count else 0.0
        if abs(self.success_rate - expected) > 1e-9:
            raise ValueError(
                f"success_rate {self.success_rate} does not match counts (expected {expected})"
            )
        return self

    @classmethod
    def from_counts(
        cls,
        sample_count: int,
        success_count: int,
        total_tokens: int = 0,
        mean_latency_ms: float = 0.0,
    ) -> AggregateStatistics:
        """Build statistics from raw counts, deriving failures and rate."""
        return cls(
            sample_count=sample_count,
            success_count=success_count,
            failure_count=sample_count - success_count,
            success_rate=success_count / sample_count if sample_count else 0.0,
            total_tokens=total_tokens,
            mean_latency_ms=mean_latency_ms,
        )

    @classmethod
    def empty(cls) -> AggregateStatistics:
        return cls.from_counts(0, 0)

    @classmethod
    def from_outcomes(cls, outcomes: Iterable[SampleOutcome]) -> AggregateStatistics:
        accumulator = StatisticsAccumulator()
        for outcome in outcomes:
            accumulator.add(outcome)
        return accumulator.snapshot()


class StatisticsAccumulator:
    """Folds sample outcomes into running totals.

    An accumulator belongs to a single test run and is not shared between
    threads.
    """

    def __init__(self) -> None:
        self.samples = 0
        self.successes = 0
        self.tokens = 0
        self._latency_total = 0.0
        self._latency_count = 0

    def add(self, outcome: SampleOutcome) -> None:
        if outcome.tokens < 0:
            raise ValueError(f"Sample tokens cannot be negative: {outcome.tokens}")
        self.samples += 1
        if outcome.passed:
            self.successes += 1
        self.tokens += outcome.tokens
        if outcome.latency_ms is not None:
            self._latency_total += outcome.latency_ms
            self._latency_count += 1

    def snapshot(self) -> AggregateStatistics:
        mean_latency = self._latency_total / self._latency_count if self._latency_count else 0.0
        return AggregateStatistics.from_counts(
            self.samples, self.successes, total_tokens=self.tokens, mean_latency_ms=mean_latency
        )
