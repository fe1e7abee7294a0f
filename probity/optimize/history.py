"""Optimization history and termination reasons.

The history is an append-only log of iterations. Termination policies read
it; only the optimization loop appends to it.
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass
from datetime import timedelta
from enum import Enum
from typing import Any

from probity.statistics.aggregate import AggregateStatistics


class Objective(str, Enum):
    """Direction in which scores improve."""

    MAXIMIZE = "MAXIMIZE"
    MINIMIZE = "MINIMIZE"

    def is_better(self, candidate: float, incumbent: float) -> bool:
        """Strict improvement; ties are not improvements."""
        if self is Objective.MAXIMIZE:
            return candidate > incumbent
        return candidate < incumbent


class TerminationCause(str, Enum):
    MAX_ITERATIONS = "MAX_ITERATIONS"
    NO_IMPROVEMENT = "NO_IMPROVEMENT"
    TIME_BUDGET_EXHAUSTED = "TIME_BUDGET_EXHAUSTED"
    TOKEN_BUDGET_EXHAUSTED = "TOKEN_BUDGET_EXHAUSTED"
    SCORE_THRESHOLD_REACHED = "SCORE_THRESHOLD_REACHED"
    MUTATION_FAILURE = "MUTATION_FAILURE"
    SCORING_FAILURE = "SCORING_FAILURE"

    @property
    def is_failure(self) -> bool:
        return self in (TerminationCause.MUTATION_FAILURE, TerminationCause.SCORING_FAILURE)


@dataclass(frozen=True)
class TerminationReason:
    """Why an optimization run stopped."""

    cause: TerminationCause
    message: str

    def __post_init__(self) -> None:
        if not self.message or not self.message.strip():
            raise ValueError("Termination message cannot be blank")

    @classmethod
    def max_iterations(cls, limit: int) -> TerminationReason:
        return cls(TerminationCause.MAX_ITERATIONS, f"Reached maximum iterations: {limit}")

    @classmethod
    def no_improvement(cls, window: int) -> TerminationReason:
        return cls(TerminationCause.NO_IMPROVEMENT, f"No improvement in last {window} iterations")

    @classmethod
    def time_budget_exhausted(cls, budget_ms: int) -> TerminationReason:
        return cls(TerminationCause.TIME_BUDGET_EXHAUSTED, f"Time budget exhausted: {budget_ms}ms")

    @classmethod
    def token_budget_exhausted(cls, budget: int) -> TerminationReason:
        return cls(
            TerminationCause.TOKEN_BUDGET_EXHAUSTED, f"Token budget exhausted: {budget} tokens"
        )

    @classmethod
    def score_threshold_reached(cls, threshold: float, score: float) -> TerminationReason:
        return cls(
            TerminationCause.SCORE_THRESHOLD_REACHED,
            f"Score threshold {threshold:.4f} reached with score {score:.4f}",
        )

    @classmethod
    def mutation_failure(cls, error: str) -> TerminationReason:
        return cls(TerminationCause.MUTATION_FAILURE, f"Mutation failed: {error}")

    @classmethod
    def scoring_failure(cls, error: str) -> TerminationReason:
        return cls(TerminationCause.SCORING_FAILURE, f"Scoring failed: {error}")


@dataclass(frozen=True)
class OptimizationRecord:
    """One evaluated treatment."""

    iteration: int
    treatment: Any
    statistics: AggregateStatistics
    score: float
    duration: timedelta


class OptimizationHistory:
    """Append-only record of an optimization run."""

    def __init__(self, objective: Objective = Objective.MAXIMIZE) -> None:
        self.objective = objective
        self._records: list[OptimizationRecord] = []
        self._best_index: int | None = None
        self.termination: TerminationReason | None = None

    def append(self, record: OptimizationRecord) -> None:
        if self.termination is not None:
            raise RuntimeError("Cannot append to a terminated optimization history")
        self._records.append(record)
        best = self.best_record
        if best is None or self.objective.is_better(record.score, best.score):
            self._best_index = len(self._records) - 1

    def terminate(self, reason: TerminationReason) -> None:
        if self.termination is None:
            self.termination = reason

    @property
    def records(self) -> tuple[OptimizationRecord, ...]:
        return tuple(self._records)

    def __iter__(self) -> Iterator[OptimizationRecord]:
        return iter(tuple(self._records))

    def __len__(self) -> int:
        return len(self._records)

    @property
    def iteration_count(self) -> int:
        return len(self._records)

    @property
    def last_record(self) -> OptimizationRecord | None:
        return self._records[-1] if self._records else None

    @property
    def best_record(self) -> OptimizationRecord | None:
        if self._best_index is None:
            return None
        return self._records[self._best_index]

    @property
    def best_score(self) -> float | None:
        best = self.best_record
        return best.score if best else None

    @property
    def iterations_since_improvement(self) -> int:
        """Iterations recorded after the one holding the best score."""
        if self._best_index is None:
            return 0
        return len(self._records) - 1 - self._best_index

    @property
    def total_duration(self) -> timedelta:
        return sum((r.duration for r in self._records), timedelta(0))

    @property
    def total_tokens(self) -> int:
        return sum(r.statistics.total_tokens for r in self._records)
