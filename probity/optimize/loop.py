"""Iterative optimization of a treatment.

A treatment is any value that controls how a use case behaves (a prompt, a
temperature, a configuration). Each iteration mutates the current
treatment, runs a batch of samples with it, scores the resulting
statistics, records the iteration, and asks the termination policy whether
to stop. Mutation and scoring failures end the run; they are not retried.
"""

from __future__ import annotations

import logging
import math
import time
from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Callable, Protocol

from probity.budget.tracker import BudgetExhaustedError, BudgetResource
from probity.statistics.aggregate import AggregateStatistics

from .history import (
    Objective,
    OptimizationHistory,
    OptimizationRecord,
    TerminationCause,
    TerminationReason,
)
from .policies import TerminationPolicy

logger = logging.getLogger(__name__)


class Mutator(Protocol):
    """Proposes the next treatment from the current one and the history."""

    def mutate(self, current: Any, history: OptimizationHistory) -> Any: ...


class Scorer(Protocol):
    """Maps a batch's aggregate statistics to a scalar score."""

    def score(self, statistics: AggregateStatistics) -> float: ...


class BatchRunner(Protocol):
    """Runs a batch of samples with a treatment."""

    def run(self, treatment: Any) -> AggregateStatistics: ...


@dataclass(frozen=True)
class IterationStep:
    """Outcome of one iteration: a new record, a termination, or both."""

    treatment: Any
    record: OptimizationRecord | None = None
    termination: TerminationReason | None = None

    @property
    def terminated(self) -> bool:
        return self.termination is not None


@dataclass(frozen=True)
class OptimizationResult:
    history: OptimizationHistory
    termination: TerminationReason

    @property
    def best_record(self) -> OptimizationRecord | None:
        return self.history.best_record

    @property
    def best_treatment(self) -> Any:
        best = self.history.best_record
        return best.treatment if best else None

    @property
    def best_score(self) -> float | None:
        return self.history.best_score


class OptimizationLoop:
    """Drives mutate, run, score, record, and check until a policy fires.

    Example:
        loop = OptimizationLoop(
            mutator=PromptMutator(),
            scorer=SuccessRateScorer(),
            runner=batch_runner,
            policy=MaxIterations(20) | NoImprovement(5),
        )
        result = loop.run(initial_prompt)

    """

    def __init__(
        self,
        mutator: Mutator,
        scorer: Scorer,
        runner: BatchRunner,
        policy: TerminationPolicy,
        objective: Objective = Objective.MAXIMIZE,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.mutator = mutator
        self.scorer = scorer
        self.runner = runner
        self.policy = policy
        self.history = OptimizationHistory(objective)
        self._clock = clock

        logger.info(f"Optimization loop initialized: {policy.description()}")

    def _terminate(self, treatment: Any, reason: TerminationReason) -> IterationStep:
        self.history.terminate(reason)
        logger.info(f"Optimization terminated: {reason.message}")
        return IterationStep(treatment=treatment, termination=reason)

    def _evaluate(self, treatment: Any) -> IterationStep:
        started = self._clock()
        try:
            statistics = self.runner.run(treatment)
        except BudgetExhaustedError as e:
            cause = (
                TerminationCause.TIME_BUDGET_EXHAUSTED
                if e.resource is BudgetResource.TIME
                else TerminationCause.TOKEN_BUDGET_EXHAUSTED
            )
            return self._terminate(treatment, TerminationReason(cause, str(e)))

        try:
            score = float(self.scorer.score(statistics))
        except Exception as e:
            return self._terminate(treatment, TerminationReason.scoring_failure(str(e) or repr(e)))
        if not math.isfinite(score):
            return self._terminate(
                treatment, TerminationReason.scoring_failure(f"non-finite score {score}")
            )

        record = OptimizationRecord(
            iteration=self.history.iteration_count,
            treatment=treatment,
            statistics=statistics,
            score=score,
            duration=timedelta(seconds=self._clock() - started),
        )
        self.history.append(record)
        logger.info(
            f"Iteration {record.iteration}: score={score:.4f} "
            f"(best={self.history.best_score:.4f})"
        )

        reason = self.policy.should_terminate(self.history)
        if reason is not None:
            self._terminate(treatment, reason)
        return IterationStep(treatment=treatment, record=record, termination=reason)

    def evaluate_initial(self, treatment: Any) -> IterationStep:
        """Record the starting treatment as iteration 0."""
        return self._evaluate(treatment)

    def iterate(self, current: Any) -> IterationStep:
        """Run one mutate, run, score, record, check cycle.

        Raises:
            RuntimeError: If the run has already terminated

        """
        if self.history.termination is not None:
            raise RuntimeError("Optimization has already terminated")
        try:
            treatment = self.mutator.mutate(current, self.history)
        except Exception as e:
            return self._terminate(current, TerminationReason.mutation_failure(str(e) or repr(e)))
        return self._evaluate(treatment)

    def run(self, initial: Any) -> OptimizationResult:
        """Evaluate ``initial`` then iterate until termination."""
        step = self.evaluate_initial(initial)
        termination = step.termination
        while termination is None:
            step = self.iterate(step.treatment)
            termination = step.termination
        return OptimizationResult(history=self.history, termination=termination)
