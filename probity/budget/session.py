"""Budgeted sampling sessions.

A ``SamplingSession`` is the per-test view the harness drives: before each
sample it asks ``admit``, reserving its expected tokens; after each sample
it calls ``record`` with the tokens actually used. Admission
consults every budget the test is subject to (its own, and any shared group
budget), in order. When one denies, the test's exhaustion behaviour
decides: FAIL raises ``BudgetExhaustedError``, EVALUATE_PARTIAL stops
sampling and lets the verdict be computed from what was observed.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

from probity.statistics.aggregate import AggregateStatistics, SampleOutcome, StatisticsAccumulator

from .tracker import Budget, BudgetExhaustedError, BudgetResource, ExhaustionBehavior

logger = logging.getLogger(__name__)


class SamplingSession:
    """Admission control and accumulation for one test run."""

    def __init__(
        self,
        test_name: str,
        planned_samples: int,
        budgets: Sequence[Budget] = (),
        behavior: ExhaustionBehavior = ExhaustionBehavior.FAIL,
    ) -> None:
        if planned_samples < 0:
            raise ValueError(f"planned_samples must be non-negative, got {planned_samples}")
        self.test_name = test_name
        self.planned_samples = planned_samples
        self.budgets = tuple(budgets)
        self.behavior = behavior
        self._accumulator = StatisticsAccumulator()
        self._admitted = 0
        self._reserved = 0
        self._stopped_by: tuple[Budget, BudgetResource] | None = None

    @property
    def stopped_early(self) -> bool:
        return self._stopped_by is not None

    @property
    def termination_reason(self) -> str | None:
        """Description of why sampling stopped early, if it did."""
        if self._stopped_by is None:
            return None
        budget, resource = self._stopped_by
        return f"{resource.value.lower()} budget '{budget.scope}' exhausted"

    @property
    def is_complete(self) -> bool:
        return self._admitted >= self.planned_samples or self.stopped_early

    def admit(self, tokens: int = 0) -> bool:
        """Ask whether another sample may run, reserving its tokens.

        Args:
            tokens: Tokens the sample is expected to consume

        Returns:
            True if the sample may run; False if the plan is complete or
            sampling stopped under EVALUATE_PARTIAL

        Raises:
            BudgetExhaustedError: If a budget denies and behaviour is FAIL

        """
        if self.is_complete:
            return False

        charged: list[Budget] = []
        for budget in self.budgets:
            if budget.check_time() and budget.charge(tokens):
                charged.append(budget)
                continue
            for earlier in charged:
                earlier.refund(tokens)
            resource = budget.exhausted_by or BudgetResource.TOKENS
            return self._deny(budget, resource)

        self._admitted += 1
        self._reserved += tokens
        return True

    def _deny(self, budget: Budget, resource: BudgetResource) -> bool:
        self._stopped_by = (budget, resource)
        message = (
            f"{self.test_name}: {resource.value.lower()} budget '{budget.scope}' exhausted "
            f"after {self._accumulator.samples} of {self.planned_samples} samples"
        )
        if self.behavior is ExhaustionBehavior.FAIL:
            logger.error(message)
            raise BudgetExhaustedError(resource, budget.scope, message)
        logger.warning(f"{message}; evaluating partial results")
        return False

    def record(self, outcome: SampleOutcome) -> None:
        """Accumulate a finished sample and settle its tokens with every budget.

        Tokens reserved by ``admit`` are reconciled against what the sample
        actually used: any excess is charged, any shortfall refunded.
        """
        self._accumulator.add(outcome)
        difference = outcome.tokens - self._reserved
        self._reserved = 0
        for budget in self.budgets:
            if difference > 0:
                budget.consume(difference)
            elif difference < 0:
                budget.refund(-difference)

    def statistics(self) -> AggregateStatistics:
        return self._accumulator.snapshot()
