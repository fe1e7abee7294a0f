"""Tests for the optimization loop."""

from datetime import timedelta
from typing import Any

import pytest

from probity.budget.tracker import BudgetExhaustedError, BudgetResource
from probity.optimize.history import OptimizationHistory, TerminationCause
from probity.optimize.loop import OptimizationLoop
from probity.optimize.policies import MaxIterations, NoImprovement, ScoreThreshold
from probity.statistics.aggregate import AggregateStatistics


class StepClock:
    """Clock advancing one second per reading."""

    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        self.now += 1.0
        return self.now


class IncrementMutator:
    def __init__(self, fail_on: int | None = None) -> None:
        self.fail_on = fail_on
        self.calls = 0

    def mutate(self, current: Any, history: OptimizationHistory) -> Any:
        self.calls += 1
        if self.fail_on is not None and self.calls == self.fail_on:
            raise RuntimeError("LLM timeout")
        return current + 1


class TableRunner:
    """Returns statistics whose success count is looked up per treatment."""

    def __init__(self, successes: dict[int, int], exhaust_at: int | None = None) -> None:
        self.successes = successes
        self.exhaust_at = exhaust_at
        self.treatments: list[int] = []

    def run(self, treatment: int) -> AggregateStatistics:
        if treatment == self.exhaust_at:
            raise BudgetExhaustedError(BudgetResource.TOKENS, "optimize", "budget gone")
        self.treatments.append(treatment)
        return AggregateStatistics.from_counts(100, self.successes.get(treatment, 0), 50)


class RateScorer:
    def score(self, statistics: AggregateStatistics) -> float:
        return statistics.success_rate


def make_loop(runner: TableRunner, policy, mutator: IncrementMutator | None = None, scorer=None):
    return OptimizationLoop(
        mutator=mutator or IncrementMutator(),
        scorer=scorer or RateScorer(),
        runner=runner,
        policy=policy,
        clock=StepClock(),
    )


class TestOptimizationLoop:
    """Tests for OptimizationLoop.run."""

    def test_runs_until_max_iterations(self) -> None:
        """Iterates to the cap and keeps the best treatment."""
        runner = TableRunner({0: 50, 1: 60, 2: 70, 3: 65})
        result = make_loop(runner, MaxIterations(4)).run(0)
        assert result.termination.cause is TerminationCause.MAX_ITERATIONS
        assert runner.treatments == [0, 1, 2, 3]
        assert result.best_treatment == 2
        assert result.best_score == pytest.approx(0.7)
        assert [r.iteration for r in result.history] == [0, 1, 2, 3]

    def test_initial_treatment_is_iteration_zero(self) -> None:
        """The starting treatment is evaluated as iteration zero."""
        loop = make_loop(TableRunner({0: 40}), MaxIterations(5))
        step = loop.evaluate_initial(0)
        assert step.record is not None
        assert step.record.iteration == 0
        assert step.record.duration == timedelta(seconds=1)
        assert not step.terminated

    def test_no_improvement(self) -> None:
        """Stagnating scores stop the loop and keep the initial best."""
        runner = TableRunner({0: 80, 1: 70, 2: 75})
        result = make_loop(runner, MaxIterations(10) | NoImprovement(2)).run(0)
        assert result.termination.cause is TerminationCause.NO_IMPROVEMENT
        assert result.best_treatment == 0

    def test_score_threshold(self) -> None:
        """Reaching the target score stops the loop early."""
        runner = TableRunner({0: 50, 1: 95})
        result = make_loop(runner, MaxIterations(10) | ScoreThreshold(0.9)).run(0)
        assert result.termination.cause is TerminationCause.SCORE_THRESHOLD_REACHED
        assert result.history.iteration_count == 2

    def test_mutation_failure(self) -> None:
        """A failing mutator ends the run with the records so far."""
        runner = TableRunner({0: 50, 1: 60})
        mutator = IncrementMutator(fail_on=2)
        result = make_loop(runner, MaxIterations(10), mutator=mutator).run(0)
        assert result.termination.cause is TerminationCause.MUTATION_FAILURE
        assert result.termination.message == "Mutation failed: LLM timeout"
        assert result.history.iteration_count == 2
        assert result.best_treatment == 1

    def test_scoring_failure(self) -> None:
        """A failing scorer ends the run before anything is recorded."""
        class BrokenScorer:
            def score(self, statistics: AggregateStatistics) -> float:
                raise ZeroDivisionError("division by zero")

        result = make_loop(TableRunner({}), MaxIterations(10), scorer=BrokenScorer()).run(0)
        assert result.termination.cause is TerminationCause.SCORING_FAILURE
        assert result.termination.message == "Scoring failed: division by zero"
        assert result.history.iteration_count == 0
        assert result.best_treatment is None

    def test_non_finite_score_is_a_scoring_failure(self) -> None:
        """NaN scores are treated as scoring failures."""
        class NanScorer:
            def score(self, statistics: AggregateStatistics) -> float:
                return float("nan")

        result = make_loop(TableRunner({}), MaxIterations(10), scorer=NanScorer()).run(0)
        assert result.termination.cause is TerminationCause.SCORING_FAILURE

    def test_budget_exhaustion_during_run(self) -> None:
        """Budget exhaustion inside the runner ends the loop."""
        runner = TableRunner({0: 50, 1: 60}, exhaust_at=2)
        result = make_loop(runner, MaxIterations(10)).run(0)
        assert result.termination.cause is TerminationCause.TOKEN_BUDGET_EXHAUSTED
        assert result.history.iteration_count == 2

    def test_iterate_after_termination(self) -> None:
        loop = make_loop(TableRunner({0: 50}), MaxIterations(1))
        step = loop.evaluate_initial(0)
        assert step.terminated
        with pytest.raises(RuntimeError, match="already terminated"):
            loop.iterate(step.treatment)

    def test_result_carries_recorded_termination(self) -> None:
        """The returned reason is the one recorded on the history."""
        result = make_loop(TableRunner({0: 50, 1: 40}), MaxIterations(10) | NoImprovement(1)).run(0)
        assert result.termination is result.history.termination
        assert result.termination.cause is TerminationCause.NO_IMPROVEMENT

    def test_history_totals(self) -> None:
        """The history sums tokens and durations of every iteration."""
        result = make_loop(TableRunner({0: 50, 1: 60}), MaxIterations(2)).run(0)
        assert result.history.total_tokens == 100
        assert result.history.total_duration == timedelta(seconds=2)
