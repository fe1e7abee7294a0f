"""Termination policies for the optimization loop.

Each policy inspects the history after an iteration and either returns a
``TerminationReason`` or None. Policies never modify the history.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import timedelta

from .history import OptimizationHistory, Objective, TerminationReason


def _describe_duration(duration: timedelta) -> str:
    seconds = duration.total_seconds()
    if seconds >= 3600 and seconds % 3600 == 0:
        return f"{int(seconds // 3600)}h"
    if seconds >= 60 and seconds % 60 == 0:
        return f"{int(seconds // 60)}m"
    if seconds == int(seconds):
        return f"{int(seconds)}s"
    return f"{int(seconds * 1000)}ms"


class TerminationPolicy(ABC):
    """Decides when an optimization run should stop."""

    @abstractmethod
    def should_terminate(self, history: OptimizationHistory) -> TerminationReason | None:
        """Return a reason to stop, or None to continue."""

    @abstractmethod
    def description(self) -> str:
        """Short human-readable description."""

    def __or__(self, other: TerminationPolicy) -> CompositeTerminationPolicy:
        return CompositeTerminationPolicy(self, other)


class MaxIterations(TerminationPolicy):
    """Stop once the history holds ``max_iterations`` records."""

    def __init__(self, max_iterations: int) -> None:
        if max_iterations < 1:
            raise ValueError(f"max_iterations must be at least 1, got {max_iterations}")
        self.max_iterations = max_iterations

    def should_terminate(self, history: OptimizationHistory) -> TerminationReason | None:
        if history.iteration_count >= self.max_iterations:
            return TerminationReason.max_iterations(self.max_iterations)
        return None

    def description(self) -> str:
        return f"Max {self.max_iterations} iterations"


class NoImprovement(TerminationPolicy):
    """Stop when the best score has not improved for ``window`` iterations."""

    def __init__(self, window: int) -> None:
        if window < 1:
            raise ValueError(f"window must be at least 1, got {window}")
        self.window = window

    def should_terminate(self, history: OptimizationHistory) -> TerminationReason | None:
        if history.iterations_since_improvement >= self.window:
            return TerminationReason.no_improvement(self.window)
        return None

    def description(self) -> str:
        return f"No improvement in {self.window} iterations"


class TimeBudget(TerminationPolicy):
    """Stop once the summed iteration durations reach ``budget``."""

    def __init__(self, budget: timedelta) -> None:
        if budget <= timedelta(0):
            raise ValueError(f"Time budget must be positive, got {budget}")
        self.budget = budget

    def should_terminate(self, history: OptimizationHistory) -> TerminationReason | None:
        if history.total_duration >= self.budget:
            return TerminationReason.time_budget_exhausted(
                int(self.budget.total_seconds() * 1000)
            )
        return None

    def description(self) -> str:
        return f"Time budget {_describe_duration(self.budget)}"


class TokenBudget(TerminationPolicy):
    """Stop once the tokens consumed across iterations reach ``max_tokens``."""

    def __init__(self, max_tokens: int) -> None:
        if max_tokens < 1:
            raise ValueError(f"max_tokens must be at least 1, got {max_tokens}")
        self.max_tokens = max_tokens

    def should_terminate(self, history: OptimizationHistory) -> TerminationReason | None:
        if history.total_tokens >= self.max_tokens:
            return TerminationReason.token_budget_exhausted(self.max_tokens)
        return None

    def description(self) -> str:
        return f"Token budget {self.max_tokens}"


class ScoreThreshold(TerminationPolicy):
    """Stop once the best score reaches ``target`` in the objective's direction."""

    def __init__(self, target: float) -> None:
        self.target = target

    def should_terminate(self, history: OptimizationHistory) -> TerminationReason | None:
        best = history.best_score
        if best is None:
            return None
        if history.objective is Objective.MAXIMIZE:
            reached = best >= self.target
        else:
            reached = best <= self.target
        if reached:
            return TerminationReason.score_threshold_reached(self.target, best)
        return None

    def description(self) -> str:
        return f"Score threshold {self.target:.4f}"


class CompositeTerminationPolicy(TerminationPolicy):
    """Fires with the first constituent reason, in declaration order."""

    def __init__(self, *policies: TerminationPolicy) -> None:
        if not policies:
            raise ValueError("A composite policy needs at least one policy")
        flattened: list[TerminationPolicy] = []
        for policy in policies:
            if isinstance(policy, CompositeTerminationPolicy):
                flattened.extend(policy.policies)
            else:
                flattened.append(policy)
        self.policies = tuple(flattened)

    def should_terminate(self, history: OptimizationHistory) -> TerminationReason | None:
        for policy in self.policies:
            reason = policy.should_terminate(history)
            if reason is not None:
                return reason
        return None

    def description(self) -> str:
        return " OR ".join(policy.description() for policy in self.policies)
