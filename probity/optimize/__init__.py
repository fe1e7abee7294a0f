"""Iterative optimization over aggregate statistics."""

from .history import (
    Objective,
    OptimizationHistory,
    OptimizationRecord,
    TerminationCause,
    TerminationReason,
)
from .loop import (
    BatchRunner,
    IterationStep,
    Mutator,
    OptimizationLoop,
    OptimizationResult,
    Scorer,
)
from .policies import (
    CompositeTerminationPolicy,
    MaxIterations,
    NoImprovement,
    ScoreThreshold,
    TerminationPolicy,
    TimeBudget,
    TokenBudget,
)

__all__ = [
    "BatchRunner",
    "CompositeTerminationPolicy",
    "IterationStep",
    "MaxIterations",
    "Mutator",
    "NoImprovement",
    "Objective",
    "OptimizationHistory",
    "OptimizationLoop",
    "OptimizationRecord",
    "OptimizationResult",
    "ScoreThreshold",
    "Scorer",
    "TerminationCause",
    "TerminationPolicy",
    "TerminationReason",
    "TimeBudget",
    "TokenBudget",
]
