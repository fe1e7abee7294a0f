"""Token and time budgets shared across samples and tests."""

from .session import SamplingSession
from .tracker import (
    Budget,
    BudgetExhaustedError,
    BudgetRegistry,
    BudgetResource,
    BudgetSnapshot,
    ExhaustionBehavior,
)

__all__ = [
    "Budget",
    "BudgetExhaustedError",
    "BudgetRegistry",
    "BudgetResource",
    "BudgetSnapshot",
    "ExhaustionBehavior",
    "SamplingSession",
]
