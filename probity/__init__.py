"""probity - verdict engine for probabilistic tests.

This package turns repeated, noisy invocations of a non-deterministic
operation into a defensible pass/fail verdict, and keeps that verdict
grounded in empirical baselines selected for the current circumstances.
"""

__version__ = "0.1.0"

__all__ = [
    "baseline",
    "budget",
    "config",
    "covariates",
    "optimize",
    "pipeline",
    "specification",
    "statistics",
    "usecase",
]
