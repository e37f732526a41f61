"""Smoothed aggregation (SA) AMG internals.

This package contains the modular building blocks of the smoothed aggregation
solver (`saamg.smoothed_aggregation`).

Modules
-------
types
    Configuration and per-level containers.
errors
    Failure taxonomy for setup and solve.
aggregation
    Strength-of-connection and aggregation (aggregate id per row).
candidates
    Tentative prolongator and coarse candidate from aggregates.
prolongation
    Spectral radius of D^{-1} A and prolongator smoothing.
smoothers
    Jacobi and Chebyshev relaxation objects.
hierarchy
    Galerkin product, coarse direct solver, and extending the hierarchy.
cycle
    The recursive V-cycle.
monitor
    Convergence monitors for the stationary iteration.
stats
    Per-level timing, complexities and diagnostic reporting.
"""

from __future__ import annotations

from . import (
    aggregation,
    candidates,
    cycle,
    errors,
    hierarchy,
    monitor,
    prolongation,
    smoothers,
    stats,
    types,
)

__all__ = [
    "types",
    "errors",
    "aggregation",
    "candidates",
    "prolongation",
    "smoothers",
    "hierarchy",
    "cycle",
    "monitor",
    "stats",
]
