"""Smoothed aggregation AMG preconditioner."""
from . import sa, smoothed_aggregation
from .sa.errors import (
    CoarseFactorizationFailure,
    DegenerateAggregation,
    InvalidInput,
    NonConvergenceWarning,
    SAError,
    SingularDiagonal,
)
from .sa.monitor import DefaultMonitor, VerboseMonitor
from .smoothed_aggregation import SAHierarchy, smoothed_aggregation_solver

__all__ = [
    'sa',
    'smoothed_aggregation',
    'smoothed_aggregation_solver',
    'SAHierarchy',
    'DefaultMonitor',
    'VerboseMonitor',
    'SAError',
    'InvalidInput',
    'DegenerateAggregation',
    'SingularDiagonal',
    'CoarseFactorizationFailure',
    'NonConvergenceWarning',
]
