"""Failure taxonomy for smoothed aggregation setup and solve.

Construction-time failures abort the build; there is no partially valid
hierarchy. Each class also derives from the builtin exception a numerical
caller would already expect, so `except ValueError` and friends keep working.

Solve-time non-convergence is not an exception: it is reported through the
monitor state and a `NonConvergenceWarning`.
"""

from __future__ import annotations

from numpy.linalg import LinAlgError


class SAError(Exception):
    """Base class for all smoothed aggregation errors."""


class InvalidInput(SAError, ValueError):
    """Negative theta, empty or non-square matrix, or mismatched vector length."""


class DegenerateAggregation(SAError, ValueError):
    """Aggregation produced no aggregates, unassigned rows, or no coarsening."""


class SingularDiagonal(SAError, ArithmeticError):
    """A zero or near-zero diagonal entry prevents scaling by D^{-1}."""

    def __init__(self, message: str, rows=None) -> None:
        self.rows = rows
        super().__init__(message)


class CoarseFactorizationFailure(SAError, LinAlgError):
    """The dense LU factorization of the coarsest operator failed."""


class NonConvergenceWarning(RuntimeWarning):
    """The stationary iteration stopped before meeting its tolerance."""
