"""Convergence monitors for the stationary SA iteration.

A monitor is consulted once per iteration:

    while not monitor.finished(residual):
        ... one V-cycle ...
        monitor.advance()

`finished` records the residual norm and stops the loop when the residual is
small enough or the iteration limit is reached. Running out of iterations is
not an error; callers inspect `monitor.converged()` afterwards.
"""

from __future__ import annotations

import numpy as np

from .stats import _sa_print_monitor_iteration, _sa_print_monitor_summary


class DefaultMonitor:
    """Stop on ||r|| <= max(rtol * ||b||, atol) or after `iteration_limit` steps.

    Parameters
    ----------
    b
        Right-hand side; its norm scales the relative tolerance.
    relative_tolerance
        Relative residual tolerance.
    iteration_limit
        Maximum number of iterations.
    absolute_tolerance
        Absolute residual tolerance.

    Attributes
    ----------
    iteration_count
        Number of completed iterations.
    residual_norm
        Norm of the last residual passed to `finished`.
    residuals
        History of residual norms, one per call to `finished`.
    """

    def __init__(self, b, relative_tolerance: float = 1e-5,
                 iteration_limit: int = 500, absolute_tolerance: float = 0.0) -> None:
        if relative_tolerance < 0 or absolute_tolerance < 0:
            raise ValueError("tolerances must be nonnegative")
        if iteration_limit < 0:
            raise ValueError("iteration_limit must be nonnegative")
        self.b_norm = float(np.linalg.norm(np.ravel(b)))
        self.relative_tolerance = float(relative_tolerance)
        self.absolute_tolerance = float(absolute_tolerance)
        self.iteration_limit = int(iteration_limit)
        self.iteration_count = 0
        self.residual_norm = float("inf")
        self.residuals: list[float] = []

    def tolerance(self) -> float:
        return max(self.relative_tolerance * self.b_norm, self.absolute_tolerance)

    def converged(self) -> bool:
        return self.residual_norm <= self.tolerance()

    def finished(self, residual) -> bool:
        self.residual_norm = float(np.linalg.norm(np.ravel(residual)))
        self.residuals.append(self.residual_norm)
        return self.converged() or self.iteration_count >= self.iteration_limit

    def advance(self) -> None:
        self.iteration_count += 1

    def relative_residual(self) -> float:
        if self.b_norm == 0.0:
            return self.residual_norm
        return self.residual_norm / self.b_norm


class VerboseMonitor(DefaultMonitor):
    """DefaultMonitor that prints each residual and a final summary."""

    def finished(self, residual) -> bool:
        done = super().finished(residual)
        _sa_print_monitor_iteration(self.iteration_count, self.residual_norm)
        if done:
            _sa_print_monitor_summary(
                converged=self.converged(),
                iteration_count=self.iteration_count,
                residual_norm=self.residual_norm,
                tolerance=self.tolerance(),
            )
        return done
