"""Recursive V-cycle over a smoothed aggregation hierarchy.

For level i with i + 1 < len(levels):

    presmooth x on A_i
    r        <- b - A_i x
    b_{i+1}  <- R_i r
    x_{i+1}  <- 0, then V-cycle on level i + 1
    x        <- x + P_i x_{i+1}
    postsmooth x on A_i

On the last level the system is solved directly by the coarse solver.

Each level reads and writes only its own scratch (`residual`) and the next
level's `b` and `x`, so one hierarchy supports one V-cycle at a time.
"""

from __future__ import annotations

from typing import Callable, Sequence

import numpy as np

from .types import SALevel


def sa_vcycle(
    levels: Sequence[SALevel],
    i: int,
    b: np.ndarray,
    x: np.ndarray,
    coarse_solver: Callable[[np.ndarray], np.ndarray],
) -> None:
    """Apply one V-cycle starting at level `i`, updating x in place.

    Parameters
    ----------
    levels
        The hierarchy; levels[i] must have been coarsened unless it is the last.
    i
        Level index to start from (0 = finest).
    b
        Right-hand side on level i.
    x
        Initial guess on level i; overwritten with the result.
    coarse_solver
        Callable returning the exact solution of the coarsest system.
    """
    if i + 1 == len(levels):
        x[:] = coarse_solver(b)
        return

    level = levels[i]
    coarse = levels[i + 1]
    A = level.A
    residual = level.residual

    level.smoother.presmooth(A, b, x)

    # residual <- b - A*x
    np.subtract(b, A @ x, out=residual)

    # restrict to coarse grid
    coarse.b[:] = level.R @ residual

    # coarse grid solution, from a zero initial guess
    coarse.x.fill(0)
    sa_vcycle(levels, i + 1, coarse.b, coarse.x, coarse_solver)

    # coarse grid correction
    residual[:] = level.P @ coarse.x
    x += residual

    level.smoother.postsmooth(A, b, x)
