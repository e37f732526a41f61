"""Smoothed aggregation algebraic multigrid.

Builds a hierarchy A_0, A_1, ... of Galerkin coarse operators from a sparse
symmetric (positive definite) matrix and applies it through recursive
V-cycles, either once per call as a preconditioner or as a monitored
stationary solver.

    ml = smoothed_aggregation_solver(A, theta=0.0)
    x = ml.solve(b, tol=1e-8)
    M = ml.aspreconditioner()
"""

from __future__ import annotations

import time
from warnings import warn

import numpy as np
from scipy.sparse import SparseEfficiencyWarning, csr_array, issparse
from scipy.sparse.linalg import LinearOperator

from pyamg.util.utils import asfptype

from .sa.cycle import sa_vcycle
from .sa.errors import InvalidInput, NonConvergenceWarning
from .sa.hierarchy import DirectCoarseSolver, extend_hierarchy
from .sa.monitor import DefaultMonitor
from .sa.prolongation import _sa_int32_indices
from .sa.stats import (
    _sa_format_hierarchy,
    _sa_print_hierarchy,
    _sa_print_setup_summary,
    sa_grid_complexity,
    sa_operator_complexity,
)
from .sa.types import MethodSpec, SAConfig, SALevel


class SAHierarchy:
    """A built smoothed aggregation hierarchy and its V-cycle solver.

    Attributes
    ----------
    levels
        List of `SALevel`; levels[0] holds the input operator.
    coarse_solver
        `DirectCoarseSolver` for levels[-1].
    config
        The `SAConfig` the hierarchy was built with.

    Notes
    -----
    The per-level scratch vectors are shared by all calls, so a hierarchy must
    not be used by two solves at the same time.
    """

    def __init__(self, levels: list[SALevel], coarse_solver: DirectCoarseSolver, config: SAConfig) -> None:
        self.levels = levels
        self.coarse_solver = coarse_solver
        self.config = config

    def __repr__(self) -> str:
        return "SAHierarchy\n" + _sa_format_hierarchy(self.levels)

    def operator_complexity(self) -> float:
        """Sum of nnz(A_i) over all levels divided by nnz(A_0)."""
        return sa_operator_complexity(self.levels)

    def grid_complexity(self) -> float:
        """Sum of rows(A_i) over all levels divided by rows(A_0)."""
        return sa_grid_complexity(self.levels)

    def print_summary(self) -> None:
        """Print the number of levels, complexities, and a per-level table."""
        _sa_print_hierarchy(self.levels)

    def _as_vector(self, v, name: str) -> np.ndarray:
        A = self.levels[0].A
        v = np.asarray(v)
        if v.shape not in [(A.shape[0],), (A.shape[0], 1)]:
            raise InvalidInput(f"{name} has shape {v.shape}, expected ({A.shape[0]},)")
        return np.ascontiguousarray(v.ravel(), dtype=A.dtype)

    def _in_place(self, x) -> bool:
        A = self.levels[0].A
        return (isinstance(x, np.ndarray) and x.shape == (A.shape[0],)
                and x.dtype == A.dtype and x.flags.c_contiguous and x.flags.writeable)

    def _workspace(self, x, name: str) -> np.ndarray:
        """Return x itself when it can be updated in place, else a converted copy."""
        if self._in_place(x):
            return x
        return self._as_vector(x, name).copy()

    def apply(self, b, x=None) -> np.ndarray:
        """Apply one V-cycle to A x = b.

        Parameters
        ----------
        b
            Right-hand side of length A.shape[0].
        x
            Initial guess, zeros when None. Overwritten with the result, so it
            must be a writeable contiguous array of shape (n,) and A's dtype.

        Returns
        -------
        x
            The result of the V-cycle (the same array as `x` when given).

        Raises
        ------
        InvalidInput
            If b has the wrong length or x cannot be overwritten in place.
        """
        b = self._as_vector(b, "b")
        if x is None:
            x = np.zeros_like(b)
        elif not self._in_place(x):
            A = self.levels[0].A
            raise InvalidInput(
                f"x must be a writeable contiguous array of shape ({A.shape[0]},) "
                f"and dtype {A.dtype}, got {type(x).__name__} "
                f"{getattr(x, 'shape', None)} {getattr(x, 'dtype', None)}"
            )
        sa_vcycle(self.levels, 0, b, x, self.coarse_solver)
        return x

    __call__ = apply

    def solve(self, b, x0=None, monitor=None, tol: float = 1e-5,
              maxiter: int = 500, residuals: list | None = None) -> np.ndarray:
        """Solve A x = b by stationary iteration with one V-cycle per step.

        Each step computes r = b - A x, applies a V-cycle to A e = r from a
        zero guess, and updates x += e, until `monitor.finished(r)`.

        Parameters
        ----------
        b
            Right-hand side.
        x0
            Initial guess (zeros when None). Updated in place when it is a
            contiguous array of A's dtype.
        monitor
            Object exposing `finished(residual) -> bool` and `advance()`. When
            None, a `DefaultMonitor(b, tol, maxiter)` is used.
        tol, maxiter
            Relative tolerance and iteration limit for the default monitor.
        residuals
            If a list is given, it is filled with the residual norm history.

        Returns
        -------
        x
            The approximate solution. If the monitor stops without converging,
            a `NonConvergenceWarning` is issued and the last iterate returned.
        """
        A = self.levels[0].A
        b = self._as_vector(b, "b")
        x = np.zeros_like(b) if x0 is None else self._workspace(x0, "x0")

        if monitor is None:
            monitor = DefaultMonitor(b, relative_tolerance=tol, iteration_limit=maxiter)

        update = np.zeros_like(x)

        # compute initial residual
        residual = b - A @ x

        while not monitor.finished(residual):
            update.fill(0)
            sa_vcycle(self.levels, 0, residual, update, self.coarse_solver)

            # x += M * r
            x += update

            # update residual
            residual = b - A @ x
            monitor.advance()

        if residuals is not None and hasattr(monitor, "residuals"):
            residuals[:] = monitor.residuals

        if hasattr(monitor, "converged") and not monitor.converged():
            warn(
                f"SA iteration did not converge in {getattr(monitor, 'iteration_count', '?')} iterations "
                f"(residual norm {getattr(monitor, 'residual_norm', float('nan')):.3e})",
                NonConvergenceWarning,
                stacklevel=2,
            )

        return x

    def aspreconditioner(self) -> LinearOperator:
        """Return a LinearOperator applying one V-cycle from a zero guess."""
        A = self.levels[0].A

        def matvec(b):
            return self.apply(np.ravel(b))

        return LinearOperator(A.shape, matvec=matvec, dtype=A.dtype)


def smoothed_aggregation_solver(A, theta: float = 0.0, B=None,
                                max_coarse: int = 100,
                                max_levels: int = 20,
                                omega: float = 4.0 / 3.0,
                                smoother: MethodSpec = "jacobi",
                                strength: MethodSpec = "symmetric",
                                aggregate: MethodSpec = "standard",
                                galerkin: str = "R(AP)",
                                print_info: bool = False) -> SAHierarchy:
    """Build a smoothed aggregation hierarchy for A.

    Parameters
    ----------
    A
        Square sparse matrix (CSR preferred; other inputs are converted).
    theta
        Strength-of-connection threshold, >= 0.
    B
        Near-kernel candidate vector; the constant vector when None.
    max_coarse
        Coarsen while the current level has more than this many rows.
    max_levels
        Maximum number of levels.
    omega
        Prolongator smoothing weight (Jacobi weight is omega / rho(D^-1 A)).
    smoother
        "jacobi" or "chebyshev", or (name, kwargs).
    strength, aggregate
        Strength and aggregation specs, see `saamg.sa.aggregation`.
    galerkin
        "R(AP)" or "(RA)P".
    print_info
        Print per-level setup summaries and the final hierarchy table.

    Returns
    -------
    ml
        The `SAHierarchy`.

    Raises
    ------
    InvalidInput
        Negative theta, empty or non-square A, or B of the wrong length.
    DegenerateAggregation, SingularDiagonal, CoarseFactorizationFailure
        If any coarsening step or the coarse factorization fails.
    """
    if theta < 0:
        raise InvalidInput(f"theta must be nonnegative, got {theta}")

    if not issparse(A) or A.format != "csr":
        try:
            A = csr_array(A)
            warn("Implicit conversion of A to CSR", SparseEfficiencyWarning)
        except Exception as e:
            raise TypeError("Argument A must have type csr_array, "
                            "or be convertible to csr_array") from e

    A = _sa_int32_indices(csr_array(asfptype(A), copy=True))
    A.eliminate_zeros()
    A.sort_indices()

    if A.shape[0] != A.shape[1]:
        raise InvalidInput(f"expected square matrix, got shape {A.shape}")
    if A.shape[0] == 0 or A.nnz == 0:
        raise InvalidInput("expected a nonempty matrix")

    if B is None:
        B = np.ones(A.shape[0], dtype=A.dtype)
    else:
        B = np.asarray(B, dtype=A.dtype)
        if B.shape not in [(A.shape[0],), (A.shape[0], 1)]:
            raise InvalidInput(f"B has shape {B.shape}, expected ({A.shape[0]},)")
        B = B.ravel().copy()

    if max_levels < 1:
        raise InvalidInput("max_levels must be at least 1")

    config = SAConfig(
        theta=float(theta),
        max_coarse=int(max_coarse),
        max_levels=int(max_levels),
        omega=float(omega),
        smoother=smoother,
        strength=strength,
        aggregate=aggregate,
        galerkin=galerkin,
        print_info=bool(print_info),
    )

    levels = [SALevel.allocate(A, B)]

    while len(levels) < config.max_levels and levels[-1].A.shape[0] > config.max_coarse:
        extend_hierarchy(levels=levels, config=config)

    t0 = time.perf_counter()
    coarse_solver = DirectCoarseSolver(levels[-1].A)
    _sa_print_setup_summary(coarse_setup_time=time.perf_counter() - t0, print_info=config.print_info)

    ml = SAHierarchy(levels, coarse_solver, config)
    if config.print_info:
        ml.print_summary()
    return ml
