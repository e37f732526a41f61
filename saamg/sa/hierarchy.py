"""Hierarchy extension utilities for smoothed aggregation.

This module provides:
  - the Galerkin triple product R A P,
  - appending the next multigrid level,
  - the dense direct solver for the coarsest level,
  - the orchestration routine that builds one additional level.

The public entrypoint used by `saamg.smoothed_aggregation` is `extend_hierarchy`.
"""

from __future__ import annotations

import warnings

import numpy as np
from scipy.linalg import LinAlgWarning, lu_factor, lu_solve
from scipy.sparse import csr_array

from .aggregation import _sa_build_aggregates, _sa_build_strength
from .candidates import fit_candidates
from .errors import CoarseFactorizationFailure, DegenerateAggregation
from .prolongation import _sa_int32_indices, estimate_rho_DinvA, smooth_prolongator
from .smoothers import sa_make_smoother
from .stats import SALevelStats, _sa_finalize_level_stats, _sa_print_level_summary
from .types import SAConfig, SALevel, SparseLike


def _sa_galerkin_product(*, A: SparseLike, P: SparseLike, R: SparseLike, order: str = "R(AP)") -> csr_array:
    """Form the coarse operator R A P.

    Parameters
    ----------
    A, P, R
        Fine operator (n x n), prolongation (n x n_c) and restriction (n_c x n).
    order
        "R(AP)" multiplies A P first; "(RA)P" multiplies R A first. Both give
        the same operator; the choice only affects cost.

    Returns
    -------
    A_c
        CSR array of shape (n_c, n_c) with sorted int32 indices.
    """
    if order == "R(AP)":
        AP = A @ P
        RAP = R @ AP
    elif order == "(RA)P":
        RA = R @ A
        RAP = RA @ P
    else:
        raise ValueError(f'Expected "R(AP)" or "(RA)P" for the galerkin parameter, got {order!r}')

    A_c = _sa_int32_indices(csr_array(RAP))
    A_c.sort_indices()
    return A_c


def _sa_append_next_level(*, levels: list[SALevel], A: csr_array, B: np.ndarray) -> SALevel:
    """Append a new level holding A and B, with freshly zeroed scratch vectors.

    Returns
    -------
    next_level
        The newly created and appended `SALevel` instance.
    """
    levels.append(SALevel.allocate(A, B))
    return levels[-1]


class DirectCoarseSolver:
    """Dense LU solver for the coarsest level.

    Parameters
    ----------
    A
        Sparse operator on the coarsest level; densified and factored once.

    Raises
    ------
    CoarseFactorizationFailure
        If A contains non-finite values or the factorization has a pivot that
        is zero or negligible relative to the largest pivot.
    """

    def __init__(self, A: SparseLike) -> None:
        dense = np.asarray(A.toarray())
        n = dense.shape[0]
        if n == 0:
            raise CoarseFactorizationFailure("coarsest operator is empty")
        if not np.all(np.isfinite(dense)):
            raise CoarseFactorizationFailure("coarsest operator has non-finite entries")

        with warnings.catch_warnings():
            # singularity is detected from the pivots below
            warnings.simplefilter("ignore", LinAlgWarning)
            lu, piv = lu_factor(dense, check_finite=False)

        pivots = np.abs(np.diag(lu))
        eps = np.finfo(np.result_type(lu.dtype, np.float64)).eps
        if not np.all(np.isfinite(pivots)) or pivots.min() <= n * eps * pivots.max():
            raise CoarseFactorizationFailure(
                f"coarsest operator ({n} x {n}) is singular or ill-conditioned "
                f"(pivot ratio {pivots.min() / pivots.max() if pivots.max() > 0 else 0.0:.3e})"
            )

        self.shape = dense.shape
        self.lu_and_piv = (lu, piv)

    def solve(self, b: np.ndarray) -> np.ndarray:
        """Return x with A x = b."""
        return lu_solve(self.lu_and_piv, b, check_finite=False)

    __call__ = solve


def extend_hierarchy(*, levels: list[SALevel], config: SAConfig) -> None:
    """Extend the multigrid hierarchy by one level.

    Parameters
    ----------
    levels
        List of `SALevel` objects. The routine reads the current coarsest
        level as `levels[-1]` and appends a new coarse level at the end.
    config
        Hierarchy configuration (theta, smoothing weight, smoother, specs).

    Raises
    ------
    DegenerateAggregation
        If aggregation fails or does not reduce the number of unknowns.
    SingularDiagonal
        If A has a zero or near-zero diagonal entry.

    Side effects
    ------------
    - Sets `aggregates`, `P`, `R`, `smoother`, `rho_DinvA` and `stats` on `levels[-1]`.
    - Appends the coarse level (A_c = R A P, B_c) via `_sa_append_next_level`.
    """
    level = levels[-1]
    A = level.A
    B = level.B
    n_fine = A.shape[0]

    stats = SALevelStats(level=len(levels) - 1, n_fine=n_fine, nnz=int(A.nnz))

    # ---- strength-of-connection ----
    with stats.timeit("strength"):
        C = _sa_build_strength(A=A, theta=config.theta, strength_spec=config.strength)

    # ---- spectral radius of D^-1 A ----
    with stats.timeit("rho"):
        rho = estimate_rho_DinvA(A)

    # ---- aggregation ----
    with stats.timeit("aggregate"):
        aggregates = _sa_build_aggregates(C=C, aggregate_spec=config.aggregate)

    # ---- tentative prolongator and coarse candidate ----
    with stats.timeit("fit"):
        T, B_coarse = fit_candidates(aggregates, B)

    n_coarse = T.shape[1]
    if n_coarse >= n_fine:
        raise DegenerateAggregation(
            f"aggregation did not coarsen level {len(levels) - 1}: "
            f"{n_fine} rows -> {n_coarse} aggregates"
        )

    # ---- smoothed prolongator ----
    with stats.timeit("smooth"):
        P = smooth_prolongator(A, T, omega=config.omega, rho=rho)

    # ---- restriction ----
    with stats.timeit("transpose"):
        R = _sa_int32_indices(csr_array(P.T))
        R.sort_indices()

    # ---- coarse operator ----
    with stats.timeit("galerkin"):
        A_c = _sa_galerkin_product(A=A, P=P, R=R, order=config.galerkin)

    assert P.shape == (n_fine, n_coarse)
    assert A_c.shape == (n_coarse, n_coarse)

    # ---- relaxation ----
    with stats.timeit("smoother"):
        smoother = sa_make_smoother(A=A, rho=rho, config=config)

    level.aggregates = aggregates
    level.P = P
    level.R = R
    level.smoother = smoother
    level.rho_DinvA = rho

    _sa_finalize_level_stats(stats=stats, level=level, n_coarse=n_coarse)
    _sa_print_level_summary(stats, print_info=config.print_info)

    _sa_append_next_level(levels=levels, A=A_c, B=B_coarse)
