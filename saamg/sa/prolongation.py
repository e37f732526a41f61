"""Spectral radius estimate and prolongator smoothing.

The smoothed prolongator is one step of weighted Jacobi applied to the
tentative prolongator T:

    P = (I - (omega / rho) D^{-1} A) T,      rho ~ rho(D^{-1} A)

D^{-1} A is never formed. Because T has one nonzero per row, the product
A T has the sparsity pattern of A with column j remapped to its aggregate, so
P is assembled from triplets:

    (i, agg[j], -lambda * A[i, j] * T[j] / D[i])   for every nonzero A[i, j]
    (r, agg[r], T[r])                              for every fine row r

followed by a sort on (row, col) and a segmented sum of duplicate keys.
"""

from __future__ import annotations

import numpy as np
from scipy.sparse import csr_array
from scipy.sparse.linalg import LinearOperator

from pyamg.util.linalg import approximate_spectral_radius

from .errors import SingularDiagonal


def _sa_diagonal(A) -> np.ndarray:
    """Return the diagonal of A, rejecting zero or near-zero entries.

    An entry is near-zero when |D[i]| <= eps * max|D|.
    """
    D = A.diagonal()
    if D.size == 0:
        raise SingularDiagonal("operator has an empty diagonal")

    eps = np.finfo(np.result_type(D.dtype, np.float64)).eps
    scale = float(np.max(np.abs(D)))
    bad = np.flatnonzero(np.abs(D) <= eps * scale)
    if bad.size > 0:
        raise SingularDiagonal(
            f"zero or near-zero diagonal in {bad.size} of {D.size} rows (first: {bad[0]})",
            rows=bad,
        )
    return D


def estimate_rho_DinvA(A) -> float:
    """Estimate the spectral radius of D^{-1} A.

    The operator x -> D^{-1} (A x) is wrapped in a `LinearOperator` and handed
    to PyAMG's Arnoldi/Ritz estimator. The Krylov start vector is drawn from a
    fixed seed, so the same A always gives the same estimate.

    Raises
    ------
    SingularDiagonal
        If A has a zero diagonal entry or the estimate is not a positive number.
    """
    Dinv = 1.0 / _sa_diagonal(A)

    def matvec(x):
        return Dinv * (A @ np.ravel(x))

    Dinv_A = LinearOperator(A.shape, matvec=matvec, dtype=A.dtype)
    v0 = np.random.default_rng(0).random((A.shape[0], 1))
    rho = float(approximate_spectral_radius(Dinv_A, initial_guess=v0))

    if not np.isfinite(rho) or rho <= 0.0:
        raise SingularDiagonal(f"degenerate spectral radius estimate for D^-1 A: {rho}")
    return rho


def _sa_int32_indices(M: csr_array) -> csr_array:
    """Store the index arrays of CSR M as int32, in place, and return M.

    PyAMG's compiled kernels (strength, relaxation) only accept int32 indices,
    while scipy may promote indices to int64 in products and constructors.
    """
    M.indices = M.indices.astype(np.int32, copy=False)
    M.indptr = M.indptr.astype(np.int32, copy=False)
    return M


def _indices_to_offsets(rows: np.ndarray, n_rows: int) -> np.ndarray:
    """Convert sorted row indices into a CSR row pointer of length n_rows + 1."""
    offsets = np.zeros(n_rows + 1, dtype=np.int32)
    offsets[1:] = np.cumsum(np.bincount(rows, minlength=n_rows))
    return offsets


def smooth_prolongator(A, T, omega: float = 4.0 / 3.0, rho: float | None = None) -> csr_array:
    """Smooth the tentative prolongator, P = (I - omega/rho D^{-1} A) T.

    Parameters
    ----------
    A
        CSR operator of shape (n, n).
    T
        Tentative prolongator of shape (n, n_aggs) with exactly one nonzero per
        row (as returned by `fit_candidates`).
    omega
        Smoothing weight; 4/3 is the usual choice.
    rho
        Spectral radius of D^{-1} A. Estimated with `estimate_rho_DinvA` when None.

    Returns
    -------
    P
        CSR array of shape (n, n_aggs) with sorted, unique column indices.

    Raises
    ------
    SingularDiagonal
        If A has a zero or near-zero diagonal entry.
    """
    T = csr_array(T)
    n = A.shape[0]
    assert A.shape == (n, n), "expected a square operator"
    assert T.shape[0] == n, "T must have one row per row of A"
    assert T.nnz == n and np.all(np.diff(T.indptr) == 1), "T must have exactly one nonzero per row"

    D = _sa_diagonal(A)
    if rho is None:
        rho = estimate_rho_DinvA(A)
    lam = omega / rho

    S = A.tocoo()
    t_cols = T.indices
    t_vals = T.data

    # temp <- -lambda * D^-1 * A(i,j) * T(j,agg[j]), then temp <- temp + T
    rows = np.concatenate([S.row, np.arange(n, dtype=S.row.dtype)])
    cols = np.concatenate([t_cols[S.col], t_cols])
    vals = np.concatenate([(-lam) * S.data * t_vals[S.col] / D[S.row], t_vals])

    # sort by (I, J) and sum values with the same (i, j)
    order = np.lexsort((cols, rows))
    rows = rows[order]
    cols = cols[order]
    vals = vals[order]

    head = np.empty(rows.size, dtype=bool)
    head[0] = True
    head[1:] = (rows[1:] != rows[:-1]) | (cols[1:] != cols[:-1])
    starts = np.flatnonzero(head)

    P_vals = np.add.reduceat(vals, starts)
    P_rows = rows[starts]
    P_cols = cols[starts].astype(np.int32, copy=False)

    P = csr_array(
        (P_vals, P_cols, _indices_to_offsets(P_rows, n)),
        shape=(n, T.shape[1]),
    )
    return _sa_int32_indices(P)
