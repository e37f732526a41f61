"""Tentative prolongator from aggregates and a near-kernel candidate.

Overview
--------
Given an aggregate id per fine row and a candidate vector B, the tentative
prolongator T has exactly one nonzero per row:

    T[r, aggregates[r]] = B[r] / norm[aggregates[r]]

where norm[k] is the Euclidean norm of B restricted to aggregate k. Each
column of T is therefore unit-normalized, and the coarse candidate is

    B_coarse[k] = norm[k]

so that T @ B_coarse reproduces B exactly on every aggregate.

Key conventions
---------------
- Aggregate ids must be nonnegative and cover [0, max(aggregates) + 1).
  Unaggregated rows (negative ids) are rejected rather than guessed at.
- T is returned in CSR form with int32 indices; since every row has one
  entry its row pointer is simply arange(n_fine + 1).
"""

from __future__ import annotations

import numpy as np
from scipy.sparse import csr_array

from .errors import DegenerateAggregation, InvalidInput
from .prolongation import _sa_int32_indices


def fit_candidates(aggregates, B) -> tuple[csr_array, np.ndarray]:
    """Fit the candidate vector B to the aggregates.

    Parameters
    ----------
    aggregates
        Integer array of shape (n_fine,). `aggregates[r]` is the aggregate
        containing fine row r.
    B
        Candidate vector of shape (n_fine,) (or (n_fine, 1)).

    Returns
    -------
    T, B_coarse
        T is a CSR array of shape (n_fine, n_aggs) with unit-norm columns,
        B_coarse is an array of shape (n_aggs,) holding the column norms.

    Raises
    ------
    DegenerateAggregation
        If there are no rows, a row is unaggregated (id < 0), an aggregate id
        in [0, n_aggs) is never used, or B vanishes on an aggregate.
    InvalidInput
        If B does not have one entry per fine row.

    Notes
    -----
    The column sums of squares are a segmented reduction over the column
    index, computed with `np.bincount`.
    """
    aggregates = np.asarray(aggregates)
    B = np.asarray(B)
    if B.ndim == 2 and B.shape[1] == 1:
        B = B[:, 0]

    if aggregates.ndim != 1 or aggregates.size == 0:
        raise DegenerateAggregation("expected a nonempty 1-D array of aggregate ids")
    if not np.issubdtype(aggregates.dtype, np.integer):
        raise DegenerateAggregation(f"aggregate ids must be integers, got {aggregates.dtype}")
    if B.shape != aggregates.shape:
        raise InvalidInput(f"B has shape {B.shape}, expected {aggregates.shape}")
    if aggregates.min() < 0:
        n_bad = int(np.count_nonzero(aggregates < 0))
        raise DegenerateAggregation(f"{n_bad} rows are not assigned to an aggregate")

    n_fine = aggregates.size
    num_aggregates = int(aggregates.max()) + 1
    cols = aggregates.astype(np.int32, copy=False)
    vals = np.array(B, dtype=np.result_type(B.dtype, np.float64))

    sizes = np.bincount(cols, minlength=num_aggregates)
    if np.any(sizes == 0):
        missing = np.flatnonzero(sizes == 0)
        raise DegenerateAggregation(
            f"{missing.size} aggregate ids in [0, {num_aggregates}) are empty (first: {missing[0]})"
        )

    # sum of squares per column, then sqrt
    norms = np.sqrt(np.bincount(cols, weights=np.abs(vals) ** 2, minlength=num_aggregates))
    if np.any(norms == 0.0):
        zero = np.flatnonzero(norms == 0.0)
        raise DegenerateAggregation(
            f"candidate vector vanishes on {zero.size} aggregates (first: {zero[0]})"
        )

    # rescale columns
    vals /= norms[cols]

    T = csr_array(
        (vals, cols, np.arange(n_fine + 1, dtype=np.int32)),
        shape=(n_fine, num_aggregates),
    )
    B_coarse = norms.astype(vals.dtype, copy=False)
    return _sa_int32_indices(T), B_coarse
