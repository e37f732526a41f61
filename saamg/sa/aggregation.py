"""Strength-of-connection and aggregation for smoothed aggregation.

Both steps are external collaborators provided by PyAMG; this module only
normalizes their specs and converts the result into the representation the
rest of the pipeline uses: one integer aggregate id per fine row.

Main responsibilities
---------------------
1) Strength-of-connection:
   Constructs a sparse strength matrix C from A and theta, using the standard
   PyAMG strength operators (or a predefined C).

2) Aggregation:
   Builds aggregates from C with the requested strategy (standard, naive,
   predefined) and returns an id array with values in [0, n_aggs).

3) Isolated nodes:
   A node whose row in C has no off-diagonal entry has no neighbor to join,
   so it becomes its own singleton aggregate. Any other node left without an
   aggregate is a `DegenerateAggregation` failure; there is no neighbor voting.
"""

from __future__ import annotations

from typing import Any

import numpy as np
from scipy.sparse import csr_array, issparse

from pyamg.aggregation.aggregate import naive_aggregation, standard_aggregation
from pyamg.strength import (
    classical_strength_of_connection,
    symmetric_strength_of_connection,
)

from .errors import DegenerateAggregation
from .prolongation import _sa_int32_indices
from .types import IndexArray, MethodSpec


def _sa_unpack_arg(v: Any) -> tuple[Any, dict[str, Any]]:
    """Normalize a PyAMG-style method spec into (name, kwargs).

    Parameters
    ----------
    v
        Either:
          - a string name like "standard", "symmetric", ...
          - a pair (name, kwargs) like ("standard", {})
          - None

    Returns
    -------
    name, kwargs
        `name` is the method identifier, `kwargs` is a dict of keyword arguments.
    """
    if isinstance(v, tuple):
        return v[0], dict(v[1])
    return v, {}


def _sa_build_strength(*, A, theta: float, strength_spec: MethodSpec) -> csr_array:
    """Compute strength-of-connection matrix C from A.

    Parameters
    ----------
    A
        CSR operator on this level.
    theta
        Drop threshold; forwarded as `theta` unless the spec kwargs set one.
    strength_spec
        PyAMG-style spec:
          - "symmetric" (default) or "classical",
          - ("predefined", {"C": C}),
          - None for the absolute adjacency of A.

    Returns
    -------
    C
        CSR strength-of-connection matrix with explicit zeros removed.
    """
    name, kwargs = _sa_unpack_arg(strength_spec)

    if name == "symmetric":
        kwargs.setdefault("theta", theta)
        C = symmetric_strength_of_connection(A, **kwargs)
    elif name == "classical":
        kwargs.setdefault("theta", theta)
        C = classical_strength_of_connection(A, **kwargs)
    elif name == "predefined":
        if "C" not in kwargs:
            raise ValueError('predefined strength expects "C"')
        C = kwargs["C"]
    elif name is None:
        C = abs(A.copy())
    else:
        raise ValueError(f"Unrecognized strength-of-connection method: {name!r}")

    C = _sa_int32_indices(csr_array(C))
    C.eliminate_zeros()
    return C


def _aggop_to_ids(AggOp) -> IndexArray:
    """Convert an (n_fine x n_aggs) aggregation operator into an id per row.

    Rows without a nonzero are marked with -1.
    """
    AggOp = csr_array(AggOp)
    AggOp.eliminate_zeros()

    counts = np.diff(AggOp.indptr)
    if np.any(counts > 1):
        raise DegenerateAggregation("aggregation assigned a row to more than one aggregate")

    aggregates = np.full(AggOp.shape[0], -1, dtype=np.intp)
    assigned = counts == 1
    aggregates[assigned] = AggOp.indices[AggOp.indptr[:-1][assigned]]
    return aggregates


def _isolated_nodes(C: csr_array) -> np.ndarray:
    """Return a boolean mask of rows of C without off-diagonal entries."""
    C = C.tocoo()
    has_neighbors = np.zeros(C.shape[0], dtype=bool)
    off = C.row != C.col
    has_neighbors[C.row[off]] = True
    return ~has_neighbors


def _sa_build_aggregates(*, C: csr_array, aggregate_spec: MethodSpec) -> IndexArray:
    """Partition the rows of C into aggregates.

    Parameters
    ----------
    C
        CSR strength-of-connection matrix.
    aggregate_spec
        PyAMG-style aggregation spec (string or (string, kwargs)).
        Supported names: "standard", "naive", "predefined".
        "predefined" takes either {"aggregates": ids} or {"AggOp": AggOp}.

    Returns
    -------
    aggregates
        Integer array of length C.shape[0] with values in [0, n_aggs).

    Raises
    ------
    DegenerateAggregation
        If no aggregate is formed, or a node with neighbors is left unassigned.
    """
    name, kwargs = _sa_unpack_arg(aggregate_spec)

    if name == "standard":
        AggOp, _ = standard_aggregation(C, **kwargs)
        aggregates = _aggop_to_ids(AggOp)
    elif name == "naive":
        AggOp, _ = naive_aggregation(C, **kwargs)
        aggregates = _aggop_to_ids(AggOp)
    elif name == "predefined":
        if "aggregates" in kwargs:
            aggregates = np.asarray(kwargs["aggregates"], dtype=np.intp).copy()
        elif "AggOp" in kwargs and issparse(kwargs["AggOp"]):
            aggregates = _aggop_to_ids(kwargs["AggOp"])
        else:
            raise ValueError('predefined aggregation expects "aggregates" or a sparse "AggOp"')
        if aggregates.shape != (C.shape[0],):
            raise DegenerateAggregation(
                f"predefined aggregates have shape {aggregates.shape}, expected ({C.shape[0]},)"
            )
    else:
        raise ValueError(f"Unrecognized aggregation method: {name!r}")

    unassigned = aggregates < 0
    if np.any(unassigned):
        isolated = unassigned & _isolated_nodes(C)
        k = int(np.count_nonzero(isolated))
        if k > 0:
            n_aggs = int(aggregates.max()) + 1 if np.any(~unassigned) else 0
            aggregates[isolated] = np.arange(n_aggs, n_aggs + k, dtype=np.intp)
            unassigned = aggregates < 0

    if np.any(unassigned):
        raise DegenerateAggregation(
            f"{int(np.count_nonzero(unassigned))} rows were left unaggregated"
        )

    if aggregates.size == 0:
        raise DegenerateAggregation("aggregation produced zero aggregates")

    return aggregates
