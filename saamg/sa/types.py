"""Typed configuration and per-level containers for smoothed aggregation.

Containers
----------
SAConfig
    Frozen bundle of the options that control hierarchy construction. Built once
    by `saamg.smoothed_aggregation.smoothed_aggregation_solver` from its keyword
    arguments and shared by every call to `extend_hierarchy`.

SALevel
    One rung of the hierarchy:
      - A          : CSR operator on this level
      - B          : near-kernel candidate vector (length A.shape[0])
      - P, R       : prolongation (n_fine x n_coarse) and restriction R = P^T
      - aggregates : aggregate id per fine row
      - smoother   : relaxation object bound to A
      - x, b, residual : scratch vectors owned by this level
      - rho_DinvA  : spectral radius estimate of D^{-1} A used for this level
      - stats      : per-level setup timings (see `saamg.sa.stats`)

Invariants
----------
- Every level except the last has P, R, aggregates and smoother set.
- The last level has P = R = smoother = None and is solved directly.
- Scratch vectors are never shared between levels.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional, Protocol

import numpy as np
from numpy.typing import NDArray
from scipy.sparse import csr_array, sparray, spmatrix

SparseLike = spmatrix | sparray
MethodSpec = str | tuple[str, dict[str, Any]] | None

IndexArray = NDArray[np.intp]


class Smoother(Protocol):
    """Relaxation capability used by the V-cycle."""

    def presmooth(self, A: SparseLike, b: np.ndarray, x: np.ndarray) -> None:
        ...

    def postsmooth(self, A: SparseLike, b: np.ndarray, x: np.ndarray) -> None:
        ...


@dataclass(slots=True, frozen=True)
class SAConfig:
    """Configuration parameters for building a smoothed aggregation hierarchy.

    Attributes
    ----------
    theta : float
        Strength-of-connection threshold (>= 0).
    max_coarse : int
        Coarsening stops once the current operator has at most this many rows.
    max_levels : int
        Upper bound on the number of levels, including the coarsest one.
    omega : float
        Prolongator smoothing weight; the Jacobi relaxation weight is omega / rho.
    smoother : MethodSpec
        Relaxation scheme on every non-terminal level: "jacobi" or "chebyshev",
        optionally as (name, kwargs); see `sa.smoothers`.
    strength : MethodSpec
        Strength-of-connection spec: "symmetric", "classical", ("predefined", {"C": C}).
    aggregate : MethodSpec
        Aggregation spec: "standard", "naive", ("predefined", {"aggregates": ids}).
    galerkin : str
        Order of the triple product, "R(AP)" or "(RA)P".
    print_info : bool
        Whether to record and print per-level diagnostics via `sa.stats`.
    """

    theta: float = 0.0
    max_coarse: int = 100
    max_levels: int = 20
    omega: float = 4.0 / 3.0
    smoother: MethodSpec = "jacobi"
    strength: MethodSpec = "symmetric"
    aggregate: MethodSpec = "standard"
    galerkin: str = "R(AP)"
    print_info: bool = False


@dataclass(slots=True, eq=False)
class SALevel:
    """State for one level of the hierarchy.

    Only `A`, `B` and the scratch vectors are set when a level is appended;
    the remaining fields are filled in when the level is coarsened.
    """

    A: csr_array
    B: np.ndarray
    x: np.ndarray
    b: np.ndarray
    residual: np.ndarray

    P: Optional[csr_array] = None
    R: Optional[csr_array] = None
    aggregates: Optional[IndexArray] = None
    smoother: Optional[Smoother] = None
    rho_DinvA: Optional[float] = None
    stats: Optional[Any] = None

    @classmethod
    def allocate(cls, A: csr_array, B: np.ndarray) -> "SALevel":
        """Create a level for operator A with zeroed scratch vectors."""
        n = A.shape[0]
        return cls(
            A=A,
            B=B,
            x=np.zeros(n, dtype=A.dtype),
            b=np.zeros(n, dtype=A.dtype),
            residual=np.zeros(n, dtype=A.dtype),
        )

    @property
    def is_coarsest(self) -> bool:
        return self.P is None
