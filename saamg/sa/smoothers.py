"""Relaxation schemes used on the non-terminal levels.

This module maps smoother specs to objects exposing `presmooth(A, b, x)` and
`postsmooth(A, b, x)`, both updating x in place.

Supported smoothers
-------------------
- "jacobi"    : weighted Jacobi, omega = (4/3) / rho(D^{-1} A)
- "chebyshev" : Chebyshev polynomial in D^{-1} A, interval [lo*rho, hi*rho]

A spec is either a name or a `(name, kwargs)` pair, e.g.
`("chebyshev", {"degree": 4})` or `("jacobi", {"iterations": 2})`.
"""

from __future__ import annotations

from typing import Any

import numpy as np

from pyamg.relaxation.chebyshev import chebyshev_polynomial_coefficients
from pyamg.relaxation.relaxation import jacobi

from .aggregation import _sa_unpack_arg
from .prolongation import _sa_diagonal
from .types import SAConfig, Smoother


class JacobiSmoother:
    """Weighted Jacobi relaxation, x <- x + omega D^{-1} (b - A x)."""

    def __init__(self, omega: float, iterations: int = 1) -> None:
        self.omega = float(omega)
        self.iterations = int(iterations)

    def presmooth(self, A, b: np.ndarray, x: np.ndarray) -> None:
        jacobi(A, x, b, iterations=self.iterations, omega=self.omega)

    def postsmooth(self, A, b: np.ndarray, x: np.ndarray) -> None:
        jacobi(A, x, b, iterations=self.iterations, omega=self.omega)

    def __repr__(self) -> str:
        return f"JacobiSmoother(omega={self.omega:.4g}, iterations={self.iterations})"


class ChebyshevSmoother:
    """Polynomial relaxation x <- x + p(D^{-1} A) D^{-1} (b - A x).

    `coefficients` are the coefficients of p, highest degree first, and are
    evaluated with Horner's rule.
    """

    def __init__(self, A, coefficients, iterations: int = 1) -> None:
        self.coefficients = np.asarray(coefficients, dtype=float)
        self.Dinv = 1.0 / _sa_diagonal(A)
        self.iterations = int(iterations)

    def _relax(self, A, b: np.ndarray, x: np.ndarray) -> None:
        Dinv = self.Dinv
        for _ in range(self.iterations):
            residual = Dinv * (b - A @ x)
            h = self.coefficients[0] * residual
            for c in self.coefficients[1:]:
                h = c * residual + Dinv * (A @ h)
            x += h

    def presmooth(self, A, b: np.ndarray, x: np.ndarray) -> None:
        self._relax(A, b, x)

    def postsmooth(self, A, b: np.ndarray, x: np.ndarray) -> None:
        self._relax(A, b, x)

    def __repr__(self) -> str:
        return f"ChebyshevSmoother(degree={self.coefficients.size}, iterations={self.iterations})"


def chebyshev_coefficients(rho: float, *, degree: int = 3,
                           lower_bound: float = 1.0 / 30.0,
                           upper_bound: float = 1.1) -> np.ndarray:
    """Coefficients of the polynomial p with p(t) ~ 1/t on [lower*rho, upper*rho].

    PyAMG returns the residual polynomial 1 - t p(t); dropping its constant term
    and negating gives p, highest degree first.
    """
    a = rho * lower_bound
    b = rho * upper_bound
    return -chebyshev_polynomial_coefficients(a, b, degree)[:-1]


def sa_make_smoother(*, A, rho: float, config: SAConfig) -> Smoother:
    """Return the relaxation object for one level.

    Parameters
    ----------
    A
        CSR operator on this level.
    rho
        Spectral radius estimate of D^{-1} A on this level.
    config
        Hierarchy configuration; `config.smoother` selects the scheme and
        `config.omega` the Jacobi weight numerator.

    Returns
    -------
    smoother
        A `JacobiSmoother` or `ChebyshevSmoother`.

    Raises
    ------
    ValueError
        If an unsupported smoother name is provided.
    """
    name, kwargs = _sa_unpack_arg(config.smoother)
    iterations = int(kwargs.pop("iterations", 1))

    if name == "jacobi":
        omega = kwargs.pop("omega", config.omega)
        _reject_kwargs(name, kwargs)
        return JacobiSmoother(omega=omega / rho, iterations=iterations)

    if name == "chebyshev":
        coeff = chebyshev_coefficients(
            rho,
            degree=int(kwargs.pop("degree", 3)),
            lower_bound=float(kwargs.pop("lower_bound", 1.0 / 30.0)),
            upper_bound=float(kwargs.pop("upper_bound", 1.1)),
        )
        _reject_kwargs(name, kwargs)
        return ChebyshevSmoother(A, coeff, iterations=iterations)

    raise ValueError(f"Invalid smoother type: {name!r}")


def _reject_kwargs(name: str, kwargs: dict[str, Any]) -> None:
    """Raise ValueError if unused smoother options remain."""
    if kwargs:
        raise ValueError(f"Unexpected options for smoother {name!r}: {sorted(kwargs)}")
