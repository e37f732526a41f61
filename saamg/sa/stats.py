"""Timing, complexity and diagnostic reporting for smoothed aggregation.

This module provides:
  - A small per-level timing collector (`SALevelStats`) that supports labeled timers.
  - Pure complexity summaries over a list of levels.
  - Human-readable printers for per-level setup, the hierarchy table, and
    monitor progress.

Printing is confined to this module; every printer is a no-op unless the
caller passes `print_info=True` (or asks for the table explicitly).

Typical usage
-------------
Within hierarchy construction, create a `SALevelStats` for the current level:

    stats = SALevelStats(level=ell, n_fine=A.shape[0], nnz=A.nnz)
    with stats.timeit("aggregate"):
        ... do aggregation ...
    _sa_finalize_level_stats(stats=stats, level=level, n_coarse=n_c)
    _sa_print_level_summary(stats, print_info=print_info)
"""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Sequence
import time

from .types import SALevel


@dataclass(slots=True)
class SALevelStats:
    """Per-level setup timings and summary statistics.

    Attributes
    ----------
    level
        Multigrid level index (0 = finest).
    n_fine
        Fine dimension on this level.
    nnz
        Number of stored entries of A on this level.
    n_coarse
        Coarse dimension produced by this level (filled in finalize).
    timings
        Dict mapping timer keys to elapsed seconds.
    extra
        Dict for derived metrics (coarsening ratio, rho, P nnz, ...).
    """

    level: int
    n_fine: int
    nnz: int
    n_coarse: int | None = None
    timings: dict[str, float] = field(default_factory=dict)
    extra: dict[str, Any] = field(default_factory=dict)

    @contextmanager
    def timeit(self, key: str):
        """Context manager that accumulates elapsed time under `timings[key]`."""
        t0 = time.perf_counter()
        try:
            yield
        finally:
            self.timings[key] = self.timings.get(key, 0.0) + (time.perf_counter() - t0)


def sa_operator_complexity(levels: Sequence[SALevel]) -> float:
    """Sum of nonzeros over all levels divided by the nonzeros on level 0."""
    nnz = sum(level.A.nnz for level in levels)
    return float(nnz) / levels[0].A.nnz


def sa_grid_complexity(levels: Sequence[SALevel]) -> float:
    """Sum of unknowns over all levels divided by the unknowns on level 0."""
    unknowns = sum(level.A.shape[0] for level in levels)
    return float(unknowns) / levels[0].A.shape[0]


def _sa_finalize_level_stats(*, stats: SALevelStats, level: SALevel, n_coarse: int) -> None:
    """Populate derived diagnostics for a completed hierarchy extension.

    Side effects
    ------------
    - Updates `stats.n_coarse` and fields in `stats.extra`.
    - Stores `stats` on the level as `level.stats` for later inspection.
    """
    stats.n_coarse = int(n_coarse)
    stats.extra["cr"] = float(stats.n_fine / n_coarse) if n_coarse > 0 else float("inf")
    if level.rho_DinvA is not None:
        stats.extra["rho"] = float(level.rho_DinvA)
    if level.P is not None:
        stats.extra["P_nnz"] = int(level.P.nnz)
    level.stats = stats


def _fmt(x) -> str:
    """Format a scalar for compact printing."""
    try:
        x = float(x)
    except (TypeError, ValueError):
        return str(x)
    ax = abs(x)
    if ax != 0.0 and (ax < 1e-2 or ax >= 1e4):
        return f"{x:.2e}"
    return f"{x:.3g}"


def _fmt_ms(t: float) -> str:
    """Format a duration in seconds as either milliseconds or seconds."""
    return f"{t*1e3:7.1f}ms" if t < 1.0 else f"{t:7.2f}s"


def _sa_print_level_summary(
    stats: SALevelStats,
    *,
    print_info: bool,
    prefix: str = "SA",
    indent: str = "",
) -> None:
    """Print a compact per-level summary of setup diagnostics and timings.

    Parameters
    ----------
    stats
        Per-level stats object that has already been finalized.
    print_info
        If False, does nothing.
    prefix
        Short label prefix printed per level.
    indent
        Optional indentation string (useful if caller nests printing).
    """
    if not print_info:
        return

    n_c = stats.n_coarse if stats.n_coarse is not None else "?"
    cr = _fmt(stats.extra.get("cr", "n/a"))
    print(f"{indent}{prefix:<3}  level={stats.level:<2d}  n={stats.n_fine:<7d} -> {n_c:<7}  cr={cr}")
    print(f"{indent}     rho(D^-1 A) : {_fmt(stats.extra.get('rho', 'n/a'))}")
    print(f"{indent}     nnz(A)      : {stats.nnz}")
    print(f"{indent}     nnz(P)      : {stats.extra.get('P_nnz', 'n/a')}")

    order = [
        "strength",
        "rho",
        "aggregate",
        "fit",
        "smooth",
        "transpose",
        "galerkin",
        "smoother",
    ]
    total = 0.0
    print(f"{indent}     timing:")
    for k in order:
        if k in stats.timings:
            v = stats.timings[k]
            total += v
            print(f"{indent}       {k:<11} {_fmt_ms(v)}")
    print(f"{indent}       {'total':<11} {_fmt_ms(total)}")


def _sa_print_setup_summary(*, coarse_setup_time: float, print_info: bool, indent: str = "") -> None:
    """Print non-level-specific setup timings."""
    if not print_info:
        return
    print(f"{indent}SA   coarse_factor  {_fmt_ms(float(coarse_setup_time))}")


def _sa_format_hierarchy(levels: Sequence[SALevel]) -> str:
    """Return the level table: unknowns and nonzeros per level plus complexities."""
    nnz_total = sum(level.A.nnz for level in levels)

    lines = [
        f"\tNumber of Levels:\t{len(levels)}",
        f"\tOperator Complexity:\t{sa_operator_complexity(levels):6.3f}",
        f"\tGrid Complexity:\t{sa_grid_complexity(levels):6.3f}",
        "\tlevel\tunknowns\tnonzeros",
    ]
    for index, level in enumerate(levels):
        percent = 100.0 * level.A.nnz / nnz_total
        lines.append(
            f"\t{index:>4d}\t{level.A.shape[0]:>8d}\t{level.A.nnz:>8d} \t[{percent:5.2f}%]"
        )
    return "\n".join(lines) + "\n"


def _sa_print_hierarchy(levels: Sequence[SALevel], *, indent: str = "") -> None:
    """Print the level table produced by `_sa_format_hierarchy`."""
    for line in _sa_format_hierarchy(levels).splitlines():
        print(f"{indent}{line}")


def _sa_print_monitor_iteration(iteration: int, residual_norm: float, *, indent: str = "") -> None:
    """Print one line of solver progress."""
    print(f"{indent}{iteration:>7d}  {residual_norm:14.6e}")


def _sa_print_monitor_summary(
    *,
    converged: bool,
    iteration_count: int,
    residual_norm: float,
    tolerance: float,
    indent: str = "",
) -> None:
    """Print the final state of a monitored solve."""
    status = "converged" if converged else "failed to converge"
    print(
        f"{indent}Solver {status} after {iteration_count} iterations "
        f"(residual {residual_norm:.6e}, tolerance {tolerance:.6e})"
    )
