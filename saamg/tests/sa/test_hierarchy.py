"""Tests for hierarchy construction and the coarse solver."""

from __future__ import annotations

import numpy as np
import pytest
from scipy.sparse import SparseEfficiencyWarning, csr_array, identity

from pyamg.gallery import poisson

from saamg import smoothed_aggregation_solver
from saamg.sa.errors import (
    CoarseFactorizationFailure,
    DegenerateAggregation,
    InvalidInput,
    SingularDiagonal,
)
from saamg.sa.hierarchy import DirectCoarseSolver, _sa_galerkin_product
from saamg.sa.smoothers import ChebyshevSmoother, JacobiSmoother


@pytest.fixture(scope="module")
def poisson_30():
    A = csr_array(poisson((30, 30), format="csr"))
    return A, smoothed_aggregation_solver(A)


def test_levels_shrink(poisson_30) -> None:
    A, ml = poisson_30
    sizes = [level.A.shape[0] for level in ml.levels]

    assert len(ml.levels) >= 2
    assert sizes[0] == A.shape[0]
    assert all(n_c < n for n, n_c in zip(sizes, sizes[1:]))
    assert sizes[-1] <= ml.config.max_coarse
    assert all(n > ml.config.max_coarse for n in sizes[:-1])


def test_restriction_is_transpose(poisson_30) -> None:
    _, ml = poisson_30
    for level in ml.levels[:-1]:
        assert level.R.shape == (level.P.shape[1], level.P.shape[0])
        assert (level.R != level.P.T).nnz == 0


def test_galerkin_identity(poisson_30) -> None:
    _, ml = poisson_30
    for level, coarse in zip(ml.levels, ml.levels[1:]):
        expected = (level.P.T @ level.A @ level.P).toarray()
        scale = np.abs(expected).max()
        np.testing.assert_allclose(coarse.A.toarray(), expected, atol=1e-12 * scale)


def test_coarse_operators_stay_symmetric(poisson_30) -> None:
    _, ml = poisson_30
    for level in ml.levels[1:]:
        Ac = level.A.toarray()
        np.testing.assert_allclose(Ac, Ac.T, atol=1e-12 * np.abs(Ac).max())


def test_level_contents(poisson_30) -> None:
    A, ml = poisson_30
    for index, level in enumerate(ml.levels[:-1]):
        n, n_c = level.P.shape
        assert level.aggregates.shape == (n,)
        assert level.aggregates.max() + 1 == n_c
        assert isinstance(level.smoother, JacobiSmoother)
        assert np.isfinite(level.rho_DinvA) and level.rho_DinvA > 0.0
        assert level.stats.level == index
        assert level.stats.n_coarse == n_c
        assert ml.levels[index + 1].B.shape == (n_c,)
        assert np.all(ml.levels[index + 1].B > 0)

    last = ml.levels[-1]
    assert last.is_coarsest
    assert last.P is None and last.R is None and last.smoother is None
    assert ml.coarse_solver.shape == last.A.shape


def test_complexities(poisson_30) -> None:
    A, ml = poisson_30
    oc = ml.operator_complexity()
    gc = ml.grid_complexity()

    assert oc == pytest.approx(sum(level.A.nnz for level in ml.levels) / A.nnz)
    assert gc == pytest.approx(sum(level.A.shape[0] for level in ml.levels) / A.shape[0])
    assert 1.0 < oc < 2.0
    assert 1.0 < gc < 1.5
    # pure summaries
    assert ml.operator_complexity() == oc


def test_print_summary(poisson_30, capsys) -> None:
    _, ml = poisson_30
    ml.print_summary()
    out = capsys.readouterr().out
    assert "Number of Levels:" in out
    assert "Operator Complexity:" in out
    assert "Grid Complexity:" in out
    assert str(ml.levels[-1].A.shape[0]) in out
    assert "Number of Levels:" in repr(ml)


def test_print_info(capsys) -> None:
    A = csr_array(poisson((20, 20), format="csr"))
    smoothed_aggregation_solver(A, print_info=True)
    out = capsys.readouterr().out
    assert "level=0" in out
    assert "rho(D^-1 A)" in out
    assert "coarse_factor" in out
    assert "Operator Complexity:" in out


def test_quiet_by_default(capsys) -> None:
    A = csr_array(poisson((20, 20), format="csr"))
    smoothed_aggregation_solver(A)
    assert capsys.readouterr().out == ""


def test_galerkin_orders_agree() -> None:
    A = csr_array(poisson((15, 15), format="csr"))
    ml = smoothed_aggregation_solver(A, max_levels=2)
    P, R = ml.levels[0].P, ml.levels[0].R

    RAP = _sa_galerkin_product(A=A, P=P, R=R, order="R(AP)").toarray()
    RAP2 = _sa_galerkin_product(A=A, P=P, R=R, order="(RA)P").toarray()
    np.testing.assert_allclose(RAP, RAP2, atol=1e-12)

    with pytest.raises(ValueError):
        _sa_galerkin_product(A=A, P=P, R=R, order="PAR")


def test_galerkin_option_is_used() -> None:
    A = csr_array(poisson((15, 15), format="csr"))
    ml1 = smoothed_aggregation_solver(A, galerkin="R(AP)")
    ml2 = smoothed_aggregation_solver(A, galerkin="(RA)P")
    for l1, l2 in zip(ml1.levels, ml2.levels):
        np.testing.assert_allclose(l1.A.toarray(), l2.A.toarray(), atol=1e-12)


def test_max_levels() -> None:
    A = csr_array(poisson((30, 30), format="csr"))
    ml = smoothed_aggregation_solver(A, max_levels=2)
    assert len(ml.levels) == 2

    ml = smoothed_aggregation_solver(A, max_levels=1)
    assert len(ml.levels) == 1
    assert ml.operator_complexity() == 1.0


def test_chebyshev_smoother_is_attached() -> None:
    A = csr_array(poisson((20, 20), format="csr"))
    ml = smoothed_aggregation_solver(A, smoother=("chebyshev", {"degree": 4}))
    smoother = ml.levels[0].smoother
    assert isinstance(smoother, ChebyshevSmoother)
    assert smoother.coefficients.size == 4


def test_user_candidate() -> None:
    A = csr_array(poisson((20, 20), format="csr"))
    B = np.linspace(1.0, 2.0, A.shape[0])
    ml = smoothed_aggregation_solver(A, B=B)
    np.testing.assert_array_equal(ml.levels[0].B, B)

    with pytest.raises(InvalidInput):
        smoothed_aggregation_solver(A, B=np.ones(A.shape[0] + 1))


def test_negative_theta_rejected() -> None:
    A = csr_array(poisson((10, 10), format="csr"))
    with pytest.raises(InvalidInput, match="theta"):
        smoothed_aggregation_solver(A, theta=-0.1)


@pytest.mark.parametrize(
    "A",
    [csr_array((5, 5)), csr_array(np.ones((3, 4)))],
    ids=["empty", "nonsquare"],
)
def test_bad_matrix_rejected(A) -> None:
    with pytest.raises(InvalidInput):
        smoothed_aggregation_solver(A)


def test_implicit_conversion_warns() -> None:
    A = poisson((12, 12), format="coo")
    with pytest.warns(SparseEfficiencyWarning):
        ml = smoothed_aggregation_solver(A)
    assert ml.levels[0].A.format == "csr"


def test_input_is_not_modified() -> None:
    A = csr_array(poisson((12, 12), format="csr"))
    before = A.copy()
    ml = smoothed_aggregation_solver(A)
    assert ml.levels[0].A is not A
    assert (A != before).nnz == 0


def test_identity_does_not_coarsen() -> None:
    # every node is its own aggregate, so the level cannot shrink
    A = csr_array(identity(200, format="csr"))
    with pytest.raises(DegenerateAggregation, match="did not coarsen"):
        smoothed_aggregation_solver(A)


def test_small_identity_is_solved_directly() -> None:
    A = csr_array(identity(50, format="csr"))
    ml = smoothed_aggregation_solver(A)
    assert len(ml.levels) == 1
    b = np.arange(50, dtype=float)
    np.testing.assert_allclose(ml.apply(b), b)


def test_all_weak_connections_do_not_coarsen() -> None:
    A = csr_array(poisson((15, 15), format="csr"))
    with pytest.raises(DegenerateAggregation):
        smoothed_aggregation_solver(A, theta=0.9)


def test_zero_diagonal_rejected() -> None:
    A = poisson((200,), format="lil")
    A[17, 17] = 0.0
    with pytest.raises(SingularDiagonal) as excinfo:
        smoothed_aggregation_solver(csr_array(A.tocsr()))
    assert 17 in excinfo.value.rows


def test_direct_coarse_solver() -> None:
    A = csr_array(poisson((8,), format="csr"))
    solver = DirectCoarseSolver(A)
    x = np.arange(8, dtype=float)
    np.testing.assert_allclose(solver(A @ x), x, atol=1e-12)
    np.testing.assert_allclose(solver.solve(A @ x), x, atol=1e-12)


@pytest.mark.parametrize(
    "dense",
    [np.ones((10, 10)), np.diag([1.0, 2.0, 0.0, 3.0])],
    ids=["rank-one", "zero-pivot"],
)
def test_singular_coarse_operator_rejected(dense) -> None:
    with pytest.raises(CoarseFactorizationFailure):
        DirectCoarseSolver(csr_array(dense))


def test_nonfinite_coarse_operator_rejected() -> None:
    with pytest.raises(CoarseFactorizationFailure, match="non-finite"):
        DirectCoarseSolver(csr_array(np.array([[1.0, np.nan], [0.0, 1.0]])))


def test_all_levels_use_int32_indices() -> None:
    A = csr_array(poisson((40, 40), format="csr"))
    A.indices = A.indices.astype(np.int64)
    A.indptr = A.indptr.astype(np.int64)
    ml = smoothed_aggregation_solver(A)

    assert len(ml.levels) >= 3
    for level in ml.levels:
        mats = [level.A] if level.P is None else [level.A, level.P, level.R]
        for M in mats:
            assert M.indices.dtype == np.int32
            assert M.indptr.dtype == np.int32


def test_setup_is_deterministic() -> None:
    A = csr_array(poisson((40, 40), format="csr"))
    ml1 = smoothed_aggregation_solver(A)
    ml2 = smoothed_aggregation_solver(A)

    assert len(ml1.levels) == len(ml2.levels)
    for lev1, lev2 in zip(ml1.levels, ml2.levels):
        assert lev1.rho_DinvA == lev2.rho_DinvA
        np.testing.assert_array_equal(lev1.A.toarray(), lev2.A.toarray())
