# Copyright (C) 2025 Brantleigh Bunting
# SPDX-License-Identifier: BUSL-1.1
#
# Use of this software is governed by the Business Source License
# included in the LICENSE file and at <https://mariadb.com/bsl11>

import numpy as np
import pytest

from lindecomp.exceptions import (
    ConvergenceError,
    CutoffTooLargeError,
    DecompositionStateError,
    DimensionMismatchError,
)
from lindecomp.solver import DecompositionSolver
from lindecomp.svd import SingularValueDecomposition, SVDSolver, svd


@pytest.mark.parametrize("m,n", [(8, 5), (20, 20), (50, 10), (5, 8)])
def test_reconstruction_and_orthogonality(m, n):
    """U Σ Vᵀ must reconstruct A and U, V must be orthonormal."""
    rng = np.random.default_rng(seed=m + n)
    A = rng.normal(size=(m, n))
    p = min(m, n)

    U, s, Vt = svd(A)
    Σ = np.diag(s)

    # 1  Reconstruction ‖A - UΣVᵀ‖
    recon_err = np.linalg.norm(U @ Σ @ Vt - A, ord=2)
    assert recon_err < 1e-10

    # 2  Orthonormality
    assert np.allclose(U.T @ U, np.eye(p), atol=1e-10)
    assert np.allclose(Vt @ Vt.T, np.eye(p), atol=1e-10)


def _align_signs(X, Y):
    """Flip columns of X so that X[:,i] · Y[:,i] ≥ 0 (helps compare singular directions)."""
    sign = np.sign(np.sum(X * Y, axis=0))
    sign[sign == 0] = 1.0  # avoid zeros
    return X * sign


@pytest.mark.parametrize("m,n", [(12, 7), (30, 15), (7, 12)])
def test_against_numpy_svd(m, n):
    """Singular values must match NumPy’s; left/right spaces must match up to sign."""
    rng = np.random.default_rng(seed=4 * m + n)
    A = rng.standard_normal(size=(m, n))

    # NumPy “truth”
    U_np, s_np, Vt_np = np.linalg.svd(A, full_matrices=False)

    # Golub–Kahan implementation
    U_my, s_my, Vt_my = svd(A)

    # 1  Singular values (sorted descending)
    assert np.allclose(s_my, s_np, rtol=1e-10, atol=1e-12)

    # 2  Column spaces (sign ambiguity only)
    U_my_aligned = _align_signs(U_my, U_np)
    Vt_my_aligned = _align_signs(Vt_my.T, Vt_np.T).T  # align rows → take T
    assert np.allclose(U_my_aligned, U_np, atol=1e-8)
    assert np.allclose(Vt_my_aligned, Vt_np, atol=1e-8)


@pytest.mark.parametrize("k", [0, 1, 3])
def test_rank_deficient(k):
    """
    Rank-deficient matrices: make last k cols zero, the decomposition
    must still reconstruct A with σ_{r:} ≈ 0.
    """
    rng = np.random.default_rng(123 + k)
    A = rng.normal(size=(10, 7))
    if k:
        A[:, -k:] = 0.0

    dec = SingularValueDecomposition(A)
    s = dec.singular_values
    err = np.linalg.norm(dec.u @ dec.sigma @ dec.vt - A)
    assert err < 1e-10

    # Check trailing singular values ~ 0
    r = 7 - k
    assert np.all(s[:r] > 1e-12)
    assert np.all(s[r:] < 1e-12)
    assert dec.rank == r


def test_known_singular_values():
    A = np.array(
        [
            [4.75, 3.0, 5.5, 3.25],
            [3.0, 3.125, 2.75, 4.25],
            [5.5, 2.75, 20.5, 0.0],
            [3.25, 4.25, 0.0, 17.75],
        ]
    )
    expected = [23.567495561769917, 18.785576308145938, 3.126363155561169, 0.6455649745229703]
    dec = SingularValueDecomposition(A)
    np.testing.assert_allclose(dec.singular_values, expected, rtol=1e-12)


def test_identity():
    dec = SingularValueDecomposition(np.eye(3))
    np.testing.assert_allclose(dec.singular_values, np.ones(3), rtol=1e-14)
    assert dec.rank == 3
    assert dec.is_nonsingular
    assert np.isclose(dec.condition_number, 1.0)


@pytest.mark.parametrize("m,n", [(15, 6), (6, 15), (9, 9)])
def test_singular_values_are_sorted(m, n):
    A = np.random.default_rng(seed=m * n).standard_normal((m, n))
    s = SingularValueDecomposition(A).singular_values
    assert s.shape == (min(m, n),)
    assert np.all(s >= 0.0)
    assert np.all(np.diff(s) <= 0.0)


def test_wide_matrix_is_transposed():
    A = np.random.default_rng(seed=20).standard_normal((3, 6))
    dec = SingularValueDecomposition(A)
    assert dec.transposed
    assert dec.u.shape == (3, 3)
    assert dec.v.shape == (6, 3)
    assert np.allclose(dec.reverse(), A, atol=1e-12)


def test_scalar_summaries():
    A = np.random.default_rng(seed=21).standard_normal((7, 4))
    dec = SingularValueDecomposition(A)

    assert np.isclose(dec.norm, np.linalg.norm(A, 2), rtol=1e-12)
    assert np.isclose(dec.condition_number, np.linalg.cond(A), rtol=1e-10)
    assert np.isclose(dec.inverse_condition_number, 1.0 / np.linalg.cond(A), rtol=1e-10)
    assert dec.tol == max(7 * dec.norm * 2.0**-52, np.sqrt(2.0**-1022))


def test_pseudo_inverse_of_singular_matrix():
    A = np.array([[1.0, 2.0], [2.0, 4.0]])
    b = np.array([1.0, 2.0])
    dec = SingularValueDecomposition(A)

    x = dec.solve(b)
    assert np.all(np.isfinite(x))
    np.testing.assert_allclose(x, np.linalg.pinv(A) @ b, rtol=1e-10, atol=1e-12)
    np.testing.assert_allclose(dec.inverse(), np.linalg.pinv(A), rtol=1e-10, atol=1e-12)
    assert dec.rank == 1
    assert not dec.is_nonsingular


def test_least_squares_against_numpy():
    rng = np.random.default_rng(seed=22)
    A = rng.standard_normal((12, 5))
    B = rng.standard_normal((12, 3))
    X_np, *_ = np.linalg.lstsq(A, B, rcond=None)

    X = SingularValueDecomposition(A).solve(B)
    assert X.shape == (5, 3)
    np.testing.assert_allclose(X, X_np, rtol=1e-8, atol=1e-10)


def test_solve_rejects_wrong_rows():
    dec = SingularValueDecomposition(np.eye(3))
    with pytest.raises(DimensionMismatchError):
        dec.solve(np.ones(2))


def test_information_matrix_and_covariance():
    A = np.random.default_rng(seed=23).standard_normal((10, 4))
    dec = SingularValueDecomposition(A)
    expected = np.linalg.inv(A.T @ A)

    np.testing.assert_allclose(dec.information_matrix(), expected, rtol=1e-8, atol=1e-10)
    np.testing.assert_allclose(dec.covariance(0.0), expected, rtol=1e-8, atol=1e-10)


def test_covariance_drops_small_singular_values():
    A = np.diag([4.0, 2.0, 0.5])
    cov = SingularValueDecomposition(A).covariance(1.0)
    np.testing.assert_allclose(cov, np.diag([1.0 / 16.0, 1.0 / 4.0, 0.0]), atol=1e-14)


def test_covariance_cutoff_too_large():
    dec = SingularValueDecomposition(np.diag([3.0, 1.0]))
    with pytest.raises(CutoffTooLargeError) as info:
        dec.covariance(5.0)
    assert info.value.cutoff == 5.0
    assert info.value.largest == 3.0


@pytest.mark.parametrize("shape", [(6, 4), (4, 6)])
def test_skipping_left_vectors(shape):
    A = np.random.default_rng(seed=24).standard_normal(shape)
    dec = SingularValueDecomposition(A, compute_left_singular_vectors=False)

    with pytest.raises(DecompositionStateError):
        dec.u
    with pytest.raises(DecompositionStateError):
        dec.solve(np.ones(shape[0]))
    assert dec.v.shape == (shape[1], min(shape))
    np.testing.assert_allclose(dec.singular_values, np.linalg.svd(A, compute_uv=False), rtol=1e-10)


def test_skipping_right_vectors():
    dec = SingularValueDecomposition(np.eye(3), compute_right_singular_vectors=False)
    with pytest.raises(DecompositionStateError):
        dec.vt
    assert dec.u.shape == (3, 3)


def test_in_place():
    A = np.random.default_rng(seed=25).standard_normal((6, 4))
    work = A.copy()
    dec = SingularValueDecomposition(work, in_place=True)
    assert np.allclose(dec.reverse(), A, atol=1e-12)


def test_in_place_wide_needs_auto_transpose():
    A = np.random.default_rng(seed=26).standard_normal((3, 5))
    with pytest.raises(ValueError):
        SingularValueDecomposition(A.copy(), in_place=True)
    dec = SingularValueDecomposition(A.copy(), in_place=True, auto_transpose=True)
    assert np.allclose(dec.reverse(), A, atol=1e-12)


def test_iteration_ceiling():
    A = np.random.default_rng(seed=27).standard_normal((5, 5))
    with pytest.raises(ConvergenceError) as info:
        SingularValueDecomposition(A, max_iterations=1)
    assert info.value.iterations == 1


def test_empty_matrix():
    with pytest.raises(DimensionMismatchError):
        SingularValueDecomposition(np.zeros((0, 3)))


def test_cached_views_are_shared_and_read_only():
    dec = SingularValueDecomposition(np.random.default_rng(seed=28).standard_normal((4, 3)))
    assert dec.u is dec.u
    assert dec.vt is dec.vt
    assert dec.sigma is dec.sigma
    with pytest.raises(ValueError):
        dec.u[0, 0] = 0.0

    s = dec.singular_values
    s[0] = -1.0
    assert dec.singular_values[0] > 0.0


def test_solver_contract():
    solver = SingularValueDecomposition(np.eye(3)).get_solver()
    assert isinstance(solver, SVDSolver)
    assert isinstance(solver, DecompositionSolver)
    assert solver.is_full_rank and solver.is_nonsingular


@pytest.mark.parametrize(
    "skip", [{"compute_left_singular_vectors": False}, {"compute_right_singular_vectors": False}]
)
def test_rank_flags_without_singular_vectors(skip):
    dec = SingularValueDecomposition(np.eye(3), **skip)
    assert dec.is_nonsingular
    assert dec.is_full_rank


@pytest.mark.parametrize("shape", [(6, 4), (4, 6)])
def test_rank_flags_on_rectangular_input(shape):
    A = np.random.default_rng(seed=29).standard_normal(shape)
    dec = SingularValueDecomposition(A, compute_left_singular_vectors=False)
    assert dec.is_full_rank
    assert not dec.is_nonsingular
    # flags are read off the singular values alone
    assert "pseudo_inverse" not in dec._cache


def test_rank_flags_on_singular_matrix():
    dec = SingularValueDecomposition(np.array([[1.0, 2.0], [2.0, 4.0]]))
    assert not dec.is_full_rank
    assert not dec.is_nonsingular
