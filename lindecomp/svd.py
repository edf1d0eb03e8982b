# Copyright (C) 2025 Brantleigh Bunting
# SPDX-License-Identifier: BUSL-1.1
#
# Use of this software is governed by the Business Source License
# included in the LICENSE file and at <https://mariadb.com/bsl11>

"""
Singular value decomposition  A = U Σ Vᵀ.

Algorithm outline
-----------------
1.  Householder bidiagonalization of the (m ≥ n) working copy, with U and
    V accumulated only when they are requested.
2.  Golub–Kahan implicit-shift QR sweeps on the bidiagonal until every
    superdiagonal entry is negligible.
3.  Make the singular values non-negative and sort them (with their
    vectors) in non-increasing order.

A wide matrix is decomposed through its transpose and the roles of U and
V are swapped on the way out.
"""

import logging
import math

import numpy as np

from .exceptions import (
    ConvergenceError,
    CutoffTooLargeError,
    DecompositionStateError,
    DimensionMismatchError,
)
from .solver import FactorState, SolvableMixin, cached_factor
from .utils import EPS, SAFE_MIN, TINY, as_matrix, as_rhs

logger = logging.getLogger(__name__)


def _norm2(x: np.ndarray) -> float:
    # overflow-safe Euclidean norm
    return math.hypot(*x)


def _rotate(M: np.ndarray, a: int, b: int, cs: float, sn: float) -> None:
    """Givens rotation of columns a and b of M."""
    t = cs * M[:, a] + sn * M[:, b]
    M[:, b] = -sn * M[:, a] + cs * M[:, b]
    M[:, a] = t


def _golub_kahan(A: np.ndarray, want_u: bool, want_v: bool, max_iterations=None):
    """
    Decompose the m×n (m ≥ n) array A, which is used as workspace.

    Returns
    -------
    s : (n,) ndarray | singular values, non-increasing
    U : (m, n) ndarray or None
    V : (n, n) ndarray or None
    iterations : int | number of passes of the QR loop
    """
    m, n = A.shape
    s = np.zeros(n)
    e = np.zeros(n)
    work = np.zeros(m)
    U = np.zeros((m, n)) if want_u else None
    V = np.zeros((n, n)) if want_v else None

    # ---- stage 1: reduce to bidiagonal form ----------------------------
    nct = min(m - 1, n)
    nrt = max(0, n - 2)
    for k in range(max(nct, nrt)):
        if k < nct:
            # k-th column transformation, s[k] is the diagonal element
            s[k] = _norm2(A[k:, k])
            if s[k] != 0.0:
                if A[k, k] < 0.0:
                    s[k] = -s[k]
                A[k:, k] /= s[k]
                A[k, k] += 1.0
            s[k] = -s[k]
        if k < nct and s[k] != 0.0:
            t = -(A[k:, k] @ A[k:, k + 1 :]) / A[k, k]
            A[k:, k + 1 :] += np.outer(A[k:, k], t)
        # row k feeds the row transformation below
        e[k + 1 :] = A[k, k + 1 :]
        if want_u and k < nct:
            U[k:, k] = A[k:, k]
        if k < nrt:
            # k-th row transformation, e[k] is the superdiagonal element
            e[k] = _norm2(e[k + 1 :])
            if e[k] != 0.0:
                if e[k + 1] < 0.0:
                    e[k] = -e[k]
                e[k + 1 :] /= e[k]
                e[k + 1] += 1.0
            e[k] = -e[k]
            if k + 1 < m and e[k] != 0.0:
                work[k + 1 :] = A[k + 1 :, k + 1 :] @ e[k + 1 :]
                A[k + 1 :, k + 1 :] += np.outer(work[k + 1 :], -e[k + 1 :] / e[k + 1])
            if want_v:
                V[k + 1 :, k] = e[k + 1 :]

    p = n
    if nct < n:
        s[nct] = A[nct, nct]
    if nrt + 1 < p:
        e[nrt] = A[nrt, p - 1]
    e[p - 1] = 0.0

    if want_u:
        for j in range(nct, n):
            U[:, j] = 0.0
            U[j, j] = 1.0
        for k in reversed(range(nct)):
            if s[k] != 0.0:
                t = -(U[k:, k] @ U[k:, k + 1 :]) / U[k, k]
                U[k:, k + 1 :] += np.outer(U[k:, k], t)
                U[k:, k] = -U[k:, k]
                U[k, k] += 1.0
                U[:k, k] = 0.0
            else:
                U[:, k] = 0.0
                U[k, k] = 1.0

    if want_v:
        for k in reversed(range(n)):
            if k < nrt and e[k] != 0.0:
                t = -(V[k + 1 :, k] @ V[k + 1 :, k + 1 :]) / V[k + 1, k]
                V[k + 1 :, k + 1 :] += np.outer(V[k + 1 :, k], t)
            V[:, k] = 0.0
            V[k, k] = 1.0

    # ---- stage 2: implicit-shift QR on the bidiagonal ------------------
    pp = p - 1
    iterations = 0
    while p > 0:
        if max_iterations is not None and iterations >= max_iterations:
            raise ConvergenceError(
                f"SVD did not converge in {max_iterations} iterations, "
                f"{p} singular value(s) left",
                iterations=iterations,
                remaining=p,
            )
        iterations += 1

        # kase 1: s[p-1] and e[k-1] negligible, deflate
        # kase 2: s[k] negligible and k < p, split
        # kase 3: e[k-1] negligible, k < p, QR step
        # kase 4: e[p-2] negligible, converged
        k = p - 2
        while k >= 0:
            threshold = TINY + EPS * (abs(s[k]) + abs(s[k + 1]))
            # the negated test also stops on NaN
            if not abs(e[k]) > threshold:
                e[k] = 0.0
                break
            k -= 1

        if k == p - 2:
            kase = 4
        else:
            ks = p - 1
            while ks > k:
                t = (abs(e[ks]) if ks != p else 0.0) + (abs(e[ks - 1]) if ks != k + 1 else 0.0)
                if abs(s[ks]) <= TINY + EPS * t:
                    s[ks] = 0.0
                    break
                ks -= 1
            if ks == k:
                kase = 3
            elif ks == p - 1:
                kase = 1
            else:
                kase = 2
                k = ks
        k += 1

        if kase == 1:
            # deflate negligible s[p-1]
            f = e[p - 2]
            e[p - 2] = 0.0
            for j in range(p - 2, k - 1, -1):
                t = math.hypot(s[j], f)
                cs = s[j] / t
                sn = f / t
                s[j] = t
                if j != k:
                    f = -sn * e[j - 1]
                    e[j - 1] = cs * e[j - 1]
                if want_v:
                    _rotate(V, j, p - 1, cs, sn)

        elif kase == 2:
            # split at negligible s[k-1]
            f = e[k - 1]
            e[k - 1] = 0.0
            for j in range(k, p):
                t = math.hypot(s[j], f)
                cs = s[j] / t
                sn = f / t
                s[j] = t
                f = -sn * e[j]
                e[j] = cs * e[j]
                if want_u:
                    _rotate(U, j, k - 1, cs, sn)

        elif kase == 3:
            # one QR step
            max_pm = max(abs(s[p - 1]), abs(s[p - 2]))
            scale = max(max_pm, abs(e[p - 2]), abs(s[k]), abs(e[k]))
            sp = s[p - 1] / scale
            spm1 = s[p - 2] / scale
            epm1 = e[p - 2] / scale
            sk = s[k] / scale
            ek = e[k] / scale
            b = ((spm1 + sp) * (spm1 - sp) + epm1 * epm1) / 2.0
            c = (sp * epm1) * (sp * epm1)
            shift = 0.0
            if b != 0.0 or c != 0.0:
                shift = math.sqrt(b * b + c)
                if b < 0.0:
                    shift = -shift
                shift = c / (b + shift)
            f = (sk + sp) * (sk - sp) + shift
            g = sk * ek

            # chase zeros
            for j in range(k, p - 1):
                t = math.hypot(f, g)
                cs = f / t
                sn = g / t
                if j != k:
                    e[j - 1] = t
                f = cs * s[j] + sn * e[j]
                e[j] = cs * e[j] - sn * s[j]
                g = sn * s[j + 1]
                s[j + 1] = cs * s[j + 1]
                if want_v:
                    _rotate(V, j, j + 1, cs, sn)
                t = math.hypot(f, g)
                cs = f / t
                sn = g / t
                s[j] = t
                f = cs * e[j] + sn * s[j + 1]
                s[j + 1] = -sn * e[j] + cs * s[j + 1]
                g = sn * e[j + 1]
                e[j + 1] = cs * e[j + 1]
                if want_u and j < m - 1:
                    _rotate(U, j, j + 1, cs, sn)
            e[p - 2] = f

        else:
            # convergence: make s[k] non-negative
            if s[k] <= 0.0:
                s[k] = -s[k] if s[k] < 0.0 else 0.0
                if want_v:
                    V[: pp + 1, k] = -V[: pp + 1, k]
            # bubble it into place
            while k < pp:
                if s[k] >= s[k + 1]:
                    break
                s[k], s[k + 1] = s[k + 1], s[k]
                if want_v and k < n - 1:
                    V[:, [k, k + 1]] = V[:, [k + 1, k]]
                if want_u and k < m - 1:
                    U[:, [k, k + 1]] = U[:, [k + 1, k]]
                k += 1
            p -= 1

    return s, U, V, iterations


class SVDSolver:
    """
    Pseudo-inverse solver  X = V Σ⁺ Uᵀ B.

    Singular values at or below the rank tolerance are treated as zero, so
    singular and rectangular systems never raise.
    """

    def __init__(self, u, s, v, pseudo_inverse, rank: int):
        self._u = u
        self._s = s
        self._v = v
        self._pinv = pseudo_inverse
        self._rank = rank

    @property
    def is_nonsingular(self) -> bool:
        return self._rank == max(self._u.shape[0], self._v.shape[0])

    @property
    def is_full_rank(self) -> bool:
        return self._rank == min(self._u.shape[0], self._v.shape[0])

    def solve(self, b) -> np.ndarray:
        B, vector = as_rhs(b, self._pinv.shape[1])
        X = self._pinv @ B
        return X[:, 0] if vector else X

    def inverse(self) -> np.ndarray:
        return self._pinv

    def reverse(self) -> np.ndarray:
        return (self._u * self._s) @ self._v.T

    def information_matrix(self) -> np.ndarray:
        """V Σ⁺² Vᵀ, which is (Aᵀ A)⁻¹ when A has full column rank."""
        inv_s = self._pinv_diagonal()
        return (self._v * inv_s * inv_s) @ self._v.T

    def _pinv_diagonal(self) -> np.ndarray:
        inv_s = np.zeros_like(self._s)
        inv_s[: self._rank] = 1.0 / self._s[: self._rank]
        return inv_s


class SingularValueDecomposition(SolvableMixin):
    """
    Golub–Kahan singular value decomposition.

    Parameters
    ----------
    matrix : (m, n) array_like
    compute_left_singular_vectors, compute_right_singular_vectors : bool
        Skip accumulating U or V when they are not needed. The solver
        requires both.
    auto_transpose : bool
        Allow ``in_place`` on a wide matrix, whose transposed copy is used
        as workspace instead of the caller's array.
    in_place : bool
        Use ``matrix`` (a float64 ndarray) as the bidiagonalization
        workspace. Its content is destroyed.
    max_iterations : int, optional
        Ceiling on the number of QR passes; ``None`` means unbounded.

    Raises
    ------
    ConvergenceError
        ``max_iterations`` was exceeded.
    """

    def __init__(
        self,
        matrix,
        compute_left_singular_vectors: bool = True,
        compute_right_singular_vectors: bool = True,
        auto_transpose: bool = False,
        in_place: bool = False,
        max_iterations=None,
    ):
        if in_place:
            if not isinstance(matrix, np.ndarray) or matrix.dtype != np.float64:
                raise TypeError("in-place decomposition needs a float64 ndarray")
            A = as_matrix(matrix, copy=False)
        else:
            A = as_matrix(matrix)
        rows, columns = A.shape
        if rows == 0 or columns == 0:
            raise DimensionMismatchError(
                f"cannot decompose an empty {rows}x{columns} matrix",
                actual=(rows, columns),
            )

        transposed = rows < columns
        if transposed:
            if in_place and not auto_transpose:
                raise ValueError(
                    "in-place decomposition of a wide matrix needs auto_transpose=True"
                )
            A = np.ascontiguousarray(A.T)
            want_u, want_v = compute_right_singular_vectors, compute_left_singular_vectors
        else:
            want_u, want_v = compute_left_singular_vectors, compute_right_singular_vectors

        s, U, V, iterations = _golub_kahan(A, want_u, want_v, max_iterations)
        logger.debug("SVD of %dx%d matrix converged after %d iterations", rows, columns, iterations)

        if transposed:
            U, V = V, U
        self._s = s
        self._u_data = U
        self._v_data = V
        self._rows, self._columns = rows, columns
        self._transposed = transposed
        self._tol = max(max(rows, columns) * s[0] * EPS, math.sqrt(SAFE_MIN))
        self._state = FactorState.VALID
        self._cache = {}

    @property
    def transposed(self) -> bool:
        return self._transposed

    @property
    def singular_values(self) -> np.ndarray:
        return self._s.copy()

    # -- singular vectors ------------------------------------------------
    def _require(self, data, side: str) -> np.ndarray:
        if data is None:
            raise DecompositionStateError(f"{side} singular vectors were not computed")
        return data

    @cached_factor
    def u(self) -> np.ndarray:
        return self._require(self._u_data, "left")

    @cached_factor
    def ut(self) -> np.ndarray:
        return np.ascontiguousarray(self.u.T)

    @cached_factor
    def v(self) -> np.ndarray:
        return self._require(self._v_data, "right")

    @cached_factor
    def vt(self) -> np.ndarray:
        return np.ascontiguousarray(self.v.T)

    @cached_factor
    def sigma(self) -> np.ndarray:
        return np.diag(self._s)

    @cached_factor
    def pseudo_inverse(self) -> np.ndarray:
        inv_s = np.zeros_like(self._s)
        kept = self._s > self._tol
        inv_s[kept] = 1.0 / self._s[kept]
        return (self.v * inv_s) @ self.ut

    # -- scalar summaries ------------------------------------------------
    @property
    def norm(self) -> float:
        """L2 norm, the largest singular value."""
        return float(self._s[0])

    @property
    def condition_number(self) -> float:
        with np.errstate(divide="ignore", invalid="ignore"):
            return float(self._s[0] / self._s[-1])

    @property
    def inverse_condition_number(self) -> float:
        with np.errstate(divide="ignore", invalid="ignore"):
            return float(self._s[-1] / self._s[0])

    @property
    def tol(self) -> float:
        return self._tol

    @property
    def rank(self) -> int:
        return int(np.count_nonzero(self._s > self._tol))

    @property
    def is_nonsingular(self) -> bool:
        return self.rank == max(self._rows, self._columns)

    @property
    def is_full_rank(self) -> bool:
        return self.rank == min(self._rows, self._columns)

    def covariance(self, min_singular_value: float) -> np.ndarray:
        """
        V J Vᵀ with J = diag(1/σ²) over the singular values that are
        not below ``min_singular_value``.
        """
        dimension = 0
        while dimension < self._s.size and self._s[dimension] >= min_singular_value:
            dimension += 1
        if dimension == 0:
            raise CutoffTooLargeError(min_singular_value, float(self._s[0]))
        jv = self.vt[:dimension] / self._s[:dimension, None]
        return jv.T @ jv

    def get_solver(self) -> SVDSolver:
        return SVDSolver(self.u, self._s, self.v, self.pseudo_inverse, self.rank)


def svd(A: np.ndarray):
    """
    Economy-size Singular Value Decomposition.

    For an m-by-n real matrix this routine returns three objects:
        U : m-by-p matrix whose columns are orthonormal
        s : length-p vector of singular values, sorted in descending order
        Vt: p-by-n matrix whose rows are orthonormal  (V.T)
    with p = min(m, n).
    """
    dec = SingularValueDecomposition(A)
    return dec.u.copy(), dec.singular_values, dec.vt.copy()
