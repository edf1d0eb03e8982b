# Copyright (C) 2025 Brantleigh Bunting
# SPDX-License-Identifier: BUSL-1.1
#
# Use of this software is governed by the Business Source License
# included in the LICENSE file and at <https://mariadb.com/bsl11>

import logging
from typing import Tuple

import numpy as np

from .exceptions import DimensionMismatchError, RankDeficientError
from .solver import FactorState, SolvableMixin, cached_factor
from .triangular import back_substitute, forward_substitute
from .utils import as_matrix, as_rhs, identity

logger = logging.getLogger(__name__)


def _reflect(qrt: np.ndarray, r_diag: np.ndarray, minor: int, Y: np.ndarray) -> None:
    """
    Apply Householder reflector ``minor`` to the rows [minor:] of Y, in place.

    The reflector is stored in qrt[minor, minor:] as v = x - a e₁ with
    a = r_diag[minor]; a zero ``a`` means no reflection was done.
    """
    if r_diag[minor] == 0.0:
        return
    v = qrt[minor, minor:]
    dot = (v @ Y[minor:]) / (r_diag[minor] * v[0])
    Y[minor:] += np.multiply.outer(v, dot)


def _apply_qt(qrt, r_diag, Y):
    for minor in range(r_diag.size):
        _reflect(qrt, r_diag, minor, Y)
    return Y


def _apply_q(qrt, r_diag, Y):
    for minor in reversed(range(r_diag.size)):
        _reflect(qrt, r_diag, minor, Y)
    return Y


def _square_r(qrt: np.ndarray, r_diag: np.ndarray) -> np.ndarray:
    """Leading p×p block of R."""
    p = r_diag.size
    R = np.triu(qrt[:p, :p].T, 1)
    R[np.diag_indices(p)] = r_diag
    return R


class QRSolver:
    """
    Least-squares solver on packed Householder factors.

    Holds the transposed packed matrix ``qrt`` (n×m) and the diagonal of R.
    """

    def __init__(self, qrt: np.ndarray, r_diag: np.ndarray):
        self._qrt = qrt
        self._r_diag = r_diag
        self._n, self._m = qrt.shape

    @property
    def is_nonsingular(self) -> bool:
        return bool(np.all(self._r_diag != 0.0))

    @property
    def is_full_rank(self) -> bool:
        return self.is_nonsingular

    def _require_full_rank(self) -> None:
        if not self.is_full_rank:
            rank = int(np.count_nonzero(self._r_diag))
            raise RankDeficientError(
                f"R has {self._r_diag.size - rank} zero(s) on its diagonal",
                rank=rank,
                expected_rank=self._r_diag.size,
            )

    def solve(self, b) -> np.ndarray:
        """
        Least-squares solution of A X = B.

        For a wide A only the leading p unknowns are determined, the
        remaining ones are set to zero.
        """
        self._require_full_rank()
        B, vector = as_rhs(b, self._m)
        Y = _apply_qt(self._qrt, self._r_diag, B)
        p = self._r_diag.size
        X = np.zeros((self._n, Y.shape[1]))
        X[:p] = back_substitute(_square_r(self._qrt, self._r_diag), Y[:p])
        return X[:, 0] if vector else X

    def solve_transpose(self, b) -> np.ndarray:
        """
        Least-norm solution of X A = B.

        B is (k, n), or (n,) for a single row; the result is (k, m) or (m,).
        """
        self._require_full_rank()
        if self._m < self._n:
            raise DimensionMismatchError(
                "solve_transpose needs at least as many rows as columns; "
                "decompose the transpose instead",
                actual=(self._m, self._n),
                expected=("m >= n", self._n),
            )
        Bt, vector = as_rhs(np.transpose(b), self._n)
        Z = forward_substitute(_square_r(self._qrt, self._r_diag).T, Bt)
        Y = np.zeros((self._m, Z.shape[1]))
        Y[: self._n] = Z
        Xt = _apply_q(self._qrt, self._r_diag, Y)
        return Xt[:, 0] if vector else Xt.T

    def inverse(self) -> np.ndarray:
        return self.solve(identity(self._m))

    def reverse(self) -> np.ndarray:
        """Q R, rebuilt by running the reflectors over R."""
        p = self._r_diag.size
        R = np.zeros((self._m, self._n))
        R[:p] = np.triu(self._qrt[:, :p].T, 1)
        R[np.diag_indices(p)] = self._r_diag
        return _apply_q(self._qrt, self._r_diag, R)

    def information_matrix(self) -> np.ndarray:
        """(Aᵀ A)⁻¹ = R⁻¹ R⁻ᵀ."""
        self._require_full_rank()
        if self._m < self._n:
            raise RankDeficientError(
                f"a {self._m}x{self._n} matrix has rank below its column count",
                rank=self._m,
                expected_rank=self._n,
            )
        Rinv = back_substitute(_square_r(self._qrt, self._r_diag), identity(self._n))
        return Rinv @ Rinv.T


class QRDecomposition(SolvableMixin):
    """
    Householder QR decomposition  A = Q R.

    Parameters
    ----------
    matrix : (m, n) array_like
        Any shape, copied.
    economy : bool
        Thin factors (Q is m×p, R is p×n with p = min(m, n)) instead of
        the full ones (Q is m×m, R is m×n).
    """

    def __init__(self, matrix, economy: bool = False):
        A = as_matrix(matrix)
        m, n = A.shape
        p = min(m, n)
        qrt = np.ascontiguousarray(A.T)
        r_diag = np.zeros(p)

        for minor in range(p):
            # x is column `minor` of A below the diagonal, stored as a row
            x = qrt[minor, minor:]
            norm = np.sqrt(x @ x)
            a = -norm if x[0] > 0 else norm
            r_diag[minor] = a
            if a != 0.0:
                x[0] -= a
                # each later column: col -= alpha v,  alpha = -<col, v> / (a v₀)
                rest = qrt[minor + 1 :, minor:]
                alpha = -(rest @ x) / (a * x[0])
                rest -= np.outer(alpha, x)

        self._qrt = qrt
        self._r_diag = r_diag
        self._m, self._n, self._p = m, n, p
        self._economy = economy
        self._state = FactorState.VALID
        self._cache = {}
        logger.debug("QR factorization of %dx%d matrix, full rank: %s", m, n, self.is_full_rank)

    @property
    def economy(self) -> bool:
        return self._economy

    @property
    def diagonal(self) -> np.ndarray:
        """Diagonal of R."""
        return self._r_diag.copy()

    @property
    def data(self) -> np.ndarray:
        """Packed transposed factor (n×m): Householder vectors and R above."""
        return self._qrt.copy()

    @cached_factor
    def is_full_rank(self) -> bool:
        """
        True when no diagonal entry of R is exactly zero.

        The comparison is exact: round-off can leave a tiny nonzero pivot on
        a numerically singular matrix, which still counts as full rank. Use
        `SingularValueDecomposition.rank` for a tolerance-based rank.
        """
        return bool(np.all(self._r_diag != 0.0))

    @cached_factor
    def r(self) -> np.ndarray:
        rows = self._p if self._economy else self._m
        R = np.zeros((rows, self._n))
        R[: self._p] = np.triu(self._qrt[:, : self._p].T, 1)
        R[np.diag_indices(self._p)] = self._r_diag
        return R

    @cached_factor
    def qt(self) -> np.ndarray:
        """Full m×m Qᵀ."""
        m, p = self._m, self._p
        QT = np.zeros((m, m))
        for minor in range(p, m):
            QT[minor, minor] = 1.0
        for minor in reversed(range(p)):
            v = self._qrt[minor, minor:]
            QT[minor, minor] = 1.0
            if v[0] != 0.0:
                block = QT[minor:, minor:]
                alpha = -(block @ v) / (self._r_diag[minor] * v[0])
                block -= np.outer(alpha, v)
        return QT

    @cached_factor
    def q(self) -> np.ndarray:
        Q = self.qt.T
        if self._economy:
            Q = Q[:, : self._p]
        return np.ascontiguousarray(Q)

    @cached_factor
    def h(self) -> np.ndarray:
        """Householder vectors, one per column, normalised by -r_diag."""
        H = np.zeros((self._m, self._n))
        with np.errstate(divide="ignore", invalid="ignore"):
            H[:, : self._p] = np.tril(self._qrt[: self._p].T / -self._r_diag)
        return H

    def get_solver(self) -> QRSolver:
        return QRSolver(self._qrt, self._r_diag)

    def solve_transpose(self, b) -> np.ndarray:
        return self.get_solver().solve_transpose(b)


def householder_qr(A: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """
    Compute the economic QR decomposition of an m-by-n matrix A using
    Householder transformations.

    Parameters
    ----------
    A : (m, n) ndarray

    Returns
    -------
    Q : (m, p) ndarray | orthonormal columns, p = min(m, n)
    R : (p, n) ndarray | upper-triangular
    """
    qr = QRDecomposition(A, economy=True)
    return qr.q.copy(), qr.r.copy()


def least_squares_householder_qr(A: np.ndarray, b: np.ndarray):
    """
    Solve min ‖Ax – b‖₂ using Householder QR. Works for tall or square
    full-rank A.

    Returns:
    x : (n, ) ndarray
        The least squares solution to Ax = b
    """
    return QRDecomposition(A).solve(b)
