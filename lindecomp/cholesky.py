# Copyright (C) 2025 Brantleigh Bunting
# SPDX-License-Identifier: BUSL-1.1
#
# Use of this software is governed by the Business Source License
# included in the LICENSE file and at <https://mariadb.com/bsl11>

"""
Cholesky factorizations of symmetric positive-definite matrices.

Two flavours are provided:

``CholeskyDecomposition``
    Strict  A = L Lᵀ  on a row-oriented copy of Lᵀ. Symmetry and
    positivity are checked and violations raise.

``DenseCholeskyDecomposition``
    Packed LLᵀ / LDLᵀ on a raw array whose lower triangle receives L
    while the upper triangle keeps A. Positive definiteness is reported
    through a flag instead of an exception, and the LDLᵀ variant accepts
    indefinite (but nonsingular) symmetric input.
"""

import functools
import logging
from concurrent.futures import ThreadPoolExecutor

import numpy as np

from .exceptions import (
    DimensionMismatchError,
    NonSquareMatrixError,
    NotPositiveDefiniteMatrixError,
    NotSymmetricMatrixError,
)
from .solver import FactorState, SolvableMixin, cached_factor
from .triangular import back_substitute, forward_substitute, invert_upper_in_place
from .utils import as_matrix, as_rhs, identity

logger = logging.getLogger(__name__)

DEFAULT_RELATIVE_SYMMETRY_THRESHOLD = 1.0e-15
DEFAULT_ABSOLUTE_POSITIVITY_THRESHOLD = 1.0e-10
# relative pivot tolerance of the soft positive-definiteness flag
SOFT_POSITIVITY_TOLERANCE = 1.0e-14

VALUE_TYPES = ("upper", "lower", "full")


def check_symmetric(A: np.ndarray, relative_symmetry_threshold: float) -> None:
    """
    Raise `NotSymmetricMatrixError` for the first (i, j), i < j, in row-major
    order with  |A[i,j] - A[j,i]| > t * max(|A[i,j]|, |A[j,i]|).

    NaN differences never trip the check.
    """
    upper = np.triu(A, 1)
    mirrored = np.triu(A.T, 1)
    with np.errstate(invalid="ignore"):
        allowed = relative_symmetry_threshold * np.maximum(np.abs(upper), np.abs(mirrored))
        excess = np.abs(upper - mirrored) - allowed
        offending = np.argwhere(excess > 0.0)
    if offending.size:
        i, j = (int(x) for x in offending[0])
        raise NotSymmetricMatrixError(i, j, float(excess[i, j]))


def _square(A: np.ndarray) -> int:
    rows, columns = A.shape
    if rows != columns:
        raise NonSquareMatrixError(rows, columns)
    return rows


def _invert_lower_transposed(S: np.ndarray, L: np.ndarray) -> np.ndarray:
    """
    Write S = L⁻ᵀ into the upper triangle of S, reading L from its lower
    triangle and diagonal. S may be L itself.
    """
    n = L.shape[0]
    for j in reversed(range(n)):
        S[j, j] = 1.0 / L[j, j]
        for i in reversed(range(j)):
            S[i, j] = -(L[i + 1 : j + 1, i] @ S[i + 1 : j + 1, j]) / L[i, i]
    return S


class CholeskySolver:
    """Solve A X = B with the strict factor Lᵀ (forward, then back substitution)."""

    def __init__(self, lt: np.ndarray, guard):
        self._lt = lt
        self._guard = guard

    @property
    def is_nonsingular(self) -> bool:
        # the factorization only succeeds on positive pivots
        return True

    @property
    def is_full_rank(self) -> bool:
        return True

    def solve(self, b) -> np.ndarray:
        self._guard()
        n = self._lt.shape[0]
        B, vector = as_rhs(b, n)
        Y = forward_substitute(self._lt.T, B)
        X = back_substitute(self._lt, Y)
        return X[:, 0] if vector else X

    def inverse(self) -> np.ndarray:
        return self.solve(identity(self._lt.shape[0]))

    def reverse(self) -> np.ndarray:
        self._guard()
        return self._lt.T @ self._lt

    def information_matrix(self) -> np.ndarray:
        inv = self.inverse()
        return inv @ inv.T


class CholeskyDecomposition(SolvableMixin):
    """
    Strict Cholesky decomposition  A = L Lᵀ.

    Parameters
    ----------
    matrix : (n, n) array_like
        Symmetric positive-definite matrix. It is copied, never modified.
    relative_symmetry_threshold : float
        Largest relative difference tolerated between A[i,j] and A[j,i].
    absolute_positivity_threshold : float
        Smallest pivot considered strictly positive.

    Raises
    ------
    NonSquareMatrixError, NotSymmetricMatrixError, NotPositiveDefiniteMatrixError
    """

    def __init__(
        self,
        matrix,
        relative_symmetry_threshold: float = DEFAULT_RELATIVE_SYMMETRY_THRESHOLD,
        absolute_positivity_threshold: float = DEFAULT_ABSOLUTE_POSITIVITY_THRESHOLD,
    ):
        lt = as_matrix(matrix)
        n = _square(lt)
        check_symmetric(lt, relative_symmetry_threshold)
        lt[np.tril_indices(n, -1)] = 0.0

        for i in range(n):
            pivot = lt[i, i]
            # written so that a NaN pivot fails too
            if not pivot >= absolute_positivity_threshold:
                raise NotPositiveDefiniteMatrixError(
                    f"pivot {i} is {pivot:g}, below the positivity threshold "
                    f"{absolute_positivity_threshold:g}",
                    index=i,
                    value=float(pivot),
                    threshold=absolute_positivity_threshold,
                )
            lt[i, i] = np.sqrt(pivot)
            row = lt[i, i + 1 :]
            row *= 1.0 / lt[i, i]
            lt[i + 1 :, i + 1 :] -= np.triu(np.outer(row, row))

        logger.debug("Cholesky factorization of %dx%d matrix done", n, n)
        self._init_factor(lt)

    def _init_factor(self, lt: np.ndarray) -> None:
        self._lt = lt
        self._n = lt.shape[0]
        self._state = FactorState.VALID
        self._cache = {}

    @classmethod
    def from_left_triangular(cls, L):
        """Wrap an already computed lower-triangular factor L."""
        L = as_matrix(L)
        _square(L)
        obj = cls.__new__(cls)
        obj._init_factor(np.triu(L.T))
        return obj

    # -- factors ---------------------------------------------------------
    @cached_factor
    def l(self) -> np.ndarray:  # noqa: E743
        return np.ascontiguousarray(self._lt.T)

    @cached_factor
    def lt(self) -> np.ndarray:
        return self._lt.copy()

    @cached_factor
    def determinant(self) -> float:
        d = np.diag(self._lt)
        return float(np.prod(d * d))

    @cached_factor
    def log_determinant(self) -> float:
        return float(2.0 * np.sum(np.log(np.diag(self._lt))))

    @property
    def positive_definite(self) -> bool:
        return True

    @property
    def undefined(self) -> bool:
        return False

    @property
    def destroyed(self) -> bool:
        return self._state is FactorState.DESTROYED

    # -- inverse diagonal ------------------------------------------------
    def _inverse_factor(self, destroy: bool) -> np.ndarray:
        self._state.check()
        S = self._lt if destroy else self._lt.copy()
        if destroy:
            self._state = FactorState.DESTROYED
        # S = L⁻ᵀ, upper triangular
        return invert_upper_in_place(S)

    def inverse_diagonal(self, destroy: bool = False) -> np.ndarray:
        """
        Diagonal of A⁻¹ without forming A⁻¹.

        With ``destroy=True`` the factor storage is reused as workspace and
        the decomposition cannot be used afterwards.
        """
        S = self._inverse_factor(destroy)
        return np.sum(S * S, axis=1)

    def inverse_trace(self, destroy: bool = False) -> float:
        S = self._inverse_factor(destroy)
        return float(np.sum(S * S))

    def get_solver(self) -> CholeskySolver:
        return CholeskySolver(self._lt, self._state_guard)

    def _state_guard(self) -> None:
        self._state.check()


class DenseCholeskySolver:
    """Solve with packed L (lower triangle) and, for LDLᵀ, the diagonal D."""

    def __init__(self, L: np.ndarray, D, guard):
        self._L = L
        self._D = D
        self._guard = guard

    @property
    def is_nonsingular(self) -> bool:
        diag = np.diag(self._L)
        singular = np.any(diag == 0.0)
        if self._D is not None:
            singular = singular or np.any(self._D == 0.0)
        return not bool(singular)

    @property
    def is_full_rank(self) -> bool:
        return self.is_nonsingular

    def solve(self, b) -> np.ndarray:
        self._guard()
        n = self._L.shape[0]
        B, vector = as_rhs(b, n)
        Y = forward_substitute(self._L, B)
        if self._D is not None:
            Y /= self._D[:, None]
        X = back_substitute(self._L.T, Y)
        return X[:, 0] if vector else X

    def inverse(self) -> np.ndarray:
        return self.solve(identity(self._L.shape[0]))

    def reverse(self) -> np.ndarray:
        self._guard()
        L = np.tril(self._L)
        if self._D is None:
            return L @ L.T
        return (L * self._D) @ L.T

    def information_matrix(self) -> np.ndarray:
        inv = self.inverse()
        return inv @ inv.T


def _update_ldlt_rows(L, v, i, d, start, stop):
    # column i of L for rows [start, stop); rows are independent of each other
    L[start:stop, i] = (L[i, start:stop] - L[start:stop, :i] @ v[:i]) / d


def _row_chunks(start, stop, parts):
    for chunk in np.array_split(np.arange(start, stop), parts):
        if chunk.size:
            yield int(chunk[0]), int(chunk[-1]) + 1


class DenseCholeskyDecomposition(SolvableMixin):
    """
    Packed Cholesky factorization on a raw symmetric array.

    Parameters
    ----------
    value : (n, n) array_like
        Symmetric matrix; only the triangle named by ``value_type`` is read.
    robust : bool
        Use the square-root-free LDLᵀ factorization.
    in_place : bool
        Work directly in ``value`` (must be a float64 ndarray). Its lower
        triangle is overwritten with L and, for ``value_type="lower"``,
        its upper triangle with the mirrored input.
    value_type : {"upper", "lower", "full"}
        Triangle holding the matrix.
    max_workers : int, optional
        Fan LDLᵀ row updates out over this many threads when larger than one.
    """

    def __init__(
        self,
        value,
        robust: bool = False,
        in_place: bool = False,
        value_type: str = "upper",
        max_workers=None,
    ):
        if value_type not in VALUE_TYPES:
            raise ValueError(f"value_type must be one of {VALUE_TYPES}, got {value_type!r}")
        if in_place:
            if not isinstance(value, np.ndarray) or value.dtype != np.float64:
                raise TypeError("in-place factorization needs a float64 ndarray")
            if value.ndim != 2:
                raise DimensionMismatchError(
                    f"expected a 2-D matrix, got an array with {value.ndim} dimension(s)",
                    actual=value.shape,
                    expected=("n", "n"),
                )
            L = value
        else:
            L = as_matrix(value)
        n = _square(L)

        if value_type == "lower":
            upper = np.triu_indices(n, 1)
            L[upper] = L.T[upper]

        self._L = L
        self._n = n
        self._robust = robust
        self._positive_definite = True
        self._state = FactorState.VALID
        self._cache = {}

        if robust:
            self._ldlt(max_workers)
        else:
            self._llt()

        if not self._positive_definite:
            logger.debug("%s factorization of %dx%d matrix is not positive definite",
                         "LDLt" if robust else "LLt", n, n)

    def _llt(self) -> None:
        L, n = self._L, self._n
        self._D = np.ones(n)
        with np.errstate(divide="ignore", invalid="ignore"):
            for j in range(n):
                s = 0.0
                for k in range(j):
                    t = (L[k, j] - L[j, :k] @ L[k, :k]) / L[k, k]
                    L[j, k] = t
                    s += t * t
                s = L[j, j] - s
                self._positive_definite &= bool(s > SOFT_POSITIVITY_TOLERANCE * abs(L[j, j]))
                # a negative pivot leaves NaN on the diagonal
                L[j, j] = np.sqrt(s)

    def _ldlt(self, max_workers) -> None:
        L, n = self._L, self._n
        D = np.zeros(n)
        v = np.zeros(n)
        self._D = D

        if max_workers and max_workers > 1:
            with ThreadPoolExecutor(max_workers=max_workers) as executor:

                def update(i, d):
                    rows = functools.partial(_update_ldlt_rows, L, v, i, d)
                    # drain every chunk before moving to the next pivot
                    list(executor.map(lambda bounds: rows(*bounds), _row_chunks(i + 1, n, max_workers)))

                completed = self._ldlt_pivots(v, update)
        else:
            completed = self._ldlt_pivots(v, lambda i, d: _update_ldlt_rows(L, v, i, d, i + 1, n))

        if completed:
            L[np.diag_indices(n)] = 1.0

    def _ldlt_pivots(self, v: np.ndarray, update) -> bool:
        """Run the pivot loop; False when a pivot is exactly zero."""
        L, D, n = self._L, self._D, self._n
        for i in range(n):
            v[:i] = L[i, :i] * D[:i]
            d = L[i, i] - L[i, :i] @ v[:i]
            D[i] = v[i] = d
            self._positive_definite &= bool(d > SOFT_POSITIVITY_TOLERANCE * abs(L[i, i]))

            if d == 0.0:
                logger.debug("LDLt pivot %d is exactly zero, factorization undefined", i)
                self._state = FactorState.UNDEFINED
                return False

            update(i, d)
        return True

    @classmethod
    def from_left_triangular(cls, L):
        """Wrap an already computed lower-triangular factor L (LLᵀ form)."""
        L = as_matrix(L)
        n = _square(L)
        obj = cls.__new__(cls)
        obj._L = np.tril(L)
        obj._n = n
        obj._robust = False
        obj._positive_definite = True
        obj._D = np.ones(n)
        obj._state = FactorState.VALID
        obj._cache = {}
        return obj

    # -- flags -----------------------------------------------------------
    @property
    def positive_definite(self) -> bool:
        return self._positive_definite

    @property
    def undefined(self) -> bool:
        return self._state is FactorState.UNDEFINED

    @property
    def destroyed(self) -> bool:
        return self._state is FactorState.DESTROYED

    @property
    def robust(self) -> bool:
        return self._robust

    @property
    def diagonal(self) -> np.ndarray:
        """D of the LDLᵀ factorization (all ones for LLᵀ)."""
        return self._D.copy()

    # -- factors ---------------------------------------------------------
    @cached_factor
    def left_triangular_factor(self) -> np.ndarray:
        return np.tril(self._L)

    @cached_factor
    def upper_triangular_factor(self) -> np.ndarray:
        return np.ascontiguousarray(self.left_triangular_factor.T)

    @cached_factor
    def diagonal_matrix(self) -> np.ndarray:
        return np.diag(self._D)

    @cached_factor
    def determinant(self) -> float:
        d = np.diag(self._L)
        return float(np.prod(d * d) * np.prod(self._D))

    @cached_factor
    def log_determinant(self) -> float:
        with np.errstate(divide="ignore", invalid="ignore"):
            return float(2.0 * np.sum(np.log(np.diag(self._L))) + np.sum(np.log(self._D)))

    @cached_factor
    def nonsingular(self) -> bool:
        return bool(not np.any(np.diag(self._L) == 0.0) and not np.any(self._D == 0.0))

    # -- solving ---------------------------------------------------------
    def _require_solvable(self) -> None:
        if not self._robust and not self._positive_definite:
            raise NotPositiveDefiniteMatrixError("decomposed matrix is not positive definite")
        self._state.check()

    def get_solver(self) -> DenseCholeskySolver:
        return DenseCholeskySolver(self._L, self._D if self._robust else None, self._require_solvable)

    def _inverse_factor(self, destroy: bool) -> np.ndarray:
        self._require_solvable()
        S = self._L if destroy else np.zeros((self._n, self._n))
        if destroy:
            self._state = FactorState.DESTROYED
        return np.triu(_invert_lower_transposed(S, self._L))

    def inverse_diagonal(self, destroy: bool = False) -> np.ndarray:
        """
        Diagonal of A⁻¹ from S = L⁻ᵀ:  diag_i = Σ_j S[i,j]² / D[j].

        ``destroy=True`` computes S inside the factor storage.
        """
        S2 = self._inverse_factor(destroy) ** 2
        if self._robust:
            return S2 @ (1.0 / self._D)
        return S2.sum(axis=1)

    def inverse_trace(self, destroy: bool = False) -> float:
        return float(np.sum(self.inverse_diagonal(destroy)))
