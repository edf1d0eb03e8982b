# Copyright (C) 2025 Brantleigh Bunting
# SPDX-License-Identifier: BUSL-1.1
#
# Use of this software is governed by the Business Source License
# included in the LICENSE file and at <https://mariadb.com/bsl11>

"""
Exception hierarchy for lindecomp.

Every error raised by a factorization or a solver derives from
`DecompositionError`, so callers can catch the whole family or pick the
specific kind and fall back to a more permissive decomposition (e.g. retry
with the SVD pseudo-inverse after a Cholesky or QR failure).

Exceptions carry their diagnostics as attributes.
"""


class DecompositionError(Exception):
    """Base exception for all lindecomp errors."""


class DimensionMismatchError(DecompositionError, ValueError):
    """
    Array dimensions are incorrect or inconsistent.

    Attributes:
        actual: The offending dimension (or shape)
        expected: The dimension (or shape) that was required
    """

    def __init__(self, message: str, actual=None, expected=None):
        super().__init__(message)
        self.actual = actual
        self.expected = expected


class NonSquareMatrixError(DimensionMismatchError):
    """A square matrix was required."""

    def __init__(self, rows: int, columns: int):
        super().__init__(
            f"matrix is not square: {rows}x{columns}",
            actual=(rows, columns),
            expected=(rows, rows),
        )
        self.rows = rows
        self.columns = columns


class NumericalError(DecompositionError):
    """Base class for failures caused by the numerical content of a matrix."""


class NotSymmetricMatrixError(NumericalError):
    """
    Matrix failed the relative symmetry check.

    Attributes:
        row, column: First offending off-diagonal pair (row < column)
        excess: How far |A[row, column] - A[column, row]| exceeds the threshold
    """

    def __init__(self, row: int, column: int, excess: float):
        super().__init__(
            f"not symmetric matrix: entries ({row}, {column}) and ({column}, {row}) "
            f"differ by {excess:g} more than the relative threshold allows"
        )
        self.row = row
        self.column = column
        self.excess = excess


class NotPositiveDefiniteMatrixError(NumericalError):
    """
    Matrix is not (strictly) positive definite.

    Attributes:
        index: Pivot at which the check failed, if known
        value: Pivot value, if known
        threshold: Absolute positivity threshold in force, if any
    """

    def __init__(
        self,
        message: str = "matrix is not positive definite",
        index: int | None = None,
        value: float | None = None,
        threshold: float | None = None,
    ):
        super().__init__(message)
        self.index = index
        self.value = value
        self.threshold = threshold


class SingularMatrixError(NumericalError):
    """
    Matrix is singular.

    Attributes:
        rank: Numerical rank, if computed
        expected_rank: Rank required by the operation
    """

    def __init__(
        self,
        message: str = "matrix is singular",
        rank: int | None = None,
        expected_rank: int | None = None,
    ):
        super().__init__(message)
        self.rank = rank
        self.expected_rank = expected_rank


class RankDeficientError(SingularMatrixError):
    """The triangular factor R has a zero on its diagonal."""


class ConvergenceError(NumericalError):
    """
    An iterative stage did not converge within its iteration ceiling.

    Attributes:
        iterations: Number of iterations performed
        remaining: Size of the block still unconverged, if known
    """

    def __init__(self, message: str, iterations: int, remaining: int | None = None):
        super().__init__(message)
        self.iterations = iterations
        self.remaining = remaining


class CutoffTooLargeError(DecompositionError, ValueError):
    """A singular value cutoff discards every singular value."""

    def __init__(self, cutoff: float, largest: float):
        super().__init__(
            f"cutoff singular value {cutoff:g} is larger than "
            f"the largest singular value {largest:g}"
        )
        self.cutoff = cutoff
        self.largest = largest


class DecompositionStateError(DecompositionError, RuntimeError):
    """The decomposition cannot serve the request in its current state."""


class DecompositionDestroyedError(DecompositionStateError):
    """Factor storage was consumed by a destructive operation."""

    def __init__(self, message: str = "the decomposition has been destroyed"):
        super().__init__(message)


class DecompositionUndefinedError(DecompositionStateError):
    """The LDLt factorization hit an exactly-zero pivot."""

    def __init__(self, message: str = "the decomposition is undefined (zero in diagonal)"):
        super().__init__(message)
