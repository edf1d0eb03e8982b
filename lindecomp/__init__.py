# Copyright (C) 2025 Brantleigh Bunting
# SPDX-License-Identifier: BUSL-1.1
#
# Use of this software is governed by the Business Source License
# included in the LICENSE file and at <https://mariadb.com/bsl11>

"""
lindecomp
=========

Dense matrix decompositions with a shared solver interface.

Public API
~~~~~~~~~~
- Decompositions
    - `CholeskyDecomposition`, `DenseCholeskyDecomposition`
    - `QRDecomposition`
    - `SingularValueDecomposition`
- Solvers
    - `DecompositionSolver` (protocol), `CholeskySolver`,
      `DenseCholeskySolver`, `QRSolver`, `SVDSolver`
- Functional helpers
    - `householder_qr`, `least_squares_householder_qr`, `svd`
- Errors
    - `DecompositionError` and its subclasses

Everything else lives in sub-modules and is **not** considered part of the
stable interface.

Example
-------
>>> import numpy as np, lindecomp as ld
>>> A = np.array([[4.0, 2.0], [2.0, 3.0]])
>>> x = ld.CholeskyDecomposition(A).solve([2.0, 1.0])
>>> np.allclose(A @ x, [2.0, 1.0])
True
"""

from importlib.metadata import PackageNotFoundError
from importlib.metadata import version as _pkg_version

from .cholesky import (
    DEFAULT_ABSOLUTE_POSITIVITY_THRESHOLD,
    DEFAULT_RELATIVE_SYMMETRY_THRESHOLD,
    CholeskyDecomposition,
    CholeskySolver,
    DenseCholeskyDecomposition,
    DenseCholeskySolver,
)
from .exceptions import (
    ConvergenceError,
    CutoffTooLargeError,
    DecompositionDestroyedError,
    DecompositionError,
    DecompositionStateError,
    DecompositionUndefinedError,
    DimensionMismatchError,
    NonSquareMatrixError,
    NotPositiveDefiniteMatrixError,
    NotSymmetricMatrixError,
    NumericalError,
    RankDeficientError,
    SingularMatrixError,
)

# ---------------------------------------------------------------------
# Re-export the high-level names users are expected to call.
# ---------------------------------------------------------------------
from .qr import QRDecomposition, QRSolver, householder_qr, least_squares_householder_qr
from .solver import DecompositionSolver
from .svd import SingularValueDecomposition, SVDSolver, svd
from .utils import random_nonsingular_upper, random_spd

__all__ = [
    "CholeskyDecomposition",
    "DenseCholeskyDecomposition",
    "QRDecomposition",
    "SingularValueDecomposition",
    "DecompositionSolver",
    "CholeskySolver",
    "DenseCholeskySolver",
    "QRSolver",
    "SVDSolver",
    "householder_qr",
    "least_squares_householder_qr",
    "svd",
    "random_spd",
    "random_nonsingular_upper",
    "DEFAULT_RELATIVE_SYMMETRY_THRESHOLD",
    "DEFAULT_ABSOLUTE_POSITIVITY_THRESHOLD",
    "DecompositionError",
    "DimensionMismatchError",
    "NonSquareMatrixError",
    "NumericalError",
    "NotSymmetricMatrixError",
    "NotPositiveDefiniteMatrixError",
    "SingularMatrixError",
    "RankDeficientError",
    "ConvergenceError",
    "CutoffTooLargeError",
    "DecompositionStateError",
    "DecompositionDestroyedError",
    "DecompositionUndefinedError",
]

# ---------------------------------------------------------------------
# Version string (helps “pip show lindecomp”, Sphinx, etc.)
# ---------------------------------------------------------------------
try:  # installed via pip / build backend
    __version__ = _pkg_version(__name__)
except PackageNotFoundError:  # running from a checkout
    __version__ = "0.0.0.dev0"

# ---------------------------------------------------------------------
# Lightweight default logging config so users see messages only if they
# deliberately enable them.
# ---------------------------------------------------------------------
import logging as _logging

_logging.getLogger(__name__).addHandler(_logging.NullHandler())
