# Copyright (C) 2025 Brantleigh Bunting
# SPDX-License-Identifier: BUSL-1.1
#
# Use of this software is governed by the Business Source License
# included in the LICENSE file and at <https://mariadb.com/bsl11>

from typing import Tuple

import numpy as np

from .exceptions import DimensionMismatchError

# Relative threshold for small values (0x1.0p-52)
EPS: float = 2.0**-52
# Absolute threshold guarding subnormal flush-to-zero (0x1.0p-966)
TINY: float = 2.0**-966
# Smallest positive normal double (0x1.0p-1022)
SAFE_MIN: float = 2.0**-1022


def as_matrix(A, copy: bool = True) -> np.ndarray:
    """Return ``A`` as a 2-D float64 array (copied unless ``copy=False``)."""
    M = np.array(A, dtype=float, copy=True) if copy else np.asarray(A, dtype=float)
    if M.ndim != 2:
        raise DimensionMismatchError(
            f"expected a 2-D matrix, got an array with {M.ndim} dimension(s)",
            actual=M.shape,
            expected=("m", "n"),
        )
    return M


def as_rhs(b, rows: int) -> Tuple[np.ndarray, bool]:
    """
    Copy a right-hand side into an (rows, k) float array.

    Returns the 2-D copy and a flag telling whether the caller passed a
    vector, so the solution can be flattened back to (n,).
    """
    B = np.array(b, dtype=float, copy=True)
    vector = B.ndim == 1
    if vector:
        B = B[:, None]
    if B.ndim != 2 or B.shape[0] != rows:
        raise DimensionMismatchError(
            f"right-hand side has {B.shape[0] if B.ndim else 0} rows, "
            f"the decomposed matrix has {rows}",
            actual=B.shape[0] if B.ndim else 0,
            expected=rows,
        )
    return B, vector


def identity(n: int) -> np.ndarray:
    return np.eye(n, dtype=float)


def random_spd(n, seed=None, shift: float = 1.0) -> np.ndarray:
    """
    Build a random symmetric positive-definite matrix  G Gᵀ + shift·I.

    Returns
    -------
    Matrix with float64 dtype
    """
    rng = np.random.default_rng(seed)
    G = rng.standard_normal((n, n))
    A = G @ G.T + shift * np.eye(n)
    # enforce exact symmetry, G Gᵀ can differ in the last bit
    return np.asarray((A + A.T) / 2.0)


def random_nonsingular_upper(n, low=-100, high=100, seed=None) -> np.ndarray:
    """
    Build a matrix U that is upper-triangular with random entries
    everywhere and put only non-zero values on its diagonal

    Returns
    -------
    Matrix with float64 dtype
    """
    rng = np.random.default_rng(seed)
    U = np.triu(rng.uniform(low, high, size=(n, n)))
    # keep the diagonal away from zero
    diag = rng.uniform(1.0, high, size=n) * rng.choice([-1.0, 1.0], size=n)
    U[np.diag_indices(n)] = diag
    return np.asarray(U)
