# Copyright (C) 2025 Brantleigh Bunting
# SPDX-License-Identifier: BUSL-1.1
#
# Use of this software is governed by the Business Source License
# included in the LICENSE file and at <https://mariadb.com/bsl11>

"""
Triangular kernels shared by the solvers.

Only the relevant triangle of the coefficient matrix is read, so packed
storage (L below the diagonal, something else above) can be passed as is.
"""

import numpy as np


def forward_substitute(L: np.ndarray, B: np.ndarray) -> np.ndarray:
    """
    Solve L X = B for lower-triangular L.

    Parameters
    ----------
    L : (n, n) ndarray
        Only the diagonal and the part below it are used.
    B : (n,) or (n, k) ndarray
        Right-hand side, not modified.

    Returns
    -------
    X : ndarray with the shape of B
    """
    X = np.array(B, dtype=float, copy=True)
    n = L.shape[0]
    for k in range(n):
        X[k] -= L[k, :k] @ X[:k]
        X[k] /= L[k, k]
    return X


def back_substitute(U: np.ndarray, B: np.ndarray) -> np.ndarray:
    """
    Solve U X = B for upper-triangular U.

    Parameters
    ----------
    U : (n, n) ndarray
        Only the diagonal and the part above it are used.
    B : (n,) or (n, k) ndarray
        Right-hand side, not modified.

    Returns
    -------
    X : ndarray with the shape of B
    """
    X = np.array(B, dtype=float, copy=True)
    n = U.shape[0]
    for k in reversed(range(n)):
        X[k] -= U[k, k + 1 :] @ X[k + 1 :]
        X[k] /= U[k, k]
    return X


def invert_upper_in_place(U: np.ndarray) -> np.ndarray:
    """
    Overwrite the upper triangle of U with U⁻¹ and return U.

    Columns are processed right to left and rows bottom to top, so every
    entry still needed from the original U is read before it is replaced.
    The strictly lower part is left untouched.
    """
    n = U.shape[0]
    for j in reversed(range(n)):
        U[j, j] = 1.0 / U[j, j]
        for i in reversed(range(j)):
            U[i, j] = -(U[i, i + 1 : j + 1] @ U[i + 1 : j + 1, j]) / U[i, i]
    return U
