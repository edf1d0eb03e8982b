#!/usr/bin/python3
# Copyright (C) 2025 Brantleigh Bunting
# SPDX-License-Identifier: BUSL-1.1
#
# Use of this software is governed by the Business Source License
# included in the LICENSE file and at <https://mariadb.com/bsl11>

import logging
import time

import numpy as np
import pandas as pd

from .cholesky import CholeskyDecomposition, DenseCholeskyDecomposition
from .qr import QRDecomposition
from .svd import SingularValueDecomposition

logger = logging.getLogger(__name__)

REPEATS = 5  # best of 5 runs leads to stable numbers
SIZES = [(100, 100), (300, 300), (600, 200)]
COLUMNS = ["kernel", "size", "sec", "sec/NumPy", "residual/NumPy", "orth_err"]


def wall(f, *args, **kwargs):
    t0 = time.perf_counter()
    f(*args, **kwargs)
    return time.perf_counter() - t0


def _residual(A, x, b):
    return np.linalg.norm(A @ x - b, np.inf)


def run_benchmarks(sizes=SIZES, repeats: int = REPEATS, seed: int = 0) -> pd.DataFrame:
    """
    Time factorization + solve of every decomposition against
    ``numpy.linalg.lstsq``.

    Cholesky kernels run on the normal equations  AᵀA x = Aᵀb  and only
    for square sizes; QR and SVD solve the least-squares problem directly.

    Returns
    -------
    DataFrame with one row per (kernel, size) and the columns
    kernel, size, sec, sec/NumPy, residual/NumPy, orth_err.
    """
    rng = np.random.default_rng(seed)
    records = []
    for m, n in sizes:
        A = rng.standard_normal((m, n))
        b = rng.standard_normal(m)
        size = f"{m}×{n}"

        # reference
        t_np = min(wall(np.linalg.lstsq, A, b, rcond=None) for _ in range(repeats))
        x_ref, *_ = np.linalg.lstsq(A, b, rcond=None)
        # residual of an exact solve can be zero, keep the ratio finite
        r_ref = max(_residual(A, x_ref, b), np.finfo(float).eps)

        # ---------- Householder QR ---------------------------------
        t_qr = min(wall(lambda: QRDecomposition(A).solve(b)) for _ in range(repeats))
        qr = QRDecomposition(A, economy=True)
        ortho = np.linalg.norm(qr.q.T @ qr.q - np.eye(qr.q.shape[1]), np.inf)
        r_qr = _residual(A, qr.solve(b), b)
        records.append(("HH-QR", size, t_qr, t_qr / t_np, r_qr / r_ref, ortho))

        # ---------- Golub-Kahan SVD --------------------------------
        t_svd = min(wall(lambda: SingularValueDecomposition(A).solve(b)) for _ in range(repeats))
        dec = SingularValueDecomposition(A)
        ortho = np.linalg.norm(dec.ut @ dec.u - np.eye(dec.u.shape[1]), np.inf)
        r_svd = _residual(A, dec.solve(b), b)
        records.append(("GK-SVD", size, t_svd, t_svd / t_np, r_svd / r_ref, ortho))

        if m == n:
            N = A.T @ A
            N = (N + N.T) / 2.0
            c = A.T @ b
            for kernel, factory in (
                ("Cholesky", lambda: CholeskyDecomposition(N)),
                ("LDLt", lambda: DenseCholeskyDecomposition(N, robust=True)),
            ):
                t_ch = min(wall(lambda: factory().solve(c)) for _ in range(repeats))
                r_ch = _residual(A, factory().solve(c), b)
                records.append((kernel, size, t_ch, t_ch / t_np, r_ch / r_ref, np.nan))

        logger.debug("benchmarked %s", size)

    return pd.DataFrame(records, columns=COLUMNS)


if __name__ == "__main__":
    df = run_benchmarks()
    print(df.to_string(index=False))
    df.to_csv("bench_results.csv", index=False)
