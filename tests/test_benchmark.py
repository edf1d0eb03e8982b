# Copyright (C) 2025 Brantleigh Bunting
# SPDX-License-Identifier: BUSL-1.1
#
# Use of this software is governed by the Business Source License
# included in the LICENSE file and at <https://mariadb.com/bsl11>

import numpy as np
import pandas as pd

from lindecomp.benchmark import COLUMNS, run_benchmarks


def test_benchmark_table():
    df = run_benchmarks(sizes=[(8, 8), (12, 6)], repeats=1)

    assert isinstance(df, pd.DataFrame)
    assert list(df.columns) == COLUMNS
    assert set(df["kernel"]) == {"HH-QR", "GK-SVD", "Cholesky", "LDLt"}
    # Cholesky kernels only run on square sizes
    assert len(df) == 6
    assert np.all(df["sec"] > 0.0)
    assert np.all(np.isfinite(df["residual/NumPy"]))
    qr_rows = df[df["kernel"] == "HH-QR"]
    assert np.all(qr_rows["orth_err"] < 1e-10)
