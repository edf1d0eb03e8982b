# Copyright (C) 2025 Brantleigh Bunting
# SPDX-License-Identifier: BUSL-1.1
#
# Use of this software is governed by the Business Source License
# included in the LICENSE file and at <https://mariadb.com/bsl11>

import numpy as np
import pytest

from lindecomp.exceptions import DimensionMismatchError
from lindecomp.utils import (
    EPS,
    TINY,
    as_matrix,
    as_rhs,
    random_nonsingular_upper,
    random_spd,
)


def test_constants():
    assert EPS == np.finfo(float).eps
    assert np.isclose(TINY, 1.6033e-291, rtol=1e-3, atol=0.0)


def test_as_matrix_copies_by_default():
    A = np.eye(2)
    M = as_matrix(A)
    M[0, 0] = 5.0
    assert A[0, 0] == 1.0
    assert as_matrix(A, copy=False) is A


def test_as_matrix_rejects_vectors():
    with pytest.raises(DimensionMismatchError):
        as_matrix([1.0, 2.0])


def test_as_rhs_shapes():
    B, vector = as_rhs([1, 2, 3], 3)
    assert vector
    assert B.shape == (3, 1)
    assert B.dtype == float

    B, vector = as_rhs(np.ones((3, 2)), 3)
    assert not vector
    assert B.shape == (3, 2)

    with pytest.raises(DimensionMismatchError) as info:
        as_rhs(np.ones(4), 3)
    assert (info.value.actual, info.value.expected) == (4, 3)


@pytest.mark.parametrize("n", [1, 5, 30])
def test_random_spd(n):
    A = random_spd(n, seed=n)
    np.testing.assert_array_equal(A, A.T)
    assert np.all(np.linalg.eigvalsh(A) > 0.0)


def test_random_nonsingular_upper():
    U = random_nonsingular_upper(8, seed=3)
    assert np.all(np.tril(U, -1) == 0.0)
    assert np.all(np.abs(np.diag(U)) >= 1.0)
