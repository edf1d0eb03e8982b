# Copyright (C) 2025 Brantleigh Bunting
# SPDX-License-Identifier: BUSL-1.1
#
# Use of this software is governed by the Business Source License
# included in the LICENSE file and at <https://mariadb.com/bsl11>

"""
Shared solver contract for the factorizations.

Every decomposition hands out a solver bound to its factor data. Solvers
are structurally typed through `DecompositionSolver`; there is no common
base class, each one keeps only the arrays its algorithm needs.
"""

import enum
import functools
from typing import Protocol, runtime_checkable

import numpy as np

from .exceptions import DecompositionDestroyedError, DecompositionUndefinedError


@runtime_checkable
class DecompositionSolver(Protocol):
    """
    Solve  A X = B  with the matrix A implied by a decomposition.

    solve(b)             : (m,) -> (n,) or (m, k) -> (n, k)
    inverse()            : solve(I), the (pseudo-)inverse of A
    reverse()            : reconstruct A from its factors
    information_matrix() : (Xᵀ X)⁻¹ with X = reverse()
    """

    @property
    def is_nonsingular(self) -> bool: ...

    @property
    def is_full_rank(self) -> bool: ...

    def solve(self, b) -> np.ndarray: ...

    def inverse(self) -> np.ndarray: ...

    def reverse(self) -> np.ndarray: ...

    def information_matrix(self) -> np.ndarray: ...


class FactorState(enum.Enum):
    """Lifecycle of the factor storage owned by a decomposition."""

    VALID = "valid"
    DESTROYED = "destroyed"
    UNDEFINED = "undefined"

    def check(self) -> None:
        if self is FactorState.DESTROYED:
            raise DecompositionDestroyedError()
        if self is FactorState.UNDEFINED:
            raise DecompositionUndefinedError()


def cached_factor(method):
    """
    Turn a zero-argument method into a compute-once property.

    The owner must carry ``_cache`` (dict) and ``_state`` (FactorState).
    The state is checked only before the first computation: a view cached
    while the factors were valid keeps being served afterwards. Cached
    arrays are made read-only so every caller shares the same object.
    """
    key = method.__name__

    @functools.wraps(method)
    def getter(self):
        try:
            return self._cache[key]
        except KeyError:
            pass
        self._state.check()
        value = method(self)
        if isinstance(value, np.ndarray):
            value.flags.writeable = False
        self._cache[key] = value
        return value

    return property(getter)


class SolvableMixin:
    """Forward the solver contract to ``self.get_solver()``."""

    def solve(self, b) -> np.ndarray:
        return self.get_solver().solve(b)

    def inverse(self) -> np.ndarray:
        return self.get_solver().inverse()

    def reverse(self) -> np.ndarray:
        return self.get_solver().reverse()

    def information_matrix(self) -> np.ndarray:
        return self.get_solver().information_matrix()

    @property
    def is_nonsingular(self) -> bool:
        return self.get_solver().is_nonsingular
