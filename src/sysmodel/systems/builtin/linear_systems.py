# Copyright (C) 2025 Gil Benezer
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published
# by the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.
#
# This program is distributed in the hope that it will be useful,
# but WITHOUT ANY WARRANTY; without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the
# GNU Affero General Public License for more details.
#
# You should have received a copy of the GNU Affero General Public License
# along with this program.  If not, see <https://www.gnu.org/licenses/>.

"""
Linear Systems - Testing and Verification Examples
==================================================

Numeric linear systems with closed-form transition matrices, used to verify
integrators, sensitivity engines and system models.

Systems included:
- LinearSystem: dx/dt = A x + B u for arbitrary matrices
- ZeroDynamics: dx/dt = 0 (the state never moves)

Both provide analytic Jacobians. For LinearSystem the exact discrete
transition over dt is expm(A dt), available from ``transition_matrix``.
"""

from typing import Optional

import numpy as np
from scipy.linalg import expm

from sysmodel.systems.base.core.continuous_system_base import ContinuousSystemBase
from sysmodel.types.core import ArrayLike, ScalarLike, StateMatrix


class LinearSystem(ContinuousSystemBase):
    """
    Linear time-invariant system: dx/dt = A x + B u

    Parameters
    ----------
    A : ArrayLike
        State matrix (nx, nx)
    B : Optional[ArrayLike]
        Input matrix (nx, nu); None for an autonomous system

    Raises
    ------
    ValueError
        If A is not square or B has the wrong number of rows

    Examples
    --------
    >>> system = LinearSystem(A=[[0.0, 1.0], [-1.0, 0.0]], B=[[0.0], [1.0]])
    >>> system(np.array([1.0, 0.0]), np.array([0.5]))
    array([ 0. , -0.5])
    >>> Ad = system.transition_matrix(0.1)
    """

    def __init__(self, A: ArrayLike, B: Optional[ArrayLike] = None):
        A = np.atleast_2d(np.asarray(A, dtype=float))
        if A.shape[0] != A.shape[1]:
            raise ValueError(f"A must be square, got shape {A.shape}")

        if B is None:
            B = np.zeros((A.shape[0], 0))
        B = np.asarray(B, dtype=float)
        if B.ndim == 1:
            B = B.reshape(-1, 1)
        if B.shape[0] != A.shape[0]:
            raise ValueError(f"B must have {A.shape[0]} rows, got shape {B.shape}")

        self.A = A
        self.B = B

    @property
    def nx(self) -> int:
        return self.A.shape[0]

    @property
    def nu(self) -> int:
        return self.B.shape[1]

    def evaluate(self, x, u, t):
        dx = self.A @ x
        if self.nu > 0:
            dx = dx + self.B @ u
        return dx

    def linearize(self, x, u=None, t=0.0):
        return self.A.copy(), self.B.copy()

    def transition_matrix(self, dt: ScalarLike) -> StateMatrix:
        """Exact discrete state transition expm(A dt)."""
        return expm(self.A * float(dt))

    def __repr__(self) -> str:
        return f"LinearSystem(nx={self.nx}, nu={self.nu})"


class ZeroDynamics(ContinuousSystemBase):
    """
    System whose state never changes: dx/dt = 0.

    The control input is accepted and ignored.

    Examples
    --------
    >>> system = ZeroDynamics(nx=3, nu=1)
    >>> system(np.ones(3), np.array([5.0]))
    array([0., 0., 0.])
    """

    def __init__(self, nx: int, nu: int = 0):
        if nx <= 0:
            raise ValueError(f"State dimension must be positive, got nx={nx}")
        if nu < 0:
            raise ValueError(f"Control dimension must be non-negative, got nu={nu}")
        self._nx = int(nx)
        self._nu = int(nu)

    @property
    def nx(self) -> int:
        return self._nx

    @property
    def nu(self) -> int:
        return self._nu

    def evaluate(self, x, u, t):
        return np.zeros(self._nx)

    def linearize(self, x, u=None, t=0.0):
        return np.zeros((self._nx, self._nx)), np.zeros((self._nx, self._nu))
