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
Discrete System Base Class
==========================

Abstract base class for discrete-time systems x[k+1] = f(x[k], u[k], k),
i.e. systems whose evaluation already returns the next state and need no
integrator.
"""

from abc import ABC, abstractmethod
from typing import Optional

import numpy as np

from sysmodel.types.core import ArrayLike, ControlVector, ScalarLike, StateVector
from sysmodel.types.linearization import DiscreteLinearization
from sysmodel.types.utilities import as_vector


class DiscreteSystemBase(ABC):
    """
    Abstract base class for discrete-time dynamical systems.

    Subclasses must implement:
    1. nx, nu: State and control dimensions
    2. evaluate(x, u, k): Next state x[k+1]
    3. linearize(x, u, k): (Ad, Bd) = (∂f/∂x, ∂f/∂u)

    Examples
    --------
    >>> system = DiscreteLinearSystem(Ad=np.eye(2), Bd=np.array([[0.0], [0.1]]))
    >>> system(np.zeros(2), np.array([1.0]))
    array([0. , 0.1])
    """

    @property
    @abstractmethod
    def nx(self) -> int:
        """State dimension."""

    @property
    @abstractmethod
    def nu(self) -> int:
        """Control dimension."""

    @abstractmethod
    def evaluate(self, x: StateVector, u: ControlVector, k: ScalarLike) -> StateVector:
        """Compute the next state x[k+1] = f(x[k], u[k], k)."""

    @abstractmethod
    def linearize(
        self, x: StateVector, u: Optional[ControlVector] = None, k: ScalarLike = 0
    ) -> DiscreteLinearization:
        """Jacobians (Ad, Bd) of the transition map at (x, u, k)."""

    def __call__(
        self, x: StateVector, u: Optional[ControlVector] = None, k: ScalarLike = 0
    ) -> StateVector:
        return np.asarray(
            self.evaluate(as_vector(x), as_vector(u, 0), k), dtype=float
        ).reshape(-1)

    @property
    def is_continuous(self) -> bool:
        return False

    @property
    def is_discrete(self) -> bool:
        return True

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(nx={self.nx}, nu={self.nu})"


class DiscreteLinearSystem(DiscreteSystemBase):
    """
    Linear time-invariant discrete system x[k+1] = Ad x[k] + Bd u[k].

    Parameters
    ----------
    Ad : ArrayLike
        State transition matrix (nx, nx)
    Bd : Optional[ArrayLike]
        Input matrix (nx, nu); omitted for autonomous systems
    """

    def __init__(self, Ad: ArrayLike, Bd: Optional[ArrayLike] = None):
        Ad = np.atleast_2d(np.asarray(Ad, dtype=float))
        if Ad.shape[0] != Ad.shape[1]:
            raise ValueError(f"Ad must be square, got shape {Ad.shape}")
        if Bd is None:
            Bd = np.zeros((Ad.shape[0], 0))
        Bd = np.asarray(Bd, dtype=float)
        if Bd.ndim == 1:
            Bd = Bd.reshape(-1, 1)
        if Bd.shape[0] != Ad.shape[0]:
            raise ValueError(f"Bd must have {Ad.shape[0]} rows, got shape {Bd.shape}")

        self.Ad = Ad
        self.Bd = Bd

    @property
    def nx(self) -> int:
        return self.Ad.shape[0]

    @property
    def nu(self) -> int:
        return self.Bd.shape[1]

    def evaluate(self, x, u, k):
        return self.Ad @ x + self.Bd @ u

    def linearize(self, x, u=None, k=0):
        return self.Ad.copy(), self.Bd.copy()
