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
Controller Base - Abstract Interface for Control Laws

A controller maps (state, time) to a control vector. Controllers plug into
integrators as the ``u_func`` argument, which uses the (t, x) argument
order of scipy's ODE right-hand sides; ``__call__`` adapts between the two.
"""

from abc import ABC, abstractmethod

from sysmodel.types.core import ControlVector, ScalarLike, StateVector


class ControllerBase(ABC):
    """
    Abstract base class for control laws u = π(x, t).

    Subclasses must implement:
    - nu: Control dimension
    - compute_control(x, t): Evaluate the control law

    Examples
    --------
    >>> class ZeroController(ControllerBase):
    ...     nu = 1
    ...     def compute_control(self, x, t):
    ...         return np.zeros(1)
    >>>
    >>> result = integrator.integrate(x0, u_func=ZeroController(), t_span=(0.0, 1.0))
    """

    @property
    @abstractmethod
    def nu(self) -> int:
        """Control dimension."""

    @abstractmethod
    def compute_control(self, x: StateVector, t: ScalarLike) -> ControlVector:
        """
        Evaluate the control law.

        Parameters
        ----------
        x : StateVector
            Current state (nx,)
        t : float
            Current time

        Returns
        -------
        ControlVector
            Control input (nu,)
        """

    def __call__(self, t: ScalarLike, x: StateVector) -> ControlVector:
        """Integrator ``u_func`` signature: (t, x) → u."""
        return self.compute_control(x, t)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(nu={self.nu})"
