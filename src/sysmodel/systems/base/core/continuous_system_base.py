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
Continuous System Base Class
============================

Abstract base class for all continuous-time dynamical systems
dx/dt = f(x, u, t).
"""

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Optional

import numpy as np

from sysmodel.types.core import ControlVector, ScalarLike, StateVector
from sysmodel.types.linearization import DeterministicLinearization
from sysmodel.types.utilities import as_vector

if TYPE_CHECKING:
    from sysmodel.controllers.controller_base import ControllerBase


class ContinuousSystemBase(ABC):
    """
    Abstract base class for all continuous-time dynamical systems.

    This class defines the fundamental interface that all continuous-time
    systems must implement. All continuous-time systems satisfy:
        dx/dt = f(x, u, t)

    Subclasses must implement:
    1. nx, nu: State and control dimensions
    2. evaluate(x, u, t): Evaluate dynamics at a point

    Subclasses may implement:
    - linearize(x, u, t): Analytic Jacobians (A, B). Systems without it are
      linearized by finite differences (see LinearizationEngine).

    A system can be bound to a control source with ``set_controller``; the
    closed loop dx/dt = f(x, π(x, t), t) is then available via
    ``closed_loop``. Integrators and system models do not rely on the bound
    controller: they receive the control source explicitly.

    Examples
    --------
    >>> class Decay(ContinuousSystemBase):
    ...     nx, nu = 1, 1
    ...     def evaluate(self, x, u, t):
    ...         return -x + u
    >>>
    >>> system = Decay()
    >>> system(np.array([1.0]), np.array([0.5]))
    array([-0.5])
    """

    _controller: Optional["ControllerBase"] = None

    # =========================================================================
    # Abstract Interface
    # =========================================================================

    @property
    @abstractmethod
    def nx(self) -> int:
        """State dimension."""

    @property
    @abstractmethod
    def nu(self) -> int:
        """Control dimension (0 for autonomous systems)."""

    @abstractmethod
    def evaluate(self, x: StateVector, u: ControlVector, t: ScalarLike) -> StateVector:
        """
        Evaluate continuous-time dynamics: dx/dt = f(x, u, t).

        Parameters
        ----------
        x : StateVector
            Current state (nx,)
        u : ControlVector
            Control input (nu,); an empty array for autonomous systems
        t : float
            Current time (ignored by time-invariant systems)

        Returns
        -------
        StateVector
            Time derivative dx/dt, shape (nx,)
        """

    # =========================================================================
    # Concrete Methods
    # =========================================================================

    def __call__(
        self,
        x: StateVector,
        u: Optional[ControlVector] = None,
        t: ScalarLike = 0.0,
    ) -> StateVector:
        """
        Evaluate dynamics with input coercion.

        ``u=None`` is accepted for autonomous systems and becomes an empty
        control vector.

        Examples
        --------
        >>> dxdt = system(x, u)
        >>> dxdt = autonomous_system(x)  # u=None
        """
        x_np = as_vector(x)
        u_np = as_vector(u, 0)
        if u is None and self.nu > 0:
            raise ValueError(
                f"Non-autonomous system requires control input u. "
                f"System has {self.nu} control input(s)."
            )
        return np.asarray(self.evaluate(x_np, u_np, float(t)), dtype=float).reshape(-1)

    @property
    def has_analytic_jacobian(self) -> bool:
        """True when the subclass overrides ``linearize``."""
        return type(self).linearize is not ContinuousSystemBase.linearize

    def linearize(
        self,
        x: StateVector,
        u: Optional[ControlVector] = None,
        t: ScalarLike = 0.0,
    ) -> DeterministicLinearization:
        """
        Compute continuous Jacobians A = ∂f/∂x, B = ∂f/∂u at (x, u, t).

        The base class has no analytic Jacobians; use a LinearizationEngine
        with method='central' or 'forward' for such systems.

        Raises
        ------
        NotImplementedError
            Always, unless overridden.
        """
        raise NotImplementedError(
            f"{self.__class__.__name__} does not provide analytic Jacobians. "
            f"Use LinearizationEngine(method='central') instead."
        )

    # =========================================================================
    # Controller Binding
    # =========================================================================

    def set_controller(self, controller: Optional["ControllerBase"]) -> None:
        """
        Bind a control source (or unbind with None).

        Raises
        ------
        ValueError
            If the controller's dimension does not match ``nu``
        """
        if controller is not None and controller.nu != self.nu:
            raise ValueError(
                f"Controller dimension {controller.nu} does not match system nu={self.nu}"
            )
        self._controller = controller

    @property
    def controller(self) -> Optional["ControllerBase"]:
        """The bound controller, or None."""
        return self._controller

    def closed_loop(self, x: StateVector, t: ScalarLike = 0.0) -> StateVector:
        """
        Evaluate dx/dt = f(x, π(x, t), t) with the bound controller.

        Raises
        ------
        RuntimeError
            If no controller is bound to a non-autonomous system
        """
        if self._controller is None:
            if self.nu > 0:
                raise RuntimeError(
                    f"{self.__class__.__name__} has no bound controller. "
                    f"Call set_controller() first."
                )
            return self(x, None, t)
        x_np = as_vector(x)
        return self(x_np, self._controller.compute_control(x_np, t), t)

    # =========================================================================
    # Properties
    # =========================================================================

    @property
    def is_continuous(self) -> bool:
        return True

    @property
    def is_discrete(self) -> bool:
        return False

    @property
    def is_autonomous(self) -> bool:
        return self.nu == 0

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(nx={self.nx}, nu={self.nu})"


class FunctionalSystem(ContinuousSystemBase):
    """
    Continuous-time system defined by plain callables.

    Parameters
    ----------
    f : Callable[[x, u, t], dx/dt]
        Dynamics function
    nx, nu : int
        State and control dimensions
    jacobian : Optional[Callable[[x, u, t], (A, B)]]
        Analytic Jacobians; when omitted the system is linearized numerically
    name : Optional[str]
        Display name

    Examples
    --------
    >>> system = FunctionalSystem(
    ...     lambda x, u, t: np.array([x[1], u[0]]),
    ...     nx=2, nu=1,
    ...     name="double_integrator",
    ... )
    >>> system(np.zeros(2), np.array([1.0]))
    array([0., 1.])
    """

    def __init__(self, f, nx: int, nu: int, jacobian=None, name: Optional[str] = None):
        if nx <= 0:
            raise ValueError(f"State dimension must be positive, got nx={nx}")
        if nu < 0:
            raise ValueError(f"Control dimension must be non-negative, got nu={nu}")
        self._f = f
        self._nx = int(nx)
        self._nu = int(nu)
        self._jacobian = jacobian
        self.name = name or "FunctionalSystem"

    @property
    def nx(self) -> int:
        return self._nx

    @property
    def nu(self) -> int:
        return self._nu

    def evaluate(self, x, u, t):
        return self._f(x, u, t)

    @property
    def has_analytic_jacobian(self) -> bool:
        return self._jacobian is not None

    def linearize(self, x, u=None, t=0.0):
        if self._jacobian is None:
            return super().linearize(x, u, t)
        A, B = self._jacobian(as_vector(x), as_vector(u, 0), float(t))
        return (
            np.asarray(A, dtype=float).reshape(self.nx, self.nx),
            np.asarray(B, dtype=float).reshape(self.nx, self.nu),
        )

    def __repr__(self) -> str:
        return f"FunctionalSystem({self.name!r}, nx={self.nx}, nu={self.nu})"
