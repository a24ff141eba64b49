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
Structural Subtyping Protocols for sysmodel
===========================================

Protocol classes describing the capability sets the system-model adapter
consumes and exposes. Any object with the right methods satisfies a
protocol; no common base class is required.

Consumed
--------
- DynamicalSystemProtocol: {nx, nu, evaluate(x, u, t)}
- LinearizableSystemProtocol: adds linearize(x, u, t) -> (A, B)
- ControllerProtocol: {nu, compute_control(x, t)}
- IntegratorProtocol: {integrate(x0, u_func, t_span, t_eval)}
- SensitivityProtocol: {scheme, get_state_jacobian(system, x, u, t, dt)}

Exposed
-------
- SystemModelProtocol: the estimator-facing trio
  compute_dynamics / compute_derivative_state / compute_derivative_noise

Examples
--------
>>> from sysmodel.types.protocols import SystemModelProtocol
>>>
>>> def predict_mean(model: SystemModelProtocol, x, u, t):
...     return model.compute_dynamics(x, u, t)
>>>
>>> isinstance(model, SystemModelProtocol)  # runtime_checkable
True
"""

from typing import TYPE_CHECKING, Callable, Optional, Protocol, runtime_checkable

from .core import ControlVector, NoiseJacobian, ScalarLike, StateMatrix, StateVector
from .linearization import DeterministicLinearization, DiscreteLinearization
from .trajectories import IntegrationResult, TimePoints, TimeSpan

if TYPE_CHECKING:
    from sysmodel.systems.base.discretization.discretization_scheme import (
        DiscretizationScheme,
    )


@runtime_checkable
class DynamicalSystemProtocol(Protocol):
    """
    A state-evolution rule parameterized by a control input.

    ``evaluate`` returns dx/dt for continuous-time systems and x[k+1] for
    discrete-time systems.
    """

    @property
    def nx(self) -> int:
        """State dimension."""
        ...

    @property
    def nu(self) -> int:
        """Control dimension."""
        ...

    def evaluate(self, x: StateVector, u: ControlVector, t: ScalarLike) -> StateVector:
        ...


@runtime_checkable
class LinearizableSystemProtocol(DynamicalSystemProtocol, Protocol):
    """Dynamical system that supplies its own Jacobians (A, B)."""

    def linearize(
        self, x: StateVector, u: ControlVector, t: ScalarLike = 0.0
    ) -> DeterministicLinearization:
        ...


@runtime_checkable
class ControllerProtocol(Protocol):
    """Control law u = π(x, t)."""

    @property
    def nu(self) -> int:
        ...

    def compute_control(self, x: StateVector, t: ScalarLike) -> ControlVector:
        ...


@runtime_checkable
class IntegratorProtocol(Protocol):
    """Numerical integrator bound to one system."""

    def integrate(
        self,
        x0: StateVector,
        u_func: Callable[[ScalarLike, StateVector], Optional[ControlVector]],
        t_span: TimeSpan,
        t_eval: Optional[TimePoints] = None,
    ) -> IntegrationResult:
        ...


@runtime_checkable
class SensitivityProtocol(Protocol):
    """
    Linearization engine for the discrete-time transition map.

    The engine's discretization must be the one the integrator uses; it is
    enforced by sharing one DiscretizationScheme between both.
    """

    scheme: Optional["DiscretizationScheme"]

    def get_state_jacobian(
        self,
        system: DynamicalSystemProtocol,
        x: StateVector,
        u: ControlVector,
        t: ScalarLike = 0.0,
        dt: Optional[ScalarLike] = None,
    ) -> StateMatrix:
        ...

    def get_jacobians(
        self,
        system: DynamicalSystemProtocol,
        x: StateVector,
        u: ControlVector,
        t: ScalarLike = 0.0,
        dt: Optional[ScalarLike] = None,
    ) -> DiscreteLinearization:
        ...


@runtime_checkable
class SystemModelProtocol(Protocol):
    """Estimator-facing system model (prediction-step interface)."""

    def compute_dynamics(self, x: StateVector, u: ControlVector, t: ScalarLike) -> StateVector:
        ...

    def compute_derivative_state(
        self, x: StateVector, u: ControlVector, t: ScalarLike
    ) -> StateMatrix:
        ...

    def compute_derivative_noise(
        self, x: StateVector, u: ControlVector, t: ScalarLike
    ) -> NoiseJacobian:
        ...


__all__ = [
    "DynamicalSystemProtocol",
    "LinearizableSystemProtocol",
    "ControllerProtocol",
    "IntegratorProtocol",
    "SensitivityProtocol",
    "SystemModelProtocol",
]
