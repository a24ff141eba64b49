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
System Models for Recursive Estimators
======================================

A system model is what a discrete-time recursive estimator (e.g. an
Extended Kalman Filter) calls in every prediction step:

    x̂[k+1|k] = compute_dynamics(x̂[k|k], u[k], t_k)            [mean]
    A[k]      = compute_derivative_state(x̂[k|k], u[k], t_k)    [∂x_next/∂x]
    G         = compute_derivative_noise(x̂[k|k], u[k], t_k)    [noise map]
    P[k+1|k]  = A P A^T + G Q G^T                              [estimator's job]

The estimator never sees how the dynamics are represented.

ContinuousSystemModel
    Wraps a continuous-time system. The mean is propagated by numerical
    integration over dt; the state Jacobian comes from a sensitivity engine.
    Both are derived from ONE DiscretizationScheme (dt, substeps, method),
    so the linearization always describes the map that propagated the mean.
DiscreteSystemModel
    Wraps a system that already evaluates the next state.

Control handling
----------------
Each model owns a private ConstantController created at construction. Every
call overwrites its control with the caller's u before any evaluation, and
the controller is handed to the integrator as the control source for that
call. Nothing is written into the system's own controller slot.

Ownership and threading
-----------------------
A model instance is not reentrant: compute_dynamics and
compute_derivative_state both overwrite the private controller. Each
estimator must own its own model. The wrapped system is borrowed: the model
does not mutate it, but a system with internal state of its own must not be
shared between concurrently running models without external locking.

Errors
------
- DimensionMismatchError: x or u has the wrong length (checked first)
- IntegrationError: propagation failed (from the integrator, unchanged)
- LinearizationError: the sensitivity engine failed (unchanged)
- ConfigurationError: bad dt, substeps, method or noise Jacobian, raised
  at construction
"""

import time
import warnings
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional, Union

import numpy as np

from sysmodel.controllers.constant_controller import ConstantController
from sysmodel.exceptions import ConfigurationError, DimensionMismatchError
from sysmodel.systems.base.core.continuous_system_base import ContinuousSystemBase
from sysmodel.systems.base.core.discrete_system_base import DiscreteSystemBase
from sysmodel.systems.base.discretization.discretization_scheme import DiscretizationScheme
from sysmodel.systems.base.discretization.sensitivity import (
    FiniteDifferenceSensitivity,
    IntegratorSensitivity,
)
from sysmodel.systems.base.numerical_integration.integrator_base import IntegratorBase
from sysmodel.types.backends import IntegrationMethod
from sysmodel.types.core import (
    ArrayLike,
    ControlMatrix,
    ControlVector,
    NoiseJacobian,
    ScalarLike,
    StateMatrix,
    StateVector,
)
from sysmodel.types.protocols import SensitivityProtocol
from sysmodel.types.utilities import as_vector


class SystemModelBase(ABC):
    """
    Shared plumbing for system models: dimensions, the private control
    holder, the noise Jacobian and call statistics.

    Parameters
    ----------
    system : ContinuousSystemBase or DiscreteSystemBase
        Wrapped system (borrowed, see module docstring)
    noise_jacobian : Optional[ArrayLike]
        Constant (nx, nx) process-noise Jacobian. Defaults to identity.

    Raises
    ------
    ConfigurationError
        If the noise Jacobian is not (nx, nx) or has non-finite entries
    """

    def __init__(
        self,
        system: Union[ContinuousSystemBase, DiscreteSystemBase],
        noise_jacobian: Optional[ArrayLike] = None,
    ):
        self.system = system
        self._controller = ConstantController(nu=system.nu)
        self._noise_jacobian = self._validate_noise_jacobian(noise_jacobian)

        self._last_state_jacobian: Optional[StateMatrix] = None
        self._last_control_jacobian: Optional[ControlMatrix] = None

        self._stats = {
            "dynamics_calls": 0,
            "jacobian_calls": 0,
            "noise_calls": 0,
            "dynamics_time": 0.0,
            "jacobian_time": 0.0,
        }

    # ========================================================================
    # Dimensions and Validation
    # ========================================================================

    @property
    def nx(self) -> int:
        return self.system.nx

    @property
    def nu(self) -> int:
        return self.system.nu

    @property
    def controller(self) -> ConstantController:
        """The private fixed-input controller (holds the most recent u)."""
        return self._controller

    def _validate_inputs(self, x: StateVector, u: Optional[ControlVector]):
        x = as_vector(x)
        if x.shape[0] != self.nx:
            raise DimensionMismatchError("state", self.nx, x.shape[0])

        if u is None and self.nu > 0:
            raise DimensionMismatchError("control", self.nu, 0)
        u = as_vector(u, 0)
        if u.shape[0] != self.nu:
            raise DimensionMismatchError("control", self.nu, u.shape[0])

        return x, u

    def _validate_noise_jacobian(self, noise_jacobian: Optional[ArrayLike]) -> NoiseJacobian:
        if noise_jacobian is None:
            G = np.eye(self.nx)
        else:
            try:
                G = np.array(noise_jacobian, dtype=float)
            except (TypeError, ValueError) as e:
                raise ConfigurationError(f"Noise Jacobian is not numeric: {e}") from e

        if G.shape != (self.nx, self.nx):
            raise ConfigurationError(
                f"Noise Jacobian must have shape {(self.nx, self.nx)}, got {G.shape}"
            )
        if not np.all(np.isfinite(G)):
            raise ConfigurationError("Noise Jacobian contains non-finite entries")

        if np.linalg.matrix_rank(G) < self.nx:
            warnings.warn(
                f"Noise Jacobian has rank {np.linalg.matrix_rank(G)} < nx={self.nx}; "
                f"some state directions receive no process noise.",
                UserWarning,
            )

        G.setflags(write=False)
        return G

    # ========================================================================
    # Estimator Interface
    # ========================================================================

    @abstractmethod
    def compute_dynamics(
        self, x: StateVector, u: Optional[ControlVector], t: ScalarLike = 0.0
    ) -> StateVector:
        """Next state x(t + dt) from x(t) under the control u."""

    @abstractmethod
    def compute_derivative_state(
        self, x: StateVector, u: Optional[ControlVector], t: ScalarLike = 0.0
    ) -> StateMatrix:
        """State Jacobian ∂x(t + dt)/∂x(t), shape (nx, nx)."""

    def compute_derivative_control(
        self, x: StateVector, u: Optional[ControlVector], t: ScalarLike = 0.0
    ) -> ControlMatrix:
        """
        Control Jacobian ∂x(t + dt)/∂u, shape (nx, nu).

        Computed together with the state Jacobian; both are cached.
        """
        self.compute_derivative_state(x, u, t)
        return self._last_control_jacobian

    def compute_derivative_noise(
        self,
        x: Optional[StateVector] = None,
        u: Optional[ControlVector] = None,
        t: Optional[ScalarLike] = None,
    ) -> NoiseJacobian:
        """
        Return the configured noise Jacobian; all arguments are ignored.

        The process noise is modelled as additive and state-independent. A
        state-dependent noise model needs a model that recomputes the
        Jacobian per call.

        Returns
        -------
        NoiseJacobian
            The read-only (nx, nx) matrix given at construction (or by the
            last ``set_noise_jacobian``)
        """
        self._stats["noise_calls"] += 1
        return self._noise_jacobian

    def set_noise_jacobian(self, noise_jacobian: ArrayLike) -> None:
        """
        Replace the noise Jacobian.

        Raises
        ------
        ConfigurationError
            Same checks as at construction
        """
        self._noise_jacobian = self._validate_noise_jacobian(noise_jacobian)

    @property
    def last_state_jacobian(self) -> Optional[StateMatrix]:
        """State Jacobian from the most recent call, or None."""
        return self._last_state_jacobian

    @property
    def last_control_jacobian(self) -> Optional[ControlMatrix]:
        """Control Jacobian from the most recent call, or None."""
        return self._last_control_jacobian

    # ========================================================================
    # Statistics
    # ========================================================================

    def get_stats(self) -> Dict[str, Any]:
        """
        Get call statistics.

        Returns
        -------
        dict
            dynamics_calls, jacobian_calls, noise_calls, dynamics_time,
            jacobian_time, avg_dynamics_time, avg_jacobian_time
        """
        stats = dict(self._stats)
        stats["avg_dynamics_time"] = self._stats["dynamics_time"] / max(
            1, self._stats["dynamics_calls"]
        )
        stats["avg_jacobian_time"] = self._stats["jacobian_time"] / max(
            1, self._stats["jacobian_calls"]
        )
        return stats

    def reset_stats(self):
        for key in self._stats:
            self._stats[key] = 0 if key.endswith("_calls") else 0.0


class ContinuousSystemModel(SystemModelBase):
    """
    System model for a continuous-time system sampled every dt.

    Parameters
    ----------
    system : ContinuousSystemBase
        Continuous-time system dx/dt = f(x, u, t)
    sensitivity : Optional[SensitivityProtocol]
        Engine for the discrete state Jacobian. It is bound to this model's
        discretization scheme. None selects IntegratorSensitivity for
        fixed-step methods and FiniteDifferenceSensitivity otherwise.
    dt : float
        Sampling interval (prediction step), > 0. Required.
    num_substeps : int
        Equal sub-intervals per step (0 = integrator default)
    noise_jacobian : Optional[ArrayLike]
        Constant (nx, nx) noise Jacobian (default: identity)
    method : str
        Integration method (default 'rk4')
    **integrator_options
        Integrator options (rtol, atol, max_steps, max_step, first_step).
        They become part of the discretization scheme, so the propagated
        state and every sensitivity engine integrate with the same ones.

    Raises
    ------
    ConfigurationError
        Bad dt, substeps, method, integrator option or noise Jacobian; a
        sensitivity engine already bound to a different scheme; a
        discrete-time system

    Examples
    --------
    >>> system = DoubleIntegrator()
    >>> model = ContinuousSystemModel(
    ...     system, IntegratorSensitivity(), dt=0.1, num_substeps=5
    ... )
    >>> model.compute_dynamics([0.0, 0.0], [1.0], 0.0)
    array([0.005, 0.1  ])
    >>> model.compute_derivative_state([0.0, 0.0], [1.0], 0.0)
    array([[1. , 0.1],
           [0. , 1. ]])
    >>> model.compute_derivative_noise()
    array([[1., 0.],
           [0., 1.]])
    """

    def __init__(
        self,
        system: ContinuousSystemBase,
        sensitivity: Optional[SensitivityProtocol] = None,
        dt: Optional[ScalarLike] = None,
        num_substeps: int = 0,
        noise_jacobian: Optional[ArrayLike] = None,
        method: IntegrationMethod = "rk4",
        **integrator_options,
    ):
        if isinstance(system, DiscreteSystemBase) or getattr(system, "is_discrete", False):
            raise ConfigurationError(
                f"{system.__class__.__name__} is discrete-time; use DiscreteSystemModel"
            )

        self._scheme = DiscretizationScheme(
            dt=dt, num_substeps=num_substeps, method=method, options=integrator_options
        )
        super().__init__(system, noise_jacobian)

        self._integrator = self._scheme.create_integrator(system)

        if sensitivity is None:
            if self._scheme.is_fixed_step:
                sensitivity = IntegratorSensitivity()
            else:
                sensitivity = FiniteDifferenceSensitivity()
        self._sensitivity = sensitivity
        self._bind_sensitivity(sensitivity)

    def _bind_sensitivity(self, sensitivity: SensitivityProtocol) -> None:
        if not isinstance(sensitivity, SensitivityProtocol):
            raise ConfigurationError(
                f"{type(sensitivity).__name__} does not provide get_state_jacobian/get_jacobians"
            )
        bind = getattr(sensitivity, "bind_scheme", None)
        if bind is not None:
            bind(self._scheme)
        elif sensitivity.scheme != self._scheme:
            raise ConfigurationError(
                f"Sensitivity engine uses {sensitivity.scheme}, model uses {self._scheme}"
            )

    # ========================================================================
    # Configuration
    # ========================================================================

    @property
    def scheme(self) -> DiscretizationScheme:
        """Discretization shared by propagation and linearization."""
        return self._scheme

    @property
    def dt(self) -> float:
        return self._scheme.dt

    @property
    def num_substeps(self) -> int:
        return self._scheme.num_substeps

    @property
    def integrator(self) -> IntegratorBase:
        return self._integrator

    @property
    def sensitivity(self) -> SensitivityProtocol:
        return self._sensitivity

    # ========================================================================
    # Estimator Interface
    # ========================================================================

    def compute_dynamics(
        self, x: StateVector, u: Optional[ControlVector], t: ScalarLike = 0.0
    ) -> StateVector:
        """
        Propagate x from t to t + dt under the constant control u.

        Parameters
        ----------
        x : StateVector
            State at time t (nx,)
        u : Optional[ControlVector]
            Control held over the step (nu,); None only when nu == 0
        t : float
            Start of the step

        Returns
        -------
        StateVector
            State at t + dt, shape (nx,)

        Raises
        ------
        DimensionMismatchError
            If x or u has the wrong length
        IntegrationError
            If the integrator fails (non-finite state, solver failure,
            exceeded step budget)
        """
        start_time = time.time()

        x, u = self._validate_inputs(x, u)
        self._controller.set_control(u)

        result = self._scheme.propagate(self._integrator, x, self._controller, t)
        x_next = np.array(result["x"][-1], dtype=float)

        self._stats["dynamics_calls"] += 1
        self._stats["dynamics_time"] += time.time() - start_time

        return x_next

    def compute_derivative_state(
        self, x: StateVector, u: Optional[ControlVector], t: ScalarLike = 0.0
    ) -> StateMatrix:
        """
        State Jacobian of the same discrete map compute_dynamics evaluates.

        The control Jacobian is computed alongside and cached in
        ``last_control_jacobian``.

        Raises
        ------
        DimensionMismatchError
            If x or u has the wrong length
        LinearizationError
            If the sensitivity engine fails
        """
        start_time = time.time()

        x, u = self._validate_inputs(x, u)
        self._controller.set_control(u)

        Ad, Bd = self._sensitivity.get_jacobians(
            self.system, x, self._controller.get_control(), t
        )
        self._last_state_jacobian = Ad
        self._last_control_jacobian = Bd

        self._stats["jacobian_calls"] += 1
        self._stats["jacobian_time"] += time.time() - start_time

        return Ad

    # ========================================================================
    # Information
    # ========================================================================

    def get_info(self) -> Dict[str, Any]:
        """
        Get model configuration.

        Examples
        --------
        >>> info = model.get_info()
        >>> info['dt'], info['num_substeps'], info['method']
        (0.1, 5, 'rk4')
        """
        return {
            "system": self.system.__class__.__name__,
            "dt": self._scheme.dt,
            "num_substeps": self._scheme.num_substeps,
            "method": self._scheme.method,
            "integrator": self._integrator.name,
            "sensitivity": self._sensitivity.__class__.__name__,
            "dimensions": {"nx": self.nx, "nu": self.nu},
            "is_autonomous": self.nu == 0,
        }

    def __repr__(self) -> str:
        return (
            f"ContinuousSystemModel({self.system.__class__.__name__}, dt={self._scheme.dt}, "
            f"num_substeps={self._scheme.num_substeps}, method={self._scheme.method}, "
            f"sensitivity={self._sensitivity.__class__.__name__})"
        )


class DiscreteSystemModel(SystemModelBase):
    """
    System model for a system that already evaluates the next state.

    ``t`` is passed to the system as its step index / time argument. The
    state Jacobian comes from ``system.linearize``.

    Examples
    --------
    >>> system = DiscreteLinearSystem(Ad=[[1.0, 0.1], [0.0, 1.0]], Bd=[[0.005], [0.1]])
    >>> model = DiscreteSystemModel(system)
    >>> model.compute_dynamics([0.0, 0.0], [1.0], 0)
    array([0.005, 0.1  ])
    """

    def __init__(self, system: DiscreteSystemBase, noise_jacobian: Optional[ArrayLike] = None):
        if not getattr(system, "is_discrete", False):
            raise ConfigurationError(
                f"{system.__class__.__name__} is not discrete-time; use ContinuousSystemModel"
            )
        super().__init__(system, noise_jacobian)

    def compute_dynamics(self, x, u, t=0):
        start_time = time.time()

        x, u = self._validate_inputs(x, u)
        self._controller.set_control(u)
        x_next = self.system(x, self._controller.get_control(), t)

        self._stats["dynamics_calls"] += 1
        self._stats["dynamics_time"] += time.time() - start_time
        return x_next

    def compute_derivative_state(self, x, u, t=0):
        start_time = time.time()

        x, u = self._validate_inputs(x, u)
        self._controller.set_control(u)
        Ad, Bd = self.system.linearize(x, self._controller.get_control(), t)
        self._last_state_jacobian = np.asarray(Ad, dtype=float)
        self._last_control_jacobian = np.asarray(Bd, dtype=float)

        self._stats["jacobian_calls"] += 1
        self._stats["jacobian_time"] += time.time() - start_time
        return self._last_state_jacobian

    def __repr__(self) -> str:
        return f"DiscreteSystemModel({self.system.__class__.__name__}, nx={self.nx}, nu={self.nu})"
