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
Fixed-Step Integrators

Implements classic fixed time-step integration methods:
- Explicit Euler (1st order)
- Midpoint/RK2 (2nd order)
- Heun (2nd order, explicit trapezoidal)
- RK4 (4th order)

Besides stepping, every method provides ``step_jacobian``: the exact
Jacobian (Ad, Bd) of its own one-step map, obtained by applying the chain
rule through the stages. A sensitivity computed this way is consistent with
the propagated mean by construction, because it differentiates the very
update that ``step`` performs.

Supports both controlled and autonomous systems (nu=0).
"""

import time
from abc import abstractmethod
from typing import TYPE_CHECKING, Callable, Optional

import numpy as np

from sysmodel.exceptions import IntegrationError
from sysmodel.systems.base.numerical_integration.integrator_base import (
    ControlSource,
    IntegratorBase,
    StepMode,
)
from sysmodel.types.core import ControlVector, ScalarLike, StateVector
from sysmodel.types.linearization import DeterministicLinearization, DiscreteLinearization
from sysmodel.types.trajectories import IntegrationResult, TimePoints, TimeSpan
from sysmodel.types.utilities import as_vector

if TYPE_CHECKING:
    from sysmodel.systems.base.core.continuous_system_base import ContinuousSystemBase

JacobianFunction = Callable[[StateVector, ControlVector, float], DeterministicLinearization]
"""(x, u, t) → (A, B) continuous Jacobians, e.g. LinearizationEngine.bind(system)."""


class FixedStepIntegratorBase(IntegratorBase):
    """
    Shared integration loop for the manual fixed-step methods.

    Subclasses implement ``step`` and ``step_jacobian``.
    """

    def __init__(self, system: "ContinuousSystemBase", dt: ScalarLike, **options):
        super().__init__(system, dt, StepMode.FIXED, **options)

    def time_grid(self, t_span: TimeSpan) -> np.ndarray:
        """Uniform grid t0, t0 + dt, ..., tf (last interval may be shorter)."""
        t0, tf = t_span
        num_steps = max(1, int(np.ceil((tf - t0) / self.dt - 1e-9)))
        grid = t0 + self.dt * np.arange(num_steps + 1)
        grid[-1] = tf
        return grid

    def integrate(
        self,
        x0: StateVector,
        u_func: ControlSource,
        t_span: TimeSpan,
        t_eval: Optional[TimePoints] = None,
    ) -> IntegrationResult:
        """
        Step from each grid point to the next.

        The control is sampled from u_func once at the start of every step
        and held over it (zero-order hold). Without t_eval the grid is
        uniform with spacing dt, the last step shortened to land on t_end.

        Returns
        -------
        IntegrationResult
            t (T,), x (T, nx), nfev, nsteps, integration_time, solver

        Raises
        ------
        IntegrationError
            If the grid needs more than max_steps steps or the state diverges

        Examples
        --------
        >>> grid = np.linspace(0.0, 0.1, 6)
        >>> result = integrator.integrate(x0, controller, (0.0, 0.1), t_eval=grid)
        >>> result["nsteps"]
        5
        """
        start_time = time.time()
        fev_before = self._stats["total_fev"]

        if t_eval is None:
            t_points = self.time_grid(t_span)
        else:
            t_points = np.asarray(t_eval, dtype=float)

        num_steps = len(t_points) - 1
        if num_steps > self.max_steps:
            raise IntegrationError(
                f"{self.name}: {num_steps} steps requested, exceeding max_steps={self.max_steps}"
            )

        x = as_vector(x0)
        self._check_finite(x, t_points[0])
        trajectory = [x]

        for i in range(num_steps):
            t = float(t_points[i])
            dt_step = float(t_points[i + 1] - t_points[i])

            # None for autonomous systems
            u = u_func(t, x)

            x = self.step(x, u, dt=dt_step, t=t)
            self._check_finite(x, t_points[i + 1])
            trajectory.append(x)

        elapsed = time.time() - start_time
        self._stats["total_time"] += elapsed

        result: IntegrationResult = {
            "t": t_points,
            "x": np.stack(trajectory),
            "success": True,
            "message": f"{self.name} integration completed",
            "nfev": self._stats["total_fev"] - fev_before,
            "nsteps": num_steps,
            "integration_time": elapsed,
            "solver": self.name,
        }

        return result

    @abstractmethod
    def step_jacobian(
        self,
        x: StateVector,
        u: Optional[ControlVector],
        dt: Optional[ScalarLike],
        t: ScalarLike,
        jacobian_fn: JacobianFunction,
    ) -> DiscreteLinearization:
        """
        Jacobians of one step map: Ad = ∂x_next/∂x, Bd = ∂x_next/∂u.

        Parameters
        ----------
        x, u, dt, t :
            Same as ``step``
        jacobian_fn : Callable[[x, u, t], (A, B)]
            Continuous Jacobians of the system

        Returns
        -------
        (Ad, Bd) : shapes (nx, nx), (nx, nu)
        """

    def _control(self, u: Optional[ControlVector]) -> ControlVector:
        return as_vector(u, 0)


class ExplicitEulerIntegrator(FixedStepIntegratorBase):
    """
    Explicit Euler integrator (Forward Euler).

    First-order method: x_{k+1} = x_k + dt * f(x_k, u_k, t_k)

    Characteristics:
    - Order: 1 (error ∝ dt)
    - Stability: Conditionally stable (small dt required)
    - Performance: Fastest per step, but needs many steps

    Examples
    --------
    >>> integrator = ExplicitEulerIntegrator(system, dt=0.01)
    >>> x_next = integrator.step(x, u)
    """

    def step(self, x, u=None, dt=None, t=0.0):
        dt = dt if dt is not None else self.dt

        dx = self._evaluate_dynamics(x, u, t)
        x_next = x + dt * dx

        self._stats["total_steps"] += 1

        return x_next

    def step_jacobian(self, x, u, dt, t, jacobian_fn):
        """Ad = I + dt*A(x), Bd = dt*B(x)."""
        dt = dt if dt is not None else self.dt
        A, B = jacobian_fn(x, self._control(u), t)

        Ad = np.eye(len(x)) + dt * A
        Bd = dt * B
        return Ad, Bd

    @property
    def name(self) -> str:
        return "Explicit Euler"


class MidpointIntegrator(FixedStepIntegratorBase):
    """
    Midpoint integrator (RK2).

    Algorithm:
        k1 = f(x_k, u_k, t_k)
        k2 = f(x_k + 0.5*dt*k1, u_k, t_k + 0.5*dt)
        x_{k+1} = x_k + dt * k2

    Characteristics:
    - Order: 2 (error ∝ dt²)
    - Function evaluations: 2 per step
    """

    def step(self, x, u=None, dt=None, t=0.0):
        dt = dt if dt is not None else self.dt

        k1 = self._evaluate_dynamics(x, u, t)
        x_mid = x + 0.5 * dt * k1
        k2 = self._evaluate_dynamics(x_mid, u, t + 0.5 * dt)

        x_next = x + dt * k2

        self._stats["total_steps"] += 1

        return x_next

    def step_jacobian(self, x, u, dt, t, jacobian_fn):
        dt = dt if dt is not None else self.dt
        u = self._control(u)
        I = np.eye(len(x))

        k1 = self._evaluate_dynamics(x, u, t)
        A1, B1 = jacobian_fn(x, u, t)

        x_mid = x + 0.5 * dt * k1
        A2, B2 = jacobian_fn(x_mid, u, t + 0.5 * dt)

        # d(x_mid)/dx, d(x_mid)/du
        Dx = I + 0.5 * dt * A1
        Du = 0.5 * dt * B1

        Ad = I + dt * (A2 @ Dx)
        Bd = dt * (A2 @ Du + B2)
        return Ad, Bd

    @property
    def name(self) -> str:
        return "Midpoint (RK2)"


class HeunIntegrator(FixedStepIntegratorBase):
    """
    Heun integrator (explicit trapezoidal rule).

    Algorithm:
        k1 = f(x_k, u_k, t_k)
        k2 = f(x_k + dt*k1, u_k, t_k + dt)
        x_{k+1} = x_k + (dt/2) * (k1 + k2)

    Characteristics:
    - Order: 2 (error ∝ dt²)
    - Function evaluations: 2 per step
    """

    def step(self, x, u=None, dt=None, t=0.0):
        dt = dt if dt is not None else self.dt

        k1 = self._evaluate_dynamics(x, u, t)
        k2 = self._evaluate_dynamics(x + dt * k1, u, t + dt)

        x_next = x + 0.5 * dt * (k1 + k2)

        self._stats["total_steps"] += 1

        return x_next

    def step_jacobian(self, x, u, dt, t, jacobian_fn):
        dt = dt if dt is not None else self.dt
        u = self._control(u)
        I = np.eye(len(x))

        k1 = self._evaluate_dynamics(x, u, t)
        A1, B1 = jacobian_fn(x, u, t)
        A2, B2 = jacobian_fn(x + dt * k1, u, t + dt)

        dk2_dx = A2 @ (I + dt * A1)
        dk2_du = A2 @ (dt * B1) + B2

        Ad = I + 0.5 * dt * (A1 + dk2_dx)
        Bd = 0.5 * dt * (B1 + dk2_du)
        return Ad, Bd

    @property
    def name(self) -> str:
        return "Heun"


class RK4Integrator(FixedStepIntegratorBase):
    """
    Classic 4th-order Runge-Kutta integrator.

    Algorithm:
        k1 = f(x_k, u_k, t_k)
        k2 = f(x_k + 0.5*dt*k1, u_k, t_k + 0.5*dt)
        k3 = f(x_k + 0.5*dt*k2, u_k, t_k + 0.5*dt)
        k4 = f(x_k + dt*k3, u_k, t_k + dt)
        x_{k+1} = x_k + (dt/6) * (k1 + 2*k2 + 2*k3 + k4)

    Characteristics:
    - Order: 4 (error ∝ dt⁴)
    - Function evaluations: 4 per step
    - Accuracy: Excellent for smooth dynamics

    Not recommended for:
    - Stiff systems (use BDF/Radau instead)

    Examples
    --------
    >>> integrator = RK4Integrator(system, dt=0.01)
    >>> result = integrator.integrate(x0, lambda t, x: u, t_span=(0.0, 1.0))
    >>> print(f"RK4: {result['nfev']} evaluations for {result['nsteps']} steps")
    """

    def step(self, x, u=None, dt=None, t=0.0):
        dt = dt if dt is not None else self.dt

        # RK4 stages (all use same control u, which may be None)
        k1 = self._evaluate_dynamics(x, u, t)
        k2 = self._evaluate_dynamics(x + 0.5 * dt * k1, u, t + 0.5 * dt)
        k3 = self._evaluate_dynamics(x + 0.5 * dt * k2, u, t + 0.5 * dt)
        k4 = self._evaluate_dynamics(x + dt * k3, u, t + dt)

        x_next = x + (dt / 6.0) * (k1 + 2 * k2 + 2 * k3 + k4)

        self._stats["total_steps"] += 1

        return x_next

    def step_jacobian(self, x, u, dt, t, jacobian_fn):
        """
        Chain rule through the four stages.

        With stage states s_i and stage slopes k_i = f(s_i):
            ∂k_i/∂x = A(s_i) ∂s_i/∂x
            ∂k_i/∂u = A(s_i) ∂s_i/∂u + B(s_i)
        """
        dt = dt if dt is not None else self.dt
        u = self._control(u)
        I = np.eye(len(x))
        half = 0.5 * dt

        # Stage 1
        k1 = self._evaluate_dynamics(x, u, t)
        A1, B1 = jacobian_fn(x, u, t)
        dk1_dx, dk1_du = A1, B1

        # Stage 2
        s2 = x + half * k1
        k2 = self._evaluate_dynamics(s2, u, t + half)
        A2, B2 = jacobian_fn(s2, u, t + half)
        dk2_dx = A2 @ (I + half * dk1_dx)
        dk2_du = A2 @ (half * dk1_du) + B2

        # Stage 3
        s3 = x + half * k2
        k3 = self._evaluate_dynamics(s3, u, t + half)
        A3, B3 = jacobian_fn(s3, u, t + half)
        dk3_dx = A3 @ (I + half * dk2_dx)
        dk3_du = A3 @ (half * dk2_du) + B3

        # Stage 4
        s4 = x + dt * k3
        A4, B4 = jacobian_fn(s4, u, t + dt)
        dk4_dx = A4 @ (I + dt * dk3_dx)
        dk4_du = A4 @ (dt * dk3_du) + B4

        Ad = I + (dt / 6.0) * (dk1_dx + 2 * dk2_dx + 2 * dk3_dx + dk4_dx)
        Bd = (dt / 6.0) * (dk1_du + 2 * dk2_du + 2 * dk3_du + dk4_du)
        return Ad, Bd

    @property
    def name(self) -> str:
        return "RK4 (Classic)"


# ============================================================================
# Utility: Quick Integrator Creation
# ============================================================================

FIXED_STEP_METHODS = {
    "euler": ExplicitEulerIntegrator,
    "midpoint": MidpointIntegrator,
    "heun": HeunIntegrator,
    "rk4": RK4Integrator,
}


def create_fixed_step_integrator(
    method: str, system: "ContinuousSystemBase", dt: float, **options
) -> FixedStepIntegratorBase:
    """
    Quick factory for fixed-step integrators.

    Parameters
    ----------
    method : str
        'euler', 'midpoint', 'heun' or 'rk4'
    system : ContinuousSystemBase
        System to integrate (controlled or autonomous)
    dt : float
        Time step

    Examples
    --------
    >>> integrator = create_fixed_step_integrator('rk4', system, dt=0.01)
    """
    if method not in FIXED_STEP_METHODS:
        raise ValueError(
            f"Unknown method '{method}'. Choose from: {list(FIXED_STEP_METHODS.keys())}"
        )

    return FIXED_STEP_METHODS[method](system, dt, **options)


__all__ = [
    "FixedStepIntegratorBase",
    "ExplicitEulerIntegrator",
    "MidpointIntegrator",
    "HeunIntegrator",
    "RK4Integrator",
    "FIXED_STEP_METHODS",
    "create_fixed_step_integrator",
]
