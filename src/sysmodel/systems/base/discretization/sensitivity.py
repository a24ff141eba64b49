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
Sensitivity Engines

Jacobians of the discrete transition map x(t + dt) = Φ(x(t), u, t) that a
DiscretizationScheme defines for a continuous system:

    Ad = ∂Φ/∂x   (state transition / state Jacobian)
    Bd = ∂Φ/∂u   (control Jacobian)

Three interchangeable engines are provided:

IntegratorSensitivity
    Differentiates the fixed-step update itself (chain rule through the
    stages, product over substeps). Exactly consistent with the propagated
    state. Fixed-step methods only.
FiniteDifferenceSensitivity
    Perturbs the initial state and control and re-propagates. Works with
    every integration method, including adaptive scipy solvers.
LinearizedDiscretization
    Linearizes the continuous dynamics at every substep of the propagated
    trajectory and discretizes the (A, B) pair in closed form (forward
    Euler, backward Euler, Tustin or matrix exponential).

Every engine is bound to at most one scheme. A system model binds its own
scheme on construction; binding a second, different scheme is an error.
"""

import time
import warnings
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Callable, Optional

import numpy as np
from scipy.linalg import expm, solve

from sysmodel.exceptions import ConfigurationError, IntegrationError, LinearizationError
from sysmodel.systems.base.discretization.discretization_scheme import DiscretizationScheme
from sysmodel.systems.base.utils.linearization_engine import LinearizationEngine
from sysmodel.types.backends import DiscreteApproximation
from sysmodel.types.core import ControlVector, ScalarLike, StateMatrix, StateVector
from sysmodel.types.linearization import DiscreteLinearization
from sysmodel.types.utilities import ExecutionStats, as_vector

if TYPE_CHECKING:
    from sysmodel.systems.base.core.continuous_system_base import ContinuousSystemBase


class SensitivityApproximationBase(ABC):
    """
    Base class for discrete Jacobian engines.

    Subclasses implement ``_compute(system, x, u, t, scheme)``; the base
    class handles scheme binding, input coercion, error translation, output
    validation and statistics.

    Parameters
    ----------
    scheme : Optional[DiscretizationScheme]
        Scheme to bind immediately. Usually left None and bound by the
        system model that owns the engine.
    linearization : Optional[LinearizationEngine]
        Source of continuous Jacobians (default: LinearizationEngine('auto'))
    """

    def __init__(
        self,
        scheme: Optional[DiscretizationScheme] = None,
        linearization: Optional[LinearizationEngine] = None,
    ):
        self.linearization = linearization or LinearizationEngine()
        self._scheme: Optional[DiscretizationScheme] = None

        self._stats = {
            "calls": 0,
            "time": 0.0,
        }

        if scheme is not None:
            self.bind_scheme(scheme)

    # ========================================================================
    # Scheme Binding
    # ========================================================================

    @property
    def scheme(self) -> Optional[DiscretizationScheme]:
        """The bound scheme, or None."""
        return self._scheme

    def bind_scheme(self, scheme: DiscretizationScheme) -> None:
        """
        Bind this engine to a discretization scheme.

        Rebinding the same (equal) scheme is a no-op.

        Raises
        ------
        ConfigurationError
            If ``scheme`` is not a DiscretizationScheme, if the engine is
            already bound to a different scheme, or if the engine cannot
            differentiate the scheme's method
        """
        if not isinstance(scheme, DiscretizationScheme):
            raise ConfigurationError(
                f"Expected a DiscretizationScheme, got {type(scheme).__name__}"
            )
        if self._scheme is not None and self._scheme != scheme:
            raise ConfigurationError(
                f"{self.__class__.__name__} is already bound to {self._scheme}; "
                f"cannot rebind to {scheme}. Create a separate engine."
            )
        self._check_scheme(scheme)
        self._scheme = scheme

    def _check_scheme(self, scheme: DiscretizationScheme) -> None:
        """Hook for subclasses that only support some schemes."""

    def _resolve_scheme(self, dt: Optional[ScalarLike]) -> DiscretizationScheme:
        if self._scheme is None:
            if dt is None:
                raise ConfigurationError(
                    f"{self.__class__.__name__} has no bound scheme; pass dt or call bind_scheme()"
                )
            scheme = DiscretizationScheme(dt=dt)
            self._check_scheme(scheme)
            return scheme

        if dt is not None and not np.isclose(float(dt), self._scheme.dt, rtol=0.0, atol=1e-12):
            raise ConfigurationError(
                f"Requested dt={dt} does not match the bound scheme dt={self._scheme.dt}"
            )
        return self._scheme

    # ========================================================================
    # Main API
    # ========================================================================

    def get_jacobians(
        self,
        system: "ContinuousSystemBase",
        x: StateVector,
        u: Optional[ControlVector] = None,
        t: ScalarLike = 0.0,
        dt: Optional[ScalarLike] = None,
    ) -> DiscreteLinearization:
        """
        Discrete Jacobians (Ad, Bd) of the transition over [t, t + dt].

        Parameters
        ----------
        system : ContinuousSystemBase
            Continuous-time system
        x : StateVector
            State at the start of the interval (nx,)
        u : Optional[ControlVector]
            Control held over the interval (None for autonomous systems)
        t : float
            Start of the interval
        dt : Optional[float]
            Interval length; must match the bound scheme when one is bound

        Returns
        -------
        (Ad, Bd) : shapes (nx, nx), (nx, nu)

        Raises
        ------
        ConfigurationError
            If no scheme is available or dt disagrees with the bound scheme
        LinearizationError
            If propagation fails inside the engine or the result is not
            finite
        """
        start_time = time.time()

        scheme = self._resolve_scheme(dt)
        x = as_vector(x)
        u = as_vector(u, 0)

        try:
            Ad, Bd = self._compute(system, x, u, float(t), scheme)
        except IntegrationError as e:
            raise LinearizationError(
                f"{self.__class__.__name__}: propagation failed at x={x}, t={t}: {e}"
            ) from e

        nx, nu = system.nx, system.nu
        Ad = np.asarray(Ad, dtype=float).reshape(nx, nx)
        Bd = np.asarray(Bd, dtype=float).reshape(nx, nu)
        if not (np.all(np.isfinite(Ad)) and np.all(np.isfinite(Bd))):
            raise LinearizationError(
                f"{self.__class__.__name__}: non-finite Jacobian at x={x}, t={t}"
            )

        self._stats["calls"] += 1
        self._stats["time"] += time.time() - start_time

        return Ad, Bd

    def get_state_jacobian(
        self,
        system: "ContinuousSystemBase",
        x: StateVector,
        u: Optional[ControlVector] = None,
        t: ScalarLike = 0.0,
        dt: Optional[ScalarLike] = None,
    ) -> StateMatrix:
        """State Jacobian Ad = ∂x(t + dt)/∂x(t), shape (nx, nx)."""
        return self.get_jacobians(system, x, u, t, dt)[0]

    @abstractmethod
    def _compute(
        self,
        system: "ContinuousSystemBase",
        x: np.ndarray,
        u: np.ndarray,
        t: float,
        scheme: DiscretizationScheme,
    ) -> DiscreteLinearization:
        """Compute (Ad, Bd) for one interval."""

    # ========================================================================
    # Statistics
    # ========================================================================

    def get_stats(self) -> ExecutionStats:
        return {
            "calls": self._stats["calls"],
            "total_time": self._stats["time"],
            "avg_time": self._stats["time"] / max(1, self._stats["calls"]),
        }

    def reset_stats(self):
        self._stats["calls"] = 0
        self._stats["time"] = 0.0

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(scheme={self._scheme})"


class IntegratorSensitivity(SensitivityApproximationBase):
    """
    Exact Jacobian of the fixed-step discrete map.

    Propagates the state over the substep grid with the scheme's integrator,
    then accumulates along the trajectory

        Ad ← Ad_k @ Ad
        Bd ← Ad_k @ Bd + Bd_k

    where (Ad_k, Bd_k) is the stage-wise Jacobian of step k. The control is
    held constant across substeps.

    Examples
    --------
    >>> sensitivity = IntegratorSensitivity()
    >>> sensitivity.bind_scheme(DiscretizationScheme(dt=0.1, num_substeps=5))
    >>> Ad = sensitivity.get_state_jacobian(system, x, u)
    """

    def _check_scheme(self, scheme: DiscretizationScheme) -> None:
        if not scheme.is_fixed_step:
            raise ConfigurationError(
                f"IntegratorSensitivity requires a fixed-step method, got '{scheme.method}'. "
                f"Use FiniteDifferenceSensitivity for adaptive methods."
            )

    def _compute(self, system, x, u, t, scheme):
        integrator = scheme.create_integrator(system)
        jacobian_fn = self.linearization.bind(system)

        # Same steps, step budget and divergence checks as the propagated state
        result = scheme.propagate(integrator, x, lambda t_cur, x_cur: u, t)
        grid, states = result["t"], result["x"]

        Ad = np.eye(system.nx)
        Bd = np.zeros((system.nx, system.nu))
        for k in range(len(grid) - 1):
            h = float(grid[k + 1] - grid[k])
            A_k, B_k = integrator.step_jacobian(states[k], u, h, float(grid[k]), jacobian_fn)
            Ad = A_k @ Ad
            Bd = A_k @ Bd + B_k

        return Ad, Bd


class FiniteDifferenceSensitivity(SensitivityApproximationBase):
    """
    Finite-difference Jacobian of the propagated state.

    Every column costs one (forward) or two (central) propagations over the
    interval, so this is the most expensive engine, but it differentiates
    whatever the scheme's integrator does, adaptive solvers included.

    Parameters
    ----------
    method : str
        'central' (default) or 'forward'
    eps : Optional[float]
        Relative perturbation. Defaults to 1e-6 (central) / 1e-7 (forward).

    Notes
    -----
    The perturbed propagations use the scheme's integrator options, so the
    columns differentiate the same map the system model propagates. Tight
    tolerances in the scheme matter for adaptive methods.

    Examples
    --------
    >>> sensitivity = FiniteDifferenceSensitivity(method='central')
    >>> sensitivity.bind_scheme(
    ...     DiscretizationScheme(dt=0.1, method='RK45', options={'rtol': 1e-10})
    ... )
    >>> Ad, Bd = sensitivity.get_jacobians(system, x, u)
    """

    def __init__(
        self,
        method: str = "central",
        eps: Optional[float] = None,
        scheme: Optional[DiscretizationScheme] = None,
    ):
        if method not in ("central", "forward"):
            raise ValueError(f"method must be 'central' or 'forward', got '{method}'")
        if eps is not None and not eps > 0:
            raise ValueError(f"Perturbation eps must be positive, got {eps}")

        self.method = method
        self.eps = eps
        super().__init__(scheme=scheme)

    def _compute(self, system, x, u, t, scheme):
        integrator = scheme.create_integrator(system)

        def propagate(x0: np.ndarray, u0: np.ndarray) -> np.ndarray:
            result = scheme.propagate(integrator, x0, lambda t_cur, x_cur: u0, t)
            return result["x"][-1]

        central = self.method == "central"
        eps = self.eps if self.eps is not None else (1e-6 if central else 1e-7)
        x_next = None if central else propagate(x, u)

        Ad = np.column_stack(
            [
                _difference(lambda xi: propagate(xi, u), x, i, eps, x_next)
                for i in range(len(x))
            ]
        )
        Bd = np.zeros((system.nx, system.nu))
        for j in range(system.nu):
            Bd[:, j] = _difference(lambda uj: propagate(x, uj), u, j, eps, x_next)

        return Ad, Bd


class LinearizedDiscretization(SensitivityApproximationBase):
    """
    Linearize-then-discretize along the propagated trajectory.

    The state is propagated with the scheme's integrator; at every substep
    boundary x_k the continuous Jacobians (A_k, B_k) are computed and
    discretized over the substep length h:

    forward_euler:
        Ad = I + h A,  Bd = h B
    backward_euler:
        Ad = (I - h A)⁻¹,  Bd = h (I - h A)⁻¹ B
    tustin:
        Ad = (I - h/2 A)⁻¹ (I + h/2 A),  Bd = h (I - h/2 A)⁻¹ B
    matrix_exponential:
        Ad = expm(h A),  Bd = ∫₀ʰ expm(A τ) dτ B  (Van Loan block exponential,
        valid for singular A)

    For linear time-invariant systems ``matrix_exponential`` is exact.

    A UserWarning is issued when the approximation is not of the same order
    as the scheme's integration rule (e.g. matrix_exponential with 'euler'),
    because the propagated state and the Jacobian then disagree.

    Examples
    --------
    >>> sensitivity = LinearizedDiscretization(approximation='matrix_exponential')
    >>> sensitivity.bind_scheme(DiscretizationScheme(dt=0.05, method='rk4'))
    >>> Ad = sensitivity.get_state_jacobian(system, x, u)
    """

    APPROXIMATIONS = ("forward_euler", "backward_euler", "tustin", "matrix_exponential")

    def __init__(
        self,
        approximation: DiscreteApproximation = "matrix_exponential",
        scheme: Optional[DiscretizationScheme] = None,
        linearization: Optional[LinearizationEngine] = None,
    ):
        if approximation not in self.APPROXIMATIONS:
            raise ValueError(
                f"Unknown approximation '{approximation}'. Choose from: {self.APPROXIMATIONS}"
            )
        self.approximation = approximation
        super().__init__(scheme=scheme, linearization=linearization)

    def _check_scheme(self, scheme: DiscretizationScheme) -> None:
        first_order_rule = scheme.method == "euler"
        first_order_jacobian = self.approximation == "forward_euler"
        if first_order_rule != first_order_jacobian:
            warnings.warn(
                f"Jacobian approximation '{self.approximation}' does not match integration "
                f"method '{scheme.method}'; the state Jacobian will not be the exact "
                f"derivative of the propagated state.",
                UserWarning,
            )

    def _compute(self, system, x, u, t, scheme):
        integrator = scheme.create_integrator(system)
        result = scheme.propagate(integrator, x, lambda t_cur, x_cur: u, t)
        grid, states = result["t"], result["x"]

        discretize = getattr(self, f"_{self.approximation}")

        Ad = np.eye(system.nx)
        Bd = np.zeros((system.nx, system.nu))
        for k in range(len(grid) - 1):
            h = float(grid[k + 1] - grid[k])
            A, B = self.linearization.compute_dynamics(system, states[k], u, grid[k])
            A_k, B_k = discretize(A, B, h)
            Ad = A_k @ Ad
            Bd = A_k @ Bd + B_k

        return Ad, Bd

    # ========================================================================
    # Closed-form discretizations of (A, B) over one substep
    # ========================================================================

    @staticmethod
    def _forward_euler(A, B, h):
        return np.eye(A.shape[0]) + h * A, h * B

    @staticmethod
    def _backward_euler(A, B, h):
        I = np.eye(A.shape[0])
        Ad = solve(I - h * A, I)
        return Ad, h * Ad @ B

    @staticmethod
    def _tustin(A, B, h):
        I = np.eye(A.shape[0])
        M_inv = solve(I - 0.5 * h * A, I)
        return M_inv @ (I + 0.5 * h * A), h * M_inv @ B

    @staticmethod
    def _matrix_exponential(A, B, h):
        nx, nu = B.shape
        block = np.zeros((nx + nu, nx + nu))
        block[:nx, :nx] = A
        block[:nx, nx:] = B
        E = expm(h * block)
        return E[:nx, :nx], E[:nx, nx:]


def _difference(
    func: Callable[[np.ndarray], np.ndarray],
    point: np.ndarray,
    index: int,
    eps: float,
    f0: Optional[np.ndarray],
) -> np.ndarray:
    """One finite-difference column; forward when f0 is given, else central."""
    h = eps * (1.0 + abs(point[index]))
    plus = point.copy()
    plus[index] += h
    if f0 is not None:
        return (func(plus) - f0) / h

    minus = point.copy()
    minus[index] -= h
    return (func(plus) - func(minus)) / (2.0 * h)


__all__ = [
    "SensitivityApproximationBase",
    "IntegratorSensitivity",
    "FiniteDifferenceSensitivity",
    "LinearizedDiscretization",
]
