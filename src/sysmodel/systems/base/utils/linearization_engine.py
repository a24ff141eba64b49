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
Linearization Engine for continuous-time systems

Computes the continuous Jacobians A = ∂f/∂x and B = ∂f/∂u of a system at a
point (x, u, t).

Responsibilities:
- Analytic Jacobians when the system supplies them (symbolic systems)
- Numerical Jacobians by central or forward finite differences otherwise
- Shape and finiteness checks
- Performance tracking

This class focuses ONLY on continuous dynamics linearization. Jacobians of
the discrete transition map are the job of the sensitivity engines in
``sysmodel.systems.base.discretization.sensitivity``, which use this engine
for the per-stage continuous Jacobians.
"""

import time
from typing import TYPE_CHECKING, Callable, Optional

import numpy as np

from sysmodel.exceptions import LinearizationError
from sysmodel.types.backends import LinearizationMethod
from sysmodel.types.core import ControlVector, ScalarLike, StateVector
from sysmodel.types.linearization import DeterministicLinearization
from sysmodel.types.utilities import ExecutionStats, as_vector

if TYPE_CHECKING:
    from sysmodel.systems.base.core.continuous_system_base import ContinuousSystemBase

_METHODS = ("auto", "analytic", "central", "forward")


class LinearizationEngine:
    """
    Computes linearized continuous dynamics.

    Parameters
    ----------
    method : str
        - 'auto': analytic if the system provides Jacobians, else central
        - 'analytic': always use ``system.linearize``
        - 'central': central differences, O(h²) truncation error
        - 'forward': forward differences, O(h) truncation error, half the
          function evaluations
    eps : Optional[float]
        Relative perturbation size. Each coordinate is perturbed by
        eps * (1 + |value|). Defaults to 1e-6 (central) or 1e-8 (forward).

    For autonomous systems (nu=0), B has shape (nx, 0).

    Example:
        >>> engine = LinearizationEngine(method='central')
        >>> A, B = engine.compute_dynamics(system, x, u, t=0.0)
        >>>
        >>> # As a jacobian_fn for step_jacobian
        >>> jacobian_fn = engine.bind(system)
        >>> A, B = jacobian_fn(x, u, 0.0)
    """

    def __init__(self, method: LinearizationMethod = "auto", eps: Optional[float] = None):
        if method not in _METHODS:
            raise ValueError(f"Unknown linearization method '{method}'. Choose from: {_METHODS}")
        if eps is not None and not eps > 0:
            raise ValueError(f"Perturbation eps must be positive, got {eps}")

        self.method = method
        self.eps = eps

        # Performance tracking
        self._stats = {
            "calls": 0,
            "time": 0.0,
        }

    # ========================================================================
    # Main Linearization API
    # ========================================================================

    def compute_dynamics(
        self,
        system: "ContinuousSystemBase",
        x: StateVector,
        u: Optional[ControlVector] = None,
        t: ScalarLike = 0.0,
    ) -> DeterministicLinearization:
        """
        Compute linearized dynamics: A = ∂f/∂x, B = ∂f/∂u.

        Args:
            system: Continuous-time system
            x: State at which to linearize (nx,)
            u: Control at which to linearize (None for autonomous systems)
            t: Time at which to linearize

        Returns:
            (A, B) with shapes (nx, nx), (nx, nu)

        Raises:
            LinearizationError: If the Jacobians are unavailable, have the
                wrong shape, or contain non-finite values
        """
        start_time = time.time()

        x = as_vector(x)
        u = as_vector(u, 0)

        method = self.resolve_method(system)
        if method == "analytic":
            try:
                A, B = system.linearize(x, u, t)
            except NotImplementedError as e:
                raise LinearizationError(str(e)) from e
        else:
            A, B = self._finite_difference(system, x, u, t, central=(method == "central"))

        A = np.asarray(A, dtype=float)
        B = np.asarray(B, dtype=float)
        self._check(system, A, B, x, t)

        self._stats["calls"] += 1
        self._stats["time"] += time.time() - start_time

        return A, B

    def bind(
        self, system: "ContinuousSystemBase"
    ) -> Callable[[StateVector, ControlVector, float], DeterministicLinearization]:
        """Return (x, u, t) → (A, B) for one system."""

        def jacobian_fn(x, u, t):
            return self.compute_dynamics(system, x, u, t)

        return jacobian_fn

    def resolve_method(self, system: "ContinuousSystemBase") -> str:
        """The concrete method used for this system ('auto' resolved)."""
        if self.method != "auto":
            return self.method
        if getattr(system, "has_analytic_jacobian", False):
            return "analytic"
        return "central"

    # ========================================================================
    # Numerical Jacobians
    # ========================================================================

    def _finite_difference(
        self,
        system: "ContinuousSystemBase",
        x: np.ndarray,
        u: np.ndarray,
        t: float,
        central: bool,
    ) -> DeterministicLinearization:
        eps = self.eps if self.eps is not None else (1e-6 if central else 1e-8)
        nx, nu = len(x), len(u)

        A = np.zeros((nx, nx))
        B = np.zeros((nx, nu))
        f0 = None if central else system(x, u, t)

        for i in range(nx):
            h = eps * (1.0 + abs(x[i]))
            A[:, i] = self._difference(lambda xi: system(xi, u, t), x, i, h, f0)

        for j in range(nu):
            h = eps * (1.0 + abs(u[j]))
            B[:, j] = self._difference(lambda uj: system(x, uj, t), u, j, h, f0)

        return A, B

    @staticmethod
    def _difference(func, point, index, h, f0):
        plus = point.copy()
        plus[index] += h
        if f0 is not None:
            return (func(plus) - f0) / h

        minus = point.copy()
        minus[index] -= h
        return (func(plus) - func(minus)) / (2.0 * h)

    # ========================================================================
    # Validation and Statistics
    # ========================================================================

    @staticmethod
    def _check(system, A, B, x, t) -> None:
        nx, nu = system.nx, system.nu
        if A.shape != (nx, nx):
            raise LinearizationError(f"State Jacobian has shape {A.shape}, expected {(nx, nx)}")
        if B.shape != (nx, nu):
            raise LinearizationError(f"Control Jacobian has shape {B.shape}, expected {(nx, nu)}")
        if not (np.all(np.isfinite(A)) and np.all(np.isfinite(B))):
            raise LinearizationError(
                f"Non-finite Jacobian for {system.__class__.__name__} at x={x}, t={t}"
            )

    def get_stats(self) -> ExecutionStats:
        """
        Get linearization performance statistics.

        Returns:
            ExecutionStats with calls, total_time, avg_time
        """
        return {
            "calls": self._stats["calls"],
            "total_time": self._stats["time"],
            "avg_time": self._stats["time"] / max(1, self._stats["calls"]),
        }

    def reset_stats(self):
        """Reset performance counters."""
        self._stats["calls"] = 0
        self._stats["time"] = 0.0

    def __repr__(self) -> str:
        return f"LinearizationEngine(method={self.method!r}, calls={self._stats['calls']})"
