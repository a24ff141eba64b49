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
Discretization Scheme

One immutable description of how a continuous system is carried across a
sampling interval: the interval length ``dt``, how many equal sub-intervals
it is split into, the integration method used on each of them, and the
integrator options (tolerances, step limits).

A system model derives both of its discrete quantities from the same
scheme:
- the propagated state (through ``create_integrator`` / ``propagate``)
- the state Jacobian (through a sensitivity engine bound to the scheme)

so the two cannot drift apart. Every integrator an engine builds comes from
``create_integrator``, which takes no options of its own.

Substep semantics
-----------------
num_substeps = 0:
    Integrator default. Fixed-step methods take a single step of ``dt``;
    adaptive scipy methods choose their own steps.
num_substeps = n > 0:
    The interval is split into n equal sub-intervals of ``dt / n``.
    Fixed-step methods take exactly one step per sub-interval; adaptive
    methods are limited to ``max_step = dt / n`` and report the state on the
    sub-interval grid.
"""

import math
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable, Dict, Optional, Tuple

import numpy as np

from sysmodel.exceptions import ConfigurationError
from sysmodel.systems.base.numerical_integration.integrator_base import IntegratorBase
from sysmodel.systems.base.numerical_integration.integrator_factory import IntegratorFactory
from sysmodel.types.backends import IntegrationMethod
from sysmodel.types.core import ControlVector, ScalarLike, StateVector
from sysmodel.types.trajectories import IntegrationResult

if TYPE_CHECKING:
    from sysmodel.systems.base.core.continuous_system_base import ContinuousSystemBase

INTEGRATOR_OPTIONS = ("rtol", "atol", "max_steps", "max_step", "first_step")


@dataclass(frozen=True)
class DiscretizationScheme:
    """
    Sampling interval, substep count, integration method and options.

    Parameters
    ----------
    dt : float
        Sampling interval (must be positive and finite)
    num_substeps : int
        Number of equal sub-intervals (0 = integrator default)
    method : str
        Integration method: 'euler', 'midpoint', 'heun', 'rk4' (fixed-step)
        or 'RK45', 'RK23', 'DOP853', 'Radau', 'BDF', 'LSODA' (adaptive)
    options : Mapping[str, Any]
        Integrator options, any of rtol, atol, max_steps, max_step,
        first_step. Stored as sorted (name, value) pairs so that two schemes
        with the same options compare and hash equal.

    Raises
    ------
    ConfigurationError
        On a non-positive or non-finite dt, a negative or non-integer
        substep count, an unknown method or an unknown option

    Examples
    --------
    >>> scheme = DiscretizationScheme(dt=0.1, num_substeps=5)
    >>> scheme.substep_dt
    0.02
    >>> scheme.time_grid(0.0)
    array([0.  , 0.02, 0.04, 0.06, 0.08, 0.1 ])
    >>>
    >>> adaptive = DiscretizationScheme(dt=0.1, method='RK45', options={'rtol': 1e-10})
    >>> integrator = adaptive.create_integrator(system)
    >>> result = adaptive.propagate(integrator, x0, lambda t, x: u, t0=0.0)
    >>> x_next = result["x"][-1]
    """

    dt: float
    num_substeps: int = 0
    method: IntegrationMethod = "rk4"
    options: Tuple[Tuple[str, Any], ...] = ()

    def __post_init__(self):
        try:
            dt = float(self.dt)
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"Time step dt must be a real number, got {self.dt!r}") from e
        if not math.isfinite(dt) or dt <= 0:
            raise ConfigurationError(f"Time step dt must be positive and finite, got {self.dt}")

        if isinstance(self.num_substeps, bool) or not isinstance(
            self.num_substeps, (int, np.integer)
        ):
            raise ConfigurationError(
                f"num_substeps must be a non-negative integer, got {self.num_substeps!r}"
            )
        if self.num_substeps < 0:
            raise ConfigurationError(
                f"num_substeps must be a non-negative integer, got {self.num_substeps}"
            )

        if not IntegratorFactory.is_known_method(self.method):
            raise ConfigurationError(
                f"Unknown integration method '{self.method}'. "
                f"Available: {IntegratorFactory.list_methods()}"
            )

        try:
            options = dict(self.options or ())
        except (TypeError, ValueError) as e:
            raise ConfigurationError(
                f"options must be a mapping of integrator options, got {self.options!r}"
            ) from e
        unknown = sorted(set(options) - set(INTEGRATOR_OPTIONS))
        if unknown:
            raise ConfigurationError(
                f"Unknown integrator option(s) {unknown}. Available: {list(INTEGRATOR_OPTIONS)}"
            )

        # Normalize so equality and hashing behave
        object.__setattr__(self, "dt", dt)
        object.__setattr__(self, "num_substeps", int(self.num_substeps))
        object.__setattr__(self, "options", tuple(sorted(options.items())))

    # ========================================================================
    # Derived Quantities
    # ========================================================================

    @property
    def substep_dt(self) -> float:
        """Length of one sub-interval (dt when num_substeps is 0)."""
        return self.dt / max(1, self.num_substeps)

    @property
    def is_fixed_step(self) -> bool:
        return IntegratorFactory.is_fixed_step_method(self.method)

    def time_grid(self, t0: ScalarLike = 0.0) -> np.ndarray:
        """Sub-interval boundaries t0, t0 + dt/n, ..., t0 + dt."""
        t0 = float(t0)
        grid = np.linspace(t0, t0 + self.dt, max(1, self.num_substeps) + 1)
        grid[-1] = t0 + self.dt
        return grid

    # ========================================================================
    # Integration
    # ========================================================================

    def integrator_options(self) -> Dict[str, Any]:
        """
        Options every integrator of this scheme is created with.

        Adaptive methods with substeps get ``max_step`` capped at the
        substep length.
        """
        options = dict(self.options)
        if not self.is_fixed_step and self.num_substeps > 0:
            options["max_step"] = min(options.get("max_step", np.inf), self.substep_dt)
        return options

    def create_integrator(self, system: "ContinuousSystemBase") -> IntegratorBase:
        """Create the integrator this scheme describes for a system."""
        try:
            return IntegratorFactory.create(
                system,
                method=self.method,
                dt=self.substep_dt,
                **self.integrator_options(),
            )
        except ValueError as e:
            raise ConfigurationError(str(e)) from e

    def propagate(
        self,
        integrator: IntegratorBase,
        x0: StateVector,
        u_func: Callable[[ScalarLike, StateVector], Optional[ControlVector]],
        t0: ScalarLike = 0.0,
    ) -> IntegrationResult:
        """
        Carry x0 from t0 to t0 + dt.

        The result holds the state at every sub-interval boundary; the last
        row is the state at t0 + dt.

        Raises
        ------
        IntegrationError
            If the integrator fails
        """
        grid = self.time_grid(t0)
        return integrator.integrate(
            x0=x0,
            u_func=u_func,
            t_span=(grid[0], grid[-1]),
            t_eval=grid,
        )

    def __str__(self) -> str:
        substeps = self.num_substeps if self.num_substeps > 0 else "default"
        text = f"DiscretizationScheme(dt={self.dt:g}, substeps={substeps}, {self.method}"
        if self.options:
            text += ", " + ", ".join(f"{name}={value}" for name, value in self.options)
        return text + ")"


__all__ = ["DiscretizationScheme", "INTEGRATOR_OPTIONS"]
