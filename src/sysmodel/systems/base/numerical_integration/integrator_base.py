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
Integrator interface

Every integrator is bound to one continuous system and carries it from one
time to another under a control source ``u_func(t, x)``. Two families exist:

- StepMode.FIXED: the integrator takes exactly the steps it is told to
  (the grid it is given, or uniform steps of ``dt``)
- StepMode.ADAPTIVE: the solver picks its own steps inside each output
  interval, within the tolerances

Failure contract
----------------
Integrators never clamp or silently propagate bad values. A non-finite
state, a dynamics output of the wrong size, a solver failure, or more steps
than ``max_steps`` raise IntegrationError.
"""

from abc import ABC, abstractmethod
from enum import Enum
from typing import TYPE_CHECKING, Any, Callable, Dict, Optional

import numpy as np

from sysmodel.exceptions import IntegrationError
from sysmodel.types.core import ControlVector, ScalarLike, StateVector
from sysmodel.types.trajectories import IntegrationResult, TimePoints, TimeSpan

if TYPE_CHECKING:
    from sysmodel.systems.base.core.continuous_system_base import ContinuousSystemBase

ControlSource = Callable[[ScalarLike, StateVector], Optional[ControlVector]]
"""(t, x) → u. A ConstantController instance qualifies."""


class StepMode(Enum):
    """How an integrator chooses its steps."""

    FIXED = "fixed"
    ADAPTIVE = "adaptive"


class IntegratorBase(ABC):
    """
    Base class for integrators bound to a single system.

    Subclasses provide ``step``, ``integrate`` and ``name``. The base class
    owns option parsing, the dynamics call with its shape check, the
    divergence check and the statistics counters.

    Parameters
    ----------
    system : ContinuousSystemBase
        System whose dynamics are integrated
    dt : Optional[float]
        Step size. Mandatory for StepMode.FIXED; for StepMode.ADAPTIVE it is
        only the default length of a ``step()`` call (0.01 if omitted).
    step_mode : StepMode
        FIXED or ADAPTIVE
    **options
        rtol, atol (adaptive tolerances, defaults 1e-6 / 1e-8),
        max_steps (per ``integrate`` call, default 10000),
        max_step, first_step (adaptive solvers)

    Raises
    ------
    ValueError
        If a fixed-step integrator gets no dt, or dt is not positive

    Examples
    --------
    >>> integrator = RK4Integrator(system, dt=0.02)
    >>> x_next = integrator.step(x, u)
    >>> result = integrator.integrate(x, controller, t_span=(0.0, 0.1))
    >>> result["x"][-1]
    """

    def __init__(
        self,
        system: "ContinuousSystemBase",
        dt: Optional[ScalarLike] = None,
        step_mode: StepMode = StepMode.FIXED,
        **options,
    ):
        if dt is None:
            if step_mode == StepMode.FIXED:
                raise ValueError(
                    f"{self.__class__.__name__} takes fixed steps; the step size dt is required"
                )
            dt = 0.01
        if not dt > 0:
            raise ValueError(f"Time step dt must be positive, got {dt}")

        self.system = system
        self.dt = dt
        self.step_mode = step_mode
        self.options = options

        self.rtol = options.get("rtol", 1e-6)
        self.atol = options.get("atol", 1e-8)
        self.max_steps = options.get("max_steps", 10000)

        self._stats = {
            "total_steps": 0,
            "total_fev": 0,
            "total_time": 0.0,
        }

    # ========================================================================
    # Interface
    # ========================================================================

    @abstractmethod
    def step(
        self,
        x: StateVector,
        u: Optional[ControlVector] = None,
        dt: Optional[ScalarLike] = None,
        t: ScalarLike = 0.0,
    ) -> StateVector:
        """
        Advance x from t to t + dt with u held constant.

        ``dt=None`` means the integrator's own ``dt``.
        """

    @abstractmethod
    def integrate(
        self,
        x0: StateVector,
        u_func: ControlSource,
        t_span: TimeSpan,
        t_eval: Optional[TimePoints] = None,
    ) -> IntegrationResult:
        """
        Carry x0 across t_span under the control source u_func.

        Parameters
        ----------
        x0 : StateVector
            State at t_span[0], shape (nx,)
        u_func : Callable[[t, x], u]
            Control source, e.g. ``lambda t, x: u`` or a ConstantController
        t_span : Tuple[float, float]
            (t_start, t_end)
        t_eval : Optional[ArrayLike]
            Output grid. Fixed-step integrators step exactly from one grid
            point to the next.

        Returns
        -------
        IntegrationResult
            t (T,), x (T, nx) and solver diagnostics

        Raises
        ------
        IntegrationError
            See the module docstring
        """

    @property
    @abstractmethod
    def name(self) -> str:
        """Display name."""

    # ========================================================================
    # Shared Helpers
    # ========================================================================

    def _evaluate_dynamics(
        self, x: StateVector, u: Optional[ControlVector], t: ScalarLike = 0.0
    ) -> StateVector:
        """dx/dt at (x, u, t); counts one function evaluation."""
        self._stats["total_fev"] += 1
        dx = self.system(x, u, t)
        if dx.shape != np.shape(x):
            raise IntegrationError(
                f"{self.system.__class__.__name__} returned a derivative of shape "
                f"{dx.shape} for a state of shape {np.shape(x)}"
            )
        return dx

    def _check_finite(self, x: StateVector, t: ScalarLike) -> None:
        if not np.all(np.isfinite(x)):
            raise IntegrationError(
                f"{self.name}: non-finite state at t={float(t):.6g} "
                f"(integration diverged): {x}"
            )

    def get_stats(self) -> Dict[str, Any]:
        """
        Counters accumulated since construction or the last reset.

        Returns
        -------
        dict
            total_steps, total_fev, total_time and avg_fev_per_step
        """
        stats = dict(self._stats)
        stats["avg_fev_per_step"] = stats["total_fev"] / max(1, stats["total_steps"])
        return stats

    def reset_stats(self):
        self._stats.update(total_steps=0, total_fev=0, total_time=0.0)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(dt={self.dt}, mode={self.step_mode.value})"

    def __str__(self) -> str:
        return f"{self.name} (dt={self.dt:.4f})"
