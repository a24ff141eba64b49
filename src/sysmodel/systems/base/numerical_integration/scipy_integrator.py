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
Adaptive integration through the scipy.integrate OdeSolver classes

Methods: RK45 and RK23 (explicit embedded pairs), DOP853 (explicit, 8th
order), Radau and BDF (implicit, for stiff dynamics), LSODA (switches on
stiffness).

The solver is advanced one accepted step at a time, so the step budget
``max_steps`` holds for adaptive methods just as it does for the fixed-step
ones, and ``nsteps`` in the result counts accepted steps whether or not
t_eval is given. States at t_eval points between two accepted steps come
from the solver's dense output over that step.

A failed solve is never returned as a result with ``success=False``: it
raises IntegrationError, so a diverged prediction cannot reach an estimator
unnoticed.
"""

import time
from typing import TYPE_CHECKING, Optional

import numpy as np
from scipy.integrate import BDF, DOP853, LSODA, RK23, RK45, Radau

from sysmodel.exceptions import IntegrationError
from sysmodel.systems.base.numerical_integration.integrator_base import (
    ControlSource,
    IntegratorBase,
    StepMode,
)
from sysmodel.types.core import ScalarLike, StateVector
from sysmodel.types.trajectories import IntegrationResult, TimePoints, TimeSpan
from sysmodel.types.utilities import as_vector

if TYPE_CHECKING:
    from sysmodel.systems.base.core.continuous_system_base import ContinuousSystemBase

SOLVERS = {
    "RK45": RK45,
    "RK23": RK23,
    "DOP853": DOP853,
    "Radau": Radau,
    "BDF": BDF,
    "LSODA": LSODA,
}

SCIPY_METHODS = tuple(SOLVERS)


class ScipyIntegrator(IntegratorBase):
    """
    Adaptive-step integrator backed by a scipy OdeSolver.

    Parameters
    ----------
    system : ContinuousSystemBase
        System to integrate
    dt : Optional[float]
        Interval covered by one ``step()`` call; the solver subdivides it
    method : str
        One of SCIPY_METHODS
    **options
        rtol, atol, max_step (default inf), first_step (default: solver's
        choice), max_steps (accepted solver steps per ``integrate`` call)

    Raises
    ------
    ValueError
        For a method scipy does not provide

    Examples
    --------
    >>> integrator = ScipyIntegrator(pendulum, method='DOP853', rtol=1e-10, atol=1e-12)
    >>> result = integrator.integrate(x0, lambda t, x: u, t_span=(0.0, 0.1))
    >>> result["x"][-1], result["nsteps"], result["nfev"]
    """

    def __init__(
        self,
        system: "ContinuousSystemBase",
        dt: Optional[ScalarLike] = None,
        method: str = "RK45",
        **options,
    ):
        if method not in SOLVERS:
            raise ValueError(f"Invalid method '{method}'. Choose from: {list(SCIPY_METHODS)}")
        super().__init__(system, dt, StepMode.ADAPTIVE, **options)
        self.method = method

    def step(self, x, u=None, dt=None, t=0.0):
        """One interval [t, t + dt] with u held constant, solved adaptively."""
        dt = self.dt if dt is None else dt
        result = self.integrate(
            x0=x,
            u_func=lambda t_cur, x_cur: u,
            t_span=(t, t + dt),
            t_eval=np.array([t, t + dt]),
        )
        return result["x"][-1]

    def integrate(
        self,
        x0: StateVector,
        u_func: ControlSource,
        t_span: TimeSpan,
        t_eval: Optional[TimePoints] = None,
    ) -> IntegrationResult:
        """
        Solve over t_span, reporting the state at t_eval (or at every
        accepted solver step when t_eval is None).

        The result carries scipy's own diagnostics (status, njev, nlu)
        next to the common IntegrationResult keys.

        Raises
        ------
        ValueError
            If t_eval is not sorted or leaves t_span
        IntegrationError
            If the solver needs more than max_steps accepted steps, reports
            failure, or the state becomes non-finite
        """
        start_time = time.time()
        fev_before = self._stats["total_fev"]

        t0, tf = float(t_span[0]), float(t_span[1])
        x0 = as_vector(x0)
        self._check_finite(x0, t0)

        if t_eval is not None:
            t_eval = np.asarray(t_eval, dtype=float)
            if np.any(np.diff(t_eval) < 0):
                raise ValueError("t_eval must be sorted in increasing order")
            if len(t_eval) and (t_eval[0] < t0 or t_eval[-1] > tf):
                raise ValueError(f"t_eval leaves t_span={t_span}")

        def rhs(t: float, x: np.ndarray) -> np.ndarray:
            return self._evaluate_dynamics(x, u_func(t, x), t)

        solver = SOLVERS[self.method](
            rhs,
            t0,
            x0,
            tf,
            rtol=self.rtol,
            atol=self.atol,
            max_step=self.options.get("max_step", np.inf),
            first_step=self.options.get("first_step", None),
        )

        if t_eval is None:
            t_out, x_out = [t0], [x0]
        else:
            t_out, x_out = [], []
            # Output points at t0 are the initial state itself
            while len(t_out) < len(t_eval) and t_eval[len(t_out)] <= t0:
                t_out.append(t_eval[len(t_out)])
                x_out.append(x0)

        nsteps = 0
        message = "The solver successfully reached the end of the integration interval."
        while solver.status == "running":
            if nsteps >= self.max_steps:
                self._record(start_time, nsteps)
                raise IntegrationError(
                    f"{self.name}: no convergence on t_span={t_span} within "
                    f"max_steps={self.max_steps} (reached t={solver.t:.6g})"
                )

            step_message = solver.step()
            nsteps += 1

            if solver.status == "failed":
                self._record(start_time, nsteps)
                raise IntegrationError(
                    f"{self.name} failed on t_span={t_span} at t={solver.t:.6g}: {step_message}"
                )
            self._check_finite(solver.y, solver.t)

            if t_eval is None:
                t_out.append(solver.t)
                x_out.append(solver.y.copy())
                continue

            dense = None
            while len(t_out) < len(t_eval) and t_eval[len(t_out)] <= solver.t:
                t_k = t_eval[len(t_out)]
                if t_k == solver.t:
                    x_k = solver.y.copy()
                else:
                    if dense is None:
                        dense = solver.dense_output()
                    x_k = dense(t_k)
                t_out.append(t_k)
                x_out.append(x_k)

        elapsed = self._record(start_time, nsteps)

        return {
            "t": np.asarray(t_out, dtype=float),
            "x": np.stack(x_out) if x_out else np.empty((0, len(x0))),
            "success": True,
            "message": message,
            "nfev": self._stats["total_fev"] - fev_before,
            "nsteps": nsteps,
            "integration_time": elapsed,
            "solver": self.name,
            "status": 0,
            "njev": solver.njev,
            "nlu": solver.nlu,
        }

    def _record(self, start_time: float, nsteps: int) -> float:
        elapsed = time.time() - start_time
        self._stats["total_time"] += elapsed
        self._stats["total_steps"] += nsteps
        return elapsed

    @property
    def name(self) -> str:
        return f"scipy.{self.method} (Adaptive)"


__all__ = ["ScipyIntegrator", "SCIPY_METHODS"]
