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
Trajectory and Integration Result Types

Time-major conventions: t has shape (T,), x has shape (T, nx).
"""

from typing import Any, Tuple

from typing_extensions import TypedDict

from .core import ArrayLike

TimePoints = ArrayLike
"""
Time grid, shape (T,).

Examples
--------
>>> t_eval: TimePoints = np.linspace(0.0, 0.1, 6)  # 5 substeps of 0.02
"""

TimeSpan = Tuple[float, float]
"""Integration interval (t_start, t_end)."""


class IntegrationResult(TypedDict, total=False):
    """
    Result from continuous-time integration.

    Attributes
    ----------
    t : ArrayLike
        Time points (T,)
    x : ArrayLike
        State trajectory (T, nx) - time-major ordering
    success : bool
        Whether integration succeeded
    message : str
        Status message
    nfev : int
        Number of function evaluations
    nsteps : int
        Number of integration steps
    integration_time : float
        Computation time in seconds
    solver : str
        Name of solver used

    Examples
    --------
    >>> result: IntegrationResult = integrator.integrate(
    ...     x0=np.array([1.0, 0.0]),
    ...     u_func=lambda t, x: np.zeros(1),
    ...     t_span=(0.0, 0.1)
    ... )
    >>> x_final = result["x"][-1]
    """

    t: ArrayLike
    x: ArrayLike
    success: bool
    message: str
    nfev: int
    nsteps: int
    integration_time: float
    solver: str
    # Optional fields
    status: int
    njev: int
    nlu: int
    sol: Any


__all__ = [
    "TimePoints",
    "TimeSpan",
    "IntegrationResult",
]
