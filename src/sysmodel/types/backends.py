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
Backend and Configuration Types

Literal identifiers for numerical backends, integration methods and
sensitivity (discrete Jacobian) methods.
"""

from typing import Literal

Backend = Literal["numpy"]
"""
Backend identifier for numerical computation.

sysmodel evaluates dynamics with NumPy only; the alias is kept so the
integrator signatures read the same as the rest of the framework.
"""

IntegrationMethod = str
"""
Integration method name.

Fixed-step (manual implementations):
- 'euler', 'midpoint', 'heun', 'rk4'

Adaptive (scipy.integrate OdeSolver):
- 'RK45', 'RK23', 'DOP853', 'Radau', 'BDF', 'LSODA'
"""

SensitivityMethod = Literal["integrator", "finite_difference", "linearized"]
"""Family of discrete-Jacobian engine."""

LinearizationMethod = Literal["auto", "analytic", "central", "forward"]
"""How continuous Jacobians (A, B) are obtained."""

DiscreteApproximation = Literal[
    "forward_euler", "backward_euler", "tustin", "matrix_exponential"
]
"""Linearize-then-discretize approximation of a continuous (A, B) pair."""


__all__ = [
    "Backend",
    "IntegrationMethod",
    "SensitivityMethod",
    "LinearizationMethod",
    "DiscreteApproximation",
]
