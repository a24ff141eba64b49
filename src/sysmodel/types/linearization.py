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
Linearization Types

Continuous:  d(δx)/dt = A·δx + B·δu
Discrete:    δx[k+1]  = Ad·δx[k] + Bd·δu[k]

where A = ∂f/∂x, B = ∂f/∂u and (Ad, Bd) are the Jacobians of the discrete
state-transition map obtained by integrating f over one step.
"""

from typing import Tuple

from .core import InputMatrix, StateMatrix

DeterministicLinearization = Tuple[StateMatrix, InputMatrix]
"""
Continuous Jacobian pair (A, B).

Examples
--------
>>> A, B = system.linearize(x, u, t)
"""

DiscreteLinearization = Tuple[StateMatrix, InputMatrix]
"""
Discrete Jacobian pair (Ad, Bd) of the one-step transition map.

Examples
--------
>>> Ad, Bd = sensitivity.get_jacobians(system, x, u, t)
"""


__all__ = [
    "DeterministicLinearization",
    "DiscreteLinearization",
]
