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
Core system classes.

- ContinuousSystemBase: dx/dt = f(x, u, t)
- FunctionalSystem: continuous system from plain callables
- SymbolicSystem: continuous system defined with SymPy
- DiscreteSystemBase: x[k+1] = f(x[k], u[k], k)
- DiscreteLinearSystem: x[k+1] = Ad x[k] + Bd u[k]
"""

from .continuous_system_base import ContinuousSystemBase, FunctionalSystem
from .discrete_system_base import DiscreteLinearSystem, DiscreteSystemBase
from .symbolic_system import SymbolicSystem, ValidationError

__all__ = [
    "ContinuousSystemBase",
    "FunctionalSystem",
    "SymbolicSystem",
    "ValidationError",
    "DiscreteSystemBase",
    "DiscreteLinearSystem",
]
