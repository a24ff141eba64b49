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
Types Module - Type Definitions for sysmodel

Central import point for all type definitions. Organized into
domain-specific modules but re-exported here for convenience.

Usage
-----
>>> from sysmodel.types import (
...     StateVector,
...     ControlVector,
...     StateMatrix,
...     IntegrationResult,
... )

Module Organization
------------------
- core: Basic arrays, vectors, matrices
- backends: Backend and method identifiers
- linearization: Jacobian tuples
- trajectories: Time grids and integration results
- protocols: Capability-set interfaces
- utilities: Execution statistics and array helpers
"""

from .backends import (
    Backend,
    DiscreteApproximation,
    IntegrationMethod,
    LinearizationMethod,
    SensitivityMethod,
)
from .core import (
    ArrayLike,
    ControlMatrix,
    ControlVector,
    DimensionTuple,
    InputMatrix,
    IntegerLike,
    NoiseJacobian,
    NoiseVector,
    NumpyArray,
    ScalarLike,
    StateMatrix,
    StateVector,
)
from .linearization import DeterministicLinearization, DiscreteLinearization
from .protocols import (
    ControllerProtocol,
    DynamicalSystemProtocol,
    IntegratorProtocol,
    LinearizableSystemProtocol,
    SensitivityProtocol,
    SystemModelProtocol,
)
from .trajectories import IntegrationResult, TimePoints, TimeSpan
from .utilities import ExecutionStats, as_vector, is_finite

__all__ = [
    # Core
    "ArrayLike",
    "NumpyArray",
    "ScalarLike",
    "IntegerLike",
    "StateVector",
    "ControlVector",
    "NoiseVector",
    "StateMatrix",
    "InputMatrix",
    "ControlMatrix",
    "NoiseJacobian",
    "DimensionTuple",
    # Backends
    "Backend",
    "IntegrationMethod",
    "SensitivityMethod",
    "LinearizationMethod",
    "DiscreteApproximation",
    # Linearization
    "DeterministicLinearization",
    "DiscreteLinearization",
    # Trajectories
    "TimePoints",
    "TimeSpan",
    "IntegrationResult",
    # Protocols
    "DynamicalSystemProtocol",
    "LinearizableSystemProtocol",
    "ControllerProtocol",
    "IntegratorProtocol",
    "SensitivityProtocol",
    "SystemModelProtocol",
    # Utilities
    "ExecutionStats",
    "as_vector",
    "is_finite",
]
