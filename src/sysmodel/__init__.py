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
sysmodel - Continuous-Time System Models for Recursive Estimators
=================================================================

Wraps a continuous-time, control-driven dynamical system so that a
discrete-time recursive estimator can call it every prediction step:

>>> from sysmodel import ContinuousSystemModel, IntegratorSensitivity
>>> from sysmodel.systems import DoubleIntegrator
>>>
>>> model = ContinuousSystemModel(
...     DoubleIntegrator(), IntegratorSensitivity(), dt=0.1, num_substeps=5
... )
>>> x_next = model.compute_dynamics([0.0, 0.0], [1.0], 0.0)
>>> A = model.compute_derivative_state([0.0, 0.0], [1.0], 0.0)
>>> G = model.compute_derivative_noise()
"""

__version__ = "0.1.0"

from sysmodel.controllers import ConstantController, ControllerBase
from sysmodel.exceptions import (
    ConfigurationError,
    DimensionMismatchError,
    IntegrationError,
    LinearizationError,
    SystemModelError,
)
from sysmodel.observers import ContinuousSystemModel, DiscreteSystemModel, SystemModelBase
from sysmodel.systems.base.discretization import (
    DiscretizationScheme,
    FiniteDifferenceSensitivity,
    IntegratorSensitivity,
    LinearizedDiscretization,
    SensitivityApproximationBase,
)
from sysmodel.systems.base.numerical_integration import IntegratorFactory, create_integrator
from sysmodel.systems.base.utils import LinearizationEngine

__all__ = [
    "__version__",
    # Errors
    "SystemModelError",
    "ConfigurationError",
    "DimensionMismatchError",
    "IntegrationError",
    "LinearizationError",
    # Controllers
    "ControllerBase",
    "ConstantController",
    # Discretization
    "DiscretizationScheme",
    "SensitivityApproximationBase",
    "IntegratorSensitivity",
    "FiniteDifferenceSensitivity",
    "LinearizedDiscretization",
    # Engines
    "IntegratorFactory",
    "create_integrator",
    "LinearizationEngine",
    # System models
    "SystemModelBase",
    "ContinuousSystemModel",
    "DiscreteSystemModel",
]
