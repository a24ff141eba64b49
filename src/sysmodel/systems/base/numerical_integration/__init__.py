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
Numerical Integration
=====================

Integrators for ordinary differential equations dx/dt = f(x, u, t).

>>> from sysmodel.systems.base.numerical_integration import (
...     IntegratorFactory,
...     create_integrator,
... )
>>>
>>> integrator = IntegratorFactory.create(system, method='rk4', dt=0.01)

Supported Methods
-----------------
- Fixed step: euler, midpoint, heun, rk4 (with exact step Jacobians)
- Adaptive (scipy): RK45, RK23, DOP853, Radau, BDF, LSODA
"""

from .fixed_step_integrators import (
    ExplicitEulerIntegrator,
    FixedStepIntegratorBase,
    HeunIntegrator,
    MidpointIntegrator,
    RK4Integrator,
    create_fixed_step_integrator,
)
from .integrator_base import ControlSource, IntegratorBase, StepMode
from .integrator_factory import IntegratorFactory, IntegratorType, create_integrator
from .scipy_integrator import ScipyIntegrator

__all__ = [
    # Base classes and enums
    "IntegratorBase",
    "StepMode",
    "ControlSource",
    # Factory
    "IntegratorFactory",
    "IntegratorType",
    "create_integrator",
    # Fixed-step integrators
    "FixedStepIntegratorBase",
    "ExplicitEulerIntegrator",
    "MidpointIntegrator",
    "HeunIntegrator",
    "RK4Integrator",
    "create_fixed_step_integrator",
    # Adaptive
    "ScipyIntegrator",
]
