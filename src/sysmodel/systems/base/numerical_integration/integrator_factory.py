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
Integrator Factory - Unified Interface for Creating Integrators

Provides a convenient factory class for creating the appropriate integrator
from a method name.

Examples
--------
>>> # Fixed-step (dt is the step size)
>>> integrator = IntegratorFactory.create(system, method='rk4', dt=0.01)
>>>
>>> # Adaptive scipy solver
>>> integrator = IntegratorFactory.create(system, method='RK45', rtol=1e-9)
>>>
>>> # What is available?
>>> IntegratorFactory.list_methods()
{'fixed_step': ['euler', 'midpoint', 'heun', 'rk4'], 'scipy': [...]}
"""

from enum import Enum
from typing import TYPE_CHECKING, Dict, List, Optional

from sysmodel.systems.base.numerical_integration.fixed_step_integrators import (
    FIXED_STEP_METHODS,
)
from sysmodel.systems.base.numerical_integration.integrator_base import IntegratorBase
from sysmodel.systems.base.numerical_integration.scipy_integrator import (
    SCIPY_METHODS,
    ScipyIntegrator,
)
from sysmodel.types.backends import IntegrationMethod
from sysmodel.types.core import ScalarLike

if TYPE_CHECKING:
    from sysmodel.systems.base.core.continuous_system_base import ContinuousSystemBase


class IntegratorType(Enum):
    """
    Integrator family.

    FIXED_STEP: manual implementations with exact step Jacobians
    SCIPY: adaptive scipy.integrate OdeSolver methods
    """

    FIXED_STEP = "fixed_step"
    SCIPY = "scipy"


class IntegratorFactory:
    """
    Factory for creating numerical integrators.

    Examples
    --------
    >>> integrator = IntegratorFactory.create(system, method='heun', dt=0.005)
    >>> IntegratorFactory.is_fixed_step_method('heun')
    True
    """

    _default_method: IntegrationMethod = "rk4"

    @classmethod
    def create(
        cls,
        system: "ContinuousSystemBase",
        method: Optional[IntegrationMethod] = None,
        dt: Optional[ScalarLike] = None,
        **options,
    ) -> IntegratorBase:
        """
        Create an integrator for a system.

        Parameters
        ----------
        system : ContinuousSystemBase
            System to integrate
        method : Optional[str]
            Method name (default 'rk4')
        dt : Optional[float]
            Step size (required for fixed-step methods)
        **options
            Integrator options (rtol, atol, max_steps, max_step, ...)

        Raises
        ------
        ValueError
            Unknown method, or a fixed-step method without dt
        """
        method = method or cls._default_method

        if cls.is_fixed_step_method(method):
            if dt is None:
                raise ValueError(f"Fixed-step method '{method}' requires dt")
            return FIXED_STEP_METHODS[method](system, dt, **options)

        if cls.is_scipy_method(method):
            return ScipyIntegrator(system, dt=dt, method=method, **options)

        raise ValueError(
            f"Unknown integration method '{method}'. "
            f"Available: {cls.list_methods()}"
        )

    @classmethod
    def integrator_type(cls, method: IntegrationMethod) -> IntegratorType:
        if cls.is_fixed_step_method(method):
            return IntegratorType.FIXED_STEP
        if cls.is_scipy_method(method):
            return IntegratorType.SCIPY
        raise ValueError(f"Unknown integration method '{method}'")

    @classmethod
    def is_fixed_step_method(cls, method: IntegrationMethod) -> bool:
        """True for the manual fixed-step methods."""
        return method in FIXED_STEP_METHODS

    @classmethod
    def is_scipy_method(cls, method: IntegrationMethod) -> bool:
        """True for adaptive scipy.integrate methods."""
        return method in SCIPY_METHODS

    @classmethod
    def is_known_method(cls, method: IntegrationMethod) -> bool:
        return cls.is_fixed_step_method(method) or cls.is_scipy_method(method)

    @staticmethod
    def list_methods() -> Dict[str, List[str]]:
        """List available methods by family."""
        return {
            IntegratorType.FIXED_STEP.value: list(FIXED_STEP_METHODS),
            IntegratorType.SCIPY.value: list(SCIPY_METHODS),
        }


def create_integrator(
    system: "ContinuousSystemBase",
    method: Optional[IntegrationMethod] = None,
    dt: Optional[ScalarLike] = None,
    **options,
) -> IntegratorBase:
    """
    Convenience wrapper around IntegratorFactory.create().

    Examples
    --------
    >>> integrator = create_integrator(system, 'rk4', dt=0.01)
    """
    return IntegratorFactory.create(system, method=method, dt=dt, **options)


__all__ = [
    "IntegratorFactory",
    "IntegratorType",
    "create_integrator",
]
