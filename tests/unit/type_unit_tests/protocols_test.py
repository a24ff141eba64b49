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
Unit Tests for Protocol Definitions

Tests cover:
1. Mock implementations satisfy protocol contracts
2. isinstance() runtime checks work correctly
3. Incomplete implementations are rejected
4. Real package classes satisfy the appropriate protocols
"""

import numpy as np
import pytest

from sysmodel.controllers import ConstantController
from sysmodel.observers import ContinuousSystemModel, DiscreteSystemModel
from sysmodel.systems.base.discretization import (
    DiscretizationScheme,
    FiniteDifferenceSensitivity,
    IntegratorSensitivity,
    LinearizedDiscretization,
)
from sysmodel.systems.base.numerical_integration import IntegratorFactory
from sysmodel.systems.base.core.discrete_system_base import DiscreteLinearSystem
from sysmodel.systems.builtin import DoubleIntegrator, LinearSystem
from sysmodel.types.protocols import (
    ControllerProtocol,
    DynamicalSystemProtocol,
    IntegratorProtocol,
    LinearizableSystemProtocol,
    SensitivityProtocol,
    SystemModelProtocol,
)

# ============================================================================
# Mock Implementations
# ============================================================================


class MockDynamicalSystem:
    """Minimal dynamical system (no base class)"""

    @property
    def nx(self):
        return 2

    @property
    def nu(self):
        return 1

    def evaluate(self, x, u, t):
        return np.array([x[1], u[0]])


class MockLinearizableSystem(MockDynamicalSystem):
    """Adds analytic Jacobians"""

    def linearize(self, x, u=None, t=0.0):
        return np.array([[0.0, 1.0], [0.0, 0.0]]), np.array([[0.0], [1.0]])


class MockSystemModel:
    """Estimator-facing trio"""

    def compute_dynamics(self, x, u, t):
        return x

    def compute_derivative_state(self, x, u, t):
        return np.eye(len(x))

    def compute_derivative_noise(self, x, u, t):
        return np.eye(len(x))


class IncompleteSystemModel:
    """Missing compute_derivative_noise"""

    def compute_dynamics(self, x, u, t):
        return x

    def compute_derivative_state(self, x, u, t):
        return np.eye(len(x))


class NotASystem:
    def evaluate(self, x, u, t):
        return x


# ============================================================================
# Test Class 1: Mock Implementations
# ============================================================================


class TestMockImplementations:
    """Test structural typing with classes that share no base"""

    def test_dynamical_system(self):
        assert isinstance(MockDynamicalSystem(), DynamicalSystemProtocol)

    def test_linearizable_system(self):
        system = MockLinearizableSystem()
        assert isinstance(system, LinearizableSystemProtocol)
        assert isinstance(system, DynamicalSystemProtocol)

    def test_dynamical_is_not_linearizable(self):
        assert not isinstance(MockDynamicalSystem(), LinearizableSystemProtocol)

    def test_system_model(self):
        assert isinstance(MockSystemModel(), SystemModelProtocol)

    def test_incomplete_system_model_rejected(self):
        assert not isinstance(IncompleteSystemModel(), SystemModelProtocol)

    def test_missing_dimensions_rejected(self):
        assert not isinstance(NotASystem(), DynamicalSystemProtocol)


# ============================================================================
# Test Class 2: Real Package Classes
# ============================================================================


class TestPackageClasses:
    """Test that the package's own classes satisfy their protocols"""

    def test_systems(self):
        for system in [LinearSystem(np.eye(2)), DoubleIntegrator()]:
            assert isinstance(system, DynamicalSystemProtocol)
            assert isinstance(system, LinearizableSystemProtocol)

    def test_discrete_system(self):
        system = DiscreteLinearSystem(np.eye(2), np.ones(2))
        assert isinstance(system, LinearizableSystemProtocol)

    def test_controller(self):
        assert isinstance(ConstantController(nu=1), ControllerProtocol)

    @pytest.mark.parametrize("method", ["euler", "rk4", "RK45"])
    def test_integrators(self, method):
        integrator = IntegratorFactory.create(DoubleIntegrator(), method=method, dt=0.1)
        assert isinstance(integrator, IntegratorProtocol)

    def test_sensitivity_engines(self):
        scheme = DiscretizationScheme(dt=0.1)
        engines = [
            IntegratorSensitivity(scheme=scheme),
            FiniteDifferenceSensitivity(scheme=scheme),
            LinearizedDiscretization(scheme=scheme),
        ]
        for engine in engines:
            assert isinstance(engine, SensitivityProtocol)

    def test_system_models(self):
        continuous = ContinuousSystemModel(DoubleIntegrator(), dt=0.1)
        discrete = DiscreteSystemModel(DiscreteLinearSystem(np.eye(2), np.ones(2)))

        assert isinstance(continuous, SystemModelProtocol)
        assert isinstance(discrete, SystemModelProtocol)

    def test_engine_is_not_system_model(self):
        assert not isinstance(IntegratorSensitivity(), SystemModelProtocol)
