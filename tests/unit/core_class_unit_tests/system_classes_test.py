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
Unit tests for the system classes

Tests cover:
1. ContinuousSystemBase call coercion and controller binding
2. FunctionalSystem with and without Jacobians
3. SymbolicSystem compilation, validation and linearization
4. Built-in systems (linear, zero dynamics, mechanical)
5. Discrete-time systems
"""

import numpy as np
import pytest
import sympy as sp
from scipy.linalg import expm

from sysmodel.controllers import ConstantController
from sysmodel.exceptions import ConfigurationError
from sysmodel.systems import (
    ContinuousSystemBase,
    DiscreteLinearSystem,
    DoubleIntegrator,
    FunctionalSystem,
    HarmonicOscillator,
    LinearSystem,
    SymbolicPendulum,
    SymbolicSystem,
    ValidationError,
    ZeroDynamics,
)
from sysmodel.types.protocols import DynamicalSystemProtocol, LinearizableSystemProtocol

# ============================================================================
# Mock Systems
# ============================================================================


class Decay(ContinuousSystemBase):
    """dx/dt = -x + u, no analytic Jacobian"""

    nx = 1
    nu = 1

    def evaluate(self, x, u, t):
        return -x + u


class TimeVaryingDecay(SymbolicSystem):
    """dx/dt = -a*x + sin(t)*u"""

    def define_system(self, a=1.0):
        x, u, t = sp.symbols("x u t", real=True)
        a_sym = sp.symbols("a", real=True, positive=True)
        self.state_vars = [x]
        self.control_vars = [u]
        self.time_var = t
        self.parameters = {a_sym: a}
        self._f_sym = sp.Matrix([-a_sym * x + sp.sin(t) * u])


class AutonomousSpiral(SymbolicSystem):
    """Autonomous 2-state linear spiral"""

    def define_system(self):
        x1, x2 = sp.symbols("x1 x2", real=True)
        self.state_vars = [x1, x2]
        self.control_vars = []
        self._f_sym = sp.Matrix([-x1 + x2, -x1 - x2])


# ============================================================================
# Test Class 1: ContinuousSystemBase
# ============================================================================


class TestContinuousSystemBase:
    """Test the abstract base interface"""

    def test_call_coerces_inputs(self):
        system = Decay()
        dx = system([1.0], 0.5, 0)
        assert isinstance(dx, np.ndarray)
        assert dx.shape == (1,)
        assert np.allclose(dx, [-0.5])

    def test_controlled_system_requires_u(self):
        with pytest.raises(ValueError, match="requires control"):
            Decay()(np.array([1.0]))

    def test_no_analytic_jacobian(self):
        system = Decay()
        assert not system.has_analytic_jacobian
        with pytest.raises(NotImplementedError):
            system.linearize(np.array([1.0]), np.array([0.0]))

    def test_properties(self):
        system = Decay()
        assert system.is_continuous
        assert not system.is_discrete
        assert not system.is_autonomous

    def test_protocols(self):
        assert isinstance(Decay(), DynamicalSystemProtocol)
        assert isinstance(DoubleIntegrator(), LinearizableSystemProtocol)

    def test_controller_binding(self):
        system = Decay()
        controller = ConstantController(u=[2.0])
        system.set_controller(controller)

        assert system.controller is controller
        assert np.allclose(system.closed_loop(np.array([1.0]), 0.0), [1.0])

    def test_controller_dimension_checked(self):
        with pytest.raises(ValueError):
            Decay().set_controller(ConstantController(nu=2))

    def test_closed_loop_without_controller(self):
        with pytest.raises(RuntimeError):
            Decay().closed_loop(np.array([1.0]))

    def test_unbind(self):
        system = Decay()
        system.set_controller(ConstantController(nu=1))
        system.set_controller(None)
        assert system.controller is None


# ============================================================================
# Test Class 2: FunctionalSystem
# ============================================================================


class TestFunctionalSystem:
    """Test systems built from callables"""

    def test_evaluate(self):
        system = FunctionalSystem(lambda x, u, t: np.array([x[1], u[0]]), nx=2, nu=1)
        assert np.allclose(system(np.array([0.0, 3.0]), np.array([1.0])), [3.0, 1.0])

    def test_jacobian_callable(self):
        A = np.array([[0.0, 1.0], [0.0, 0.0]])
        B = np.array([[0.0], [1.0]])
        system = FunctionalSystem(
            lambda x, u, t: A @ x + B @ u, nx=2, nu=1, jacobian=lambda x, u, t: (A, B)
        )

        assert system.has_analytic_jacobian
        A_out, B_out = system.linearize(np.zeros(2), np.zeros(1))
        assert np.array_equal(A_out, A)
        assert np.array_equal(B_out, B)

    def test_without_jacobian(self):
        system = FunctionalSystem(lambda x, u, t: -x, nx=1, nu=0)
        assert not system.has_analytic_jacobian
        with pytest.raises(NotImplementedError):
            system.linearize(np.zeros(1))

    @pytest.mark.parametrize("nx, nu", [(0, 1), (2, -1)])
    def test_invalid_dimensions(self, nx, nu):
        with pytest.raises(ValueError):
            FunctionalSystem(lambda x, u, t: x, nx=nx, nu=nu)

    def test_repr_uses_name(self):
        system = FunctionalSystem(lambda x, u, t: x, nx=1, nu=0, name="growth")
        assert "growth" in repr(system)


# ============================================================================
# Test Class 3: SymbolicSystem
# ============================================================================


class TestSymbolicSystem:
    """Test symbolic definition, compilation and linearization"""

    def test_dimensions(self):
        system = SymbolicPendulum()
        assert system.nx == 2
        assert system.nu == 1
        assert system.has_analytic_jacobian

    def test_evaluate_pendulum(self):
        system = SymbolicPendulum(m=1.0, l=1.0, beta=0.5, g=9.81)
        dx = system(np.array([np.pi / 2, 1.0]), np.array([2.0]))
        assert np.allclose(dx, [1.0, -0.5 + 9.81 + 2.0])

    def test_linearize_pendulum(self):
        system = SymbolicPendulum(m=2.0, l=0.5, beta=0.3, g=9.81)
        A, B = system.linearize(np.array([0.0, 0.0]), np.array([0.0]))

        ml2 = 2.0 * 0.25
        assert np.allclose(A, [[0.0, 1.0], [9.81 / 0.5, -0.3 / ml2]])
        assert np.allclose(B, [[0.0], [1.0 / ml2]])

    def test_time_varying(self):
        system = TimeVaryingDecay(a=2.0)
        assert system.is_time_varying

        dx = system(np.array([1.0]), np.array([1.0]), t=np.pi / 2)
        assert np.allclose(dx, [-1.0])

        _, B = system.linearize(np.array([1.0]), np.array([1.0]), t=0.0)
        assert np.allclose(B, [[0.0]])

    def test_autonomous(self):
        system = AutonomousSpiral()
        assert system.nu == 0
        assert system.is_autonomous

        A, B = system.linearize(np.array([1.0, 1.0]))
        assert np.allclose(A, [[-1.0, 1.0], [-1.0, -1.0]])
        assert B.shape == (2, 0)

    def test_missing_define_system(self):
        with pytest.raises(NotImplementedError):
            SymbolicSystem()

    def test_undeclared_symbol(self):
        class Broken(SymbolicSystem):
            def define_system(self):
                x, k = sp.symbols("x k")
                self.state_vars = [x]
                self._f_sym = sp.Matrix([-k * x])

        with pytest.raises(ValidationError, match="undeclared"):
            Broken()

    def test_row_count_mismatch(self):
        class Broken(SymbolicSystem):
            def define_system(self):
                x1, x2 = sp.symbols("x1 x2")
                self.state_vars = [x1, x2]
                self._f_sym = sp.Matrix([x2])

        with pytest.raises(ValidationError):
            Broken()

    def test_validation_error_is_configuration_error(self):
        assert issubclass(ValidationError, ConfigurationError)

    def test_print_equations(self, capsys):
        DoubleIntegrator().print_equations()
        captured = capsys.readouterr()
        assert "dq/dt = v" in captured.out


# ============================================================================
# Test Class 4: Built-in Systems
# ============================================================================


class TestBuiltinSystems:
    """Test built-in example systems"""

    def test_double_integrator(self):
        system = DoubleIntegrator(m=2.0)
        assert np.allclose(system(np.array([0.0, 3.0]), np.array([4.0])), [3.0, 2.0])

    def test_harmonic_oscillator_solution(self):
        system = HarmonicOscillator(omega=2.0)
        x0 = np.array([1.0, 0.0])
        x = system.analytical_solution(x0, np.pi / 4)
        assert np.allclose(x, [0.0, -2.0])

    def test_harmonic_oscillator_energy(self):
        system = HarmonicOscillator(omega=3.0)
        assert system.energy(np.array([1.0, 0.0])) == pytest.approx(4.5)

    def test_harmonic_oscillator_invalid_omega(self):
        with pytest.raises(ValueError):
            HarmonicOscillator(omega=0.0)

    def test_linear_system(self):
        A = np.array([[0.0, 1.0], [-1.0, 0.0]])
        B = np.array([[0.0], [1.0]])
        system = LinearSystem(A, B)

        assert system.nx == 2 and system.nu == 1
        assert np.allclose(system(np.array([1.0, 0.0]), np.array([0.5])), [0.0, -0.5])
        assert np.allclose(system.transition_matrix(0.3), expm(0.3 * A))

        A_out, B_out = system.linearize(np.zeros(2), np.zeros(1))
        A_out[0, 0] = 5.0
        assert system.A[0, 0] == 0.0

    def test_linear_system_autonomous(self):
        system = LinearSystem([[-1.0]])
        assert system.nu == 0
        assert np.allclose(system(np.array([2.0])), [-2.0])

    def test_linear_system_bad_shapes(self):
        with pytest.raises(ValueError):
            LinearSystem(np.ones((2, 3)))
        with pytest.raises(ValueError):
            LinearSystem(np.eye(2), np.ones((3, 1)))

    def test_zero_dynamics(self):
        system = ZeroDynamics(nx=3, nu=2)
        assert np.array_equal(system(np.ones(3), np.ones(2)), np.zeros(3))
        A, B = system.linearize(np.ones(3), np.ones(2))
        assert A.shape == (3, 3) and B.shape == (3, 2)
        assert not A.any() and not B.any()


# ============================================================================
# Test Class 5: Discrete Systems
# ============================================================================


class TestDiscreteLinearSystem:
    """Test x[k+1] = Ad x[k] + Bd u[k]"""

    def test_step(self):
        system = DiscreteLinearSystem(Ad=np.eye(2), Bd=np.array([[0.0], [0.1]]))
        assert np.allclose(system(np.zeros(2), np.array([1.0])), [0.0, 0.1])
        assert system.is_discrete and not system.is_continuous

    def test_autonomous(self):
        system = DiscreteLinearSystem(Ad=2.0 * np.eye(2))
        assert system.nu == 0
        assert np.allclose(system(np.ones(2)), [2.0, 2.0])

    def test_one_dimensional_bd(self):
        system = DiscreteLinearSystem(Ad=np.eye(2), Bd=[0.5, 1.0])
        assert system.nu == 1

    def test_bad_shapes(self):
        with pytest.raises(ValueError):
            DiscreteLinearSystem(Ad=np.ones((2, 3)))
        with pytest.raises(ValueError):
            DiscreteLinearSystem(Ad=np.eye(2), Bd=np.ones((3, 1)))
