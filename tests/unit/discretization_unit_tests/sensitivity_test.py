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
Unit tests for the sensitivity (discrete Jacobian) engines

Tests cover:
1. Scheme binding rules
2. IntegratorSensitivity against finite differences of the propagated state
3. FiniteDifferenceSensitivity with fixed-step and adaptive methods
4. LinearizedDiscretization approximations (closed forms, Van Loan)
5. Error translation and output validation
6. Statistics
"""

import warnings

import numpy as np
import pytest
from scipy.linalg import expm

from sysmodel.exceptions import ConfigurationError, LinearizationError
from sysmodel.systems.base.core.continuous_system_base import FunctionalSystem
from sysmodel.systems.base.discretization import (
    DiscretizationScheme,
    FiniteDifferenceSensitivity,
    IntegratorSensitivity,
    LinearizedDiscretization,
)
from sysmodel.systems.base.utils.linearization_engine import LinearizationEngine
from sysmodel.systems.builtin import LinearSystem, SymbolicPendulum
from sysmodel.types.protocols import SensitivityProtocol

# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
def pendulum():
    return SymbolicPendulum(m=0.5, l=0.7, beta=0.3)


@pytest.fixture
def linear_system():
    A = np.array([[-0.5, 2.0], [-2.0, -0.5]])
    B = np.array([[0.0], [1.0]])
    return LinearSystem(A, B)


def propagated_jacobian(system, scheme, x, u, t=0.0, h=1e-6):
    """Central differences of the scheme's own propagation"""
    integrator = scheme.create_integrator(system)

    def propagate(x0):
        return scheme.propagate(integrator, x0, lambda t_cur, x_cur: u, t)["x"][-1]

    columns = []
    for i in range(len(x)):
        e = np.zeros(len(x))
        e[i] = h
        columns.append((propagate(x + e) - propagate(x - e)) / (2 * h))
    return np.column_stack(columns)


# ============================================================================
# Test Class 1: Scheme Binding
# ============================================================================


class TestSchemeBinding:
    """Test bind_scheme and dt resolution"""

    def test_unbound_by_default(self):
        assert IntegratorSensitivity().scheme is None

    def test_bind(self):
        scheme = DiscretizationScheme(dt=0.1)
        engine = IntegratorSensitivity()
        engine.bind_scheme(scheme)
        assert engine.scheme is scheme

    def test_rebind_equal_scheme(self):
        engine = IntegratorSensitivity(scheme=DiscretizationScheme(dt=0.1, num_substeps=2))
        engine.bind_scheme(DiscretizationScheme(dt=0.1, num_substeps=2))

    def test_rebind_different_scheme(self):
        engine = FiniteDifferenceSensitivity(scheme=DiscretizationScheme(dt=0.1))
        with pytest.raises(ConfigurationError, match="already bound"):
            engine.bind_scheme(DiscretizationScheme(dt=0.2))

    def test_rebind_scheme_with_different_options(self):
        """Test integrator options are part of the bound scheme"""
        engine = FiniteDifferenceSensitivity(
            scheme=DiscretizationScheme(dt=0.1, method="RK45", options={"rtol": 1e-10})
        )
        engine.bind_scheme(DiscretizationScheme(dt=0.1, method="RK45", options={"rtol": 1e-10}))
        with pytest.raises(ConfigurationError, match="already bound"):
            engine.bind_scheme(DiscretizationScheme(dt=0.1, method="RK45"))

    def test_no_separate_integrator_options(self):
        with pytest.raises(TypeError):
            FiniteDifferenceSensitivity(rtol=1e-11)

    def test_bind_non_scheme(self):
        with pytest.raises(ConfigurationError):
            IntegratorSensitivity().bind_scheme(0.1)

    def test_unbound_requires_dt(self, pendulum):
        with pytest.raises(ConfigurationError, match="no bound scheme"):
            IntegratorSensitivity().get_state_jacobian(pendulum, np.zeros(2), np.zeros(1))

    def test_unbound_with_dt(self, pendulum):
        """Test an unbound engine builds a default scheme from dt"""
        Ad = IntegratorSensitivity().get_state_jacobian(
            pendulum, np.zeros(2), np.zeros(1), dt=0.05
        )
        expected = IntegratorSensitivity(
            scheme=DiscretizationScheme(dt=0.05)
        ).get_state_jacobian(pendulum, np.zeros(2), np.zeros(1))
        assert np.array_equal(Ad, expected)

    def test_dt_must_match_bound_scheme(self, pendulum):
        engine = IntegratorSensitivity(scheme=DiscretizationScheme(dt=0.1))
        engine.get_state_jacobian(pendulum, np.zeros(2), np.zeros(1), dt=0.1)

        with pytest.raises(ConfigurationError, match="does not match"):
            engine.get_state_jacobian(pendulum, np.zeros(2), np.zeros(1), dt=0.2)

    @pytest.mark.parametrize("dt", [0.0, -1.0])
    def test_unbound_invalid_dt(self, pendulum, dt):
        with pytest.raises(ConfigurationError):
            FiniteDifferenceSensitivity().get_state_jacobian(
                pendulum, np.zeros(2), np.zeros(1), dt=dt
            )

    def test_protocol(self):
        for engine in [
            IntegratorSensitivity(),
            FiniteDifferenceSensitivity(),
            LinearizedDiscretization(),
        ]:
            assert isinstance(engine, SensitivityProtocol)


# ============================================================================
# Test Class 2: IntegratorSensitivity
# ============================================================================


class TestIntegratorSensitivity:
    """Test the exact Jacobian of the fixed-step map"""

    @pytest.mark.parametrize("method", ["euler", "midpoint", "heun", "rk4"])
    @pytest.mark.parametrize("num_substeps", [0, 3])
    def test_matches_propagation(self, pendulum, method, num_substeps):
        scheme = DiscretizationScheme(dt=0.1, num_substeps=num_substeps, method=method)
        engine = IntegratorSensitivity(scheme=scheme)
        x = np.array([0.8, -0.5])
        u = np.array([0.4])

        Ad = engine.get_state_jacobian(pendulum, x, u, t=1.0)

        assert np.allclose(Ad, propagated_jacobian(pendulum, scheme, x, u, 1.0), atol=1e-7)

    def test_numerical_continuous_jacobians(self):
        """Test systems without analytic Jacobians via central differences"""
        system = FunctionalSystem(
            lambda x, u, t: np.array([x[1], -np.sin(x[0]) + u[0]]), nx=2, nu=1
        )
        scheme = DiscretizationScheme(dt=0.1, num_substeps=2)
        engine = IntegratorSensitivity(scheme=scheme)
        x = np.array([0.3, 0.2])
        u = np.array([0.0])

        Ad = engine.get_state_jacobian(system, x, u)

        assert np.allclose(Ad, propagated_jacobian(system, scheme, x, u), atol=1e-7)

    def test_rejects_adaptive_methods(self):
        with pytest.raises(ConfigurationError, match="fixed-step"):
            IntegratorSensitivity(scheme=DiscretizationScheme(dt=0.1, method="RK45"))

    def test_control_jacobian(self, linear_system):
        scheme = DiscretizationScheme(dt=0.2, num_substeps=20)
        _, Bd = IntegratorSensitivity(scheme=scheme).get_jacobians(
            linear_system, np.zeros(2), np.zeros(1)
        )

        block = np.zeros((3, 3))
        block[:2, :2] = linear_system.A
        block[:2, 2:] = linear_system.B
        assert np.allclose(Bd, expm(0.2 * block)[:2, 2:], atol=1e-7)


# ============================================================================
# Test Class 3: FiniteDifferenceSensitivity
# ============================================================================


class TestFiniteDifferenceSensitivity:
    """Test finite differences of the propagated state"""

    @pytest.mark.parametrize("method", ["central", "forward"])
    def test_matches_integrator_sensitivity(self, pendulum, method):
        scheme = DiscretizationScheme(dt=0.1, num_substeps=4)
        x = np.array([1.0, 0.3])
        u = np.array([-0.2])

        Ad_fd, Bd_fd = FiniteDifferenceSensitivity(method=method, scheme=scheme).get_jacobians(
            pendulum, x, u
        )
        Ad, Bd = IntegratorSensitivity(scheme=scheme).get_jacobians(pendulum, x, u)

        tol = 1e-7 if method == "central" else 1e-5
        assert np.allclose(Ad_fd, Ad, atol=tol)
        assert np.allclose(Bd_fd, Bd, atol=tol)

    def test_adaptive_method(self, linear_system):
        scheme = DiscretizationScheme(
            dt=0.3, method="DOP853", options={"rtol": 1e-11, "atol": 1e-13}
        )
        engine = FiniteDifferenceSensitivity(scheme=scheme)

        Ad = engine.get_state_jacobian(linear_system, np.array([1.0, -1.0]), np.zeros(1))

        assert np.allclose(Ad, expm(0.3 * linear_system.A), atol=1e-4)

    def test_invalid_options(self):
        with pytest.raises(ValueError):
            FiniteDifferenceSensitivity(method="complex_step")
        with pytest.raises(ValueError):
            FiniteDifferenceSensitivity(eps=0.0)


# ============================================================================
# Test Class 4: LinearizedDiscretization
# ============================================================================


class TestLinearizedDiscretization:
    """Test closed-form discretizations of (A, B)"""

    @pytest.fixture
    def scheme(self):
        return DiscretizationScheme(dt=0.1, method="rk4")

    def test_forward_euler(self, linear_system):
        engine = LinearizedDiscretization("forward_euler")
        with pytest.warns(UserWarning):
            engine.bind_scheme(DiscretizationScheme(dt=0.1, method="rk4"))

        Ad, Bd = engine.get_jacobians(linear_system, np.zeros(2), np.zeros(1))

        assert np.allclose(Ad, np.eye(2) + 0.1 * linear_system.A)
        assert np.allclose(Bd, 0.1 * linear_system.B)

    def test_forward_euler_matches_euler_integration(self, pendulum):
        """Test forward_euler differentiates the Euler map exactly"""
        scheme = DiscretizationScheme(dt=0.05, num_substeps=3, method="euler")
        x = np.array([0.4, 0.1])
        u = np.array([0.3])

        Ad_lin = LinearizedDiscretization("forward_euler", scheme=scheme).get_state_jacobian(
            pendulum, x, u
        )
        Ad_exact = IntegratorSensitivity(scheme=scheme).get_state_jacobian(pendulum, x, u)

        assert np.allclose(Ad_lin, Ad_exact, atol=1e-12)

    def test_backward_euler(self, linear_system, scheme):
        with warnings.catch_warnings():
            warnings.simplefilter("ignore", UserWarning)
            engine = LinearizedDiscretization("backward_euler", scheme=scheme)

        Ad, Bd = engine.get_jacobians(linear_system, np.zeros(2), np.zeros(1))

        inv = np.linalg.inv(np.eye(2) - 0.1 * linear_system.A)
        assert np.allclose(Ad, inv)
        assert np.allclose(Bd, 0.1 * inv @ linear_system.B)

    def test_tustin(self, linear_system, scheme):
        with warnings.catch_warnings():
            warnings.simplefilter("ignore", UserWarning)
            engine = LinearizedDiscretization("tustin", scheme=scheme)

        Ad, Bd = engine.get_jacobians(linear_system, np.zeros(2), np.zeros(1))

        I = np.eye(2)
        A = linear_system.A
        inv = np.linalg.inv(I - 0.05 * A)
        assert np.allclose(Ad, inv @ (I + 0.05 * A))
        assert np.allclose(Bd, 0.1 * inv @ linear_system.B)

    def test_matrix_exponential_exact(self, linear_system, scheme):
        engine = LinearizedDiscretization("matrix_exponential", scheme=scheme)

        Ad, Bd = engine.get_jacobians(linear_system, np.zeros(2), np.zeros(1))

        assert np.allclose(Ad, expm(0.1 * linear_system.A), atol=1e-14)

    def test_matrix_exponential_singular_a(self):
        """Test Van Loan handles a singular state matrix (double integrator)"""
        system = LinearSystem([[0.0, 1.0], [0.0, 0.0]], [[0.0], [1.0]])
        engine = LinearizedDiscretization(
            "matrix_exponential", scheme=DiscretizationScheme(dt=0.2)
        )

        Ad, Bd = engine.get_jacobians(system, np.zeros(2), np.zeros(1))

        assert np.allclose(Ad, [[1.0, 0.2], [0.0, 1.0]], atol=1e-14)
        assert np.allclose(Bd, [[0.02], [0.2]], atol=1e-14)

    def test_nonlinear_converges_with_substeps(self, pendulum):
        """Test linearize-then-discretize approaches the exact map Jacobian"""
        x = np.array([1.0, 0.5])
        u = np.array([0.0])

        def error(n):
            scheme = DiscretizationScheme(dt=0.2, num_substeps=n)
            Ad = LinearizedDiscretization("matrix_exponential", scheme=scheme).get_state_jacobian(
                pendulum, x, u
            )
            Ad_ref = IntegratorSensitivity(scheme=scheme).get_state_jacobian(pendulum, x, u)
            return np.abs(Ad - Ad_ref).max()

        assert error(8) < error(2)

    def test_inconsistent_pairing_warns(self):
        with pytest.warns(UserWarning, match="does not match"):
            LinearizedDiscretization(
                "matrix_exponential", scheme=DiscretizationScheme(dt=0.1, method="euler")
            )

    def test_unknown_approximation(self):
        with pytest.raises(ValueError, match="Unknown approximation"):
            LinearizedDiscretization("zoh")

    def test_autonomous(self):
        system = LinearSystem([[-1.0, 0.0], [0.0, -2.0]])
        engine = LinearizedDiscretization(scheme=DiscretizationScheme(dt=0.5))

        Ad, Bd = engine.get_jacobians(system, np.ones(2))

        assert np.allclose(Ad, np.diag(np.exp([-0.5, -1.0])))
        assert Bd.shape == (2, 0)


# ============================================================================
# Test Class 5: Errors and Statistics
# ============================================================================


class TestErrorsAndStats:
    """Test error translation and statistics"""

    def test_integration_failure_becomes_linearization_error(self):
        system = FunctionalSystem(
            lambda x, u, t: np.full(1, np.inf),
            nx=1,
            nu=0,
            jacobian=lambda x, u, t: (np.zeros((1, 1)), np.zeros((1, 0))),
        )
        engine = LinearizedDiscretization(scheme=DiscretizationScheme(dt=0.1))

        with pytest.raises(LinearizationError, match="propagation failed"):
            engine.get_state_jacobian(system, np.ones(1))

    @pytest.mark.parametrize(
        "make_engine, method",
        [
            (IntegratorSensitivity, "rk4"),
            (FiniteDifferenceSensitivity, "rk4"),
            (LinearizedDiscretization, "rk4"),
            (FiniteDifferenceSensitivity, "RK45"),
        ],
    )
    def test_step_budget_applies_to_engines(self, pendulum, make_engine, method):
        """Test every engine integrates under the scheme's step budget"""
        scheme = DiscretizationScheme(
            dt=1.0, num_substeps=50, method=method, options={"max_steps": 10}
        )
        with warnings.catch_warnings():
            warnings.simplefilter("ignore", UserWarning)
            engine = make_engine(scheme=scheme)

        with pytest.raises(LinearizationError, match="max_steps"):
            engine.get_state_jacobian(pendulum, np.array([0.3, 0.0]), np.zeros(1))

    def test_non_finite_jacobian(self):
        system = FunctionalSystem(
            lambda x, u, t: -x,
            nx=1,
            nu=0,
            jacobian=lambda x, u, t: (np.array([[np.nan]]), np.zeros((1, 0))),
        )
        engine = IntegratorSensitivity(scheme=DiscretizationScheme(dt=0.1))

        with pytest.raises(LinearizationError):
            engine.get_state_jacobian(system, np.ones(1))

    def test_linearization_error_is_runtime_error(self):
        assert issubclass(LinearizationError, RuntimeError)

    def test_custom_linearization_engine(self, pendulum):
        engine = IntegratorSensitivity(
            scheme=DiscretizationScheme(dt=0.1), linearization=LinearizationEngine("forward")
        )
        Ad = engine.get_state_jacobian(pendulum, np.array([0.2, 0.0]), np.zeros(1))
        Ad_analytic = IntegratorSensitivity(scheme=DiscretizationScheme(dt=0.1)).get_state_jacobian(
            pendulum, np.array([0.2, 0.0]), np.zeros(1)
        )
        assert np.allclose(Ad, Ad_analytic, atol=1e-6)

    def test_stats(self, pendulum):
        engine = IntegratorSensitivity(scheme=DiscretizationScheme(dt=0.1))
        for _ in range(3):
            engine.get_state_jacobian(pendulum, np.zeros(2), np.zeros(1))

        assert engine.get_stats()["calls"] == 3
        engine.reset_stats()
        assert engine.get_stats()["calls"] == 0

    def test_repr(self):
        engine = IntegratorSensitivity(scheme=DiscretizationScheme(dt=0.1))
        assert "IntegratorSensitivity" in repr(engine)
