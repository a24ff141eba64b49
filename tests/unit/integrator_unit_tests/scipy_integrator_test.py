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
Unit tests for ScipyIntegrator

Tests cover:
1. Initialization and method validation
2. Accuracy of adaptive integration
3. Output grids and max_step
4. Solver diagnostics in the result
5. Failure modes and the step budget
"""

import numpy as np
import pytest

from sysmodel.exceptions import IntegrationError
from sysmodel.systems.base.core.continuous_system_base import FunctionalSystem
from sysmodel.systems.base.numerical_integration.integrator_base import StepMode
from sysmodel.systems.base.numerical_integration.scipy_integrator import (
    SCIPY_METHODS,
    ScipyIntegrator,
)


@pytest.fixture
def decay_system():
    """dx/dt = -x + u"""
    return FunctionalSystem(lambda x, u, t: -x + u, nx=1, nu=1, name="decay")


@pytest.fixture
def oscillator():
    """Autonomous harmonic oscillator with omega = 1"""
    return FunctionalSystem(lambda x, u, t: np.array([x[1], -x[0]]), nx=2, nu=0)


class TestScipyIntegratorInit:
    """Test initialization"""

    def test_defaults(self, decay_system):
        integrator = ScipyIntegrator(decay_system)
        assert integrator.method == "RK45"
        assert integrator.step_mode == StepMode.ADAPTIVE
        assert integrator.rtol == 1e-6
        assert integrator.atol == 1e-8
        assert "RK45" in integrator.name

    @pytest.mark.parametrize("method", SCIPY_METHODS)
    def test_all_methods_accepted(self, decay_system, method):
        assert ScipyIntegrator(decay_system, method=method).method == method

    def test_invalid_method(self, decay_system):
        with pytest.raises(ValueError, match="Invalid method"):
            ScipyIntegrator(decay_system, method="rk4")


class TestScipyIntegration:
    """Test adaptive integration"""

    @pytest.mark.parametrize("method", ["RK45", "DOP853", "Radau", "BDF", "LSODA"])
    def test_accuracy(self, decay_system, method):
        integrator = ScipyIntegrator(decay_system, method=method, rtol=1e-9, atol=1e-11)

        result = integrator.integrate(np.array([1.0]), lambda t, x: np.array([0.0]), (0.0, 1.0))

        assert result["success"]
        assert np.allclose(result["x"][-1], [np.exp(-1.0)], rtol=1e-6)

    def test_t_eval(self, oscillator):
        integrator = ScipyIntegrator(oscillator, rtol=1e-10, atol=1e-12)
        t_eval = np.linspace(0.0, np.pi, 5)

        result = integrator.integrate(np.array([1.0, 0.0]), lambda t, x: None, (0.0, np.pi), t_eval)

        assert np.allclose(result["t"], t_eval)
        assert result["x"].shape == (5, 2)
        assert np.allclose(result["x"][:, 0], np.cos(t_eval), atol=1e-8)

    def test_max_step_limits_steps(self, oscillator):
        free = ScipyIntegrator(oscillator)
        capped = ScipyIntegrator(oscillator, max_step=0.01)

        r_free = free.integrate(np.array([1.0, 0.0]), lambda t, x: None, (0.0, 1.0))
        r_capped = capped.integrate(np.array([1.0, 0.0]), lambda t, x: None, (0.0, 1.0))

        assert r_capped["nsteps"] >= 100
        assert r_capped["nsteps"] > r_free["nsteps"]

    def test_step(self, decay_system):
        integrator = ScipyIntegrator(decay_system, dt=0.5, rtol=1e-10, atol=1e-12)
        x_next = integrator.step(np.array([0.0]), np.array([1.0]))
        assert np.allclose(x_next, [1.0 - np.exp(-0.5)], rtol=1e-8)

    def test_diagnostics(self, decay_system):
        integrator = ScipyIntegrator(decay_system, method="Radau")
        result = integrator.integrate(np.array([1.0]), lambda t, x: np.zeros(1), (0.0, 1.0))

        assert result["status"] == 0
        assert result["nfev"] > 0
        assert "njev" in result and "nlu" in result
        assert integrator.get_stats()["total_fev"] == result["nfev"]

    def test_nsteps_counts_accepted_steps_with_t_eval(self, oscillator):
        """Test nsteps is the accepted step count, not the evaluation count"""
        integrator = ScipyIntegrator(oscillator, rtol=1e-9, atol=1e-11)
        t_eval = np.linspace(0.0, 2.0, 11)

        with_grid = integrator.integrate(np.array([1.0, 0.0]), lambda t, x: None, (0.0, 2.0), t_eval)
        without_grid = integrator.integrate(np.array([1.0, 0.0]), lambda t, x: None, (0.0, 2.0))

        assert with_grid["nsteps"] < with_grid["nfev"]
        assert with_grid["nsteps"] == without_grid["nsteps"]
        assert with_grid["nsteps"] == len(without_grid["t"]) - 1
        assert integrator.get_stats()["avg_fev_per_step"] > 1

    def test_t_eval_between_steps_uses_dense_output(self, oscillator):
        integrator = ScipyIntegrator(oscillator, method="DOP853", rtol=1e-11, atol=1e-13)
        t_eval = np.array([0.0, 0.013, 0.5, 1.7, 3.0])

        result = integrator.integrate(np.array([1.0, 0.0]), lambda t, x: None, (0.0, 3.0), t_eval)

        assert np.array_equal(result["t"], t_eval)
        assert np.array_equal(result["x"][0], [1.0, 0.0])
        assert np.allclose(result["x"][:, 0], np.cos(t_eval), atol=1e-9)


class TestScipyFailures:
    """Test failures become IntegrationError"""

    def test_non_finite_initial_state(self, decay_system):
        integrator = ScipyIntegrator(decay_system)
        with pytest.raises(IntegrationError):
            integrator.integrate(np.array([np.nan]), lambda t, x: np.zeros(1), (0.0, 1.0))

    def test_finite_time_blow_up(self):
        """dx/dt = x² blows up at t = 1 for x0 = 1"""
        system = FunctionalSystem(lambda x, u, t: x**2, nx=1, nu=0)
        integrator = ScipyIntegrator(system)

        with pytest.raises(IntegrationError):
            integrator.integrate(np.array([1.0]), lambda t, x: None, (0.0, 2.0))

    @pytest.mark.parametrize("method", ["RK45", "DOP853", "Radau", "LSODA"])
    def test_step_budget(self, oscillator, method):
        """Test max_steps bounds the accepted solver steps"""
        integrator = ScipyIntegrator(oscillator, method=method, max_steps=2, max_step=1e-3)

        with pytest.raises(IntegrationError, match="max_steps"):
            integrator.integrate(np.array([1.0, 0.0]), lambda t, x: None, (0.0, 1.0))

    def test_step_budget_with_t_eval(self, oscillator):
        integrator = ScipyIntegrator(oscillator, max_steps=5, max_step=0.01)

        with pytest.raises(IntegrationError, match="max_steps"):
            integrator.integrate(
                np.array([1.0, 0.0]), lambda t, x: None, (0.0, 1.0), np.array([0.0, 1.0])
            )

    def test_budget_large_enough(self, oscillator):
        integrator = ScipyIntegrator(oscillator, max_steps=150, max_step=0.01)
        result = integrator.integrate(np.array([1.0, 0.0]), lambda t, x: None, (0.0, 1.0))
        assert 100 <= result["nsteps"] <= 150

    def test_t_eval_outside_span(self, oscillator):
        integrator = ScipyIntegrator(oscillator)
        with pytest.raises(ValueError):
            integrator.integrate(
                np.array([1.0, 0.0]), lambda t, x: None, (0.0, 1.0), np.array([0.0, 2.0])
            )
