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
Mechanical Systems
==================

Symbolic mechanical systems with analytic Jacobians:
- DoubleIntegrator: point mass driven by a force (linear)
- HarmonicOscillator: undamped spring-mass (linear, closed-form solution)
- SymbolicPendulum: damped pendulum with control torque (nonlinear)
"""

import numpy as np
import sympy as sp

from sysmodel.systems.base.core.symbolic_system import SymbolicSystem
from sysmodel.types.core import ScalarLike, StateVector
from sysmodel.types.utilities import as_vector


class DoubleIntegrator(SymbolicSystem):
    """
    Double integrator: d²q/dt² = u / m

    State: x = [q, v] (position, velocity)
    Control: u = [F] (force)

    Dynamics:
        dq/dt = v
        dv/dt = F / m

    With a constant force held over dt from rest,
        q(dt) = F dt² / (2m),  v(dt) = F dt / m
    and the state transition is [[1, dt], [0, 1]] for every dt.

    Parameters
    ----------
    m : float, default=1.0
        Mass [kg]

    Examples
    --------
    >>> system = DoubleIntegrator()
    >>> system(np.array([0.0, 2.0]), np.array([1.0]))
    array([2., 1.])
    """

    def define_system(self, m: float = 1.0):
        q, v = sp.symbols("q v", real=True)
        F = sp.symbols("F", real=True)
        m_sym = sp.symbols("m", real=True, positive=True)

        self.state_vars = [q, v]
        self.control_vars = [F]
        self.parameters = {m_sym: m}
        self._f_sym = sp.Matrix([v, F / m_sym])


class HarmonicOscillator(SymbolicSystem):
    """
    Undamped harmonic oscillator: d²q/dt² = -ω² q + u

    State: x = [q, v]
    Control: u = [a] (applied acceleration)

    The unforced solution is
        q(t) = q0 cos(ωt) + (v0/ω) sin(ωt)
        v(t) = -q0 ω sin(ωt) + v0 cos(ωt)

    which makes the oscillator the reference problem for integration error:
    the energy is conserved exactly, while explicit integrators drift.

    Parameters
    ----------
    omega : float, default=1.0
        Natural frequency [rad/s]

    Examples
    --------
    >>> system = HarmonicOscillator(omega=2.0)
    >>> x_exact = system.analytical_solution(np.array([1.0, 0.0]), t=0.5)
    """

    def define_system(self, omega: float = 1.0):
        if omega <= 0:
            raise ValueError(f"omega must be positive, got {omega}")

        q, v = sp.symbols("q v", real=True)
        a = sp.symbols("a", real=True)
        omega_sym = sp.symbols("omega", real=True, positive=True)

        self.omega = omega
        self.state_vars = [q, v]
        self.control_vars = [a]
        self.parameters = {omega_sym: omega}
        self._f_sym = sp.Matrix([v, -(omega_sym**2) * q + a])

    def analytical_solution(self, x0: StateVector, t: ScalarLike) -> StateVector:
        """Unforced state at time t starting from x0 at time 0."""
        q0, v0 = as_vector(x0)
        w = self.omega
        c, s = np.cos(w * t), np.sin(w * t)
        return np.array([q0 * c + v0 / w * s, -q0 * w * s + v0 * c])

    def energy(self, x: StateVector) -> float:
        """Mechanical energy per unit mass: (v² + ω² q²) / 2."""
        q, v = as_vector(x)
        return 0.5 * (v**2 + self.omega**2 * q**2)


class SymbolicPendulum(SymbolicSystem):
    """
    Damped pendulum with control torque - first-order state-space form.

    State: x = [θ, θ̇]
        - θ: Angle from the upward vertical [rad]
          * θ = 0: upright (unstable equilibrium)
          * θ = π: hanging down (stable equilibrium)
        - θ̇: Angular velocity [rad/s]

    Control: u = [τ] (torque at the pivot [N⋅m])

    Dynamics:
        dθ/dt = θ̇
        dθ̇/dt = -(β/ml²) θ̇ + (g/l) sin(θ) + τ/(ml²)

    Parameters
    ----------
    m : float, default=1.0
        Mass of the bob [kg]
    l : float, default=1.0
        Rod length [m]
    beta : float, default=1.0
        Viscous damping [N⋅m⋅s/rad]
    g : float, default=9.81
        Gravitational acceleration [m/s²]
    """

    def define_system(self, m: float = 1.0, l: float = 1.0, beta: float = 1.0, g: float = 9.81):
        theta, theta_dot = sp.symbols("theta theta_dot", real=True)
        tau = sp.symbols("tau", real=True)
        m_sym, l_sym, beta_sym, g_sym = sp.symbols("m l beta g", real=True, positive=True)

        self.state_vars = [theta, theta_dot]
        self.control_vars = [tau]
        self.parameters = {m_sym: m, l_sym: l, beta_sym: beta, g_sym: g}

        ml2 = m_sym * l_sym**2
        self._f_sym = sp.Matrix(
            [theta_dot, (-beta_sym / ml2) * theta_dot + (g_sym / l_sym) * sp.sin(theta) + tau / ml2]
        )
