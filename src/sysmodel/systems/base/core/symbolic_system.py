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
Symbolic System - Continuous-Time Systems Defined with SymPy
============================================================

Users subclass SymbolicSystem and implement ``define_system()``, which
populates the symbolic containers. The constructor then validates the
definition and compiles NumPy functions for the dynamics and for the
analytic Jacobians A = ∂f/∂x, B = ∂f/∂u with ``sympy.lambdify``.

Examples
--------
>>> class Decay(SymbolicSystem):
...     def define_system(self, a=1.0):
...         x, u = sp.symbols("x u", real=True)
...         a_sym = sp.symbols("a", real=True)
...         self.state_vars = [x]
...         self.control_vars = [u]
...         self.parameters = {a_sym: a}
...         self._f_sym = sp.Matrix([-a_sym * x + u])
>>>
>>> system = Decay(a=2.0)
>>> system(np.array([1.0]), np.array([0.0]))
array([-2.])
>>> A, B = system.linearize(np.array([1.0]), np.array([0.0]))
"""

from typing import Dict, List, Optional

import numpy as np
import sympy as sp

from sysmodel.exceptions import ConfigurationError
from sysmodel.systems.base.core.continuous_system_base import ContinuousSystemBase
from sysmodel.types.core import ControlVector, ScalarLike, StateVector
from sysmodel.types.linearization import DeterministicLinearization
from sysmodel.types.utilities import as_vector


class ValidationError(ConfigurationError):
    """Raised when a symbolic system definition is invalid"""

    pass


class SymbolicSystem(ContinuousSystemBase):
    """
    Continuous-time system dx/dt = f(x, u, t) with symbolic dynamics.

    Subclasses must implement ``define_system(**params)`` and set:
    - state_vars: List[sp.Symbol]
    - control_vars: List[sp.Symbol] (empty for autonomous systems)
    - _f_sym: sp.Matrix of shape (nx, 1)

    and may set:
    - parameters: Dict[sp.Symbol, float], substituted before compilation
    - time_var: sp.Symbol, for time-varying dynamics

    Subclasses should NOT override __init__.
    """

    def __init__(self, *args, **kwargs):
        self.state_vars: List[sp.Symbol] = []
        self.control_vars: List[sp.Symbol] = []
        self.parameters: Dict[sp.Symbol, float] = {}
        self.time_var: Optional[sp.Symbol] = None
        self._f_sym: Optional[sp.Matrix] = None

        self.define_system(*args, **kwargs)
        self._validate()
        self._compile()

    def define_system(self, *args, **kwargs):
        """Populate the symbolic containers. Must be overridden."""
        raise NotImplementedError(f"{self.__class__.__name__} must implement define_system()")

    # ========================================================================
    # Validation and Compilation
    # ========================================================================

    def _validate(self) -> None:
        if not self.state_vars:
            raise ValidationError(f"{self.__class__.__name__}: state_vars is empty")
        if self._f_sym is None:
            raise ValidationError(f"{self.__class__.__name__}: _f_sym was not defined")
        if not isinstance(self._f_sym, sp.MatrixBase):
            self._f_sym = sp.Matrix(self._f_sym)
        if self._f_sym.shape[1] != 1:
            self._f_sym = self._f_sym.reshape(len(self._f_sym), 1)
        if self._f_sym.shape[0] != len(self.state_vars):
            raise ValidationError(
                f"{self.__class__.__name__}: _f_sym has {self._f_sym.shape[0]} rows "
                f"but there are {len(self.state_vars)} state variables"
            )

        declared = set(self.state_vars) | set(self.control_vars) | set(self.parameters)
        if self.time_var is not None:
            declared.add(self.time_var)
        if len(declared) != (
            len(self.state_vars)
            + len(self.control_vars)
            + len(self.parameters)
            + (1 if self.time_var is not None else 0)
        ):
            raise ValidationError(
                f"{self.__class__.__name__}: the same symbol is used in more than one role"
            )

        undeclared = self._f_sym.free_symbols - declared
        if undeclared:
            names = ", ".join(sorted(str(s) for s in undeclared))
            raise ValidationError(
                f"{self.__class__.__name__}: dynamics use undeclared symbols: {names}"
            )

    def _compile(self) -> None:
        f_sub = self.substitute_parameters(self._f_sym)
        args = self._arguments()

        self._A_sym = f_sub.jacobian(self.state_vars)
        if self.control_vars:
            self._B_sym = f_sub.jacobian(self.control_vars)
        else:
            self._B_sym = sp.zeros(self.nx, 0)

        self._f_func = sp.lambdify(args, f_sub, modules="numpy")
        self._A_func = sp.lambdify(args, self._A_sym, modules="numpy")
        self._B_func = sp.lambdify(args, self._B_sym, modules="numpy") if self.nu > 0 else None

    def _arguments(self) -> List[sp.Symbol]:
        args = list(self.state_vars) + list(self.control_vars)
        if self.time_var is not None:
            args.append(self.time_var)
        return args

    def _call_args(self, x: StateVector, u: ControlVector, t: ScalarLike) -> list:
        args = list(x) + list(u)
        if self.time_var is not None:
            args.append(t)
        return args

    def substitute_parameters(self, expr):
        """Substitute numerical parameter values into a symbolic expression."""
        return expr.subs(self.parameters)

    # ========================================================================
    # ContinuousSystemBase Interface
    # ========================================================================

    @property
    def nx(self) -> int:
        return len(self.state_vars)

    @property
    def nu(self) -> int:
        return len(self.control_vars)

    @property
    def is_time_varying(self) -> bool:
        return self.time_var is not None

    def evaluate(self, x: StateVector, u: ControlVector, t: ScalarLike) -> StateVector:
        result = self._f_func(*self._call_args(x, u, t))
        return np.asarray(result, dtype=float).reshape(self.nx)

    def linearize(
        self,
        x: StateVector,
        u: Optional[ControlVector] = None,
        t: ScalarLike = 0.0,
    ) -> DeterministicLinearization:
        """
        Evaluate the compiled analytic Jacobians at (x, u, t).

        Returns
        -------
        A : StateMatrix
            ∂f/∂x, shape (nx, nx)
        B : InputMatrix
            ∂f/∂u, shape (nx, nu); (nx, 0) for autonomous systems
        """
        x_np = as_vector(x)
        u_np = as_vector(u, 0)
        args = self._call_args(x_np, u_np, float(t))

        A = np.asarray(self._A_func(*args), dtype=float).reshape(self.nx, self.nx)
        if self._B_func is None:
            B = np.zeros((self.nx, 0))
        else:
            B = np.asarray(self._B_func(*args), dtype=float).reshape(self.nx, self.nu)
        return A, B

    def print_equations(self, simplify: bool = True) -> None:
        """Print dx/dt = f(x, u) line by line."""
        print(f"{self.__class__.__name__}:")
        for var, expr in zip(self.state_vars, self._f_sym):
            expr = sp.simplify(expr) if simplify else expr
            print(f"  d{var}/dt = {expr}")
