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
Core Types - Fundamental Building Blocks

Defines the basic array, vector and matrix aliases used throughout sysmodel.
Names convey mathematical meaning; every alias is backed by NumPy.

Usage
-----
>>> from sysmodel.types.core import StateVector, ControlVector, StateMatrix
>>>
>>> def propagate(A: StateMatrix, x: StateVector) -> StateVector:
...     return A @ x
"""

from typing import Union

import numpy as np


# ============================================================================
# Basic Array Types
# ============================================================================

ArrayLike = Union[np.ndarray, list, tuple]
"""
Anything NumPy can turn into an array.

Inputs are coerced with ``np.asarray(..., dtype=float)`` at API boundaries,
so plain lists are accepted wherever an ArrayLike is expected.
"""

NumpyArray = np.ndarray

ScalarLike = Union[float, int, np.number]
"""
Real scalar (time, step size, tolerance).

Examples
--------
>>> dt: ScalarLike = 0.01
"""

IntegerLike = Union[int, np.integer]


# ============================================================================
# Vector Types - Semantic Naming by Role
# ============================================================================

StateVector = np.ndarray
"""
State vector x ∈ ℝⁿˣ, shape (nx,).

Examples
--------
>>> x: StateVector = np.array([0.0, 0.0])  # double integrator [position, velocity]
"""

ControlVector = np.ndarray
"""
Control vector u ∈ ℝⁿᵘ, shape (nu,).

Autonomous systems (nu=0) use an empty array of shape (0,).
"""

NoiseVector = np.ndarray
"""Process-noise vector w ∈ ℝⁿˣ, shape (nx,)."""


# ============================================================================
# Matrix Types
# ============================================================================

StateMatrix = np.ndarray
"""
State Jacobian, shape (nx, nx).

Continuous: A = ∂f/∂x
Discrete:   Ad = ∂x[k+1]/∂x[k]
"""

InputMatrix = np.ndarray
"""
Control Jacobian, shape (nx, nu).

Continuous: B = ∂f/∂u
Discrete:   Bd = ∂x[k+1]/∂u[k]
"""

ControlMatrix = InputMatrix

NoiseJacobian = np.ndarray
"""
Process-noise Jacobian G, shape (nx, nx).

Maps a process-noise vector into state space: x[k+1] = f_d(x[k], u[k]) + G w[k].
"""


# ============================================================================
# Dimensions
# ============================================================================

DimensionTuple = tuple
"""(nx, nu) pair describing a system."""


__all__ = [
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
]
