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
Constant (fixed-input) controller.

Holds one control vector and returns it regardless of state and time.
Used to force open-loop evaluation of a system under a chosen input, which
is how a system model evaluates the dynamics for the control the estimator
passes in.
"""

from typing import Optional

import numpy as np

from sysmodel.controllers.controller_base import ControllerBase
from sysmodel.types.core import ArrayLike, ControlVector, ScalarLike, StateVector
from sysmodel.types.utilities import as_vector


class ConstantController(ControllerBase):
    """
    Control law returning one fixed control vector.

    ``set_control`` overwrites the held vector unconditionally; the previous
    value is never restored. Not safe for concurrent use: a caller that
    shares one instance across threads sees whichever value was written
    last.

    Parameters
    ----------
    u : Optional[ArrayLike]
        Initial control vector. Defaults to zeros of length ``nu``.
    nu : Optional[int]
        Control dimension, required when ``u`` is None.

    Examples
    --------
    >>> controller = ConstantController(nu=1)
    >>> controller.set_control([2.0])
    >>> controller.compute_control(x=np.zeros(2), t=5.0)
    array([2.])
    >>> controller(0.0, np.zeros(2))  # u_func signature
    array([2.])
    """

    def __init__(self, u: Optional[ArrayLike] = None, nu: Optional[int] = None):
        if u is None and nu is None:
            raise ValueError("ConstantController needs an initial control u or a dimension nu")

        if u is None:
            self._u = np.zeros(int(nu))
        else:
            self._u = as_vector(u).copy()

    @property
    def nu(self) -> int:
        return self._u.shape[0]

    def set_control(self, u: ArrayLike) -> None:
        """Overwrite the held control vector (stored as a float copy)."""
        self._u = as_vector(u).copy()

    def get_control(self) -> ControlVector:
        """Return the held control vector."""
        return self._u

    def compute_control(self, x: StateVector, t: ScalarLike) -> ControlVector:
        """Ignore ``x`` and ``t``; return the held control vector."""
        return self._u

    def __repr__(self) -> str:
        return f"ConstantController(u={self._u.tolist()})"
