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
Utility Types and Helpers

Execution statistics and small array helpers shared by the engines.
"""

from typing import Optional

import numpy as np
from typing_extensions import TypedDict

from .core import ArrayLike


class ExecutionStats(TypedDict):
    """Execution statistics for tracking function performance.

    Tracks runtime performance of any callable component:
    - Function evaluation time
    - Call frequency
    - Average execution time
    """

    calls: int
    total_time: float
    avg_time: float


def as_vector(value: Optional[ArrayLike], size: Optional[int] = None) -> np.ndarray:
    """
    Coerce a value to a 1-D float array.

    ``None`` becomes an empty vector (autonomous systems). Scalars become
    length-1 vectors. ``size`` is only used for the ``None`` case.

    Examples
    --------
    >>> as_vector([1, 2])
    array([1., 2.])
    >>> as_vector(None).shape
    (0,)
    """
    if value is None:
        return np.zeros(size or 0)
    return np.atleast_1d(np.asarray(value, dtype=float)).reshape(-1)


def is_finite(array: ArrayLike) -> bool:
    """True when every entry is finite (no NaN, no ±inf)."""
    return bool(np.all(np.isfinite(np.asarray(array, dtype=float))))


__all__ = [
    "ExecutionStats",
    "as_vector",
    "is_finite",
]
