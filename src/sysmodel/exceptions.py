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
Exception hierarchy for sysmodel.

Every failure raised by the package derives from SystemModelError. The
concrete classes also derive from the builtin exception a caller would
naturally catch (ValueError for bad input or configuration, RuntimeError for
numerical failure).

Propagation policy: the system-model adapters never recover locally. A
failed integration or linearization is raised to the estimator, which
decides whether to abort, reject the prediction step, or fall back.
"""


class SystemModelError(Exception):
    """Base class for all sysmodel errors."""


class ConfigurationError(SystemModelError, ValueError):
    """
    Raised at construction for unusable configuration.

    Examples: non-positive step duration, negative substep count, a noise
    Jacobian of the wrong shape or with non-finite entries, a sensitivity
    engine bound to a different discretization scheme.
    """


class DimensionMismatchError(SystemModelError, ValueError):
    """Raised when a state or control size differs from the system's declared dimensions."""

    def __init__(self, name: str, expected: int, actual: int):
        self.name = name
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Dimension mismatch for {name}: expected {expected} element(s), got {actual}"
        )


class IntegrationError(SystemModelError, RuntimeError):
    """
    Raised by integrators on divergence, non-finite output, solver failure
    or an exceeded step budget.
    """


class LinearizationError(SystemModelError, RuntimeError):
    """Raised by linearization and sensitivity engines for the same causes."""


__all__ = [
    "SystemModelError",
    "ConfigurationError",
    "DimensionMismatchError",
    "IntegrationError",
    "LinearizationError",
]
